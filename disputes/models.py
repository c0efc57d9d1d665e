"""Value types referenced by a dispute.

Contract terms, direct messages exchanged between trader and arbitrator, and
the arbitrator's result. All of them are immutable values with structural
equality and hashing, so a dispute that embeds them compares equal to an
independently decoded copy.

Amounts are integers in the smallest unit (satoshis, price ticks); floats
never reach the wire.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from disputes.core import (
    b64url_decode,
    b64url_encode,
    canonical_json_text,
    format_timestamp,
    now_utc_millis,
    optional_str,
    parse_timestamp,
    require_bool,
    require_int,
    require_str,
    sha256_digest,
    truncate_to_millis,
)
from disputes.crypto import PubKeyRing


# ─────────────────────────────────────────────────────────────────────────────
# Contract
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Contract:
    """Trade terms both parties signed before the deposit was published."""
    offer_id: str
    trade_amount: int
    trade_price: int
    currency_code: str
    payment_method_id: str
    taker_fee_tx_id: str
    arbitrator_address: str
    buyer_is_offerer: bool
    offerer_pub_key_ring: PubKeyRing
    taker_pub_key_ring: PubKeyRing
    offerer_payout_address: str
    taker_payout_address: str

    @property
    def buyer_pub_key_ring(self) -> PubKeyRing:
        return self.offerer_pub_key_ring if self.buyer_is_offerer else self.taker_pub_key_ring

    @property
    def seller_pub_key_ring(self) -> PubKeyRing:
        return self.taker_pub_key_ring if self.buyer_is_offerer else self.offerer_pub_key_ring

    def to_dict(self) -> Dict[str, Any]:
        return {
            "offer_id": self.offer_id,
            "trade_amount": self.trade_amount,
            "trade_price": self.trade_price,
            "currency_code": self.currency_code,
            "payment_method_id": self.payment_method_id,
            "taker_fee_tx_id": self.taker_fee_tx_id,
            "arbitrator_address": self.arbitrator_address,
            "buyer_is_offerer": self.buyer_is_offerer,
            "offerer_pub_key_ring": self.offerer_pub_key_ring.to_dict(),
            "taker_pub_key_ring": self.taker_pub_key_ring.to_dict(),
            "offerer_payout_address": self.offerer_payout_address,
            "taker_payout_address": self.taker_payout_address,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Contract":
        return cls(
            offer_id=require_str(d["offer_id"], "offer_id"),
            trade_amount=require_int(d["trade_amount"], "trade_amount"),
            trade_price=require_int(d["trade_price"], "trade_price"),
            currency_code=require_str(d["currency_code"], "currency_code"),
            payment_method_id=require_str(d["payment_method_id"], "payment_method_id"),
            taker_fee_tx_id=require_str(d["taker_fee_tx_id"], "taker_fee_tx_id"),
            arbitrator_address=require_str(d["arbitrator_address"], "arbitrator_address"),
            buyer_is_offerer=require_bool(d["buyer_is_offerer"], "buyer_is_offerer"),
            offerer_pub_key_ring=PubKeyRing.from_dict(d["offerer_pub_key_ring"]),
            taker_pub_key_ring=PubKeyRing.from_dict(d["taker_pub_key_ring"]),
            offerer_payout_address=require_str(d["offerer_payout_address"], "offerer_payout_address"),
            taker_payout_address=require_str(d["taker_payout_address"], "taker_payout_address"),
        )

    def to_json(self) -> str:
        """Canonical text form; this is what both parties sign."""
        return canonical_json_text(self.to_dict())

    def hash(self) -> bytes:
        """SHA-256 over the canonical text."""
        return sha256_digest(self.to_json().encode("utf-8"))


# ─────────────────────────────────────────────────────────────────────────────
# Direct messages
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Attachment:
    """File attached to a direct message."""
    file_name: str
    data: bytes

    def to_dict(self) -> Dict[str, Any]:
        return {"file_name": self.file_name, "data": b64url_encode(self.data)}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Attachment":
        return cls(
            file_name=require_str(d["file_name"], "file_name"),
            data=b64url_decode(require_str(d["data"], "data")),
        )


@dataclass(frozen=True)
class DisputeDirectMessage:
    """A message in the communication log between a trader and the arbitrator."""
    trade_id: str
    trader_id: int
    sender_is_trader: bool
    message: str
    attachments: Tuple[Attachment, ...] = ()
    date: datetime = field(default_factory=now_utc_millis)
    uid: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        # Normalize so that equality survives a wire round trip
        object.__setattr__(self, "attachments", tuple(self.attachments))
        object.__setattr__(self, "date", truncate_to_millis(self.date))

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "uid": self.uid,
            "trade_id": self.trade_id,
            "trader_id": self.trader_id,
            "sender_is_trader": self.sender_is_trader,
            "message": self.message,
            "date": format_timestamp(self.date),
        }
        if self.attachments:
            d["attachments"] = [a.to_dict() for a in self.attachments]
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DisputeDirectMessage":
        return cls(
            uid=require_str(d["uid"], "uid"),
            trade_id=require_str(d["trade_id"], "trade_id"),
            trader_id=require_int(d["trader_id"], "trader_id"),
            sender_is_trader=require_bool(d["sender_is_trader"], "sender_is_trader"),
            message=require_str(d["message"], "message"),
            date=parse_timestamp(d["date"]),
            attachments=tuple(Attachment.from_dict(a) for a in d.get("attachments", [])),
        )


# ─────────────────────────────────────────────────────────────────────────────
# Dispute result
# ─────────────────────────────────────────────────────────────────────────────

class Winner(Enum):
    BUYER = "buyer"
    SELLER = "seller"


class FeePolicy(Enum):
    LOSER = "loser"
    SPLIT = "split"
    WAIVE = "waive"


@dataclass(frozen=True)
class DisputeResult:
    """The arbitrator's decision.

    Content is not validated here; payout arithmetic and signature checks
    belong to the arbitration workflow.
    """
    trade_id: str
    trader_id: int
    fee_policy: FeePolicy = FeePolicy.LOSER
    winner: Optional[Winner] = None
    tamper_proof_evidence: bool = False
    id_verification: bool = False
    screen_cast: bool = False
    summary_notes: str = ""
    buyer_payout_amount: int = 0
    seller_payout_amount: int = 0
    arbitrator_payout_amount: int = 0
    arbitrator_address: str = ""
    arbitrator_signature: Optional[str] = None
    close_date: Optional[datetime] = None

    def __post_init__(self):
        if self.close_date is not None:
            object.__setattr__(self, "close_date", truncate_to_millis(self.close_date))

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "trade_id": self.trade_id,
            "trader_id": self.trader_id,
            "fee_policy": self.fee_policy.value,
            "tamper_proof_evidence": self.tamper_proof_evidence,
            "id_verification": self.id_verification,
            "screen_cast": self.screen_cast,
            "summary_notes": self.summary_notes,
            "buyer_payout_amount": self.buyer_payout_amount,
            "seller_payout_amount": self.seller_payout_amount,
            "arbitrator_payout_amount": self.arbitrator_payout_amount,
            "arbitrator_address": self.arbitrator_address,
        }
        if self.winner is not None:
            d["winner"] = self.winner.value
        if self.arbitrator_signature is not None:
            d["arbitrator_signature"] = self.arbitrator_signature
        if self.close_date is not None:
            d["close_date"] = format_timestamp(self.close_date)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DisputeResult":
        winner = d.get("winner")
        close_date = d.get("close_date")
        return cls(
            trade_id=require_str(d["trade_id"], "trade_id"),
            trader_id=require_int(d["trader_id"], "trader_id"),
            fee_policy=FeePolicy(d.get("fee_policy", FeePolicy.LOSER.value)),
            winner=Winner(winner) if winner is not None else None,
            tamper_proof_evidence=require_bool(d.get("tamper_proof_evidence", False), "tamper_proof_evidence"),
            id_verification=require_bool(d.get("id_verification", False), "id_verification"),
            screen_cast=require_bool(d.get("screen_cast", False), "screen_cast"),
            summary_notes=require_str(d.get("summary_notes", ""), "summary_notes"),
            buyer_payout_amount=require_int(d.get("buyer_payout_amount", 0), "buyer_payout_amount"),
            seller_payout_amount=require_int(d.get("seller_payout_amount", 0), "seller_payout_amount"),
            arbitrator_payout_amount=require_int(d.get("arbitrator_payout_amount", 0), "arbitrator_payout_amount"),
            arbitrator_address=require_str(d.get("arbitrator_address", ""), "arbitrator_address"),
            arbitrator_signature=optional_str(d.get("arbitrator_signature"), "arbitrator_signature"),
            close_date=parse_timestamp(close_date) if close_date is not None else None,
        )
