"""Versioned wire and storage encoding for disputes.

The same bytes go to peers and to local storage. A payload is canonical JSON
(sorted keys, no whitespace, UTF-8, no floats) tagged with a record type and a
network version:

    {"type": "Dispute", "p2p_network_version": 2, "trade_id": "...", ...}

Compatibility rules:
- The encoder writes ``P2P_NETWORK_VERSION`` unless asked for an older one.
- The decoder accepts every version in ``SUPPORTED_NETWORK_VERSIONS`` and fills
  optional fields an older payload lacks with their defaults.
- Unknown version tags, malformed bytes and missing required fields raise a
  ``DecodeError`` subclass carrying a description. A partially populated
  dispute is never returned.

Version history:
    1  initial format
    2  adds mandatory ``is_support_ticket`` (v1 payloads decode it as False)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from disputes.config import get_config
from disputes.core import (
    b64url_decode,
    b64url_encode,
    canonical_json_bytes,
    decode_optional_bytes,
    encode_optional_bytes,
    format_timestamp,
    optional_str,
    parse_timestamp,
    require_bool,
    require_int,
    require_str,
    sha256_bytes,
)
from disputes.crypto import PubKeyRing
from disputes.dispute import Dispute
from disputes.errors import DecodeError, IncompatibleEncodingError, PartialDecodeError
from disputes.models import Contract, DisputeDirectMessage, DisputeResult
from disputes.schema import required_fields, validate_dispute_payload

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────────────────────

P2P_NETWORK_VERSION = 2

SUPPORTED_NETWORK_VERSIONS = (1, 2)

DISPUTE_TYPE = "Dispute"
DISPUTE_LIST_TYPE = "DisputeList"

Payload = Union[bytes, bytearray, str]


# ─────────────────────────────────────────────────────────────────────────────
# Encoding
# ─────────────────────────────────────────────────────────────────────────────

def dispute_to_dict(dispute: Dispute, version: int = P2P_NETWORK_VERSION) -> Dict[str, Any]:
    """Wire dictionary for ``dispute``. The payout tx cache is never included."""
    if version not in SUPPORTED_NETWORK_VERSIONS:
        raise ValueError(f"Cannot encode for unsupported p2p_network_version {version}")
    if version < 2 and dispute.is_support_ticket:
        raise ValueError("Support tickets cannot be encoded for p2p_network_version 1")

    d: Dict[str, Any] = {
        "type": DISPUTE_TYPE,
        "p2p_network_version": version,
        "trade_id": dispute.trade_id,
        "trader_id": dispute.trader_id,
        "dispute_opener_is_buyer": dispute.dispute_opener_is_buyer,
        "dispute_opener_is_offerer": dispute.dispute_opener_is_offerer,
        "opening_date": format_timestamp(dispute.opening_date),
        "trade_date": format_timestamp(dispute.trade_date),
        "trader_pub_key_ring": dispute.trader_pub_key_ring.to_dict(),
        "arbitrator_pub_key_ring": dispute.arbitrator_pub_key_ring.to_dict(),
        "contract": dispute.contract.to_dict(),
        "contract_hash": b64url_encode(dispute.contract_hash),
        "contract_as_json": dispute.contract_as_json,
        "offerer_contract_signature": dispute.offerer_contract_signature,
        "taker_contract_signature": dispute.taker_contract_signature,
        "dispute_direct_messages": [m.to_dict() for m in dispute.dispute_direct_messages],
        "is_closed": dispute.is_closed,
    }
    if version >= 2:
        d["is_support_ticket"] = dispute.is_support_ticket
    if dispute.deposit_tx_serialized is not None:
        d["deposit_tx_serialized"] = encode_optional_bytes(dispute.deposit_tx_serialized)
    if dispute.payout_tx_serialized is not None:
        d["payout_tx_serialized"] = encode_optional_bytes(dispute.payout_tx_serialized)
    if dispute.deposit_tx_id is not None:
        d["deposit_tx_id"] = dispute.deposit_tx_id
    if dispute.payout_tx_id is not None:
        d["payout_tx_id"] = dispute.payout_tx_id
    if dispute.dispute_result is not None:
        d["dispute_result"] = dispute.dispute_result.to_dict()
    return d


def encode_dispute(dispute: Dispute, version: int = P2P_NETWORK_VERSION) -> bytes:
    """Canonical bytes for ``dispute``."""
    return canonical_json_bytes(dispute_to_dict(dispute, version))


def dispute_digest(dispute: Dispute) -> str:
    """SHA-256 of the current-version canonical bytes."""
    return sha256_bytes(encode_dispute(dispute))


def encode_dispute_list(disputes: Iterable[Dispute], version: int = P2P_NETWORK_VERSION) -> bytes:
    """Canonical bytes for an ordered collection of disputes."""
    return canonical_json_bytes({
        "type": DISPUTE_LIST_TYPE,
        "p2p_network_version": version,
        "disputes": [dispute_to_dict(d, version) for d in disputes],
    })


# ─────────────────────────────────────────────────────────────────────────────
# Decoding
# ─────────────────────────────────────────────────────────────────────────────

def _parse(payload: Payload) -> Any:
    max_bytes = get_config().codec.max_payload_bytes.get()
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    if len(payload) > max_bytes:
        raise IncompatibleEncodingError(
            f"Payload of {len(payload)} bytes exceeds limit of {max_bytes} bytes"
        )
    try:
        return json.loads(bytes(payload).decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise IncompatibleEncodingError("Payload is not valid UTF-8 JSON", [str(e)]) from e
    except RecursionError as e:
        raise IncompatibleEncodingError("Payload nesting is too deep to decode") from e


def _check_envelope(data: Any, expected_type: str) -> int:
    """Return the version tag after checking record type and version support."""
    if not isinstance(data, dict):
        raise IncompatibleEncodingError(
            f"Expected a JSON object for {expected_type}, got {type(data).__name__}"
        )
    record_type = data.get("type")
    if record_type != expected_type:
        raise IncompatibleEncodingError(f"Expected record type {expected_type!r}, got {record_type!r}")
    if "p2p_network_version" not in data:
        raise IncompatibleEncodingError(f"{expected_type} payload carries no p2p_network_version tag")
    version = data["p2p_network_version"]
    if isinstance(version, bool) or not isinstance(version, int) or version not in SUPPORTED_NETWORK_VERSIONS:
        raise IncompatibleEncodingError(
            f"Unsupported p2p_network_version {version!r}; "
            f"accepted versions are {list(SUPPORTED_NETWORK_VERSIONS)}",
            version=version,
        )
    return version


def _strip_root(path: str) -> str:
    return path[2:] if path.startswith("$.") else path


def _decode_messages(records: Any, version: int) -> Tuple[DisputeDirectMessage, ...]:
    """Decode the message log; equal entries are rejected, not merged."""
    if not isinstance(records, list):
        raise TypeError(f"dispute_direct_messages must be an array, got {type(records).__name__}")
    messages: List[DisputeDirectMessage] = []
    for index, record in enumerate(records):
        message = DisputeDirectMessage.from_dict(record)
        if message in messages:
            raise IncompatibleEncodingError(
                f"Dispute payload v{version} repeats direct message #{index} (uid={message.uid})",
                version=version,
            )
        messages.append(message)
    return tuple(messages)


def dispute_from_dict(data: Any, strict: Optional[bool] = None) -> Dispute:
    """Build an unbound Dispute from a wire dictionary.

    Args:
        data: Parsed payload
        strict: Validate against the version's JSON Schema. Defaults to the
            ``codec.strict_schema`` setting.

    Raises:
        IncompatibleEncodingError: wrong type, unknown version, invalid content
        PartialDecodeError: a required field is missing
    """
    version = _check_envelope(data, DISPUTE_TYPE)
    if strict is None:
        strict = get_config().codec.strict_schema.get()

    if strict:
        missing, errors = validate_dispute_payload(data, version)
        if missing:
            missing = [_strip_root(m) for m in missing]
            raise PartialDecodeError(
                f"Dispute payload v{version} is missing required fields: {', '.join(missing)}",
                missing_fields=missing,
                errors=errors,
                version=version,
            )
        if errors:
            raise IncompatibleEncodingError(
                f"Dispute payload does not match schema v{version}", errors, version=version
            )
    else:
        missing = [name for name in required_fields(version) if name not in data]
        if missing:
            raise PartialDecodeError(
                f"Dispute payload v{version} is missing required fields: {', '.join(missing)}",
                missing_fields=missing,
                version=version,
            )

    try:
        result = data.get("dispute_result")
        messages = _decode_messages(data.get("dispute_direct_messages", []), version)
        return Dispute.restore(
            trade_id=require_str(data["trade_id"], "trade_id"),
            trader_id=require_int(data["trader_id"], "trader_id"),
            dispute_opener_is_buyer=require_bool(data["dispute_opener_is_buyer"], "dispute_opener_is_buyer"),
            dispute_opener_is_offerer=require_bool(data["dispute_opener_is_offerer"], "dispute_opener_is_offerer"),
            trader_pub_key_ring=PubKeyRing.from_dict(data["trader_pub_key_ring"]),
            trade_date=parse_timestamp(data["trade_date"]),
            contract=Contract.from_dict(data["contract"]),
            contract_hash=b64url_decode(require_str(data["contract_hash"], "contract_hash")),
            deposit_tx_serialized=decode_optional_bytes(
                optional_str(data.get("deposit_tx_serialized"), "deposit_tx_serialized")
            ),
            payout_tx_serialized=decode_optional_bytes(
                optional_str(data.get("payout_tx_serialized"), "payout_tx_serialized")
            ),
            deposit_tx_id=optional_str(data.get("deposit_tx_id"), "deposit_tx_id"),
            payout_tx_id=optional_str(data.get("payout_tx_id"), "payout_tx_id"),
            contract_as_json=require_str(data["contract_as_json"], "contract_as_json"),
            offerer_contract_signature=require_str(data["offerer_contract_signature"], "offerer_contract_signature"),
            taker_contract_signature=require_str(data["taker_contract_signature"], "taker_contract_signature"),
            arbitrator_pub_key_ring=PubKeyRing.from_dict(data["arbitrator_pub_key_ring"]),
            is_support_ticket=require_bool(data.get("is_support_ticket", False), "is_support_ticket"),
            opening_date=parse_timestamp(data["opening_date"]),
            dispute_direct_messages=messages,
            is_closed=require_bool(data.get("is_closed", False), "is_closed"),
            dispute_result=DisputeResult.from_dict(result) if result is not None else None,
        )
    except KeyError as e:
        name = str(e.args[0]) if e.args else "?"
        raise PartialDecodeError(
            f"Dispute payload v{version} is missing required field: {name}",
            missing_fields=[name],
            version=version,
        ) from e
    except (ValueError, TypeError, AttributeError) as e:
        raise IncompatibleEncodingError(
            f"Cannot build dispute from payload v{version}: {e}", version=version
        ) from e


def decode_dispute(payload: Payload, strict: Optional[bool] = None) -> Dispute:
    """Decode one dispute. The result must be bound with ``set_storage``."""
    return dispute_from_dict(_parse(payload), strict=strict)


@dataclass
class DecodeFailure:
    """A record of a dispute list that could not be decoded."""
    index: int
    dispute_id: str
    error: DecodeError

    @property
    def description(self) -> str:
        return self.error.description


@dataclass
class DisputeListDecodeResult:
    """Disputes that decoded, and the records that were discarded."""
    disputes: List[Dispute] = field(default_factory=list)
    failures: List[DecodeFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def decode_dispute_list(payload: Payload, strict: Optional[bool] = None) -> DisputeListDecodeResult:
    """Decode a stored dispute list.

    Bad records are discarded and reported in ``failures``; they do not
    prevent the remaining disputes from loading. A malformed envelope raises.
    """
    data = _parse(payload)
    _check_envelope(data, DISPUTE_LIST_TYPE)
    records = data.get("disputes")
    if not isinstance(records, list):
        raise PartialDecodeError(
            "DisputeList payload has no disputes array", missing_fields=["disputes"]
        )

    result = DisputeListDecodeResult()
    for index, record in enumerate(records):
        try:
            result.disputes.append(dispute_from_dict(record, strict=strict))
        except DecodeError as e:
            dispute_id = ""
            if isinstance(record, dict) and "trade_id" in record and "trader_id" in record:
                dispute_id = f"{record['trade_id']}_{record['trader_id']}"
            logger.error("Discarding dispute #%d (%s): %s", index, dispute_id or "unknown id", e)
            result.failures.append(DecodeFailure(index=index, dispute_id=dispute_id, error=e))
    return result
