#!/usr/bin/env python3
"""Dispute record exchanged between trading peers.

One ``Dispute`` exists per (trade, trader role). It is sent over the wire and
written to local storage with the same encoding (see ``disputes.codec``), so
its durable fields and its equality must stay stable across peer versions.

Lifecycle:
- Created once by the opening peer, or rebuilt from bytes by ``disputes.codec``.
- Immutable trade context is fixed at construction.
- ``is_closed`` and ``dispute_result`` are the only durable fields that change
  afterwards; the message log only grows.
- ``dispute_payout_tx`` is a process-local cache and never leaves the process.

Usage:
    from disputes.dispute import Dispute

    dispute = Dispute(
        storage=dispute_list_storage,
        trade_id="abc123",
        trader_id=1,
        ...
    )
    dispute.is_closed_property.subscribe(lambda closed: print(closed))
    dispute.set_is_closed(True)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Protocol, Tuple, runtime_checkable

from disputes.core import now_utc_millis, truncate_to_millis
from disputes.crypto import PubKeyRing
from disputes.errors import DuplicateMessageError, UnboundMutationError
from disputes.models import Contract, DisputeDirectMessage, DisputeResult
from disputes.notifier import (
    ObservableList,
    ObservableValue,
    ReadOnlyObservable,
    ReadOnlyObservableList,
)
from disputes.observability import dispute_context

logger = logging.getLogger(__name__)


@runtime_checkable
class PersistenceTrigger(Protocol):
    """Schedules a durable write of the collection owning the dispute.

    Fire-and-forget: the dispute neither waits for the write nor sees its
    failures.
    """

    def queue_up_for_save(self) -> None:
        ...


def make_dispute_id(trade_id: str, trader_id: int) -> str:
    return f"{trade_id}_{trader_id}"


class Dispute:
    """A dispute raised by one trader of a trade.

    Not thread-safe: mutators must be called from a single owner. Callers
    needing multi-threaded access serialize it themselves.
    """

    def __init__(
        self,
        storage: Optional[PersistenceTrigger],
        trade_id: str,
        trader_id: int,
        dispute_opener_is_buyer: bool,
        dispute_opener_is_offerer: bool,
        trader_pub_key_ring: PubKeyRing,
        trade_date: datetime,
        contract: Contract,
        contract_hash: bytes,
        deposit_tx_serialized: Optional[bytes],
        payout_tx_serialized: Optional[bytes],
        deposit_tx_id: Optional[str],
        payout_tx_id: Optional[str],
        contract_as_json: str,
        offerer_contract_signature: str,
        taker_contract_signature: str,
        arbitrator_pub_key_ring: PubKeyRing,
        is_support_ticket: bool,
    ):
        if not isinstance(trade_id, str) or not trade_id:
            raise ValueError("trade_id must be a non-empty string")

        self._trade_id = trade_id
        self._trader_id = int(trader_id)
        self._dispute_opener_is_buyer = bool(dispute_opener_is_buyer)
        self._dispute_opener_is_offerer = bool(dispute_opener_is_offerer)
        self._trader_pub_key_ring = trader_pub_key_ring
        self._trade_date = truncate_to_millis(trade_date)
        self._contract = contract
        self._contract_hash = bytes(contract_hash)
        self._deposit_tx_serialized = bytes(deposit_tx_serialized) if deposit_tx_serialized is not None else None
        self._payout_tx_serialized = bytes(payout_tx_serialized) if payout_tx_serialized is not None else None
        self._deposit_tx_id = deposit_tx_id
        self._payout_tx_id = payout_tx_id
        self._contract_as_json = contract_as_json
        self._offerer_contract_signature = offerer_contract_signature
        self._taker_contract_signature = taker_contract_signature
        self._arbitrator_pub_key_ring = arbitrator_pub_key_ring
        self._is_support_ticket = bool(is_support_ticket)
        # Local creation/receipt time, never caller supplied
        self._opening_date = now_utc_millis()

        self._init_state(messages=[], is_closed=False, dispute_result=None)
        self._storage = storage

    @classmethod
    def restore(
        cls,
        *,
        opening_date: datetime,
        dispute_direct_messages: Tuple[DisputeDirectMessage, ...] = (),
        is_closed: bool = False,
        dispute_result: Optional[DisputeResult] = None,
        **fields: Any,
    ) -> "Dispute":
        """Rebuild a dispute from decoded fields.

        The result has no storage attached and fresh notifiers mirroring the
        decoded values. Call ``set_storage`` before mutating it.
        """
        dispute = cls(storage=None, **fields)
        dispute._opening_date = truncate_to_millis(opening_date)
        dispute._init_state(
            messages=list(dispute_direct_messages),
            is_closed=bool(is_closed),
            dispute_result=dispute_result,
        )
        return dispute

    def _init_state(
        self,
        messages: list,
        is_closed: bool,
        dispute_result: Optional[DisputeResult],
    ) -> None:
        self._dispute_payout_tx: Any = None
        self._messages: ObservableList[DisputeDirectMessage] = ObservableList(
            messages, name=f"{self.id}.dispute_direct_messages"
        )
        self._is_closed: ObservableValue[bool] = ObservableValue(is_closed, name=f"{self.id}.is_closed")
        self._dispute_result: ObservableValue[Optional[DisputeResult]] = ObservableValue(
            dispute_result, name=f"{self.id}.dispute_result"
        )

    # ─────────────────────────────────────────────────────────────────────
    # Wiring
    # ─────────────────────────────────────────────────────────────────────

    def set_storage(self, storage: PersistenceTrigger) -> None:
        """Attach the persistence trigger.

        Needed after the dispute arrives over the network or is loaded from
        disk, since wiring does not survive serialization.
        """
        self._storage = storage

    @property
    def is_bound(self) -> bool:
        return self._storage is not None

    def _require_storage(self, operation: str) -> PersistenceTrigger:
        if self._storage is None:
            raise UnboundMutationError(self.id, operation)
        return self._storage

    # ─────────────────────────────────────────────────────────────────────
    # Mutators
    # ─────────────────────────────────────────────────────────────────────

    def add_dispute_message(self, dispute_direct_message: DisputeDirectMessage) -> None:
        storage = self._require_storage("add_dispute_message")
        with dispute_context(self.id, self._trade_id):
            if dispute_direct_message in self._messages:
                logger.error("disputeDirectMessage already exists (uid=%s)", dispute_direct_message.uid)
                raise DuplicateMessageError(self.id, dispute_direct_message)
            self._messages.append(dispute_direct_message)
            storage.queue_up_for_save()

    def set_is_closed(self, is_closed: bool) -> None:
        storage = self._require_storage("set_is_closed")
        with dispute_context(self.id, self._trade_id):
            self._is_closed.set(bool(is_closed))
            logger.debug("is_closed set to %s", bool(is_closed))
            storage.queue_up_for_save()

    def set_dispute_result(self, dispute_result: Optional[DisputeResult]) -> None:
        storage = self._require_storage("set_dispute_result")
        with dispute_context(self.id, self._trade_id):
            self._dispute_result.set(dispute_result)
            logger.debug("dispute_result replaced")
            storage.queue_up_for_save()

    def set_dispute_payout_tx(self, dispute_payout_tx: Any) -> None:
        """Cache the broadcast settlement transaction. Not persisted."""
        self._dispute_payout_tx = dispute_payout_tx

    # ─────────────────────────────────────────────────────────────────────
    # Getters
    # ─────────────────────────────────────────────────────────────────────

    @property
    def id(self) -> str:
        return make_dispute_id(self._trade_id, self._trader_id)

    @property
    def trade_id(self) -> str:
        return self._trade_id

    @property
    def short_trade_id(self) -> str:
        return self._trade_id[:8]

    @property
    def trader_id(self) -> int:
        return self._trader_id

    @property
    def dispute_opener_is_buyer(self) -> bool:
        return self._dispute_opener_is_buyer

    @property
    def dispute_opener_is_offerer(self) -> bool:
        return self._dispute_opener_is_offerer

    @property
    def opening_date(self) -> datetime:
        return self._opening_date

    @property
    def trade_date(self) -> datetime:
        return self._trade_date

    @property
    def trader_pub_key_ring(self) -> PubKeyRing:
        return self._trader_pub_key_ring

    @property
    def arbitrator_pub_key_ring(self) -> PubKeyRing:
        return self._arbitrator_pub_key_ring

    @property
    def contract(self) -> Contract:
        return self._contract

    @property
    def contract_hash(self) -> bytes:
        return self._contract_hash

    @property
    def deposit_tx_serialized(self) -> Optional[bytes]:
        return self._deposit_tx_serialized

    @property
    def payout_tx_serialized(self) -> Optional[bytes]:
        return self._payout_tx_serialized

    @property
    def deposit_tx_id(self) -> Optional[str]:
        return self._deposit_tx_id

    @property
    def payout_tx_id(self) -> Optional[str]:
        return self._payout_tx_id

    @property
    def contract_as_json(self) -> str:
        return self._contract_as_json

    @property
    def offerer_contract_signature(self) -> str:
        return self._offerer_contract_signature

    @property
    def taker_contract_signature(self) -> str:
        return self._taker_contract_signature

    @property
    def is_support_ticket(self) -> bool:
        return self._is_support_ticket

    @property
    def dispute_direct_messages(self) -> Tuple[DisputeDirectMessage, ...]:
        return self._messages.items()

    @property
    def dispute_direct_messages_observable(self) -> ReadOnlyObservableList[DisputeDirectMessage]:
        return self._messages.read_only()

    @property
    def is_closed(self) -> bool:
        return self._is_closed.get()

    @property
    def is_closed_property(self) -> ReadOnlyObservable[bool]:
        return self._is_closed.read_only()

    @property
    def dispute_result(self) -> Optional[DisputeResult]:
        return self._dispute_result.get()

    @property
    def dispute_result_property(self) -> ReadOnlyObservable[Optional[DisputeResult]]:
        return self._dispute_result.read_only()

    @property
    def dispute_payout_tx(self) -> Any:
        return self._dispute_payout_tx

    # ─────────────────────────────────────────────────────────────────────
    # Equality
    # ─────────────────────────────────────────────────────────────────────

    def _key(self) -> Tuple[Any, ...]:
        # Durable fields only: payout tx cache and wiring are excluded
        return (
            self._trade_id,
            self._trader_id,
            self._dispute_opener_is_buyer,
            self._dispute_opener_is_offerer,
            self._opening_date,
            self._trader_pub_key_ring,
            self._trade_date,
            self._contract,
            self._contract_hash,
            self._deposit_tx_serialized,
            self._payout_tx_serialized,
            self._deposit_tx_id,
            self._payout_tx_id,
            self._contract_as_json,
            self._offerer_contract_signature,
            self._taker_contract_signature,
            self._arbitrator_pub_key_ring,
            self._is_support_ticket,
            self._messages.items(),
            self._is_closed.get(),
            self._dispute_result.get(),
        )

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Dispute):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        return (
            f"Dispute(id={self.id!r}, trade_id={self._trade_id!r}, trader_id={self._trader_id}, "
            f"dispute_opener_is_buyer={self._dispute_opener_is_buyer}, "
            f"dispute_opener_is_offerer={self._dispute_opener_is_offerer}, "
            f"opening_date={self._opening_date.isoformat()}, "
            f"is_support_ticket={self._is_support_ticket}, "
            f"messages={len(self._messages)}, is_closed={self.is_closed}, "
            f"dispute_result={self.dispute_result!r})"
        )
