"""Dispute list persistence.

``DisputeList`` is the collection that owns a peer's disputes; ``FileStorage``
is the persistence trigger handed to each of them. Every mutation of a
dispute calls ``queue_up_for_save()``, and the storage writes the whole list
to disk, batching requests that arrive within ``save_delay_ms`` of each other.

Write failures are logged and counted here. They never propagate back into the
dispute that requested the save.

Usage:
    storage = FileStorage(Path("data/DisputeList.json"))
    disputes = storage.load()          # every dispute comes back bound
    disputes.add(new_dispute)          # schedules a write
    storage.close()                    # flushes pending writes
"""

from __future__ import annotations

import contextlib
import logging
import os
import threading
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Union

from disputes.codec import DecodeFailure, decode_dispute_list, encode_dispute_list
from disputes.config import get_config
from disputes.dispute import Dispute, PersistenceTrigger

logger = logging.getLogger(__name__)


class DisputeList:
    """Ordered collection of disputes keyed by dispute id."""

    def __init__(
        self,
        storage: Optional[PersistenceTrigger] = None,
        disputes: Iterable[Dispute] = (),
    ):
        self._storage = storage
        self._disputes: List[Dispute] = []
        for dispute in disputes:
            if self.get(dispute.id) is not None:
                logger.warning("Skipping second dispute with id %s", dispute.id)
                continue
            self._disputes.append(dispute)
        if storage is not None:
            self.attach(storage)

    @property
    def storage(self) -> Optional[PersistenceTrigger]:
        return self._storage

    def attach(self, storage: PersistenceTrigger) -> None:
        """Bind the list and every dispute in it to ``storage``."""
        self._storage = storage
        for dispute in self._disputes:
            dispute.set_storage(storage)

    def _queue_save(self) -> None:
        if self._storage is not None:
            self._storage.queue_up_for_save()

    def add(self, dispute: Dispute) -> bool:
        """Append ``dispute``. Returns False if its id is already present."""
        if self.get(dispute.id) is not None:
            logger.warning("Dispute %s already in list", dispute.id)
            return False
        if self._storage is not None and not dispute.is_bound:
            dispute.set_storage(self._storage)
        self._disputes.append(dispute)
        self._queue_save()
        return True

    def remove(self, dispute: Dispute) -> bool:
        for i, existing in enumerate(self._disputes):
            if existing.id == dispute.id:
                del self._disputes[i]
                self._queue_save()
                return True
        return False

    def get(self, dispute_id: str) -> Optional[Dispute]:
        for dispute in self._disputes:
            if dispute.id == dispute_id:
                return dispute
        return None

    def find_by_trade_id(self, trade_id: str) -> List[Dispute]:
        return [d for d in self._disputes if d.trade_id == trade_id]

    def __iter__(self) -> Iterator[Dispute]:
        return iter(list(self._disputes))

    def __len__(self) -> int:
        return len(self._disputes)

    def __contains__(self, item: object) -> bool:
        return isinstance(item, Dispute) and self.get(item.id) is not None

    def __repr__(self) -> str:
        return f"DisputeList(size={len(self._disputes)}, bound={self._storage is not None})"


class FileStorage:
    """Persistence trigger writing a DisputeList to a single JSON file."""

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        delay_ms: Optional[int] = None,
    ):
        config = get_config().storage
        self.path = Path(path) if path is not None else config.path
        self.delay_ms = config.save_delay_ms.get() if delay_ms is None else delay_ms
        if self.delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")

        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None
        self._dispute_list: Optional[DisputeList] = None
        self._dirty = False
        self._requested_count = 0
        self._write_count = 0
        self._error_count = 0
        self.last_error: Optional[Exception] = None
        self.last_load_failures: List[DecodeFailure] = []

    def bind(self, dispute_list: DisputeList) -> None:
        """Make ``dispute_list`` the collection this storage writes."""
        with self._lock:
            self._dispute_list = dispute_list
        if dispute_list.storage is not self:
            dispute_list.attach(self)

    def queue_up_for_save(self) -> None:
        with self._lock:
            self._requested_count += 1
            self._dirty = True
            if self.delay_ms == 0:
                self._write()
            elif self._timer is None:
                self._timer = threading.Timer(self.delay_ms / 1000.0, self._timer_fired)
                self._timer.daemon = True
                self._timer.name = "dispute-storage-save"
                self._timer.start()

    def _timer_fired(self) -> None:
        with self._lock:
            # A cancelled timer can still fire after flush() scheduled a newer one
            if self._timer is threading.current_thread():
                self._timer = None
            if self._dirty:
                self._write()

    def flush(self) -> None:
        """Write pending changes now."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if self._dirty:
                self._write()

    def close(self) -> None:
        self.flush()

    def _write(self) -> None:
        if self._dispute_list is None:
            logger.warning("Save requested for %s but no dispute list is bound", self.path)
            return
        self._dirty = False
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            data = encode_dispute_list(self._dispute_list)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "wb") as tmp:
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, self.path)
            self._write_count += 1
            logger.debug("Wrote %d disputes to %s", len(self._dispute_list), self.path)
        except (OSError, ValueError) as e:
            self._error_count += 1
            self.last_error = e
            logger.error("Failed to write dispute list to %s: %s", self.path, e)
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)

    def load(self) -> DisputeList:
        """Read the dispute list from disk and bind it to this storage.

        Disputes that fail to decode are dropped and kept in
        ``last_load_failures``. An unreadable envelope raises.
        """
        if not self.path.exists():
            logger.info("No dispute list at %s, starting empty", self.path)
            self.last_load_failures = []
            dispute_list = DisputeList()
        else:
            result = decode_dispute_list(self.path.read_bytes())
            self.last_load_failures = result.failures
            if result.failures:
                logger.warning(
                    "Loaded %d disputes from %s, discarded %d",
                    len(result.disputes), self.path, len(result.failures),
                )
            dispute_list = DisputeList(disputes=result.disputes)
        self.bind(dispute_list)
        return dispute_list

    @property
    def metrics(self) -> Dict[str, int]:
        """Save counters."""
        with self._lock:
            return {
                "requested_count": self._requested_count,
                "write_count": self._write_count,
                "error_count": self._error_count,
                "pending": int(self._dirty),
            }
