"""
Change notification for dispute fields.

Observable values and lists that let a UI or any other subscriber react to
``is_closed``, ``dispute_result`` and the direct message log without polling
and without being handed the record's internal storage.

Delivery contract
─────────────────

    Synchronous: subscribers run in the thread that performed the mutation,
    before the mutating call returns.

    Ordered: subscribers are called in registration order.

    Exactly once: every ``set``/``append`` yields one notification per
    subscriber. No buffering, no coalescing, no equality short-circuit.

    Isolated: a subscriber that raises is reported through ``on_error`` and
    does not prevent delivery to the remaining subscribers.

Usage
─────

    closed = ObservableValue(False)

    @closed.subscribe
    def on_closed(value: bool) -> None:
        print(f"closed -> {value}")

    closed.set(True)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Generic, Iterator, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Subscriber = Callable[[Any], None]


class SubscriberError(Exception):
    """Error raised by a subscriber while handling a notification."""
    def __init__(self, source: str, subscriber: Subscriber, value: Any, cause: Exception):
        self.source = source
        self.subscriber = subscriber
        self.value = value
        self.cause = cause
        name = getattr(subscriber, "__name__", repr(subscriber))
        super().__init__(f"Subscriber {name} failed for {source}: {cause}")


def _log_subscriber_error(error: SubscriberError) -> None:
    logger.error("%s", error, exc_info=(type(error.cause), error.cause, error.cause.__traceback__))


class _Notifier:
    """Subscriber registry shared by the observable types."""

    def __init__(
        self,
        name: str = "",
        on_error: Optional[Callable[[SubscriberError], None]] = None,
    ):
        self._name = name or self.__class__.__name__
        self._subscribers: List[Subscriber] = []
        self._on_error = on_error or _log_subscriber_error

    @property
    def name(self) -> str:
        return self._name

    def subscribe(self, callback: Subscriber) -> Subscriber:
        """Register ``callback``; usable as a decorator."""
        self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: Subscriber) -> bool:
        """Remove ``callback``. Returns False if it was not registered."""
        original_len = len(self._subscribers)
        self._subscribers = [s for s in self._subscribers if s != callback]
        return len(self._subscribers) < original_len

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _notify(self, value: Any) -> None:
        # Snapshot so a subscriber (un)subscribing mid-delivery does not affect this round
        for subscriber in list(self._subscribers):
            try:
                subscriber(value)
            except Exception as e:
                self._on_error(SubscriberError(self._name, subscriber, value, e))


class ObservableValue(_Notifier, Generic[T]):
    """A single value whose every ``set`` is pushed to subscribers."""

    def __init__(
        self,
        initial: T,
        name: str = "",
        on_error: Optional[Callable[[SubscriberError], None]] = None,
    ):
        super().__init__(name, on_error)
        self._value = initial

    def get(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        self._notify(value)

    def read_only(self) -> "ReadOnlyObservable[T]":
        return ReadOnlyObservable(self)

    def __repr__(self) -> str:
        return f"ObservableValue(name={self._name!r}, value={self._value!r})"


class ReadOnlyObservable(Generic[T]):
    """View of an ObservableValue that can be read and watched, not written."""

    __slots__ = ("_source",)

    def __init__(self, source: ObservableValue[T]):
        self._source = source

    @property
    def name(self) -> str:
        return self._source.name

    def get(self) -> T:
        return self._source.get()

    def subscribe(self, callback: Subscriber) -> Subscriber:
        return self._source.subscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> bool:
        return self._source.unsubscribe(callback)

    @property
    def subscriber_count(self) -> int:
        return self._source.subscriber_count

    def __repr__(self) -> str:
        return f"ReadOnlyObservable(name={self.name!r}, value={self.get()!r})"


class ObservableList(_Notifier, Generic[T]):
    """Append-only list; subscribers receive each appended item."""

    def __init__(
        self,
        initial: Optional[List[T]] = None,
        name: str = "",
        on_error: Optional[Callable[[SubscriberError], None]] = None,
    ):
        super().__init__(name, on_error)
        self._items: List[T] = list(initial or [])

    def append(self, item: T) -> None:
        self._items.append(item)
        self._notify(item)

    def items(self) -> Tuple[T, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(tuple(self._items))

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def read_only(self) -> "ReadOnlyObservableList[T]":
        return ReadOnlyObservableList(self)

    def __repr__(self) -> str:
        return f"ObservableList(name={self._name!r}, size={len(self._items)})"


class ReadOnlyObservableList(Generic[T]):
    """View of an ObservableList without ``append``."""

    __slots__ = ("_source",)

    def __init__(self, source: ObservableList[T]):
        self._source = source

    def items(self) -> Tuple[T, ...]:
        return self._source.items()

    def subscribe(self, callback: Subscriber) -> Subscriber:
        return self._source.subscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> bool:
        return self._source.unsubscribe(callback)

    def __len__(self) -> int:
        return len(self._source)

    def __iter__(self) -> Iterator[T]:
        return iter(self._source)

    def __contains__(self, item: object) -> bool:
        return item in self._source
