from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any, AsyncIterator, Callable, Generic, List, Set, TypeVar

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]


class StateStore(Generic[T]):
    """Holds one frozen state value; every update swaps in a whole new value.

    Only the owning component writes. Readers use ``value``, ``listen`` or
    ``watch``.
    """

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._listeners: List[Listener[T]] = []
        self._version = 0
        self._changed: asyncio.Condition | None = None
        self._wakers: Set[asyncio.Task[None]] = set()

    @property
    def value(self) -> T:
        return self._value

    def update(self, **changes: Any) -> T:
        return self.set(dataclasses.replace(self._value, **changes))  # type: ignore[type-var]

    def set(self, value: T) -> T:
        if value == self._value:
            return value
        self._value = value
        self._version += 1
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                _LOGGER.exception("state listener failed", extra={"event": "listener_failed"})
        if self._changed is not None:
            self._notify()
        return value

    def _notify(self) -> None:
        condition = self._changed
        assert condition is not None

        async def _wake() -> None:
            async with condition:
                condition.notify_all()

        try:
            task = asyncio.get_running_loop().create_task(_wake())
        except RuntimeError:
            # no running loop, so nobody can be suspended in watch()
            return
        self._wakers.add(task)
        task.add_done_callback(self._wakers.discard)

    def listen(self, listener: Listener[T]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def watch(self) -> AsyncIterator[T]:
        """Yield the current value, then each newer value as it is published.

        Intermediate values may be skipped by slow consumers; the latest one
        is always delivered.
        """

        if self._changed is None:
            self._changed = asyncio.Condition()
        condition = self._changed
        seen = self._version
        yield self._value
        while True:
            async with condition:
                await condition.wait_for(lambda: self._version != seen)
            seen = self._version
            yield self._value
