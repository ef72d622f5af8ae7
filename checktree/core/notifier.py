from __future__ import annotations

from typing import Callable, Iterable

from checktree.core.models import StateChange

Listener = Callable[[StateChange], None]


class ChangeNotifier:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, changes: Iterable[StateChange]) -> None:
        # Copy so a listener may unsubscribe while events are being delivered.
        listeners = list(self._listeners)
        for change in changes:
            for listener in listeners:
                listener(change)
