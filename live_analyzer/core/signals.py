"""Minimal observer channel used for every component output."""

from typing import Any, Callable, List


class Signal:
    """A named output channel with explicitly registered listeners.

    Listeners run synchronously, in registration order, on the thread that
    calls :meth:`emit`; per-channel ordering therefore matches processing
    order. Exceptions raised by a listener propagate to the emitter.
    """

    def __init__(self, name: str):
        self.name = name
        self._listeners: List[Callable[..., Any]] = []

    def connect(self, listener: Callable[..., Any]) -> Callable[..., Any]:
        """Register ``listener``. Returns it, so this works as a decorator."""
        self._listeners.append(listener)
        return listener

    def disconnect(self, listener: Callable[..., Any]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, *args: Any) -> None:
        for listener in list(self._listeners):
            listener(*args)

    def __len__(self) -> int:
        return len(self._listeners)

    def __repr__(self) -> str:
        return f"Signal({self.name!r}, listeners={len(self._listeners)})"
