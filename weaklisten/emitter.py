import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from uuid_extensions import uuid7str  # pyright: ignore[reportMissingImports, reportUnknownVariableType]

from weaklisten.context import WEAKLISTEN_LOGGING_LEVEL
from weaklisten.options import ListenerOptions, ListenerOptionsInput, normalize_options
from weaklisten.signals import AbortListener, CancellationSignal

uuid7str: Callable[[], str] = uuid7str  # pyright: ignore

logger = logging.getLogger('weaklisten')
logger.setLevel(WEAKLISTEN_LOGGING_LEVEL)

Listener = Callable[..., Any]


@runtime_checkable
class EventEmitter(Protocol):
    """Anything weaklisten can attach interceptors to."""

    def add_listener(self, event_name: str, listener: Listener, options: bool | ListenerOptions | None = None) -> None: ...

    def remove_listener(self, event_name: str, listener: Listener, options: bool | ListenerOptions | None = None) -> None: ...


@dataclass(slots=True, eq=False)
class _ListenerEntry:
    listener: Listener
    capture: bool
    once: bool = False
    passive: bool | None = None
    signal: CancellationSignal | None = None
    abort_callback: AbortListener | None = None
    removed: bool = False


class EventTarget:
    """
    Minimal synchronous emitter with DOM add/removeEventListener semantics.

    - (listener, capture) pairs are registered at most once per event name
    - listeners whose signal already fired are ignored, others are removed when it fires
    - once listeners are removed right before their first call
    - emit() runs over a snapshot and skips listeners removed mid-dispatch
    """

    def __init__(self, name: str | None = None) -> None:
        self.name = name or type(self).__name__
        self.id = uuid7str()
        self._listeners: defaultdict[str, list[_ListenerEntry]] = defaultdict(list)

    def __str__(self) -> str:
        return f'{self.name}#{self.id[-4:]}'

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {self}>'

    def add_listener(self, event_name: str, listener: Listener, options: ListenerOptionsInput = None) -> None:
        normalized = normalize_options(options)
        signal: CancellationSignal | None = normalized.signal
        if signal is not None and signal.aborted:
            return

        entries = self._listeners[event_name]
        if any(entry.capture == normalized.capture and entry.listener == listener for entry in entries):
            return

        entry = _ListenerEntry(
            listener=listener,
            capture=normalized.capture,
            once=normalized.once,
            passive=normalized.passive,
            signal=signal,
        )
        if signal is not None:

            def on_abort(*_: Any) -> None:
                self._remove_entry(event_name, entry)

            entry.abort_callback = on_abort
            signal.add_listener('abort', on_abort)
        entries.append(entry)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                '👂 %s.add_listener(%s, %s) capture=%s once=%s',
                self,
                event_name,
                getattr(listener, '__qualname__', listener),
                entry.capture,
                entry.once,
            )

    def remove_listener(self, event_name: str, listener: Listener, options: ListenerOptionsInput = None) -> None:
        capture = normalize_options(options).capture
        for entry in self._listeners.get(event_name, ()):
            if entry.capture == capture and entry.listener == listener:
                self._remove_entry(event_name, entry)
                return

    def _remove_entry(self, event_name: str, entry: _ListenerEntry) -> None:
        if entry.removed:
            return
        entry.removed = True
        entries = self._listeners.get(event_name)
        if entries is not None:
            entries.remove(entry)
            if not entries:
                del self._listeners[event_name]
        if entry.signal is not None and entry.abort_callback is not None:
            entry.signal.remove_listener('abort', entry.abort_callback)
            entry.abort_callback = None

    def emit(self, event_name: str, *args: Any, **kwargs: Any) -> list[Any]:
        """Call every listener registered for `event_name` and return their results in call order."""
        results: list[Any] = []
        for entry in list(self._listeners.get(event_name, ())):
            if entry.removed:
                continue
            if entry.once:
                self._remove_entry(event_name, entry)
            results.append(entry.listener(*args, **kwargs))
        return results

    def listeners(self, event_name: str) -> list[Listener]:
        return [entry.listener for entry in self._listeners.get(event_name, ())]

    def listener_count(self, event_name: str, capture: bool | None = None) -> int:
        entries = self._listeners.get(event_name, ())
        if capture is None:
            return len(entries)
        return sum(1 for entry in entries if entry.capture == capture)


__all__ = [
    'EventEmitter',
    'EventTarget',
    'Listener',
]
