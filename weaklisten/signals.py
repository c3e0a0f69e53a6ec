import logging
from collections.abc import Callable
from typing import Any, Literal, Protocol, runtime_checkable

from weaklisten.context import WEAKLISTEN_LOGGING_LEVEL

logger = logging.getLogger('weaklisten')
logger.setLevel(WEAKLISTEN_LOGGING_LEVEL)

AbortListener = Callable[..., Any]


@runtime_checkable
class CancellationSignal(Protocol):
    """Something that fires once and notifies its 'abort' listeners when it does."""

    @property
    def aborted(self) -> bool: ...

    def add_listener(self, event_name: Literal['abort'], listener: AbortListener) -> None: ...

    def remove_listener(self, event_name: Literal['abort'], listener: AbortListener) -> None: ...


class AbortSignal:
    """
    One-shot cancellation signal, modeled on the DOM AbortSignal.

    Listeners are held strongly until the signal fires or they remove themselves,
    and are each called with the signal as their only argument.
    """

    def __init__(self) -> None:
        self._aborted = False
        self.reason: Any = None
        self._listeners: dict[AbortListener, None] = {}

    @classmethod
    def abort_now(cls, reason: Any = None) -> 'AbortSignal':
        """Return a signal that has already fired."""
        signal = cls()
        signal._abort(reason)
        return signal

    @property
    def aborted(self) -> bool:
        return self._aborted

    def add_listener(self, event_name: Literal['abort'], listener: AbortListener) -> None:
        if event_name != 'abort':
            raise ValueError(f'AbortSignal only emits "abort", got {event_name!r}')
        if self._aborted:
            return
        self._listeners[listener] = None

    def remove_listener(self, event_name: Literal['abort'], listener: AbortListener) -> None:
        if event_name != 'abort':
            return
        self._listeners.pop(listener, None)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _abort(self, reason: Any = None) -> None:
        if self._aborted:
            return
        self._aborted = True
        self.reason = reason
        listeners = list(self._listeners)
        self._listeners.clear()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug('🛑 %s aborted (reason=%r), notifying %d listeners', self, reason, len(listeners))
        for listener in listeners:
            listener(self)

    def __repr__(self) -> str:
        return f'AbortSignal(aborted={self._aborted})'


class AbortController:
    """Owns an AbortSignal and is the only thing allowed to fire it."""

    def __init__(self) -> None:
        self.signal = AbortSignal()

    def abort(self, reason: Any = None) -> None:
        self.signal._abort(reason)  # pyright: ignore[reportPrivateUsage]


__all__ = [
    'AbortController',
    'AbortListener',
    'AbortSignal',
    'CancellationSignal',
]
