import logging
import warnings
from collections.abc import Callable
from typing import Any

from weaklisten.cancellation import create_cancellation_listener
from weaklisten.context import WEAKLISTEN_LOGGING_LEVEL
from weaklisten.emitter import EventEmitter
from weaklisten.interceptor import create_interceptor
from weaklisten.options import ListenerOptionsInput, normalize_options
from weaklisten.registry import find_listener

logger = logging.getLogger('weaklisten')
logger.setLevel(WEAKLISTEN_LOGGING_LEVEL)


def listen(
    emitter: EventEmitter,
    event_name: str,
    handler: Callable[..., Any] | None,
    options: ListenerOptionsInput = None,
) -> None:
    """
    Like emitter.add_listener(event_name, handler, options), but without keeping the handler alive.

    The emitter only holds a small interceptor that reaches the handler through a weak
    reference. Once the handler is collected, the next event unregisters the interceptor.
    While a registration is active the handler keeps its own listener alive, so call
    unlisten() (or fire options.signal) to release it early.

    Registering the same (emitter, event_name, handler, capture) twice is a no-op.

    Examples:
            listen(target, 'ping', on_ping)
            listen(target, 'ping', on_ping, True)  # capture
            listen(target, 'ping', on_ping, {'capture': True, 'signal': controller.signal})
    """
    normalized = normalize_options(options)
    signal = normalized.signal
    if not handler or (signal is not None and signal.aborted):
        return

    if normalized.once:
        warnings.warn(
            f'⚠️ listen({event_name!r}, {handler!r}) ignores once=True, use listen_with_token() for one-shot listeners',
            UserWarning,
            stacklevel=2,
        )

    if find_listener(handler, emitter, event_name, normalized.capture) is not None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug('👯 %s already listening to %r on %s', getattr(handler, '__qualname__', handler), event_name, emitter)
        return

    interceptor = create_interceptor(emitter, event_name, handler, capture=normalized.capture)
    create_cancellation_listener(handler, interceptor, signal)

    # The signal is handled by the cancellation listener, the emitter must not track it too.
    emitter.add_listener(event_name, interceptor, normalized.without_signal())


def unlisten(
    emitter: EventEmitter,
    event_name: str,
    handler: Callable[..., Any] | None,
    options: ListenerOptionsInput = None,
) -> None:
    """Undo a previous listen() with the same arguments. Does nothing if there is no such registration."""
    if not handler:
        return
    normalized = normalize_options(options)
    listener = find_listener(handler, emitter, event_name, normalized.capture)
    if listener is None:
        return
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug('🔕 unlisten(%r, %s) on %s', event_name, getattr(handler, '__qualname__', handler), emitter)
    listener()


__all__ = [
    'listen',
    'unlisten',
]
