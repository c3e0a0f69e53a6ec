import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, cast

from weaklisten.context import (
    WEAKLISTEN_LOGGING_LEVEL,
    BuilderSpec,
    ExecutionContext,
    context_functions,
    get_weak_ref_factory,
)
from weaklisten.registry import ensure_registry

if TYPE_CHECKING:
    from weaklisten.interceptor import Interceptor
    from weaklisten.signals import CancellationSignal

logger = logging.getLogger('weaklisten')
logger.setLevel(WEAKLISTEN_LOGGING_LEVEL)


class CancellationListener(Protocol):
    """Teardown callable owned by the handler's registry, and reached by a cancellation signal through its abort hook."""

    handler_ref: Callable[[], Callable[..., Any] | None]
    registry: dict['CancellationListener', None]
    interceptor_ref: Callable[[], 'Interceptor | None']
    signal_ref: Callable[[], 'CancellationSignal | None'] | None
    abort_hook_ref: Callable[[], Callable[..., None] | None] | None

    def build_abort_hook(self, handler: Callable[..., Any]) -> Callable[..., None]: ...

    def __call__(self, *args: Any) -> None: ...


# Compiled inside the handler's module. The listener reaches the handler and the
# interceptor only weakly. The abort hook subscribed to a signal holds the handler
# strongly, so a live signal keeps the registration alive until it fires.
CANCELLATION_LISTENER_BUILDER = BuilderSpec(
    name='build_cancellation_listener',
    source=(
        'def build_cancellation_listener():\n'
        '    def cancellation_listener(*args):\n'
        '        this = cancellation_listener\n'
        '        this.registry.pop(this, None)\n'
        '        signal = this.signal_ref() if this.signal_ref is not None else None\n'
        '        hook = this.abort_hook_ref() if this.abort_hook_ref is not None else None\n'
        '        if signal is not None and hook is not None:\n'
        '            signal.remove_listener("abort", hook)\n'
        '        interceptor = this.interceptor_ref()\n'
        '        if interceptor is not None:\n'
        '            interceptor.unregister()\n'
        '\n'
        '    def build_abort_hook(handler):\n'
        '        def abort_hook(*args):\n'
        '            cancellation_listener(*args)\n'
        '\n'
        '        abort_hook.handler = handler\n'
        '        return abort_hook\n'
        '\n'
        '    cancellation_listener.signal_ref = None\n'
        '    cancellation_listener.abort_hook_ref = None\n'
        '    cancellation_listener.build_abort_hook = build_abort_hook\n'
        '    return cancellation_listener\n'
    ),
)


def create_cancellation_listener(
    handler: Callable[..., Any],
    interceptor: 'Interceptor',
    signal: 'CancellationSignal | None' = None,
) -> CancellationListener:
    """Build a listener in the handler's namespace, subscribe it to `signal` and add it to the handler's registry."""
    context = ExecutionContext.of(handler)
    make_weak_ref = get_weak_ref_factory(context)
    build_cancellation_listener = context_functions.get_or_build(context, CANCELLATION_LISTENER_BUILDER)
    registry = ensure_registry(handler, context)

    listener = cast(CancellationListener, build_cancellation_listener())
    listener.handler_ref = make_weak_ref(handler)
    listener.registry = registry
    listener.interceptor_ref = make_weak_ref(interceptor)
    if signal is not None:
        abort_hook = listener.build_abort_hook(handler)
        listener.signal_ref = make_weak_ref(signal)
        listener.abort_hook_ref = make_weak_ref(abort_hook)
        signal.add_listener('abort', abort_hook)
    registry[listener] = None

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            '🔗 Linked %s to %r for %r (%d active)',
            getattr(handler, '__qualname__', handler),
            interceptor.emitter,
            interceptor.event_name,
            len(registry),
        )
    return listener
