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
from weaklisten.errors import UnsupportedHandlerError

if TYPE_CHECKING:
    from weaklisten.emitter import EventEmitter

logger = logging.getLogger('weaklisten')
logger.setLevel(WEAKLISTEN_LOGGING_LEVEL)


class Interceptor(Protocol):
    """The function actually registered with the emitter in place of the handler."""

    handler_ref: Callable[[], Callable[..., Any] | None]
    emitter: 'EventEmitter'
    event_name: str
    capture: bool
    once: bool
    unregistered: bool

    def __call__(self, *args: Any, **kwargs: Any) -> Any: ...

    def unregister(self) -> bool: ...


# Compiled inside the emitter's module: the interceptor may hold the emitter strongly,
# but only ever reaches the handler through handler_ref.
INTERCEPTOR_BUILDER = BuilderSpec(
    name='build_event_interceptor',
    source=(
        'def build_event_interceptor():\n'
        '    def event_interceptor(*args, **kwargs):\n'
        '        this = event_interceptor\n'
        '        if this.unregistered:\n'
        '            return None\n'
        '        handler = this.handler_ref()\n'
        '        if handler is None:\n'
        '            import logging\n'
        '            log = logging.getLogger("weaklisten")\n'
        '            if log.isEnabledFor(logging.DEBUG):\n'
        '                log.debug("🧹 Handler for %r was collected, unregistering from %r", this.event_name, this.emitter)\n'
        '            this.unregister()\n'
        '            return None\n'
        '        if this.once:\n'
        '            this.unregistered = True\n'
        '        return handler(*args, **kwargs)\n'
        '\n'
        '    def unregister():\n'
        '        this = event_interceptor\n'
        '        if this.unregistered:\n'
        '            return False\n'
        '        this.unregistered = True\n'
        '        this.emitter.remove_listener(this.event_name, this, this.capture)\n'
        '        return True\n'
        '\n'
        '    event_interceptor.unregistered = False\n'
        '    event_interceptor.once = False\n'
        '    event_interceptor.unregister = unregister\n'
        '    return event_interceptor\n'
    ),
)


def create_interceptor(
    emitter: 'EventEmitter',
    event_name: str,
    handler: Callable[..., Any],
    *,
    capture: bool = False,
    once: bool = False,
) -> Interceptor:
    """
    Build an interceptor for `handler` inside the emitter's module namespace.

    Raises ContextResolutionError if the emitter's module cannot be resolved, and
    UnsupportedHandlerError if the handler cannot be weakly referenced.
    """
    context = ExecutionContext.of(emitter)
    make_weak_ref = get_weak_ref_factory(context)
    build_event_interceptor = context_functions.get_or_build(context, INTERCEPTOR_BUILDER)

    try:
        handler_ref = make_weak_ref(handler)
    except TypeError as e:
        raise UnsupportedHandlerError(f'Handler {handler!r} cannot be weakly referenced') from e

    interceptor = cast(Interceptor, build_event_interceptor())
    interceptor.handler_ref = handler_ref
    interceptor.emitter = emitter
    interceptor.event_name = event_name
    interceptor.capture = capture
    interceptor.once = once
    return interceptor


__all__ = [
    'INTERCEPTOR_BUILDER',
    'Interceptor',
    'create_interceptor',
]
