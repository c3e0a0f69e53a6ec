import inspect
import logging
import weakref
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, cast

from weaklisten.context import WEAKLISTEN_LOGGING_LEVEL, ExecutionContext, get_registry_factory
from weaklisten.errors import UnsupportedHandlerError

if TYPE_CHECKING:
    from weaklisten.cancellation import CancellationListener
    from weaklisten.emitter import EventEmitter

logger = logging.getLogger('weaklisten')
logger.setLevel(WEAKLISTEN_LOGGING_LEVEL)

REGISTRY_ATTR = '__weaklisten_registry__'

Registry = dict['CancellationListener', None]


class InstanceRegistries:
    """
    Side table of registries for handler owners that are plain instances.

    Keeps listener bookkeeping out of the instance's own state (so pickling or copying it
    is unaffected). Entries are keyed by identity, so unhashable owners work too, and an
    entry is dropped as soon as its owner is collected. The stored registry never holds
    its owner strongly: listeners reach the handler through a weak reference.
    """

    def __init__(self) -> None:
        self._entries: dict[int, tuple[weakref.ref[Any], Registry]] = {}

    def get(self, owner: Any) -> Registry | None:
        entry = self._entries.get(id(owner))
        if entry is None or entry[0]() is not owner:
            return None
        return entry[1]

    def set(self, owner: Any, registry: Registry) -> None:
        owner_id = id(owner)

        def discard(ref: weakref.ref[Any]) -> None:
            current = self._entries.get(owner_id)
            if current is not None and current[0] is ref:
                del self._entries[owner_id]

        self._entries[owner_id] = (weakref.ref(owner, discard), registry)

    def __len__(self) -> int:
        return len(self._entries)


instance_registries = InstanceRegistries()


def _registry_owner(handler: Callable[..., Any]) -> Any:
    # Bound method objects are recreated on every attribute access, so their
    # registry belongs to the instance (or class, for classmethods) they are bound to.
    return handler.__self__ if inspect.ismethod(handler) else handler


def _stored_on_owner(owner: Any) -> bool:
    # Functions and classes pickle by reference, so their own namespace can hold the
    # registry. Anything else goes through the side table.
    return inspect.isfunction(owner) or isinstance(owner, type)


def get_registry(handler: Callable[..., Any]) -> Registry | None:
    """Return the handler's registry of active cancellation listeners, if it has one."""
    owner = _registry_owner(handler)
    if _stored_on_owner(owner):
        return cast(Registry | None, vars(owner).get(REGISTRY_ATTR))
    return instance_registries.get(owner)


def ensure_registry(handler: Callable[..., Any], context: ExecutionContext) -> Registry:
    """Return the handler's registry, attaching a new one allocated in `context` if needed."""
    owner = _registry_owner(handler)
    registry = get_registry(handler)
    if registry is not None:
        return registry

    registry = cast(Registry, get_registry_factory(context)())
    try:
        if inspect.isfunction(owner):
            vars(owner)[REGISTRY_ATTR] = registry
        elif isinstance(owner, type):
            # type.__setattr__ skips metaclass hooks, builtin types still refuse it
            type.__setattr__(owner, REGISTRY_ATTR, registry)
        else:
            instance_registries.set(owner, registry)
    except TypeError as e:
        raise UnsupportedHandlerError(f'Handler {handler!r} cannot hold a listener registry') from e
    return registry


def find_listener(
    handler: Callable[..., Any],
    emitter: 'EventEmitter',
    event_name: str,
    capture: bool,
) -> 'CancellationListener | None':
    """
    Find the active listener linking `handler` to (emitter, event_name, capture).

    Entries are scanned in registration order and the first match wins. Entries whose
    interceptor is gone or already unregistered are torn down along the way.
    """
    registry = get_registry(handler)
    if not registry:
        return None

    for listener in list(registry):
        interceptor = listener.interceptor_ref()
        if interceptor is None or interceptor.unregistered:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug('🧹 Dropping stale listener for %s', getattr(handler, '__qualname__', handler))
            listener()
            continue
        if (
            listener.handler_ref() == handler
            and interceptor.emitter is emitter
            and interceptor.event_name == event_name
            and interceptor.capture == capture
        ):
            return listener
    return None


__all__ = [
    'REGISTRY_ATTR',
    'InstanceRegistries',
    'Registry',
    'ensure_registry',
    'find_listener',
    'get_registry',
    'instance_registries',
]
