import inspect
import logging
import os
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from types import ModuleType
from typing import Any

from weaklisten.errors import ContextResolutionError

logger = logging.getLogger('weaklisten')

WEAKLISTEN_LOGGING_LEVEL = os.getenv('WEAKLISTEN_LOGGING_LEVEL', 'WARNING').upper()  # WARNING normally, otherwise DEBUG when testing
LIBRARY_VERSION = os.getenv('LIBRARY_VERSION', '0.1.0')

logger.setLevel(WEAKLISTEN_LOGGING_LEVEL)


@dataclass(slots=True, frozen=True)
class BuilderSpec:
    """Source text for a helper that must live in the namespace of the object it serves."""

    name: str
    source: str


@dataclass(slots=True, eq=False)
class ExecutionContext:
    """
    The module namespace an object was allocated from.

    A function keeps its defining module's globals alive through `__globals__`, so any helper
    that an emitter (or handler) will own is compiled here instead of in weaklisten's own module.
    Otherwise a long-lived emitter could pin an unloaded plugin module via a helper's globals.
    """

    module: ModuleType

    @classmethod
    def of(cls, obj: object) -> 'ExecutionContext':
        """Resolve the context owning `obj`, or raise ContextResolutionError."""
        target: Any = obj.__func__ if inspect.ismethod(obj) else obj
        module = inspect.getmodule(target)
        if module is None:
            raise ContextResolutionError(f'could not find the module namespace owning {obj!r}')
        if '__builtins__' not in vars(module):
            # Extension and builtin modules cannot host compiled helpers.
            raise ContextResolutionError(f'module {module.__name__!r} owning {obj!r} cannot compile code')
        return cls(module=module)

    @property
    def namespace(self) -> dict[str, Any]:
        return vars(self.module)

    def compile(self, source: str, name: str) -> Callable[..., Any]:
        """Compile `source` with this module as globals and return the object it binds to `name`."""
        code = compile(source, f'<weaklisten:{name}@{self.module.__name__}>', 'exec')
        # Separate locals keep the compiled names out of the module namespace.
        local_namespace: dict[str, Any] = {}
        exec(code, self.namespace, local_namespace)
        return local_namespace[name]

    def __str__(self) -> str:
        return f'ExecutionContext({self.module.__name__})'


class ContextFunctionCache:
    """Per-module memo of compiled builders, keyed weakly so unloaded modules can be collected."""

    def __init__(self) -> None:
        self._builders: weakref.WeakKeyDictionary[ModuleType, dict[str, Callable[..., Any]]] = weakref.WeakKeyDictionary()

    def get_or_build(self, context: ExecutionContext, spec: BuilderSpec) -> Callable[..., Any]:
        builders = self._builders.get(context.module)
        if builders is None:
            builders = {}
            self._builders[context.module] = builders
        builder = builders.get(spec.name)
        if builder is None:
            builder = context.compile(spec.source, spec.name)
            builders[spec.name] = builder
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug('🧱 Compiled %s() in %s', spec.name, context)
        return builder

    def has(self, context: ExecutionContext, spec: BuilderSpec | None = None) -> bool:
        builders = self._builders.get(context.module)
        if builders is None:
            return False
        return spec is None or spec.name in builders

    def __len__(self) -> int:
        return len(self._builders)


# Process-wide cache shared by every listen() call.
context_functions = ContextFunctionCache()


WEAK_REF_FACTORY = BuilderSpec(
    name='make_weak_ref',
    source=(
        'def make_weak_ref(target):\n'
        '    import inspect\n'
        '    import weakref\n'
        '    if inspect.ismethod(target):\n'
        '        return weakref.WeakMethod(target)\n'
        '    return weakref.ref(target)\n'
    ),
)

REGISTRY_FACTORY = BuilderSpec(
    name='new_registry',
    source=('def new_registry():\n    return {}\n'),
)


def get_weak_ref_factory(context: ExecutionContext) -> Callable[[Any], Callable[[], Any]]:
    """Weak reference constructor allocating in `context`; bound methods get a WeakMethod."""
    return context_functions.get_or_build(context, WEAK_REF_FACTORY)


def get_registry_factory(context: ExecutionContext) -> Callable[[], dict[Any, None]]:
    """Constructor for the insertion-ordered collection backing a handler registry."""
    return context_functions.get_or_build(context, REGISTRY_FACTORY)


__all__ = [
    'LIBRARY_VERSION',
    'WEAKLISTEN_LOGGING_LEVEL',
    'BuilderSpec',
    'ContextFunctionCache',
    'ExecutionContext',
    'context_functions',
    'get_registry_factory',
    'get_weak_ref_factory',
]
