class WeakListenError(Exception):
    """Base class for errors raised by weaklisten."""


class ContextResolutionError(WeakListenError, RuntimeError):
    """The module namespace owning an emitter or handler could not be resolved."""


class UnsupportedHandlerError(WeakListenError, TypeError):
    """Handler cannot be weakly referenced or cannot carry a listener registry."""


__all__ = [
    'ContextResolutionError',
    'UnsupportedHandlerError',
    'WeakListenError',
]
