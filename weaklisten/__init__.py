"""Event listener registration that does not keep handlers alive."""

from .context import LIBRARY_VERSION, BuilderSpec, ContextFunctionCache, ExecutionContext, context_functions
from .emitter import EventEmitter, EventTarget
from .errors import ContextResolutionError, UnsupportedHandlerError, WeakListenError
from .options import ListenerOptions, ListenerOptionsDict, normalize_options
from .registration import listen, unlisten
from .signals import AbortController, AbortSignal, CancellationSignal
from .tokens import RegistrationToken, listen_with_token, unlisten_token

__version__ = LIBRARY_VERSION

__all__ = [
    'listen',
    'unlisten',
    'listen_with_token',
    'unlisten_token',
    'RegistrationToken',
    'normalize_options',
    'ListenerOptions',
    'ListenerOptionsDict',
    'EventEmitter',
    'EventTarget',
    'CancellationSignal',
    'AbortController',
    'AbortSignal',
    'ExecutionContext',
    'ContextFunctionCache',
    'BuilderSpec',
    'context_functions',
    'WeakListenError',
    'ContextResolutionError',
    'UnsupportedHandlerError',
]
