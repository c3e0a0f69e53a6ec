import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from uuid_extensions import uuid7str  # pyright: ignore[reportMissingImports, reportUnknownVariableType]

from weaklisten.context import WEAKLISTEN_LOGGING_LEVEL
from weaklisten.emitter import EventEmitter
from weaklisten.interceptor import Interceptor, create_interceptor
from weaklisten.options import ListenerOptionsInput, normalize_options

uuid7str: Callable[[], str] = uuid7str  # pyright: ignore

logger = logging.getLogger('weaklisten')
logger.setLevel(WEAKLISTEN_LOGGING_LEVEL)


class RegistrationToken(BaseModel):
    """
    Opaque handle for one listen_with_token() registration.

    Holding the token keeps the handler alive. Dropping both the token and every other
    reference to the handler lets the registration clean itself up on the next event.
    """

    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,
    )

    interceptor: Any = Field(repr=False)
    handler: Any = Field(repr=False)
    id: str = Field(default_factory=uuid7str)

    @property
    def label(self) -> str:
        return f'{getattr(self.handler, "__qualname__", "handler")}#{self.id[-4:]}'

    @property
    def event_name(self) -> str:
        return self.interceptor.event_name

    @property
    def emitter(self) -> EventEmitter:
        return self.interceptor.emitter


def listen_with_token(
    emitter: EventEmitter,
    event_name: str,
    handler: Callable[..., Any] | None,
    options: ListenerOptionsInput = None,
) -> RegistrationToken | None:
    """
    Like listen(), but returns a RegistrationToken to pass to unlisten_token() instead of
    tracking registrations on the handler.

    Options (signal and once included) are forwarded to the emitter unchanged.
    Every call creates a new registration. Returns None if nothing was registered.
    """
    normalized = normalize_options(options)
    signal = normalized.signal
    if not handler or (signal is not None and signal.aborted):
        return None

    interceptor: Interceptor = create_interceptor(
        emitter,
        event_name,
        handler,
        capture=normalized.capture,
        once=normalized.once,
    )
    emitter.add_listener(event_name, interceptor, normalized)

    token = RegistrationToken(interceptor=interceptor, handler=handler)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug('🎟️ %s listening to %r on %s', token.label, event_name, emitter)
    return token


def unlisten_token(token: RegistrationToken | None) -> None:
    """Remove the registration behind `token`. Repeated calls do nothing."""
    if token is None:
        return
    if token.interceptor.unregister() and logger.isEnabledFor(logging.DEBUG):
        logger.debug('🔕 %s removed from %r on %s', token.label, token.event_name, token.emitter)


__all__ = [
    'RegistrationToken',
    'listen_with_token',
    'unlisten_token',
]
