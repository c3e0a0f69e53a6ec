import gc
import weakref

import pytest

from weaklisten import (
    AbortController,
    AbortSignal,
    ContextResolutionError,
    EventTarget,
    RegistrationToken,
    listen_with_token,
    unlisten_token,
)
from weaklisten.registry import get_registry


class SlottedHandler:
    __slots__ = ('__weakref__', 'calls')

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> None:
        self.calls += 1


def test_token_registration_delivers_until_unlistened() -> None:
    target = EventTarget()
    calls: list[str] = []

    def on_ping(value: str) -> str:
        calls.append(value)
        return value.upper()

    token = listen_with_token(target, 'ping', on_ping)

    assert isinstance(token, RegistrationToken)
    assert token.handler is on_ping
    assert token.emitter is target
    assert token.event_name == 'ping'
    assert token.label.startswith('test_token_registration_delivers_until_unlistened.<locals>.on_ping#')
    assert target.emit('ping', 'a') == ['A']

    unlisten_token(token)
    unlisten_token(token)

    target.emit('ping', 'b')
    assert calls == ['a']
    assert target.listener_count('ping') == 0


def test_token_does_not_use_handler_registry() -> None:
    target = EventTarget()

    def on_ping() -> None:
        return None

    listen_with_token(target, 'ping', on_ping)

    assert get_registry(on_ping) is None


def test_token_keeps_handler_alive_and_dropping_it_releases_handler() -> None:
    target = EventTarget()
    calls: list[int] = []

    token = listen_with_token(target, 'ping', lambda: calls.append(1))
    assert token is not None
    handler_ref = weakref.ref(token.handler)
    gc.collect()

    target.emit('ping')
    assert calls == [1]

    del token
    gc.collect()

    assert handler_ref() is None
    target.emit('ping')
    assert calls == [1]
    assert target.listener_count('ping') == 0


def test_each_call_creates_a_separate_registration() -> None:
    target = EventTarget()
    calls: list[int] = []

    def on_ping() -> None:
        calls.append(1)

    first = listen_with_token(target, 'ping', on_ping)
    second = listen_with_token(target, 'ping', on_ping)
    assert first is not None and second is not None
    assert first.id != second.id

    target.emit('ping')
    assert calls == [1, 1]

    unlisten_token(first)
    target.emit('ping')
    assert calls == [1, 1, 1]


def test_once_is_forwarded_to_the_emitter() -> None:
    target = EventTarget()
    calls: list[int] = []

    def on_ping() -> None:
        calls.append(1)

    token = listen_with_token(target, 'ping', on_ping, {'once': True})
    assert token is not None

    target.emit('ping')
    target.emit('ping')

    assert calls == [1]
    assert target.listener_count('ping') == 0
    assert token.interceptor.unregistered is True
    unlisten_token(token)


def test_once_registration_is_removed_when_handler_dies_before_the_event() -> None:
    target = EventTarget()
    calls: list[int] = []

    def on_ping() -> None:
        calls.append(1)

    token = listen_with_token(target, 'ping', on_ping, {'once': True})
    assert token is not None
    handler_ref = weakref.ref(on_ping)
    del token, on_ping
    gc.collect()

    assert handler_ref() is None
    assert target.listener_count('ping') == 1
    target.emit('ping')

    assert calls == []
    assert target.listener_count('ping') == 0


def test_signal_is_forwarded_to_the_emitter() -> None:
    target = EventTarget()
    controller = AbortController()
    calls: list[int] = []

    def on_ping() -> None:
        calls.append(1)

    token = listen_with_token(target, 'ping', on_ping, {'signal': controller.signal, 'capture': True})
    assert token is not None
    assert target.listener_count('ping', capture=True) == 1
    assert controller.signal.listener_count == 1

    controller.abort('done')
    target.emit('ping')

    assert calls == []
    assert target.listener_count('ping') == 0
    unlisten_token(token)


def test_early_exits_return_no_token() -> None:
    target = EventTarget()

    def on_ping() -> None:
        return None

    assert listen_with_token(target, 'ping', None) is None
    assert listen_with_token(target, 'ping', on_ping, {'signal': AbortSignal.abort_now()}) is None
    assert target.listener_count('ping') == 0
    unlisten_token(None)


def test_handlers_without_instance_dict_are_supported() -> None:
    target = EventTarget()
    handler = SlottedHandler()

    token = listen_with_token(target, 'ping', handler)
    target.emit('ping')

    assert handler.calls == 1
    unlisten_token(token)


def test_unresolvable_emitter_context_raises() -> None:
    class OrphanTarget(EventTarget):
        pass

    OrphanTarget.__module__ = 'weaklisten_test_module_that_was_never_loaded'
    target = OrphanTarget()

    with pytest.raises(ContextResolutionError):
        listen_with_token(target, 'ping', lambda: None)
    assert target.listener_count('ping') == 0
