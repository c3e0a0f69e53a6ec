from typing import Any

import pytest

from weaklisten import AbortController, AbortSignal, CancellationSignal, EventEmitter, EventTarget, ListenerOptions


def test_event_target_satisfies_emitter_protocol() -> None:
    assert isinstance(EventTarget(), EventEmitter)
    assert isinstance(AbortController().signal, CancellationSignal)


def test_add_listener_deduplicates_listener_and_capture_pairs() -> None:
    target = EventTarget(name='DedupTarget')
    calls: list[str] = []

    def listener(tag: str) -> None:
        calls.append(tag)

    target.add_listener('ping', listener)
    target.add_listener('ping', listener, False)
    target.add_listener('ping', listener, True)
    target.add_listener('ping', listener, ListenerOptions(capture=True, passive=True))

    assert target.listener_count('ping') == 2
    target.emit('ping', 'x')
    assert calls == ['x', 'x']

    target.remove_listener('ping', listener, True)
    assert target.listener_count('ping', capture=True) == 0
    assert target.listener_count('ping', capture=False) == 1

    target.remove_listener('ping', listener)
    assert target.listeners('ping') == []
    assert str(target).startswith('DedupTarget#')


def test_emit_returns_results_in_registration_order() -> None:
    target = EventTarget()
    target.add_listener('sum', lambda a, b: a + b)
    target.add_listener('sum', lambda a, b: a * b)

    assert target.emit('sum', 3, 4) == [7, 12]
    assert target.emit('unknown') == []


def test_once_listener_is_removed_before_it_runs() -> None:
    target = EventTarget()
    counts: list[int] = []

    def listener() -> None:
        counts.append(target.listener_count('ping'))

    target.add_listener('ping', listener, {'once': True})
    target.emit('ping')
    target.emit('ping')

    assert counts == [0]


def test_listener_removed_mid_dispatch_is_skipped() -> None:
    target = EventTarget()
    calls: list[str] = []

    def second() -> None:
        calls.append('second')

    def first() -> None:
        calls.append('first')
        target.remove_listener('ping', second)

    target.add_listener('ping', first)
    target.add_listener('ping', second)
    target.emit('ping')

    assert calls == ['first']


def test_signal_removes_listener_and_aborted_signal_is_ignored() -> None:
    target = EventTarget()
    controller = AbortController()
    calls: list[int] = []

    def listener() -> None:
        calls.append(1)

    target.add_listener('ping', listener, {'signal': controller.signal})
    target.add_listener('pong', listener, {'signal': AbortSignal.abort_now()})
    assert target.listener_count('pong') == 0

    target.emit('ping')
    controller.abort()
    target.emit('ping')

    assert calls == [1]
    assert target.listener_count('ping') == 0


def test_remove_listener_unsubscribes_from_signal() -> None:
    target = EventTarget()
    controller = AbortController()

    def listener() -> None:
        return None

    target.add_listener('ping', listener, {'signal': controller.signal})
    assert controller.signal.listener_count == 1

    target.remove_listener('ping', listener)
    assert controller.signal.listener_count == 0


def test_abort_signal_fires_once_with_reason() -> None:
    controller = AbortController()
    seen: list[Any] = []

    def on_abort(signal: AbortSignal) -> None:
        seen.append((signal.aborted, signal.reason))

    controller.signal.add_listener('abort', on_abort)
    controller.abort('shutdown')
    controller.abort('again')

    assert seen == [(True, 'shutdown')]
    assert controller.signal.reason == 'shutdown'
    assert controller.signal.listener_count == 0

    controller.signal.add_listener('abort', on_abort)
    assert controller.signal.listener_count == 0


def test_abort_signal_only_accepts_abort_listeners() -> None:
    signal = AbortSignal()

    with pytest.raises(ValueError):
        signal.add_listener('cancel', lambda _: None)  # type: ignore[arg-type]
    signal.remove_listener('cancel', lambda _: None)  # type: ignore[arg-type]
