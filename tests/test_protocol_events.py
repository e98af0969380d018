from enum import Enum

import pytest

from mcpui.protocol.events import EventDispatcher


class _Event(str, Enum):
    READY = "ready"
    ACTION = "action"


def test_dispatcher_invokes_handlers_in_subscription_order() -> None:
    calls = []
    dispatcher = EventDispatcher(_Event)
    dispatcher.on("ready", lambda data: calls.append(("first", data)))
    dispatcher.on(_Event.READY, lambda data: calls.append(("second", data)))

    assert dispatcher.emit("ready", {"n": 1}) == 2
    assert calls == [("first", {"n": 1}), ("second", {"n": 1})]


def test_dispatcher_isolates_failing_handler() -> None:
    calls = []

    def _boom(_data):
        raise RuntimeError("boom")

    dispatcher = EventDispatcher(_Event)
    dispatcher.on("action", _boom)
    dispatcher.on("action", calls.append)

    assert dispatcher.emit("action", "x") == 1
    assert calls == ["x"]


def test_dispatcher_rejects_unknown_event_names() -> None:
    dispatcher = EventDispatcher(_Event, owner="host")

    with pytest.raises(ValueError, match="Unknown host event"):
        dispatcher.on("resized", print)


def test_off_and_duplicate_subscription() -> None:
    calls = []
    dispatcher = EventDispatcher(_Event)
    dispatcher.on("ready", calls.append)
    dispatcher.on("ready", calls.append)

    dispatcher.emit("ready", 1)
    dispatcher.off("ready", calls.append)
    dispatcher.emit("ready", 2)

    assert calls == [1]


def test_emit_without_subscribers_is_noop() -> None:
    assert EventDispatcher(_Event).emit("ready") == 0
