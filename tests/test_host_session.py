from typing import Any, Dict, List

import pytest

from mcpui.auth.tokens import TokenService
from mcpui.host.session import EmbeddedUI, EmbedOptions
from mcpui.protocol.transport import LocalPort, LocalWindow, connect_frame

from tests.helpers import HOST_ORIGIN, UI_ORIGIN, UI_URL, DeferredExecutor, InlineExecutor

REGISTRATION = {
    "ui_name": "chart",
    "permissions": {"required_scopes": ["data:read"], "optional_scopes": ["files:write", "net"]},
}


class _Harness:
    def __init__(self, *, executor=None, confirm=None, options=None) -> None:
        self.host_window = LocalWindow(HOST_ORIGIN)
        self.host_port, self.frame_port = connect_frame(self.host_window, UI_ORIGIN)
        self.received: List[Dict[str, Any]] = []
        self.frame_port.subscribe(lambda inbound: self.received.append(inbound.data))
        self.prompts: List[tuple] = []
        self.confirm_answer = False

        def _confirm(ui_name, scope, reasoning):
            self.prompts.append((ui_name, scope, reasoning))
            return self.confirm_answer

        self.ui = EmbeddedUI(
            REGISTRATION,
            UI_URL,
            self.host_port,
            options,
            executor=executor or InlineExecutor(),
            confirm=confirm or _confirm,
        )

    def send(self, message: Dict[str, Any]) -> None:
        self.frame_port.post(message, HOST_ORIGIN)

    def types(self) -> List[str]:
        return [message["type"] for message in self.received]


def test_init_preseeds_scopes_from_credential(token_service: TokenService) -> None:
    harness = _Harness()
    auth = token_service.create_auth("u", "chart", ["data:read"])

    harness.ui.init(user={"id": "u"}, auth=auth, context={"k": 1}, theme_settings={"mode": "dark"})

    assert harness.ui.granted_scopes == ["data:read"]
    assert harness.received == [
        {
            "type": "init",
            "protocol_version": "1.0.0",
            "user": {"id": "u"},
            "auth": {"token": auth.token, "jwks_url": auth.jwks_url},
            "context": {"k": 1},
            "theme_settings": {"mode": "dark"},
        }
    ]


def test_init_with_undecodable_credential_still_sends() -> None:
    harness = _Harness()

    assert harness.ui.init(auth={"token": "garbage", "jwks_url": "https://host.example/jwks"})
    assert harness.ui.granted_scopes == []
    assert harness.types() == ["init"]


def test_ready_marks_session_ready_and_fires_event() -> None:
    harness = _Harness()
    events = []
    harness.ui.on("ready", events.append)

    harness.send({"type": "ready"})

    assert harness.ui.is_ready
    assert events == [{"type": "ready"}]


def test_url_with_default_port_matches_frame_origin() -> None:
    host_window = LocalWindow(HOST_ORIGIN)
    host_port, frame_port = connect_frame(host_window, "https://ui.example")
    received = []
    frame_port.subscribe(lambda inbound: received.append(inbound.data))
    ui = EmbeddedUI(REGISTRATION, "https://ui.example:443/app", host_port, executor=InlineExecutor())

    assert ui.origin == "https://ui.example"
    assert ui.init(user={"id": "u"})
    assert [message["type"] for message in received] == ["init"]

    frame_port.post({"type": "ready"}, HOST_ORIGIN)

    assert ui.is_ready


def test_messages_from_other_frames_are_ignored() -> None:
    harness = _Harness()
    sibling_port = LocalPort(LocalWindow(UI_ORIGIN, name="sibling"), harness.host_window)
    foreign_port = LocalPort(LocalWindow("https://evil.example"), harness.host_window)

    sibling_port.post({"type": "ready"}, HOST_ORIGIN)
    foreign_port.post({"type": "ready"}, HOST_ORIGIN)

    assert not harness.ui.is_ready


def test_action_handler_and_event() -> None:
    harness = _Harness()
    calls = []
    events = []
    harness.ui.set_action_handler(lambda name, payload, ui: calls.append((name, payload, ui)))
    harness.ui.on("action", events.append)

    harness.send({"type": "action", "action_name": "select", "payload": {"row": 1}})

    assert calls == [("select", {"row": 1}, harness.ui)]
    assert events[0]["action_name"] == "select"


def test_failing_handler_does_not_block_event() -> None:
    harness = _Harness()
    events = []

    def _boom(*_args):
        raise RuntimeError("boom")

    harness.ui.set_error_handler(_boom)
    harness.ui.on("error", events.append)

    harness.send({"type": "error", "code": "render_error", "message": "bad svg"})

    assert events == [{"type": "error", "code": "render_error", "message": "bad svg"}]


def test_resize_applies_dimensions_when_auto_resize_enabled() -> None:
    harness = _Harness()
    calls = []
    harness.ui.set_resize_handler(lambda width, height, ui: calls.append((width, height)))

    harness.send({"type": "resize", "height": "240px"})

    assert harness.ui.height == "240px"
    assert harness.ui.width == "100%"
    assert calls == [(None, "240px")]


def test_resize_leaves_dimensions_when_auto_resize_disabled() -> None:
    harness = _Harness(options=EmbedOptions(height="400px", auto_resize=False))
    events = []
    harness.ui.on("resize", events.append)

    harness.send({"type": "resize", "height": "240px"})

    assert harness.ui.height == "400px"
    assert len(events) == 1


def test_events_carry_raw_wire_message() -> None:
    harness = _Harness()
    events = []
    harness.ui.on("resize", events.append)
    message = {"type": "resize", "height": "240px", "source": "observer"}

    harness.send(message)

    assert events == [message]
    assert isinstance(events[0], dict)


def test_undeclared_scope_is_denied_without_asking() -> None:
    harness = _Harness()
    asked = []
    harness.ui.set_permission_request_handler(lambda scope, reasoning: asked.append(scope) or True)

    harness.send({"type": "request_permission", "scope": "admin"})

    assert asked == []
    assert harness.prompts == []
    assert harness.received == [{"type": "permission_granted", "scope": "admin", "granted": False}]


def test_already_granted_scope_is_reaffirmed_without_asking() -> None:
    harness = _Harness()
    harness.ui.send_permission_granted("net", True)
    harness.received.clear()
    asked = []
    harness.ui.set_permission_request_handler(lambda scope, reasoning: asked.append(scope) or False)

    harness.send({"type": "request_permission", "scope": "net"})

    assert asked == []
    assert harness.received == [{"type": "permission_granted", "scope": "net", "granted": True}]


@pytest.mark.parametrize("decision", [True, False])
def test_handler_decision_is_sent_and_recorded(decision: bool) -> None:
    harness = _Harness()
    asked = []

    def _handler(scope, reasoning):
        asked.append((scope, reasoning))
        return decision

    harness.ui.set_permission_request_handler(_handler)

    harness.send({"type": "request_permission", "scope": "files:write", "reasoning": "to export"})

    assert asked == [("files:write", "to export")]
    assert harness.received == [{"type": "permission_granted", "scope": "files:write", "granted": decision}]
    assert ("files:write" in harness.ui.granted_scopes) is decision


def test_raising_handler_denies() -> None:
    harness = _Harness()

    def _handler(scope, reasoning):
        raise RuntimeError("prompt crashed")

    harness.ui.set_permission_request_handler(_handler)

    harness.send({"type": "request_permission", "scope": "net"})

    assert harness.received == [{"type": "permission_granted", "scope": "net", "granted": False}]


@pytest.mark.parametrize("decision", [True, False])
def test_async_handler_decision_is_awaited(decision: bool) -> None:
    harness = _Harness()

    async def _handler(scope, reasoning):
        return decision

    harness.ui.set_permission_request_handler(_handler)

    harness.send({"type": "request_permission", "scope": "files:write"})

    assert harness.received == [{"type": "permission_granted", "scope": "files:write", "granted": decision}]
    assert ("files:write" in harness.ui.granted_scopes) is decision


@pytest.mark.parametrize("answer", ["false", 1, None, "yes"])
def test_non_boolean_handler_answer_denies(answer) -> None:
    harness = _Harness()
    harness.ui.set_permission_request_handler(lambda scope, reasoning: answer)

    harness.send({"type": "request_permission", "scope": "net"})

    assert harness.received == [{"type": "permission_granted", "scope": "net", "granted": False}]
    assert harness.ui.granted_scopes == []


def test_default_prompt_is_used_without_handler() -> None:
    harness = _Harness()
    harness.confirm_answer = True

    harness.send({"type": "request_permission", "scope": "net", "reasoning": "to load tiles"})

    assert harness.prompts == [("chart", "net", "to load tiles")]
    assert harness.ui.granted_scopes == ["net"]


def test_negotiation_runs_off_the_transport_thread() -> None:
    executor = DeferredExecutor()
    harness = _Harness(executor=executor)
    harness.ui.set_permission_request_handler(lambda scope, reasoning: True)
    events = []
    harness.ui.on("request_permission", events.append)

    harness.send({"type": "request_permission", "scope": "net"})

    assert len(events) == 1
    assert harness.received == []

    executor.run_all()

    assert harness.received == [{"type": "permission_granted", "scope": "net", "granted": True}]
    assert harness.ui.wait_for_permissions(timeout=0)


def test_revoke_operations(token_service: TokenService) -> None:
    harness = _Harness()
    harness.ui.init(auth=token_service.create_auth("u", "chart", ["data:read", "net"]))

    harness.ui.revoke_permission("net")
    assert harness.ui.granted_scopes == ["data:read"]

    harness.ui.revoke_auth()
    assert harness.ui.granted_scopes == []
    assert harness.ui.auth is None
    assert harness.types() == ["init", "permission_revoked", "auth_revoke"]


def test_update_operations_send_messages(token_service: TokenService) -> None:
    harness = _Harness()
    auth = token_service.create_auth("u", "chart")

    harness.ui.update_context({"page": 2})
    harness.ui.update_theme({"mode": "light"})
    harness.ui.update_auth(auth)

    assert harness.types() == ["update_context", "theme", "auth_update"]
    assert harness.ui.context == {"page": 2}
    assert harness.ui.theme_settings.mode == "light"
    assert harness.ui.auth == auth


def test_grant_sends_only_supplied_credential(token_service: TokenService) -> None:
    harness = _Harness()
    harness.ui.init(auth=token_service.create_auth("u", "chart"))
    harness.received.clear()
    refreshed = token_service.create_auth("u", "chart", ["net"])

    harness.ui.send_permission_granted("files:write", True)
    harness.ui.send_permission_granted("net", True, refreshed)
    harness.ui.send_permission_granted("x", False, refreshed)

    assert "auth" not in harness.received[0]
    assert harness.received[1]["auth"]["token"] == refreshed.token
    assert "auth" not in harness.received[2]
    assert harness.ui.auth == refreshed


def test_update_url_retargets_and_resets_ready() -> None:
    harness = _Harness()
    harness.send({"type": "ready"})

    harness.ui.update_url("https://ui2.example/app")

    assert not harness.ui.is_ready
    assert harness.ui.origin == "https://ui2.example"
    harness.send({"type": "ready"})
    assert not harness.ui.is_ready


def test_destroy_is_idempotent_and_silences_session() -> None:
    harness = _Harness()
    harness.ui.send_permission_granted("net", True)
    events = []
    harness.ui.on("ready", events.append)

    harness.ui.destroy()
    harness.ui.destroy()
    harness.send({"type": "ready"})

    assert harness.ui.is_destroyed
    assert harness.ui.granted_scopes == []
    assert events == []
    assert harness.ui.update_context({"x": 1}) is False
    assert harness.host_window.listener_count == 0
