import asyncio

import pytest

from core.session_manager import SessionManager
from core.state_machine import AppState, StateMachine
from utils.error_codes import ChatError


class FakeClientTransport:
    def __init__(self):
        self.on_event_callback = None
        self.on_closed_callback = None
        self.sent = []
        self.connected = False

    async def connect(self):
        self.connected = True

    async def send_event(self, event, data=None):
        self.sent.append((event, data))

    async def disconnect(self):
        self.connected = False
        if self.on_closed_callback:
            self.on_closed_callback(1000, "")


def make_session(tmp_path):
    seen = []
    transport = FakeClientTransport()
    sm = SessionManager(lambda kind, data=None: seen.append((kind, data)),
                        download_dir=str(tmp_path), transport=transport)
    return sm, transport, seen


def feed(sm, *events):
    async def run():
        for event in events:
            if isinstance(event, tuple):
                await sm.on_server_event(*event)
            else:
                await sm.on_server_event(event)
    asyncio.run(run())


class TestStateMachine:
    def test_happy_path(self):
        machine = StateMachine()
        assert machine.apply_event("need_agree") is AppState.NEED_AGREE
        assert machine.apply_event("agreed_ok") is AppState.IDLE
        assert machine.apply_event("searching") is AppState.SEARCHING
        assert machine.apply_event("matched") is AppState.MATCHED
        assert machine.chatting
        assert machine.apply_event("partner_left") is AppState.IDLE
        assert machine.apply_event("message") is None

    def test_banned_is_terminal(self):
        machine = StateMachine()
        machine.apply_event("banned")
        assert machine.apply_event("need_agree") is None
        assert machine.current_state is AppState.BANNED

    def test_reporter_notice_does_not_ban(self):
        machine = StateMachine()
        machine.apply_event("agreed_ok")
        assert machine.apply_event("reported_and_banned") is None
        assert machine.apply_event("reported_and_banned", {"until": 123.0}) is AppState.BANNED


class TestSessionManager:
    def test_states_reported_to_ui(self, tmp_path):
        sm, _, seen = make_session(tmp_path)
        feed(sm, "need_agree", "agreed_ok", "searching", "matched", ("message", "hi"))
        assert [kind for kind, _ in seen] == ["NEED_AGREE", "IDLE", "SEARCHING", "MATCHED", "MESSAGE"]
        assert seen[-1] == ("MESSAGE", "hi")

    def test_message_only_sent_while_matched(self, tmp_path):
        sm, transport, _ = make_session(tmp_path)
        assert not asyncio.run(sm.send_message("early"))
        feed(sm, "agreed_ok", "matched")
        assert asyncio.run(sm.send_message("hello"))
        assert transport.sent == [("message", "hello")]

    def test_outgoing_rate_limit(self, tmp_path):
        sm, transport, seen = make_session(tmp_path)
        feed(sm, "agreed_ok", "matched")

        async def burst():
            return [await sm.send_message(f"m{i}") for i in range(7)]
        results = asyncio.run(burst())
        assert results.count(True) == 5
        assert seen[-1][0] == "ERROR"

    def test_media_request_and_delivery(self, tmp_path):
        sm, transport, seen = make_session(tmp_path)
        feed(sm, "agreed_ok", "matched", "photo_request")
        assert sm.pending_media == {"photo"}
        assert seen[-1] == ("MEDIA_REQUEST", "photo")

        asyncio.run(sm.accept_media("photo"))
        assert transport.sent == [("photo_accept", None)]
        assert sm.pending_media == set()

        feed(sm, ("photo_deliver", {"dataUrl": "data:image/png;base64,aGk="}))
        kind, path = seen[-1]
        assert kind == "MEDIA_SAVED"
        with open(path, "rb") as f:
            assert f.read() == b"hi"

    def test_pending_media_cleared_when_partner_leaves(self, tmp_path):
        sm, _, seen = make_session(tmp_path)
        feed(sm, "agreed_ok", "matched", "video_request", "partner_left")
        assert sm.pending_media == set()
        assert ("INFO", "Your partner left the chat.") in seen

    def test_offer_media_requires_chat(self, tmp_path):
        sm, _, _ = make_session(tmp_path)
        with pytest.raises(ChatError):
            asyncio.run(sm.offer_media("photo", str(tmp_path / "x.png")))

    def test_offer_media_sends_data_url(self, tmp_path):
        sm, transport, _ = make_session(tmp_path)
        picture = tmp_path / "x.png"
        picture.write_bytes(b"png")
        feed(sm, "agreed_ok", "matched")
        asyncio.run(sm.offer_media("photo", str(picture)))
        event, payload = transport.sent[-1]
        assert event == "photo_offer"
        assert payload.startswith("data:image/png;base64,")

    def test_offer_media_missing_file(self, tmp_path):
        sm, _, _ = make_session(tmp_path)
        feed(sm, "agreed_ok", "matched")
        with pytest.raises(ChatError):
            asyncio.run(sm.offer_media("photo", str(tmp_path / "missing.png")))

    def test_banned_close_is_silent(self, tmp_path):
        sm, _, seen = make_session(tmp_path)
        feed(sm, "banned")
        sm.on_closed(4003, "banned")
        assert [kind for kind, _ in seen] == ["BANNED"]

    def test_unexpected_close_reported(self, tmp_path):
        sm, _, seen = make_session(tmp_path)
        feed(sm, "agreed_ok")
        sm.on_closed(1006, "")
        assert seen[-1][0] == "DISCONNECTED"
        assert sm.state_machine.current_state is AppState.DISCONNECTED

    def test_destroy_session(self, tmp_path):
        sm, transport, seen = make_session(tmp_path)
        asyncio.run(sm.start_session())
        asyncio.run(sm.destroy_session())
        assert not transport.connected
        assert [kind for kind, _ in seen] == ["CONNECTING", "DESTROYED"]
