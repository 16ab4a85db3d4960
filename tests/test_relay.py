"""Room relay: unit tests with fake sockets plus WebSocket round trips."""

from __future__ import annotations

import asyncio
import json
import time

from fastapi.testclient import TestClient

from src.ganadash.api.main import app
from src.ganadash.infrastructure.session_store import get_session_store
from src.ganadash.services import relay as relay_module
from src.ganadash.services.relay import RoomRelay, get_relay


class FakeSocket:
    def __init__(self, fail: bool = False) -> None:
        self.frames = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.frames.append(data)

    def events(self):
        return [f["event"] for f in self.frames]

    def last(self, event):
        return [f["data"] for f in self.frames if f["event"] == event][-1]


def _room(relay: RoomRelay, n: int, room: str = "room-1", **join_data):
    sockets = {}
    for i in range(n):
        sid = f"s{i}"
        sockets[sid] = FakeSocket()
        asyncio.run(relay.connect(sid, sockets[sid]))
        asyncio.run(relay.handle(sid, {"event": "join-session", "data": {"sessionId": room, "userId": f"u{i}", **join_data}}))
    return sockets


def test_connect_greets_with_socket_id():
    relay = RoomRelay()
    sock = FakeSocket()
    asyncio.run(relay.connect("abc", sock))
    assert sock.frames == [{"event": "connected", "data": {"socketId": "abc"}}]
    assert relay.connection_count == 1


def test_join_notifies_only_existing_members():
    relay = RoomRelay()
    socks = _room(relay, 2)
    assert socks["s0"].last("user-joined") == {"userId": "u1", "socketId": "s1"}
    assert "user-joined" not in socks["s1"].events()
    assert relay.room_members("room-1") == {"s0", "s1"}


def test_code_change_and_cursor_skip_sender():
    relay = RoomRelay()
    socks = _room(relay, 3)
    change = {"sessionId": "room-1", "code": "let a = 1;", "userId": "u0"}
    asyncio.run(relay.handle("s0", {"event": "code-change", "data": change}))
    asyncio.run(relay.handle("s1", {"event": "cursor-move", "data": {"sessionId": "room-1", "line": 3}}))

    assert "code-change" not in socks["s0"].events()
    assert socks["s1"].last("code-change") == change
    assert socks["s2"].last("code-change") == change
    assert "cursor-move" not in socks["s1"].events()
    assert socks["s0"].last("cursor-move") == {"sessionId": "room-1", "line": 3}


def test_chat_message_reaches_sender_too():
    relay = RoomRelay()
    socks = _room(relay, 2)
    msg = {"sessionId": "room-1", "message": "hi", "userName": "Ann"}
    asyncio.run(relay.handle("s1", {"event": "chat-message", "data": msg}))
    assert socks["s0"].last("chat-message") == msg
    assert socks["s1"].last("chat-message") == msg


def test_events_do_not_leak_between_rooms():
    relay = RoomRelay()
    a = _room(relay, 1, room="room-a")
    outsider = FakeSocket()
    asyncio.run(relay.connect("x", outsider))
    asyncio.run(relay.handle("x", {"event": "join-session", "data": {"sessionId": "room-b", "userId": "ux"}}))
    asyncio.run(relay.handle("x", {"event": "chat-message", "data": {"sessionId": "room-b", "message": "b only"}}))
    assert "chat-message" not in a["s0"].events()


def test_webrtc_signals_go_to_target_only():
    relay = RoomRelay()
    socks = _room(relay, 3)
    asyncio.run(relay.handle("s0", {"event": "webrtc-offer", "data": {"targetId": "s2", "offer": {"sdp": "o"}}}))
    asyncio.run(relay.handle("s2", {"event": "webrtc-answer", "data": {"targetId": "s0", "answer": {"sdp": "a"}}}))
    asyncio.run(relay.handle("s0", {"event": "webrtc-ice-candidate", "data": {"targetId": "s2", "candidate": {"c": 1}}}))

    assert socks["s2"].last("webrtc-offer") == {"offer": {"sdp": "o"}, "senderId": "s0"}
    assert socks["s0"].last("webrtc-answer") == {"answer": {"sdp": "a"}, "senderId": "s2"}
    assert socks["s2"].last("webrtc-ice-candidate") == {"candidate": {"c": 1}, "senderId": "s0"}
    assert not any(e.startswith("webrtc") for e in socks["s1"].events())


def test_signal_to_unknown_target_is_dropped():
    relay = RoomRelay()
    socks = _room(relay, 1)
    before = list(socks["s0"].frames)
    asyncio.run(relay.handle("s0", {"event": "webrtc-offer", "data": {"targetId": "ghost", "offer": {}}}))
    assert socks["s0"].frames == before


def test_bad_frames_answer_with_error_to_sender():
    relay = RoomRelay()
    socks = _room(relay, 2)
    asyncio.run(relay.handle_raw("s0", "{not json"))
    asyncio.run(relay.handle("s0", {"event": "teleport", "data": {}}))
    asyncio.run(relay.handle("s0", {"event": "code-change", "data": {"code": "x"}}))
    asyncio.run(relay.handle("s0", {"event": "chat-message", "data": "hello"}))
    asyncio.run(relay.handle("s0", ["not", "an", "object"]))

    errors = [f["data"] for f in socks["s0"].frames if f["event"] == "error"]
    assert len(errors) == 5
    assert errors[1]["message"] == "Unknown event: teleport"
    assert errors[2] == {"message": "'sessionId' is required", "event": "code-change"}
    assert "error" not in socks["s1"].events()
    assert relay.connection_count == 2


def test_disconnect_announces_and_drops_empty_rooms():
    relay = RoomRelay()
    socks = _room(relay, 2)
    asyncio.run(relay.disconnect("s1"))
    assert socks["s0"].last("user-left") == {"socketId": "s1"}
    assert relay.room_members("room-1") == {"s0"}
    assert relay.rooms_of("s1") == set()
    assert relay.rooms_of("s0") == {"room-1"}

    asyncio.run(relay.disconnect("s0"))
    assert relay.room_members("room-1") == set()
    assert relay.connection_count == 0
    # second disconnect is a no-op
    asyncio.run(relay.disconnect("s0"))


def test_failed_peer_does_not_block_others():
    relay = RoomRelay()
    socks = _room(relay, 3)
    socks["s1"].fail = True
    asyncio.run(relay.handle("s0", {"event": "code-change", "data": {"sessionId": "room-1", "code": "x"}}))
    assert socks["s2"].last("code-change")["code"] == "x"


def test_join_records_participant_once():
    store = get_session_store()
    sess = store.create_session("Pair", "owner@example.com")
    relay = RoomRelay()
    sock = FakeSocket()
    asyncio.run(relay.connect("s0", sock))
    join = {"event": "join-session", "data": {"sessionId": sess.id, "userId": "guest-1", "userName": "Guest"}}
    asyncio.run(relay.handle("s0", join))
    asyncio.run(relay.handle("s0", join))

    participants = store.get_session(sess.id).participants
    assert [p.id for p in participants] == ["owner@example.com", "guest-1"]
    assert participants[1].name == "Guest"


def test_slow_event_publish_does_not_block_the_loop(monkeypatch):
    published = []

    def slow_publish(event_type, payload):
        time.sleep(0.3)
        published.append(event_type)

    monkeypatch.setattr(relay_module, "publish_event", slow_publish)
    sess = get_session_store().create_session("Pair", "owner@example.com")
    relay = RoomRelay()

    async def scenario():
        gaps = []
        done = asyncio.Event()

        async def ticker():
            last = time.monotonic()
            while not done.is_set():
                await asyncio.sleep(0.02)
                now = time.monotonic()
                gaps.append(now - last)
                last = now

        async def join():
            await relay.connect("s0", FakeSocket())
            await relay.handle("s0", {"event": "join-session", "data": {"sessionId": sess.id, "userId": "guest-1"}})
            done.set()

        await asyncio.gather(ticker(), join())
        return gaps

    gaps = asyncio.run(scenario())
    assert published == ["session.participant_joined"]
    assert max(gaps) < 0.2


def test_join_unknown_session_is_relayed_but_not_persisted():
    relay = RoomRelay()
    socks = _room(relay, 2, room="64b7f0c2a1b2c3d4e5f60718")
    assert socks["s0"].last("user-joined")["socketId"] == "s1"
    assert get_session_store().count_sessions() == 0


def test_websocket_round_trip():
    with TestClient(app) as client:
        with client.websocket_connect("/ws/devsync") as ws_a, client.websocket_connect("/api/ws/devsync") as ws_b:
            a_id = ws_a.receive_json()["data"]["socketId"]
            b_id = ws_b.receive_json()["data"]["socketId"]

            ws_a.send_json({"event": "join-session", "data": {"sessionId": "room-9", "userId": "ann"}})
            # chat echoes to the sender, so this confirms the join was handled
            ws_a.send_json({"event": "chat-message", "data": {"sessionId": "room-9", "message": "ready"}})
            assert ws_a.receive_json()["data"]["message"] == "ready"

            ws_b.send_json({"event": "join-session", "data": {"sessionId": "room-9", "userId": "ben"}})
            assert ws_a.receive_json() == {"event": "user-joined", "data": {"userId": "ben", "socketId": b_id}}

            ws_b.send_json({"event": "code-change", "data": {"sessionId": "room-9", "code": "x = 1"}})
            assert ws_a.receive_json() == {"event": "code-change", "data": {"sessionId": "room-9", "code": "x = 1"}}

            ws_a.send_json({"event": "chat-message", "data": {"sessionId": "room-9", "message": "yo"}})
            assert ws_a.receive_json()["event"] == "chat-message"
            assert ws_b.receive_json()["data"]["message"] == "yo"

            ws_b.send_json({"event": "webrtc-offer", "data": {"targetId": a_id, "offer": {"type": "offer"}}})
            assert ws_a.receive_json() == {"event": "webrtc-offer", "data": {"offer": {"type": "offer"}, "senderId": b_id}}

            ws_a.send_text("garbage")
            assert ws_a.receive_json()["event"] == "error"

            assert get_relay().room_members("room-9") == {a_id, b_id}


def test_relay_metrics_exposed():
    relay = RoomRelay()
    _room(relay, 1)
    body = TestClient(app).get("/metrics").text
    assert "ganadash_relay_connections" in body
    assert 'ganadash_relay_events_total{event="join-session"}' in body
