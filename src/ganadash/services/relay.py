from __future__ import annotations

"""Room relay for DevSync collaboration sockets.

Sockets join a room named after a collaboration session id and the relay
forwards editor, chat and WebRTC signalling events between them. Payloads
are passed through untouched: no merging of concurrent edits and no ordering
beyond what each socket delivers.

Frames are JSON objects ``{"event": <name>, "data": {...}}`` in both
directions.

All membership bookkeeping happens synchronously between awaits on the
single event loop, so the maps need no lock; sends work on snapshots.
"""

import asyncio
import json
import logging
from datetime import UTC, datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Protocol, Set

from starlette.concurrency import run_in_threadpool

from ..domain.session_models import Participant
from ..infrastructure.events import publish_event
from ..infrastructure.mongo import is_valid_id
from ..infrastructure.session_store import SessionStore, get_session_store
from ..observability.metrics import RELAY_CONNECTIONS, RELAY_EVENTS


logger = logging.getLogger("ganadash.relay")

JOIN_SESSION = "join-session"
CODE_CHANGE = "code-change"
CURSOR_MOVE = "cursor-move"
CHAT_MESSAGE = "chat-message"
WEBRTC_OFFER = "webrtc-offer"
WEBRTC_ANSWER = "webrtc-answer"
WEBRTC_ICE_CANDIDATE = "webrtc-ice-candidate"

# Server-originated events
CONNECTED = "connected"
USER_JOINED = "user-joined"
USER_LEFT = "user-left"
ERROR = "error"

# Signalling event -> payload key copied to the target socket
SIGNALLING_FIELDS = {
    WEBRTC_OFFER: "offer",
    WEBRTC_ANSWER: "answer",
    WEBRTC_ICE_CANDIDATE: "candidate",
}

CLIENT_EVENTS = frozenset({JOIN_SESSION, CODE_CHANGE, CURSOR_MOVE, CHAT_MESSAGE, *SIGNALLING_FIELDS})


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


class RoomRelay:
    def __init__(self, store_factory: Callable[[], SessionStore] = get_session_store) -> None:
        self._store_factory = store_factory
        self._sockets: Dict[str, Connection] = {}
        self._rooms: Dict[str, Set[str]] = {}
        self._memberships: Dict[str, Set[str]] = {}

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    def room_members(self, room: str) -> Set[str]:
        return set(self._rooms.get(room, ()))

    def rooms_of(self, socket_id: str) -> Set[str]:
        return set(self._memberships.get(socket_id, ()))

    @property
    def connection_count(self) -> int:
        return len(self._sockets)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    async def connect(self, socket_id: str, conn: Connection) -> None:
        self._sockets[socket_id] = conn
        self._memberships[socket_id] = set()
        RELAY_CONNECTIONS.inc()
        logger.info("User connected: %s", socket_id)
        await self._send(socket_id, CONNECTED, {"socketId": socket_id})

    async def disconnect(self, socket_id: str) -> None:
        if self._sockets.pop(socket_id, None) is None:
            return
        RELAY_CONNECTIONS.dec()
        rooms = self._memberships.pop(socket_id, set())
        notices: List[Awaitable[None]] = []
        for room in rooms:
            members = self._rooms.get(room)
            if members is None:
                continue
            members.discard(socket_id)
            if not members:
                del self._rooms[room]
                continue
            notices.append(self._broadcast(room, USER_LEFT, {"socketId": socket_id}))
        if notices:
            await asyncio.gather(*notices)
        logger.info("User disconnected: %s", socket_id)

    # ------------------------------------------------------------------
    # Inbound frames
    # ------------------------------------------------------------------
    async def handle_raw(self, socket_id: str, raw: str) -> None:
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            await self._send(socket_id, ERROR, {"message": "Malformed frame: not JSON"})
            return
        await self.handle(socket_id, frame)

    async def handle(self, socket_id: str, frame: Any) -> None:
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            await self._send(socket_id, ERROR, {"message": "Frame must be an object with an 'event' name"})
            return
        event = frame["event"]
        data = frame.get("data")
        if data is None:
            data = {}
        if event not in CLIENT_EVENTS:
            await self._send(socket_id, ERROR, {"message": f"Unknown event: {event}", "event": event})
            return
        if not isinstance(data, dict):
            await self._send(socket_id, ERROR, {"message": "Event data must be an object", "event": event})
            return
        RELAY_EVENTS.labels(event=event).inc()

        if event == JOIN_SESSION:
            await self._join(socket_id, data)
        elif event in (CODE_CHANGE, CURSOR_MOVE):
            room = await self._require_key(socket_id, event, data, "sessionId")
            if room:
                await self._broadcast(room, event, data, exclude=socket_id)
        elif event == CHAT_MESSAGE:
            room = await self._require_key(socket_id, event, data, "sessionId")
            if room:
                await self._broadcast(room, event, data)
        else:
            target = await self._require_key(socket_id, event, data, "targetId")
            if target:
                await self._signal(socket_id, event, target, data)

    async def _join(self, socket_id: str, data: Dict[str, Any]) -> None:
        room = await self._require_key(socket_id, JOIN_SESSION, data, "sessionId")
        if not room:
            return
        user_id = str(data.get("userId") or "")
        self._rooms.setdefault(room, set()).add(socket_id)
        self._memberships.setdefault(socket_id, set()).add(room)
        logger.info("User %s joined session %s", user_id or "<anonymous>", room)
        await self._broadcast(room, USER_JOINED, {"userId": user_id, "socketId": socket_id}, exclude=socket_id)
        if user_id:
            await self._record_participant(room, user_id, data)

    async def _record_participant(self, room: str, user_id: str, data: Dict[str, Any]) -> None:
        if not is_valid_id(room):
            return
        participant = Participant(
            id=user_id,
            name=str(data.get("userName") or ""),
            email=str(data.get("email") or ""),
            joined_at=datetime.now(UTC),
        )
        store = self._store_factory()
        try:
            await run_in_threadpool(store.add_participant, room, participant)
        except KeyError:
            logger.debug("Join for unknown session %s not persisted", room)
            return
        except Exception:
            logger.exception("Failed to record participant %s in session %s", user_id, room)
            return
        await run_in_threadpool(publish_event, "session.participant_joined", {"session_id": room, "user_id": user_id})

    async def _signal(self, socket_id: str, event: str, target: str, data: Dict[str, Any]) -> None:
        if target == socket_id or target not in self._sockets:
            logger.debug("Dropping %s from %s: target %s not connected", event, socket_id, target)
            return
        field = SIGNALLING_FIELDS[event]
        await self._send(target, event, {field: data.get(field), "senderId": socket_id})

    async def _require_key(self, socket_id: str, event: str, data: Dict[str, Any], key: str) -> Optional[str]:
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
        await self._send(socket_id, ERROR, {"message": f"'{key}' is required", "event": event})
        return None

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------
    async def _broadcast(self, room: str, event: str, data: Dict[str, Any], exclude: Optional[str] = None) -> None:
        targets = [sid for sid in self._rooms.get(room, ()) if sid != exclude]
        await self._send_many(targets, event, data)

    async def _send_many(self, targets: Iterable[str], event: str, data: Dict[str, Any]) -> None:
        await asyncio.gather(*(self._send(sid, event, data) for sid in targets))

    async def _send(self, socket_id: str, event: str, data: Dict[str, Any]) -> None:
        conn = self._sockets.get(socket_id)
        if conn is None:
            return
        try:
            await conn.send_json({"event": event, "data": data})
        except Exception as exc:
            # A dead peer must not stop delivery to the rest of the room.
            logger.warning("Send of %s to %s failed: %s", event, socket_id, exc)


_relay: Optional[RoomRelay] = None


def get_relay() -> RoomRelay:
    global _relay
    if _relay is None:
        _relay = RoomRelay()
    return _relay


def reset_relay() -> None:
    global _relay
    _relay = None
