"""
Обработка сообщений WebSocket: auth, затем события комнат.
Каждое подключение привязано не более чем к одной комнате (Connection.room_id).
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

from .auth import debug_identity, validate_token
from .config import get_config
from .directory import directory
from .room import RemoveResult, Role, Room, RoomInfo, RoomState
from .ws_manager import Connection, manager

logger = logging.getLogger(__name__)

ROOM_NOT_FOUND = "Room not found"


@dataclass
class Departure:
    room: Room
    result: RemoveResult
    room_removed: bool


def room_info_payload(info: RoomInfo) -> dict:
    return {
        "id": info.id,
        "playerCount": info.player_count,
        "spectatorCount": info.spectator_count,
        "hasSpace": info.has_space,
        "createdAt": info.created_at,
    }


def room_list_payload() -> dict:
    return {
        "type": "roomList",
        "rooms": [room_info_payload(info) for info in directory.list()],
    }


def room_state_payloads(state: RoomState) -> list[dict]:
    """gameState, playerNames, playerCountInfo — всё, что видит комната."""
    return [
        {
            "type": "gameState",
            "board": [cell.value if cell is not None else None for cell in state.board],
            "nextMark": state.next_mark.value,
            "winner": state.winner.value if state.winner is not None else None,
            "isTie": state.is_tie,
        },
        {
            "type": "playerNames",
            "nameX": state.name_x,
            "nameO": state.name_o,
        },
        {
            "type": "playerCountInfo",
            "playerCount": state.player_count,
            "spectatorCount": state.spectator_count,
        },
    ]


async def broadcast_room_state(room: Room) -> None:
    for payload in room_state_payloads(room.get_state()):
        await manager.broadcast_to_room(room.id, payload)


async def broadcast_room_list() -> None:
    await manager.broadcast_to_lobby(room_list_payload())


def _detach(conn: Connection) -> Departure | None:
    """
    Синхронная часть выхода из комнаты: remove_player, удаление пустой
    комнаты, отвязка подключения. Рассылки — в _announce_departure.
    """
    if conn.room_id is None:
        return None
    room = directory.get(conn.room_id)
    conn.room_id = None
    if room is None:
        return None
    result = room.remove_player(conn.conn_id)
    room_removed = directory.remove_if_empty(room.id)
    logger.info(
        "Room %s: conn %s left (role=%s, promoted=%s)",
        room.id,
        conn.conn_id,
        result.removed_role.value if result.removed_role else None,
        result.promoted_conn_id,
    )
    return Departure(room=room, result=result, room_removed=room_removed)


async def _announce_departure(departure: Departure | None) -> None:
    if departure is None:
        return
    promoted = departure.result.promoted_conn_id
    if promoted is not None:
        await manager.send_to(
            promoted,
            {"type": "playerRole", "role": departure.result.removed_role.value},
        )
    if not departure.room_removed:
        await broadcast_room_state(departure.room)


def _seat(conn: Connection, room_id: str) -> tuple[Room, Role] | None:
    return directory.seat(room_id, conn.conn_id, conn.user_id, conn.display_name)


def _release_stale(conn: Connection, room: Room) -> list[Connection]:
    """Старые подключения того же пользователя, оставшиеся без роли, уходят в лобби."""
    stale = [
        other
        for other in manager.room_members(room.id)
        if other.conn_id != conn.conn_id
        and other.user_id == conn.user_id
        and room.role_of(other.conn_id) is None
    ]
    for other in stale:
        other.room_id = None
    return stale


async def _enter_room(conn: Connection, room: Room, role: Role, departure: Departure | None) -> None:
    """Привязать подключение к room (роль уже выдана) и разослать состояние."""
    conn.room_id = room.id
    stale = _release_stale(conn, room)
    logger.info("Room %s: user %s joined as %s", room.id, conn.user_id, role.value)
    await _announce_departure(departure)
    for other in stale:
        await manager.send_to(other.conn_id, {"type": "leftRoom"})
    await manager.send_to(conn.conn_id, {"type": "joinedRoom", "roomId": room.id, "role": role.value})
    await manager.send_to(conn.conn_id, {"type": "playerRole", "role": role.value})
    await broadcast_room_state(room)
    await broadcast_room_list()


def _detach_unless_in(conn: Connection, room: Room | None) -> Departure | None:
    if room is not None and conn.room_id == room.id:
        return None
    return _detach(conn)


def _create_and_seat(conn: Connection) -> tuple[Room, Role]:
    while True:
        seated = _seat(conn, directory.create_room().id)
        if seated is not None:
            return seated


async def _on_create_room(conn: Connection, data: dict) -> None:
    departure = _detach(conn)
    room, role = _create_and_seat(conn)
    await _enter_room(conn, room, role, departure)


async def _on_join_room(conn: Connection, data: dict) -> None:
    room_id = data.get("roomId")
    room = directory.get(room_id) if isinstance(room_id, str) and room_id.strip() else None
    if room is None:
        await manager.send_to(conn.conn_id, {"type": "error", "message": ROOM_NOT_FOUND})
        return
    departure = _detach_unless_in(conn, room)
    seated = _seat(conn, room.id)
    if seated is None:
        # комната опустела и удалена между поиском и посадкой
        await _announce_departure(departure)
        await manager.send_to(conn.conn_id, {"type": "error", "message": ROOM_NOT_FOUND})
        await broadcast_room_list()
        return
    await _enter_room(conn, *seated, departure)


async def _on_quick_play(conn: Connection, data: dict) -> None:
    room = directory.find_joinable()
    departure = _detach_unless_in(conn, room)
    seated = _seat(conn, room.id) if room is not None else None
    if seated is None:
        seated = _create_and_seat(conn)
    await _enter_room(conn, *seated, departure)


async def _on_leave_room(conn: Connection, data: dict) -> None:
    departure = _detach(conn)
    await _announce_departure(departure)
    await manager.send_to(conn.conn_id, {"type": "leftRoom"})
    await broadcast_room_list()


def _current_room(conn: Connection) -> Room | None:
    return directory.get(conn.room_id) if conn.room_id is not None else None


async def _on_make_move(conn: Connection, data: dict) -> None:
    room = _current_room(conn)
    if room is None:
        return
    if room.make_move(conn.conn_id, data.get("index")):
        await broadcast_room_state(room)


async def _on_reset(conn: Connection, data: dict) -> None:
    room = _current_room(conn)
    if room is None:
        return
    if room.reset(conn.conn_id):
        await broadcast_room_state(room)


async def _on_get_rooms(conn: Connection, data: dict) -> None:
    await manager.send_to(conn.conn_id, room_list_payload())


_HANDLERS: dict[str, Callable[[Connection, dict], Awaitable[None]]] = {
    "createRoom": _on_create_room,
    "joinRoom": _on_join_room,
    "quickPlay": _on_quick_play,
    "leaveRoom": _on_leave_room,
    "makeMove": _on_make_move,
    "reset": _on_reset,
    "getRooms": _on_get_rooms,
}


async def handle_ws_message(conn: Connection, raw: str) -> bool:
    """
    Обрабатывает одно сообщение от уже авторизованного клиента.
    Возвращает False если соединение нужно закрыть.
    """
    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("WS: invalid JSON from %s: %s", conn.conn_id, e)
        return True
    if not isinstance(data, dict):
        logger.warning("WS: non-object message from %s", conn.conn_id)
        return True
    t = data.get("type")
    handler = _HANDLERS.get(t) if isinstance(t, str) else None
    if handler is None:
        logger.warning("WS: unknown message type=%s from %s", t, conn.conn_id)
        return True
    logger.debug("WS: msg from %s type=%s", conn.conn_id, t)
    await handler(conn, data)
    return True


async def disconnect(conn: Connection) -> None:
    """Выход из комнаты при обрыве соединения."""
    departure = _detach(conn)
    manager.disconnect(conn.conn_id)
    await _announce_departure(departure)
    await broadcast_room_list()


async def ws_auth_and_loop(ws: WebSocket) -> None:
    """
    Первое сообщение — auth с token. Дальше цикл приёма сообщений.
    """
    config = get_config()
    conn = None
    try:
        await ws.accept()
        logger.info("WS: accepted, waiting for auth")
        raw = await ws.receive_text()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            data = None
        msg_type = data.get("type") if isinstance(data, dict) else None
        if msg_type != "auth":
            logger.warning("WS: expected auth, got %s, closing 4001", msg_type)
            await ws.close(code=4001)
            return
        token = data.get("token", "")
        if config.debug and not token and data.get("debug_uid") is not None:
            identity = debug_identity(data["debug_uid"], data.get("debug_name"))
            logger.info("WS: debug auth, uid=%s", identity.user_id)
        else:
            identity = validate_token(token)
        if not identity:
            logger.warning("WS: auth failed (invalid token or not debug)")
            await ws.close(code=4003)
            return
        conn = manager.connect(ws, identity)
        logger.info("WS: auth ok conn=%s user_id=%s name=%s", conn.conn_id, identity.user_id, identity.display_name)
        await manager.send_to(
            conn.conn_id,
            {"type": "authenticated", "userId": identity.user_id, "displayName": identity.display_name},
        )
        await manager.send_to(conn.conn_id, room_list_payload())
        while True:
            msg = await ws.receive_text()
            if not await handle_ws_message(conn, msg):
                break
    except WebSocketDisconnect as e:
        logger.info("WS: client disconnected code=%s reason=%s conn=%s", e.code, e.reason or "", conn and conn.conn_id)
    except Exception as e:
        logger.exception("WS: error conn=%s: %s", conn and conn.conn_id, e)
    finally:
        if conn:
            await disconnect(conn)
            logger.info("WS: disconnected conn=%s user_id=%s", conn.conn_id, conn.user_id)
