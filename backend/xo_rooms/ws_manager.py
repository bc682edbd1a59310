"""
Менеджер WebSocket: подключения по conn_id, рассылка по комнате и по лобби.
"""
import logging
import uuid
from typing import Any

from fastapi import WebSocket

from .room import Identity

logger = logging.getLogger(__name__)


class Connection:
    def __init__(self, ws: WebSocket, identity: Identity):
        self.ws = ws
        self.conn_id = uuid.uuid4().hex
        self.identity = identity
        self.room_id: str | None = None  # None — подключение в лобби

    @property
    def user_id(self) -> str:
        return self.identity.user_id

    @property
    def display_name(self) -> str:
        return self.identity.display_name


class WSManager:
    def __init__(self):
        self._by_conn: dict[str, Connection] = {}

    def connect(self, ws: WebSocket, identity: Identity) -> Connection:
        # Старые подключения того же пользователя не закрываем:
        # место в комнате переходит к новому через assign_role.
        conn = Connection(ws, identity)
        self._by_conn[conn.conn_id] = conn
        return conn

    def disconnect(self, conn_id: str) -> None:
        self._by_conn.pop(conn_id, None)

    def get(self, conn_id: str) -> Connection | None:
        return self._by_conn.get(conn_id)

    def clear(self) -> None:
        self._by_conn.clear()

    def room_members(self, room_id: str) -> list[Connection]:
        return [c for c in self._by_conn.values() if c.room_id == room_id]

    def lobby(self) -> list[Connection]:
        return [c for c in self._by_conn.values() if c.room_id is None]

    async def send_to(self, conn_id: str, payload: dict[str, Any]) -> bool:
        conn = self._by_conn.get(conn_id)
        if not conn:
            return False
        try:
            await conn.ws.send_json(payload)
            return True
        except Exception as e:
            logger.warning("send_to %s: %s", conn_id, e)
            return False

    async def broadcast_to_room(self, room_id: str, payload: dict[str, Any]) -> None:
        await self._broadcast(self.room_members(room_id), payload)

    async def broadcast_to_lobby(self, payload: dict[str, Any]) -> None:
        await self._broadcast(self.lobby(), payload)

    async def _broadcast(self, conns: list[Connection], payload: dict[str, Any]) -> None:
        dead = []
        for conn in conns:
            try:
                await conn.ws.send_json(payload)
            except Exception as e:
                logger.warning("broadcast to %s failed: %s", conn.conn_id, e)
                dead.append(conn)
        for conn in dead:
            self.disconnect(conn.conn_id)


manager = WSManager()
