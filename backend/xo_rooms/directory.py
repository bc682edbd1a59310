"""
Реестр живых комнат (in-memory).
Комнаты хранятся в порядке создания; пустые удаляются сразу.
"""
import logging
import threading
import uuid

from .constants import MAX_PLAYERS, ROOM_CODE_LENGTH
from .room import Role, Room, RoomInfo

logger = logging.getLogger(__name__)


def normalize_room_id(room_id: str) -> str:
    return room_id.strip().upper()


def _generate_room_code() -> str:
    return uuid.uuid4().hex[:ROOM_CODE_LENGTH].upper()


class RoomDirectory:
    def __init__(self):
        self._rooms: dict[str, Room] = {}
        self._lock = threading.Lock()

    def create_room(self) -> Room:
        """Новая комната с коротким кодом; при совпадении код генерируется заново."""
        with self._lock:
            room_id = _generate_room_code()
            while room_id in self._rooms:
                logger.info("Room code collision on %s, re-rolling", room_id)
                room_id = _generate_room_code()
            room = Room(id=room_id)
            self._rooms[room_id] = room
        logger.info("Room %s created", room_id)
        return room

    def get(self, room_id: str) -> Room | None:
        with self._lock:
            return self._rooms.get(normalize_room_id(room_id))

    def find_joinable(self) -> Room | None:
        """Первая по порядку создания комната со свободным местом игрока."""
        with self._lock:
            rooms = list(self._rooms.values())
        for room in rooms:
            if room.player_count < MAX_PLAYERS:
                return room
        return None

    def seat(self, room_id: str, conn_id: str, user_id: str, display_name: str) -> tuple[Room, Role] | None:
        """Найти комнату и выдать роль за один шаг под замком реестра."""
        with self._lock:
            room = self._rooms.get(normalize_room_id(room_id))
            if room is None:
                return None
            return room, room.assign_role(conn_id, user_id, display_name)

    def remove_if_empty(self, room_id: str) -> bool:
        with self._lock:
            room_id = normalize_room_id(room_id)
            room = self._rooms.get(room_id)
            if room is None or not room.is_empty():
                return False
            del self._rooms[room_id]
        logger.info("Room %s removed", room_id)
        return True

    def remove(self, room_id: str) -> None:
        with self._lock:
            removed = self._rooms.pop(normalize_room_id(room_id), None)
        if removed is not None:
            logger.info("Room %s removed", removed.id)

    def list(self) -> list[RoomInfo]:
        with self._lock:
            rooms = list(self._rooms.values())
        return [room.get_info() for room in rooms if not room.is_empty()]

    def clear(self) -> None:
        with self._lock:
            self._rooms.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        with self._lock:
            return normalize_room_id(room_id) in self._rooms


directory = RoomDirectory()
