"""
Комната: одна партия, два места (X и O) и очередь зрителей.
Все изменяющие методы выполняются под собственным замком комнаты.
"""
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum

from .constants import BOARD_CELLS, MAX_PLAYERS
from .game import Board, Mark, empty_board, is_full, other, winner


class Role(str, Enum):
    X = "X"
    O = "O"
    SPECTATOR = "spectator"


@dataclass(frozen=True)
class Identity:
    user_id: str
    display_name: str


@dataclass
class Seat:
    conn_id: str
    identity: Identity


@dataclass(frozen=True)
class RemoveResult:
    removed_role: Role | None
    promoted_conn_id: str | None = None


@dataclass(frozen=True)
class RoomState:
    board: tuple[Mark | None, ...]
    next_mark: Mark
    name_x: str | None
    name_o: str | None
    player_count: int
    spectator_count: int
    winner: Mark | None
    is_tie: bool


@dataclass(frozen=True)
class RoomInfo:
    id: str
    player_count: int
    spectator_count: int
    has_space: bool
    created_at: float


@dataclass
class Room:
    id: str
    board: Board = field(default_factory=empty_board)
    next_mark: Mark = Mark.X
    starting_mark: Mark = Mark.X
    seats: dict[Mark, Seat | None] = field(default_factory=lambda: {Mark.X: None, Mark.O: None})
    # conn_id -> Identity, в порядке входа (FIFO для повышения)
    spectators: OrderedDict[str, Identity] = field(default_factory=OrderedDict)
    created_at: float = field(default_factory=time.time)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def player_count(self) -> int:
        return sum(1 for seat in self.seats.values() if seat is not None)

    @property
    def spectator_count(self) -> int:
        return len(self.spectators)

    def role_of(self, conn_id: str) -> Role | None:
        with self._lock:
            for mark, seat in self.seats.items():
                if seat is not None and seat.conn_id == conn_id:
                    return Role(mark.value)
            if conn_id in self.spectators:
                return Role.SPECTATOR
            return None

    def assign_role(self, conn_id: str, user_id: str, display_name: str) -> Role:
        """
        Выдать роль подключению.
        Сначала место возвращается владельцу по user_id (переподключение),
        затем свободный X, затем свободный O, иначе — зритель.
        """
        with self._lock:
            for mark, seat in self.seats.items():
                if seat is not None and seat.identity.user_id == user_id:
                    seat.conn_id = conn_id
                    self.spectators.pop(conn_id, None)
                    return Role(mark.value)
            identity = Identity(user_id=user_id, display_name=display_name)
            queued = next((c for c, s in self.spectators.items() if s.user_id == user_id), None)
            for mark, seat in self.seats.items():
                if seat is None:
                    self.spectators.pop(conn_id, None)
                    if queued is not None:
                        del self.spectators[queued]
                    self.seats[mark] = Seat(conn_id=conn_id, identity=identity)
                    return Role(mark.value)
            if queued is not None:
                # один пользователь — одно место в очереди; переносим conn_id
                self.spectators = OrderedDict(
                    (conn_id if c == queued else c, s) for c, s in self.spectators.items()
                )
            else:
                self.spectators[conn_id] = identity
            return Role.SPECTATOR

    def make_move(self, conn_id: str, index: int) -> bool:
        with self._lock:
            role = self.role_of(conn_id)
            if role is None or role is Role.SPECTATOR:
                return False
            if role.value != self.next_mark.value:
                return False
            if not isinstance(index, int) or isinstance(index, bool):
                return False
            if not 0 <= index < BOARD_CELLS:
                return False
            if self.board[index] is not None:
                return False
            if winner(self.board) is not None:
                return False
            self.board[index] = self.next_mark
            self.next_mark = other(self.next_mark)
            return True

    def reset(self, conn_id: str) -> bool:
        with self._lock:
            role = self.role_of(conn_id)
            if role is None or role is Role.SPECTATOR:
                return False
            self.board = empty_board()
            self.starting_mark = other(self.starting_mark)
            self.next_mark = self.starting_mark
            return True

    def remove_player(self, conn_id: str) -> RemoveResult:
        """
        Убрать подключение из комнаты.
        Освободившееся место занимает самый ранний зритель; его identity
        переходит на место вместе с ним.
        """
        with self._lock:
            role = self.role_of(conn_id)
            if role is None:
                return RemoveResult(removed_role=None)
            if role is Role.SPECTATOR:
                del self.spectators[conn_id]
                return RemoveResult(removed_role=role)
            mark = Mark(role.value)
            self.seats[mark] = None
            promoted = None
            if self.spectators:
                promoted, identity = self.spectators.popitem(last=False)
                self.seats[mark] = Seat(conn_id=promoted, identity=identity)
            return RemoveResult(removed_role=role, promoted_conn_id=promoted)

    def is_empty(self) -> bool:
        with self._lock:
            return self.player_count == 0 and not self.spectators

    def get_state(self) -> RoomState:
        with self._lock:
            won = winner(self.board)
            seat_x = self.seats[Mark.X]
            seat_o = self.seats[Mark.O]
            return RoomState(
                board=tuple(self.board),
                next_mark=self.next_mark,
                name_x=seat_x.identity.display_name if seat_x else None,
                name_o=seat_o.identity.display_name if seat_o else None,
                player_count=self.player_count,
                spectator_count=self.spectator_count,
                winner=won,
                is_tie=won is None and is_full(self.board),
            )

    def get_info(self) -> RoomInfo:
        with self._lock:
            players = self.player_count
            return RoomInfo(
                id=self.id,
                player_count=players,
                spectator_count=self.spectator_count,
                has_space=players < MAX_PLAYERS,
                created_at=self.created_at,
            )
