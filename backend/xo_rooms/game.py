"""
Логика партии крестики-нолики 3×3: без состояния и без I/O.
"""
from enum import Enum

from .constants import BOARD_CELLS, WIN_LINES


class Mark(str, Enum):
    X = "X"
    O = "O"


Board = list[Mark | None]


def empty_board() -> Board:
    return [None] * BOARD_CELLS


def other(mark: Mark) -> Mark:
    return Mark.O if mark is Mark.X else Mark.X


def winner(board: Board) -> Mark | None:
    """Знак первой собранной линии (строки, столбцы, диагонали) или None."""
    for a, b, c in WIN_LINES:
        if board[a] is not None and board[a] == board[b] == board[c]:
            return board[a]
    return None


def is_full(board: Board) -> bool:
    return all(cell is not None for cell in board)
