"""Константы доски и комнат."""

BOARD_SIZE = 3
BOARD_CELLS = BOARD_SIZE * BOARD_SIZE

# Порядок важен: первая собранная линия определяет победителя.
WIN_LINES: tuple[tuple[int, int, int], ...] = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),  # строки
    (0, 3, 6), (1, 4, 7), (2, 5, 8),  # столбцы
    (0, 4, 8), (2, 4, 6),             # диагонали
)

MAX_PLAYERS = 2
ROOM_CODE_LENGTH = 6
