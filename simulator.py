from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Set, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from lexer import MazeError


WALL_HIT_MESSAGE = "Can't move forward - hit a wall!"


class CellType(IntEnum):
    EMPTY = 0
    WALL = 1
    START = 2
    END = 3


class Heading(IntEnum):
    NORTH = 0
    EAST = 1
    SOUTH = 2
    WEST = 3


class Position(NamedTuple):
    x: int
    y: int


# Indexed by Heading; also the fixed BFS expansion order (up, right, down, left).
DX = (0, 1, 0, -1)
DY = (-1, 0, 1, 0)

RELATIVE_OFFSETS = {
    "front": 0,
    "right": 1,
    "back": 2,
    "left": 3,
}

COMMAND_ALIASES = {
    "forward": "forward",
    "move forward": "forward",
    "move": "forward",
    "turn left": "turn left",
    "left": "turn left",
    "turn right": "turn right",
    "right": "turn right",
}

GridLike = Union[Sequence[Sequence[int]], NDArray[Any]]


class MazeSimulator:
    """Robot state on a maze grid.

    ``completed`` and ``error`` are terminal and mutually exclusive: once
    either is set, :meth:`execute` does nothing and returns False. A new
    attempt uses a new simulator.
    """

    def __init__(self, maze: GridLike, start: Tuple[int, int], heading: Union[Heading, int]) -> None:
        grid = np.asarray(maze, dtype=np.int8)
        if grid.ndim != 2 or grid.shape[0] == 0 or grid.shape[1] == 0:
            raise MazeError("Maze must be a non-empty 2-D grid")
        self.maze: NDArray[np.int8] = grid
        self.height, self.width = (int(d) for d in grid.shape)
        self.pos = Position(int(start[0]), int(start[1]))
        if not self._in_bounds(self.pos.x, self.pos.y):
            raise MazeError(f"Start position {tuple(self.pos)} is outside the maze")
        self.dir = Heading(int(heading) % 4)
        self.path: List[Position] = [self.pos]
        self.visited: Set[Position] = {self.pos}
        self.completed = False
        self.error: Optional[str] = None
        self.sensor_results: Dict[str, bool] = {}
        goals = np.argwhere(grid == CellType.END)
        self.goals: Set[Position] = {Position(int(x), int(y)) for y, x in goals}

    # ---- observable state ----

    @property
    def position(self) -> Position:
        return self.pos

    @property
    def heading(self) -> Heading:
        return self.dir

    def visited_positions(self) -> List[Position]:
        seen: Set[Position] = set()
        ordered: List[Position] = []
        for pos in self.path:
            if pos not in seen:
                seen.add(pos)
                ordered.append(pos)
        return ordered

    def fail(self, message: str) -> None:
        # First failure wins; a completed run cannot fail afterwards.
        if self.error is None and not self.completed:
            self.error = message

    # ---- commands ----

    def execute(self, command: str) -> bool:
        if self.error or self.completed:
            return False
        cmd = COMMAND_ALIASES.get(command.lower().strip())
        if cmd == "forward":
            return self._move_forward()
        if cmd == "turn left":
            self.dir = Heading((self.dir + 3) % 4)
            return True
        if cmd == "turn right":
            self.dir = Heading((self.dir + 1) % 4)
            return True
        self.fail(f"Unknown command: {command}")
        return False

    def _move_forward(self) -> bool:
        x = self.pos.x + DX[self.dir]
        y = self.pos.y + DY[self.dir]
        if self._is_blocked(x, y):
            self.fail(WALL_HIT_MESSAGE)
            return False
        self.pos = Position(x, y)
        self.path.append(self.pos)
        self.visited.add(self.pos)
        if self.maze[y, x] == CellType.END:
            self.completed = True
        return True

    # ---- queries ----

    def sensor(self, direction: str) -> bool:
        key = direction.lower().strip()
        x, y = self._neighbour(key)
        result = self._is_blocked(x, y)
        self.sensor_results[key] = result
        return result

    def last_sensor_result(self, direction: str) -> Optional[bool]:
        return self.sensor_results.get(direction.lower().strip())

    def is_closer(self, direction: str) -> bool:
        x, y = self._neighbour(direction.lower().strip())
        if self._is_blocked(x, y):
            return False
        current = self.compute_distance(self.pos)
        target = self.compute_distance(Position(x, y))
        if current is None or target is None:
            return False
        return target < current

    def distance_to_goal(self) -> int:
        distance = self.compute_distance(self.pos)
        return -1 if distance is None else distance

    def compute_distance(self, origin: Tuple[int, int]) -> Optional[int]:
        """Breadth-first hop count from ``origin`` to the nearest goal cell.

        Returns None when no goal is reachable over 4-connected non-wall cells.
        """
        start = Position(int(origin[0]), int(origin[1]))
        if not self.goals or self._is_blocked(start.x, start.y):
            return None
        if start in self.goals:
            return 0
        seen = np.zeros(self.maze.shape, dtype=bool)
        seen[start.y, start.x] = True
        queue = deque([(start, 0)])
        while queue:
            pos, dist = queue.popleft()
            for heading in Heading:
                x = pos.x + DX[heading]
                y = pos.y + DY[heading]
                if self._is_blocked(x, y) or seen[y, x]:
                    continue
                if self.maze[y, x] == CellType.END:
                    return dist + 1
                seen[y, x] = True
                queue.append((Position(x, y), dist + 1))
        return None

    # ---- helpers ----

    def _neighbour(self, relative: str) -> Tuple[int, int]:
        if relative not in RELATIVE_OFFSETS:
            raise MazeError(f"Unknown direction '{relative}'")
        absolute = (self.dir + RELATIVE_OFFSETS[relative]) % 4
        return self.pos.x + DX[absolute], self.pos.y + DY[absolute]

    def _in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def _is_blocked(self, x: int, y: int) -> bool:
        if not self._in_bounds(x, y):
            return True
        return bool(self.maze[y, x] == CellType.WALL)


# ---- maze files ----

CELL_CHARS = {
    "#": CellType.WALL,
    ".": CellType.EMPTY,
    " ": CellType.EMPTY,
    "S": CellType.START,
    "E": CellType.END,
}

HEADING_NAMES = {
    "north": Heading.NORTH,
    "n": Heading.NORTH,
    "east": Heading.EAST,
    "e": Heading.EAST,
    "south": Heading.SOUTH,
    "s": Heading.SOUTH,
    "west": Heading.WEST,
    "w": Heading.WEST,
}


@dataclass(frozen=True)
class MazeLayout:
    grid: NDArray[np.int8]
    start: Optional[Position]


def load_maze(text: str) -> MazeLayout:
    """Read a character grid: ``#`` wall, ``.`` or space empty, ``S`` start, ``E`` end.

    Blank lines are ignored and short rows are padded with walls.
    """
    rows = [line.rstrip("\r\n") for line in text.splitlines()]
    rows = [row for row in rows if row.strip()]
    if not rows:
        raise MazeError("Maze file is empty")
    width = max(len(row) for row in rows)
    grid = np.full((len(rows), width), CellType.WALL, dtype=np.int8)
    start: Optional[Position] = None
    for y, row in enumerate(rows):
        for x, ch in enumerate(row):
            cell = CELL_CHARS.get(ch.upper() if ch in "se" else ch)
            if cell is None:
                raise MazeError(f"Unknown maze character '{ch}' at row {y + 1}, column {x + 1}")
            if cell == CellType.START:
                if start is not None:
                    raise MazeError(f"Maze has more than one start cell (row {y + 1}, column {x + 1})")
                start = Position(x, y)
            grid[y, x] = cell
    return MazeLayout(grid=grid, start=start)


def parse_heading(name: str) -> Heading:
    try:
        return HEADING_NAMES[name.lower().strip()]
    except KeyError:
        raise MazeError(f"Unknown heading '{name}' (expected north, east, south or west)")
