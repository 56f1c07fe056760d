"""
Pytest configuration for maze robot tests.

Provides:
- Maze builders (corridors, open fields) shared across test modules
- A helper that steps an executor to completion
- Hypothesis profiles (select with HYPOTHESIS_PROFILE=ci)
"""

import os

from hypothesis import settings

from executor import create_executor
from parser import parse
from simulator import CellType, Heading, MazeSimulator

settings.register_profile("default", print_blob=True, deadline=None)
settings.register_profile("ci", print_blob=True, deadline=None, max_examples=300)
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "default"))

E = CellType.EMPTY
W = CellType.WALL
S = CellType.START
G = CellType.END


def corridor(length):
    """A single row: start at x=0, goal at x=length."""
    return [[S] + [E] * (length - 1) + [G]]


def open_field(radius):
    """A goal-less empty square with the centre at (radius, radius)."""
    size = 2 * radius + 1
    return [[E] * size for _ in range(size)]


def run_program(source, maze, start=(0, 0), heading=Heading.EAST, max_steps=1000):
    simulator = MazeSimulator(maze, start, heading)
    executor = create_executor(simulator, parse(source))
    commands = executor.run(max_steps=max_steps)
    return simulator, executor, commands
