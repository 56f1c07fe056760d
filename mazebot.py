"""Maze robot entry point: run a program against a maze file."""

from __future__ import annotations
import argparse
import sys
from typing import Callable, List, Optional, Tuple

from executor import Executor, TracebackFormatter, create_executor
from hooks import HookRegistry
from lexer import MazeError, MazeParseError
from parser import Block, SourceLocation, parse, unparse
from simulator import MazeSimulator, load_maze, parse_heading


EXIT_COMPLETED = 0
EXIT_FAILED = 1
EXIT_INCOMPLETE = 2

DEFAULT_MAX_STEPS = 10000


def _parse_start(text: str) -> Tuple[int, int]:
    try:
        x_text, y_text = text.split(",")
        return int(x_text), int(y_text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"start must look like X,Y (got '{text}')")


def _read_text(path: str, label: str) -> Optional[str]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            return handle.read()
    except OSError as exc:
        print(f"Failed to read {label} {path}: {exc}", file=sys.stderr)
        return None


def _report(simulator: MazeSimulator, executor: Executor, *, verbose: bool, traceback_json: bool) -> int:
    pos = simulator.position
    print(f"Robot at ({pos.x}, {pos.y}) facing {simulator.heading.name.lower()} after {executor.steps_taken} step(s)")
    if simulator.error:
        formatter = TracebackFormatter(executor)
        print(formatter.format_text(simulator.error, verbose=verbose), file=sys.stderr)
        if traceback_json:
            print(formatter.to_json(simulator.error), file=sys.stderr)
        return EXIT_FAILED
    if simulator.completed:
        print("Level completed! Great job!")
        return EXIT_COMPLETED
    print("Didn't reach the goal. Try again!")
    return EXIT_INCOMPLETE


def run_interactive(executor: Executor, read_line: Callable[[], str] = input) -> None:
    print("Enter: step, c: continue, q: quit")
    continuing = False
    while executor.has_more():
        if not continuing:
            try:
                answer = read_line().strip().lower()
            except EOFError:
                print()
                return
            if answer == "q":
                return
            continuing = answer == "c"
        result = executor.execute_step()
        if result.command is None:
            break
        pos = executor.simulator.position
        print(f"line {result.line}: {result.command} -> ({pos.x}, {pos.y})")


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Maze robot language interpreter")
    parser.add_argument("program", help="Source file path or literal source with -source")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("--maze", help="Maze text file (# wall, . empty, S start, E end)")
    parser.add_argument("--start", type=_parse_start, help="Start position X,Y (defaults to the S cell)")
    parser.add_argument("--heading", default="east", help="Start heading: north, east, south or west")
    parser.add_argument("--max-steps", type=int, default=DEFAULT_MAX_STEPS, help="Stop after this many commands")
    parser.add_argument("--trace", action="store_true", help="Print each command as it executes")
    parser.add_argument("--step", action="store_true", help="Single-step interactively")
    parser.add_argument("--format", dest="format_only", action="store_true", help="Print the program in canonical form and exit")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Emit env snapshots in tracebacks")
    parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON traceback")
    args = parser.parse_args(argv)

    if args.source_mode:
        source_text = args.program
        filename = "<string>"
    else:
        filename = args.program
        source_text = _read_text(filename, "program")
        if source_text is None:
            return EXIT_FAILED

    try:
        program: Block = parse(source_text, filename)
    except MazeParseError as error:
        print(f"ParseError: {error}", file=sys.stderr)
        return EXIT_FAILED

    if args.format_only:
        print(unparse(program))
        return EXIT_COMPLETED

    if args.maze is None:
        print("--maze is required to run a program", file=sys.stderr)
        return EXIT_FAILED
    maze_text = _read_text(args.maze, "maze")
    if maze_text is None:
        return EXIT_FAILED
    try:
        layout = load_maze(maze_text)
        start = args.start or layout.start
        if start is None:
            raise MazeError("Maze has no start cell; pass --start X,Y")
        simulator = MazeSimulator(layout.grid, start, parse_heading(args.heading))
    except MazeError as error:
        print(f"MazeError: {error}", file=sys.stderr)
        return EXIT_FAILED

    hooks = HookRegistry()
    if args.trace:
        @hooks.on_event("command")
        def _print_command(executor: Executor, command: str, location: Optional[SourceLocation]) -> None:
            pos = executor.simulator.position
            line = location.line if location else "?"
            print(f"[{executor.steps_taken:04d}] line {line}: {command} -> ({pos.x}, {pos.y})")

    executor = create_executor(simulator, program, verbose=args.verbose, hooks=hooks)
    if args.step:
        run_interactive(executor)
    else:
        executor.run(max_steps=args.max_steps)
        if executor.has_more():
            print(f"Stopped after {args.max_steps} step(s)", file=sys.stderr)
    return _report(simulator, executor, verbose=args.verbose, traceback_json=args.traceback_json)


if __name__ == "__main__":
    raise SystemExit(run_cli())
