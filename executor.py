from __future__ import annotations
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from hooks import HookRegistry
from lexer import MazeError
from parser import (
    COMMAND_FORWARD,
    COMMAND_TURN_LEFT,
    COMMAND_TURN_RIGHT,
    Block,
    Call,
    CloserCondition,
    Command,
    Condition,
    DistanceToEnd,
    Expression,
    Function,
    If,
    Node,
    NumberLiteral,
    Repeat,
    SensorCondition,
    Set,
    SourceLocation,
    VariableReference,
)
from simulator import MazeSimulator


MAX_CALL_DEPTH = 200

COMMAND_INSTRUCTIONS = {
    COMMAND_FORWARD: "forward",
    COMMAND_TURN_LEFT: "turn left",
    COMMAND_TURN_RIGHT: "turn right",
}


class MazeRuntimeError(MazeError):
    """Raised for faults discovered while stepping a program."""

    def __init__(
        self,
        message: str,
        *,
        location: Optional[SourceLocation] = None,
        rule: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.location = location
        self.rule = rule


def _at_line(location: Optional[SourceLocation]) -> str:
    return f"line {location.line}" if location else "line unknown"


@dataclass
class Scope:
    name: str
    frame_id: str
    call_location: Optional[SourceLocation]
    values: Dict[str, int] = field(default_factory=dict)

    def snapshot(self) -> Dict[str, str]:
        return {k: str(v) for k, v in self.values.items()}


@dataclass
class Frame:
    node: Node
    index: int = 0
    count_value: Optional[int] = None
    env_depth: Optional[int] = None


@dataclass(frozen=True)
class StepResult:
    has_more: bool
    command: Optional[str] = None
    line: Optional[int] = None


@dataclass
class StateEntry:
    step_index: int
    state_id: str
    frame_id: Optional[str]
    source_location: Optional[SourceLocation]
    statement: Optional[str]
    env_snapshot: Optional[Dict[str, str]]
    rule: str


class StateLogger:
    def __init__(self, verbose: bool) -> None:
        self.verbose = verbose
        self.entries: List[StateEntry] = []
        self.next_state_index = 0
        self.frame_last_entry: Dict[str, StateEntry] = {}

    def record(
        self,
        *,
        scope: Optional[Scope],
        location: Optional[SourceLocation],
        rule: str,
        env_snapshot: Optional[Dict[str, str]] = None,
    ) -> StateEntry:
        step_index = self.next_state_index
        entry = StateEntry(
            step_index=step_index,
            state_id=f"s_{step_index:06d}",
            frame_id=scope.frame_id if scope else None,
            source_location=location,
            statement=location.statement if location else None,
            env_snapshot=env_snapshot,
            rule=rule,
        )
        self.entries.append(entry)
        if scope:
            self.frame_last_entry[scope.frame_id] = entry
        self.next_state_index += 1
        return entry

    def last_entry_for_frame(self, frame_id: str) -> Optional[StateEntry]:
        return self.frame_last_entry.get(frame_id)


class Executor:
    """Steps a parsed program against a simulator one robot command at a time.

    Execution state lives entirely in this object: an explicit stack of
    frames, the function table and the scope stack. The AST is never
    modified, so a fresh executor can rerun it against a fresh simulator.
    """

    def __init__(
        self,
        simulator: MazeSimulator,
        ast: Block,
        *,
        verbose: bool = False,
        hooks: Optional[HookRegistry] = None,
    ) -> None:
        self.simulator = simulator
        self.ast = ast
        self.verbose = verbose
        self.hooks = hooks or HookRegistry()
        self.node_stack: List[Frame] = [Frame(node=ast)]
        self.functions: Dict[str, Function] = {}
        self.frame_counter = 0
        self.scopes: List[Scope] = [self._new_scope("<top-level>", None)]
        self.logger = StateLogger(verbose=verbose)
        self.steps_taken = 0
        self._finished = False
        self._collect_functions(ast)

    # ---- host contract ----

    def execute_step(self) -> StepResult:
        simulator = self.simulator
        if simulator.error or simulator.completed:
            return StepResult(has_more=False)
        try:
            node = self._next_command()
            if node is None:
                self._finish()
                return StepResult(has_more=False)
            command = COMMAND_INSTRUCTIONS[node.kind]
            simulator.execute(command)
            self.steps_taken += 1
            self._emit_event("command", self, command, node.location)
            if simulator.error:
                self._notify_error(simulator.error, node.location)
            has_more = not simulator.error and not simulator.completed
            if not has_more:
                self._finish()
        except MazeRuntimeError as error:
            self._fail(error)
            return StepResult(has_more=False)
        return StepResult(has_more=has_more, command=command, line=node.line)

    def has_more(self) -> bool:
        return bool(self.node_stack) and not self.simulator.error and not self.simulator.completed

    def run(self, max_steps: Optional[int] = None) -> List[str]:
        """Step until the program stops, returning the commands sent."""
        commands: List[str] = []
        while self.has_more():
            if max_steps is not None and len(commands) >= max_steps:
                break
            result = self.execute_step()
            if result.command is not None:
                commands.append(result.command)
            if not result.has_more:
                break
        return commands

    # ---- frame loop ----

    def _next_command(self) -> Optional[Command]:
        stack = self.node_stack
        while stack:
            current = stack[-1]
            node = current.node

            if isinstance(node, Block):
                if current.index >= len(node.statements):
                    stack.pop()
                    self._restore_scopes(current)
                    continue
                statement = node.statements[current.index]
                current.index += 1
                self._log_step(statement)
                stack.append(Frame(node=statement))
                continue

            if isinstance(node, Command):
                stack.pop()
                return node

            if isinstance(node, Repeat):
                if current.count_value is None:
                    count = self._evaluate_expression(node.count)
                    if count < 0:
                        raise MazeRuntimeError(
                            f"repeat count must be non-negative at {_at_line(node.location)}",
                            location=node.location,
                            rule="Repeat",
                        )
                    current.count_value = count
                if current.index < current.count_value and node.body:
                    current.index += 1
                    stack.append(Frame(node=Block(statements=node.body, location=node.location)))
                else:
                    stack.pop()
                continue

            if isinstance(node, If):
                stack.pop()
                if self._evaluate_condition(node.condition):
                    stack.append(Frame(node=Block(statements=node.body, location=node.location)))
                continue

            if isinstance(node, Set):
                stack.pop()
                self.scopes[-1].values[node.name] = self._evaluate_expression(node.value)
                continue

            if isinstance(node, Function):
                stack.pop()
                self.functions[node.name] = node
                continue

            if isinstance(node, Call):
                stack.pop()
                self._call_function(node)
                continue

            raise MazeRuntimeError(
                f"Unsupported statement {node.__class__.__name__} at {_at_line(node.location)}",
                location=node.location,
                rule=node.__class__.__name__,
            )
        return None

    def _call_function(self, call: Call) -> None:
        function = self.functions.get(call.name)
        if function is None:
            raise MazeRuntimeError(
                f"Unknown function '{call.name}' at {_at_line(call.location)}",
                location=call.location,
                rule="Call",
            )
        args = [self._evaluate_expression(arg) for arg in call.args]
        if len(args) != len(function.params):
            raise MazeRuntimeError(
                f"Function '{function.name}' expected {len(function.params)} argument(s) "
                f"but received {len(args)} at {_at_line(call.location)}",
                location=call.location,
                rule="Call",
            )
        depth = len(self.scopes)
        if depth > MAX_CALL_DEPTH:
            raise MazeRuntimeError(
                f"Maximum call depth ({MAX_CALL_DEPTH}) exceeded calling '{function.name}' at {_at_line(call.location)}",
                location=call.location,
                rule="Call",
            )
        scope = self._new_scope(function.name, call.location)
        scope.values.update(zip(function.params, args))
        self.scopes.append(scope)
        self.node_stack.append(
            Frame(node=Block(statements=function.body, location=function.location), env_depth=depth)
        )

    def _restore_scopes(self, frame: Frame) -> None:
        if frame.env_depth is None:
            return
        # The global scope is never popped.
        del self.scopes[max(frame.env_depth, 1):]

    # ---- evaluation ----

    def _evaluate_expression(self, expression: Expression) -> int:
        if isinstance(expression, NumberLiteral):
            return expression.value
        if isinstance(expression, VariableReference):
            for scope in reversed(self.scopes):
                if expression.name in scope.values:
                    return scope.values[expression.name]
            raise MazeRuntimeError(
                f"Undefined variable '{expression.name}' at {_at_line(expression.location)}",
                location=expression.location,
                rule="VariableReference",
            )
        if isinstance(expression, DistanceToEnd):
            return self.simulator.distance_to_goal()
        raise MazeRuntimeError(
            f"Unsupported expression {expression.__class__.__name__} at {_at_line(expression.location)}",
            location=expression.location,
            rule="Expression",
        )

    def _evaluate_condition(self, condition: Condition) -> bool:
        if isinstance(condition, SensorCondition):
            result = self.simulator.sensor(condition.direction)
        elif isinstance(condition, CloserCondition):
            result = self.simulator.is_closer(condition.direction)
        else:
            raise MazeRuntimeError(
                f"Unsupported condition {condition.__class__.__name__}",
                location=condition.location,
                rule="If",
            )
        return not result if condition.negated else result

    # ---- bookkeeping ----

    def _collect_functions(self, ast: Block) -> None:
        for statement in ast.statements:
            if isinstance(statement, Function):
                self.functions[statement.name] = statement

    def _new_scope(self, name: str, call_location: Optional[SourceLocation]) -> Scope:
        frame_id = f"f_{self.frame_counter:04d}"
        self.frame_counter += 1
        return Scope(name=name, frame_id=frame_id, call_location=call_location)

    def _fail(self, error: MazeRuntimeError) -> None:
        self.simulator.fail(error.message)
        self._notify_error(error.message, error.location)

    def _notify_error(self, message: str, location: Optional[SourceLocation]) -> None:
        try:
            self._emit_event("on_error", self, message, location)
        except MazeRuntimeError as hook_error:
            # No-op here: the simulator already holds the earlier message.
            self.simulator.fail(hook_error.message)
        self._finish()

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        try:
            self._emit_event("program_end", self)
        except MazeRuntimeError as hook_error:
            self.simulator.fail(hook_error.message)

    def _emit_event(self, event: str, *args: Any, **kwargs: Any) -> None:
        try:
            self.hooks.emit(event, *args, **kwargs)
        except MazeRuntimeError:
            raise
        except Exception as exc:
            raise MazeRuntimeError(f"Hook '{event}' failed: {exc}", rule="HOOK") from exc

    def _log_step(self, node: Node) -> None:
        scope = self.scopes[-1]
        env_snapshot = scope.snapshot() if self.verbose else None
        self.logger.record(
            scope=scope,
            location=node.location,
            rule=node.__class__.__name__,
            env_snapshot=env_snapshot,
        )
        self._emit_event("before_node", self, node)


def create_executor(
    simulator: MazeSimulator,
    ast: Block,
    *,
    verbose: bool = False,
    hooks: Optional[HookRegistry] = None,
) -> Executor:
    return Executor(simulator, ast, verbose=verbose, hooks=hooks)


@dataclass
class TracebackFrame:
    function: str
    location: Optional[SourceLocation]
    variables: Dict[str, int]


class TracebackFormatter:
    """Renders the robot's call chain at the point a run stopped."""

    def __init__(self, executor: Executor) -> None:
        self.executor = executor

    def build_frames(self) -> List[TracebackFrame]:
        frames: List[TracebackFrame] = []
        for scope in self.executor.scopes:
            entry = self.executor.logger.last_entry_for_frame(scope.frame_id)
            frames.append(
                TracebackFrame(
                    function=scope.name,
                    location=entry.source_location if entry else scope.call_location,
                    variables=dict(scope.values),
                )
            )
        return frames

    def _robot_line(self) -> str:
        simulator = self.executor.simulator
        pos = simulator.position
        return f"Robot at ({pos.x}, {pos.y}) facing {simulator.heading.name.lower()} after {self.executor.steps_taken} step(s)"

    def format_text(self, message: str, verbose: bool) -> str:
        lines = ["Traceback (most recent call last):"]
        for frame in self.build_frames():
            if frame.location is None:
                lines.append(f"  in {frame.function}")
            else:
                lines.append(f"  File \"{frame.location.file}\", line {frame.location.line}, in {frame.function}")
                if frame.location.statement:
                    lines.append(f"    {frame.location.statement}")
            if verbose and frame.variables:
                lines.append("    variables: " + ", ".join(f"{k}={v}" for k, v in frame.variables.items()))
        lines.append(self._robot_line())
        lines.append(f"Error: {message}")
        return "\n".join(lines)

    def to_json(self, message: str) -> str:
        simulator = self.executor.simulator
        frames: List[Dict[str, Any]] = []
        for frame in self.build_frames():
            frames.append(
                {
                    "function": frame.function,
                    "line": frame.location.line if frame.location else None,
                    "statement": frame.location.statement if frame.location else None,
                    "variables": frame.variables,
                }
            )
        data = {
            "error": message,
            "robot": {
                "x": simulator.position.x,
                "y": simulator.position.y,
                "heading": simulator.heading.name.lower(),
                "steps": self.executor.steps_taken,
            },
            "frames": frames,
        }
        return json.dumps(data, indent=2)
