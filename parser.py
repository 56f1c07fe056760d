from __future__ import annotations
import dataclasses
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from lexer import (
    Lexer,
    MazeParseError,
    Token,
    TopLevelMustBeListError,
    UnclosedListError,
    UnknownExpressionError,
)


@dataclass(frozen=True)
class SourceLocation:
    file: str
    line: int
    column: int
    statement: str


# ---- S-expressions (reader output) ----


@dataclass(frozen=True)
class SExpr:
    location: SourceLocation


@dataclass(frozen=True)
class ListExpr(SExpr):
    items: Tuple[SExpr, ...]


@dataclass(frozen=True)
class SymbolExpr(SExpr):
    value: str


@dataclass(frozen=True)
class NumberExpr(SExpr):
    value: int


# ---- AST ----
# Locations are carried for error reporting and line highlighting only and
# never take part in node equality.


@dataclass(frozen=True)
class Node:
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False, kw_only=True)

    @property
    def line(self) -> Optional[int]:
        return self.location.line if self.location else None


class Statement(Node):
    pass


class Expression(Node):
    pass


COMMAND_FORWARD = "forward"
COMMAND_TURN_LEFT = "turn_left"
COMMAND_TURN_RIGHT = "turn_right"

DIRECTIONS = ("front", "back", "left", "right")


@dataclass(frozen=True)
class Command(Statement):
    kind: str


@dataclass(frozen=True)
class NumberLiteral(Expression):
    value: int


@dataclass(frozen=True)
class VariableReference(Expression):
    name: str


@dataclass(frozen=True)
class DistanceToEnd(Expression):
    pass


@dataclass(frozen=True)
class SensorCondition(Node):
    direction: str
    negated: bool = False


@dataclass(frozen=True)
class CloserCondition(Node):
    direction: str
    negated: bool = False


Condition = Union[SensorCondition, CloserCondition]


@dataclass(frozen=True)
class Block(Statement):
    statements: Tuple[Statement, ...]


@dataclass(frozen=True)
class Repeat(Statement):
    count: Expression
    body: Tuple[Statement, ...]


@dataclass(frozen=True)
class If(Statement):
    condition: Condition
    body: Tuple[Statement, ...]


@dataclass(frozen=True)
class Set(Statement):
    name: str
    value: Expression


@dataclass(frozen=True)
class Function(Statement):
    name: str
    params: Tuple[str, ...]
    body: Tuple[Statement, ...]


@dataclass(frozen=True)
class Call(Statement):
    name: str
    args: Tuple[Expression, ...]


FORWARD_HEADS = {"forward", "move", "move-forward"}
SET_HEADS = {"set", "let"}
FUNCTION_HEADS = {"function", "def", "define", "func"}
DISTANCE_HEADS = {"distance-to-end", "distance"}


class Parser:
    def __init__(
        self,
        tokens: List[Token],
        filename: str = "<string>",
        source_lines: Optional[List[str]] = None,
    ):
        self.tokens = tokens
        self.filename = filename
        self.source_lines = source_lines or []
        self.index = 0

    def parse(self) -> Block:
        statements: List[Statement] = []
        first = self._peek()
        while self._peek().type != "EOF":
            expr = self._read_expression()
            if not isinstance(expr, ListExpr):
                raise TopLevelMustBeListError(
                    f"Top level expressions must be lists, found '{self._describe(expr)}' at line {expr.location.line}",
                    line=expr.location.line,
                )
            statements.append(self._transform(expr))
        return Block(statements=tuple(statements), location=self._location_from_token(first))

    # ---- reader ----

    def _read_expression(self) -> SExpr:
        token = self._peek()
        if token.type == "LPAREN":
            return self._read_list()
        if token.type == "RPAREN":
            raise MazeParseError(f"Unexpected ')' at line {token.line}", line=token.line)
        if token.type == "EOF":
            raise MazeParseError(f"Unexpected end of input at line {token.line}", line=token.line)
        self.index += 1
        location = self._location_from_token(token)
        if token.type == "NUMBER":
            # Checked on the text so "-0" is rejected too.
            if token.value.startswith("-"):
                raise MazeParseError(f"Numbers must be non-negative at line {token.line}", line=token.line)
            return NumberExpr(location=location, value=int(token.value, 10))
        return SymbolExpr(location=location, value=token.value)

    def _read_list(self) -> ListExpr:
        start = self._consume("LPAREN")
        items: List[SExpr] = []
        while True:
            token = self._peek()
            if token.type == "EOF":
                raise UnclosedListError(start.line)
            if token.type == "RPAREN":
                self.index += 1
                break
            items.append(self._read_expression())
        return ListExpr(location=self._location_from_token(start), items=tuple(items))

    # ---- transformer ----

    def _transform(self, expr: SExpr) -> Statement:
        if not isinstance(expr, ListExpr):
            raise TopLevelMustBeListError(
                f"Statements must be lists, found '{self._describe(expr)}' at line {expr.location.line}",
                line=expr.location.line,
            )
        head = self._head_symbol(expr)
        rest = expr.items[1:]
        name = head.value
        location = head.location

        if name in FORWARD_HEADS:
            return Command(kind=COMMAND_FORWARD, location=location)
        if name == "turn-left":
            return Command(kind=COMMAND_TURN_LEFT, location=location)
        if name == "turn-right":
            return Command(kind=COMMAND_TURN_RIGHT, location=location)
        if name == "left" or name == "right":
            return self._turn(rest, location, fallback=name)
        if name == "turn":
            return self._turn(rest, location, fallback=None)
        if name == "repeat":
            return self._repeat(rest, location)
        if name == "if":
            return self._if(rest, location)
        if name in SET_HEADS:
            return self._set(rest, location)
        if name in FUNCTION_HEADS:
            return self._function(rest, location)
        if name == "call":
            if not rest or not isinstance(rest[0], SymbolExpr):
                raise MazeParseError(f"call requires a function name at line {location.line}", line=location.line)
            return self._call(rest[0], rest[1:], location)
        # Anything else is a call to a user function, resolved when executed.
        return self._call(head, rest, location)

    def _turn(self, rest: Sequence[SExpr], location: SourceLocation, *, fallback: Optional[str]) -> Command:
        if not rest:
            if fallback is None:
                raise MazeParseError(f"turn requires a direction at line {location.line}", line=location.line)
            direction = fallback
        else:
            arg = rest[0]
            if not isinstance(arg, SymbolExpr):
                raise MazeParseError(f"Invalid turn direction at line {arg.location.line}", line=arg.location.line)
            direction = arg.value
        if direction == "left":
            return Command(kind=COMMAND_TURN_LEFT, location=location)
        if direction == "right":
            return Command(kind=COMMAND_TURN_RIGHT, location=location)
        raise MazeParseError(f"Unknown turn direction '{direction}' at line {location.line}", line=location.line)

    def _repeat(self, rest: Sequence[SExpr], location: SourceLocation) -> Repeat:
        if not rest:
            raise MazeParseError(f"repeat requires a count at line {location.line}", line=location.line)
        count = self._expression(rest[0])
        body = self._body(rest[1:])
        return Repeat(count=count, body=body, location=location)

    def _if(self, rest: Sequence[SExpr], location: SourceLocation) -> If:
        if not rest:
            raise MazeParseError(f"if requires a condition at line {location.line}", line=location.line)
        condition = self._condition(rest[0])
        return If(condition=condition, body=self._body(rest[1:]), location=location)

    def _condition(self, expr: SExpr) -> Condition:
        if not isinstance(expr, ListExpr):
            raise MazeParseError(f"Invalid condition at line {expr.location.line}", line=expr.location.line)
        head = self._head_symbol(expr)
        line = head.location.line
        if head.value == "sensor":
            return SensorCondition(direction=self._direction(expr.items[1:], head), location=head.location)
        if head.value == "closer":
            return CloserCondition(direction=self._direction(expr.items[1:], head), location=head.location)
        if head.value == "not":
            if len(expr.items) != 2:
                raise MazeParseError(f"not expects a single condition at line {line}", line=line)
            inner = self._condition(expr.items[1])
            return dataclasses.replace(inner, negated=not inner.negated)
        raise MazeParseError(f"Unknown condition '{head.value}' at line {line}", line=line)

    def _direction(self, items: Sequence[SExpr], head: SymbolExpr) -> str:
        line = head.location.line
        if not items:
            raise MazeParseError(f"{head.value} requires a direction at line {line}", line=line)
        if len(items) > 1:
            raise MazeParseError(f"{head.value} expects a single direction at line {line}", line=line)
        arg = items[0]
        if not isinstance(arg, SymbolExpr):
            raise MazeParseError(f"Invalid sensor direction at line {arg.location.line}", line=arg.location.line)
        if arg.value not in DIRECTIONS:
            raise MazeParseError(
                f"Unknown sensor direction '{arg.value}' at line {arg.location.line}", line=arg.location.line
            )
        return arg.value

    def _set(self, rest: Sequence[SExpr], location: SourceLocation) -> Set:
        if len(rest) != 2:
            raise MazeParseError(
                f"set requires a variable name and a single value at line {location.line}", line=location.line
            )
        name = rest[0]
        if not isinstance(name, SymbolExpr):
            raise MazeParseError(f"set requires a variable name at line {name.location.line}", line=name.location.line)
        return Set(name=name.value, value=self._expression(rest[1]), location=location)

    def _function(self, rest: Sequence[SExpr], location: SourceLocation) -> Function:
        if len(rest) < 2:
            raise MazeParseError(
                f"function requires a name and parameter list at line {location.line}", line=location.line
            )
        name, params_expr = rest[0], rest[1]
        if not isinstance(name, SymbolExpr):
            raise MazeParseError(
                f"function name must be a symbol at line {name.location.line}", line=name.location.line
            )
        if not isinstance(params_expr, ListExpr):
            raise MazeParseError(
                f"function parameters must be a list at line {params_expr.location.line}",
                line=params_expr.location.line,
            )
        params: List[str] = []
        for param in params_expr.items:
            if not isinstance(param, SymbolExpr):
                raise MazeParseError(
                    f"function parameter must be a symbol at line {param.location.line}", line=param.location.line
                )
            if param.value in params:
                raise MazeParseError(
                    f"Duplicate parameter '{param.value}' at line {param.location.line}", line=param.location.line
                )
            params.append(param.value)
        return Function(name=name.value, params=tuple(params), body=self._body(rest[2:]), location=location)

    def _call(self, name: SymbolExpr, args: Sequence[SExpr], location: SourceLocation) -> Call:
        return Call(name=name.value, args=tuple(self._expression(arg) for arg in args), location=location)

    def _body(self, items: Sequence[SExpr]) -> Tuple[Statement, ...]:
        return tuple(self._transform(item) for item in items)

    def _expression(self, expr: SExpr) -> Expression:
        if isinstance(expr, NumberExpr):
            return NumberLiteral(value=expr.value, location=expr.location)
        if isinstance(expr, SymbolExpr):
            return VariableReference(name=expr.value, location=expr.location)
        if not isinstance(expr, ListExpr):
            raise MazeParseError(f"Invalid expression at line {expr.location.line}", line=expr.location.line)
        head = self._head_symbol(expr)
        if head.value in DISTANCE_HEADS:
            if len(expr.items) != 1:
                raise MazeParseError(
                    f"{head.value} does not take arguments at line {head.location.line}", line=head.location.line
                )
            return DistanceToEnd(location=expr.location)
        raise UnknownExpressionError(head.value, head.location.line)

    # ---- helpers ----

    def _head_symbol(self, expr: ListExpr) -> SymbolExpr:
        line = expr.location.line
        if not expr.items:
            raise MazeParseError(f"Empty expression at line {line}", line=line)
        head = expr.items[0]
        if not isinstance(head, SymbolExpr):
            raise MazeParseError(f"Expression must start with a symbol at line {line}", line=line)
        return head

    def _describe(self, expr: SExpr) -> str:
        if isinstance(expr, (SymbolExpr, NumberExpr)):
            return str(expr.value)
        return "(...)"

    def _consume(self, token_type: str) -> Token:
        token = self._peek()
        if token.type != token_type:
            raise MazeParseError(
                f"Expected token {token_type} but found {token.type} at line {token.line}", line=token.line
            )
        self.index += 1
        return token

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _location_from_token(self, token: Token) -> SourceLocation:
        line_index = token.line - 1
        statement = ""
        if 0 <= line_index < len(self.source_lines):
            statement = self.source_lines[line_index].strip()
        return SourceLocation(file=self.filename, line=token.line, column=token.column, statement=statement)


def parse(source: str, filename: str = "<string>") -> Block:
    tokens = Lexer(source, filename).tokenize()
    return Parser(tokens, filename, source.splitlines()).parse()


# ---- unparser ----

COMMAND_SOURCE = {
    COMMAND_FORWARD: "(forward)",
    COMMAND_TURN_LEFT: "(turn-left)",
    COMMAND_TURN_RIGHT: "(turn-right)",
}


def unparse(node: Node, indent: int = 0) -> str:
    """Render an AST back to canonical source text.

    A ``Block`` renders one statement per line; nested bodies are indented by
    two spaces per level. ``parse(unparse(ast)) == ast`` holds for any AST.
    """
    pad = "  " * indent
    if isinstance(node, Block):
        return "\n".join(unparse(statement, indent) for statement in node.statements)
    if isinstance(node, Command):
        return pad + COMMAND_SOURCE[node.kind]
    if isinstance(node, Repeat):
        return _unparse_compound(f"(repeat {unparse(node.count)}", node.body, indent)
    if isinstance(node, If):
        return _unparse_compound(f"(if {unparse(node.condition)}", node.body, indent)
    if isinstance(node, Set):
        return f"{pad}(set {node.name} {unparse(node.value)})"
    if isinstance(node, Function):
        return _unparse_compound(f"(function {node.name} ({' '.join(node.params)})", node.body, indent)
    if isinstance(node, Call):
        parts = ["call", node.name] + [unparse(arg) for arg in node.args]
        return f"{pad}({' '.join(parts)})"
    if isinstance(node, (SensorCondition, CloserCondition)):
        head = "sensor" if isinstance(node, SensorCondition) else "closer"
        text = f"({head} {node.direction})"
        return f"(not {text})" if node.negated else text
    if isinstance(node, NumberLiteral):
        return str(node.value)
    if isinstance(node, VariableReference):
        return node.name
    if isinstance(node, DistanceToEnd):
        return "(distance-to-end)"
    raise TypeError(f"Cannot unparse {node.__class__.__name__}")


def _unparse_compound(opening: str, body: Sequence[Statement], indent: int) -> str:
    pad = "  " * indent
    if not body:
        return f"{pad}{opening})"
    lines = [pad + opening]
    lines.extend(unparse(statement, indent + 1) for statement in body)
    return "\n".join(lines) + ")"
