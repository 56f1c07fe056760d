import pytest
from hypothesis import given, strategies as st

from lexer import MazeParseError, TopLevelMustBeListError, UnclosedListError, UnknownExpressionError
from parser import (
    Block,
    Call,
    CloserCondition,
    Command,
    DistanceToEnd,
    Function,
    If,
    NumberLiteral,
    Parser,
    Repeat,
    SensorCondition,
    Set,
    SExpr,
    SourceLocation,
    VariableReference,
    parse,
    unparse,
)

FORWARD = Command(kind="forward")
LEFT = Command(kind="turn_left")
RIGHT = Command(kind="turn_right")


def test_root_is_block():
    ast = parse("")
    assert isinstance(ast, Block)
    assert ast.statements == ()


@pytest.mark.parametrize("source", ["(forward)", "(move)", "(move-forward)", "(FORWARD)"])
def test_forward_aliases(source):
    assert parse(source).statements == (FORWARD,)


@pytest.mark.parametrize(
    "source, expected",
    [
        ("(turn-left)", LEFT),
        ("(left)", LEFT),
        ("(turn left)", LEFT),
        ("(turn-right)", RIGHT),
        ("(right)", RIGHT),
        ("(turn right)", RIGHT),
    ],
)
def test_turn_forms(source, expected):
    assert parse(source).statements == (expected,)


def test_turn_requires_direction():
    with pytest.raises(MazeParseError, match="turn requires a direction"):
        parse("(turn)")
    with pytest.raises(MazeParseError, match="Unknown turn direction 'up'"):
        parse("(turn up)")


def test_statements_keep_source_lines():
    ast = parse("(forward)\n(forward)\n(turn right)\n(forward)")
    assert [s.line for s in ast.statements] == [1, 2, 3, 4]
    assert ast.statements[2].location.statement == "(turn right)"


def test_comments_are_ignored():
    ast = parse("; go\n(forward) # again\n// done\n(forward)")
    assert ast.statements == (FORWARD, FORWARD)


def test_repeat_with_literal_variable_and_distance_counts():
    ast = parse("(repeat 3 (forward) (turn-left)) (repeat n (forward)) (repeat (distance-to-end) (forward))")
    first, second, third = ast.statements
    assert first == Repeat(count=NumberLiteral(value=3), body=(FORWARD, LEFT))
    assert second == Repeat(count=VariableReference(name="n"), body=(FORWARD,))
    assert third == Repeat(count=DistanceToEnd(), body=(FORWARD,))


def test_repeat_requires_count():
    with pytest.raises(MazeParseError, match="repeat requires a count at line 1"):
        parse("(repeat)")


@pytest.mark.parametrize("literal", ["-2", "-0", "-00"])
def test_negative_literal_is_rejected(literal):
    with pytest.raises(MazeParseError, match="non-negative") as info:
        parse(f"\n(repeat {literal} (forward))")
    assert info.value.line == 2


def test_non_expression_node_is_a_parse_error():
    location = SourceLocation(file="<string>", line=3, column=1, statement="")
    with pytest.raises(MazeParseError, match="Invalid expression at line 3"):
        Parser([])._expression(SExpr(location=location))


def test_if_conditions():
    ast = parse(
        "(if (sensor front) (turn-left))"
        "(if (not (sensor left)) (forward))"
        "(if (closer right) (right) (forward))"
        "(if (not (not (closer back))))"
    )
    assert ast.statements == (
        If(condition=SensorCondition(direction="front"), body=(LEFT,)),
        If(condition=SensorCondition(direction="left", negated=True), body=(FORWARD,)),
        If(condition=CloserCondition(direction="right"), body=(RIGHT, FORWARD)),
        If(condition=CloserCondition(direction="back"), body=()),
    )


@pytest.mark.parametrize(
    "source, message",
    [
        ("(if)", "if requires a condition"),
        ("(if sensor (forward))", "Invalid condition"),
        ("(if (wall front) (forward))", "Unknown condition 'wall'"),
        ("(if (sensor up) (forward))", "Unknown sensor direction 'up'"),
        ("(if (sensor) (forward))", "sensor requires a direction"),
        ("(if (not (sensor front) (sensor back)) (forward))", "not expects a single condition"),
    ],
)
def test_bad_conditions(source, message):
    with pytest.raises(MazeParseError, match=message):
        parse(source)


def test_set_and_let():
    ast = parse("(set n 3) (let m n) (set d (distance))")
    assert ast.statements == (
        Set(name="n", value=NumberLiteral(value=3)),
        Set(name="m", value=VariableReference(name="n")),
        Set(name="d", value=DistanceToEnd()),
    )


@pytest.mark.parametrize("source", ["(set n)", "(set n 1 2)", "(set 4 1)"])
def test_set_requires_name_and_one_value(source):
    with pytest.raises(MazeParseError):
        parse(source)


@pytest.mark.parametrize("keyword", ["function", "def", "define", "func"])
def test_function_definitions(keyword):
    ast = parse(f"({keyword} walk (k) (repeat k (forward)))")
    assert ast.statements == (
        Function(
            name="walk",
            params=("k",),
            body=(Repeat(count=VariableReference(name="k"), body=(FORWARD,)),),
        ),
    )


@pytest.mark.parametrize(
    "source, message",
    [
        ("(function walk)", "requires a name and parameter list"),
        ("(function 3 ())", "function name must be a symbol"),
        ("(function walk k (forward))", "parameters must be a list"),
        ("(function walk (1) (forward))", "parameter must be a symbol"),
        ("(function walk (a a) (forward))", "Duplicate parameter 'a'"),
    ],
)
def test_malformed_function_signatures(source, message):
    with pytest.raises(MazeParseError, match=message):
        parse(source)


def test_explicit_and_implicit_calls():
    ast = parse("(call walk 2 n) (walk (distance-to-end)) (jump)")
    assert ast.statements == (
        Call(name="walk", args=(NumberLiteral(value=2), VariableReference(name="n"))),
        Call(name="walk", args=(DistanceToEnd(),)),
        Call(name="jump", args=()),
    )


def test_call_requires_name():
    with pytest.raises(MazeParseError, match="call requires a function name"):
        parse("(call)")


def test_unknown_nested_expression():
    with pytest.raises(UnknownExpressionError) as info:
        parse("(set n\n  (speed 3))")
    assert info.value.head == "speed"
    assert info.value.line == 2


def test_distance_takes_no_arguments():
    with pytest.raises(MazeParseError, match="does not take arguments"):
        parse("(set n (distance-to-end 2))")


def test_unclosed_list_reports_start_line():
    with pytest.raises(UnclosedListError) as info:
        parse("(forward)\n(repeat 2\n  (forward)")
    assert info.value.line == 2


def test_stray_close_paren():
    with pytest.raises(MazeParseError, match=r"Unexpected '\)'"):
        parse("(forward))")


@pytest.mark.parametrize("source", ["forward", "3", "(forward) left"])
def test_top_level_must_be_list(source):
    with pytest.raises(TopLevelMustBeListError):
        parse(source)


def test_body_statements_must_be_lists():
    with pytest.raises(TopLevelMustBeListError):
        parse("(repeat 2 forward)")


def test_empty_and_non_symbol_heads():
    with pytest.raises(MazeParseError, match="Empty expression"):
        parse("()")
    with pytest.raises(MazeParseError, match="must start with a symbol"):
        parse("(3 forward)")


def test_ast_is_immutable():
    ast = parse("(forward)")
    with pytest.raises(AttributeError):
        ast.statements[0].kind = "turn_left"


def test_unparse_canonical_form():
    ast = parse("(def walk (k) (repeat k (move)))\n(if (not (sensor front)) (walk 2))")
    assert unparse(ast) == (
        "(function walk (k)\n"
        "  (repeat k\n"
        "    (forward)))\n"
        "(if (not (sensor front))\n"
        "  (call walk 2))"
    )


def test_command_only_program_round_trips_to_source():
    source = "(forward)\n(turn-left)\n(forward)\n(turn-right)"
    assert unparse(parse(source)) == source


# ---- generated programs ----

names = st.sampled_from(["a", "b", "steps", "walk", "go-on", "x_1"])
directions = st.sampled_from(["front", "back", "left", "right"])
expressions = st.one_of(
    st.builds(NumberLiteral, value=st.integers(min_value=0, max_value=50)),
    st.builds(VariableReference, name=names),
    st.just(DistanceToEnd()),
)
conditions = st.one_of(
    st.builds(SensorCondition, direction=directions, negated=st.booleans()),
    st.builds(CloserCondition, direction=directions, negated=st.booleans()),
)
commands = st.sampled_from([FORWARD, LEFT, RIGHT])


def bodies(children):
    return st.lists(children, max_size=3).map(tuple)


statements = st.recursive(
    st.one_of(
        commands,
        st.builds(Set, name=names, value=expressions),
        st.builds(Call, name=names, args=st.lists(expressions, max_size=3).map(tuple)),
    ),
    lambda children: st.one_of(
        st.builds(Repeat, count=expressions, body=bodies(children)),
        st.builds(If, condition=conditions, body=bodies(children)),
        st.builds(
            Function,
            name=names,
            params=st.lists(names, max_size=3, unique=True).map(tuple),
            body=bodies(children),
        ),
    ),
    max_leaves=12,
)


@given(st.lists(statements, max_size=6).map(lambda items: Block(statements=tuple(items))))
def test_unparse_then_parse_is_identity(ast):
    assert parse(unparse(ast)) == ast
