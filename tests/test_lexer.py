import pytest

from lexer import Lexer, MazeParseError, UnexpectedCharacterError, tokenize


def kinds(source):
    return [(t.type, t.value) for t in tokenize(source)]


def test_parens_numbers_and_symbols():
    assert kinds("(repeat 12 (forward))") == [
        ("LPAREN", "("),
        ("SYMBOL", "repeat"),
        ("NUMBER", "12"),
        ("LPAREN", "("),
        ("SYMBOL", "forward"),
        ("RPAREN", ")"),
        ("RPAREN", ")"),
        ("EOF", ""),
    ]


def test_symbols_are_lower_cased_and_allow_hyphens():
    assert kinds("Turn-LEFT distance_to_end x2") == [
        ("SYMBOL", "turn-left"),
        ("SYMBOL", "distance_to_end"),
        ("SYMBOL", "x2"),
        ("EOF", ""),
    ]


@pytest.mark.parametrize("comment", ["; note", "# note", "// note"])
def test_comments_run_to_end_of_line(comment):
    tokens = tokenize(f"(forward) {comment} (ignored)\n(forward)")
    symbols = [t.value for t in tokens if t.type == "SYMBOL"]
    assert symbols == ["forward", "forward"]
    assert tokens[-2].line == 2


def test_line_numbers_count_newlines():
    tokens = tokenize("(forward)\n\n  (turn-left)")
    turn = [t for t in tokens if t.value == "turn-left"][0]
    assert turn.line == 3
    assert turn.column == 4


def test_negative_number_is_lexed_for_parser_to_reject():
    assert kinds("-3") == [("NUMBER", "-3"), ("EOF", "")]


def test_unexpected_character_reports_char_and_line():
    with pytest.raises(UnexpectedCharacterError) as info:
        Lexer("(forward)\n(forward!)").tokenize()
    assert info.value.char == "!"
    assert info.value.line == 2
    assert isinstance(info.value, MazeParseError)


def test_single_slash_is_not_a_comment():
    with pytest.raises(UnexpectedCharacterError):
        tokenize("/ forward")
