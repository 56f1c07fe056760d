from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional


class MazeError(Exception):
    """Base class for maze language errors."""


class MazeParseError(MazeError):
    """Raised when tokenizing or parsing fails."""

    def __init__(self, message: str, *, line: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line


class UnexpectedCharacterError(MazeParseError):
    def __init__(self, char: str, line: int) -> None:
        super().__init__(f"Unexpected character '{char}' at line {line}", line=line)
        self.char = char


class UnclosedListError(MazeParseError):
    def __init__(self, start_line: int) -> None:
        super().__init__(f"Unclosed list starting at line {start_line}", line=start_line)


class TopLevelMustBeListError(MazeParseError):
    pass


class UnknownExpressionError(MazeParseError):
    def __init__(self, head: str, line: int) -> None:
        super().__init__(f"Unknown expression '{head}' at line {line}", line=line)
        self.head = head


@dataclass(frozen=True)
class Token:
    type: str
    value: str
    line: int
    column: int


SYMBOLS = {
    "(": "LPAREN",
    ")": "RPAREN",
}

DIGITS = "0123456789"


class Lexer:
    def __init__(self, text: str, filename: str = "<string>") -> None:
        self.text = text
        self.filename = filename
        self.index = 0
        self.line = 1
        self.column = 1

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        tokens_append = tokens.append
        _advance = self._advance
        symbols = SYMBOLS
        text = self.text
        n = len(text)

        while self.index < n:
            ch: str = text[self.index]
            if ch.isspace():
                _advance()
                continue
            if ch == ";" or ch == "#":
                self._consume_comment()
                continue
            if ch == "/" and self.index + 1 < n and text[self.index + 1] == "/":
                self._consume_comment()
                continue
            if ch in symbols:
                tokens_append(Token(symbols[ch], ch, self.line, self.column))
                _advance()
                continue
            if ch in DIGITS:
                tokens_append(self._consume_number())
                continue
            if ch == "-" and self.index + 1 < n and text[self.index + 1] in DIGITS:
                # Signed literals are lexed so the parser can report them;
                # the language itself has no negative numbers.
                line, col = self.line, self.column
                _advance()
                number = self._consume_number()
                tokens_append(Token("NUMBER", "-" + number.value, line, col))
                continue
            if self._is_identifier_start(ch):
                tokens_append(self._consume_identifier())
                continue
            raise UnexpectedCharacterError(ch, self.line)
        tokens_append(Token("EOF", "", self.line, self.column))
        return tokens

    def _consume_comment(self) -> None:
        text = self.text
        n = len(text)
        _advance = self._advance
        while self.index < n and text[self.index] != "\n":
            _advance()

    def _consume_number(self) -> Token:
        line, col = self.line, self.column
        digits: List[str] = []
        text = self.text
        n = len(text)
        while self.index < n and text[self.index] in DIGITS:
            digits.append(text[self.index])
            self._advance()
        return Token("NUMBER", "".join(digits), line, col)

    def _consume_identifier(self) -> Token:
        line, col = self.line, self.column
        chars: List[str] = []
        text = self.text
        n = len(text)
        while self.index < n and self._is_identifier_part(text[self.index]):
            chars.append(text[self.index])
            self._advance()
        return Token("SYMBOL", "".join(chars).lower(), line, col)

    def _is_identifier_start(self, ch: str) -> bool:
        return ch.isascii() and (ch.isalpha() or ch in "_-")

    def _is_identifier_part(self, ch: str) -> bool:
        return self._is_identifier_start(ch) or ch in DIGITS

    def _advance(self) -> None:
        if self.text[self.index] == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.index += 1


def tokenize(source: str, filename: str = "<string>") -> List[Token]:
    return Lexer(source, filename).tokenize()
