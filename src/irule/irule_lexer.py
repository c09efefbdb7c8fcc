"""
Lexical analyzer for F5 iRules.

This module turns raw iRule source into a lazy stream of tokens:

Classes:
    CharacterStream: Stream abstraction for reading characters with line/column tracking.
    Token: Represents a single token with type, value, and source location.
    Lexer: Converts a CharacterStream into a sequence of tokens.

Features:
    - Skips whitespace, `#` comments and backslash-newline continuations
    - Recognizes:
        * Identifiers, including namespaced commands such as `HTTP::uri`
        * Keywords and domain commands (mapped through `keyword_map`)
        * `$name`, `$ns::name` and `${name}` variables
        * Numbers and dotted IPv4 addresses (with optional `/prefix` or `%rd`)
        * Verbatim double-quoted strings
        * Brace-quoted regular expressions (`{^...}`)
        * Operators and punctuation, longest match first
        * Any other printable run as a plain word, as Tcl does
    - Tracks brace and bracket depth so that a stray `]` or `}` is reported

The lexer never raises. Problems are returned as `ILLEGAL` tokens whose value
describes the error, and are also collected in `errors()`.

Example:
    >>> lexer = Lexer(CharacterStream("set x 5"))
    >>> lexer.next_token()
    Token(SET, 'set')

Exports:
    - CharacterStream
    - Token
    - Lexer
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from irule.irule_constants import TokenKind, keyword_map, operator_map

logger = logging.getLogger(__name__)

WORD_BREAKS = frozenset(" \t\r\n{}[]()$\";,\\")


class CharacterStream:
    """
    A utility for reading characters from a string source with line and column tracking.

    Attributes:
        source (str): The input source string.
        position (int): Current index in the source.
        line (int): Current line number (1-indexed).
        column (int): Current column number (1-indexed).
    """

    def __init__(self, source: str, position: int = 0, line: int = 1, column: int = 1):
        self.source = source
        self.position = position
        self.line = line
        self.column = column
        self._origin = (position, line, column)

    def next(self) -> str:
        """
        Consumes and returns the next character in the stream.

        Returns:
            str: The next character, or an empty string at end of input.
        """
        if self.position >= len(self.source):
            return ""
        char = self.source[self.position]
        if char == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.position += 1
        return char

    def peek(self, offset: int = 0) -> str:
        """
        Returns the character at the given offset from the current position without advancing.

        Args:
            offset (int, optional): Number of characters to look ahead. Defaults to 0.

        Returns:
            str: The character at the offset, or an empty string if out of bounds.
        """
        index = self.position + offset
        if index < 0 or index >= len(self.source):
            return ""
        return self.source[index]

    def end_of_file(self) -> bool:
        return self.position >= len(self.source)

    def seek(self, position: int) -> None:
        """
        Moves the stream to an absolute `position`, recomputing line and column.

        Args:
            position (int): Index into `source`, at or after the starting position.
        """
        segment = self.source[self._origin[0] : position]
        line, column = self._origin[1], self._origin[2]
        newlines = segment.count("\n")
        if newlines:
            line += newlines
            column = len(segment) - segment.rfind("\n")
        else:
            column += len(segment)
        self.position, self.line, self.column = position, line, column


class Token:
    """Represents a single lexical token in an iRule.

    Attributes:
        type (TokenKind): The canonical token kind (e.g. IDENT, NUMBER, EOF).
        value (str): The literal text. Strings and brace regexes drop their delimiters.
        line (int): The 1-based line number where the token starts.
        col (int): The 1-based column number where the token starts.
        pos (int): Offset of the first source character, or -1 when unknown.
    """

    def __init__(
        self, type_: TokenKind | str, value: str, line: int = 0, col: int = 0, pos: int = -1
    ):
        self.type = type_
        self.value = value
        self.line = line
        self.col = col
        self.pos = pos

    @property
    def end_line(self) -> int:
        """Line on which the token's source text ends."""
        return self.line + self.value.count("\n")

    @property
    def width(self) -> int:
        """Number of source characters the token spans, delimiters included."""
        if self.type in (TokenKind.STRING, TokenKind.REGEX):
            return len(self.value) + 2
        return len(self.value)

    def __repr__(self) -> str:
        kind = self.type.value if isinstance(self.type, TokenKind) else self.type
        return f"Token({kind}, {self.value!r})"

    def __eq__(self, other: Any) -> bool:
        return (
            isinstance(other, Token)
            and self.type == other.type
            and self.value == other.value
            and self.line == other.line
            and self.col == other.col
        )

    def __hash__(self) -> int:
        return hash((self.type, self.value, self.line, self.col))


class Lexer:
    """Lexical analyzer for iRules.

    The Lexer pulls characters from a CharacterStream on demand and hands out one
    Token per `next_token()` call. Once the input is exhausted every further call
    returns an EOF token; iterating over the lexer yields exactly one EOF.

    Attributes:
        stream (CharacterStream): The source stream to tokenize.
        brace_depth (int): Currently open `{` count.
        bracket_depth (int): Currently open `[` count.
        comment_lines (list[int]): Lines on which a `#` comment was skipped.
        continued_lines (set[int]): Lines ending in a backslash continuation.
    """

    def __init__(self, stream: CharacterStream) -> None:
        self.stream = stream
        self.brace_depth = 0
        self.bracket_depth = 0
        self.comment_lines: list[int] = []
        self.continued_lines: set[int] = set()
        self._errors: list[str] = []

    def __iter__(self) -> Iterator[Token]:
        while True:
            tok = self.next_token()
            yield tok
            if tok.type == TokenKind.EOF:
                return

    def errors(self) -> list[str]:
        """Returns the lexical diagnostics collected so far."""
        return list(self._errors)

    def peek(self, offset: int = 0) -> str:
        return self.stream.peek(offset)

    def advance(self) -> str:
        return self.stream.next()

    def skip_whitespace(self) -> None:
        """Skips whitespace, comments and backslash-newline continuations."""
        while not self.stream.end_of_file():
            ch = self.peek()
            if ch in " \t\r\n":
                self.advance()
            elif ch == "#":
                self.comment_lines.append(self.stream.line)
                self.skip_comment()
            elif ch == "\\" and (
                self.peek(1) == "\n" or (self.peek(1) == "\r" and self.peek(2) == "\n")
            ):
                self.continued_lines.add(self.stream.line)
                self.advance()
            else:
                break

    def skip_comment(self) -> None:
        """Advances through the stream until the end of a comment line."""
        while not self.stream.end_of_file() and self.peek() != "\n":
            self.advance()

    def illegal(self, message: str, line: int, col: int) -> Token:
        self._errors.append(f"   {message} (line {line})")
        logger.debug("illegal token at %d:%d: %s", line, col, message)
        return Token(TokenKind.ILLEGAL, message, line, col)

    def match_operator(self) -> Token | None:
        """Attempts to match the longest operator from the current position.

        Returns:
            Token | None: A Token if a match is found, otherwise None.
        """
        line, col = self.stream.line, self.stream.column
        max_token = None
        candidate = ""

        for i in range(2):
            ch = self.peek(i)
            if ch == "":
                break
            candidate += ch
            if candidate in operator_map:
                max_token = candidate

        if max_token:
            for _ in range(len(max_token)):
                self.advance()
            return Token(operator_map[max_token], max_token, line, col)

        return None

    def next_token(self) -> Token:
        """Consumes and returns the next Token from the stream.

        Returns:
            Token: The next token. Lexical problems come back as ILLEGAL tokens.
        """
        self.skip_whitespace()
        start = self.stream.position
        token = self.scan(self.stream.line, self.stream.column)
        token.pos = start
        return token

    def seek(self, position: int) -> None:
        """Resumes scanning at `position`. Depth counters are left to the caller."""
        self.stream.seek(position)

    def scan(self, line: int, col: int) -> Token:
        if self.stream.end_of_file():
            return Token(TokenKind.EOF, "", line, col)

        ch = self.peek()

        # 1. Grouping punctuation with depth bookkeeping
        if ch == "{":
            if self.peek(1) == "^":
                return self.read_braced_regex(line, col)
            self.advance()
            self.brace_depth += 1
            return Token(TokenKind.LBRACE, ch, line, col)
        if ch == "[":
            self.advance()
            self.bracket_depth += 1
            return Token(TokenKind.LBRACKET, ch, line, col)
        if ch == "}":
            self.advance()
            if self.brace_depth == 0:
                return self.illegal("Closing '}' without opening one", line, col)
            self.brace_depth -= 1
            return Token(TokenKind.RBRACE, ch, line, col)
        if ch == "]":
            self.advance()
            if self.bracket_depth == 0:
                return self.illegal("Closing ']' without opening one", line, col)
            self.bracket_depth -= 1
            return Token(TokenKind.RBRACKET, ch, line, col)

        # 2. Variables and strings
        if ch == "$":
            return self.read_variable(line, col)
        if ch == '"':
            return self.read_string(line, col)

        # 3. `+` stays a plain word so it can fold into command arguments
        if ch == "+":
            self.advance()
            return Token(TokenKind.IDENT, ch, line, col)

        # 4. Numbers and IP addresses
        if ch.isdigit() or (ch == "-" and self.peek(1).isdigit()):
            return self.read_number(line, col)

        # 5. Identifiers, keywords and commands
        if ch.isalpha() or ch == "_":
            return self.read_identifier(line, col)
        if ch == ":" and self.peek(1) == ":" and (self.peek(2).isalpha() or self.peek(2) == "_"):
            return self.read_identifier(line, col)

        # 6. Backslash escapes outside strings are ordinary words
        if ch == "\\" and self.peek(1) not in ("", "\n"):
            text = self.advance() + self.advance()
            return Token(TokenKind.IDENT, text, line, col)

        # 7. Compound or symbolic operator
        token = self.match_operator()
        if token:
            return token

        # 8. Any other printable run is an ordinary Tcl word
        if ch.isprintable() and ch not in WORD_BREAKS:
            text = ""
            while not self.stream.end_of_file() and self.peek() not in WORD_BREAKS:
                text += self.advance()
            return Token(TokenKind.IDENT, text, line, col)

        self.advance()
        return self.illegal(f"Unexpected character {ch!r}", line, col)

    def read_identifier(self, line: int, col: int) -> Token:
        text = ""
        while not self.stream.end_of_file():
            ch = self.peek()
            if ch.isalnum() or ch in "_:.":
                text += self.advance()
            elif ch == "-" and text and self.peek(1).isalnum():
                text += self.advance()
            else:
                break
        return Token(keyword_map.get(text, TokenKind.IDENT), text, line, col)

    def read_number(self, line: int, col: int) -> Token:
        text = ""
        if self.peek() == "-":
            text += self.advance()
        while self.peek().isdigit():
            text += self.advance()

        if self.peek() == "." and self.peek(1).isdigit():
            while self.peek().isdigit() or (self.peek() == "." and self.peek(1).isdigit()):
                text += self.advance()
            if text.count(".") == 3 and not text.startswith("-"):
                if self.peek() in ("/", "%") and self.peek(1).isdigit():
                    text += self.advance()
                    while self.peek().isdigit():
                        text += self.advance()
                return Token(TokenKind.IP_ADDRESS, text, line, col)
            return Token(TokenKind.NUMBER, text, line, col)

        # Words such as `3des` or `10s` that merely start with digits
        if self.peek().isalpha() or self.peek() == "_":
            while not self.stream.end_of_file() and (
                self.peek().isalnum() or self.peek() in "_:."
            ):
                text += self.advance()
            return Token(TokenKind.IDENT, text, line, col)

        return Token(TokenKind.NUMBER, text, line, col)

    def read_variable(self, line: int, col: int) -> Token:
        self.advance()  # $
        if self.peek() == "{":
            offset = 1
            while self.peek(offset) not in ("", "}", "\n"):
                offset += 1
            if self.peek(offset) == "}" and offset > 1:
                text = "$"
                for _ in range(offset + 1):
                    text += self.advance()
                return Token(TokenKind.VARIABLE, text, line, col)
            return Token(TokenKind.DOLLAR, "$", line, col)

        text = "$"
        while not self.stream.end_of_file():
            ch = self.peek()
            if ch.isalnum() or ch == "_":
                text += self.advance()
            elif ch == ":" and self.peek(1) == ":" and (self.peek(2).isalnum() or self.peek(2) == "_"):
                text += self.advance() + self.advance()
            else:
                break
        if text == "$":
            return Token(TokenKind.DOLLAR, text, line, col)
        return Token(TokenKind.VARIABLE, text, line, col)

    def read_string(self, line: int, col: int) -> Token:
        self.advance()  # opening quote
        body = ""
        while not self.stream.end_of_file():
            ch = self.peek()
            if ch == "\\":
                body += self.advance()
                if not self.stream.end_of_file():
                    body += self.advance()
            elif ch == '"':
                self.advance()
                return Token(TokenKind.STRING, body, line, col)
            else:
                body += self.advance()
        return self.illegal(f"Unterminated string starting on line {line}", line, col)

    def read_braced_regex(self, line: int, col: int) -> Token:
        self.advance()  # {
        depth = 1
        body = ""
        while not self.stream.end_of_file():
            ch = self.peek()
            if ch == "\\":
                body += self.advance()
                if not self.stream.end_of_file():
                    body += self.advance()
                continue
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    self.advance()
                    return Token(TokenKind.REGEX, body, line, col)
            body += self.advance()
        return self.illegal(f"Unterminated regex starting on line {line}", line, col)


__all__ = ["CharacterStream", "Lexer", "Token"]
