"""
iRule Static Parser

Parses F5 iRule source into an abstract syntax tree while collecting diagnostics.

The parser is a Pratt (top-down operator precedence) parser with a two-token
lookahead. Unlike a compiler front end it never stops at the first problem: every
syntax and validation error becomes a line-stamped diagnostic string, the parser
recovers at the next safe token and keeps going. A program is accepted when the
diagnostic list is empty.

Supported Constructs
--------------------
- Statements:
    * `when EVENT [priority N] { ... }` with the recognized event set
    * `if` / `elseif` / `else` with optional `then`
    * `switch [-glob|-regex|-exact|-nocase] [--] value { pattern {..} ... }`
    * `foreach var list { ... }`, `set name value`, `return [value]`
    * `ltm rule NAME { ... }`, `pool NAME`, `node ADDR [PORT]`
    * Generic Tcl command invocations `cmd arg arg ...`

- Expressions:
    * Literals: numbers, strings (with `$var` / `[cmd]` interpolation), booleans,
      IPv4 addresses, `{^regex}` patterns
    * `$var`, `${var}`, `$ns::var`, `$arr(key)`
    * Prefix `! - *` and `not`, infix arithmetic, comparison, string-match and
      logical operators
    * `[cmd ...]` command substitution, `{...}` lists and `{k v, k v}` hashes
    * Domain commands: `HTTP::`, `SSL::`, `X509::`, `IP::`, `LB::`,
      `string`, `class`, `regsub`

Line Structure
--------------
The token stream carries no newline tokens. A command ends where the next token
starts on a later line, unless the lines are joined by a backslash continuation
or the parser is inside brackets, parentheses, a list or an `if` condition.

Validation
----------
- Operand type compatibility of infix operators (`irule_checks`)
- Identifier legality in variable, header and standalone contexts
- `switch` option, pattern and default checks; `regsub`, `class` and `string`
  argument shapes; `HTTP::header` names
- `node` and `pool` may not be combined in the same block (`irule_symbols`)
- Brace and bracket balance at end of input
- Optionally, references to undeclared variables (`strict_variables`)

Entry Points
------------
- `Parser(lexer).parse_program()` followed by `errors()`
- `parse(source)`: convenience wrapper returning `(program, errors)`
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from types import MappingProxyType

from irule.irule_ast import (
    ArrayLiteral,
    BlockStatement,
    Boolean,
    BracketExpression,
    CallExpression,
    CaseStatement,
    ClassCommand,
    CommandInvocation,
    CommandSubstitution,
    Expression,
    ExpressionStatement,
    ForEachStatement,
    GlobPattern,
    HashLiteral,
    HttpExpression,
    Identifier,
    IfStatement,
    IndexExpression,
    InfixExpression,
    InterpolatedString,
    InvalidIdentifier,
    IpAddressLiteral,
    IpExpression,
    ListLiteral,
    LoadBalancerExpression,
    LtmRule,
    MapLiteral,
    MultiPattern,
    NodeStatement,
    NumberLiteral,
    ParenthesizedExpression,
    PrefixExpression,
    Program,
    RegexPattern,
    RegsubExpression,
    ReturnStatement,
    SetStatement,
    SSLExpression,
    Statement,
    StringLiteral,
    StringOperation,
    SwitchStatement,
    WhenExpression,
)
from irule.irule_checks import (
    is_reserved_keyword,
    is_valid_header_name,
    is_valid_irule_identifier,
    is_valid_operator_for_types,
    looks_like_glob,
    looks_like_regex,
)
from irule.irule_constants import (
    CLASS_MATCH_OPERATORS,
    CLASS_MATCH_OPTIONS,
    CLASS_SUBCOMMANDS,
    HTTP_HEADER_SUBCOMMANDS,
    HTTP_KEYWORDS,
    IP_KEYWORDS,
    LB_KEYWORDS,
    REGSUB_FLAGS,
    SSL_KEYWORDS,
    STRING_SUBCOMMANDS,
    SWITCH_OPTIONS,
    WHEN_EVENTS,
    X509_KEYWORDS,
    TokenKind,
)
from irule.irule_lexer import CharacterStream, Lexer, Token
from irule.irule_symbols import SymbolKind, SymbolTable

logger = logging.getLogger(__name__)

# Binding powers, lowest to highest.
LOWEST = 1
EQUALS = 2
LESSGREATER = 3
SUM = 4
PRODUCT = 5
PREFIX = 6
CALL = 7
LOGICAL = 8
CONTAINS = 9

PRECEDENCES = MappingProxyType(
    {
        TokenKind.EQ: EQUALS,
        TokenKind.NOT_EQ: EQUALS,
        TokenKind.STARTS_WITH: EQUALS,
        TokenKind.ENDS_WITH: EQUALS,
        TokenKind.MATCHES: EQUALS,
        TokenKind.LT: LESSGREATER,
        TokenKind.GT: LESSGREATER,
        TokenKind.LT_EQ: LESSGREATER,
        TokenKind.GT_EQ: LESSGREATER,
        TokenKind.PLUS: SUM,
        TokenKind.MINUS: SUM,
        TokenKind.ASTERISK: PRODUCT,
        TokenKind.SLASH: PRODUCT,
        TokenKind.PERCENT: PRODUCT,
        TokenKind.LPAREN: CALL,
        TokenKind.LBRACKET: CALL,
        TokenKind.AND: LOGICAL,
        TokenKind.OR: LOGICAL,
        TokenKind.CONTAINS: CONTAINS,
    }
)

# Tokens that end the current command.
TERMINATORS = frozenset(
    {TokenKind.SEMICOLON, TokenKind.RBRACE, TokenKind.RBRACKET, TokenKind.EOF}
)

# Tokens that start a value inside a `{...}` list. Everything else is a bare word there.
LIST_VALUE_KINDS = frozenset(
    {
        TokenKind.NUMBER,
        TokenKind.STRING,
        TokenKind.VARIABLE,
        TokenKind.LBRACKET,
        TokenKind.LBRACE,
        TokenKind.IP_ADDRESS,
        TokenKind.TRUE,
        TokenKind.FALSE,
        TokenKind.REGEX,
    }
)

# Keywords that only act as commands in command position.
COMMAND_ONLY_KINDS = frozenset(
    {TokenKind.SET, TokenKind.WHEN, TokenKind.SWITCH, TokenKind.CLASS}
)

# Commands whose braced arguments are scripts rather than lists.
SCRIPT_COMMANDS = frozenset({"after", "catch", "eval", "for", "proc", "time", "uplevel", "while"})

# `HTTP::header` subcommands that take a header name as their next argument.
HEADER_NAME_SUBCOMMANDS = frozenset(
    {"value", "values", "exists", "insert", "remove", "replace", "count", "lws"}
)

_EMBEDDED_VARIABLE = re.compile(r"\$(\{[^}\n]+\}|(?:::)?[A-Za-z0-9_]+(?:::[A-Za-z0-9_]+)*)")

PrefixParseFn = Callable[[], "Expression | None"]
InfixParseFn = Callable[[Expression], "Expression | None"]


def _variable_name(literal: str) -> str:
    name = literal[1:] if literal.startswith("$") else literal
    if name.startswith("{") and name.endswith("}"):
        name = name[1:-1]
    return name


def _matching_close(text: str, start: int, opener: str, closer: str) -> int:
    """Index of the `closer` balancing an `opener` just before `start`, or -1."""
    depth = 1
    i = start
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


class Parser:
    """
    iRule Parser Class

    Consumes tokens from a `Lexer` and builds a `Program`. Parsing is total:
    `parse_program()` always returns a tree and problems are reported through
    `errors()`.

    Attributes
    ----------
    lexer : Lexer
        Token source.
    strict_variables : bool
        When True, referencing a variable that was never set, iterated over or
        written by `regsub` is reported.
    declared_variables : set[str]
        Names declared so far. Shared with nested parsers for string interpolation.
    symbol_table : SymbolTable
        Per-block record of `node` / `pool` usage.
    brace_count, bracket_count : int
        Running depth of `{` and `[` among the tokens consumed so far.
    cur_token, peek_token, prev_token : Token
        Lookahead window.
    """

    def __init__(
        self,
        lexer: Lexer,
        strict_variables: bool = False,
        declared_variables: set[str] | None = None,
    ) -> None:
        self.lexer = lexer
        self.strict_variables = strict_variables
        self.declared_variables: set[str] = (
            declared_variables if declared_variables is not None else set()
        )
        self.symbol_table = SymbolTable()
        self.brace_count = 0
        self.bracket_count = 0
        self._errors: list[str] = []
        self._pending_illegal: list[Token] = []
        self._multiline = 0
        self._argument_mode = False
        self._when_depth = 0

        self.prefix_parse_fns: dict[TokenKind, PrefixParseFn] = {}
        self.infix_parse_fns: dict[TokenKind, InfixParseFn] = {}
        self._register_parse_fns()

        self.cur_token = self._read_token()
        self._flush_illegal()
        self.prev_token = self.cur_token
        self.peek_token = self._read_token()
        self._track_balance(self.cur_token)

    def _register_parse_fns(self) -> None:
        prefix = {
            TokenKind.IDENT: self.parse_identifier,
            TokenKind.VARIABLE: self.parse_variable,
            TokenKind.DOLLAR: self.parse_dollar,
            TokenKind.NUMBER: self.parse_number_literal,
            TokenKind.STRING: self.parse_string_literal,
            TokenKind.TRUE: self.parse_boolean,
            TokenKind.FALSE: self.parse_boolean,
            TokenKind.IP_ADDRESS: self.parse_ip_address,
            TokenKind.REGEX: self.parse_regex_literal,
            TokenKind.LPAREN: self.parse_grouped_expression,
            TokenKind.LBRACE: self.parse_list_literal,
            TokenKind.LBRACKET: self.parse_array_literal,
            TokenKind.BANG: self.parse_prefix_expression,
            TokenKind.MINUS: self.parse_prefix_expression,
            TokenKind.ASTERISK: self.parse_prefix_expression,
            TokenKind.SET: self.parse_set_statement,
            TokenKind.WHEN: self.parse_when_expression,
            TokenKind.SWITCH: self.parse_switch_statement,
            TokenKind.CLASS: self.parse_class_command,
            TokenKind.DEFAULT: self.parse_keyword_word,
            TokenKind.MATCH: self.parse_keyword_word,
            TokenKind.IN: self.parse_keyword_word,
            TokenKind.CASE: self.parse_keyword_word,
            TokenKind.RULE: self.parse_keyword_word,
            TokenKind.LTM: self.parse_keyword_word,
            TokenKind.THEN: self.parse_keyword_word,
        }
        for kind in HTTP_KEYWORDS.values():
            prefix[kind] = self.parse_http_command
        for kind in (*SSL_KEYWORDS.values(), *X509_KEYWORDS.values()):
            prefix[kind] = self.parse_ssl_command
        for kind in LB_KEYWORDS.values():
            prefix[kind] = self.parse_lb_command
        for kind in IP_KEYWORDS.values():
            prefix[kind] = self.parse_ip_command
        self.prefix_parse_fns.update(prefix)

        for kind in (
            TokenKind.PLUS,
            TokenKind.MINUS,
            TokenKind.ASTERISK,
            TokenKind.SLASH,
            TokenKind.PERCENT,
            TokenKind.LT,
            TokenKind.GT,
            TokenKind.LT_EQ,
            TokenKind.GT_EQ,
            TokenKind.EQ,
            TokenKind.NOT_EQ,
            TokenKind.AND,
            TokenKind.OR,
            TokenKind.CONTAINS,
            TokenKind.STARTS_WITH,
            TokenKind.ENDS_WITH,
            TokenKind.MATCHES,
        ):
            self.infix_parse_fns[kind] = self.parse_infix_expression
        self.infix_parse_fns[TokenKind.LPAREN] = self.parse_call_expression
        self.infix_parse_fns[TokenKind.LBRACKET] = self.parse_index_expression

    # ------------------------------------------------------------------
    # Token window and diagnostics
    # ------------------------------------------------------------------

    def errors(self) -> list[str]:
        return list(self._errors)

    def report(self, message: str, line: int | None = None) -> None:
        """Records a diagnostic, stamped with `line` or the current token's line."""
        if line is None:
            line = self.cur_token.line
        text = f"   {message} (line {line})" if line > 0 else f"   {message}"
        logger.debug("diagnostic: %s", text.strip())
        self._errors.append(text)

    def _read_token(self) -> Token:
        tok = self.lexer.next_token()
        while tok.type == TokenKind.ILLEGAL:
            self._pending_illegal.append(tok)
            tok = self.lexer.next_token()
        return tok

    def _flush_illegal(self) -> None:
        for bad in self._pending_illegal:
            self.report(bad.value, bad.line)
        self._pending_illegal = []

    def _track_balance(self, tok: Token) -> None:
        if tok.type == TokenKind.LBRACE:
            self.brace_count += 1
        elif tok.type == TokenKind.RBRACE:
            self.brace_count -= 1
        elif tok.type == TokenKind.LBRACKET:
            self.bracket_count += 1
        elif tok.type == TokenKind.RBRACKET:
            self.bracket_count -= 1

    def next_token(self) -> None:
        """Advances the window by one token. Illegal tokens are reported and skipped."""
        self.prev_token = self.cur_token
        self.cur_token = self.peek_token
        self._flush_illegal()
        self.peek_token = self._read_token()
        self._track_balance(self.cur_token)

    def cur_token_is(self, kind: TokenKind) -> bool:
        return self.cur_token.type == kind

    def peek_token_is(self, kind: TokenKind) -> bool:
        return self.peek_token.type == kind

    def expect_peek(self, kind: TokenKind, message: str) -> bool:
        if self.peek_token.type == kind:
            self.next_token()
            return True
        found = self.peek_token.value or self.peek_token.type.value
        self.report(f"{message}, got '{found}'", self.peek_token.line or self.cur_token.line)
        return False

    @staticmethod
    def _adjacent(left: Token, right: Token) -> bool:
        return left.pos >= 0 and right.pos == left.pos + left.width

    def _looks_like_option(self, tok: Token) -> bool:
        """A `-` glued to a following word (`-nocase`, `--`) rather than an operator."""
        if tok.type != TokenKind.MINUS or tok.pos < 0:
            return False
        source = self.lexer.stream.source
        following = source[tok.pos + 1 : tok.pos + 2]
        return following.isalpha() or following == "-"

    def _same_logical_line(self, end_line: int, start_line: int) -> bool:
        if start_line <= end_line:
            return True
        return all(line in self.lexer.continued_lines for line in range(end_line, start_line))

    def _peek_continues_command(self) -> bool:
        if self.peek_token.type in TERMINATORS:
            return False
        if self._multiline:
            return True
        return self._same_logical_line(self.cur_token.end_line, self.peek_token.line)

    @staticmethod
    def _infix_kind(tok: Token) -> TokenKind:
        if tok.type == TokenKind.IDENT and tok.value == "+":
            return TokenKind.PLUS
        return tok.type

    def peek_precedence(self) -> int:
        tok = self.peek_token
        kind = self._infix_kind(tok)
        if kind in (TokenKind.LPAREN, TokenKind.LBRACKET) and not self._adjacent(
            self.cur_token, tok
        ):
            return LOWEST
        if self._looks_like_option(tok):
            return LOWEST
        return PRECEDENCES.get(kind, LOWEST)

    def cur_precedence(self) -> int:
        return PRECEDENCES.get(self._infix_kind(self.cur_token), LOWEST)

    def _skip_to_brace_depth(self, depth: int) -> None:
        while not self.cur_token_is(TokenKind.EOF):
            if self.cur_token_is(TokenKind.RBRACE) and self.brace_count == depth:
                return
            self.next_token()

    def _declare_symbol(self, kind: SymbolKind, tok: Token) -> None:
        message = self.symbol_table.declare(kind, tok.line)
        if message:
            self.report(message, tok.line)

    def _declare_variable(self, target: Expression | None) -> None:
        if isinstance(target, IndexExpression):
            target = target.left
        if isinstance(target, Identifier) and not target.is_variable:
            self.declared_variables.add(target.value)

    def is_valid_irule_identifier(self, name: str, context: str) -> tuple[bool, str | None]:
        return is_valid_irule_identifier(name, context, self.declared_variables)

    # ------------------------------------------------------------------
    # Program and statements
    # ------------------------------------------------------------------

    def parse_program(self) -> Program:
        """
        Parses the whole token stream.

        Returns:
            Program: The root node. Check `errors()` for diagnostics.
        """
        logger.debug("parsing program")
        program = Program(token=self.cur_token)
        while not self.cur_token_is(TokenKind.EOF):
            stmt = self.parse_statement()
            if stmt is not None:
                program.statements.append(stmt)
            self.next_token()
        self._flush_illegal()

        if self.brace_count != 0:
            self.report(
                f"Unbalanced braces: depth at end of parsing is {self.brace_count}",
                self.cur_token.line,
            )
        if self.bracket_count != 0:
            self.report(
                f"Unbalanced brackets: depth at end of parsing is {self.bracket_count}",
                self.cur_token.line,
            )
        logger.debug(
            "parsed %d statement(s) with %d diagnostic(s)",
            len(program.statements),
            len(self._errors),
        )
        return program

    def parse_statement(self) -> Statement | None:
        tok = self.cur_token
        kind = tok.type

        if kind == TokenKind.SEMICOLON:
            return None
        if kind == TokenKind.SET:
            stmt: Statement | None = self.parse_set_statement()
        elif kind == TokenKind.RETURN:
            stmt = self.parse_return_statement()
        elif kind == TokenKind.IF:
            stmt = self.parse_if_statement()
        elif kind == TokenKind.SWITCH:
            stmt = self.parse_switch_statement()
        elif kind == TokenKind.FOREACH:
            stmt = self.parse_foreach_statement()
        elif kind == TokenKind.LTM:
            stmt = self.parse_ltm_rule()
        elif kind == TokenKind.LBRACE:
            stmt = self.parse_block_statement()
        elif kind == TokenKind.IDENT and tok.value == "node":
            stmt = self.parse_node_statement()
        else:
            stmt = self.parse_expression_statement()

        self._skip_trailing_words()
        return stmt

    def _skip_trailing_words(self) -> None:
        first = True
        while self._peek_continues_command():
            self.next_token()
            if first:
                self.report(f"Unexpected token '{self.cur_token.value}'")
                first = False
            if self.cur_token.type in self.prefix_parse_fns:
                self._parse_word()

    def parse_block_statement(self) -> BlockStatement:
        """Parses `{ stmt ... }` with `cur_token` on the opening brace."""
        tok = self.cur_token
        block = BlockStatement(token=tok)
        saved = (self._multiline, self._argument_mode)
        self._multiline, self._argument_mode = 0, False
        self.symbol_table.enter_scope()

        while True:
            if self.peek_token_is(TokenKind.RBRACE):
                self.next_token()
                break
            if self.peek_token_is(TokenKind.EOF):
                self.report(f"missing closing brace for block opened on line {tok.line}", tok.line)
                break
            self.next_token()
            stmt = self.parse_statement()
            if stmt is not None:
                block.statements.append(stmt)

        self.symbol_table.exit_scope()
        self._multiline, self._argument_mode = saved
        return block

    def parse_expression_statement(self) -> ExpressionStatement:
        tok = self.cur_token
        stmt = ExpressionStatement(token=tok)
        if tok.type == TokenKind.IDENT and tok.value not in ("string", "regsub", "pool"):
            if self._starts_command():
                stmt.expression = self.parse_command_invocation()
                return stmt
        stmt.expression = self._parse_command_word()
        return stmt

    def _starts_command(self) -> bool:
        if self.cur_token.value == "+" or not self._peek_continues_command():
            return False
        return self.peek_precedence() == LOWEST or self.peek_token_is(TokenKind.MINUS)

    def parse_command_invocation(self) -> CommandInvocation:
        tok = self.cur_token
        name = self.parse_identifier()
        invocation = CommandInvocation(token=tok, name=name)
        while self._peek_continues_command():
            self.next_token()
            arg = self._parse_argument_for(tok.value)
            if arg is not None:
                invocation.arguments.append(arg)
        return invocation

    def _parse_argument_for(self, command: str) -> Expression | BlockStatement | None:
        if command in SCRIPT_COMMANDS and self.cur_token_is(TokenKind.LBRACE):
            return self.parse_block_statement()
        return self._parse_word()

    def parse_set_statement(self) -> SetStatement:
        tok = self.cur_token
        stmt = SetStatement(token=tok)
        if not self._peek_continues_command():
            self.report("set requires a variable name", tok.line)
            return stmt

        self.next_token()
        stmt.name = self._parse_set_target()
        if not self._peek_continues_command():
            self.report(f"set requires a value for '{stmt.name}'", tok.line)
            return stmt

        self.next_token()
        stmt.value = self._parse_word()
        self._declare_variable(stmt.name)

        if self._peek_continues_command():
            self.report("Too many arguments to set", self.peek_token.line)
            while self._peek_continues_command():
                self.next_token()
                self._parse_word()
        return stmt

    def _parse_set_target(self) -> Expression | None:
        tok = self.cur_token
        if tok.type == TokenKind.LBRACKET:
            return BracketExpression(token=tok, expression=self.parse_array_literal())
        if tok.type == TokenKind.VARIABLE:
            return self.parse_variable()
        if tok.type in (TokenKind.STRING, TokenKind.LBRACE, TokenKind.REGEX):
            self.report(f"Expected a variable name after 'set', got '{tok.value}'", tok.line)
            return None
        return self._parse_variable_target()

    def _parse_variable_target(self) -> Expression:
        """A bare variable name being written, optionally an array element `name(key)`."""
        tok = self.cur_token
        ok, reason = self.is_valid_irule_identifier(tok.value, "variable")
        if not ok:
            self.report(reason or f"Invalid variable name '{tok.value}'", tok.line)
            return InvalidIdentifier(token=tok, value=tok.value, reason=reason or "")

        target: Expression = Identifier(token=tok, value=tok.value)
        if self.peek_token_is(TokenKind.LPAREN) and self._adjacent(tok, self.peek_token):
            self.next_token()
            target = self._parse_array_index(target)
        return target

    def parse_return_statement(self) -> ReturnStatement:
        stmt = ReturnStatement(token=self.cur_token)
        if self._peek_continues_command():
            self.next_token()
            stmt.value = self._parse_word()
        return stmt

    def parse_if_statement(self) -> IfStatement | None:
        """Parses `if`/`elseif` with `cur_token` on the keyword."""
        tok = self.cur_token
        stmt = IfStatement(token=tok)

        if not self.expect_peek(TokenKind.LBRACE, f"missing '{{' after '{tok.value}'"):
            return None
        open_brace = self.cur_token
        outer_depth = self.brace_count - 1

        saved_mode = self._argument_mode
        self._multiline += 1
        self._argument_mode = False
        if self.peek_token_is(TokenKind.RBRACE):
            self.report(f"empty condition for '{tok.value}'", open_brace.line)
        else:
            self.next_token()
            stmt.condition = self.parse_expression(LOWEST)
        self._multiline -= 1
        self._argument_mode = saved_mode

        if not self.expect_peek(
            TokenKind.RBRACE,
            f"missing closing brace for condition opened on line {open_brace.line}",
        ):
            self._skip_to_brace_depth(outer_depth)
            if self.cur_token_is(TokenKind.EOF):
                return stmt

        if self.peek_token_is(TokenKind.THEN):
            self.next_token()
        if not self.expect_peek(TokenKind.LBRACE, f"missing '{{' for '{tok.value}' body"):
            return stmt
        stmt.consequence = self.parse_block_statement()

        if self.peek_token_is(TokenKind.ELSEIF):
            self.next_token()
            elseif_tok = self.cur_token
            nested = self.parse_if_statement()
            stmt.alternative = BlockStatement(
                token=elseif_tok, statements=[nested] if nested is not None else []
            )
        elif self.peek_token_is(TokenKind.ELSE):
            self.next_token()
            if self.expect_peek(TokenKind.LBRACE, "missing '{' after 'else'"):
                stmt.alternative = self.parse_block_statement()
        return stmt

    def parse_foreach_statement(self) -> ForEachStatement:
        tok = self.cur_token
        stmt = ForEachStatement(token=tok)
        if not self._peek_continues_command():
            self.report("foreach requires a variable name", tok.line)
            return stmt

        self.next_token()
        if self.cur_token_is(TokenKind.LBRACE):
            names = self.parse_list_literal()
            stmt.variable = names
            for element in getattr(names, "elements", []):
                if isinstance(element, Identifier):
                    ok, reason = self.is_valid_irule_identifier(element.value, "variable")
                    if not ok:
                        self.report(reason or "", element.line)
                    self._declare_variable(element)
        else:
            stmt.variable = self._parse_variable_target()
            self._declare_variable(stmt.variable)

        if not self._peek_continues_command():
            self.report("foreach requires a list", tok.line)
            return stmt
        self.next_token()
        if self.cur_token.type not in (TokenKind.LBRACE, TokenKind.LBRACKET, TokenKind.VARIABLE):
            self.report(f"foreach expects a list, command or variable, got '{self.cur_token.value}'")
        stmt.items = self._parse_word()

        if not self.expect_peek(TokenKind.LBRACE, "missing '{' for foreach body"):
            return stmt
        stmt.body = self.parse_block_statement()
        return stmt

    def parse_ltm_rule(self) -> LtmRule | None:
        tok = self.cur_token
        rule = LtmRule(token=tok)
        if not self.expect_peek(TokenKind.RULE, "expected 'rule' after 'ltm'"):
            return None

        name = ""
        last: Token | None = None
        while self._peek_continues_command() and not self.peek_token_is(TokenKind.LBRACE):
            self.next_token()
            if last is not None and not self._adjacent(last, self.cur_token):
                name += " "
            name += self.cur_token.value
            last = self.cur_token
        if not name:
            self.report("ltm rule requires a name", tok.line)
        rule.name = name

        if self.expect_peek(TokenKind.LBRACE, "missing '{' after ltm rule name"):
            rule.body = self.parse_block_statement()
        return rule

    def parse_node_statement(self) -> NodeStatement:
        tok = self.cur_token
        stmt = NodeStatement(token=tok)
        args = self._parse_arguments()
        if not args:
            self.report("node requires an address", tok.line)
        if len(args) > 2:
            self.report("Too many arguments to node", tok.line)
        stmt.address = args[0] if args else None
        stmt.port = args[1] if len(args) > 1 else None
        self._declare_symbol(SymbolKind.NODE, tok)
        return stmt

    def parse_pool_command(self) -> CallExpression:
        tok = self.cur_token
        call = CallExpression(token=tok, function=Identifier(token=tok, value=tok.value))
        call.arguments = self._parse_arguments()
        if not call.arguments:
            self.report("pool requires a pool name", tok.line)
        self._declare_symbol(SymbolKind.POOL, tok)
        return call

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def parse_expression(self, precedence: int) -> Expression | None:
        """
        Pratt loop: one prefix parselet followed by infix parselets of higher
        binding power, stopping at the end of the command.
        """
        prefix = self.prefix_parse_fns.get(self.cur_token.type)
        if prefix is None:
            self._no_prefix_parse_fn_error(self.cur_token)
            return None
        left = prefix()
        if left is None:
            return None

        while self._peek_continues_command() and precedence < self.peek_precedence():
            infix = self.infix_parse_fns.get(self._infix_kind(self.peek_token))
            if infix is None:
                return left
            self.next_token()
            left = infix(left)
            if left is None:
                return None
        return left

    def _no_prefix_parse_fn_error(self, tok: Token) -> None:
        if tok.type == TokenKind.EOF:
            self.report("Unexpected end of input", tok.line or self.prev_token.line)
        else:
            self.report(f"Unexpected token '{tok.value}'", tok.line)

    def _parse_command_word(self) -> Expression | None:
        """Parses the word in command position, dispatching the built-in commands."""
        tok = self.cur_token
        if tok.type == TokenKind.IDENT:
            if tok.value == "string":
                return self.parse_string_operation()
            if tok.value == "regsub":
                return self.parse_regsub_expression()
            if tok.value == "pool":
                return self.parse_pool_command()
        return self.parse_expression(LOWEST)

    def _parse_word(self) -> Expression | None:
        """Parses one argument word. Bare words here are not validated as identifiers."""
        saved = self._argument_mode
        self._argument_mode = True
        try:
            tok = self.cur_token
            if tok.type == TokenKind.MINUS:
                option = self._parse_option_word()
                if option is not None:
                    return option
            if tok.type in COMMAND_ONLY_KINDS or tok.type not in self.prefix_parse_fns:
                return Identifier(token=tok, value=tok.value)
            return self.parse_expression(LOWEST)
        finally:
            self._argument_mode = saved

    def _parse_option_word(self) -> Identifier | None:
        """
        Reads `-flag` or `--` with `cur_token` on the `-`. A `-` standing alone is the
        word "-". Returns None when the `-` is a negation such as `-$x`.
        """
        tok = self.cur_token
        nxt = self.peek_token
        if self._adjacent(tok, nxt):
            if nxt.type == TokenKind.MINUS or nxt.value[:1].isalpha():
                self.next_token()
                return Identifier(token=tok, value="-" + nxt.value)
            return None
        return Identifier(token=tok, value="-")

    def _parse_arguments(self) -> list[Expression]:
        args: list[Expression] = []
        while self._peek_continues_command():
            self.next_token()
            word = self._parse_word()
            if word is not None:
                args.append(word)
        return args

    def parse_identifier(self) -> Expression:
        tok = self.cur_token
        if not self._argument_mode:
            ok, reason = self.is_valid_irule_identifier(tok.value, "standalone")
            if not ok:
                self.report(reason or f"Invalid identifier '{tok.value}'", tok.line)
                return InvalidIdentifier(token=tok, value=tok.value, reason=reason or "")
        return Identifier(token=tok, value=tok.value, is_reserved=is_reserved_keyword(tok.value))

    def parse_keyword_word(self) -> Expression:
        return Identifier(token=self.cur_token, value=self.cur_token.value, is_reserved=True)

    def parse_variable(self) -> Expression:
        tok = self.cur_token
        self._check_declared(tok.value, tok.line)
        ident = Identifier(token=tok, value=tok.value, is_variable=True)
        if self.peek_token_is(TokenKind.LPAREN) and self._adjacent(tok, self.peek_token):
            self.next_token()
            return self._parse_array_index(ident)
        return ident

    def _check_declared(self, literal: str, line: int) -> None:
        if self.strict_variables and _variable_name(literal) not in self.declared_variables:
            self.report(f"Undeclared variable '{literal}'", line)

    def _parse_array_index(self, array: Expression) -> IndexExpression:
        """Parses `(key)` after an array name with `cur_token` on the `(`."""
        paren = self.cur_token
        expr = IndexExpression(token=paren, left=array)
        if self.peek_token_is(TokenKind.RPAREN):
            self.next_token()
            self.report("empty array index", paren.line)
            return expr
        self._multiline += 1
        self.next_token()
        expr.index = self._parse_word()
        self._multiline -= 1
        self.expect_peek(TokenKind.RPAREN, "missing ')' after array index")
        return expr

    def parse_dollar(self) -> Expression | None:
        self.report("Expected a variable name after '$'")
        return None

    def parse_number_literal(self) -> Expression | None:
        tok = self.cur_token
        try:
            value = int(tok.value)
        except ValueError:
            self.report(f"could not parse '{tok.value}' as integer", tok.line)
            return None
        return NumberLiteral(token=tok, value=value)

    def parse_boolean(self) -> Expression:
        return Boolean(token=self.cur_token, value=self.cur_token_is(TokenKind.TRUE))

    def parse_ip_address(self) -> Expression:
        return IpAddressLiteral(token=self.cur_token, value=self.cur_token.value)

    def parse_regex_literal(self) -> Expression:
        return RegexPattern(token=self.cur_token, value=self.cur_token.value)

    def parse_grouped_expression(self) -> Expression:
        tok = self.cur_token
        self._multiline += 1
        self.next_token()
        inner = self.parse_expression(LOWEST)
        self._multiline -= 1
        self.expect_peek(TokenKind.RPAREN, f"missing ')' for '(' opened on line {tok.line}")
        return ParenthesizedExpression(token=tok, expression=inner)

    def parse_prefix_expression(self) -> Expression:
        tok = self.cur_token
        expr = PrefixExpression(token=tok, operator=tok.value)
        if not self._peek_continues_command():
            self.report(f"missing operand after '{tok.value}'", tok.line)
            return expr
        self.next_token()
        expr.right = self.parse_expression(PREFIX)
        return expr

    def parse_infix_expression(self, left: Expression) -> Expression:
        tok = self.cur_token
        expr = InfixExpression(token=tok, left=left, operator=tok.value)
        precedence = self.cur_precedence()
        if not self._peek_continues_command():
            self.report(f"missing right operand for '{tok.value}'", tok.line)
            return expr
        self.next_token()
        expr.right = self.parse_expression(precedence)

        # `+` stays a plain word and folds without an operand check.
        if tok.type != TokenKind.IDENT and not is_valid_operator_for_types(
            tok.value, left, expr.right
        ):
            self.report(
                f"Invalid operand types for '{tok.value}': "
                f"{left.kind} {tok.value} {expr.right.kind if expr.right else 'None'}",
                tok.line,
            )
        return expr

    def parse_call_expression(self, function: Expression) -> Expression:
        tok = self.cur_token
        call = CallExpression(token=tok, function=function)
        self._multiline += 1
        if self.peek_token_is(TokenKind.RPAREN):
            self.next_token()
            self._multiline -= 1
            return call
        self.next_token()
        call.arguments.append(self.parse_expression(LOWEST))
        while self.peek_token_is(TokenKind.COMMA):
            self.next_token()
            self.next_token()
            call.arguments.append(self.parse_expression(LOWEST))
        self._multiline -= 1
        self.expect_peek(TokenKind.RPAREN, f"missing ')' for call opened on line {tok.line}")
        call.arguments = [a for a in call.arguments if a is not None]
        return call

    def parse_index_expression(self, left: Expression) -> Expression:
        tok = self.cur_token
        return IndexExpression(token=tok, left=left, index=self.parse_array_literal())

    def parse_array_literal(self) -> ArrayLiteral:
        """Parses `[cmd arg ...]` with `cur_token` on the `[`."""
        tok = self.cur_token
        array = ArrayLiteral(token=tok)
        saved_mode = self._argument_mode
        self._multiline += 1
        command = ""

        while True:
            if self.peek_token_is(TokenKind.RBRACKET):
                self.next_token()
                break
            if self.peek_token.type in (TokenKind.EOF, TokenKind.RBRACE):
                self.report(f"missing closing bracket for '[' opened on line {tok.line}", tok.line)
                break
            self.next_token()
            if not array.elements and not command:
                self._argument_mode = False
                command = self.cur_token.value or "?"
                element = self._parse_command_word()
            else:
                element = self._parse_argument_for(command)
            if element is not None:
                array.elements.append(element)

        self._multiline -= 1
        self._argument_mode = saved_mode
        return array

    def parse_list_literal(self) -> Expression:
        """
        Parses `{...}` as data: a ListLiteral of words, or a HashLiteral when
        commas separate key/value pairs.
        """
        tok = self.cur_token
        saved_mode = self._argument_mode
        self._argument_mode = True
        self._multiline += 1
        groups: list[list[Expression]] = [[]]

        while True:
            if self.peek_token_is(TokenKind.RBRACE):
                self.next_token()
                break
            if self.peek_token_is(TokenKind.EOF):
                self.report(f"missing closing brace for list opened on line {tok.line}", tok.line)
                break
            self.next_token()
            if self.cur_token_is(TokenKind.COMMA):
                groups.append([])
                continue
            element = self._parse_list_element()
            if element is not None:
                groups[-1].append(element)

        self._multiline -= 1
        self._argument_mode = saved_mode

        if len(groups) == 1:
            return ListLiteral(token=tok, elements=groups[0])
        hashed = HashLiteral(token=tok)
        for group in groups:
            if len(group) != 2:
                self.report("hash entries must be key/value pairs", tok.line)
                continue
            hashed.pairs.append((group[0], group[1]))
        return hashed

    def _parse_list_element(self) -> Expression | None:
        tok = self.cur_token
        if tok.type == TokenKind.MINUS:
            return self._parse_option_word() or Identifier(token=tok, value=tok.value)
        if tok.type in LIST_VALUE_KINDS:
            return self.prefix_parse_fns[tok.type]()
        return Identifier(token=tok, value=tok.value)

    def _read_braced_text(self) -> str:
        """
        Returns the verbatim text between the brace at `cur_token` and its match,
        then resumes lexing after the closing brace, which becomes `cur_token`.
        """
        open_tok = self.cur_token
        source = self.lexer.stream.source
        start = open_tok.pos + 1
        end = _matching_close(source, start, "{", "}")

        # Undo the depth bookkeeping for the single token already read past the brace.
        if self.peek_token_is(TokenKind.LBRACE):
            self.lexer.brace_depth -= 1
        elif self.peek_token_is(TokenKind.RBRACE):
            self.lexer.brace_depth += 1
        elif self.peek_token_is(TokenKind.LBRACKET):
            self.lexer.bracket_depth -= 1
        elif self.peek_token_is(TokenKind.RBRACKET):
            self.lexer.bracket_depth += 1
        self._pending_illegal = []

        if end < 0:
            self.report(f"missing closing brace for '{{' opened on line {open_tok.line}", open_tok.line)
            self.lexer.seek(len(source))
            self.peek_token = self._read_token()
            return source[start:]

        self.lexer.seek(end)
        close = Token(TokenKind.RBRACE, "}", self.lexer.stream.line, self.lexer.stream.column, end)
        self.lexer.seek(end + 1)
        self.lexer.brace_depth -= 1
        self.brace_count -= 1
        self.prev_token = open_tok
        self.cur_token = close
        self.peek_token = self._read_token()
        return source[start:end]

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    def parse_string_literal(self) -> Expression:
        tok = self.cur_token
        parts = self._split_interpolation(tok)
        if parts is None:
            return StringLiteral(token=tok, value=tok.value)
        return InterpolatedString(token=tok, raw=tok.value, parts=parts)

    def _split_interpolation(self, tok: Token) -> list[Expression] | None:
        """
        Splits a double-quoted string into literal text, variables and embedded
        commands. Returns None when nothing is substituted.
        """
        raw = tok.value
        parts: list[Expression] = []
        buf = ""
        found = False
        i = 0

        def flush() -> None:
            nonlocal buf
            if buf:
                parts.append(StringLiteral(token=tok, value=buf))
                buf = ""

        while i < len(raw):
            ch = raw[i]
            if ch == "\\" and i + 1 < len(raw):
                buf += raw[i : i + 2]
                i += 2
                continue
            if ch == "$":
                m = _EMBEDDED_VARIABLE.match(raw, i)
                if m:
                    flush()
                    self._check_declared(m.group(0), tok.line)
                    parts.append(Identifier(token=tok, value=m.group(0), is_variable=True))
                    found = True
                    i = m.end()
                    continue
            if ch == "[":
                end = _matching_close(raw, i + 1, "[", "]")
                if end > i + 1 and raw[i + 1 : end].strip():
                    flush()
                    parts.append(self._parse_embedded_command(tok, raw[i : end + 1]))
                    found = True
                    i = end + 1
                    continue
            buf += ch
            i += 1

        flush()
        return parts if found else None

    def _parse_embedded_command(self, tok: Token, text: str) -> Expression:
        logger.debug("parsing embedded command %s on line %d", text, tok.line)
        sub = Parser(
            Lexer(CharacterStream(text, 0, tok.line, tok.col)),
            strict_variables=self.strict_variables,
            declared_variables=self.declared_variables,
        )
        array = sub.parse_array_literal()
        sub._flush_illegal()
        for message in sub.errors():
            self._errors.append(message)
        if len(array.elements) == 1 and isinstance(array.elements[0], HttpExpression):
            return array.elements[0]
        return CommandSubstitution(token=tok, command=array)

    # ------------------------------------------------------------------
    # Event handlers and control flow expressions
    # ------------------------------------------------------------------

    def parse_when_expression(self) -> Expression:
        tok = self.cur_token
        expr = WhenExpression(token=tok)
        if self._when_depth:
            self.report("when cannot be nested inside another when block", tok.line)

        if not self._peek_continues_command():
            self.report("missing event name after 'when'", tok.line)
            return expr
        self.next_token()
        event = self.cur_token
        expr.event = Identifier(token=event, value=event.value)
        if event.value not in WHEN_EVENTS:
            self.report(f"Invalid event '{event.value}' for when", event.line)

        if self.peek_token.type == TokenKind.IDENT and self.peek_token.value == "priority":
            self.next_token()
            if self.peek_token_is(TokenKind.NUMBER):
                self.next_token()
                expr.priority = self.parse_number_literal()
            else:
                self.report("priority requires a number", self.cur_token.line)

        if not self.expect_peek(TokenKind.LBRACE, f"missing '{{' after 'when {event.value}'"):
            return expr
        logger.debug("entering event handler %s", event.value)
        self._when_depth += 1
        expr.block = self.parse_block_statement()
        self._when_depth -= 1
        return expr

    def parse_switch_statement(self) -> SwitchStatement:
        """
        Parses `switch [options] [--] value { pattern body ... }`.

        Patterns are checked against the mode selected by the options: `-regex`
        patterns must compile and must not look like globs, `-glob` patterns must
        not look like regular expressions.
        """
        tok = self.cur_token
        stmt = SwitchStatement(token=tok)

        while self.peek_token_is(TokenKind.MINUS) and self._peek_continues_command():
            self.next_token()
            option = self._parse_option_word()
            text = option.value if option is not None else "-"
            if text == "--":
                stmt.end_of_options = True
                break
            if text not in SWITCH_OPTIONS:
                self.report(f"Invalid switch option '{text}'", tok.line)
                continue
            stmt.options.append(text)

        if not self._peek_continues_command():
            self.report("switch requires a value", tok.line)
            return stmt
        self.next_token()
        stmt.value = self._parse_word()

        if not self.expect_peek(TokenKind.LBRACE, "missing '{' after switch value"):
            return stmt
        body_open = self.cur_token
        case_lines: list[tuple[int, int]] = []

        while True:
            if self.peek_token_is(TokenKind.RBRACE):
                self.next_token()
                break
            if self.peek_token_is(TokenKind.EOF):
                self.report(
                    f"missing closing brace for switch opened on line {body_open.line}",
                    body_open.line,
                )
                break
            self.next_token()
            first_line = self.cur_token.line
            case = self._parse_switch_case(stmt)
            if case is not None:
                stmt.cases.append(case)
                case_lines.append((first_line, self.cur_token.line))

        self._check_switch_comments(body_open.line, self.cur_token.line, case_lines)
        return stmt

    def _parse_switch_case(self, stmt: SwitchStatement) -> CaseStatement | None:
        tok = self.cur_token
        if tok.type == TokenKind.DEFAULT:
            if stmt.default is not None:
                self.report("Duplicate default case in switch", tok.line)
            if not self.expect_peek(TokenKind.LBRACE, "missing '{' after 'default'"):
                return None
            return CaseStatement(token=tok, consequence=self.parse_block_statement(), is_default=True)

        first = self._parse_case_pattern(stmt)
        if first is None:
            return None
        patterns = [first]
        while self.peek_token_is(TokenKind.MINUS):
            self.next_token()
            self.next_token()
            pattern = self._parse_case_pattern(stmt)
            if pattern is not None:
                patterns.append(pattern)
        value = first if len(patterns) == 1 else MultiPattern(token=tok, patterns=patterns)

        if not self.expect_peek(TokenKind.LBRACE, f"missing '{{' after switch pattern {first}"):
            return None
        return CaseStatement(token=tok, value=value, consequence=self.parse_block_statement())

    def _parse_case_pattern(self, stmt: SwitchStatement) -> Expression | None:
        tok = self.cur_token
        braced = tok.type == TokenKind.LBRACE
        if braced:
            text = self._read_braced_text()
        elif tok.type == TokenKind.REGEX:
            braced = True
            text = tok.value
        elif tok.type in (
            TokenKind.STRING,
            TokenKind.IDENT,
            TokenKind.NUMBER,
            TokenKind.IP_ADDRESS,
            TokenKind.VARIABLE,
        ):
            text = tok.value
        else:
            self.report(f"Invalid switch pattern '{tok.value}'", tok.line)
            return None

        if stmt.is_regex:
            node: Expression = RegexPattern(token=tok, value=text)
            self._check_regex_pattern(text, tok.line)
        elif stmt.is_glob or braced:
            node = GlobPattern(token=tok, value=text)
            if stmt.is_glob and looks_like_regex(text):
                self.report(f"Invalid glob pattern (looks like a regex pattern): {text}", tok.line)
        elif tok.type == TokenKind.VARIABLE:
            node = Identifier(token=tok, value=text, is_variable=True)
        else:
            node = StringLiteral(token=tok, value=text)
        return node

    def _check_regex_pattern(self, text: str, line: int) -> None:
        if looks_like_glob(text):
            self.report(f"Invalid regex pattern (looks like a glob pattern): {text}", line)
            return
        try:
            re.compile(text)
        except (re.error, OverflowError) as exc:
            self.report(f"Invalid regex pattern '{text}': {exc}", line)

    def _check_switch_comments(
        self, first: int, last: int, case_lines: Iterable[tuple[int, int]]
    ) -> None:
        spans = list(case_lines)
        for line in self.lexer.comment_lines:
            if not first < line < last:
                continue
            if any(start <= line <= end for start, end in spans):
                continue
            self.report("Comments are not allowed between switch cases", line)

    # ------------------------------------------------------------------
    # Domain commands
    # ------------------------------------------------------------------

    def parse_http_command(self) -> Expression:
        tok = self.cur_token
        expr = HttpExpression(token=tok, command=tok.value, arguments=self._parse_arguments())
        if tok.type == TokenKind.HTTP_HEADER:
            self._check_header_arguments(expr)
        return expr

    def parse_ssl_command(self) -> Expression:
        tok = self.cur_token
        return SSLExpression(token=tok, command=tok.value, arguments=self._parse_arguments())

    def parse_lb_command(self) -> Expression:
        tok = self.cur_token
        return LoadBalancerExpression(
            token=tok, command=tok.value, arguments=self._parse_arguments()
        )

    def parse_ip_command(self) -> Expression:
        tok = self.cur_token
        return IpExpression(token=tok, command=tok.value, arguments=self._parse_arguments())

    def _check_header_arguments(self, expr: HttpExpression) -> None:
        args = expr.arguments
        if not args:
            return
        name = args[0]
        if isinstance(name, Identifier) and name.value in HTTP_HEADER_SUBCOMMANDS:
            if name.value not in HEADER_NAME_SUBCOMMANDS or len(args) < 2:
                return
            name = args[1]
            if isinstance(name, Identifier) and name.value == "lws" and len(args) > 2:
                name = args[2]

        if isinstance(name, Identifier) and not name.is_variable:
            value = name.value
        elif isinstance(name, StringLiteral):
            value = name.value
        else:
            return
        if not is_valid_header_name(value):
            self.report(f"Invalid HTTP header name '{value}'", name.line)

    def parse_string_operation(self) -> Expression:
        tok = self.cur_token
        expr = StringOperation(token=tok)
        if not self._peek_continues_command():
            self.report("string requires a subcommand", tok.line)
            return expr
        self.next_token()
        op = self.cur_token.value
        expr.operation = op
        if op not in STRING_SUBCOMMANDS:
            self.report(f"Invalid string subcommand '{op}'", self.cur_token.line)
        expr.arguments = self._parse_arguments()

        if op == "map":
            for i, arg in enumerate(expr.arguments):
                if isinstance(arg, ListLiteral):
                    expr.arguments[i] = self._to_map_literal(arg)
                    break
        return expr

    def _to_map_literal(self, literal: ListLiteral) -> MapLiteral:
        elements = literal.elements
        if len(elements) % 2:
            self.report("string map requires an even number of mapping elements", literal.line)
        pairs = list(zip(elements[0::2], elements[1::2]))
        return MapLiteral(token=literal.token, pairs=pairs)

    def parse_class_command(self) -> Expression:
        tok = self.cur_token
        cmd = ClassCommand(token=tok)
        if not self._peek_continues_command():
            self.report("class requires a subcommand", tok.line)
            return cmd
        self.next_token()
        sub = self.cur_token.value
        cmd.subcommand = sub
        if sub not in CLASS_SUBCOMMANDS:
            self.report(f"Invalid class subcommand '{sub}'", self.cur_token.line)
            cmd.arguments = self._parse_arguments()
            return cmd
        if sub not in ("match", "search"):
            cmd.arguments = self._parse_arguments()
            return cmd

        while self.peek_token_is(TokenKind.MINUS) and self._peek_continues_command():
            self.next_token()
            option = self._parse_option_word()
            text = option.value if option is not None else "-"
            if text == "--":
                cmd.options.append(text)
                break
            if text not in CLASS_MATCH_OPTIONS:
                self.report(f"Invalid class {sub} option '{text}'", self.cur_token.line)
                continue
            cmd.options.append(text)

        args: list[Expression] = []
        if self._peek_continues_command():
            self.next_token()
            item = self._parse_operand()
            if item is not None:
                args.append(item)
        if self._peek_continues_command():
            self.next_token()
            op = self.cur_token
            if op.value not in CLASS_MATCH_OPERATORS:
                self.report(f"Invalid class {sub} operator '{op.value}'", op.line)
            args.append(Identifier(token=op, value=op.value))
        args.extend(self._parse_arguments())

        if len(args) != 3:
            self.report(
                f"class {sub} requires exactly 3 arguments (item, operator, class), got {len(args)}",
                tok.line,
            )
        cmd.arguments = args
        return cmd

    def _parse_operand(self) -> Expression | None:
        """A single operand with no infix continuation."""
        saved = self._argument_mode
        self._argument_mode = True
        try:
            if self.cur_token.type not in self.prefix_parse_fns:
                return Identifier(token=self.cur_token, value=self.cur_token.value)
            return self.parse_expression(CONTAINS)
        finally:
            self._argument_mode = saved

    def parse_regsub_expression(self) -> Expression:
        tok = self.cur_token
        expr = RegsubExpression(token=tok)
        positional: list[Expression | None] = []
        options_done = False

        while self._peek_continues_command():
            self.next_token()
            cur = self.cur_token
            if not options_done and not positional and cur.type == TokenKind.MINUS:
                option = self._parse_option_word()
                if option is not None and option.value != "-":
                    if option.value == "--":
                        options_done = True
                    elif option.value[1:] not in REGSUB_FLAGS:
                        self.report(f"Invalid regsub flag '{option.value}'", cur.line)
                        continue
                    expr.flags.append(option.value)
                    continue
            if not positional and cur.type == TokenKind.LBRACE:
                positional.append(RegexPattern(token=cur, value=self._read_braced_text()))
            elif not positional and cur.type == TokenKind.REGEX:
                positional.append(self.parse_regex_literal())
            else:
                positional.append(self._parse_word())

        if len(positional) != 4:
            self.report(
                "regsub requires exactly 4 arguments (pattern, input, replacement, variable), "
                f"got {len(positional)}",
                tok.line,
            )
        padded = positional + [None] * (4 - len(positional))
        expr.pattern, expr.input, expr.replacement, expr.variable = padded[:4]

        target = expr.variable
        if isinstance(target, Identifier) and not target.is_variable:
            ok, reason = self.is_valid_irule_identifier(target.value, "variable")
            if ok:
                self._declare_variable(target)
            else:
                self.report(reason or "", target.line)
        return expr


def parse(source: str, strict_variables: bool = False) -> tuple[Program, list[str]]:
    """
    Parses iRule source text.

    Args:
        source (str): The iRule program.
        strict_variables (bool, optional): Report references to undeclared variables.

    Returns:
        tuple[Program, list[str]]: The tree and its diagnostics (empty when accepted).
    """
    parser = Parser(Lexer(CharacterStream(source)), strict_variables=strict_variables)
    program = parser.parse_program()
    return program, parser.errors()


__all__ = ["LOWEST", "PRECEDENCES", "Parser", "parse"]
