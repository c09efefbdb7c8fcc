"""
Defines the abstract syntax tree (AST) node catalog for iRules.

Classes:
    ASTNode:
        Dataclass base for every node. Carries the originating token, exposes the
        variant tag (`kind`), source location, `to_dict()` serialization and a
        canonical textual form via `string()` / `str()`.

    Statement, Expression:
        Marker bases for the two node families.

    Program and one dataclass per statement or expression variant.

Each node tracks:
    token (Token): The token the node was built from. It is excluded from equality,
        so two trees compare equal when their variants and salient fields match.
    kind (str): The variant tag, i.e. the class name (e.g. "SetStatement").
    line (int) / col (int): Source location taken from the token.

Canonical text:
    `str(node)` renders the node back to iRule syntax. The rendering is not
    byte-identical to the input, but parsing it again yields an equal tree.

Example:
    >>> from irule.irule_parser import parse
    >>> program, errors = parse("set x 5")
    >>> str(program)
    'set x 5'
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

from irule.irule_constants import TokenKind
from irule.irule_lexer import Token


@dataclass
class ASTNode:
    token: Token = field(compare=False, repr=False)

    @property
    def kind(self) -> str:
        return type(self).__name__

    @property
    def line(self) -> int:
        return self.token.line

    @property
    def col(self) -> int:
        return self.token.col

    def string(self) -> str:
        raise NotImplementedError(f"{self.kind} has no canonical form")

    def __str__(self) -> str:
        return self.string()

    def to_dict(self) -> dict[str, Any]:
        """Converts the node and all descendants into plain dictionaries."""
        out: dict[str, Any] = {"kind": self.kind, "line": self.line, "col": self.col}
        for f in fields(self):
            if f.name == "token":
                continue
            out[f.name] = _serialize(getattr(self, f.name))
        return out


def _serialize(value: Any) -> Any:
    if isinstance(value, ASTNode):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    return value


class Statement(ASTNode):
    pass


class Expression(ASTNode):
    pass


def _join(nodes: list[Any]) -> str:
    return " ".join(str(n) for n in nodes if n is not None)


def _delimited(token: Token, value: str) -> str:
    if token.type == TokenKind.STRING:
        return f'"{value}"'
    if token.type in (TokenKind.LBRACE, TokenKind.REGEX):
        return f"{{{value}}}"
    return value


# Program and statements


@dataclass
class Program(ASTNode):
    statements: list[Statement] = field(default_factory=list)

    def string(self) -> str:
        return "\n".join(str(s) for s in self.statements)


@dataclass
class BlockStatement(Statement):
    statements: list[Statement] = field(default_factory=list)

    def string(self) -> str:
        if not self.statements:
            return "{ }"
        body = "\n".join(str(s) for s in self.statements)
        return f"{{\n{body}\n}}"


@dataclass
class SetStatement(Statement, Expression):
    name: Expression | None = None
    value: Expression | None = None

    def string(self) -> str:
        return _join([self.token.value, self.name, self.value])


@dataclass
class ReturnStatement(Statement):
    value: Expression | None = None

    def string(self) -> str:
        return _join(["return", self.value])


@dataclass
class ExpressionStatement(Statement):
    expression: Expression | None = None

    def string(self) -> str:
        return str(self.expression) if self.expression is not None else ""


@dataclass
class IfStatement(Statement):
    """`if`/`elseif`/`else` chain.

    An `elseif` is stored as an alternative block (whose token is the `elseif`)
    holding a single nested IfStatement.
    """

    condition: Expression | None = None
    consequence: BlockStatement | None = None
    alternative: BlockStatement | None = None

    def string(self) -> str:
        out = f"{self.token.value} {{ {self.condition} }} {self.consequence}"
        alt = self.alternative
        if alt is None:
            return out
        if alt.token.type == TokenKind.ELSEIF and len(alt.statements) == 1:
            return f"{out} {alt.statements[0]}"
        return f"{out} else {alt}"


@dataclass
class CaseStatement(Statement):
    value: Expression | None = None
    consequence: BlockStatement | None = None
    is_default: bool = False

    def string(self) -> str:
        label = "default" if self.is_default else str(self.value)
        return f"{label} {self.consequence}"


@dataclass
class SwitchStatement(Statement, Expression):
    options: list[str] = field(default_factory=list)
    end_of_options: bool = False
    value: Expression | None = None
    cases: list[CaseStatement] = field(default_factory=list)

    @property
    def is_regex(self) -> bool:
        return "-regex" in self.options

    @property
    def is_glob(self) -> bool:
        return "-glob" in self.options

    @property
    def default(self) -> CaseStatement | None:
        return next((c for c in self.cases if c.is_default), None)

    def string(self) -> str:
        head = ["switch", *self.options]
        if self.end_of_options:
            head.append("--")
        head.append(str(self.value))
        body = "\n".join(str(c) for c in self.cases)
        return f"{' '.join(head)} {{\n{body}\n}}"


@dataclass
class ForEachStatement(Statement):
    variable: Expression | None = None
    items: Expression | None = None
    body: BlockStatement | None = None

    def string(self) -> str:
        return _join(["foreach", self.variable, self.items, self.body])


@dataclass
class LtmRule(Statement):
    name: str = ""
    body: BlockStatement | None = None

    def string(self) -> str:
        return f"ltm rule {self.name} {self.body}"


@dataclass
class NodeStatement(Statement):
    address: Expression | None = None
    port: Expression | None = None

    def string(self) -> str:
        return _join(["node", self.address, self.port])


# Identifiers and literals


@dataclass
class Identifier(Expression):
    value: str = ""
    is_variable: bool = False
    is_reserved: bool = False

    def string(self) -> str:
        return self.value


@dataclass
class InvalidIdentifier(Expression):
    value: str = ""
    reason: str = ""

    def string(self) -> str:
        return self.value


@dataclass
class NumberLiteral(Expression):
    value: int = 0

    def string(self) -> str:
        return str(self.value)


@dataclass
class StringLiteral(Expression):
    value: str = ""

    def string(self) -> str:
        return f'"{self.value}"'


@dataclass
class Boolean(Expression):
    value: bool = False

    def string(self) -> str:
        return "true" if self.value else "false"


@dataclass
class IpAddressLiteral(Expression):
    value: str = ""

    def string(self) -> str:
        return self.value


# Operators and grouping


@dataclass
class PrefixExpression(Expression):
    operator: str = ""
    right: Expression | None = None

    def string(self) -> str:
        if self.operator == "-":
            # `-word` re-reads as an option word and `-5` as a signed number.
            right = str(self.right)
            return f"-{right}" if right[:1] in ("$", "[", "(") else f"- {right}"
        sep = " " if self.operator.isalpha() else ""
        return f"{self.operator}{sep}{self.right}"


@dataclass
class InfixExpression(Expression):
    left: Expression | None = None
    operator: str = ""
    right: Expression | None = None

    def string(self) -> str:
        return f"{self.left} {self.operator} {self.right}"


@dataclass
class ParenthesizedExpression(Expression):
    expression: Expression | None = None

    def string(self) -> str:
        return f"({self.expression})"


@dataclass
class BracketExpression(Expression):
    expression: Expression | None = None

    def string(self) -> str:
        return str(self.expression)


@dataclass
class IndexExpression(Expression):
    left: Expression | None = None
    index: Expression | None = None

    def string(self) -> str:
        if self.token.type == TokenKind.LPAREN:
            return f"{self.left}({self.index})"
        return f"{self.left}{self.index}"


@dataclass
class CallExpression(Expression):
    function: Expression | None = None
    arguments: list[Expression] = field(default_factory=list)

    def string(self) -> str:
        if self.token.type == TokenKind.LPAREN:
            args = ", ".join(str(a) for a in self.arguments)
            return f"{self.function}({args})"
        return _join([self.function, *self.arguments])


# Commands


@dataclass
class CommandInvocation(Expression):
    name: Expression | None = None
    arguments: list[Expression] = field(default_factory=list)

    def string(self) -> str:
        return _join([self.name, *self.arguments])


@dataclass
class ArrayLiteral(Expression):
    """A bracketed command substitution, `[cmd arg ...]`."""

    elements: list[Expression] = field(default_factory=list)

    def string(self) -> str:
        return f"[{_join(self.elements)}]"


@dataclass
class CommandSubstitution(Expression):
    command: Expression | None = None

    def string(self) -> str:
        return str(self.command)


@dataclass
class ListLiteral(Expression):
    elements: list[Expression] = field(default_factory=list)

    def string(self) -> str:
        return f"{{{_join(self.elements)}}}"


@dataclass
class HashLiteral(Expression):
    pairs: list[tuple[Expression, Expression]] = field(default_factory=list)

    def string(self) -> str:
        return "{" + ", ".join(f"{k} {v}" for k, v in self.pairs) + "}"


@dataclass
class MapLiteral(Expression):
    pairs: list[tuple[Expression, Expression]] = field(default_factory=list)

    def string(self) -> str:
        return "{" + " ".join(f"{k} {v}" for k, v in self.pairs) + "}"


@dataclass
class WhenExpression(Expression):
    event: Identifier | None = None
    priority: Expression | None = None
    block: BlockStatement | None = None

    def string(self) -> str:
        head = f"when {self.event}"
        if self.priority is not None:
            head += f" priority {self.priority}"
        return f"{head} {self.block}"


@dataclass
class CommandExpression(Expression):
    """Shared shape for the namespaced domain commands (`HTTP::`, `SSL::`, ...)."""

    command: str = ""
    arguments: list[Expression] = field(default_factory=list)

    def string(self) -> str:
        return _join([self.command, *self.arguments])


@dataclass
class HttpExpression(CommandExpression):
    pass


@dataclass
class SSLExpression(CommandExpression):
    pass


@dataclass
class LoadBalancerExpression(CommandExpression):
    pass


@dataclass
class IpExpression(CommandExpression):
    pass


@dataclass
class StringOperation(Expression):
    operation: str = ""
    arguments: list[Expression] = field(default_factory=list)

    def string(self) -> str:
        return _join(["string", self.operation, *self.arguments])


@dataclass
class ClassCommand(Expression):
    subcommand: str = ""
    options: list[str] = field(default_factory=list)
    arguments: list[Expression] = field(default_factory=list)

    def string(self) -> str:
        return _join(["class", self.subcommand, *self.options, *self.arguments])


@dataclass
class RegsubExpression(Expression):
    flags: list[str] = field(default_factory=list)
    pattern: Expression | None = None
    input: Expression | None = None
    replacement: Expression | None = None
    variable: Expression | None = None

    def string(self) -> str:
        return _join(
            ["regsub", *self.flags, self.pattern, self.input, self.replacement, self.variable]
        )


# Strings and patterns


@dataclass
class InterpolatedString(Expression):
    raw: str = ""
    parts: list[Expression] = field(default_factory=list)

    def string(self) -> str:
        return f'"{self.raw}"'


@dataclass
class GlobPattern(Expression):
    value: str = ""

    def string(self) -> str:
        return _delimited(self.token, self.value)


@dataclass
class RegexPattern(Expression):
    value: str = ""

    def string(self) -> str:
        return _delimited(self.token, self.value)


@dataclass
class MultiPattern(Expression):
    patterns: list[Expression] = field(default_factory=list)

    def string(self) -> str:
        return " - ".join(str(p) for p in self.patterns)
