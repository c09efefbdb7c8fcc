"""
Static validator predicates for iRules.

These helpers are pure functions over AST nodes and strings. The parser calls them
while it builds the tree and turns a negative answer into a diagnostic; nothing
here records errors itself.

Functions:
    is_valid_operator_for_types(operator, left, right) -> bool
        Operand compatibility for infix operators.
    is_valid_irule_identifier(name, context, declared) -> tuple[bool, str | None]
        Context-sensitive identifier legality (variable / header / standalone).
    is_valid_variable_name(name), is_valid_header_name(name)
    is_common_identifier(name), is_logging_facility(name), is_namespaced_command(name)
    looks_like_regex(pattern), looks_like_glob(pattern)
    is_number_type / is_string_type / is_boolean_type and friends
        AST type classification. Parentheses are transparent to all of them.
"""

from __future__ import annotations

import re
from collections.abc import Collection

from irule.irule_ast import (
    ArrayLiteral,
    Boolean,
    ClassCommand,
    CommandSubstitution,
    Expression,
    HttpExpression,
    Identifier,
    InfixExpression,
    InterpolatedString,
    IpAddressLiteral,
    IpExpression,
    LoadBalancerExpression,
    NumberLiteral,
    ParenthesizedExpression,
    PrefixExpression,
    SSLExpression,
    StringLiteral,
    StringOperation,
)
from irule.irule_constants import (
    COMMAND_NAMESPACES,
    COMMON_HEADERS,
    COMMON_IDENTIFIERS,
    HTTP_KEYWORDS,
    LB_KEYWORDS,
    LOGGING_FACILITIES,
    RESERVED_KEYWORDS,
    SSL_KEYWORDS,
)

VARIABLE_NAME = re.compile(r"^(::)?[A-Za-z_][A-Za-z0-9_]*(::[A-Za-z_][A-Za-z0-9_]*)*$")

_REGEX_HINTS = re.compile(r"^\^|\$$|\.\*|\.\+|\.\?|\\[dwsDWSbB.]|\(\?|\[\^|\|")

STRING_MATCH_OPERATORS = frozenset({"contains", "starts_with", "ends_with", "equals"})
EQUALITY_OPERATORS = frozenset({"eq", "ne", "==", "!="})
COMPARISON_OPERATORS = frozenset({"<", ">", "<=", ">="})
ARITHMETIC_OPERATORS = frozenset({"+", "-", "*", "/"})
LOGICAL_OPERATORS = frozenset({"&&", "||", "and", "or"})


def unwrap(expr: Expression | None) -> Expression | None:
    while isinstance(expr, ParenthesizedExpression):
        expr = expr.expression
    return expr


def _is_substitution(expr: Expression | None) -> bool:
    return isinstance(expr, (ArrayLiteral, CommandSubstitution))


def is_number_type(expr: Expression | None) -> bool:
    expr = unwrap(expr)
    if isinstance(expr, PrefixExpression):
        return expr.operator == "-"
    return isinstance(expr, (NumberLiteral, Identifier)) or _is_substitution(expr)


def is_string_type(expr: Expression | None) -> bool:
    expr = unwrap(expr)
    if isinstance(expr, Identifier):
        return expr.is_variable
    return isinstance(
        expr,
        (
            StringLiteral,
            InterpolatedString,
            HttpExpression,
            LoadBalancerExpression,
            SSLExpression,
            IpExpression,
            StringOperation,
        ),
    ) or _is_substitution(expr)


def is_boolean_type(expr: Expression | None) -> bool:
    expr = unwrap(expr)
    if isinstance(expr, PrefixExpression):
        return expr.operator in ("!", "not")
    return isinstance(expr, (Boolean, InfixExpression, ClassCommand))


def is_http_expression(expr: Expression | None) -> bool:
    return isinstance(unwrap(expr), HttpExpression)


def is_array_literal(expr: Expression | None) -> bool:
    return _is_substitution(unwrap(expr))


def is_ip_address_literal(expr: Expression | None) -> bool:
    return isinstance(unwrap(expr), IpAddressLiteral)


def is_identifier(expr: Expression | None) -> bool:
    return isinstance(unwrap(expr), Identifier)


def is_infix_expression(expr: Expression | None) -> bool:
    return isinstance(unwrap(expr), InfixExpression)


def _string_match_operand(expr: Expression | None) -> bool:
    return (
        is_string_type(expr)
        or is_identifier(expr)
        or is_http_expression(expr)
        or is_array_literal(expr)
        or is_ip_address_literal(expr)
    )


def _arithmetic_operand(expr: Expression | None) -> bool:
    return (
        is_number_type(expr)
        or is_infix_expression(expr)
        or is_array_literal(expr)
        or is_identifier(expr)
    )


def _logical_operand(expr: Expression | None) -> bool:
    return (
        is_boolean_type(expr)
        or is_http_expression(expr)
        or is_infix_expression(expr)
        or is_identifier(expr)
    )


def is_valid_operator_for_types(
    operator: str, left: Expression | None, right: Expression | None
) -> bool:
    """
    Checks whether `operator` accepts the given operand variants.

    Partial expressions (a missing side) are accepted; the missing operand is
    reported elsewhere.

    Args:
        operator (str): Operator literal as written (`contains`, `==`, `&&`, ...).
        left (Expression | None): Left operand.
        right (Expression | None): Right operand.

    Returns:
        bool: True if the combination is admissible.
    """
    if left is None or right is None:
        return True

    if operator in STRING_MATCH_OPERATORS:
        return _string_match_operand(left) and _string_match_operand(right)
    if operator in EQUALITY_OPERATORS:
        return True
    if operator in COMPARISON_OPERATORS:
        return (
            (is_number_type(left) and is_number_type(right))
            or (is_string_type(left) and is_string_type(right))
            or (is_identifier(left) and (is_string_type(right) or is_identifier(right)))
            or (is_identifier(right) and is_string_type(left))
        )
    if operator in ARITHMETIC_OPERATORS:
        return _arithmetic_operand(left) and _arithmetic_operand(right)
    if operator in LOGICAL_OPERATORS:
        return _logical_operand(left) or _logical_operand(right)
    return True


def is_valid_variable_name(name: str) -> bool:
    return bool(VARIABLE_NAME.match(name))


def is_valid_header_name(name: str) -> bool:
    lowered = name.lower()
    return lowered in COMMON_HEADERS or lowered.startswith("x-") or "-" in name


def is_common_identifier(name: str) -> bool:
    return name.lower() in COMMON_IDENTIFIERS


def is_logging_facility(name: str) -> bool:
    return name in LOGGING_FACILITIES


def is_namespaced_command(name: str) -> bool:
    parts = name.split("::")
    return len(parts) == 2 and parts[1] != "" and parts[0].upper() in COMMAND_NAMESPACES


def is_reserved_keyword(name: str) -> bool:
    return name.lower() in RESERVED_KEYWORDS


def is_known_command(name: str) -> bool:
    return name in HTTP_KEYWORDS or name in LB_KEYWORDS or name in SSL_KEYWORDS


def is_valid_irule_identifier(
    name: str, context: str, declared: Collection[str] = ()
) -> tuple[bool, str | None]:
    """
    Decides whether `name` is a legal identifier in `context`.

    Args:
        name (str): The identifier as written.
        context (str): One of "variable", "header" or "standalone".
        declared (Collection[str]): Variable names declared so far.

    Returns:
        tuple[bool, str | None]: `(True, None)` when legal, otherwise
        `(False, reason)` with a human readable reason.
    """
    if context == "variable":
        if is_reserved_keyword(name):
            return False, f"'{name}' is a reserved keyword and cannot be used as a variable name"
        if not is_valid_variable_name(name):
            return False, f"Invalid variable name '{name}'"
        return True, None

    if context == "header":
        if is_valid_header_name(name):
            return True, None
        return False, f"Invalid HTTP header name '{name}'"

    if (
        is_reserved_keyword(name)
        or is_common_identifier(name)
        or is_logging_facility(name)
        or is_namespaced_command(name)
        or is_known_command(name)
        or name in declared
        or (len(name) == 1 and name.isalpha())
    ):
        return True, None
    return False, f"Invalid identifier '{name}'"


def looks_like_regex(pattern: str) -> bool:
    return bool(_REGEX_HINTS.search(pattern))


def looks_like_glob(pattern: str) -> bool:
    return ("*" in pattern or "?" in pattern) and not looks_like_regex(pattern)


__all__ = [
    "ARITHMETIC_OPERATORS",
    "COMPARISON_OPERATORS",
    "EQUALITY_OPERATORS",
    "LOGICAL_OPERATORS",
    "STRING_MATCH_OPERATORS",
    "is_array_literal",
    "is_boolean_type",
    "is_common_identifier",
    "is_http_expression",
    "is_identifier",
    "is_infix_expression",
    "is_ip_address_literal",
    "is_known_command",
    "is_logging_facility",
    "is_namespaced_command",
    "is_number_type",
    "is_reserved_keyword",
    "is_string_type",
    "is_valid_header_name",
    "is_valid_irule_identifier",
    "is_valid_operator_for_types",
    "is_valid_variable_name",
    "looks_like_glob",
    "looks_like_regex",
    "unwrap",
]
