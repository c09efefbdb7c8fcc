"""
Toy tree-walking evaluator for iRule expressions.

Used by the REPL's eval mode to run simple arithmetic, comparisons, `set` and
`if` over a parsed `Program`. It is not an iRule runtime: domain commands such as
`HTTP::uri` have no value here and raise `EvaluationError`.

Classes:
    IRuleError: Base exception of the package.
    EvaluationError: Raised when a tree cannot be evaluated.
    Evaluator: Walks the tree, dispatching on `node.kind` to `eval_<Kind>` methods.

Value model:
    NUMBER (int), BOOLEAN (bool), STRING (str) and NULL (None).

Example:
    >>> from irule.irule_parser import parse
    >>> program, _ = parse("[expr 5 * 5]")
    >>> Evaluator().evaluate(program)
    25
"""

from __future__ import annotations

import logging
from typing import Any

from irule.irule_ast import ASTNode, Identifier, InfixExpression, StringLiteral

logger = logging.getLogger(__name__)


class IRuleError(Exception):
    """Base class for errors raised by the irule package."""


class EvaluationError(IRuleError):
    """Raised when a node cannot be evaluated."""


class ReturnValue:
    """Carries a `return` out of nested blocks."""

    def __init__(self, value: Any) -> None:
        self.value = value


def type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "BOOLEAN"
    if isinstance(value, int):
        return "NUMBER"
    if isinstance(value, str):
        return "STRING"
    if value is None:
        return "NULL"
    return type(value).__name__.upper()


def display(value: Any) -> str:
    """Formats a value the way Tcl prints it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class Evaluator:
    """
    Evaluates a parsed program.

    Attributes:
        env (dict[str, Any]): Variable bindings, keyed by name without the `$`.
    """

    def __init__(self, env: dict[str, Any] | None = None) -> None:
        self.env: dict[str, Any] = dict(env or {})

    def evaluate(self, node: ASTNode | None) -> Any:
        """
        Evaluates `node` and returns its value.

        Raises:
            EvaluationError: On type mismatches, unknown operators, unbound
                variables, division by zero or unsupported nodes.
        """
        result = self._visit(node)
        if isinstance(result, ReturnValue):
            return result.value
        return result

    def _visit(self, node: ASTNode | None) -> Any:
        if node is None:
            return None
        method = getattr(self, f"eval_{node.kind}", None)
        if method is None:
            raise EvaluationError(f"cannot evaluate {node.kind}")
        return method(node)

    # Statements

    def eval_Program(self, node: Any) -> Any:
        result = None
        for stmt in node.statements:
            result = self._visit(stmt)
            if isinstance(result, ReturnValue):
                return result.value
        return result

    def eval_BlockStatement(self, node: Any) -> Any:
        result = None
        for stmt in node.statements:
            result = self._visit(stmt)
            if isinstance(result, ReturnValue):
                return result
        return result

    def eval_ExpressionStatement(self, node: Any) -> Any:
        return self._visit(node.expression)

    def eval_SetStatement(self, node: Any) -> Any:
        if not isinstance(node.name, Identifier) or node.name.is_variable:
            raise EvaluationError(f"cannot set {node.name.kind if node.name else 'nothing'}")
        value = self._visit(node.value)
        self.env[node.name.value] = value
        logger.debug("set %s = %r", node.name.value, value)
        return value

    def eval_ReturnStatement(self, node: Any) -> Any:
        return ReturnValue(self._visit(node.value))

    def eval_IfStatement(self, node: Any) -> Any:
        condition = self._visit(node.condition)
        if self._truthy(condition):
            return self._visit(node.consequence)
        if node.alternative is not None:
            return self._visit(node.alternative)
        return None

    # Literals

    def eval_NumberLiteral(self, node: Any) -> int:
        return node.value

    def eval_Boolean(self, node: Any) -> bool:
        return node.value

    def eval_StringLiteral(self, node: Any) -> str:
        return node.value

    def eval_InterpolatedString(self, node: Any) -> str:
        out = ""
        for part in node.parts:
            if isinstance(part, (StringLiteral, Identifier)):
                out += display(self._visit(part))
            else:
                raise EvaluationError(f"cannot evaluate {part.kind}")
        return out

    def eval_Identifier(self, node: Any) -> Any:
        if not node.is_variable:
            return node.value
        name = node.value[1:]
        if name.startswith("{") and name.endswith("}"):
            name = name[1:-1]
        if name not in self.env:
            raise EvaluationError(f"identifier not found: {name}")
        return self.env[name]

    # Operators

    def eval_ParenthesizedExpression(self, node: Any) -> Any:
        return self._visit(node.expression)

    def eval_PrefixExpression(self, node: Any) -> Any:
        right = self._visit(node.right)
        op = node.operator
        if op in ("!", "not"):
            if isinstance(right, bool) or _is_number(right):
                return not right
            raise EvaluationError(f"unknown operator: {op}{type_name(right)}")
        if op == "-":
            if _is_number(right):
                return -right
            raise EvaluationError(f"invalid command name '-{display(right)}'")
        raise EvaluationError(f"unknown operator: {op}{type_name(right)}")

    def eval_InfixExpression(self, node: InfixExpression) -> Any:
        left = self._visit(node.left)
        right = self._visit(node.right)
        op = node.operator

        if _is_number(left) and _is_number(right):
            return self._integer_infix(op, left, right)
        if type_name(left) != type_name(right):
            raise EvaluationError(
                f"type mismatch: {type_name(left)} {op} {type_name(right)}"
            )
        if isinstance(left, bool):
            return self._boolean_infix(op, left, right)
        if isinstance(left, str):
            return self._string_infix(op, left, right)
        raise EvaluationError(f"unknown operator: {type_name(left)} {op} {type_name(right)}")

    def _integer_infix(self, op: str, left: int, right: int) -> Any:
        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op in ("/", "%"):
            if right == 0:
                raise EvaluationError("divide by zero")
            return left // right if op == "/" else left % right
        if op == "<":
            return left < right
        if op == ">":
            return left > right
        if op == "<=":
            return left <= right
        if op == ">=":
            return left >= right
        if op in ("==", "eq", "equals"):
            return left == right
        if op in ("!=", "ne"):
            return left != right
        raise EvaluationError(f"unknown operator: NUMBER {op} NUMBER")

    def _boolean_infix(self, op: str, left: bool, right: bool) -> bool:
        if op in ("==", "eq"):
            return left == right
        if op in ("!=", "ne"):
            return left != right
        if op in ("&&", "and"):
            return left and right
        if op in ("||", "or"):
            return left or right
        raise EvaluationError(f"unknown operator: BOOLEAN {op} BOOLEAN")

    def _string_infix(self, op: str, left: str, right: str) -> bool:
        if op in ("==", "eq", "equals"):
            return left == right
        if op in ("!=", "ne"):
            return left != right
        if op == "contains":
            return right in left
        if op == "starts_with":
            return left.startswith(right)
        if op == "ends_with":
            return left.endswith(right)
        if op == "<":
            return left < right
        if op == ">":
            return left > right
        raise EvaluationError(f"unknown operator: STRING {op} STRING")

    # Commands

    def eval_ArrayLiteral(self, node: Any) -> Any:
        if not node.elements:
            return ""
        command = node.elements[0]
        if isinstance(command, Identifier) and command.value == "expr":
            args = node.elements[1:]
            if len(args) != 1:
                raise EvaluationError("wrong # args: should be \"expr arg\"")
            return self._visit(args[0])
        raise EvaluationError(f"invalid command name '{command}'")

    def _truthy(self, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if _is_number(value):
            return value != 0
        if isinstance(value, str) and value.lower() in ("true", "yes", "on", "1"):
            return True
        if isinstance(value, str) and value.lower() in ("false", "no", "off", "0"):
            return False
        raise EvaluationError(f"expected boolean value but got \"{display(value)}\"")


__all__ = ["EvaluationError", "Evaluator", "IRuleError", "display", "type_name"]
