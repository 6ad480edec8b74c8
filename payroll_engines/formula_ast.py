"""
Restricted AST for payroll formula expressions.

Formula expressions come from configuration, so they must use a fixed
operator set.  This module parses and validates expressions, rejecting
anything that could execute arbitrary code.

Allowed:
  - Arithmetic: +, -, *, /, unary minus and plus
  - Comparisons: <, <=, >, >=, ==, !=
  - Logical: and, or, not
  - Names: context variables and earlier formula names
  - Custom inputs: custom.<key>
  - Literals: numbers, booleans
  - Functions: min(), max(), abs()
  - Conditional: ternary (a if b else c)

Rejected:
  - imports, attribute chains, subscripts, arbitrary calls, lambda,
    strings, power and floor division
"""

import ast
from collections.abc import Iterable
from dataclasses import dataclass

ALLOWED_FUNCTIONS: frozenset[str] = frozenset({"min", "max", "abs"})

CONTEXT_VARIABLES: frozenset[str] = frozenset({
    "basic_salary",
    "overtime_hours",
    "working_days",
    "actual_working_days",
    "absent_days",
    "leave_days",
    "days_in_month",
})

CUSTOM_ROOT = "custom"

_ARITHMETIC_OPS = (ast.Add, ast.Sub, ast.Mult, ast.Div)
_COMPARISON_OPS = (ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE)


@dataclass(frozen=True)
class FormulaASTError:
    """A validation error found in a formula expression."""

    expression: str
    message: str
    node_type: str = ""


def parse_formula(expression: str) -> ast.Expression:
    """Parse in eval mode; SyntaxError propagates."""
    return ast.parse(expression.strip(), mode="eval")


def validate_formula_expression(
    expression: str,
    extra_names: Iterable[str] = (),
) -> list[FormulaASTError]:
    """
    Validate a formula expression against the restricted AST.

    ``extra_names`` are the names of formulas evaluated earlier, which may
    be referenced by this one.  Returns a list of errors; empty means valid.
    """
    if not expression or not expression.strip():
        return [FormulaASTError(expression=expression, message="Empty expression")]

    try:
        tree = parse_formula(expression)
    except SyntaxError as e:
        return [FormulaASTError(expression=expression, message=f"Syntax error: {e.msg}")]

    allowed = CONTEXT_VARIABLES | frozenset(extra_names)
    errors: list[FormulaASTError] = []
    _validate_node(tree.body, expression, allowed, errors)
    return errors


def referenced_names(expression: str) -> set[str]:
    """Bare names used by an expression (excluding functions and ``custom``)."""
    tree = parse_formula(expression)
    called = {
        node.func.id
        for node in ast.walk(tree)
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name)
    }
    return {
        node.id
        for node in ast.walk(tree)
        if isinstance(node, ast.Name)
        and node.id not in called
        and node.id != CUSTOM_ROOT
    }


def referenced_custom_keys(expression: str) -> set[str]:
    """Keys read through ``custom.<key>``."""
    tree = parse_formula(expression)
    return {
        node.attr
        for node in ast.walk(tree)
        if isinstance(node, ast.Attribute)
        and isinstance(node.value, ast.Name)
        and node.value.id == CUSTOM_ROOT
    }


def _error(errors, expression, message, node_type=""):
    errors.append(FormulaASTError(expression=expression, message=message, node_type=node_type))


def _validate_node(
    node: ast.AST,
    expression: str,
    allowed: frozenset[str],
    errors: list[FormulaASTError],
) -> None:
    """Recursively validate an AST node."""

    if isinstance(node, ast.BinOp):
        if not isinstance(node.op, _ARITHMETIC_OPS):
            _error(errors, expression,
                   f"Disallowed binary operator: {type(node.op).__name__}",
                   type(node.op).__name__)
        _validate_node(node.left, expression, allowed, errors)
        _validate_node(node.right, expression, allowed, errors)

    elif isinstance(node, ast.UnaryOp):
        if not isinstance(node.op, (ast.USub, ast.UAdd, ast.Not)):
            _error(errors, expression,
                   f"Disallowed unary operator: {type(node.op).__name__}",
                   type(node.op).__name__)
        _validate_node(node.operand, expression, allowed, errors)

    elif isinstance(node, ast.BoolOp):
        for value in node.values:
            _validate_node(value, expression, allowed, errors)

    elif isinstance(node, ast.Compare):
        _validate_node(node.left, expression, allowed, errors)
        for comparator in node.comparators:
            _validate_node(comparator, expression, allowed, errors)
        for op in node.ops:
            if not isinstance(op, _COMPARISON_OPS):
                _error(errors, expression,
                       f"Disallowed comparison: {type(op).__name__}",
                       type(op).__name__)

    elif isinstance(node, ast.IfExp):
        _validate_node(node.test, expression, allowed, errors)
        _validate_node(node.body, expression, allowed, errors)
        _validate_node(node.orelse, expression, allowed, errors)

    elif isinstance(node, ast.Call):
        if isinstance(node.func, ast.Name) and node.func.id in ALLOWED_FUNCTIONS:
            if node.keywords:
                _error(errors, expression, "Keyword arguments are not allowed", "Call")
            if not node.args:
                _error(errors, expression, f"{node.func.id}() needs arguments", "Call")
            for arg in node.args:
                _validate_node(arg, expression, allowed, errors)
        else:
            _error(errors, expression,
                   f"Disallowed function call: {_get_name(node.func)}", "Call")

    elif isinstance(node, ast.Attribute):
        if not (isinstance(node.value, ast.Name) and node.value.id == CUSTOM_ROOT):
            _error(errors, expression,
                   f"Disallowed attribute access: {_get_name(node)}. "
                   f"Only {CUSTOM_ROOT}.<key> is allowed.",
                   "Attribute")

    elif isinstance(node, ast.Name):
        if node.id not in allowed:
            _error(errors, expression, f"Unknown name: {node.id}", "Name")

    elif isinstance(node, ast.Constant):
        if not isinstance(node.value, (bool, int, float)):
            _error(errors, expression,
                   f"Disallowed constant type: {type(node.value).__name__}",
                   "Constant")

    else:
        _error(errors, expression,
               f"Disallowed AST node type: {type(node).__name__}",
               type(node).__name__)


def _get_name(node: ast.AST) -> str:
    """Extract a human-readable name from an AST node."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return f"{_get_name(node.value)}.{node.attr}"
    return type(node).__name__
