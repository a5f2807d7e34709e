"""
Evaluation of parsed expressions against a form value context.

evaluate() walks an AST from expression_parser and may raise
ExpressionEvaluationError. The public helpers evaluate_visibility() and
evaluate_computed() never raise: a broken expression leaves the field
visible and its value untouched.
"""

import logging
import math
import re
from typing import Dict, Any, Optional

from .expression_parser import (
    BinaryOp,
    Concat,
    FieldRef,
    Literal,
    Logical,
    Node,
    UnaryOp,
    compile_expression,
)
from .schema_exceptions import ExpressionError, ExpressionEvaluationError

logger = logging.getLogger(__name__)

_NUMERIC_TEXT = re.compile(r"^\s*[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?\s*$")


class _NoOverride:
    """Marker returned by evaluate_computed when the raw value should be kept."""

    def __repr__(self) -> str:
        return "NO_OVERRIDE"

    def __bool__(self) -> bool:
        return False


NO_OVERRIDE = _NoOverride()


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# Large ints cannot be converted to float, so only floats take the math checks
def is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


def is_finite(value: Any) -> bool:
    return not isinstance(value, float) or math.isfinite(value)


def is_truthy(value: Any) -> bool:
    """Falsy values: None, False, 0, NaN, empty string and empty list."""
    if value is None or value is False:
        return False
    if is_number(value):
        return value != 0 and not is_nan(value)
    if isinstance(value, (str, list, tuple)):
        return len(value) > 0
    return True


def to_text(value: Any) -> str:
    """Render a value the way string concatenation shows it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(item) for item in value)
    return str(value)


def to_number(value: Any) -> Optional[float]:
    """Numeric value of a number or numeric string, otherwise None."""
    if is_number(value):
        return value
    if isinstance(value, str) and _NUMERIC_TEXT.match(value):
        text = value.strip()
        if any(c in text for c in '.eE'):
            return float(text)
        try:
            return int(text)
        except ValueError:
            # Past the interpreter's int digit limit
            return float(text)
    return None


def _require_number(value: Any, op: str) -> float:
    number = to_number(value)
    if number is None:
        raise ExpressionEvaluationError(f"Operator '{op}' needs a number, got {value!r}")
    return number


def strict_equal(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


def _compare(op: str, left: Any, right: Any) -> bool:
    if isinstance(left, str) and isinstance(right, str):
        a, b = left, right
    else:
        a, b = to_number(left), to_number(right)
        # Only numbers and numeric strings are ordered against each other
        if a is None or b is None or isinstance(left, bool) or isinstance(right, bool):
            return False
        if is_nan(a) or is_nan(b):
            return False
    if op == '<':
        return a < b
    if op == '<=':
        return a <= b
    if op == '>':
        return a > b
    return a >= b


def _arithmetic(op: str, left: Any, right: Any) -> Any:
    if op == '+' and (isinstance(left, str) or isinstance(right, str)):
        return to_text(left) + to_text(right)
    a = _require_number(left, op)
    b = _require_number(right, op)
    if op == '+':
        return a + b
    if op == '-':
        return a - b
    if op == '*':
        return a * b
    if b == 0:
        raise ExpressionEvaluationError(f"Division by zero in '{op}'")
    if op == '/':
        return a / b
    if isinstance(a, float) or isinstance(b, float):
        if not (is_finite(a) and is_finite(b)):
            raise ExpressionEvaluationError(f"Remainder of a non-finite number in '{op}'")
        return math.fmod(a, b)
    # Remainder takes the sign of the dividend
    remainder = abs(a) % abs(b)
    return remainder if a >= 0 else -remainder


def evaluate(node: Node, values: Dict[str, Any]) -> Any:
    """
    Evaluate an AST against a value context.

    Args:
        node: Root node from compile_expression
        values: Flat mapping of field key to value

    Returns:
        Resulting value; unknown field references evaluate to None

    Raises:
        ExpressionEvaluationError: On a non-numeric arithmetic operand or division by zero
    """
    if isinstance(node, Literal):
        return node.value

    if isinstance(node, FieldRef):
        return values.get(node.key)

    if isinstance(node, Logical):
        left = evaluate(node.left, values)
        if node.op == 'and':
            return evaluate(node.right, values) if is_truthy(left) else left
        return left if is_truthy(left) else evaluate(node.right, values)

    if isinstance(node, UnaryOp):
        operand = evaluate(node.operand, values)
        if node.op == 'not':
            return not is_truthy(operand)
        number = _require_number(operand, node.op)
        return -number if node.op == '-' else number

    if isinstance(node, Concat):
        return "".join(to_text(evaluate(part, values)) for part in node.parts)

    if isinstance(node, BinaryOp):
        left = evaluate(node.left, values)
        right = evaluate(node.right, values)
        if node.op in ('==', '==='):
            return strict_equal(left, right)
        if node.op in ('!=', '!=='):
            return not strict_equal(left, right)
        if node.op in ('<', '<=', '>', '>='):
            return _compare(node.op, left, right)
        return _arithmetic(node.op, left, right)

    raise ExpressionEvaluationError(f"Unknown expression node {type(node).__name__}")


def evaluate_expression(source: Optional[str], values: Dict[str, Any]) -> Any:
    """
    Compile and evaluate expression source.

    Raises:
        ExpressionError: If the expression is malformed or cannot be evaluated
    """
    node = compile_expression(source)
    if node is None:
        return None
    try:
        return evaluate(node, values or {})
    except RecursionError:
        raise ExpressionEvaluationError("Expression is too deeply nested to evaluate", source or "")
    except OverflowError:
        raise ExpressionEvaluationError("Numeric result is out of range", source or "")
    except ValueError as e:
        # int/str conversion limits and math domain errors
        raise ExpressionEvaluationError(f"Numeric value cannot be used: {e}", source or "")


def evaluate_visibility(source: Optional[str], values: Dict[str, Any]) -> bool:
    """
    Whether a field with this visibility expression is shown.

    A blank expression, a syntax error or an evaluation error all mean visible.
    """
    if source is None or (isinstance(source, str) and not source.strip()):
        return True
    try:
        return is_truthy(evaluate_expression(source, values))
    except ExpressionError as e:
        logger.debug(f"Visibility expression {source!r} failed, showing field: {e}")
        return True


def evaluate_computed(source: Optional[str], values: Dict[str, Any]) -> Any:
    """
    Value of a computed expression.

    Returns:
        The computed value, or NO_OVERRIDE when the expression is blank,
        fails, or evaluates to null
    """
    if source is None or (isinstance(source, str) and not source.strip()):
        return NO_OVERRIDE
    try:
        result = evaluate_expression(source, values)
    except ExpressionError as e:
        logger.debug(f"Computed expression {source!r} failed, keeping raw value: {e}")
        return NO_OVERRIDE
    return NO_OVERRIDE if result is None else result
