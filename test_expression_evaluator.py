"""
Unit tests for expression evaluation.
"""

import math
from unittest.mock import patch

import pytest

from schemastudio.expression_evaluator import (
    NO_OVERRIDE,
    evaluate_computed,
    evaluate_expression,
    evaluate_visibility,
    is_truthy,
    strict_equal,
    to_number,
    to_text,
)
from schemastudio.schema_exceptions import ExpressionEvaluationError, ExpressionSyntaxError


class TestValueHelpers:
    """Test cases for truthiness and conversion helpers."""

    @pytest.mark.parametrize('value', [None, False, 0, 0.0, float('nan'), '', [], ()])
    def test_falsy(self, value):
        assert not is_truthy(value)

    @pytest.mark.parametrize('value', [True, 1, -0.5, 'false', ['x'], {'a': 1}])
    def test_truthy(self, value):
        assert is_truthy(value)

    def test_to_text(self):
        assert to_text(None) == ''
        assert to_text(True) == 'true'
        assert to_text(3.0) == '3'
        assert to_text(2.5) == '2.5'
        assert to_text(['a', 1]) == 'a,1'

    def test_to_number(self):
        assert to_number('12') == 12
        assert to_number(' 1.5 ') == 1.5
        assert to_number('12abc') is None
        assert to_number(True) is None

    def test_strict_equal(self):
        assert strict_equal(1, 1.0)
        assert not strict_equal(1, '1')
        assert not strict_equal(True, 1)
        assert strict_equal(['a'], ['a'])
        assert strict_equal(None, None)


class TestEvaluateExpression:
    """Test cases for evaluate_expression."""

    def test_arithmetic(self):
        assert evaluate_expression('price * qty', {'price': 2.5, 'qty': 4}) == 10.0
        assert evaluate_expression('7 % 3', {}) == 1
        assert evaluate_expression('-7 % 3', {}) == -1
        assert evaluate_expression('(1 + 2) * 3', {}) == 9

    def test_numeric_strings_take_part_in_arithmetic(self):
        assert evaluate_expression('qty * 2', {'qty': '3'}) == 6

    def test_concatenation(self):
        values = {'first': 'Ada', 'last': 'Lovelace'}
        assert evaluate_expression('first + " " + last', values) == 'Ada Lovelace'
        assert evaluate_expression('first + age', {'first': 'a', 'age': 3}) == 'a3'
        assert evaluate_expression('"n=" + missing', {}) == 'n='

    def test_comparison_and_logic(self):
        values = {'age': 20, 'country': 'NZ'}
        assert evaluate_expression('age >= 18 && country == "NZ"', values) is True
        assert evaluate_expression('age < 18 || country != "NZ"', values) is False
        assert evaluate_expression('"b" > "a"', {}) is True
        assert evaluate_expression('age > "x"', values) is False

    def test_logical_returns_operand(self):
        assert evaluate_expression('nickname || name', {'nickname': '', 'name': 'Ada'}) == 'Ada'
        assert evaluate_expression('a && b', {'a': 0, 'b': 1}) == 0

    def test_unknown_reference_is_null(self):
        assert evaluate_expression('missing', {}) is None
        assert evaluate_expression('missing == null', {}) is True

    def test_context_is_not_mutated(self):
        values = {'a': 1}
        evaluate_expression('a + 1', values)
        assert values == {'a': 1}

    def test_division_by_zero(self):
        with pytest.raises(ExpressionEvaluationError):
            evaluate_expression('1 / 0', {})
        with pytest.raises(ExpressionEvaluationError):
            evaluate_expression('1 % 0', {})

    def test_non_numeric_operand(self):
        with pytest.raises(ExpressionEvaluationError):
            evaluate_expression('name * 2', {'name': 'Ada'})
        with pytest.raises(ExpressionEvaluationError):
            evaluate_expression('-flag', {'flag': True})

    def test_no_python_access(self):
        """Identifiers only ever read the value context."""
        assert evaluate_expression('__import__', {}) is None
        with pytest.raises(ExpressionSyntaxError):
            evaluate_expression('__import__("os")', {})


class TestFailOpen:
    """Test cases for the never-raising public helpers."""

    def test_visibility(self):
        assert evaluate_visibility('age >= 18', {'age': 20}) is True
        assert evaluate_visibility('age >= 18', {'age': 12}) is False
        assert evaluate_visibility('age >=', {'age': 20}) is True
        assert evaluate_visibility('1 / 0', {}) is True
        assert evaluate_visibility('', {}) is True
        assert evaluate_visibility(None, {}) is True

    def test_visibility_uses_truthiness(self):
        assert evaluate_visibility('tags', {'tags': []}) is False
        assert evaluate_visibility('tags', {'tags': ['a']}) is True

    def test_computed(self):
        assert evaluate_computed('a + b', {'a': 1, 'b': 2}) == 3
        assert evaluate_computed('age >=', {'age': 20}) is NO_OVERRIDE
        assert evaluate_computed('missing', {}) is NO_OVERRIDE
        assert evaluate_computed('  ', {}) is NO_OVERRIDE
        assert evaluate_computed('false', {}) is False

    def test_no_override_marker(self):
        assert not NO_OVERRIDE
        assert repr(NO_OVERRIDE) == 'NO_OVERRIDE'

    def test_failures_logged_at_debug(self):
        with patch('schemastudio.expression_evaluator.logger') as mock_logger:
            evaluate_visibility('age >=', {})
            evaluate_computed('1 / 0', {})
        assert mock_logger.debug.call_count == 2

    def test_nan_result_is_not_visible(self):
        assert not evaluate_visibility('x', {'x': math.nan})

    def test_non_finite_remainder_fails_open(self):
        assert evaluate_visibility('1e999 % 2 == 0', {}) is True
        assert evaluate_visibility('x % 2 == 0', {'x': math.inf}) is True
        assert evaluate_computed('5.5 % x', {'x': math.nan}) is NO_OVERRIDE
        with pytest.raises(ExpressionEvaluationError):
            evaluate_expression('1e999 % 2', {})

    def test_oversized_numeric_text(self):
        huge = '9' * 5000
        assert to_number(huge) > 1e300
        assert evaluate_visibility('x > 1', {'x': huge}) is True
        assert evaluate_visibility('x < 1', {'x': huge}) is False
        assert evaluate_computed('x * 2', {'x': huge}) > 1e300

    def test_large_integers(self):
        big = '9' * 4000
        assert evaluate_visibility('x * x', {'x': big}) is True
        assert evaluate_visibility('x * x > 1e300', {'x': big}) is True
        # Rendering needs str(int), which newer interpreters cap at 4300 digits
        text = evaluate_computed('"n=" + x * x', {'x': big})
        assert text is NO_OVERRIDE or text.startswith("n=9")
        assert evaluate_computed('x * x % 0.5', {'x': big}) is NO_OVERRIDE

    @patch('schemastudio.expression_parser.expression_limits', return_value=(1000, 64))
    def test_nesting_at_the_depth_limit(self, mock_limits):
        at_limit = '(' * 64 + 'x' + ')' * 64
        past_limit = '(' * 65 + 'x' + ')' * 65
        assert evaluate_visibility(at_limit, {'x': 0}) is False
        assert evaluate_visibility(past_limit, {'x': 0}) is True
        assert evaluate_computed(past_limit, {'x': 3}) is NO_OVERRIDE

    @pytest.mark.parametrize('value', [
        None, True, 0, -1, 2.5, math.inf, -math.inf, math.nan,
        '', 'text', '12', '1e999', '9' * 5000, [], ['a', 1], {'k': 'v'},
    ])
    @pytest.mark.parametrize('source', [
        'x', '!x', '-x', 'x + 1', 'x - x', 'x * x', 'x / 3', 'x % 7', '10 % x',
        'x > 1', 'x <= "b"', 'x == x', '"v=" + x', 'x && x || 1',
    ])
    def test_helpers_never_raise(self, source, value):
        visible = evaluate_visibility(source, {'x': value})
        assert isinstance(visible, bool)
        evaluate_computed(source, {'x': value})
