"""Condition evaluator for edge conditions, condition nodes and trigger filters."""

import ast
import logging
import operator
from functools import lru_cache
from typing import Any

from flowhub.core.errors import ValidationException

logger = logging.getLogger(__name__)

LITERAL_NAMES = {
    "true": True,
    "True": True,
    "false": False,
    "False": False,
    "null": None,
    "None": None,
}

ALLOWED_NODES = (
    ast.Expression,
    ast.BoolOp,
    ast.And,
    ast.Or,
    ast.UnaryOp,
    ast.Not,
    ast.USub,
    ast.UAdd,
    ast.Compare,
    ast.Eq,
    ast.NotEq,
    ast.Lt,
    ast.LtE,
    ast.Gt,
    ast.GtE,
    ast.In,
    ast.NotIn,
    ast.Is,
    ast.IsNot,
    ast.Name,
    ast.Load,
    ast.Attribute,
    ast.Subscript,
    ast.Constant,
    ast.List,
    ast.Tuple,
)

COMPARE_OPERATORS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda left, right: left in right,
    ast.NotIn: lambda left, right: left not in right,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}


class ConditionSyntaxError(ValidationException):
    """Raised when a condition expression cannot be parsed or uses forbidden syntax."""

    pass


def get_path(data: Any, path: str) -> Any:
    """Get a value from nested dicts/lists using a dot-separated path.

    Args:
        data: Root mapping
        path: Path such as 'nodes.fetch.body.items.0.id'

    Returns:
        Value at the path or None if any segment is missing
    """
    if not path:
        return None

    value = data
    for part in path.split("."):
        if isinstance(value, dict):
            if part not in value:
                return None
            value = value[part]
        elif isinstance(value, (list, tuple)) and part.lstrip("-").isdigit():
            index = int(part)
            if -len(value) <= index < len(value):
                value = value[index]
            else:
                return None
        else:
            return None

    return value


@lru_cache(maxsize=512)
def parse_expression(expression: str) -> ast.Expression:
    """Parse and whitelist-check an expression.

    Raises:
        ConditionSyntaxError: If the expression is malformed or not allowed
    """
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as e:
        raise ConditionSyntaxError(
            f"Invalid condition expression: {expression}", {"reason": e.msg}
        ) from e

    for node in ast.walk(tree):
        if not isinstance(node, ALLOWED_NODES):
            raise ConditionSyntaxError(
                f"Unsupported syntax in condition: {type(node).__name__}",
                {"expression": expression},
            )
        if isinstance(node, ast.Name) and node.id.startswith("_"):
            raise ConditionSyntaxError(
                f"Private names are not allowed: {node.id}", {"expression": expression}
            )
        if isinstance(node, ast.Attribute) and node.attr.startswith("_"):
            raise ConditionSyntaxError(
                f"Private attributes are not allowed: {node.attr}", {"expression": expression}
            )
        if isinstance(node, ast.Subscript) and not isinstance(node.slice, ast.Constant):
            raise ConditionSyntaxError(
                "Subscripts must use a constant key", {"expression": expression}
            )

    return tree


class ConditionEvaluator:
    """Evaluator for condition expressions and structured conditions.

    Expressions are a small Python subset: names and dotted paths resolved
    against the namespace, constant subscripts, literals, ``and``/``or``/``not``
    and comparisons. Missing names resolve to None. A comparison between
    incompatible types is false.
    """

    def validate(self, expression: str) -> None:
        """Check expression syntax without evaluating it.

        Raises:
            ConditionSyntaxError: If the expression is invalid
        """
        if not isinstance(expression, str) or not expression.strip():
            raise ConditionSyntaxError("Condition expression must be a non-empty string")
        parse_expression(expression)

    def validate_condition(self, condition: Any) -> None:
        """Check any supported condition form (expression or structured)."""
        if condition is None or isinstance(condition, bool):
            return
        if isinstance(condition, str):
            self.validate(condition)
        elif isinstance(condition, list):
            for item in condition:
                self.validate_condition(item)
        elif isinstance(condition, dict):
            if "expression" in condition:
                self.validate(condition["expression"])
            elif "conditions" in condition:
                self.validate_condition(condition["conditions"])
            elif "field" not in condition:
                raise ConditionSyntaxError(
                    "Structured condition requires 'field'", {"condition": condition}
                )
        else:
            raise ConditionSyntaxError(
                f"Unsupported condition type: {type(condition).__name__}"
            )

    def evaluate(self, condition: Any, namespace: dict[str, Any]) -> bool:
        """Evaluate a condition in any supported form.

        Args:
            condition: None (always true), a bool, an expression string, a
                structured condition dict, or a list of them (all must hold)
            namespace: Values visible to the condition

        Returns:
            True if the condition holds
        """
        if condition is None:
            return True
        if isinstance(condition, bool):
            return condition
        if isinstance(condition, str):
            return self.evaluate_expression(condition, namespace)
        if isinstance(condition, list):
            return self.evaluate_conditions(condition, namespace)
        if isinstance(condition, dict):
            if "expression" in condition:
                return self.evaluate_expression(condition["expression"], namespace)
            if "conditions" in condition:
                return self.evaluate_conditions(
                    condition["conditions"], namespace, condition.get("combine_with", "and")
                )
            return self._evaluate_condition(condition, namespace)

        logger.warning(f"Unsupported condition type: {type(condition).__name__}")
        return False

    def evaluate_expression(self, expression: str, namespace: dict[str, Any]) -> bool:
        """Evaluate an expression string to a boolean.

        Raises:
            ConditionSyntaxError: If the expression is invalid
        """
        if not expression or not expression.strip():
            return True
        tree = parse_expression(expression)
        return bool(self._eval(tree.body, namespace))

    def evaluate_conditions(
        self,
        conditions: list[Any],
        data: dict[str, Any],
        combine: str = "and",
    ) -> bool:
        """Evaluate a list of conditions.

        Args:
            conditions: Expression strings or structured condition dicts
            data: Values to evaluate against
            combine: 'and' (all must hold) or 'or' (any must hold)

        Returns:
            Combined result; an empty list is true
        """
        if not conditions:
            return True

        results = (self.evaluate(condition, data) for condition in conditions)
        if combine == "or":
            return any(results)
        return all(results)

    def _evaluate_condition(self, condition: dict[str, Any], data: dict[str, Any]) -> bool:
        """Evaluate a single structured condition.

        Args:
            condition: Condition dictionary with 'field', 'operator', 'value'
            data: Values to evaluate against

        Returns:
            True if condition is met, False otherwise
        """
        field_path = condition.get("field", "")
        op = condition.get("operator", "==")
        expected_value = condition.get("value")

        actual_value = get_path(data, field_path)

        try:
            if op == "==":
                return actual_value == expected_value
            elif op == "!=":
                return actual_value != expected_value
            elif op == ">":
                return actual_value > expected_value
            elif op == "<":
                return actual_value < expected_value
            elif op == ">=":
                return actual_value >= expected_value
            elif op == "<=":
                return actual_value <= expected_value
            elif op == "in":
                return (
                    actual_value in expected_value
                    if isinstance(expected_value, (list, tuple))
                    else False
                )
            elif op == "contains":
                if isinstance(actual_value, str) and isinstance(expected_value, str):
                    return expected_value in actual_value
                if isinstance(actual_value, (list, tuple, dict)):
                    return expected_value in actual_value
                return False
            elif op == "is_empty":
                return actual_value in (None, "", [], {})
            elif op == "is_not_empty":
                return actual_value not in (None, "", [], {})
            else:
                logger.warning(f"Unknown operator: {op}")
                return False
        except (TypeError, ValueError) as e:
            logger.debug(f"Error evaluating condition {condition}: {e}")
            return False

    def _eval(self, node: ast.AST, namespace: dict[str, Any]) -> Any:
        if isinstance(node, ast.Constant):
            return node.value

        if isinstance(node, ast.Name):
            if node.id in LITERAL_NAMES:
                return LITERAL_NAMES[node.id]
            return namespace.get(node.id)

        if isinstance(node, ast.Attribute):
            base = self._eval(node.value, namespace)
            return base.get(node.attr) if isinstance(base, dict) else None

        if isinstance(node, ast.Subscript):
            base = self._eval(node.value, namespace)
            key = node.slice.value
            if isinstance(base, dict):
                return base.get(key)
            if isinstance(base, (list, tuple)) and isinstance(key, int):
                return base[key] if -len(base) <= key < len(base) else None
            return None

        if isinstance(node, (ast.List, ast.Tuple)):
            return [self._eval(element, namespace) for element in node.elts]

        if isinstance(node, ast.BoolOp):
            if isinstance(node.op, ast.And):
                result: Any = True
                for value in node.values:
                    result = self._eval(value, namespace)
                    if not result:
                        return result
                return result
            result = False
            for value in node.values:
                result = self._eval(value, namespace)
                if result:
                    return result
            return result

        if isinstance(node, ast.UnaryOp):
            operand = self._eval(node.operand, namespace)
            if isinstance(node.op, ast.Not):
                return not operand
            try:
                return -operand if isinstance(node.op, ast.USub) else +operand
            except TypeError:
                return None

        if isinstance(node, ast.Compare):
            left = self._eval(node.left, namespace)
            for op, comparator in zip(node.ops, node.comparators):
                right = self._eval(comparator, namespace)
                try:
                    if not COMPARE_OPERATORS[type(op)](left, right):
                        return False
                except TypeError:
                    return False
                left = right
            return True

        raise ConditionSyntaxError(f"Unsupported syntax in condition: {type(node).__name__}")
