"""Unit tests for ConditionEvaluator."""

import pytest

from flowhub.core.flows.conditions import ConditionEvaluator, ConditionSyntaxError, get_path


@pytest.fixture
def condition_evaluator():
    """Create ConditionEvaluator instance."""
    return ConditionEvaluator()


@pytest.fixture
def namespace():
    return {
        "amount": 50,
        "status": "open",
        "tags": ["urgent", "billing"],
        "trigger": {"amount": 50, "customer": {"tier": "gold"}},
        "nodes": {"fetch": {"items": [{"id": 7}, {"id": 8}]}},
        "resume": {},
    }


def test_evaluate_none_and_bool(condition_evaluator, namespace):
    """Test that a missing condition holds and booleans pass through."""
    assert condition_evaluator.evaluate(None, namespace) is True
    assert condition_evaluator.evaluate(True, namespace) is True
    assert condition_evaluator.evaluate(False, namespace) is False


def test_evaluate_comparison(condition_evaluator, namespace):
    """Test comparison operators on data fields."""
    assert condition_evaluator.evaluate("amount > 100", namespace) is False
    assert condition_evaluator.evaluate("amount <= 50", namespace) is True
    assert condition_evaluator.evaluate("status == 'open'", namespace) is True
    assert condition_evaluator.evaluate("status != 'open'", namespace) is False
    assert condition_evaluator.evaluate("10 < amount < 60", namespace) is True


def test_evaluate_dotted_paths_and_subscripts(condition_evaluator, namespace):
    """Test attribute and constant-subscript access into nested data."""
    assert condition_evaluator.evaluate("trigger.customer.tier == 'gold'", namespace) is True
    assert condition_evaluator.evaluate("nodes.fetch['items'][1]['id'] == 8", namespace) is True
    assert condition_evaluator.evaluate("nodes['fetch']['items'][5] == null", namespace) is True


def test_evaluate_boolean_operators(condition_evaluator, namespace):
    """Test and/or/not."""
    assert condition_evaluator.evaluate("amount > 10 and status == 'open'", namespace) is True
    assert condition_evaluator.evaluate("amount > 100 or status == 'open'", namespace) is True
    assert condition_evaluator.evaluate("not (amount > 10)", namespace) is False


def test_evaluate_membership(condition_evaluator, namespace):
    """Test in / not in against lists and literal lists."""
    assert condition_evaluator.evaluate("'urgent' in tags", namespace) is True
    assert condition_evaluator.evaluate("status in ['open', 'pending']", namespace) is True
    assert condition_evaluator.evaluate("'sales' not in tags", namespace) is True


def test_missing_names_resolve_to_none(condition_evaluator, namespace):
    """Test that unknown names are None rather than errors."""
    assert condition_evaluator.evaluate("missing == null", namespace) is True
    assert condition_evaluator.evaluate("trigger.nothing.deeper == None", namespace) is True


def test_incompatible_comparison_is_false(condition_evaluator, namespace):
    """Test that comparisons raising TypeError evaluate false."""
    assert condition_evaluator.evaluate("missing > 5", namespace) is False
    assert condition_evaluator.evaluate("status > 5", namespace) is False


def test_literal_names(condition_evaluator):
    """Test JSON-style literals."""
    assert condition_evaluator.evaluate("flag == true", {"flag": True}) is True
    assert condition_evaluator.evaluate("flag == false", {"flag": False}) is True
    assert condition_evaluator.evaluate("-x < 0", {"x": 3}) is True


@pytest.mark.parametrize(
    "expression",
    [
        "__import__('os')",
        "len(tags)",
        "amount.__class__",
        "_secret == 1",
        "tags[amount]",
        "lambda: 1",
        "amount + 1 > 2",
        "amount >",
    ],
)
def test_rejects_unsafe_or_invalid_syntax(condition_evaluator, namespace, expression):
    """Test that calls, private names, dynamic subscripts and arithmetic are rejected."""
    with pytest.raises(ConditionSyntaxError):
        condition_evaluator.evaluate(expression, namespace)


def test_validate(condition_evaluator):
    """Test syntax validation without evaluation."""
    condition_evaluator.validate("amount > 100")
    with pytest.raises(ConditionSyntaxError):
        condition_evaluator.validate("")
    with pytest.raises(ConditionSyntaxError):
        condition_evaluator.validate("open(")


def test_validate_condition_forms(condition_evaluator):
    """Test validation of structured conditions."""
    condition_evaluator.validate_condition(None)
    condition_evaluator.validate_condition({"field": "amount", "operator": ">", "value": 1})
    condition_evaluator.validate_condition({"expression": "amount > 1"})
    condition_evaluator.validate_condition(["amount > 1", {"field": "status"}])
    with pytest.raises(ConditionSyntaxError):
        condition_evaluator.validate_condition({"operator": ">"})
    with pytest.raises(ConditionSyntaxError):
        condition_evaluator.validate_condition(42)


def test_structured_conditions(condition_evaluator, namespace):
    """Test structured field/operator/value conditions."""
    assert condition_evaluator.evaluate(
        {"field": "trigger.amount", "operator": ">=", "value": 50}, namespace
    ) is True
    assert condition_evaluator.evaluate(
        {"field": "tags", "operator": "contains", "value": "billing"}, namespace
    ) is True
    assert condition_evaluator.evaluate(
        {"field": "status", "operator": "in", "value": ["closed"]}, namespace
    ) is False
    assert condition_evaluator.evaluate({"field": "missing", "operator": "is_empty"}, namespace) is True
    assert condition_evaluator.evaluate({"field": "tags", "operator": "is_not_empty"}, namespace) is True
    assert condition_evaluator.evaluate({"field": "status", "operator": "~"}, namespace) is False


def test_evaluate_conditions_combine(condition_evaluator, namespace):
    """Test and/or combination of condition lists."""
    conditions = [
        {"field": "amount", "operator": ">", "value": 100},
        {"field": "status", "operator": "==", "value": "open"},
    ]
    assert condition_evaluator.evaluate_conditions(conditions, namespace) is False
    assert condition_evaluator.evaluate_conditions(conditions, namespace, "or") is True
    assert condition_evaluator.evaluate(
        {"conditions": conditions, "combine_with": "or"}, namespace
    ) is True
    assert condition_evaluator.evaluate_conditions([], namespace) is True


def test_get_path():
    """Test dotted path lookup through dicts and lists."""
    data = {"a": {"b": [{"c": 1}, {"c": 2}]}}
    assert get_path(data, "a.b.1.c") == 2
    assert get_path(data, "a.b.-1.c") == 2
    assert get_path(data, "a.b.9.c") is None
    assert get_path(data, "a.x") is None
    assert get_path(data, "") is None
