"""
Condition evaluation over multi-module form data.

- evaluate / evaluate_fields: walk a condition tree and return a bool.
- evaluate_rule / evaluate_rules: fire rules in priority order.
- validate_rules: authoring diagnostics for a rule set.

Evaluation degrades locally: a malformed node, a bad reference or an
incompatible comparison makes that node False (logged) without aborting
the rest of the tree or the rule set.
"""

import logging
import os
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Callable, Iterable, Iterator, Optional

from pydantic import BaseModel, Field

from formlogic.errors import ComparisonError, FormLogicError, UnsupportedOperatorError
from formlogic.models.conditions import (
    FIELD_ACTIONS,
    WORKFLOW_ACTIONS,
    Condition,
    ConditionalRule,
    ConditionOperator,
    GroupCondition,
    LeafCondition,
    LogicalOperator,
    RuleAction,
)
from formlogic.models.runtime import RuleValidationResult, WorkflowFormData
from formlogic.services.field_reference import parse_field_reference
from formlogic.utils.logging import log_rule_evaluation, log_validation_result

logger = logging.getLogger(__name__)

DEFAULT_MODULE_KEY = os.getenv("FORMLOGIC_DEFAULT_MODULE_KEY", "current")

_COLLECTIONS = (list, tuple, set, frozenset)

# -----------------------------------------------------------------------------
# Value semantics
# -----------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _is_collection(value: Any) -> bool:
    return isinstance(value, _COLLECTIONS)


def _same_temporal(a: Any, b: Any) -> bool:
    if isinstance(a, datetime) or isinstance(b, datetime):
        return isinstance(a, datetime) and isinstance(b, datetime)
    if isinstance(a, date) and isinstance(b, date):
        return True
    return isinstance(a, time) and isinstance(b, time)


def values_equal(field_value: Any, expected: Any) -> bool:
    """Equality used by Equals, In and collection Contains."""
    if field_value is None and expected is None:
        return True
    if field_value is None or expected is None:
        return False
    if isinstance(field_value, str) and isinstance(expected, str):
        return field_value.casefold() == expected.casefold()
    if _is_number(field_value) and _is_number(expected):
        return float(field_value) == float(expected)
    if isinstance(field_value, bool) or isinstance(expected, bool):
        return type(field_value) is type(expected) and field_value == expected
    return field_value == expected


def compare_values(field_value: Any, expected: Any) -> int:
    """Three-way compare for ordering operators. Raises ComparisonError."""
    if field_value is None or expected is None:
        raise ComparisonError("Cannot compare null values")
    if _is_number(field_value) and _is_number(expected):
        a, b = float(field_value), float(expected)
    elif isinstance(field_value, str) and isinstance(expected, str):
        a, b = field_value.upper(), expected.upper()
    elif _same_temporal(field_value, expected):
        a, b = field_value, expected
    else:
        raise ComparisonError(
            f"Cannot compare types {type(field_value).__name__} and {type(expected).__name__}"
        )
    return (a > b) - (a < b)


def _contains(field_value: Any, expected: Any) -> bool:
    if field_value is None or expected is None:
        return False
    if isinstance(field_value, str) and isinstance(expected, str):
        return expected.casefold() in field_value.casefold()
    if _is_collection(field_value):
        return any(values_equal(item, expected) for item in field_value)
    return False


def _is_in(field_value: Any, expected: Any) -> bool:
    if field_value is None or not _is_collection(expected):
        return False
    return any(values_equal(field_value, item) for item in expected)


def _starts_with(field_value: Any, expected: Any) -> bool:
    if isinstance(field_value, str) and isinstance(expected, str):
        return field_value.casefold().startswith(expected.casefold())
    return False


def _ends_with(field_value: Any, expected: Any) -> bool:
    if isinstance(field_value, str) and isinstance(expected, str):
        return field_value.casefold().endswith(expected.casefold())
    return False


def _is_empty(field_value: Any) -> bool:
    if field_value is None:
        return True
    if isinstance(field_value, str):
        return not field_value.strip()
    if isinstance(field_value, (*_COLLECTIONS, dict)):
        return len(field_value) == 0
    return False


_OPERATORS: dict[ConditionOperator, Callable[[Any, Any], bool]] = {
    ConditionOperator.EQUALS: values_equal,
    ConditionOperator.NOT_EQUALS: lambda v, e: not values_equal(v, e),
    ConditionOperator.GREATER_THAN: lambda v, e: compare_values(v, e) > 0,
    ConditionOperator.GREATER_THAN_OR_EQUAL: lambda v, e: compare_values(v, e) >= 0,
    ConditionOperator.LESS_THAN: lambda v, e: compare_values(v, e) < 0,
    ConditionOperator.LESS_THAN_OR_EQUAL: lambda v, e: compare_values(v, e) <= 0,
    ConditionOperator.CONTAINS: _contains,
    ConditionOperator.NOT_CONTAINS: lambda v, e: not _contains(v, e),
    ConditionOperator.STARTS_WITH: _starts_with,
    ConditionOperator.ENDS_WITH: _ends_with,
    ConditionOperator.IN: _is_in,
    ConditionOperator.NOT_IN: lambda v, e: not _is_in(v, e),
    ConditionOperator.IS_NULL: lambda v, e: v is None,
    ConditionOperator.IS_NOT_NULL: lambda v, e: v is not None,
    ConditionOperator.IS_EMPTY: lambda v, e: _is_empty(v),
    ConditionOperator.IS_NOT_EMPTY: lambda v, e: not _is_empty(v),
}


def apply_operator(field_value: Any, operator: ConditionOperator, expected: Any) -> bool:
    """Apply one operator. Ordering operators may raise ComparisonError."""
    fn = _OPERATORS.get(operator)
    if fn is None:
        raise UnsupportedOperatorError(f"Operator '{operator}' is not supported")
    return fn(field_value, expected)


# -----------------------------------------------------------------------------
# RuleEvaluationResult
# -----------------------------------------------------------------------------


class RuleEvaluationResult(BaseModel):
    """Outcome of evaluating one rule."""

    rule: ConditionalRule
    is_triggered: bool = False
    error_message: Optional[str] = Field(None, description="Why the rule did not run, if applicable")

    @property
    def action_to_perform(self) -> Optional[str]:
        return self.rule.action if self.is_triggered else None

    @property
    def target_field_id(self) -> Optional[str]:
        return self.rule.target_field_id

    @property
    def target_step_number(self) -> Optional[int]:
        return self.rule.target_step_number

    @property
    def target_module_key(self) -> Optional[str]:
        return self.rule.target_module_key

    @property
    def has_error(self) -> bool:
        return bool(self.error_message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule.id,
            "is_triggered": self.is_triggered,
            "action_to_perform": self.action_to_perform,
            "target_field_id": self.target_field_id,
            "target_step_number": self.target_step_number,
            "target_module_key": self.target_module_key,
            "priority": self.rule.priority,
            "error_message": self.error_message,
        }


# -----------------------------------------------------------------------------
# ConditionEvaluator
# -----------------------------------------------------------------------------


class ConditionEvaluator:
    """
    Evaluates conditions and rules against WorkflowFormData.

    The logger is the diagnostics sink; pass one in to capture warnings per
    session or request. The evaluator holds no other state and is safe to
    share across threads.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        default_module_key: str = DEFAULT_MODULE_KEY,
    ):
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self.default_module_key = default_module_key

    def evaluate(self, condition: Condition, data: WorkflowFormData) -> bool:
        try:
            if condition.is_simple:
                return self._evaluate_leaf(condition, data)
            if condition.is_complex:
                return self._evaluate_group(condition, data)
            self._logger.warning("Invalid condition: neither simple nor complex: %r", condition)
            return False
        except FormLogicError as e:
            self._logger.warning("Condition evaluated to false: %s", e)
            return False
        except Exception:
            self._logger.exception("Error evaluating condition %r", condition)
            return False

    def evaluate_fields(
        self,
        condition: Condition,
        field_data: dict[str, Any],
        module_key: Optional[str] = None,
    ) -> bool:
        """Single-module convenience: field_data becomes the current module."""
        data = WorkflowFormData.from_single_module(module_key or self.default_module_key, field_data)
        return self.evaluate(condition, data)

    def _evaluate_leaf(self, condition: LeafCondition, data: WorkflowFormData) -> bool:
        module_key, field_id = parse_field_reference(condition.field)
        field_value = data.get_field_value(module_key, field_id)
        return apply_operator(field_value, condition.operator, condition.value)

    def _evaluate_group(self, condition: GroupCondition, data: WorkflowFormData) -> bool:
        children = condition.conditions
        if condition.logical_op == LogicalOperator.AND:
            return all(self.evaluate(c, data) for c in children)
        if condition.logical_op == LogicalOperator.OR:
            return any(self.evaluate(c, data) for c in children)
        if condition.logical_op == LogicalOperator.NOT:
            return not self.evaluate(children[0], data)
        return False

    def evaluate_rule(self, rule: ConditionalRule, data: WorkflowFormData) -> RuleEvaluationResult:
        try:
            if not rule.is_active:
                return RuleEvaluationResult(rule=rule, is_triggered=False, error_message="Rule is inactive")
            triggered = self.evaluate(rule.condition, data)
            log_rule_evaluation(self._logger, rule.id, rule.action, triggered)
            return RuleEvaluationResult(rule=rule, is_triggered=triggered)
        except Exception as e:
            self._logger.exception("Error evaluating rule %s", getattr(rule, "id", "?"))
            return RuleEvaluationResult(rule=rule, is_triggered=False, error_message=str(e))

    def evaluate_rules(
        self,
        rules: Iterable[ConditionalRule],
        data: WorkflowFormData,
    ) -> list[RuleEvaluationResult]:
        """
        Triggered active rules, ascending by priority. Ties keep input order.
        Callers apply effects in this order, so a later rule overrides an
        earlier one on the same target.
        """
        ordered = sorted((r for r in rules if r.is_active), key=lambda r: r.priority)
        results = (self.evaluate_rule(rule, data) for rule in ordered)
        return [r for r in results if r.is_triggered]


# -----------------------------------------------------------------------------
# Authoring helpers
# -----------------------------------------------------------------------------


def collect_field_references(condition: Condition) -> list[str]:
    """Leaf references in evaluation order (duplicates kept)."""
    refs: list[str] = []

    def walk(c: Condition) -> None:
        if isinstance(c, LeafCondition):
            if c.field and c.field.strip():
                refs.append(c.field)
            return
        for child in c.conditions:
            walk(child)

    walk(condition)
    return refs


def _condition_issues(
    condition: Condition,
    where: str,
    known_module_keys: Optional[set[str]],
) -> Iterator[tuple[str, str]]:
    """Yield (severity, message) pairs for one condition tree."""
    if isinstance(condition, LeafCondition):
        if not condition.field or not condition.field.strip():
            yield "error", f"{where}: condition has no field"
            return
        if condition.operator is None:
            yield "error", f"{where}: condition on '{condition.field}' has no operator"
        module_key, _ = parse_field_reference(condition.field)
        if module_key is not None and known_module_keys is not None and module_key not in known_module_keys:
            yield "warning", f"{where}: '{condition.field}' references unknown module '{module_key}'"
        return

    if condition.logical_op is None:
        yield "error", f"{where}: condition group has no logical operator"
    if not condition.conditions:
        yield "error", f"{where}: condition group has no child conditions"
    elif condition.logical_op == LogicalOperator.NOT and len(condition.conditions) > 1:
        yield "warning", (
            f"{where}: Not group has {len(condition.conditions)} children; only the first is evaluated"
        )
    for i, child in enumerate(condition.conditions):
        yield from _condition_issues(child, f"{where}[{i}]", known_module_keys)


def validate_rules(
    rules: Iterable[ConditionalRule],
    known_module_keys: Optional[Iterable[str]] = None,
) -> RuleValidationResult:
    """Check a rule set before save. Pure; never raises for bad rules."""
    errors: list[str] = []
    warnings: list[str] = []
    known = set(known_module_keys) if known_module_keys is not None else None
    seen: set[str] = set()

    for rule in rules:
        if not rule.id or not rule.id.strip():
            errors.append("Rule has empty or null ID")
        elif rule.id in seen:
            errors.append(f"Duplicate rule ID: '{rule.id}'")
        seen.add(rule.id)

        label = f"Rule '{rule.id}'"
        if rule.action not in FIELD_ACTIONS and rule.action not in WORKFLOW_ACTIONS:
            warnings.append(f"{label}: unknown action '{rule.action}'")
        elif rule.is_field_action and not (rule.target_field_id and rule.target_field_id.strip()):
            errors.append(f"{label}: action '{rule.action}' requires a target field")
        elif rule.action in (RuleAction.SKIP_STEP.value, RuleAction.GO_TO_STEP.value):
            if rule.target_step_number is None or rule.target_step_number < 1:
                errors.append(f"{label}: action '{rule.action}' requires a target step number >= 1")

        for severity, message in _condition_issues(rule.condition, label, known):
            (errors if severity == "error" else warnings).append(message)

    result = RuleValidationResult(errors=errors, warnings=warnings)
    log_validation_result(logger, "rules", len(errors), len(warnings))
    return result
