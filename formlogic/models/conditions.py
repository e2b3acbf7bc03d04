"""
Condition tree and conditional rule models.

A condition is a tagged union: a leaf comparison (field, operator, value) or a
group (And / Or / Not over child conditions). Leaves may reference fields in
other workflow modules with dot notation ("ModuleKey.FieldId"). Rules pair a
condition with an action on a field or a workflow step.

All models are frozen Pydantic v2 models. They accept camelCase keys and
operator names in any case ("lessThan", "LessThan"). Unfinished drafts (an
empty condition, a null field, null children) still load and evaluate to
False, so one incomplete rule never rejects the schema around it.
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional, Union

from pydantic import BaseModel, Discriminator, Field, Tag, field_validator
from pydantic.alias_generators import to_camel

# Closed set of values a field can hold at evaluation time.
FieldValue = Union[None, bool, int, float, Decimal, str, date, datetime, time, list[Any]]


class SchemaModel(BaseModel):
    """Base for immutable schema values (camelCase or snake_case input)."""

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "alias_generator": to_camel,
    }


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------


class _CaseInsensitiveEnum(str, Enum):
    @classmethod
    def _missing_(cls, value: Any):
        if isinstance(value, str):
            folded = value.casefold()
            for member in cls:
                if member.value.casefold() == folded:
                    return member
        return None


class ConditionOperator(_CaseInsensitiveEnum):
    """Comparison operator for a leaf condition."""

    EQUALS = "Equals"
    NOT_EQUALS = "NotEquals"
    GREATER_THAN = "GreaterThan"
    GREATER_THAN_OR_EQUAL = "GreaterThanOrEqual"
    LESS_THAN = "LessThan"
    LESS_THAN_OR_EQUAL = "LessThanOrEqual"
    CONTAINS = "Contains"
    NOT_CONTAINS = "NotContains"
    STARTS_WITH = "StartsWith"
    ENDS_WITH = "EndsWith"
    IN = "In"
    NOT_IN = "NotIn"
    IS_NULL = "IsNull"
    IS_NOT_NULL = "IsNotNull"
    IS_EMPTY = "IsEmpty"
    IS_NOT_EMPTY = "IsNotEmpty"


class LogicalOperator(_CaseInsensitiveEnum):
    """Combinator for a condition group. Not is unary: only the first child counts."""

    AND = "And"
    OR = "Or"
    NOT = "Not"


class RuleAction(str, Enum):
    """Known rule actions (field-level and workflow-level)."""

    SHOW = "show"
    HIDE = "hide"
    ENABLE = "enable"
    DISABLE = "disable"
    SET_REQUIRED = "setRequired"
    SET_OPTIONAL = "setOptional"
    SKIP_STEP = "skipStep"
    GO_TO_STEP = "goToStep"
    COMPLETE_WORKFLOW = "completeWorkflow"


FIELD_ACTIONS = frozenset(
    {
        RuleAction.SHOW.value,
        RuleAction.HIDE.value,
        RuleAction.ENABLE.value,
        RuleAction.DISABLE.value,
        RuleAction.SET_REQUIRED.value,
        RuleAction.SET_OPTIONAL.value,
    }
)
WORKFLOW_ACTIONS = frozenset(
    {
        RuleAction.SKIP_STEP.value,
        RuleAction.GO_TO_STEP.value,
        RuleAction.COMPLETE_WORKFLOW.value,
    }
)


# -----------------------------------------------------------------------------
# Condition tree
# -----------------------------------------------------------------------------


class LeafCondition(SchemaModel):
    """Single comparison: field <operator> value."""

    field: Optional[str] = Field(None, description="Field reference, optionally module-prefixed (e.g. 'Step1.age')")
    operator: Optional[ConditionOperator] = Field(None, description="Comparison operator")
    value: Any = Field(None, description="Value to compare against (scalar or list)")

    @property
    def is_simple(self) -> bool:
        return bool(self.field and self.field.strip()) and self.operator is not None

    @property
    def is_complex(self) -> bool:
        return False


class GroupCondition(SchemaModel):
    """Logical group over child conditions."""

    logical_op: Optional[LogicalOperator] = Field(None, description="And, Or or Not")
    conditions: list["Condition"] = Field(default_factory=list, description="Ordered child conditions")

    @field_validator("conditions", mode="before")
    @classmethod
    def _null_children(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            return [{} if c is None else c for c in v]
        return v

    @property
    def is_simple(self) -> bool:
        return False

    @property
    def is_complex(self) -> bool:
        return self.logical_op is not None and len(self.conditions) > 0


def _condition_kind(value: Any) -> Optional[str]:
    if isinstance(value, GroupCondition):
        return "group"
    if isinstance(value, LeafCondition):
        return "leaf"
    if isinstance(value, dict):
        keys = set(value)
        if keys & {"conditions", "logical_op", "logicalOp"}:
            return "group"
        # Anything else, including {}, is an unfinished leaf
        return "leaf"
    return None


Condition = Annotated[
    Union[
        Annotated[LeafCondition, Tag("leaf")],
        Annotated[GroupCondition, Tag("group")],
    ],
    Discriminator(_condition_kind),
]

GroupCondition.model_rebuild()


def leaf(field: str, operator: ConditionOperator, value: Any = None) -> LeafCondition:
    return LeafCondition(field=field, operator=operator, value=value)


def all_of(*conditions: Condition) -> GroupCondition:
    return GroupCondition(logical_op=LogicalOperator.AND, conditions=list(conditions))


def any_of(*conditions: Condition) -> GroupCondition:
    return GroupCondition(logical_op=LogicalOperator.OR, conditions=list(conditions))


def negate(condition: Condition) -> GroupCondition:
    return GroupCondition(logical_op=LogicalOperator.NOT, conditions=[condition])


# -----------------------------------------------------------------------------
# ConditionalRule
# -----------------------------------------------------------------------------


class ConditionalRule(SchemaModel):
    """
    A condition paired with an action.

    Field-level actions (show, hide, enable, disable, setRequired, setOptional)
    use target_field_id. skipStep and goToStep use target_step_number (1-based).
    completeWorkflow needs no target. Lower priority runs first.
    """

    id: str = Field(..., description="Unique rule ID")
    action: str = Field(..., description="Action tag, see RuleAction")
    condition: Condition = Field(..., description="Root condition")
    description: Optional[str] = Field(None, description="Human-readable purpose of the rule")
    target_field_id: Optional[str] = Field(None, description="Target field for field-level actions")
    target_step_number: Optional[int] = Field(None, description="Target step (1-based) for skipStep/goToStep")
    target_module_key: Optional[str] = Field(None, description="Target module key for module-scoped actions")
    priority: int = Field(100, description="Execution order; lower runs first")
    is_active: bool = Field(True, description="Inactive rules are never triggered")
    category: Optional[str] = Field(None, description="Grouping, e.g. 'workflow-navigation'")
    tags: list[str] = Field(default_factory=list, description="Search tags")

    @field_validator("condition", mode="before")
    @classmethod
    def _null_condition(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def is_field_action(self) -> bool:
        return self.action in FIELD_ACTIONS

    @property
    def is_workflow_action(self) -> bool:
        return self.action in WORKFLOW_ACTIONS
