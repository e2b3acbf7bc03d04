"""
formlogic data models.

Schemas (conditions, rules, fields, modules, workflows, code sets) are frozen
Pydantic models that accept the editor's camelCase JSON. Runtime types are
rebuilt per schema load and never persisted.
"""

from formlogic.models.conditions import (
    FIELD_ACTIONS,
    WORKFLOW_ACTIONS,
    Condition,
    ConditionalRule,
    ConditionOperator,
    FieldValue,
    GroupCondition,
    LeafCondition,
    LogicalOperator,
    RuleAction,
    all_of,
    any_of,
    leaf,
    negate,
)
from formlogic.models.form_schema import (
    CodeSetItem,
    CodeSetSchema,
    CrossFieldValidationType,
    FieldOption,
    FieldValidationConfig,
    FieldSetValidation,
    FormFieldSchema,
    FormModuleSchema,
    FormWorkflowSchema,
)
from formlogic.models.runtime import (
    FormFieldNode,
    FormModuleRuntime,
    HierarchyMetrics,
    HierarchyValidationResult,
    RuleValidationResult,
    ValidationResult,
    WorkflowFormData,
)

__all__ = [
    "FIELD_ACTIONS",
    "WORKFLOW_ACTIONS",
    "Condition",
    "ConditionalRule",
    "ConditionOperator",
    "FieldValue",
    "GroupCondition",
    "LeafCondition",
    "LogicalOperator",
    "RuleAction",
    "all_of",
    "any_of",
    "leaf",
    "negate",
    "CodeSetItem",
    "CodeSetSchema",
    "CrossFieldValidationType",
    "FieldOption",
    "FieldValidationConfig",
    "FieldSetValidation",
    "FormFieldSchema",
    "FormModuleSchema",
    "FormWorkflowSchema",
    "FormFieldNode",
    "FormModuleRuntime",
    "HierarchyMetrics",
    "HierarchyValidationResult",
    "RuleValidationResult",
    "ValidationResult",
    "WorkflowFormData",
]
