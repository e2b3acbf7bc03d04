"""Engine services (evaluation, hierarchy, code sets, workflow, value validation)."""

from formlogic.services.field_reference import format_field_reference, parse_field_reference
from formlogic.services.condition_evaluator import (
    ConditionEvaluator,
    RuleEvaluationResult,
    apply_operator,
    collect_field_references,
    validate_rules,
)
from formlogic.services.code_sets import (
    CodeSetProvider,
    CodeSetProviderStats,
    InMemoryCodeSetProvider,
)
from formlogic.services.hierarchy_service import (
    HierarchyBuilder,
    HierarchyOptions,
    build_field_tree,
    calculate_metrics,
    fix_hierarchy_issues,
    fix_module_hierarchy,
    validate_hierarchy,
)
from formlogic.services.workflow_service import (
    FieldState,
    WorkflowNavigator,
    WorkflowState,
    WorkflowStatus,
    resolve_field_states,
)
from formlogic.services.validation_service import (
    FieldError,
    FormValidationResult,
    FormValidationService,
    ValidationRule,
)

__all__ = [
    "format_field_reference",
    "parse_field_reference",
    "ConditionEvaluator",
    "RuleEvaluationResult",
    "apply_operator",
    "collect_field_references",
    "validate_rules",
    "CodeSetProvider",
    "CodeSetProviderStats",
    "InMemoryCodeSetProvider",
    "HierarchyBuilder",
    "HierarchyOptions",
    "build_field_tree",
    "calculate_metrics",
    "fix_hierarchy_issues",
    "fix_module_hierarchy",
    "validate_hierarchy",
    "FieldState",
    "WorkflowNavigator",
    "WorkflowState",
    "WorkflowStatus",
    "resolve_field_states",
    "FieldError",
    "FormValidationResult",
    "FormValidationService",
    "ValidationRule",
]
