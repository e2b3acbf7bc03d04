"""
Submitted-value validation for one module.

FormValidationService checks values against each field's FieldValidationConfig,
walking the module in display order, then applies the module's cross-field
constraints. Checks are pluggable: "required", "length", "pattern" and
"email" are registered by default, and register_rule adds more that fields
reference through customRuleIds.
"""

import logging
import re
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field, computed_field

from formlogic.models.form_schema import CrossFieldValidationType, FieldSetValidation
from formlogic.models.runtime import FormFieldNode, FormModuleRuntime
from formlogic.services.workflow_service import FieldState
from formlogic.utils.logging import log_validation_result

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------


class FieldError(BaseModel):
    """One failed check. field_id is comma-joined for cross-field errors."""

    field_id: str
    error_code: str = Field(..., description="Machine-readable code, e.g. REQUIRED or INVALID_EMAIL")
    message: str = Field(..., description="English message")
    message_fr: Optional[str] = Field(None, description="French message")


class FormValidationResult(BaseModel):
    errors: list[FieldError] = Field(default_factory=list)

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.errors

    def errors_for(self, field_id: str) -> list[FieldError]:
        return [e for e in self.errors if e.field_id == field_id]


# -----------------------------------------------------------------------------
# Rules
# -----------------------------------------------------------------------------


@runtime_checkable
class ValidationRule(Protocol):
    """A check on one field's value. values holds the whole module's submission."""

    def validate(self, node: FormFieldNode, value: Any, values: Mapping[str, Any]) -> list[FieldError]:
        ...


def has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) > 0
    return True


def _label_en(node: FormFieldNode) -> str:
    return node.schema.label_en or node.id


def _label_fr(node: FormFieldNode) -> str:
    return node.schema.label_fr or node.schema.label_en or node.id


def _length(value: Any) -> int:
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value)
    return len(value if isinstance(value, str) else str(value))


class RequiredRule:
    """Fails on a missing or blank value. The service decides when it applies."""

    def validate(self, node: FormFieldNode, value: Any, values: Mapping[str, Any]) -> list[FieldError]:
        if has_value(value):
            return []
        config = node.schema.validation
        return [
            FieldError(
                field_id=node.id,
                error_code="REQUIRED",
                message=(config and config.required_message_en) or f"{_label_en(node)} is required",
                message_fr=(config and config.required_message_fr) or f"{_label_fr(node)} est requis",
            )
        ]


class LengthRule:
    def validate(self, node: FormFieldNode, value: Any, values: Mapping[str, Any]) -> list[FieldError]:
        config = node.schema.validation
        if config is None or value is None:
            return []
        length = _length(value)
        errors = []
        if config.min_length is not None and length < config.min_length:
            errors.append(
                FieldError(
                    field_id=node.id,
                    error_code="MIN_LENGTH",
                    message=f"{_label_en(node)} must be at least {config.min_length} characters",
                    message_fr=f"{_label_fr(node)} doit contenir au moins {config.min_length} caractères",
                )
            )
        if config.max_length is not None and length > config.max_length:
            errors.append(
                FieldError(
                    field_id=node.id,
                    error_code="MAX_LENGTH",
                    message=f"{_label_en(node)} must not exceed {config.max_length} characters",
                    message_fr=f"{_label_fr(node)} ne doit pas dépasser {config.max_length} caractères",
                )
            )
        return errors


class PatternRule:
    """Regex search on the value's text. An invalid pattern is logged and passes."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger if logger is not None else logging.getLogger(__name__)

    def validate(self, node: FormFieldNode, value: Any, values: Mapping[str, Any]) -> list[FieldError]:
        config = node.schema.validation
        if config is None or value is None or not (config.pattern and config.pattern.strip()):
            return []
        try:
            regex = re.compile(config.pattern)
        except re.error as e:
            self._logger.warning("Field '%s': invalid pattern %r (%s); check skipped", node.id, config.pattern, e)
            return []
        if regex.search(value if isinstance(value, str) else str(value)):
            return []
        return [
            FieldError(
                field_id=node.id,
                error_code="PATTERN_MISMATCH",
                message=config.pattern_message_en or f"{_label_en(node)} format is invalid",
                message_fr=config.pattern_message_fr or f"Le format de {_label_fr(node)} est invalide",
            )
        ]


class EmailRule:
    def validate(self, node: FormFieldNode, value: Any, values: Mapping[str, Any]) -> list[FieldError]:
        if not has_value(value):
            return []
        if EMAIL_PATTERN.match(value if isinstance(value, str) else str(value)):
            return []
        return [
            FieldError(
                field_id=node.id,
                error_code="INVALID_EMAIL",
                message=f"{_label_en(node)} must be a valid email address",
                message_fr=f"{_label_fr(node)} doit être une adresse courriel valide",
            )
        ]


# (fails(filled, total), error code, English message, French message)
_FIELD_SET_CHECKS = {
    CrossFieldValidationType.AT_LEAST_ONE: (
        lambda filled, total: filled == 0,
        "CROSS_FIELD_REQUIRED",
        "At least one of these fields is required: {fields}",
        "Au moins un de ces champs est requis: {fields}",
    ),
    CrossFieldValidationType.ALL_OR_NONE: (
        lambda filled, total: 0 < filled < total,
        "CROSS_FIELD_ALL_OR_NONE",
        "Fill in all or none of these fields: {fields}",
        "Remplissez tous ces champs ou aucun: {fields}",
    ),
    CrossFieldValidationType.MUTUALLY_EXCLUSIVE: (
        lambda filled, total: filled > 1,
        "CROSS_FIELD_MUTUALLY_EXCLUSIVE",
        "Only one of these fields may be filled: {fields}",
        "Un seul de ces champs peut être rempli: {fields}",
    ),
}


# -----------------------------------------------------------------------------
# FormValidationService
# -----------------------------------------------------------------------------


class FormValidationService:
    """
    Validates submitted values for a built module.

    Per field: the required check runs first and, when it fails, the field's
    other checks are skipped. An empty optional value passes without further
    checks. Then length, pattern and each custom rule id run in that order.
    Rule ids with no registered rule are logged and ignored.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self._rules: dict[str, ValidationRule] = {}
        self.register_rule("required", RequiredRule())
        self.register_rule("length", LengthRule())
        self.register_rule("pattern", PatternRule(self._logger))
        self.register_rule("email", EmailRule())

    @property
    def rule_ids(self) -> list[str]:
        return list(self._rules)

    def register_rule(self, rule_id: str, rule: ValidationRule) -> None:
        """Add or replace a rule. Built-in ids may be overridden."""
        if not rule_id or not rule_id.strip():
            raise ValueError("Validation rule id must not be blank")
        self._rules[rule_id] = rule
        self._logger.debug("Registered validation rule: %s", rule_id)

    def _run(self, rule_id: str, node: FormFieldNode, value: Any, values: Mapping[str, Any]) -> list[FieldError]:
        rule = self._rules.get(rule_id)
        if rule is None:
            self._logger.warning("Validation rule '%s' not found for field '%s'", rule_id, node.id)
            return []
        return list(rule.validate(node, value, values))

    def validate_field(
        self,
        node: FormFieldNode,
        value: Any,
        values: Optional[Mapping[str, Any]] = None,
        required: Optional[bool] = None,
    ) -> FormValidationResult:
        """required overrides the schema's isRequired (e.g. after setRequired rules)."""
        values = values if values is not None else {}
        is_required = node.schema.is_required if required is None else required
        if is_required:
            errors = self._run("required", node, value, values)
            if errors:
                return FormValidationResult(errors=errors)

        config = node.schema.validation
        if config is None or not has_value(value):
            return FormValidationResult()

        errors = []
        if config.min_length is not None or config.max_length is not None:
            errors.extend(self._run("length", node, value, values))
        if config.pattern and config.pattern.strip():
            errors.extend(self._run("pattern", node, value, values))
        for rule_id in config.custom_rule_ids:
            errors.extend(self._run(rule_id, node, value, values))
        return FormValidationResult(errors=errors)

    def _check_field_set(self, constraint: FieldSetValidation, values: Mapping[str, Any]) -> list[FieldError]:
        try:
            kind = CrossFieldValidationType(constraint.type)
        except ValueError:
            self._logger.warning("Unknown cross-field validation type '%s'; skipped", constraint.type)
            return []
        fails, code, message_en, message_fr = _FIELD_SET_CHECKS[kind]
        filled = sum(1 for fid in constraint.field_ids if has_value(values.get(fid)))
        if not fails(filled, len(constraint.field_ids)):
            return []
        fields = ", ".join(constraint.field_ids)
        return [
            FieldError(
                field_id=",".join(constraint.field_ids),
                error_code=code,
                message=constraint.error_message_en or message_en.format(fields=fields),
                message_fr=constraint.error_message_fr or message_fr.format(fields=fields),
            )
        ]

    def validate_module(
        self,
        runtime: FormModuleRuntime,
        values: Mapping[str, Any],
        states: Optional[Mapping[str, FieldState]] = None,
    ) -> FormValidationResult:
        """
        Validate values (field id -> value) for every field in display order.

        With states (from resolve_field_states), hidden fields are skipped and
        each state's is_required replaces the schema's. Cross-field constraints
        from the module schema run last.
        """
        errors: list[FieldError] = []
        for node in runtime.fields_in_order():
            state = states.get(node.id) if states else None
            if state is not None and not state.is_visible:
                continue
            required = state.is_required if state is not None else None
            errors.extend(self.validate_field(node, values.get(node.id), values, required).errors)

        if runtime.schema is not None:
            for constraint in runtime.schema.cross_field_validations:
                errors.extend(self._check_field_set(constraint, values))

        module_id = runtime.schema.id if runtime.schema else None
        log_validation_result(self._logger, f"values:module {module_id}", len(errors), 0)
        return FormValidationResult(errors=errors)
