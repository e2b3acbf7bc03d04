"""
Read-only form schemas consumed by the engine.

Fields arrive as a flat list per module; the hierarchy is rebuilt at runtime
from parent_id links. Display metadata the engine does not use is accepted
and kept (extra="allow") so schemas round-trip unchanged.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field, field_validator

from formlogic.models.conditions import ConditionalRule, SchemaModel


class FieldOption(SchemaModel):
    """Selectable option for dropdown/radio/checkbox fields."""

    value: str = Field(..., description="Stored value")
    label_en: str = Field(..., description="English label")
    label_fr: Optional[str] = Field(None, description="French label")
    is_default: bool = Field(False, description="Selected by default")
    order: int = Field(0, description="Display order")


class FieldValidationConfig(SchemaModel):
    """Value constraints for one field, checked by FormValidationService."""

    model_config = {"extra": "allow"}

    is_required: bool = Field(False, description="Field must have a value")
    required_message_en: Optional[str] = Field(None, description="Custom required message (English)")
    required_message_fr: Optional[str] = Field(None, description="Custom required message (French)")
    min_length: Optional[int] = Field(None, ge=0, description="Minimum length of the value")
    max_length: Optional[int] = Field(None, ge=0, description="Maximum length of the value")
    pattern: Optional[str] = Field(None, description="Regular expression the value must match")
    pattern_message_en: Optional[str] = Field(None, description="Custom pattern message (English)")
    pattern_message_fr: Optional[str] = Field(None, description="Custom pattern message (French)")
    custom_rule_ids: list[str] = Field(
        default_factory=list,
        description="Registered validation rules to run, e.g. ['email']",
    )

    @field_validator("custom_rule_ids", mode="before")
    @classmethod
    def _null_rule_ids(cls, v: Any) -> Any:
        return [] if v is None else v


class CrossFieldValidationType(str, Enum):
    AT_LEAST_ONE = "AtLeastOne"
    ALL_OR_NONE = "AllOrNone"
    MUTUALLY_EXCLUSIVE = "MutuallyExclusive"


class FieldSetValidation(SchemaModel):
    """Constraint over a set of fields, e.g. at least one of them is filled."""

    type: str = Field(..., description="AtLeastOne, AllOrNone or MutuallyExclusive")
    field_ids: list[str] = Field(..., description="Fields the constraint covers")
    error_message_en: Optional[str] = Field(None, description="Custom message (English)")
    error_message_fr: Optional[str] = Field(None, description="Custom message (French)")


class FormFieldSchema(SchemaModel):
    """Immutable definition of one field. Unique by id within a module."""

    model_config = {"extra": "allow"}

    id: str = Field(..., description="Field ID, unique within the module")
    field_type: str = Field("TextBox", description="TextBox, DropDown, Section, ...")
    order: int = Field(1, description="Sort key among siblings (lower first)")
    parent_id: Optional[str] = Field(None, description="Parent field ID; blank means root")
    label_en: Optional[str] = Field(None, description="English label")
    label_fr: Optional[str] = Field(None, description="French label")
    validation: Optional[FieldValidationConfig] = Field(None, description="Validation configuration")
    conditional_rules: list[ConditionalRule] = Field(
        default_factory=list,
        description="Rules controlling this field's visibility or behavior",
    )
    code_set_id: Optional[int] = Field(None, description="Code set supplying options at runtime")
    options: list[FieldOption] = Field(default_factory=list, description="Inline options")
    is_visible: bool = Field(True, description="Initial visibility")
    is_read_only: bool = Field(False, description="Initial read-only state")

    @property
    def has_parent(self) -> bool:
        return bool(self.parent_id and self.parent_id.strip())

    @property
    def is_required(self) -> bool:
        return bool(self.validation and self.validation.is_required)


class FormModuleSchema(SchemaModel):
    """One module (form step) with its flat field list."""

    model_config = {"extra": "allow"}

    id: int = Field(..., description="Module ID")
    title_en: str = Field("", description="English title")
    title_fr: Optional[str] = Field(None, description="French title")
    module_key: Optional[str] = Field(None, description="Key used in cross-module references")
    fields: list[FormFieldSchema] = Field(default_factory=list, description="Flat field list")
    cross_field_validations: list[FieldSetValidation] = Field(
        default_factory=list,
        description="Constraints spanning several fields",
    )
    date_updated: Optional[datetime] = Field(None, description="Last modification (UTC)")


class FormWorkflowSchema(SchemaModel):
    """Ordered sequence of modules with step-level navigation rules."""

    model_config = {"extra": "allow"}

    id: int = Field(..., description="Workflow ID")
    title_en: str = Field("", description="English title")
    module_ids: list[int] = Field(default_factory=list, description="Module IDs in step order")
    workflow_rules: list[ConditionalRule] = Field(
        default_factory=list,
        description="skipStep / goToStep / completeWorkflow rules",
    )

    @property
    def step_count(self) -> int:
        return len(self.module_ids)


# -----------------------------------------------------------------------------
# Code sets
# -----------------------------------------------------------------------------


class CodeSetItem(SchemaModel):
    """One entry of a reusable code set."""

    value: str = Field(..., description="Stored value")
    text_en: str = Field(..., description="English text")
    text_fr: Optional[str] = Field(None, description="French text")
    order: int = Field(0, description="Display order")
    is_active: bool = Field(True, description="Inactive items are not offered")
    is_default: bool = Field(False, description="Selected by default")


class CodeSetSchema(SchemaModel):
    """Reusable option list referenced by FormFieldSchema.code_set_id."""

    id: int = Field(..., description="Code set ID")
    code: str = Field(..., description="Unique code, e.g. PROVINCES_CA")
    name_en: str = Field(..., description="English name")
    items: list[CodeSetItem] = Field(default_factory=list, description="Entries")
    category: Optional[str] = Field(None, description="Grouping, e.g. Geography")
    is_active: bool = Field(True, description="Inactive code sets are hidden from listings")

    def to_field_options(self) -> list[FieldOption]:
        """Active items as FieldOptions, ordered by item order."""
        active = sorted((i for i in self.items if i.is_active), key=lambda i: i.order)
        return [
            FieldOption(
                value=i.value,
                label_en=i.text_en,
                label_fr=i.text_fr,
                is_default=i.is_default,
                order=i.order,
            )
            for i in active
        ]
