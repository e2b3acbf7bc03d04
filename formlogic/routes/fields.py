"""Field states (visible / enabled / required) and value validation for one module."""

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from formlogic.dependencies import get_evaluator, get_validation_service
from formlogic.models.conditions import ConditionalRule
from formlogic.models.form_schema import FormModuleSchema
from formlogic.models.runtime import FormModuleRuntime, WorkflowFormData
from formlogic.services.condition_evaluator import ConditionEvaluator
from formlogic.services.hierarchy_service import build_field_tree
from formlogic.services.validation_service import FormValidationService
from formlogic.services.workflow_service import FieldState, resolve_field_states

router = APIRouter()


class FieldStatesRequest(BaseModel):
    module: FormModuleSchema
    rules: Optional[list[ConditionalRule]] = Field(
        None, description="Rules to apply; defaults to the fields' own conditional rules"
    )
    data: WorkflowFormData = Field(default_factory=WorkflowFormData)


class ValidateValuesRequest(BaseModel):
    module: FormModuleSchema
    values: dict[str, Any] = Field(default_factory=dict, description="field id -> submitted value")
    data: Optional[WorkflowFormData] = Field(
        None, description="When given, the fields' rules decide visibility and requiredness"
    )


def _runtime(module: FormModuleSchema) -> FormModuleRuntime:
    runtime = build_field_tree(module.fields)
    runtime.schema = module
    return runtime


def _states(
    runtime: FormModuleRuntime,
    rules: Optional[list[ConditionalRule]],
    data: WorkflowFormData,
    evaluator: ConditionEvaluator,
) -> dict[str, FieldState]:
    if data.current_module_key is None:
        data.current_module_key = runtime.schema.module_key or evaluator.default_module_key
    return resolve_field_states(runtime, rules, data, evaluator)


@router.post("/states")
def field_states(
    body: FieldStatesRequest,
    evaluator: ConditionEvaluator = Depends(get_evaluator),
):
    states = _states(_runtime(body.module), body.rules, body.data, evaluator)
    return {"states": [s.model_dump() for s in states.values()]}


@router.post("/validate")
def validate_values(
    body: ValidateValuesRequest,
    evaluator: ConditionEvaluator = Depends(get_evaluator),
    validator: FormValidationService = Depends(get_validation_service),
):
    """Errors for submitted values. Hidden fields are skipped when data is given."""
    runtime = _runtime(body.module)
    states = _states(runtime, None, body.data, evaluator) if body.data is not None else None
    return validator.validate_module(runtime, body.values, states).model_dump()
