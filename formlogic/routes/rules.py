"""Rule-set evaluation and authoring validation."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from formlogic.dependencies import get_evaluator
from formlogic.models.conditions import ConditionalRule
from formlogic.models.runtime import WorkflowFormData
from formlogic.services.condition_evaluator import ConditionEvaluator, validate_rules

router = APIRouter()


class EvaluateRulesRequest(BaseModel):
    rules: list[ConditionalRule] = Field(default_factory=list)
    data: WorkflowFormData = Field(default_factory=WorkflowFormData)


class ValidateRulesRequest(BaseModel):
    rules: list[ConditionalRule] = Field(default_factory=list)
    known_module_keys: Optional[list[str]] = Field(
        None, description="When set, references to other module keys are flagged"
    )


@router.post("/evaluate")
def evaluate_rules(
    body: EvaluateRulesRequest,
    evaluator: ConditionEvaluator = Depends(get_evaluator),
):
    """Triggered rules in the order their actions should be applied."""
    results = evaluator.evaluate_rules(body.rules, body.data)
    return {"triggered": [r.to_dict() for r in results]}


@router.post("/validate")
def validate_rule_set(body: ValidateRulesRequest):
    return validate_rules(body.rules, body.known_module_keys).model_dump()
