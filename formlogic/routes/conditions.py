"""Evaluate a single condition tree against form data."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from formlogic.dependencies import get_evaluator
from formlogic.models.conditions import Condition
from formlogic.models.runtime import WorkflowFormData
from formlogic.services.condition_evaluator import ConditionEvaluator, collect_field_references

router = APIRouter()


class EvaluateConditionRequest(BaseModel):
    condition: Condition = Field(..., description="Leaf or group condition")
    data: WorkflowFormData = Field(default_factory=WorkflowFormData, description="Values across modules")


@router.post("/evaluate")
def evaluate_condition(
    body: EvaluateConditionRequest,
    evaluator: ConditionEvaluator = Depends(get_evaluator),
):
    """
    Evaluate the condition. Malformed or incomparable conditions give
    result=false rather than an error response.
    """
    return {
        "result": evaluator.evaluate(body.condition, body.data),
        "field_references": collect_field_references(body.condition),
    }
