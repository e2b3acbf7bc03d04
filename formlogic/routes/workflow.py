"""
Workflow navigation routes. The server keeps no session: the client sends
the workflow, its current state and the form data on every call.
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from formlogic.dependencies import get_evaluator
from formlogic.models.form_schema import FormWorkflowSchema
from formlogic.models.runtime import WorkflowFormData
from formlogic.services.condition_evaluator import ConditionEvaluator
from formlogic.services.workflow_service import WorkflowNavigator, WorkflowState

router = APIRouter()


class StartWorkflowRequest(BaseModel):
    workflow: FormWorkflowSchema
    data: WorkflowFormData = Field(default_factory=WorkflowFormData)


class AdvanceWorkflowRequest(StartWorkflowRequest):
    state: WorkflowState


class EnterStepRequest(BaseModel):
    workflow: FormWorkflowSchema
    state: WorkflowState
    step: int = Field(..., ge=1, description="1-based step to enter")


@router.post("/start")
def start_workflow(
    body: StartWorkflowRequest,
    evaluator: ConditionEvaluator = Depends(get_evaluator),
):
    navigator = WorkflowNavigator(body.workflow, evaluator=evaluator)
    return navigator.start(body.data).model_dump(mode="json")


@router.post("/advance")
def advance_workflow(
    body: AdvanceWorkflowRequest,
    evaluator: ConditionEvaluator = Depends(get_evaluator),
):
    """Apply triggered skipStep / goToStep / completeWorkflow rules and move on."""
    navigator = WorkflowNavigator(body.workflow, evaluator=evaluator)
    return navigator.advance(body.state, body.data).model_dump(mode="json")


@router.post("/enter")
def enter_step(body: EnterStepRequest):
    navigator = WorkflowNavigator(body.workflow)
    try:
        state = navigator.enter_step(body.state, body.step)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return state.model_dump(mode="json")
