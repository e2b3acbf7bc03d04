"""
Workflow navigation and field-state resolution.

WorkflowNavigator moves through a workflow's steps (1-based module positions)
using its skipStep / goToStep / completeWorkflow rules. resolve_field_states
applies field-level rules (show, hide, enable, disable, setRequired,
setOptional) to a built module runtime.
"""

import logging
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from formlogic.models.conditions import ConditionalRule, RuleAction
from formlogic.models.form_schema import FormWorkflowSchema
from formlogic.models.runtime import FormModuleRuntime, WorkflowFormData
from formlogic.services.condition_evaluator import ConditionEvaluator

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Workflow state
# -----------------------------------------------------------------------------


class WorkflowStatus(str, Enum):
    NOT_STARTED = "NotStarted"
    IN_STEP = "InStep"
    COMPLETED = "Completed"


class WorkflowState(BaseModel):
    """Position in a workflow. Each transition returns a new state."""

    model_config = {"frozen": True}

    status: WorkflowStatus = WorkflowStatus.NOT_STARTED
    current_step: Optional[int] = Field(None, description="1-based step; None unless InStep")
    skipped_steps: tuple[int, ...] = Field(default_factory=tuple, description="Steps marked skipped so far")
    history: tuple[int, ...] = Field(default_factory=tuple, description="Steps entered, in order")
    completed_early: bool = Field(False, description="Completed by a completeWorkflow rule")

    @property
    def is_complete(self) -> bool:
        return self.status == WorkflowStatus.COMPLETED


class WorkflowNavigator:
    """
    Forward navigation over one workflow.

    Triggered rules apply in priority order: skipStep accumulates, while
    goToStep and completeWorkflow overwrite the destination (last one wins).
    An explicit goToStep lands on its target even if that step is skipped.
    A goToStep that does not move forward is honored and logged at INFO;
    deliberate re-entry goes through enter_step.
    """

    def __init__(
        self,
        workflow: FormWorkflowSchema,
        evaluator: Optional[ConditionEvaluator] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.workflow = workflow
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self.evaluator = evaluator or ConditionEvaluator(logger=self._logger)

    @property
    def step_count(self) -> int:
        return self.workflow.step_count

    def _in_range(self, step: Optional[int]) -> bool:
        return step is not None and 1 <= step <= self.step_count

    def _first_open_step(self, start: int, skipped: set[int]) -> Optional[int]:
        step = start
        while step in skipped:
            step += 1
        return step if step <= self.step_count else None

    def _collect_skips(self, rule: ConditionalRule, skipped: set[int]) -> None:
        if self._in_range(rule.target_step_number):
            skipped.add(rule.target_step_number)
        else:
            self._logger.warning(
                "Rule '%s': skipStep target %s out of range 1..%d; ignored",
                rule.id,
                rule.target_step_number,
                self.step_count,
            )

    def _completed(self, state: WorkflowState, skipped: set[int], early: bool) -> WorkflowState:
        self._logger.info("Workflow %s completed (early=%s)", self.workflow.id, early)
        return WorkflowState(
            status=WorkflowStatus.COMPLETED,
            current_step=None,
            skipped_steps=tuple(sorted(skipped)),
            history=state.history,
            completed_early=early,
        )

    def _enter(self, state: WorkflowState, step: int, skipped: set[int]) -> WorkflowState:
        self._logger.debug("Workflow %s entering step %d", self.workflow.id, step)
        return WorkflowState(
            status=WorkflowStatus.IN_STEP,
            current_step=step,
            skipped_steps=tuple(sorted(skipped)),
            history=state.history + (step,),
        )

    def start(self, data: WorkflowFormData) -> WorkflowState:
        """Enter step 1, or the first step not skipped by a triggered skipStep rule."""
        initial = WorkflowState()
        skipped: set[int] = set()
        for result in self.evaluator.evaluate_rules(self.workflow.workflow_rules, data):
            if result.action_to_perform == RuleAction.SKIP_STEP.value:
                self._collect_skips(result.rule, skipped)

        first = self._first_open_step(1, skipped)
        if first is None:
            return self._completed(initial, skipped, early=False)
        return self._enter(initial, first, skipped)

    def advance(self, state: WorkflowState, data: WorkflowFormData) -> WorkflowState:
        """Leave the current step and return the next state."""
        if state.status == WorkflowStatus.COMPLETED:
            return state
        if state.status == WorkflowStatus.NOT_STARTED or state.current_step is None:
            return self.start(data)

        skipped = set(state.skipped_steps)
        destination: Optional[int] = None
        complete = False

        for result in self.evaluator.evaluate_rules(self.workflow.workflow_rules, data):
            rule = result.rule
            action = result.action_to_perform
            if action == RuleAction.SKIP_STEP.value:
                self._collect_skips(rule, skipped)
            elif action == RuleAction.GO_TO_STEP.value:
                if self._in_range(rule.target_step_number):
                    destination, complete = rule.target_step_number, False
                else:
                    self._logger.warning(
                        "Rule '%s': goToStep target %s out of range 1..%d; ignored",
                        rule.id,
                        rule.target_step_number,
                        self.step_count,
                    )
            elif action == RuleAction.COMPLETE_WORKFLOW.value:
                destination, complete = None, True

        if complete:
            return self._completed(state, skipped, early=True)
        if destination is not None:
            if destination <= state.current_step:
                self._logger.info(
                    "Workflow %s: goToStep leaves step %d for earlier or same step %d",
                    self.workflow.id,
                    state.current_step,
                    destination,
                )
            return self._enter(state, destination, skipped)

        next_step = self._first_open_step(state.current_step + 1, skipped)
        if next_step is None:
            return self._completed(state, skipped, early=False)
        return self._enter(state, next_step, skipped)

    def enter_step(self, state: WorkflowState, step: int) -> WorkflowState:
        """Set the position directly (e.g. the user goes back). Evaluates no rules."""
        if not self._in_range(step):
            raise ValueError(f"Step {step} out of range 1..{self.step_count}")
        return self._enter(state, step, set(state.skipped_steps))


# -----------------------------------------------------------------------------
# Field states
# -----------------------------------------------------------------------------


class FieldState(BaseModel):
    """Effective UI state of one field after rules are applied."""

    model_config = {"frozen": True}

    field_id: str
    is_visible: bool = True
    is_enabled: bool = True
    is_required: bool = False


_FIELD_EFFECTS = {
    RuleAction.SHOW.value: ("is_visible", True),
    RuleAction.HIDE.value: ("is_visible", False),
    RuleAction.ENABLE.value: ("is_enabled", True),
    RuleAction.DISABLE.value: ("is_enabled", False),
    RuleAction.SET_REQUIRED.value: ("is_required", True),
    RuleAction.SET_OPTIONAL.value: ("is_required", False),
}


def resolve_field_states(
    runtime: FormModuleRuntime,
    rules: Optional[Iterable[ConditionalRule]],
    data: WorkflowFormData,
    evaluator: Optional[ConditionEvaluator] = None,
    logger: Optional[logging.Logger] = None,
) -> dict[str, FieldState]:
    """
    Field states in display order.

    Starts from schema defaults, applies triggered field-level rules in
    priority order, then hides every descendant of a hidden field. When rules
    is None the fields' own conditional_rules are used.
    """
    log = logger or logging.getLogger(__name__)
    evaluator = evaluator or ConditionEvaluator(logger=log)
    ordered = list(runtime.fields_in_order())

    if rules is None:
        rules = [rule for node in ordered for rule in node.schema.conditional_rules]

    states = {
        node.id: {
            "is_visible": node.schema.is_visible,
            "is_enabled": not node.schema.is_read_only,
            "is_required": node.schema.is_required,
        }
        for node in ordered
    }
    module_key = runtime.schema.module_key if runtime.schema else None

    for result in evaluator.evaluate_rules(rules, data):
        rule = result.rule
        if not rule.is_field_action:
            continue
        if rule.target_module_key and module_key and rule.target_module_key != module_key:
            log.debug("Rule '%s' targets module '%s'; skipped", rule.id, rule.target_module_key)
            continue
        target = states.get(rule.target_field_id or "")
        if target is None:
            log.warning("Rule '%s' targets unknown field '%s'; skipped", rule.id, rule.target_field_id)
            continue
        attr, value = _FIELD_EFFECTS[rule.action]
        target[attr] = value

    resolved: dict[str, FieldState] = {}
    for node in ordered:
        state = states[node.id]
        parent = runtime.parent_of(node)
        if parent is not None and not resolved[parent.id].is_visible:
            state["is_visible"] = False
        resolved[node.id] = FieldState(field_id=node.id, **state)
    return resolved
