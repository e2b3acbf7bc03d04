#!/usr/bin/env python3
"""
Run the grant-application example: build each module's hierarchy, then walk
the workflow for every fixture case and compare the visited steps.

Usage (from project root):
  python scripts/demo.py

Output: hierarchy summary per module, a results table and a short report.
"""
import json
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

FIXTURES_PATH = ROOT / "tests" / "fixtures" / "grant_application_workflow.json"
REPORT_PATH = ROOT / "logs" / "grant-application-demo-report.txt"


def main() -> None:
    if not FIXTURES_PATH.exists():
        print(f"Error: Fixtures not found at {FIXTURES_PATH}")
        sys.exit(1)

    from formlogic.models.form_schema import CodeSetSchema, FormModuleSchema, FormWorkflowSchema
    from formlogic.models.runtime import WorkflowFormData
    from formlogic.services.code_sets import InMemoryCodeSetProvider
    from formlogic.services.hierarchy_service import HierarchyBuilder
    from formlogic.services.workflow_service import WorkflowNavigator, resolve_field_states
    from formlogic.utils.logging import configure_logging

    configure_logging(level="WARNING")

    fixture = json.loads(FIXTURES_PATH.read_text(encoding="utf-8"))
    workflow = FormWorkflowSchema.model_validate(fixture["workflow"])
    modules = [FormModuleSchema.model_validate(m) for m in fixture["modules"]]
    provider = InMemoryCodeSetProvider(CodeSetSchema.model_validate(cs) for cs in fixture["codeSets"])
    builder = HierarchyBuilder(code_set_provider=provider)

    print(f"Workflow: {workflow.title_en} ({workflow.step_count} steps)\n")
    runtimes = {}
    for module in modules:
        runtime = builder.build_hierarchy_sync(module)
        runtimes[module.module_key] = runtime
        print(f"  {runtime!r}, complexity {runtime.metrics.complexity_score}")
    print()

    navigator = WorkflowNavigator(workflow)
    results = []
    for case in fixture["cases"]:
        data = WorkflowFormData(modules=case["data"], current_module_key="Applicant")
        started = time.perf_counter()
        state = navigator.start(data)
        while not state.is_complete:
            state = navigator.advance(state, data)
        elapsed_ms = (time.perf_counter() - started) * 1000
        visible = [
            fid
            for fid, s in resolve_field_states(runtimes["Applicant"], None, data).items()
            if s.is_visible
        ]
        passed = list(state.history) == case["expected_steps"] and (
            state.completed_early == case["expected_completed_early"]
        )
        results.append((case, state, visible, passed, elapsed_ms))

    col_name = 38
    col_pass = 6
    col_steps = 14
    col_time = 10
    header = f"{'Case':<{col_name}} {'Pass':<{col_pass}} {'Steps':<{col_steps}} {'Time (ms)':<{col_time}}"
    print(header)
    print("-" * (col_name + col_pass + col_steps + col_time))
    for case, state, _, passed, elapsed_ms in results:
        steps = " -> ".join(str(s) for s in state.history)
        print(f"{case['name']:<{col_name}} {'Yes' if passed else 'No':<{col_pass}} {steps:<{col_steps}} {elapsed_ms:<{col_time}.2f}")

    passed_count = sum(1 for r in results if r[3])
    total = len(results)
    print()
    print(f"Summary: {passed_count}/{total} passed")

    lines = [
        "formlogic Grant Application Demo - Evaluation Report",
        "=" * 52,
        f"Fixtures: {FIXTURES_PATH}",
        f"Total cases: {total}",
        f"Passed: {passed_count}",
        f"Failed: {total - passed_count}",
        "",
        "Cases:",
    ]
    for case, state, visible, passed, _ in results:
        lines.append(f"  - {case['name']}: {'ok' if passed else 'MISMATCH'}")
        lines.append(f"    Steps: {list(state.history)} (expected {case['expected_steps']})")
        lines.append(f"    Completed early: {state.completed_early}")
        lines.append(f"    Visible applicant fields: {', '.join(visible)}")
    REPORT_PATH.parent.mkdir(parents=True, exist_ok=True)
    REPORT_PATH.write_text("\n".join(lines), encoding="utf-8")
    print(f"\nReport written to {REPORT_PATH}")
    print("Done.")


if __name__ == "__main__":
    main()
