"""
Pytest fixtures for formlogic tests.

The grant-application fixture is a four-step workflow (Applicant, Project,
Financials, Review) with cross-module navigation rules and a province code set.
"""

import json
import logging
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from formlogic.dependencies import get_code_set_provider
from formlogic.main import app
from formlogic.models.form_schema import CodeSetSchema, FormModuleSchema, FormWorkflowSchema
from formlogic.services.code_sets import InMemoryCodeSetProvider
from formlogic.services.condition_evaluator import ConditionEvaluator

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture(scope="session")
def grant_fixture() -> dict:
    return json.loads((FIXTURES_DIR / "grant_application_workflow.json").read_text(encoding="utf-8"))


@pytest.fixture
def grant_workflow(grant_fixture) -> FormWorkflowSchema:
    return FormWorkflowSchema.model_validate(grant_fixture["workflow"])


@pytest.fixture
def grant_modules(grant_fixture) -> dict[str, FormModuleSchema]:
    """Modules keyed by module key."""
    modules = [FormModuleSchema.model_validate(m) for m in grant_fixture["modules"]]
    return {m.module_key: m for m in modules}


@pytest.fixture
def code_set_provider(grant_fixture) -> InMemoryCodeSetProvider:
    return InMemoryCodeSetProvider(CodeSetSchema.model_validate(cs) for cs in grant_fixture["codeSets"])


@pytest.fixture
def test_logger() -> logging.Logger:
    return logging.getLogger("formlogic.tests")


@pytest.fixture
def evaluator(test_logger) -> ConditionEvaluator:
    return ConditionEvaluator(logger=test_logger)


@pytest.fixture
def client(code_set_provider):
    """FastAPI TestClient with an isolated code-set registry."""
    app.dependency_overrides[get_code_set_provider] = lambda: code_set_provider
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
