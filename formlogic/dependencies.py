"""
Shared engine instances for the HTTP layer.

Routes receive these through Depends(); tests swap them with
app.dependency_overrides.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from formlogic.models.form_schema import CodeSetSchema
from formlogic.services.code_sets import InMemoryCodeSetProvider
from formlogic.services.condition_evaluator import ConditionEvaluator
from formlogic.services.validation_service import FormValidationService

logger = logging.getLogger(__name__)

# Optional JSON file (list of code sets) loaded at startup
CODE_SETS_FILE = os.getenv("FORMLOGIC_CODE_SETS_FILE")

_evaluator = ConditionEvaluator()
_code_set_provider = InMemoryCodeSetProvider()
_validation_service = FormValidationService()


def get_evaluator() -> ConditionEvaluator:
    return _evaluator


def get_code_set_provider() -> InMemoryCodeSetProvider:
    return _code_set_provider


def get_validation_service() -> FormValidationService:
    return _validation_service


def load_code_sets_file(path: Optional[str] = CODE_SETS_FILE) -> int:
    """Register code sets from a JSON file. Returns how many were loaded."""
    if not path:
        return 0
    file_path = Path(path)
    if not file_path.exists():
        logger.warning("Code sets file not found: %s", file_path)
        return 0
    raw = json.loads(file_path.read_text(encoding="utf-8"))
    code_sets = [CodeSetSchema.model_validate(item) for item in raw]
    _code_set_provider.register_code_sets(*code_sets)
    logger.info("Loaded %d code sets from %s", len(code_sets), file_path)
    return len(code_sets)
