"""
Structured logging for formlogic.

- Configurable level (DEBUG, INFO, WARN, ERROR)
- Writes to the logs/ directory (file handler) when enabled
- Console handler for development
- Helpers for hierarchy builds, validation results and rule evaluation
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

# Default: project root / logs
LOG_DIR = Path(os.getenv("FORMLOGIC_LOG_DIR", str(Path(__file__).resolve().parent.parent.parent / "logs")))
LOG_LEVEL = os.getenv("FORMLOGIC_LOG_LEVEL", "INFO").upper()
LOG_TO_FILE = os.getenv("FORMLOGIC_LOG_TO_FILE", "0").lower() in ("1", "true", "yes")


def _ensure_log_dir(log_dir: Path) -> Path:
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def configure_logging(
    level: str = LOG_LEVEL,
    log_dir: Optional[Path] = None,
    log_to_console: bool = True,
    log_to_file: bool = LOG_TO_FILE,
) -> None:
    """Configure root and formlogic loggers. Call once at app startup."""
    level_value = getattr(logging, level, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level_value)
    # Avoid duplicate handlers when reloading
    for h in list(root.handlers):
        root.removeHandler(h)

    if log_to_file:
        log_file = _ensure_log_dir(log_dir or LOG_DIR) / "formlogic.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level_value)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        )
        root.addHandler(file_handler)
    if log_to_console:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(level_value)
        console.setFormatter(logging.Formatter("%(levelname)s | %(name)s | %(message)s"))
        root.addHandler(console)

    logging.getLogger("formlogic").setLevel(level_value)


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module (e.g. formlogic.services.condition_evaluator)."""
    return logging.getLogger(name)


def log_hierarchy_build(
    logger: logging.Logger,
    module_id: Any,
    total_fields: int,
    root_fields: int,
    max_depth: int,
    warnings: int = 0,
    duration_sec: Optional[float] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Log a completed hierarchy build."""
    payload = {
        "event": "hierarchy_build",
        "module_id": module_id,
        "total_fields": total_fields,
        "root_fields": root_fields,
        "max_depth": max_depth,
        "warnings": warnings,
        "duration_sec": duration_sec,
        "ts": _now(),
    }
    if extra:
        payload.update(extra)
    level = logging.WARNING if warnings else logging.DEBUG
    logger.log(level, "Hierarchy: %s", json.dumps(payload, default=str))


def log_validation_result(
    logger: logging.Logger,
    subject: str,
    errors: int,
    warnings: int,
    duration_sec: Optional[float] = None,
) -> None:
    """Log a hierarchy or rule-set validation run."""
    payload = {
        "event": "validation",
        "subject": subject,
        "errors": errors,
        "warnings": warnings,
        "duration_sec": duration_sec,
        "ts": _now(),
    }
    level = logging.WARNING if errors else logging.INFO
    logger.log(level, "Validation: %s", json.dumps(payload, default=str))


def log_rule_evaluation(
    logger: logging.Logger,
    rule_id: str,
    action: str,
    triggered: bool,
    error: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Log the outcome of one rule evaluation. Failures log at WARNING."""
    payload = {
        "event": "rule_evaluation",
        "rule_id": rule_id,
        "action": action,
        "triggered": triggered,
        "error": error,
    }
    if extra:
        payload.update(extra)
    if error:
        logger.warning("Rule: %s", json.dumps(payload, default=str))
    else:
        logger.debug("Rule: %s", json.dumps(payload, default=str))
