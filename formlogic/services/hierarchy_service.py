"""
Field hierarchy service: flat field lists -> linked runtime trees.

Builds the arena tree from parent_id links, validates and repairs structural
defects, computes complexity metrics and resolves code-set options. Defects
never abort a build: orphans and cycle members are promoted to root and
reported as warnings.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel, Field

from formlogic.models.form_schema import FormFieldSchema, FormModuleSchema
from formlogic.models.runtime import (
    FormFieldNode,
    FormModuleRuntime,
    HierarchyMetrics,
    HierarchyValidationResult,
)
from formlogic.services.code_sets import CodeSetProvider
from formlogic.utils.logging import log_hierarchy_build, log_validation_result

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# HierarchyOptions
# -----------------------------------------------------------------------------


class HierarchyOptions(BaseModel):
    """Options for HierarchyBuilder."""

    resolve_code_sets: bool = Field(
        default=True,
        description="Fetch options for fields that declare a code set and no inline options",
    )
    complexity_warning_threshold: float = Field(
        default=100.0,
        ge=0,
        description="Log a warning when a module's complexity score exceeds this",
    )


# -----------------------------------------------------------------------------
# Tree building
# -----------------------------------------------------------------------------


def _sort_key(node: FormFieldNode) -> int:
    return node.schema.order


def _reachable(nodes: list[FormFieldNode], starts: Iterable[int]) -> set[int]:
    seen: set[int] = set()
    stack = list(starts)
    while stack:
        i = stack.pop()
        if i in seen:
            continue
        seen.add(i)
        stack.extend(nodes[i].children)
    return seen


def _on_cycle(nodes: list[FormFieldNode], node: FormFieldNode) -> bool:
    seen: set[int] = set()
    current = node.parent
    while current is not None and current not in seen:
        if current == node.index:
            return True
        seen.add(current)
        current = nodes[current].parent
    return False


def _link(fields: Sequence[FormFieldSchema]) -> tuple[list[FormFieldNode], list[int], list[str]]:
    """Create and link nodes. Returns (nodes, root_indexes, warnings)."""
    warnings: list[str] = []

    by_id: dict[str, FormFieldSchema] = {}
    for field in fields:
        if field.id in by_id:
            warnings.append(f"Duplicate field ID '{field.id}': later definition replaces earlier one")
        by_id[field.id] = field

    nodes = [FormFieldNode(schema, i) for i, schema in enumerate(by_id.values())]
    index = {n.id: n.index for n in nodes}
    roots: list[int] = []

    for node in nodes:
        parent_id = node.schema.parent_id
        if not node.schema.has_parent:
            roots.append(node.index)
        elif parent_id == node.id:
            warnings.append(f"Field '{node.id}' references itself as parent; treated as root")
            roots.append(node.index)
        elif parent_id in index:
            node.parent = index[parent_id]
            nodes[node.parent].children.append(node.index)
        else:
            warnings.append(f"Field '{node.id}' references non-existent parent '{parent_id}'; treated as root")
            roots.append(node.index)

    # Cycle members are unreachable from any root; break cycles in input order.
    reachable = _reachable(nodes, roots)
    for node in nodes:
        if node.index in reachable or not _on_cycle(nodes, node):
            continue
        parent = nodes[node.parent]
        parent.children.remove(node.index)
        node.parent = None
        roots.append(node.index)
        warnings.append(f"Circular reference involving field '{node.id}'; treated as root")
        reachable |= _reachable(nodes, [node.index])

    roots.sort(key=lambda i: _sort_key(nodes[i]))
    stack = list(roots)
    while stack:
        node = nodes[stack.pop()]
        node.children.sort(key=lambda i: _sort_key(nodes[i]))
        for child in node.children:
            nodes[child].level = node.level + 1
            stack.append(child)

    return nodes, roots, warnings


def build_field_tree(
    fields: Sequence[FormFieldSchema],
    logger: Optional[logging.Logger] = None,
) -> FormModuleRuntime:
    """
    Build the linked tree for a flat field list. Never raises for structural
    defects; each one is logged and kept in runtime.warnings.
    """
    log = logger or logging.getLogger(__name__)
    nodes, roots, warnings = _link(fields)
    for warning in warnings:
        log.warning(warning)
    runtime = FormModuleRuntime(nodes, roots, warnings)
    runtime.metrics = _metrics_for(runtime)
    return runtime


# -----------------------------------------------------------------------------
# Metrics
# -----------------------------------------------------------------------------


def _metrics_for(runtime: FormModuleRuntime) -> HierarchyMetrics:
    nodes = runtime.nodes
    if not nodes:
        return HierarchyMetrics()

    total = len(nodes)
    max_depth = max(n.level for n in nodes)
    average_depth = sum(n.level for n in nodes) / total
    conditional = sum(1 for n in nodes if n.schema.conditional_rules)
    parents = [n for n in nodes if n.children]
    avg_children = sum(len(n.children) for n in parents) / len(parents) if parents else 0.0
    score = total * 1.0 + max_depth * 5.0 + conditional * 3.0 + avg_children * 2.0

    return HierarchyMetrics(
        total_fields=total,
        root_fields=len(runtime.root_indexes),
        max_depth=max_depth,
        average_depth=round(average_depth, 2),
        conditional_fields=conditional,
        complexity_score=round(score, 2),
    )


def calculate_metrics(fields: Sequence[FormFieldSchema]) -> HierarchyMetrics:
    """Structural metrics for a flat field list (all zeros when empty)."""
    nodes, roots, _ = _link(fields)
    return _metrics_for(FormModuleRuntime(nodes, roots))


# -----------------------------------------------------------------------------
# Validation and repair
# -----------------------------------------------------------------------------


def _has_circular_reference(field: FormFieldSchema, by_id: dict[str, FormFieldSchema]) -> bool:
    visited: set[str] = set()
    current: Optional[FormFieldSchema] = field
    while current is not None and current.has_parent:
        if current.id in visited:
            return True
        visited.add(current.id)
        if current.parent_id == current.id:
            # self-reference has its own error
            return False
        current = by_id.get(current.parent_id)
    return False


def validate_hierarchy(fields: Sequence[FormFieldSchema]) -> HierarchyValidationResult:
    """Structural check of a flat field list. Pure; defects are returned, not raised."""
    started = time.perf_counter()
    errors: list[str] = []
    warnings: list[str] = []

    seen: set[str] = set()
    for field in fields:
        if field.id in seen:
            errors.append(f"Duplicate field ID: '{field.id}'")
            continue
        seen.add(field.id)
        if field.parent_id == field.id:
            errors.append(f"Field '{field.id}' references itself as parent")
        if not field.id or not field.id.strip():
            errors.append("Field has empty or null ID")

    for field in fields:
        if field.has_parent and field.parent_id not in seen:
            warnings.append(f"Field '{field.id}' references non-existent parent '{field.parent_id}'")

    by_id = {f.id: f for f in fields}
    for field in fields:
        if _has_circular_reference(field, by_id):
            errors.append(f"Circular reference detected involving field '{field.id}'")

    log_validation_result(logger, "hierarchy", len(errors), len(warnings), time.perf_counter() - started)
    return HierarchyValidationResult(errors=errors, warnings=warnings)


def fix_hierarchy_issues(
    fields: Sequence[FormFieldSchema],
    logger: Optional[logging.Logger] = None,
) -> list[FormFieldSchema]:
    """
    Clear parent_id on self-references and unresolved parents.

    Multi-node cycles are left alone; validate_hierarchy still reports them.
    """
    log = logger or logging.getLogger(__name__)
    result = validate_hierarchy(fields)
    if result.is_valid and not result.warnings:
        log.debug("No hierarchy issues to fix")
        return list(fields)

    ids = {f.id for f in fields}
    fixed: list[FormFieldSchema] = []
    for field in fields:
        if field.has_parent and field.parent_id == field.id:
            log.warning("Fixing self-reference in field '%s'", field.id)
            field = field.model_copy(update={"parent_id": None})
        elif field.has_parent and field.parent_id not in ids:
            log.warning("Clearing invalid parent reference '%s' from field '%s'", field.parent_id, field.id)
            field = field.model_copy(update={"parent_id": None})
        fixed.append(field)
    return fixed


def fix_module_hierarchy(
    schema: FormModuleSchema,
    logger: Optional[logging.Logger] = None,
) -> FormModuleSchema:
    """Module copy with repaired fields and date_updated set to now (UTC)."""
    (logger or logging.getLogger(__name__)).info("Attempting to fix hierarchy issues in module %s", schema.id)
    fields = fix_hierarchy_issues(schema.fields, logger)
    return schema.model_copy(update={"fields": fields, "date_updated": datetime.now(timezone.utc)})


# -----------------------------------------------------------------------------
# HierarchyBuilder
# -----------------------------------------------------------------------------


class HierarchyBuilder:
    """
    Builds a module runtime and resolves code-set options.

    Code-set resolution is the only async step. A failure on one field is
    logged and leaves that field without resolved options. Setting
    cancel_event stops resolution between fields; the build still returns.
    """

    def __init__(
        self,
        code_set_provider: Optional[CodeSetProvider] = None,
        logger: Optional[logging.Logger] = None,
        options: Optional[HierarchyOptions] = None,
    ):
        self.code_set_provider = code_set_provider
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self.options = options or HierarchyOptions()

    async def build_hierarchy(
        self,
        schema: FormModuleSchema,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> FormModuleRuntime:
        started = time.perf_counter()
        self._logger.debug(
            "Building hierarchy for module %s '%s' with %d fields",
            schema.id,
            schema.title_en,
            len(schema.fields),
        )
        runtime = build_field_tree(schema.fields, self._logger)
        runtime.schema = schema

        if self.options.resolve_code_sets and self.code_set_provider is not None:
            await self._resolve_code_sets(runtime, cancel_event)

        metrics = runtime.metrics
        if metrics.complexity_score > self.options.complexity_warning_threshold:
            self._logger.warning(
                "Module %s complexity score %.2f exceeds threshold %.2f",
                schema.id,
                metrics.complexity_score,
                self.options.complexity_warning_threshold,
            )

        log_hierarchy_build(
            self._logger,
            schema.id,
            metrics.total_fields,
            metrics.root_fields,
            metrics.max_depth,
            warnings=len(runtime.warnings),
            duration_sec=round(time.perf_counter() - started, 4),
        )
        return runtime

    def build_hierarchy_sync(self, schema: FormModuleSchema) -> FormModuleRuntime:
        """Blocking wrapper for callers without an event loop."""
        return asyncio.run(self.build_hierarchy(schema))

    async def _resolve_code_sets(
        self,
        runtime: FormModuleRuntime,
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        pending = [n for n in runtime.nodes if n.schema.code_set_id is not None and not n.schema.options]
        if not pending:
            self._logger.debug("No fields require code set resolution")
            return
        if cancel_event is not None and cancel_event.is_set():
            self._logger.info("Code set resolution cancelled before start")
            return

        self._logger.debug("Resolving code sets for %d fields", len(pending))
        for node in pending:
            if cancel_event is not None and cancel_event.is_set():
                self._logger.info("Code set resolution cancelled at field '%s'", node.id)
                return
            code_set_id = node.schema.code_set_id
            try:
                options = await self.code_set_provider.get_code_set_as_field_options(code_set_id)
            except Exception:
                self._logger.exception("Failed to resolve code set %s for field '%s'", code_set_id, node.id)
                continue
            if options:
                node.resolved_options = list(options)
                self._logger.debug(
                    "Resolved code set %s for field '%s': %d options", code_set_id, node.id, len(options)
                )
            else:
                self._logger.warning("Code set %s for field '%s' returned no options", code_set_id, node.id)
