"""
Runtime artifacts built from schemas: the field hierarchy arena, hierarchy
metrics and validation results, and the multi-module value store used by
the condition evaluator.

None of these are persisted. A FormModuleRuntime is rebuilt on every schema
load and is never mutated by rule evaluation.
"""

from typing import Any, Iterator, Optional

from pydantic import BaseModel, Field, computed_field

from formlogic.models.form_schema import FieldOption, FormFieldSchema, FormModuleSchema

# -----------------------------------------------------------------------------
# WorkflowFormData
# -----------------------------------------------------------------------------


class WorkflowFormData(BaseModel):
    """
    Field values across all loaded modules, keyed by module key then field id.

    Example:
        {"PersonalInfo": {"age": 25, "province": "ON"}, "2": {"org_type": "Business"}}

    Unprefixed field references resolve against current_module_key.
    """

    modules: dict[str, dict[str, Any]] = Field(default_factory=dict, description="module key -> field id -> value")
    current_module_key: Optional[str] = Field(None, description="Module used for unprefixed references")

    def get_field_value(self, module_key: Optional[str], field_id: str) -> Any:
        target = module_key if module_key is not None else self.current_module_key
        if target is None:
            return None
        return self.modules.get(target, {}).get(field_id)

    def set_field_value(self, module_key: str, field_id: str, value: Any) -> None:
        self.modules.setdefault(module_key, {})[field_id] = value

    def has_module(self, module_key: str) -> bool:
        return module_key in self.modules

    def get_module_data(self, module_key: str) -> Optional[dict[str, Any]]:
        return self.modules.get(module_key)

    def set_module_data(self, module_key: str, data: dict[str, Any]) -> None:
        self.modules[module_key] = data

    @property
    def module_keys(self) -> list[str]:
        return list(self.modules)

    @classmethod
    def from_single_module(cls, module_key: str, field_data: dict[str, Any]) -> "WorkflowFormData":
        return cls(modules={module_key: dict(field_data)}, current_module_key=module_key)

    @classmethod
    def empty(cls) -> "WorkflowFormData":
        return cls()


# -----------------------------------------------------------------------------
# Hierarchy results
# -----------------------------------------------------------------------------


class HierarchyMetrics(BaseModel):
    """Read-only structural summary of one module's field hierarchy."""

    total_fields: int = 0
    root_fields: int = 0
    max_depth: int = 0
    average_depth: float = 0.0
    conditional_fields: int = 0
    complexity_score: float = 0.0


class ValidationResult(BaseModel):
    """Errors block a save; warnings are advisory."""

    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.errors


class HierarchyValidationResult(ValidationResult):
    """Structural diagnostics for one module's flat field list."""


class RuleValidationResult(ValidationResult):
    """Authoring diagnostics for a rule set."""


# -----------------------------------------------------------------------------
# Field arena
# -----------------------------------------------------------------------------


class FormFieldNode:
    """
    One field in the arena. Relationships are indexes into
    FormModuleRuntime.nodes, not object references.
    """

    __slots__ = ("schema", "index", "parent", "children", "level", "resolved_options")

    def __init__(self, schema: FormFieldSchema, index: int):
        self.schema = schema
        self.index = index
        self.parent: Optional[int] = None
        self.children: list[int] = []
        self.level = 0
        self.resolved_options: Optional[list[FieldOption]] = None

    @property
    def id(self) -> str:
        return self.schema.id

    def effective_options(self) -> list[FieldOption]:
        """Resolved code-set options win over inline options."""
        if self.resolved_options:
            return list(self.resolved_options)
        return list(self.schema.options)

    def __repr__(self) -> str:
        return f"{self.schema.field_type} [{self.schema.id}] at level {self.level}"


class FormModuleRuntime:
    """Linked field tree for one module, plus metrics and build warnings."""

    def __init__(
        self,
        nodes: list[FormFieldNode],
        root_indexes: list[int],
        warnings: Optional[list[str]] = None,
        schema: Optional[FormModuleSchema] = None,
    ):
        self.schema = schema
        self.nodes = nodes
        self.index: dict[str, int] = {n.schema.id: n.index for n in nodes}
        self.root_indexes = root_indexes
        self.warnings: list[str] = warnings or []
        self.metrics = HierarchyMetrics()

    @property
    def root_fields(self) -> list[FormFieldNode]:
        return [self.nodes[i] for i in self.root_indexes]

    def get_field(self, field_id: str) -> Optional[FormFieldNode]:
        i = self.index.get(field_id)
        return self.nodes[i] if i is not None else None

    def parent_of(self, node: FormFieldNode) -> Optional[FormFieldNode]:
        return self.nodes[node.parent] if node.parent is not None else None

    def children_of(self, node: FormFieldNode) -> list[FormFieldNode]:
        return [self.nodes[i] for i in node.children]

    def ancestors(self, node: FormFieldNode) -> Iterator[FormFieldNode]:
        """Closest ancestor first."""
        current = self.parent_of(node)
        while current is not None:
            yield current
            current = self.parent_of(current)

    def descendants(self, node: FormFieldNode) -> Iterator[FormFieldNode]:
        """Depth-first, in display order."""
        for child in self.children_of(node):
            yield child
            yield from self.descendants(child)

    def path(self, node: FormFieldNode) -> str:
        ids = [a.id for a in self.ancestors(node)]
        ids.reverse()
        ids.append(node.id)
        return ".".join(ids)

    def fields_in_order(self) -> Iterator[FormFieldNode]:
        """All fields in display order (roots by order, then depth-first)."""
        for root in self.root_fields:
            yield root
            yield from self.descendants(root)

    def _node_dict(self, node: FormFieldNode) -> dict[str, Any]:
        return {
            "id": node.id,
            "field_type": node.schema.field_type,
            "order": node.schema.order,
            "level": node.level,
            "path": self.path(node),
            "options": [o.model_dump(mode="json") for o in node.effective_options()],
            "children": [self._node_dict(c) for c in self.children_of(node)],
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "module_id": self.schema.id if self.schema else None,
            "roots": [self._node_dict(r) for r in self.root_fields],
            "metrics": self.metrics.model_dump(),
            "warnings": list(self.warnings),
        }

    def __repr__(self) -> str:
        title = self.schema.title_en if self.schema else ""
        return (
            f"Module '{title}' - {self.metrics.total_fields} fields, "
            f"{self.metrics.root_fields} roots, max depth {self.metrics.max_depth}"
        )
