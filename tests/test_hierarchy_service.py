"""Unit tests for hierarchy building, validation, repair and metrics."""

import asyncio
import logging

import pytest

from formlogic.models.conditions import ConditionalRule, ConditionOperator, leaf
from formlogic.models.form_schema import FieldOption, FormFieldSchema, FormModuleSchema
from formlogic.services.hierarchy_service import (
    HierarchyBuilder,
    HierarchyOptions,
    build_field_tree,
    calculate_metrics,
    fix_hierarchy_issues,
    fix_module_hierarchy,
    validate_hierarchy,
)


def field(field_id: str, parent: str | None = None, order: int = 1, **kwargs) -> FormFieldSchema:
    return FormFieldSchema(id=field_id, parent_id=parent, order=order, **kwargs)


def conditional(field_id: str, parent: str | None = None, order: int = 1) -> FormFieldSchema:
    rule = ConditionalRule(
        id=f"show-{field_id}",
        action="show",
        target_field_id=field_id,
        condition=leaf("trigger", ConditionOperator.IS_NOT_NULL),
    )
    return field(field_id, parent, order, conditional_rules=[rule])


# -----------------------------------------------------------------------------
# build_field_tree
# -----------------------------------------------------------------------------


def test_build_links_and_sorts():
    fields = [
        field("details", order=2),
        field("name", parent="personal", order=2),
        field("personal", order=1),
        field("age", parent="personal", order=1),
        field("street", parent="name", order=1),
    ]
    runtime = build_field_tree(fields)

    assert [n.id for n in runtime.root_fields] == ["personal", "details"]
    personal = runtime.get_field("personal")
    assert [c.id for c in runtime.children_of(personal)] == ["age", "name"]
    assert runtime.get_field("street").level == 2
    assert runtime.parent_of(runtime.get_field("street")).id == "name"
    assert runtime.warnings == []
    assert [n.id for n in runtime.fields_in_order()] == ["personal", "age", "name", "street", "details"]


def test_sibling_sort_is_stable_for_equal_order():
    runtime = build_field_tree([field("b"), field("a"), field("c")])
    assert [n.id for n in runtime.root_fields] == ["b", "a", "c"]


def test_orphan_becomes_root_with_warning():
    runtime = build_field_tree([field("a"), field("b", parent="missing", order=0)])
    assert [n.id for n in runtime.root_fields] == ["b", "a"]
    assert any("non-existent parent 'missing'" in w for w in runtime.warnings)


def test_self_reference_becomes_root():
    runtime = build_field_tree([field("loop", parent="loop")])
    assert [n.id for n in runtime.root_fields] == ["loop"]
    assert runtime.get_field("loop").parent is None
    assert any("references itself" in w for w in runtime.warnings)


def test_cycle_is_broken_and_every_node_reachable():
    fields = [field("a", parent="b"), field("b", parent="a"), field("c", parent="a", order=2)]
    runtime = build_field_tree(fields)

    assert [n.id for n in runtime.root_fields] == ["a"]
    assert [c.id for c in runtime.children_of(runtime.get_field("a"))] == ["b", "c"]
    assert {n.id for n in runtime.fields_in_order()} == {"a", "b", "c"}
    circular = [w for w in runtime.warnings if "Circular" in w]
    assert len(circular) == 1
    assert "'a'" in circular[0]


def test_descendant_of_cycle_is_not_demoted():
    fields = [field("child", parent="x"), field("x", parent="y"), field("y", parent="x")]
    runtime = build_field_tree(fields)
    assert runtime.parent_of(runtime.get_field("child")).id == "x"
    assert [n.id for n in runtime.root_fields] == ["x"]


def test_duplicate_id_later_definition_wins():
    runtime = build_field_tree([field("a", label_en="first"), field("a", label_en="second")])
    assert len(runtime.nodes) == 1
    assert runtime.get_field("a").schema.label_en == "second"
    assert any("Duplicate field ID 'a'" in w for w in runtime.warnings)


def test_empty_field_list():
    runtime = build_field_tree([])
    assert runtime.nodes == []
    assert runtime.root_fields == []
    assert runtime.metrics.total_fields == 0


def test_runtime_navigation_helpers():
    runtime = build_field_tree([field("s"), field("g", parent="s"), field("leaf", parent="g")])
    leaf_node = runtime.get_field("leaf")
    assert [a.id for a in runtime.ancestors(leaf_node)] == ["g", "s"]
    assert [d.id for d in runtime.descendants(runtime.get_field("s"))] == ["g", "leaf"]
    assert runtime.path(leaf_node) == "s.g.leaf"
    assert runtime.get_field("nope") is None

    tree = runtime.to_dict()
    assert tree["roots"][0]["id"] == "s"
    assert tree["roots"][0]["children"][0]["children"][0]["path"] == "s.g.leaf"


# -----------------------------------------------------------------------------
# Metrics
# -----------------------------------------------------------------------------


def test_calculate_metrics():
    fields = [
        field("r"),
        conditional("x", parent="r", order=1),
        field("y", parent="r", order=2),
        field("z", parent="x"),
    ]
    metrics = calculate_metrics(fields)
    assert metrics.total_fields == 4
    assert metrics.root_fields == 1
    assert metrics.max_depth == 2
    assert metrics.average_depth == 1.0
    assert metrics.conditional_fields == 1
    # 4*1 + 2*5 + 1*3 + avg(2, 1)*2
    assert metrics.complexity_score == 20.0


def test_metrics_flat_list_has_no_children_term():
    metrics = calculate_metrics([field("a"), field("b"), conditional("c")])
    assert metrics.max_depth == 0
    assert metrics.average_depth == 0.0
    assert metrics.complexity_score == 6.0


def test_metrics_rounding():
    fields = [field("r"), field("a", parent="r"), field("b", parent="a")]
    metrics = calculate_metrics(fields)
    assert metrics.average_depth == 1.0
    fields.append(field("c"))
    assert calculate_metrics(fields).average_depth == 0.75
    metrics = calculate_metrics([field("r"), field("a", parent="r"), field("b")])
    assert metrics.average_depth == 0.33


def test_metrics_empty():
    metrics = calculate_metrics([])
    assert metrics.model_dump() == {
        "total_fields": 0,
        "root_fields": 0,
        "max_depth": 0,
        "average_depth": 0.0,
        "conditional_fields": 0,
        "complexity_score": 0.0,
    }


# -----------------------------------------------------------------------------
# validate_hierarchy
# -----------------------------------------------------------------------------


def test_validate_clean_hierarchy():
    result = validate_hierarchy([field("a"), field("b", parent="a")])
    assert result.is_valid
    assert result.errors == []
    assert result.warnings == []


def test_validate_reports_defects():
    fields = [
        field("a"),
        field("a"),
        field("self", parent="self"),
        field(""),
        field("orphan", parent="ghost"),
    ]
    result = validate_hierarchy(fields)
    assert not result.is_valid
    assert "Duplicate field ID: 'a'" in result.errors
    assert "Field 'self' references itself as parent" in result.errors
    assert "Field has empty or null ID" in result.errors
    assert result.warnings == ["Field 'orphan' references non-existent parent 'ghost'"]


def test_self_reference_reported_once():
    result = validate_hierarchy([field("s", parent="s"), field("kid", parent="s")])
    assert result.errors == ["Field 's' references itself as parent"]


def test_validate_reports_cycle_per_field():
    result = validate_hierarchy([field("a", parent="b"), field("b", parent="a"), field("ok")])
    cycles = [e for e in result.errors if "Circular" in e]
    assert cycles == [
        "Circular reference detected involving field 'a'",
        "Circular reference detected involving field 'b'",
    ]


# -----------------------------------------------------------------------------
# Repair
# -----------------------------------------------------------------------------


def test_fix_clears_self_and_orphan_parents():
    fields = [field("a"), field("self", parent="self"), field("orphan", parent="ghost"), field("b", parent="a")]
    fixed = fix_hierarchy_issues(fields)

    by_id = {f.id: f for f in fixed}
    assert by_id["self"].parent_id is None
    assert by_id["orphan"].parent_id is None
    assert by_id["b"].parent_id == "a"
    assert fields[1].parent_id == "self"
    assert validate_hierarchy(fixed).warnings == []


def test_fix_leaves_cycles_alone():
    fields = [field("a", parent="b"), field("b", parent="a")]
    fixed = fix_hierarchy_issues(fields)
    assert [f.parent_id for f in fixed] == ["b", "a"]
    assert not validate_hierarchy(fixed).is_valid


def test_fix_returns_copy_when_nothing_to_fix():
    fields = [field("a"), field("b", parent="a")]
    fixed = fix_hierarchy_issues(fields)
    assert fixed == fields
    assert fixed is not fields


def test_fix_module_hierarchy_sets_date_updated():
    module = FormModuleSchema(id=5, title_en="M", fields=[field("x", parent="ghost")])
    fixed = fix_module_hierarchy(module)
    assert fixed.fields[0].parent_id is None
    assert fixed.date_updated is not None
    assert module.date_updated is None


# -----------------------------------------------------------------------------
# HierarchyBuilder
# -----------------------------------------------------------------------------


class FlakyProvider:
    """Fails for one code set, records every request."""

    def __init__(self, fail_for: int | None = None, on_call=None):
        self.fail_for = fail_for
        self.on_call = on_call
        self.calls: list[int] = []

    async def get_code_set_as_field_options(self, code_set_id: int) -> list[FieldOption]:
        self.calls.append(code_set_id)
        if self.on_call:
            self.on_call()
        if code_set_id == self.fail_for:
            raise ConnectionError("code set service unavailable")
        return [FieldOption(value=f"v{code_set_id}", label_en=f"Value {code_set_id}")]


def coded_module() -> FormModuleSchema:
    return FormModuleSchema(
        id=1,
        title_en="Coded",
        fields=[
            field("a", code_set_id=1, order=1),
            field("b", code_set_id=2, order=2),
            field("c", code_set_id=3, order=3),
            field("inline", code_set_id=4, order=4, options=[FieldOption(value="x", label_en="X")]),
        ],
    )


def test_builder_resolves_code_sets(grant_modules, code_set_provider):
    builder = HierarchyBuilder(code_set_provider=code_set_provider)
    runtime = builder.build_hierarchy_sync(grant_modules["Applicant"])

    province = runtime.get_field("province")
    assert [o.value for o in province.effective_options()] == ["ON", "QC", "BC", "NU"]
    assert [o.value for o in runtime.get_field("org_type").effective_options()] == ["Business", "NonProfit"]
    assert runtime.schema.module_key == "Applicant"
    assert runtime.metrics.total_fields == 6
    assert runtime.metrics.max_depth == 1


def test_builder_skips_fields_with_inline_options():
    provider = FlakyProvider()
    runtime = HierarchyBuilder(code_set_provider=provider).build_hierarchy_sync(coded_module())
    assert provider.calls == [1, 2, 3]
    assert [o.value for o in runtime.get_field("inline").effective_options()] == ["x"]


def test_code_set_failure_is_isolated_to_its_field():
    provider = FlakyProvider(fail_for=2)
    runtime = HierarchyBuilder(code_set_provider=provider).build_hierarchy_sync(coded_module())
    assert runtime.get_field("a").resolved_options[0].value == "v1"
    assert runtime.get_field("b").resolved_options is None
    assert runtime.get_field("b").effective_options() == []
    assert runtime.get_field("c").resolved_options[0].value == "v3"


def test_cancel_before_resolution():
    event = asyncio.Event()
    event.set()
    provider = FlakyProvider()
    runtime = asyncio.run(HierarchyBuilder(code_set_provider=provider).build_hierarchy(coded_module(), event))
    assert provider.calls == []
    assert runtime.metrics.total_fields == 4


def test_cancel_mid_resolution_keeps_resolved_fields():
    event = asyncio.Event()
    provider = FlakyProvider(on_call=event.set)
    runtime = asyncio.run(HierarchyBuilder(code_set_provider=provider).build_hierarchy(coded_module(), event))
    assert provider.calls == [1]
    assert runtime.get_field("a").resolved_options is not None
    assert runtime.get_field("b").resolved_options is None


def test_resolution_disabled_by_option():
    provider = FlakyProvider()
    builder = HierarchyBuilder(code_set_provider=provider, options=HierarchyOptions(resolve_code_sets=False))
    builder.build_hierarchy_sync(coded_module())
    assert provider.calls == []


def test_builder_without_provider():
    runtime = HierarchyBuilder().build_hierarchy_sync(coded_module())
    assert all(n.resolved_options is None for n in runtime.nodes)


def test_complexity_warning(caplog):
    log = logging.getLogger("formlogic.tests.hierarchy")
    builder = HierarchyBuilder(logger=log, options=HierarchyOptions(complexity_warning_threshold=1))
    with caplog.at_level(logging.WARNING, logger="formlogic.tests.hierarchy"):
        builder.build_hierarchy_sync(coded_module())
    assert "exceeds threshold" in caplog.text


def test_options_reject_negative_threshold():
    with pytest.raises(ValueError):
        HierarchyOptions(complexity_warning_threshold=-1)
