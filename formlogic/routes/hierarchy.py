"""
Hierarchy routes: build the field tree, validate and repair parent links,
and compute complexity metrics.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from formlogic.dependencies import get_code_set_provider
from formlogic.models.form_schema import FormFieldSchema, FormModuleSchema
from formlogic.services.code_sets import InMemoryCodeSetProvider
from formlogic.services.hierarchy_service import (
    HierarchyBuilder,
    HierarchyOptions,
    calculate_metrics,
    fix_module_hierarchy,
    validate_hierarchy,
)

router = APIRouter()


class BuildHierarchyRequest(BaseModel):
    module: FormModuleSchema
    options: Optional[HierarchyOptions] = Field(None, description="Builder options")


class FieldsRequest(BaseModel):
    fields: list[FormFieldSchema] = Field(default_factory=list)


class FixHierarchyRequest(BaseModel):
    module: FormModuleSchema


@router.post("/build")
async def build_hierarchy(
    body: BuildHierarchyRequest,
    provider: InMemoryCodeSetProvider = Depends(get_code_set_provider),
):
    """Linked tree with resolved options, metrics and build warnings."""
    builder = HierarchyBuilder(code_set_provider=provider, options=body.options)
    runtime = await builder.build_hierarchy(body.module)
    return runtime.to_dict()


@router.post("/validate")
def validate(body: FieldsRequest):
    return validate_hierarchy(body.fields).model_dump()


@router.post("/fix")
def fix(body: FixHierarchyRequest):
    """Clear self-references and dangling parent links. Cycles are left for the author."""
    fixed = fix_module_hierarchy(body.module)
    return {
        "module": fixed.model_dump(mode="json", by_alias=True),
        "validation": validate_hierarchy(fixed.fields).model_dump(),
    }


@router.post("/metrics")
def metrics(body: FieldsRequest):
    return calculate_metrics(body.fields).model_dump()
