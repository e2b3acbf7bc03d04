"""Code-set registry routes (in-memory provider)."""

from fastapi import APIRouter, Depends, HTTPException

from formlogic.dependencies import get_code_set_provider
from formlogic.models.form_schema import CodeSetSchema
from formlogic.services.code_sets import InMemoryCodeSetProvider

router = APIRouter()


@router.get("/")
async def list_code_sets(
    include_inactive: bool = False,
    category: str | None = None,
    provider: InMemoryCodeSetProvider = Depends(get_code_set_provider),
):
    if category:
        code_sets = await provider.get_code_sets_by_category(category)
    else:
        code_sets = await provider.get_all_code_sets(include_inactive=include_inactive)
    return [cs.model_dump(mode="json", by_alias=True) for cs in code_sets]


@router.get("/stats")
def code_set_stats(provider: InMemoryCodeSetProvider = Depends(get_code_set_provider)):
    return provider.get_stats().model_dump()


@router.post("/", status_code=201)
def register_code_set(
    code_set: CodeSetSchema,
    provider: InMemoryCodeSetProvider = Depends(get_code_set_provider),
):
    """Add or replace a code set (by id)."""
    provider.register_code_set(code_set)
    return code_set.model_dump(mode="json", by_alias=True)


@router.get("/{code_set_id}")
async def get_code_set(
    code_set_id: int,
    provider: InMemoryCodeSetProvider = Depends(get_code_set_provider),
):
    code_set = await provider.get_code_set(code_set_id)
    if not code_set:
        raise HTTPException(status_code=404, detail=f"Code set '{code_set_id}' not found")
    return code_set.model_dump(mode="json", by_alias=True)


@router.get("/{code_set_id}/options")
async def get_code_set_options(
    code_set_id: int,
    provider: InMemoryCodeSetProvider = Depends(get_code_set_provider),
):
    if not await provider.code_set_exists(code_set_id):
        raise HTTPException(status_code=404, detail=f"Code set '{code_set_id}' not found")
    options = await provider.get_code_set_as_field_options(code_set_id)
    return [o.model_dump(mode="json") for o in options]


@router.delete("/{code_set_id}", status_code=204)
def delete_code_set(
    code_set_id: int,
    provider: InMemoryCodeSetProvider = Depends(get_code_set_provider),
):
    if not provider.unregister_code_set(code_set_id):
        raise HTTPException(status_code=404, detail=f"Code set '{code_set_id}' not found")
