"""
Code-set providers: reusable option lists resolved onto fields at build time.

The hierarchy builder only needs get_code_set_as_field_options; the other
lookups serve editors and the HTTP layer.
"""

import logging
from typing import Iterable, Optional, Protocol, runtime_checkable

from pydantic import BaseModel

from formlogic.models.form_schema import CodeSetItem, CodeSetSchema, FieldOption

logger = logging.getLogger(__name__)


@runtime_checkable
class CodeSetProvider(Protocol):
    """Source of code sets for HierarchyBuilder."""

    async def get_code_set_as_field_options(self, code_set_id: int) -> list[FieldOption]:
        ...


class CodeSetProviderStats(BaseModel):
    total_code_sets: int = 0
    active_code_sets: int = 0
    total_items: int = 0
    categories: int = 0


class InMemoryCodeSetProvider:
    """Dictionary-backed provider for tests, demos and small deployments."""

    def __init__(self, code_sets: Optional[Iterable[CodeSetSchema]] = None):
        self._by_id: dict[int, CodeSetSchema] = {}
        self._by_code: dict[str, CodeSetSchema] = {}
        if code_sets:
            self.register_code_sets(*code_sets)

    # --- lookups ------------------------------------------------------------

    async def get_code_set(self, code_set_id: int) -> Optional[CodeSetSchema]:
        code_set = self._by_id.get(code_set_id)
        logger.debug("get_code_set(%s): %s", code_set_id, "found" if code_set else "not found")
        return code_set

    async def get_code_set_by_code(self, code: str) -> Optional[CodeSetSchema]:
        """Case-insensitive lookup by code."""
        code_set = self._by_code.get(code.casefold()) if code else None
        logger.debug("get_code_set_by_code(%r): %s", code, "found" if code_set else "not found")
        return code_set

    async def get_all_code_sets(self, include_inactive: bool = False) -> list[CodeSetSchema]:
        return [cs for cs in self._by_id.values() if include_inactive or cs.is_active]

    async def get_code_sets_by_category(self, category: str) -> list[CodeSetSchema]:
        wanted = (category or "").casefold()
        return [
            cs
            for cs in self._by_id.values()
            if cs.is_active and cs.category is not None and cs.category.casefold() == wanted
        ]

    async def get_code_set_items(self, code_set_id: int) -> list[CodeSetItem]:
        code_set = await self.get_code_set(code_set_id)
        return list(code_set.items) if code_set else []

    async def get_code_set_as_field_options(self, code_set_id: int) -> list[FieldOption]:
        code_set = await self.get_code_set(code_set_id)
        return code_set.to_field_options() if code_set else []

    async def code_set_exists(self, code_set_id: int) -> bool:
        return code_set_id in self._by_id

    # --- registration -------------------------------------------------------

    def register_code_set(self, code_set: CodeSetSchema) -> None:
        """Add or replace a code set (keyed by id and by code)."""
        if code_set is None:
            raise ValueError("code_set is required")
        previous = self._by_id.get(code_set.id)
        if previous is not None:
            self._by_code.pop(previous.code.casefold(), None)
        self._by_id[code_set.id] = code_set
        self._by_code[code_set.code.casefold()] = code_set
        logger.info(
            "Registered code set %s - '%s' (%s) with %d items",
            code_set.id,
            code_set.code,
            code_set.name_en,
            len(code_set.items),
        )

    def register_code_sets(self, *code_sets: CodeSetSchema) -> None:
        for code_set in code_sets:
            self.register_code_set(code_set)

    def unregister_code_set(self, code_set_id: int) -> bool:
        code_set = self._by_id.pop(code_set_id, None)
        if code_set is None:
            return False
        self._by_code.pop(code_set.code.casefold(), None)
        logger.info("Unregistered code set %s - '%s'", code_set_id, code_set.code)
        return True

    def clear(self) -> None:
        count = len(self._by_id)
        self._by_id.clear()
        self._by_code.clear()
        logger.info("Cleared all code sets (%d removed)", count)

    def get_stats(self) -> CodeSetProviderStats:
        values = list(self._by_id.values())
        return CodeSetProviderStats(
            total_code_sets=len(values),
            active_code_sets=sum(1 for cs in values if cs.is_active),
            total_items=sum(len(cs.items) for cs in values),
            categories=len({cs.category for cs in values if cs.category is not None}),
        )
