"""Parsing of field references ("fieldId" or "ModuleKey.FieldId")."""

from typing import Optional

from formlogic.errors import InvalidReferenceError


def parse_field_reference(reference: str) -> tuple[Optional[str], str]:
    """
    Split a reference into (module_key, field_id).

    A '.' that is neither the first nor the last character splits on the
    first occurrence: "Step1.address.city" -> ("Step1", "address.city").
    Otherwise the whole string is the field id and module_key is None,
    meaning the current module.
    """
    if reference is None or not str(reference).strip():
        raise InvalidReferenceError("Field reference cannot be null or empty")

    dot = reference.find(".")
    if 0 < dot < len(reference) - 1:
        return reference[:dot], reference[dot + 1:]
    return None, reference


def format_field_reference(module_key: Optional[str], field_id: str) -> str:
    return f"{module_key}.{field_id}" if module_key else field_id
