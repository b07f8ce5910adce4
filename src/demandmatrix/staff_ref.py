from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

# Keys the upstream producer has used for a structured staff reference.
_ID_KEYS = ("id", "staffId", "staff_id")
_NAME_KEYS = ("name", "staffName", "full_name")


@dataclass(frozen=True, slots=True)
class StaffRef:
    """
    Canonical preferred-staff reference: always carries both an id and a name.
    """

    id: str
    name: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name}


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _first(raw: Mapping[Any, Any], keys: tuple[str, ...]) -> tuple[Optional[str], bool]:
    """First non-blank string under `keys`, and whether any key held a non-string."""
    found: Optional[str] = None
    for key in keys:
        try:
            value = raw.get(key)
        except Exception:
            return None, True
        if value is not None and not isinstance(value, str):
            return None, True
        if found is None:
            found = _clean(value)
    return found, False


def normalize(ref: Any) -> Optional[StaffRef]:
    """
    Normalize a polymorphic staff reference into a StaffRef, or None when unassigned.

    Accepted shapes:
      - a non-blank string: used as both id and name
      - a StaffRef: returned as-is
      - a mapping with id/name (or staffId/staffName, full_name): a missing
        or blank field falls back to the other
    Anything else (None, "", whitespace, numbers, mappings holding a
    non-string id or name) is None.
    Never raises.
    """
    if isinstance(ref, StaffRef):
        return ref
    if isinstance(ref, str):
        cleaned = _clean(ref)
        return StaffRef(cleaned, cleaned) if cleaned else None
    if isinstance(ref, Mapping):
        ref_id, bad_id = _first(ref, _ID_KEYS)
        ref_name, bad_name = _first(ref, _NAME_KEYS)
        if bad_id or bad_name or (ref_id is None and ref_name is None):
            return None
        return StaffRef(
            id=ref_id if ref_id is not None else str(ref_name),
            name=ref_name if ref_name is not None else str(ref_id),
        )
    return None


def resolve_id(ref: Any) -> Optional[str]:
    norm = normalize(ref)
    return norm.id if norm is not None else None


def resolve_name(ref: Any) -> Optional[str]:
    norm = normalize(ref)
    return norm.name if norm is not None else None


def is_unassigned(ref: Any) -> bool:
    """The single definition of "no preferred staff" used by stages and validation."""
    return normalize(ref) is None
