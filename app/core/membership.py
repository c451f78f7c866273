"""
Pure helpers for JSON list fields with set semantics.

Each helper returns a NEW list so the ORM sees the attribute change; the input is never mutated.
Ids inside JSON lists are stored as strings.
"""

from typing import Dict, List, Optional, Sequence
from uuid import UUID

from app.core.models import School


def organization_entry(school: School) -> Dict[str, Optional[str]]:
    return {"id": str(school.id), "name": school.name, "city": school.city}


def has_organization(joined: Optional[Sequence[dict]], org_id: UUID) -> bool:
    return any(entry.get("id") == str(org_id) for entry in joined or [])


def add_organization(joined: Optional[Sequence[dict]], entry: Dict[str, Optional[str]]) -> List[dict]:
    """Append entry unless an entry with the same id exists (rejoining is a no-op)."""
    current = [dict(e) for e in joined or []]
    if any(e.get("id") == entry["id"] for e in current):
        return current
    return current + [dict(entry)]


def remove_organization(joined: Optional[Sequence[dict]], org_id: UUID) -> List[dict]:
    return [dict(e) for e in joined or [] if e.get("id") != str(org_id)]


def append_unique(values: Optional[Sequence[str]], value: UUID) -> List[str]:
    current = list(values or [])
    if str(value) not in current:
        current.append(str(value))
    return current


def remove_value(values: Optional[Sequence[str]], value: UUID) -> List[str]:
    return [v for v in values or [] if v != str(value)]
