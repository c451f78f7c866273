"""
Join codes and student identity keys.

- school_code: 6 chars A-Z0-9, shared with staff and families to join a school.
- student_code: 8 chars A-Z0-9, global identifier handed to parents for linking and
  used as the student's sign-in id.
Codes are case-insensitive on input and always stored uppercase. Ids (UUID) remain the
only keys other records point at; codes are never stored as references.
"""

import secrets
import string
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import School, Student


CODE_ALPHABET = string.ascii_uppercase + string.digits
SCHOOL_CODE_LENGTH = 6
STUDENT_CODE_LENGTH = 8
NO_DOB_MARKER = "nodob"


def normalize_code(raw: Optional[str]) -> str:
    """Trim and uppercase a human-entered code."""
    return (raw or "").strip().upper()


def _is_code(value: str, length: int) -> bool:
    return len(value) == length and all(ch in CODE_ALPHABET for ch in value)


def is_valid_school_code(code: str) -> bool:
    return _is_code(code, SCHOOL_CODE_LENGTH)


def is_valid_student_code(code: str) -> bool:
    return _is_code(code, STUDENT_CODE_LENGTH)


def _random_code(length: int) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def generate_school_code_candidate() -> str:
    """Single candidate school code (no DB check)."""
    return _random_code(SCHOOL_CODE_LENGTH)


def generate_student_code_candidate() -> str:
    """Single candidate student code (no DB check). Uniqueness is enforced by the insert."""
    return _random_code(STUDENT_CODE_LENGTH)


def default_student_password(student_code: str) -> str:
    """Credential a student signs in with until they change it."""
    return f"{student_code}!"


def build_duplicate_key(
    first_name: str,
    middle_name: str,
    last_name: str,
    date_of_birth: Optional[date],
) -> str:
    """
    Probable-duplicate key: first_middle_last_yyyymmdd, names trimmed and lower-cased.

    Examples:
        Ann Lee Smith, 2015-05-01 -> ann_lee_smith_20150501
        Ann Lee Smith, no DOB     -> ann_lee_smith_nodob
    """
    dob_part = date_of_birth.strftime("%Y%m%d") if date_of_birth else NO_DOB_MARKER
    parts = [first_name.strip().lower(), middle_name.strip().lower(), last_name.strip().lower(), dob_part]
    return "_".join(parts)


async def get_school_by_code(db: AsyncSession, code: str) -> Optional[School]:
    """Fetch school by join code (any case, surrounding whitespace ignored). None if not found."""
    normalized = normalize_code(code)
    if not is_valid_school_code(normalized):
        return None
    result = await db.execute(select(School).where(School.school_code == normalized))
    return result.scalar_one_or_none()


async def school_code_in_use(db: AsyncSession, code: str) -> bool:
    result = await db.execute(select(School.id).where(School.school_code == normalize_code(code)))
    return result.scalar_one_or_none() is not None


async def generate_school_code(db: AsyncSession, max_attempts: int = 20) -> Optional[str]:
    """
    Generate a school code not currently in use. Returns None after max_attempts collisions.
    The unique index on schools.school_code still guards the insert.
    """
    for _ in range(max_attempts):
        code = generate_school_code_candidate()
        if not await school_code_in_use(db, code):
            return code
    return None


async def get_student_by_code(db: AsyncSession, code: str) -> Optional[Student]:
    normalized = normalize_code(code)
    if not is_valid_student_code(normalized):
        return None
    result = await db.execute(select(Student).where(Student.student_code == normalized))
    return result.scalar_one_or_none()
