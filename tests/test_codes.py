"""Unit tests for school/student codes and the duplicate key."""

import re
from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import codes
from app.core.codes import (
    build_duplicate_key,
    default_student_password,
    generate_school_code,
    generate_school_code_candidate,
    generate_student_code_candidate,
    get_school_by_code,
    is_valid_school_code,
    is_valid_student_code,
    normalize_code,
)
from app.core.models import School


def test_candidates_use_uppercase_alphanumerics() -> None:
    for _ in range(50):
        assert re.match(r"^[A-Z0-9]{6}$", generate_school_code_candidate())
        assert re.match(r"^[A-Z0-9]{8}$", generate_student_code_candidate())


def test_normalize_code_trims_and_uppercases() -> None:
    assert normalize_code("  lin123 ") == "LIN123"
    assert normalize_code(None) == ""


def test_code_validation() -> None:
    assert is_valid_school_code("LIN123")
    assert not is_valid_school_code("LIN12")
    assert not is_valid_school_code("lin123")
    assert not is_valid_school_code("LIN-23")
    assert is_valid_student_code("AB12CD34")
    assert not is_valid_student_code("AB12CD3")


def test_default_password_is_code_with_bang() -> None:
    assert default_student_password("AB12CD34") == "AB12CD34!"


def test_duplicate_key_with_and_without_dob() -> None:
    assert build_duplicate_key("Ann", "Lee", "Smith", date(2015, 5, 1)) == "ann_lee_smith_20150501"
    assert build_duplicate_key(" Ann ", "", "SMITH", None) == "ann__smith_nodob"


def _school(code: str) -> School:
    return School(
        name="Test School",
        address="",
        city="Springfield",
        state="IL",
        zip="62701",
        school_code=code,
        grades=[0, 1],
        subscription_active=False,
        student_count=0,
        student_cap=200,
    )


@pytest.mark.asyncio
async def test_lookup_is_case_insensitive(db_session: AsyncSession) -> None:
    db_session.add(_school("LIN123"))
    await db_session.commit()

    school = await get_school_by_code(db_session, " lin123 ")
    assert school is not None
    assert school.school_code == "LIN123"
    assert await get_school_by_code(db_session, "ZZZ999") is None
    assert await get_school_by_code(db_session, "not-a-code") is None


@pytest.mark.asyncio
async def test_generation_skips_codes_in_use(db_session: AsyncSession, monkeypatch) -> None:
    db_session.add(_school("TAKEN1"))
    await db_session.commit()

    candidates = iter(["TAKEN1", "TAKEN1", "FRESH1"])
    monkeypatch.setattr(codes, "generate_school_code_candidate", lambda: next(candidates))

    assert await generate_school_code(db_session, max_attempts=5) == "FRESH1"


@pytest.mark.asyncio
async def test_generation_gives_up_after_max_attempts(db_session: AsyncSession, monkeypatch) -> None:
    db_session.add(_school("TAKEN1"))
    await db_session.commit()
    monkeypatch.setattr(codes, "generate_school_code_candidate", lambda: "TAKEN1")

    assert await generate_school_code(db_session, max_attempts=3) is None
