import logging
from uuid import UUID

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from app.api.v1.schools.service import join_school_by_code
from app.auth.models import User
from app.core.config import settings
from app.core.exceptions import ServiceError
from app.db.retry import run_with_retry


@pytest.fixture()
async def two_schools_and_teacher(signup, school_fields, activate):
    a, _ = await signup("school", "office@a.edu", **school_fields("School A"))
    b, _ = await signup("school", "office@b.edu", **school_fields("School B"))
    await activate(a["school_id"])
    await activate(b["school_id"])
    teacher, _ = await signup("staff", "teacher@example.com", role="teacher", first_name="Tess", last_name="Ortiz")
    return a, b, UUID(teacher["user"]["id"])


@pytest.mark.asyncio
async def test_concurrent_joins_keep_both_memberships(
    session_factory: async_sessionmaker, two_schools_and_teacher, caplog
) -> None:
    a, b, user_id = two_schools_and_teacher

    async with session_factory() as stale, session_factory() as fresh:
        loaded = await stale.get(User, user_id)
        assert loaded.joined_organizations == []
        start_version = loaded.version

        await join_school_by_code(fresh, user_id, a["school_code"])
        with caplog.at_level(logging.WARNING, logger="app.db.retry"):
            user = await join_school_by_code(stale, user_id, b["school_code"])

    assert "write conflict on attempt 1" in caplog.text
    assert [o["id"] for o in user.joined_organizations] == [a["school_id"], b["school_id"]]
    assert user.active_organization_id == UUID(b["school_id"])

    async with session_factory() as check:
        stored = await check.get(User, user_id)
        assert [o["id"] for o in stored.joined_organizations] == [a["school_id"], b["school_id"]]
        # One write per successful join; the stale attempt wrote nothing
        assert stored.version == start_version + 2


@pytest.mark.asyncio
async def test_conflict_surfaces_after_last_attempt(
    session_factory: async_sessionmaker, two_schools_and_teacher, monkeypatch
) -> None:
    a, b, user_id = two_schools_and_teacher
    monkeypatch.setattr(settings, "write_retry_attempts", 1)

    async with session_factory() as stale, session_factory() as fresh:
        stale_user = await stale.get(User, user_id)  # noqa: F841 - held so the stale instance stays in the identity map
        await join_school_by_code(fresh, user_id, a["school_code"])
        with pytest.raises(ServiceError) as exc_info:
            await join_school_by_code(stale, user_id, b["school_code"])

    assert exc_info.value.status_code == 409
    async with session_factory() as check:
        stored = await check.get(User, user_id)
        assert [o["id"] for o in stored.joined_organizations] == [a["school_id"]]


@pytest.mark.asyncio
async def test_run_with_retry_limits(db_session: AsyncSession) -> None:
    calls = []

    async def always_stale():
        calls.append("stale")
        raise StaleDataError("users row changed")

    with pytest.raises(ServiceError) as exc_info:
        await run_with_retry(db_session, always_stale, label="always stale", attempts=3)
    assert exc_info.value.status_code == 409
    assert len(calls) == 3

    outcomes = [IntegrityError("INSERT INTO teachers", {}, Exception("UNIQUE constraint failed")), "done"]

    async def duplicate_then_ok():
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    assert await run_with_retry(db_session, duplicate_then_ok, label="duplicate then ok") == "done"

    other_calls = []

    async def broken():
        other_calls.append("broken")
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        await run_with_retry(db_session, broken, label="broken", attempts=3)
    assert other_calls == ["broken"]
