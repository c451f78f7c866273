from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import services
from app.auth.models import Principal, User
from app.auth.provider import LocalAuthProvider
from app.core.models import Parent, School, Teacher


PASSWORD = "StrongPass123"


async def _principal_count(db_session: AsyncSession) -> int:
    return await db_session.scalar(select(func.count(Principal.id)))


@pytest.mark.asyncio
async def test_school_signup_creates_locked_school_and_owner(
    client: AsyncClient, db_session: AsyncSession, signup, school_fields
) -> None:
    data, _ = await signup("school", "principal@lincoln.edu", **school_fields())

    assert data["success"] is True
    code = data["school_code"]
    assert len(code) == 6 and code.isalnum() and code.upper() == code

    school = await db_session.get(School, UUID(data["school_id"]))
    assert school.subscription_active is False
    assert school.grades == [0, 1, 2, 3, 4, 5]
    assert school.owner_user_id == UUID(data["user"]["id"])

    user = data["user"]
    assert user["role"] == "school"
    assert user["active_organization_id"] == data["school_id"]
    assert [org["id"] for org in user["joined_organizations"]] == [data["school_id"]]


@pytest.mark.asyncio
async def test_school_signup_with_chosen_code(
    client: AsyncClient, db_session: AsyncSession, signup, school_fields
) -> None:
    data, _ = await signup("school", "a@school.edu", **school_fields(school_code=" lin123 "))
    assert data["school_code"] == "LIN123"

    before = await _principal_count(db_session)
    taken = await client.post(
        "/api/v1/auth/signup/school",
        json={
            "email": "b@school.edu",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
            **school_fields("Other School", school_code="LIN123"),
        },
    )
    assert taken.status_code == 409

    invalid = await client.post(
        "/api/v1/auth/signup/school",
        json={
            "email": "c@school.edu",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
            **school_fields("Third School", school_code="AB-12"),
        },
    )
    assert invalid.status_code == 400
    # Predictable failures never leave a principal behind
    assert await _principal_count(db_session) == before


@pytest.mark.asyncio
async def test_duplicate_email_is_rejected(client: AsyncClient, signup) -> None:
    await signup("parent", "mom@example.com", first_name="Mary", last_name="Smith")
    response = await client.post(
        "/api/v1/auth/signup/parent",
        json={
            "email": "MOM@example.com",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
            "first_name": "Mary",
            "last_name": "Smith",
        },
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_district_signup_snapshots_pricing(signup) -> None:
    data, _ = await signup(
        "district",
        "admin@north.k12.us",
        district_name="North District",
        first_name="Dana",
        last_name="Reyes",
        number_of_schools=20,
    )
    assert data["subscription_tier"] == "large"
    assert float(data["price_per_school"]) == 64
    assert float(data["monthly_price"]) == 1280
    assert data["user"]["district_id"] == data["district_id"]


@pytest.mark.asyncio
async def test_staff_signup_rejects_unknown_role(client: AsyncClient, db_session: AsyncSession, signup) -> None:
    data, _ = await signup("staff", "t@example.com", role="Teacher", first_name="Tom", last_name="Hill")
    assert data["user"]["role"] == "teacher"
    assert data["user"]["joined_organizations"] == []
    teacher = (await db_session.execute(select(Teacher))).scalar_one()
    assert teacher.school_id is None

    before = await _principal_count(db_session)
    response = await client.post(
        "/api/v1/auth/signup/staff",
        json={
            "email": "x@example.com",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
            "role": "principal",
            "first_name": "X",
            "last_name": "Y",
        },
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "role_mismatch"
    assert await _principal_count(db_session) == before


@pytest.mark.asyncio
async def test_login_and_me(client: AsyncClient, signup) -> None:
    data, headers = await signup("parent", "dad@example.com", first_name="Sam", last_name="Lee")

    me = await client.get("/api/v1/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["id"] == data["user"]["id"]

    bad = await client.post("/api/v1/auth/login", json={"email": "dad@example.com", "password": "wrong-pass"})
    assert bad.status_code == 401
    assert bad.json()["detail"]["code"] == "auth_error"

    anonymous = await client.get("/api/v1/auth/me")
    assert anonymous.status_code == 401


@pytest.mark.asyncio
async def test_failed_profile_write_reports_partial_account(
    client: AsyncClient, db_session: AsyncSession, monkeypatch
) -> None:
    def broken_full_name(first_name: str, last_name: str) -> str:
        raise RuntimeError("directory unavailable")

    monkeypatch.setattr(services, "_full_name", broken_full_name)
    response = await client.post(
        "/api/v1/auth/signup/parent",
        json={
            "email": "half@example.com",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
            "first_name": "Half",
            "last_name": "Done",
        },
    )
    assert response.status_code == 500
    detail = response.json()["detail"]
    assert detail["code"] == "partial_account"
    principal_id = UUID(detail["principal_id"])

    # Principal exists, directory records do not
    assert await db_session.get(Principal, principal_id) is not None
    assert await db_session.get(User, principal_id) is None
    assert (await db_session.execute(select(Parent))).scalars().all() == []

    login = await client.post("/api/v1/auth/login", json={"email": "half@example.com", "password": PASSWORD})
    assert login.status_code == 500
    assert login.json()["detail"]["code"] == "partial_account"

    orphans = await services.find_orphaned_principals(db_session)
    assert [p.id for p in orphans] == [principal_id]
    assert await services.rollback_partial_account(db_session, LocalAuthProvider(db_session), principal_id)
    assert await services.find_orphaned_principals(db_session) == []


@pytest.mark.asyncio
async def test_parent_can_delete_account(client: AsyncClient, signup) -> None:
    _, headers = await signup("parent", "leaving@example.com", first_name="Lea", last_name="Ving")

    response = await client.delete("/api/v1/auth/me", headers=headers)
    assert response.status_code == 200

    login = await client.post("/api/v1/auth/login", json={"email": "leaving@example.com", "password": PASSWORD})
    assert login.status_code == 401


@pytest.mark.asyncio
async def test_school_admin_cannot_delete_school_with_staff(
    client: AsyncClient, signup, school_fields, activate
) -> None:
    school, admin_headers = await signup("school", "owner@school.edu", **school_fields())
    await activate(school["school_id"])
    _, teacher_headers = await signup("staff", "t1@example.com", role="teacher", first_name="Tia", last_name="Ng")
    joined = await client.post("/api/v1/schools/join", json={"code": school["school_code"]}, headers=teacher_headers)
    assert joined.status_code == 200

    response = await client.delete("/api/v1/auth/me", headers=admin_headers)
    assert response.status_code == 409

    left = await client.post(f"/api/v1/schools/{school['school_id']}/leave", headers=teacher_headers)
    assert left.status_code == 200
    response = await client.delete("/api/v1/auth/me", headers=admin_headers)
    assert response.status_code == 200
