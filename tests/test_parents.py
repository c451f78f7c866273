from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.v1.parents.service import link_parent_to_student
from app.auth.models import User
from app.core.enums import ParentRelationship
from app.core.models import Parent, ParentStudentLink, Student


@pytest.fixture()
async def enrolled_student(client: AsyncClient, signup, school_fields, activate):
    school, headers = await signup("school", "office@lincoln.edu", **school_fields())
    await activate(school["school_id"])
    response = await client.post(
        "/api/v1/students",
        json={
            "school_id": school["school_id"],
            "first_name": "Ann",
            "middle_name": "Lee",
            "last_name": "Smith",
            "grade_level": 3,
        },
        headers=headers,
    )
    assert response.status_code == 201
    return school, headers, response.json()


@pytest.mark.asyncio
async def test_parent_links_child_by_code(
    client: AsyncClient, db_session: AsyncSession, signup, enrolled_student
) -> None:
    school, _, student = enrolled_student
    parent, headers = await signup("parent", "mom@example.com", first_name="Mary", last_name="Smith")

    lookup = await client.get("/api/v1/students/lookup", params={"code": student["student_code"]}, headers=headers)
    assert lookup.status_code == 200
    assert lookup.json()["first_name"] == "Ann"

    linked = await client.post(
        "/api/v1/parents/me/children",
        json={"student_code": student["student_code"].lower(), "relationship": "mother", "can_pickup": True},
        headers=headers,
    )
    assert linked.status_code == 201
    assert linked.json()["relationship"] == "mother"
    assert linked.json()["can_pickup"] is True

    parent_id = UUID(parent["user"]["id"])
    student_row = await db_session.get(Student, UUID(student["id"]))
    assert student_row.parent_ids == [str(parent_id)]
    profile = (await db_session.execute(select(Parent).where(Parent.user_id == parent_id))).scalar_one()
    assert profile.children_ids == [student["id"]]
    assert profile.school_ids == [school["school_id"]]

    me = await client.get("/api/v1/auth/me", headers=headers)
    assert [o["id"] for o in me.json()["joined_organizations"]] == [school["school_id"]]
    assert me.json()["active_organization_id"] == school["school_id"]

    children = await client.get("/api/v1/parents/me/children", headers=headers)
    assert [c["student_id"] for c in children.json()["children"]] == [student["id"]]
    assert children.json()["children"][0]["relationship"] == "mother"


@pytest.mark.asyncio
async def test_linking_switches_active_school(
    client: AsyncClient, signup, school_fields, activate, enrolled_student
) -> None:
    first_school, _, first_child = enrolled_student
    second_school, second_headers = await signup("school", "office@other.edu", **school_fields("Other School"))
    await activate(second_school["school_id"])
    second_child = (
        await client.post(
            "/api/v1/students",
            json={
                "school_id": second_school["school_id"],
                "first_name": "Ben",
                "middle_name": "Ray",
                "last_name": "Smith",
                "grade_level": 1,
            },
            headers=second_headers,
        )
    ).json()
    _, headers = await signup("parent", "mom@example.com", first_name="Mary", last_name="Smith")

    for child in (first_child, second_child):
        linked = await client.post(
            "/api/v1/parents/me/children",
            json={"student_code": child["student_code"], "relationship": "mother"},
            headers=headers,
        )
        assert linked.status_code == 201

    me = (await client.get("/api/v1/auth/me", headers=headers)).json()
    assert me["active_organization_id"] == second_school["school_id"]
    assert [o["id"] for o in me["joined_organizations"]] == [first_school["school_id"], second_school["school_id"]]

    # Linking again at the first school moves the parent back there
    await client.post(
        "/api/v1/parents/me/children",
        json={"student_code": first_child["student_code"], "relationship": "mother"},
        headers=headers,
    )
    me = (await client.get("/api/v1/auth/me", headers=headers)).json()
    assert me["active_organization_id"] == first_school["school_id"]


@pytest.mark.asyncio
async def test_relinking_updates_existing_link(
    client: AsyncClient, db_session: AsyncSession, signup, enrolled_student
) -> None:
    _, _, student = enrolled_student
    _, headers = await signup("parent", "dad@example.com", first_name="Sam", last_name="Smith")

    for flags in ({"relationship": "guardian"}, {"relationship": "father", "is_primary_contact": True}):
        response = await client.post(
            "/api/v1/parents/me/children", json={"student_code": student["student_code"], **flags}, headers=headers
        )
        assert response.status_code == 201

    links = (await db_session.execute(select(ParentStudentLink))).scalars().all()
    assert len(links) == 1
    assert links[0].relationship == "father"
    assert links[0].is_primary_contact is True
    student_row = await db_session.get(Student, UUID(student["id"]))
    assert len(student_row.parent_ids) == 1


@pytest.mark.asyncio
async def test_link_is_all_or_nothing(
    session_factory: async_sessionmaker, signup, enrolled_student, monkeypatch
) -> None:
    school, _, student = enrolled_student
    parent, _ = await signup("parent", "mom@example.com", first_name="Mary", last_name="Smith")
    parent_id = UUID(parent["user"]["id"])

    async with session_factory() as session:

        async def failing_commit() -> None:
            await session.flush()
            raise RuntimeError("connection lost")

        monkeypatch.setattr(session, "commit", failing_commit)
        with pytest.raises(RuntimeError):
            await link_parent_to_student(
                session,
                parent_id,
                UUID(student["id"]),
                UUID(school["school_id"]),
                ParentRelationship.MOTHER,
            )

    async with session_factory() as check:
        assert (await check.execute(select(ParentStudentLink))).scalars().all() == []
        assert (await check.get(Student, UUID(student["id"]))).parent_ids == []
        profile = (await check.execute(select(Parent).where(Parent.user_id == parent_id))).scalar_one()
        assert profile.children_ids == []
        assert profile.school_ids == []
        assert (await check.get(User, parent_id)).joined_organizations == []


@pytest.mark.asyncio
async def test_unknown_student_code(client: AsyncClient, signup) -> None:
    _, headers = await signup("parent", "mom@example.com", first_name="Mary", last_name="Smith")
    response = await client.post(
        "/api/v1/parents/me/children", json={"student_code": "ZZZZ9999", "relationship": "mother"}, headers=headers
    )
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "invalid_code"


@pytest.mark.asyncio
async def test_staff_link_checks(client: AsyncClient, signup, school_fields, enrolled_student) -> None:
    school, admin_headers, student = enrolled_student
    parent, parent_headers = await signup("parent", "mom@example.com", first_name="Mary", last_name="Smith")
    teacher, teacher_headers = await signup("staff", "t@example.com", role="teacher", first_name="Tia", last_name="Ng")
    other_school, _ = await signup("school", "office@other.edu", **school_fields("Other School"))

    body = {
        "parent_user_id": parent["user"]["id"],
        "student_id": student["id"],
        "school_id": school["school_id"],
        "relationship": "guardian",
    }

    # Teacher with no class containing the student
    denied = await client.post("/api/v1/parents/links", json=body, headers=teacher_headers)
    assert denied.status_code == 403

    not_parent = await client.post(
        "/api/v1/parents/links", json={**body, "parent_user_id": teacher["user"]["id"]}, headers=admin_headers
    )
    assert not_parent.status_code == 400
    assert not_parent.json()["detail"]["code"] == "role_mismatch"

    wrong_school = await client.post(
        "/api/v1/parents/links", json={**body, "school_id": other_school["school_id"]}, headers=admin_headers
    )
    assert wrong_school.status_code == 400

    ok = await client.post("/api/v1/parents/links", json=body, headers=admin_headers)
    assert ok.status_code == 201

    # Only parents use the parent portal
    portal = await client.get("/api/v1/parents/me/children", headers=teacher_headers)
    assert portal.status_code == 403
    children = await client.get("/api/v1/parents/me/children", headers=parent_headers)
    assert len(children.json()["children"]) == 1
