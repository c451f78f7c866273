import uuid

import pytest
from httpx import AsyncClient


SECRET_HEADER = {"X-Billing-Secret": "test-billing-secret"}


@pytest.mark.asyncio
async def test_webhook_requires_secret(client: AsyncClient, signup, school_fields) -> None:
    school, _ = await signup("school", "office@lincoln.edu", **school_fields())
    body = {"event": "subscription.activated", "organization_id": school["school_id"]}

    missing = await client.post("/api/v1/billing/webhook", json=body)
    assert missing.status_code == 401
    wrong = await client.post("/api/v1/billing/webhook", json=body, headers={"X-Billing-Secret": "guess"})
    assert wrong.status_code == 401

    unknown = await client.post(
        "/api/v1/billing/webhook",
        json={"event": "subscription.activated", "organization_id": str(uuid.uuid4())},
        headers=SECRET_HEADER,
    )
    assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_activation_and_cancellation(client: AsyncClient, signup, school_fields, activate) -> None:
    school, headers = await signup("school", "office@lincoln.edu", **school_fields())

    status_before = await client.get(f"/api/v1/billing/subscription/{school['school_id']}", headers=headers)
    assert status_before.json()["is_active"] is False

    activated = await activate(school["school_id"])
    assert activated["organization_type"] == "school"
    assert activated["is_active"] is True

    cancelled = await client.post(
        "/api/v1/billing/webhook",
        json={"event": "subscription.cancelled", "organization_id": school["school_id"]},
        headers=SECRET_HEADER,
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["is_active"] is False
    assert cancelled.json()["subscription_end_date"] is not None


@pytest.mark.asyncio
async def test_feature_gate_for_locked_school(client: AsyncClient, signup, school_fields, activate) -> None:
    school, headers = await signup("school", "office@lincoln.edu", **school_fields())

    locked = await client.get("/api/v1/billing/features/gradebook", headers=headers)
    assert locked.json() == {
        "feature": "gradebook",
        "allowed": False,
        "organization_id": school["school_id"],
        "redirect_to": "/billing",
    }
    billing = await client.get("/api/v1/billing/features/billing", headers=headers)
    assert billing.json()["allowed"] is True

    roster = await client.get("/api/v1/students", params={"school_id": school["school_id"]}, headers=headers)
    assert roster.status_code == 402
    assert roster.json()["detail"]["code"] == "subscription_required"

    await activate(school["school_id"])
    unlocked = await client.get("/api/v1/billing/features/gradebook", headers=headers)
    assert unlocked.json()["allowed"] is True
    roster = await client.get("/api/v1/students", params={"school_id": school["school_id"]}, headers=headers)
    assert roster.status_code == 200
    assert roster.json() == []


@pytest.mark.asyncio
async def test_district_subscription_unlocks_its_schools(client: AsyncClient, signup, activate) -> None:
    district, headers = await signup(
        "district",
        "admin@north.k12.us",
        district_name="North District",
        first_name="Dana",
        last_name="Reyes",
        number_of_schools=2,
    )
    created = await client.post("/api/v1/schools/district", json={"name": "North High"}, headers=headers)
    school_id = created.json()["id"]

    gate = await client.get("/api/v1/billing/features/roster", headers=headers)
    assert gate.json()["allowed"] is False
    assert gate.json()["organization_id"] == school_id

    await activate(district["district_id"])
    status = await client.get(f"/api/v1/billing/subscription/{school_id}", headers=headers)
    assert status.json()["subscription_active"] is False
    assert status.json()["is_active"] is True
    gate = await client.get("/api/v1/billing/features/roster", headers=headers)
    assert gate.json()["allowed"] is True
