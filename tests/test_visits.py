from datetime import timedelta

import pytest
from fastapi import HTTPException

from core.date_helper import utcnow
from models.enums import UserRole
from services.visit_service import resolve_slot, validate_slot


def slot(hours_ahead=48, minutes=30):
    start = (utcnow() + timedelta(hours=hours_ahead)).replace(microsecond=0)
    return start, start + timedelta(minutes=minutes)


async def request_visit(client, auth, tenant, house, **overrides):
    start, end = slot()
    payload = {
        "house_id": str(house.id),
        "start": start.isoformat(),
        "end": end.isoformat(),
        "message": "  Evening works best  ",
    }
    payload.update(overrides)
    auth.login(tenant)
    return await client.post("/v2/visits", json=payload)


def test_resolve_slot_from_visit_at():
    start, _ = slot()
    assert resolve_slot(None, None, start, 45) == (start, start + timedelta(minutes=45))


@pytest.mark.parametrize("minutes", [10, 5 * 60])
def test_slot_length_limits(minutes):
    start, end = slot(minutes=minutes)
    with pytest.raises(HTTPException) as exc:
        validate_slot(start, end, utcnow())
    assert exc.value.status_code == 400


def test_slot_needs_notice():
    start, end = slot(hours_ahead=0.25)
    with pytest.raises(HTTPException) as exc:
        validate_slot(start, end, utcnow())
    assert "30 minutes" in exc.value.detail


async def test_request_and_accept(client, auth, parties):
    res = await request_visit(client, auth, parties["tenant"], parties["house"])
    assert res.status_code == 201, res.text
    visit = res.json()
    assert visit["status"] == "pending"
    assert visit["tenant_message"] == "Evening works best"
    assert visit["landlord_id"] == str(parties["landlord"].id)

    auth.login(parties["landlord"])
    [listed] = (await client.get("/v2/visits/landlord")).json()
    assert listed["id"] == visit["id"]

    res = await client.put(f"/v2/visits/{visit['id']}/accept", json={"note": "See you"})
    assert res.status_code == 200
    accepted = res.json()
    assert accepted["status"] == "accepted"
    assert accepted["final_start"] == visit["requested_start"]
    assert [h["status"] for h in accepted["history"]] == ["pending", "accepted"]

    res = await client.put(f"/v2/visits/{visit['id']}/complete")
    assert res.json()["status"] == "completed"


async def test_landlord_can_reschedule_on_accept(client, auth, parties):
    visit = (await request_visit(client, auth, parties["tenant"], parties["house"])).json()
    new_start, new_end = slot(hours_ahead=72, minutes=60)

    auth.login(parties["landlord"])
    res = await client.put(
        f"/v2/visits/{visit['id']}/accept",
        json={"start": new_start.isoformat(), "end": new_end.isoformat()},
    )
    assert res.status_code == 200
    assert res.json()["final_start"] == new_start.isoformat()


async def test_one_open_request_per_house(client, auth, parties):
    first = (await request_visit(client, auth, parties["tenant"], parties["house"])).json()
    res = await request_visit(client, auth, parties["tenant"], parties["house"])
    assert res.status_code == 400
    assert res.json()["detail"]["visit_id"] == first["id"]

    res = await client.put(f"/v2/visits/{first['id']}/cancel")
    assert res.json()["status"] == "cancelled"
    res = await request_visit(client, auth, parties["tenant"], parties["house"])
    assert res.status_code == 201


async def test_request_needs_a_time(client, auth, parties):
    res = await request_visit(
        client, auth, parties["tenant"], parties["house"], start=None, end=None
    )
    assert res.status_code == 422


async def test_only_landlord_of_house_decides(client, auth, parties, make_user):
    visit = (await request_visit(client, auth, parties["tenant"], parties["house"])).json()

    res = await client.put(f"/v2/visits/{visit['id']}/accept")
    assert res.status_code == 403

    auth.login(await make_user(UserRole.LANDLORD))
    res = await client.put(f"/v2/visits/{visit['id']}/reject")
    assert res.status_code == 403

    auth.login(parties["landlord"])
    res = await client.put(f"/v2/visits/{visit['id']}/reject", json={"note": "Not available"})
    assert res.json()["status"] == "rejected"
    assert res.json()["landlord_note"] == "Not available"

    res = await client.put(f"/v2/visits/{visit['id']}/complete")
    assert res.status_code == 400
    assert res.json()["detail"]["required_status"] == "accepted"


async def test_tenant_cannot_cancel_someone_elses_visit(client, auth, parties):
    visit = (await request_visit(client, auth, parties["tenant"], parties["house"])).json()
    auth.login(parties["other_tenant"])
    res = await client.put(f"/v2/visits/{visit['id']}/cancel")
    assert res.status_code == 403

    auth.login(parties["tenant"])
    [mine] = (await client.get("/v2/visits/my")).json()
    assert mine["status"] == "pending"
