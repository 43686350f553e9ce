import asyncio
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from core.date_helper import utcnow
from models.enums import (
    IN_SETTLEMENT_STATUSES,
    ActorKind,
    BookingStatus,
    HouseStatus,
)
from models.models import Booking, House


async def initiate(client, auth, tenant, house):
    auth.login(tenant)
    return await client.post("/v2/bookings/initiate", json={"house_id": str(house.id)})


async def booked_and_paid(client, auth, tenant, house, utr="UTR123456"):
    res = await initiate(client, auth, tenant, house)
    assert res.status_code == 201, res.text
    booking_id = res.json()["booking_id"]
    paid = await client.post(f"/v2/bookings/{booking_id}/mark-paid", json={"utr": utr})
    assert paid.status_code == 200, paid.text
    return booking_id


def assert_history_consistent(booking):
    history = booking.history
    assert history, "booking has no history"
    assert history[-1].status == booking.status
    stamps = [h.at for h in history]
    assert stamps == sorted(stamps)
    for entry in history:
        if entry.by_id is None:
            assert entry.actor_kind == ActorKind.SYSTEM
        else:
            assert entry.actor_kind == ActorKind.USER


async def test_initiate_returns_upi_link_with_amount(client, auth, parties, fetch):
    res = await initiate(client, auth, parties["tenant"], parties["house"])

    assert res.status_code == 201, res.text
    body = res.json()
    assert body["amount"] == 5000
    assert body["currency"] == "INR"
    assert body["hold_minutes"] == 10
    assert "am=5000" in body["upi_link"]
    assert body["upi_link"].startswith("upi://pay?pa=homerent.platform%40upi&pn=HomeRent")
    assert f"tn=HomeRent%20Booking%20%7C%20{body['booking_id']}" in body["upi_link"]
    assert body["payee"] == {"name": "HomeRent", "upi_id": "homerent.platform@upi"}
    assert body["landlord"]["name"] == "Ravi Kumar"

    booking = await fetch(Booking, body["booking_id"])
    assert booking.status == BookingStatus.INITIATED
    assert booking.history[0].note == "Booking created"
    assert booking.history[0].by_id == parties["tenant"].id
    assert_history_consistent(booking)


async def test_initiate_requires_booking_amount(client, auth, parties, make_house):
    house = await make_house(parties["landlord"], booking_amount=0)
    res = await initiate(client, auth, parties["tenant"], house)
    assert res.status_code == 400
    assert res.json()["detail"] == "Booking amount not set"


async def test_initiate_unknown_house_is_404(client, auth, parties):
    auth.login(parties["tenant"])
    res = await client.post(
        "/v2/bookings/initiate", json={"house_id": "00000000-0000-0000-0000-000000000000"}
    )
    assert res.status_code == 404


async def test_initiate_missing_house_id_is_422(client, auth, parties):
    auth.login(parties["tenant"])
    res = await client.post("/v2/bookings/initiate", json={})
    assert res.status_code == 422
    assert res.json()["error"] == "Validation failed"


async def test_landlord_cannot_initiate(client, auth, parties):
    res = await initiate(client, auth, parties["landlord"], parties["house"])
    assert res.status_code == 403


async def test_initiate_without_platform_upi_is_500(client, auth, parties, monkeypatch):
    from core.settings import settings

    monkeypatch.setattr(settings, "PLATFORM_UPI_ID", None)
    res = await initiate(client, auth, parties["tenant"], parties["house"])
    assert res.status_code == 500
    assert res.json()["detail"] == "Platform UPI is not configured"


async def test_mark_paid_within_hold(client, auth, parties, fetch):
    booking_id = await booked_and_paid(client, auth, parties["tenant"], parties["house"])

    booking = await fetch(Booking, booking_id)
    assert booking.status == BookingStatus.PAYMENT_SUBMITTED
    assert booking.tenant_utr == "UTR123456"
    assert booking.payment_submitted_at is not None
    assert_history_consistent(booking)


async def test_mark_paid_requires_utr(client, auth, parties):
    res = await initiate(client, auth, parties["tenant"], parties["house"])
    booking_id = res.json()["booking_id"]
    res = await client.post(f"/v2/bookings/{booking_id}/mark-paid", json={"utr": "   "})
    assert res.status_code == 422


async def test_mark_paid_by_someone_else_is_403(client, auth, parties):
    res = await initiate(client, auth, parties["tenant"], parties["house"])
    booking_id = res.json()["booking_id"]

    auth.login(parties["other_tenant"])
    res = await client.post(f"/v2/bookings/{booking_id}/mark-paid", json={"utr": "UTR1"})
    assert res.status_code == 403


async def test_mark_paid_after_hold_expired(client, auth, parties, backdate, fetch):
    res = await initiate(client, auth, parties["tenant"], parties["house"])
    booking_id = res.json()["booking_id"]
    await backdate(booking_id, utcnow() - timedelta(minutes=11))

    res = await client.post(f"/v2/bookings/{booking_id}/mark-paid", json={"utr": "UTR1"})
    assert res.status_code == 400
    assert res.json()["detail"]["status"] == "expired"

    booking = await fetch(Booking, booking_id)
    assert booking.status == BookingStatus.EXPIRED
    assert booking.history[-1].actor_kind == ActorKind.SYSTEM
    assert booking.history[-1].by_id is None
    assert_history_consistent(booking)


async def test_admin_approval_rents_the_house(client, auth, parties, fetch):
    booking_id = await booked_and_paid(client, auth, parties["tenant"], parties["house"])

    auth.login(parties["admin"])
    res = await client.put(
        f"/v2/admin/bookings/{booking_id}/approve", json={"note": "UTR verified"}
    )
    assert res.status_code == 200, res.text
    assert res.json()["status"] == "approved"

    booking = await fetch(Booking, booking_id)
    assert booking.approved_by_id == parties["admin"].id
    assert booking.admin_note == "UTR verified"
    assert_history_consistent(booking)

    house = await fetch(House, parties["house"].id)
    assert house.status == HouseStatus.RENTED
    assert house.current_tenant_id == parties["tenant"].id
    assert house.current_booking_id == booking.id
    assert house.rented_at is not None


async def test_second_tenant_gets_409_without_booking_id(client, auth, parties):
    await booked_and_paid(client, auth, parties["tenant"], parties["house"])

    res = await initiate(client, auth, parties["other_tenant"], parties["house"])
    assert res.status_code == 409
    detail = res.json()["detail"]
    assert "booking_id" not in detail
    assert detail["can_cancel"] is False


async def test_own_active_booking_with_landlord_is_400_with_id(client, auth, parties, make_house):
    first = await initiate(client, auth, parties["tenant"], parties["house"])
    second_house = await make_house(parties["landlord"], title="Studio")

    res = await initiate(client, auth, parties["tenant"], second_house)
    assert res.status_code == 400
    detail = res.json()["detail"]
    assert detail["booking_id"] == first.json()["booking_id"]
    assert detail["can_cancel"] is True


async def test_bare_hold_does_not_block_other_tenants(client, auth, parties):
    first = await initiate(client, auth, parties["tenant"], parties["house"])
    assert first.status_code == 201

    second = await initiate(client, auth, parties["other_tenant"], parties["house"])
    assert second.status_code == 201


async def test_cancel_approved_then_cancel_again(client, auth, parties, fetch):
    booking_id = await booked_and_paid(client, auth, parties["tenant"], parties["house"])
    auth.login(parties["admin"])
    await client.put(f"/v2/admin/bookings/{booking_id}/approve")

    auth.login(parties["tenant"])
    res = await client.put(f"/v2/bookings/{booking_id}/cancel", json={"note": "Changed plans"})
    assert res.status_code == 200
    assert res.json()["status"] == "cancelled"

    res = await client.put(f"/v2/bookings/{booking_id}/cancel")
    assert res.status_code == 400
    assert (
        "cannot cancel booking in status: cancelled"
        in res.json()["detail"]["message"].lower()
    )

    booking = await fetch(Booking, booking_id)
    assert booking.cancel_note == "Changed plans"
    assert_history_consistent(booking)

    house = await fetch(House, parties["house"].id)
    assert house.status == HouseStatus.AVAILABLE
    assert house.current_tenant_id is None
    assert house.current_booking_id is None


async def test_stale_hold_reads_available_and_expires(client, auth, parties, backdate, fetch):
    res = await initiate(client, auth, parties["tenant"], parties["house"])
    booking_id = res.json()["booking_id"]
    await backdate(booking_id, utcnow() - timedelta(minutes=15))

    auth.login(None)
    res = await client.get(f"/v2/houses/{parties['house'].id}/availability")
    assert res.status_code == 200
    assert res.json() == {
        "house_id": str(parties["house"].id),
        "available": True,
        "reason": None,
        "status": "available",
    }

    booking = await fetch(Booking, booking_id)
    assert booking.status == BookingStatus.EXPIRED
    assert_history_consistent(booking)


async def test_availability_reports_booking_in_progress_and_rented(client, auth, parties):
    booking_id = await booked_and_paid(client, auth, parties["tenant"], parties["house"])
    url = f"/v2/houses/{parties['house'].id}/availability"

    res = await client.get(url)
    assert res.json()["available"] is False
    assert res.json()["reason"] == "booking_in_progress"

    auth.login(parties["admin"])
    await client.put(f"/v2/admin/bookings/{booking_id}/approve")
    res = await client.get(url)
    assert res.json()["reason"] == "rented"
    assert res.json()["status"] == "rented"


async def test_status_read_expires_stale_hold(client, auth, parties, backdate):
    res = await initiate(client, auth, parties["tenant"], parties["house"])
    booking_id = res.json()["booking_id"]
    await backdate(booking_id, utcnow() - timedelta(minutes=11))

    res = await client.get(f"/v2/bookings/{booking_id}/status")
    assert res.json() == {"booking_id": booking_id, "status": "expired"}


async def test_status_is_private_to_parties(client, auth, parties):
    res = await initiate(client, auth, parties["tenant"], parties["house"])
    booking_id = res.json()["booking_id"]

    auth.login(parties["other_tenant"])
    assert (await client.get(f"/v2/bookings/{booking_id}/status")).status_code == 403

    for who in ("landlord", "admin", "tenant"):
        auth.login(parties[who])
        assert (await client.get(f"/v2/bookings/{booking_id}/status")).status_code == 200


async def test_approve_from_wrong_status_does_not_mutate(client, auth, parties, fetch):
    res = await initiate(client, auth, parties["tenant"], parties["house"])
    booking_id = res.json()["booking_id"]
    before = await fetch(Booking, booking_id)
    history_len = len(before.history)

    auth.login(parties["admin"])
    res = await client.put(f"/v2/admin/bookings/{booking_id}/approve")
    assert res.status_code == 400
    detail = res.json()["detail"]
    assert detail["status"] == "initiated"
    assert detail["required_status"] == "payment_submitted"

    after = await fetch(Booking, booking_id)
    assert after.status == BookingStatus.INITIATED
    assert after.approved_by_id is None
    assert len(after.history) == history_len
    house = await fetch(House, parties["house"].id)
    assert house.status == HouseStatus.AVAILABLE


async def test_mark_transferred_requires_approved_and_reference(client, auth, parties, fetch):
    booking_id = await booked_and_paid(client, auth, parties["tenant"], parties["house"])
    auth.login(parties["admin"])
    url = f"/v2/admin/bookings/{booking_id}/mark-transferred"

    res = await client.post(url, json={"payout_txn_id": "PAYOUT1"})
    assert res.status_code == 400
    assert res.json()["detail"]["required_status"] == "approved"

    await client.put(f"/v2/admin/bookings/{booking_id}/approve")
    res = await client.post(url, json={"payout_txn_id": ""})
    assert res.status_code == 422

    res = await client.post(url, json={"payout_txn_id": "PAYOUT1"})
    assert res.status_code == 200
    assert res.json()["status"] == "transferred"

    booking = await fetch(Booking, booking_id)
    assert booking.payout_txn_id == "PAYOUT1"
    assert booking.payout_at is not None
    assert_history_consistent(booking)

    house = await fetch(House, parties["house"].id)
    assert house.current_booking_id == booking.id
    assert house.rented_at is not None

    auth.login(parties["tenant"])
    res = await client.put(f"/v2/bookings/{booking_id}/cancel")
    assert res.status_code == 400


async def test_in_settlement_index_rejects_second_row(db, parties):
    for tenant in (parties["tenant"], parties["other_tenant"]):
        db.add(
            Booking(
                house_id=parties["house"].id,
                landlord_id=parties["landlord"].id,
                tenant_id=tenant.id,
                amount=5000,
                status=BookingStatus.PAYMENT_SUBMITTED,
            )
        )
    with pytest.raises(IntegrityError):
        await db.commit()
    await db.rollback()


async def test_concurrent_mark_paid_leaves_one_in_settlement(
    client, auth, parties, session_factory
):
    first = await initiate(client, auth, parties["tenant"], parties["house"])
    second = await initiate(client, auth, parties["other_tenant"], parties["house"])
    assert first.status_code == second.status_code == 201

    from services.booking_service import BookingService

    async def pay(user, booking_id):
        async with session_factory() as session:
            try:
                return await BookingService(session).mark_paid(
                    user, uuid.UUID(booking_id), "UTR-X"
                )
            except Exception as e:
                return e

    results = await asyncio.gather(
        pay(parties["tenant"], first.json()["booking_id"]),
        pay(parties["other_tenant"], second.json()["booking_id"]),
    )
    successes = [r for r in results if isinstance(r, dict)]
    failures = [r for r in results if not isinstance(r, dict)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert getattr(failures[0], "status_code", None) == 409

    async with session_factory() as session:
        count = await session.scalar(
            select(func.count(Booking.id)).where(
                Booking.house_id == parties["house"].id,
                Booking.status.in_(list(IN_SETTLEMENT_STATUSES)),
            )
        )
    assert count == 1


async def test_concurrent_holds_with_same_landlord_leave_one_active(
    client, auth, parties, make_house, session_factory
):
    second_house = await make_house(parties["landlord"], title="Studio")
    auth.login(parties["tenant"])

    results = await asyncio.gather(
        *(
            client.post("/v2/bookings/initiate", json={"house_id": str(h.id)})
            for h in (parties["house"], second_house)
        )
    )
    assert sorted(r.status_code for r in results) == [201, 400]

    async with session_factory() as session:
        count = await session.scalar(
            select(func.count(Booking.id)).where(
                Booking.tenant_id == parties["tenant"].id,
                Booking.landlord_id == parties["landlord"].id,
            )
        )
    assert count == 1


async def test_my_bookings_reports_effective_status(client, auth, parties, backdate):
    res = await initiate(client, auth, parties["tenant"], parties["house"])
    booking_id = res.json()["booking_id"]
    await backdate(booking_id, utcnow() - timedelta(minutes=30))

    res = await client.get("/v2/bookings/my")
    assert res.status_code == 200
    [row] = res.json()
    assert row["id"] == booking_id
    assert row["status"] == "expired"
    assert [h["status"] for h in row["history"]] == ["initiated", "expired"]


async def test_my_rents_lists_approved_bookings(client, auth, parties):
    booking_id = await booked_and_paid(client, auth, parties["tenant"], parties["house"])
    auth.login(parties["admin"])
    await client.put(f"/v2/admin/bookings/{booking_id}/approve")

    auth.login(parties["tenant"])
    res = await client.get("/v2/bookings/my-rents")
    [row] = res.json()
    assert row["booking_id"] == booking_id
    assert row["house"]["status"] == "rented"


async def test_booking_detail_includes_history(client, auth, parties):
    booking_id = await booked_and_paid(client, auth, parties["tenant"], parties["house"])

    res = await client.get(f"/v2/bookings/{booking_id}")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "payment_submitted"
    assert body["expires_at"] is None
    assert [h["status"] for h in body["history"]] == ["initiated", "payment_submitted"]
    assert body["house"]["title"] == "2BHK near Metro"
