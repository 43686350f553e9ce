from datetime import timedelta

import pytest

from core.date_helper import utcnow
from email_notify.email_service import EmailService
from models.enums import BookingStatus, UserRole
from models.models import Booking
from services.booking_expiry_service import BookingExpiryService


async def paid_booking(client, auth, tenant, house, utr="UTR123456"):
    auth.login(tenant)
    res = await client.post("/v2/bookings/initiate", json={"house_id": str(house.id)})
    booking_id = res.json()["booking_id"]
    await client.post(f"/v2/bookings/{booking_id}/mark-paid", json={"utr": utr})
    return booking_id


@pytest.fixture
def sent(monkeypatch):
    calls = []

    def recorder(name):
        async def _send(self, **kwargs):
            calls.append((name, kwargs))

        return _send

    for name in ("send_booking_approved", "send_booking_rejected", "send_payout_transferred"):
        monkeypatch.setattr(EmailService, name, recorder(name))
    return calls


async def test_non_admin_cannot_list(client, auth, parties):
    auth.login(parties["tenant"])
    res = await client.get("/v2/admin/bookings")
    assert res.status_code == 403


async def test_buckets(client, auth, parties, make_house, sent):
    pending_id = await paid_booking(client, auth, parties["tenant"], parties["house"])

    villa = await make_house(parties["landlord"], title="Villa")
    rejected_id = await paid_booking(client, auth, parties["other_tenant"], villa)
    auth.login(parties["admin"])
    await client.put(f"/v2/admin/bookings/{rejected_id}/reject", json={"note": "UTR not found"})

    async def ids(status):
        res = await client.get("/v2/admin/bookings", params={"status": status})
        assert res.status_code == 200, res.text
        return {item["id"] for item in res.json()["items"]}

    assert await ids("pending") == {pending_id}
    assert await ids("rejected") == {rejected_id}
    assert await ids("approved") == set()
    assert await ids("all") == {pending_id, rejected_id}
    # legacy alias for payment_submitted
    assert await ids("paid") == {pending_id}

    res = await client.get("/v2/admin/bookings", params={"status": "bogus"})
    assert res.status_code == 400


async def test_list_paginates(client, auth, parties):
    auth.login(parties["admin"])
    res = await client.get(
        "/v2/admin/bookings", params={"status": "all", "page": 2, "per_page": 5}
    )
    body = res.json()
    assert body["page"] == 2
    assert body["per_page"] == 5
    assert body["items"] == []


async def test_list_reports_stale_hold_as_expired_without_writing(
    client, auth, parties, backdate, fetch, session_factory
):
    auth.login(parties["tenant"])
    res = await client.post(
        "/v2/bookings/initiate", json={"house_id": str(parties["house"].id)}
    )
    booking_id = res.json()["booking_id"]
    await backdate(booking_id, utcnow() - timedelta(minutes=30))

    auth.login(parties["admin"])
    res = await client.get("/v2/admin/bookings", params={"status": "all"})
    [item] = res.json()["items"]
    assert item["id"] == booking_id
    assert item["status"] == "expired"
    assert (await fetch(Booking, booking_id)).status == BookingStatus.INITIATED

    async with session_factory() as session:
        assert await BookingExpiryService(session).expire_stale_holds() == 1
    assert (await fetch(Booking, booking_id)).status == BookingStatus.EXPIRED


async def test_approve_sends_tenant_email(client, auth, parties, sent):
    booking_id = await paid_booking(client, auth, parties["tenant"], parties["house"])
    auth.login(parties["admin"])
    res = await client.put(f"/v2/admin/bookings/{booking_id}/approve")
    assert res.status_code == 200

    [(name, kwargs)] = sent
    assert name == "send_booking_approved"
    assert kwargs["email"] == parties["tenant"].email
    assert kwargs["amount"] == 5000


async def test_notification_failure_does_not_undo_transfer(
    client, auth, parties, monkeypatch, fetch
):
    async def boom(self, **kwargs):
        raise ConnectionError("smtp down")

    monkeypatch.setattr(EmailService, "send_booking_approved", boom)
    monkeypatch.setattr(EmailService, "send_payout_transferred", boom)

    booking_id = await paid_booking(client, auth, parties["tenant"], parties["house"])
    auth.login(parties["admin"])
    res = await client.put(f"/v2/admin/bookings/{booking_id}/approve")
    assert res.status_code == 200

    res = await client.post(
        f"/v2/admin/bookings/{booking_id}/mark-transferred",
        json={"payout_txn_id": "AXIS998877"},
    )
    assert res.status_code == 200
    assert res.json()["status"] == "transferred"

    booking = await fetch(Booking, booking_id)
    assert booking.status == BookingStatus.TRANSFERRED


async def test_transfer_emails_landlord(client, auth, parties, sent):
    booking_id = await paid_booking(client, auth, parties["tenant"], parties["house"])
    auth.login(parties["admin"])
    await client.put(f"/v2/admin/bookings/{booking_id}/approve")
    await client.post(
        f"/v2/admin/bookings/{booking_id}/mark-transferred",
        json={"payout_txn_id": "AXIS998877"},
    )

    name, kwargs = sent[-1]
    assert name == "send_payout_transferred"
    assert kwargs["email"] == parties["landlord"].email
    assert kwargs["payout_txn_id"] == "AXIS998877"


async def test_upi_intent_for_approved_booking(client, auth, parties, sent):
    booking_id = await paid_booking(client, auth, parties["tenant"], parties["house"])
    auth.login(parties["admin"])
    url = f"/v2/admin/bookings/{booking_id}/upi-intent"

    res = await client.get(url)
    assert res.status_code == 400
    assert res.json()["detail"]["required_status"] == "approved"

    await client.put(f"/v2/admin/bookings/{booking_id}/approve")
    res = await client.get(url)
    assert res.status_code == 200
    body = res.json()
    assert body["amount"] == 5000
    assert body["note"] == f"HomeRent Payout | {booking_id}"
    assert body["payee"] == {"name": "Ravi Kumar", "upi_id": "ravi@okaxis"}
    assert body["intent"] == (
        "upi://pay?pa=ravi%40okaxis&pn=Ravi%20Kumar&am=5000&cu=INR"
        f"&tn=HomeRent%20Payout%20%7C%20{booking_id}"
    )


async def test_upi_intent_needs_landlord_upi(client, auth, make_user, make_house, sent):
    landlord = await make_user(UserRole.LANDLORD, upi_id=None)
    tenant = await make_user(UserRole.TENANT)
    admin = await make_user(UserRole.ADMIN)
    house = await make_house(landlord)

    booking_id = await paid_booking(client, auth, tenant, house)
    auth.login(admin)
    await client.put(f"/v2/admin/bookings/{booking_id}/approve")

    res = await client.get(f"/v2/admin/bookings/{booking_id}/upi-intent")
    assert res.status_code == 400
    assert res.json()["detail"] == "Landlord UPI ID not set"


async def test_reject_only_from_payment_submitted(client, auth, parties, sent):
    auth.login(parties["tenant"])
    res = await client.post(
        "/v2/bookings/initiate", json={"house_id": str(parties["house"].id)}
    )
    booking_id = res.json()["booking_id"]

    auth.login(parties["admin"])
    res = await client.put(f"/v2/admin/bookings/{booking_id}/reject")
    assert res.status_code == 400

    auth.login(parties["tenant"])
    await client.post(f"/v2/bookings/{booking_id}/mark-paid", json={"utr": "UTR1"})
    auth.login(parties["admin"])
    res = await client.put(f"/v2/admin/bookings/{booking_id}/reject", json={"note": "No credit"})
    assert res.status_code == 200
    assert res.json()["status"] == "rejected"
    assert sent[-1][0] == "send_booking_rejected"
    assert sent[-1][1]["note"] == "No credit"


async def test_landlord_payout_history(client, auth, parties, sent):
    booking_id = await paid_booking(client, auth, parties["tenant"], parties["house"])
    auth.login(parties["admin"])
    await client.put(f"/v2/admin/bookings/{booking_id}/approve")

    auth.login(parties["landlord"])
    res = await client.get("/v2/landlord/payouts")
    assert res.json() == []
    res = await client.get("/v2/landlord/payouts", params={"status": "approved"})
    assert [row["booking_id"] for row in res.json()] == [booking_id]

    auth.login(parties["admin"])
    await client.post(
        f"/v2/admin/bookings/{booking_id}/mark-transferred",
        json={"payout_txn_id": "AXIS1"},
    )
    auth.login(parties["landlord"])
    [row] = (await client.get("/v2/landlord/payouts")).json()
    assert row["payout_txn_id"] == "AXIS1"
    assert row["house"]["title"] == "2BHK near Metro"

    auth.login(parties["tenant"])
    assert (await client.get("/v2/landlord/payouts")).status_code == 403
