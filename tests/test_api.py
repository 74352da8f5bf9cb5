"""
HTTP surface under /api/v1, driven through the Flask test client.

These tests build their own application without a pushed app context so
every request gets a fresh one, just like a real server; the login state
then lives only in each client's session cookie.
"""
import pytest

from farmshare import create_app
from farmshare.config import TestingConfig
from farmshare.extensions import db
from farmshare.models import Booking
from tests.conftest import RecordingNotifier
from tests.factories import make_tractor, make_user

START = "2030-03-01T06:00:00Z"


@pytest.fixture
def api_app():
    app = create_app(TestingConfig, notifier=RecordingNotifier())
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def accounts(api_app):
    with api_app.app_context():
        farmer = make_user("farmer", balance="5000")
        owner = make_user("owner")
        admin = make_user("admin")
        tractor = make_tractor(owner)
        return {
            "farmer": farmer.email,
            "owner": owner.email,
            "admin": admin.email,
            "tractor_id": tractor.id,
        }


def _login(app, email, password="secret123"):
    client = app.test_client()
    response = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.get_json()
    return client


def _create_booking(client, tractor_id, start=START, duration=2):
    return client.post(
        "/api/v1/bookings",
        json={"tractor_id": tractor_id, "start_time": start, "duration": duration, "work_type": "plowing"},
    )


class TestAuth:
    def test_register_creates_wallet_and_logs_in(self, api_app):
        client = api_app.test_client()
        response = client.post(
            "/api/v1/auth/register",
            json={
                "full_name": "Meena Kumari",
                "email": "Meena@Example.com",
                "password": "harvest2030",
                "role": "farmer",
                "phone": "98400 12345",
            },
        )
        assert response.status_code == 201
        assert response.get_json()["email"] == "meena@example.com"

        me = client.get("/api/v1/auth/me").get_json()
        assert me["phone"] == "9840012345"
        assert me["wallet_balance"] == "0.00"

    def test_duplicate_email_conflicts(self, api_app, accounts):
        response = api_app.test_client().post(
            "/api/v1/auth/register",
            json={
                "full_name": "Someone",
                "email": accounts["farmer"],
                "password": "pw",
                "role": "farmer",
                "phone": "9000000000",
            },
        )
        assert response.status_code == 409

    def test_bad_credentials(self, api_app, accounts):
        response = api_app.test_client().post(
            "/api/v1/auth/login", json={"email": accounts["farmer"], "password": "wrong"}
        )
        assert response.status_code == 401
        assert response.get_json()["error"] == "Invalid credentials."

    def test_anonymous_requests_are_rejected(self, api_app):
        response = api_app.test_client().get("/api/v1/bookings")
        assert response.status_code == 401
        assert response.get_json()["code"] == "unauthenticated"

    def test_logout(self, api_app, accounts):
        client = _login(api_app, accounts["farmer"])
        assert client.post("/api/v1/auth/logout").status_code == 200
        assert client.get("/api/v1/auth/me").status_code == 401


class TestTractors:
    def test_owner_lists_and_parks_a_tractor(self, api_app, accounts):
        owner = _login(api_app, accounts["owner"])
        created = owner.post("/api/v1/tractors", json={"title": "Sonalika DI 745", "price_per_hour": "650"})
        assert created.status_code == 201
        new_id = created.get_json()["id"]

        catalogue = api_app.test_client().get("/api/v1/tractors").get_json()
        assert catalogue["count"] == 2

        parked = owner.patch(f"/api/v1/tractors/{new_id}/availability", json={"is_active": "false"})
        assert parked.get_json()["is_active"] is False
        ids = [t["id"] for t in api_app.test_client().get("/api/v1/tractors").get_json()["tractors"]]
        assert ids == [accounts["tractor_id"]]

    def test_farmers_cannot_list_tractors(self, api_app, accounts):
        farmer = _login(api_app, accounts["farmer"])
        response = farmer.post("/api/v1/tractors", json={"title": "X", "price_per_hour": "100"})
        assert response.status_code == 403

    def test_bad_price_is_rejected(self, api_app, accounts):
        owner = _login(api_app, accounts["owner"])
        response = owner.post("/api/v1/tractors", json={"title": "X", "price_per_hour": "-5"})
        assert response.status_code == 400

    def test_unparseable_availability_flag_is_rejected(self, api_app, accounts):
        owner = _login(api_app, accounts["owner"])
        url = f"/api/v1/tractors/{accounts['tractor_id']}/availability"
        response = owner.patch(url, json={"is_active": "sometimes"})
        assert response.status_code == 400


class TestBookingFlow:
    def test_full_lifecycle(self, api_app, accounts):
        farmer = _login(api_app, accounts["farmer"])
        owner = _login(api_app, accounts["owner"])

        created = _create_booking(farmer, accounts["tractor_id"])
        assert created.status_code == 201
        booking = created.get_json()["booking"]
        booking_id = booking["id"]
        assert booking["total_amount"] == "1000.00"
        assert booking["platform_fee"] == "150.00"
        assert booking["owner_earnings"] == "850.00"
        otp_start, otp_end = booking["otp_start"], booking["otp_end"]

        paid = farmer.post(f"/api/v1/bookings/{booking_id}/pay")
        assert paid.status_code == 200
        assert paid.get_json()["remaining_wallet"] == "4000.00"
        assert paid.get_json()["booking"]["payment_status"] == "held"

        assert owner.put(f"/api/v1/bookings/{booking_id}/accept").status_code == 200

        wrong = "0000" if otp_start != "0000" else "1111"
        bad = owner.put(f"/api/v1/bookings/{booking_id}/start", json={"otp": wrong})
        assert bad.status_code == 400
        assert bad.get_json()["code"] == "invalid_otp"

        started = owner.put(f"/api/v1/bookings/{booking_id}/start", json={"otp": otp_start})
        assert started.get_json()["booking"]["status"] == "in-progress"

        done = owner.put(f"/api/v1/bookings/{booking_id}/complete", json={"otp": otp_end})
        body = done.get_json()
        assert done.status_code == 200
        assert body["payment_released"] is True
        assert body["escrow_error"] is None
        assert body["booking"]["payment_status"] == "released"
        assert "otp_start" not in body["booking"]

        assert owner.get("/api/v1/auth/me").get_json()["wallet_balance"] == "850.00"

        rated = farmer.post(f"/api/v1/bookings/{booking_id}/rate", json={"rating": 5, "review": "Great"})
        assert rated.status_code == 200
        again = farmer.post(f"/api/v1/bookings/{booking_id}/rate", json={"rating": 4})
        assert again.status_code == 409

    def test_overlap_returns_conflict(self, api_app, accounts):
        farmer = _login(api_app, accounts["farmer"])
        assert _create_booking(farmer, accounts["tractor_id"]).status_code == 201
        clash = _create_booking(farmer, accounts["tractor_id"], start="2030-03-01T07:00:00Z")
        assert clash.status_code == 409
        assert clash.get_json()["code"] == "conflict"

    def test_oversized_duration_is_a_validation_error(self, api_app, accounts):
        farmer = _login(api_app, accounts["farmer"])
        response = _create_booking(farmer, accounts["tractor_id"], duration=10**8)
        assert response.status_code == 400
        assert response.get_json()["code"] == "validation_error"

    def test_owners_cannot_create_bookings(self, api_app, accounts):
        owner = _login(api_app, accounts["owner"])
        assert _create_booking(owner, accounts["tractor_id"]).status_code == 403

    def test_insufficient_funds_reports_shortfall(self, api_app, accounts):
        farmer = _login(api_app, accounts["farmer"])
        booking_id = _create_booking(farmer, accounts["tractor_id"], duration=12).get_json()["booking"]["id"]
        response = farmer.post(f"/api/v1/bookings/{booking_id}/pay")
        assert response.status_code == 402
        assert response.get_json()["shortfall"] == "1000.00"

    def test_cancel_refunds_held_payment(self, api_app, accounts):
        farmer = _login(api_app, accounts["farmer"])
        booking_id = _create_booking(farmer, accounts["tractor_id"]).get_json()["booking"]["id"]
        farmer.post(f"/api/v1/bookings/{booking_id}/pay")

        response = farmer.put(f"/api/v1/bookings/{booking_id}/cancel", json={"reason": "owner unavailable"})
        body = response.get_json()
        assert body["refund_processed"] is True
        assert body["booking"]["status"] == "cancelled"
        assert body["booking"]["payment_status"] == "refunded"
        assert farmer.get("/api/v1/auth/me").get_json()["wallet_balance"] == "5000.00"

    def test_reads_are_limited_to_parties(self, api_app, accounts):
        farmer = _login(api_app, accounts["farmer"])
        owner = _login(api_app, accounts["owner"])
        booking_id = _create_booking(farmer, accounts["tractor_id"]).get_json()["booking"]["id"]

        plain = owner.get(f"/api/v1/bookings/{booking_id}").get_json()["booking"]
        assert "otp_start" not in plain
        assert owner.get(f"/api/v1/bookings/{booking_id}?include_otps=1").status_code == 403
        with_otps = farmer.get(f"/api/v1/bookings/{booking_id}?include_otps=true").get_json()["booking"]
        assert "otp_start" in with_otps

        admin = _login(api_app, accounts["admin"])
        assert admin.get(f"/api/v1/bookings/{booking_id}").status_code == 403
        assert owner.get("/api/v1/bookings?role=owner").get_json()["count"] == 1
        assert owner.get("/api/v1/bookings/9999").status_code == 404


class TestPayments:
    def test_top_up_and_verify(self, api_app, accounts):
        farmer = _login(api_app, accounts["farmer"])
        order = farmer.post("/api/v1/payments/add-money", json={"amount": 500}).get_json()
        assert order["order"]["test_mode"] is True
        assert "instructions" in order

        verified = farmer.post(
            "/api/v1/payments/verify", json={"order_id": order["order"]["order_id"], "payment_id": "pay_1"}
        )
        assert verified.status_code == 200
        assert verified.get_json()["wallet"] == "5500.00"

        replay = farmer.post("/api/v1/payments/verify", json={"order_id": order["order"]["order_id"]})
        assert replay.status_code == 409

        history = farmer.get("/api/v1/payments/history?type=wallet_credit").get_json()
        assert history["count"] == 1
        summary = farmer.get("/api/v1/payments/wallet/summary").get_json()
        assert summary["current_balance"] == "5500.00"
        assert summary["summary"]["total_credits"] == "500.00"

    def test_top_up_limits(self, api_app, accounts):
        farmer = _login(api_app, accounts["farmer"])
        assert farmer.post("/api/v1/payments/add-money", json={"amount": 50}).status_code == 400
        assert farmer.post("/api/v1/payments/add-money", json={"amount": 60000}).status_code == 400
        for amount in ("NaN", "Infinity"):
            response = farmer.post("/api/v1/payments/add-money", json={"amount": amount})
            assert response.status_code == 400
            assert response.get_json()["code"] == "validation_error"

    def test_manual_escrow_endpoints_are_admin_only(self, api_app, accounts):
        farmer = _login(api_app, accounts["farmer"])
        booking_id = _create_booking(farmer, accounts["tractor_id"]).get_json()["booking"]["id"]
        farmer.post(f"/api/v1/bookings/{booking_id}/pay")
        assert farmer.post(f"/api/v1/payments/refund/{booking_id}").status_code == 403

        admin = _login(api_app, accounts["admin"])
        assert admin.post(f"/api/v1/payments/release/{booking_id}").status_code == 409
        # Held funds on an active booking only come back through cancellation.
        assert admin.post(f"/api/v1/payments/refund/{booking_id}").status_code == 409

        # A cancellation whose automatic refund never landed.
        with api_app.app_context():
            db.session.get(Booking, booking_id).status = "cancelled"
            db.session.commit()
        refunded = admin.post(f"/api/v1/payments/refund/{booking_id}", json={"reason": "dispute"})
        assert refunded.status_code == 200
        assert refunded.get_json()["refund"]["type"] == "booking_refund"


def test_notifications_follow_the_booking(api_app, accounts):
    farmer = _login(api_app, accounts["farmer"])
    owner = _login(api_app, accounts["owner"])
    booking_id = _create_booking(farmer, accounts["tractor_id"]).get_json()["booking"]["id"]
    owner.put(f"/api/v1/bookings/{booking_id}/reject", json={"reason": "busy"})

    owner_feed = owner.get("/api/v1/notifications/me").get_json()
    assert owner_feed["unread_count"] == 1
    assert owner_feed["items"][0]["title"] == "New booking request"

    farmer_feed = farmer.get("/api/v1/notifications/me").get_json()
    assert farmer_feed["items"][0]["title"] == "Booking declined"
    farmer.post("/api/v1/notifications/me/read")
    assert farmer.get("/api/v1/notifications/me").get_json()["unread_count"] == 0
