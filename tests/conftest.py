"""
Shared pytest fixtures.

Each test gets a fresh application on in-memory SQLite with the services
wired to a recording notifier, so SMS side effects can be asserted on.
"""
import pytest

from farmshare import create_app
from farmshare.config import TestingConfig
from farmshare.extensions import db
from farmshare.services import get_booking_service, get_escrow_service
from tests.factories import make_tractor, make_user


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify_status_change(self, phone, booking_id, status):
        self.sent.append((phone, booking_id, status))

    def statuses_for(self, booking_id):
        return [status for _phone, sent_id, status in self.sent if sent_id == booking_id]


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def app(notifier):
    app = create_app(TestingConfig, notifier=notifier)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def bookings(app):
    return get_booking_service()


@pytest.fixture
def escrow(app):
    return get_escrow_service()


@pytest.fixture
def farmer(app):
    return make_user("farmer", balance="5000")


@pytest.fixture
def owner(app):
    return make_user("owner")


@pytest.fixture
def tractor(owner):
    # 500/hour, so a 2 hour booking totals 1000.
    return make_tractor(owner, price_per_hour="500")
