import hmac
import secrets
from decimal import ROUND_HALF_UP, Decimal

from farmshare.errors import InvalidState, NotFound
from farmshare.extensions import db
from farmshare.models import Booking

CENT = Decimal("0.01")

BOOKING_STATUSES = ("pending", "accepted", "rejected", "in-progress", "completed", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "held", "released", "refunded")
ACTIVE_STATUSES = ("pending", "accepted", "in-progress")
TERMINAL_STATUSES = ("completed", "rejected", "cancelled")
CANCELLABLE_STATUSES = ACTIVE_STATUSES
REFUNDABLE_PAYMENT_STATUSES = ("held", "paid")

WORK_TYPES = ("plowing", "sowing", "harvesting", "spraying", "transportation", "other")

BOOKING_TRANSITIONS = {
    "pending": {"accepted", "rejected", "cancelled"},
    "accepted": {"in-progress", "cancelled"},
    "in-progress": {"completed", "cancelled"},
    "completed": set(),
    "rejected": set(),
    "cancelled": set(),
}

# Pending/rejected admit "held": a renter may fund a request before the owner
# answers it, and a rejected request keeps "held" until its refund lands.
VALID_STATUS_PAIRS = {
    "pending": {"pending", "held"},
    "accepted": {"pending", "held"},
    "in-progress": {"held"},
    "completed": {"held", "released"},
    "rejected": {"pending", "held", "refunded"},
    "cancelled": {"pending", "held", "paid", "refunded"},
}


def to_money(value):
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_split(total_amount, fee_rate):
    """Split ``total_amount`` into ``(platform_fee, owner_earnings)``.

    Both shares are rounded to the cent independently; whatever the rounding
    leaves over is folded into the smaller share so the two always add back
    up to the total exactly.
    """
    total = to_money(total_amount)
    rate = Decimal(str(fee_rate))
    fee = (total * rate).quantize(CENT, rounding=ROUND_HALF_UP)
    earnings = (total * (Decimal("1") - rate)).quantize(CENT, rounding=ROUND_HALF_UP)
    remainder = total - fee - earnings
    if fee <= earnings:
        fee += remainder
    else:
        earnings += remainder
    return fee, earnings


def ensure_status_pair(status, payment_status):
    if payment_status not in VALID_STATUS_PAIRS.get(status, set()):
        raise InvalidState(f"Booking cannot be {status} with payment {payment_status}.")


def ensure_transition(current, new_status):
    if new_status not in BOOKING_TRANSITIONS.get(current, set()):
        raise InvalidState(f"Invalid status transition from {current} to {new_status}.")


def generate_otp(length):
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(9 * low))


def otp_matches(expected, supplied):
    if not expected or supplied is None:
        return False
    return hmac.compare_digest(str(expected).encode(), str(supplied).strip().encode())


def get_booking(booking_id, lock=False):
    """Load a booking, optionally re-reading it under ``SELECT ... FOR UPDATE``."""
    if lock:
        booking = db.session.get(Booking, booking_id, with_for_update=True, populate_existing=True)
    else:
        booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFound("Booking not found.")
    return booking
