"""
Booking lifecycle.

    pending -> accepted -> in-progress -> completed
    pending -> rejected
    pending | accepted | in-progress -> cancelled

Every transition validates the actor and the current status, re-reads the
booking under its lock, checks the resulting (status, payment_status) pair
and commits in one step. Escrow side effects (release on completion, refund
on cancellation or rejection) and notifications run after that commit; their
failures are logged and reported on the ``TransitionResult`` instead of
undoing the transition.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional

from flask import current_app

from farmshare.concurrency import atomic
from farmshare.errors import (
    AppError,
    Conflict,
    InvalidOTP,
    InvalidState,
    NotFound,
    Unauthorized,
    ValidationError,
)
from farmshare.extensions import db, locks
from farmshare.models import Booking, User
from farmshare.models.base import as_utc, utcnow
from farmshare.services.lifecycle import (
    ACTIVE_STATUSES,
    BOOKING_STATUSES,
    CANCELLABLE_STATUSES,
    REFUNDABLE_PAYMENT_STATUSES,
    WORK_TYPES,
    compute_split,
    ensure_status_pair,
    ensure_transition,
    generate_otp,
    get_booking,
    otp_matches,
    to_money,
)
from farmshare.services.notification_service import NotificationService
from farmshare.services.tractor_service import TractorService


@dataclass
class TransitionResult:
    """Committed transition plus the outcome of its escrow side effect."""

    booking: Booking
    escrow_attempted: bool = False
    escrow_succeeded: bool = False
    escrow_error: Optional[str] = None

    @property
    def money_moved(self):
        return self.escrow_succeeded


class BookingService:
    def __init__(self, policy, escrow, notifier):
        self.policy = policy
        self.escrow = escrow
        self.notifier = notifier

    @staticmethod
    def has_conflict(tractor_id, start_time, end_time):
        return (
            Booking.query.filter(Booking.tractor_id == tractor_id)
            .filter(Booking.status.in_(ACTIVE_STATUSES))
            .filter(Booking.start_time <= end_time, Booking.end_time >= start_time)
            .first()
            is not None
        )

    @staticmethod
    def _parse_duration(duration_hours):
        if isinstance(duration_hours, bool):
            raise ValidationError("Duration must be a whole number of hours (at least 1).")
        try:
            hours = int(duration_hours)
            if hours < 1 or hours != Decimal(str(duration_hours)):
                raise ValueError
        except (TypeError, ValueError, OverflowError, InvalidOperation) as exc:
            raise ValidationError("Duration must be a whole number of hours (at least 1).") from exc
        return hours

    @staticmethod
    def _parse_start(start_time):
        if start_time is None:
            return utcnow()
        if isinstance(start_time, str):
            try:
                start_time = datetime.fromisoformat(start_time.strip().replace("Z", "+00:00"))
            except ValueError as exc:
                raise ValidationError("Start time must be an ISO-8601 timestamp.") from exc
        if not isinstance(start_time, datetime):
            raise ValidationError("Start time must be an ISO-8601 timestamp.")
        try:
            return as_utc(start_time)
        except OverflowError as exc:
            raise ValidationError("Booking window is out of range.") from exc

    @staticmethod
    def _clean_work_details(details):
        details = details or {}
        work_type = (details.get("work_type") or "plowing").strip().lower()
        if work_type not in WORK_TYPES:
            raise ValidationError("Invalid work type.")
        try:
            acres = Decimal(str(details.get("acres") or 0))
            if not acres.is_finite() or acres < 0:
                raise ValueError
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError("Acres must be a non-negative number.") from exc

        description = (details.get("work_description") or "").strip() or None
        notes = (details.get("notes") or "").strip() or None
        if description and len(description) > 300:
            raise ValidationError("Work description cannot exceed 300 characters.")
        if notes and len(notes) > 500:
            raise ValidationError("Notes cannot exceed 500 characters.")
        return {
            "work_type": work_type,
            "acres": acres,
            "work_description": description,
            "farm_address": (details.get("farm_address") or "").strip()[:255] or None,
            "notes": notes,
        }

    def create(self, renter_id, tractor_id, start_time, duration_hours, work_details=None):
        hours = self._parse_duration(duration_hours)
        if hours > self.policy.max_booking_hours:
            raise ValidationError(f"Duration cannot exceed {self.policy.max_booking_hours} hours.")
        start_dt = self._parse_start(start_time)
        try:
            end_dt = start_dt + timedelta(hours=hours)
        except OverflowError as exc:
            raise ValidationError("Booking window is out of range.") from exc
        details = self._clean_work_details(work_details)
        renter = db.session.get(User, renter_id)
        if not renter:
            raise NotFound("User not found.")
        if not renter.is_farmer:
            raise Unauthorized("Only farmers can book tractors.")

        # Conflict check and insert share the tractor lock and one commit.
        with locks.tractor(tractor_id), atomic(db.session):
            tractor = TractorService.lookup(tractor_id, lock=True)
            if not tractor.is_active:
                raise InvalidState("This tractor is not available.")
            if tractor.owner_id == renter_id:
                raise Unauthorized("Owners cannot book their own tractor.")
            if self.has_conflict(tractor.id, start_dt, end_dt):
                raise Conflict("Tractor is already booked for this time period.")

            total = to_money(tractor.hourly_rate * hours)
            platform_fee, owner_earnings = compute_split(total, self.policy.fee_rate)
            ensure_status_pair("pending", "pending")
            booking = Booking(
                tractor_id=tractor.id,
                farmer_id=renter_id,
                owner_id=tractor.owner_id,
                start_time=start_dt,
                end_time=end_dt,
                duration_hours=hours,
                quoted_price_per_hour=tractor.hourly_rate,
                total_amount=total,
                platform_fee=platform_fee,
                owner_earnings=owner_earnings,
                status="pending",
                payment_status="pending",
                otp_start=generate_otp(self.policy.otp_length),
                otp_end=generate_otp(self.policy.otp_length),
                **details,
            )
            db.session.add(booking)
            db.session.flush()

        current_app.logger.info("Booking %s created for tractor %s (%s)", booking.id, tractor_id, total)
        self._notify(booking.owner, booking.id, "pending")
        return booking

    def _transition(self, booking, new_status):
        ensure_transition(booking.status, new_status)
        ensure_status_pair(new_status, booking.payment_status)
        booking.status = new_status

    def _notify(self, user, booking_id, status):
        NotificationService.notify_status_change(user, booking_id, status, self.notifier)

    def _run_escrow(self, booking, action, *args):
        result = TransitionResult(booking=booking, escrow_attempted=True)
        try:
            action(booking.id, *args)
            result.escrow_succeeded = True
        except AppError as exc:
            result.escrow_error = exc.message
            current_app.logger.warning("Escrow %s failed for booking %s: %s", action.__name__, booking.id, exc.message)
        except Exception as exc:
            result.escrow_error = str(exc) or exc.__class__.__name__
            current_app.logger.exception("Escrow %s failed for booking %s", action.__name__, booking.id)
        return result

    def accept(self, booking_id, owner_id):
        with locks.booking(booking_id), atomic(db.session):
            booking = get_booking(booking_id, lock=True)
            if booking.owner_id != owner_id:
                raise Unauthorized("Only the owner can accept this booking.")
            if booking.status != "pending":
                raise InvalidState(f"Cannot accept booking with status: {booking.status}")
            self._transition(booking, "accepted")

        self._notify(booking.farmer, booking.id, "accepted")
        return booking

    def reject(self, booking_id, owner_id, reason=None):
        with locks.booking(booking_id), atomic(db.session):
            booking = get_booking(booking_id, lock=True)
            if booking.owner_id != owner_id:
                raise Unauthorized("Only the owner can reject this booking.")
            if booking.status != "pending":
                raise InvalidState(f"Cannot reject booking with status: {booking.status}")
            self._transition(booking, "rejected")
            self._record_cancellation(booking, owner_id, reason)

        result = TransitionResult(booking=booking)
        if booking.payment_status in REFUNDABLE_PAYMENT_STATUSES:
            result = self._run_escrow(booking, self.escrow.refund, reason or "Booking rejected")
        self._notify(booking.farmer, booking.id, "rejected")
        return result

    def start(self, booking_id, otp, actor_id=None):
        with locks.booking(booking_id), atomic(db.session):
            booking = get_booking(booking_id, lock=True)
            if actor_id is not None and not booking.is_party(actor_id):
                raise Unauthorized("Not authorized to start this booking.")
            if booking.status != "accepted":
                raise InvalidState("Booking must be accepted before starting.")
            if booking.payment_status != "held":
                raise InvalidState("Booking must be paid before work starts.")
            if not otp_matches(booking.otp_start, otp):
                raise InvalidOTP("Invalid OTP.")
            self._transition(booking, "in-progress")
            booking.actual_start_time = utcnow()

        self._notify(booking.farmer, booking.id, "in-progress")
        return booking

    def complete(self, booking_id, otp, actor_id=None):
        with locks.booking(booking_id), atomic(db.session):
            booking = get_booking(booking_id, lock=True)
            if actor_id is not None and not booking.is_party(actor_id):
                raise Unauthorized("Not authorized to complete this booking.")
            if booking.status != "in-progress":
                raise InvalidState("Booking must be in progress to complete.")
            if not otp_matches(booking.otp_end, otp):
                raise InvalidOTP("Invalid OTP.")
            self._transition(booking, "completed")
            booking.actual_end_time = utcnow()
            booking.farmer.total_bookings_as_farmer = (booking.farmer.total_bookings_as_farmer or 0) + 1
            booking.owner.total_bookings_as_owner = (booking.owner.total_bookings_as_owner or 0) + 1

        result = TransitionResult(booking=booking)
        if booking.payment_status == "held":
            result = self._run_escrow(booking, self.escrow.release)
        self._notify(booking.farmer, booking.id, "completed")
        return result

    def cancel(self, booking_id, actor_id, reason=None):
        with locks.booking(booking_id), atomic(db.session):
            booking = get_booking(booking_id, lock=True)
            if not booking.is_party(actor_id):
                raise Unauthorized("Not authorized to cancel this booking.")
            if booking.status not in CANCELLABLE_STATUSES:
                raise InvalidState(f"Cannot cancel booking with status: {booking.status}")
            self._transition(booking, "cancelled")
            self._record_cancellation(booking, actor_id, reason)

        result = TransitionResult(booking=booking)
        if booking.payment_status in REFUNDABLE_PAYMENT_STATUSES:
            result = self._run_escrow(booking, self.escrow.refund, reason or "Booking cancelled")
        counterparty = booking.owner if actor_id == booking.farmer_id else booking.farmer
        self._notify(counterparty, booking.id, "cancelled")
        return result

    @staticmethod
    def _record_cancellation(booking, actor_id, reason):
        booking.cancellation_reason = (reason or "").strip()[:500] or None
        booking.cancelled_by_id = actor_id
        booking.cancelled_at = utcnow()

    def read_booking(self, booking_id, actor_id, include_otps=False):
        booking = get_booking(booking_id)
        if not booking.is_party(actor_id):
            raise Unauthorized("Not authorized to view this booking.")
        if include_otps:
            if not self.policy.expose_otps:
                raise Unauthorized("Booking OTPs are not available in this environment.")
            if actor_id != booking.farmer_id:
                raise Unauthorized("Only the renter can view booking OTPs.")
        return booking.to_dict(include_otps=include_otps)

    @staticmethod
    def list_bookings(user_id, role=None, status=None):
        query = Booking.query
        if role == "farmer":
            query = query.filter(Booking.farmer_id == user_id)
        elif role == "owner":
            query = query.filter(Booking.owner_id == user_id)
        else:
            query = query.filter((Booking.farmer_id == user_id) | (Booking.owner_id == user_id))
        if status:
            if status not in BOOKING_STATUSES:
                raise ValidationError("Invalid booking status.")
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()
