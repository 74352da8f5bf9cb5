"""
Escrow coordinator.

Every money movement here is one unit of work: the wallet mutation, the
payment record and the booking's ``payment_status`` change commit together
or not at all. Locks are taken in the order booking -> wallet.
"""
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from flask import current_app

from farmshare.concurrency import atomic
from farmshare.errors import (
    AlreadyProcessed,
    InvalidState,
    NotFound,
    PaymentVerificationFailed,
    Unauthorized,
    ValidationError,
)
from farmshare.extensions import db, locks
from farmshare.models import Booking, Payment, User
from farmshare.services.lifecycle import (
    REFUNDABLE_PAYMENT_STATUSES,
    ensure_status_pair,
    get_booking,
    to_money,
)
from farmshare.services.payment_service import PaymentService, short_ref
from farmshare.services.wallet_service import WalletService

FUNDABLE_BOOKING_STATUSES = ("pending", "accepted")


@dataclass
class EscrowResult:
    booking: Booking
    payment: Payment
    balance: Decimal


@dataclass
class WalletOrder:
    order_ref: str
    amount: Decimal
    payment: Payment
    currency: str = "INR"
    key_id: Optional[str] = None
    test_mode: bool = False

    def to_dict(self):
        return {
            "order_id": self.order_ref,
            "amount": str(self.amount),
            "currency": self.currency,
            "key_id": self.key_id,
            "test_mode": self.test_mode,
        }


class EscrowService:
    def __init__(self, policy, gateway):
        self.policy = policy
        self.gateway = gateway

    def fund(self, booking_id, renter_id):
        """Move ``total_amount`` from the renter's wallet into escrow."""
        with locks.booking(booking_id), locks.wallet(renter_id), atomic(db.session):
            booking = get_booking(booking_id, lock=True)
            if booking.farmer_id != renter_id:
                raise Unauthorized("Not authorized to pay for this booking.")
            if booking.payment_status in {"held", "paid", "released"}:
                raise AlreadyProcessed("Booking already paid.")
            if booking.payment_status != "pending":
                raise InvalidState(f"Cannot pay for booking with payment status: {booking.payment_status}.")
            if booking.status not in FUNDABLE_BOOKING_STATUSES:
                raise InvalidState(f"Cannot pay for booking with status: {booking.status}.")
            ensure_status_pair(booking.status, "held")

            amount = to_money(booking.total_amount)
            _wallet, previous, new = WalletService.debit(renter_id, amount)
            payment = PaymentService.record(
                user_id=renter_id,
                payment_type="booking_payment",
                amount=amount,
                booking_id=booking.id,
                description=f"Payment for booking #{short_ref(booking.id)}",
                previous_balance=previous,
                new_balance=new,
            )
            booking.payment_status = "held"

        current_app.logger.info("Booking payment: %s held in escrow for booking %s", amount, booking_id)
        return EscrowResult(booking=booking, payment=payment, balance=new)

    def release(self, booking_id):
        """Pay the owner's share out of escrow; the platform fee stays behind."""
        with locks.booking(booking_id):
            owner_id = get_booking(booking_id).owner_id
            with locks.wallet(owner_id), atomic(db.session):
                booking = get_booking(booking_id, lock=True)
                if booking.payment_status == "released":
                    raise AlreadyProcessed("Payment already released.")
                if booking.status != "completed":
                    raise InvalidState("Booking must be completed before releasing payment.")
                if booking.payment_status != "held":
                    raise InvalidState("Payment not held in escrow.")
                ensure_status_pair(booking.status, "released")

                amount = to_money(booking.owner_earnings)
                _wallet, previous, new = WalletService.credit(owner_id, amount)
                payout = PaymentService.record(
                    user_id=owner_id,
                    payment_type="owner_payout",
                    amount=amount,
                    booking_id=booking.id,
                    description=f"Earnings from booking #{short_ref(booking.id)}",
                    previous_balance=previous,
                    new_balance=new,
                )
                booking.payment_status = "released"

        current_app.logger.info(
            "Payment released: %s to owner %s for booking %s (platform fee %s)",
            amount,
            owner_id,
            booking_id,
            booking.platform_fee,
        )
        return EscrowResult(booking=booking, payment=payout, balance=new)

    def refund(self, booking_id, reason=None):
        """Return the full ``total_amount`` to the renter."""
        reason = (reason or "").strip() or "Booking cancelled"
        with locks.booking(booking_id):
            renter_id = get_booking(booking_id).farmer_id
            with locks.wallet(renter_id), atomic(db.session):
                booking = get_booking(booking_id, lock=True)
                if booking.payment_status == "refunded":
                    raise AlreadyProcessed("Booking already refunded.")
                if booking.payment_status not in REFUNDABLE_PAYMENT_STATUSES:
                    raise InvalidState("Nothing to refund.")
                ensure_status_pair(booking.status, "refunded")

                amount = to_money(booking.total_amount)
                _wallet, previous, new = WalletService.credit(renter_id, amount)
                refund = PaymentService.record(
                    user_id=renter_id,
                    payment_type="booking_refund",
                    amount=amount,
                    booking_id=booking.id,
                    description=f"Refund for booking #{short_ref(booking.id)} - {reason}"[:255],
                    previous_balance=previous,
                    new_balance=new,
                )
                booking.payment_status = "refunded"

        current_app.logger.info("Refund processed: %s to renter %s for booking %s", amount, renter_id, booking_id)
        return EscrowResult(booking=booking, payment=refund, balance=new)

    def credit_wallet(self, user_id, amount):
        """Open a gateway order for a wallet top-up and log it as pending."""
        try:
            value = to_money(amount)
        except ArithmeticError as exc:
            raise ValidationError("Amount must be a number.") from exc
        if not value.is_finite():
            raise ValidationError("Amount must be a number.")
        if value < self.policy.wallet_min_topup:
            raise ValidationError(f"Minimum amount is ₹{self.policy.wallet_min_topup}.")
        if value > self.policy.wallet_max_topup:
            raise ValidationError(f"Maximum amount is ₹{self.policy.wallet_max_topup} per transaction.")
        if not db.session.get(User, user_id):
            raise NotFound("User not found.")

        order_ref = self.gateway.create_order(value, receipt=f"wallet_{user_id}_{int(time.time())}")
        prefix = "[TEST MODE] " if self.gateway.test_mode else ""
        with atomic(db.session):
            payment = PaymentService.record(
                user_id=user_id,
                payment_type="wallet_credit",
                amount=value,
                description=f"{prefix}Wallet credit of ₹{value}",
                status="pending",
                gateway_order_id=order_ref,
            )

        current_app.logger.info("Wallet order %s created for user %s: %s", order_ref, user_id, value)
        return WalletOrder(
            order_ref=order_ref,
            amount=value,
            payment=payment,
            key_id=getattr(self.gateway, "key_id", "test_key_id"),
            test_mode=self.gateway.test_mode,
        )

    def verify_and_credit_wallet(self, order_ref, proof=None, user_id=None):
        """Credit the wallet once the gateway confirms the order was paid."""
        if not order_ref:
            raise ValidationError("Order ID is required.")
        payment = Payment.query.filter_by(gateway_order_id=order_ref, type="wallet_credit").first()
        if not payment:
            raise NotFound("Payment record not found.")
        if user_id is not None and payment.user_id != user_id:
            raise Unauthorized("Not authorized to verify this payment.")
        if payment.status == "completed":
            raise AlreadyProcessed("Payment already processed.")

        proof = proof or {}
        verified = self.gateway.verify(order_ref, proof)
        owner_id = payment.user_id

        with locks.wallet(owner_id), atomic(db.session):
            payment = db.session.get(Payment, payment.id, with_for_update=True, populate_existing=True)
            if payment.status == "completed":
                raise AlreadyProcessed("Payment already processed.")
            if payment.status != "pending":
                raise InvalidState(f"Cannot verify payment with status: {payment.status}.")
            if verified:
                _wallet, previous, new = WalletService.credit(owner_id, payment.amount)
                payment.previous_balance = previous
                payment.new_balance = new
                payment.gateway_payment_id = proof.get("payment_id")
                payment.status = "completed"
            else:
                payment.status = "failed"
                payment.error_message = "Invalid payment signature"
                payment.failure_reason = "verification_failed"

        if not verified:
            current_app.logger.warning("Wallet order %s failed verification", order_ref)
            raise PaymentVerificationFailed("Payment verification failed.")

        current_app.logger.info("Wallet credited: %s to user %s", payment.amount, owner_id)
        return payment
