from decimal import Decimal

from sqlalchemy import func

from farmshare.errors import ValidationError
from farmshare.extensions import db
from farmshare.models import Payment
from farmshare.services.lifecycle import to_money
from farmshare.services.wallet_service import WalletService

PAYMENT_TYPES = ("wallet_credit", "booking_payment", "booking_refund", "owner_payout")
PAYMENT_RECORD_STATUSES = ("pending", "processing", "completed", "failed", "refunded")
MAX_HISTORY_LIMIT = 200


def short_ref(booking_id):
    return str(booking_id).zfill(6)[-6:]


class PaymentService:
    @staticmethod
    def record(
        user_id,
        payment_type,
        amount,
        description,
        booking_id=None,
        status="completed",
        previous_balance=None,
        new_balance=None,
        gateway_order_id=None,
    ):
        if payment_type not in PAYMENT_TYPES:
            raise ValidationError(f"Unknown payment type: {payment_type}.")
        if status not in PAYMENT_RECORD_STATUSES:
            raise ValidationError(f"Unknown payment status: {status}.")
        payment = Payment(
            user_id=user_id,
            booking_id=booking_id,
            type=payment_type,
            amount=to_money(amount),
            status=status,
            previous_balance=previous_balance,
            new_balance=new_balance,
            description=description,
            gateway_order_id=gateway_order_id,
        )
        db.session.add(payment)
        db.session.flush()
        return payment

    @staticmethod
    def for_booking(booking_id):
        return Payment.query.filter_by(booking_id=booking_id).order_by(Payment.id.asc()).all()

    @staticmethod
    def history(user_id, payment_type=None, status=None, limit=50):
        if payment_type and payment_type not in PAYMENT_TYPES:
            raise ValidationError(f"Unknown payment type: {payment_type}.")
        if status and status not in PAYMENT_RECORD_STATUSES:
            raise ValidationError(f"Unknown payment status: {status}.")
        try:
            limit = int(limit or 50)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Limit must be an integer.") from exc
        limit = max(1, min(limit, MAX_HISTORY_LIMIT))

        query = Payment.query.filter_by(user_id=user_id)
        if payment_type:
            query = query.filter_by(type=payment_type)
        if status:
            query = query.filter_by(status=status)
        return query.order_by(Payment.created_at.desc(), Payment.id.desc()).limit(limit).all()

    @staticmethod
    def wallet_summary(user_id):
        totals = dict.fromkeys(PAYMENT_TYPES, Decimal("0.00"))
        rows = (
            db.session.query(Payment.type, func.sum(Payment.amount))
            .filter(Payment.user_id == user_id, Payment.status == "completed")
            .group_by(Payment.type)
            .all()
        )
        for payment_type, amount in rows:
            totals[payment_type] = to_money(amount or 0)
        return {
            "current_balance": WalletService.get_balance(user_id),
            "total_credits": totals["wallet_credit"],
            "total_debits": totals["booking_payment"],
            "total_refunds": totals["booking_refund"],
            "total_earnings": totals["owner_payout"],
            "recent_transactions": PaymentService.history(user_id, limit=10),
        }
