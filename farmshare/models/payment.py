from farmshare.extensions import db
from farmshare.models.base import PKType, TimestampMixin, isoformat


class Payment(TimestampMixin, db.Model):
    """Append-only audit entry for one balance-affecting event."""

    __tablename__ = "payments"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True)
    type = db.Column(db.String(24), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.String(24), nullable=False, default="pending", index=True)
    previous_balance = db.Column(db.Numeric(12, 2), nullable=True)
    new_balance = db.Column(db.Numeric(12, 2), nullable=True)
    description = db.Column(db.String(255), nullable=False)

    gateway_order_id = db.Column(db.String(64), nullable=True, unique=True, index=True)
    gateway_payment_id = db.Column(db.String(64), nullable=True, index=True)
    error_message = db.Column(db.String(255), nullable=True)
    failure_reason = db.Column(db.String(255), nullable=True)

    user = db.relationship("User", back_populates="payments")
    booking = db.relationship("Booking", back_populates="payments")

    __table_args__ = (
        db.Index("ix_payments_user_created", "user_id", "created_at"),
        db.CheckConstraint("amount >= 0", name="ck_payment_amount_non_negative"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "booking_id": self.booking_id,
            "type": self.type,
            "amount": str(self.amount),
            "status": self.status,
            "previous_balance": None if self.previous_balance is None else str(self.previous_balance),
            "new_balance": None if self.new_balance is None else str(self.new_balance),
            "description": self.description,
            "gateway_order_id": self.gateway_order_id,
            "error_message": self.error_message,
            "created_at": isoformat(self.created_at),
        }
