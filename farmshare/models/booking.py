from farmshare.extensions import db
from farmshare.models.base import PKType, TimestampMixin, isoformat


class Booking(TimestampMixin, db.Model):
    __tablename__ = "bookings"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    tractor_id = db.Column(PKType, db.ForeignKey("tractors.id", ondelete="CASCADE"), nullable=False, index=True)
    farmer_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    status = db.Column(db.String(24), nullable=False, default="pending", index=True)
    payment_status = db.Column(db.String(24), nullable=False, default="pending", index=True)

    start_time = db.Column(db.DateTime(timezone=True), nullable=False)
    end_time = db.Column(db.DateTime(timezone=True), nullable=False)
    duration_hours = db.Column(db.Integer, nullable=False)
    actual_start_time = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_end_time = db.Column(db.DateTime(timezone=True), nullable=True)

    work_type = db.Column(db.String(24), nullable=False, default="plowing")
    acres = db.Column(db.Numeric(8, 2), nullable=False, default=0)
    work_description = db.Column(db.String(300), nullable=True)
    farm_address = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    quoted_price_per_hour = db.Column(db.Numeric(10, 2), nullable=False)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    platform_fee = db.Column(db.Numeric(12, 2), nullable=False)
    owner_earnings = db.Column(db.Numeric(12, 2), nullable=False)

    # Kept for the whole lifecycle; only serialized on explicit opt-in.
    otp_start = db.Column(db.String(6), nullable=False)
    otp_end = db.Column(db.String(6), nullable=False)

    cancellation_reason = db.Column(db.String(500), nullable=True)
    cancelled_by_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    farmer_rating = db.Column(db.SmallInteger, nullable=True)
    farmer_review = db.Column(db.String(300), nullable=True)
    owner_rating = db.Column(db.SmallInteger, nullable=True)
    owner_review = db.Column(db.String(300), nullable=True)

    tractor = db.relationship("Tractor", back_populates="bookings")
    farmer = db.relationship("User", back_populates="bookings", foreign_keys=[farmer_id])
    owner = db.relationship("User", back_populates="owner_bookings", foreign_keys=[owner_id])
    payments = db.relationship("Payment", back_populates="booking", lazy="dynamic")

    __table_args__ = (
        db.Index("ix_bookings_farmer_status", "farmer_id", "status"),
        db.Index("ix_bookings_owner_status", "owner_id", "status"),
        db.Index("ix_bookings_tractor_start", "tractor_id", "start_time"),
        db.Index("ix_bookings_status_payment", "status", "payment_status"),
        db.CheckConstraint("duration_hours >= 1", name="ck_booking_duration_positive"),
        # Compared in whole cents: SQLite keeps NUMERIC columns as floats.
        db.CheckConstraint(
            "ROUND((platform_fee + owner_earnings - total_amount) * 100) = 0",
            name="ck_booking_split_reconciles",
        ),
        db.CheckConstraint(
            "farmer_rating IS NULL OR (farmer_rating >= 1 AND farmer_rating <= 5)",
            name="ck_booking_farmer_rating_range",
        ),
        db.CheckConstraint(
            "owner_rating IS NULL OR (owner_rating >= 1 AND owner_rating <= 5)",
            name="ck_booking_owner_rating_range",
        ),
    )

    def is_party(self, user_id):
        return user_id in {self.farmer_id, self.owner_id}

    def to_dict(self, include_otps=False):
        data = {
            "id": self.id,
            "tractor_id": self.tractor_id,
            "farmer_id": self.farmer_id,
            "owner_id": self.owner_id,
            "status": self.status,
            "payment_status": self.payment_status,
            "start_time": isoformat(self.start_time),
            "end_time": isoformat(self.end_time),
            "duration_hours": self.duration_hours,
            "actual_start_time": isoformat(self.actual_start_time),
            "actual_end_time": isoformat(self.actual_end_time),
            "work_type": self.work_type,
            "acres": str(self.acres),
            "work_description": self.work_description,
            "farm_address": self.farm_address,
            "notes": self.notes,
            "quoted_price_per_hour": str(self.quoted_price_per_hour),
            "total_amount": str(self.total_amount),
            "platform_fee": str(self.platform_fee),
            "owner_earnings": str(self.owner_earnings),
            "cancellation_reason": self.cancellation_reason,
            "cancelled_by_id": self.cancelled_by_id,
            "cancelled_at": isoformat(self.cancelled_at),
            "ratings": {
                "farmer_rating": self.farmer_rating,
                "farmer_review": self.farmer_review,
                "owner_rating": self.owner_rating,
                "owner_review": self.owner_review,
            },
            "created_at": isoformat(self.created_at),
        }
        if include_otps:
            data["otp_start"] = self.otp_start
            data["otp_end"] = self.otp_end
        return data
