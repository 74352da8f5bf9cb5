from farmshare.extensions import db
from farmshare.models.base import PKType, TimestampMixin


class Tractor(TimestampMixin, db.Model):
    __tablename__ = "tractors"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    owner_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = db.Column(db.String(140), nullable=False)
    price_per_hour = db.Column(db.Numeric(10, 2), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    rating = db.Column(db.Numeric(3, 2), nullable=False, default=0)
    total_ratings = db.Column(db.Integer, nullable=False, default=0)
    total_bookings = db.Column(db.Integer, nullable=False, default=0)

    owner = db.relationship("User", back_populates="tractors")
    bookings = db.relationship("Booking", back_populates="tractor", lazy="dynamic")

    __table_args__ = (
        db.Index("ix_tractors_owner_active", "owner_id", "is_active"),
        db.CheckConstraint("price_per_hour > 0", name="ck_tractor_price_positive"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "price_per_hour": str(self.price_per_hour),
            "is_active": self.is_active,
            "rating": float(self.rating or 0),
            "total_ratings": self.total_ratings,
            "total_bookings": self.total_bookings,
        }
