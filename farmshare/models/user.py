from flask_login import UserMixin

from farmshare.extensions import db
from farmshare.models.base import PKType, TimestampMixin


class User(UserMixin, TimestampMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    full_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    phone = db.Column(db.String(10), nullable=False, index=True, default="")
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(24), nullable=False, index=True)
    is_active_user = db.Column(db.Boolean, nullable=False, default=True)

    rating = db.Column(db.Numeric(3, 2), nullable=False, default=0)
    total_ratings = db.Column(db.Integer, nullable=False, default=0)
    total_bookings_as_farmer = db.Column(db.Integer, nullable=False, default=0)
    total_bookings_as_owner = db.Column(db.Integer, nullable=False, default=0)

    wallet = db.relationship("Wallet", back_populates="user", uselist=False, cascade="all, delete-orphan")
    tractors = db.relationship("Tractor", back_populates="owner", lazy="dynamic")
    bookings = db.relationship("Booking", back_populates="farmer", lazy="dynamic", foreign_keys="Booking.farmer_id")
    owner_bookings = db.relationship("Booking", back_populates="owner", lazy="dynamic", foreign_keys="Booking.owner_id")
    notifications = db.relationship("Notification", back_populates="user", lazy="dynamic")
    payments = db.relationship("Payment", back_populates="user", lazy="dynamic")

    @property
    def is_farmer(self):
        return self.role in {"farmer", "both"}

    @property
    def is_owner(self):
        return self.role in {"owner", "both"}

    def to_dict(self):
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "rating": float(self.rating or 0),
            "total_ratings": self.total_ratings,
        }
