from farmshare.extensions import db
from farmshare.models.base import PKType, TimestampMixin, isoformat


class Notification(TimestampMixin, db.Model):
    __tablename__ = "notifications"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True)
    title = db.Column(db.String(180), nullable=False)
    message = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False, index=True)

    user = db.relationship("User", back_populates="notifications")

    def to_dict(self):
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "title": self.title,
            "message": self.message,
            "is_read": self.is_read,
            "created_at": isoformat(self.created_at),
        }
