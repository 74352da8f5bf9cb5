from typing import Protocol

from flask import current_app

from farmshare.extensions import db
from farmshare.models import Notification

STATUS_MESSAGES = {
    "pending": "You received a new booking request.",
    "accepted": "Your booking has been accepted by the owner!",
    "rejected": "Your booking request was declined. Please try another tractor.",
    "in-progress": "Your booking is now in progress. Safe farming!",
    "completed": "Your booking is completed. Please rate your experience.",
    "cancelled": "Your booking has been cancelled.",
}

STATUS_TITLES = {
    "pending": "New booking request",
    "accepted": "Booking accepted",
    "rejected": "Booking declined",
    "in-progress": "Work started",
    "completed": "Work completed",
    "cancelled": "Booking cancelled",
}


def status_message(booking_id, status):
    return f"FarmShare Update: {STATUS_MESSAGES.get(status, 'Booking status updated')} (ID: {booking_id})"


def format_phone(phone):
    phone = (phone or "").strip()
    return phone if phone.startswith("+") else f"+91{phone}"


class Notifier(Protocol):
    def notify_status_change(self, phone, booking_id, status):
        ...


class LogNotifier:
    """Development SMS sender: the message goes to the application log."""

    def notify_status_change(self, phone, booking_id, status):
        message = status_message(booking_id, status)
        current_app.logger.info("SMS to %s: %s", format_phone(phone), message)
        return message


class NotificationService:
    @staticmethod
    def push(user_id, title, message, booking_id=None):
        notification = Notification(user_id=user_id, booking_id=booking_id, title=title, message=message)
        db.session.add(notification)
        db.session.flush()
        return notification

    @staticmethod
    def notify_status_change(user, booking_id, status, notifier):
        """Best effort: runs after the transition committed and never raises."""
        try:
            NotificationService.push(
                user.id,
                STATUS_TITLES.get(status, "Booking update"),
                status_message(booking_id, status),
                booking_id=booking_id,
            )
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            current_app.logger.warning("In-app notification for booking %s failed: %s", booking_id, exc)
        try:
            notifier.notify_status_change(user.phone, booking_id, status)
        except Exception as exc:
            current_app.logger.warning("SMS notification for booking %s failed: %s", booking_id, exc)

    @staticmethod
    def unread_count(user_id):
        return Notification.query.filter_by(user_id=user_id, is_read=False).count()

    @staticmethod
    def latest_for_user(user_id, limit=10):
        return (
            Notification.query.filter_by(user_id=user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def mark_all_read(user_id):
        Notification.query.filter_by(user_id=user_id, is_read=False).update({"is_read": True})
        db.session.commit()
