from datetime import datetime, timezone

from farmshare.extensions import db
from sqlalchemy import BigInteger, Integer


# Use BIGINT in PostgreSQL, but INTEGER in SQLite so autoincrement works.
PKType = BigInteger().with_variant(Integer, "sqlite")


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """SQLite hands back naive datetimes; everything stored here is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value):
    value = as_utc(value)
    return value.isoformat() if value else None


class TimestampMixin:
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
