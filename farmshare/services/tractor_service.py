from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from farmshare.errors import AppError, NotFound, Unauthorized, ValidationError
from farmshare.extensions import db
from farmshare.models import Tractor, User


@dataclass(frozen=True)
class TractorInfo:
    id: int
    owner_id: int
    hourly_rate: Decimal
    is_active: bool


TRUE_FLAGS = {"1", "true", "yes", "on"}
FALSE_FLAGS = {"0", "false", "no", "off"}


def parse_flag(value, default=True):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_FLAGS:
            return True
        if text in FALSE_FLAGS:
            return False
    raise ValidationError("is_active must be true or false.")


class TractorService:
    """Listing seam: the booking engine only ever asks for ``lookup``."""

    @staticmethod
    def lookup(tractor_id, lock=False):
        if lock:
            tractor = db.session.get(Tractor, tractor_id, with_for_update=True, populate_existing=True)
        else:
            tractor = db.session.get(Tractor, tractor_id)
        if not tractor:
            raise NotFound("Tractor not found.")
        return TractorInfo(
            id=tractor.id,
            owner_id=tractor.owner_id,
            hourly_rate=Decimal(str(tractor.price_per_hour)),
            is_active=bool(tractor.is_active),
        )

    @staticmethod
    def create_tractor(owner_id, payload):
        owner = db.session.get(User, owner_id)
        if not owner:
            raise NotFound("User not found.")
        if not owner.is_owner:
            raise Unauthorized("Only owners can list tractors.")

        title = (payload.get("title") or "").strip()
        price_per_hour = payload.get("price_per_hour")
        if not title or price_per_hour is None:
            raise ValidationError("Tractor title and price per hour are required.")
        try:
            price_per_hour = Decimal(str(price_per_hour))
            if not price_per_hour.is_finite() or price_per_hour <= 0:
                raise ValueError
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError("Price per hour must be a positive number.") from exc

        tractor = Tractor(
            owner_id=owner_id,
            title=title[:140],
            price_per_hour=price_per_hour,
            is_active=parse_flag(payload.get("is_active"), default=True),
        )
        db.session.add(tractor)
        db.session.commit()
        return tractor

    @staticmethod
    def set_active(tractor_id, owner_id, is_active):
        is_active = parse_flag(is_active, default=True)
        tractor = Tractor.query.filter_by(id=tractor_id, owner_id=owner_id).first()
        if not tractor:
            raise AppError("Tractor not found.", 404)
        tractor.is_active = is_active
        db.session.commit()
        return tractor

    @staticmethod
    def list_active(limit=50):
        try:
            limit = max(1, min(int(limit), 200))
        except (TypeError, ValueError) as exc:
            raise ValidationError("Limit must be a number.") from exc
        return (
            Tractor.query.filter_by(is_active=True)
            .order_by(Tractor.rating.desc(), Tractor.id.asc())
            .limit(limit)
            .all()
        )
