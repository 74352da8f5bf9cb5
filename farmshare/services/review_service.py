from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from farmshare.concurrency import atomic
from farmshare.errors import AlreadyProcessed, InvalidState, Unauthorized, ValidationError
from farmshare.extensions import db, locks
from farmshare.models import Tractor, User
from farmshare.services.lifecycle import get_booking


class ReviewService:
    @staticmethod
    def _parse_rating(rating):
        if isinstance(rating, bool):
            raise ValidationError("Rating must be an integer between 1 and 5.")
        try:
            rating_int = int(rating)
            if rating_int != Decimal(str(rating)):
                raise ValueError
        except (TypeError, ValueError, OverflowError, InvalidOperation) as exc:
            raise ValidationError("Rating must be an integer between 1 and 5.") from exc
        if rating_int < 1 or rating_int > 5:
            raise ValidationError("Rating must be an integer between 1 and 5.")
        return rating_int

    @staticmethod
    def apply_rating(target, rating):
        """Fold one more rating into a running average (user or tractor)."""
        count = target.total_ratings or 0
        old_avg = Decimal(str(target.rating or 0))
        new_avg = (old_avg * count + rating) / (count + 1)
        target.rating = new_avg.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        target.total_ratings = count + 1

    @staticmethod
    def rate_booking(booking_id, rater_id, rating, review=None):
        rating_int = ReviewService._parse_rating(rating)
        review = (review or "").strip() or None
        if review and len(review) > 300:
            raise ValidationError("Review cannot exceed 300 characters.")

        with locks.booking(booking_id):
            parties = get_booking(booking_id)
            first_user, second_user = sorted((parties.farmer_id, parties.owner_id))
            with locks.hold("rating:tractor", parties.tractor_id), locks.hold(
                "rating:user", first_user
            ), locks.hold("rating:user", second_user), atomic(db.session):
                booking = get_booking(booking_id, lock=True)
                if booking.status != "completed":
                    raise InvalidState("Can only rate completed bookings.")
                if rater_id == booking.farmer_id:
                    if booking.farmer_rating is not None:
                        raise AlreadyProcessed("You have already rated this booking.")
                    booking.farmer_rating = rating_int
                    booking.farmer_review = review
                    owner = db.session.get(User, booking.owner_id, with_for_update=True, populate_existing=True)
                    tractor = db.session.get(Tractor, booking.tractor_id, with_for_update=True, populate_existing=True)
                    ReviewService.apply_rating(owner, rating_int)
                    ReviewService.apply_rating(tractor, rating_int)
                    tractor.total_bookings = (tractor.total_bookings or 0) + 1
                elif rater_id == booking.owner_id:
                    if booking.owner_rating is not None:
                        raise AlreadyProcessed("You have already rated this booking.")
                    booking.owner_rating = rating_int
                    booking.owner_review = review
                    farmer = db.session.get(User, booking.farmer_id, with_for_update=True, populate_existing=True)
                    ReviewService.apply_rating(farmer, rating_int)
                else:
                    raise Unauthorized("Not authorized to rate this booking.")

        return booking
