from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from farmshare.decorators import role_required
from farmshare.services import ReviewService, get_booking_service, get_escrow_service

api_booking_bp = Blueprint("api_booking", __name__)


def _payload():
    return request.get_json(silent=True) or {}


def _transition_response(result, message, escrow_key):
    return jsonify(
        {
            "message": message,
            "booking": result.booking.to_dict(),
            escrow_key: result.escrow_succeeded,
            "escrow_error": result.escrow_error,
        }
    )


@api_booking_bp.post("")
@login_required
@role_required("farmer")
def create_booking():
    payload = _payload()
    service = get_booking_service()
    booking = service.create(
        renter_id=current_user.id,
        tractor_id=payload.get("tractor_id"),
        start_time=payload.get("start_time"),
        duration_hours=payload.get("duration"),
        work_details=payload,
    )
    return (
        jsonify(
            {
                "message": "Booking created successfully. Waiting for owner approval.",
                "booking": booking.to_dict(include_otps=service.policy.expose_otps),
            }
        ),
        201,
    )


@api_booking_bp.get("")
@login_required
def my_bookings():
    rows = get_booking_service().list_bookings(
        current_user.id,
        role=request.args.get("role"),
        status=request.args.get("status"),
    )
    return jsonify({"count": len(rows), "bookings": [b.to_dict() for b in rows]})


@api_booking_bp.get("/<int:booking_id>")
@login_required
def get_booking(booking_id):
    include_otps = request.args.get("include_otps", "").lower() in {"1", "true", "yes"}
    data = get_booking_service().read_booking(booking_id, current_user.id, include_otps=include_otps)
    return jsonify({"booking": data})


@api_booking_bp.put("/<int:booking_id>/accept")
@login_required
def accept_booking(booking_id):
    booking = get_booking_service().accept(booking_id, current_user.id)
    return jsonify({"message": "Booking accepted successfully", "booking": booking.to_dict()})


@api_booking_bp.put("/<int:booking_id>/reject")
@login_required
def reject_booking(booking_id):
    result = get_booking_service().reject(booking_id, current_user.id, _payload().get("reason"))
    return _transition_response(result, "Booking rejected", "refund_processed")


@api_booking_bp.put("/<int:booking_id>/start")
@login_required
def start_booking(booking_id):
    booking = get_booking_service().start(booking_id, _payload().get("otp"), actor_id=current_user.id)
    return jsonify({"message": "Booking started successfully", "booking": booking.to_dict()})


@api_booking_bp.put("/<int:booking_id>/complete")
@login_required
def complete_booking(booking_id):
    result = get_booking_service().complete(booking_id, _payload().get("otp"), actor_id=current_user.id)
    return _transition_response(
        result,
        "Booking completed successfully. Please rate your experience.",
        "payment_released",
    )


@api_booking_bp.put("/<int:booking_id>/cancel")
@login_required
def cancel_booking(booking_id):
    result = get_booking_service().cancel(booking_id, current_user.id, _payload().get("reason"))
    return _transition_response(result, "Booking cancelled successfully", "refund_processed")


@api_booking_bp.post("/<int:booking_id>/rate")
@login_required
def rate_booking(booking_id):
    payload = _payload()
    booking = ReviewService.rate_booking(booking_id, current_user.id, payload.get("rating"), payload.get("review"))
    return jsonify({"message": "Rating submitted successfully", "booking": booking.to_dict()})


@api_booking_bp.post("/<int:booking_id>/pay")
@login_required
def pay_for_booking(booking_id):
    result = get_escrow_service().fund(booking_id, current_user.id)
    return jsonify(
        {
            "message": "Booking payment successful. Amount held in escrow.",
            "payment": result.payment.to_dict(),
            "booking": result.booking.to_dict(),
            "remaining_wallet": str(result.balance),
        }
    )
