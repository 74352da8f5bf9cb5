from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from farmshare.decorators import role_required
from farmshare.extensions import limiter
from farmshare.services import PaymentService, get_escrow_service

api_payment_bp = Blueprint("api_payment", __name__)


@api_payment_bp.post("/add-money")
@login_required
@limiter.limit("30 per hour")
def add_money_to_wallet():
    payload = request.get_json(silent=True) or {}
    order = get_escrow_service().credit_wallet(current_user.id, payload.get("amount"))
    body = {"message": "Payment order created", "order": order.to_dict()}
    if order.test_mode:
        body["instructions"] = "In test mode, use the verify endpoint to simulate a successful payment."
    return jsonify(body)


@api_payment_bp.post("/verify")
@login_required
@limiter.limit("30 per hour")
def verify_payment():
    payload = request.get_json(silent=True) or {}
    proof = {
        "payment_id": payload.get("payment_id"),
        "signature": payload.get("signature"),
    }
    payment = get_escrow_service().verify_and_credit_wallet(
        payload.get("order_id"),
        proof,
        user_id=current_user.id,
    )
    return jsonify(
        {
            "message": "Payment verified successfully. Wallet credited!",
            "payment": payment.to_dict(),
            "wallet": str(payment.new_balance),
        }
    )


@api_payment_bp.get("/history")
@login_required
def payment_history():
    payments = PaymentService.history(
        current_user.id,
        payment_type=request.args.get("type"),
        status=request.args.get("status"),
        limit=request.args.get("limit", 50),
    )
    return jsonify({"count": len(payments), "payments": [p.to_dict() for p in payments]})


@api_payment_bp.get("/wallet/summary")
@login_required
def wallet_summary():
    summary = PaymentService.wallet_summary(current_user.id)
    return jsonify(
        {
            "current_balance": str(summary["current_balance"]),
            "summary": {
                "total_credits": str(summary["total_credits"]),
                "total_debits": str(summary["total_debits"]),
                "total_refunds": str(summary["total_refunds"]),
                "total_earnings": str(summary["total_earnings"]),
                "recent_transactions": [p.to_dict() for p in summary["recent_transactions"]],
            },
        }
    )


@api_payment_bp.post("/release/<int:booking_id>")
@login_required
@role_required("admin")
def release_payment(booking_id):
    result = get_escrow_service().release(booking_id)
    return jsonify({"message": "Payment released to owner", "payout": result.payment.to_dict()})


@api_payment_bp.post("/refund/<int:booking_id>")
@login_required
@role_required("admin")
def refund_booking(booking_id):
    payload = request.get_json(silent=True) or {}
    result = get_escrow_service().refund(booking_id, payload.get("reason") or "Booking cancelled")
    return jsonify({"message": "Refund processed successfully", "refund": result.payment.to_dict()})
