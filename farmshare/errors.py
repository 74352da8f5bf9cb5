from flask import jsonify
from sqlalchemy.exc import IntegrityError


class AppError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": self.message, "code": self.code}


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"


class NotFound(AppError):
    status_code = 404
    code = "not_found"


class Unauthorized(AppError):
    """Actor is not a party allowed to perform the operation on the booking."""

    status_code = 403
    code = "unauthorized"


class InvalidState(AppError):
    status_code = 409
    code = "invalid_state"


class InvalidOTP(AppError):
    status_code = 400
    code = "invalid_otp"


class Conflict(AppError):
    status_code = 409
    code = "conflict"


class AlreadyProcessed(AppError):
    status_code = 409
    code = "already_processed"


class PaymentVerificationFailed(AppError):
    status_code = 400
    code = "payment_verification_failed"


class InsufficientFunds(AppError):
    status_code = 402
    code = "insufficient_funds"

    def __init__(self, required, available):
        self.required = required
        self.available = available
        self.shortfall = required - available
        super().__init__(f"Insufficient balance. Need ₹{required}, have ₹{available}.")

    def to_dict(self):
        payload = super().to_dict()
        payload.update(
            {
                "required": str(self.required),
                "available": str(self.available),
                "shortfall": str(self.shortfall),
            }
        )
        return payload


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(err):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(_err):
        app.logger.warning("Database integrity error")
        return jsonify({"error": "Conflict. Resource already exists.", "code": "conflict"}), 409

    @app.errorhandler(400)
    def bad_request(_err):
        return jsonify({"error": "Bad request", "code": "bad_request"}), 400

    @app.errorhandler(401)
    def unauthenticated(_err):
        return jsonify({"error": "Authentication required", "code": "unauthenticated"}), 401

    @app.errorhandler(403)
    def forbidden(_err):
        return jsonify({"error": "Forbidden", "code": "forbidden"}), 403

    @app.errorhandler(404)
    def not_found(_err):
        return jsonify({"error": "Not found", "code": "not_found"}), 404

    @app.errorhandler(429)
    def too_many_requests(_err):
        return jsonify({"error": "Too many requests", "code": "rate_limited"}), 429

    @app.errorhandler(500)
    def server_error(_err):
        app.logger.exception("Internal server error")
        return jsonify({"error": "Internal server error", "code": "server_error"}), 500
