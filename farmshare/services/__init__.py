from flask import current_app

from farmshare.services.auth_service import AuthService
from farmshare.services.booking_service import BookingService, TransitionResult
from farmshare.services.escrow_service import EscrowResult, EscrowService, WalletOrder
from farmshare.services.gateway import HmacSignatureGateway, PaymentGateway, SandboxGateway, gateway_from_config
from farmshare.services.notification_service import LogNotifier, NotificationService, Notifier
from farmshare.services.payment_service import PaymentService
from farmshare.services.policy import MarketplacePolicy
from farmshare.services.review_service import ReviewService
from farmshare.services.tractor_service import TractorInfo, TractorService
from farmshare.services.wallet_service import WalletService

__all__ = [
    "AuthService",
    "BookingService",
    "EscrowResult",
    "EscrowService",
    "HmacSignatureGateway",
    "LogNotifier",
    "MarketplacePolicy",
    "NotificationService",
    "Notifier",
    "PaymentGateway",
    "PaymentService",
    "ReviewService",
    "SandboxGateway",
    "TractorInfo",
    "TractorService",
    "TransitionResult",
    "WalletOrder",
    "WalletService",
    "build_services",
    "get_booking_service",
    "get_escrow_service",
]


def build_services(app, gateway=None, notifier=None):
    """Wire the booking and escrow services for ``app`` from its config."""
    policy = MarketplacePolicy.from_config(app.config)
    escrow = EscrowService(policy, gateway or gateway_from_config(app.config))
    booking = BookingService(policy, escrow, notifier or LogNotifier())
    app.extensions["farmshare"] = {"policy": policy, "escrow": escrow, "booking": booking}
    return booking, escrow


def get_booking_service():
    return current_app.extensions["farmshare"]["booking"]


def get_escrow_service():
    return current_app.extensions["farmshare"]["escrow"]
