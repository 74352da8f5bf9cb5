from farmshare.models.booking import Booking
from farmshare.models.notification import Notification
from farmshare.models.payment import Payment
from farmshare.models.tractor import Tractor
from farmshare.models.user import User
from farmshare.models.wallet import Wallet

__all__ = [
    "User",
    "Wallet",
    "Tractor",
    "Booking",
    "Payment",
    "Notification",
]
