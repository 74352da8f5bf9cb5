from dataclasses import dataclass
from decimal import Decimal, InvalidOperation


@dataclass(frozen=True)
class MarketplacePolicy:
    """Business knobs shared by the booking and escrow services."""

    platform_fee_pct: Decimal = Decimal("15")
    otp_length: int = 4
    max_booking_hours: int = 720
    expose_otps: bool = False
    wallet_min_topup: Decimal = Decimal("100")
    wallet_max_topup: Decimal = Decimal("50000")

    def __post_init__(self):
        if not Decimal("0") <= self.platform_fee_pct <= Decimal("100"):
            raise ValueError("platform_fee_pct must be between 0 and 100")
        if not 4 <= self.otp_length <= 6:
            raise ValueError("otp_length must be between 4 and 6")
        if self.max_booking_hours < 1:
            raise ValueError("max_booking_hours must be at least 1")
        if self.wallet_min_topup > self.wallet_max_topup:
            raise ValueError("wallet_min_topup cannot exceed wallet_max_topup")

    @property
    def fee_rate(self):
        return self.platform_fee_pct / Decimal("100")

    @classmethod
    def from_config(cls, config):
        try:
            return cls(
                platform_fee_pct=Decimal(str(config.get("PLATFORM_FEE_PCT", "15"))),
                otp_length=int(config.get("BOOKING_OTP_LENGTH", 4)),
                max_booking_hours=int(config.get("BOOKING_MAX_HOURS", 720)),
                expose_otps=bool(config.get("EXPOSE_BOOKING_OTPS", False)),
                wallet_min_topup=Decimal(str(config.get("WALLET_MIN_TOPUP", "100"))),
                wallet_max_topup=Decimal(str(config.get("WALLET_MAX_TOPUP", "50000"))),
            )
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid marketplace configuration: {exc}") from exc
