import os


def normalize_database_url(raw_url: str) -> str:
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql://", 1)
    return raw_url


def env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-unsafe-key")
    SQLALCHEMY_DATABASE_URI = normalize_database_url(
        os.getenv("DATABASE_URL", "sqlite:///instance/farmshare.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "200 per day;80 per hour")
    RATELIMIT_ENABLED = True
    CACHE_TYPE = os.getenv("CACHE_TYPE", "SimpleCache")
    CACHE_DEFAULT_TIMEOUT = 120

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = env_flag("SESSION_COOKIE_SECURE")
    SENTRY_DSN = os.getenv("SENTRY_DSN")

    # Marketplace policy, frozen into MarketplacePolicy at app start.
    PLATFORM_FEE_PCT = os.getenv("PLATFORM_FEE_PCT", "15")
    BOOKING_OTP_LENGTH = int(os.getenv("BOOKING_OTP_LENGTH", "4"))
    BOOKING_MAX_HOURS = int(os.getenv("BOOKING_MAX_HOURS", "720"))
    EXPOSE_BOOKING_OTPS = env_flag("EXPOSE_BOOKING_OTPS")
    WALLET_MIN_TOPUP = os.getenv("WALLET_MIN_TOPUP", "100")
    WALLET_MAX_TOPUP = os.getenv("WALLET_MAX_TOPUP", "50000")

    PAYMENT_GATEWAY = os.getenv("PAYMENT_GATEWAY", "test")
    PAYMENT_GATEWAY_KEY_ID = os.getenv("PAYMENT_GATEWAY_KEY_ID", "test_key_id")
    PAYMENT_GATEWAY_SECRET = os.getenv("PAYMENT_GATEWAY_SECRET", "")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SESSION_COOKIE_SECURE = False
    EXPOSE_BOOKING_OTPS = env_flag("EXPOSE_BOOKING_OTPS", "true")


class ProductionConfig(BaseConfig):
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True
    EXPOSE_BOOKING_OTPS = False


class TestingConfig(BaseConfig):
    TESTING = True
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    CACHE_TYPE = "NullCache"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SESSION_COOKIE_SECURE = False
    EXPOSE_BOOKING_OTPS = True
    PAYMENT_GATEWAY = "test"
    BCRYPT_LOG_ROUNDS = 4


config_by_env = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
