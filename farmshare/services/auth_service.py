import re

from sqlalchemy.exc import IntegrityError

from farmshare.errors import AppError, ValidationError
from farmshare.extensions import bcrypt, db
from farmshare.models import User
from farmshare.services.wallet_service import WalletService

ROLES = {"farmer", "owner", "both"}


class AuthService:
    @staticmethod
    def _normalize_phone(phone):
        digits = "".join(ch for ch in (phone or "") if ch.isdigit())
        if not re.fullmatch(r"\d{10}", digits):
            raise ValidationError("Phone number must be exactly 10 digits.")
        return digits

    @staticmethod
    def register_user(full_name, email, password, role, phone):
        """Create the account and its zero-balance wallet in one transaction."""
        if role not in ROLES:
            raise ValidationError("Invalid role.")

        normalized_email = (email or "").strip().lower()
        normalized_phone = AuthService._normalize_phone(phone)
        if not (full_name or "").strip() or not normalized_email or not password:
            raise ValidationError("Name, email, phone, and password are required.")

        if User.query.filter_by(email=normalized_email).first():
            raise AppError("Email already registered.", 409)

        user = User(
            full_name=full_name.strip(),
            email=normalized_email,
            phone=normalized_phone,
            role=role,
            password_hash=bcrypt.generate_password_hash(password).decode("utf-8"),
        )
        try:
            db.session.add(user)
            db.session.flush()
            WalletService.create_wallet(user.id)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            message = str(getattr(exc, "orig", exc)).lower()
            if "users.email" in message:
                raise AppError("Email already registered.", 409) from exc
            raise ValidationError("Could not create account due to invalid data.") from exc
        return user

    @staticmethod
    def authenticate_user(email, password):
        user = User.query.filter_by(email=(email or "").strip().lower()).first()
        if not user:
            raise AppError("Invalid credentials.", 401)
        try:
            is_valid = bcrypt.check_password_hash(user.password_hash, password or "")
        except ValueError:
            is_valid = False
        if not is_valid:
            raise AppError("Invalid credentials.", 401)
        if not user.is_active_user:
            raise AppError("User account is inactive.", 403)
        return user
