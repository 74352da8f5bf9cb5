from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from farmshare.extensions import limiter
from farmshare.services import AuthService, WalletService

api_auth_bp = Blueprint("api_auth", __name__)


@api_auth_bp.post("/register")
@limiter.limit("10 per hour")
def api_register():
    payload = request.get_json(silent=True) or {}
    user = AuthService.register_user(
        full_name=payload.get("full_name", ""),
        email=payload.get("email", ""),
        password=payload.get("password", ""),
        role=payload.get("role", ""),
        phone=payload.get("phone", ""),
    )
    login_user(user)
    return jsonify({"id": user.id, "email": user.email, "role": user.role}), 201


@api_auth_bp.post("/login")
@limiter.limit("20 per hour")
def api_login():
    payload = request.get_json(silent=True) or {}
    user = AuthService.authenticate_user(payload.get("email", ""), payload.get("password", ""))
    login_user(user)
    return jsonify({"id": user.id, "email": user.email, "role": user.role})


@api_auth_bp.get("/me")
@login_required
def api_me():
    data = current_user.to_dict()
    data["wallet_balance"] = str(WalletService.get_balance(current_user.id))
    return jsonify(data)


@api_auth_bp.post("/logout")
@login_required
def api_logout():
    logout_user()
    return jsonify({"ok": True})
