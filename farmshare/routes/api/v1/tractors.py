from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from farmshare.decorators import role_required
from farmshare.extensions import cache
from farmshare.services import TractorService

api_tractor_bp = Blueprint("api_tractor", __name__)


@api_tractor_bp.get("")
@cache.cached(timeout=60, query_string=True)
def list_tractors():
    tractors = TractorService.list_active(limit=request.args.get("limit", 50))
    return jsonify({"count": len(tractors), "tractors": [t.to_dict() for t in tractors]})


@api_tractor_bp.post("")
@login_required
@role_required("owner")
def create_tractor():
    payload = request.get_json(silent=True) or {}
    tractor = TractorService.create_tractor(current_user.id, payload)
    cache.clear()
    return jsonify(tractor.to_dict()), 201


@api_tractor_bp.patch("/<int:tractor_id>/availability")
@login_required
@role_required("owner")
def toggle_availability(tractor_id):
    payload = request.get_json(silent=True) or {}
    tractor = TractorService.set_active(
        tractor_id=tractor_id,
        owner_id=current_user.id,
        is_active=payload.get("is_active", True),
    )
    cache.clear()
    return jsonify({"id": tractor.id, "is_active": tractor.is_active})
