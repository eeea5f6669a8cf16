# Overview: Flask API routes for outlets (franchise locations).

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_owner
from ..services import outlet_service
from ..services.access_policy import AuthorizationError, require_outlet_access, visible_outlet_id
from ..validation import ConflictError, NotFoundError, ValidationError


outlets_bp = Blueprint("outlets", __name__, url_prefix="/api/outlets")


@outlets_bp.get("")
@require_auth
def list_outlets_route():
    """Owners see every outlet; other users see only their own."""
    try:
        outlets = outlet_service.list_outlets(visible_outlet_id(g.actor, None))
        return jsonify({"items": [o.to_dict() for o in outlets], "count": len(outlets)})
    except AuthorizationError as e:
        return jsonify({"error": str(e)}), 403


@outlets_bp.post("")
@require_auth
@require_owner
def create_outlet_route():
    data = request.get_json(silent=True) or {}
    try:
        outlet = outlet_service.create_outlet(data)
        return jsonify(outlet.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create outlet")
        return jsonify({"error": "Internal server error"}), 500


@outlets_bp.get("/<int:outlet_id>")
@require_auth
def get_outlet_route(outlet_id: int):
    try:
        outlet = outlet_service.get_outlet(outlet_id)
        require_outlet_access(g.actor, outlet.id)
        return jsonify(outlet.to_dict())
    except NotFoundError:
        return jsonify({"error": "Outlet not found"}), 404
    except AuthorizationError as e:
        return jsonify({"error": str(e)}), 403
