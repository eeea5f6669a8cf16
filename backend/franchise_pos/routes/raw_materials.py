# Overview: Flask API routes for raw materials and their stock; parses input and returns JSON responses.

"""
Raw Material Routes

SECURITY: All routes require authentication.
- Any authenticated user can view raw materials
- Create/update/delete/restore/adjust require the owner role

Deleting a raw material tombstones it (deleted_at); materials referenced
by material orders cannot be deleted.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_owner
from ..services import stock_service
from ..services.stock_service import InsufficientStockError
from ..validation import ConflictError, NotFoundError, ValidationError, coerce_int


raw_materials_bp = Blueprint("raw_materials", __name__, url_prefix="/api/raw-materials")


def _flag(name: str) -> bool:
    return request.args.get(name, "").lower() in ("1", "true", "yes")


@raw_materials_bp.get("")
@require_auth
def list_raw_materials_route():
    """
    Query parameters:
    - name: Case-insensitive substring filter
    - active_only: Only is_active materials
    - include_deleted: Include tombstoned materials
    """
    materials = stock_service.list_raw_materials(
        name=request.args.get("name"),
        active_only=_flag("active_only"),
        include_deleted=_flag("include_deleted"),
    )
    return jsonify({"items": [m.to_dict() for m in materials], "count": len(materials)})


@raw_materials_bp.post("")
@require_auth
@require_owner
def create_raw_material_route():
    """
    Request body:
    {
        "name": "Coffee beans",   // required
        "unit": "kg",             // required
        "price": 1000,            // required, >= 0
        "purchase_price": 800,    // required, >= 0
        "stock": 10,              // required, >= 0
        "description": "...",     // optional
        "is_active": true         // optional
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        material = stock_service.create_raw_material(data)
        return jsonify(material.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except Exception:
        current_app.logger.exception("Failed to create raw material")
        return jsonify({"error": "Internal server error"}), 500


@raw_materials_bp.get("/<int:raw_material_id>")
@require_auth
def get_raw_material_route(raw_material_id: int):
    try:
        material = stock_service.get_raw_material(raw_material_id, include_deleted=_flag("include_deleted"))
        return jsonify(material.to_dict())
    except NotFoundError:
        return jsonify({"error": "Raw material not found"}), 404


@raw_materials_bp.put("/<int:raw_material_id>")
@require_auth
@require_owner
def update_raw_material_route(raw_material_id: int):
    data = request.get_json(silent=True) or {}
    try:
        material = stock_service.update_raw_material(raw_material_id, data)
        return jsonify(material.to_dict())
    except NotFoundError:
        return jsonify({"error": "Raw material not found"}), 404
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except Exception:
        current_app.logger.exception("Failed to update raw material")
        return jsonify({"error": "Internal server error"}), 500


@raw_materials_bp.delete("/<int:raw_material_id>")
@require_auth
@require_owner
def delete_raw_material_route(raw_material_id: int):
    try:
        stock_service.soft_delete_raw_material(raw_material_id)
        return jsonify({"message": "Raw material deleted"}), 200
    except NotFoundError:
        return jsonify({"error": "Raw material not found"}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete raw material")
        return jsonify({"error": "Internal server error"}), 500


@raw_materials_bp.post("/<int:raw_material_id>/restore")
@require_auth
@require_owner
def restore_raw_material_route(raw_material_id: int):
    try:
        material = stock_service.restore_raw_material(raw_material_id)
        return jsonify(material.to_dict())
    except NotFoundError:
        return jsonify({"error": "Raw material not found"}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to restore raw material")
        return jsonify({"error": "Internal server error"}), 500


@raw_materials_bp.post("/<int:raw_material_id>/adjust")
@require_auth
@require_owner
def adjust_raw_material_route(raw_material_id: int):
    """
    Manual stock correction.

    Request body:
    {
        "delta": -3   // required, non-zero; negative values cannot drive stock below 0
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        delta = coerce_int(data.get("delta"), "delta")
        material = stock_service.restock_raw_material(raw_material_id, delta)
        return jsonify(material.to_dict())
    except NotFoundError:
        return jsonify({"error": "Raw material not found"}), 404
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except InsufficientStockError as e:
        return jsonify({"error": str(e), "details": e.to_dict()}), 409
    except Exception:
        current_app.logger.exception("Failed to adjust raw material stock")
        return jsonify({"error": "Internal server error"}), 500


@raw_materials_bp.post("/delete-all")
@require_auth
@require_owner
def delete_all_raw_materials_route():
    try:
        count = stock_service.soft_delete_all_raw_materials()
        if count == 0:
            return jsonify({"message": "No raw materials to delete", "deleted": 0}), 200
        return jsonify({"message": f"Deleted {count} raw materials", "deleted": count}), 200
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete raw materials")
        return jsonify({"error": "Internal server error"}), 500
