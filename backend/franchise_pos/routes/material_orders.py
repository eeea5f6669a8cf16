# Overview: Flask API routes for raw material orders; parses input and returns JSON responses.

"""
Material Order Routes

Outlets order raw materials from the central kitchen. Lifecycle:
pending -> approved -> delivered, or pending -> cancelled (deleted).

SECURITY: All routes require authentication.
- Owners see every outlet's orders; other users only their own outlet's
- Approve/deliver (POST /<id>/status) is owner only
- Cancel is allowed for the owner or the user who placed the order
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import material_order_service
from ..services.access_policy import AuthorizationError
from ..services.material_order_service import (
    InvalidStateError,
    MaterialOrderNotFoundError,
)
from ..services.stock_service import InsufficientStockError
from ..validation import ValidationError


material_orders_bp = Blueprint("material_orders", __name__, url_prefix="/api/material-orders")


@material_orders_bp.get("")
@require_auth
def list_material_orders_route():
    """
    Query parameters:
    - franchise_id: Outlet filter (owners only; others are pinned to their outlet)
    - status: pending, approved, delivered
    - payment_method: cash, bank_transfer, e-wallet
    - date_start + date_end: Inclusive day range (YYYY-MM-DD)
    - single_date: One day (YYYY-MM-DD)
    - date_range: "YYYY-MM-DD - YYYY-MM-DD"
    - limit: Maximum results (default: 10, max 100)
    - offset: Pagination offset (default: 0)

    Returns:
        {items: MaterialOrder[], count: int, limit: int, offset: int}
    """
    limit = request.args.get("limit", 10, type=int)
    offset = request.args.get("offset", 0, type=int)

    # Clamp limit
    if limit < 1:
        limit = 1
    if limit > 100:
        limit = 100
    if offset < 0:
        offset = 0

    try:
        orders, total = material_order_service.list_material_orders(
            actor=g.actor,
            outlet_id=request.args.get("franchise_id", type=int),
            status=request.args.get("status"),
            payment_method=request.args.get("payment_method"),
            date_start=request.args.get("date_start"),
            date_end=request.args.get("date_end"),
            single_date=request.args.get("single_date"),
            date_range=request.args.get("date_range"),
            limit=limit,
            offset=offset,
        )
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except AuthorizationError as e:
        return jsonify({"error": str(e)}), 403

    return jsonify({
        "items": [o.to_dict() for o in orders],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@material_orders_bp.post("")
@require_auth
def create_material_order_route():
    """
    Create a pending material order.

    Request body:
    {
        "franchise_id": 1,              // required
        "payment_method": "cash",       // required: cash, bank_transfer, e-wallet
        "materials": [                  // required, at least one
            {"raw_material_id": 1, "quantity": 2}
        ],
        "notes": "..."                  // optional
    }

    Returns:
        Created MaterialOrder with items
    """
    data = request.get_json(silent=True) or {}
    try:
        order = material_order_service.create_material_order(
            actor=g.actor,
            outlet_id=data.get("franchise_id"),
            payment_method=data.get("payment_method"),
            line_items=data.get("materials"),
            notes=data.get("notes"),
        )
        return jsonify(order.to_dict(include_items=True)), 201
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except AuthorizationError as e:
        return jsonify({"error": str(e)}), 403
    except Exception:
        current_app.logger.exception("Failed to create material order")
        return jsonify({"error": "Internal server error"}), 500


@material_orders_bp.get("/<int:order_id>")
@require_auth
def get_material_order_route(order_id: int):
    try:
        order = material_order_service.get_material_order_for_actor(g.actor, order_id)
        return jsonify(order.to_dict(include_items=True))
    except MaterialOrderNotFoundError:
        return jsonify({"error": "Material order not found"}), 404
    except AuthorizationError as e:
        return jsonify({"error": str(e)}), 403


@material_orders_bp.put("/<int:order_id>")
@require_auth
def update_material_order_route(order_id: int):
    """
    Replace the items of a pending order. Prices are re-read from the
    raw materials; the total is recomputed.

    Request body:
    {
        "materials": [{"raw_material_id": 1, "quantity": 2}],   // required
        "franchise_id": 1,          // optional
        "payment_method": "cash",   // optional
        "notes": "..."              // optional
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        order = material_order_service.edit_material_order(
            actor=g.actor,
            order_id=order_id,
            line_items=data.get("materials"),
            outlet_id=data.get("franchise_id"),
            payment_method=data.get("payment_method"),
            notes=data.get("notes"),
        )
        return jsonify(order.to_dict(include_items=True))
    except MaterialOrderNotFoundError:
        return jsonify({"error": "Material order not found"}), 404
    except AuthorizationError as e:
        return jsonify({"error": str(e)}), 403
    except InvalidStateError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except Exception:
        current_app.logger.exception("Failed to update material order")
        return jsonify({"error": "Internal server error"}), 500


@material_orders_bp.post("/<int:order_id>/status")
@require_auth
def update_material_order_status_route(order_id: int):
    """
    Approve or deliver an order (owner only).

    Request body:
    {
        "status": "approved"   // or "delivered"
    }

    Delivery deducts stock for every item; if any material is short the
    order stays approved and no stock changes.
    """
    data = request.get_json(silent=True) or {}
    try:
        order = material_order_service.transition_material_order(
            actor=g.actor,
            order_id=order_id,
            target_status=data.get("status"),
        )
        return jsonify(order.to_dict(include_items=True))
    except AuthorizationError as e:
        return jsonify({"error": str(e)}), 403
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except InvalidStateError as e:
        return jsonify({"error": str(e)}), 409
    except InsufficientStockError as e:
        return jsonify({"error": str(e), "details": e.to_dict()}), 409
    except Exception:
        current_app.logger.exception("Failed to update material order status")
        return jsonify({"error": "Internal server error"}), 500


@material_orders_bp.post("/<int:order_id>/cancel")
@require_auth
def cancel_material_order_route(order_id: int):
    try:
        material_order_service.cancel_material_order(actor=g.actor, order_id=order_id)
        return jsonify({"message": "Material order cancelled"}), 200
    except MaterialOrderNotFoundError:
        return jsonify({"error": "Material order not found"}), 404
    except InvalidStateError as e:
        return jsonify({"error": str(e)}), 409
    except AuthorizationError as e:
        return jsonify({"error": str(e)}), 403
    except Exception:
        current_app.logger.exception("Failed to cancel material order")
        return jsonify({"error": "Internal server error"}), 500
