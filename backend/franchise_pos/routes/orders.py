# Overview: Flask API routes for cashier sales orders and the sales/cash summary.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import order_service, summary_service
from ..services.access_policy import AuthorizationError, visible_outlet_id
from ..services.summary_service import ReportError
from ..validation import ValidationError


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
def save_order_route():
    """
    Save a completed sale pushed by the cashier app.

    Request body:
    {
        "payment_amount": 50000, "sub_total": 40000, "tax": 4000,
        "discount": 0, "discount_amount": 0, "service_charge": 2000,
        "total": 46000, "payment_method": "cash", "total_item": 3,
        "id_kasir": 7, "nama_kasir": "Ani",
        "transaction_time": "2024-05-01T10:15:00",
        "order_type": "dine_in",          // or take_away
        "order_items": [{"id_product": 1, "quantity": 2, "price": 15000}]
    }
    """
    data = request.get_json(silent=True)
    try:
        order = order_service.save_order(actor=g.actor, payload=data)
        return jsonify({
            "status": "success",
            "message": "Order saved successfully",
            "order_id": order.id,
        }), 201
    except ValidationError as e:
        return jsonify({"status": "error", "error": str(e), "field": e.field}), 400
    except Exception:
        current_app.logger.exception("Failed to save order")
        return jsonify({"status": "error", "error": "Internal server error"}), 500


@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    Query parameters:
    - start_date, end_date: Inclusive day range (YYYY-MM-DD); both required to filter
    - outlet_id: Outlet filter (owners only)
    """
    try:
        orders = order_service.list_orders(
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            outlet_id=visible_outlet_id(g.actor, request.args.get("outlet_id", type=int)),
        )
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except AuthorizationError as e:
        return jsonify({"error": str(e)}), 403

    return jsonify({
        "status": "success",
        "data": [o.to_dict(include_items=True) for o in orders],
        "count": len(orders),
    })


@orders_bp.get("/summary")
@require_auth
def summary_route():
    """
    Revenue, cash reconciliation and per-day breakdown.

    Query parameters:
    - start_date: YYYY-MM-DD (alone: that single day)
    - end_date: YYYY-MM-DD (with start_date: inclusive range + daily_breakdown)
    - outlet_id: Outlet filter (owners only; others are pinned to their outlet)
    """
    try:
        summary = summary_service.summarize(
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            outlet_id=visible_outlet_id(g.actor, request.args.get("outlet_id", type=int)),
        )
        return jsonify({"status": "success", "data": summary})
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    except AuthorizationError as e:
        return jsonify({"error": str(e)}), 403
    except Exception:
        current_app.logger.exception("Failed to build order summary")
        return jsonify({"error": "Internal server error"}), 500
