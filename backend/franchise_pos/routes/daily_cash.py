# Overview: Flask API routes for the per-outlet daily cash ledger.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import daily_cash_service
from ..services.access_policy import AuthorizationError, visible_outlet_id
from ..validation import ValidationError


daily_cash_bp = Blueprint("daily_cash", __name__, url_prefix="/api/daily-cash")


@daily_cash_bp.get("")
@require_auth
def list_daily_cash_route():
    """
    Query parameters:
    - outlet_id: Outlet filter (owners only)
    - start_date, end_date: Inclusive date bounds (YYYY-MM-DD)
    """
    try:
        rows = daily_cash_service.list_daily_cash(
            outlet_id=visible_outlet_id(g.actor, request.args.get("outlet_id", type=int)),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except AuthorizationError as e:
        return jsonify({"error": str(e)}), 403

    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)})


@daily_cash_bp.put("")
@require_auth
def upsert_daily_cash_route():
    """
    Record the opening balance and expenses for one outlet and day.

    Request body:
    {
        "outlet_id": 1,            // defaults to the user's outlet
        "date": "2024-05-01",      // required
        "opening_balance": 100000, // required, >= 0
        "expenses": 15000          // required, >= 0
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        row = daily_cash_service.upsert_daily_cash(
            actor=g.actor,
            outlet_id=data.get("outlet_id", g.actor.outlet_id),
            date=data.get("date"),
            opening_balance=data.get("opening_balance"),
            expenses=data.get("expenses"),
        )
        return jsonify(row.to_dict())
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except AuthorizationError as e:
        return jsonify({"error": str(e)}), 403
    except Exception:
        current_app.logger.exception("Failed to save daily cash")
        return jsonify({"error": "Internal server error"}), 500
