# Overview: Flask API routes for sellable products.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_owner
from ..services import catalog_service
from ..validation import NotFoundError, ValidationError


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    products = catalog_service.list_products(request.args.get("category_id", type=int))
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)})


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        return jsonify(catalog_service.get_product(product_id).to_dict())
    except NotFoundError:
        return jsonify({"error": "Product not found"}), 404


@products_bp.post("")
@require_auth
@require_owner
def create_product_route():
    """
    Request body:
    {
        "category_id": 2,   // required
        "name": "Iced tea", // required
        "price": 8000,      // required, >= 0
        "stock": 0,         // optional
        "description": "...",
        "is_active": true
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        product = catalog_service.create_product(data)
        return jsonify(product.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500
