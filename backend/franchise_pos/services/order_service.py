# Overview: Service-layer operations for sales orders pushed by the cashier app.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Order, OrderItem, Outlet, Product
from ..models.sales import ORDER_TYPES
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    coerce_int,
    enforce_amount_range,
    validate_payload,
)
from .access_policy import Actor, is_owner
from .concurrency import run_with_retry
from franchise_pos.time_utils import day_bounds, parse_iso_date


ORDER_AMOUNT_FIELDS = (
    "payment_amount", "sub_total", "tax", "discount", "discount_amount",
    "service_charge", "total", "total_item",
)

ORDER_POLICY = ModelValidationPolicy(
    writable_fields=set(ORDER_AMOUNT_FIELDS) | {
        "payment_method", "cashier_id", "cashier_name", "transaction_time", "order_type",
    },
    required_on_create=set(ORDER_AMOUNT_FIELDS) | {
        "payment_method", "cashier_id", "cashier_name", "transaction_time", "order_type",
    },
)

# Field names used by the cashier app
PAYLOAD_ALIASES = {
    "id_kasir": "cashier_id",
    "nama_kasir": "cashier_name",
}


def _split_payload(payload: dict) -> tuple[dict, list, int | None]:
    header = {}
    for key, value in payload.items():
        if key in ("order_items", "outlet_id"):
            continue
        header[PAYLOAD_ALIASES.get(key, key)] = value
    return header, payload.get("order_items") or [], payload.get("outlet_id")


def _normalize_order_items(order_items) -> list[tuple[int, int, int]]:
    if not isinstance(order_items, list):
        raise ValidationError("order_items must be a list", "order_items")

    normalized = []
    for index, item in enumerate(order_items):
        prefix = f"order_items[{index}]"
        if not isinstance(item, dict):
            raise ValidationError(f"{prefix} must be an object", prefix)
        product_id = item.get("id_product", item.get("product_id"))
        if product_id is None:
            raise ValidationError(f"{prefix}.id_product is required", f"{prefix}.id_product")
        product_id = coerce_int(product_id, f"{prefix}.id_product")
        quantity = coerce_int(item.get("quantity"), f"{prefix}.quantity")
        if quantity < 1:
            raise ValidationError(f"{prefix}.quantity must be at least 1", f"{prefix}.quantity")
        price = coerce_int(item.get("price"), f"{prefix}.price")
        if price < 0:
            raise ValidationError(f"{prefix}.price must be >= 0", f"{prefix}.price")
        normalized.append((product_id, quantity, price))

    ids = {product_id for product_id, _, _ in normalized}
    known = {row[0] for row in db.session.query(Product.id).filter(Product.id.in_(ids)).all()} if ids else set()
    for index, (product_id, _, _) in enumerate(normalized):
        if product_id not in known:
            raise ValidationError(f"Product {product_id} not found", f"order_items[{index}].id_product")
    return normalized


def save_order(*, actor: Actor, payload: dict) -> Order:
    """
    Persist a completed sale and its items in one transaction.

    The outlet is the actor's own outlet; owners without an outlet may
    name one with outlet_id.

    Raises:
        ValidationError: Missing/invalid fields, unknown product or outlet
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    header, order_items, requested_outlet = _split_payload(payload)
    patch = validate_payload(model=Order, payload=header, policy=ORDER_POLICY, partial=False)
    enforce_amount_range(patch, *ORDER_AMOUNT_FIELDS)

    if patch["order_type"] not in ORDER_TYPES:
        raise ValidationError(f"order_type must be one of: {', '.join(ORDER_TYPES)}", "order_type")

    outlet_id = actor.outlet_id
    if requested_outlet is not None and is_owner(actor):
        outlet_id = coerce_int(requested_outlet, "outlet_id")

    def _op():
        if outlet_id is not None and db.session.get(Outlet, outlet_id) is None:
            raise ValidationError(f"Outlet {outlet_id} not found", "outlet_id")
        items = _normalize_order_items(order_items)

        order = Order(outlet_id=outlet_id, **patch)
        for product_id, quantity, price in items:
            order.items.append(OrderItem(product_id=product_id, quantity=quantity, price=price))
        db.session.add(order)
        db.session.commit()
        current_app.logger.info("Order %s saved for outlet %s (total %s)", order.id, outlet_id, order.total)
        return order

    return run_with_retry(_op)


def list_orders(*, start_date=None, end_date=None, outlet_id: int | None = None) -> list[Order]:
    """Orders created within [start_date, end_date] (inclusive days) when both are given."""
    query = db.session.query(Order)

    if start_date and end_date:
        try:
            start, end = parse_iso_date(start_date), parse_iso_date(end_date)
        except ValueError:
            raise ValidationError("start_date and end_date must be YYYY-MM-DD dates", "start_date")
        window_start, window_end = day_bounds(start, end)
        query = query.filter(Order.created_at >= window_start, Order.created_at < window_end)

    if outlet_id is not None:
        query = query.filter(Order.outlet_id == outlet_id)

    return query.order_by(Order.created_at.asc(), Order.id.asc()).all()
