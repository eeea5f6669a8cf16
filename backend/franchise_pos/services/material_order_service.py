# Overview: Service-layer operations for material orders; encapsulates business logic and database work.

"""
Material Order Service

LIFECYCLE:
1. pending: Created by an outlet user (or an owner on its behalf); items editable
2. approved: Owner approved; no stock effect
3. delivered: Owner confirmed delivery; raw material stock is deducted
(cancelled): A pending order may be cancelled, which deletes it

RULES:
- Transitions are one-directional and never skip a state
- price_per_unit is snapshotted from RawMaterial.price whenever items are
  (re)created; total_amount always equals the sum of item subtotals
- Every operation is one transaction: on any error nothing is persisted,
  including stock decrements already applied during a failed delivery
- Stock is deducted only on delivery. Approval does not reserve stock, so
  several approved orders may together exceed what is on hand; the
  shortfall surfaces when the later delivery is attempted.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import MaterialOrder, MaterialOrderItem, Outlet, RawMaterial
from ..validation import NotFoundError, ValidationError, coerce_int
from . import stock_service
from .access_policy import (
    Actor,
    AuthorizationError,
    is_owner,
    require_outlet_access,
    require_owner,
    visible_outlet_id,
)
from .concurrency import lock_for_update, run_with_retry
from franchise_pos.time_utils import day_bounds, parse_iso_date, utcnow


STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_DELIVERED = "delivered"
STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_DELIVERED)

# target status -> status the order must currently be in
TRANSITIONS = {
    STATUS_APPROVED: STATUS_PENDING,
    STATUS_DELIVERED: STATUS_APPROVED,
}

PAYMENT_METHODS = ("cash", "bank_transfer", "e-wallet")


class MaterialOrderNotFoundError(NotFoundError):
    """Raised when a material order is not found."""
    pass


class InvalidStateError(Exception):
    """Raised when an operation is invalid for the current order status."""
    pass


# =============================================================================
# Input normalisation
# =============================================================================


def _validate_outlet(outlet_id) -> int:
    if outlet_id is None or outlet_id == "":
        raise ValidationError("franchise_id is required", "franchise_id")
    outlet_id = coerce_int(outlet_id, "franchise_id")
    if db.session.query(Outlet.id).filter(Outlet.id == outlet_id).first() is None:
        raise ValidationError(f"Outlet {outlet_id} not found", "franchise_id")
    return outlet_id


def _validate_payment_method(payment_method) -> str:
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}",
            "payment_method",
        )
    return payment_method


def _normalize_line_items(line_items) -> list[tuple[int, int]]:
    """Return [(raw_material_id, quantity), ...] or raise ValidationError naming the bad field."""
    if not isinstance(line_items, list) or not line_items:
        raise ValidationError("At least one material is required", "materials")

    normalized = []
    for index, item in enumerate(line_items):
        prefix = f"materials[{index}]"
        if not isinstance(item, dict):
            raise ValidationError(f"{prefix} must be an object", prefix)

        raw_material_id = item.get("raw_material_id")
        if raw_material_id is None:
            raise ValidationError(f"{prefix}.raw_material_id is required", f"{prefix}.raw_material_id")
        raw_material_id = coerce_int(raw_material_id, f"{prefix}.raw_material_id")

        quantity = item.get("quantity")
        if quantity is None:
            raise ValidationError(f"{prefix}.quantity is required", f"{prefix}.quantity")
        quantity = coerce_int(quantity, f"{prefix}.quantity")
        if quantity < 1:
            raise ValidationError(f"{prefix}.quantity must be at least 1", f"{prefix}.quantity")

        normalized.append((raw_material_id, quantity))
    return normalized


def _load_materials(items: list[tuple[int, int]]) -> dict[int, RawMaterial]:
    ids = {raw_material_id for raw_material_id, _ in items}
    materials = {
        m.id: m
        for m in stock_service.raw_material_query().filter(RawMaterial.id.in_(ids)).all()
    }
    for index, (raw_material_id, _) in enumerate(items):
        if raw_material_id not in materials:
            raise ValidationError(
                f"Raw material {raw_material_id} not found",
                f"materials[{index}].raw_material_id",
            )
    return materials


def _replace_items(order: MaterialOrder, items: list[tuple[int, int]], materials: dict[int, RawMaterial]) -> int:
    """Delete all existing items, recreate them with fresh price snapshots, return the total."""
    order.items.clear()
    db.session.flush()

    total = 0
    for raw_material_id, quantity in items:
        price = materials[raw_material_id].price
        subtotal = price * quantity
        order.items.append(MaterialOrderItem(
            raw_material_id=raw_material_id,
            quantity=quantity,
            price_per_unit=price,
            subtotal=subtotal,
        ))
        total += subtotal
    return total


def _get_locked(order_id: int) -> MaterialOrder:
    order = lock_for_update(db.session.query(MaterialOrder).filter_by(id=order_id)).first()
    if not order:
        raise MaterialOrderNotFoundError(f"Material order {order_id} not found")
    return order


# =============================================================================
# Lifecycle operations
# =============================================================================


def create_material_order(
    *,
    actor: Actor,
    outlet_id,
    payment_method: str,
    line_items,
    notes: str | None = None,
) -> MaterialOrder:
    """
    Create a pending material order.

    Args:
        actor: Requesting user
        outlet_id: Outlet the materials are ordered for
        payment_method: cash, bank_transfer or e-wallet
        line_items: [{"raw_material_id": int, "quantity": int}, ...]
        notes: Optional free text

    Returns:
        Created MaterialOrder with items

    Raises:
        ValidationError: Unknown outlet/material, bad payment method, quantity < 1
        AuthorizationError: Non-owner ordering for another outlet
    """
    def _op():
        franchise_id = _validate_outlet(outlet_id)
        require_outlet_access(actor, franchise_id)
        method = _validate_payment_method(payment_method)
        items = _normalize_line_items(line_items)
        materials = _load_materials(items)

        order = MaterialOrder(
            franchise_id=franchise_id,
            user_id=actor.user_id,
            status=STATUS_PENDING,
            payment_method=method,
            notes=notes,
            total_amount=0,
        )
        db.session.add(order)
        order.total_amount = _replace_items(order, items, materials)

        db.session.commit()
        current_app.logger.info(
            "Material order %s created for outlet %s (total %s)",
            order.id, franchise_id, order.total_amount,
        )
        return order

    return run_with_retry(_op)


def edit_material_order(
    *,
    actor: Actor,
    order_id: int,
    line_items,
    outlet_id=None,
    payment_method: str | None = None,
    notes: str | None = None,
) -> MaterialOrder:
    """
    Replace the items (and optionally header fields) of a pending order.

    Items are deleted and recreated, not diffed; prices are re-snapshotted.

    Raises:
        MaterialOrderNotFoundError: Unknown order
        AuthorizationError: Actor is neither owner nor scoped to the order's outlet
        InvalidStateError: Order is not pending
        ValidationError: Bad input
    """
    def _op():
        order = _get_locked(order_id)
        require_outlet_access(actor, order.franchise_id)

        if order.status != STATUS_PENDING:
            raise InvalidStateError(
                f"Only pending orders can be edited; order {order.id} is {order.status}"
            )

        franchise_id = order.franchise_id
        if outlet_id is not None:
            franchise_id = _validate_outlet(outlet_id)
            require_outlet_access(actor, franchise_id)
        method = _validate_payment_method(payment_method) if payment_method is not None else None
        items = _normalize_line_items(line_items)
        materials = _load_materials(items)

        order.franchise_id = franchise_id
        if method is not None:
            order.payment_method = method
        if notes is not None:
            order.notes = notes
        order.total_amount = _replace_items(order, items, materials)

        db.session.commit()
        current_app.logger.info("Material order %s updated (total %s)", order.id, order.total_amount)
        return order

    return run_with_retry(_op)


def transition_material_order(*, actor: Actor, order_id: int, target_status: str) -> MaterialOrder:
    """
    Move an order to approved or delivered.

    Delivery deducts each item's quantity from its raw material. If any
    material lacks stock the whole transition is rolled back: no stock
    change and no status change is persisted.

    Raises:
        AuthorizationError: Actor is not an owner (checked before any read or write)
        ValidationError: target_status is not approved/delivered
        InvalidStateError: Order was cancelled, does not exist, or is not in
            the state the target requires
        InsufficientStockError: Delivery would drive a material negative
    """
    require_owner(actor, "approve or deliver material orders")

    if target_status not in TRANSITIONS:
        raise ValidationError(
            f"status must be one of: {', '.join(TRANSITIONS)}",
            "status",
        )

    def _op():
        order = lock_for_update(db.session.query(MaterialOrder).filter_by(id=order_id)).first()
        if not order:
            raise InvalidStateError(f"Material order {order_id} was cancelled or does not exist")

        required = TRANSITIONS[target_status]
        if order.status != required:
            raise InvalidStateError(
                f"Cannot mark {order.status} order {order.id} as {target_status}; "
                f"order must be {required}"
            )

        now = utcnow()
        if target_status == STATUS_APPROVED:
            order.approved_at = now
        else:
            # Rows are touched in material id order
            for item in sorted(order.items, key=lambda i: i.raw_material_id):
                stock_service.decrement_stock(item.raw_material_id, item.quantity)
            order.delivered_at = now

        order.status = target_status
        db.session.commit()
        current_app.logger.info("Material order %s %s", order.id, target_status)
        return order

    return run_with_retry(_op)


def cancel_material_order(*, actor: Actor, order_id: int) -> None:
    """
    Cancel (delete) a pending order and its items. No stock effect.

    Raises:
        MaterialOrderNotFoundError: Unknown order
        InvalidStateError: Order is not pending
        AuthorizationError: Actor is neither owner nor the original requester
    """
    def _op():
        order = _get_locked(order_id)

        if order.status != STATUS_PENDING:
            raise InvalidStateError("Only pending orders can be cancelled")

        if not is_owner(actor) and order.user_id != actor.user_id:
            raise AuthorizationError("You can only cancel your own orders")

        db.session.delete(order)
        db.session.commit()
        current_app.logger.info("Material order %s cancelled by user %s", order_id, actor.user_id)

    return run_with_retry(_op)


# =============================================================================
# Queries
# =============================================================================


def get_material_order(order_id: int) -> MaterialOrder:
    order = (
        db.session.query(MaterialOrder)
        .options(selectinload(MaterialOrder.items).selectinload(MaterialOrderItem.raw_material))
        .filter_by(id=order_id)
        .first()
    )
    if not order:
        raise MaterialOrderNotFoundError(f"Material order {order_id} not found")
    return order


def get_material_order_for_actor(actor: Actor, order_id: int) -> MaterialOrder:
    order = get_material_order(order_id)
    require_outlet_access(actor, order.franchise_id)
    return order


def _parse_date(value, field: str) -> date | None:
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be a YYYY-MM-DD date", field)


def _parse_date_range(value: str) -> tuple[date, date]:
    parts = value.split(" - ")
    if len(parts) != 2:
        raise ValidationError("date_range must look like 'YYYY-MM-DD - YYYY-MM-DD'", "date_range")
    return _parse_date(parts[0], "date_range"), _parse_date(parts[1], "date_range")


def list_material_orders(
    *,
    actor: Actor,
    outlet_id: int | None = None,
    status: str | None = None,
    payment_method: str | None = None,
    date_start=None,
    date_end=None,
    single_date=None,
    date_range: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> tuple[list[MaterialOrder], int]:
    """
    List material orders visible to the actor, newest first.

    Date filters apply to created_at, in priority order: date_start + date_end
    (inclusive days), single_date, then date_range ("YYYY-MM-DD - YYYY-MM-DD").

    Returns:
        Tuple of (list of orders, total count)
    """
    query = db.session.query(MaterialOrder)

    scoped_outlet = visible_outlet_id(actor, outlet_id)
    if scoped_outlet is not None:
        query = query.filter(MaterialOrder.franchise_id == scoped_outlet)

    if status:
        if status not in STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(STATUSES)}", "status")
        query = query.filter(MaterialOrder.status == status)
    if payment_method:
        query = query.filter(MaterialOrder.payment_method == payment_method)

    window = None
    if date_start and date_end:
        window = day_bounds(_parse_date(date_start, "date_start"), _parse_date(date_end, "date_end"))
    elif single_date:
        window = day_bounds(_parse_date(single_date, "single_date"))
    elif date_range:
        window = day_bounds(*_parse_date_range(date_range))

    if window:
        query = query.filter(
            MaterialOrder.created_at >= window[0],
            MaterialOrder.created_at < window[1],
        )

    total = query.count()

    query = query.order_by(MaterialOrder.created_at.desc(), MaterialOrder.id.desc())
    query = query.offset(offset).limit(limit)

    return query.all(), total
