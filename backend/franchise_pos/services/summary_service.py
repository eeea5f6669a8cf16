# Overview: Service-layer read-only rollups over sales orders and the daily cash ledger.

"""
Sales / Cash Summary

Reconciles three sources without writing to any of them:
- Orders (revenue, discounts, tax, service charge, per payment method)
- OrderItems joined to Products (beverage sales)
- DailyCash rows (opening balance, expenses)

closing_balance = opening_balance + cash_sales - expenses

Order windows are whole days: [start 00:00, end + 1 day 00:00) on
Order.created_at, applied only when both dates are given. DailyCash is
read for the range, for the start date alone when no end date is given,
and for today when no dates are given.

Each daily_breakdown entry is computed from that day's own rows; no
balance is carried over from the previous day.
"""

from __future__ import annotations

from datetime import date, datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import DailyCash, Order, OrderItem, Product
from franchise_pos.time_utils import day_bounds, iter_days, parse_iso_date, today


CASH = "cash"
QRIS = "qris"


class ReportError(Exception):
    """Raised when summary arguments are invalid."""
    pass


def _parse_range(start_date, end_date) -> tuple[date | None, date | None]:
    try:
        start = parse_iso_date(start_date)
        end = parse_iso_date(end_date)
    except ValueError:
        raise ReportError("start_date and end_date must be YYYY-MM-DD dates")

    if start and end:
        if end < start:
            raise ReportError("end_date cannot be before start_date")
        max_days = current_app.config.get("MAX_SUMMARY_DAYS", 366)
        if (end - start).days + 1 > max_days:
            raise ReportError(f"Date range cannot exceed {max_days} days")
    return start, end


def _filter_orders(query, window: tuple[datetime, datetime] | None, outlet_id: int | None):
    if window:
        query = query.filter(Order.created_at >= window[0], Order.created_at < window[1])
    if outlet_id is not None:
        query = query.filter(Order.outlet_id == outlet_id)
    return query


def _order_totals(window, outlet_id) -> dict:
    row = _filter_orders(
        db.session.query(
            func.coalesce(func.sum(Order.total), 0).label("total_revenue"),
            func.coalesce(func.sum(Order.discount_amount), 0).label("total_discount"),
            func.coalesce(func.sum(Order.tax), 0).label("total_tax"),
            func.coalesce(func.sum(Order.service_charge), 0).label("total_service_charge"),
            func.coalesce(func.sum(Order.sub_total), 0).label("total_subtotal"),
        ),
        window,
        outlet_id,
    ).one()
    return {
        "total_revenue": int(row.total_revenue),
        "total_discount": int(row.total_discount),
        "total_tax": int(row.total_tax),
        "total_service_charge": int(row.total_service_charge),
        "total_subtotal": int(row.total_subtotal),
    }


def _payment_method_totals(window, outlet_id) -> dict[str, dict]:
    rows = _filter_orders(
        db.session.query(
            Order.payment_method,
            func.count(Order.id).label("count"),
            func.coalesce(func.sum(Order.total), 0).label("total"),
        ),
        window,
        outlet_id,
    ).group_by(Order.payment_method).order_by(Order.payment_method.asc()).all()

    return {
        row.payment_method: {"count": int(row.count), "total": int(row.total)}
        for row in rows
    }


def _cash_totals(first_day: date, last_day: date, outlet_id) -> tuple[int, int]:
    query = db.session.query(
        func.coalesce(func.sum(DailyCash.opening_balance), 0),
        func.coalesce(func.sum(DailyCash.expenses), 0),
    ).filter(DailyCash.date >= first_day, DailyCash.date <= last_day)
    if outlet_id is not None:
        query = query.filter(DailyCash.outlet_id == outlet_id)
    opening_balance, expenses = query.one()
    return int(opening_balance), int(expenses)


def _beverage_sales(window, outlet_id, beverage_category_id: int) -> int:
    query = _filter_orders(
        db.session.query(
            func.coalesce(func.sum(OrderItem.quantity * OrderItem.price), 0)
        )
        .select_from(OrderItem)
        .join(Order, Order.id == OrderItem.order_id)
        .join(Product, Product.id == OrderItem.product_id)
        .filter(Product.category_id == beverage_category_id),
        window,
        outlet_id,
    )
    return int(query.scalar() or 0)


def _method_total(methods: dict[str, dict], method: str) -> int:
    return methods.get(method, {}).get("total", 0)


def _daily_entry(day: date, outlet_id) -> dict:
    methods = _payment_method_totals(day_bounds(day), outlet_id)
    opening_balance, expenses = _cash_totals(day, day, outlet_id)
    cash_sales = _method_total(methods, CASH)
    qris_sales = _method_total(methods, QRIS)
    return {
        "date": day.isoformat(),
        "opening_balance": opening_balance,
        "expenses": expenses,
        "cash_sales": cash_sales,
        "qris_sales": qris_sales,
        "total_sales": cash_sales + qris_sales,
        "closing_balance": opening_balance + cash_sales - expenses,
    }


def summarize(
    *,
    start_date=None,
    end_date=None,
    outlet_id: int | None = None,
    beverage_category_id: int | None = None,
) -> dict:
    """
    Financial rollup for a date range and optional outlet.

    Args:
        start_date: date or "YYYY-MM-DD" (inclusive); alone it narrows only DailyCash
        end_date: date or "YYYY-MM-DD" (inclusive); ignored without start_date
        outlet_id: Restrict every source to one outlet
        beverage_category_id: Defaults to the BEVERAGE_CATEGORY_ID setting

    Returns:
        Dict of integer aggregates, payment_methods and daily_breakdown

    Raises:
        ReportError: Unparseable dates, reversed range, range too long
    """
    start, end = _parse_range(start_date, end_date)
    if beverage_category_id is None:
        beverage_category_id = current_app.config.get("BEVERAGE_CATEGORY_ID", 2)

    window = day_bounds(start, end) if start and end else None

    totals = _order_totals(window, outlet_id)
    methods = _payment_method_totals(window, outlet_id)

    if start:
        opening_balance, expenses = _cash_totals(start, end or start, outlet_id)
    else:
        opening_balance, expenses = _cash_totals(today(), today(), outlet_id)

    cash_sales = _method_total(methods, CASH)
    qris_sales = _method_total(methods, QRIS)

    daily_breakdown = []
    if start and end:
        daily_breakdown = [_daily_entry(day, outlet_id) for day in iter_days(start, end)]

    return {
        **totals,
        "opening_balance": opening_balance,
        "expenses": expenses,
        "cash_sales": cash_sales,
        "qris_sales": qris_sales,
        "beverage_sales": _beverage_sales(window, outlet_id, beverage_category_id),
        "closing_balance": opening_balance + cash_sales - expenses,
        "payment_methods": methods,
        "daily_breakdown": daily_breakdown,
    }
