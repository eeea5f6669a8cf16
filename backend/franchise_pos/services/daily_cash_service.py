# Overview: Service-layer operations for the per-outlet daily cash ledger.

from __future__ import annotations

from datetime import date

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DailyCash, Outlet
from ..validation import ValidationError, coerce_int, enforce_amount_range
from .access_policy import Actor, require_outlet_access
from .concurrency import run_with_retry
from franchise_pos.time_utils import parse_iso_date


def _parse_day(value, field: str = "date") -> date:
    try:
        parsed = parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be a YYYY-MM-DD date", field)
    if parsed is None:
        raise ValidationError(f"{field} is required", field)
    return parsed


def _find_row(outlet_id: int, day: date) -> DailyCash | None:
    return db.session.query(DailyCash).filter_by(outlet_id=outlet_id, date=day).first()


def upsert_daily_cash(
    *,
    actor: Actor,
    outlet_id,
    date,
    opening_balance,
    expenses,
) -> DailyCash:
    """
    Create or overwrite the (outlet, date) cash row.

    Raises:
        ValidationError: Unknown outlet, bad date, negative amounts
        AuthorizationError: Actor cannot manage the outlet
    """
    if outlet_id is None:
        raise ValidationError("outlet_id is required", "outlet_id")
    outlet_id = coerce_int(outlet_id, "outlet_id")
    day = _parse_day(date)
    patch = {
        "opening_balance": coerce_int(opening_balance, "opening_balance"),
        "expenses": coerce_int(expenses, "expenses"),
    }
    enforce_amount_range(patch, "opening_balance", "expenses")
    require_outlet_access(actor, outlet_id)

    def _op():
        if db.session.get(Outlet, outlet_id) is None:
            raise ValidationError(f"Outlet {outlet_id} not found", "outlet_id")

        row = _find_row(outlet_id, day)
        if row is None:
            row = DailyCash(outlet_id=outlet_id, date=day, **patch)
            db.session.add(row)
            try:
                db.session.flush()
            except IntegrityError:
                # Another request inserted this (outlet, date) first
                db.session.rollback()
                row = _find_row(outlet_id, day)
                if row is None:
                    raise
        row.opening_balance = patch["opening_balance"]
        row.expenses = patch["expenses"]
        db.session.commit()
        return row

    return run_with_retry(_op)


def get_daily_cash(outlet_id: int, day) -> DailyCash | None:
    return _find_row(outlet_id, _parse_day(day))


def list_daily_cash(
    *,
    outlet_id: int | None = None,
    start_date=None,
    end_date=None,
) -> list[DailyCash]:
    query = db.session.query(DailyCash)
    if outlet_id is not None:
        query = query.filter(DailyCash.outlet_id == outlet_id)
    if start_date:
        query = query.filter(DailyCash.date >= _parse_day(start_date, "start_date"))
    if end_date:
        query = query.filter(DailyCash.date <= _parse_day(end_date, "end_date"))
    return query.order_by(DailyCash.date.asc(), DailyCash.outlet_id.asc()).all()
