# Overview: Service-layer operations for categories and products, including spreadsheet imports.

"""
Catalog Service

Categories and products, plus the row-based category import and bulk update
used by the spreadsheet upload endpoints.

ROWS: Imports receive plain row lists (header already removed). Row numbers
in messages are spreadsheet rows: the header is row 1, so rows[0] is row 2.

DUPLICATES: Names repeated inside one upload are detected with a single pass
over the rows and a dict of first-seen row numbers keyed by the trimmed name.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Category, Product
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_int,
    enforce_rules_product,
    validate_payload,
)
from .concurrency import run_with_retry


CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"category_id", "name", "description", "price", "stock", "is_active"},
    required_on_create={"category_id", "name", "price"},
)

MAX_NAME_LENGTH = 255


def _cell(row, index: int):
    if row is None or index >= len(row):
        return None
    value = row[index]
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


# =============================================================================
# Categories
# =============================================================================


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if not category:
        raise NotFoundError(f"Category {category_id} not found")
    return category


def list_categories(name: str | None = None) -> list[Category]:
    query = db.session.query(Category)
    if name:
        query = query.filter(Category.name.ilike(f"%{name}%"))
    return query.order_by(Category.name.asc()).all()


def _ensure_unique_name(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Category).filter(Category.name == name)
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    existing = query.first()
    if existing:
        raise ConflictError(f"Category '{name}' already exists (ID: {existing.id})")


def create_category(payload: dict) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)

    def _op():
        _ensure_unique_name(patch["name"])
        category = Category(**patch)
        db.session.add(category)
        db.session.commit()
        return category

    return run_with_retry(_op)


def update_category(category_id: int, payload: dict) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)

    def _op():
        category = get_category(category_id)
        if "name" in patch:
            _ensure_unique_name(patch["name"], exclude_id=category.id)
        for key, value in patch.items():
            setattr(category, key, value)
        db.session.commit()
        return category

    return run_with_retry(_op)


def delete_category(category_id: int) -> None:
    def _op():
        category = get_category(category_id)
        if db.session.query(Product.id).filter(Product.category_id == category.id).first():
            raise ConflictError(
                "This category has products. Reassign or delete these products first."
            )
        db.session.delete(category)
        db.session.commit()

    return run_with_retry(_op)


def delete_all_categories() -> int:
    def _op():
        with_products = (
            db.session.query(Category)
            .filter(Category.products.any())
            .order_by(Category.id.asc())
            .all()
        )
        if with_products:
            info = ", ".join(
                f"{c.name} (ID: {c.id}, Products: {len(c.products)})" for c in with_products
            )
            raise ConflictError(
                f"Cannot delete all categories. The following still have products: {info}"
            )
        count = db.session.query(Category).delete(synchronize_session=False)
        db.session.commit()
        current_app.logger.info("Deleted all %s categories", count)
        return count

    return run_with_retry(_op)


def import_categories(rows: list) -> dict:
    """
    Create categories from [name, description] rows.

    Skips empty names; names over 255 characters are reported as errors;
    names already in the database or repeated earlier in the upload are
    reported as duplicates and skipped. Everything else is created in one
    transaction.

    Returns:
        {"imported": int, "duplicates": [str], "errors": [str]}
    """
    def _op():
        existing = {name: category_id for category_id, name in db.session.query(Category.id, Category.name).all()}
        seen: dict[str, int] = {}
        imported = 0
        duplicates = []
        errors = []

        for index, row in enumerate(rows):
            row_number = index + 2
            name = _cell(row, 0)
            if name is None:
                continue
            name = str(name)
            description = _cell(row, 1)

            if len(name) > MAX_NAME_LENGTH:
                errors.append(f"Row {row_number}: Category name exceeds maximum length ({MAX_NAME_LENGTH} characters)")
                continue

            if name in existing:
                duplicates.append(f"Row {row_number}: Category '{name}' already exists (ID: {existing[name]})")
                continue

            if name in seen:
                duplicates.append(f"Row {row_number}: Duplicate category '{name}' found in row {seen[name]}")
                continue
            seen[name] = row_number

            db.session.add(Category(name=name, description=str(description) if description is not None else None))
            imported += 1

        db.session.commit()
        current_app.logger.info(
            "Imported %s categories (%s duplicates, %s errors)", imported, len(duplicates), len(errors)
        )
        return {"imported": imported, "duplicates": duplicates, "errors": errors}

    return run_with_retry(_op)


def bulk_update_categories(rows: list) -> dict:
    """
    Update categories from [id, name, description] rows.

    A name repeated within the upload rejects the whole file before any
    write. Rows with an unknown id, or renaming to a name held by another
    category, are reported and skipped.

    Returns:
        {"updated": int, "unchanged": int, "errors": [str]}
    """
    seen: dict[str, int] = {}
    duplicate_names = []
    for index, row in enumerate(rows):
        if _cell(row, 0) is None or _cell(row, 1) is None:
            continue
        name = str(_cell(row, 1))
        if name in seen:
            duplicate_names.append(f"Duplicate name '{name}' found in rows {seen[name]} and {index + 2}")
        else:
            seen[name] = index + 2

    if duplicate_names:
        raise ValidationError(
            "Duplicate category names in upload: " + "; ".join(duplicate_names),
            "rows",
        )

    def _op():
        updated = 0
        unchanged = 0
        errors = []

        for index, row in enumerate(rows):
            row_number = index + 2
            raw_id = _cell(row, 0)
            if raw_id is None:
                continue

            try:
                category_id = coerce_int(raw_id, "id")
            except ValidationError:
                errors.append(f"Row {row_number}: Invalid category ID {raw_id!r}")
                continue

            category = db.session.get(Category, category_id)
            if not category:
                errors.append(f"Row {row_number}: Category with ID {category_id} not found")
                continue

            changes = {}
            name = _cell(row, 1)
            if name is not None and str(name) != category.name:
                name = str(name)
                clash = db.session.query(Category).filter(
                    Category.name == name, Category.id != category.id
                ).first()
                if clash:
                    errors.append(
                        f"Row {row_number}: Cannot update to name '{name}' as it is already used by category ID {clash.id}"
                    )
                    continue
                changes["name"] = name

            if len(row) > 2:
                description = _cell(row, 2)
                if description != category.description:
                    changes["description"] = description

            if not changes:
                unchanged += 1
                continue

            for key, value in changes.items():
                setattr(category, key, value)
            # Flush so later rows see this rename in the clash check
            db.session.flush()
            updated += 1

        db.session.commit()
        return {"updated": updated, "unchanged": unchanged, "errors": errors}

    return run_with_retry(_op)


# =============================================================================
# Products
# =============================================================================


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def list_products(category_id: int | None = None) -> list[Product]:
    query = db.session.query(Product)
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    return query.order_by(Product.name.asc()).all()


def create_product(payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    def _op():
        if db.session.get(Category, patch["category_id"]) is None:
            raise ValidationError(f"Category {patch['category_id']} not found", "category_id")
        product = Product(**patch)
        db.session.add(product)
        db.session.commit()
        return product

    return run_with_retry(_op)
