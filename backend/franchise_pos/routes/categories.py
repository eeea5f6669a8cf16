# Overview: Flask API routes for product categories, including spreadsheet import and bulk update.

"""
Category Routes

SECURITY: All routes require authentication; writes require the owner role.

Uploads (import, bulk-update) accept either a multipart "file" (.xlsx or
.csv, first row is the header) or a JSON body {"rows": [[...], ...]}
without a header row.
"""

import csv
import io

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_owner
from ..services import catalog_service
from ..validation import ConflictError, NotFoundError, ValidationError


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")

XLSX_EXTENSIONS = {"xlsx", "xlsm", "xltx", "xltm"}


class UploadError(Exception):
    """Raised when an uploaded file cannot be turned into rows."""
    pass


def _read_upload_rows() -> list:
    """Return data rows (header removed) from the request."""
    if "file" not in request.files:
        data = request.get_json(silent=True) or {}
        rows = data.get("rows")
        if not isinstance(rows, list):
            raise UploadError("file or rows is required")
        return rows

    file = request.files["file"]
    filename = file.filename or ""
    ext = filename.split(".")[-1].lower()

    try:
        if ext == "csv":
            stream = io.StringIO(file.stream.read().decode("utf-8-sig"))
            data = [row for row in csv.reader(stream)]
        elif ext in XLSX_EXTENSIONS:
            from openpyxl import load_workbook
            wb = load_workbook(file.stream, data_only=True)
            data = list(wb.active.values)
        else:
            raise UploadError("Unsupported file format")
    except UploadError:
        raise
    except Exception:
        current_app.logger.exception("Failed to parse upload %s", filename)
        raise UploadError("Failed to parse upload")

    return [list(row) for row in data[1:]]


@categories_bp.get("")
@require_auth
def list_categories_route():
    categories = catalog_service.list_categories(request.args.get("name"))
    return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)})


@categories_bp.post("")
@require_auth
@require_owner
def create_category_route():
    data = request.get_json(silent=True) or {}
    try:
        category = catalog_service.create_category(data)
        return jsonify(category.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.put("/<int:category_id>")
@require_auth
@require_owner
def update_category_route(category_id: int):
    data = request.get_json(silent=True) or {}
    try:
        category = catalog_service.update_category(category_id, data)
        return jsonify(category.to_dict())
    except NotFoundError:
        return jsonify({"error": "Category not found"}), 404
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_owner
def delete_category_route(category_id: int):
    try:
        catalog_service.delete_category(category_id)
        return jsonify({"message": "Category deleted"}), 200
    except NotFoundError:
        return jsonify({"error": "Category not found"}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.post("/delete-all")
@require_auth
@require_owner
def delete_all_categories_route():
    try:
        count = catalog_service.delete_all_categories()
        return jsonify({"message": f"Deleted {count} categories", "deleted": count}), 200
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete categories")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.post("/import")
@require_auth
@require_owner
def import_categories_route():
    """
    Create categories from rows of [name, description].

    Returns:
        {imported: int, duplicates: [str], errors: [str]}
    """
    try:
        rows = _read_upload_rows()
        result = catalog_service.import_categories(rows)
        return jsonify(result), 201
    except UploadError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to import categories")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.post("/bulk-update")
@require_auth
@require_owner
def bulk_update_categories_route():
    """
    Update categories from rows of [id, name, description].

    A name repeated inside the upload rejects the whole upload (400).

    Returns:
        {updated: int, unchanged: int, errors: [str]}
    """
    try:
        rows = _read_upload_rows()
        result = catalog_service.bulk_update_categories(rows)
        return jsonify(result), 200
    except UploadError as e:
        return jsonify({"error": str(e)}), 400
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except Exception:
        current_app.logger.exception("Failed to bulk update categories")
        return jsonify({"error": "Internal server error"}), 500
