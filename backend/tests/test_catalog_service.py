"""Category CRUD, spreadsheet import and bulk update."""

import pytest

from franchise_pos.models import Category
from franchise_pos.services import catalog_service
from franchise_pos.validation import ConflictError, NotFoundError, ValidationError


class TestCategories:
    def test_create_rejects_duplicate_name(self, db_session):
        first = catalog_service.create_category({"name": "Snacks"})

        with pytest.raises(ConflictError) as exc:
            catalog_service.create_category({"name": "Snacks"})
        assert f"(ID: {first.id})" in str(exc.value)

    def test_update_and_rename_conflict(self, db_session):
        snacks = catalog_service.create_category({"name": "Snacks"})
        catalog_service.create_category({"name": "Drinks"})

        updated = catalog_service.update_category(snacks.id, {"description": "Crunchy"})
        assert updated.description == "Crunchy"

        with pytest.raises(ConflictError):
            catalog_service.update_category(snacks.id, {"name": "Drinks"})

    def test_delete_refuses_category_with_products(self, db_session, beverage_product):
        with pytest.raises(ConflictError):
            catalog_service.delete_category(beverage_product.category_id)
        assert catalog_service.get_category(beverage_product.category_id)

    def test_delete(self, db_session):
        category = catalog_service.create_category({"name": "Seasonal"})
        category_id = category.id
        catalog_service.delete_category(category_id)
        with pytest.raises(NotFoundError):
            catalog_service.get_category(category_id)

    def test_delete_all(self, db_session, beverage_product):
        with pytest.raises(ConflictError) as exc:
            catalog_service.delete_all_categories()
        assert "Beverage" in str(exc.value)
        assert "Food" not in str(exc.value)

        db_session.delete(beverage_product)
        db_session.commit()
        assert catalog_service.delete_all_categories() == 2
        assert catalog_service.list_categories() == []


class TestImport:
    def test_imports_and_reports_duplicates(self, db_session):
        existing = catalog_service.create_category({"name": "Coffee"})

        result = catalog_service.import_categories([
            ["Tea", "Hot and iced"],
            ["Coffee", "Already there"],
            ["  Pastry ", None],
            [None, "skipped"],
            ["Tea", "Second tea"],
            ["x" * 256, ""],
            ["Pastry", "Again"],
        ])

        assert result["imported"] == 2
        assert result["duplicates"] == [
            f"Row 3: Category 'Coffee' already exists (ID: {existing.id})",
            "Row 6: Duplicate category 'Tea' found in row 2",
            "Row 8: Duplicate category 'Pastry' found in row 4",
        ]
        assert len(result["errors"]) == 1
        assert result["errors"][0].startswith("Row 7:")

        names = sorted(c.name for c in catalog_service.list_categories())
        assert names == ["Coffee", "Pastry", "Tea"]
        tea = db_session.query(Category).filter_by(name="Tea").one()
        assert tea.description == "Hot and iced"

    def test_empty_upload(self, db_session):
        assert catalog_service.import_categories([]) == {"imported": 0, "duplicates": [], "errors": []}

    def test_large_upload_with_repeats(self, db_session):
        rows = [[f"Category {i % 500}", None] for i in range(2000)]

        result = catalog_service.import_categories(rows)

        assert result["imported"] == 500
        assert len(result["duplicates"]) == 1500


class TestBulkUpdate:
    def test_updates_changed_rows(self, db_session):
        tea = catalog_service.create_category({"name": "Tea"})
        coffee = catalog_service.create_category({"name": "Coffee", "description": "Beans"})

        result = catalog_service.bulk_update_categories([
            [tea.id, "Teas", "Leaves"],
            [coffee.id, "Coffee", "Beans"],
            [9999, "Ghost", None],
        ])

        assert result["updated"] == 1
        assert result["unchanged"] == 1
        assert result["errors"] == ["Row 4: Category with ID 9999 not found"]
        assert catalog_service.get_category(tea.id).name == "Teas"

    def test_duplicate_names_in_upload_reject_everything(self, db_session):
        tea = catalog_service.create_category({"name": "Tea"})
        coffee = catalog_service.create_category({"name": "Coffee"})

        with pytest.raises(ValidationError) as exc:
            catalog_service.bulk_update_categories([
                [tea.id, "Drinks", None],
                [coffee.id, "Drinks", None],
            ])
        assert exc.value.field == "rows"
        assert "rows 2 and 3" in str(exc.value)
        assert catalog_service.get_category(tea.id).name == "Tea"

    def test_rename_to_name_of_other_category(self, db_session):
        tea = catalog_service.create_category({"name": "Tea"})
        catalog_service.create_category({"name": "Coffee"})

        result = catalog_service.bulk_update_categories([[tea.id, "Coffee", None]])

        assert result["updated"] == 0
        assert "already used by category" in result["errors"][0]


class TestProducts:
    def test_create_product(self, db_session, beverage_product):
        product = catalog_service.create_product({"category_id": 2, "name": "Lemon tea", "price": 3000})
        assert product.stock == 0
        assert [p.name for p in catalog_service.list_products(category_id=2)] == ["Iced coffee", "Lemon tea"]

    def test_unknown_category(self, db_session):
        with pytest.raises(ValidationError) as exc:
            catalog_service.create_product({"category_id": 42, "name": "Orphan", "price": 1})
        assert exc.value.field == "category_id"
