"""Raw material master data, soft deletion and atomic stock adjustments."""

import pytest

from franchise_pos.extensions import db
from franchise_pos.models import RawMaterial
from franchise_pos.services import material_order_service as mos
from franchise_pos.services import stock_service
from franchise_pos.services.stock_service import InsufficientStockError
from franchise_pos.validation import ConflictError, NotFoundError, ValidationError


def _payload(**overrides):
    payload = {
        "name": "Milk",
        "unit": "liter",
        "price": 1500,
        "purchase_price": 1200,
        "stock": 20,
    }
    payload.update(overrides)
    return payload


class TestMasterData:
    def test_create_and_update(self, db_session):
        material = stock_service.create_raw_material(_payload(description="Full cream"))
        assert material.id is not None
        assert material.is_active is True

        updated = stock_service.update_raw_material(material.id, {"price": "1750", "is_active": False})
        assert updated.price == 1750
        assert updated.is_active is False

    @pytest.mark.parametrize("field", ["price", "purchase_price", "stock"])
    def test_rejects_negative_amounts(self, db_session, field):
        with pytest.raises(ValidationError) as exc:
            stock_service.create_raw_material(_payload(**{field: -1}))
        assert exc.value.field == field

    def test_rejects_missing_and_unknown_fields(self, db_session):
        payload = _payload()
        del payload["unit"]
        with pytest.raises(ValidationError) as exc:
            stock_service.create_raw_material(payload)
        assert exc.value.field == "unit"

        with pytest.raises(ValidationError) as exc:
            stock_service.create_raw_material(_payload(deleted_at=None))
        assert exc.value.field == "deleted_at"

    def test_list_filters(self, db_session, material_a, material_b):
        material_b.is_active = False
        db_session.commit()

        assert [m.name for m in stock_service.list_raw_materials()] == ["Coffee beans", "Palm sugar"]
        assert [m.name for m in stock_service.list_raw_materials(active_only=True)] == ["Coffee beans"]
        assert [m.name for m in stock_service.list_raw_materials(name="sug")] == ["Palm sugar"]


class TestAdjustStock:
    def test_decrement_within_stock(self, material_a):
        material = stock_service.decrement_stock(material_a.id, 4)
        db.session.commit()
        assert material.stock == 6

    def test_decrement_to_exactly_zero(self, material_a):
        material = stock_service.decrement_stock(material_a.id, 10)
        db.session.commit()
        assert material.stock == 0

    def test_decrement_beyond_stock_changes_nothing(self, material_a):
        with pytest.raises(InsufficientStockError) as exc:
            stock_service.decrement_stock(material_a.id, 11)
        db.session.rollback()

        assert exc.value.shortfall == 1
        assert exc.value.to_dict()["available"] == 10
        assert db.session.get(RawMaterial, material_a.id).stock == 10

    def test_decrement_requires_positive_quantity(self, material_a):
        with pytest.raises(ValidationError):
            stock_service.decrement_stock(material_a.id, 0)

    def test_unknown_material(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.adjust_stock(404, -1)

    def test_restock_commits(self, material_a):
        stock_service.restock_raw_material(material_a.id, 5)
        db.session.expire_all()
        assert db.session.get(RawMaterial, material_a.id).stock == 15

    def test_restock_negative_beyond_stock(self, material_a):
        with pytest.raises(InsufficientStockError):
            stock_service.restock_raw_material(material_a.id, -50)
        db.session.expire_all()
        assert db.session.get(RawMaterial, material_a.id).stock == 10

    def test_restock_rejects_zero(self, material_a):
        with pytest.raises(ValidationError):
            stock_service.restock_raw_material(material_a.id, 0)


class TestSoftDelete:
    def test_soft_deleted_material_is_hidden(self, material_a, material_b):
        stock_service.soft_delete_raw_material(material_a.id)

        assert [m.id for m in stock_service.list_raw_materials()] == [material_b.id]
        assert {m.id for m in stock_service.list_raw_materials(include_deleted=True)} == {material_a.id, material_b.id}
        with pytest.raises(NotFoundError):
            stock_service.get_raw_material(material_a.id)
        assert stock_service.get_raw_material(material_a.id, include_deleted=True).is_deleted

        # Row is kept for history
        assert db.session.get(RawMaterial, material_a.id) is not None

    def test_restore(self, material_a):
        stock_service.soft_delete_raw_material(material_a.id)
        restored = stock_service.restore_raw_material(material_a.id)
        assert restored.deleted_at is None
        assert stock_service.get_raw_material(material_a.id).id == material_a.id

    def test_restore_live_material_conflicts(self, material_a):
        with pytest.raises(ConflictError):
            stock_service.restore_raw_material(material_a.id)

    def test_referenced_material_cannot_be_deleted(self, staff_a_actor, outlet_a, material_a):
        mos.create_material_order(
            actor=staff_a_actor,
            outlet_id=outlet_a.id,
            payment_method="cash",
            line_items=[{"raw_material_id": material_a.id, "quantity": 1}],
        )

        with pytest.raises(ConflictError):
            stock_service.soft_delete_raw_material(material_a.id)
        assert stock_service.get_raw_material(material_a.id).deleted_at is None

    def test_delete_all_refuses_when_any_referenced(self, staff_a_actor, outlet_a, material_a, material_b):
        mos.create_material_order(
            actor=staff_a_actor,
            outlet_id=outlet_a.id,
            payment_method="cash",
            line_items=[{"raw_material_id": material_b.id, "quantity": 1}],
        )

        with pytest.raises(ConflictError) as exc:
            stock_service.soft_delete_all_raw_materials()
        assert f"Palm sugar (ID: {material_b.id})" in str(exc.value)
        assert len(stock_service.list_raw_materials()) == 2

    def test_delete_all(self, material_a, material_b):
        assert stock_service.soft_delete_all_raw_materials() == 2
        assert stock_service.list_raw_materials() == []
        assert stock_service.soft_delete_all_raw_materials() == 0
