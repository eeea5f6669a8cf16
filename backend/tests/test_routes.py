"""
HTTP surface tests: authentication, role gates and error-to-status mapping.
"""

import io

import pytest

from franchise_pos.extensions import db
from franchise_pos.models import RawMaterial
from franchise_pos.services import material_order_service as mos
from franchise_pos.services import session_service


TEST_PASSWORD = "Password123"


def _create_order(client, headers, outlet, material, quantity=1):
    return client.post(
        "/api/material-orders",
        json={
            "franchise_id": outlet.id,
            "payment_method": "cash",
            "materials": [{"raw_material_id": material.id, "quantity": quantity}],
        },
        headers=headers,
    )


class TestHealth:
    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"


class TestAuthentication:
    def test_login_me_logout(self, client, staff_a):
        response = client.post("/api/auth/login", json={"username": "staff_a", "password": TEST_PASSWORD})
        assert response.status_code == 200
        token = response.get_json()["token"]
        headers = {"Authorization": f"Bearer {token}"}

        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.get_json()["user"]["role"] == "staff"

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_bad_password(self, client, staff_a):
        response = client.post("/api/auth/login", json={"username": "staff_a", "password": "Wrong12345"})
        assert response.status_code == 401

    def test_login_requires_fields(self, client, db_session):
        assert client.post("/api/auth/login", json={}).status_code == 400

    @pytest.mark.parametrize("header", [None, "Token abc", "Bearer not-a-real-token"])
    def test_protected_routes_need_valid_token(self, client, db_session, header):
        headers = {"Authorization": header} if header else {}
        response = client.get("/api/material-orders", headers=headers)
        assert response.status_code == 401

    def test_deactivated_user_token_rejected(self, client, staff_a, auth_headers):
        headers = auth_headers(staff_a)
        staff_a.is_active = False
        db.session.commit()
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_session_token_is_stored_hashed(self, db_session, staff_a):
        session, token = session_service.create_session(staff_a.id)
        assert session.token_hash != token
        assert session.token_hash == session_service.hash_token(token)


class TestMaterialOrderRoutes:
    def test_create_returns_items_and_total(self, client, staff_a, outlet_a, material_a, auth_headers):
        response = _create_order(client, auth_headers(staff_a), outlet_a, material_a, quantity=3)

        assert response.status_code == 201
        body = response.get_json()
        assert body["total_amount"] == 3000
        assert body["status"] == "pending"
        assert body["items"][0]["price_per_unit"] == 1000

    def test_validation_error_is_400_with_field(self, client, staff_a, outlet_a, material_a, auth_headers):
        response = _create_order(client, auth_headers(staff_a), outlet_a, material_a, quantity=0)
        assert response.status_code == 400
        assert response.get_json()["field"] == "materials[0].quantity"

    def test_other_outlet_is_403(self, client, staff_a, outlet_b, material_a, auth_headers):
        response = _create_order(client, auth_headers(staff_a), outlet_b, material_a)
        assert response.status_code == 403

    def test_staff_cannot_approve(self, client, staff_a, outlet_a, material_a, auth_headers):
        headers = auth_headers(staff_a)
        order_id = _create_order(client, headers, outlet_a, material_a).get_json()["id"]

        response = client.post(f"/api/material-orders/{order_id}/status", json={"status": "approved"}, headers=headers)
        assert response.status_code == 403

    def test_owner_lifecycle_and_invalid_state(self, client, owner, staff_a, outlet_a, material_a, auth_headers):
        staff_headers = auth_headers(staff_a)
        owner_headers = auth_headers(owner)
        order_id = _create_order(client, staff_headers, outlet_a, material_a, quantity=4).get_json()["id"]

        skip = client.post(f"/api/material-orders/{order_id}/status", json={"status": "delivered"}, headers=owner_headers)
        assert skip.status_code == 409

        approved = client.post(f"/api/material-orders/{order_id}/status", json={"status": "approved"}, headers=owner_headers)
        assert approved.status_code == 200
        assert approved.get_json()["status"] == "approved"

        edit = client.put(
            f"/api/material-orders/{order_id}",
            json={"materials": [{"raw_material_id": material_a.id, "quantity": 1}]},
            headers=staff_headers,
        )
        assert edit.status_code == 409

        delivered = client.post(f"/api/material-orders/{order_id}/status", json={"status": "delivered"}, headers=owner_headers)
        assert delivered.status_code == 200
        db.session.expire_all()
        assert db.session.get(RawMaterial, material_a.id).stock == 6

    def test_insufficient_stock_is_409_with_details(self, client, owner, outlet_a, material_a, owner_actor, auth_headers):
        order = mos.create_material_order(
            actor=owner_actor,
            outlet_id=outlet_a.id,
            payment_method="cash",
            line_items=[{"raw_material_id": material_a.id, "quantity": 11}],
        )
        mos.transition_material_order(actor=owner_actor, order_id=order.id, target_status="approved")

        response = client.post(
            f"/api/material-orders/{order.id}/status", json={"status": "delivered"}, headers=auth_headers(owner)
        )

        assert response.status_code == 409
        assert response.get_json()["details"]["shortfall"] == 1

    def test_unknown_order_is_404(self, client, owner, auth_headers):
        assert client.get("/api/material-orders/999", headers=auth_headers(owner)).status_code == 404

    def test_cancel(self, client, staff_a, staff_b, outlet_a, material_a, auth_headers):
        order_id = _create_order(client, auth_headers(staff_a), outlet_a, material_a).get_json()["id"]

        assert client.post(f"/api/material-orders/{order_id}/cancel", headers=auth_headers(staff_b)).status_code == 403
        assert client.post(f"/api/material-orders/{order_id}/cancel", headers=auth_headers(staff_a)).status_code == 200
        assert client.get(f"/api/material-orders/{order_id}", headers=auth_headers(staff_a)).status_code == 404

    def test_delivering_cancelled_order_is_409(self, client, owner, staff_a, outlet_a, material_a, auth_headers):
        order_id = _create_order(client, auth_headers(staff_a), outlet_a, material_a).get_json()["id"]
        client.post(f"/api/material-orders/{order_id}/cancel", headers=auth_headers(staff_a))

        response = client.post(
            f"/api/material-orders/{order_id}/status", json={"status": "delivered"}, headers=auth_headers(owner)
        )

        assert response.status_code == 409
        assert "cancelled or does not exist" in response.get_json()["error"]

    def test_listing_is_scoped(self, client, staff_a, staff_b, outlet_a, outlet_b, material_a, auth_headers):
        _create_order(client, auth_headers(staff_a), outlet_a, material_a)
        _create_order(client, auth_headers(staff_b), outlet_b, material_a)

        body = client.get(
            f"/api/material-orders?franchise_id={outlet_b.id}", headers=auth_headers(staff_a)
        ).get_json()
        assert body["count"] == 1
        assert body["items"][0]["franchise_id"] == outlet_a.id


class TestRawMaterialRoutes:
    def test_owner_only_writes(self, client, owner, staff_a, auth_headers):
        payload = {"name": "Milk", "unit": "liter", "price": 1500, "purchase_price": 1200, "stock": 5}

        assert client.post("/api/raw-materials", json=payload, headers=auth_headers(staff_a)).status_code == 403
        response = client.post("/api/raw-materials", json=payload, headers=auth_headers(owner))
        assert response.status_code == 201

        listing = client.get("/api/raw-materials", headers=auth_headers(staff_a)).get_json()
        assert listing["count"] == 1

    def test_adjust_and_soft_delete(self, client, owner, material_a, auth_headers):
        headers = auth_headers(owner)

        too_much = client.post(f"/api/raw-materials/{material_a.id}/adjust", json={"delta": -11}, headers=headers)
        assert too_much.status_code == 409

        ok = client.post(f"/api/raw-materials/{material_a.id}/adjust", json={"delta": -4}, headers=headers)
        assert ok.get_json()["stock"] == 6

        assert client.delete(f"/api/raw-materials/{material_a.id}", headers=headers).status_code == 200
        assert client.get(f"/api/raw-materials/{material_a.id}", headers=headers).status_code == 404
        assert client.post(f"/api/raw-materials/{material_a.id}/restore", headers=headers).status_code == 200

    def test_delete_all_with_nothing_to_delete(self, client, owner, auth_headers):
        response = client.post("/api/raw-materials/delete-all", headers=auth_headers(owner))
        assert response.status_code == 200
        assert response.get_json()["deleted"] == 0


class TestOrderRoutes:
    def test_save_and_summarize(self, client, staff_a, food_product, auth_headers):
        headers = auth_headers(staff_a)
        response = client.post("/api/orders", json={
            "payment_amount": 5000, "sub_total": 4000, "tax": 400, "discount": 0,
            "discount_amount": 0, "service_charge": 100, "total": 4500,
            "payment_method": "cash", "total_item": 1, "id_kasir": 1, "nama_kasir": "Ani",
            "transaction_time": "2024-05-01T10:00:00", "order_type": "take_away",
            "order_items": [{"id_product": food_product.id, "quantity": 1, "price": 4000}],
        }, headers=headers)
        assert response.status_code == 201

        summary = client.get("/api/orders/summary", headers=headers).get_json()["data"]
        assert summary["cash_sales"] == 4500

    def test_summary_bad_range_is_400(self, client, owner, auth_headers):
        response = client.get(
            "/api/orders/summary?start_date=2024-01-05&end_date=2024-01-01", headers=auth_headers(owner)
        )
        assert response.status_code == 400

    def test_invalid_order_is_400(self, client, staff_a, auth_headers):
        response = client.post("/api/orders", json={"total": 1}, headers=auth_headers(staff_a))
        assert response.status_code == 400


class TestCategoryRoutes:
    def test_import_json_rows(self, client, owner, auth_headers):
        response = client.post(
            "/api/categories/import",
            json={"rows": [["Tea", None], ["Tea", None]]},
            headers=auth_headers(owner),
        )
        assert response.status_code == 201
        assert response.get_json()["imported"] == 1

    def test_import_csv_upload(self, client, owner, auth_headers):
        data = {"file": (io.BytesIO(b"name,description\nTea,Hot\nCoffee,\n"), "categories.csv")}
        response = client.post(
            "/api/categories/import",
            data=data,
            content_type="multipart/form-data",
            headers=auth_headers(owner),
        )
        assert response.status_code == 201
        assert response.get_json()["imported"] == 2

    def test_import_xlsx_upload(self, client, owner, auth_headers):
        from openpyxl import Workbook

        wb = Workbook()
        sheet = wb.active
        sheet.append(["Name", "Description"])
        sheet.append(["Juice", "Fresh"])
        sheet.append(["Juice", "Again"])
        buffer = io.BytesIO()
        wb.save(buffer)
        buffer.seek(0)

        response = client.post(
            "/api/categories/import",
            data={"file": (buffer, "categories.xlsx")},
            content_type="multipart/form-data",
            headers=auth_headers(owner),
        )
        body = response.get_json()
        assert response.status_code == 201
        assert body["imported"] == 1
        assert body["duplicates"] == ["Row 3: Duplicate category 'Juice' found in row 2"]

    def test_unsupported_upload(self, client, owner, auth_headers):
        response = client.post(
            "/api/categories/import",
            data={"file": (io.BytesIO(b"x"), "categories.pdf")},
            content_type="multipart/form-data",
            headers=auth_headers(owner),
        )
        assert response.status_code == 400

    def test_staff_cannot_import(self, client, staff_a, auth_headers):
        response = client.post("/api/categories/import", json={"rows": []}, headers=auth_headers(staff_a))
        assert response.status_code == 403
