"""
Concurrent delivery tests against a file-backed SQLite database.

Each worker runs in its own thread and app context, so every delivery gets
its own connection and transaction.
"""

import threading

import pytest

from franchise_pos import create_app
from franchise_pos.extensions import db
from franchise_pos.models import Outlet, RawMaterial, User
from franchise_pos.models.auth import ROLE_OWNER
from franchise_pos.services import material_order_service as mos
from franchise_pos.services.access_policy import Actor
from franchise_pos.services.material_order_service import InvalidStateError
from franchise_pos.services.stock_service import InsufficientStockError


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.db'}",
        # Writers wait for the database lock instead of failing immediately
        'SQLALCHEMY_ENGINE_OPTIONS': {"connect_args": {"timeout": 30}},
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def seeded(file_app):
    with file_app.app_context():
        outlet = Outlet(name="Concurrency Outlet")
        db.session.add(outlet)
        db.session.commit()

        owner = User(
            name="Owner",
            username="owner",
            email="owner@example.com",
            password_hash="dummy",
            role=ROLE_OWNER,
        )
        material = RawMaterial(name="Flour", unit="kg", price=100, purchase_price=80, stock=10)
        db.session.add_all([owner, material])
        db.session.commit()

        return {
            "outlet_id": outlet.id,
            "actor": Actor.from_user(owner),
            "material_id": material.id,
        }


def _approved_orders(app, seeded, quantities):
    ids = []
    with app.app_context():
        for quantity in quantities:
            order = mos.create_material_order(
                actor=seeded["actor"],
                outlet_id=seeded["outlet_id"],
                payment_method="cash",
                line_items=[{"raw_material_id": seeded["material_id"], "quantity": quantity}],
            )
            mos.transition_material_order(actor=seeded["actor"], order_id=order.id, target_status="approved")
            ids.append(order.id)
        db.session.remove()
    return ids


def _run_concurrently(app, target, args_list):
    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(len(args_list))

    def worker(*args):
        with app.app_context():
            try:
                barrier.wait()
                target(*args)
                with lock:
                    results.append("ok")
            except Exception as exc:
                with lock:
                    results.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=args) for args in args_list]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def _stock(app, material_id):
    with app.app_context():
        stock = db.session.get(RawMaterial, material_id).stock
        db.session.remove()
    return stock


def test_concurrent_deliveries_never_oversell(file_app, seeded):
    quantities = [3, 3, 3, 3, 3]
    order_ids = _approved_orders(file_app, seeded, quantities)

    def deliver(order_id):
        mos.transition_material_order(actor=seeded["actor"], order_id=order_id, target_status="delivered")

    results = _run_concurrently(file_app, deliver, [(oid,) for oid in order_ids])

    # Every order has the same quantity
    committed = 3 * results.count("ok")
    failures = [r for r in results if r != "ok"]

    final = _stock(file_app, seeded["material_id"])
    assert final == 10 - committed
    assert final >= 0
    assert results.count("ok") == 3
    assert all(isinstance(f, InsufficientStockError) for f in failures)


def test_concurrent_deliveries_within_stock_all_commit(file_app, seeded):
    quantities = [2, 3, 5]
    order_ids = _approved_orders(file_app, seeded, quantities)

    def deliver(order_id):
        mos.transition_material_order(actor=seeded["actor"], order_id=order_id, target_status="delivered")

    results = _run_concurrently(file_app, deliver, [(oid,) for oid in order_ids])

    assert results == ["ok", "ok", "ok"]
    assert _stock(file_app, seeded["material_id"]) == 0


def test_same_order_delivered_once(file_app, seeded):
    (order_id,) = _approved_orders(file_app, seeded, [4])

    def deliver():
        mos.transition_material_order(actor=seeded["actor"], order_id=order_id, target_status="delivered")

    results = _run_concurrently(file_app, deliver, [(), (), ()])

    assert results.count("ok") == 1
    failures = [r for r in results if r != "ok"]
    assert all(isinstance(f, InvalidStateError) for f in failures)
    assert _stock(file_app, seeded["material_id"]) == 6
