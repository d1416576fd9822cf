import datetime as dt

import pytest
from catalog.tests.factories import ProductFactory
from inventory.models import Batch
from inventory.selectors import (
    get_summary,
    list_expiry_alerts,
    list_stock_balances,
    low_stock_count,
    most_transferred_products,
    vending_machine_stock,
)
from inventory.services import receive, remove_transfer_line, return_in, transfer_out
from locations.tests.factories import UserFactory, VendingMachineFactory, WarehouseFactory

TODAY = dt.date(2025, 3, 10)


def days(n):
    return TODAY + dt.timedelta(days=n)


def stock(warehouse, product, quantity, expiry=None, date=TODAY):
    return receive(
        warehouse_id=warehouse.id,
        date=date,
        lines=[{"product_id": product.id, "quantity": quantity, "expiry_date": expiry}],
    )


def send(warehouse, machine, product, quantity, date=TODAY):
    return transfer_out(
        from_warehouse_id=warehouse.id,
        to_vending_machine_id=machine.id,
        date=date,
        lines=[{"product_id": product.id, "quantity": quantity}],
    )


@pytest.mark.django_db
def test_expiry_alerts_window_status_and_order():
    warehouse = WarehouseFactory(name="Central")
    product = ProductFactory(name="Water")
    stock(warehouse, product, 5, expiry=days(20))
    stock(warehouse, product, 5, expiry=days(-2))
    stock(warehouse, product, 5, expiry=days(0))
    stock(warehouse, product, 5, expiry=days(45))
    stock(warehouse, product, 5)
    emptied = stock(warehouse, product, 5, expiry=days(-10))
    Batch.objects.filter(stock_in=emptied).update(quantity_remaining=0)

    alerts = list_expiry_alerts(look_ahead_days=30, today=TODAY)

    assert [(a["expiry_date"], a["status"], a["days_until_expiry"]) for a in alerts] == [
        (days(-2).isoformat(), "expired", -2),
        (days(0).isoformat(), "expiring_soon", 0),
        (days(20).isoformat(), "warning", 20),
    ]
    assert alerts[0]["warehouse_name"] == "Central"
    assert alerts[0]["product_name"] == "Water"
    assert alerts[0]["quantity"] == 5
    assert alerts[0]["batch_code"].startswith("STK-IN-")

    short = list_expiry_alerts(look_ahead_days=7, today=TODAY)
    assert [a["status"] for a in short] == ["expired", "expiring_soon"]


@pytest.mark.django_db
def test_expiry_alerts_scoped_by_warehouse_and_pic():
    pic = UserFactory()
    mine = WarehouseFactory(pic=pic)
    other = WarehouseFactory()
    product = ProductFactory()
    stock(mine, product, 3, expiry=days(1))
    stock(other, product, 3, expiry=days(1))

    by_pic = list_expiry_alerts(look_ahead_days=7, today=TODAY, user_id=pic.id)
    by_warehouse = list_expiry_alerts(look_ahead_days=7, today=TODAY, warehouse_id=other.id)

    assert [a["warehouse_id"] for a in by_pic] == [mine.id]
    assert [a["warehouse_id"] for a in by_warehouse] == [other.id]


@pytest.mark.django_db
def test_stock_balances_are_fefo_ordered_and_skip_empty():
    warehouse = WarehouseFactory()
    machine = VendingMachineFactory()
    product = ProductFactory()
    stock(warehouse, product, 4)
    stock(warehouse, product, 4, expiry=days(30))
    stock(warehouse, product, 4, expiry=days(3))
    send(warehouse, machine, product, 4)

    rows = list(list_stock_balances(warehouse_id=warehouse.id))

    assert [b.expiry_date for b in rows] == [days(30), None]


@pytest.mark.django_db
def test_most_transferred_products_window_and_ties():
    warehouse = WarehouseFactory()
    machine = VendingMachineFactory()
    p1, p2, p3 = ProductFactory(), ProductFactory(), ProductFactory()
    for p in (p1, p2, p3):
        stock(warehouse, p, 100, date=days(-60))
    send(warehouse, machine, p2, 10, date=days(-1))
    send(warehouse, machine, p1, 10, date=days(-5))
    send(warehouse, machine, p3, 25, date=days(-2))
    send(warehouse, machine, p3, 50, date=days(-45))
    # a 30-day window is today and the 29 days before it
    send(warehouse, machine, p2, 7, date=days(-30))
    send(warehouse, machine, p1, 1, date=days(-29))
    reversed_transfer = send(warehouse, machine, p1, 80, date=days(-1))
    remove_transfer_line(transfer_id=reversed_transfer.id, product_id=p1.id)

    top = most_transferred_products(days=30, limit=5, today=TODAY)

    assert [(row["product_id"], row["total_quantity"]) for row in top] == [(p3.id, 25), (p1.id, 11), (p2.id, 10)]
    assert most_transferred_products(days=30, limit=1, today=TODAY)[0]["product_id"] == p3.id


@pytest.mark.django_db
def test_low_stock_counts_product_warehouse_pairs():
    w1, w2 = WarehouseFactory(), WarehouseFactory()
    plenty, scarce = ProductFactory(), ProductFactory()
    stock(w1, plenty, 50)
    stock(w1, scarce, 4)
    stock(w1, scarce, 4)
    stock(w2, plenty, 10)

    assert low_stock_count(threshold=10) == 2
    assert low_stock_count(threshold=10, warehouse_id=w1.id) == 1
    assert low_stock_count(threshold=5) == 0


@pytest.mark.django_db
def test_vending_machine_stock_nets_returns():
    warehouse = WarehouseFactory()
    machine = VendingMachineFactory()
    water, chips = ProductFactory(), ProductFactory()
    stock(warehouse, water, 40)
    stock(warehouse, chips, 40)
    send(warehouse, machine, water, 20)
    send(warehouse, machine, chips, 5)
    return_in(
        source_type="vending_machine",
        source_id=machine.id,
        to_warehouse_id=warehouse.id,
        date=TODAY,
        lines=[{"product_id": water.id, "quantity": 8}],
    )

    rows = {row["product_id"]: row for row in vending_machine_stock(vending_machine_id=machine.id)}

    assert rows[water.id]["quantity"] == 12
    assert (rows[water.id]["transferred"], rows[water.id]["returned"]) == (20, 8)
    assert rows[chips.id]["quantity"] == 5


@pytest.mark.django_db
def test_summary_totals():
    warehouse = WarehouseFactory()
    machine = VendingMachineFactory()
    product = ProductFactory()
    stock(warehouse, product, 100, expiry=days(3))
    stock(warehouse, product, 30, expiry=days(-1), date=days(-20))
    send(warehouse, machine, product, 40)

    summary = get_summary(today=TODAY)

    assert summary["total_available"] == 90
    # FEFO drained the expired batch first
    assert summary["expiry"] == {"expired": 0, "expiring_soon": 1, "warning": 0}
    assert summary["today"] == {"stock_ins": 1, "transfers": 1, "returns": 0}
    assert summary["most_transferred_products"][0]["total_quantity"] == 40
    assert [r["total_quantity"] for r in summary["recent_stock_ins"]] == [100, 30]
    assert summary["recent_transfers"][0]["location"] == machine.name
    assert summary["batches"] == {"total": 2, "in_stock": 1}


@pytest.mark.django_db
def test_summary_is_cached_until_a_ledger_change_commits(settings, django_capture_on_commit_callbacks):
    settings.CACHES = {"default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache", "LOCATION": "summary"}}
    warehouse = WarehouseFactory()
    product = ProductFactory()

    assert get_summary(today=TODAY)["total_available"] == 0

    # Not committed yet: the cached summary is still served
    stock(warehouse, product, 10)
    assert get_summary(today=TODAY)["total_available"] == 0

    with django_capture_on_commit_callbacks(execute=True):
        stock(warehouse, product, 5)
    assert get_summary(today=TODAY)["total_available"] == 15
