import datetime as dt

import pytest
from catalog.tests.factories import ProductFactory
from django.utils import timezone
from inventory.models import Batch, StockIn
from locations.tests.factories import UserFactory, VendingMachineFactory, WarehouseFactory
from rest_framework.test import APIClient


@pytest.fixture
def api():
    client = APIClient()
    client.force_authenticate(user=UserFactory())
    return client


@pytest.fixture
def setup():
    return {
        "warehouse": WarehouseFactory(),
        "machine": VendingMachineFactory(),
        "product": ProductFactory(),
    }


def post_stock_in(api, warehouse, product, quantity, expiry=None):
    line = {"product_id": product.id, "quantity": quantity}
    if expiry:
        line["expiry_date"] = expiry.isoformat()
    return api.post(
        "/api/v1/inventory/stock-ins/",
        {"warehouse_id": warehouse.id, "date": "2025-01-01", "lines": [line]},
        format="json",
    )


def post_transfer(api, warehouse, machine, product, quantity):
    return api.post(
        "/api/v1/inventory/stock-transfers/",
        {
            "from_warehouse_id": warehouse.id,
            "to_vending_machine_id": machine.id,
            "date": "2025-01-02",
            "reference": "PO-17",
            "lines": [{"product_id": product.id, "quantity": quantity}],
        },
        format="json",
    )


def post_return(api, machine, warehouse, product, quantity):
    return api.post(
        "/api/v1/inventory/stock-returns/",
        {
            "source_type": "vending_machine",
            "source_id": machine.id,
            "to_warehouse_id": warehouse.id,
            "date": "2025-01-03",
            "lines": [{"product_id": product.id, "quantity": quantity}],
        },
        format="json",
    )


@pytest.mark.django_db
def test_create_stock_in(api, setup):
    resp = post_stock_in(api, setup["warehouse"], setup["product"], 100, expiry=dt.date(2025, 1, 10))

    assert resp.status_code == 201
    data = resp.json()
    assert data["code"] == f"STK-IN-{data['id']}"
    assert data["status"] == "committed"
    assert data["total_quantity"] == 100
    assert data["lines"][0]["batch_code"] == data["code"]
    assert data["warehouse_name"] == setup["warehouse"].name


@pytest.mark.django_db
def test_stock_in_validation_errors(api, setup):
    resp_qty = post_stock_in(api, setup["warehouse"], setup["product"], 0)
    assert resp_qty.status_code == 400

    resp_unknown = api.post(
        "/api/v1/inventory/stock-ins/",
        {"warehouse_id": 999999, "lines": [{"product_id": setup["product"].id, "quantity": 1}]},
        format="json",
    )
    assert resp_unknown.status_code == 400
    assert resp_unknown.json()["code"] == "invalid_request"

    resp_empty = api.post(
        "/api/v1/inventory/stock-ins/", {"warehouse_id": setup["warehouse"].id, "lines": []}, format="json"
    )
    assert resp_empty.status_code == 400
    assert not StockIn.objects.exists()


@pytest.mark.django_db
def test_transfer_returns_fefo_allocations(api, setup):
    w, m, p = setup["warehouse"], setup["machine"], setup["product"]
    post_stock_in(api, w, p, 100, expiry=dt.date(2025, 1, 10))
    post_stock_in(api, w, p, 50, expiry=dt.date(2025, 1, 5))

    resp = post_transfer(api, w, m, p, 120)

    assert resp.status_code == 201
    data = resp.json()
    assert data["code"] == f"STK-TRF-{data['id']}"
    assert data["reference"] == "PO-17"
    allocations = data["lines"][0]["allocations"]
    assert [(a["expiry_date"], a["quantity"]) for a in allocations] == [("2025-01-05", 50), ("2025-01-10", 70)]


@pytest.mark.django_db
def test_transfer_insufficient_stock_is_conflict(api, setup):
    w, m, p = setup["warehouse"], setup["machine"], setup["product"]
    post_stock_in(api, w, p, 100, expiry=dt.date(2025, 1, 10))
    post_stock_in(api, w, p, 50, expiry=dt.date(2025, 1, 5))

    resp = post_transfer(api, w, m, p, 200)

    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "insufficient_stock"
    assert (body["requested"], body["available"], body["shortfall"]) == (200, 150, 50)
    assert sorted(Batch.objects.values_list("quantity_remaining", flat=True)) == [50, 100]


@pytest.mark.django_db
def test_remove_transfer_product_line(api, setup):
    w, m, p = setup["warehouse"], setup["machine"], setup["product"]
    post_stock_in(api, w, p, 30)
    transfer_id = post_transfer(api, w, m, p, 20).json()["id"]

    resp = api.delete(f"/api/v1/inventory/stock-transfers/{transfer_id}/products/{p.id}/")

    assert resp.status_code == 200
    assert resp.json()["status"] == "reversed"
    assert resp.json()["lines"] == []
    available = api.get(f"/api/v1/inventory/stock-balances/available/?product_id={p.id}&warehouse_id={w.id}")
    assert available.json()["available"] == 30

    resp_again = api.delete(f"/api/v1/inventory/stock-transfers/{transfer_id}/products/{p.id}/")
    assert resp_again.status_code == 400


@pytest.mark.django_db
def test_return_exceeding_machine_stock_is_conflict(api, setup):
    w, m, p = setup["warehouse"], setup["machine"], setup["product"]
    post_stock_in(api, w, p, 30)
    post_transfer(api, w, m, p, 15)

    resp = post_return(api, m, w, p, 20)

    assert resp.status_code == 409
    assert resp.json()["code"] == "insufficient_source_stock"
    assert resp.json()["available"] == 15


@pytest.mark.django_db
def test_remove_return_line_after_consumption_is_conflict(api, setup):
    w, m, p = setup["warehouse"], setup["machine"], setup["product"]
    post_stock_in(api, w, p, 10)
    post_transfer(api, w, m, p, 10)
    return_id = post_return(api, m, w, p, 10).json()["id"]
    post_transfer(api, w, m, p, 4)

    resp = api.delete(f"/api/v1/inventory/stock-returns/{return_id}/products/{p.id}/")

    assert resp.status_code == 409
    assert resp.json()["code"] == "insufficient_quantity"
    detail = api.get(f"/api/v1/inventory/stock-returns/{return_id}/")
    assert detail.json()["status"] == "committed"
    assert len(detail.json()["lines"]) == 1


@pytest.mark.django_db
def test_delete_stock_in_reverses_record(api, setup):
    stock_in_id = post_stock_in(api, setup["warehouse"], setup["product"], 10).json()["id"]

    resp = api.delete(f"/api/v1/inventory/stock-ins/{stock_in_id}/")

    assert resp.status_code == 200
    assert resp.json()["status"] == "reversed"
    assert api.get("/api/v1/inventory/stock-ins/999999/").status_code == 404


@pytest.mark.django_db
def test_list_stock_ins_filtered_by_warehouse(api, setup):
    other = WarehouseFactory()
    post_stock_in(api, setup["warehouse"], setup["product"], 10)
    post_stock_in(api, other, setup["product"], 10)

    resp = api.get(f"/api/v1/inventory/stock-ins/?warehouse={other.id}")

    assert resp.status_code == 200
    assert [row["warehouse"] for row in resp.json()["results"]] == [other.id]


@pytest.mark.django_db
def test_stock_balances_and_available(api, setup):
    w, p = setup["warehouse"], setup["product"]
    post_stock_in(api, w, p, 10, expiry=dt.date(2025, 2, 1))
    post_stock_in(api, w, p, 5)

    resp = api.get(f"/api/v1/inventory/stock-balances/?warehouse_id={w.id}")
    assert resp.status_code == 200
    rows = resp.json()["results"]
    assert [(r["quantity_remaining"], r["expiry_date"]) for r in rows] == [(10, "2025-02-01"), (5, None)]
    assert rows[0]["batch_code"].startswith("STK-IN-")

    resp_available = api.get(f"/api/v1/inventory/stock-balances/available/?product_id={p.id}&warehouse_id={w.id}")
    assert resp_available.json() == {"product_id": p.id, "warehouse_id": w.id, "available": 15}

    assert api.get("/api/v1/inventory/stock-balances/available/?product_id=1").status_code == 400


@pytest.mark.django_db
def test_expiry_alerts_endpoint(api, setup):
    w, p = setup["warehouse"], setup["product"]
    today = timezone.localdate()
    post_stock_in(api, w, p, 5, expiry=today - dt.timedelta(days=1))
    post_stock_in(api, w, p, 5, expiry=today + dt.timedelta(days=3))
    post_stock_in(api, w, p, 5, expiry=today + dt.timedelta(days=20))

    resp = api.get("/api/v1/inventory/expiry-alerts/?days_ahead=7")

    assert resp.status_code == 200
    body = resp.json()
    assert body["days_ahead"] == 7
    assert body["count"] == 2
    assert [r["status"] for r in body["results"]] == ["expired", "expiring_soon"]

    default_window = api.get("/api/v1/inventory/expiry-alerts/").json()
    assert default_window["days_ahead"] == 30
    assert default_window["count"] == 3

    assert api.get("/api/v1/inventory/expiry-alerts/?days_ahead=-1").status_code == 400


@pytest.mark.django_db
def test_summary_endpoint(api, setup):
    post_stock_in(api, setup["warehouse"], setup["product"], 12)

    resp = api.get(f"/api/v1/inventory/summary/?warehouse_id={setup['warehouse'].id}")

    assert resp.status_code == 200
    assert resp.json()["total_available"] == 12
    assert resp.json()["low_stock"] == 0


@pytest.mark.django_db
def test_put_replaces_transfer_lines(api, setup):
    w, m, p = setup["warehouse"], setup["machine"], setup["product"]
    post_stock_in(api, w, p, 100, expiry=dt.date(2025, 1, 10))
    post_stock_in(api, w, p, 50, expiry=dt.date(2025, 1, 5))
    transfer_id = post_transfer(api, w, m, p, 60).json()["id"]
    payload = {
        "from_warehouse_id": w.id,
        "to_vending_machine_id": m.id,
        "date": "2025-01-02",
        "lines": [{"product_id": p.id, "quantity": 120}],
    }

    resp = api.put(f"/api/v1/inventory/stock-transfers/{transfer_id}/", payload, format="json")

    assert resp.status_code == 200
    allocations = resp.json()["lines"][0]["allocations"]
    assert [(a["expiry_date"], a["quantity"]) for a in allocations] == [("2025-01-05", 50), ("2025-01-10", 70)]
    assert resp.json()["code"] == f"STK-TRF-{transfer_id}"

    payload["lines"][0]["quantity"] = 151
    resp_short = api.put(f"/api/v1/inventory/stock-transfers/{transfer_id}/", payload, format="json")
    assert resp_short.status_code == 409
    assert resp_short.json()["code"] == "insufficient_stock"
    assert api.get(f"/api/v1/inventory/stock-transfers/{transfer_id}/").json()["total_quantity"] == 120


@pytest.mark.django_db
def test_put_edits_stock_in_and_return(api, setup):
    w, m, p = setup["warehouse"], setup["machine"], setup["product"]
    stock_in_id = post_stock_in(api, w, p, 30).json()["id"]

    resp = api.put(
        f"/api/v1/inventory/stock-ins/{stock_in_id}/",
        {
            "warehouse_id": w.id,
            "date": "2025-01-01",
            "notes": "recount",
            "lines": [{"product_id": p.id, "quantity": 40}],
        },
        format="json",
    )
    assert resp.status_code == 200
    assert (resp.json()["total_quantity"], resp.json()["notes"]) == (40, "recount")

    post_transfer(api, w, m, p, 15)
    return_id = post_return(api, m, w, p, 5).json()["id"]
    edit = {
        "source_type": "vending_machine",
        "source_id": m.id,
        "to_warehouse_id": w.id,
        "date": "2025-01-03",
        "lines": [{"product_id": p.id, "quantity": 16}],
    }
    resp_over = api.put(f"/api/v1/inventory/stock-returns/{return_id}/", edit, format="json")
    assert resp_over.status_code == 409
    assert resp_over.json()["code"] == "insufficient_source_stock"

    edit["lines"][0]["quantity"] = 15
    assert api.put(f"/api/v1/inventory/stock-returns/{return_id}/", edit, format="json").status_code == 200
    available = api.get(f"/api/v1/inventory/stock-balances/available/?product_id={p.id}&warehouse_id={w.id}")
    assert available.json()["available"] == 40


@pytest.mark.django_db
def test_transfer_line_removal_after_return_is_conflict(api, setup):
    w, m, p = setup["warehouse"], setup["machine"], setup["product"]
    post_stock_in(api, w, p, 100)
    transfer_id = post_transfer(api, w, m, p, 60).json()["id"]
    post_return(api, m, w, p, 60)

    resp = api.delete(f"/api/v1/inventory/stock-transfers/{transfer_id}/products/{p.id}/")

    assert resp.status_code == 409
    assert resp.json()["code"] == "insufficient_source_stock"
    assert api.delete(f"/api/v1/inventory/stock-transfers/{transfer_id}/").status_code == 409
