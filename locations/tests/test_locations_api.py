import datetime as dt

import pytest
from catalog.tests.factories import ProductFactory
from inventory.services import receive, return_in, transfer_out
from locations.models import VendingMachine, Warehouse
from locations.tests.factories import UserFactory, VendingMachineFactory, WarehouseFactory
from rest_framework.test import APIClient


@pytest.fixture
def staff_client():
    client = APIClient()
    client.force_authenticate(user=UserFactory(is_staff=True))
    return client


@pytest.mark.django_db
def test_warehouse_crud_requires_staff(staff_client):
    client = APIClient()
    client.force_authenticate(user=UserFactory())
    resp_forbidden = client.post("/api/v1/locations/warehouses/", {"name": "Gudang A"}, format="json")
    assert resp_forbidden.status_code == 403

    pic = UserFactory()
    resp = staff_client.post(
        "/api/v1/locations/warehouses/",
        {"name": "Gudang A", "address": "Jl. Merdeka 1", "pic": pic.id},
        format="json",
    )
    assert resp.status_code == 201
    warehouse = Warehouse.objects.get(id=resp.data["id"])
    assert warehouse.pic_id == pic.id


@pytest.mark.django_db
def test_vending_machines_filter_by_status(staff_client):
    active = VendingMachineFactory()
    inactive = VendingMachineFactory(status=VendingMachine.STATUS_INACTIVE)

    resp = staff_client.get(f"/api/v1/locations/vending-machines/?status={VendingMachine.STATUS_ACTIVE}")
    assert resp.status_code == 200
    ids = {row["id"] for row in resp.json()["results"]}
    assert active.id in ids and inactive.id not in ids


@pytest.mark.django_db
def test_vending_machine_stock_is_derived_from_transfers_and_returns():
    warehouse = WarehouseFactory()
    machine = VendingMachineFactory()
    product = ProductFactory()
    day = dt.date(2025, 1, 1)
    receive(warehouse_id=warehouse.id, date=day, lines=[{"product_id": product.id, "quantity": 50}])
    transfer_out(
        from_warehouse_id=warehouse.id,
        to_vending_machine_id=machine.id,
        date=day,
        lines=[{"product_id": product.id, "quantity": 30}],
    )
    return_in(
        source_type="vending_machine",
        source_id=machine.id,
        to_warehouse_id=warehouse.id,
        date=day,
        lines=[{"product_id": product.id, "quantity": 12}],
    )

    client = APIClient()
    client.force_authenticate(user=UserFactory())
    resp = client.get(f"/api/v1/locations/vending-machines/{machine.id}/stock/")
    assert resp.status_code == 200
    assert resp.json() == [
        {
            "product_id": product.id,
            "product_name": product.name,
            "transferred": 30,
            "returned": 12,
            "quantity": 18,
        }
    ]


@pytest.mark.django_db
def test_vending_machine_stock_unknown_machine_is_404():
    client = APIClient()
    client.force_authenticate(user=UserFactory())
    resp = client.get("/api/v1/locations/vending-machines/999999/stock/")
    assert resp.status_code == 404
