import pytest
from catalog.models import Product
from catalog.tests.factories import BrandFactory, ProductFactory
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient


@pytest.fixture
def staff_client():
    User = get_user_model()
    staff = User.objects.create_user(username="admin", email="admin@example.com", password="pass1234", is_staff=True)
    client = APIClient()
    client.force_authenticate(user=staff)
    return client


@pytest.mark.django_db
def test_create_product_requires_staff():
    User = get_user_model()
    regular = User.objects.create_user(username="user", email="user@example.com", password="pass1234")
    brand = BrandFactory()

    client = APIClient()
    resp_anon = client.post("/api/v1/catalog/products/", {"name": "Water", "sku": "W-1"}, format="json")
    assert resp_anon.status_code in (401, 403)

    client.force_authenticate(user=regular)
    resp_forbidden = client.post(
        "/api/v1/catalog/products/",
        {"name": "Water", "sku": "W-1", "brand": brand.id},
        format="json",
    )
    assert resp_forbidden.status_code == 403


@pytest.mark.django_db
def test_staff_creates_product_with_brand(staff_client):
    brand = BrandFactory(name="Aqua Fresh")

    resp = staff_client.post(
        "/api/v1/catalog/products/",
        {"name": "Mineral Water 600ml", "sku": "AQF-600", "brand": brand.id, "price": "5000.00"},
        format="json",
    )
    assert resp.status_code == 201
    assert resp.data["brand_name"] == "Aqua Fresh"
    assert resp.data["status"] == Product.STATUS_ACTIVE
    assert Product.objects.filter(sku="AQF-600").exists()


@pytest.mark.django_db
def test_product_sku_is_unique(staff_client):
    ProductFactory(sku="DUP-1")

    resp = staff_client.post("/api/v1/catalog/products/", {"name": "Other", "sku": "DUP-1"}, format="json")
    assert resp.status_code == 400
    assert "sku" in resp.data


@pytest.mark.django_db
def test_products_filter_by_brand_and_search(staff_client):
    b1 = BrandFactory()
    b2 = BrandFactory()
    p1 = ProductFactory(brand=b1, name="Potato Chips")
    p2 = ProductFactory(brand=b2, name="Mineral Water")

    resp = staff_client.get(f"/api/v1/catalog/products/?brand={b1.id}")
    assert resp.status_code == 200
    ids = {row["id"] for row in resp.json()["results"]}
    assert p1.id in ids and p2.id not in ids

    resp_search = staff_client.get("/api/v1/catalog/products/?search=water")
    ids = {row["id"] for row in resp_search.json()["results"]}
    assert ids == {p2.id}


@pytest.mark.django_db
def test_brand_crud(staff_client):
    resp = staff_client.post("/api/v1/catalog/brands/", {"name": "Crunch Co", "slug": "crunch-co"}, format="json")
    assert resp.status_code == 201
    brand_id = resp.data["id"]

    resp_patch = staff_client.patch(f"/api/v1/catalog/brands/{brand_id}/", {"tagline": "Snacks"}, format="json")
    assert resp_patch.status_code == 200
    assert resp_patch.data["tagline"] == "Snacks"

    resp_delete = staff_client.delete(f"/api/v1/catalog/brands/{brand_id}/")
    assert resp_delete.status_code == 204
