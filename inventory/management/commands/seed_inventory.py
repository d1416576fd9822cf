"""Seed demo master data and opening stock for development sanity-check.

Creates a couple of brands and products, a warehouse, a vending machine and
one opening stock-in. Re-running is idempotent; existing items are reused by
slug/sku/name and the opening stock-in is only received once.
"""

import datetime as dt

from catalog.models import Brand, Product
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone
from django.utils.text import slugify
from inventory.models import StockIn
from inventory.services import receive
from locations.models import VendingMachine, Warehouse

OPENING_STOCK_NOTE = "Opening stock (seed)"


class Command(BaseCommand):
    help = "Seed demo brands, products, locations and an opening stock-in"

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write("Seeding inventory data...")

        brands = {}
        for name, tagline in [
            ("Aqua Fresh", "Bottled water"),
            ("Crunch Co", "Snacks and chips"),
        ]:
            brand, _ = Brand.objects.get_or_create(slug=slugify(name), defaults={"name": name, "tagline": tagline})
            brands[name] = brand

        products = [
            {"sku": "AQF-600", "name": "Mineral Water 600ml", "brand": "Aqua Fresh", "price": "5000.00"},
            {"sku": "AQF-1500", "name": "Mineral Water 1.5L", "brand": "Aqua Fresh", "price": "8000.00"},
            {"sku": "CRC-POT-68", "name": "Potato Chips 68g", "brand": "Crunch Co", "price": "12000.00"},
        ]
        product_objs = {}
        for data in products:
            product, _ = Product.objects.get_or_create(
                sku=data["sku"],
                defaults={"name": data["name"], "brand": brands[data["brand"]], "price": data["price"]},
            )
            product_objs[data["sku"]] = product

        warehouse, _ = Warehouse.objects.get_or_create(
            name="Central Warehouse", defaults={"address": "Jl. Gudang No. 1"}
        )
        VendingMachine.objects.get_or_create(name="Lobby VM-01", defaults={"location": "Head office lobby"})

        if StockIn.objects.filter(warehouse=warehouse, notes=OPENING_STOCK_NOTE).exists():
            self.stdout.write(self.style.WARNING("Opening stock already received; skipping."))
        else:
            today = timezone.localdate()
            water, big_water, chips = (product_objs[sku].id for sku in ("AQF-600", "AQF-1500", "CRC-POT-68"))
            receive(
                warehouse_id=warehouse.id,
                date=today,
                notes=OPENING_STOCK_NOTE,
                lines=[
                    {"product_id": water, "quantity": 120, "expiry_date": today + dt.timedelta(days=5)},
                    {"product_id": water, "quantity": 80, "expiry_date": today + dt.timedelta(days=90)},
                    {"product_id": big_water, "quantity": 60, "expiry_date": today + dt.timedelta(days=20)},
                    {"product_id": chips, "quantity": 40},
                ],
            )

        self.stdout.write(self.style.SUCCESS("Inventory seed complete."))
