import datetime as dt

import factory
from catalog.tests.factories import ProductFactory
from factory.django import DjangoModelFactory
from inventory.models import Batch, StockIn
from locations.tests.factories import WarehouseFactory


class StockInFactory(DjangoModelFactory):
    class Meta:
        model = StockIn

    warehouse = factory.SubFactory(WarehouseFactory)
    date = dt.date(2025, 1, 1)


class BatchFactory(DjangoModelFactory):
    """A stock-in batch; ledger tests should prefer ``services.receive``."""

    class Meta:
        model = Batch

    product = factory.SubFactory(ProductFactory)
    warehouse = factory.SubFactory(WarehouseFactory)
    source_kind = Batch.SOURCE_STOCK_IN
    stock_in = factory.SubFactory(StockInFactory, warehouse=factory.SelfAttribute("..warehouse"))
    quantity_remaining = 10
    date_in = dt.date(2025, 1, 1)
