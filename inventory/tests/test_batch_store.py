import datetime as dt

import pytest
from inventory import batch_store
from inventory.exceptions import InsufficientQuantity, InvalidRequest
from inventory.models import Batch
from inventory.tests.factories import BatchFactory, StockInFactory


@pytest.mark.django_db
def test_find_eligible_batches_orders_fefo_and_skips_empty():
    undated = BatchFactory(quantity_remaining=5, expiry_date=None)
    kw = {"product": undated.product, "warehouse": undated.warehouse}
    late = BatchFactory(quantity_remaining=5, expiry_date=dt.date(2025, 6, 1), **kw)
    soon = BatchFactory(quantity_remaining=5, expiry_date=dt.date(2025, 2, 1), **kw)
    BatchFactory(quantity_remaining=0, expiry_date=dt.date(2025, 1, 1), **kw)

    batches = batch_store.find_eligible_batches(product_id=undated.product_id, warehouse_id=undated.warehouse_id)

    assert [b.id for b in batches] == [soon.id, late.id, undated.id]


@pytest.mark.django_db
def test_find_eligible_batches_empty_is_not_an_error():
    assert batch_store.find_eligible_batches(product_id=123, warehouse_id=456) == []


@pytest.mark.django_db
def test_credit_merges_same_source_and_expiry():
    stock_in = StockInFactory()
    batch = BatchFactory(stock_in=stock_in, warehouse=stock_in.warehouse, expiry_date=dt.date(2025, 5, 1))
    kwargs = {
        "product_id": batch.product_id,
        "warehouse_id": batch.warehouse_id,
        "source_kind": Batch.SOURCE_STOCK_IN,
        "source_id": stock_in.id,
        "date_in": dt.date(2025, 1, 1),
    }

    merged = batch_store.credit(quantity=7, expiry_date=dt.date(2025, 5, 1), **kwargs)
    separate = batch_store.credit(quantity=3, expiry_date=dt.date(2025, 8, 1), **kwargs)

    assert merged.id == batch.id
    assert merged.quantity_remaining == 17
    assert separate.id != batch.id
    assert separate.quantity_remaining == 3


@pytest.mark.django_db
def test_debit_and_restore_are_inverse():
    batch = BatchFactory(quantity_remaining=10)

    batch_store.debit(batch_id=batch.id, quantity=4)
    batch.refresh_from_db()
    assert batch.quantity_remaining == 6

    batch_store.restore(batch_id=batch.id, quantity=4)
    batch.refresh_from_db()
    assert batch.quantity_remaining == 10


@pytest.mark.django_db
def test_debit_beyond_remaining_fails_without_effect():
    batch = BatchFactory(quantity_remaining=3)

    with pytest.raises(InsufficientQuantity) as excinfo:
        batch_store.debit(batch_id=batch.id, quantity=5)

    assert excinfo.value.available == 3
    batch.refresh_from_db()
    assert batch.quantity_remaining == 3


@pytest.mark.django_db
def test_debit_unknown_batch_is_invalid():
    with pytest.raises(InvalidRequest):
        batch_store.debit(batch_id=999999, quantity=1)


@pytest.mark.django_db
def test_restore_is_uncapped_and_exhausted_batches_persist():
    batch = BatchFactory(quantity_remaining=2)

    batch_store.debit(batch_id=batch.id, quantity=2)
    assert Batch.objects.filter(id=batch.id, quantity_remaining=0).exists()

    batch_store.restore(batch_id=batch.id, quantity=50)
    batch.refresh_from_db()
    assert batch.quantity_remaining == 50
