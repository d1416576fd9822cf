"""Batch store: the only code that changes ``Batch.quantity_remaining``.

Callers run these inside ``transaction.atomic``. Debits and restores are
conditional single-row ``UPDATE`` statements, so a concurrent writer can
never drive a batch below zero even without a prior row lock.
"""

from typing import Iterable, Optional

from common.choices import SourceKind
from django.db.models import F, Q, QuerySet
from django.utils import timezone

from .allocation import fefo_key
from .exceptions import InsufficientQuantity, InvalidRequest
from .models import Batch


def eligible_batches_queryset(*, product_id: int, warehouse_id: int) -> QuerySet[Batch]:
    return Batch.objects.filter(
        product_id=product_id,
        warehouse_id=warehouse_id,
        quantity_remaining__gt=0,
    ).order_by(F("expiry_date").asc(nulls_last=True), "date_in", "id")


def find_eligible_batches(*, product_id: int, warehouse_id: int, for_update: bool = False) -> list:
    """Return batches with stock for the pair in FEFO order; empty list when none.

    With ``for_update`` the rows stay locked until the surrounding transaction ends.
    """

    if for_update:
        return sorted(lock_batches(product_ids=[product_id], warehouse_id=warehouse_id), key=fefo_key)
    return list(eligible_batches_queryset(product_id=product_id, warehouse_id=warehouse_id))


def lock_batches(
    *, batch_ids: Iterable[int] = (), product_ids: Iterable[int] = (), warehouse_id: Optional[int] = None
) -> list:
    """Lock the given batches plus every batch with stock for ``product_ids`` in ``warehouse_id``.

    Rows are always locked in ``(product_id, id)`` order, whichever operation
    asks, so two ledger writers never wait on each other in a cycle.
    """

    condition = Q(id__in=list(batch_ids))
    product_ids = list(product_ids)
    if product_ids and warehouse_id is not None:
        condition |= Q(product_id__in=product_ids, warehouse_id=warehouse_id, quantity_remaining__gt=0)
    return list(Batch.objects.select_for_update().filter(condition).order_by("product_id", "id"))


def credit(
    *,
    product_id: int,
    warehouse_id: int,
    source_kind: str,
    source_id: int,
    quantity: int,
    date_in,
    expiry_date=None,
    batch_number: str = "",
) -> Batch:
    """Add ``quantity`` to the batch for (product, warehouse, source, expiry), creating it if needed."""

    if quantity <= 0:
        raise InvalidRequest("Quantity must be positive", product_id=product_id, quantity=quantity)
    source_field = "stock_in_id" if source_kind == SourceKind.STOCK_IN else "stock_return_id"
    lookup = {
        "product_id": product_id,
        "warehouse_id": warehouse_id,
        "source_kind": source_kind,
        source_field: source_id,
        "expiry_date": expiry_date,
    }
    batch = Batch.objects.select_for_update().filter(**lookup).order_by("id").first()
    if batch is None:
        return Batch.objects.create(
            **lookup,
            quantity_remaining=quantity,
            date_in=date_in,
            batch_number=batch_number or "",
        )
    batch.quantity_remaining = F("quantity_remaining") + quantity
    fields = ["quantity_remaining", "updated_at"]
    if batch_number and not batch.batch_number:
        batch.batch_number = batch_number
        fields.append("batch_number")
    batch.save(update_fields=fields)
    batch.refresh_from_db(fields=["quantity_remaining"])
    return batch


def debit(*, batch_id: int, quantity: int) -> None:
    """Remove ``quantity`` from a batch, or raise ``InsufficientQuantity`` leaving it untouched."""

    if quantity <= 0:
        raise InvalidRequest("Quantity must be positive", batch_id=batch_id, quantity=quantity)
    updated = Batch.objects.filter(id=batch_id, quantity_remaining__gte=quantity).update(
        quantity_remaining=F("quantity_remaining") - quantity, updated_at=timezone.now()
    )
    if updated == 0:
        current = Batch.objects.filter(id=batch_id).values_list("quantity_remaining", flat=True).first()
        if current is None:
            raise InvalidRequest("Batch not found", batch_id=batch_id)
        raise InsufficientQuantity(batch_id=batch_id, requested=quantity, available=int(current))


def restore(*, batch_id: int, quantity: int) -> None:
    """Give back ``quantity`` previously debited; never capped."""

    if quantity <= 0:
        return
    Batch.objects.filter(id=batch_id).update(
        quantity_remaining=F("quantity_remaining") + quantity, updated_at=timezone.now()
    )
