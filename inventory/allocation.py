"""FEFO/FIFO allocation planning.

Pure computation over batch-like objects (anything with ``id``,
``quantity_remaining``, ``expiry_date`` and ``date_in``); the caller is
responsible for reading the batches under a lock and for applying the
resulting debits.
"""

from dataclasses import dataclass
from typing import Iterable, List

from .exceptions import InsufficientStock, InvalidRequest


@dataclass(frozen=True)
class AllocationLine:
    batch_id: int
    quantity: int


def fefo_key(batch):
    """Sort key: dated batches by expiry, undated after them by intake date; then intake date, then id."""

    if batch.expiry_date is None:
        return (1, batch.date_in, batch.date_in, batch.id)
    return (0, batch.expiry_date, batch.date_in, batch.id)


def order_batches(batches: Iterable) -> list:
    return sorted((b for b in batches if b.quantity_remaining > 0), key=fefo_key)


def plan_allocation(batches: Iterable, requested: int, *, product_id=None, warehouse_id=None) -> List[AllocationLine]:
    """Select batches for ``requested`` units, earliest expiry first.

    Takes ``min(remaining, still_needed)`` from each batch in FEFO order. Raises
    ``InsufficientStock`` when the batches cannot cover the request; nothing
    is debited here, so a failed plan has no effect.
    """

    if requested is None or int(requested) <= 0:
        raise InvalidRequest("Quantity must be positive", product_id=product_id, quantity=requested)
    requested = int(requested)

    ordered = order_batches(batches)
    lines: List[AllocationLine] = []
    needed = requested
    for batch in ordered:
        if needed == 0:
            break
        take = min(int(batch.quantity_remaining), needed)
        lines.append(AllocationLine(batch_id=batch.id, quantity=take))
        needed -= take

    if needed > 0:
        available = sum(int(b.quantity_remaining) for b in ordered)
        raise InsufficientStock(
            product_id=product_id,
            warehouse_id=warehouse_id,
            requested=requested,
            available=available,
        )
    return lines
