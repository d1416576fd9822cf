"""Inventory services: the ledger operations.

Each operation plans everything first and only then writes, inside a single
transaction. Locks are taken in one global order: the ledger record, then
vending machines by id, then batches by ``(product_id, id)``. Concurrent
operations therefore queue instead of allocating the same units, and never
deadlock against each other. Logging and summary invalidation run after
commit.
"""

import logging
from collections import OrderedDict, defaultdict
from typing import Iterable

from catalog.models import Product
from common.choices import ReturnSourceType, SourceKind
from django.db import transaction
from locations.models import VendingMachine, Warehouse

from . import batch_store
from .allocation import plan_allocation
from .exceptions import InsufficientSourceStock, InvalidRequest
from .models import (
    Batch,
    StockIn,
    StockInLine,
    StockReturn,
    StockReturnLine,
    StockTransfer,
    StockTransferLine,
    TransferAllocation,
)
from .selectors import invalidate_summaries, vending_machine_balance

logger = logging.getLogger("stockledger.inventory")


def _after_commit(event: str, **extra) -> None:
    def _emit():
        invalidate_summaries()
        logger.info(event, extra={"event": event, **extra})

    transaction.on_commit(_emit)


def _get_warehouse(warehouse_id) -> Warehouse:
    try:
        return Warehouse.objects.get(id=warehouse_id)
    except (Warehouse.DoesNotExist, ValueError, TypeError):
        raise InvalidRequest("Unknown warehouse", warehouse_id=warehouse_id)


def _get_vending_machine(vending_machine_id, *, for_update: bool = False) -> VendingMachine:
    qs = VendingMachine.objects.select_for_update() if for_update else VendingMachine.objects.all()
    try:
        return qs.get(id=vending_machine_id)
    except (VendingMachine.DoesNotExist, ValueError, TypeError):
        raise InvalidRequest("Unknown vending machine", vending_machine_id=vending_machine_id)


def _lock_machines(machine_ids: Iterable) -> None:
    ids = sorted({machine_id for machine_id in machine_ids if machine_id is not None})
    list(VendingMachine.objects.select_for_update().filter(id__in=ids).order_by("id"))


def _validate_lines(lines: Iterable[dict]) -> list:
    """Check quantities and product references; return the lines as a list."""

    lines = list(lines or [])
    if not lines:
        raise InvalidRequest("At least one product line is required")
    for line in lines:
        quantity = line.get("quantity")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise InvalidRequest("Quantity must be a positive integer", product_id=line.get("product_id"))
    product_ids = {line.get("product_id") for line in lines}
    known = set(Product.objects.filter(id__in=[p for p in product_ids if p is not None]).values_list("id", flat=True))
    missing = sorted(str(p) for p in product_ids if p not in known)
    if missing:
        raise InvalidRequest("Unknown product", product_ids=missing)
    return lines


def _record_user(user):
    return user if getattr(user, "is_authenticated", False) else None


def _totals(lines) -> "OrderedDict[int, int]":
    totals: "OrderedDict[int, int]" = OrderedDict()
    for line in lines:
        product_id = line["product_id"] if isinstance(line, dict) else line.product_id
        quantity = line["quantity"] if isinstance(line, dict) else line.quantity
        totals[product_id] = totals.get(product_id, 0) + quantity
    return totals


def _check_machine_withdrawal(machine_id: int, withdrawals: dict) -> None:
    """Raise ``InsufficientSourceStock`` if taking these quantities out of the machine would overdraw it.

    The caller holds the machine's row lock.
    """

    for product_id, quantity in withdrawals.items():
        if quantity <= 0:
            continue
        available = vending_machine_balance(vending_machine_id=machine_id, product_id=product_id)
        if quantity > available:
            raise InsufficientSourceStock(
                vending_machine_id=machine_id,
                product_id=product_id,
                requested=quantity,
                available=available,
            )


def _lock_record(model, record_id):
    try:
        return model.objects.select_for_update().get(id=record_id)
    except (model.DoesNotExist, ValueError, TypeError):
        raise InvalidRequest(f"{model.__name__} not found", id=record_id)


def _lock_editable(model, record_id):
    record = _lock_record(model, record_id)
    if record.status == model.STATUS_REVERSED:
        raise InvalidRequest(f"{model.__name__} is reversed and cannot be edited", id=record.id)
    return record


# Receive


def _credit_stock_in_lines(stock_in: StockIn, lines: list) -> None:
    for line in lines:
        batch = batch_store.credit(
            product_id=line["product_id"],
            warehouse_id=stock_in.warehouse_id,
            source_kind=SourceKind.STOCK_IN,
            source_id=stock_in.id,
            quantity=line["quantity"],
            date_in=stock_in.date,
            expiry_date=line.get("expiry_date"),
            batch_number=line.get("batch_number") or "",
        )
        StockInLine.objects.create(
            stock_in=stock_in,
            product_id=line["product_id"],
            quantity=line["quantity"],
            price=line.get("price"),
            expiry_date=line.get("expiry_date"),
            batch_number=line.get("batch_number") or "",
            notes=line.get("notes") or "",
            batch=batch,
        )


@transaction.atomic
def receive(
    *,
    warehouse_id: int,
    date,
    lines: Iterable[dict],
    user=None,
    notes: str = "",
) -> StockIn:
    """Stock-in: credit one batch per product line into the warehouse.

    Lines for the same product with the same expiry date credit the same batch.
    """

    warehouse = _get_warehouse(warehouse_id)
    lines = _validate_lines(lines)

    stock_in = StockIn.objects.create(warehouse=warehouse, date=date, notes=notes or "", user=_record_user(user))
    _credit_stock_in_lines(stock_in, lines)
    stock_in.code = f"STK-IN-{stock_in.id}"
    stock_in.save(update_fields=["code", "updated_at"])

    _after_commit(
        "inventory.stock_in_committed",
        stock_in_id=stock_in.id,
        warehouse_id=warehouse.id,
        total_quantity=sum(line["quantity"] for line in lines),
    )
    return stock_in


@transaction.atomic
def update_stock_in(*, stock_in_id: int, warehouse_id: int, date, lines: Iterable[dict], notes: str = "") -> StockIn:
    """Replace a stock-in's warehouse, date, notes and lines.

    The new lines are credited before the old ones are debited, so stock
    already moved out of a batch only blocks the edit (``InsufficientQuantity``)
    when the new quantity no longer covers it.
    """

    stock_in = _lock_editable(StockIn, stock_in_id)
    warehouse = _get_warehouse(warehouse_id)
    lines = _validate_lines(lines)
    old_lines = list(stock_in.lines.order_by("id"))
    batch_store.lock_batches(batch_ids=Batch.objects.filter(stock_in=stock_in).values_list("id", flat=True))

    stock_in.warehouse = warehouse
    stock_in.date = date
    stock_in.notes = notes or ""
    stock_in.save(update_fields=["warehouse", "date", "notes", "updated_at"])
    _credit_stock_in_lines(stock_in, lines)
    for line in old_lines:
        batch_store.debit(batch_id=line.batch_id, quantity=line.quantity)
        line.delete()

    _after_commit(
        "inventory.stock_in_updated",
        stock_in_id=stock_in.id,
        warehouse_id=warehouse.id,
        total_quantity=sum(line["quantity"] for line in lines),
    )
    return stock_in


# Transfer-Out


def _merge_transfer_lines(lines: list) -> "OrderedDict[int, dict]":
    """One allocation request per product, in first-seen order."""

    merged: "OrderedDict[int, dict]" = OrderedDict()
    for line in lines:
        product_id = line["product_id"]
        if product_id in merged:
            merged[product_id]["quantity"] += line["quantity"]
            continue
        merged[product_id] = {
            "quantity": line["quantity"],
            "price": line.get("price"),
            "notes": line.get("notes") or "",
        }
    return merged


def _plan_transfer(requests: "OrderedDict[int, dict]", batches: Iterable[Batch], warehouse_id: int) -> dict:
    """Plan every product against its batches in the warehouse; raises before anything is written."""

    by_product = defaultdict(list)
    for batch in batches:
        if batch.warehouse_id == warehouse_id:
            by_product[batch.product_id].append(batch)
    return {
        product_id: plan_allocation(
            by_product[product_id], request["quantity"], product_id=product_id, warehouse_id=warehouse_id
        )
        for product_id, request in requests.items()
    }


def _write_transfer_lines(transfer: StockTransfer, requests: "OrderedDict[int, dict]", plans: dict) -> None:
    for product_id, request in requests.items():
        line = StockTransferLine.objects.create(
            transfer=transfer,
            product_id=product_id,
            quantity=request["quantity"],
            price=request["price"],
            notes=request["notes"],
        )
        for sequence, allocation in enumerate(plans[product_id]):
            batch_store.debit(batch_id=allocation.batch_id, quantity=allocation.quantity)
            TransferAllocation.objects.create(
                line=line,
                batch_id=allocation.batch_id,
                quantity=allocation.quantity,
                sequence=sequence,
            )


@transaction.atomic
def transfer_out(
    *,
    from_warehouse_id: int,
    to_vending_machine_id: int,
    date,
    lines: Iterable[dict],
    user=None,
    reference: str = "",
    notes: str = "",
) -> StockTransfer:
    """Move stock from a warehouse to a vending machine, drawing batches FEFO.

    Every product is planned before anything is debited; if any product cannot
    be covered ``InsufficientStock`` is raised and no batch changes.
    """

    warehouse = _get_warehouse(from_warehouse_id)
    machine = _get_vending_machine(to_vending_machine_id)
    requests = _merge_transfer_lines(_validate_lines(lines))

    locked = batch_store.lock_batches(product_ids=requests, warehouse_id=warehouse.id)
    plans = _plan_transfer(requests, locked, warehouse.id)

    transfer = StockTransfer.objects.create(
        from_warehouse=warehouse,
        to_vending_machine=machine,
        date=date,
        reference=reference or "",
        notes=notes or "",
        user=_record_user(user),
    )
    _write_transfer_lines(transfer, requests, plans)
    transfer.code = f"STK-TRF-{transfer.id}"
    transfer.save(update_fields=["code", "updated_at"])

    _after_commit(
        "inventory.transfer_committed",
        transfer_id=transfer.id,
        warehouse_id=warehouse.id,
        vending_machine_id=machine.id,
        total_quantity=sum(r["quantity"] for r in requests.values()),
    )
    return transfer


@transaction.atomic
def update_transfer(
    *,
    transfer_id: int,
    from_warehouse_id: int,
    to_vending_machine_id: int,
    date,
    lines: Iterable[dict],
    reference: str = "",
    notes: str = "",
) -> StockTransfer:
    """Replace a transfer's header and lines, re-planning every product FEFO.

    The old allocations are restored and the new lines planned against the
    result. Fails with ``InsufficientStock`` when the warehouse cannot cover
    the new lines, or ``InsufficientSourceStock`` when the machine no longer
    holds the units the edit would take back; nothing changes in either case.
    """

    transfer = _lock_editable(StockTransfer, transfer_id)
    warehouse = _get_warehouse(from_warehouse_id)
    machine = _get_vending_machine(to_vending_machine_id)
    requests = _merge_transfer_lines(_validate_lines(lines))
    old_lines = list(transfer.lines.prefetch_related("allocations").order_by("id"))

    old_machine_id = transfer.to_vending_machine_id
    _lock_machines([old_machine_id, machine.id])
    withdrawals = _totals(old_lines)
    if machine.id == old_machine_id:
        for product_id, request in requests.items():
            withdrawals[product_id] = withdrawals.get(product_id, 0) - request["quantity"]
    _check_machine_withdrawal(old_machine_id, withdrawals)

    old_batch_ids = [allocation.batch_id for line in old_lines for allocation in line.allocations.all()]
    locked_ids = [
        batch.id
        for batch in batch_store.lock_batches(batch_ids=old_batch_ids, product_ids=requests, warehouse_id=warehouse.id)
    ]
    for line in old_lines:
        _reverse_transfer_line(line)
    plans = _plan_transfer(requests, Batch.objects.filter(id__in=locked_ids), warehouse.id)

    transfer.from_warehouse = warehouse
    transfer.to_vending_machine = machine
    transfer.date = date
    transfer.reference = reference or ""
    transfer.notes = notes or ""
    transfer.save(update_fields=["from_warehouse", "to_vending_machine", "date", "reference", "notes", "updated_at"])
    _write_transfer_lines(transfer, requests, plans)

    _after_commit(
        "inventory.transfer_updated",
        transfer_id=transfer.id,
        warehouse_id=warehouse.id,
        vending_machine_id=machine.id,
        total_quantity=sum(r["quantity"] for r in requests.values()),
    )
    return transfer


# Return-In


def _resolve_return_source(source_type: str, source_id, to_warehouse: Warehouse):
    """Return ``(from_warehouse, machine)``; a machine source comes back locked."""

    if source_type == ReturnSourceType.VENDING_MACHINE:
        return None, _get_vending_machine(source_id, for_update=True)
    if source_type == ReturnSourceType.WAREHOUSE:
        from_warehouse = _get_warehouse(source_id)
        if from_warehouse.id == to_warehouse.id:
            raise InvalidRequest("Source and destination warehouse must differ", warehouse_id=to_warehouse.id)
        return from_warehouse, None
    raise InvalidRequest("Unknown return source type", source_type=source_type)


def _credit_return_lines(stock_return: StockReturn, lines: list) -> None:
    for line in lines:
        batch = batch_store.credit(
            product_id=line["product_id"],
            warehouse_id=stock_return.to_warehouse_id,
            source_kind=SourceKind.STOCK_RETURN,
            source_id=stock_return.id,
            quantity=line["quantity"],
            date_in=stock_return.date,
            expiry_date=line.get("expiry_date"),
            batch_number=line.get("batch_number") or "",
        )
        StockReturnLine.objects.create(
            stock_return=stock_return,
            product_id=line["product_id"],
            quantity=line["quantity"],
            expiry_date=line.get("expiry_date"),
            batch_number=line.get("batch_number") or "",
            notes=line.get("notes") or "",
            batch=batch,
        )


@transaction.atomic
def return_in(
    *,
    source_type: str,
    source_id: int,
    to_warehouse_id: int,
    date,
    lines: Iterable[dict],
    user=None,
    notes: str = "",
) -> StockReturn:
    """Credit returned goods into a warehouse as new batches.

    From a vending machine, each product's total must not exceed the machine's
    derived stock, otherwise ``InsufficientSourceStock``. Returns from another
    warehouse are credited without a source check.
    """

    to_warehouse = _get_warehouse(to_warehouse_id)
    lines = _validate_lines(lines)
    from_warehouse, machine = _resolve_return_source(source_type, source_id, to_warehouse)
    if machine is not None:
        _check_machine_withdrawal(machine.id, _totals(lines))

    stock_return = StockReturn.objects.create(
        source_type=source_type,
        from_warehouse=from_warehouse,
        from_vending_machine=machine,
        to_warehouse=to_warehouse,
        date=date,
        notes=notes or "",
        user=_record_user(user),
    )
    _credit_return_lines(stock_return, lines)
    stock_return.code = f"STK-RET-{stock_return.id}"
    stock_return.save(update_fields=["code", "updated_at"])

    _after_commit(
        "inventory.return_committed",
        stock_return_id=stock_return.id,
        source_type=source_type,
        warehouse_id=to_warehouse.id,
        total_quantity=sum(line["quantity"] for line in lines),
    )
    return stock_return


@transaction.atomic
def update_return(
    *,
    return_id: int,
    source_type: str,
    source_id: int,
    to_warehouse_id: int,
    date,
    lines: Iterable[dict],
    notes: str = "",
) -> StockReturn:
    """Replace a return's source, destination, date, notes and lines.

    The machine check counts the return's own old lines as already held back,
    so only the increase has to be covered by the machine's stock. New lines
    are credited before the old ones are debited, as in ``update_stock_in``.
    """

    stock_return = _lock_editable(StockReturn, return_id)
    to_warehouse = _get_warehouse(to_warehouse_id)
    lines = _validate_lines(lines)
    old_lines = list(stock_return.lines.order_by("id"))
    from_warehouse, machine = _resolve_return_source(source_type, source_id, to_warehouse)
    if machine is not None:
        withdrawals = _totals(lines)
        if stock_return.from_vending_machine_id == machine.id:
            for product_id, quantity in _totals(old_lines).items():
                withdrawals[product_id] = withdrawals.get(product_id, 0) - quantity
        _check_machine_withdrawal(machine.id, withdrawals)
    batch_store.lock_batches(batch_ids=Batch.objects.filter(stock_return=stock_return).values_list("id", flat=True))

    stock_return.source_type = source_type
    stock_return.from_warehouse = from_warehouse
    stock_return.from_vending_machine = machine
    stock_return.to_warehouse = to_warehouse
    stock_return.date = date
    stock_return.notes = notes or ""
    stock_return.save(
        update_fields=[
            "source_type",
            "from_warehouse",
            "from_vending_machine",
            "to_warehouse",
            "date",
            "notes",
            "updated_at",
        ]
    )
    _credit_return_lines(stock_return, lines)
    for line in old_lines:
        batch_store.debit(batch_id=line.batch_id, quantity=line.quantity)
        line.delete()

    _after_commit(
        "inventory.return_updated",
        stock_return_id=stock_return.id,
        source_type=source_type,
        warehouse_id=to_warehouse.id,
        total_quantity=sum(line["quantity"] for line in lines),
    )
    return stock_return


# Reversal


def _reverse_transfer_line(line: StockTransferLine) -> int:
    restored = 0
    for allocation in line.allocations.order_by("sequence"):
        batch_store.restore(batch_id=allocation.batch_id, quantity=allocation.quantity)
        restored += allocation.quantity
    line.delete()
    return restored


def _reverse_return_line(line: StockReturnLine) -> int:
    batch_store.debit(batch_id=line.batch_id, quantity=line.quantity)
    line.delete()
    return line.quantity


def _reverse_transfer_lines(transfer: StockTransfer, lines: list) -> int:
    """Take the lines' units back from the machine and restore their batches.

    Fails with ``InsufficientSourceStock`` if the machine no longer holds them.
    """

    _lock_machines([transfer.to_vending_machine_id])
    _check_machine_withdrawal(transfer.to_vending_machine_id, _totals(lines))
    batch_store.lock_batches(
        batch_ids=TransferAllocation.objects.filter(line__in=lines).values_list("batch_id", flat=True)
    )
    return sum(_reverse_transfer_line(line) for line in lines)


def _reverse_return_lines(lines: list) -> int:
    batch_store.lock_batches(batch_ids=[line.batch_id for line in lines])
    return sum(_reverse_return_line(line) for line in lines)


def _mark_reversed_if_empty(record) -> None:
    if not record.lines.exists():
        record.status = record.STATUS_REVERSED
        record.save(update_fields=["status", "updated_at"])


@transaction.atomic
def remove_transfer_line(*, transfer_id: int, product_id: int) -> StockTransfer:
    """Undo one product of a transfer, restoring every batch it drew from.

    Raises ``InsufficientSourceStock`` if the units have since been returned
    from the machine; nothing changes in that case.
    """

    transfer = _lock_record(StockTransfer, transfer_id)
    lines = list(transfer.lines.filter(product_id=product_id))
    if not lines:
        raise InvalidRequest("Transfer has no line for product", transfer_id=transfer.id, product_id=product_id)
    restored = _reverse_transfer_lines(transfer, lines)
    _mark_reversed_if_empty(transfer)

    _after_commit(
        "inventory.transfer_line_reversed",
        transfer_id=transfer.id,
        product_id=product_id,
        quantity=restored,
    )
    return transfer


@transaction.atomic
def remove_return_line(*, return_id: int, product_id: int) -> StockReturn:
    """Undo one product of a return by debiting the batches it credited.

    Raises ``InsufficientQuantity`` if a credited batch has since been drawn
    below the returned quantity; nothing changes in that case.
    """

    stock_return = _lock_record(StockReturn, return_id)
    lines = list(stock_return.lines.filter(product_id=product_id).order_by("id"))
    if not lines:
        raise InvalidRequest("Return has no line for product", return_id=stock_return.id, product_id=product_id)
    removed = _reverse_return_lines(lines)
    _mark_reversed_if_empty(stock_return)

    _after_commit(
        "inventory.return_line_reversed",
        stock_return_id=stock_return.id,
        product_id=product_id,
        quantity=removed,
    )
    return stock_return


@transaction.atomic
def delete_transfer(*, transfer_id: int) -> StockTransfer:
    transfer = _lock_record(StockTransfer, transfer_id)
    restored = _reverse_transfer_lines(transfer, list(transfer.lines.order_by("id")))
    transfer.status = StockTransfer.STATUS_REVERSED
    transfer.save(update_fields=["status", "updated_at"])
    _after_commit("inventory.transfer_reversed", transfer_id=transfer.id, quantity=restored)
    return transfer


@transaction.atomic
def delete_return(*, return_id: int) -> StockReturn:
    stock_return = _lock_record(StockReturn, return_id)
    removed = _reverse_return_lines(list(stock_return.lines.order_by("id")))
    stock_return.status = StockReturn.STATUS_REVERSED
    stock_return.save(update_fields=["status", "updated_at"])
    _after_commit("inventory.return_reversed", stock_return_id=stock_return.id, quantity=removed)
    return stock_return


@transaction.atomic
def delete_stock_in(*, stock_in_id: int) -> StockIn:
    """Reverse a stock-in; fails with ``InsufficientQuantity`` once its stock has been moved out."""

    stock_in = _lock_record(StockIn, stock_in_id)
    lines = list(stock_in.lines.order_by("id"))
    batch_store.lock_batches(batch_ids=[line.batch_id for line in lines])
    removed = 0
    for line in lines:
        batch_store.debit(batch_id=line.batch_id, quantity=line.quantity)
        removed += line.quantity
        line.delete()
    stock_in.status = StockIn.STATUS_REVERSED
    stock_in.save(update_fields=["status", "updated_at"])
    _after_commit("inventory.stock_in_reversed", stock_in_id=stock_in.id, quantity=removed)
    return stock_in


# EOF
