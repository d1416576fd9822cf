"""Selectors for the inventory domain.

Read-only projections over the ledger: available stock, batch balances,
vending-machine stock, expiry alerts and the dashboard summary. Nothing here
is authoritative; every value is recomputed from batches and committed
records, and the summary is cached briefly under a versioned key that ledger
operations bump after commit.
"""

import datetime as dt
from typing import Optional

from common.choices import ExpiryStatus, RecordStatus
from django.conf import settings
from django.core.cache import cache
from django.db.models import F, QuerySet, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from .expiry import DEFAULT_EXPIRING_SOON_DAYS, classify, days_until_expiry, is_within_look_ahead_window
from .models import Batch, StockIn, StockReturn, StockReturnLine, StockTransfer, StockTransferLine

SUMMARY_VERSION_KEY = "inventory:summary:version"
RECENT_RECORDS_LIMIT = 10


def _setting(name: str, default: int) -> int:
    return int(getattr(settings, name, default))


def _scope_filter(prefix: str, *, warehouse_id=None, user_id=None) -> dict:
    """Filter kwargs restricting a query to one warehouse and/or the warehouses a user is in charge of."""

    lookup = {}
    if warehouse_id:
        lookup[f"{prefix}_id"] = warehouse_id
    if user_id:
        lookup[f"{prefix}__pic_id"] = user_id
    return lookup


def available_stock(*, product_id: int, warehouse_id: int) -> int:
    """Sum of remaining quantity across a product's batches in one warehouse."""

    total = Batch.objects.filter(product_id=product_id, warehouse_id=warehouse_id).aggregate(
        total=Coalesce(Sum("quantity_remaining"), 0)
    )["total"]
    return int(total)


def list_stock_balances(*, warehouse_id=None, user_id=None, product_id=None) -> QuerySet[Batch]:
    """Batches with stock left, FEFO ordered."""

    qs = Batch.objects.filter(
        quantity_remaining__gt=0, **_scope_filter("warehouse", warehouse_id=warehouse_id, user_id=user_id)
    )
    if product_id:
        qs = qs.filter(product_id=product_id)
    return qs.select_related("product", "warehouse", "stock_in", "stock_return").order_by(
        F("expiry_date").asc(nulls_last=True), "date_in", "id"
    )


def vending_machine_balance(*, vending_machine_id: int, product_id: int) -> int:
    """Committed transfers of a product into a machine minus committed returns out of it."""

    transferred = StockTransferLine.objects.filter(
        transfer__to_vending_machine_id=vending_machine_id,
        transfer__status=RecordStatus.COMMITTED,
        product_id=product_id,
    ).aggregate(total=Coalesce(Sum("quantity"), 0))["total"]
    returned = StockReturnLine.objects.filter(
        stock_return__from_vending_machine_id=vending_machine_id,
        stock_return__status=RecordStatus.COMMITTED,
        product_id=product_id,
    ).aggregate(total=Coalesce(Sum("quantity"), 0))["total"]
    return int(transferred) - int(returned)


def vending_machine_stock(*, vending_machine_id: int) -> list:
    transferred = (
        StockTransferLine.objects.filter(
            transfer__to_vending_machine_id=vending_machine_id, transfer__status=RecordStatus.COMMITTED
        )
        .values("product_id", "product__name")
        .annotate(total=Sum("quantity"))
    )
    returned = (
        StockReturnLine.objects.filter(
            stock_return__from_vending_machine_id=vending_machine_id, stock_return__status=RecordStatus.COMMITTED
        )
        .values("product_id", "product__name")
        .annotate(total=Sum("quantity"))
    )

    rows = {}
    for row in transferred:
        rows[row["product_id"]] = {
            "product_id": row["product_id"],
            "product_name": row["product__name"],
            "transferred": int(row["total"]),
            "returned": 0,
        }
    for row in returned:
        entry = rows.setdefault(
            row["product_id"],
            {"product_id": row["product_id"], "product_name": row["product__name"], "transferred": 0, "returned": 0},
        )
        entry["returned"] = int(row["total"])

    result = []
    for product_id in sorted(rows):
        entry = rows[product_id]
        entry["quantity"] = entry["transferred"] - entry["returned"]
        result.append(entry)
    return result


def list_expiry_alerts(
    *,
    look_ahead_days: Optional[int] = None,
    warehouse_id=None,
    user_id=None,
    today: Optional[dt.date] = None,
) -> list:
    """Dated batches with stock that are expired or expire within ``look_ahead_days``.

    Sorted by expiry date, then batch id. Batches whose date cannot be
    classified are left out.
    """

    if look_ahead_days is None:
        look_ahead_days = _setting("INVENTORY_DEFAULT_LOOKAHEAD_DAYS", 30)
    today = today or timezone.localdate()
    soon_days = _setting("INVENTORY_EXPIRING_SOON_DAYS", DEFAULT_EXPIRING_SOON_DAYS)

    qs = (
        Batch.objects.filter(
            quantity_remaining__gt=0,
            expiry_date__isnull=False,
            **_scope_filter("warehouse", warehouse_id=warehouse_id, user_id=user_id),
        )
        .select_related("product", "warehouse", "stock_in", "stock_return")
        .order_by("expiry_date", "id")
    )

    alerts = []
    for batch in qs:
        status = classify(batch.expiry_date, today, soon_days)
        days = days_until_expiry(batch.expiry_date, today)
        if status is None or days is None:
            continue
        if not is_within_look_ahead_window(days, look_ahead_days, status):
            continue
        alerts.append(
            {
                "batch_id": batch.id,
                "batch_code": batch.batch_code,
                "product_id": batch.product_id,
                "product_name": batch.product.name,
                "warehouse_id": batch.warehouse_id,
                "warehouse_name": batch.warehouse.name,
                "quantity": batch.quantity_remaining,
                "expiry_date": batch.expiry_date.isoformat(),
                "days_until_expiry": days,
                "status": str(status),
            }
        )
    return alerts


def expiry_counts(*, warehouse_id=None, user_id=None, today: Optional[dt.date] = None) -> dict:
    today = today or timezone.localdate()
    soon_days = _setting("INVENTORY_EXPIRING_SOON_DAYS", DEFAULT_EXPIRING_SOON_DAYS)
    counts = {str(status): 0 for status in ExpiryStatus}
    dates = Batch.objects.filter(
        quantity_remaining__gt=0,
        expiry_date__isnull=False,
        **_scope_filter("warehouse", warehouse_id=warehouse_id, user_id=user_id),
    ).values_list("expiry_date", flat=True)
    for expiry_date in dates:
        status = classify(expiry_date, today, soon_days)
        if status is not None:
            counts[str(status)] += 1
    return counts


def low_stock_count(*, warehouse_id=None, user_id=None, threshold: Optional[int] = None) -> int:
    """Number of (product, warehouse) pairs whose remaining total is at or below the threshold."""

    if threshold is None:
        threshold = _setting("INVENTORY_LOW_STOCK_THRESHOLD", 10)
    return (
        Batch.objects.filter(**_scope_filter("warehouse", warehouse_id=warehouse_id, user_id=user_id))
        .values("product_id", "warehouse_id")
        .annotate(total=Sum("quantity_remaining"))
        .filter(total__lte=threshold)
        .count()
    )


def most_transferred_products(
    *,
    days: Optional[int] = None,
    limit: Optional[int] = None,
    today: Optional[dt.date] = None,
    warehouse_id=None,
    user_id=None,
) -> list:
    """Top products by committed transfer quantity over the last ``days`` days including today; ties by product id."""

    days = _setting("INVENTORY_MOST_TRANSFERRED_DAYS", 30) if days is None else days
    limit = _setting("INVENTORY_MOST_TRANSFERRED_LIMIT", 5) if limit is None else limit
    today = today or timezone.localdate()
    rows = (
        StockTransferLine.objects.filter(
            transfer__status=RecordStatus.COMMITTED,
            transfer__date__gte=today - dt.timedelta(days=days - 1),
            transfer__date__lte=today,
            **_scope_filter("transfer__from_warehouse", warehouse_id=warehouse_id, user_id=user_id),
        )
        .values("product_id", "product__name")
        .annotate(total=Sum("quantity"))
        .order_by("-total", "product_id")[:limit]
    )
    return [
        {"product_id": row["product_id"], "product_name": row["product__name"], "total_quantity": int(row["total"])}
        for row in rows
    ]


def _recent_records(qs, *, location_field: str) -> list:
    records = []
    for record in qs.prefetch_related("lines")[:RECENT_RECORDS_LIMIT]:
        location = getattr(record, location_field)
        records.append(
            {
                "id": record.id,
                "code": record.code,
                "date": record.date.isoformat(),
                "location": location.name if location else None,
                "total_quantity": sum(line.quantity for line in record.lines.all()),
            }
        )
    return records


def _compute_summary(*, warehouse_id=None, user_id=None, today: dt.date) -> dict:
    batch_scope = _scope_filter("warehouse", warehouse_id=warehouse_id, user_id=user_id)
    batches = Batch.objects.filter(**batch_scope)
    stock_ins = StockIn.objects.filter(
        status=RecordStatus.COMMITTED, **_scope_filter("warehouse", warehouse_id=warehouse_id, user_id=user_id)
    )
    transfers = StockTransfer.objects.filter(
        status=RecordStatus.COMMITTED,
        **_scope_filter("from_warehouse", warehouse_id=warehouse_id, user_id=user_id),
    )
    returns = StockReturn.objects.filter(
        status=RecordStatus.COMMITTED,
        **_scope_filter("to_warehouse", warehouse_id=warehouse_id, user_id=user_id),
    )

    return {
        "as_of": today.isoformat(),
        "total_available": int(batches.aggregate(total=Coalesce(Sum("quantity_remaining"), 0))["total"]),
        "batches": {
            "total": batches.count(),
            "in_stock": batches.filter(quantity_remaining__gt=0).count(),
        },
        "expiry": expiry_counts(warehouse_id=warehouse_id, user_id=user_id, today=today),
        "low_stock": low_stock_count(warehouse_id=warehouse_id, user_id=user_id),
        "most_transferred_products": most_transferred_products(
            today=today, warehouse_id=warehouse_id, user_id=user_id
        ),
        "today": {
            "stock_ins": stock_ins.filter(date=today).count(),
            "transfers": transfers.filter(date=today).count(),
            "returns": returns.filter(date=today).count(),
        },
        "recent_stock_ins": _recent_records(
            stock_ins.select_related("warehouse").order_by("-date", "-id"), location_field="warehouse"
        ),
        "recent_transfers": _recent_records(
            transfers.select_related("to_vending_machine").order_by("-date", "-id"),
            location_field="to_vending_machine",
        ),
    }


def _summary_version() -> int:
    version = cache.get(SUMMARY_VERSION_KEY)
    if version is None:
        cache.add(SUMMARY_VERSION_KEY, 1, timeout=None)
        version = cache.get(SUMMARY_VERSION_KEY) or 1
    return int(version)


def invalidate_summaries() -> None:
    """Retire every cached summary by bumping the shared version."""

    try:
        cache.incr(SUMMARY_VERSION_KEY)
    except ValueError:
        cache.set(SUMMARY_VERSION_KEY, 2, timeout=None)


def get_summary(*, warehouse_id=None, user_id=None, today: Optional[dt.date] = None) -> dict:
    """Dashboard summary, cached for ``INVENTORY_SUMMARY_CACHE_SECONDS``."""

    today = today or timezone.localdate()
    key = f"inventory:summary:v{_summary_version()}:{warehouse_id or '-'}:{user_id or '-'}:{today.isoformat()}"
    summary = cache.get(key)
    if summary is None:
        summary = _compute_summary(warehouse_id=warehouse_id, user_id=user_id, today=today)
        cache.set(key, summary, _setting("INVENTORY_SUMMARY_CACHE_SECONDS", 120))
    return summary


# EOF
