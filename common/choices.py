"""Shared enumerations and choices used across apps."""

from django.db import models


class ActiveInactive(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class SourceKind(models.TextChoices):
    """Provenance of a batch: the record that credited it."""

    STOCK_IN = "stock_in", "Stock In"
    STOCK_RETURN = "stock_return", "Stock Return"


class RecordStatus(models.TextChoices):
    """Lifecycle of stock-in, transfer and return records.

    Records are committed atomically on creation; there is no persisted draft.
    """

    COMMITTED = "committed", "Committed"
    REVERSED = "reversed", "Reversed"


class ReturnSourceType(models.TextChoices):
    WAREHOUSE = "warehouse", "Warehouse"
    VENDING_MACHINE = "vending_machine", "Vending Machine"


class ExpiryStatus(models.TextChoices):
    EXPIRED = "expired", "Expired"
    EXPIRING_SOON = "expiring_soon", "Expiring Soon"
    WARNING = "warning", "Warning"
