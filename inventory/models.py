"""Inventory models: the batch-level stock ledger.

A ``Batch`` is one quantity of a product at a warehouse, credited by a single
stock-in or stock-return record and tracked with its own expiry date and
remaining quantity. Batches are never deleted; an exhausted batch stays as the
audit trail for the transfers that drew from it.

Vending-machine stock has no balance table: it is derived from committed
transfer lines into the machine minus committed return lines out of it.
"""

from common.choices import RecordStatus, ReturnSourceType, SourceKind
from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class StockIn(TimeStampedModel):
    """Receipt of goods into a warehouse."""

    STATUS_COMMITTED = RecordStatus.COMMITTED
    STATUS_REVERSED = RecordStatus.REVERSED
    STATUS_CHOICES = RecordStatus.choices

    code = models.CharField(max_length=32, unique=True, null=True, blank=True)
    warehouse = models.ForeignKey("locations.Warehouse", related_name="stock_ins", on_delete=models.PROTECT)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL)
    date = models.DateField()
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_COMMITTED, db_index=True)

    class Meta:
        ordering = ["-date", "-id"]
        indexes = [
            models.Index(fields=["warehouse", "date"], name="stockin_warehouse_date_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.code or f"StockIn#{self.id}"


class StockTransfer(TimeStampedModel):
    """Outgoing movement from a warehouse to a vending machine."""

    STATUS_COMMITTED = RecordStatus.COMMITTED
    STATUS_REVERSED = RecordStatus.REVERSED
    STATUS_CHOICES = RecordStatus.choices

    code = models.CharField(max_length=32, unique=True, null=True, blank=True)
    from_warehouse = models.ForeignKey(
        "locations.Warehouse", related_name="stock_transfers", on_delete=models.PROTECT
    )
    to_vending_machine = models.ForeignKey(
        "locations.VendingMachine", related_name="stock_transfers", on_delete=models.PROTECT
    )
    user = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL)
    date = models.DateField()
    reference = models.CharField(max_length=120, blank=True)
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_COMMITTED, db_index=True)

    class Meta:
        ordering = ["-date", "-id"]
        indexes = [
            models.Index(fields=["from_warehouse", "date"], name="transfer_from_wh_date_idx"),
            models.Index(fields=["to_vending_machine", "status"], name="transfer_vm_status_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.code or f"StockTransfer#{self.id}"


class StockReturn(TimeStampedModel):
    """Goods sent back into a warehouse from a vending machine or another warehouse."""

    STATUS_COMMITTED = RecordStatus.COMMITTED
    STATUS_REVERSED = RecordStatus.REVERSED
    STATUS_CHOICES = RecordStatus.choices

    SOURCE_WAREHOUSE = ReturnSourceType.WAREHOUSE
    SOURCE_VENDING_MACHINE = ReturnSourceType.VENDING_MACHINE
    SOURCE_CHOICES = ReturnSourceType.choices

    code = models.CharField(max_length=32, unique=True, null=True, blank=True)
    source_type = models.CharField(max_length=20, choices=SOURCE_CHOICES)
    from_warehouse = models.ForeignKey(
        "locations.Warehouse",
        null=True,
        blank=True,
        related_name="outgoing_returns",
        on_delete=models.PROTECT,
    )
    from_vending_machine = models.ForeignKey(
        "locations.VendingMachine",
        null=True,
        blank=True,
        related_name="stock_returns",
        on_delete=models.PROTECT,
    )
    to_warehouse = models.ForeignKey("locations.Warehouse", related_name="incoming_returns", on_delete=models.PROTECT)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL)
    date = models.DateField()
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_COMMITTED, db_index=True)

    class Meta:
        ordering = ["-date", "-id"]
        constraints = [
            models.CheckConstraint(
                name="return_source_matches_type",
                condition=(
                    models.Q(source_type=ReturnSourceType.WAREHOUSE, from_warehouse__isnull=False)
                    | models.Q(source_type=ReturnSourceType.VENDING_MACHINE, from_vending_machine__isnull=False)
                ),
            ),
        ]
        indexes = [
            models.Index(fields=["to_warehouse", "date"], name="return_to_wh_date_idx"),
            models.Index(fields=["from_vending_machine", "status"], name="return_vm_status_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.code or f"StockReturn#{self.id}"


class Batch(TimeStampedModel):
    """Remaining quantity of one product at one warehouse from one source record."""

    SOURCE_STOCK_IN = SourceKind.STOCK_IN
    SOURCE_STOCK_RETURN = SourceKind.STOCK_RETURN
    SOURCE_CHOICES = SourceKind.choices

    product = models.ForeignKey("catalog.Product", related_name="batches", on_delete=models.PROTECT)
    warehouse = models.ForeignKey("locations.Warehouse", related_name="batches", on_delete=models.PROTECT)
    source_kind = models.CharField(max_length=16, choices=SOURCE_CHOICES)
    stock_in = models.ForeignKey(StockIn, null=True, blank=True, related_name="batches", on_delete=models.PROTECT)
    stock_return = models.ForeignKey(
        StockReturn, null=True, blank=True, related_name="batches", on_delete=models.PROTECT
    )
    batch_number = models.CharField(max_length=64, blank=True)
    quantity_remaining = models.IntegerField(default=0)
    expiry_date = models.DateField(null=True, blank=True)
    date_in = models.DateField()

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(name="batch_quantity_non_negative", condition=models.Q(quantity_remaining__gte=0)),
            models.CheckConstraint(
                name="batch_source_matches_kind",
                condition=(
                    models.Q(source_kind=SourceKind.STOCK_IN, stock_in__isnull=False, stock_return__isnull=True)
                    | models.Q(
                        source_kind=SourceKind.STOCK_RETURN, stock_return__isnull=False, stock_in__isnull=True
                    )
                ),
            ),
        ]
        indexes = [
            models.Index(fields=["product", "warehouse"], name="batch_product_warehouse_idx"),
            models.Index(fields=["expiry_date"], name="batch_expiry_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Batch<{self.batch_code}> p={self.product_id} w={self.warehouse_id} q={self.quantity_remaining}"

    @property
    def source_ref(self):
        return self.stock_in_id if self.source_kind == SourceKind.STOCK_IN else self.stock_return_id

    @property
    def batch_code(self) -> str:
        """Human-readable code of the record that credited this batch."""

        if self.source_kind == SourceKind.STOCK_IN:
            source, prefix = self.stock_in, "STK-IN"
        else:
            source, prefix = self.stock_return, "STK-RET"
        if source is not None and source.code:
            return source.code
        if self.batch_number:
            return self.batch_number
        return f"{prefix}-{self.source_ref}"


class StockInLine(TimeStampedModel):
    stock_in = models.ForeignKey(StockIn, related_name="lines", on_delete=models.CASCADE)
    product = models.ForeignKey("catalog.Product", on_delete=models.PROTECT)
    quantity = models.IntegerField()
    price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    expiry_date = models.DateField(null=True, blank=True)
    batch_number = models.CharField(max_length=64, blank=True)
    notes = models.CharField(max_length=255, blank=True)
    batch = models.ForeignKey(Batch, related_name="stock_in_lines", on_delete=models.PROTECT)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(name="stock_in_line_positive_qty", condition=models.Q(quantity__gt=0)),
        ]


class StockTransferLine(TimeStampedModel):
    """One product of a transfer; its allocations record the batches it drew from."""

    transfer = models.ForeignKey(StockTransfer, related_name="lines", on_delete=models.CASCADE)
    product = models.ForeignKey("catalog.Product", on_delete=models.PROTECT)
    quantity = models.IntegerField()
    price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    notes = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(name="transfer_line_positive_qty", condition=models.Q(quantity__gt=0)),
            models.UniqueConstraint(fields=["transfer", "product"], name="unique_transfer_line_per_product"),
        ]


class TransferAllocation(models.Model):
    line = models.ForeignKey(StockTransferLine, related_name="allocations", on_delete=models.CASCADE)
    batch = models.ForeignKey(Batch, related_name="allocations", on_delete=models.PROTECT)
    quantity = models.IntegerField()
    sequence = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["line", "sequence"]
        constraints = [
            models.CheckConstraint(name="allocation_positive_qty", condition=models.Q(quantity__gt=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Allocation line={self.line_id} batch={self.batch_id} q={self.quantity}"


class StockReturnLine(TimeStampedModel):
    stock_return = models.ForeignKey(StockReturn, related_name="lines", on_delete=models.CASCADE)
    product = models.ForeignKey("catalog.Product", on_delete=models.PROTECT)
    quantity = models.IntegerField()
    expiry_date = models.DateField(null=True, blank=True)
    batch_number = models.CharField(max_length=64, blank=True)
    notes = models.CharField(max_length=255, blank=True)
    batch = models.ForeignKey(Batch, related_name="return_lines", on_delete=models.PROTECT)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(name="return_line_positive_qty", condition=models.Q(quantity__gt=0)),
        ]


# EOF
