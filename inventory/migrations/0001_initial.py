import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

RECORD_STATUS_CHOICES = [("committed", "Committed"), ("reversed", "Reversed")]


def _timestamps():
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
    ]


def _status():
    return models.CharField(choices=RECORD_STATUS_CHOICES, db_index=True, default="committed", max_length=16)


def _user():
    return models.ForeignKey(
        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        ("locations", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="StockIn",
            fields=_timestamps()
            + [
                ("code", models.CharField(blank=True, max_length=32, null=True, unique=True)),
                ("date", models.DateField()),
                ("notes", models.TextField(blank=True)),
                ("status", _status()),
                (
                    "warehouse",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_ins",
                        to="locations.warehouse",
                    ),
                ),
                ("user", _user()),
            ],
            options={
                "ordering": ["-date", "-id"],
                "indexes": [models.Index(fields=["warehouse", "date"], name="stockin_warehouse_date_idx")],
            },
        ),
        migrations.CreateModel(
            name="StockTransfer",
            fields=_timestamps()
            + [
                ("code", models.CharField(blank=True, max_length=32, null=True, unique=True)),
                ("date", models.DateField()),
                ("reference", models.CharField(blank=True, max_length=120)),
                ("notes", models.TextField(blank=True)),
                ("status", _status()),
                (
                    "from_warehouse",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_transfers",
                        to="locations.warehouse",
                    ),
                ),
                (
                    "to_vending_machine",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_transfers",
                        to="locations.vendingmachine",
                    ),
                ),
                ("user", _user()),
            ],
            options={
                "ordering": ["-date", "-id"],
                "indexes": [
                    models.Index(fields=["from_warehouse", "date"], name="transfer_from_wh_date_idx"),
                    models.Index(fields=["to_vending_machine", "status"], name="transfer_vm_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockReturn",
            fields=_timestamps()
            + [
                ("code", models.CharField(blank=True, max_length=32, null=True, unique=True)),
                (
                    "source_type",
                    models.CharField(
                        choices=[("warehouse", "Warehouse"), ("vending_machine", "Vending Machine")],
                        max_length=20,
                    ),
                ),
                ("date", models.DateField()),
                ("notes", models.TextField(blank=True)),
                ("status", _status()),
                (
                    "from_warehouse",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="outgoing_returns",
                        to="locations.warehouse",
                    ),
                ),
                (
                    "from_vending_machine",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_returns",
                        to="locations.vendingmachine",
                    ),
                ),
                (
                    "to_warehouse",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="incoming_returns",
                        to="locations.warehouse",
                    ),
                ),
                ("user", _user()),
            ],
            options={
                "ordering": ["-date", "-id"],
                "indexes": [
                    models.Index(fields=["to_warehouse", "date"], name="return_to_wh_date_idx"),
                    models.Index(fields=["from_vending_machine", "status"], name="return_vm_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=(
                            models.Q(source_type="warehouse", from_warehouse__isnull=False)
                            | models.Q(source_type="vending_machine", from_vending_machine__isnull=False)
                        ),
                        name="return_source_matches_type",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Batch",
            fields=_timestamps()
            + [
                (
                    "source_kind",
                    models.CharField(
                        choices=[("stock_in", "Stock In"), ("stock_return", "Stock Return")], max_length=16
                    ),
                ),
                ("batch_number", models.CharField(blank=True, max_length=64)),
                ("quantity_remaining", models.IntegerField(default=0)),
                ("expiry_date", models.DateField(blank=True, null=True)),
                ("date_in", models.DateField()),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="batches", to="catalog.product"
                    ),
                ),
                (
                    "warehouse",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="batches", to="locations.warehouse"
                    ),
                ),
                (
                    "stock_in",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="batches",
                        to="inventory.stockin",
                    ),
                ),
                (
                    "stock_return",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="batches",
                        to="inventory.stockreturn",
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
                "indexes": [
                    models.Index(fields=["product", "warehouse"], name="batch_product_warehouse_idx"),
                    models.Index(fields=["expiry_date"], name="batch_expiry_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(quantity_remaining__gte=0), name="batch_quantity_non_negative"
                    ),
                    models.CheckConstraint(
                        condition=(
                            models.Q(source_kind="stock_in", stock_in__isnull=False, stock_return__isnull=True)
                            | models.Q(source_kind="stock_return", stock_return__isnull=False, stock_in__isnull=True)
                        ),
                        name="batch_source_matches_kind",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockInLine",
            fields=_timestamps()
            + [
                ("quantity", models.IntegerField()),
                ("price", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("expiry_date", models.DateField(blank=True, null=True)),
                ("batch_number", models.CharField(blank=True, max_length=64)),
                ("notes", models.CharField(blank=True, max_length=255)),
                (
                    "stock_in",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="inventory.stockin"
                    ),
                ),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, to="catalog.product")),
                (
                    "batch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_in_lines",
                        to="inventory.batch",
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(quantity__gt=0), name="stock_in_line_positive_qty")
                ],
            },
        ),
        migrations.CreateModel(
            name="StockTransferLine",
            fields=_timestamps()
            + [
                ("quantity", models.IntegerField()),
                ("price", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("notes", models.CharField(blank=True, max_length=255)),
                (
                    "transfer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="inventory.stocktransfer",
                    ),
                ),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, to="catalog.product")),
            ],
            options={
                "ordering": ["id"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(quantity__gt=0), name="transfer_line_positive_qty"),
                    models.UniqueConstraint(fields=["transfer", "product"], name="unique_transfer_line_per_product"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TransferAllocation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quantity", models.IntegerField()),
                ("sequence", models.PositiveIntegerField(default=0)),
                (
                    "line",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="allocations",
                        to="inventory.stocktransferline",
                    ),
                ),
                (
                    "batch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                        to="inventory.batch",
                    ),
                ),
            ],
            options={
                "ordering": ["line", "sequence"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(quantity__gt=0), name="allocation_positive_qty")
                ],
            },
        ),
        migrations.CreateModel(
            name="StockReturnLine",
            fields=_timestamps()
            + [
                ("quantity", models.IntegerField()),
                ("expiry_date", models.DateField(blank=True, null=True)),
                ("batch_number", models.CharField(blank=True, max_length=64)),
                ("notes", models.CharField(blank=True, max_length=255)),
                (
                    "stock_return",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="inventory.stockreturn",
                    ),
                ),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, to="catalog.product")),
                (
                    "batch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="return_lines",
                        to="inventory.batch",
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(quantity__gt=0), name="return_line_positive_qty")
                ],
            },
        ),
    ]
