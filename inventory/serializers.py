"""Serializers for the inventory domain.

Read serializers render ledger records and batches; write serializers validate
request payloads and hand them to the ledger services in ``create`` and
``update`` (a full replacement of the record).
"""

from common.choices import ReturnSourceType
from django.utils import timezone
from rest_framework import serializers

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
from .services import receive, return_in, transfer_out, update_return, update_stock_in, update_transfer


class TotalQuantityMixin(serializers.Serializer):
    total_quantity = serializers.SerializerMethodField(read_only=True)

    def get_total_quantity(self, obj) -> int:
        return sum(int(line.quantity) for line in obj.lines.all())


class BatchSerializer(serializers.ModelSerializer):
    """Read-only batch balance row."""

    batch_code = serializers.CharField(read_only=True)
    product_name = serializers.CharField(source="product.name", read_only=True)
    warehouse_name = serializers.CharField(source="warehouse.name", read_only=True)

    class Meta:
        model = Batch
        fields = [
            "id",
            "batch_code",
            "batch_number",
            "product",
            "product_name",
            "warehouse",
            "warehouse_name",
            "source_kind",
            "quantity_remaining",
            "expiry_date",
            "date_in",
        ]
        read_only_fields = fields


class StockInLineSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    batch_code = serializers.CharField(source="batch.batch_code", read_only=True)

    class Meta:
        model = StockInLine
        fields = [
            "id",
            "product",
            "product_name",
            "quantity",
            "price",
            "expiry_date",
            "batch_number",
            "notes",
            "batch",
            "batch_code",
        ]
        read_only_fields = fields


class StockInSerializer(TotalQuantityMixin, serializers.ModelSerializer):
    warehouse_name = serializers.CharField(source="warehouse.name", read_only=True)
    lines = StockInLineSerializer(many=True, read_only=True)

    class Meta:
        model = StockIn
        fields = [
            "id",
            "code",
            "warehouse",
            "warehouse_name",
            "user",
            "date",
            "notes",
            "status",
            "total_quantity",
            "lines",
            "created_at",
        ]
        read_only_fields = fields


class TransferAllocationSerializer(serializers.ModelSerializer):
    batch_code = serializers.CharField(source="batch.batch_code", read_only=True)
    expiry_date = serializers.DateField(source="batch.expiry_date", read_only=True)

    class Meta:
        model = TransferAllocation
        fields = ["batch", "batch_code", "expiry_date", "quantity", "sequence"]
        read_only_fields = fields


class StockTransferLineSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    allocations = TransferAllocationSerializer(many=True, read_only=True)

    class Meta:
        model = StockTransferLine
        fields = ["id", "product", "product_name", "quantity", "price", "notes", "allocations"]
        read_only_fields = fields


class StockTransferSerializer(TotalQuantityMixin, serializers.ModelSerializer):
    from_warehouse_name = serializers.CharField(source="from_warehouse.name", read_only=True)
    to_vending_machine_name = serializers.CharField(source="to_vending_machine.name", read_only=True)
    lines = StockTransferLineSerializer(many=True, read_only=True)

    class Meta:
        model = StockTransfer
        fields = [
            "id",
            "code",
            "from_warehouse",
            "from_warehouse_name",
            "to_vending_machine",
            "to_vending_machine_name",
            "user",
            "date",
            "reference",
            "notes",
            "status",
            "total_quantity",
            "lines",
            "created_at",
        ]
        read_only_fields = fields


class StockReturnLineSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    batch_code = serializers.CharField(source="batch.batch_code", read_only=True)

    class Meta:
        model = StockReturnLine
        fields = [
            "id",
            "product",
            "product_name",
            "quantity",
            "expiry_date",
            "batch_number",
            "notes",
            "batch",
            "batch_code",
        ]
        read_only_fields = fields


class StockReturnSerializer(TotalQuantityMixin, serializers.ModelSerializer):
    from_warehouse_name = serializers.CharField(source="from_warehouse.name", read_only=True, default=None)
    from_vending_machine_name = serializers.CharField(
        source="from_vending_machine.name", read_only=True, default=None
    )
    to_warehouse_name = serializers.CharField(source="to_warehouse.name", read_only=True)
    lines = StockReturnLineSerializer(many=True, read_only=True)

    class Meta:
        model = StockReturn
        fields = [
            "id",
            "code",
            "source_type",
            "from_warehouse",
            "from_warehouse_name",
            "from_vending_machine",
            "from_vending_machine_name",
            "to_warehouse",
            "to_warehouse_name",
            "user",
            "date",
            "notes",
            "status",
            "total_quantity",
            "lines",
            "created_at",
        ]
        read_only_fields = fields


# Write serializers


class StockInLineInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    expiry_date = serializers.DateField(required=False, allow_null=True)
    batch_number = serializers.CharField(max_length=64, required=False, allow_blank=True)
    notes = serializers.CharField(max_length=255, required=False, allow_blank=True)


class StockInCreateSerializer(serializers.Serializer):
    """Write serializer for a stock-in; saving it receives the goods."""

    warehouse_id = serializers.IntegerField()
    date = serializers.DateField(default=timezone.localdate)
    notes = serializers.CharField(required=False, allow_blank=True)
    lines = StockInLineInputSerializer(many=True, allow_empty=False)

    def create(self, validated_data):  # type: ignore[override]
        user = self.context["request"].user
        return receive(user=user, **validated_data)

    def update(self, instance, validated_data):  # type: ignore[override]
        return update_stock_in(stock_in_id=instance.id, **validated_data)


class StockTransferLineInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    notes = serializers.CharField(max_length=255, required=False, allow_blank=True)


class StockTransferCreateSerializer(serializers.Serializer):
    """Write serializer for a transfer; saving it allocates batches FEFO."""

    from_warehouse_id = serializers.IntegerField()
    to_vending_machine_id = serializers.IntegerField()
    date = serializers.DateField(default=timezone.localdate)
    reference = serializers.CharField(max_length=120, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    lines = StockTransferLineInputSerializer(many=True, allow_empty=False)

    def create(self, validated_data):  # type: ignore[override]
        user = self.context["request"].user
        return transfer_out(user=user, **validated_data)

    def update(self, instance, validated_data):  # type: ignore[override]
        return update_transfer(transfer_id=instance.id, **validated_data)


class StockReturnLineInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    expiry_date = serializers.DateField(required=False, allow_null=True)
    batch_number = serializers.CharField(max_length=64, required=False, allow_blank=True)
    notes = serializers.CharField(max_length=255, required=False, allow_blank=True)


class StockReturnCreateSerializer(serializers.Serializer):
    """Write serializer for a return into a warehouse."""

    source_type = serializers.ChoiceField(choices=ReturnSourceType.choices)
    source_id = serializers.IntegerField()
    to_warehouse_id = serializers.IntegerField()
    date = serializers.DateField(default=timezone.localdate)
    notes = serializers.CharField(required=False, allow_blank=True)
    lines = StockReturnLineInputSerializer(many=True, allow_empty=False)

    def create(self, validated_data):  # type: ignore[override]
        user = self.context["request"].user
        return return_in(user=user, **validated_data)

    def update(self, instance, validated_data):  # type: ignore[override]
        return update_return(return_id=instance.id, **validated_data)


# Query serializers


class ScopeQuerySerializer(serializers.Serializer):
    warehouse_id = serializers.IntegerField(required=False, min_value=1)
    user_id = serializers.IntegerField(required=False, min_value=1)


class StockBalanceQuerySerializer(ScopeQuerySerializer):
    product_id = serializers.IntegerField(required=False, min_value=1)


class AvailableStockQuerySerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    warehouse_id = serializers.IntegerField(min_value=1)


class ExpiryAlertsQuerySerializer(ScopeQuerySerializer):
    days_ahead = serializers.IntegerField(required=False, min_value=0)


class ExpiryAlertSerializer(serializers.Serializer):
    batch_id = serializers.IntegerField()
    batch_code = serializers.CharField()
    product_id = serializers.IntegerField()
    product_name = serializers.CharField()
    warehouse_id = serializers.IntegerField()
    warehouse_name = serializers.CharField()
    quantity = serializers.IntegerField()
    expiry_date = serializers.DateField()
    days_until_expiry = serializers.IntegerField()
    status = serializers.CharField()


# EOF
