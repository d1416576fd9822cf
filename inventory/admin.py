"""Admin registrations for inventory app.

Ledger records are read-only here; stock only changes through the services.
"""

from django.contrib import admin

from .models import Batch, StockIn, StockInLine, StockReturn, StockReturnLine, StockTransfer, StockTransferLine


class ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class StockInLineInline(ReadOnlyInline):
    model = StockInLine
    fields = ("product", "quantity", "price", "expiry_date", "batch_number", "batch")
    readonly_fields = fields


class StockTransferLineInline(ReadOnlyInline):
    model = StockTransferLine
    fields = ("product", "quantity", "price", "notes")
    readonly_fields = fields


class StockReturnLineInline(ReadOnlyInline):
    model = StockReturnLine
    fields = ("product", "quantity", "expiry_date", "batch_number", "batch")
    readonly_fields = fields


class LedgerRecordAdmin(admin.ModelAdmin):
    date_hierarchy = "date"
    list_filter = ("status",)
    search_fields = ("code", "notes")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockIn)
class StockInAdmin(LedgerRecordAdmin):
    list_display = ("id", "code", "warehouse", "date", "status", "user", "created_at")
    inlines = [StockInLineInline]


@admin.register(StockTransfer)
class StockTransferAdmin(LedgerRecordAdmin):
    list_display = ("id", "code", "from_warehouse", "to_vending_machine", "date", "status", "reference")
    search_fields = ("code", "reference", "notes")
    inlines = [StockTransferLineInline]


@admin.register(StockReturn)
class StockReturnAdmin(LedgerRecordAdmin):
    list_display = ("id", "code", "source_type", "to_warehouse", "date", "status")
    list_filter = ("status", "source_type")
    inlines = [StockReturnLineInline]


@admin.register(Batch)
class BatchAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "product",
        "warehouse",
        "source_kind",
        "batch_number",
        "quantity_remaining",
        "expiry_date",
        "date_in",
    )
    list_filter = ("source_kind", "warehouse")
    search_fields = ("product__name", "product__sku", "batch_number")
    readonly_fields = ("quantity_remaining",)

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# EOF
