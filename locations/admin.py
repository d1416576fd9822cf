"""Admin registrations for locations app."""

from django.contrib import admin

from .models import VendingMachine, Warehouse


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "address", "phone", "pic")
    search_fields = ("name", "address")


@admin.register(VendingMachine)
class VendingMachineAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "location", "status", "pic")
    list_filter = ("status",)
    search_fields = ("name", "location")
