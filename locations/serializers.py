"""Serializers for warehouses and vending machines."""

from rest_framework import serializers

from .models import VendingMachine, Warehouse


class WarehouseSerializer(serializers.ModelSerializer):
    class Meta:
        model = Warehouse
        fields = [
            "id",
            "name",
            "address",
            "phone",
            "photo",
            "pic",
        ]


class VendingMachineSerializer(serializers.ModelSerializer):
    class Meta:
        model = VendingMachine
        fields = [
            "id",
            "name",
            "location",
            "status",
            "pic",
        ]


class VendingMachineStockSerializer(serializers.Serializer):
    """Derived per-product stock held by a vending machine."""

    product_id = serializers.IntegerField()
    product_name = serializers.CharField()
    transferred = serializers.IntegerField()
    returned = serializers.IntegerField()
    quantity = serializers.IntegerField()
