"""Serializers for catalog master data (staff write endpoints)."""

from rest_framework import serializers

from .models import Brand, Product


class BrandSerializer(serializers.ModelSerializer):
    class Meta:
        model = Brand
        fields = [
            "id",
            "name",
            "slug",
            "tagline",
            "photo",
        ]


class ProductSerializer(serializers.ModelSerializer):
    brand_name = serializers.CharField(source="brand.name", read_only=True, default=None)

    class Meta:
        model = Product
        fields = [
            "id",
            "brand",
            "brand_name",
            "name",
            "sku",
            "price",
            "about",
            "thumbnail",
            "status",
        ]
