"""Catalog app models.

Master data for the goods stocked in warehouses and vending machines:
brands and the products sold under them.
"""

from common.choices import ActiveInactive
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Brand(TimeStampedModel):
    """Brand grouping for products (shown as "category" on older dashboards)."""

    name = models.CharField(max_length=120)
    slug = models.SlugField(max_length=140, unique=True)
    tagline = models.CharField(max_length=200, blank=True)
    photo = models.URLField(blank=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:  # pragma: no cover
        return self.name


class Product(TimeStampedModel):
    """Sellable product tracked by the stock ledger."""

    STATUS_ACTIVE = ActiveInactive.ACTIVE
    STATUS_INACTIVE = ActiveInactive.INACTIVE
    STATUS_CHOICES = ActiveInactive.choices

    brand = models.ForeignKey(Brand, related_name="products", null=True, blank=True, on_delete=models.SET_NULL)
    name = models.CharField(max_length=200)
    sku = models.CharField(max_length=64, unique=True)
    price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    about = models.TextField(blank=True)
    thumbnail = models.URLField(blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)

    class Meta:
        ordering = ["name", "id"]
        constraints = [
            models.CheckConstraint(
                name="product_price_non_negative",
                condition=models.Q(price__gte=0) | models.Q(price__isnull=True),
            ),
        ]
        indexes = [
            models.Index(fields=["brand", "status"], name="product_brand_status_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.name} [{self.sku}]"
