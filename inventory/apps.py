"""Django app configuration for inventory."""

from django.apps import AppConfig


class InventoryConfig(AppConfig):
    """AppConfig for the batch-level stock ledger."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "inventory"
