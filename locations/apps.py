"""Django app configuration for locations."""

from django.apps import AppConfig


class LocationsConfig(AppConfig):
    """AppConfig for warehouses and vending machines."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "locations"
