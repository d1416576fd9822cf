"""URL routes for the locations app."""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import VendingMachineViewSet, WarehouseViewSet

router = SimpleRouter()
router.register(r"warehouses", WarehouseViewSet, basename="warehouse")
router.register(r"vending-machines", VendingMachineViewSet, basename="vending-machine")

urlpatterns = [path("", include(router.urls))]
