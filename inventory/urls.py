from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import (
    AvailableStockView,
    ExpiryAlertListView,
    InventoryHealthView,
    InventorySummaryView,
    StockBalanceListView,
    StockInViewSet,
    StockReturnViewSet,
    StockTransferViewSet,
)

router = SimpleRouter()
router.register(r"stock-ins", StockInViewSet, basename="stock-in")
router.register(r"stock-transfers", StockTransferViewSet, basename="stock-transfer")
router.register(r"stock-returns", StockReturnViewSet, basename="stock-return")

urlpatterns = [
    path("health/", InventoryHealthView.as_view(), name="inventory-health"),
    # Read-only projections
    path("stock-balances/", StockBalanceListView.as_view(), name="stock-balance-list"),
    path("stock-balances/available/", AvailableStockView.as_view(), name="stock-balance-available"),
    path("expiry-alerts/", ExpiryAlertListView.as_view(), name="expiry-alert-list"),
    path("summary/", InventorySummaryView.as_view(), name="inventory-summary"),
    path("", include(router.urls)),
]

# EOF
