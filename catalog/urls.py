"""URL routes for the catalog app."""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import BrandViewSet, ProductViewSet

router = SimpleRouter()
router.register(r"brands", BrandViewSet, basename="brand")
router.register(r"products", ProductViewSet, basename="product")

urlpatterns = [path("", include(router.urls))]
