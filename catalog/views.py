"""Staff viewsets for catalog master data.

Endpoints are restricted to staff users and use scoped throttling.
"""

from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import filters as drf_filters
from rest_framework import permissions, viewsets

from .models import Brand, Product
from .serializers import BrandSerializer, ProductSerializer


class AdminBaseViewSet(viewsets.ModelViewSet):
    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "master_data_write"


@extend_schema_view(
    list=extend_schema(tags=["Catalog Endpoints"], summary="List brands"),
    retrieve=extend_schema(tags=["Catalog Endpoints"], summary="Get brand"),
    create=extend_schema(tags=["Catalog Endpoints"], summary="Create brand"),
    update=extend_schema(tags=["Catalog Endpoints"], summary="Update brand"),
    partial_update=extend_schema(tags=["Catalog Endpoints"], summary="Partial update brand"),
    destroy=extend_schema(tags=["Catalog Endpoints"], summary="Delete brand"),
)
class BrandViewSet(AdminBaseViewSet):
    queryset = Brand.objects.all().order_by("name")
    serializer_class = BrandSerializer
    filter_backends = [drf_filters.SearchFilter, drf_filters.OrderingFilter]
    search_fields = ["name", "tagline"]


@extend_schema_view(
    list=extend_schema(tags=["Catalog Endpoints"], summary="List products"),
    retrieve=extend_schema(tags=["Catalog Endpoints"], summary="Get product"),
    create=extend_schema(tags=["Catalog Endpoints"], summary="Create product"),
    update=extend_schema(tags=["Catalog Endpoints"], summary="Update product"),
    partial_update=extend_schema(tags=["Catalog Endpoints"], summary="Partial update product"),
    destroy=extend_schema(tags=["Catalog Endpoints"], summary="Delete product"),
)
class ProductViewSet(AdminBaseViewSet):
    queryset = Product.objects.select_related("brand").order_by("name", "id")
    serializer_class = ProductSerializer
    filterset_fields = ["brand", "status"]
    search_fields = ["name", "sku"]
