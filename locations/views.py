"""Staff viewsets for warehouses and vending machines."""

from drf_spectacular.utils import OpenApiExample, extend_schema, extend_schema_view
from inventory.selectors import vending_machine_stock
from rest_framework import permissions, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from .models import VendingMachine, Warehouse
from .serializers import VendingMachineSerializer, VendingMachineStockSerializer, WarehouseSerializer


class AdminBaseViewSet(viewsets.ModelViewSet):
    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "master_data_write"


@extend_schema_view(
    list=extend_schema(tags=["Location Endpoints"], summary="List warehouses"),
    retrieve=extend_schema(tags=["Location Endpoints"], summary="Get warehouse"),
    create=extend_schema(tags=["Location Endpoints"], summary="Create warehouse"),
    update=extend_schema(tags=["Location Endpoints"], summary="Update warehouse"),
    partial_update=extend_schema(tags=["Location Endpoints"], summary="Partial update warehouse"),
    destroy=extend_schema(tags=["Location Endpoints"], summary="Delete warehouse"),
)
class WarehouseViewSet(AdminBaseViewSet):
    queryset = Warehouse.objects.all().order_by("name", "id")
    serializer_class = WarehouseSerializer
    filterset_fields = ["pic"]
    search_fields = ["name", "address"]


@extend_schema_view(
    list=extend_schema(tags=["Location Endpoints"], summary="List vending machines"),
    retrieve=extend_schema(tags=["Location Endpoints"], summary="Get vending machine"),
    create=extend_schema(tags=["Location Endpoints"], summary="Create vending machine"),
    update=extend_schema(tags=["Location Endpoints"], summary="Update vending machine"),
    partial_update=extend_schema(tags=["Location Endpoints"], summary="Partial update vending machine"),
    destroy=extend_schema(tags=["Location Endpoints"], summary="Delete vending machine"),
)
class VendingMachineViewSet(AdminBaseViewSet):
    queryset = VendingMachine.objects.all().order_by("name", "id")
    serializer_class = VendingMachineSerializer
    filterset_fields = ["pic", "status"]
    search_fields = ["name", "location"]

    @extend_schema(
        tags=["Location Endpoints"],
        summary="Vending machine stock",
        description=(
            "Per-product stock held by the machine, derived from committed transfers "
            "into it minus committed returns out of it."
        ),
        responses=VendingMachineStockSerializer(many=True),
        examples=[
            OpenApiExample(
                "Machine stock",
                value=[
                    {
                        "product_id": 7,
                        "product_name": "Mineral Water 600ml",
                        "transferred": 40,
                        "returned": 5,
                        "quantity": 35,
                    }
                ],
                response_only=True,
            )
        ],
    )
    @action(detail=True, methods=["get"], permission_classes=[permissions.IsAuthenticated], throttle_scope="inventory")
    def stock(self, request, pk=None):
        machine = self.get_object()
        rows = vending_machine_stock(vending_machine_id=machine.id)
        return Response(VendingMachineStockSerializer(rows, many=True).data)
