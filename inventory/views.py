"""DRF views for the stock ledger.

Record endpoints create, edit and reverse stock-ins, transfers and returns through
the ledger services; read endpoints expose balances, expiry alerts and the
dashboard summary. Ledger errors map to 400 (invalid request) or 409
(insufficient stock or quantity) with the error's context in the body.
"""

from django.conf import settings
from drf_spectacular.utils import (
    OpenApiExample,
    OpenApiParameter,
    extend_schema,
    extend_schema_view,
    inline_serializer,
)
from rest_framework import generics, mixins, permissions, status, viewsets
from rest_framework import serializers as rf_serializers
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import InvalidRequest, LedgerError
from .models import StockIn, StockReturn, StockTransfer
from .selectors import available_stock, get_summary, list_expiry_alerts, list_stock_balances
from .serializers import (
    AvailableStockQuerySerializer,
    BatchSerializer,
    ExpiryAlertSerializer,
    ExpiryAlertsQuerySerializer,
    ScopeQuerySerializer,
    StockBalanceQuerySerializer,
    StockInCreateSerializer,
    StockInSerializer,
    StockReturnCreateSerializer,
    StockReturnSerializer,
    StockTransferCreateSerializer,
    StockTransferSerializer,
)
from .services import delete_return, delete_stock_in, delete_transfer, remove_return_line, remove_transfer_line

LedgerErrorResponse = inline_serializer(
    name="LedgerErrorResponse",
    fields={"detail": rf_serializers.CharField(), "code": rf_serializers.CharField()},
)

PRODUCT_ID_PARAMETER = OpenApiParameter("product_id", int, OpenApiParameter.PATH)


def ledger_error_response(exc: LedgerError) -> Response:
    code = status.HTTP_400_BAD_REQUEST if isinstance(exc, InvalidRequest) else status.HTTP_409_CONFLICT
    return Response(exc.as_dict(), status=code)


class InventoryHealthView(APIView):
    permission_classes = [permissions.AllowAny]
    throttle_classes = []

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Inventory health",
        description="Simple healthcheck endpoint for the inventory app",
        examples=[OpenApiExample("Health OK", value={"status": "ok", "app": "inventory"})],
    )
    def get(self, request):
        return Response({"status": "ok", "app": "inventory"})


class LedgerRecordViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """List, create, retrieve, replace and reverse one kind of ledger record.

    Subclasses name the write serializer and the service calls that reverse
    a whole record or one product line of it.
    """

    permission_classes = [permissions.IsAuthenticated]
    create_serializer_class = None

    @property
    def throttle_scope(self):
        return "inventory" if self.request.method in permissions.SAFE_METHODS else "inventory_write"

    def reverse_record(self, record):
        raise NotImplementedError

    def remove_line(self, record, product_id: int):
        raise NotImplementedError

    def _render(self, record, status_code=status.HTTP_200_OK) -> Response:
        record = self.get_queryset().get(id=record.id)
        return Response(self.get_serializer(record).data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = self.create_serializer_class(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        try:
            record = serializer.save()
        except LedgerError as exc:
            return ledger_error_response(exc)
        return self._render(record, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        record = self.get_object()
        serializer = self.create_serializer_class(record, data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        try:
            record = serializer.save()
        except LedgerError as exc:
            return ledger_error_response(exc)
        return self._render(record)

    def destroy(self, request, *args, **kwargs):
        record = self.get_object()
        try:
            record = self.reverse_record(record)
        except LedgerError as exc:
            return ledger_error_response(exc)
        return self._render(record)

    def _remove_product(self, request, pk=None, product_id=None):
        record = self.get_object()
        try:
            record = self.remove_line(record, int(product_id))
        except LedgerError as exc:
            return ledger_error_response(exc)
        return self._render(record)


@extend_schema_view(
    list=extend_schema(tags=["Inventory Endpoints"], summary="List stock-ins"),
    retrieve=extend_schema(tags=["Inventory Endpoints"], summary="Get stock-in"),
    create=extend_schema(
        tags=["Inventory Endpoints"],
        summary="Receive stock",
        description="Credits one batch per product line into the warehouse.",
        request=StockInCreateSerializer,
        responses={201: StockInSerializer, 400: LedgerErrorResponse},
        examples=[
            OpenApiExample(
                "Stock-in",
                value={
                    "warehouse_id": 1,
                    "date": "2025-01-01",
                    "lines": [{"product_id": 7, "quantity": 100, "expiry_date": "2025-01-10"}],
                },
                request_only=True,
            )
        ],
    ),
    update=extend_schema(
        tags=["Inventory Endpoints"],
        summary="Edit stock-in",
        description=(
            "Replaces the warehouse, date, notes and lines. New lines are credited before the old ones "
            "are debited; fails with 409 if stock already moved out is no longer covered."
        ),
        request=StockInCreateSerializer,
        responses={200: StockInSerializer, 400: LedgerErrorResponse, 409: LedgerErrorResponse},
    ),
    destroy=extend_schema(
        tags=["Inventory Endpoints"],
        summary="Reverse stock-in",
        description="Debits every batch the stock-in credited. Fails with 409 once the stock has moved on.",
        responses={200: StockInSerializer, 409: LedgerErrorResponse},
    ),
)
class StockInViewSet(LedgerRecordViewSet):
    queryset = StockIn.objects.select_related("warehouse").prefetch_related(
        "lines__product", "lines__batch__stock_in", "lines__batch__stock_return"
    )
    serializer_class = StockInSerializer
    create_serializer_class = StockInCreateSerializer
    filterset_fields = ["warehouse", "status", "date"]

    def reverse_record(self, record):
        return delete_stock_in(stock_in_id=record.id)


@extend_schema_view(
    list=extend_schema(tags=["Inventory Endpoints"], summary="List stock transfers"),
    retrieve=extend_schema(tags=["Inventory Endpoints"], summary="Get stock transfer"),
    create=extend_schema(
        tags=["Inventory Endpoints"],
        summary="Transfer stock to a vending machine",
        description=(
            "Allocates each product against the warehouse's batches, earliest expiry first. "
            "If any product is short the whole transfer is rejected with 409."
        ),
        request=StockTransferCreateSerializer,
        responses={201: StockTransferSerializer, 400: LedgerErrorResponse, 409: LedgerErrorResponse},
        examples=[
            OpenApiExample(
                "Insufficient stock",
                value={
                    "detail": "Insufficient stock for product 7 in warehouse 1: requested 200, available 150",
                    "code": "insufficient_stock",
                    "product_id": 7,
                    "warehouse_id": 1,
                    "requested": 200,
                    "available": 150,
                    "shortfall": 50,
                },
                response_only=True,
                status_codes=["409"],
            )
        ],
    ),
    update=extend_schema(
        tags=["Inventory Endpoints"],
        summary="Edit stock transfer",
        description=(
            "Restores the old allocations and re-plans every line earliest expiry first. Fails with 409 "
            "if the warehouse is short or the machine no longer holds units the edit takes back."
        ),
        request=StockTransferCreateSerializer,
        responses={200: StockTransferSerializer, 400: LedgerErrorResponse, 409: LedgerErrorResponse},
    ),
    destroy=extend_schema(
        tags=["Inventory Endpoints"],
        summary="Reverse stock transfer",
        description=(
            "Restores every batch allocation of the transfer. Fails with 409 if the units "
            "were already returned from the machine."
        ),
        responses={200: StockTransferSerializer, 409: LedgerErrorResponse},
    ),
)
class StockTransferViewSet(LedgerRecordViewSet):
    queryset = StockTransfer.objects.select_related("from_warehouse", "to_vending_machine").prefetch_related(
        "lines__product", "lines__allocations__batch__stock_in", "lines__allocations__batch__stock_return"
    )
    serializer_class = StockTransferSerializer
    create_serializer_class = StockTransferCreateSerializer
    filterset_fields = ["from_warehouse", "to_vending_machine", "status", "date"]

    def reverse_record(self, record):
        return delete_transfer(transfer_id=record.id)

    def remove_line(self, record, product_id: int):
        return remove_transfer_line(transfer_id=record.id, product_id=product_id)

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Remove product from transfer",
        description="Restores the batches the product line drew from and drops the line.",
        parameters=[PRODUCT_ID_PARAMETER],
        request=None,
        responses={200: StockTransferSerializer, 400: LedgerErrorResponse, 409: LedgerErrorResponse},
    )
    @action(detail=True, methods=["delete"], url_path=r"products/(?P<product_id>\d+)")
    def remove_product(self, request, pk=None, product_id=None):
        return self._remove_product(request, pk=pk, product_id=product_id)


@extend_schema_view(
    list=extend_schema(tags=["Inventory Endpoints"], summary="List stock returns"),
    retrieve=extend_schema(tags=["Inventory Endpoints"], summary="Get stock return"),
    create=extend_schema(
        tags=["Inventory Endpoints"],
        summary="Return stock into a warehouse",
        description=(
            "Credits returned goods as new batches. A vending-machine source must hold at least "
            "the returned quantity of each product."
        ),
        request=StockReturnCreateSerializer,
        responses={201: StockReturnSerializer, 400: LedgerErrorResponse, 409: LedgerErrorResponse},
    ),
    update=extend_schema(
        tags=["Inventory Endpoints"],
        summary="Edit stock return",
        description="Replaces the return. A vending-machine source must hold any increase in quantity.",
        request=StockReturnCreateSerializer,
        responses={200: StockReturnSerializer, 400: LedgerErrorResponse, 409: LedgerErrorResponse},
    ),
    destroy=extend_schema(
        tags=["Inventory Endpoints"],
        summary="Reverse stock return",
        description="Debits the batches the return credited. Fails with 409 if they were drawn down since.",
        responses={200: StockReturnSerializer, 409: LedgerErrorResponse},
    ),
)
class StockReturnViewSet(LedgerRecordViewSet):
    queryset = StockReturn.objects.select_related(
        "from_warehouse", "from_vending_machine", "to_warehouse"
    ).prefetch_related("lines__product", "lines__batch__stock_in", "lines__batch__stock_return")
    serializer_class = StockReturnSerializer
    create_serializer_class = StockReturnCreateSerializer
    filterset_fields = ["source_type", "from_warehouse", "from_vending_machine", "to_warehouse", "status", "date"]

    def reverse_record(self, record):
        return delete_return(return_id=record.id)

    def remove_line(self, record, product_id: int):
        return remove_return_line(return_id=record.id, product_id=product_id)

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Remove product from return",
        description="Debits the credited batches for the product. Fails with 409 if they were drawn down since.",
        parameters=[PRODUCT_ID_PARAMETER],
        request=None,
        responses={200: StockReturnSerializer, 400: LedgerErrorResponse, 409: LedgerErrorResponse},
    )
    @action(detail=True, methods=["delete"], url_path=r"products/(?P<product_id>\d+)")
    def remove_product(self, request, pk=None, product_id=None):
        return self._remove_product(request, pk=pk, product_id=product_id)


class StockBalanceListView(generics.ListAPIView):
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "inventory"
    serializer_class = BatchSerializer

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List stock balances",
        description="Batches with remaining stock in FEFO order. Filters: warehouse_id, user_id, product_id.",
        parameters=[StockBalanceQuerySerializer],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        query = StockBalanceQuerySerializer(data=self.request.query_params)
        query.is_valid(raise_exception=True)
        return list_stock_balances(**query.validated_data)


class AvailableStockView(APIView):
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "inventory"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Available stock",
        description="Total remaining quantity of a product in a warehouse.",
        parameters=[AvailableStockQuerySerializer],
        responses=inline_serializer(
            name="AvailableStockResponse",
            fields={
                "product_id": rf_serializers.IntegerField(),
                "warehouse_id": rf_serializers.IntegerField(),
                "available": rf_serializers.IntegerField(),
            },
        ),
        examples=[OpenApiExample("Available", value={"product_id": 7, "warehouse_id": 1, "available": 30})],
    )
    def get(self, request):
        query = AvailableStockQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data
        return Response({**data, "available": available_stock(**data)})


class ExpiryAlertListView(APIView):
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "inventory"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Expiry alerts",
        description=(
            "Batches that are expired or expire within days_ahead (default from settings), "
            "sorted by expiry date. Filters: warehouse_id, user_id."
        ),
        parameters=[ExpiryAlertsQuerySerializer],
        responses=inline_serializer(
            name="ExpiryAlertListResponse",
            fields={
                "days_ahead": rf_serializers.IntegerField(),
                "count": rf_serializers.IntegerField(),
                "results": ExpiryAlertSerializer(many=True),
            },
        ),
    )
    def get(self, request):
        query = ExpiryAlertsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = dict(query.validated_data)
        days_ahead = params.pop("days_ahead", None)
        if days_ahead is None:
            days_ahead = settings.INVENTORY_DEFAULT_LOOKAHEAD_DAYS
        alerts = list_expiry_alerts(look_ahead_days=days_ahead, **params)
        return Response(
            {
                "days_ahead": days_ahead,
                "count": len(alerts),
                "results": ExpiryAlertSerializer(alerts, many=True).data,
            }
        )


class InventorySummaryView(APIView):
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "inventory"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Inventory summary",
        description=(
            "Dashboard totals: available quantity, expiry counts, low stock, most transferred "
            "products and recent activity. Cached briefly; refreshed after every ledger change."
        ),
        parameters=[ScopeQuerySerializer],
        responses=inline_serializer(
            name="InventorySummaryResponse",
            fields={"total_available": rf_serializers.IntegerField(), "low_stock": rf_serializers.IntegerField()},
        ),
    )
    def get(self, request):
        query = ScopeQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        return Response(get_summary(**query.validated_data))


# EOF
