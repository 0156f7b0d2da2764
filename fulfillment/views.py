"""Read-only fulfillment endpoints: documents, source line remaining quantity, health."""

from common.choices import DocumentKind, DocumentStatus
from django_filters import rest_framework as filters
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import filters as drf_filters
from rest_framework import viewsets
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from . import selectors
from .exceptions import NotFoundError
from .models import Document
from .serializers import DocumentDetailSerializer, DocumentListSerializer, SourceLineRemainingSerializer


class DocumentFilterSet(filters.FilterSet):
    kind = filters.ChoiceFilter(choices=DocumentKind.choices)
    status = filters.ChoiceFilter(choices=DocumentStatus.choices)
    order_id = filters.NumberFilter(field_name="order_id")

    class Meta:
        model = Document
        fields = ["kind", "status", "order_id"]


@extend_schema_view(
    list=extend_schema(
        summary="List fulfillment documents",
        description=(
            "Deliveries, stock transfers and supplier returns, newest first. Soft-deleted documents are never "
            "listed. Filters: `kind`, `status`, `order_id`; search by `number`."
        ),
        tags=["Fulfillment Endpoints"],
        parameters=[
            OpenApiParameter("kind", OpenApiTypes.STR, location="query", description="Document kind"),
            OpenApiParameter("status", OpenApiTypes.STR, location="query", description="Document status"),
            OpenApiParameter("order_id", OpenApiTypes.INT, location="query", description="Source order id"),
        ],
    ),
    retrieve=extend_schema(
        summary="Get fulfillment document",
        description="Header, lines with their committed quantity, and the status history (who and when).",
        tags=["Fulfillment Endpoints"],
    ),
)
class DocumentViewSet(viewsets.ReadOnlyModelViewSet):
    permission_classes = [IsAuthenticated]
    throttle_scope = "fulfillment"
    filterset_class = DocumentFilterSet
    filter_backends = [filters.DjangoFilterBackend, drf_filters.OrderingFilter, drf_filters.SearchFilter]
    search_fields = ["number", "tracking_number"]
    ordering_fields = ["created_at", "number", "status"]

    def get_queryset(self):
        if self.action == "retrieve":
            return selectors.document_detail_queryset()
        return selectors.list_documents()

    def get_serializer_class(self):
        if self.action == "retrieve":
            return DocumentDetailSerializer
        return DocumentListSerializer


class SourceLineRemainingView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "fulfillment"

    @extend_schema(
        tags=["Fulfillment Endpoints"],
        summary="Remaining committable quantity of a source line",
        description=(
            "Ordered, committed and remaining quantity for one order line, with the live documents consuming it. "
            "Informational snapshot; mutations re-check inside their own transaction."
        ),
        responses=SourceLineRemainingSerializer,
        examples=[
            OpenApiExample(
                "Partially committed",
                value={
                    "source_line_id": 7,
                    "order_id": 3,
                    "order_number": "SO-20250101-00003",
                    "sku": "JCK-001",
                    "ordered": "5.000",
                    "committed": "3.000",
                    "remaining": "2.000",
                    "documents": [
                        {
                            "document_id": 11,
                            "number": "DL-20250102-00001",
                            "kind": "delivery",
                            "status": "pending",
                            "line_id": 21,
                            "committed": "3.000",
                        }
                    ],
                },
            )
        ],
    )
    def get(self, request, source_line_id: int):
        summary = selectors.source_line_summary(source_line_id)
        if summary is None:
            raise NotFoundError(f"Source line {source_line_id} not found.", data={"source_line_id": source_line_id})
        return Response(SourceLineRemainingSerializer(summary).data)


class FulfillmentHealthView(APIView):
    permission_classes = [AllowAny]
    throttle_classes = []

    @extend_schema(
        tags=["Fulfillment Endpoints"],
        summary="Fulfillment health",
        description="Simple healthcheck endpoint for the fulfillment app",
        examples=[OpenApiExample("Health OK", value={"status": "ok", "app": "fulfillment"})],
    )
    def get(self, request):
        return Response({"status": "ok", "app": "fulfillment"})


# EOF
