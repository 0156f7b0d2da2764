"""Read-only serializers for fulfillment documents.

Mutations go through ``fulfillment.services``; nothing here writes.
"""

from rest_framework import serializers

from .kinds import policy_for
from .models import Document, DocumentLine, DocumentStatusEvent


class DocumentLineSerializer(serializers.ModelSerializer):
    """A document line with its currently committed quantity.

    ``committed`` comes from the ``with_committed()`` annotation when present.
    """

    committed = serializers.SerializerMethodField()

    class Meta:
        model = DocumentLine
        fields = [
            "id",
            "source_line",
            "sku",
            "product_name",
            "variant_sku",
            "quantity_requested",
            "quantity_shipped",
            "quantity_received",
            "committed",
        ]
        read_only_fields = fields

    def get_committed(self, obj) -> str:
        value = getattr(obj, "committed", None)
        if value is None:
            value = policy_for(obj.document.kind).committed_quantity(obj, obj.document.status)
        return f"{value:.3f}"


class DocumentStatusEventSerializer(serializers.ModelSerializer):
    actor = serializers.CharField(source="actor.username", read_only=True, default=None)

    class Meta:
        model = DocumentStatusEvent
        fields = ["status_from", "status_to", "actor", "created_at"]
        read_only_fields = fields


class DocumentListSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source="order.number", read_only=True)

    class Meta:
        model = Document
        fields = [
            "id",
            "kind",
            "number",
            "status",
            "order",
            "order_number",
            "origin_location",
            "destination_location",
            "requested_date",
            "shipped_at",
            "received_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class DocumentDetailSerializer(DocumentListSerializer):
    """Document header with lines, status history and the statuses reachable next."""

    lines = DocumentLineSerializer(many=True, read_only=True)
    status_events = DocumentStatusEventSerializer(many=True, read_only=True)
    allowed_transitions = serializers.SerializerMethodField()

    class Meta(DocumentListSerializer.Meta):
        fields = DocumentListSerializer.Meta.fields + [
            "carrier_name",
            "tracking_number",
            "notes",
            "lines",
            "status_events",
            "allowed_transitions",
        ]
        read_only_fields = fields

    def get_allowed_transitions(self, obj) -> list[str]:
        return list(policy_for(obj.kind).transitions.get(obj.status, ()))


class SourceLineDocumentSerializer(serializers.Serializer):
    document_id = serializers.IntegerField()
    number = serializers.CharField()
    kind = serializers.CharField()
    status = serializers.CharField()
    line_id = serializers.IntegerField()
    committed = serializers.DecimalField(max_digits=15, decimal_places=3)


class SourceLineRemainingSerializer(serializers.Serializer):
    source_line_id = serializers.IntegerField()
    order_id = serializers.IntegerField()
    order_number = serializers.CharField()
    sku = serializers.CharField()
    ordered = serializers.DecimalField(max_digits=15, decimal_places=3)
    committed = serializers.DecimalField(max_digits=15, decimal_places=3)
    remaining = serializers.DecimalField(max_digits=15, decimal_places=3)
    documents = SourceLineDocumentSerializer(many=True)
