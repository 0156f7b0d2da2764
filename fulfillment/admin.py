"""Admin registrations for fulfillment documents.

Documents are read-only here: quantities and statuses only change through
``fulfillment.services`` so every write is reconciled.
"""

from django.contrib import admin

from .models import Document, DocumentLine, DocumentStatusEvent


class DocumentLineInline(admin.TabularInline):
    model = DocumentLine
    extra = 0
    can_delete = False
    fields = ("source_line", "sku", "product_name", "quantity_requested", "quantity_shipped", "quantity_received")
    readonly_fields = fields


class DocumentStatusEventInline(admin.TabularInline):
    model = DocumentStatusEvent
    extra = 0
    can_delete = False
    fields = ("status_from", "status_to", "actor", "created_at")
    readonly_fields = fields


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    list_display = ("id", "number", "kind", "status", "order", "origin_location", "destination_location", "created_at")
    list_filter = ("kind", "status", "created_at")
    search_fields = ("number", "order__number", "tracking_number")
    date_hierarchy = "created_at"
    inlines = [DocumentLineInline, DocumentStatusEventInline]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# EOF
