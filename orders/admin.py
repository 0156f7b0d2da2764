from django.contrib import admin

from .models import Order, OrderLine


class OrderLineInline(admin.TabularInline):
    model = OrderLine
    extra = 0
    fields = ("sku", "product_name", "variant_sku", "ordered_quantity")
    readonly_fields = fields
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "number", "kind", "status", "reference", "created_at")
    list_filter = ("kind", "status", "created_at")
    search_fields = ("number", "reference")
    date_hierarchy = "created_at"
    inlines = [OrderLineInline]


@admin.register(OrderLine)
class OrderLineAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "sku", "product_name", "ordered_quantity")
    search_fields = ("sku", "product_name", "order__number")
    readonly_fields = ("ordered_quantity",)
