from django.contrib import admin

from .models import Order, OrderItem, OrderStatusHistory


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ("name", "source_type", "catalog_item_id", "quantity", "unit_price", "get_line_item_total", "notes")
    readonly_fields = fields
    can_delete = False

    def get_line_item_total(self, obj):
        return f"{obj.line_total:,.2f}"

    get_line_item_total.short_description = "Line Item Total"

    def has_add_permission(self, request, obj=None):
        return False


class OrderStatusHistoryInline(admin.TabularInline):
    model = OrderStatusHistory
    extra = 0
    fields = ("created_at", "previous_status", "new_status", "changed_by", "notes")
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Admin configuration for the Order model.

    Status and payment status are read-only here: they only change through
    the status and payment services so that history, versioning and events
    stay consistent.
    """

    list_display = (
        "order_number",
        "customer_display_name",
        "status",
        "payment_status",
        "order_type",
        "total",
        "version",
        "created_at",
    )
    list_display_links = ("order_number",)
    list_filter = ("status", "payment_status", "order_type", "payment_method", "created_at")
    search_fields = ("order_number", "customer_name", "customer_email", "customer__username", "customer__email")
    date_hierarchy = "created_at"
    inlines = [OrderItemInline, OrderStatusHistoryInline]
    readonly_fields = (
        "order_number",
        "idempotency_key",
        "status",
        "payment_status",
        "payment_reference",
        "subtotal",
        "delivery_fee",
        "tax_amount",
        "total",
        "version",
        "created_at",
        "updated_at",
        "accepted_at",
        "accepted_by",
        "preparation_started_at",
        "preparation_completed_at",
        "actual_delivery_time",
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(OrderStatusHistory)
class OrderStatusHistoryAdmin(admin.ModelAdmin):
    list_display = ("order", "previous_status", "new_status", "changed_by", "created_at")
    list_filter = ("new_status", "created_at")
    search_fields = ("order__order_number",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
