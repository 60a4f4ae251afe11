from django.contrib import admin

from .models import DailyAnalytics


@admin.register(DailyAnalytics)
class DailyAnalyticsAdmin(admin.ModelAdmin):
    list_display = ("date", "total_orders", "total_revenue", "computed_at")
    date_hierarchy = "date"
    readonly_fields = ("date", "data", "computed_at")

    def total_orders(self, obj):
        return obj.data.get("total_orders")

    def total_revenue(self, obj):
        return obj.data.get("total_revenue")

    def has_add_permission(self, request):
        return False
