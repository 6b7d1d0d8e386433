from django.contrib import admin
from .models import AlertMarker


@admin.register(AlertMarker)
class AlertMarkerAdmin(admin.ModelAdmin):
    list_display = ['product', 'kind', 'episode', 'purchase_order', 'stock_at_marking', 'threshold_at_marking', 'created_by', 'created_at']
    list_filter = ['kind', 'created_at']
    search_fields = ['product__name', 'product__sku', 'reason', 'purchase_order__order_number']
    raw_id_fields = ['product', 'purchase_order']
    readonly_fields = ['created_at']
    ordering = ['-created_at']
