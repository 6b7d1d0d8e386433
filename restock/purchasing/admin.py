from django.contrib import admin
from .models import PurchaseOrder, PurchaseOrderItem


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 0
    fields = ['product', 'quantity', 'unit_price']
    raw_id_fields = ['product']


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'supplier', 'status', 'get_total', 'sent_method', 'sent_at', 'created_by', 'created_at']
    list_filter = ['status', 'sent_method', 'supplier', 'created_at']
    search_fields = ['order_number', 'supplier__name', 'notes']
    ordering = ['-created_at']
    inlines = [PurchaseOrderItemInline]
    readonly_fields = ['order_number', 'sent_method', 'sent_to', 'sent_at', 'created_at', 'updated_at']

    def get_total(self, obj):
        return f"{obj.total_amount:.2f}"
    get_total.short_description = 'Total'
