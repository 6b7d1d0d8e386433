from django.contrib import admin
from .models import Category, Product


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'description']
    ordering = ['name']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'sku', 'category', 'supplier', 'current_stock', 'low_stock_threshold', 'unit_price', 'get_priority', 'is_active']
    list_filter = ['is_active', 'category', 'supplier']
    search_fields = ['name', 'sku']
    ordering = ['name']
    readonly_fields = ['low_stock_since', 'stock_episode', 'created_at', 'updated_at']

    def get_priority(self, obj):
        return obj.priority or '-'
    get_priority.short_description = 'Alert priority'
