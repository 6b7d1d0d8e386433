from django.contrib import admin
from .models import Supplier


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'phone', 'whatsapp', 'email', 'contact_person', 'is_active']
    list_filter = ['is_active', 'created_at']
    search_fields = ['name', 'code', 'phone', 'email', 'contact_person']
    ordering = ['name']
    readonly_fields = ['created_at', 'updated_at']
