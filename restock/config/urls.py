"""
URL configuration for the restock project.

Every app mounts its routes under the versioned API prefix.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Restock Admin Panel"
admin.site.site_title = "Restock Admin Portal"
admin.site.index_title = "Inventory alerts and purchase orders"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('restock.core.urls')),
    path('api/v1/', include('restock.alerts.urls')),
    path('api/v1/', include('restock.purchasing.urls')),
]
