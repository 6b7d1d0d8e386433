from django.urls import path
from .views import (
    purchase_order_list_create, purchase_order_detail,
    purchase_order_complete, purchase_order_cancel, purchase_order_send
)

urlpatterns = [
    path('purchase-orders/', purchase_order_list_create, name='purchase-order-list-create'),
    path('purchase-orders/<int:pk>/', purchase_order_detail, name='purchase-order-detail'),
    path('purchase-orders/<int:pk>/complete/', purchase_order_complete, name='purchase-order-complete'),
    path('purchase-orders/<int:pk>/cancel/', purchase_order_cancel, name='purchase-order-cancel'),

    # Sending lives with the alert workflow in the API
    path('alerts/send-po/', purchase_order_send, name='purchase-order-send'),
]
