from django.urls import path
from .views import (
    active_alerts, ignored_alerts, resolved_alerts, alert_summary, reorder_suggestions,
    alert_history, ignore_alert, acknowledge_alert, update_threshold
)

urlpatterns = [
    path('alerts/active/', active_alerts, name='alert-active'),
    path('alerts/ignored/', ignored_alerts, name='alert-ignored'),
    path('alerts/resolved/', resolved_alerts, name='alert-resolved'),
    path('alerts/summary/', alert_summary, name='alert-summary'),
    path('alerts/reorder-suggestions/', reorder_suggestions, name='alert-reorder-suggestions'),
    path('alerts/threshold/', update_threshold, name='alert-threshold'),
    path('alerts/<int:product_id>/ignore/', ignore_alert, name='alert-ignore'),
    path('alerts/<int:product_id>/acknowledge/', acknowledge_alert, name='alert-acknowledge'),
    path('alerts/<int:product_id>/history/', alert_history, name='alert-history'),
]
