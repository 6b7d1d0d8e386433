"""
Signals that keep the cached alert summary in step with stock and markers
"""
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from restock.catalog.models import Product
from restock.core.cache_utils import invalidate_alert_summary_cache
from restock.purchasing.models import PurchaseOrder

from .models import AlertMarker


@receiver(post_save, sender=Product)
@receiver(post_delete, sender=Product)
def invalidate_summary_on_product_change(sender, instance, **kwargs):
    invalidate_alert_summary_cache()


@receiver(post_save, sender=AlertMarker)
@receiver(post_delete, sender=AlertMarker)
def invalidate_summary_on_marker_change(sender, instance, **kwargs):
    invalidate_alert_summary_cache()


@receiver(post_save, sender=PurchaseOrder)
def invalidate_summary_on_order_change(sender, instance, **kwargs):
    invalidate_alert_summary_cache()
