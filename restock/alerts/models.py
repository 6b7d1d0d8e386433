from django.db import models
from restock.catalog.models import Product
from restock.core.models import User


class AlertMarker(models.Model):
    """
    Durable decision taken on a low-stock alert.

    Alerts themselves are derived from product stock; a marker only applies
    to the depletion episode it was recorded in (``episode`` equal to the
    product's ``stock_episode`` while the product is still low). Ignored and
    resolved markers hide the alert for that episode, acknowledgements never do.
    """
    KIND_IGNORED = 'ignored'
    KIND_RESOLVED = 'resolved'
    KIND_ACKNOWLEDGED = 'acknowledged'
    KIND_CHOICES = [
        (KIND_IGNORED, 'Ignored'),
        (KIND_RESOLVED, 'Resolved'),
        (KIND_ACKNOWLEDGED, 'Acknowledged'),
    ]
    SUPPRESSING_KINDS = (KIND_IGNORED, KIND_RESOLVED)

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='alert_markers')
    episode = models.PositiveIntegerField()
    kind = models.CharField(max_length=20, choices=KIND_CHOICES)
    reason = models.TextField(blank=True)
    purchase_order = models.ForeignKey('purchasing.PurchaseOrder', on_delete=models.SET_NULL, null=True, blank=True, related_name='alert_markers')
    stock_at_marking = models.PositiveIntegerField()
    threshold_at_marking = models.PositiveIntegerField()
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='alert_markers')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.get_kind_display()} alert for {self.product.name} (episode {self.episode})"

    class Meta:
        db_table = 'alert_markers'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['product', 'episode', 'kind'], name='idx_marker_product_episode'),
            models.Index(fields=['kind', '-created_at'], name='idx_marker_kind_created'),
        ]
