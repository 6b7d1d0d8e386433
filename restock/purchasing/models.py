from django.db import models
from decimal import Decimal
from restock.catalog.models import Product
from restock.parties.models import Supplier
from restock.core.models import User

# Largest value a PositiveIntegerField holds on every supported backend
MAX_ITEM_QUANTITY = 2147483647
# total_amount is DecimalField(max_digits=12, decimal_places=2)
MAX_TOTAL_AMOUNT = Decimal('9999999999.99')


class PurchaseOrder(models.Model):
    """Purchase order raised to a supplier, usually from a low-stock alert"""
    STATUS_PENDING = 'pending'
    STATUS_SENT = 'sent'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_SENT, 'Sent'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    ALLOWED_TRANSITIONS = {
        STATUS_PENDING: {STATUS_SENT, STATUS_CANCELLED},
        STATUS_SENT: {STATUS_COMPLETED, STATUS_CANCELLED},
        STATUS_COMPLETED: set(),
        STATUS_CANCELLED: set(),
    }

    SEND_METHOD_CHOICES = [
        ('email', 'Email'),
        ('whatsapp', 'WhatsApp'),
    ]

    order_number = models.CharField(max_length=50, unique=True)
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name='purchase_orders')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True)
    expected_delivery_date = models.DateField(null=True, blank=True)
    sent_method = models.CharField(max_length=20, choices=SEND_METHOD_CHOICES, blank=True)
    sent_to = models.CharField(max_length=255, blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='purchase_orders')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.order_number

    def get_subtotal(self):
        """Calculate subtotal from all items"""
        return sum((item.get_line_total() for item in self.items.all()), Decimal('0.00'))

    def can_transition_to(self, new_status):
        return new_status in self.ALLOWED_TRANSITIONS.get(self.status, set())

    @property
    def is_terminal(self):
        return not self.ALLOWED_TRANSITIONS.get(self.status)

    class Meta:
        db_table = 'purchase_orders'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['status'], name='idx_po_status'),
            models.Index(fields=['supplier', 'status'], name='idx_po_supplier_status'),
        ]


class PurchaseOrderItem(models.Model):
    """Purchase order line items"""
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='purchase_order_items')
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)

    def get_line_total(self):
        """Calculate line total"""
        return self.quantity * self.unit_price

    class Meta:
        db_table = 'purchase_order_items'
        ordering = ['id']
