from django.db import models
from django.db.models import F
from django.utils import timezone
from decimal import Decimal


PRIORITY_HIGH = 'high'
PRIORITY_MEDIUM = 'medium'
PRIORITY_LOW = 'low'
PRIORITY_CHOICES = [
    (PRIORITY_HIGH, 'High'),
    (PRIORITY_MEDIUM, 'Medium'),
    (PRIORITY_LOW, 'Low'),
]


def stock_priority(current_stock, threshold):
    """
    Priority of a low-stock product: high when out of stock, medium at or
    below half the threshold, low otherwise. None when stock is above threshold.
    """
    if current_stock > threshold:
        return None
    if current_stock == 0:
        return PRIORITY_HIGH
    if current_stock * 2 <= threshold:
        return PRIORITY_MEDIUM
    return PRIORITY_LOW


class Category(models.Model):
    """Product categories"""
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'


class ProductQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def below_threshold(self):
        """Active products whose stock is at or below their low-stock threshold"""
        return self.active().filter(current_stock__lte=F('low_stock_threshold'))


class Product(models.Model):
    """Product master with stock level and reorder threshold"""
    name = models.CharField(max_length=200, db_index=True)
    sku = models.CharField(max_length=100, unique=True, blank=True, null=True, db_index=True)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    supplier = models.ForeignKey('parties.Supplier', on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    unit = models.CharField(max_length=20, default='piece')
    unit_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    current_stock = models.PositiveIntegerField(default=0)
    low_stock_threshold = models.PositiveIntegerField(default=0)
    # Depletion episode tracking, maintained by save()
    low_stock_since = models.DateTimeField(null=True, blank=True)
    stock_episode = models.PositiveIntegerField(default=0, help_text='Incremented every time stock falls to or below the threshold')
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProductQuerySet.as_manager()

    def __str__(self):
        return f"{self.name} ({self.sku or 'NO-SKU'})"

    @property
    def is_low_stock(self):
        return self.current_stock <= self.low_stock_threshold

    @property
    def priority(self):
        return stock_priority(self.current_stock, self.low_stock_threshold)

    @property
    def stock_ratio(self):
        """Stock relative to threshold; 0 when the threshold is 0"""
        if not self.low_stock_threshold:
            return 0.0
        return self.current_stock / self.low_stock_threshold

    @property
    def shortfall(self):
        return max(0, self.low_stock_threshold - self.current_stock)

    def sync_stock_episode(self):
        """Open a new depletion episode when stock crosses into the low-stock state"""
        if self.is_low_stock:
            if self.low_stock_since is None:
                self.low_stock_since = timezone.now()
                self.stock_episode += 1
        else:
            self.low_stock_since = None

    def save(self, *args, **kwargs):
        self.sync_stock_episode()
        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | {'low_stock_since', 'stock_episode', 'updated_at'}
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'products'
        indexes = [
            models.Index(fields=['is_active', 'current_stock'], name='idx_product_active_stock'),
        ]
