"""
Inventory store accessors used by the alert and reorder workflow.

Stock and threshold changes must go through Product.save() so that the
depletion episode stays in step with the stock level.
"""
import logging

from django.db import DatabaseError, transaction

from restock.core.exceptions import NotFoundError, PersistenceError, ValidationError
from .models import Product

logger = logging.getLogger(__name__)

# current_stock is a PositiveIntegerField
MAX_STOCK = 2147483647


def get_product(product_id, for_update=False):
    """Fetch an active product or raise NotFoundError. for_update requires an open transaction."""
    queryset = Product.objects.active().select_related('supplier', 'category')
    if for_update:
        queryset = queryset.select_for_update(of=('self',))
    try:
        return queryset.get(pk=product_id)
    except (Product.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f'Product {product_id} not found', product_id=product_id)


def list_products_below_threshold():
    return Product.objects.below_threshold().select_related('supplier', 'category')


def validate_threshold(value):
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError('Threshold must be a non-negative integer', threshold=value)
    return value


def update_threshold(product, value):
    """Set a product's low-stock threshold"""
    validate_threshold(value)
    try:
        with transaction.atomic():
            locked = get_product(product.pk, for_update=True)
            locked.low_stock_threshold = value
            locked.save(update_fields=['low_stock_threshold'])
    except DatabaseError as e:
        logger.exception(f"Failed to update threshold for product {product.pk} to {value}")
        raise PersistenceError(str(e), product_id=product.pk, threshold=value) from e
    return locked


def receive_stock(product_id, quantity):
    """
    Add received units to a product's stock. Runs inside the caller's
    transaction; inactive products still receive goods already ordered.
    """
    try:
        product = Product.objects.select_for_update().get(pk=product_id)
    except Product.DoesNotExist:
        raise NotFoundError(f'Product {product_id} not found', product_id=product_id)

    new_stock = product.current_stock + quantity
    if new_stock > MAX_STOCK:
        raise ValidationError(
            f"Receiving {quantity} would take {product.name} above the maximum stock of {MAX_STOCK}",
            product_id=product.pk,
            quantity=quantity,
        )
    product.current_stock = new_stock
    product.save(update_fields=['current_stock'])
    logger.info(f"Received {quantity} x {product.name}, stock now {product.current_stock}")
    return product
