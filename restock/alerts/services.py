"""
Low-stock alert engine.

Alerts are not stored: every read derives them from product stock levels and
then removes the ones an ignore or resolve marker covers for the product's
current depletion episode. Only the user's decisions (AlertMarker rows) are
persisted.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from django.db import DatabaseError, transaction
from django.db.models import Exists, F, OuterRef, Subquery

from restock.catalog import store
from restock.catalog.models import PRIORITY_CHOICES, Product
from restock.core.cache_utils import ALERT_SUMMARY_CACHE_PREFIX, cached_query
from restock.core.conf import get_restock_settings
from restock.core.exceptions import ConflictError, NotFoundError, PersistenceError, ValidationError
from restock.core.utils import create_audit_log

from .models import AlertMarker

logger = logging.getLogger(__name__)

STATUS_ACTIVE = 'active'
UNCATEGORIZED = 'Uncategorized'


@dataclass
class Alert:
    """A derived low-stock alert for one product"""
    product: Product
    priority: str
    status: str = STATUS_ACTIVE
    created_at: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None

    @property
    def id(self):
        # One alert per product at a time, so the product id identifies it
        return self.product.pk

    @property
    def sort_key(self):
        product = self.product
        return (product.stock_ratio, product.current_stock, product.name, product.pk)


@dataclass
class ReorderSuggestion:
    alert: Alert
    suggested_quantity: int
    estimated_cost: Decimal

    @property
    def product(self):
        return self.alert.product


def _acting_user(user):
    return user if user is not None and user.is_authenticated else None


def _suppressing_markers():
    return AlertMarker.objects.filter(
        product=OuterRef('pk'),
        episode=OuterRef('stock_episode'),
        kind__in=AlertMarker.SUPPRESSING_KINDS,
    )


def _active_products():
    latest_ack = (
        AlertMarker.objects
        .filter(product=OuterRef('pk'), episode=OuterRef('stock_episode'), kind=AlertMarker.KIND_ACKNOWLEDGED)
        .order_by('-created_at', '-id')
        .values('created_at')[:1]
    )
    return (
        store.list_products_below_threshold()
        .select_related('category', 'supplier')
        .filter(~Exists(_suppressing_markers()))
        .annotate(last_acknowledged_at=Subquery(latest_ack))
    )


def _to_alert(product):
    return Alert(
        product=product,
        priority=product.priority,
        created_at=product.low_stock_since,
        acknowledged_at=getattr(product, 'last_acknowledged_at', None),
    )


def list_active(category=None, priority=None) -> List[Alert]:
    """
    Active low-stock alerts, most critical first.

    Args:
        category: Optional category name (case-insensitive)
        priority: Optional priority (high, medium, low)
    """
    if priority and priority not in dict(PRIORITY_CHOICES):
        raise ValidationError(f"Priority must be one of: {', '.join(dict(PRIORITY_CHOICES))}", priority=priority)

    queryset = _active_products()
    if category:
        if category == UNCATEGORIZED:
            queryset = queryset.filter(category__isnull=True)
        else:
            queryset = queryset.filter(category__name__iexact=category)

    alerts = [_to_alert(product) for product in queryset]
    if priority:
        alerts = [alert for alert in alerts if alert.priority == priority]
    alerts.sort(key=lambda alert: alert.sort_key)
    return alerts


def _get_low_stock_product(product_id):
    """Lock a product that currently has a low-stock alert"""
    product = store.get_product(product_id, for_update=True)
    if not product.is_low_stock:
        raise NotFoundError(
            f"No low-stock alert for product {product.name}",
            product_id=product.pk,
            current_stock=product.current_stock,
            threshold=product.low_stock_threshold,
        )
    return product


def _create_marker(product, kind, reason='', user=None, purchase_order=None):
    return AlertMarker.objects.create(
        product=product,
        episode=product.stock_episode,
        kind=kind,
        reason=reason or '',
        purchase_order=purchase_order,
        stock_at_marking=product.current_stock,
        threshold_at_marking=product.low_stock_threshold,
        created_by=_acting_user(user),
    )


def record_resolution(product, purchase_order, user=None):
    """
    Mark the product's current alert as resolved by a purchase order.

    Must run inside the caller's transaction with the product locked. Returns
    None when the product is not low-stock.
    """
    if not product.is_low_stock:
        return None
    return _create_marker(product, AlertMarker.KIND_RESOLVED, user=user, purchase_order=purchase_order)


def ignore_alert(product_id, reason=None, user=None, request=None):
    """Hide a product's alert until it is restocked and runs low again"""
    try:
        with transaction.atomic():
            product = _get_low_stock_product(product_id)
            existing = AlertMarker.objects.filter(
                product=product,
                episode=product.stock_episode,
                kind__in=AlertMarker.SUPPRESSING_KINDS,
            ).first()
            if existing:
                raise ConflictError(
                    f"Alert for {product.name} is already {existing.kind}",
                    product_id=product.pk,
                    episode=product.stock_episode,
                )
            marker = _create_marker(product, AlertMarker.KIND_IGNORED, reason=reason, user=user)
    except DatabaseError as e:
        logger.exception(f"Failed to ignore alert for product {product_id}")
        raise PersistenceError(str(e), product_id=product_id) from e

    logger.info(f"Alert for product {product.pk} ({product.name}) ignored in episode {marker.episode}")
    create_audit_log(
        request=request,
        user=user,
        action='alert_ignore',
        model_name='Product',
        object_id=product.pk,
        object_name=product.name,
        object_reference=product.sku,
        changes={
            'reason': marker.reason,
            'episode': marker.episode,
            'current_stock': product.current_stock,
            'threshold': product.low_stock_threshold,
        },
    )
    return marker


def acknowledge_alert(product_id, notes=None, user=None, request=None):
    """Record that someone has seen an alert; the alert stays active"""
    try:
        with transaction.atomic():
            product = _get_low_stock_product(product_id)
            marker = _create_marker(product, AlertMarker.KIND_ACKNOWLEDGED, reason=notes, user=user)
    except DatabaseError as e:
        logger.exception(f"Failed to acknowledge alert for product {product_id}")
        raise PersistenceError(str(e), product_id=product_id) from e

    logger.info(f"Alert for product {product.pk} ({product.name}) acknowledged")
    create_audit_log(
        request=request,
        user=user,
        action='alert_acknowledge',
        model_name='Product',
        object_id=product.pk,
        object_name=product.name,
        object_reference=product.sku,
        changes={'notes': marker.reason, 'episode': marker.episode},
    )
    return marker


def list_ignored():
    """Ignore markers that still hide an alert, newest first"""
    resolved_since = AlertMarker.objects.filter(
        product=OuterRef('product'),
        episode=OuterRef('episode'),
        kind=AlertMarker.KIND_RESOLVED,
    )
    return list(
        AlertMarker.objects
        .filter(
            kind=AlertMarker.KIND_IGNORED,
            episode=F('product__stock_episode'),
            product__is_active=True,
            product__current_stock__lte=F('product__low_stock_threshold'),
        )
        .filter(~Exists(resolved_since))
        .select_related('product', 'product__category', 'product__supplier', 'created_by')
        .order_by('-created_at', '-id')
    )


def list_resolved():
    """Resolution history, newest first"""
    return list(
        AlertMarker.objects
        .filter(kind=AlertMarker.KIND_RESOLVED)
        .select_related(
            'product', 'product__category', 'product__supplier',
            'purchase_order', 'purchase_order__supplier', 'created_by',
        )
        .prefetch_related('purchase_order__items')
        .order_by('-created_at', '-id')
    )


def alert_history(product_id):
    """Every marker recorded for a product across all episodes"""
    product = store.get_product(product_id)
    return list(
        product.alert_markers
        .select_related('purchase_order', 'created_by')
        .order_by('-created_at', '-id')
    )


def update_threshold(product_id, new_threshold, user=None, request=None):
    """
    Change a product's low-stock threshold.

    Alert membership follows from the new value on the next read; markers are
    left untouched.
    """
    store.validate_threshold(new_threshold)
    product = store.get_product(product_id)
    old_threshold = product.low_stock_threshold

    product = store.update_threshold(product, new_threshold)

    logger.info(f"Threshold for product {product.pk} changed from {old_threshold} to {new_threshold}")
    create_audit_log(
        request=request,
        user=user,
        action='threshold_change',
        model_name='Product',
        object_id=product.pk,
        object_name=product.name,
        object_reference=product.sku,
        changes={'low_stock_threshold': {'old': old_threshold, 'new': new_threshold}},
    )
    return product


@cached_query(
    cache_ttl=lambda: get_restock_settings().alert_summary_cache_ttl,
    key_prefix=ALERT_SUMMARY_CACHE_PREFIX,
)
def alert_summary():
    """
    Dashboard counts for active alerts

    Returns:
        dict with total, per-priority counts, ignored count, estimated
        restock value and a per-category breakdown
    """
    alerts = list_active()
    counts = {value: 0 for value, _ in PRIORITY_CHOICES}
    categories = {}
    restock_value = Decimal('0.00')

    for alert in alerts:
        product = alert.product
        counts[alert.priority] += 1
        value = product.unit_price * product.shortfall
        restock_value += value

        name = product.category.name if product.category else UNCATEGORIZED
        entry = categories.setdefault(name, {'category': name, 'count': 0, 'estimated_value': Decimal('0.00')})
        entry['count'] += 1
        entry['estimated_value'] += value

    return {
        'total': len(alerts),
        'high': counts['high'],
        'medium': counts['medium'],
        'low': counts['low'],
        'ignored': len(list_ignored()),
        'estimated_restock_value': restock_value,
        'category_breakdown': sorted(categories.values(), key=lambda entry: (-entry['count'], entry['category'])),
    }


def reorder_suggestions(config=None):
    """Suggested order quantities for every active alert"""
    config = config or get_restock_settings()
    suggestions = []
    for alert in list_active():
        product = alert.product
        quantity = max(0, product.low_stock_threshold * config.reorder_multiplier - product.current_stock)
        suggestions.append(ReorderSuggestion(
            alert=alert,
            suggested_quantity=quantity,
            estimated_cost=product.unit_price * quantity,
        ))

    # Out of stock first, then the most expensive gaps
    suggestions.sort(key=lambda s: (s.product.current_stock != 0, -s.estimated_cost, s.product.pk))
    return suggestions
