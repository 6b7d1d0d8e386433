"""
Reorder coordinator: turns low-stock alerts into purchase orders and moves
orders through pending -> sent -> completed (or cancelled).
"""
import logging
import re

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from restock.alerts.services import record_resolution
from restock.catalog import store
from restock.core.conf import get_restock_settings
from restock.core.exceptions import (
    ConflictError,
    DispatchError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from restock.core.utils import create_audit_log

from .dispatch import METHOD_EMAIL, DefaultDispatcher
from .models import MAX_ITEM_QUANTITY, MAX_TOTAL_AMOUNT, PurchaseOrder, PurchaseOrderItem

logger = logging.getLogger(__name__)

SEND_METHODS = dict(PurchaseOrder.SEND_METHOD_CHOICES)
PHONE_PATTERN = re.compile(r'^\+?\d{7,15}$')
# Number generation is retried once after a unique-constraint collision
ORDER_NUMBER_ATTEMPTS = 2


def _acting_user(user):
    return user if user is not None and user.is_authenticated else None


def _highest_sequence(order_numbers, prefix):
    highest = 0
    for number in order_numbers:
        try:
            highest = max(highest, int(number[len(prefix):]))
        except ValueError:
            continue
    return highest


def generate_order_number(year=None, config=None, after_collision=False):
    """
    Next order number for the year: PREFIX-YYYY-NNNN.

    The sequence is this year's order count plus one. After a collision the
    highest existing suffix is taken into account as well.
    """
    config = config or get_restock_settings()
    year = year or timezone.localdate().year
    prefix = f"{config.purchase_order_prefix}-{year}-"

    existing = PurchaseOrder.objects.filter(order_number__startswith=prefix)
    sequence = existing.count() + 1
    if after_collision:
        numbers = existing.values_list('order_number', flat=True)
        sequence = max(sequence, _highest_sequence(numbers, prefix) + 1)

    return f"{prefix}{sequence:0{config.order_sequence_width}d}"


def _insert_order(config, **fields):
    """Insert a purchase order with a fresh order number; runs inside the caller's transaction"""
    year = timezone.localdate().year
    for attempt in range(ORDER_NUMBER_ATTEMPTS):
        order_number = generate_order_number(year, config, after_collision=attempt > 0)
        try:
            with transaction.atomic():
                return PurchaseOrder.objects.create(order_number=order_number, **fields)
        except IntegrityError:
            if not PurchaseOrder.objects.filter(order_number=order_number).exists():
                raise
            logger.warning(f"Order number {order_number} already taken (attempt {attempt + 1})")

    raise ConflictError(
        'Could not allocate a unique purchase order number, please retry',
        year=year,
        last_attempt=order_number,
    )


def create_purchase_order(product_id, quantity, notes=None, user=None, request=None,
                          expected_delivery_date=None, config=None):
    """
    Raise a purchase order for one product and resolve its alert.

    Product lock, order, line item and resolve marker are written in a single
    transaction; any database failure rolls all of them back.

    Returns:
        The created PurchaseOrder
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError('Quantity must be a positive integer', quantity=quantity)
    if quantity > MAX_ITEM_QUANTITY:
        raise ValidationError(f"Quantity cannot exceed {MAX_ITEM_QUANTITY}", quantity=quantity)

    config = config or get_restock_settings()

    try:
        with transaction.atomic():
            product = store.get_product(product_id, for_update=True)
            if product.supplier_id is None:
                raise ConflictError(f"Product {product.name} has no supplier assigned", product_id=product.pk)

            unit_price = product.unit_price
            total_amount = unit_price * quantity
            if total_amount > MAX_TOTAL_AMOUNT:
                raise ValidationError(
                    f"Order total {total_amount} exceeds the maximum of {MAX_TOTAL_AMOUNT}",
                    product_id=product.pk,
                    quantity=quantity,
                )

            order = _insert_order(
                config,
                supplier=product.supplier,
                total_amount=total_amount,
                notes=notes or '',
                expected_delivery_date=expected_delivery_date,
                created_by=_acting_user(user),
            )
            PurchaseOrderItem.objects.create(
                purchase_order=order,
                product=product,
                quantity=quantity,
                unit_price=unit_price,
            )
            marker = record_resolution(product, order, user=user)
    except DatabaseError as e:
        logger.exception(f"Failed to create purchase order for product {product_id} (quantity={quantity})")
        raise PersistenceError(str(e), product_id=product_id, quantity=quantity) from e

    logger.info(
        f"Created {order.order_number} for {quantity} x {product.name} "
        f"(total {order.total_amount}, alert {'resolved' if marker else 'not active'})"
    )
    create_audit_log(
        request=request,
        user=user,
        action='po_create',
        model_name='PurchaseOrder',
        object_id=order.pk,
        object_name=order.order_number,
        object_reference=order.order_number,
        changes={
            'product_id': product.pk,
            'product_name': product.name,
            'quantity': quantity,
            'unit_price': str(unit_price),
            'total_amount': str(order.total_amount),
            'supplier': order.supplier.name,
            'resolved_alert': marker is not None,
        },
    )
    return order


def get_purchase_order(po_id):
    try:
        return (
            PurchaseOrder.objects
            .select_related('supplier', 'created_by')
            .prefetch_related('items', 'items__product')
            .get(pk=po_id)
        )
    except (PurchaseOrder.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f'Purchase order {po_id} not found', po_id=po_id)


def _validate_recipient(method, recipient):
    if not recipient:
        raise ValidationError('Recipient information is required', method=method)
    if method == METHOD_EMAIL:
        try:
            validate_email(recipient)
        except DjangoValidationError:
            raise ValidationError(f"Invalid email address: {recipient}", recipient=recipient)
    elif not PHONE_PATTERN.match(re.sub(r'[\s\-()]', '', recipient)):
        raise ValidationError(f"Invalid WhatsApp number: {recipient}", recipient=recipient)


def _ensure_sendable(order):
    if order.status not in (PurchaseOrder.STATUS_PENDING, PurchaseOrder.STATUS_SENT):
        raise ConflictError(
            f"Purchase order {order.order_number} is {order.status} and cannot be sent",
            po_id=order.pk,
            status=order.status,
        )


def send_purchase_order(po_id, method, recipient_info=None, dispatcher=None, user=None,
                        request=None, config=None):
    """
    Deliver a purchase order to its supplier and mark it sent.

    A blank recipient falls back to the supplier's address for the method. The
    order is only updated after the dispatcher reports success.

    Returns:
        Confirmation message
    """
    method = (method or '').strip().lower()
    if method not in SEND_METHODS:
        raise ValidationError(f"Send method must be one of: {', '.join(SEND_METHODS)}", method=method)

    order = get_purchase_order(po_id)
    _ensure_sendable(order)

    recipient = (recipient_info or '').strip() or order.supplier.get_recipient(method)
    _validate_recipient(method, recipient)

    dispatcher = dispatcher or DefaultDispatcher(config)
    result = dispatcher.send(order, method, recipient)
    if not result.success:
        raise DispatchError(result.message, po_id=order.pk, method=method, recipient=recipient)

    previous_status = order.status
    try:
        with transaction.atomic():
            order = PurchaseOrder.objects.select_for_update().get(pk=order.pk)
            try:
                _ensure_sendable(order)
            except ConflictError:
                logger.error(
                    f"Purchase order {order.order_number} was delivered to {recipient} via {method} "
                    f"but is now {order.status}"
                )
                raise
            order.status = PurchaseOrder.STATUS_SENT
            order.sent_method = method
            order.sent_to = recipient
            order.sent_at = timezone.now()
            order.save(update_fields=['status', 'sent_method', 'sent_to', 'sent_at', 'updated_at'])
    except DatabaseError as e:
        logger.exception(f"Purchase order {po_id} was delivered but could not be marked sent")
        raise PersistenceError(str(e), po_id=po_id) from e

    logger.info(f"Sent {order.order_number} via {method} to {recipient}")
    create_audit_log(
        request=request,
        user=user,
        action='po_send',
        model_name='PurchaseOrder',
        object_id=order.pk,
        object_name=order.order_number,
        object_reference=order.order_number,
        changes={
            'method': method,
            'recipient': recipient,
            'status': {'old': previous_status, 'new': order.status},
        },
    )
    return f"Purchase order {order.order_number} sent via {SEND_METHODS[method]} to {recipient}"


def _receive_items(order):
    """Add every line item's quantity to its product's stock; runs inside the caller's transaction"""
    received = []
    for item in order.items.all():
        product = store.receive_stock(item.product_id, item.quantity)
        received.append({
            'product_id': product.pk,
            'quantity': item.quantity,
            'current_stock': product.current_stock,
        })
    return received


def transition_purchase_order(po_id, new_status, user=None, request=None):
    """
    Complete or cancel a purchase order.

    Completing receives the goods: each item's quantity is added to its
    product's stock in the same transaction as the status change.
    """
    if new_status not in (PurchaseOrder.STATUS_COMPLETED, PurchaseOrder.STATUS_CANCELLED):
        raise ValidationError(f"Cannot set status to {new_status} directly", status=new_status)

    try:
        with transaction.atomic():
            try:
                order = PurchaseOrder.objects.select_for_update().get(pk=po_id)
            except (PurchaseOrder.DoesNotExist, ValueError, TypeError):
                raise NotFoundError(f'Purchase order {po_id} not found', po_id=po_id)

            old_status = order.status
            if not order.can_transition_to(new_status):
                raise ConflictError(
                    f"Cannot change purchase order {order.order_number} from {old_status} to {new_status}",
                    po_id=order.pk,
                    status=old_status,
                )
            order.status = new_status
            order.save(update_fields=['status', 'updated_at'])
            if new_status == PurchaseOrder.STATUS_COMPLETED:
                received = _receive_items(order)
    except DatabaseError as e:
        logger.exception(f"Failed to change status of purchase order {po_id} to {new_status}")
        raise PersistenceError(str(e), po_id=po_id) from e

    changes = {'status': {'old': old_status, 'new': new_status}}
    if new_status == PurchaseOrder.STATUS_COMPLETED:
        changes['received'] = received
    logger.info(f"Purchase order {order.order_number} moved from {old_status} to {new_status}")
    create_audit_log(
        request=request,
        user=user,
        action='po_status',
        model_name='PurchaseOrder',
        object_id=order.pk,
        object_name=order.order_number,
        object_reference=order.order_number,
        changes=changes,
    )
    return get_purchase_order(order.pk)
