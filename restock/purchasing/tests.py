"""
Comprehensive test suite for the reorder workflow
Tests: purchase order creation, numbering, dispatch, status transitions and edge cases
"""
import smtplib
import threading
from decimal import Decimal
from unittest.mock import Mock, patch

import requests
from django.core import mail
from django.db import DatabaseError, connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.utils import timezone
from rest_framework import status

from restock.alerts import services as alert_services
from restock.alerts.models import AlertMarker
from restock.core.exceptions import (
    ConflictError,
    DispatchError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from restock.core.models import AuditLog
from restock.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from restock.purchasing import services
from restock.purchasing.dispatch import DefaultDispatcher, DispatchResult, NotificationDispatcher, format_purchase_order_message
from restock.purchasing.models import MAX_ITEM_QUANTITY, PurchaseOrder, PurchaseOrderItem

WHATSAPP_SETTINGS = {
    'WHATSAPP_API_URL': 'https://gateway.test/messages',
    'WHATSAPP_API_TOKEN': 'secret-token',
}


def order_number(sequence):
    return f"PO-{timezone.localdate().year}-{sequence:04d}"


class RecordingDispatcher(NotificationDispatcher):
    """Dispatcher that records calls and returns a fixed result"""

    def __init__(self, success=True, message='delivered'):
        self.result = DispatchResult(success, message)
        self.calls = []

    def send(self, order, method, recipient):
        self.calls.append((order.order_number, method, recipient))
        return self.result


class PurchaseOrderModelTests(TestCase):
    """Test PurchaseOrder and PurchaseOrderItem model methods"""

    def test_purchase_order_str(self):
        order = TestDataFactory.create_purchase_order(order_number='PO-2024-0001')
        self.assertEqual(str(order), 'PO-2024-0001')

    def test_subtotal_and_line_total(self):
        product = TestDataFactory.create_product(unit_price=Decimal('99.99'))
        order = TestDataFactory.create_purchase_order(product=product, quantity=3)
        item = order.items.get()
        self.assertEqual(item.get_line_total(), Decimal('299.97'))
        self.assertEqual(order.get_subtotal(), Decimal('299.97'))

    def test_allowed_transitions(self):
        order = TestDataFactory.create_purchase_order()
        self.assertTrue(order.can_transition_to(PurchaseOrder.STATUS_SENT))
        self.assertTrue(order.can_transition_to(PurchaseOrder.STATUS_CANCELLED))
        self.assertFalse(order.can_transition_to(PurchaseOrder.STATUS_COMPLETED))
        self.assertFalse(order.is_terminal)

        order.status = PurchaseOrder.STATUS_COMPLETED
        self.assertTrue(order.is_terminal)
        self.assertFalse(order.can_transition_to(PurchaseOrder.STATUS_CANCELLED))


class CreatePurchaseOrderTests(TestCase):
    """Test raising purchase orders from alerts"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(stock=3, threshold=15, unit_price=Decimal('50.00'))

    def test_create_resolves_alert(self):
        order = services.create_purchase_order(self.product.id, 100, user=self.user)

        self.assertEqual(order.order_number, order_number(1))
        self.assertEqual(order.total_amount, Decimal('5000.00'))
        self.assertEqual(order.status, PurchaseOrder.STATUS_PENDING)
        self.assertEqual(order.supplier, self.product.supplier)
        self.assertEqual(order.created_by, self.user)

        item = order.items.get()
        self.assertEqual(item.product, self.product)
        self.assertEqual(item.quantity, 100)
        self.assertEqual(item.unit_price, Decimal('50.00'))

        self.assertNotIn(self.product.id, [a.id for a in alert_services.list_active()])
        resolved = alert_services.list_resolved()
        self.assertEqual(len(resolved), 1)
        self.assertEqual(resolved[0].purchase_order, order)
        self.assertEqual(resolved[0].episode, 1)

    def test_total_is_exact(self):
        product = TestDataFactory.create_product(stock=0, threshold=5, unit_price=Decimal('0.10'))
        order = services.create_purchase_order(product.id, 3)
        self.assertEqual(order.total_amount, Decimal('0.30'))

    def test_sequential_order_numbers(self):
        other = TestDataFactory.create_product(stock=0, threshold=5)
        first = services.create_purchase_order(self.product.id, 10)
        second = services.create_purchase_order(other.id, 10)
        self.assertEqual(first.order_number, order_number(1))
        self.assertEqual(second.order_number, order_number(2))

    @override_settings(PURCHASE_ORDER_PREFIX='REQ')
    def test_prefix_from_settings(self):
        order = services.create_purchase_order(self.product.id, 10)
        self.assertEqual(order.order_number, f"REQ-{timezone.localdate().year}-0001")

    def test_invalid_quantities(self):
        for quantity in (0, -1, True, '5', 2.5, None):
            with self.assertRaises(ValidationError):
                services.create_purchase_order(self.product.id, quantity)
        self.assertEqual(PurchaseOrder.objects.count(), 0)

    def test_quantity_above_item_limit(self):
        with self.assertRaises(ValidationError):
            services.create_purchase_order(self.product.id, MAX_ITEM_QUANTITY + 1)
        self.assertEqual(PurchaseOrder.objects.count(), 0)

    def test_total_too_large_for_order_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            services.create_purchase_order(self.product.id, 10**9)
        self.assertIn('exceeds the maximum', ctx.exception.message)

        self.assertEqual(PurchaseOrder.objects.count(), 0)
        self.assertEqual(alert_services.list_resolved(), [])
        self.assertIn(self.product.id, [a.id for a in alert_services.list_active()])

    def test_largest_total_that_fits(self):
        product = TestDataFactory.create_product(stock=0, threshold=5, unit_price=Decimal('1.00'))
        order = services.create_purchase_order(product.id, 2000000000)
        order.refresh_from_db()
        self.assertEqual(order.total_amount, Decimal('2000000000.00'))
        self.assertEqual(len(alert_services.list_resolved()), 1)

    def test_product_above_threshold_can_be_reordered(self):
        healthy = TestDataFactory.create_product(stock=100, threshold=10)
        order = services.create_purchase_order(healthy.id, 20)
        self.assertEqual(order.items.get().quantity, 20)
        self.assertFalse(AlertMarker.objects.filter(product=healthy).exists())

    def test_product_without_supplier(self):
        product = TestDataFactory.create_product(stock=0, threshold=5, with_supplier=False)
        with self.assertRaises(ConflictError):
            services.create_purchase_order(product.id, 10)
        self.assertEqual(PurchaseOrder.objects.count(), 0)

    def test_unknown_product(self):
        with self.assertRaises(NotFoundError):
            services.create_purchase_order(999999, 10)

    def test_ignored_alert_can_still_be_ordered(self):
        alert_services.ignore_alert(self.product.id)
        services.create_purchase_order(self.product.id, 10)
        kinds = set(AlertMarker.objects.filter(product=self.product).values_list('kind', flat=True))
        self.assertEqual(kinds, {AlertMarker.KIND_IGNORED, AlertMarker.KIND_RESOLVED})
        # Resolved alerts are no longer listed as ignored
        self.assertEqual(alert_services.list_ignored(), [])

    def test_writes_audit_log(self):
        order = services.create_purchase_order(self.product.id, 100, user=self.user)
        log = AuditLog.objects.get(action='po_create')
        self.assertEqual(log.object_reference, order.order_number)
        self.assertEqual(log.changes['total_amount'], '5000.00')
        self.assertTrue(log.changes['resolved_alert'])


class OrderNumberCollisionTests(TestCase):
    """Test order number allocation under collisions"""

    def setUp(self):
        self.product = TestDataFactory.create_product(stock=3, threshold=15)

    def test_collision_is_retried_with_next_free_number(self):
        # One order this year with number 0002: count + 1 collides
        TestDataFactory.create_purchase_order(order_number=order_number(2))
        order = services.create_purchase_order(self.product.id, 10)
        self.assertEqual(order.order_number, order_number(3))

    def test_second_collision_conflicts_and_rolls_back(self):
        existing = TestDataFactory.create_purchase_order(order_number=order_number(1))
        with patch('restock.purchasing.services.generate_order_number', return_value=existing.order_number):
            with self.assertRaises(ConflictError):
                services.create_purchase_order(self.product.id, 10)

        self.assertEqual(PurchaseOrder.objects.count(), 1)
        self.assertIn(self.product.id, [a.id for a in alert_services.list_active()])

    def test_generate_after_collision_skips_highest_suffix(self):
        TestDataFactory.create_purchase_order(order_number=order_number(7))
        self.assertEqual(services.generate_order_number(), order_number(2))
        self.assertEqual(services.generate_order_number(after_collision=True), order_number(8))


class ConcurrentOrderNumberTests(TransactionTestCase):
    """Test order numbering when purchase orders are created at the same time"""

    def test_simultaneous_creates_get_distinct_sequential_numbers(self):
        product = TestDataFactory.create_product(stock=0, threshold=10)
        barrier = threading.Barrier(2)
        numbers, errors = [], []

        def create():
            try:
                barrier.wait(timeout=5)
                numbers.append(services.create_purchase_order(product.id, 5).order_number)
            except Exception as e:
                errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=create) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        self.assertEqual(errors, [])
        self.assertEqual(sorted(numbers), [order_number(1), order_number(2)])
        self.assertEqual(PurchaseOrder.objects.count(), 2)


class PersistenceFailureTests(TestCase):

    def test_database_failure_rolls_back_everything(self):
        product = TestDataFactory.create_product(stock=3, threshold=15)
        with patch('restock.purchasing.services.PurchaseOrderItem.objects.create', side_effect=DatabaseError('disk full')):
            with self.assertRaises(PersistenceError) as ctx:
                services.create_purchase_order(product.id, 10)

        self.assertEqual(ctx.exception.public_message, 'Failed to save changes')
        self.assertEqual(PurchaseOrder.objects.count(), 0)
        self.assertEqual(PurchaseOrderItem.objects.count(), 0)
        self.assertFalse(AlertMarker.objects.exists())
        self.assertIn(product.id, [a.id for a in alert_services.list_active()])


class SendPurchaseOrderTests(TestCase):
    """Test delivering purchase orders to suppliers"""

    def setUp(self):
        self.supplier = TestDataFactory.create_supplier(name='Acme', email='orders@acme.test', phone='+919876543210')
        self.product = TestDataFactory.create_product(
            name='Cable', stock=3, threshold=15, unit_price=Decimal('50.00'), supplier=self.supplier
        )
        self.order = services.create_purchase_order(self.product.id, 100)

    def test_send_by_email(self):
        message = services.send_purchase_order(self.order.id, 'email', 'buyer@acme.test')

        self.assertIn(self.order.order_number, message)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['buyer@acme.test'])
        self.assertIn(self.order.order_number, mail.outbox[0].subject)
        self.assertIn('Cable', mail.outbox[0].body)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, PurchaseOrder.STATUS_SENT)
        self.assertEqual(self.order.sent_method, 'email')
        self.assertEqual(self.order.sent_to, 'buyer@acme.test')
        self.assertIsNotNone(self.order.sent_at)
        self.assertTrue(AuditLog.objects.filter(action='po_send').exists())

    def test_blank_recipient_uses_supplier_address(self):
        services.send_purchase_order(self.order.id, 'EMAIL', '')
        self.assertEqual(mail.outbox[0].to, ['orders@acme.test'])

    def test_invalid_method(self):
        with self.assertRaises(ValidationError):
            services.send_purchase_order(self.order.id, 'fax', 'x')

    def test_invalid_email(self):
        with self.assertRaises(ValidationError):
            services.send_purchase_order(self.order.id, 'email', 'not-an-email')
        self.assertEqual(len(mail.outbox), 0)

    def test_missing_recipient(self):
        supplier = TestDataFactory.create_supplier(email='')
        product = TestDataFactory.create_product(stock=0, threshold=5, supplier=supplier)
        order = services.create_purchase_order(product.id, 5)
        with self.assertRaises(ValidationError):
            services.send_purchase_order(order.id, 'email', None)

    def test_invalid_whatsapp_number(self):
        with self.assertRaises(ValidationError):
            services.send_purchase_order(self.order.id, 'whatsapp', 'call me')

    def test_unknown_order(self):
        with self.assertRaises(NotFoundError):
            services.send_purchase_order(999999, 'email', 'buyer@acme.test')

    def test_dispatch_failure_leaves_order_unchanged(self):
        dispatcher = RecordingDispatcher(success=False, message='SMTP relay refused connection')
        with self.assertRaises(DispatchError) as ctx:
            services.send_purchase_order(self.order.id, 'email', 'buyer@acme.test', dispatcher=dispatcher)

        self.assertEqual(ctx.exception.message, 'SMTP relay refused connection')
        self.assertNotIn('SMTP', ctx.exception.public_message)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, PurchaseOrder.STATUS_PENDING)
        self.assertEqual(self.order.sent_to, '')

    def test_custom_dispatcher_receives_order(self):
        dispatcher = RecordingDispatcher()
        services.send_purchase_order(self.order.id, 'whatsapp', '+15550001111', dispatcher=dispatcher)
        self.assertEqual(dispatcher.calls, [(self.order.order_number, 'whatsapp', '+15550001111')])

    def test_order_cancelled_while_dispatching(self):
        order_id = self.order.id

        class CancellingDispatcher(NotificationDispatcher):
            def send(self, order, method, recipient):
                PurchaseOrder.objects.filter(pk=order_id).update(status=PurchaseOrder.STATUS_CANCELLED)
                return DispatchResult(True, 'delivered')

        with self.assertLogs('restock.purchasing.services', level='ERROR') as logs:
            with self.assertRaises(ConflictError):
                services.send_purchase_order(order_id, 'email', 'buyer@acme.test', dispatcher=CancellingDispatcher())
        self.assertIn('was delivered to buyer@acme.test', logs.output[0])

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, PurchaseOrder.STATUS_CANCELLED)
        self.assertFalse(AuditLog.objects.filter(action='po_send').exists())

    def test_resend_sent_order(self):
        services.send_purchase_order(self.order.id, 'email', 'buyer@acme.test')
        services.send_purchase_order(self.order.id, 'email', 'other@acme.test')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, PurchaseOrder.STATUS_SENT)
        self.assertEqual(self.order.sent_to, 'other@acme.test')
        self.assertEqual(len(mail.outbox), 2)

    def test_terminal_orders_cannot_be_sent(self):
        services.transition_purchase_order(self.order.id, PurchaseOrder.STATUS_CANCELLED)
        with self.assertRaises(ConflictError):
            services.send_purchase_order(self.order.id, 'email', 'buyer@acme.test')
        self.assertEqual(len(mail.outbox), 0)

    def test_smtp_error_becomes_dispatch_error(self):
        with patch('restock.purchasing.dispatch.send_mail', side_effect=smtplib.SMTPException('relay down')):
            with self.assertRaises(DispatchError):
                services.send_purchase_order(self.order.id, 'email', 'buyer@acme.test')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, PurchaseOrder.STATUS_PENDING)


@override_settings(**WHATSAPP_SETTINGS)
class WhatsAppDispatchTests(TestCase):
    """Test the WhatsApp gateway dispatcher"""

    def setUp(self):
        self.product = TestDataFactory.create_product(name='Cable', stock=0, threshold=10, unit_price=Decimal('12.50'))
        self.order = services.create_purchase_order(self.product.id, 4)

    @patch('restock.purchasing.dispatch.requests.post')
    def test_send_whatsapp(self, mock_post):
        mock_post.return_value = Mock(status_code=200)
        services.send_purchase_order(self.order.id, 'whatsapp', '+919876543210')

        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], 'https://gateway.test/messages')
        self.assertEqual(kwargs['json']['to'], '+919876543210')
        self.assertIn(self.order.order_number, kwargs['json']['text']['body'])
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer secret-token')
        self.assertEqual(kwargs['timeout'], 10)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, PurchaseOrder.STATUS_SENT)
        self.assertEqual(self.order.sent_method, 'whatsapp')

    @patch('restock.purchasing.dispatch.requests.post')
    def test_gateway_timeout(self, mock_post):
        mock_post.side_effect = requests.exceptions.Timeout()
        with self.assertRaises(DispatchError):
            services.send_purchase_order(self.order.id, 'whatsapp', '+919876543210')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, PurchaseOrder.STATUS_PENDING)

    @patch('restock.purchasing.dispatch.requests.post')
    def test_gateway_error_status(self, mock_post):
        response = Mock()
        response.raise_for_status.side_effect = requests.exceptions.HTTPError('500 Server Error')
        mock_post.return_value = response
        result = DefaultDispatcher().send(self.order, 'whatsapp', '+919876543210')
        self.assertFalse(result.success)
        self.assertIn('500', result.message)

    @override_settings(WHATSAPP_API_URL='')
    def test_gateway_not_configured(self):
        result = DefaultDispatcher().send(self.order, 'whatsapp', '+919876543210')
        self.assertFalse(result.success)

    def test_message_format(self):
        message = format_purchase_order_message(self.order)
        self.assertIn(self.order.order_number, message)
        self.assertIn('Cable', message)
        self.assertIn('4 piece x 12.50 = 50.00', message)
        self.assertIn('Total: 50.00', message)


class TransitionTests(TestCase):
    """Test purchase order status transitions"""

    def setUp(self):
        self.product = TestDataFactory.create_product(stock=0, threshold=10)
        self.order = services.create_purchase_order(self.product.id, 10)

    def _send(self):
        services.send_purchase_order(self.order.id, 'email', 'buyer@test.com', dispatcher=RecordingDispatcher())

    def test_sent_order_can_be_completed(self):
        self._send()
        order = services.transition_purchase_order(self.order.id, PurchaseOrder.STATUS_COMPLETED)
        self.assertEqual(order.status, PurchaseOrder.STATUS_COMPLETED)
        log = AuditLog.objects.get(action='po_status')
        self.assertEqual(log.changes['status'], {'old': 'sent', 'new': 'completed'})

    def test_completing_receives_stock(self):
        product = TestDataFactory.create_product(stock=3, threshold=15)
        order = services.create_purchase_order(product.id, 100)
        services.send_purchase_order(order.id, 'email', 'buyer@test.com', dispatcher=RecordingDispatcher())

        services.transition_purchase_order(order.id, PurchaseOrder.STATUS_COMPLETED)

        product.refresh_from_db()
        self.assertEqual(product.current_stock, 103)
        self.assertFalse(product.is_low_stock)
        self.assertIsNone(product.low_stock_since)
        log = AuditLog.objects.get(action='po_status')
        self.assertEqual(log.changes['received'], [{'product_id': product.id, 'quantity': 100, 'current_stock': 103}])

        # Running low again opens a new episode, so the alert comes back
        TestDataFactory.set_stock(product, 5)
        self.assertEqual(product.stock_episode, 2)
        self.assertIn(product.id, [a.id for a in alert_services.list_active()])

    def test_cancelling_does_not_change_stock(self):
        services.transition_purchase_order(self.order.id, PurchaseOrder.STATUS_CANCELLED)
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, 0)

    def test_completing_order_for_deactivated_product(self):
        self._send()
        self.product.is_active = False
        self.product.save()
        services.transition_purchase_order(self.order.id, PurchaseOrder.STATUS_COMPLETED)
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, 10)

    def test_pending_order_cannot_be_completed(self):
        with self.assertRaises(ConflictError):
            services.transition_purchase_order(self.order.id, PurchaseOrder.STATUS_COMPLETED)

    def test_pending_and_sent_orders_can_be_cancelled(self):
        services.transition_purchase_order(self.order.id, PurchaseOrder.STATUS_CANCELLED)
        other = services.create_purchase_order(self.product.id, 5)
        services.send_purchase_order(other.id, 'email', 'buyer@test.com', dispatcher=RecordingDispatcher())
        order = services.transition_purchase_order(other.id, PurchaseOrder.STATUS_CANCELLED)
        self.assertEqual(order.status, PurchaseOrder.STATUS_CANCELLED)

    def test_terminal_states_are_final(self):
        self._send()
        services.transition_purchase_order(self.order.id, PurchaseOrder.STATUS_COMPLETED)
        with self.assertRaises(ConflictError):
            services.transition_purchase_order(self.order.id, PurchaseOrder.STATUS_CANCELLED)

    def test_sent_is_not_a_direct_transition(self):
        with self.assertRaises(ValidationError):
            services.transition_purchase_order(self.order.id, PurchaseOrder.STATUS_SENT)

    def test_unknown_order(self):
        with self.assertRaises(NotFoundError):
            services.transition_purchase_order(999999, PurchaseOrder.STATUS_CANCELLED)


class PurchaseOrderAPITests(TestCase):
    """Test purchase order endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user(is_superuser=True)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(stock=3, threshold=15, unit_price=Decimal('50.00'))

    def test_create_purchase_order(self):
        data = {'productId': self.product.id, 'quantity': 100, 'notes': 'Urgent'}
        response = self.client.post('/api/v1/purchase-orders/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['poNumber'], order_number(1))
        self.assertEqual(response.data['totalAmount'], Decimal('5000.00'))

        order = PurchaseOrder.objects.get(pk=response.data['poId'])
        self.assertEqual(order.notes, 'Urgent')
        self.assertEqual(order.created_by, self.user)
        self.assertEqual(self.client.get('/api/v1/alerts/active/').data, [])

    def test_create_with_zero_quantity(self):
        response = self.client.post('/api/v1/purchase-orders/', {'productId': self.product.id, 'quantity': 0}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'ValidationError')

    def test_create_with_oversized_quantity(self):
        data = {'productId': self.product.id, 'quantity': 10**11}
        response = self.client.post('/api/v1/purchase-orders/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('quantity', response.data['details'])
        self.assertEqual(self.client.get('/api/v1/alerts/resolved/').status_code, status.HTTP_200_OK)

    def test_create_with_malformed_body(self):
        response = self.client.post('/api/v1/purchase-orders/', {'productId': self.product.id, 'quantity': 'many'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('quantity', response.data['details'])

    def test_create_for_unknown_product(self):
        response = self.client.post('/api/v1/purchase-orders/', {'productId': 999999, 'quantity': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'NotFoundError')

    def test_list_purchase_orders(self):
        services.create_purchase_order(self.product.id, 10)
        second = services.create_purchase_order(self.product.id, 20)
        services.transition_purchase_order(second.id, PurchaseOrder.STATUS_CANCELLED)

        response = self.client.get('/api/v1/purchase-orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['results'][0]['id'], second.id)

        response = self.client.get('/api/v1/purchase-orders/?status=cancelled')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['order_number'], second.order_number)

    def test_list_with_invalid_filter(self):
        response = self.client.get('/api/v1/purchase-orders/?status=shipped')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_pagination(self):
        for _ in range(3):
            services.create_purchase_order(self.product.id, 1)
        response = self.client.get('/api/v1/purchase-orders/?limit=2&page=2')
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(len(response.data['results']), 1)
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(response.data['previous'], 1)

    def test_detail(self):
        order = services.create_purchase_order(self.product.id, 10)
        response = self.client.get(f'/api/v1/purchase-orders/{order.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_number'], order.order_number)
        self.assertEqual(response.data['items'][0]['quantity'], 10)
        self.assertEqual(response.data['items'][0]['line_total'], '500.00')

    def test_detail_not_found(self):
        response = self.client.get('/api/v1/purchase-orders/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'NotFoundError')

    def test_send_purchase_order(self):
        order = services.create_purchase_order(self.product.id, 10)
        data = {'poId': order.id, 'method': 'email', 'recipientInfo': 'buyer@supplier.test'}
        response = self.client.post('/api/v1/alerts/send-po/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn(order.order_number, response.data['message'])
        self.assertEqual(len(mail.outbox), 1)

    def test_send_failure_hides_details(self):
        order = services.create_purchase_order(self.product.id, 10)
        data = {'poId': order.id, 'method': 'email', 'recipientInfo': 'buyer@supplier.test'}
        with patch('restock.purchasing.dispatch.send_mail', side_effect=smtplib.SMTPException('relay 10.0.0.5 down')):
            response = self.client.post('/api/v1/alerts/send-po/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data['error'], 'DispatchError')
        self.assertNotIn('10.0.0.5', response.data['message'])

    def test_send_with_invalid_method(self):
        order = services.create_purchase_order(self.product.id, 10)
        data = {'poId': order.id, 'method': 'pigeon', 'recipientInfo': 'roof'}
        response = self.client.post('/api/v1/alerts/send-po/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_complete_and_cancel(self):
        order = services.create_purchase_order(self.product.id, 10)
        response = self.client.post(f'/api/v1/purchase-orders/{order.id}/complete/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.post(f'/api/v1/purchase-orders/{order.id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'cancelled')
        self.assertTrue(response.data['is_terminal'])

    def test_create_requires_add_permission(self):
        user = TestDataFactory.create_user(permissions=['purchasing.view_purchaseorder'])
        client = AuthenticatedAPIClient().authenticate_user(user)
        self.assertEqual(client.get('/api/v1/purchase-orders/').status_code, status.HTTP_200_OK)
        response = client.post('/api/v1/purchase-orders/', {'productId': self.product.id, 'quantity': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
