"""
Test suite for the low-stock alert engine
Tests: derived active list, ignore/acknowledge, threshold changes, summary, suggestions and API
"""
from io import StringIO
from decimal import Decimal

from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings
from rest_framework import status

from restock.alerts import services
from restock.alerts.models import AlertMarker
from restock.core.exceptions import ConflictError, NotFoundError, ValidationError
from restock.core.models import AuditLog
from restock.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from restock.purchasing.services import create_purchase_order


def active_ids():
    return [alert.id for alert in services.list_active()]


class ActiveAlertTests(TestCase):
    """Test which products show up as active alerts and in what order"""

    def test_low_stock_product_is_active(self):
        product = TestDataFactory.create_product(stock=2, threshold=30)
        alerts = services.list_active()
        self.assertEqual(len(alerts), 1)
        self.assertEqual(alerts[0].product.id, product.id)
        self.assertEqual(alerts[0].priority, 'medium')
        self.assertEqual(alerts[0].status, 'active')
        self.assertIsNotNone(alerts[0].created_at)

    def test_stock_equal_to_threshold_is_active(self):
        product = TestDataFactory.create_product(stock=15, threshold=15)
        self.assertEqual(active_ids(), [product.id])
        self.assertEqual(services.list_active()[0].priority, 'low')

    def test_healthy_and_inactive_products_are_not_active(self):
        TestDataFactory.create_product(stock=16, threshold=15)
        TestDataFactory.create_product(stock=0, threshold=15, is_active=False)
        self.assertEqual(services.list_active(), [])

    def test_ordering_by_ratio_then_stock_then_name(self):
        half = TestDataFactory.create_product(name='Half', stock=5, threshold=10)
        empty_b = TestDataFactory.create_product(name='B Empty', stock=0, threshold=10)
        tenth = TestDataFactory.create_product(name='Tenth', stock=3, threshold=30)
        empty_a = TestDataFactory.create_product(name='A Empty', stock=0, threshold=0)

        self.assertEqual(active_ids(), [empty_a.id, empty_b.id, tenth.id, half.id])

    def test_list_active_is_idempotent(self):
        TestDataFactory.create_product(stock=0, threshold=10)
        TestDataFactory.create_product(stock=7, threshold=10)
        TestDataFactory.create_product(stock=2, threshold=30)
        first = [(a.id, a.priority) for a in services.list_active()]
        second = [(a.id, a.priority) for a in services.list_active()]
        self.assertEqual(first, second)
        self.assertEqual(len(first), 3)

    def test_filter_by_priority(self):
        high = TestDataFactory.create_product(stock=0, threshold=10)
        TestDataFactory.create_product(stock=8, threshold=10)
        alerts = services.list_active(priority='high')
        self.assertEqual([a.id for a in alerts], [high.id])

    def test_filter_by_invalid_priority(self):
        with self.assertRaises(ValidationError):
            services.list_active(priority='urgent')

    def test_filter_by_category(self):
        tools = TestDataFactory.create_category(name='Tools')
        tool = TestDataFactory.create_product(stock=1, threshold=10, category=tools)
        TestDataFactory.create_product(stock=1, threshold=10)
        alerts = services.list_active(category='tools')
        self.assertEqual([a.id for a in alerts], [tool.id])

    def test_threshold_change_changes_membership(self):
        product = TestDataFactory.create_product(stock=20, threshold=10)
        self.assertEqual(active_ids(), [])

        services.update_threshold(product.id, 25)
        self.assertEqual(active_ids(), [product.id])

        services.update_threshold(product.id, 5)
        self.assertEqual(active_ids(), [])


class IgnoreAlertTests(TestCase):
    """Test ignoring alerts and the ignored list"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(stock=2, threshold=30)

    def test_ignore_removes_from_active(self):
        marker = services.ignore_alert(self.product.id, reason='Discontinued', user=self.user)
        self.assertEqual(marker.kind, AlertMarker.KIND_IGNORED)
        self.assertEqual(marker.episode, 1)
        self.assertEqual(marker.stock_at_marking, 2)
        self.assertEqual(marker.threshold_at_marking, 30)
        self.assertNotIn(self.product.id, active_ids())

    def test_ignored_list_contains_product(self):
        services.ignore_alert(self.product.id, reason='Discontinued', user=self.user)
        ignored = services.list_ignored()
        self.assertEqual(len(ignored), 1)
        self.assertEqual(ignored[0].product_id, self.product.id)
        self.assertEqual(ignored[0].reason, 'Discontinued')
        self.assertEqual(ignored[0].created_by, self.user)

    def test_ignore_twice_conflicts(self):
        services.ignore_alert(self.product.id)
        with self.assertRaises(ConflictError):
            services.ignore_alert(self.product.id)
        self.assertEqual(AlertMarker.objects.filter(kind=AlertMarker.KIND_IGNORED).count(), 1)

    def test_ignore_resolved_alert_conflicts(self):
        create_purchase_order(self.product.id, 50)
        with self.assertRaises(ConflictError):
            services.ignore_alert(self.product.id)

    def test_ignore_healthy_product_not_found(self):
        healthy = TestDataFactory.create_product(stock=50, threshold=10)
        with self.assertRaises(NotFoundError):
            services.ignore_alert(healthy.id)

    def test_ignore_unknown_product_not_found(self):
        with self.assertRaises(NotFoundError):
            services.ignore_alert(999999)

    def test_restock_and_deplete_reactivates_alert(self):
        services.ignore_alert(self.product.id)
        TestDataFactory.set_stock(self.product, 100)
        self.assertEqual(services.list_ignored(), [])

        TestDataFactory.set_stock(self.product, 10)
        self.assertIn(self.product.id, active_ids())
        self.assertEqual(services.list_ignored(), [])

        # The new episode can be ignored again
        marker = services.ignore_alert(self.product.id)
        self.assertEqual(marker.episode, 2)

    def test_ignore_writes_audit_log(self):
        services.ignore_alert(self.product.id, reason='Seasonal', user=self.user)
        log = AuditLog.objects.get(action='alert_ignore')
        self.assertEqual(log.object_id, str(self.product.id))
        self.assertEqual(log.user, self.user)
        self.assertEqual(log.changes['reason'], 'Seasonal')


class AcknowledgeAlertTests(TestCase):
    """Test acknowledging alerts"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(stock=0, threshold=10)

    def test_acknowledge_keeps_alert_active(self):
        marker = services.acknowledge_alert(self.product.id, notes='Checking with supplier', user=self.user)
        self.assertEqual(marker.kind, AlertMarker.KIND_ACKNOWLEDGED)

        alerts = services.list_active()
        self.assertEqual([a.id for a in alerts], [self.product.id])
        self.assertEqual(alerts[0].acknowledged_at, marker.created_at)

    def test_acknowledge_writes_audit_log(self):
        services.acknowledge_alert(self.product.id, notes='Seen', user=self.user)
        log = AuditLog.objects.get(action='alert_acknowledge')
        self.assertEqual(log.changes['notes'], 'Seen')

    def test_acknowledge_healthy_product_not_found(self):
        healthy = TestDataFactory.create_product(stock=50, threshold=10)
        with self.assertRaises(NotFoundError):
            services.acknowledge_alert(healthy.id)

    def test_acknowledgement_does_not_carry_to_new_episode(self):
        services.acknowledge_alert(self.product.id)
        TestDataFactory.set_stock(self.product, 100)
        TestDataFactory.set_stock(self.product, 1)
        self.assertIsNone(services.list_active()[0].acknowledged_at)


class UpdateThresholdTests(TestCase):
    """Test threshold updates through the alert engine"""

    def test_update_threshold(self):
        product = TestDataFactory.create_product(stock=20, threshold=10)
        updated = services.update_threshold(product.id, 30)
        self.assertEqual(updated.low_stock_threshold, 30)
        log = AuditLog.objects.get(action='threshold_change')
        self.assertEqual(log.changes['low_stock_threshold'], {'old': 10, 'new': 30})

    def test_negative_threshold_rejected(self):
        product = TestDataFactory.create_product(threshold=10)
        with self.assertRaises(ValidationError):
            services.update_threshold(product.id, -1)

    def test_unknown_product(self):
        with self.assertRaises(NotFoundError):
            services.update_threshold(999999, 5)

    def test_threshold_change_leaves_markers_alone(self):
        product = TestDataFactory.create_product(stock=2, threshold=30)
        services.ignore_alert(product.id)
        services.update_threshold(product.id, 40)
        self.assertEqual(AlertMarker.objects.filter(product=product).count(), 1)
        self.assertNotIn(product.id, active_ids())


class AlertSummaryTests(TestCase):
    """Test the cached dashboard summary"""

    def setUp(self):
        cache.clear()
        self.hardware = TestDataFactory.create_category(name='Hardware')
        self.empty = TestDataFactory.create_product(stock=0, threshold=10, unit_price=Decimal('10.00'), category=self.hardware)
        self.half = TestDataFactory.create_product(stock=2, threshold=30, unit_price=Decimal('50.00'), category=self.hardware)
        self.nearly = TestDataFactory.create_product(stock=9, threshold=10, unit_price=Decimal('5.00'))
        self.ignored = TestDataFactory.create_product(stock=1, threshold=10)
        services.ignore_alert(self.ignored.id)

    def test_summary_counts(self):
        summary = services.alert_summary()
        self.assertEqual(summary['total'], 3)
        self.assertEqual(summary['high'], 1)
        self.assertEqual(summary['medium'], 1)
        self.assertEqual(summary['low'], 1)
        self.assertEqual(summary['ignored'], 1)
        # 10 x 10.00 + 28 x 50.00 + 1 x 5.00
        self.assertEqual(summary['estimated_restock_value'], Decimal('1505.00'))

    def test_category_breakdown(self):
        breakdown = services.alert_summary()['category_breakdown']
        self.assertEqual(breakdown[0]['category'], 'Hardware')
        self.assertEqual(breakdown[0]['count'], 2)
        self.assertEqual(breakdown[0]['estimated_value'], Decimal('1500.00'))
        self.assertEqual(len(breakdown), 2)

    def test_summary_refreshes_after_stock_change(self):
        self.assertEqual(services.alert_summary()['total'], 3)
        TestDataFactory.set_stock(self.empty, 100)
        self.assertEqual(services.alert_summary()['total'], 2)


class ReorderSuggestionTests(TestCase):
    """Test suggested reorder quantities"""

    def test_suggested_quantity_and_cost(self):
        product = TestDataFactory.create_product(stock=3, threshold=15, unit_price=Decimal('50.00'))
        suggestions = services.reorder_suggestions()
        self.assertEqual(len(suggestions), 1)
        self.assertEqual(suggestions[0].product.id, product.id)
        self.assertEqual(suggestions[0].suggested_quantity, 27)
        self.assertEqual(suggestions[0].estimated_cost, Decimal('1350.00'))

    @override_settings(REORDER_MULTIPLIER=3)
    def test_multiplier_from_settings(self):
        TestDataFactory.create_product(stock=3, threshold=15)
        self.assertEqual(services.reorder_suggestions()[0].suggested_quantity, 42)

    def test_out_of_stock_first_then_cost(self):
        cheap_empty = TestDataFactory.create_product(stock=0, threshold=5, unit_price=Decimal('1.00'))
        expensive = TestDataFactory.create_product(stock=1, threshold=10, unit_price=Decimal('100.00'))
        cheap = TestDataFactory.create_product(stock=1, threshold=10, unit_price=Decimal('2.00'))
        ids = [s.product.id for s in services.reorder_suggestions()]
        self.assertEqual(ids, [cheap_empty.id, expensive.id, cheap.id])

    def test_ignored_alerts_have_no_suggestion(self):
        product = TestDataFactory.create_product(stock=0, threshold=5)
        services.ignore_alert(product.id)
        self.assertEqual(services.reorder_suggestions(), [])


class AlertHistoryTests(TestCase):

    def test_history_across_episodes(self):
        product = TestDataFactory.create_product(stock=2, threshold=30)
        services.acknowledge_alert(product.id)
        services.ignore_alert(product.id)
        TestDataFactory.set_stock(product, 100)
        TestDataFactory.set_stock(product, 0)
        create_purchase_order(product.id, 60)

        history = services.alert_history(product.id)
        self.assertEqual([m.kind for m in history], ['resolved', 'ignored', 'acknowledged'])
        self.assertEqual([m.episode for m in history], [2, 1, 1])


class AlertAPITests(TestCase):
    """Test alert endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user(is_superuser=True)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(name='Cable', stock=2, threshold=30, unit_price=Decimal('50.00'))

    def test_list_active(self):
        response = self.client.get('/api/v1/alerts/active/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        alert = response.data[0]
        self.assertEqual(alert['productId'], self.product.id)
        self.assertEqual(alert['name'], 'Cable')
        self.assertEqual(alert['currentStock'], 2)
        self.assertEqual(alert['threshold'], 30)
        self.assertEqual(alert['priority'], 'medium')
        self.assertEqual(alert['unitPrice'], '50.00')
        self.assertEqual(alert['supplier']['id'], self.product.supplier_id)
        self.assertIsNone(alert['acknowledgedAt'])

    def test_list_active_invalid_priority(self):
        response = self.client.get('/api/v1/alerts/active/?priority=urgent')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'ValidationError')

    def test_ignore_and_list_ignored(self):
        response = self.client.post(f'/api/v1/alerts/{self.product.id}/ignore/', {'reason': 'Old model'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['productId'], self.product.id)
        self.assertEqual(response.data['reason'], 'Old model')
        self.assertIn('message', response.data)

        response = self.client.get('/api/v1/alerts/active/')
        self.assertEqual(response.data, [])

        response = self.client.get('/api/v1/alerts/ignored/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['productId'], self.product.id)
        self.assertEqual(response.data[0]['ignoredBy'], self.user.username)

    def test_ignore_without_body(self):
        response = self.client.post(f'/api/v1/alerts/{self.product.id}/ignore/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['reason'], '')

    def test_ignore_twice_returns_conflict(self):
        self.client.post(f'/api/v1/alerts/{self.product.id}/ignore/', {}, format='json')
        response = self.client.post(f'/api/v1/alerts/{self.product.id}/ignore/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'ConflictError')

    def test_ignore_healthy_product_returns_not_found(self):
        healthy = TestDataFactory.create_product(stock=100, threshold=10)
        response = self.client.post(f'/api/v1/alerts/{healthy.id}/ignore/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'NotFoundError')

    def test_acknowledge(self):
        response = self.client.post(f'/api/v1/alerts/{self.product.id}/acknowledge/', {'notes': 'On it'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['productId'], self.product.id)
        self.assertIsNotNone(response.data['acknowledgedAt'])

        response = self.client.get('/api/v1/alerts/active/')
        self.assertIsNotNone(response.data[0]['acknowledgedAt'])

    def test_resolved_list(self):
        order = create_purchase_order(self.product.id, 100)
        response = self.client.get('/api/v1/alerts/resolved/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        resolved = response.data[0]
        self.assertEqual(resolved['productId'], self.product.id)
        self.assertEqual(resolved['poId'], order.id)
        self.assertEqual(resolved['poNumber'], order.order_number)
        self.assertEqual(resolved['poStatus'], 'pending')
        self.assertEqual(resolved['quantityOrdered'], 100)
        self.assertEqual(resolved['unitPrice'], '50.00')
        self.assertEqual(resolved['totalAmount'], '5000.00')

    def test_update_threshold(self):
        response = self.client.put('/api/v1/alerts/threshold/', {'productId': self.product.id, 'threshold': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['product']['low_stock_threshold'], 1)
        self.assertEqual(self.client.get('/api/v1/alerts/active/').data, [])

    def test_update_threshold_negative(self):
        response = self.client.put('/api/v1/alerts/threshold/', {'productId': self.product.id, 'threshold': -5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'ValidationError')

    def test_update_threshold_missing_fields(self):
        response = self.client.put('/api/v1/alerts/threshold/', {'threshold': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('productId', response.data['details'])

    def test_update_threshold_unknown_product(self):
        response = self.client.put('/api/v1/alerts/threshold/', {'productId': 999999, 'threshold': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_summary(self):
        response = self.client.get('/api/v1/alerts/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 1)
        self.assertEqual(response.data['medium'], 1)
        self.assertEqual(response.data['estimatedRestockValue'], '1400.00')
        self.assertEqual(len(response.data['categoryBreakdown']), 1)

    def test_reorder_suggestions(self):
        response = self.client.get('/api/v1/alerts/reorder-suggestions/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['suggestions'][0]['suggestedQuantity'], 58)
        self.assertEqual(response.data['summary']['totalItems'], 1)
        self.assertEqual(response.data['summary']['totalEstimatedCost'], '2900.00')

    def test_history(self):
        self.client.post(f'/api/v1/alerts/{self.product.id}/ignore/', {'reason': 'x'}, format='json')
        response = self.client.get(f'/api/v1/alerts/{self.product.id}/history/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['kind'], 'ignored')

    def test_unauthenticated(self):
        self.client.logout()
        response = self.client.get('/api/v1/alerts/active/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_missing_permission(self):
        user = TestDataFactory.create_user()
        client = AuthenticatedAPIClient().authenticate_user(user)
        response = client.get('/api/v1/alerts/active/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_view_permission_does_not_allow_ignore(self):
        user = TestDataFactory.create_user(permissions=['alerts.view_alertmarker'])
        client = AuthenticatedAPIClient().authenticate_user(user)
        self.assertEqual(client.get('/api/v1/alerts/active/').status_code, status.HTTP_200_OK)
        response = client.post(f'/api/v1/alerts/{self.product.id}/ignore/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CheckLowStockCommandTests(TestCase):

    def test_lists_alerts(self):
        TestDataFactory.create_product(name='Battery', stock=0, threshold=10)
        out = StringIO()
        call_command('check_low_stock', stdout=out)
        self.assertIn('Battery', out.getvalue())
        self.assertIn('HIGH', out.getvalue())

    def test_no_alerts(self):
        out = StringIO()
        call_command('check_low_stock', stdout=out)
        self.assertIn('No active low-stock alerts', out.getvalue())

    def test_priority_filter(self):
        TestDataFactory.create_product(name='Battery', stock=0, threshold=10)
        TestDataFactory.create_product(name='Fuse', stock=9, threshold=10)
        out = StringIO()
        call_command('check_low_stock', priority='low', stdout=out)
        self.assertIn('Fuse', out.getvalue())
        self.assertNotIn('Battery', out.getvalue())

    def test_fail_on_high(self):
        TestDataFactory.create_product(stock=0, threshold=10)
        with self.assertRaises(CommandError):
            call_command('check_low_stock', fail_on_high=True, stdout=StringIO())
