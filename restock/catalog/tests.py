"""
Tests for products, stock priority and depletion episode tracking
"""
from django.db import transaction
from django.test import TestCase
from decimal import Decimal
from restock.core.test_utils import TestDataFactory
from restock.core.exceptions import NotFoundError, ValidationError
from restock.catalog import store
from restock.catalog.models import Product, stock_priority, PRIORITY_HIGH, PRIORITY_MEDIUM, PRIORITY_LOW


class StockPriorityTests(TestCase):
    """Test the priority bands for low-stock products"""

    def test_out_of_stock_is_high(self):
        self.assertEqual(stock_priority(0, 10), PRIORITY_HIGH)
        self.assertEqual(stock_priority(0, 0), PRIORITY_HIGH)

    def test_half_threshold_or_less_is_medium(self):
        self.assertEqual(stock_priority(2, 30), PRIORITY_MEDIUM)
        self.assertEqual(stock_priority(5, 10), PRIORITY_MEDIUM)

    def test_above_half_threshold_is_low(self):
        self.assertEqual(stock_priority(6, 10), PRIORITY_LOW)
        self.assertEqual(stock_priority(10, 10), PRIORITY_LOW)

    def test_above_threshold_has_no_priority(self):
        self.assertIsNone(stock_priority(11, 10))


class ProductModelTests(TestCase):
    """Test Product properties and episode tracking"""

    def test_product_str(self):
        product = TestDataFactory.create_product(name='Widget', sku='WID-1')
        self.assertEqual(str(product), 'Widget (WID-1)')

    def test_stock_ratio_with_zero_threshold(self):
        product = TestDataFactory.create_product(stock=0, threshold=0)
        self.assertEqual(product.stock_ratio, 0.0)
        self.assertTrue(product.is_low_stock)

    def test_shortfall(self):
        product = TestDataFactory.create_product(stock=3, threshold=15)
        self.assertEqual(product.shortfall, 12)
        healthy = TestDataFactory.create_product(stock=20, threshold=15)
        self.assertEqual(healthy.shortfall, 0)

    def test_product_created_low_opens_episode(self):
        product = TestDataFactory.create_product(stock=2, threshold=30)
        self.assertEqual(product.stock_episode, 1)
        self.assertIsNotNone(product.low_stock_since)

    def test_healthy_product_has_no_episode(self):
        product = TestDataFactory.create_product(stock=50, threshold=30)
        self.assertEqual(product.stock_episode, 0)
        self.assertIsNone(product.low_stock_since)

    def test_restock_then_deplete_opens_new_episode(self):
        product = TestDataFactory.create_product(stock=2, threshold=30)
        TestDataFactory.set_stock(product, 50)
        self.assertEqual(product.stock_episode, 1)
        self.assertIsNone(product.low_stock_since)

        TestDataFactory.set_stock(product, 5)
        self.assertEqual(product.stock_episode, 2)
        self.assertIsNotNone(product.low_stock_since)

    def test_staying_low_keeps_episode(self):
        product = TestDataFactory.create_product(stock=5, threshold=30)
        TestDataFactory.set_stock(product, 4)
        TestDataFactory.set_stock(product, 0)
        self.assertEqual(product.stock_episode, 1)

    def test_save_with_update_fields_persists_episode(self):
        product = TestDataFactory.create_product(stock=20, threshold=10)
        product.low_stock_threshold = 25
        product.save(update_fields=['low_stock_threshold'])
        product.refresh_from_db()
        self.assertEqual(product.stock_episode, 1)
        self.assertIsNotNone(product.low_stock_since)

    def test_below_threshold_queryset(self):
        low = TestDataFactory.create_product(stock=3, threshold=15)
        at_threshold = TestDataFactory.create_product(stock=15, threshold=15)
        healthy = TestDataFactory.create_product(stock=16, threshold=15)
        inactive = TestDataFactory.create_product(stock=0, threshold=15, is_active=False)

        ids = set(Product.objects.below_threshold().values_list('id', flat=True))
        self.assertIn(low.id, ids)
        self.assertIn(at_threshold.id, ids)
        self.assertNotIn(healthy.id, ids)
        self.assertNotIn(inactive.id, ids)


class InventoryStoreTests(TestCase):
    """Test the inventory store accessors"""

    def test_get_product(self):
        product = TestDataFactory.create_product()
        self.assertEqual(store.get_product(product.id).id, product.id)

    def test_get_unknown_product(self):
        with self.assertRaises(NotFoundError):
            store.get_product(999999)

    def test_get_product_with_invalid_id(self):
        with self.assertRaises(NotFoundError):
            store.get_product('abc')

    def test_get_inactive_product(self):
        product = TestDataFactory.create_product(is_active=False)
        with self.assertRaises(NotFoundError):
            store.get_product(product.id)

    def test_update_threshold(self):
        product = TestDataFactory.create_product(stock=20, threshold=10, unit_price=Decimal('5.00'))
        updated = store.update_threshold(product, 40)
        self.assertEqual(updated.low_stock_threshold, 40)
        product.refresh_from_db()
        self.assertEqual(product.low_stock_threshold, 40)
        self.assertTrue(product.is_low_stock)

    def test_update_threshold_rejects_invalid_values(self):
        product = TestDataFactory.create_product(threshold=10)
        for value in (-1, True, '5', 2.5, None):
            with self.assertRaises(ValidationError):
                store.update_threshold(product, value)
        product.refresh_from_db()
        self.assertEqual(product.low_stock_threshold, 10)

    def test_update_threshold_to_zero(self):
        product = TestDataFactory.create_product(stock=0, threshold=10)
        updated = store.update_threshold(product, 0)
        self.assertEqual(updated.low_stock_threshold, 0)

    def test_receive_stock_closes_episode(self):
        product = TestDataFactory.create_product(stock=2, threshold=10)
        with transaction.atomic():
            received = store.receive_stock(product.id, 20)
        self.assertEqual(received.current_stock, 22)
        product.refresh_from_db()
        self.assertEqual(product.current_stock, 22)
        self.assertIsNone(product.low_stock_since)
        self.assertEqual(product.stock_episode, 1)

    def test_receive_stock_above_maximum(self):
        product = TestDataFactory.create_product(stock=10, threshold=5)
        with self.assertRaises(ValidationError):
            with transaction.atomic():
                store.receive_stock(product.id, store.MAX_STOCK)
        product.refresh_from_db()
        self.assertEqual(product.current_stock, 10)

    def test_receive_stock_for_unknown_product(self):
        with self.assertRaises(NotFoundError):
            with transaction.atomic():
                store.receive_stock(999999, 5)
