"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group, Permission
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from restock.catalog.models import Category, Product
from restock.parties.models import Supplier
from restock.purchasing.models import PurchaseOrder, PurchaseOrderItem
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False,
                    is_superuser=False, permissions=None, groups=None):
        """
        Create a test user

        permissions: iterable of 'app_label.codename' strings
        groups: iterable of group names (created if missing)
        """
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )
        for perm in permissions or []:
            app_label, codename = perm.split('.', 1)
            user.user_permissions.add(
                Permission.objects.get(content_type__app_label=app_label, codename=codename)
            )
        for group_name in groups or []:
            group, _ = Group.objects.get_or_create(name=group_name)
            user.groups.add(group)
        return user

    @staticmethod
    def create_supplier(name=None, email=None, phone='9876543210', whatsapp=''):
        """Create a test supplier"""
        if not name:
            name = f'Supplier_{TestDataFactory.random_string(6)}'
        return Supplier.objects.create(
            name=name,
            email=f'{name.lower()}@supplier.test' if email is None else email,
            phone=phone,
            whatsapp=whatsapp,
            contact_person='Test Contact'
        )

    @staticmethod
    def create_category(name=None, description=None):
        """Create a test category"""
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return Category.objects.create(
            name=name,
            description=description or f'Test category {name}'
        )

    @staticmethod
    def create_product(name=None, sku=None, category=None, supplier=None, stock=100, threshold=10,
                       unit_price=Decimal('100.00'), with_supplier=True, **extra):
        """Create a test product; stock and threshold default to a healthy level"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        if not sku:
            sku = f'SKU_{TestDataFactory.random_string(8)}'
        if not category:
            category = TestDataFactory.create_category()
        if supplier is None and with_supplier:
            supplier = TestDataFactory.create_supplier()

        return Product.objects.create(
            name=name,
            sku=sku,
            category=category,
            supplier=supplier,
            current_stock=stock,
            low_stock_threshold=threshold,
            unit_price=unit_price,
            **extra
        )

    @staticmethod
    def set_stock(product, stock):
        """Change stock through save() so depletion episodes are tracked"""
        product.current_stock = stock
        product.save()
        product.refresh_from_db()
        return product

    @staticmethod
    def create_purchase_order(product=None, quantity=10, order_number=None, status=PurchaseOrder.STATUS_PENDING,
                              user=None):
        """Create a purchase order directly, bypassing the reorder workflow"""
        if not product:
            product = TestDataFactory.create_product()
        if not order_number:
            order_number = f'TEST-{TestDataFactory.random_string(8).upper()}'
        order = PurchaseOrder.objects.create(
            order_number=order_number,
            supplier=product.supplier,
            status=status,
            total_amount=product.unit_price * quantity,
            created_by=user
        )
        PurchaseOrderItem.objects.create(
            purchase_order=order,
            product=product,
            quantity=quantity,
            unit_price=product.unit_price
        )
        return order


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
