"""
Tests for authentication, permissions, audit logging and the error envelope
"""
from io import StringIO

from django.contrib.auth.models import Group
from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase, RequestFactory, override_settings
from rest_framework import status

from restock.core.cache_utils import cached_query, invalidate_cached_query
from restock.core.conf import get_restock_settings
from restock.core.exceptions import ConflictError, DispatchError, NotFoundError, PersistenceError, ValidationError
from restock.core.models import AuditLog
from restock.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from restock.core.utils import create_audit_log, error_response, get_client_ip, validation_error_response


class ErrorResponseTests(TestCase):
    """Test translation of workflow errors into API responses"""

    def test_status_codes(self):
        cases = [
            (ValidationError('bad'), 400),
            (NotFoundError('missing'), 404),
            (ConflictError('clash'), 409),
            (DispatchError('smtp down'), 502),
            (PersistenceError('deadlock'), 500),
        ]
        for exc, expected in cases:
            response = error_response(exc)
            self.assertEqual(response.status_code, expected)
            self.assertEqual(response.data['error'], exc.kind)

    def test_exposed_message(self):
        response = error_response(ConflictError('Alert for Cable is already ignored'))
        self.assertEqual(response.data, {'error': 'ConflictError', 'message': 'Alert for Cable is already ignored'})

    def test_internal_details_are_hidden(self):
        with self.assertLogs('restock.core.utils', level='ERROR') as logs:
            response = error_response(PersistenceError('could not serialize access', product_id=9))
        self.assertEqual(response.data['message'], 'Failed to save changes')
        self.assertIn('could not serialize access', logs.output[0])

    def test_default_message(self):
        self.assertEqual(NotFoundError().message, 'Not found')

    def test_validation_error_response(self):
        response = validation_error_response({'quantity': ['A valid integer is required.']})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'ValidationError')
        self.assertIn('quantity', response.data['details'])


class AuditLogTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.factory = RequestFactory()

    def test_create_audit_log_from_request(self):
        request = self.factory.post('/', HTTP_X_FORWARDED_FOR='10.1.2.3, 172.16.0.1')
        request.user = self.user
        log = create_audit_log(request=request, action='po_create', model_name='PurchaseOrder', object_id=7,
                               changes={'quantity': 5})
        self.assertEqual(log.user, self.user)
        self.assertEqual(log.object_id, '7')
        self.assertEqual(log.ip_address, '10.1.2.3')
        self.assertEqual(log.changes, {'quantity': 5})

    def test_missing_fields_skip_log(self):
        self.assertIsNone(create_audit_log(user=self.user, action='po_create', model_name='PurchaseOrder'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_client_ip_from_remote_addr(self):
        request = self.factory.get('/', REMOTE_ADDR='192.168.1.5')
        self.assertEqual(get_client_ip(request), '192.168.1.5')
        self.assertIsNone(get_client_ip(None))


class CachedQueryTests(TestCase):

    def setUp(self):
        cache.clear()
        self.calls = 0

    def test_result_is_cached_until_invalidated(self):
        @cached_query(cache_ttl=lambda: 60, key_prefix='test_counter')
        def counter():
            self.calls += 1
            return {'calls': self.calls}

        self.assertEqual(counter(), {'calls': 1})
        self.assertEqual(counter(), {'calls': 1})
        invalidate_cached_query('test_counter')
        self.assertEqual(counter(), {'calls': 2})


class SettingsTests(TestCase):

    def test_defaults(self):
        config = get_restock_settings()
        self.assertEqual(config.purchase_order_prefix, 'PO')
        self.assertEqual(config.reorder_multiplier, 2)
        self.assertEqual(config.order_sequence_width, 4)

    @override_settings(REORDER_MULTIPLIER=4, WHATSAPP_API_URL='https://gw.test')
    def test_overrides(self):
        config = get_restock_settings()
        self.assertEqual(config.reorder_multiplier, 4)
        self.assertEqual(config.whatsapp_api_url, 'https://gw.test')


class AuthAPITests(TestCase):
    """Test JWT login and the current-user endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user(username='buyer', password='s3cret-pass',
                                                permissions=['alerts.view_alertmarker'], groups=['Staff'])
        self.client = AuthenticatedAPIClient()

    def test_login(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'buyer', 'password': 's3cret-pass'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

        response = self.client.post('/api/v1/auth/refresh/', {'refresh': response.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_login_with_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'buyer', 'password': 'nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_with_garbage_token(self):
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': 'garbage'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'buyer')
        self.assertEqual(response.data['groups'], ['Staff'])
        self.assertIn('alerts.view_alertmarker', response.data['permissions'])

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class CreateUserGroupsCommandTests(TestCase):

    def test_creates_groups_with_permissions(self):
        call_command('create_user_groups', stdout=StringIO())

        staff = Group.objects.get(name='Staff')
        purchasing = Group.objects.get(name='Purchasing')
        admin = Group.objects.get(name='Admin')

        staff_perms = set(staff.permissions.values_list('codename', flat=True))
        self.assertIn('add_alertmarker', staff_perms)
        self.assertNotIn('add_purchaseorder', staff_perms)

        purchasing_perms = set(purchasing.permissions.values_list('codename', flat=True))
        self.assertIn('add_purchaseorder', purchasing_perms)
        self.assertIn('change_product', purchasing_perms)
        self.assertGreater(admin.permissions.count(), purchasing.permissions.count())

    def test_group_grants_api_access(self):
        call_command('create_user_groups', stdout=StringIO())
        user = TestDataFactory.create_user(groups=['Purchasing'])
        product = TestDataFactory.create_product(stock=0, threshold=5)
        client = AuthenticatedAPIClient().authenticate_user(user)
        response = client.post('/api/v1/purchase-orders/', {'productId': product.id, 'quantity': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_is_idempotent(self):
        call_command('create_user_groups', stdout=StringIO())
        out = StringIO()
        call_command('create_user_groups', stdout=out)
        self.assertIn('3 groups already existed', out.getvalue())
        self.assertEqual(Group.objects.filter(name__in=['Staff', 'Purchasing', 'Admin']).count(), 3)
