"""
Tests for shared API plumbing.

Test Cases:
1. Service errors rendered as {"error", "detail", ...context}
2. Store connectivity errors mapped to 503
3. Redis rate limiting on write endpoints
"""
from unittest.mock import MagicMock, patch

import redis
from django.db import OperationalError
from django.test import RequestFactory, SimpleTestCase, override_settings
from django.urls import reverse
from rest_framework import exceptions, status
from rest_framework.test import APITestCase

from core.exceptions import (
    InsufficientStock,
    InvalidRequest,
    ProductNotFound,
    api_exception_handler,
)
from core.rate_limiting import get_client_ip


class ExceptionHandlerTestCase(SimpleTestCase):
    """Test cases for the uniform error body."""

    def test_service_error_body(self):
        error = InsufficientStock(7, 'Air Max', '9', available=0, requested=5)

        response = api_exception_handler(error, {})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'INSUFFICIENT_STOCK')
        self.assertEqual(response.data['productId'], 7)
        self.assertEqual(response.data['available'], 0)
        self.assertEqual(response.data['requested'], 5)
        self.assertIn('Air Max', response.data['detail'])

    def test_product_not_found_message(self):
        error = ProductNotFound({'product': None, 'productSku': 'NK-AM-009', 'productName': None})

        self.assertEqual(error.status_code, 404)
        self.assertEqual(error.message, 'Product not found (productSku: NK-AM-009)')

    def test_default_message(self):
        self.assertEqual(InvalidRequest().as_dict(), {
            'error': 'INVALID_REQUEST', 'detail': 'Invalid request'
        })

    @override_settings(DEPLOYMENT_MODE='development')
    def test_store_unavailable_with_debug_detail(self):
        response = api_exception_handler(OperationalError('could not connect'), {})

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data['error'], 'STORE_UNAVAILABLE')
        self.assertEqual(response.data['debug'], 'could not connect')

    def test_validation_error_fields(self):
        response = api_exception_handler(exceptions.ValidationError({'price': ['Required.']}), {})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'INVALID_REQUEST')
        self.assertEqual(response.data['fields']['price'], ['Required.'])

    def test_unhandled_exception_passes_through(self):
        self.assertIsNone(api_exception_handler(ValueError('boom'), {}))


class ClientIpTestCase(SimpleTestCase):

    def test_forwarded_for_wins(self):
        request = RequestFactory().get('/', HTTP_X_FORWARDED_FOR='203.0.113.5, 10.0.0.1')
        self.assertEqual(get_client_ip(request), '203.0.113.5')

    def test_remote_addr(self):
        request = RequestFactory().get('/', REMOTE_ADDR='198.51.100.7')
        self.assertEqual(get_client_ip(request), '198.51.100.7')


@override_settings(RATE_LIMIT_ENABLED=True)
class RateLimitTestCase(APITestCase):
    """Test cases for the Redis fixed window limiter on /invoices."""

    def setUp(self):
        self.url = reverse('invoices:invoice-list')
        self.redis = MagicMock()
        self.redis.ttl.return_value = 42
        patcher = patch('core.rate_limiting.get_redis_client', return_value=self.redis)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_request_within_limit_gets_headers(self):
        self.redis.incr.return_value = 1

        response = self.client.delete(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.redis.expire.assert_called_once()
        self.assertEqual(response['X-RateLimit-Limit'], '30')
        self.assertEqual(response['X-RateLimit-Remaining'], '29')
        self.assertEqual(response['X-RateLimit-Reset'], '42')

    def test_limit_exceeded(self):
        self.redis.incr.return_value = 31

        response = self.client.delete(self.url)

        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(response.data['error'], 'THROTTLED')
        self.redis.expire.assert_not_called()

    def test_reads_not_limited(self):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.redis.incr.assert_not_called()

    def test_fails_open_on_redis_error(self):
        self.redis.incr.side_effect = redis.RedisError('down')

        response = self.client.delete(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn('X-RateLimit-Limit', response)


class HealthCheckTestCase(SimpleTestCase):

    def test_health(self):
        response = self.client.get('/health/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'healthy')
