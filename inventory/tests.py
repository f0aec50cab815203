"""
Tests for the size ledger, size/SKU normalization and the product API.

Test Cases:
1. Size ordering and canonicalization
2. SKU codes and generation
3. Stock adjustments keep the total-stock invariant
4. Product CRUD over HTTP
5. Size list validation on the model and in the admin
"""
import math
import re
from decimal import Decimal
from unittest.mock import patch

from django.core.exceptions import ValidationError
from django.db import OperationalError
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import InsufficientStock, InvalidStockOperation
from inventory.admin import ProductAdminForm
from inventory.models import Product
from inventory.normalizers import (
    brand_code,
    model_code,
    normalize_size_entries,
    size_value,
    sort_size_labels,
)
from inventory.services import generate_sku


def make_product(**kwargs):
    defaults = {
        'sku': 'NK-AM-001',
        'name': 'Air Max',
        'category': 'Nike',
        'price': Decimal('100.00'),
        'discount': Decimal('10.00'),
        'sizes': [{'size': '9', 'quantity': 5}, {'size': '10', 'quantity': 3}],
    }
    defaults.update(kwargs)
    return Product.objects.create(**defaults)


class SizeNormalizerTestCase(SimpleTestCase):
    """Test cases for size ordering and canonicalization."""

    def test_mixed_sizes_are_ordered_numerically_then_lexically(self):
        self.assertEqual(
            sort_size_labels(['10', '9.5', 'XL', '9']),
            ['9', '9.5', '10', 'XL']
        )

    def test_sizes_without_numbers_sort_last_alphabetically(self):
        self.assertEqual(sort_size_labels(['XL', 'M', '40', 'S']), ['40', 'M', 'S', 'XL'])

    def test_size_value(self):
        self.assertEqual(size_value('9.5'), 9.5)
        self.assertEqual(size_value('US 10'), 10)
        self.assertTrue(math.isinf(size_value('XL')))
        self.assertTrue(math.isinf(size_value('9.5.1')))

    def test_normalize_drops_empty_sizes_and_deduplicates(self):
        """Last entry wins for duplicate labels; non-positive quantities are dropped."""
        entries = [
            {'size': '10', 'quantity': 2},
            {'size': '9', 'quantity': 5},
            {'size': '10', 'quantity': 4},
            {'size': '11', 'quantity': 0},
            {'size': '12', 'quantity': -1},
        ]

        self.assertEqual(
            normalize_size_entries(entries),
            [{'size': '9', 'quantity': 5}, {'size': '10', 'quantity': 4}]
        )

    def test_duplicate_label_with_zero_removes_size(self):
        entries = [{'size': '9', 'quantity': 5}, {'size': '9', 'quantity': 0}]

        self.assertEqual(normalize_size_entries(entries), [])

    def test_normalize_is_idempotent(self):
        entries = [
            {'size': 'XL', 'quantity': 1},
            {'size': '10', 'quantity': '3'},
            {'size': '9.5', 'quantity': 2},
            {'size': '9', 'quantity': 7},
        ]

        once = normalize_size_entries(entries)
        self.assertEqual(normalize_size_entries(once), once)
        self.assertEqual([entry['size'] for entry in once], ['9', '9.5', '10', 'XL'])

    def test_normalize_handles_missing_list(self):
        self.assertEqual(normalize_size_entries(None), [])


class SkuCodeTestCase(SimpleTestCase):
    """Test cases for brand and model codes."""

    def test_brand_codes(self):
        self.assertEqual(brand_code('Nike'), 'NK')
        self.assertEqual(brand_code('Adidas'), 'ADI')
        self.assertEqual(brand_code('Luis Vuitton'), 'LV')
        self.assertEqual(brand_code('Reebok'), 'REE')
        self.assertEqual(brand_code(''), '')

    def test_model_code_uses_initials(self):
        self.assertEqual(model_code('Air Max', 'Nike'), 'AM')

    def test_model_code_strips_brand_and_appends_digits(self):
        self.assertEqual(model_code('Nike Air Max 90', 'Nike'), 'AM9')

    def test_model_code_digits_only(self):
        self.assertEqual(model_code('990', 'New Balance'), '990')

    def test_model_code_fallbacks(self):
        self.assertEqual(model_code('', ''), 'MDL')
        self.assertEqual(model_code('Nike', 'Nike'), 'MDL')


class ProductLedgerTestCase(TestCase):
    """Test cases for per-size stock operations."""

    def setUp(self):
        self.product = make_product()

    def test_save_orders_sizes_and_derives_totals(self):
        self.product.refresh_from_db()

        self.assertEqual(self.product.sizes, [
            {'size': '9', 'quantity': 5},
            {'size': '10', 'quantity': 3},
        ])
        self.assertEqual(self.product.stock, 8)
        self.assertEqual(self.product.talle, ['9', '10'])

    def test_decrement_updates_total(self):
        remaining = self.product.adjust_stock('9', -2)

        self.assertEqual(remaining, 3)
        self.assertEqual(self.product.quantity_for('9'), 3)
        self.assertEqual(self.product.stock, 6)

    def test_restock_unknown_size_appends_entry(self):
        self.product.adjust_stock('9.5', 4)

        self.assertEqual(self.product.talle, ['9', '9.5', '10'])
        self.assertEqual(self.product.quantity_for('9.5'), 4)
        self.assertEqual(self.product.stock, 12)

    def test_total_matches_sum_after_adjustments(self):
        for size, delta in [('9', -1), ('10', 2), ('11', 6), ('9', -4), ('11', -3)]:
            self.product.adjust_stock(size, delta)
            self.assertEqual(
                self.product.stock,
                sum(entry['quantity'] for entry in self.product.sizes)
            )

        self.product.save()
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 8)

    def test_over_consumption_fails_and_leaves_product_unchanged(self):
        before = [dict(entry) for entry in self.product.sizes]

        with self.assertRaises(InsufficientStock) as context:
            self.product.adjust_stock('10', -4)

        self.assertEqual(context.exception.available, 3)
        self.assertEqual(context.exception.requested, 4)
        self.assertEqual(self.product.sizes, before)
        self.assertEqual(self.product.stock, 8)

    def test_reducing_missing_size_is_invalid(self):
        with self.assertRaises(InvalidStockOperation):
            self.product.adjust_stock('12', -1)

        self.assertIsNone(self.product.quantity_for('12'))
        self.assertEqual(self.product.stock, 8)

    def test_decrement_to_zero_keeps_size_entry(self):
        self.product.adjust_stock('9', -5)
        self.product.save()
        self.product.refresh_from_db()

        self.assertEqual(self.product.quantity_for('9'), 0)
        self.assertEqual(self.product.talle, ['9', '10'])

    def test_has_sufficient_stock(self):
        self.assertTrue(self.product.has_sufficient_stock('9', 5))
        self.assertFalse(self.product.has_sufficient_stock('9', 6))
        self.assertFalse(self.product.has_sufficient_stock('12', 1))
        self.assertEqual(self.product.stock, 8)

    def test_effective_price_applies_discount(self):
        self.assertEqual(self.product.effective_price, Decimal('90.00'))

    def test_talle_only_product_sorts_labels(self):
        product = make_product(sku='VNS-OS-001', sizes=[], talle=['10', 'XL', '9'])

        self.assertEqual(product.talle, ['9', '10', 'XL'])
        self.assertEqual(product.stock, 0)

    def test_repeated_size_label_rejected(self):
        with self.assertRaises(ValidationError):
            make_product(sku='NK-AM-002', sizes=[
                {'size': '9', 'quantity': 1},
                {'size': '9', 'quantity': 2},
            ])

        self.assertFalse(Product.objects.filter(sku='NK-AM-002').exists())

    def test_negative_quantity_rejected(self):
        self.product.sizes = [{'size': '9', 'quantity': -1}, {'size': '10', 'quantity': 3}]

        with self.assertRaises(ValidationError):
            self.product.save()

        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity_for('9'), 5)
        self.assertEqual(self.product.stock, 8)

    def test_zero_quantity_entry_is_valid(self):
        product = make_product(sku='NK-AM-002', sizes=[{'size': '9', 'quantity': 0}])

        self.assertEqual(product.talle, ['9'])
        self.assertEqual(product.stock, 0)


class ProductAdminFormTestCase(TestCase):
    """Test cases for size list editing in the admin."""

    def form_data(self, sizes):
        return {
            'sku': 'NK-AM-001',
            'name': 'Air Max',
            'category': 'Nike',
            'price': '100.00',
            'discount': '0.00',
            'sizes': sizes,
        }

    def test_sizes_are_canonicalized(self):
        form = ProductAdminForm(data=self.form_data(
            '[{"size": "9", "quantity": 1}, {"size": "10", "quantity": 0}, {"size": "9", "quantity": 2}]'
        ))

        self.assertTrue(form.is_valid(), form.errors)
        product = form.save()

        self.assertEqual(product.sizes, [{'size': '9', 'quantity': 2}])
        self.assertEqual(product.talle, ['9'])
        self.assertEqual(product.stock, 2)

    def test_malformed_sizes_rejected(self):
        form = ProductAdminForm(data=self.form_data('["9", "10"]'))

        self.assertFalse(form.is_valid())
        self.assertIn('sizes', form.errors)


class SkuGenerationTestCase(TestCase):
    """Test cases for SKU generation against existing products."""

    def test_first_product_in_category(self):
        self.assertEqual(generate_sku('Nike', 'Air Max'), 'NK-AM-001')

    def test_sequence_follows_category_count(self):
        make_product(sku='NK-AM-001')
        make_product(sku='ADI-SS-001', category='Adidas', name='Stan Smith')

        self.assertEqual(generate_sku('Nike', 'Air Max'), 'NK-AM-002')

    def test_taken_sku_bumps_sequence(self):
        make_product(sku='NK-AM-002')

        self.assertEqual(generate_sku('Nike', 'Air Max'), 'NK-AM-003')


class ProductApiTestCase(APITestCase):
    """Test cases for the product endpoints."""

    def setUp(self):
        self.list_url = reverse('inventory:product-list')

    def detail_url(self, sku):
        return reverse('inventory:product-detail', kwargs={'sku': sku})

    def create_air_max(self):
        return self.client.post(self.list_url, {
            'name': 'Air Max',
            'category': 'Nike',
            'price': 100,
            'discount': 10,
            'sizes': [
                {'size': '9', 'quantity': 5},
                {'size': '10', 'quantity': 0},
            ],
        }, format='json')

    def test_create_generates_sku_and_drops_empty_sizes(self):
        response = self.create_air_max()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertRegex(response.data['sku'], r'^NK-[A-Z0-9]{1,3}-001$')
        self.assertEqual(response.data['sku'], 'NK-AM-001')
        self.assertEqual(response.data['sizes'], [{'size': '9', 'quantity': 5}])
        self.assertEqual(response.data['talle'], ['9'])
        self.assertEqual(response.data['stock'], 5)

    def test_create_keeps_explicit_sku(self):
        response = self.client.post(self.list_url, {
            'sku': 'CUSTOM-1',
            'name': 'Old Skool',
            'category': 'Vans',
            'price': '70.00',
            'sizes': [{'size': '42', 'quantity': 2}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['sku'], 'CUSTOM-1')

    def test_create_ignores_client_stock(self):
        response = self.client.post(self.list_url, {
            'name': 'Gazelle',
            'category': 'Adidas',
            'price': 90,
            'stock': 500,
            'sizes': [{'size': '40', 'quantity': 1}, {'size': '41', 'quantity': 2}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['stock'], 3)

    def test_create_duplicate_sku_fails(self):
        self.create_air_max()

        response = self.client.post(self.list_url, {
            'sku': 'NK-AM-001',
            'name': 'Other',
            'category': 'Nike',
            'price': 10,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'INVALID_REQUEST')
        self.assertIn('sku', response.data['fields'])

    def test_create_validation_error(self):
        response = self.client.post(self.list_url, {
            'name': 'No price',
            'category': 'Nike',
            'discount': 150,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('price', response.data['fields'])
        self.assertIn('discount', response.data['fields'])

    def test_list_and_filter_by_category(self):
        self.create_air_max()
        make_product(sku='ADI-SS-001', category='Adidas', name='Stan Smith')

        response = self.client.get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

        response = self.client.get(self.list_url, {'category': 'Adidas'})
        self.assertEqual([p['sku'] for p in response.data], ['ADI-SS-001'])

        response = self.client.get(self.list_url, {'q': 'air'})
        self.assertEqual([p['sku'] for p in response.data], ['NK-AM-001'])

    def test_retrieve_by_sku(self):
        self.create_air_max()

        response = self.client.get(self.detail_url('NK-AM-001'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Air Max')
        self.assertEqual(response.data['price'], Decimal('100.00'))

    def test_retrieve_missing_product(self):
        response = self.client.get(self.detail_url('NOPE-001'))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'NOT_FOUND')

    def test_update_replaces_sizes_and_keeps_other_fields(self):
        self.create_air_max()

        response = self.client.put(self.detail_url('NK-AM-001'), {
            'sizes': [
                {'size': '11', 'quantity': 1},
                {'size': '9.5', 'quantity': 2},
                {'size': '11', 'quantity': 3},
            ],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['sizes'], [
            {'size': '9.5', 'quantity': 2},
            {'size': '11', 'quantity': 3},
        ])
        self.assertEqual(response.data['stock'], 5)
        self.assertEqual(response.data['talle'], ['9.5', '11'])
        self.assertEqual(response.data['name'], 'Air Max')

        product = Product.objects.get(sku='NK-AM-001')
        self.assertEqual(product.stock, 5)

    def test_update_with_invalid_field_fails(self):
        self.create_air_max()

        response = self.client.put(self.detail_url('NK-AM-001'), {'discount': 150}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'INVALID_REQUEST')
        self.assertIn('discount', response.data['fields'])
        self.assertEqual(Product.objects.get(sku='NK-AM-001').discount, Decimal('10.00'))

    def test_list_store_unavailable(self):
        with patch('inventory.views.Product.objects.all', side_effect=OperationalError('connection refused')):
            response = self.client.get(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data['error'], 'STORE_UNAVAILABLE')

    def test_update_missing_product(self):
        response = self.client.put(self.detail_url('NOPE-001'), {'name': 'x'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_product(self):
        self.create_air_max()

        response = self.client.delete(self.detail_url('NK-AM-001'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['sku'], 'NK-AM-001')
        self.assertFalse(Product.objects.filter(sku='NK-AM-001').exists())

        response = self.client.delete(self.detail_url('NK-AM-001'))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
