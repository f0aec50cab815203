"""
Tests for invoice creation logic.

Test Cases:
1. Sequential invoice numbering
2. Prioritized product resolution
3. Invoice created with sufficient stock (both units of work)
4. Nothing persisted when any line fails
5. Invoice API scenarios
6. Concurrent invoices do not oversell (PostgreSQL only)
"""
import threading
from datetime import timedelta
from decimal import Decimal
from unittest import mock, skipUnless

from django.db import DatabaseError, OperationalError, connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import (
    InsufficientStock,
    InvalidRequest,
    InvoiceNumberConflict,
    ProductNotFound,
    SizeNotAvailable,
)
from inventory.models import Product
from invoices.models import Invoice, InvoiceItem, InvoiceSequence
from invoices.numbering import next_invoice_number, parse_invoice_number
from invoices.resolvers import ProductResolver
from invoices.services import create_invoice, delete_all_invoices
from invoices.tasks import generate_daily_sales_report, send_invoice_confirmation
from invoices.unit_of_work import AtomicUnitOfWork, CompensatingUnitOfWork, get_unit_of_work


def make_product(**kwargs):
    defaults = {
        'sku': 'NK-AM-001',
        'name': 'Air Max',
        'category': 'Nike',
        'price': Decimal('100.00'),
        'discount': Decimal('10.00'),
        'sizes': [{'size': '9', 'quantity': 5}, {'size': '10', 'quantity': 2}],
    }
    defaults.update(kwargs)
    return Product.objects.create(**defaults)


class InvoiceNumberingTestCase(TestCase):
    """Test cases for invoice number generation."""

    def test_first_invoice_number(self):
        self.assertEqual(next_invoice_number(), 'FAC-1001')

    def test_numbers_increase(self):
        self.assertEqual(next_invoice_number(), 'FAC-1001')
        self.assertEqual(next_invoice_number(), 'FAC-1002')

    def test_continues_from_latest_invoice(self):
        Invoice.objects.create(invoice_number='FAC-1007', total_amount=Decimal('10.00'))

        self.assertEqual(next_invoice_number(), 'FAC-1008')
        self.assertEqual(next_invoice_number(), 'FAC-1009')

    def test_parse_invoice_number(self):
        self.assertEqual(parse_invoice_number('FAC-1042'), 1042)
        self.assertEqual(parse_invoice_number('A-B-7'), 7)
        self.assertIsNone(parse_invoice_number('FAC-X'))
        self.assertIsNone(parse_invoice_number(''))


class ProductResolverTestCase(TestCase):
    """Test cases for id -> SKU -> name product lookup."""

    def setUp(self):
        self.air_max = make_product()
        self.stan_smith = make_product(sku='ADI-SS-001', name='Stan Smith', category='Adidas')
        self.resolver = ProductResolver()
        self.queryset = Product.objects.all()

    def test_id_wins_over_other_keys(self):
        item = {'product': self.air_max.pk, 'productSku': 'ADI-SS-001', 'productName': 'Stan Smith'}

        self.assertEqual(self.resolver.resolve(item, self.queryset), self.air_max)

    def test_falls_back_to_sku(self):
        item = {'product': 999999, 'productSku': 'ADI-SS-001'}

        self.assertEqual(self.resolver.resolve(item, self.queryset), self.stan_smith)

    def test_non_numeric_id_falls_back_to_name(self):
        item = {'product': '64f1c0ffee', 'productName': 'Stan Smith'}

        self.assertEqual(self.resolver.resolve(item, self.queryset), self.stan_smith)

    def test_not_found_reports_keys(self):
        item = {'product': 999999, 'productSku': 'NOPE', 'productName': 'Nope'}

        with self.assertRaises(ProductNotFound) as context:
            self.resolver.resolve(item, self.queryset)

        self.assertEqual(context.exception.context['searchedBy'], {
            'product': 999999, 'productSku': 'NOPE', 'productName': 'Nope'
        })
        self.assertIn('NOPE', context.exception.message)


class InvoiceCreationTests:
    """
    Orchestration tests shared by both units of work.

    Subclasses set `unit_of_work_class`.
    """
    unit_of_work_class = None

    def setUp(self):
        self.air_max = make_product()
        self.stan_smith = make_product(
            sku='ADI-SS-001',
            name='Stan Smith',
            category='Adidas',
            price=Decimal('80.00'),
            discount=Decimal('0.00'),
            sizes=[{'size': '42', 'quantity': 1}],
        )

    def create(self, items, total_amount=Decimal('100.00')):
        return create_invoice(items, total_amount, unit_of_work=self.unit_of_work_class())

    def assert_stock_unchanged(self):
        self.air_max.refresh_from_db()
        self.stan_smith.refresh_from_db()
        self.assertEqual(self.air_max.sizes, [
            {'size': '9', 'quantity': 5}, {'size': '10', 'quantity': 2}
        ])
        self.assertEqual(self.air_max.stock, 7)
        self.assertEqual(self.stan_smith.sizes, [{'size': '42', 'quantity': 1}])
        self.assertEqual(self.stan_smith.stock, 1)

    def test_invoice_created_with_sufficient_stock(self):
        """
        Given: Products with enough stock
        When: Invoicing within stock limits
        Then: Stock is deducted and lines are snapshotted
        """
        invoice = self.create([
            {'product': self.air_max.pk, 'size': '9', 'quantity': 5},
            {'productSku': 'ADI-SS-001', 'size': '42', 'quantity': 1},
        ], total_amount=Decimal('530.00'))

        self.assertEqual(invoice.invoice_number, 'FAC-1001')
        self.assertEqual(invoice.total_amount, Decimal('530.00'))

        lines = list(invoice.items.all())
        self.assertEqual(len(lines), 2)
        self.assertEqual(lines[0].product, self.air_max)
        self.assertEqual(lines[0].product_name, 'Air Max')
        self.assertEqual(lines[0].size, '9')
        self.assertEqual(lines[0].unit_price, Decimal('90.00'))
        self.assertEqual(lines[1].unit_price, Decimal('80.00'))

        self.air_max.refresh_from_db()
        self.stan_smith.refresh_from_db()
        self.assertEqual(self.air_max.quantity_for('9'), 0)
        self.assertEqual(self.air_max.stock, 2)
        self.assertEqual(self.stan_smith.stock, 0)

    def test_explicit_price_wins(self):
        invoice = self.create([
            {'product': self.air_max.pk, 'size': '10', 'quantity': 1, 'price': Decimal('75.50')},
        ])

        self.assertEqual(invoice.items.get().unit_price, Decimal('75.50'))

    def test_lines_see_earlier_lines(self):
        invoice = self.create([
            {'product': self.air_max.pk, 'size': '9', 'quantity': 3},
            {'productName': 'Air Max', 'size': '9', 'quantity': 2},
        ])

        self.assertEqual(invoice.items.count(), 2)
        self.air_max.refresh_from_db()
        self.assertEqual(self.air_max.quantity_for('9'), 0)

    def test_repeated_line_exceeding_stock_rolls_back(self):
        with self.assertRaises(InsufficientStock) as context:
            self.create([
                {'product': self.air_max.pk, 'size': '9', 'quantity': 3},
                {'product': self.air_max.pk, 'size': '9', 'quantity': 3},
            ])

        self.assertEqual(context.exception.available, 2)
        self.assertEqual(context.exception.requested, 3)
        self.assert_stock_unchanged()
        self.assertEqual(Invoice.objects.count(), 0)

    def test_second_item_insufficient_keeps_first_untouched(self):
        with self.assertRaises(InsufficientStock):
            self.create([
                {'product': self.air_max.pk, 'size': '9', 'quantity': 2},
                {'product': self.stan_smith.pk, 'size': '42', 'quantity': 5},
            ])

        self.assert_stock_unchanged()
        self.assertEqual(Invoice.objects.count(), 0)
        self.assertEqual(InvoiceItem.objects.count(), 0)

    def test_missing_product_rolls_back(self):
        with self.assertRaises(ProductNotFound):
            self.create([
                {'product': self.air_max.pk, 'size': '9', 'quantity': 1},
                {'productSku': 'NOPE-001', 'size': '9', 'quantity': 1},
            ])

        self.assert_stock_unchanged()
        self.assertEqual(Invoice.objects.count(), 0)

    def test_missing_size_lists_available_sizes(self):
        with self.assertRaises(SizeNotAvailable) as context:
            self.create([
                {'product': self.air_max.pk, 'size': '9', 'quantity': 1},
                {'product': self.air_max.pk, 'size': '12', 'quantity': 1},
            ])

        self.assertEqual(context.exception.available_sizes, ['9', '10'])
        self.assert_stock_unchanged()

    def test_number_conflict_rolls_back(self):
        Invoice.objects.create(invoice_number='FAC-2000', total_amount=Decimal('1.00'))

        with mock.patch('invoices.services.next_invoice_number', return_value='FAC-2000'):
            with self.assertRaises(InvoiceNumberConflict):
                self.create([{'product': self.air_max.pk, 'size': '9', 'quantity': 1}])

        self.assert_stock_unchanged()
        self.assertEqual(Invoice.objects.count(), 1)

    def test_failure_after_invoice_insert_removes_invoice(self):
        with mock.patch.object(InvoiceItem.objects, 'bulk_create', side_effect=DatabaseError('boom')):
            with self.assertRaises(DatabaseError):
                self.create([{'product': self.air_max.pk, 'size': '9', 'quantity': 1}])

        self.assert_stock_unchanged()
        self.assertEqual(Invoice.objects.count(), 0)

    def test_snapshot_survives_product_changes(self):
        invoice = self.create([{'product': self.air_max.pk, 'size': '10', 'quantity': 1}])

        self.air_max.name = 'Air Max Renamed'
        self.air_max.price = Decimal('500.00')
        self.air_max.save()

        line = invoice.items.get()
        self.assertEqual(line.product_name, 'Air Max')
        self.assertEqual(line.unit_price, Decimal('90.00'))

        self.air_max.delete()
        line.refresh_from_db()
        self.assertIsNone(line.product)
        self.assertEqual(line.product_name, 'Air Max')


class AtomicInvoiceCreationTestCase(InvoiceCreationTests, TestCase):
    unit_of_work_class = AtomicUnitOfWork


class InterleavingResolver(ProductResolver):
    """Runs `on_second_lookup` just before resolving the second line."""

    def __init__(self, on_second_lookup):
        super().__init__()
        self.on_second_lookup = on_second_lookup
        self.lookups = 0

    def resolve(self, item, queryset):
        self.lookups += 1
        if self.lookups == 2:
            self.on_second_lookup()
        return super().resolve(item, queryset)


class CompensatingInvoiceCreationTestCase(InvoiceCreationTests, TestCase):
    unit_of_work_class = CompensatingUnitOfWork

    def test_abort_keeps_sales_committed_meanwhile(self):
        """
        Given: 5 units of size 9
        When: An invoice takes 2 units, another invoice for 1 unit commits,
              then the first invoice fails on its second line
        Then: Only the failed invoice's 2 units come back
        """
        def concurrent_sale():
            create_invoice(
                [{'product': self.air_max.pk, 'size': '9', 'quantity': 1}],
                Decimal('90.00'),
                unit_of_work=CompensatingUnitOfWork(),
            )

        with self.assertRaises(ProductNotFound):
            create_invoice(
                [
                    {'product': self.air_max.pk, 'size': '9', 'quantity': 2},
                    {'productSku': 'NOPE-001', 'size': '9', 'quantity': 1},
                ],
                Decimal('180.00'),
                unit_of_work=CompensatingUnitOfWork(),
                resolver=InterleavingResolver(concurrent_sale),
            )

        self.air_max.refresh_from_db()
        self.assertEqual(self.air_max.quantity_for('9'), 4)
        self.assertEqual(self.air_max.stock, 6)
        self.assertEqual(Invoice.objects.count(), 1)

    def test_abort_skips_product_deleted_meanwhile(self):
        def delete_product():
            Product.objects.filter(pk=self.air_max.pk).delete()

        with self.assertRaises(ProductNotFound):
            create_invoice(
                [
                    {'product': self.air_max.pk, 'size': '9', 'quantity': 2},
                    {'productSku': 'NOPE-001', 'size': '9', 'quantity': 1},
                ],
                Decimal('180.00'),
                unit_of_work=CompensatingUnitOfWork(),
                resolver=InterleavingResolver(delete_product),
            )

        self.assertFalse(Product.objects.filter(pk=self.air_max.pk).exists())
        self.assertEqual(Invoice.objects.count(), 0)


class InvoiceRequestValidationTestCase(TestCase):
    """Test cases for request shape validation."""

    def setUp(self):
        self.product = make_product()

    def test_empty_items(self):
        with self.assertRaises(InvalidRequest):
            create_invoice([], Decimal('10.00'))

    def test_missing_total(self):
        with self.assertRaises(InvalidRequest):
            create_invoice([{'product': self.product.pk, 'size': '9', 'quantity': 1}], None)

    def test_zero_total(self):
        with self.assertRaises(InvalidRequest):
            create_invoice([{'product': self.product.pk, 'size': '9', 'quantity': 1}], 0)

    def test_invalid_quantity(self):
        with self.assertRaises(InvalidRequest):
            create_invoice([{'product': self.product.pk, 'size': '9', 'quantity': 0}], 10)

    def test_missing_lookup_key(self):
        with self.assertRaises(InvalidRequest):
            create_invoice([{'size': '9', 'quantity': 1}], 10)

    def test_invalid_request_has_no_side_effects(self):
        with self.assertRaises(InvalidRequest):
            create_invoice([
                {'product': self.product.pk, 'size': '9', 'quantity': 1},
                {'product': self.product.pk, 'quantity': 1},
            ], 10)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 7)
        self.assertFalse(InvoiceSequence.objects.exists())

    @override_settings(INVOICE_ATOMIC_TRANSACTIONS=True)
    def test_atomic_unit_of_work_selected(self):
        self.assertIsInstance(get_unit_of_work(), AtomicUnitOfWork)

    @override_settings(INVOICE_ATOMIC_TRANSACTIONS=False)
    def test_compensating_unit_of_work_selected(self):
        self.assertIsInstance(get_unit_of_work(), CompensatingUnitOfWork)


class InvoiceApiTestCase(APITestCase):
    """Test cases for the invoice endpoints."""

    def setUp(self):
        self.list_url = reverse('invoices:invoice-list')
        response = self.client.post(reverse('inventory:product-list'), {
            'name': 'Air Max',
            'category': 'Nike',
            'price': 100,
            'discount': 10,
            'sizes': [{'size': '9', 'quantity': 5}, {'size': '10', 'quantity': 0}],
        }, format='json')
        self.product_id = response.data['id']
        self.sku = response.data['sku']

    def invoice_payload(self, quantity=5, **item):
        line = {'product': self.product_id, 'productSku': self.sku, 'size': '9', 'quantity': quantity}
        line.update(item)
        return {'items': [line], 'totalAmount': 450}

    def test_create_invoice_and_repeat(self):
        response = self.client.post(self.list_url, self.invoice_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['invoiceNumber'], 'FAC-1001')
        self.assertEqual(response.data['totalAmount'], Decimal('450.00'))
        line = response.data['items'][0]
        self.assertEqual(line['price'], Decimal('90.00'))
        self.assertEqual(line['productName'], 'Air Max')
        self.assertEqual(line['product']['sku'], self.sku)

        product = Product.objects.get(pk=self.product_id)
        self.assertEqual(product.quantity_for('9'), 0)
        self.assertEqual(product.stock, 0)

        response = self.client.post(self.list_url, self.invoice_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'INSUFFICIENT_STOCK')
        self.assertEqual(response.data['available'], 0)
        self.assertEqual(response.data['requested'], 5)
        self.assertEqual(response.data['size'], '9')
        self.assertEqual(Invoice.objects.count(), 1)

    @override_settings(INVOICE_ATOMIC_TRANSACTIONS=True)
    def test_create_invoice_in_transaction(self):
        response = self.client.post(self.list_url, self.invoice_payload(quantity=2), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Product.objects.get(pk=self.product_id).stock, 3)

    def test_product_lookup_by_name(self):
        payload = {
            'items': [{'productName': 'Air Max', 'size': '9', 'quantity': 1}],
            'totalAmount': 90,
        }

        response = self.client.post(self.list_url, payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_product_not_found(self):
        payload = {
            'items': [{'product': 999999, 'productSku': 'NOPE-001', 'size': '9', 'quantity': 1}],
            'totalAmount': 90,
        }

        response = self.client.post(self.list_url, payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'PRODUCT_NOT_FOUND')
        self.assertEqual(response.data['searchedBy']['productSku'], 'NOPE-001')

    def test_size_not_available(self):
        response = self.client.post(self.list_url, self.invoice_payload(size='10'), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'SIZE_NOT_AVAILABLE')
        self.assertEqual(response.data['availableSizes'], ['9'])

    def test_malformed_request(self):
        response = self.client.post(self.list_url, {'items': [], 'totalAmount': 10}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'INVALID_REQUEST')

        response = self.client.post(self.list_url, {'items': [{'size': '9', 'quantity': 1}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('totalAmount', response.data['fields'])
        self.assertIn('items', response.data['fields'])

    def test_unexpected_failure(self):
        with mock.patch('invoices.views.create_invoice', side_effect=RuntimeError('boom')):
            response = self.client.post(self.list_url, self.invoice_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['error'], 'UNEXPECTED_FAILURE')
        self.assertNotIn('boom', response.data['detail'])

    def test_list_newest_first(self):
        self.client.post(self.list_url, self.invoice_payload(quantity=1), format='json')
        self.client.post(self.list_url, self.invoice_payload(quantity=2), format='json')

        response = self.client.get(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([i['invoiceNumber'] for i in response.data], ['FAC-1002', 'FAC-1001'])
        self.assertEqual(response.data[0]['items'][0]['product']['name'], 'Air Max')

    def test_retrieve_invoice(self):
        self.client.post(self.list_url, self.invoice_payload(quantity=1), format='json')

        response = self.client.get(reverse('invoices:invoice-detail', kwargs={'invoice_number': 'FAC-1001'}))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['quantity'], 1)

        response = self.client.get(reverse('invoices:invoice-detail', kwargs={'invoice_number': 'FAC-9999'}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_bulk_delete_resets_numbering(self):
        self.client.post(self.list_url, self.invoice_payload(quantity=1), format='json')
        self.client.post(self.list_url, self.invoice_payload(quantity=1), format='json')

        response = self.client.delete(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'deleted': 2})
        self.assertEqual(Invoice.objects.count(), 0)

        response = self.client.post(self.list_url, self.invoice_payload(quantity=1), format='json')
        self.assertEqual(response.data['invoiceNumber'], 'FAC-1001')

    def test_bulk_delete_store_unavailable(self):
        with mock.patch('invoices.views.delete_all_invoices', side_effect=OperationalError('connection refused')):
            response = self.client.delete(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data['error'], 'STORE_UNAVAILABLE')

    @override_settings(DEPLOYMENT_MODE='production')
    def test_store_error_detail_hidden_in_production(self):
        with mock.patch('invoices.views.delete_all_invoices', side_effect=OperationalError('connection refused')):
            response = self.client.delete(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertNotIn('debug', response.data)


class InvoiceTaskTestCase(TestCase):
    """Test cases for invoice Celery tasks."""

    def setUp(self):
        self.product = make_product()
        self.invoice = create_invoice(
            [{'product': self.product.pk, 'size': '9', 'quantity': 2}],
            Decimal('180.00'),
            unit_of_work=AtomicUnitOfWork(),
        )

    def test_send_invoice_confirmation(self):
        result = send_invoice_confirmation(self.invoice.id)

        self.assertEqual(result['status'], 'success')
        self.assertEqual(result['invoice_number'], 'FAC-1001')
        self.assertTrue(result['totals_match'])

    def test_send_invoice_confirmation_flags_mismatched_total(self):
        Invoice.objects.filter(pk=self.invoice.pk).update(total_amount=Decimal('1.00'))

        result = send_invoice_confirmation(self.invoice.id)

        self.assertFalse(result['totals_match'])

    def test_send_invoice_confirmation_missing_invoice(self):
        result = send_invoice_confirmation(999999)

        self.assertEqual(result['status'], 'error')

    def test_daily_sales_report(self):
        yesterday = timezone.now() - timedelta(days=1)
        Invoice.objects.filter(pk=self.invoice.pk).update(created_at=yesterday)

        stats = generate_daily_sales_report()

        self.assertEqual(stats['total_invoices'], 1)
        self.assertEqual(stats['units_sold'], 2)
        self.assertEqual(Decimal(stats['total_revenue']), Decimal('180.00'))

    def test_confirmation_queued_on_commit(self):
        with mock.patch('invoices.services.queue_invoice_confirmation') as queue:
            with self.captureOnCommitCallbacks(execute=True):
                invoice = create_invoice(
                    [{'product': self.product.pk, 'size': '9', 'quantity': 1}],
                    Decimal('90.00'),
                    unit_of_work=AtomicUnitOfWork(),
                )

        queue.assert_called_once_with(invoice.id)

    def test_delete_all_invoices(self):
        self.assertEqual(delete_all_invoices(), 1)
        self.assertFalse(InvoiceSequence.objects.exists())


@skipUnless(connection.vendor == 'postgresql', 'Row locking requires PostgreSQL')
class ConcurrentInvoiceTestCase(TransactionTestCase):
    """
    Test concurrent invoice handling to verify select_for_update works.
    Uses TransactionTestCase for proper multi-threading support.
    """

    def setUp(self):
        self.product = make_product(sizes=[{'size': '9', 'quantity': 10}])

    @override_settings(INVOICE_ATOMIC_TRANSACTIONS=True)
    def test_concurrent_invoices_no_overselling(self):
        """
        Given: 10 units of size 9 in stock
        When: Two concurrent invoices of 8 units each
        Then: At most one succeeds and stock never goes negative
        """
        results = {}

        def place_invoice(key):
            try:
                create_invoice(
                    [{'product': self.product.pk, 'size': '9', 'quantity': 8}],
                    Decimal('720.00'),
                )
                results[key] = 'created'
            except InsufficientStock:
                results[key] = 'rejected'
            finally:
                connection.close()

        threads = [threading.Thread(target=place_invoice, args=(key,)) for key in ('a', 'b')]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.product.refresh_from_db()
        created = sum(1 for r in results.values() if r == 'created')

        self.assertLessEqual(created, 1)
        self.assertEqual(self.product.stock, 10 - 8 * created)
        self.assertEqual(Invoice.objects.count(), created)
