"""
Tests for checkout and reversal.

Test Cases:
1. Engine semantics against an in-memory store (no database)
2. Atomic checkout and reversal on the ORM stores
3. Concurrent checkouts cannot oversell
4. Sale and analytics API endpoints
"""
import copy
import threading
from contextlib import contextmanager
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import Mock, patch

from django.contrib.auth import get_user_model
from django.db import OperationalError, connection
from django.test import SimpleTestCase, TestCase, TransactionTestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from catalog.models import Category, Product, Variant
from catalog.stores import CatalogStore
from core.exceptions import (
    DuplicateInvoice,
    InsufficientStock,
    InvalidRequest,
    SaleNotFound,
    StoreUnavailable,
    VariantNotFound,
)
from sales.ledger import LedgerStore, LineItemRecord
from sales.models import Sale, SaleLineItem
from sales.services import (
    CheckoutEngine,
    compute_line_profit,
    generate_invoice_number,
    process_sale,
    resolve_unit_price,
    reverse_sale,
    validate_cart,
)

FIXED_NOW = 1700000000.0


class InMemoryStore(CatalogStore, LedgerStore):
    """Catalog and ledger in plain dicts, with snapshot/restore transactions."""

    def __init__(self):
        self.variants = {}
        self.sales = {}
        self.line_items = {}
        self.staff_ids = set()
        self.locked = []
        self._next_sale_id = 1

    def add_variant(self, variant_id, quantity, cost_price, selling_price, price_override=None):
        product = SimpleNamespace(
            name=f'Product {variant_id}',
            cost_price=Decimal(cost_price),
            selling_price=Decimal(selling_price),
        )
        self.variants[variant_id] = SimpleNamespace(
            id=variant_id,
            quantity=quantity,
            price_override=None if price_override is None else Decimal(price_override),
            product=product,
        )

    def quantity(self, variant_id):
        return self.variants[variant_id].quantity

    @contextmanager
    def atomic(self):
        snapshot = copy.deepcopy((self.variants, self.sales, self.line_items, self._next_sale_id))
        try:
            yield
        except BaseException:
            self.variants, self.sales, self.line_items, self._next_sale_id = snapshot
            raise

    # CatalogStore
    def lock_variants(self, variant_ids):
        self.locked.append(sorted(set(variant_ids)))

    def get_variant_with_product(self, variant_id):
        if variant_id not in self.variants:
            raise VariantNotFound(variant_id)
        return self.variants[variant_id]

    def decrement_stock(self, variant_id, amount):
        variant = self.get_variant_with_product(variant_id)
        if variant.quantity < amount:
            raise InsufficientStock(variant_id, amount, variant.quantity)
        variant.quantity -= amount
        return variant.quantity

    def increment_stock(self, variant_id, amount):
        variant = self.get_variant_with_product(variant_id)
        variant.quantity += amount
        return variant.quantity

    # LedgerStore
    def invoice_exists(self, invoice_number):
        return any(sale['invoice_number'] == invoice_number for sale in self.sales.values())

    def staff_exists(self, staff_id):
        return staff_id in self.staff_ids

    def create_sale(self, invoice_number, total_amount, total_profit, payment_method, staff_id):
        if self.invoice_exists(invoice_number):
            raise DuplicateInvoice(invoice_number)
        sale_id = self._next_sale_id
        self._next_sale_id += 1
        self.sales[sale_id] = {
            'invoice_number': invoice_number,
            'total_amount': total_amount,
            'total_profit': total_profit,
            'payment_method': payment_method,
            'staff_id': staff_id,
        }
        return sale_id

    def add_line_items(self, sale_id, lines):
        self.line_items.setdefault(sale_id, []).extend(lines)

    def lock_sale(self, sale_id):
        return sale_id in self.sales

    def get_line_items(self, sale_id):
        return list(self.line_items.get(sale_id, []))

    def delete_sale(self, sale_id):
        self.line_items.pop(sale_id, None)
        del self.sales[sale_id]


class CheckoutEngineTestCase(SimpleTestCase):
    """Engine semantics with the in-memory store."""

    def setUp(self):
        self.store = InMemoryStore()
        self.store.add_variant(1, quantity=5, cost_price='10.00', selling_price='20.00')
        self.store.add_variant(2, quantity=3, cost_price='4.00', selling_price='9.50')
        self.notifier = Mock()
        self.engine = CheckoutEngine(
            catalog=self.store,
            ledger=self.store,
            atomic=self.store.atomic,
            notifier=self.notifier,
            clock=lambda: FIXED_NOW,
            max_invoice_attempts=3,
        )

    def test_successful_checkout(self):
        """
        Given: V1 with 5 units, cost 10, price 20
        When: Selling 2 units
        Then: Stock is 3, total 40, profit 20
        """
        result = self.engine.process([{'variant_id': 1, 'quantity': 2}], 'cash')

        self.assertEqual(self.store.quantity(1), 3)
        sale = self.store.sales[result.sale_id]
        self.assertEqual(sale['total_amount'], Decimal('40.00'))
        self.assertEqual(sale['total_profit'], Decimal('20.00'))
        self.assertEqual(sale['payment_method'], 'cash')
        self.assertEqual(result.invoice_number, 'INV-1700000000000')

    def test_insufficient_stock_leaves_everything_untouched(self):
        """A failing later line rolls back the earlier line's decrement."""
        items = [
            {'variant_id': 1, 'quantity': 2},
            {'variant_id': 2, 'quantity': 10},  # Only 3 available
        ]

        with self.assertRaises(InsufficientStock) as context:
            self.engine.process(items, 'cash')

        self.assertEqual(context.exception.variant_id, 2)
        self.assertEqual(context.exception.requested, 10)
        self.assertEqual(context.exception.available, 3)
        self.assertEqual(self.store.quantity(1), 5)
        self.assertEqual(self.store.quantity(2), 3)
        self.assertEqual(self.store.sales, {})
        self.assertEqual(self.store.line_items, {})
        self.notifier.assert_not_called()

    def test_unknown_variant_aborts_sale(self):
        items = [
            {'variant_id': 1, 'quantity': 1},
            {'variant_id': 99, 'quantity': 1},
        ]

        with self.assertRaises(VariantNotFound):
            self.engine.process(items, 'cash')

        self.assertEqual(self.store.quantity(1), 5)
        self.assertEqual(self.store.sales, {})

    def test_line_items_snapshot_prices_in_cart_order(self):
        result = self.engine.process([
            {'variant_id': 2, 'quantity': 1},
            {'variant_id': 1, 'quantity': 2, 'price_override': '18.00'},
        ], 'card')

        lines = self.store.line_items[result.sale_id]
        self.assertEqual([line.variant_id for line in lines], [2, 1])
        self.assertEqual(lines[0], LineItemRecord(2, 1, Decimal('9.50'), Decimal('4.00'), Decimal('5.50')))
        self.assertEqual(lines[1], LineItemRecord(1, 2, Decimal('18.00'), Decimal('10.00'), Decimal('16.00')))
        self.assertEqual(self.store.sales[result.sale_id]['total_amount'], Decimal('45.50'))
        self.assertEqual(self.store.sales[result.sale_id]['total_profit'], Decimal('21.50'))

    def test_variants_locked_in_id_order(self):
        self.engine.process([
            {'variant_id': 2, 'quantity': 1},
            {'variant_id': 1, 'quantity': 1},
        ])
        self.assertEqual(self.store.locked, [[1, 2]])

    def test_repeated_variant_decrements_cumulatively(self):
        self.engine.process([
            {'variant_id': 1, 'quantity': 3},
            {'variant_id': 1, 'quantity': 2},
        ])
        self.assertEqual(self.store.quantity(1), 0)

        with self.assertRaises(InsufficientStock):
            self.engine.process([
                {'variant_id': 2, 'quantity': 2},
                {'variant_id': 2, 'quantity': 2},
            ])
        self.assertEqual(self.store.quantity(2), 3)

    def test_stock_restored_by_reversal(self):
        result = self.engine.process([
            {'variant_id': 1, 'quantity': 4},
            {'variant_id': 2, 'quantity': 3},
        ])
        self.assertEqual(self.store.quantity(1), 1)
        self.assertEqual(self.store.quantity(2), 0)

        self.engine.reverse(result.sale_id)

        self.assertEqual(self.store.quantity(1), 5)
        self.assertEqual(self.store.quantity(2), 3)
        self.assertNotIn(result.sale_id, self.store.sales)
        self.assertNotIn(result.sale_id, self.store.line_items)

    def test_reverse_unknown_sale(self):
        with self.assertRaises(SaleNotFound):
            self.engine.reverse(42)

    def test_notifier_called_with_staff_after_success(self):
        self.store.staff_ids.add(7)
        self.engine.process([{'variant_id': 1, 'quantity': 1}], 'cash', staff_id=7)
        self.notifier.assert_called_once_with(7)

    def test_notifier_failure_does_not_fail_sale(self):
        self.notifier.side_effect = RuntimeError('broker down')

        result = self.engine.process([{'variant_id': 1, 'quantity': 1}], 'cash')

        self.assertIn(result.sale_id, self.store.sales)
        self.assertEqual(self.store.quantity(1), 4)

    def test_unknown_staff_rejected(self):
        with self.assertRaises(InvalidRequest):
            self.engine.process([{'variant_id': 1, 'quantity': 1}], 'cash', staff_id=3)
        self.assertEqual(self.store.quantity(1), 5)

    def test_invoice_collision_regenerates_number(self):
        self.store.sales[100] = {'invoice_number': 'INV-1700000000000'}

        result = self.engine.process([{'variant_id': 1, 'quantity': 1}])

        self.assertEqual(result.invoice_number, 'INV-1700000000001')

    def test_invoice_collision_on_insert_retries(self):
        original_create = self.store.create_sale
        calls = []

        def racing_create(invoice_number, *args):
            calls.append(invoice_number)
            if len(calls) == 1:
                raise DuplicateInvoice(invoice_number)
            return original_create(invoice_number, *args)

        self.store.create_sale = racing_create

        result = self.engine.process([{'variant_id': 1, 'quantity': 1}])

        self.assertEqual(calls, ['INV-1700000000000', 'INV-1700000000001'])
        self.assertEqual(result.invoice_number, 'INV-1700000000001')

    def test_invoice_retries_exhausted(self):
        self.store.create_sale = Mock(side_effect=DuplicateInvoice('INV-x'))

        with self.assertRaises(DuplicateInvoice):
            self.engine.process([{'variant_id': 1, 'quantity': 2}])

        self.assertEqual(self.store.create_sale.call_count, 3)
        self.assertEqual(self.store.quantity(1), 5)

    @override_settings(INVOICE_MAX_ATTEMPTS=0)
    def test_zero_invoice_attempts_still_records_sale(self):
        engine = CheckoutEngine(
            catalog=self.store,
            ledger=self.store,
            atomic=self.store.atomic,
            notifier=self.notifier,
            clock=lambda: FIXED_NOW,
        )

        result = engine.process([{'variant_id': 1, 'quantity': 1}])

        self.assertEqual(engine.max_invoice_attempts, 1)
        self.assertEqual(result.invoice_number, 'INV-1700000000000')
        self.assertEqual(self.store.quantity(1), 4)

    def test_database_error_maps_to_store_unavailable(self):
        self.store.decrement_stock = Mock(side_effect=OperationalError('connection refused'))

        with self.assertRaises(StoreUnavailable):
            self.engine.process([{'variant_id': 1, 'quantity': 1}])

        self.assertEqual(self.store.sales, {})

    def test_validation_happens_before_any_write(self):
        self.store.lock_variants = Mock()

        with self.assertRaises(InvalidRequest):
            self.engine.process([{'variant_id': 1, 'quantity': 0}])

        self.store.lock_variants.assert_not_called()


class PricingTestCase(SimpleTestCase):
    """Price precedence and profit arithmetic."""

    def test_line_override_wins(self):
        price = resolve_unit_price(Decimal('80'), Decimal('90'), Decimal('100'))
        self.assertEqual(price, Decimal('80'))

    def test_variant_override_used_without_line_override(self):
        price = resolve_unit_price(None, Decimal('90'), Decimal('100'))
        self.assertEqual(price, Decimal('90'))

    def test_product_price_is_fallback(self):
        price = resolve_unit_price(None, None, Decimal('100'))
        self.assertEqual(price, Decimal('100'))

    def test_zero_override_is_honoured(self):
        price = resolve_unit_price(Decimal('0'), Decimal('90'), Decimal('100'))
        self.assertEqual(price, Decimal('0'))

    def test_line_profit(self):
        """cost 10, price 15, quantity 3 -> profit 15"""
        self.assertEqual(compute_line_profit(Decimal('15'), Decimal('10'), 3), Decimal('15.00'))

    def test_line_profit_can_be_negative(self):
        self.assertEqual(compute_line_profit(Decimal('8'), Decimal('10'), 2), Decimal('-4.00'))

    def test_invoice_number_format(self):
        self.assertEqual(generate_invoice_number(clock=lambda: 1718000000.123), 'INV-1718000000123')
        self.assertEqual(generate_invoice_number(2, clock=lambda: 1718000000.123), 'INV-1718000000125')


class CartValidationTestCase(SimpleTestCase):

    def test_empty_cart(self):
        for items in ([], None):
            with self.assertRaises(InvalidRequest) as context:
                validate_cart(items)
            self.assertEqual(str(context.exception), 'No items in sale')

    def test_invalid_quantities(self):
        for quantity in (0, -1, 1.5, '2', True):
            with self.assertRaises(InvalidRequest):
                validate_cart([{'variant_id': 1, 'quantity': quantity}])

    def test_missing_variant_id(self):
        with self.assertRaises(InvalidRequest) as context:
            validate_cart([{'quantity': 1}])
        self.assertIn('variant_id', str(context.exception))

    def test_negative_price_override(self):
        with self.assertRaises(InvalidRequest):
            validate_cart([{'variant_id': 1, 'quantity': 1, 'price_override': '-1'}])

    def test_parses_lines(self):
        lines = validate_cart([
            {'variant_id': 1, 'quantity': 2},
            {'variant_id': 2, 'quantity': 1, 'price_override': '12.50'},
        ])
        self.assertEqual(lines[0].price_override, None)
        self.assertEqual(lines[1].price_override, Decimal('12.50'))


class CatalogFixtureMixin:
    """Shared catalog: V1 (5 units, cost 10 / sell 20) and V2 (3 units, override 25)."""

    def create_catalog(self):
        self.category = Category.objects.create(name='Fashion')
        self.product = Product.objects.create(
            name='Cotton T-Shirt',
            category=self.category,
            cost_price=Decimal('10.00'),
            selling_price=Decimal('20.00'),
        )
        self.v1 = Variant.objects.create(product=self.product, size='M', color='Black', quantity=5)
        self.v2 = Variant.objects.create(
            product=self.product, size='L', color='White', quantity=3,
            price_override=Decimal('25.00')
        )
        self.staff = get_user_model().objects.create_user(
            username='cashier', password='secret', first_name='Ann', last_name='Lee'
        )


class SaleCheckoutTestCase(CatalogFixtureMixin, TestCase):
    """Checkout and reversal on the ORM stores."""

    def setUp(self):
        self.create_catalog()

    def test_checkout_scenario(self):
        result = process_sale([{'variant_id': self.v1.id, 'quantity': 2}], 'cash', self.staff.id)

        self.v1.refresh_from_db()
        self.assertEqual(self.v1.quantity, 3)

        sale = Sale.objects.get(id=result.sale_id)
        self.assertEqual(sale.invoice_number, result.invoice_number)
        self.assertTrue(sale.invoice_number.startswith('INV-'))
        self.assertEqual(sale.total_amount, Decimal('40.00'))
        self.assertEqual(sale.total_profit, Decimal('20.00'))
        self.assertEqual(sale.staff, self.staff)
        self.assertEqual(sale.staff_name, 'Ann Lee')

        item = sale.items.get()
        self.assertEqual(item.selling_price, Decimal('20.00'))
        self.assertEqual(item.cost_price, Decimal('10.00'))
        self.assertEqual(item.profit, Decimal('20.00'))

    def test_insufficient_stock_scenario(self):
        with self.assertRaises(InsufficientStock):
            process_sale([{'variant_id': self.v1.id, 'quantity': 10}], 'cash')

        self.v1.refresh_from_db()
        self.assertEqual(self.v1.quantity, 5)
        self.assertFalse(Sale.objects.exists())

    def test_failed_line_rolls_back_earlier_lines(self):
        items = [
            {'variant_id': self.v1.id, 'quantity': 2},
            {'variant_id': self.v2.id, 'quantity': 4},  # Only 3 available
        ]

        with self.assertRaises(InsufficientStock):
            process_sale(items, 'cash')

        self.v1.refresh_from_db()
        self.v2.refresh_from_db()
        self.assertEqual(self.v1.quantity, 5)
        self.assertEqual(self.v2.quantity, 3)
        self.assertFalse(Sale.objects.exists())
        self.assertFalse(SaleLineItem.objects.exists())

    def test_exact_stock_sells_out(self):
        process_sale([{'variant_id': self.v2.id, 'quantity': 3}], 'cash')

        self.v2.refresh_from_db()
        self.assertEqual(self.v2.quantity, 0)

    def test_price_precedence_on_orm(self):
        result = process_sale([
            {'variant_id': self.v2.id, 'quantity': 1},
            {'variant_id': self.v2.id, 'quantity': 1, 'price_override': Decimal('22.00')},
        ], 'cash')

        prices = list(
            SaleLineItem.objects.filter(sale_id=result.sale_id)
            .order_by('id').values_list('selling_price', flat=True)
        )
        self.assertEqual(prices, [Decimal('25.00'), Decimal('22.00')])

    def test_historical_prices_survive_catalog_edits(self):
        result = process_sale([{'variant_id': self.v1.id, 'quantity': 1}], 'cash')

        self.product.selling_price = Decimal('99.00')
        self.product.cost_price = Decimal('50.00')
        self.product.save()

        item = SaleLineItem.objects.get(sale_id=result.sale_id)
        self.assertEqual(item.selling_price, Decimal('20.00'))
        self.assertEqual(item.cost_price, Decimal('10.00'))

    def test_unknown_variant(self):
        with self.assertRaises(VariantNotFound):
            process_sale([{'variant_id': 99999, 'quantity': 1}], 'cash')
        self.assertFalse(Sale.objects.exists())

    def test_unknown_staff(self):
        with self.assertRaises(InvalidRequest):
            process_sale([{'variant_id': self.v1.id, 'quantity': 1}], 'cash', staff_id=99999)
        self.v1.refresh_from_db()
        self.assertEqual(self.v1.quantity, 5)

    def test_invoice_numbers_unique_within_same_millisecond(self):
        engine = CheckoutEngine(clock=lambda: FIXED_NOW, notifier=Mock())

        first = engine.process([{'variant_id': self.v1.id, 'quantity': 1}])
        second = engine.process([{'variant_id': self.v1.id, 'quantity': 1}])

        self.assertEqual(first.invoice_number, 'INV-1700000000000')
        self.assertEqual(second.invoice_number, 'INV-1700000000001')

    def test_database_failure_is_store_unavailable(self):
        with patch('catalog.stores.DjangoCatalogStore.lock_variants', side_effect=OperationalError('gone')):
            with self.assertRaises(StoreUnavailable):
                process_sale([{'variant_id': self.v1.id, 'quantity': 1}], 'cash')

    def test_low_stock_check_scheduled_on_commit(self):
        with patch('notifications.tasks.check_low_stock_alerts.delay') as delay:
            with self.captureOnCommitCallbacks(execute=True):
                process_sale([{'variant_id': self.v1.id, 'quantity': 1}], 'cash', self.staff.id)

        delay.assert_called_once_with(self.staff.id)

    def test_queue_failure_does_not_fail_sale(self):
        with patch('notifications.tasks.check_low_stock_alerts.delay', side_effect=ConnectionError('no broker')):
            with self.captureOnCommitCallbacks(execute=True):
                result = process_sale([{'variant_id': self.v1.id, 'quantity': 1}], 'cash', self.staff.id)

        self.assertTrue(Sale.objects.filter(id=result.sale_id).exists())

    def test_reversal_round_trip(self):
        result = process_sale([
            {'variant_id': self.v1.id, 'quantity': 2},
            {'variant_id': self.v2.id, 'quantity': 3},
        ], 'cash')

        reverse_sale(result.sale_id)

        self.v1.refresh_from_db()
        self.v2.refresh_from_db()
        self.assertEqual(self.v1.quantity, 5)
        self.assertEqual(self.v2.quantity, 3)
        self.assertFalse(Sale.objects.filter(id=result.sale_id).exists())
        self.assertFalse(SaleLineItem.objects.filter(sale_id=result.sale_id).exists())

    def test_reverse_missing_sale(self):
        with self.assertRaises(SaleNotFound):
            reverse_sale(99999)


class ConcurrentCheckoutTestCase(TransactionTestCase):
    """
    Concurrent checkouts against one variant.
    Row locks serialize them where the database has them; the conditional
    stock UPDATE keeps quantity non-negative everywhere, SQLite included.
    """

    def setUp(self):
        self.product = Product.objects.create(
            name='Limited Stock Jacket',
            cost_price=Decimal('30.00'),
            selling_price=Decimal('50.00'),
        )
        # Only 10 units available
        self.variant = Variant.objects.create(product=self.product, size='M', color='Red', quantity=10)

    def sell_concurrently(self, buyers, quantity):
        results = {}

        def sell(key):
            try:
                process_sale([{'variant_id': self.variant.id, 'quantity': quantity}], 'cash')
                results[key] = 'ok'
            except Exception as e:
                results[key] = type(e).__name__
            finally:
                connection.close()

        threads = [threading.Thread(target=sell, args=(key,)) for key in range(buyers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.variant.refresh_from_db()
        return sum(1 for outcome in results.values() if outcome == 'ok')

    def test_concurrent_checkouts_no_overselling(self):
        """
        Given: 10 units in stock
        When: Two concurrent sales of 8 units each
        Then: At most one succeeds and stock never goes negative
        """
        succeeded = self.sell_concurrently(buyers=2, quantity=8)

        self.assertLessEqual(succeeded, 1)
        self.assertEqual(self.variant.quantity, 10 - 8 * succeeded)
        self.assertEqual(Sale.objects.count(), succeeded)

    def test_many_buyers_share_limited_stock(self):
        """
        Given: 10 units in stock
        When: Four concurrent sales of 4 units each
        Then: At most two succeed and the remainder matches the recorded sales
        """
        succeeded = self.sell_concurrently(buyers=4, quantity=4)

        self.assertLessEqual(succeeded, 2)
        self.assertGreaterEqual(self.variant.quantity, 0)
        self.assertEqual(self.variant.quantity, 10 - 4 * succeeded)
        self.assertEqual(Sale.objects.count(), succeeded)


@override_settings(RATE_LIMIT_ENABLED=False)
class SaleApiTestCase(CatalogFixtureMixin, APITestCase):
    """HTTP contract of the sale endpoints."""

    def setUp(self):
        self.create_catalog()

    def test_create_sale(self):
        response = self.client.post('/api/sales/', {
            'items': [{'variant_id': self.v1.id, 'quantity': 2}],
            'payment_method': 'cash',
            'staff_id': self.staff.id,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('saleId', response.data)
        self.assertTrue(response.data['invoice_number'].startswith('INV-'))
        self.v1.refresh_from_db()
        self.assertEqual(self.v1.quantity, 3)

    def test_create_sale_with_price_override(self):
        response = self.client.post('/api/sales/', {
            'items': [{'variant_id': self.v1.id, 'quantity': 1, 'price_override': '15.00'}],
            'payment_method': 'card',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        sale = Sale.objects.get(id=response.data['saleId'])
        self.assertEqual(sale.total_amount, Decimal('15.00'))
        self.assertEqual(sale.total_profit, Decimal('5.00'))
        self.assertIsNone(sale.staff)

    def test_empty_cart(self):
        for payload in ({'items': [], 'payment_method': 'cash'}, {'payment_method': 'cash'}):
            response = self.client.post('/api/sales/', payload, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.data, {'error': 'No items in sale'})

    def test_invalid_line(self):
        response = self.client.post('/api/sales/', {
            'items': [{'variant_id': self.v1.id, 'quantity': 0}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('quantity', response.data['error'])

    def test_insufficient_stock(self):
        response = self.client.post('/api/sales/', {
            'items': [{'variant_id': self.v1.id, 'quantity': 10}],
            'payment_method': 'cash',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Insufficient stock', response.data['error'])
        self.assertFalse(Sale.objects.exists())

    def test_unknown_variant(self):
        response = self.client.post('/api/sales/', {
            'items': [{'variant_id': 99999, 'quantity': 1}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Variant not found: 99999')

    def test_store_unavailable(self):
        with patch('sales.views.process_sale', side_effect=StoreUnavailable()):
            response = self.client.post('/api/sales/', {
                'items': [{'variant_id': self.v1.id, 'quantity': 1}],
            }, format='json')

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertIn('error', response.data)

    def test_unexpected_error(self):
        with patch('sales.views.process_sale', side_effect=RuntimeError('boom')):
            response = self.client.post('/api/sales/', {
                'items': [{'variant_id': self.v1.id, 'quantity': 1}],
            }, format='json')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {'error': 'An unexpected error occurred'})

    def test_list_sales(self):
        process_sale([{'variant_id': self.v1.id, 'quantity': 1}], 'cash', self.staff.id)
        process_sale([{'variant_id': self.v2.id, 'quantity': 1}], 'card')

        response = self.client.get('/api/sales/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)
        self.assertEqual(response.data[0]['payment_method'], 'card')
        self.assertIsNone(response.data[0]['staff_name'])
        self.assertEqual(response.data[1]['staff_name'], 'Ann Lee')

    def test_sale_detail(self):
        result = process_sale([{'variant_id': self.v2.id, 'quantity': 2}], 'cash')

        response = self.client.get(f'/api/sales/{result.sale_id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_amount'], '50.00')
        item = response.data['items'][0]
        self.assertEqual(item['product_name'], 'Cotton T-Shirt')
        self.assertEqual(item['selling_price'], '25.00')
        self.assertEqual(item['profit'], '30.00')

    def test_delete_sale_restores_stock(self):
        result = process_sale([{'variant_id': self.v1.id, 'quantity': 4}], 'cash')

        response = self.client.delete(f'/api/sales/{result.sale_id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'success': True})
        self.v1.refresh_from_db()
        self.assertEqual(self.v1.quantity, 5)

    def test_delete_missing_sale(self):
        response = self.client.delete('/api/sales/99999/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertIn('error', response.data)

    def test_analytics_summary(self):
        process_sale([{'variant_id': self.v1.id, 'quantity': 2}], 'cash')

        response = self.client.get('/api/analytics/summary/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_products'], 1)
        self.assertEqual(response.data['total_stock'], 6)
        # V1 at 3 and V2 at 3 are both under the default threshold of 5
        self.assertEqual(response.data['low_stock_count'], 2)
        self.assertEqual(response.data['today_sales'], '40.00')
        self.assertEqual(response.data['today_profit'], '20.00')

    def test_analytics_trends(self):
        process_sale([{'variant_id': self.v1.id, 'quantity': 1}], 'cash')
        process_sale([{'variant_id': self.v2.id, 'quantity': 1}], 'cash')

        response = self.client.get('/api/analytics/trends/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['revenue'], '45.00')
        self.assertEqual(response.data[0]['profit'], '25.00')

    def test_analytics_amounts_keep_two_places(self):
        """
        Given: Two sales of 0.10 and 0.20 with zero cost
        When: Fetching summary and trends
        Then: Sums read 0.30, not a float rendering
        """
        product = Product.objects.create(name='Hair Tie', cost_price=Decimal('0.00'), selling_price=Decimal('0.10'))
        variant = Variant.objects.create(product=product, color='Black', quantity=50)
        process_sale([{'variant_id': variant.id, 'quantity': 1}], 'cash')
        process_sale([{'variant_id': variant.id, 'quantity': 1, 'price_override': '0.20'}], 'cash')

        summary = self.client.get('/api/analytics/summary/').data
        trends = self.client.get('/api/analytics/trends/').data

        self.assertEqual(summary['today_sales'], '0.30')
        self.assertEqual(summary['today_profit'], '0.30')
        self.assertEqual(trends[-1]['revenue'], '0.30')
        self.assertEqual(trends[-1]['profit'], '0.30')

    def test_analytics_without_sales(self):
        summary = self.client.get('/api/analytics/summary/').data

        self.assertEqual(summary['today_sales'], '0.00')
        self.assertEqual(summary['today_profit'], '0.00')
        self.assertEqual(self.client.get('/api/analytics/trends/').data, [])


@override_settings(RATE_LIMIT_ENABLED=True, CHECKOUT_RATE_LIMIT=2)
class CheckoutRateLimitTestCase(CatalogFixtureMixin, APITestCase):

    def setUp(self):
        self.create_catalog()

    def test_checkout_rejected_over_limit(self):
        client = Mock()
        client.incr.return_value = 3
        client.ttl.return_value = 42

        with patch('core.rate_limiting.get_redis_client', return_value=client):
            response = self.client.post('/api/sales/', {
                'items': [{'variant_id': self.v1.id, 'quantity': 1}],
            }, format='json')

        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(response['Retry-After'], '42')
        self.assertFalse(Sale.objects.exists())

    def test_checkout_allowed_under_limit(self):
        client = Mock()
        client.incr.return_value = 1
        client.ttl.return_value = 60

        with patch('core.rate_limiting.get_redis_client', return_value=client):
            response = self.client.post('/api/sales/', {
                'items': [{'variant_id': self.v1.id, 'quantity': 1}],
            }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response['X-RateLimit-Remaining'], '1')
        client.expire.assert_called_once()

    def test_redis_unavailable_fails_open(self):
        with patch('core.rate_limiting.get_redis_client', return_value=None):
            response = self.client.post('/api/sales/', {
                'items': [{'variant_id': self.v1.id, 'quantity': 1}],
            }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
