"""
Tests for the catalog store and catalog API.
"""
from decimal import Decimal

from django.db import transaction
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from catalog.models import Category, Product, Variant
from catalog.stores import DjangoCatalogStore, low_stock_variants
from core.exceptions import InsufficientStock, VariantNotFound
from sales.models import Sale, SaleLineItem


class CatalogStoreTestCase(TestCase):
    """Stock operations used by checkout and reversal."""

    def setUp(self):
        self.store = DjangoCatalogStore()
        self.product = Product.objects.create(
            name='Wool Sweater',
            cost_price=Decimal('25.00'),
            selling_price=Decimal('60.00'),
        )
        self.variant = Variant.objects.create(product=self.product, size='M', color='Navy', quantity=10)

    def test_get_variant_with_product(self):
        variant = self.store.get_variant_with_product(self.variant.id)

        self.assertEqual(variant.id, self.variant.id)
        self.assertEqual(variant.product.cost_price, Decimal('25.00'))

    def test_get_missing_variant(self):
        with self.assertRaises(VariantNotFound):
            self.store.get_variant_with_product(99999)

    def test_decrement_stock(self):
        with transaction.atomic():
            remaining = self.store.decrement_stock(self.variant.id, 4)

        self.assertEqual(remaining, 6)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.quantity, 6)

    def test_decrement_to_zero(self):
        with transaction.atomic():
            self.assertEqual(self.store.decrement_stock(self.variant.id, 10), 0)

    def test_decrement_below_zero_refused(self):
        with self.assertRaises(InsufficientStock) as context:
            with transaction.atomic():
                self.store.decrement_stock(self.variant.id, 11)

        self.assertEqual(context.exception.available, 10)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.quantity, 10)

    def test_decrement_missing_variant(self):
        with self.assertRaises(VariantNotFound):
            self.store.decrement_stock(99999, 1)

    def test_increment_stock(self):
        with transaction.atomic():
            self.store.lock_variants([self.variant.id])
            remaining = self.store.increment_stock(self.variant.id, 5)

        self.assertEqual(remaining, 15)

    def test_low_stock_variants(self):
        low = Variant.objects.create(product=self.product, size='S', color='Navy', quantity=1)
        Variant.objects.create(product=self.product, size='L', color='Navy', quantity=3, low_stock_threshold=2)

        self.assertEqual([v.id for v in low_stock_variants()], [low.id])


class VariantModelTestCase(TestCase):

    def setUp(self):
        self.product = Product.objects.create(
            name='Denim Jeans',
            cost_price=Decimal('20.00'),
            selling_price=Decimal('45.00'),
        )

    def test_unit_price(self):
        plain = Variant.objects.create(product=self.product, size='32', quantity=5)
        discounted = Variant.objects.create(
            product=self.product, size='34', quantity=5, price_override=Decimal('39.00')
        )

        self.assertEqual(plain.unit_price, Decimal('45.00'))
        self.assertEqual(discounted.unit_price, Decimal('39.00'))

    def test_low_stock_flags(self):
        variant = Variant.objects.create(product=self.product, size='30', quantity=0, low_stock_threshold=None)

        self.assertTrue(variant.is_low_stock)
        self.assertTrue(variant.is_out_of_stock)
        self.assertEqual(variant.effective_threshold, 5)


class CatalogApiTestCase(APITestCase):

    def setUp(self):
        self.category = Category.objects.create(name='Fashion')

    def test_create_product_with_variants(self):
        response = self.client.post('/api/products/', {
            'name': 'Silk Scarf',
            'category_id': self.category.id,
            'cost_price': '8.00',
            'selling_price': '19.99',
            'supplier_name': 'Northwind',
            'variants': [
                {'size': '', 'color': 'Red', 'quantity': 12},
                {'size': '', 'color': 'Blue', 'quantity': 3, 'price_override': '15.00'},
            ],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['category']['name'], 'Fashion')
        self.assertEqual(response.data['total_stock'], 15)
        self.assertEqual(len(response.data['variants']), 2)
        self.assertEqual(Variant.objects.filter(product_id=response.data['id']).count(), 2)

    def test_list_low_stock_variants(self):
        product = Product.objects.create(name='Cap', cost_price=Decimal('3.00'), selling_price=Decimal('9.00'))
        low = Variant.objects.create(product=product, color='Black', quantity=1)
        Variant.objects.create(product=product, color='White', quantity=30)

        response = self.client.get('/api/variants/', {'low_stock': 'true'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([v['id'] for v in response.data], [low.id])
        self.assertEqual(response.data[0]['unit_price'], '9.00')

    def test_delete_unsold_variant(self):
        product = Product.objects.create(name='Cap', cost_price=Decimal('3.00'), selling_price=Decimal('9.00'))
        variant = Variant.objects.create(product=product, color='Black', quantity=1)

        response = self.client.delete(f'/api/variants/{variant.id}/')

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Variant.objects.filter(id=variant.id).exists())

    def test_variant_with_sales_history_cannot_be_deleted(self):
        product = Product.objects.create(name='Cap', cost_price=Decimal('3.00'), selling_price=Decimal('9.00'))
        variant = Variant.objects.create(product=product, color='Black', quantity=1)
        sale = Sale.objects.create(invoice_number='INV-1', total_amount=Decimal('9.00'), total_profit=Decimal('6.00'))
        SaleLineItem.objects.create(
            sale=sale, variant=variant, quantity=1,
            selling_price=Decimal('9.00'), cost_price=Decimal('3.00'), profit=Decimal('6.00')
        )

        response = self.client.delete(f'/api/variants/{variant.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('sales history', response.data['error'])

        response = self.client.delete(f'/api/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        self.assertTrue(Variant.objects.filter(id=variant.id).exists())
        self.assertTrue(Product.objects.filter(id=product.id).exists())
