"""
Management command to seed the database with a sample boutique catalog.

Generates:
- The default categories (Electronics, Fashion, Food, General)
- Products with cost and selling prices
- Size/color variants with stock and low-stock thresholds

Usage:
    python manage.py seed_data
    python manage.py seed_data --clear  # Clear existing data first
"""
import random
from decimal import Decimal
from django.core.management.base import BaseCommand
from django.db import transaction

from catalog.models import Category, Product, Variant

DEFAULT_CATEGORIES = ['Electronics', 'Fashion', 'Food', 'General']

PRODUCT_TEMPLATES = {
    'Electronics': ['Wireless Earbuds', 'Phone Case', 'USB-C Cable', 'Power Bank', 'Smart Watch'],
    'Fashion': ['Cotton T-Shirt', 'Denim Jeans', 'Wool Sweater', 'Linen Dress', 'Leather Belt'],
    'Food': ['Organic Honey', 'Dark Chocolate', 'Roasted Coffee', 'Green Tea', 'Spice Mix'],
    'General': ['Tote Bag', 'Scented Candle', 'Notebook', 'Water Bottle', 'Keychain'],
}

SIZES = {
    'Fashion': ['S', 'M', 'L', 'XL'],
    'Food': ['250g', '500g'],
}

COLORS = ['Black', 'White', 'Navy', 'Red', 'Green', 'Beige']


class Command(BaseCommand):
    help = 'Seed the database with sample categories, products and variants'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding',
        )
        parser.add_argument(
            '--products',
            type=int,
            default=40,
            help='Number of products to create (default: 40)',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self._clear_data()

        self.stdout.write('Starting database seeding...')

        with transaction.atomic():
            categories = self._create_categories()
            products = self._create_products(options['products'], categories)
            self._create_variants(products)

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully!'))

    def _clear_data(self):
        """Clear all existing data."""
        from sales.models import SaleLineItem, Sale

        SaleLineItem.objects.all().delete()
        Sale.objects.all().delete()
        Variant.objects.all().delete()
        Product.objects.all().delete()
        Category.objects.all().delete()

        self.stdout.write(self.style.WARNING('All existing data cleared.'))

    def _create_categories(self):
        categories = []
        for name in DEFAULT_CATEGORIES:
            category, created = Category.objects.get_or_create(name=name)
            categories.append(category)
            if created:
                self.stdout.write(f'  Created category: {name}')
        return categories

    def _create_products(self, count, categories):
        """Create products with a 20-80% markup over cost."""
        products = []
        for i in range(count):
            category = random.choice(categories)
            base_name = random.choice(PRODUCT_TEMPLATES[category.name])
            cost = Decimal(str(round(random.uniform(2, 120), 2)))
            markup = Decimal(str(round(random.uniform(1.2, 1.8), 2)))

            products.append(Product(
                name=f"{base_name} #{i + 1}",
                category=category,
                description=f"{base_name} from our {category.name.lower()} range.",
                cost_price=cost,
                selling_price=(cost * markup).quantize(Decimal('0.01')),
                supplier_name=random.choice(['Acme Supply', 'Northwind', 'Globex', '']),
            ))

        Product.objects.bulk_create(products)
        products = list(Product.objects.select_related('category'))
        self.stdout.write(self.style.SUCCESS(f'Created {len(products)} products'))
        return products

    def _create_variants(self, products):
        variants = []
        for product in products:
            sizes = SIZES.get(product.category.name if product.category else '', [''])
            colors = random.sample(COLORS, k=random.randint(1, 3))
            for size in sizes:
                for color in colors:
                    variants.append(Variant(
                        product=product,
                        size=size,
                        color=color,
                        quantity=random.randint(0, 40),
                        low_stock_threshold=random.choice([None, 3, 5, 10]),
                        # Occasional clearance price below the product price
                        price_override=(
                            (product.selling_price * Decimal('0.9')).quantize(Decimal('0.01'))
                            if random.random() < 0.1 else None
                        ),
                    ))

        Variant.objects.bulk_create(variants)
        self.stdout.write(self.style.SUCCESS(f'Created {len(variants)} variants'))
