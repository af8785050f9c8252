"""
Catalog Models - Products and their sellable variants.

Models:
    - Category: Product categorization
    - Product: Catalog item with cost and selling price
    - Variant: Size/color of a product; holds the stock quantity
"""
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class Category(models.Model):
    """
    Product category for organizing products.
    """
    name = models.CharField(
        max_length=100,
        unique=True,
        db_index=True,
        help_text="Unique category name"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Category'
        verbose_name_plural = 'Categories'
        ordering = ['name']

    def __str__(self):
        return self.name


class Product(models.Model):
    """
    Product entity. Prices here are the defaults snapshotted into sale
    line items at checkout time.
    """
    name = models.CharField(
        max_length=200,
        db_index=True,
        help_text="Product name for display and search"
    )
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='products',
        help_text="Product category"
    )
    description = models.TextField(blank=True, default='')
    cost_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Unit cost paid to the supplier"
    )
    selling_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Default unit selling price"
    )
    supplier_name = models.CharField(max_length=200, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = 'Product'
        verbose_name_plural = 'Products'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} (${self.selling_price})"

    @property
    def total_stock(self) -> int:
        return sum(variant.quantity for variant in self.variants.all())


class Variant(models.Model):
    """
    A sellable size/color of a product.

    `quantity` is the only field mutated by checkout and reversal; it must
    never go negative as a result of a sale.
    """
    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name='variants',
        help_text="Parent product"
    )
    size = models.CharField(max_length=50, blank=True, default='')
    color = models.CharField(max_length=50, blank=True, default='')
    quantity = models.PositiveIntegerField(
        default=0,
        help_text="Current stock quantity"
    )
    low_stock_threshold = models.PositiveIntegerField(
        null=True,
        blank=True,
        default=5,
        help_text="Alert when quantity drops below this (defaults to 5 if unset)"
    )
    price_override = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Replaces the product selling price for this variant"
    )

    class Meta:
        verbose_name = 'Variant'
        verbose_name_plural = 'Variants'
        ordering = ['product', 'id']
        indexes = [
            models.Index(fields=['product', 'quantity'], name='variant_product_qty_idx'),
        ]

    def __str__(self):
        return f"{self.product.name} [{self.label}]: {self.quantity} units"

    @property
    def label(self) -> str:
        return f"{self.size or '-'}/{self.color or '-'}"

    @property
    def effective_threshold(self) -> int:
        if self.low_stock_threshold is None:
            return settings.LOW_STOCK_DEFAULT_THRESHOLD
        return self.low_stock_threshold

    @property
    def is_low_stock(self) -> bool:
        """Check if quantity is below the low stock threshold."""
        return self.quantity < self.effective_threshold

    @property
    def is_out_of_stock(self) -> bool:
        return self.quantity == 0

    @property
    def unit_price(self) -> Decimal:
        """Shelf price: variant override if set, else product selling price."""
        if self.price_override is not None:
            return self.price_override
        return self.product.selling_price
