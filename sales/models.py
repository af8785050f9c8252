"""
Sale Models - Sale and SaleLineItem ledger entries.

A Sale is written once by checkout with its final totals and is either
kept or hard-deleted by reversal. Line items snapshot prices at sale time.
"""
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from catalog.models import Variant


class Sale(models.Model):
    """
    A recorded sale with its invoice number and totals.
    """
    invoice_number = models.CharField(
        max_length=40,
        unique=True,
        help_text="Unique invoice number, e.g. INV-1718000000000"
    )
    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Sum of line totals"
    )
    total_profit = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Sum of line profits"
    )
    payment_method = models.CharField(
        max_length=50,
        blank=True,
        default='',
        help_text="Free-text payment label (cash, card, ...)"
    )
    staff = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='sales',
        help_text="Staff member who rang up the sale"
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = 'Sale'
        verbose_name_plural = 'Sales'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.invoice_number} (${self.total_amount})"

    @property
    def staff_name(self):
        if self.staff is None:
            return None
        return self.staff.get_full_name() or self.staff.get_username()

    @property
    def item_count(self) -> int:
        return self.items.count()


class SaleLineItem(models.Model):
    """
    One cart line of a sale.

    selling_price and cost_price are copied from the catalog at sale time;
    later price edits do not change historical profit.
    """
    sale = models.ForeignKey(
        Sale,
        on_delete=models.CASCADE,
        related_name='items',
        help_text="Parent sale"
    )
    variant = models.ForeignKey(
        Variant,
        on_delete=models.PROTECT,  # Variants with sale history can't be deleted
        related_name='sale_items',
        help_text="Sold variant"
    )
    quantity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Units sold"
    )
    selling_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Unit price charged"
    )
    cost_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Unit cost at time of sale"
    )
    profit = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="(selling_price - cost_price) * quantity"
    )

    class Meta:
        verbose_name = 'Sale Line Item'
        verbose_name_plural = 'Sale Line Items'
        ordering = ['id']

    def __str__(self):
        return f"{self.quantity}x variant {self.variant_id} @ ${self.selling_price}"

    @property
    def subtotal(self) -> Decimal:
        return self.quantity * self.selling_price
