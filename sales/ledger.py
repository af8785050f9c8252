"""
Ledger Store - persistence of sales and their line items.

`LedgerStore` is the contract the checkout engine writes through;
`DjangoLedgerStore` implements it on the ORM.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction

from core.exceptions import DuplicateInvoice
from .models import Sale, SaleLineItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineItemRecord:
    """Snapshot of one priced cart line, as written to the ledger."""
    variant_id: int
    quantity: int
    selling_price: Decimal
    cost_price: Decimal
    profit: Decimal


class LedgerStore:
    """Sale/line item operations required by checkout and reversal."""

    def invoice_exists(self, invoice_number: str) -> bool:
        raise NotImplementedError

    def staff_exists(self, staff_id: int) -> bool:
        raise NotImplementedError

    def create_sale(self, invoice_number: str, total_amount: Decimal, total_profit: Decimal,
                    payment_method: str, staff_id: Optional[int]) -> int:
        """Insert a sale and return its id; raise DuplicateInvoice on collision."""
        raise NotImplementedError

    def add_line_items(self, sale_id: int, lines: List[LineItemRecord]) -> None:
        raise NotImplementedError

    def lock_sale(self, sale_id: int) -> bool:
        """Lock the sale row for the rest of the transaction; False if missing."""
        raise NotImplementedError

    def get_line_items(self, sale_id: int) -> List[LineItemRecord]:
        raise NotImplementedError

    def delete_sale(self, sale_id: int) -> None:
        raise NotImplementedError


class DjangoLedgerStore(LedgerStore):
    """ORM-backed ledger store."""

    def invoice_exists(self, invoice_number):
        return Sale.objects.filter(invoice_number=invoice_number).exists()

    def staff_exists(self, staff_id):
        return get_user_model().objects.filter(pk=staff_id).exists()

    def create_sale(self, invoice_number, total_amount, total_profit, payment_method, staff_id):
        try:
            # Savepoint keeps the outer transaction usable after a unique violation
            with transaction.atomic():
                sale = Sale.objects.create(
                    invoice_number=invoice_number,
                    total_amount=total_amount,
                    total_profit=total_profit,
                    payment_method=payment_method,
                    staff_id=staff_id,
                )
        except IntegrityError:
            if self.invoice_exists(invoice_number):
                logger.debug(f"Unique violation on invoice {invoice_number}")
                raise DuplicateInvoice(invoice_number)
            raise
        return sale.id

    def add_line_items(self, sale_id, lines):
        SaleLineItem.objects.bulk_create([
            SaleLineItem(
                sale_id=sale_id,
                variant_id=line.variant_id,
                quantity=line.quantity,
                selling_price=line.selling_price,
                cost_price=line.cost_price,
                profit=line.profit,
            )
            for line in lines
        ])

    def lock_sale(self, sale_id):
        locked = Sale.objects.select_for_update().filter(id=sale_id).values_list('id', flat=True)
        return bool(list(locked))

    def get_line_items(self, sale_id):
        return [
            LineItemRecord(
                variant_id=item.variant_id,
                quantity=item.quantity,
                selling_price=item.selling_price,
                cost_price=item.cost_price,
                profit=item.profit,
            )
            for item in SaleLineItem.objects.filter(sale_id=sale_id).order_by('id')
        ]

    def delete_sale(self, sale_id):
        SaleLineItem.objects.filter(sale_id=sale_id).delete()
        Sale.objects.filter(id=sale_id).delete()
