"""
Sale Service Layer - Atomic checkout and reversal.

Checkout:
1. Validate the cart before touching the database
2. Lock the cart's variant rows (ascending id)
3. Price each line in cart order and decrement its stock;
   a decrement that would go negative aborts everything
4. Insert the sale with its final totals, then its line items
5. After commit, schedule the low-stock check (never fails the sale)

Reversal restores the stock of every line item and deletes the sale,
in a single transaction.
"""
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional, Tuple

from django.conf import settings
from django.db import InterfaceError, OperationalError, transaction

from catalog.stores import CatalogStore, DjangoCatalogStore
from core.exceptions import (
    CheckoutError,
    DuplicateInvoice,
    InvalidRequest,
    SaleNotFound,
    StoreUnavailable,
)
from notifications.tasks import schedule_low_stock_check
from .ledger import DjangoLedgerStore, LedgerStore, LineItemRecord

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')
PAYMENT_METHOD_MAX_LENGTH = 50


@dataclass(frozen=True)
class CartLine:
    variant_id: int
    quantity: int
    price_override: Optional[Decimal] = None


@dataclass(frozen=True)
class CheckoutResult:
    sale_id: int
    invoice_number: str


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_price(value, idx: int) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidRequest(f"Item {idx}: price_override must be a number")
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise InvalidRequest(f"Item {idx}: price_override must be a number")
    if not price.is_finite() or price < 0:
        raise InvalidRequest(f"Item {idx}: price_override must be a non-negative number")
    return price


def validate_cart(items) -> List[CartLine]:
    """
    Validate cart structure.

    Args:
        items: List of mappings with 'variant_id', 'quantity' and an
            optional 'price_override'

    Returns:
        The cart as CartLine objects, in input order

    Raises:
        InvalidRequest: If the cart is empty or any line is malformed
    """
    if not items:
        raise InvalidRequest("No items in sale")
    if not isinstance(items, (list, tuple)):
        raise InvalidRequest("Items must be a list")

    lines = []
    for idx, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise InvalidRequest(f"Item {idx}: must be an object")
        if item.get('variant_id') is None:
            raise InvalidRequest(f"Item {idx}: missing 'variant_id'")
        if item.get('quantity') is None:
            raise InvalidRequest(f"Item {idx}: missing 'quantity'")

        variant_id = item['variant_id']
        quantity = item['quantity']

        if not _is_int(variant_id):
            raise InvalidRequest(f"Item {idx}: variant_id must be an integer")
        if not _is_int(quantity) or quantity < 1:
            raise InvalidRequest(f"Item {idx}: quantity must be a positive integer")

        lines.append(CartLine(
            variant_id=variant_id,
            quantity=quantity,
            price_override=_parse_price(item.get('price_override'), idx),
        ))
    return lines


def resolve_unit_price(line_override: Optional[Decimal],
                       variant_override: Optional[Decimal],
                       selling_price: Decimal) -> Decimal:
    """
    Effective unit price for a cart line.

    Precedence: line override > variant override > product selling price.
    None means "not set"; an override of 0 is honoured.
    """
    if line_override is not None:
        return Decimal(line_override)
    if variant_override is not None:
        return Decimal(variant_override)
    return Decimal(selling_price)


def compute_line_profit(unit_price: Decimal, cost_price: Decimal, quantity: int) -> Decimal:
    return ((Decimal(unit_price) - Decimal(cost_price)) * quantity).quantize(TWO_PLACES)


def generate_invoice_number(attempt: int = 0, clock: Callable[[], float] = time.time) -> str:
    """INV- followed by epoch milliseconds, bumped by the retry attempt."""
    return f"INV-{int(clock() * 1000) + attempt}"


class CheckoutEngine:
    """
    Converts carts into sales and reverses them.

    The stores, the transaction factory and the post-commit notifier are
    injected; the defaults use the Django ORM, `transaction.atomic` and the
    Celery low-stock task.
    """

    def __init__(self,
                 catalog: Optional[CatalogStore] = None,
                 ledger: Optional[LedgerStore] = None,
                 atomic=None,
                 notifier: Optional[Callable[[Optional[int]], None]] = None,
                 clock: Callable[[], float] = time.time,
                 max_invoice_attempts: Optional[int] = None):
        self.catalog = catalog or DjangoCatalogStore()
        self.ledger = ledger or DjangoLedgerStore()
        self.atomic = atomic or transaction.atomic
        self.notifier = notifier or schedule_low_stock_check
        self.clock = clock
        if max_invoice_attempts is None:
            max_invoice_attempts = settings.INVOICE_MAX_ATTEMPTS
        # At least one insert is always attempted
        self.max_invoice_attempts = max(1, int(max_invoice_attempts))

    def process(self, items, payment_method: str = '', staff_id: Optional[int] = None) -> CheckoutResult:
        """
        Record a sale for `items` as one atomic unit.

        Raises:
            InvalidRequest: Malformed cart, bad payment method or unknown staff
            VariantNotFound: A line references a missing variant
            InsufficientStock: A line would drive stock negative
            DuplicateInvoice: No free invoice number after retrying
            StoreUnavailable: The database could not be reached
        """
        lines = validate_cart(items)
        payment_method = self._validate_payment_method(payment_method)
        if staff_id is not None and not _is_int(staff_id):
            raise InvalidRequest("staff_id must be an integer")

        try:
            with self.atomic():
                if staff_id is not None and not self.ledger.staff_exists(staff_id):
                    raise InvalidRequest(f"Staff member {staff_id} not found")

                self.catalog.lock_variants([line.variant_id for line in lines])
                records, total_amount, total_profit = self._price_and_deduct(lines)
                sale_id, invoice_number = self._record_sale(
                    total_amount, total_profit, payment_method, staff_id
                )
                self.ledger.add_line_items(sale_id, records)
        except (OperationalError, InterfaceError) as e:
            logger.error(f"Database unavailable during checkout: {e}")
            raise StoreUnavailable() from e
        except CheckoutError as e:
            logger.warning(f"Checkout rejected: {e}")
            raise

        logger.info(
            f"Sale {invoice_number} (#{sale_id}) recorded: {len(records)} lines, "
            f"total ${total_amount}, profit ${total_profit}"
        )

        self._notify(staff_id)
        return CheckoutResult(sale_id=sale_id, invoice_number=invoice_number)

    def reverse(self, sale_id: int) -> None:
        """
        Delete a sale and put its stock back.

        Raises:
            SaleNotFound: No sale with this id
            StoreUnavailable: The database could not be reached
        """
        try:
            with self.atomic():
                if not self.ledger.lock_sale(sale_id):
                    raise SaleNotFound(sale_id)

                items = self.ledger.get_line_items(sale_id)
                self.catalog.lock_variants([item.variant_id for item in items])
                for item in items:
                    self.catalog.increment_stock(item.variant_id, item.quantity)
                self.ledger.delete_sale(sale_id)
        except (OperationalError, InterfaceError) as e:
            logger.error(f"Database unavailable during reversal of sale #{sale_id}: {e}")
            raise StoreUnavailable() from e

        logger.info(f"Sale #{sale_id} reversed: restored stock for {len(items)} lines")

    def _validate_payment_method(self, payment_method) -> str:
        if payment_method is None:
            return ''
        if not isinstance(payment_method, str):
            raise InvalidRequest("payment_method must be a string")
        payment_method = payment_method.strip()
        if len(payment_method) > PAYMENT_METHOD_MAX_LENGTH:
            raise InvalidRequest(
                f"payment_method must be at most {PAYMENT_METHOD_MAX_LENGTH} characters"
            )
        return payment_method

    def _price_and_deduct(self, lines: List[CartLine]) -> Tuple[List[LineItemRecord], Decimal, Decimal]:
        total_amount = Decimal('0.00')
        total_profit = Decimal('0.00')
        records = []

        for line in lines:
            variant = self.catalog.get_variant_with_product(line.variant_id)
            product = variant.product

            unit_price = resolve_unit_price(
                line.price_override, variant.price_override, product.selling_price
            ).quantize(TWO_PLACES)
            cost_price = Decimal(product.cost_price).quantize(TWO_PLACES)
            profit = compute_line_profit(unit_price, cost_price, line.quantity)

            self.catalog.decrement_stock(line.variant_id, line.quantity)

            records.append(LineItemRecord(
                variant_id=line.variant_id,
                quantity=line.quantity,
                selling_price=unit_price,
                cost_price=cost_price,
                profit=profit,
            ))
            total_amount += unit_price * line.quantity
            total_profit += profit

        return records, total_amount.quantize(TWO_PLACES), total_profit.quantize(TWO_PLACES)

    def _record_sale(self, total_amount, total_profit, payment_method, staff_id) -> Tuple[int, str]:
        invoice_number = None
        for attempt in range(self.max_invoice_attempts):
            invoice_number = generate_invoice_number(attempt, clock=self.clock)
            if self.ledger.invoice_exists(invoice_number):
                logger.warning(f"Invoice number {invoice_number} already taken, regenerating")
                continue
            try:
                sale_id = self.ledger.create_sale(
                    invoice_number, total_amount, total_profit, payment_method, staff_id
                )
            except DuplicateInvoice:
                logger.warning(f"Invoice number {invoice_number} collided on insert, regenerating")
                continue
            return sale_id, invoice_number

        raise DuplicateInvoice(invoice_number)

    def _notify(self, staff_id: Optional[int]) -> None:
        try:
            self.notifier(staff_id)
        except Exception as e:
            # Don't fail the sale if the low-stock check can't be scheduled
            logger.error(f"Failed to schedule low-stock check: {e}")


def process_sale(items, payment_method: str = '', staff_id: Optional[int] = None) -> CheckoutResult:
    """Record a sale using the ORM-backed stores."""
    return CheckoutEngine().process(items, payment_method, staff_id)


def reverse_sale(sale_id: int) -> None:
    """Reverse a sale using the ORM-backed stores."""
    CheckoutEngine().reverse(sale_id)
