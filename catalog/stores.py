"""
Catalog Store - stock reads and writes used by checkout and reversal.

`CatalogStore` is the contract the checkout engine depends on;
`DjangoCatalogStore` implements it on the ORM. Every method runs inside
whatever `transaction.atomic()` block the caller has opened, so catalog
writes commit or roll back together with ledger writes.
"""
import logging
from typing import Iterable, List

from django.conf import settings
from django.db.models import F, IntegerField, Value
from django.db.models.functions import Coalesce

from core.exceptions import InsufficientStock, VariantNotFound
from .models import Variant

logger = logging.getLogger(__name__)


class CatalogStore:
    """Stock operations required by the checkout engine."""

    def lock_variants(self, variant_ids: Iterable[int]) -> None:
        raise NotImplementedError

    def get_variant_with_product(self, variant_id: int):
        """Return the variant with `.product` loaded, or raise VariantNotFound."""
        raise NotImplementedError

    def decrement_stock(self, variant_id: int, amount: int) -> int:
        """Remove `amount` units; raise InsufficientStock rather than go negative."""
        raise NotImplementedError

    def increment_stock(self, variant_id: int, amount: int) -> int:
        raise NotImplementedError


class DjangoCatalogStore(CatalogStore):
    """ORM-backed catalog store."""

    def lock_variants(self, variant_ids):
        # Lock in id order so two carts touching the same variants can't deadlock.
        # SQLite ignores FOR UPDATE; the conditional UPDATE below still guards it.
        ids = sorted(set(variant_ids))
        list(
            Variant.objects.select_for_update()
            .filter(id__in=ids)
            .order_by('id')
            .values_list('id', flat=True)
        )

    def get_variant_with_product(self, variant_id):
        try:
            return Variant.objects.select_related('product').get(id=variant_id)
        except Variant.DoesNotExist:
            raise VariantNotFound(variant_id)

    def decrement_stock(self, variant_id, amount):
        updated = Variant.objects.filter(
            id=variant_id,
            quantity__gte=amount
        ).update(quantity=F('quantity') - amount)

        if not updated:
            available = Variant.objects.filter(id=variant_id).values_list('quantity', flat=True).first()
            if available is None:
                raise VariantNotFound(variant_id)
            raise InsufficientStock(variant_id, amount, available)

        remaining = Variant.objects.values_list('quantity', flat=True).get(id=variant_id)
        logger.debug(f"Variant {variant_id}: removed {amount}, remaining stock: {remaining}")
        return remaining

    def increment_stock(self, variant_id, amount):
        updated = Variant.objects.filter(id=variant_id).update(quantity=F('quantity') + amount)
        if not updated:
            raise VariantNotFound(variant_id)
        return Variant.objects.values_list('quantity', flat=True).get(id=variant_id)


def low_stock_queryset():
    """
    Variants whose quantity is below their threshold.

    A NULL threshold falls back to settings.LOW_STOCK_DEFAULT_THRESHOLD.
    """
    return (
        Variant.objects.select_related('product')
        .annotate(threshold=Coalesce(
            'low_stock_threshold',
            Value(settings.LOW_STOCK_DEFAULT_THRESHOLD),
            output_field=IntegerField()
        ))
        .filter(quantity__lt=F('threshold'))
        .order_by('product__name', 'id')
    )


def low_stock_variants() -> List[Variant]:
    return list(low_stock_queryset())
