"""
Sale API Views.

Implements:
- GET /sales/ - List sales, newest first
- POST /sales/ - Checkout a cart as one atomic sale
- GET /sales/{id}/ - Sale detail with line items
- DELETE /sales/{id}/ - Reverse a sale and restore its stock
- GET /analytics/summary/ - Catalog and today's sales totals
- GET /analytics/trends/ - Daily revenue and profit
"""
import logging
from decimal import Decimal

from django.db.models import Sum
from django.db.models.functions import TruncDate
from django.utils import timezone
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from catalog.models import Product, Variant
from catalog.stores import low_stock_queryset
from core.exceptions import CheckoutError
from core.rate_limiting import rate_limit
from .models import Sale
from .serializers import (
    SaleSerializer,
    SaleListSerializer,
    SaleCreateSerializer,
)
from .services import TWO_PLACES, process_sale, reverse_sale

logger = logging.getLogger(__name__)

TREND_DAYS = 30


def _first_error(errors) -> str:
    """Flatten DRF validation errors into one readable message."""
    if isinstance(errors, dict):
        for field, value in errors.items():
            message = _first_error(value)
            if message:
                return message if field == 'non_field_errors' else f"{field}: {message}"
    elif isinstance(errors, list):
        for value in errors:
            message = _first_error(value)
            if message:
                return message
    elif errors:
        return str(errors)
    return ''


def _money(value) -> str:
    """Aggregated amount as a 2-place string; SQLite sums decimals as floats."""
    return str(Decimal(str(value or 0)).quantize(TWO_PLACES))


class SaleListCreateView(generics.ListCreateAPIView):
    """
    GET: List all sales with staff names
    POST: Record a sale

    Request Body (POST):
    {
        "items": [{"variant_id": 1, "quantity": 2, "price_override": null}],
        "payment_method": "cash",
        "staff_id": 1
    }
    """

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return SaleCreateSerializer
        return SaleListSerializer

    def get_queryset(self):
        return Sale.objects.select_related('staff').order_by('-created_at', '-id')

    @rate_limit(window_seconds=60, scope='checkout')
    def create(self, request, *args, **kwargs):
        """
        Record a sale atomically.

        Returns:
            - 201: {"saleId": ..., "invoice_number": ...}
            - 400: Empty cart, validation or business-rule error
            - 503: Database unavailable
        """
        data = request.data if isinstance(request.data, dict) else {}
        if not data.get('items'):
            return Response({'error': 'No items in sale'}, status=status.HTTP_400_BAD_REQUEST)

        serializer = SaleCreateSerializer(data=data)
        if not serializer.is_valid():
            logger.warning(f"Sale validation failed: {serializer.errors}")
            return Response(
                {'error': _first_error(serializer.errors), 'detail': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            result = process_sale(
                items=[dict(item) for item in serializer.validated_data['items']],
                payment_method=serializer.validated_data.get('payment_method') or '',
                staff_id=serializer.validated_data.get('staff_id'),
            )
        except CheckoutError as e:
            return Response({'error': e.message}, status=e.status_code)
        except Exception as e:
            logger.exception(f"Unexpected error recording sale: {e}")
            return Response(
                {'error': 'An unexpected error occurred'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        return Response(
            {'saleId': result.sale_id, 'invoice_number': result.invoice_number},
            status=status.HTTP_201_CREATED
        )


class SaleDetailView(generics.RetrieveDestroyAPIView):
    """
    GET: Retrieve a sale with its line items
    DELETE: Reverse the sale, restoring stock
    """
    serializer_class = SaleSerializer

    def get_queryset(self):
        return Sale.objects.select_related('staff').prefetch_related(
            'items__variant__product'
        )

    def destroy(self, request, *args, **kwargs):
        sale_id = self.kwargs['pk']
        try:
            reverse_sale(sale_id)
        except CheckoutError as e:
            logger.warning(f"Sale #{sale_id} reversal failed: {e}")
            return Response({'error': e.message}, status=e.status_code)
        except Exception as e:
            logger.exception(f"Unexpected error reversing sale #{sale_id}: {e}")
            return Response(
                {'error': 'An unexpected error occurred'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
        return Response({'success': True})


class SalesSummaryView(APIView):
    """
    GET: Catalog size, stock on hand, low-stock count and today's totals.
    """

    def get(self, request):
        today = timezone.localdate()

        total_stock = Variant.objects.aggregate(total=Sum('quantity'))['total'] or 0
        today_stats = Sale.objects.filter(created_at__date=today).aggregate(
            today_sales=Sum('total_amount'),
            today_profit=Sum('total_profit')
        )

        return Response({
            'total_products': Product.objects.count(),
            'total_stock': total_stock,
            'low_stock_count': low_stock_queryset().count(),
            'today_sales': _money(today_stats['today_sales']),
            'today_profit': _money(today_stats['today_profit']),
        })


class SalesTrendsView(APIView):
    """
    GET: Revenue and profit per day for the most recent days with sales,
    oldest first.
    """

    def get(self, request):
        rows = (
            Sale.objects.annotate(date=TruncDate('created_at'))
            .values('date')
            .annotate(revenue=Sum('total_amount'), profit=Sum('total_profit'))
            .order_by('-date')[:TREND_DAYS]
        )

        trends = [
            {
                'date': row['date'].isoformat(),
                'revenue': _money(row['revenue']),
                'profit': _money(row['profit']),
            }
            for row in reversed(list(rows))
        ]
        return Response(trends)
