"""
Catalog API Views.

Implements:
- CRUD operations for Category, Product, Variant
- Deletion of products/variants with sale history is refused (409)
"""
import logging

from django.db.models import ProtectedError
from rest_framework import generics, status
from rest_framework.response import Response

from .models import Category, Product, Variant
from .serializers import (
    CategorySerializer,
    ProductSerializer,
    VariantSerializer,
)
from .stores import low_stock_queryset

logger = logging.getLogger(__name__)


class ProtectedDestroyMixin:
    """Turn a blocked cascade into a 409 instead of a server error."""
    protected_message = 'Cannot delete: record has sales history'

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        try:
            instance.delete()
        except ProtectedError:
            logger.warning(f"Refused to delete {instance.__class__.__name__} #{instance.pk}: has sales history")
            return Response(
                {'error': self.protected_message},
                status=status.HTTP_409_CONFLICT
            )
        return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Category Views
# =============================================================================

class CategoryListCreateView(generics.ListCreateAPIView):
    """
    GET: List all categories
    POST: Create a new category
    """
    queryset = Category.objects.all()
    serializer_class = CategorySerializer


class CategoryDetailView(generics.RetrieveUpdateDestroyAPIView):
    queryset = Category.objects.all()
    serializer_class = CategorySerializer


# =============================================================================
# Product Views
# =============================================================================

class ProductListCreateView(generics.ListCreateAPIView):
    """
    GET: List products with category and variants, newest first
    POST: Create a product, optionally with its variants

    Query Parameters (GET):
        - category_id: Filter by category
    """
    serializer_class = ProductSerializer

    def get_queryset(self):
        queryset = Product.objects.select_related('category').prefetch_related('variants')

        category_id = self.request.query_params.get('category_id')
        if category_id:
            queryset = queryset.filter(category_id=category_id)

        return queryset.order_by('-created_at', '-id')


class ProductDetailView(ProtectedDestroyMixin, generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a product
    PUT/PATCH: Update product fields
    DELETE: Delete a product and its variants, unless any variant was sold
    """
    serializer_class = ProductSerializer
    protected_message = 'Cannot delete product: one or more variants have sales history'

    def get_queryset(self):
        return Product.objects.select_related('category').prefetch_related('variants')


# =============================================================================
# Variant Views
# =============================================================================

class VariantListCreateView(generics.ListCreateAPIView):
    """
    GET: List variants
    POST: Create a variant

    Query Parameters (GET):
        - product_id: Filter by product
        - low_stock: Show only variants below threshold (true/false)
    """
    serializer_class = VariantSerializer

    def get_queryset(self):
        low_stock = self.request.query_params.get('low_stock', '').lower()
        if low_stock == 'true':
            queryset = low_stock_queryset()
        else:
            queryset = Variant.objects.select_related('product').order_by('product__name', 'id')

        product_id = self.request.query_params.get('product_id')
        if product_id:
            queryset = queryset.filter(product_id=product_id)

        return queryset


class VariantDetailView(ProtectedDestroyMixin, generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a variant
    PUT/PATCH: Update a variant (stock corrections, prices, thresholds)
    DELETE: Delete a variant that has never been sold
    """
    serializer_class = VariantSerializer
    protected_message = 'Cannot delete variant: it has sales history'

    def get_queryset(self):
        return Variant.objects.select_related('product')
