"""
Serializers for sale models.
"""
from decimal import Decimal

from rest_framework import serializers
from .models import Sale, SaleLineItem


class SaleLineItemSerializer(serializers.ModelSerializer):
    """Line item with the variant it sold."""
    variant_id = serializers.IntegerField(read_only=True)
    product_name = serializers.CharField(source='variant.product.name', read_only=True)
    size = serializers.CharField(source='variant.size', read_only=True)
    color = serializers.CharField(source='variant.color', read_only=True)
    subtotal = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        read_only=True
    )

    class Meta:
        model = SaleLineItem
        fields = [
            'id', 'variant_id', 'product_name', 'size', 'color',
            'quantity', 'selling_price', 'cost_price', 'profit', 'subtotal'
        ]


class SaleSerializer(serializers.ModelSerializer):
    """Sale detail with nested line items."""
    staff_id = serializers.IntegerField(read_only=True)
    staff_name = serializers.CharField(read_only=True)
    items = SaleLineItemSerializer(many=True, read_only=True)

    class Meta:
        model = Sale
        fields = [
            'id', 'invoice_number', 'total_amount', 'total_profit',
            'payment_method', 'staff_id', 'staff_name', 'items', 'created_at'
        ]
        read_only_fields = fields


class SaleListSerializer(serializers.ModelSerializer):
    """
    Optimized serializer for listing sales.
    Uses select_related for staff data.
    """
    staff_id = serializers.IntegerField(read_only=True)
    staff_name = serializers.CharField(read_only=True)

    class Meta:
        model = Sale
        fields = [
            'id', 'invoice_number', 'total_amount', 'total_profit',
            'payment_method', 'staff_id', 'staff_name', 'created_at'
        ]


class SaleItemCreateSerializer(serializers.Serializer):
    """One cart line in a checkout request."""
    variant_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)
    price_override = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal('0.00'),
        required=False,
        allow_null=True
    )


class SaleCreateSerializer(serializers.Serializer):
    """
    Serializer for checkout via POST /sales/

    Request format:
    {
        "items": [
            {"variant_id": 1, "quantity": 2},
            {"variant_id": 3, "quantity": 1, "price_override": "80.00"}
        ],
        "payment_method": "cash",
        "staff_id": 4
    }
    """
    items = SaleItemCreateSerializer(many=True, allow_empty=False)
    payment_method = serializers.CharField(
        max_length=50,
        required=False,
        allow_blank=True,
        allow_null=True,
        default=''
    )
    staff_id = serializers.IntegerField(required=False, allow_null=True, default=None)
