"""
Serializers for catalog models.
Provides data validation and JSON conversion for API endpoints.
"""
from django.db import transaction
from rest_framework import serializers
from .models import Category, Product, Variant


class CategorySerializer(serializers.ModelSerializer):
    """Serializer for Category model."""
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'product_count', 'created_at']
        read_only_fields = ['id', 'created_at']

    def get_product_count(self, obj):
        """Get count of products in this category."""
        return obj.products.count()


class CategoryMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested category representation."""
    class Meta:
        model = Category
        fields = ['id', 'name']


class VariantNestedSerializer(serializers.ModelSerializer):
    """Variant as embedded in a product payload."""
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Variant
        fields = [
            'id', 'size', 'color', 'quantity',
            'low_stock_threshold', 'price_override', 'is_low_stock'
        ]
        read_only_fields = ['id']


class VariantSerializer(serializers.ModelSerializer):
    """Standalone variant with its product reference."""
    product_id = serializers.PrimaryKeyRelatedField(
        queryset=Product.objects.all(),
        source='product'
    )
    product_name = serializers.CharField(source='product.name', read_only=True)
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)
    is_out_of_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Variant
        fields = [
            'id', 'product_id', 'product_name', 'size', 'color',
            'quantity', 'low_stock_threshold', 'price_override', 'unit_price',
            'is_low_stock', 'is_out_of_stock'
        ]
        read_only_fields = ['id']


class ProductSerializer(serializers.ModelSerializer):
    """
    Product with nested category and variants.

    Variants may be supplied on create; afterwards they are managed through
    the variant endpoints so stock and sale history stay intact.
    """
    category = CategoryMinimalSerializer(read_only=True)
    category_id = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(),
        source='category',
        write_only=True,
        required=False,
        allow_null=True
    )
    variants = VariantNestedSerializer(many=True, required=False)
    total_stock = serializers.IntegerField(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'category', 'category_id', 'description',
            'cost_price', 'selling_price', 'supplier_name',
            'variants', 'total_stock', 'created_at'
        ]
        read_only_fields = ['id', 'created_at']

    def create(self, validated_data):
        variants = validated_data.pop('variants', [])
        with transaction.atomic():
            product = Product.objects.create(**validated_data)
            Variant.objects.bulk_create([
                Variant(product=product, **variant) for variant in variants
            ])
        return product

    def update(self, instance, validated_data):
        validated_data.pop('variants', None)
        return super().update(instance, validated_data)
