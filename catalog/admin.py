"""
Django Admin configuration for catalog models.
"""
from django.contrib import admin
from .models import Category, Product, Variant


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'product_count', 'created_at']
    search_fields = ['name']
    ordering = ['name']

    def product_count(self, obj):
        return obj.products.count()
    product_count.short_description = 'Products'


class VariantInline(admin.TabularInline):
    model = Variant
    extra = 0
    fields = ['size', 'color', 'quantity', 'low_stock_threshold', 'price_override']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'category', 'cost_price', 'selling_price', 'supplier_name', 'created_at']
    list_filter = ['category', 'created_at']
    search_fields = ['name', 'description', 'supplier_name']
    ordering = ['name']
    raw_id_fields = ['category']
    inlines = [VariantInline]


@admin.register(Variant)
class VariantAdmin(admin.ModelAdmin):
    list_display = ['id', 'product', 'size', 'color', 'quantity', 'is_low_stock', 'price_override']
    list_filter = ['product__category']
    search_fields = ['product__name', 'size', 'color']
    ordering = ['product', 'id']
    raw_id_fields = ['product']

    def is_low_stock(self, obj):
        return obj.is_low_stock
    is_low_stock.boolean = True
    is_low_stock.short_description = 'Low Stock'
