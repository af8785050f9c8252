"""
Django Admin configuration for sale models.

Sales are read-only here; reversing a sale must go through the API so
stock is restored.
"""
from django.contrib import admin
from .models import Sale, SaleLineItem


class SaleLineItemInline(admin.TabularInline):
    model = SaleLineItem
    extra = 0
    readonly_fields = ['variant', 'quantity', 'selling_price', 'cost_price', 'profit']
    can_delete = False


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ['id', 'invoice_number', 'total_amount', 'total_profit', 'payment_method', 'staff', 'created_at']
    list_filter = ['payment_method', 'created_at']
    search_fields = ['invoice_number', 'staff__username']
    ordering = ['-created_at']
    readonly_fields = ['invoice_number', 'total_amount', 'total_profit', 'payment_method', 'staff', 'created_at']
    inlines = [SaleLineItemInline]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(SaleLineItem)
class SaleLineItemAdmin(admin.ModelAdmin):
    list_display = ['id', 'sale', 'variant', 'quantity', 'selling_price', 'cost_price', 'profit']
    search_fields = ['sale__invoice_number', 'variant__product__name']
    ordering = ['-id']
    raw_id_fields = ['sale', 'variant']

    def has_delete_permission(self, request, obj=None):
        return False
