"""
Django Admin configuration for invoice models.
"""
from django.contrib import admin
from .models import Invoice, InvoiceItem, InvoiceSequence


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    readonly_fields = ['product', 'product_name', 'size', 'quantity', 'unit_price', 'subtotal']
    can_delete = False

    def subtotal(self, obj):
        return f"${obj.subtotal}"
    subtotal.short_description = 'Subtotal'


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['id', 'invoice_number', 'total_amount', 'item_count', 'created_at']
    list_filter = ['created_at']
    search_fields = ['invoice_number', 'items__product_name']
    ordering = ['-created_at']
    readonly_fields = ['invoice_number', 'total_amount', 'created_at']
    inlines = [InvoiceItemInline]

    def item_count(self, obj):
        return obj.items.count()
    item_count.short_description = 'Items'


@admin.register(InvoiceSequence)
class InvoiceSequenceAdmin(admin.ModelAdmin):
    list_display = ['name', 'last_value', 'updated_at']
    readonly_fields = ['updated_at']
