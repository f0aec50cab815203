"""
Django Admin configuration for inventory models.
"""
from django import forms
from django.contrib import admin

from .models import Product
from .normalizers import normalize_size_entries


class ProductAdminForm(forms.ModelForm):
    """Canonicalizes an edited size list the same way the API does."""

    class Meta:
        model = Product
        fields = ['sku', 'name', 'category', 'description', 'image', 'price', 'discount', 'sizes']

    def clean_sizes(self):
        sizes = self.cleaned_data.get('sizes') or []
        if not isinstance(sizes, list) or not all(isinstance(entry, dict) for entry in sizes):
            raise forms.ValidationError('Enter a list of {"size": ..., "quantity": ...} objects.')
        return normalize_size_entries(sizes)


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    form = ProductAdminForm
    list_display = ['id', 'sku', 'name', 'category', 'price', 'discount', 'stock', 'updated_at']
    list_filter = ['category', 'created_at']
    search_fields = ['sku', 'name', 'description']
    ordering = ['name']
    readonly_fields = ['stock', 'talle', 'created_at', 'updated_at']
