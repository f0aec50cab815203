"""
Serializers for inventory models.
Provides data validation and JSON conversion for API endpoints.
"""
from django.db import IntegrityError, transaction
from rest_framework import serializers
from rest_framework.validators import UniqueValidator

from .models import Product
from .services import generate_sku, normalize_product_payload


class SizeEntrySerializer(serializers.Serializer):
    """One entry of a product's size ledger."""
    size = serializers.CharField(max_length=20)
    quantity = serializers.IntegerField()


class ProductSerializer(serializers.ModelSerializer):
    """
    Serializer for Product with its size ledger.

    `sizes` replaces the ledger wholesale and is canonicalized; `stock`
    and `talle` are derived from it. The SKU is generated when omitted.
    """
    sku = serializers.CharField(
        max_length=64,
        required=False,
        allow_blank=True,
        validators=[UniqueValidator(queryset=Product.objects.all())]
    )
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    discount = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=0,
        max_value=100,
        required=False
    )
    sizes = serializers.ListField(child=SizeEntrySerializer(), required=False)
    talle = serializers.ListField(child=serializers.CharField(max_length=20), required=False)
    stock = serializers.IntegerField(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'sku', 'name', 'category', 'description', 'image',
            'price', 'discount', 'stock', 'sizes', 'talle',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'stock', 'created_at', 'updated_at']

    def validate(self, attrs):
        attrs = normalize_product_payload(attrs)
        if not attrs.get('sku', '').strip():
            attrs.pop('sku', None)
        else:
            attrs['sku'] = attrs['sku'].strip()
        return attrs

    def create(self, validated_data):
        if 'sku' not in validated_data:
            validated_data['sku'] = generate_sku(
                validated_data.get('category'),
                validated_data.get('name')
            )
        try:
            with transaction.atomic():
                return super().create(validated_data)
        except IntegrityError:
            raise serializers.ValidationError(
                {'sku': [f"SKU {validated_data['sku']} is already in use"]}
            )


class ProductRefSerializer(serializers.ModelSerializer):
    """Minimal serializer for product references on invoice lines."""
    class Meta:
        model = Product
        fields = ['id', 'name', 'sku']
