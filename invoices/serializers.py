"""
Serializers for invoice models.
"""
from decimal import Decimal

from rest_framework import serializers

from inventory.serializers import ProductRefSerializer
from .models import Invoice, InvoiceItem


class InvoiceItemSerializer(serializers.ModelSerializer):
    """Serializer for an invoice line with its product reference resolved."""
    product = ProductRefSerializer(read_only=True)
    productName = serializers.CharField(source='product_name', read_only=True)
    price = serializers.DecimalField(
        source='unit_price',
        max_digits=10,
        decimal_places=2,
        read_only=True
    )
    subtotal = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        read_only=True
    )

    class Meta:
        model = InvoiceItem
        fields = ['id', 'product', 'productName', 'size', 'quantity', 'price', 'subtotal']


class InvoiceSerializer(serializers.ModelSerializer):
    """
    Serializer for Invoice with nested lines.
    Expects items__product to be prefetched.
    """
    invoiceNumber = serializers.CharField(source='invoice_number', read_only=True)
    totalAmount = serializers.DecimalField(
        source='total_amount',
        max_digits=12,
        decimal_places=2,
        read_only=True
    )
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    items = InvoiceItemSerializer(many=True, read_only=True)

    class Meta:
        model = Invoice
        fields = ['id', 'invoiceNumber', 'items', 'totalAmount', 'createdAt']


class InvoiceItemCreateSerializer(serializers.Serializer):
    """One requested line: a product lookup key, a size and a quantity."""
    product = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    productSku = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    productName = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    size = serializers.CharField(max_length=20)
    quantity = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=0,
        required=False,
        allow_null=True
    )

    def validate(self, attrs):
        if not any(attrs.get(key) for key in ('product', 'productSku', 'productName')):
            raise serializers.ValidationError(
                "One of 'product', 'productSku' or 'productName' is required"
            )
        return attrs


class InvoiceCreateSerializer(serializers.Serializer):
    """
    Serializer for creating invoices via POST /invoices/

    Request format:
    {
        "items": [
            {"product": 1, "size": "9", "quantity": 2},
            {"productSku": "NK-AM-001", "size": "10", "quantity": 1, "price": 90}
        ],
        "totalAmount": 270
    }
    """
    items = InvoiceItemCreateSerializer(many=True, allow_empty=False)
    totalAmount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal('0.01')
    )
