"""
Invoice Models - Invoice and InvoiceItem entities plus the numbering counter.

Invoice lines snapshot the product name and unit price at invoice time, so
historical invoices are unaffected by later product edits or deletions.
"""
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from inventory.models import Product


class Invoice(models.Model):
    """
    Invoice entity created by the invoice orchestrator.

    Immutable once created; only removed by the administrative bulk delete.
    """
    invoice_number = models.CharField(
        max_length=32,
        unique=True,
        help_text="Human-facing sequential number (FAC-<n>)"
    )
    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Client-supplied invoice total"
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = 'Invoice'
        verbose_name_plural = 'Invoices'
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.invoice_number} (${self.total_amount})"

    @property
    def item_count(self) -> int:
        return self.items.count()

    @property
    def computed_total(self) -> Decimal:
        """Sum of line subtotals, for reconciliation against total_amount."""
        return sum((item.subtotal for item in self.items.all()), Decimal('0.00'))


class InvoiceItem(models.Model):
    """
    InvoiceItem entity representing one (product, size, quantity) line.

    Stores the product name and unit price at time of invoice.
    """
    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name='items',
        help_text="Parent invoice"
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='invoice_items',
        help_text="Invoiced product (null once the product is deleted)"
    )
    product_name = models.CharField(
        max_length=200,
        help_text="Product name at time of invoice"
    )
    size = models.CharField(max_length=20)
    quantity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Quantity invoiced"
    )
    unit_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Price per unit at time of invoice"
    )

    class Meta:
        verbose_name = 'Invoice Item'
        verbose_name_plural = 'Invoice Items'
        ordering = ['id']

    def __str__(self):
        return f"{self.quantity}x {self.product_name} ({self.size}) @ ${self.unit_price}"

    @property
    def subtotal(self) -> Decimal:
        return self.quantity * self.unit_price


class InvoiceSequence(models.Model):
    """Named counter backing invoice numbering; one row per sequence."""
    name = models.CharField(max_length=50, unique=True)
    last_value = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Invoice Sequence'
        verbose_name_plural = 'Invoice Sequences'

    def __str__(self):
        return f"{self.name}: {self.last_value}"
