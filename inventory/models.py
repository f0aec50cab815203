"""
Inventory Models - Footwear catalogue with per-size stock.

Models:
    - Product: Items available for sale, each holding its size ledger

Size ledger:
    sizes  -> [{"size": "9", "quantity": 5}, ...]  (unique labels, ordered)
    stock  -> sum of all size quantities (derived)
    talle  -> size labels mirroring `sizes` (derived, legacy field)
"""
from decimal import Decimal
from typing import List, Optional

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.exceptions import InsufficientStock, InvalidStockOperation
from .normalizers import sort_size_entries, sort_size_labels

LEDGER_FIELDS = ['sizes', 'stock', 'talle', 'updated_at']


class Product(models.Model):
    """
    Product entity representing footwear available for sale.

    Stock is only ever changed through `adjust_stock()` or by replacing
    `sizes` wholesale; `stock` and `talle` are recomputed on every save.
    """
    sku = models.CharField(
        max_length=64,
        unique=True,
        help_text="Stock-keeping unit, unique per product"
    )
    name = models.CharField(
        max_length=200,
        db_index=True,
        help_text="Product name for display and search"
    )
    category = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Brand or category the product belongs to"
    )
    description = models.TextField(
        blank=True,
        default='',
        help_text="Optional product description"
    )
    image = models.CharField(
        max_length=500,
        blank=True,
        default='',
        help_text="Image URL or storage reference"
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="List price before discount"
    )
    discount = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[
            MinValueValidator(Decimal('0')),
            MaxValueValidator(Decimal('100')),
        ],
        help_text="Discount percentage (0-100)"
    )
    sizes = models.JSONField(
        default=list,
        blank=True,
        help_text="Per-size stock: list of {size, quantity}"
    )
    stock = models.PositiveIntegerField(
        default=0,
        help_text="Total stock across all sizes (derived)"
    )
    talle = models.JSONField(
        default=list,
        blank=True,
        help_text="Size labels mirroring sizes (derived)"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Product'
        verbose_name_plural = 'Products'
        ordering = ['name']
        indexes = [
            models.Index(fields=['category', 'name'], name='product_category_name_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.sku})"

    def clean(self):
        """
        Reject a size ledger with repeated labels or negative quantities.

        Payloads that replace the ledger wholesale are canonicalized with
        `normalize_size_entries` before they reach the model.
        """
        seen = set()
        for entry in self.sizes or []:
            label = str(entry.get('size', '')).strip() if isinstance(entry, dict) else ''
            if not label:
                raise ValidationError({'sizes': "Every size entry needs a size label"})
            if label in seen:
                raise ValidationError({'sizes': f"Size {label} is listed more than once"})
            seen.add(label)
            try:
                quantity = int(entry.get('quantity'))
            except (TypeError, ValueError):
                raise ValidationError({'sizes': f"Size {label} has an invalid quantity"})
            if quantity < 0:
                raise ValidationError({'sizes': f"Size {label} has a negative quantity"})

    def save(self, *args, **kwargs):
        self.clean()
        self.refresh_derived_fields()
        super().save(*args, **kwargs)

    def refresh_derived_fields(self) -> None:
        """Re-order the ledger and recompute `stock` and `talle` from it."""
        if self.sizes:
            self.sizes = sort_size_entries(
                {'size': str(entry['size']).strip(), 'quantity': int(entry['quantity'])}
                for entry in self.sizes
            )
            self.talle = [entry['size'] for entry in self.sizes]
        elif self.talle:
            self.talle = sort_size_labels(self.talle)
        self.stock = sum(entry['quantity'] for entry in self.sizes or [])

    # -------------------------------------------------------------------------
    # Size ledger
    # -------------------------------------------------------------------------

    @property
    def size_labels(self) -> List[str]:
        return [entry['size'] for entry in self.sizes or []]

    def quantity_for(self, size: str) -> Optional[int]:
        """Current quantity for a size, or None if the product lacks it."""
        for entry in self.sizes or []:
            if entry['size'] == size:
                return entry['quantity']
        return None

    def has_sufficient_stock(self, size: str, quantity: int) -> bool:
        available = self.quantity_for(size)
        return available is not None and available >= quantity

    def adjust_stock(self, size: str, delta: int) -> int:
        """
        Apply a restock (delta > 0) or consumption (delta < 0) to one size.

        The ledger is left untouched when the adjustment fails. Does not
        save; callers persist with `save(update_fields=LEDGER_FIELDS)`.

        Returns:
            The new quantity for the size

        Raises:
            InvalidStockOperation: Reducing stock for an unknown size
            InsufficientStock: The adjustment would go below zero
        """
        entries = [dict(entry) for entry in self.sizes or []]
        current = next((entry for entry in entries if entry['size'] == size), None)

        if current is None:
            if delta < 0:
                raise InvalidStockOperation(
                    productId=self.pk,
                    productName=self.name,
                    size=size,
                )
            current = {'size': size, 'quantity': 0}
            entries.append(current)

        new_quantity = current['quantity'] + delta
        if new_quantity < 0:
            raise InsufficientStock(
                product_id=self.pk,
                product_name=self.name,
                size=size,
                available=current['quantity'],
                requested=-delta,
            )

        current['quantity'] = new_quantity
        self.sizes = entries
        self.refresh_derived_fields()
        return new_quantity

    # -------------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------------

    @property
    def effective_price(self) -> Decimal:
        """List price with the product discount applied."""
        factor = Decimal('1') - Decimal(str(self.discount or 0)) / Decimal('100')
        return (Decimal(str(self.price)) * factor).quantize(Decimal('0.01'))

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock == 0
