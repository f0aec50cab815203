"""
Product Service Layer - SKU generation and size payload normalization.
"""
import logging
from typing import Any, Dict

from .models import Product
from .normalizers import format_sku, normalize_size_entries, sort_size_labels

logger = logging.getLogger(__name__)


def generate_sku(category: str, name: str) -> str:
    """
    Build a `BRAND-MODEL-NNN` SKU for a new product.

    NNN is one plus the number of products already in the category. When
    that SKU is taken (a product of the category was deleted) the sequence
    is bumped until a free one is found. Two concurrent creations may still
    compute the same SKU; the unique constraint on `sku` rejects the loser.
    """
    sequence = Product.objects.filter(category=category).count() + 1
    sku = format_sku(category, name, sequence)
    while Product.objects.filter(sku=sku).exists():
        sequence += 1
        sku = format_sku(category, name, sequence)

    logger.debug(f"Generated SKU {sku} for '{name}' in category '{category}'")
    return sku


def normalize_product_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Canonicalize the size fields of a product create/update payload.

    A supplied `sizes` list replaces the ledger wholesale, so it is
    normalized and `stock`/`talle` are derived from it. A bare `talle` list
    is only deduplicated and ordered.
    """
    data = dict(data)
    if data.get('sizes') is not None:
        data['sizes'] = normalize_size_entries(data['sizes'])
        data['stock'] = sum(entry['quantity'] for entry in data['sizes'])
        data['talle'] = [entry['size'] for entry in data['sizes']]
    elif data.get('talle') is not None:
        data['talle'] = sort_size_labels(data['talle'])
    return data
