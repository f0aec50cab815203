"""
Prioritized product lookup for invoice line items.

A line item may reference its product by id (`product`), by SKU
(`productSku`) or by name (`productName`). Strategies are tried in order
and the first match wins.
"""
import logging
from typing import Any, Dict, Iterable, Optional

from django.db.models import QuerySet

from core.exceptions import ProductNotFound
from inventory.models import Product

logger = logging.getLogger(__name__)


class LookupStrategy:
    """Finds a product from one key of a line item."""
    key = ''

    def find(self, queryset: QuerySet, value: Any) -> Optional[Product]:
        raise NotImplementedError


class ByIdLookup(LookupStrategy):
    key = 'product'

    def find(self, queryset, value):
        try:
            pk = int(value)
        except (TypeError, ValueError):
            return None
        return queryset.filter(pk=pk).first()


class BySkuLookup(LookupStrategy):
    key = 'productSku'

    def find(self, queryset, value):
        return queryset.filter(sku=str(value)).first()


class ByNameLookup(LookupStrategy):
    key = 'productName'

    def find(self, queryset, value):
        return queryset.filter(name=str(value)).order_by('id').first()


DEFAULT_STRATEGIES = (ByIdLookup(), BySkuLookup(), ByNameLookup())


class ProductResolver:
    def __init__(self, strategies: Iterable[LookupStrategy] = DEFAULT_STRATEGIES):
        self.strategies = tuple(strategies)

    def resolve(self, item: Dict[str, Any], queryset: QuerySet) -> Product:
        """
        Return the first product matched by the strategies.

        Raises:
            ProductNotFound: No strategy matched; carries the keys tried
        """
        for strategy in self.strategies:
            value = item.get(strategy.key)
            if value in (None, ''):
                continue
            product = strategy.find(queryset, value)
            if product is not None:
                logger.debug(f"Resolved product {product.sku} by {strategy.key}={value!r}")
                return product

        raise ProductNotFound({
            strategy.key: item.get(strategy.key) for strategy in self.strategies
        })
