"""
Units of work for the invoice orchestrator.

Both implementations are context managers: a clean exit commits and an
exception aborts before propagating. The orchestrator only talks to this
interface, so it behaves the same with or without database transactions.

    AtomicUnitOfWork        transaction.atomic(); products row-locked
    CompensatingUnitOfWork  no transaction; applied stock adjustments are
                            reversed and created invoices deleted on abort
"""
import logging
from typing import List, Tuple

from django.conf import settings
from django.db import transaction
from django.db.models import Model, QuerySet

from inventory.models import LEDGER_FIELDS, Product

logger = logging.getLogger(__name__)


class UnitOfWork:
    atomic = False

    def __enter__(self):
        self.begin()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if exc_type is None:
            self.commit()
        else:
            self.abort()
        return False

    def begin(self) -> None:
        pass

    def commit(self) -> None:
        pass

    def abort(self) -> None:
        pass

    def products(self) -> QuerySet:
        """Queryset used to load products that may be mutated."""
        return Product.objects.all()

    def record_adjustment(self, product: Product, size: str, delta: int) -> None:
        """Register a stock adjustment that has been persisted in this scope."""

    def record_created(self, obj: Model) -> None:
        """Register an object created in this scope."""


class AtomicUnitOfWork(UnitOfWork):
    """All writes commit together or not at all."""
    atomic = True

    def __init__(self, using=None):
        self.using = using
        self._atomic = None

    def __exit__(self, exc_type, exc_value, traceback):
        self._atomic.__exit__(exc_type, exc_value, traceback)
        if exc_type is not None:
            logger.info(f"Transaction rolled back: {exc_value}")
        return False

    def begin(self):
        self._atomic = transaction.atomic(using=self.using)
        self._atomic.__enter__()

    def products(self):
        return Product.objects.select_for_update()


class CompensatingUnitOfWork(UnitOfWork):
    """
    Fallback for environments without multi-document transactions.

    Writes become visible as they happen. On abort every created object is
    deleted and every recorded adjustment is reversed through the ledger
    on a freshly loaded product, so adjustments committed by other
    requests in the meantime are preserved.
    """

    def __init__(self):
        self._adjustments: List[Tuple[int, str, int]] = []
        self._created: List[Model] = []

    def record_adjustment(self, product, size, delta):
        self._adjustments.append((product.pk, size, delta))

    def record_created(self, obj):
        self._created.append(obj)

    def commit(self):
        self._adjustments.clear()
        self._created.clear()

    def abort(self):
        for obj in reversed(self._created):
            if obj.pk is not None:
                obj.delete()

        reverted = 0
        for pk, size, delta in reversed(self._adjustments):
            try:
                product = Product.objects.get(pk=pk)
            except Product.DoesNotExist:
                logger.warning(f"Cannot revert stock for deleted product #{pk} size {size}")
                continue
            product.adjust_stock(size, -delta)
            product.save(update_fields=LEDGER_FIELDS)
            reverted += 1

        if self._adjustments or self._created:
            logger.warning(
                f"Compensated aborted invoice: reverted {reverted} adjustment(s), "
                f"removed {len(self._created)} record(s)"
            )
        self.commit()


def get_unit_of_work() -> UnitOfWork:
    """Unit of work for the current deployment."""
    if getattr(settings, 'INVOICE_ATOMIC_TRANSACTIONS', True):
        return AtomicUnitOfWork()
    return CompensatingUnitOfWork()
