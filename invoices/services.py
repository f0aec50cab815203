"""
Invoice Service Layer - All-or-nothing invoice creation.

For each requested line item, in request order:
1. Resolve the product (id, then SKU, then name)
2. Check the size exists and has enough stock
3. Decrement the size through the product's stock ledger
4. Snapshot name and effective unit price on the invoice line

Then reserve the next invoice number and persist the invoice. Any failure
aborts the unit of work, so no stock decrement or invoice survives it.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from django.db import IntegrityError, transaction

from core.exceptions import InsufficientStock, InvalidRequest, InvoiceNumberConflict, SizeNotAvailable
from inventory.models import LEDGER_FIELDS
from .models import Invoice, InvoiceSequence, InvoiceItem
from .numbering import next_invoice_number
from .resolvers import ProductResolver
from .unit_of_work import UnitOfWork, get_unit_of_work

logger = logging.getLogger(__name__)

LOOKUP_KEYS = ('product', 'productSku', 'productName')


def validate_invoice_request(items: List[Dict], total_amount: Any) -> None:
    """
    Validate the shape of an invoice request.

    Args:
        items: List of dicts with a lookup key, 'size' and 'quantity'
        total_amount: Client-supplied invoice total

    Raises:
        InvalidRequest: If validation fails
    """
    if not items:
        raise InvalidRequest("Invoice items and total amount are required")
    if total_amount in (None, ''):
        raise InvalidRequest("Invoice items and total amount are required")

    try:
        total = Decimal(str(total_amount))
    except InvalidOperation:
        raise InvalidRequest("totalAmount must be a number")
    if total <= 0:
        raise InvalidRequest("totalAmount must be greater than zero")

    for idx, item in enumerate(items):
        if not any(item.get(key) not in (None, '') for key in LOOKUP_KEYS):
            raise InvalidRequest(
                f"Item {idx}: one of 'product', 'productSku' or 'productName' is required"
            )
        if item.get('size') in (None, ''):
            raise InvalidRequest(f"Item {idx}: missing 'size'")

        quantity = item.get('quantity')
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise InvalidRequest(f"Item {idx}: quantity must be a positive integer")


def line_unit_price(item: Dict, product) -> Decimal:
    """Price supplied on the item, else the product's discounted price."""
    if item.get('price') is not None:
        return Decimal(str(item['price'])).quantize(Decimal('0.01'))
    return product.effective_price


def create_invoice(
    items: List[Dict],
    total_amount: Any,
    unit_of_work: Optional[UnitOfWork] = None,
    resolver: Optional[ProductResolver] = None,
) -> Invoice:
    """
    Create an invoice, decrementing per-size stock for every line.

    Items are processed strictly in order, so two lines for the same
    product and size see each other's decrements.

    Returns:
        The persisted Invoice

    Raises:
        InvalidRequest: Malformed request (nothing touched)
        ProductNotFound: No product matched a line's lookup keys
        SizeNotAvailable: The product does not carry the requested size
        InsufficientStock: Not enough units of the size
        InvoiceNumberConflict: Another invoice took the same number
    """
    validate_invoice_request(items, total_amount)

    unit_of_work = unit_of_work or get_unit_of_work()
    resolver = resolver or ProductResolver()

    with unit_of_work:
        lines = []
        for item in items:
            product = resolver.resolve(item, unit_of_work.products())
            size = str(item['size'])
            quantity = item['quantity']

            available = product.quantity_for(size)
            if available is None:
                logger.warning(
                    f"Invoice rejected: size {size} not available for {product.sku} "
                    f"(sizes: {', '.join(product.size_labels) or 'none'})"
                )
                raise SizeNotAvailable(product.pk, product.name, size, product.size_labels)

            if available < quantity:
                logger.warning(
                    f"Invoice rejected: insufficient stock for {product.sku} size {size}, "
                    f"requested {quantity}, available {available}"
                )
                raise InsufficientStock(product.pk, product.name, size, available, quantity)

            remaining = product.adjust_stock(size, -quantity)
            product.save(update_fields=LEDGER_FIELDS)
            unit_of_work.record_adjustment(product, size, -quantity)

            logger.debug(
                f"Deducted {quantity} of {product.sku} size {size}, remaining: {remaining}"
            )

            lines.append(InvoiceItem(
                product=product,
                product_name=product.name,
                size=size,
                quantity=quantity,
                unit_price=line_unit_price(item, product),
            ))

        invoice_number = next_invoice_number()
        try:
            with transaction.atomic():
                invoice = Invoice.objects.create(
                    invoice_number=invoice_number,
                    total_amount=Decimal(str(total_amount)),
                )
        except IntegrityError:
            logger.error(f"Invoice number {invoice_number} already issued")
            raise InvoiceNumberConflict(invoiceNumber=invoice_number)
        unit_of_work.record_created(invoice)

        for line in lines:
            line.invoice = invoice
        InvoiceItem.objects.bulk_create(lines)

        transaction.on_commit(lambda: queue_invoice_confirmation(invoice.id))

    logger.info(
        f"Invoice {invoice.invoice_number} created: {len(lines)} items, "
        f"total ${invoice.total_amount}"
    )
    return invoice


def queue_invoice_confirmation(invoice_id: int) -> None:
    """Trigger the async confirmation task; never fails the caller."""
    try:
        from .tasks import send_invoice_confirmation
        send_invoice_confirmation.delay(invoice_id)
        logger.info(f"Triggered confirmation task for invoice #{invoice_id}")
    except Exception as e:
        # Don't fail the invoice if task queuing fails
        logger.error(f"Failed to queue confirmation task: {e}")


def delete_all_invoices() -> int:
    """
    Administrative reset: remove every invoice and restart numbering.

    Returns:
        Number of invoices deleted
    """
    with transaction.atomic():
        count = Invoice.objects.count()
        Invoice.objects.all().delete()
        InvoiceSequence.objects.all().delete()
    logger.warning(f"Deleted all invoices ({count})")
    return count


def get_invoice_summary(invoice: Invoice) -> Dict:
    """Plain-dict summary of an invoice, used by tasks and reports."""
    return {
        'id': invoice.id,
        'invoice_number': invoice.invoice_number,
        'total_amount': str(invoice.total_amount),
        'computed_total': str(invoice.computed_total),
        'item_count': invoice.items.count(),
        'items': [
            {
                'product_id': item.product_id,
                'product_name': item.product_name,
                'size': item.size,
                'quantity': item.quantity,
                'unit_price': str(item.unit_price),
                'subtotal': str(item.subtotal),
            }
            for item in invoice.items.all()
        ],
        'created_at': invoice.created_at.isoformat(),
    }
