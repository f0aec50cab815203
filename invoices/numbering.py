"""
Invoice numbering.

Numbers are `FAC-<n>`, starting at FAC-1001. The next value comes from a
row-locked counter, never below the latest issued invoice, so numbering
keeps going from existing data and survives a missing counter row. Aborted
invoices outside a transaction may leave gaps.
"""
import logging
from typing import Optional

from django.db import transaction

from .models import Invoice, InvoiceSequence

logger = logging.getLogger(__name__)

INVOICE_PREFIX = 'FAC'
FIRST_INVOICE_NUMBER = 1001
SEQUENCE_NAME = 'invoice'


def format_invoice_number(value: int) -> str:
    return f"{INVOICE_PREFIX}-{value}"


def parse_invoice_number(invoice_number: Optional[str]) -> Optional[int]:
    """Numeric suffix after the last hyphen, or None if there is none."""
    if not invoice_number:
        return None
    suffix = invoice_number.rsplit('-', 1)[-1]
    try:
        return int(suffix)
    except ValueError:
        return None


def latest_issued_number() -> Optional[int]:
    latest = Invoice.objects.order_by('-created_at', '-id').first()
    return parse_invoice_number(latest.invoice_number) if latest else None


def next_invoice_number() -> str:
    """
    Reserve and return the next invoice number.

    Runs inside the caller's transaction when there is one, so a rolled
    back invoice also rolls back its number.
    """
    with transaction.atomic():
        sequence, _ = InvoiceSequence.objects.select_for_update().get_or_create(
            name=SEQUENCE_NAME
        )
        floor = max(sequence.last_value, latest_issued_number() or 0, FIRST_INVOICE_NUMBER - 1)
        sequence.last_value = floor + 1
        sequence.save(update_fields=['last_value', 'updated_at'])

    number = format_invoice_number(sequence.last_value)
    logger.debug(f"Reserved invoice number {number}")
    return number
