"""
Celery tasks for invoice processing.

Tasks:
    - send_invoice_confirmation: Async notification after an invoice commits
    - generate_daily_sales_report: Previous day's invoice statistics
"""
import logging
from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def send_invoice_confirmation(self, invoice_id: int):
    """
    Async task triggered after an invoice is committed.

    Logs the invoice receipt and flags invoices whose client-supplied
    total differs from the sum of their lines.

    Args:
        invoice_id: ID of the created invoice

    Returns:
        Dict with confirmation details
    """
    from invoices.models import Invoice
    from invoices.services import get_invoice_summary

    try:
        invoice = Invoice.objects.prefetch_related('items').get(id=invoice_id)
    except Invoice.DoesNotExist:
        logger.error(f"Invoice #{invoice_id} not found for confirmation")
        return {'status': 'error', 'message': f'Invoice {invoice_id} not found'}

    summary = get_invoice_summary(invoice)

    if invoice.computed_total != invoice.total_amount:
        logger.warning(
            f"[CELERY] Invoice {invoice.invoice_number} total ${invoice.total_amount} "
            f"differs from line total ${invoice.computed_total}"
        )

    items_summary = [
        f"  - {item['quantity']}x {item['product_name']} (size {item['size']}) @ ${item['unit_price']}"
        for item in summary['items']
    ]

    confirmation_message = f"""
    ===============================================
    INVOICE - {invoice.invoice_number}
    ===============================================
    Total: ${invoice.total_amount}

    Items:
    {chr(10).join(items_summary)}

    Created: {invoice.created_at.strftime('%Y-%m-%d %H:%M:%S')}
    ===============================================
    """

    logger.info(confirmation_message)

    return {
        'status': 'success',
        'invoice_id': invoice.id,
        'invoice_number': invoice.invoice_number,
        'totals_match': invoice.computed_total == invoice.total_amount,
        'message': f'Confirmation sent for invoice {invoice.invoice_number}'
    }


@shared_task
def generate_daily_sales_report():
    """
    Generate the previous day's invoice statistics.

    Can be scheduled via Celery Beat for daily execution.
    """
    from datetime import timedelta

    from django.db.models import Count, Sum
    from django.utils import timezone

    from invoices.models import Invoice, InvoiceItem

    yesterday = timezone.now().date() - timedelta(days=1)

    invoices = Invoice.objects.filter(created_at__date=yesterday)
    stats = invoices.aggregate(
        total_invoices=Count('id'),
        total_revenue=Sum('total_amount'),
    )
    stats['units_sold'] = InvoiceItem.objects.filter(
        invoice__in=invoices
    ).aggregate(units=Sum('quantity'))['units'] or 0
    stats['total_revenue'] = str(stats['total_revenue'] or '0.00')

    report = f"""
    ===============================================
    DAILY SALES REPORT - {yesterday}
    ===============================================
    Invoices: {stats['total_invoices']}
    Units sold: {stats['units_sold']}
    Total Revenue: ${stats['total_revenue']}
    ===============================================
    """

    logger.info(report)

    return stats
