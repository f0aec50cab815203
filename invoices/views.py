"""
Invoice API Views.

Implements:
- GET /invoices/ - List invoices, newest first, with product refs resolved
- POST /invoices/ - Create an invoice, decrementing per-size stock
- DELETE /invoices/ - Administrative bulk delete
- GET /invoices/{invoice_number}/ - Invoice detail
"""
import logging

from django.db import DatabaseError
from rest_framework import generics, status
from rest_framework.response import Response

from core.exceptions import ServiceError, UnexpectedFailure
from core.rate_limiting import RateLimitMixin
from .models import Invoice
from .serializers import InvoiceCreateSerializer, InvoiceSerializer
from .services import create_invoice, delete_all_invoices

logger = logging.getLogger(__name__)


class InvoiceListCreateView(RateLimitMixin, generics.ListCreateAPIView):
    """
    GET: List all invoices, newest first
    POST: Create a new invoice inside a unit of work
    DELETE: Remove every invoice

    Request Body (POST):
    {
        "items": [
            {"product": 1, "size": "9", "quantity": 2}
        ],
        "totalAmount": 180
    }
    """
    rate_limit_max_requests = 30
    rate_limited_methods = ('POST', 'DELETE')

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return InvoiceCreateSerializer
        return InvoiceSerializer

    def get_queryset(self):
        return Invoice.objects.prefetch_related('items__product').order_by('-created_at', '-id')

    def create(self, request, *args, **kwargs):
        """
        Create invoice with all-or-nothing stock handling.

        Returns:
            - 201: Invoice created
            - 400: Malformed request, size not available, insufficient stock
            - 404: Product not found
        """
        serializer = InvoiceCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        items = [dict(item) for item in serializer.validated_data['items']]
        total_amount = serializer.validated_data['totalAmount']

        try:
            invoice = create_invoice(items, total_amount)
        except ServiceError as e:
            logger.warning(f"Invoice creation failed: {e}")
            raise
        except DatabaseError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error creating invoice: {e}")
            raise UnexpectedFailure()

        # Fetch fresh invoice with all relations
        invoice = self.get_queryset().get(pk=invoice.pk)
        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)

    def delete(self, request, *args, **kwargs):
        deleted = delete_all_invoices()
        return Response({'deleted': deleted}, status=status.HTTP_200_OK)


class InvoiceDetailView(generics.RetrieveAPIView):
    """
    GET: Retrieve an invoice by its number.
    """
    serializer_class = InvoiceSerializer
    lookup_field = 'invoice_number'

    def get_queryset(self):
        return Invoice.objects.prefetch_related('items__product')
