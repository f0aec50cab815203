"""
Error taxonomy shared by the inventory and invoice services.

Every error carries a machine-readable code, an HTTP status and the
structured context a client needs to explain the failure to a user.
The DRF exception handler below renders them all as:

    {"error": "<CODE>", "detail": "<message>", ...context}
"""
import logging
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db import DatabaseError, InterfaceError, OperationalError
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for errors raised by the service layer."""
    code = 'UNEXPECTED_FAILURE'
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'An unexpected error occurred'

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def as_dict(self) -> Dict[str, Any]:
        return {'error': self.code, 'detail': self.message, **self.context}


class InvalidRequest(ServiceError):
    code = 'INVALID_REQUEST'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid request'


class InvalidStockOperation(ServiceError):
    """Raised when reducing stock for a size the product does not carry."""
    code = 'INVALID_OPERATION'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Cannot reduce stock for a size that does not exist'


class ProductNotFound(ServiceError):
    code = 'PRODUCT_NOT_FOUND'
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Product not found'

    def __init__(self, searched_by: Dict[str, Any]):
        keys = ', '.join(
            f"{key}: {value}" for key, value in searched_by.items() if value not in (None, '')
        ) or 'no lookup keys supplied'
        super().__init__(f"Product not found ({keys})", searchedBy=searched_by)


class SizeNotAvailable(ServiceError):
    code = 'SIZE_NOT_AVAILABLE'
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, product_id, product_name: str, size: str, available_sizes: List[str]):
        self.size = size
        self.available_sizes = available_sizes
        super().__init__(
            f"Size {size} is not available for {product_name}",
            productId=product_id,
            productName=product_name,
            size=size,
            availableSizes=available_sizes,
        )


class InsufficientStock(ServiceError):
    """Raised when there's not enough stock of a size for a request."""
    code = 'INSUFFICIENT_STOCK'
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, product_id, product_name: str, size: str, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {product_name}, size {size}: "
            f"requested {requested}, available {available}",
            productId=product_id,
            productName=product_name,
            size=size,
            available=available,
            requested=requested,
        )


class InvoiceNumberConflict(ServiceError):
    code = 'INVOICE_NUMBER_CONFLICT'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Invoice number already issued, retry the request'


class StoreUnavailable(ServiceError):
    code = 'STORE_UNAVAILABLE'
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = 'The data store is unavailable'


class UnexpectedFailure(ServiceError):
    pass


def _debug_details_enabled() -> bool:
    return getattr(settings, 'DEPLOYMENT_MODE', 'production') != 'production'


def api_exception_handler(exc, context):
    """
    DRF exception handler producing the uniform error body.

    Connectivity errors from the database map to 503; the driver message
    is only exposed outside production.
    """
    if isinstance(exc, ServiceError):
        return Response(exc.as_dict(), status=exc.status_code)

    if isinstance(exc, (OperationalError, InterfaceError)):
        logger.error(f"Store unavailable: {exc}")
        error = StoreUnavailable()
        body = error.as_dict()
        if _debug_details_enabled():
            body['debug'] = str(exc)
        return Response(body, status=error.status_code)

    if isinstance(exc, DatabaseError):
        logger.exception(f"Database error: {exc}")
        body = UnexpectedFailure().as_dict()
        if _debug_details_enabled():
            body['debug'] = str(exc)
        return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, exceptions.ValidationError):
        response.data = {
            'error': InvalidRequest.code,
            'detail': 'Invalid request',
            'fields': response.data,
        }
    elif isinstance(exc, (Http404, exceptions.NotFound)):
        response.data = {'error': 'NOT_FOUND', 'detail': 'Not found'}
    else:
        detail = response.data.get('detail', '') if isinstance(response.data, dict) else response.data
        code = getattr(exc, 'default_code', 'error')
        response.data = {'error': str(code).upper(), 'detail': str(detail)}
    return response
