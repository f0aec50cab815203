"""
Inventory API Views.

Implements:
- GET /products/ - List products (optional category and keyword filters)
- POST /products/ - Create a product, generating its SKU when omitted
- GET/PUT/PATCH/DELETE /products/{sku}/ - Single product by SKU
"""
import logging

from django.db.models import Q
from rest_framework import generics, status
from rest_framework.response import Response

from .models import Product
from .serializers import ProductSerializer

logger = logging.getLogger(__name__)


class ProductListCreateView(generics.ListCreateAPIView):
    """
    GET: List all products
    POST: Create a new product

    Query Parameters (GET):
        - category: Exact category filter
        - q: Keyword matched against name, SKU and description
    """
    serializer_class = ProductSerializer

    def get_queryset(self):
        queryset = Product.objects.all()

        category = self.request.query_params.get('category', '').strip()
        if category:
            queryset = queryset.filter(category=category)

        keyword = self.request.query_params.get('q', '').strip()
        if keyword:
            queryset = queryset.filter(
                Q(name__icontains=keyword) |
                Q(sku__icontains=keyword) |
                Q(description__icontains=keyword)
            )

        return queryset.order_by('name')

    def perform_create(self, serializer):
        product = serializer.save()
        logger.info(f"Created product {product.sku} with {product.stock} units")


class ProductDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a product by SKU
    PUT/PATCH: Update the supplied fields of a product
    DELETE: Delete a product
    """
    serializer_class = ProductSerializer
    queryset = Product.objects.all()
    lookup_field = 'sku'

    def update(self, request, *args, **kwargs):
        kwargs['partial'] = True
        return super().update(request, *args, **kwargs)

    def perform_update(self, serializer):
        product = serializer.save()
        logger.info(f"Updated product {product.sku}: {product.stock} units")

    def destroy(self, request, *args, **kwargs):
        product = self.get_object()
        sku = product.sku
        product.delete()
        logger.info(f"Deleted product {sku}")
        return Response(
            {'message': 'Product deleted', 'sku': sku},
            status=status.HTTP_200_OK
        )
