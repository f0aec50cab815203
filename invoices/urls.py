"""
URL routing for invoice API endpoints.
"""
from django.urls import path
from . import views

app_name = 'invoices'

urlpatterns = [
    path('invoices/', views.InvoiceListCreateView.as_view(), name='invoice-list'),
    path('invoices/<str:invoice_number>/', views.InvoiceDetailView.as_view(), name='invoice-detail'),
]
