"""
URL mappings for the POS API.

Paths carry no trailing slash, matching the frontend client.
"""
from django.urls import include, path

from .views import catalog, departments, health, patients, prescriptions, transactions
from .views.auth import jwt_logout_view, jwt_refresh_view, login_view

urlpatterns = [
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh_view'),
    path('api/auth/logout', jwt_logout_view, name='jwt_logout_view'),
    # Reference data
    path('api/patients', patients.patients, name='patients'),
    path('api/services', catalog.services, name='services'),
    # Prescriptions and payment
    path('api/prescriptions/prescribe', prescriptions.prescribe_view, name='prescribe'),
    path('api/prescriptions/pending-payment', prescriptions.pending_payment, name='pending_payment'),
    path('api/prescriptions/process-payment', prescriptions.process_payment, name='process_payment'),
    # Transactions
    path('api/transactions', transactions.transactions, name='transactions'),
    path('api/transactions/payment-queue', transactions.payment_queue_view, name='payment_queue'),
    path('api/transactions/sale', transactions.sale, name='sale'),
    path('api/transactions/<int:pk>/cancel', transactions.cancel, name='cancel_transaction'),
    path('api/transactions/<int:pk>/history', transactions.history, name='transaction_history'),
    # Department fulfillment
    path('api/departments/<str:dept>/queue', departments.queue, name='department_queue'),
    path('api/departments/<str:dept>/start/<int:pk>', departments.start, name='department_start'),
    path('api/departments/<str:dept>/complete/<int:pk>', departments.complete, name='department_complete'),
]
