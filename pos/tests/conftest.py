from decimal import Decimal

import pytest
from django.core.cache import cache

from pos.models import Patient, Role, Service, ServiceCategory, User


@pytest.fixture(autouse=True)
def _clear_cache():
    # Throttle counters live in the cache.
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def doctor(db):
    return User.objects.create_user(username='doc', password='P@ssw0rd1', role=Role.DOCTOR)


@pytest.fixture
def cashier(db):
    return User.objects.create_user(username='cash', password='P@ssw0rd1', role=Role.CASHIER)


@pytest.fixture
def lab_user(db):
    return User.objects.create_user(username='lab', password='P@ssw0rd1', role=Role.LAB)


@pytest.fixture
def patient(db):
    return Patient.objects.create(hospital_number='FIX0001', full_name='Ada Obi', age=34, gender='female')


@pytest.fixture
def lab_test(db):
    return Service.objects.create(name='LabTest', category=ServiceCategory.LABORATORY, price=Decimal('3000.00'))


@pytest.fixture
def paracetamol(db):
    return Service.objects.create(name='Paracetamol', category=ServiceCategory.PHARMACY, price=Decimal('200.00'))


@pytest.fixture
def xray(db):
    return Service.objects.create(name='Chest X-Ray', category=ServiceCategory.RADIOLOGY, price=Decimal('8000.00'))
