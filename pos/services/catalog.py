from decimal import Decimal

from pos.models import Service, ServiceCategory
from pos.services.transactions import money

# Starter catalog loaded by ``manage.py seed_catalog``.
DEFAULT_SERVICES = [
    ('General Consultation', ServiceCategory.MEDICAL, Decimal('5000.00')),
    ('Specialist Consultation', ServiceCategory.MEDICAL, Decimal('10000.00')),
    ('Full Blood Count', ServiceCategory.LABORATORY, Decimal('3000.00')),
    ('Malaria Parasite Test', ServiceCategory.LABORATORY, Decimal('1500.00')),
    ('Urinalysis', ServiceCategory.LABORATORY, Decimal('2000.00')),
    ('Paracetamol 500mg', ServiceCategory.PHARMACY, Decimal('200.00')),
    ('Amoxicillin 500mg', ServiceCategory.PHARMACY, Decimal('1200.00')),
    ('Chest X-Ray', ServiceCategory.RADIOLOGY, Decimal('8000.00')),
    ('Abdominal Ultrasound', ServiceCategory.RADIOLOGY, Decimal('12000.00')),
    ('Registration Card', ServiceCategory.OTHER, Decimal('1000.00')),
]


def list_active_services(category=None) -> list[dict]:
    qs = Service.objects.filter(is_active=True)
    if category:
        qs = qs.filter(category=category)
    return [format_service(s) for s in qs.order_by('category', 'name')]


def format_service(s: Service) -> dict:
    return {
        'id': s.id,
        'name': s.name,
        'category': s.category,
        'price': money(s.price),
        'isActive': s.is_active,
    }
