import logging

from django.db import transaction
from django.db.models import Q

from pos.models import Patient
from pos.services.audit import log_action
from pos.services.numbering import next_hospital_number

logger = logging.getLogger(__name__)


@transaction.atomic
def register_patient(current_user, *, full_name, age, gender, contact='', patient_type='new') -> Patient:
    # Number and row share one atomic block so a failed insert releases the number.
    hospital_number = next_hospital_number()
    patient = Patient.objects.create(
        hospital_number=hospital_number,
        full_name=full_name,
        age=age,
        gender=gender,
        contact=contact or '',
        patient_type=patient_type,
    )
    log_action(user=current_user, action='patient_register', object_type='patient', object_id=patient.id,
               detail={'hospitalNumber': hospital_number})
    logger.info("patient %s registered as %s", patient.id, hospital_number)
    return patient


def list_patients(*, q=None, page=1, page_size=50):
    qs = Patient.objects.filter(is_active=True)
    if q:
        qs = qs.filter(Q(full_name__icontains=q) | Q(hospital_number__icontains=q))
    total = qs.count()
    page = max(1, int(page or 1))
    page_size = min(200, max(1, int(page_size or 50)))
    start = (page - 1) * page_size
    return list(qs.order_by('-registered_at', '-id')[start:start + page_size]), total


def format_patient(p: Patient) -> dict:
    return {
        'id': p.id,
        'hospitalNumber': p.hospital_number,
        'fullName': p.full_name,
        'age': p.age,
        'gender': p.gender,
        'contact': p.contact,
        'patientType': p.patient_type,
        'registeredAt': p.registered_at.isoformat() if p.registered_at else None,
    }
