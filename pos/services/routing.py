from typing import Optional

from pos.models import Department, ServiceCategory

# Departments that run a fulfillment queue, keyed to the service
# category they are allowed to act on.
FULFILLMENT_CATEGORIES = {
    Department.LAB: ServiceCategory.LABORATORY,
    Department.PHARMACY: ServiceCategory.PHARMACY,
    Department.RADIOLOGY: ServiceCategory.RADIOLOGY,
}

_CATEGORY_DEPARTMENTS = {category: dept for dept, category in FULFILLMENT_CATEGORIES.items()}


def department_for_category(category: str, *, ad_hoc: bool = False) -> Department:
    """Route a service category to the department that fulfils it.

    Prescriptions fall back to the cashier.  Direct sales route medical
    services to the doctor instead.
    """
    dept = _CATEGORY_DEPARTMENTS.get((category or '').strip().capitalize())
    if dept is not None:
        return dept
    if ad_hoc and (category or '').strip().lower() == ServiceCategory.MEDICAL.lower():
        return Department.DOCTOR
    return Department.CASHIER


def category_for_department(department: str) -> Optional[ServiceCategory]:
    """Return the service category a department fulfils, or None if it has no queue."""
    try:
        return FULFILLMENT_CATEGORIES.get(Department(department))
    except ValueError:
        return None


def department_label(department: str) -> str:
    try:
        return Department(department).label
    except ValueError:
        return 'Other'
