"""
Role based access control for the POS API.
"""
from rest_framework.permissions import BasePermission

from pos.models import Role


def _user_role(user):
    if not (user and user.is_authenticated):
        return None
    if user.is_superuser:
        return Role.ADMIN
    return getattr(user, "role", None)


def _role(request):
    return _user_role(getattr(request, "user", None))


def can_work_department(user, department) -> bool:
    """Admins work every department; staff only the one their role names."""
    role = _user_role(user)
    if role is None:
        return False
    return role == Role.ADMIN or (bool(department) and role == department)


class HasRole(BasePermission):
    """Allow users whose role is in ``roles``; admins always pass."""
    roles: frozenset = frozenset()

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        role = _role(request)
        return role is not None and (role == Role.ADMIN or role in self.roles)


class IsAdminRole(HasRole):
    roles = frozenset({Role.ADMIN})


class IsCashier(HasRole):
    roles = frozenset({Role.CASHIER})


class IsDoctor(HasRole):
    roles = frozenset({Role.DOCTOR})


class IsDepartmentStaff(BasePermission):
    """The user's role must name the department in the URL (``dept`` URL kwarg)."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        dept = getattr(view, "kwargs", {}).get("dept")
        return can_work_department(getattr(request, "user", None), dept)
