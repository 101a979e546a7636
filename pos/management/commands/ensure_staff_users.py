from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand

from pos.models import Role, User

STAFF_SET = [
    ("admin1", Role.ADMIN),
    ("cashier1", Role.CASHIER),
    ("doctor1", Role.DOCTOR),
    ("lab1", Role.LAB),
    ("pharmacy1", Role.PHARMACY),
    ("radiology1", Role.RADIOLOGY),
]


class Command(BaseCommand):
    help = "Ensure one staff user per role exists with the given password (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="123456", help="Password to set on every staff user")

    def handle(self, *args, **opts):
        password = make_password(opts["password"])
        for username, role in STAFF_SET:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={"role": role, "password": password, "is_active": True, "is_staff": role == Role.ADMIN},
            )
            if not created:
                u.password = password
                u.role = role
                u.is_active = True
                u.save(update_fields=["password", "role", "is_active"])
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS("All staff users ensured."))
