from django.conf import settings
from django.core.management.base import BaseCommand

from accounts.models import User
from common.permissions import ROLE_ADMIN


class Command(BaseCommand):
    help = "Create the admin account from ADMIN_EMAIL / ADMIN_PASSWORD if it does not exist."

    def add_arguments(self, parser):
        parser.add_argument("--email", default=None, help="Override ADMIN_EMAIL.")
        parser.add_argument("--password", default=None, help="Override ADMIN_PASSWORD.")

    def handle(self, *args, **options):
        email = (options["email"] or settings.ADMIN_EMAIL).lower()
        password = options["password"] or settings.ADMIN_PASSWORD

        if User.objects.filter(email__iexact=email).exists():
            self.stdout.write(self.style.WARNING(f"Admin user already exists: {email}"))
            return

        User.objects.create_user(
            username=email,
            email=email,
            password=password,
            role=ROLE_ADMIN,
            name="Campus Admin",
            is_staff=True,
        )
        self.stdout.write(self.style.SUCCESS(f"Seeded admin user: {email}"))
