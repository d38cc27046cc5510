from django.conf import settings
from django.core.mail import EmailMessage
from django.core.management.base import BaseCommand
from django.core.management.base import CommandError


class Command(BaseCommand):
    help = "Send a test message through the configured mail backend."

    def add_arguments(self, parser):
        parser.add_argument("--to", default="")
        parser.add_argument("--subject", default="Tes email dashboard")
        parser.add_argument(
            "--body",
            default="Ini adalah email uji coba dari dashboard. Jika Anda menerimanya, konfigurasi email sudah benar.",
        )

    def handle(self, *args, **options):
        to = str(options.get("to") or "").strip() or str(getattr(settings, "DASHBOARD_ADMIN_EMAIL", "") or "")
        if not to:
            raise CommandError("Pass --to or set DASHBOARD_ADMIN_EMAIL.")
        msg = EmailMessage(
            subject=str(options["subject"]),
            body=str(options["body"]),
            to=[to],
        )
        try:
            msg.send()
        except OSError as exc:
            raise CommandError(f"Sending failed: {exc}") from exc
        self.stdout.write(self.style.SUCCESS(f"Email sent to {to}."))
