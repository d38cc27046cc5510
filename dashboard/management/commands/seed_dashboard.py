import os

from django.core.management.base import BaseCommand
from django.core.management.base import CommandError

from dashboard.backend import BackendError
from dashboard.backend import eq
from dashboard.backend import get_backend
from dashboard.models import CONTACT_INFO_DEFAULTS
from dashboard.models import HERO_DEFAULTS
from dashboard.models import HERO_SECTION
from dashboard.models import PORTFOLIO_DEFAULTS
from dashboard.models import PORTFOLIO_SECTION
from dashboard.models import SETTING_DEFAULTS
from dashboard.models import TRANSCRIPT_TEMPLATE_DEFAULT
from dashboard.models import TRANSCRIPT_TEMPLATE_TYPE
from dashboard.models import Table


class Command(BaseCommand):
    help = "Insert the default dashboard rows that are missing for an admin account."

    def add_arguments(self, parser):
        parser.add_argument(
            "--email",
            default=(os.environ.get("DASHBOARD_SEED_EMAIL") or "").strip(),
        )
        parser.add_argument(
            "--password",
            default=(os.environ.get("DASHBOARD_SEED_PASSWORD") or "").strip(),
        )

    def handle(self, *args, **options):
        email = str(options.get("email") or "").strip()
        password = str(options.get("password") or "")
        if not email or not password:
            raise CommandError("Set --email and --password (or DASHBOARD_SEED_EMAIL / DASHBOARD_SEED_PASSWORD).")

        try:
            session = get_backend().sign_in(email, password)
        except BackendError as exc:
            raise CommandError(f"Sign in failed: {exc.message}") from exc

        backend = get_backend().bind(session)
        uid = str(session.user["id"])
        created = 0
        try:
            created += self._seed_settings(backend, uid)
            created += self._seed_contact_info(backend)
            created += self._seed_transcript_template(backend)
            created += self._seed_content(backend, uid)
        except BackendError as exc:
            raise CommandError(f"Seeding stopped: {exc.message}") from exc
        finally:
            try:
                backend.sign_out(session)
            except BackendError as exc:
                self.stderr.write(f"Sign out failed: {exc.message}")

        self.stdout.write(self.style.SUCCESS(f"Seed complete: {created} row(s) created for {email}."))

    def _seed_settings(self, backend, uid):
        created = 0
        for category, defaults in SETTING_DEFAULTS.items():
            rows = backend.select(
                Table.APP_SETTINGS,
                columns="setting_key",
                filters=[eq("setting_category", category), eq("user_id", uid)],
            )
            existing = {str(r.get("setting_key") or "") for r in rows}
            missing = [
                {
                    "setting_category": str(category),
                    "setting_key": key,
                    "setting_value": value,
                    "setting_type": "text",
                    "description": description,
                    "is_public": True,
                    "user_id": uid,
                }
                for key, value, description in defaults
                if key not in existing
            ]
            if missing:
                backend.insert(Table.APP_SETTINGS, missing)
                created += len(missing)
        return created

    def _seed_contact_info(self, backend):
        rows = backend.select(Table.SITE_SETTINGS, columns="key")
        existing = {str(r.get("key") or "") for r in rows}
        missing = [
            {"key": key, "value": value, "description": description}
            for key, (value, description) in CONTACT_INFO_DEFAULTS.items()
            if key not in existing
        ]
        if missing:
            backend.insert(Table.SITE_SETTINGS, missing)
        return len(missing)

    def _seed_transcript_template(self, backend):
        if backend.first(Table.EMAIL_TEMPLATES, filters=[eq("template_type", TRANSCRIPT_TEMPLATE_TYPE)]):
            return 0
        backend.insert(Table.EMAIL_TEMPLATES, dict(TRANSCRIPT_TEMPLATE_DEFAULT))
        return 1

    def _seed_content(self, backend, uid):
        created = 0
        hero_meta = {k: v for k, v in HERO_DEFAULTS.items() if k != "title"}
        sections = {
            HERO_SECTION: {"title": HERO_DEFAULTS["title"], "content": None, "metadata": hero_meta},
            PORTFOLIO_SECTION: {
                "title": PORTFOLIO_DEFAULTS["title"],
                "content": PORTFOLIO_DEFAULTS["description"],
                "metadata": {"projects": []},
            },
        }
        for section, values in sections.items():
            if backend.first(Table.WEBSITE_CONTENT, filters=[eq("section", section), eq("user_id", uid)]):
                continue
            backend.insert(
                Table.WEBSITE_CONTENT,
                {**values, "section": section, "is_active": True, "user_id": uid},
            )
            created += 1
        return created
