from io import StringIO

import pytest
from django.core import mail
from django.core.management import call_command
from django.core.management.base import CommandError

from dashboard.models import SETTING_DEFAULTS

from tests.conftest import ADMIN_EMAIL
from tests.conftest import ADMIN_PASSWORD


def _seed(**options):
    out = StringIO()
    call_command("seed_dashboard", stdout=out, stderr=StringIO(), **options)
    return out.getvalue()


def test_seed_inserts_missing_rows_once(admin_user, backend):
    backend.insert(
        "app_settings",
        {"setting_category": "brand_config", "setting_key": "primary_color", "setting_value": "#111111", "user_id": admin_user["id"]},
    )
    settings_total = sum(len(v) for v in SETTING_DEFAULTS.values())

    out = _seed(email=ADMIN_EMAIL, password=ADMIN_PASSWORD)
    assert f"{settings_total - 1 + 5 + 1 + 2} row(s) created" in out

    colors = [r for r in backend.rows("app_settings") if r["setting_key"] == "primary_color"]
    assert [r["setting_value"] for r in colors] == ["#111111"]
    assert {r["section"] for r in backend.rows("website_content")} == {"hero", "portfolio"}
    assert len(backend.rows("email_templates")) == 1

    assert "0 row(s) created" in _seed(email=ADMIN_EMAIL, password=ADMIN_PASSWORD)


def test_seed_requires_credentials(monkeypatch):
    monkeypatch.delenv("DASHBOARD_SEED_EMAIL", raising=False)
    with pytest.raises(CommandError):
        _seed(email="", password="")


def test_seed_reports_bad_login(admin_user):
    with pytest.raises(CommandError, match="Sign in failed"):
        _seed(email=ADMIN_EMAIL, password="salah")


def test_seed_stops_on_backend_error(admin_user, backend):
    backend.fail("insert", "app_settings", "database offline")
    with pytest.raises(CommandError, match="database offline"):
        _seed(email=ADMIN_EMAIL, password=ADMIN_PASSWORD)


def test_email_command_uses_admin_address():
    out = StringIO()
    call_command("test_email", stdout=out)
    assert mail.outbox[0].to == ["admin@example.com"]
    assert "admin@example.com" in out.getvalue()

    call_command("test_email", "--to", "ops@example.com", "--subject", "Halo", stdout=StringIO())
    assert mail.outbox[1].subject == "Halo"
    assert mail.outbox[1].to == ["ops@example.com"]
