from .base import *  # noqa: F403


DEBUG = False
SECRET_KEY = "test-secret-key-not-for-production"
ALLOWED_HOSTS = ["testserver", "localhost"]

DASHBOARD_BACKEND = "dashboard.backend.InMemoryBackend"
SUPABASE_URL = ""
SUPABASE_KEY = ""

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
DEFAULT_FROM_EMAIL = "Dashboard <noreply@example.com>"
DASHBOARD_ADMIN_EMAIL = "admin@example.com"
DASHBOARD_COMPANY_NAME = "PT Contoh Konsultan"
DASHBOARD_LEAD_OWNER_ID = ""

DASHBOARD_FEED_KEEPALIVE_SECONDS = 0.05
DASHBOARD_FEED_MAX_SECONDS = 0.3

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "consultant-site-tests",
    }
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {"null": {"class": "logging.NullHandler"}},
    "root": {"handlers": ["null"], "level": "WARNING"},
}
