"""
Django settings shared by every environment of consultant_site.

Persistence lives in the hosted backend (``DASHBOARD_BACKEND``); no local
relational database is configured and sessions are signed cookies.
"""

import os
from pathlib import Path


PROJECT_DIR = Path(__file__).resolve().parent.parent
BASE_DIR = PROJECT_DIR.parent


def _env(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _env_list(name: str, default: str = "") -> list[str]:
    return [item.strip() for item in _env(name, default).split(",") if item.strip()]


def _env_bool(name: str, default: str = "false") -> bool:
    return _env(name, default).lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(_env(name, str(default)))
    except ValueError:
        return default


# Application definition

INSTALLED_APPS = [
    "dashboard",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.staticfiles",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "consultant_site.middleware.AdminUserMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "consultant_site.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
            ],
        },
    },
]

WSGI_APPLICATION = "consultant_site.wsgi.application"

DATABASES: dict = {}

SESSION_ENGINE = "django.contrib.sessions.backends.signed_cookies"
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_AGE = _env_int("SESSION_COOKIE_AGE", 60 * 60 * 12)

CSRF_FAILURE_VIEW = "dashboard.api_views.csrf_failure"
CSRF_TRUSTED_ORIGINS = _env_list("CSRF_TRUSTED_ORIGINS", "")

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "consultant-site",
        "TIMEOUT": 300,
    }
}

DATA_UPLOAD_MAX_MEMORY_SIZE = _env_int("DATA_UPLOAD_MAX_MEMORY_SIZE", 12 * 1024 * 1024)


# Internationalization

LANGUAGE_CODE = "id"
TIME_ZONE = _env("TIME_ZONE", "Asia/Jakarta")
USE_I18N = True
USE_TZ = True


# Static files

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "static"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Hosted backend

SUPABASE_URL = _env("SUPABASE_URL")
SUPABASE_KEY = _env("SUPABASE_KEY")
DASHBOARD_BACKEND = _env(
    "DASHBOARD_BACKEND",
    "dashboard.backend.SupabaseBackend" if SUPABASE_URL else "dashboard.backend.InMemoryBackend",
)


# Dashboard

DASHBOARD_ADMIN_EMAIL = _env("DASHBOARD_ADMIN_EMAIL")
DASHBOARD_CURRENCY = _env("DASHBOARD_CURRENCY", "IDR")
DASHBOARD_COMPANY_NAME = _env("DASHBOARD_COMPANY_NAME")
DASHBOARD_COMPANY_ADDRESS = _env("DASHBOARD_COMPANY_ADDRESS")
DASHBOARD_COMPANY_PHONE = _env("DASHBOARD_COMPANY_PHONE")
DASHBOARD_COMPANY_EMAIL = _env("DASHBOARD_COMPANY_EMAIL")
DASHBOARD_COMPANY_LOGO = _env("DASHBOARD_COMPANY_LOGO")
DASHBOARD_UPLOAD_MAX_BYTES = _env_int("DASHBOARD_UPLOAD_MAX_BYTES", 5 * 1024 * 1024)
DASHBOARD_BRAND_UPLOAD_MAX_BYTES = _env_int("DASHBOARD_BRAND_UPLOAD_MAX_BYTES", 10 * 1024 * 1024)
DASHBOARD_FEED_KEEPALIVE_SECONDS = _env_int("DASHBOARD_FEED_KEEPALIVE_SECONDS", 15)
DASHBOARD_FEED_MAX_SECONDS = _env_int("DASHBOARD_FEED_MAX_SECONDS", 300)
# Contacts created from website chats are owned by this admin user id.
DASHBOARD_LEAD_OWNER_ID = _env("DASHBOARD_LEAD_OWNER_ID")
# email -> password, only read by the in-memory backend.
DASHBOARD_MEMORY_USERS: dict[str, str] = {}


# Email

DEFAULT_FROM_EMAIL = _env("DEFAULT_FROM_EMAIL", "Dashboard <noreply@localhost>")
EMAIL_BACKEND = _env("EMAIL_BACKEND", "django.core.mail.backends.smtp.EmailBackend")
EMAIL_HOST = _env("EMAIL_HOST", "localhost")
EMAIL_PORT = _env_int("EMAIL_PORT", 587)
EMAIL_HOST_USER = _env("EMAIL_HOST_USER")
EMAIL_HOST_PASSWORD = _env("EMAIL_HOST_PASSWORD")
EMAIL_USE_TLS = _env_bool("EMAIL_USE_TLS", "true")
EMAIL_TIMEOUT = _env_int("EMAIL_TIMEOUT", 20)


# Logging

LOG_LEVEL = _env("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "django": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        "dashboard": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "consultant_site": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}
