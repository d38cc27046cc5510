from .base import *  # noqa: F403
from .base import _env
from .base import _env_list

import secrets


# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = True

# SECURITY WARNING: keep the secret key used in production secret!
_secret_key = _env("SECRET_KEY", "")
if not _secret_key:
    _secret_key = secrets.token_urlsafe(64)
SECRET_KEY = _secret_key

ALLOWED_HOSTS = _env_list("ALLOWED_HOSTS", "localhost,127.0.0.1")

EMAIL_BACKEND = "django.core.mail.backends.console.EmailBackend"

# Lets the in-memory backend be signed into without a hosted project.
_dev_email = _env("DASHBOARD_DEV_EMAIL", "")
_dev_password = _env("DASHBOARD_DEV_PASSWORD", "")
if _dev_email and _dev_password:
    DASHBOARD_MEMORY_USERS = {_dev_email: _dev_password}

try:
    from .local import *  # noqa
except ImportError:
    pass
