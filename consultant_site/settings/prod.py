from .base import *  # noqa: F403
from .base import _env
from .base import _env_bool
from .base import _env_list


# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = False

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = _env("SECRET_KEY", "")
if not SECRET_KEY:
    raise RuntimeError("SECRET_KEY is required for production.")

ALLOWED_HOSTS = _env_list("ALLOWED_HOSTS", "localhost")
CSRF_TRUSTED_ORIGINS = _env_list("CSRF_TRUSTED_ORIGINS", "")

SECURE_SSL_REDIRECT = _env_bool("SECURE_SSL_REDIRECT", "true")
SESSION_COOKIE_SECURE = _env_bool("SESSION_COOKIE_SECURE", "true")
CSRF_COOKIE_SECURE = _env_bool("CSRF_COOKIE_SECURE", "true")
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
USE_X_FORWARDED_HOST = _env_bool("USE_X_FORWARDED_HOST", "true")

SECURE_HSTS_SECONDS = int(_env("SECURE_HSTS_SECONDS", "31536000") or "31536000")
SECURE_HSTS_INCLUDE_SUBDOMAINS = _env_bool("SECURE_HSTS_INCLUDE_SUBDOMAINS", "true")
SECURE_HSTS_PRELOAD = _env_bool("SECURE_HSTS_PRELOAD", "true")

SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_REFERRER_POLICY = _env("SECURE_REFERRER_POLICY", "same-origin")

# A list of people who get error notifications.
ADMINS = [
    ("Administrator", _env("DASHBOARD_ADMIN_EMAIL", "admin@localhost")),
]
MANAGERS = ADMINS

SERVER_EMAIL = DEFAULT_FROM_EMAIL  # noqa: F405
