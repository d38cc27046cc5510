"""
WSGI config for consultant_site project.

It exposes the WSGI callable as a module-level variable named ``application``.
"""

import os

from django.core.wsgi import get_wsgi_application


os.environ.setdefault(
    "DJANGO_SETTINGS_MODULE",
    "consultant_site.settings.dev",
)

application = get_wsgi_application()
