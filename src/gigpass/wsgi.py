"""WSGI config for the gigpass project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "gigpass.settings")

application = get_wsgi_application()
