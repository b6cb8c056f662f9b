"""WSGI entry point for the GQLUpload project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "GQLUpload.settings")

application = get_wsgi_application()
