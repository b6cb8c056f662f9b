"""ASGI entry point for the GQLUpload project."""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "GQLUpload.settings")

application = get_asgi_application()
