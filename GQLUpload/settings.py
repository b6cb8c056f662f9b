"""Django settings for the GQLUpload project."""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "replace-me-with-a-secret-key")
DEBUG = os.environ.get("DJANGO_DEBUG", "1") == "1"

ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",")

DJANGO_APPS = [
    "django.contrib.staticfiles",
]

THIRD_PARTY_APPS = [
    "strawberry.django",
]

LOCAL_APPS = [
    "uploads.apps.UploadsConfig",
]

INSTALLED_APPS = DJANGO_APPS + THIRD_PARTY_APPS + LOCAL_APPS

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "GQLUpload.urls"

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
    }
]

WSGI_APPLICATION = "GQLUpload.wsgi.application"
ASGI_APPLICATION = "GQLUpload.asgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.dummy",
    }
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"

MEDIA_URL = "media/"
MEDIA_ROOT = BASE_DIR / "media"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ==================================================
# GRAPHQL UPLOADS
# ==================================================

GRAPHQL_UPLOAD = {
    "ALLOWED_TYPES": ["image/jpeg", "image/png", "text/plain"],
    "MAX_FILE_SIZE": int(os.environ.get("GRAPHQL_UPLOAD_MAX_FILE_SIZE", 10 * 1024 * 1024)),
    # Seconds allowed for reading one file part; None disables the deadline
    "READ_TIMEOUT": 30.0,
    # Fail instead of overwriting when a map path crosses a value of the wrong kind
    "STRICT_PATHS": False,
}

# ==================================================
# LOGGING
# ==================================================

LOG_LEVEL = os.environ.get("UPLOADS_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "loggers": {
        "uploads": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "GQLUpload": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}
