"""Django settings for the field NDVI service.

Values come from environment variables; everything except
`DJANGO_SECRET_KEY` in production has a development default.
"""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str = "") -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


DEBUG = _env_bool("DJANGO_DEBUG", default=False)
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "")
if not SECRET_KEY:
    if not DEBUG and os.getenv("DJANGO_ENV", "dev") == "prod":
        raise RuntimeError("DJANGO_SECRET_KEY is required in production")
    SECRET_KEY = "dev-only-insecure-secret-key"  # noqa: S105

ALLOWED_HOSTS = _env_list("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "django.contrib.staticfiles",
    "django_prometheus",
    "rest_framework",
    "drf_spectacular",
    "fields",
]

MIDDLEWARE = [
    "django_prometheus.middleware.PrometheusBeforeMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django_prometheus.middleware.PrometheusAfterMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"
ASGI_APPLICATION = "config.asgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("DJANGO_SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
    "UNAUTHENTICATED_USER": None,
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "EXCEPTION_HANDLER": "config.api.exceptions.custom_exception_handler",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Field NDVI API",
    "DESCRIPTION": (
        "Field polygons, NDVI history and satellite imagery backed by "
        "AgroMonitoring."
    ),
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}

# ---- AgroMonitoring provider ----
AGRO_API_KEY = os.getenv("AGRO_API_KEY", "")
AGRO_API_BASE_URL = os.getenv(
    "AGRO_API_BASE_URL", "https://api.agromonitoring.com/agro/1.0"
)
AGRO_PROVIDER_PATH = os.getenv(
    "AGRO_PROVIDER_PATH",
    "ndvi.engines.agromonitoring.AgroMonitoringProvider",
)
AGRO_REQUEST_TIMEOUT_SECONDS = float(
    os.getenv("AGRO_REQUEST_TIMEOUT_SECONDS", "20")
)
AGRO_MAX_RETRIES = int(os.getenv("AGRO_MAX_RETRIES", "1"))
AGRO_RETRY_BACKOFF_SECONDS = float(
    os.getenv("AGRO_RETRY_BACKOFF_SECONDS", "0.5")
)

# ---- NDVI history and imagery ----
NDVI_HISTORY_WINDOW_DAYS = int(os.getenv("NDVI_HISTORY_WINDOW_DAYS", "364"))
NDVI_HISTORY_COVERAGE_MIN = int(os.getenv("NDVI_HISTORY_COVERAGE_MIN", "10"))
NDVI_HISTORY_TYPE = os.getenv("NDVI_HISTORY_TYPE", "s2")
NDVI_HISTORY_ZOOM = int(os.getenv("NDVI_HISTORY_ZOOM", "13"))
IMAGERY_CLOUDS_MAX = int(os.getenv("IMAGERY_CLOUDS_MAX", "20"))
IMAGERY_RESOLUTION_MIN = int(os.getenv("IMAGERY_RESOLUTION_MIN", "10"))
IMAGERY_PALETTE_ID = int(os.getenv("IMAGERY_PALETTE_ID", "1"))

# ---- Workspaces ----
FIELDS_DEFAULT_TZ = os.getenv("FIELDS_DEFAULT_TZ", "UTC")
FIELDS_MAX_WORKSPACES = int(os.getenv("FIELDS_MAX_WORKSPACES", "256"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO"},
        "fields": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "ndvi": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}
