"""
Django settings for the photosync project.

Every value can be overridden from the environment so the same settings
module serves the web process, the Celery worker and the test suite.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.environ.get("PHOTOSYNC_DATA_DIR", BASE_DIR / "data"))

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "insecure-development-key")
DEBUG = os.environ.get("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost").split(",")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "photosync",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("PHOTOSYNC_DB", str(DATA_DIR / "catalog.sqlite3")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
USE_TZ = True
TIME_ZONE = "UTC"

# Binary file store for originals and thumbnails
MEDIA_STORE_ROOT = Path(os.environ.get("MEDIA_STORE_ROOT", DATA_DIR / "media"))

# OAuth tokens live outside the database
SECRETS_FILE = Path(os.environ.get("SECRETS_FILE", DATA_DIR / ".secrets.json"))

GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.environ.get("GOOGLE_CLIENT_SECRET", "")
GOOGLE_REDIRECT_URI = os.environ.get("GOOGLE_REDIRECT_URI", "urn:ietf:wg:oauth:2.0:oob")

PHOTOSYNC_APP_VERSION = os.environ.get("PHOTOSYNC_APP_VERSION", "1.0")

# Remote sync scheduling
SYNC_DEBOUNCE_SECONDS = float(os.environ.get("SYNC_DEBOUNCE_SECONDS", "2"))
SYNC_UPLOAD_CONCURRENCY = int(os.environ.get("SYNC_UPLOAD_CONCURRENCY", "3"))
SYNC_BACKOFF_INITIAL_SECONDS = int(os.environ.get("SYNC_BACKOFF_INITIAL_SECONDS", "30"))
SYNC_BACKOFF_MAX_SECONDS = int(os.environ.get("SYNC_BACKOFF_MAX_SECONDS", "18000"))
SYNC_MAX_RETRIES = int(os.environ.get("SYNC_MAX_RETRIES", "10"))
SYNC_CONSTRAINT_PROBE = os.environ.get(
    "SYNC_CONSTRAINT_PROBE", "photosync.tasks.constraints_always_met"
)

# Celery
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
CELERY_TASK_ACKS_LATE = True
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_TASK_ALWAYS_EAGER = os.environ.get("CELERY_TASK_ALWAYS_EAGER", "0") == "1"

LOG_LEVEL = os.environ.get("PHOTOSYNC_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{asctime} {levelname} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "photosync": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "celery": {
            "handlers": ["console"],
            "level": "INFO",
        },
    },
}
