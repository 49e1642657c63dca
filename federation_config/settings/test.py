"""
federation_config/settings/test.py
─────────────────────────────────────────────────────────────────────
pytest settings: in-memory DB, eager Celery, no external services
"""
from .base import *  # noqa: F401, F403

DEBUG = False

ALLOWED_HOSTS = ["*"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME":   ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

STORAGES = {
    **STORAGES,  # noqa: F405
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}

CELERY_TASK_ALWAYS_EAGER     = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_RESULT_BACKEND        = "cache+memory://"

PAYMENT_GATEWAY_SANDBOX    = True
PAYMENT_GATEWAY_SECRET_KEY = ""

CREDENTIAL_JWT_SECRET = "test-credential-secret"

LOGGING["handlers"]["file"] = {"class": "logging.NullHandler"}  # noqa: F405
