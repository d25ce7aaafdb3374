# backend/config/settings/test.py
from .base import *  # noqa

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# deterministic policies for the retention tests
AUDIT_RETENTION_POLICIES = {
    "CareUpdate": 3 * 365,
    "Medication": 7 * 365,
}
AUDIT_RETENTION_DEFAULT_DAYS = None

LOGGING["loggers"]["wc_core"]["level"] = "WARNING"  # noqa: F405
