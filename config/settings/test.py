"""Test settings.

Fast, self-contained configuration for the pytest suite: in-memory
SQLite, in-memory email, eager Celery and a fixed check-in signing key.
"""

from .base import *  # noqa: F401,F403
from .base import CHECKIN_TOKEN, BOOKING_POLICY

DEBUG = False

SECRET_KEY = 'test-secret-key-not-for-production-use-0123456789'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

CHECKIN_TOKEN = {
    **CHECKIN_TOKEN,
    'SIGNING_KEY': 'test-checkin-signing-key-0123456789abcdef',
    'BASE_URL': 'https://bookings.test',
}

BOOKING_POLICY = {**BOOKING_POLICY, 'ALLOW_RECONFIRM_FROM_NO_SHOW': False}
