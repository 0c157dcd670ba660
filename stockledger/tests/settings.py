"""
Minimal Django settings for running the StockLedger test suite.
"""

import os
import tempfile

SECRET_KEY = 'stockledger-tests'

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'stockledger',
]

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'OPTIONS': {
            'transaction_mode': 'IMMEDIATE',
            'timeout': 20,
        },
        # file backed so worker threads in concurrency tests share the schema
        'TEST': {
            'NAME': os.path.join(tempfile.gettempdir(), 'stockledger-tests.sqlite3'),
        },
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'stockledger-tests',
    }
}

USE_TZ = True
TIME_ZONE = 'UTC'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

STOCKLEDGER = {
    'LOCK_TIMEOUT': 2.0,
    'EXPIRY_LOOKAHEAD_DAYS': 30,
}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'console': {'class': 'logging.StreamHandler'},
    },
    'loggers': {
        'stockledger': {'handlers': ['console'], 'level': 'WARNING'},
    },
}
