"""
Django settings for the Paddle Billing backend.

One settings module serves every environment. Values are read from
environment variables through django-environ; an optional env file
(``ENV_FILE``, default ``.env.development`` next to ``app/``) is loaded
first for local work.

Paddle-related settings are grouped at the bottom of the file. The
reconciliation code only reads them through ``django.conf.settings`` so
tests can override any of them with ``settings`` fixtures.

Reference:
https://docs.djangoproject.com/en/5.2/ref/settings/
"""

import os
from pathlib import Path

import environ

# =============================================================================
# Path Configuration
# =============================================================================
BASE_DIR = Path(__file__).resolve().parent.parent

# =============================================================================
# Environment Configuration
# =============================================================================
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, []),
    LOG_LEVEL=(str, "INFO"),
)

env_file = os.environ.get("ENV_FILE", BASE_DIR.parent / ".env.development")
if Path(env_file).exists():
    environ.Env.read_env(env_file)

# =============================================================================
# Core Settings
# =============================================================================
# SECURITY WARNING: set SECRET_KEY explicitly in every deployed environment
SECRET_KEY = env("SECRET_KEY", default="insecure-local-development-key")

DEBUG = env("DEBUG")

ALLOWED_HOSTS = env("ALLOWED_HOSTS")

# =============================================================================
# Application Definition
# =============================================================================
INSTALLED_APPS = [
    # Django core apps
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    # Third-party apps
    "rest_framework",
    # Local apps
    "core",
    "ledger",
    "payments",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
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
                "django.contrib.auth.context_processors.auth",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"

# =============================================================================
# Database Configuration
# =============================================================================
# PostgreSQL in deployed environments; SQLite keeps local runs dependency-free
DATABASES = {
    "default": env.db(
        "DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
    ),
}

if DATABASES["default"]["ENGINE"] == "django.db.backends.postgresql":
    DATABASES["default"]["OPTIONS"] = {
        "connect_timeout": 10,
    }

# =============================================================================
# Django REST Framework Configuration
# =============================================================================
# Only operator endpoints use DRF; the webhook endpoint is a plain view
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAdminUser",
    ],
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
}

# =============================================================================
# Internationalization
# =============================================================================
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# =============================================================================
# Default Primary Key Field Type
# =============================================================================
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================================================================
# Logging Configuration
# =============================================================================
LOG_LEVEL = env("LOG_LEVEL")

LOG_FILE_NAME = env("LOG_FILE_NAME", default="django.log")
LOG_DIR = BASE_DIR / "logs"

LOG_DIR.mkdir(parents=True, exist_ok=True)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {process:d} {thread:d} {message}",
            "style": "{",
        },
        "file": {
            "format": "[{asctime}] {levelname} {name} {module}:{lineno} - {message}",
            "style": "{",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
        "file": {
            # 10MB per file, 5 backups
            "level": "DEBUG",
            "class": "logging.handlers.RotatingFileHandler",
            "filename": LOG_DIR / LOG_FILE_NAME,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "formatter": "file",
            "encoding": "utf-8",
        },
    },
    "root": {
        "handlers": ["console", "file"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {
            "handlers": ["console", "file"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "django.request": {
            "handlers": ["console", "file"],
            "level": "ERROR",
            "propagate": False,
        },
        "payments": {
            "handlers": ["console", "file"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}

# =============================================================================
# Security Settings (Production Only)
# =============================================================================
if not DEBUG:
    SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
    SESSION_COOKIE_SECURE = env.bool("SESSION_COOKIE_SECURE", default=True)
    CSRF_COOKIE_SECURE = env.bool("CSRF_COOKIE_SECURE", default=True)
    SECURE_CONTENT_TYPE_NOSNIFF = True
    X_FRAME_OPTIONS = "DENY"

# =============================================================================
# Paddle Billing Configuration
# =============================================================================
# API key from Developer Tools > Authentication in the Paddle dashboard
PADDLE_API_KEY = env("PADDLE_API_KEY", default="")

# Client-side token for Paddle.js; tokens starting with "test_" belong to
# the sandbox environment and switch the API base URL accordingly
PADDLE_CLIENT_TOKEN = env("PADDLE_CLIENT_TOKEN", default="")

# Secret key of the notification destination (Developer Tools > Notifications)
PADDLE_WEBHOOK_SECRET = env("PADDLE_WEBHOOK_SECRET", default="")

# Reject signatures whose timestamp is older than this many seconds.
# Unset disables the replay window.
PADDLE_WEBHOOK_TOLERANCE_SECONDS = env.int(
    "PADDLE_WEBHOOK_TOLERANCE_SECONDS", default=None
)

PADDLE_API_TIMEOUT_SECONDS = env.float("PADDLE_API_TIMEOUT_SECONDS", default=15.0)

# Chargeback handling switches
PADDLE_LOCK_ON_CHARGEBACK = env.bool("PADDLE_LOCK_ON_CHARGEBACK", default=False)
PADDLE_LOCK_ON_CHARGEBACK_WARNING = env.bool(
    "PADDLE_LOCK_ON_CHARGEBACK_WARNING", default=False
)
PADDLE_UNLOCK_ON_CHARGEBACK_REVERSE = env.bool(
    "PADDLE_UNLOCK_ON_CHARGEBACK_REVERSE", default=False
)

# Checkout presentation
PADDLE_STATEMENT_DESCRIPTOR = env("PADDLE_STATEMENT_DESCRIPTOR", default="")
PADDLE_IMAGE_URL = env("PADDLE_IMAGE_URL", default="")
PADDLE_CHECKOUT_SUCCESS_URL = env("PADDLE_CHECKOUT_SUCCESS_URL", default="")

# Request/response pairs are written to the invoice log unless disabled
PADDLE_DISABLE_REQUEST_LOG = env.bool("PADDLE_DISABLE_REQUEST_LOG", default=False)
