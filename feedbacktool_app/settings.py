import os
from pathlib import Path
import sys

from django.core.exceptions import ImproperlyConfigured
import environ

env = environ.Env(
    DEBUG=(bool, False),
    SECRET_KEY=(str, ""),
    ALLOWED_HOSTS=(list, ["localhost", "127.0.0.1"]),
    SECURE_SSL_REDIRECT=(bool, False),
    CSRF_TRUSTED_ORIGINS=(list, []),
    FEEDBACK_API_URL=(str, "http://localhost:8080/api"),
    FEEDBACK_API_TIMEOUT=(int, 10),
    LLM_ENABLED=(bool, False),
    LLM_URL=(str, ""),
    LLM_API_KEY=(str, ""),
    LLM_AUTH_TYPE=(str, "bearer"),
    LLM_MODEL=(str, "gemini-1.5-pro"),
    LLM_TEMPERATURE=(float, 0.7),
    LLM_TIMEOUT=(int, 30),
    LLM_MAX_RETRIES=(int, 2),
    SURVEY_AUTOSAVE_INTERVAL=(int, 30),
    SURVEY_RATING_POLICY=(str, "creation"),
)

BASE_DIR = Path(__file__).resolve().parent.parent
env_file = BASE_DIR / ".env"
if env_file.exists():
    environ.Env.read_env(env_file)

DEBUG = env("DEBUG")
SECRET_KEY = env("SECRET_KEY")
if not SECRET_KEY:
    # Sessions are signed with this key, so every worker must share it
    if not DEBUG and "pytest" not in sys.modules:
        raise ImproperlyConfigured("SECRET_KEY must be set when DEBUG is off")
    SECRET_KEY = os.urandom(32).hex()
ALLOWED_HOSTS = env("ALLOWED_HOSTS")
CSRF_TRUSTED_ORIGINS = env("CSRF_TRUSTED_ORIGINS")

# Survey data lives behind the REST API; the local database only backs
# Django internals.
DATABASES = {
    "default": env.db("DATABASE_URL", default="sqlite:///db.sqlite3"),
}

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    # Third party
    "rest_framework",
    # Local apps
    "feedbacktool_app.core",
    "feedbacktool_app.surveys",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "feedbacktool_app.core.middleware.FeedbackSessionMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "feedbacktool_app.urls"

TEMPLATES = []

WSGI_APPLICATION = "feedbacktool_app.wsgi.application"

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "feedbacktool",
    }
}

# Bearer token, cached profile and the survey draft are kept server-side
SESSION_ENGINE = "django.contrib.sessions.backends.cache"
SESSION_COOKIE_AGE = 60 * 60 * 8

LANGUAGE_CODE = "en-gb"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Security headers
SESSION_COOKIE_SECURE = not DEBUG
CSRF_COOKIE_SECURE = not DEBUG
SECURE_HSTS_SECONDS = 31536000 if not DEBUG else 0
SECURE_HSTS_INCLUDE_SUBDOMAINS = not DEBUG
SECURE_SSL_REDIRECT = env("SECURE_SSL_REDIRECT")
X_FRAME_OPTIONS = "DENY"
SECURE_CONTENT_TYPE_NOSNIFF = True

SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
USE_X_FORWARDED_HOST = True

# Ratelimit (used in views)
RATELIMIT_ENABLE = True
# Local memory cache is per-process; acceptable for the single-worker deployment
SILENCED_SYSTEM_CHECKS = ["django_ratelimit.E003", "django_ratelimit.W001"]

# Auth redirects
LOGIN_URL = "/auth/login"
LOGIN_REDIRECT_URL = "/surveys/admin/dashboard"

# DRF defaults. Identity comes from the remote API session, not django.contrib.auth.
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "UNAUTHENTICATED_USER": None,
}

# Disable throttling during tests to prevent rate limit errors
if os.environ.get("PYTEST_CURRENT_TEST"):
    RATELIMIT_ENABLE = False

# Remote FeedbackTool REST API
FEEDBACK_API_URL = env("FEEDBACK_API_URL")
FEEDBACK_API_TIMEOUT = env("FEEDBACK_API_TIMEOUT")

# AI text improvement (OpenAI-compatible chat completions endpoint)
LLM_ENABLED = env("LLM_ENABLED")
LLM_URL = env("LLM_URL")
LLM_API_KEY = env("LLM_API_KEY")
LLM_AUTH_TYPE = env("LLM_AUTH_TYPE")
LLM_MODEL = env("LLM_MODEL")
LLM_TEMPERATURE = env("LLM_TEMPERATURE")
LLM_TIMEOUT = env("LLM_TIMEOUT")
LLM_MAX_RETRIES = env("LLM_MAX_RETRIES")

# Survey builder
SURVEY_AUTOSAVE_INTERVAL = env("SURVEY_AUTOSAVE_INTERVAL")
# "creation" allows a 3-10 point scale, "fixed" pins every rating to 0-5
SURVEY_RATING_POLICY = env("SURVEY_RATING_POLICY")

# Logging Configuration
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "[{levelname}] {asctime} {name} {message}",
            "style": "{",
        },
        "simple": {
            "format": "[{levelname}] {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "INFO",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "feedbacktool_app": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        # Session verification debugging
        "feedbacktool_app.core.session": {
            "handlers": ["console"],
            "level": "DEBUG" if DEBUG else "INFO",
            "propagate": False,
        },
    },
}
