"""
Django settings for the paramedic program tools.

Every deploy-time value comes from the environment (a `.env` file at the
project root is loaded first). Values that administrators change at runtime
live in the ``system_config`` table instead; see ``system.config``.
"""
import os
from pathlib import Path

from dotenv import load_dotenv, find_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

env_path = BASE_DIR / ".env"
load_dotenv(dotenv_path=env_path if env_path.exists() else find_dotenv())


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name, default=""):
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-insecure-secret-key-change-me")
DEBUG = _env_bool("DJANGO_DEBUG", default=False)
ALLOWED_HOSTS = _env_list("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1")
CSRF_TRUSTED_ORIGINS = _env_list("DJANGO_CSRF_TRUSTED_ORIGINS")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "django.contrib.sites",
    "allauth",
    "allauth.account",
    "allauth.socialaccount",
    "allauth.socialaccount.providers.google",
    "core",
    "accounts",
    "integrations",
    "notifications",
    "lab_management",
    "scheduling",
    "clinical",
    "reports",
    "system",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "allauth.account.middleware.AccountMiddleware",
]

ROOT_URLCONF = "paramedic_program.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
                "paramedic_program.context_processors.program_context",
                "core.context_processors.role_context",
            ],
        },
    },
]

WSGI_APPLICATION = "paramedic_program.wsgi.application"

# ---- Database ----
# PostgreSQL when DB_NAME is set, SQLite for local development and tests.
if os.getenv("DB_NAME"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("DB_NAME"),
            "USER": os.getenv("DB_USER", ""),
            "PASSWORD": os.getenv("DB_PASSWORD", ""),
            "HOST": os.getenv("DB_HOST", "localhost"),
            "PORT": os.getenv("DB_PORT", "5432"),
            "CONN_MAX_AGE": int(os.getenv("DB_CONN_MAX_AGE", "60")),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

AUTHENTICATION_BACKENDS = [
    "django.contrib.auth.backends.ModelBackend",
    "allauth.account.auth_backends.AuthenticationBackend",
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "America/Los_Angeles")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# ---- Authentication (django-allauth) ----
SITE_ID = 1
LOGIN_URL = "accounts:login"
LOGIN_REDIRECT_URL = "accounts:post_login_router"
LOGOUT_REDIRECT_URL = "accounts:login"

# Where users with app access land after signing in (the front-end, usually).
POST_LOGIN_URL = os.getenv("POST_LOGIN_URL", "/api/dashboard/")

ACCOUNT_ADAPTER = "accounts.account_adapter.DomainRestrictedAdapter"
SOCIALACCOUNT_ADAPTER = "accounts.account_adapter.DomainRestrictedSocialAdapter"
ACCOUNT_EMAIL_VERIFICATION = "none"
ACCOUNT_LOGIN_METHODS = {"username", "email"}
SOCIALACCOUNT_LOGIN_ON_GET = True
SOCIALACCOUNT_PROVIDERS = {
    "google": {
        "SCOPE": ["profile", "email"],
        "AUTH_PARAMS": {"access_type": "online", "prompt": "select_account"},
        "APP": {
            "client_id": os.getenv("GOOGLE_CLIENT_ID", ""),
            "secret": os.getenv("GOOGLE_CLIENT_SECRET", ""),
            "key": "",
        },
    }
}

ALLOWED_SIGNUP_DOMAINS = _env_list("ALLOWED_SIGNUP_DOMAINS")

# Superadmin accounts that can never be demoted through the API.
PROTECTED_SUPERADMINS = [e.lower() for e in _env_list("PROTECTED_SUPERADMINS")]

# ---- Application ----
APP_NAME = os.getenv("APP_NAME", "PMI Tools")
APP_SUPPORT_EMAIL = os.getenv("APP_SUPPORT_EMAIL", "")

PROGRAM = {
    "INSTITUTION": os.getenv("PROGRAM_INSTITUTION", "Paramedic Institute"),
    "APP_URL": os.getenv("APP_URL", "http://localhost:8000").rstrip("/"),
}

# Shared secret for the /api/cron/ endpoints. When empty the endpoints are open.
CRON_SECRET = os.getenv("CRON_SECRET", "")

# ---- Email ----
DEFAULT_FROM_EMAIL = os.getenv("EMAIL_FROM", "PMI Tools <notifications@example.com>")

RESEND = {
    "API_KEY": os.getenv("RESEND_API_KEY", ""),
    "API_URL": os.getenv("RESEND_API_URL", "https://api.resend.com/emails"),
    "TIMEOUT_SECONDS": int(os.getenv("RESEND_TIMEOUT_SECONDS", "15")),
}

if RESEND["API_KEY"]:
    EMAIL_BACKEND = "integrations.resend.ResendEmailBackend"
else:
    EMAIL_BACKEND = "django.core.mail.backends.console.EmailBackend"

# ---- Logging ----
LOG_LEVEL = os.getenv("DJANGO_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "core": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "accounts": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "integrations": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "notifications": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "lab_management": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "scheduling": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "clinical": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "reports": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "system": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}
