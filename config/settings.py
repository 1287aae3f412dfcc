"""Django settings for the incident relay project.

Everything deployment-specific comes from environment variables (see config/env.py
for dotenv support). Defaults are tuned for local development with SQLite and the
logging push driver.
"""

from __future__ import annotations

import os
from pathlib import Path

from config.env import env_bool, env_int, env_json, env_list, load_env

BASE_DIR = Path(__file__).resolve().parent.parent

load_env(BASE_DIR)

SECRET_KEY = os.environ.get("SECRET_KEY", "insecure-dev-key-change-me")
DEBUG = env_bool("DEBUG", default=False)
ALLOWED_HOSTS = env_list("ALLOWED_HOSTS", default=["localhost", "127.0.0.1"])

INSTALLED_APPS = [
    "config.apps.RelayAdminConfig",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "django_object_actions",
    "django_json_widget",
    "apps.teams",
    "apps.alerts",
    "apps.notify",
    "apps.game",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "config" / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]


# Database
# SQLite by default; set DB_ENGINE=postgresql for production.

DB_ENGINE = os.environ.get("DB_ENGINE", "sqlite3")

if DB_ENGINE == "postgresql":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ.get("DB_NAME", "incident_relay"),
            "USER": os.environ.get("DB_USER", "postgres"),
            "PASSWORD": os.environ.get("DB_PASSWORD", ""),
            "HOST": os.environ.get("DB_HOST", "localhost"),
            "PORT": os.environ.get("DB_PORT", "5432"),
            "CONN_MAX_AGE": env_int("DB_CONN_MAX_AGE", 60),
            "OPTIONS": {
                "options": f"-c statement_timeout={env_int('DB_STATEMENT_TIMEOUT_MS', 5000)}",
            },
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("DB_NAME", str(BASE_DIR / "db.sqlite3")),
            "OPTIONS": {"timeout": 5},
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"


# Logging

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        "apps": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}


# Celery

CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = env_bool("CELERY_TASK_ALWAYS_EAGER", default=False)
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_TASK_ACKS_LATE = True
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SOFT_TIME_LIMIT = env_int("CELERY_TASK_SOFT_TIME_LIMIT", 60)
CELERY_TASK_TIME_LIMIT = env_int("CELERY_TASK_TIME_LIMIT", 90)
CELERY_BEAT_SCHEDULE = {
    "purge-expired-incidents": {
        "task": "apps.alerts.tasks.purge_expired_incidents",
        "schedule": 3600.0,
    },
    "expire-game-session": {
        "task": "apps.game.tasks.expire_game_session",
        "schedule": 15.0,
    },
    "drain-incident-changes": {
        "task": "apps.notify.tasks.drain_pending_changes",
        "schedule": 300.0,
    },
}

# When set, the alarm webhook enqueues ingestion and returns 202 immediately.
ENABLE_CELERY_INGEST = env_bool("ENABLE_CELERY_INGEST", default=True)


# Caller identity
# An upstream authenticating proxy resolves the bearer credential and forwards the
# caller id in this header. The application trusts it as-is.

CALLER_IDENTITY_HEADER = os.environ.get("CALLER_IDENTITY_HEADER", "X-Caller-Id")


# Incidents

INCIDENT_TTL_DAYS = env_int("INCIDENT_TTL_DAYS", 90)
INCIDENT_LIST_DEFAULT_LIMIT = 50
INCIDENT_LIST_MAX_LIMIT = 200


# Push delivery

PUSH_DRIVER = os.environ.get("PUSH_DRIVER", "log")
PUSH_CONFIG = env_json("PUSH_CONFIG", default={})
PUSH_TIMEOUT_SECONDS = env_int("PUSH_TIMEOUT_SECONDS", 10)
PUSH_MAX_ATTEMPTS = env_int("PUSH_MAX_ATTEMPTS", 2)
PUSH_TEMPLATES = env_json("PUSH_TEMPLATES", default={})
# Claims on change-log rows older than this are considered abandoned by a dead worker.
CHANGE_CLAIM_TIMEOUT_SECONDS = env_int("CHANGE_CLAIM_TIMEOUT_SECONDS", 120)


# Game mode

GAME_MODE_ENABLED = env_bool("GAME_MODE_ENABLED", default=False)
GAME_ROUND_DURATION_SECONDS = env_int("GAME_ROUND_DURATION_SECONDS", 60)
GAME_LEADERBOARD_SIZE = env_int("GAME_LEADERBOARD_SIZE", 20)


# Metrics

METRICS_BACKEND = os.environ.get("METRICS_BACKEND", "logging")
METRICS_ENVIRONMENT = os.environ.get("METRICS_ENVIRONMENT", "production")
STATSD_HOST = os.environ.get("STATSD_HOST", "localhost")
STATSD_PORT = env_int("STATSD_PORT", 8125)
STATSD_PREFIX = os.environ.get("STATSD_PREFIX", "incident_relay")
