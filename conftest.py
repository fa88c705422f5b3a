"""
Root pytest configuration for the Django project.

Sets the environment the settings module needs before Django is loaded:
an in-memory sqlite database, a throwaway secret and eager Celery tasks.
Values already present in the environment win, so the suite can still be
pointed at PostgreSQL with DATABASE_URL.

App-specific fixtures are defined in app/conftest.py and each app's
tests/conftest.py.
"""

import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite://:memory:")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "True")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("EMAIL_BACKEND", "django.core.mail.backends.locmem.EmailBackend")
os.environ.setdefault("FRONTEND_URL", "https://app.example.com")
os.environ.setdefault("SECURE_SSL_REDIRECT", "False")
