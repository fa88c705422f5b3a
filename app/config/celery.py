"""
Celery application.

Workers run webhook processing and notification emails. Beat runs the
periodic jobs that billing migrations store with django-celery-beat: the
escrow expiry sweep, failed webhook retries and stuck webhook recovery.

    celery -A config worker -l info
    celery -A config beat -l info
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("marketplace_billing")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
