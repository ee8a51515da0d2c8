from celery import Celery
from celery.schedules import crontab

from app.config import settings

celery_app = Celery(
    "posh_compliance",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.tasks.deadlines"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "check-compliance-deadlines": {
            "task": "app.tasks.deadlines.check_compliance_deadlines",
            "schedule": float(settings.deadline_check_interval_seconds),
        },
        "reconcile-case-deadlines": {
            "task": "app.tasks.deadlines.reconcile_case_deadlines",
            "schedule": crontab(hour=2, minute=0),
        },
    },
)
