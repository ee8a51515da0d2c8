import logging

from app.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    name="app.tasks.deadlines.check_compliance_deadlines", ignore_result=True
)
def check_compliance_deadlines() -> None:
    """Periodic deadline scan for deployments that run Celery beat.

    Equivalent to one tick of the in-process monitor; the two should not both
    be enabled, though the conditional claims keep overlapping scans safe.
    """
    from app.config import settings
    from app.db import SessionLocal
    from app.services.deadline import check_deadlines
    from app.services.webhook import WebhookDispatcher

    db = SessionLocal()
    try:
        dispatcher = WebhookDispatcher.from_settings(settings)
        result = check_deadlines(db, dispatcher)
        logger.info("Scheduled deadline scan: %s", result.as_dict())
    except Exception as e:
        logger.exception("Failed to check compliance deadlines: %s", e)
    finally:
        db.close()


@celery_app.task(name="app.tasks.deadlines.reconcile_case_deadlines", ignore_result=True)
def reconcile_case_deadlines() -> None:
    """Create investigation deadlines missing from open cases."""
    from app.db import SessionLocal
    from app.services.deadline import compliance_deadlines

    db = SessionLocal()
    try:
        created = compliance_deadlines.reconcile_missing(db)
        logger.info("Reconciled %d missing investigation deadlines", created)
    except Exception as e:
        db.rollback()
        logger.exception("Failed to reconcile case deadlines: %s", e)
    finally:
        db.close()
