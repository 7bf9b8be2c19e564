"""
Celery Tasks for background compliance evaluation

Evaluation triggered by uploads and reviews is best-effort: failures are
logged here and never reach the request that triggered them.
"""
import logging
from typing import Optional, List
from sqlalchemy.exc import SQLAlchemyError

from greentax.db.database import SessionLocal
from greentax.exceptions import GreenTaxError
from greentax.worker.celery_app import celery_app

logger = logging.getLogger(__name__)


def get_db_session():
    """Get database session for tasks"""
    return SessionLocal()


@celery_app.task(
    bind=True,
    name="greentax.worker.tasks.evaluate_society_compliance",
    max_retries=3,
    default_retry_delay=30
)
def evaluate_society_compliance(self, society_id: str):
    """
    Recompute the current-period compliance record for one society.
    """
    from greentax.services.compliance_service import compliance_service

    db = get_db_session()
    try:
        record = compliance_service.evaluate(db, society_id)
        logger.info(
            f"Compliance evaluation completed: {society_id} -> {record.compliance_status}"
        )
        return {"society_id": society_id, "compliance_status": record.compliance_status}

    except GreenTaxError as e:
        # Referential failures will not fix themselves; do not retry
        logger.error(f"Compliance evaluation error for {society_id}: {e.message}")
        return {"society_id": society_id, "error": e.message}

    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Compliance evaluation failed for {society_id}: {e}")
        raise self.retry(exc=e)

    finally:
        db.close()


@celery_app.task(bind=True, name="greentax.worker.tasks.evaluate_all_societies")
def evaluate_all_societies(self, society_ids: Optional[List[str]] = None):
    """
    Re-evaluate every active society (or the given ones).
    """
    from greentax.db.models import Society
    from greentax.services.compliance_service import compliance_service

    db = get_db_session()
    try:
        if not society_ids:
            rows = db.query(Society.id).filter(Society.is_active == True).all()  # noqa: E712
            society_ids = [row[0] for row in rows]

        evaluated = 0
        for society_id in society_ids:
            try:
                compliance_service.evaluate(db, society_id)
                evaluated += 1
            except GreenTaxError as e:
                logger.error(f"Skipping society {society_id}: {e.message}")

        logger.info(f"Evaluated compliance for {evaluated} societies")
        return {"societies_evaluated": evaluated}

    finally:
        db.close()


def schedule_compliance_evaluation(society_id: str) -> None:
    """
    Fire-and-forget re-evaluation after an upload or review.

    Never raises: a broker outage only leaves compliance briefly stale.
    """
    try:
        evaluate_society_compliance.delay(society_id)
    except Exception as e:
        logger.error(f"Could not schedule compliance evaluation for {society_id}: {e}")
