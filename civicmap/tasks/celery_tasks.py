"""Celery background tasks for maintenance over the issue store."""

import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from civicmap.database import models
from civicmap.database.config import SyncSessionLocal
from civicmap.celery_app import app
from civicmap.lifecycle import APPROVE_THRESHOLD

logger = logging.getLogger(__name__)


def apply_pending_approvals(db: Session, threshold: int = APPROVE_THRESHOLD) -> list[str]:
    """Approve every issue already at or over the approval threshold.

    Catches up issues that crossed the threshold before it was lowered.
    Commits on success; the caller owns rollback on failure.

    Returns:
        Ids of the issues approved by this call.
    """
    fixed = db.execute(
        update(models.Issue)
        .where(models.Issue.votes_true >= threshold, models.Issue.approved.is_(False))
        .values(approved=True)
        .returning(models.Issue.id)
        .execution_options(synchronize_session=False)
    ).scalars().all()
    db.commit()
    return list(fixed)


@app.task(bind=True, max_retries=3, default_retry_delay=60)
def reconcile_approvals(self):
    """
    Retroactively approve issues whose up-votes already meet the threshold.

    Retries:
        - Max 3 retries on database errors
        - Backoff grows with each retry
    """
    db = SyncSessionLocal()

    try:
        fixed = apply_pending_approvals(db)
        logger.info(f"Approval reconcile fixed {len(fixed)} issues")
        return fixed

    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Approval reconcile failed: {str(exc)}")
        raise self.retry(exc=exc, countdown=60 * (self.request.retries + 1))

    finally:
        db.close()
