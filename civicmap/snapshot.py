"""Reconstruct the map as it looked at a given instant.

Each issue's status as of T is its latest status event at or before T. Issues
whose first event postdates T did not exist yet and are left out. A
type-dependent retention window then hides stale reports:

    pothole        created within 2 years before T
    water_logging  created within 30 days before T
    garbage_dump   always shown

Nothing is written; "now" is just ``at = current time``.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from civicmap.database import models
from civicmap.errors import InvalidInputError, StoreFailureError
from civicmap.schemas import IssueProjection, IssueType
from civicmap.timeutil import as_utc, years_before

logger = logging.getLogger(__name__)

POTHOLE_RETENTION_YEARS = 2
WATER_LOGGING_RETENTION = timedelta(days=30)


def visibility_clause(at: datetime):
    """SQL condition for the per-type retention window relative to ``at``."""
    Issue = models.Issue
    return or_(
        and_(
            Issue.type == IssueType.POTHOLE.value,
            Issue.created_at >= years_before(at, POTHOLE_RETENTION_YEARS),
        ),
        and_(
            Issue.type == IssueType.WATER_LOGGING.value,
            Issue.created_at >= at - WATER_LOGGING_RETENTION,
        ),
        Issue.type == IssueType.GARBAGE_DUMP.value,
    )


def _type_value(value) -> str:
    try:
        return IssueType(value).value
    except ValueError:
        raise InvalidInputError(f"Unknown issue type: {value!r}") from None


def _floor_events(at: datetime):
    """Per issue, the timestamp of the latest event at or before ``at``."""
    return (
        select(
            models.StatusEvent.issue_id.label("issue_id"),
            func.max(models.StatusEvent.created_at).label("as_of"),
        )
        .where(models.StatusEvent.created_at <= at)
        .group_by(models.StatusEvent.issue_id)
        .subquery()
    )


async def _media_for(db: AsyncSession, event_ids: list[str]) -> dict[str, list[str]]:
    if not event_ids:
        return {}
    rows = await db.execute(
        select(models.MediaReference.event_id, models.MediaReference.url)
        .where(models.MediaReference.event_id.in_(event_ids))
        .order_by(models.MediaReference.event_id, models.MediaReference.url)
    )
    media: dict[str, list[str]] = defaultdict(list)
    for event_id, url in rows:
        if url not in media[event_id]:
            media[event_id].append(url)
    return media


async def resolve_snapshot(
    db: AsyncSession,
    at: Optional[datetime] = None,
    types: Optional[Iterable[IssueType]] = None,
) -> list[IssueProjection]:
    """Return every visible issue with its status as of ``at``.

    Args:
        db: Session used for reads only.
        at: The instant to reconstruct. ``None`` means now.
        types: Restrict to these issue types. ``None`` means all.

    Raises:
        StoreFailureError: The store could not be read.
    """
    at = as_utc(at)
    floor = _floor_events(at)
    Issue, StatusEvent = models.Issue, models.StatusEvent

    stmt = (
        select(Issue, StatusEvent)
        .join(floor, floor.c.issue_id == Issue.id)
        .join(
            StatusEvent,
            and_(
                StatusEvent.issue_id == Issue.id,
                StatusEvent.created_at == floor.c.as_of,
            ),
        )
        .where(visibility_clause(at))
        .order_by(Issue.created_at, Issue.id)
        .execution_options(populate_existing=True)
    )
    if types is not None:
        stmt = stmt.where(Issue.type.in_([_type_value(t) for t in types]))

    try:
        rows = (await db.execute(stmt)).all()
        media = await _media_for(db, [event.id for _, event in rows])
    except SQLAlchemyError as exc:
        logger.exception("Failed to read map snapshot")
        raise StoreFailureError(str(exc)) from exc

    return [
        IssueProjection(
            id=issue.id,
            type=issue.type,
            latitude=issue.latitude,
            longitude=issue.longitude,
            reported_by=issue.reported_by,
            created_at=issue.created_at,
            magnitude=issue.magnitude,
            approved=issue.approved,
            true_votes=issue.votes_true,
            false_votes=issue.votes_false,
            resolve_votes=issue.resolve_votes,
            status=event.status,
            note=event.note,
            status_at=event.created_at,
            images=media.get(event.id, []),
        )
        for issue, event in rows
    ]
