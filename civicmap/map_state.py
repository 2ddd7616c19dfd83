"""Read side: snapshot, then clustering, then confidence per marker."""

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from civicmap.clustering import cluster_issues
from civicmap.confidence import confidence
from civicmap.schemas import (
    IssueProjection,
    IssueStatus,
    IssueType,
    MapSnapshot,
    ModerationQueue,
)
from civicmap.snapshot import resolve_snapshot
from civicmap.timeutil import as_utc


def _score(issues: list[IssueProjection]) -> list[IssueProjection]:
    return [
        issue.model_copy(update={
            "confidence": confidence(issue.true_votes, issue.false_votes, issue.approved),
        })
        for issue in issues
    ]


async def map_snapshot(
    db: AsyncSession,
    at: Optional[datetime] = None,
    types: Optional[Iterable[IssueType]] = None,
    cluster: bool = True,
) -> MapSnapshot:
    """The map as of ``at`` (default now), ready for display."""
    at = as_utc(at)
    issues = await resolve_snapshot(db, at, types)
    if cluster:
        issues = cluster_issues(issues)
    return MapSnapshot(timestamp=at, issues=_score(issues))


async def moderation_queue(db: AsyncSession, at: Optional[datetime] = None) -> ModerationQueue:
    """Unclustered issues split into pending review, approved and resolved."""
    snapshot = await map_snapshot(db, at, cluster=False)

    pending, active, resolved = [], [], []
    for issue in snapshot.issues:
        if issue.status == IssueStatus.RESOLVED:
            resolved.append(issue)
        elif issue.approved:
            active.append(issue)
        else:
            pending.append(issue)

    return ModerationQueue(
        timestamp=snapshot.timestamp,
        pending=pending,
        active=active,
        resolved=resolved,
    )
