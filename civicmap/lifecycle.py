"""Vote ledger and lifecycle state machine.

Every public operation here runs as exactly one transaction on the caller's
session: it commits on success and rolls back on any failure, so a threshold
transition never persists without the counter update that triggered it.

Counters are only ever changed by ``UPDATE ... SET c = c + 1`` in the store;
nothing is cached across calls. The unique constraint on
(issue, voter, kind) is what stops two concurrent identical votes; the
existence check in ``cast_vote`` only avoids a round-trip in the common case.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from civicmap.database import models
from civicmap.errors import (
    DuplicateVoteError,
    InvalidInputError,
    IssueMapError,
    IssueNotFoundError,
    StoreFailureError,
)
from civicmap.schemas import IssueStatus, IssueType, VoteKind, VoteResult
from civicmap.timeutil import as_utc, next_after

logger = logging.getLogger(__name__)

APPROVE_THRESHOLD = int(os.getenv("APPROVE_VOTE_THRESHOLD", "20"))
DELIST_THRESHOLD = int(os.getenv("DELIST_VOTE_THRESHOLD", "5"))
RESOLVE_THRESHOLD = int(os.getenv("RESOLVE_VOTE_THRESHOLD", "10"))

ADMIN_DELIST_NOTE = "Marked as resolved by admin"

_COUNTER_COLUMNS = {
    VoteKind.UP: models.Issue.votes_true,
    VoteKind.DOWN: models.Issue.votes_false,
    VoteKind.RESOLVE: models.Issue.resolve_votes,
}


def _coerce(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidInputError(f"Unknown {label}: {value!r}") from None


def _require_token(token: str, label: str) -> None:
    if not token or not token.strip():
        raise InvalidInputError(f"{label} must not be empty")


@asynccontextmanager
async def _transaction(db: AsyncSession):
    """Commit on success; roll back and re-raise as a domain error otherwise."""
    try:
        yield
        await db.commit()
    except IssueMapError:
        await db.rollback()
        raise
    except SQLAlchemyError as exc:
        logger.exception("Store transaction failed, rolled back")
        await db.rollback()
        raise StoreFailureError(str(exc)) from exc


def _issue_query(issue_id: str, lock: bool = False):
    stmt = select(models.Issue.id).where(models.Issue.id == issue_id)
    # row lock serializes event appends on the same issue
    return stmt.with_for_update() if lock else stmt


async def _ensure_issue(db: AsyncSession, issue_id: str, lock: bool = False) -> None:
    found = await db.scalar(_issue_query(issue_id, lock))
    if found is None:
        raise IssueNotFoundError(issue_id)


async def _append_event(
    db: AsyncSession,
    issue_id: str,
    status: IssueStatus,
    note: Optional[str],
    now: datetime,
    media_url: Optional[str] = None,
) -> models.StatusEvent:
    latest = await db.scalar(
        select(func.max(models.StatusEvent.created_at)).where(
            models.StatusEvent.issue_id == issue_id
        )
    )
    # event times are strictly increasing per issue
    created_at = now if latest is None or now > latest else next_after(latest)

    event = models.StatusEvent(
        issue_id=issue_id,
        status=status.value,
        note=note,
        created_at=created_at,
    )
    db.add(event)
    await db.flush()

    if media_url:
        db.add(models.MediaReference(event_id=event.id, url=media_url))
        await db.flush()
    return event


async def report_issue(
    db: AsyncSession,
    issue_type: Union[IssueType, str],
    latitude: float,
    longitude: float,
    reporter_token: str,
    magnitude: int = 5,
    initial_status: Union[IssueStatus, str] = IssueStatus.ACTIVE,
    note: Optional[str] = None,
    media_url: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Create an issue with its first status event and return its id.

    The reporter's own report counts as their up-vote, so the issue starts
    with one true vote and the reporter cannot up-vote it again.

    Raises:
        InvalidInputError: Unknown type/status, magnitude outside 1-10,
            coordinates out of range or an empty reporter token.
        StoreFailureError: The insert could not be committed.
    """
    issue_type = _coerce(IssueType, issue_type, "issue type")
    initial_status = _coerce(IssueStatus, initial_status, "status")
    _require_token(reporter_token, "Reporter token")
    if isinstance(magnitude, bool) or not isinstance(magnitude, int) or not 1 <= magnitude <= 10:
        raise InvalidInputError(f"Magnitude must be an integer between 1 and 10, got {magnitude!r}")
    for coordinate in (latitude, longitude):
        if isinstance(coordinate, bool) or not isinstance(coordinate, (int, float)):
            raise InvalidInputError(f"Coordinates must be numbers, got {coordinate!r}")
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise InvalidInputError(f"Position out of range: ({latitude}, {longitude})")

    created_at = as_utc(now)

    async with _transaction(db):
        issue = models.Issue(
            type=issue_type.value,
            latitude=float(latitude),
            longitude=float(longitude),
            reported_by=reporter_token,
            created_at=created_at,
            magnitude=magnitude,
            approved=False,
            votes_true=1,
            votes_false=0,
            resolve_votes=0,
        )
        db.add(issue)
        await db.flush()

        db.add(models.VoteRecord(
            issue_id=issue.id,
            voter_token=reporter_token,
            kind=VoteKind.UP.value,
            created_at=created_at,
        ))
        await _append_event(db, issue.id, initial_status, note, created_at, media_url)
        issue_id = issue.id

    logger.info("Issue reported", extra={"issue_id": issue_id, "issue_type": issue_type.value})
    return issue_id


async def _has_voted(db: AsyncSession, issue_id: str, voter_token: str, kind: VoteKind) -> bool:
    found = await db.scalar(
        select(models.VoteRecord.id).where(
            models.VoteRecord.issue_id == issue_id,
            models.VoteRecord.voter_token == voter_token,
            models.VoteRecord.kind == kind.value,
        )
    )
    return found is not None


async def cast_vote(
    db: AsyncSession,
    issue_id: str,
    voter_token: str,
    kind: Union[VoteKind, str],
    now: Optional[datetime] = None,
) -> VoteResult:
    """Record one vote and fire any threshold transition it triggers.

    - up: approved once true votes reach APPROVE_THRESHOLD (never reverts)
    - down: a ``resolved`` event is appended once false votes reach
      DELIST_THRESHOLD and the result is flagged ``delisted``
    - resolve: a ``resolved`` event is appended once resolve votes reach
      RESOLVE_THRESHOLD

    Raises:
        InvalidInputError: Unknown kind or empty voter token.
        IssueNotFoundError: No such issue.
        DuplicateVoteError: The voter already cast this kind on this issue.
        StoreFailureError: The transaction could not commit.
    """
    kind = _coerce(VoteKind, kind, "vote kind")
    _require_token(voter_token, "Voter token")
    voted_at = as_utc(now)

    async with _transaction(db):
        await _ensure_issue(db, issue_id)

        if await _has_voted(db, issue_id, voter_token, kind):
            logger.info("Duplicate vote rejected", extra={"issue_id": issue_id, "kind": kind.value})
            raise DuplicateVoteError(issue_id, voter_token, kind.value)

        db.add(models.VoteRecord(
            issue_id=issue_id,
            voter_token=voter_token,
            kind=kind.value,
            created_at=voted_at,
        ))
        try:
            await db.flush()
        except IntegrityError:
            # lost the race against an identical concurrent vote
            logger.info("Duplicate vote rejected by constraint", extra={"issue_id": issue_id})
            raise DuplicateVoteError(issue_id, voter_token, kind.value) from None

        column = _COUNTER_COLUMNS[kind]
        row = (await db.execute(
            update(models.Issue)
            .where(models.Issue.id == issue_id)
            .values({column.key: column + 1})
            .returning(
                models.Issue.votes_true,
                models.Issue.votes_false,
                models.Issue.resolve_votes,
                models.Issue.approved,
            )
            .execution_options(synchronize_session=False)
        )).one()

        approved = row.approved
        newly_approved = delisted = resolved = False

        if kind is VoteKind.UP and row.votes_true >= APPROVE_THRESHOLD and not approved:
            newly_approved = await _set_approved(db, issue_id)
            approved = True

        elif kind is VoteKind.DOWN and row.votes_false >= DELIST_THRESHOLD:
            await _append_event(
                db, issue_id, IssueStatus.RESOLVED,
                f"auto-delisted after {DELIST_THRESHOLD} downvotes", voted_at,
            )
            delisted = True

        elif kind is VoteKind.RESOLVE and row.resolve_votes >= RESOLVE_THRESHOLD:
            await _append_event(
                db, issue_id, IssueStatus.RESOLVED,
                f"auto-resolved after {RESOLVE_THRESHOLD} removal votes", voted_at,
            )
            resolved = True

    result = VoteResult(
        issue_id=issue_id,
        kind=kind,
        true_votes=row.votes_true,
        false_votes=row.votes_false,
        resolve_votes=row.resolve_votes,
        approved=approved,
        newly_approved=newly_approved,
        delisted=delisted,
        resolved=resolved,
    )
    if newly_approved:
        logger.info("Issue approved by votes", extra={"issue_id": issue_id})
    if delisted:
        logger.info("Issue delisted by downvotes", extra={"issue_id": issue_id})
    if resolved:
        logger.info("Issue resolved by removal votes", extra={"issue_id": issue_id})
    return result


async def _set_approved(db: AsyncSession, issue_id: str) -> bool:
    """Flip ``approved`` to true; returns whether this statement changed it."""
    changed = await db.scalar(
        update(models.Issue)
        .where(models.Issue.id == issue_id, models.Issue.approved.is_(False))
        .values(approved=True)
        .returning(models.Issue.id)
        .execution_options(synchronize_session=False)
    )
    return changed is not None


async def approve_issue(db: AsyncSession, issue_id: str) -> bool:
    """Administrative approval. Idempotent; returns True if this call approved it."""
    async with _transaction(db):
        await _ensure_issue(db, issue_id, lock=True)
        changed = await _set_approved(db, issue_id)

    if changed:
        logger.info("Issue approved by admin", extra={"issue_id": issue_id})
    return changed


async def delist_issue(
    db: AsyncSession,
    issue_id: str,
    note: str = ADMIN_DELIST_NOTE,
    now: Optional[datetime] = None,
) -> str:
    """Administrative delist: append a ``resolved`` event, counters untouched."""
    async with _transaction(db):
        await _ensure_issue(db, issue_id, lock=True)
        event = await _append_event(db, issue_id, IssueStatus.RESOLVED, note, as_utc(now))
        event_id = event.id

    logger.info("Issue delisted by admin", extra={"issue_id": issue_id})
    return event_id


async def update_status(
    db: AsyncSession,
    issue_id: str,
    status: Union[IssueStatus, str],
    note: Optional[str] = None,
    media_url: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Append an administrative status event, optionally with a photo."""
    status = _coerce(IssueStatus, status, "status")

    async with _transaction(db):
        await _ensure_issue(db, issue_id, lock=True)
        event = await _append_event(db, issue_id, status, note, as_utc(now), media_url)
        event_id = event.id

    logger.info("Issue status updated", extra={"issue_id": issue_id, "status": status.value})
    return event_id
