from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends, BackgroundTasks, Query
from sqlalchemy.ext.asyncio import AsyncSession

from civicmap import lifecycle
from civicmap.database.config import get_db
from civicmap.errors import (
    DuplicateVoteError,
    InvalidInputError,
    IssueMapError,
    IssueNotFoundError,
    StoreFailureError,
)
from civicmap.map_state import map_snapshot, moderation_queue
from civicmap.schemas import (
    IssueReport,
    IssueReported,
    IssueType,
    MapSnapshot,
    ModerationQueue,
    StatusUpdate,
    VoteRequest,
    VoteResult,
)
from civicmap.tasks.notifications import notify_issue_reported, notify_lifecycle_transition

router = APIRouter(prefix="/api", tags=["issues"])


def _http_error(exc: IssueMapError) -> HTTPException:
    if isinstance(exc, IssueNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Issue not found")
    if isinstance(exc, DuplicateVoteError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, InvalidInputError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, StoreFailureError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store unavailable, retry later"
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("/map-state", response_model=MapSnapshot)
async def get_map_state(
    timestamp: Optional[datetime] = None,
    types: Optional[list[IssueType]] = Query(None),
    cluster: bool = True,
    db: AsyncSession = Depends(get_db),
):
    """Map as of ``timestamp`` (default now), clustered and scored."""
    try:
        return await map_snapshot(db, timestamp, types, cluster=cluster)
    except IssueMapError as exc:
        raise _http_error(exc)


@router.get("/moderation", response_model=ModerationQueue)
async def get_moderation_queue(
    timestamp: Optional[datetime] = None,
    db: AsyncSession = Depends(get_db),
):
    """Pending, approved and resolved issues for the admin dashboard."""
    try:
        return await moderation_queue(db, timestamp)
    except IssueMapError as exc:
        raise _http_error(exc)


@router.post("/report", response_model=IssueReported, status_code=status.HTTP_201_CREATED)
async def report_issue(
    payload: IssueReport,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    """Report a new issue"""
    try:
        issue_id = await lifecycle.report_issue(
            db,
            payload.type,
            payload.latitude,
            payload.longitude,
            payload.reported_by,
            magnitude=payload.magnitude,
            initial_status=payload.status,
            note=payload.note,
            media_url=payload.image_url,
        )
    except IssueMapError as exc:
        raise _http_error(exc)

    background_tasks.add_task(notify_issue_reported, issue_id, payload.type.value)
    return IssueReported(id=issue_id)


@router.post("/issue/{issue_id}/vote", response_model=VoteResult)
async def vote_on_issue(
    issue_id: str,
    payload: VoteRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    """Cast an up, down or resolve vote"""
    try:
        result = await lifecycle.cast_vote(db, issue_id, payload.voter_token, payload.kind)
    except IssueMapError as exc:
        raise _http_error(exc)

    if result.newly_approved or result.delisted or result.resolved:
        background_tasks.add_task(notify_lifecycle_transition, result)
    return result


@router.post("/issue/{issue_id}/approve")
async def approve_issue(issue_id: str, db: AsyncSession = Depends(get_db)):
    """Approve an issue (admin)"""
    try:
        changed = await lifecycle.approve_issue(db, issue_id)
    except IssueMapError as exc:
        raise _http_error(exc)
    return {"message": "Issue approved" if changed else "Issue already approved"}


@router.post("/issue/{issue_id}/resolve")
async def resolve_issue(issue_id: str, db: AsyncSession = Depends(get_db)):
    """Mark an issue resolved (admin)"""
    try:
        event_id = await lifecycle.delist_issue(db, issue_id)
    except IssueMapError as exc:
        raise _http_error(exc)
    return {"message": "Issue marked as resolved", "event_id": event_id}


@router.post("/issue/{issue_id}/status", status_code=status.HTTP_201_CREATED)
async def update_issue_status(
    issue_id: str,
    payload: StatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Append a status update, optionally with a photo (admin)"""
    try:
        event_id = await lifecycle.update_status(
            db, issue_id, payload.status, note=payload.note, media_url=payload.image_url
        )
    except IssueMapError as exc:
        raise _http_error(exc)
    return {"message": "Status updated", "event_id": event_id}
