from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class IssueType(str, Enum):
    POTHOLE = "pothole"
    WATER_LOGGING = "water_logging"
    GARBAGE_DUMP = "garbage_dump"


class IssueStatus(str, Enum):
    ACTIVE = "active"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class VoteKind(str, Enum):
    UP = "up"
    DOWN = "down"
    RESOLVE = "resolve"


class IssueReport(BaseModel):
    type: IssueType
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    reported_by: str = Field(min_length=1, max_length=128)
    magnitude: int = Field(5, ge=1, le=10)
    status: IssueStatus = IssueStatus.ACTIVE
    note: Optional[str] = Field(None, max_length=1000)
    image_url: Optional[str] = None


class IssueReported(BaseModel):
    id: str
    message: str = "Issue reported successfully"


class VoteRequest(BaseModel):
    voter_token: str = Field(min_length=1, max_length=128)
    kind: VoteKind


class VoteResult(BaseModel):
    issue_id: str
    kind: VoteKind
    true_votes: int
    false_votes: int
    resolve_votes: int
    approved: bool
    newly_approved: bool = False
    delisted: bool = False
    resolved: bool = False


class StatusUpdate(BaseModel):
    status: IssueStatus
    note: Optional[str] = Field(None, max_length=1000)
    image_url: Optional[str] = None


class IssueProjection(BaseModel):
    """One issue (or merged cluster) as it appeared at a given instant."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    type: IssueType
    latitude: float
    longitude: float
    reported_by: str
    created_at: datetime
    magnitude: int
    approved: bool
    true_votes: int
    false_votes: int
    resolve_votes: int

    status: IssueStatus
    note: Optional[str] = None
    status_at: datetime
    images: list[str] = Field(default_factory=list)

    confidence: Optional[int] = None
    cluster_size: int = 1
    member_ids: list[str] = Field(default_factory=list)


class MapSnapshot(BaseModel):
    timestamp: datetime
    issues: list[IssueProjection]


class ModerationQueue(BaseModel):
    timestamp: datetime
    pending: list[IssueProjection]
    active: list[IssueProjection]
    resolved: list[IssueProjection]
