import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from civicmap.database.config import Base
from civicmap.timeutil import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class Issue(Base):
    __tablename__ = "issues"
    __table_args__ = (
        CheckConstraint("magnitude BETWEEN 1 AND 10", name="ck_issues_magnitude"),
        CheckConstraint(
            "votes_true >= 0 AND votes_false >= 0 AND resolve_votes >= 0",
            name="ck_issues_counters",
        ),
    )

    id = Column(String, primary_key=True, index=True, default=_new_id)
    type = Column(
        Enum("pothole", "water_logging", "garbage_dump", name="issue_type"),
        nullable=False,
    )
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    reported_by = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    magnitude = Column(Integer, nullable=False, default=5)

    approved = Column(Boolean, nullable=False, default=False)
    votes_true = Column(Integer, nullable=False, default=0)
    votes_false = Column(Integer, nullable=False, default=0)
    resolve_votes = Column(Integer, nullable=False, default=0)

    events = relationship("StatusEvent", back_populates="issue", order_by="StatusEvent.created_at")


class StatusEvent(Base):
    """Append-only status history. The latest event at or before T is the status as of T."""

    __tablename__ = "status_events"
    __table_args__ = (
        UniqueConstraint("issue_id", "created_at", name="uq_status_events_issue_time"),
        Index("ix_status_events_issue_time", "issue_id", "created_at"),
    )

    id = Column(String, primary_key=True, default=_new_id)
    issue_id = Column(String, ForeignKey("issues.id"), nullable=False)
    status = Column(
        Enum("active", "in_progress", "resolved", name="issue_status"),
        nullable=False,
    )
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    issue = relationship("Issue", back_populates="events")
    media = relationship("MediaReference", back_populates="event")


class VoteRecord(Base):
    __tablename__ = "vote_records"
    __table_args__ = (
        UniqueConstraint("issue_id", "voter_token", "kind", name="uq_vote_records_issue_voter_kind"),
    )

    id = Column(String, primary_key=True, default=_new_id)
    issue_id = Column(String, ForeignKey("issues.id"), nullable=False, index=True)
    voter_token = Column(String, nullable=False)
    kind = Column(Enum("up", "down", "resolve", name="vote_kind"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class MediaReference(Base):
    __tablename__ = "media_references"

    id = Column(String, primary_key=True, default=_new_id)
    event_id = Column(String, ForeignKey("status_events.id"), nullable=False, index=True)
    url = Column(Text, nullable=False)

    event = relationship("StatusEvent", back_populates="media")
