"""SQLModel database models and tables."""

from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from sqlmodel import SQLModel, Field, Column, DateTime, JSON
from sqlalchemy import Index, func


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Journey(SQLModel, table=True):
    """Immutable journey templates."""

    __tablename__ = "journeys"

    id: str = Field(primary_key=True, max_length=255)
    name: str = Field(max_length=255)
    start_node_id: Optional[str] = Field(default=None, max_length=255)
    nodes: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), server_default=func.now())
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), onupdate=func.now())
    )

    def find_node(self, node_id: Optional[str]) -> Optional[Dict[str, Any]]:
        """Find a raw node definition by id."""
        if node_id is None:
            return None
        for node in self.nodes or []:
            if isinstance(node, dict) and node.get("id") == node_id:
                return node
        return None


class JourneyRun(SQLModel, table=True):
    """One durable execution of a journey for one patient.

    ``resume_at`` is set only while WAITING_DELAY. ``claimed_at`` is set while
    an owner (trigger continuation or worker tick) is processing the run.
    ``paused_at`` is written with every pause and survives the claim and the
    recovery sweep, so a DELAY that was reached but never paused can be told
    apart from one whose delay has elapsed. Any other step clears it.
    """

    __tablename__ = "journey_runs"
    __table_args__ = (
        Index("ix_journey_runs_status_resume_at", "status", "resume_at"),
    )

    run_id: str = Field(primary_key=True, max_length=255)
    journey_id: str = Field(index=True, max_length=255)
    status: str = Field(index=True, max_length=50)
    current_node_id: Optional[str] = Field(default=None, max_length=255)
    patient_context: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    resume_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    claimed_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    paused_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), server_default=func.now())
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True))
    )
