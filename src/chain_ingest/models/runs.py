"""
Run tracking models for chain-ingest.

This module defines models for tracking ingestion runs:
- RunStatus: Outcome of a run
- PipelineState: Driver state machine
- IngestionRun: Metadata about one run of a pipeline

Example:
    >>> from chain_ingest.models import IngestionRun
    >>>
    >>> run = IngestionRun(stream="tx", start_cursor="0:0")
    >>> run.blocks_read += 10
    >>> run.complete(end_cursor="0:4096")
    >>> print(f"Read {run.blocks_read} blocks in {run.duration_seconds}s")
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RunStatus(str, Enum):
    """Status of an ingestion run."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PipelineState(str, Enum):
    """States of the pipeline driver.

    STARTING -> RUNNING -> CHECKPOINTING -> RUNNING ... -> DRAINING -> STOPPED
    """

    STARTING = "starting"
    RUNNING = "running"
    CHECKPOINTING = "checkpointing"
    DRAINING = "draining"
    STOPPED = "stopped"


class IngestionRun(BaseModel):
    """Metadata about an ingestion run.

    Attributes:
        stream: Checkpoint stream name ("tx" or "blocks")
        source_name: Name of the block source
        start_cursor: Cursor the run resumed from
        end_cursor: Last cursor persisted by the run
        started_at: When the run started
        completed_at: When the run ended (None while running)
        status: Current run status
        blocks_read: Blocks read from the source
        transactions_indexed: Index records produced
        units_submitted: Work units handed to the worker pool
        checkpoints_saved: Cursor writes performed
        error_message: Error message if the run failed
    """

    model_config = ConfigDict(extra="ignore")

    stream: str = Field(default="blocks", description="Checkpoint stream name")
    source_name: str = Field(default="unknown", description="Block source name")
    start_cursor: str = Field(default="0:0", description="Cursor at start")
    end_cursor: str | None = Field(default=None, description="Last persisted cursor")
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = None
    status: RunStatus = RunStatus.RUNNING

    blocks_read: int = Field(default=0, ge=0)
    transactions_indexed: int = Field(default=0, ge=0)
    units_submitted: int = Field(default=0, ge=0)
    checkpoints_saved: int = Field(default=0, ge=0)

    error_message: str | None = None

    @computed_field  # type: ignore[misc]
    @property
    def duration_seconds(self) -> float | None:
        """Run duration in seconds, or None while running."""
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    @computed_field  # type: ignore[misc]
    @property
    def is_complete(self) -> bool:
        return self.status == RunStatus.COMPLETED

    def complete(self, end_cursor: str | None = None, error: str | None = None) -> None:
        """Mark the run as finished.

        Args:
            end_cursor: Final persisted cursor
            error: Optional error message if the run failed
        """
        self.completed_at = _utcnow()
        if end_cursor is not None:
            self.end_cursor = end_cursor
        if error:
            self.status = RunStatus.FAILED
            self.error_message = error
        else:
            self.status = RunStatus.COMPLETED

    def fail(self, error: str) -> None:
        self.complete(error=error)

    def cancel(self, end_cursor: str | None = None) -> None:
        """Mark the run as stopped on request, after its final checkpoint."""
        self.completed_at = _utcnow()
        if end_cursor is not None:
            self.end_cursor = end_cursor
        self.status = RunStatus.CANCELLED

    def summary_dict(self) -> dict[str, Any]:
        """Key run statistics for logging/reporting."""
        return {
            "stream": self.stream,
            "source": self.source_name,
            "status": self.status.value,
            "start_cursor": self.start_cursor,
            "end_cursor": self.end_cursor,
            "blocks_read": self.blocks_read,
            "transactions_indexed": self.transactions_indexed,
            "units_submitted": self.units_submitted,
            "checkpoints_saved": self.checkpoints_saved,
            "duration_seconds": self.duration_seconds,
        }
