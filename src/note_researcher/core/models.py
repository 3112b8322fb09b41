"""Pydantic models for deep research runs.

These models define the persisted run record, the status reported by a
provider on each poll, and the reason codes written to the run log.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# Enums
# =============================================================================


class ResearchState(str, Enum):
    """State of a remote research job as seen on a single status check."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RunState(str, Enum):
    """Local lifecycle state of the run controller."""

    IDLE = "idle"
    RUNNING = "running"


class ReasonCode(str, Enum):
    """Reason codes written to the durable run log."""

    DISABLED = "DR_DISABLED"
    PROMPT_PATH_MISSING = "DR_PROMPT_PATH_MISSING"
    ENV_PATH_MISSING = "DR_ENV_PATH_MISSING"
    BUSY = "DR_BUSY"
    INIT_FAILED = "DR_INIT_FAILED"
    PROMPT_READ_FAILED = "DR_PROMPT_READ_FAILED"
    NOTE_READ_FAILED = "DR_NOTE_READ_FAILED"
    STARTED = "DR_STARTED"
    REQUEST_FAILED = "DR_REQUEST_FAILED"
    CHECK_FAILED = "DR_CHECK_FAILED"
    ABANDONED = "DR_ABANDONED"
    COMPLETED_OK = "DR_OK"
    WRITE_FAILED = "DR_WRITE_FAILED"


# =============================================================================
# Run record
# =============================================================================


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunRecord(BaseModel):
    """The single persisted unit of in-flight work.

    Frozen: a record is replaced as a whole value, never edited in place.
    """

    model_config = ConfigDict(frozen=True)

    interaction_id: str = Field(..., min_length=1, description="Provider handle")
    subject_path: str = Field(..., description="Vault-relative path of the note")
    subject_name: str = Field(..., description="Display name of the note")
    start_time: datetime = Field(default_factory=_utcnow)


# =============================================================================
# Provider status
# =============================================================================


class ResearchStatus(BaseModel):
    """Result of one provider status check.

    Exactly one state is active. ``report`` is an optional inline copy of the
    final report for completed jobs; ``error`` is required for failed jobs.
    """

    state: ResearchState
    report: Optional[str] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _check_payload(self) -> "ResearchStatus":
        if self.state == ResearchState.FAILED and not self.error:
            raise ValueError("failed status requires an error message")
        if self.state != ResearchState.COMPLETED and self.report is not None:
            raise ValueError("only a completed status may carry a report")
        return self

    @classmethod
    def running(cls) -> "ResearchStatus":
        return cls(state=ResearchState.RUNNING)

    @classmethod
    def completed(cls, report: Optional[str] = None) -> "ResearchStatus":
        return cls(state=ResearchState.COMPLETED, report=report)

    @classmethod
    def failed(cls, error: str) -> "ResearchStatus":
        return cls(state=ResearchState.FAILED, error=error)

    @property
    def is_terminal(self) -> bool:
        return self.state != ResearchState.RUNNING


# =============================================================================
# Controller outcomes
# =============================================================================


@dataclass
class RunOutcome:
    """Explicit result of a run controller operation.

    Attributes:
        ok: Whether the operation achieved its goal
        message: Human-readable description
        reason: Run log reason code, or None when nothing is logged
        user_facing: Whether the message is shown to the user
        record: Run record the operation acted on, if any
        report_path: Where the report was written, for completed runs
    """

    ok: bool
    message: str
    reason: Optional[ReasonCode] = None
    user_facing: bool = True
    record: Optional[RunRecord] = None
    report_path: Optional[Path] = None
