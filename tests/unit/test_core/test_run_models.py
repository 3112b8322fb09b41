"""Tests for run models: RunRecord, ResearchStatus and RunOutcome."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from note_researcher.core.models import (
    ReasonCode,
    ResearchState,
    ResearchStatus,
    RunOutcome,
    RunRecord,
)


class TestRunRecord:
    """Tests for the persisted run record."""

    def test_defaults_start_time_to_utc_now(self):
        before = datetime.now(timezone.utc)
        record = RunRecord(interaction_id="int_1", subject_path="a.md", subject_name="a")
        assert record.start_time >= before
        assert record.start_time.tzinfo is not None

    def test_empty_interaction_id_rejected(self):
        """Test a record always names its remote job."""
        with pytest.raises(ValidationError):
            RunRecord(interaction_id="", subject_path="a.md", subject_name="a")

    def test_frozen(self):
        record = RunRecord(interaction_id="int_1", subject_path="a.md", subject_name="a")
        with pytest.raises(ValidationError):
            record.interaction_id = "int_2"

    def test_json_round_trip_preserves_equality(self):
        """Test a record read back from JSON compares equal to the original."""
        record = RunRecord(interaction_id="int_1", subject_path="a.md", subject_name="a")
        restored = RunRecord.model_validate(record.model_dump(mode="json"))
        assert restored == record


class TestResearchStatus:
    """Tests for the status value returned by providers."""

    def test_constructors(self):
        assert ResearchStatus.running().state == ResearchState.RUNNING
        assert ResearchStatus.completed("# R").report == "# R"
        assert ResearchStatus.failed("boom").error == "boom"

    def test_failed_requires_error(self):
        with pytest.raises(ValidationError, match="requires an error"):
            ResearchStatus(state=ResearchState.FAILED)

    def test_report_only_on_completed(self):
        """Test a running status cannot carry a report."""
        with pytest.raises(ValidationError, match="only a completed status"):
            ResearchStatus(state=ResearchState.RUNNING, report="partial")

    def test_is_terminal(self):
        assert ResearchStatus.running().is_terminal is False
        assert ResearchStatus.completed().is_terminal is True
        assert ResearchStatus.failed("x").is_terminal is True


class TestRunOutcome:
    def test_defaults(self):
        outcome = RunOutcome(ok=True, message="done")
        assert outcome.reason is None
        assert outcome.user_facing is True
        assert outcome.record is None
        assert outcome.report_path is None

    def test_reason_codes_are_prefixed(self):
        assert all(code.value.startswith("DR_") for code in ReasonCode)
        assert ReasonCode.COMPLETED_OK.value == "DR_OK"
