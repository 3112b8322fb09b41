"""Tests for the durable run log."""

import logging
import re

from note_researcher.core.models import ReasonCode
from note_researcher.core.run_log import LOG_FILENAME, RunLog

LINE_PATTERN = re.compile(
    r"^\[\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}\+00:00\] \[(DR_[A-Z_]+)\] (.*)$"
)


class TestRunLog:
    """Tests for RunLog line format and file handling."""

    def test_file_created_on_first_record(self, tmp_path):
        """Test nothing is written until an event is recorded."""
        path = tmp_path / "state" / LOG_FILENAME
        run_log = RunLog(path)
        assert not path.exists()

        run_log.record(ReasonCode.STARTED, "Started for noteA")
        run_log.close()
        assert path.exists()

    def test_line_format(self, tmp_path):
        path = tmp_path / LOG_FILENAME
        run_log = RunLog(path)
        run_log.record(ReasonCode.STARTED, "Started for noteA")
        run_log.record(ReasonCode.CHECK_FAILED, "Status check failed: timeout")
        run_log.close()

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        first = LINE_PATTERN.match(lines[0])
        second = LINE_PATTERN.match(lines[1])
        assert first and first.groups() == ("DR_STARTED", "Started for noteA")
        assert second and second.groups() == ("DR_CHECK_FAILED", "Status check failed: timeout")

    def test_appends_across_instances(self, tmp_path):
        """Test a restarted process appends to the existing log."""
        path = tmp_path / LOG_FILENAME
        for code in (ReasonCode.STARTED, ReasonCode.COMPLETED_OK):
            run_log = RunLog(path)
            run_log.record(code, code.value)
            run_log.close()

        lines = path.read_text(encoding="utf-8").splitlines()
        assert [LINE_PATTERN.match(line).group(1) for line in lines] == ["DR_STARTED", "DR_OK"]

    def test_instances_do_not_share_handlers(self, tmp_path):
        first = RunLog(tmp_path / "a.log")
        second = RunLog(tmp_path / "b.log")
        first.record(ReasonCode.ABANDONED, "only in a")
        first.close()
        second.close()

        assert "only in a" in (tmp_path / "a.log").read_text(encoding="utf-8")
        assert not (tmp_path / "b.log").exists()

    def test_loggers_are_not_registered_globally(self, tmp_path):
        """Test discarded run logs leave nothing behind in the logging registry."""
        before = set(logging.Logger.manager.loggerDict)
        for index in range(20):
            RunLog(tmp_path / f"{index}.log").close()

        added = set(logging.Logger.manager.loggerDict) - before
        assert not [name for name in added if "runlog" in name]
