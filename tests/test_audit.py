"""Tests for the audit logger."""

import os
import stat
from datetime import datetime, timedelta, timezone

from onep_cli import audit
from onep_cli.audit import AuditLogger, default_logger


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_creates_private_log(self, tmp_path):
        log_path = tmp_path / "logs" / "access.log"
        AuditLogger(log_path)

        assert log_path.exists()
        assert stat.S_IMODE(os.stat(log_path).st_mode) == 0o600
        assert stat.S_IMODE(os.stat(log_path.parent).st_mode) == 0o700

    def test_log_format(self, tmp_path):
        logger = AuditLogger(tmp_path / "access.log")

        logger.log_access("ALLOWED", "SHOW", "itm-soundcloud", pid=4242)

        line = logger.log_path.read_text().splitlines()[-1]
        parts = line.split()
        assert parts[0].endswith("Z")
        assert parts[1:] == ["[4242/1p]", "ALLOWED", "SHOW", "itm-soundcloud"]

    def test_default_pid(self, tmp_path):
        logger = AuditLogger(tmp_path / "access.log")

        logger.log_access("ALLOWED", "TOTP", "itm-1")

        assert f"[{os.getpid()}/1p]" in logger.log_path.read_text()

    def test_reason_kept_on_one_line(self, tmp_path):
        logger = AuditLogger(tmp_path / "access.log")

        logger.log_access("ERROR", "SHOW", "itm-1", reason="op backend returned an error:\nnot signed in")

        lines = logger.log_path.read_text().splitlines()
        assert len(lines) == 1
        assert lines[0].endswith("ERROR SHOW itm-1 op backend returned an error: not signed in")

    def test_appends_in_order(self, tmp_path):
        logger = AuditLogger(tmp_path / "access.log")
        for i in range(3):
            logger.log_access("ALLOWED", "SHOW", f"itm-{i}")

        lines = logger.log_path.read_text().splitlines()

        assert [line.split()[-1] for line in lines] == ["itm-0", "itm-1", "itm-2"]

    def test_daily_rotation(self, tmp_path):
        """Test a log last written on an earlier day is moved aside."""
        log_path = tmp_path / "access.log"
        log_path.write_text("old entry\n")
        os.chmod(log_path, 0o600)

        last_written = datetime.now(timezone.utc) - timedelta(days=2)
        os.utime(log_path, (last_written.timestamp(), last_written.timestamp()))

        # A rotated log well past retention
        stale = tmp_path / "access.log.20000101"
        stale.write_text("ancient\n")

        logger = AuditLogger(log_path)
        logger.log_access("ALLOWED", "SHOW", "itm-new")

        rotated = tmp_path / f"access.log.{last_written.strftime('%Y%m%d')}"
        assert rotated.read_text() == "old entry\n"
        assert "itm-new" in log_path.read_text()
        assert "old entry" not in log_path.read_text()
        assert not stale.exists()
        assert logger.rotated_logs() == [rotated]

    def test_no_rotation_same_day(self, tmp_path):
        logger = AuditLogger(tmp_path / "access.log")
        logger.log_access("ALLOWED", "SHOW", "itm-1")
        logger.log_access("ALLOWED", "SHOW", "itm-2")

        assert logger.rotated_logs() == []
        assert len(logger.log_path.read_text().splitlines()) == 2


def test_default_logger_uses_config_path(audit_log_path):
    logger = default_logger()

    assert logger.log_path == audit.LOG_PATH == audit_log_path
    assert audit_log_path.exists()
