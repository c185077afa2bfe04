#!/usr/bin/env python3
"""Audit Logger - Append-only record of every secret this CLI reveals.

One line per show/totp/generate/clip call, rotated daily with retention.
"""

import os
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

CONFIG_DIR = Path.home() / ".1p"
LOG_PATH = CONFIG_DIR / "access.log"


class AuditLogger:
    """Append-only audit logger with rotation and retention."""

    def __init__(self, log_path: Path, retention_days: int = 30):
        """Initialize audit logger.

        Args:
            log_path: Path to the log file (e.g., ~/.1p/access.log)
            retention_days: Number of days to keep rotated logs

        """
        self.log_path = Path(log_path)
        self.retention_days = retention_days
        self.lock = threading.Lock()
        self._last_rotation_check: Optional[datetime] = None

        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.log_path.parent.chmod(0o700)

        self._create_log()

    def _create_log(self) -> None:
        """Create the log file with secure permissions if it doesn't exist."""
        if not self.log_path.exists():
            fd = os.open(
                str(self.log_path),
                os.O_CREAT | os.O_APPEND | os.O_WRONLY,
                0o600
            )
            os.close(fd)

    def log_access(
        self,
        result: str,
        action: str,
        target: str,
        reason: Optional[str] = None,
        pid: Optional[int] = None,
    ) -> None:
        """Log a reveal of secret material.

        Format: ISO8601Z [PID/1p] RESULT ACTION target [reason]

        Args:
            result: ALLOWED | ERROR
            action: SHOW | TOTP | GENERATE | CLIP
            target: Item uuid or name
            reason: Optional reason for ERROR
            pid: Process ID (defaults to the current process)

        """
        self._check_rotation()

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
        parts = [
            timestamp,
            f"[{pid if pid is not None else os.getpid()}/1p]",
            result,
            action,
            target,
        ]

        if reason:
            # Keep one entry per line whatever op printed
            parts.append(" ".join(reason.split()))

        with self.lock, open(self.log_path, "a") as f:
            f.write(" ".join(parts) + "\n")

    def _check_rotation(self) -> None:
        """Check if daily rotation is needed."""
        now = datetime.now(timezone.utc)

        # Only check once per hour at most
        if self._last_rotation_check:
            if (now - self._last_rotation_check).total_seconds() < 3600:
                return

        self._last_rotation_check = now

        if not self.log_path.exists():
            return

        try:
            mtime = datetime.fromtimestamp(self.log_path.stat().st_mtime, tz=timezone.utc)
            today_midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

            if mtime < today_midnight:
                self._rotate(mtime)
                self._cleanup_old_logs()
                self._create_log()
        except OSError:
            pass

    def _rotate(self, last_written: datetime) -> None:
        """Move the current log aside, named after the day it was last written."""
        rotated_path = self.log_path.with_name(
            f"{self.log_path.name}.{last_written.strftime('%Y%m%d')}"
        )

        if not rotated_path.exists():
            try:
                self.log_path.rename(rotated_path)
            except OSError:
                pass

    def _cleanup_old_logs(self) -> None:
        """Remove logs older than retention period."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=self.retention_days)

        for log_file in self.rotated_logs():
            try:
                date_str = log_file.name.split(".")[-1]
                log_date = datetime.strptime(date_str, "%Y%m%d").replace(tzinfo=timezone.utc)
                if log_date < cutoff:
                    log_file.unlink()
            except (ValueError, OSError):
                # Not one of ours, or already gone
                pass

    def rotated_logs(self) -> list:
        try:
            return sorted(self.log_path.parent.glob(f"{self.log_path.name}.*"))
        except OSError:
            return []


def default_logger() -> AuditLogger:
    return AuditLogger(LOG_PATH)
