#!/usr/bin/env python3
"""Session - Explicit `op` session context and its on-disk cache.

The token returned by `op signin --raw` is carried in an OpSession and handed
to the backend at construction time. The backend never reads environment
variables itself; resolve_session() is the only place that does.
"""

import json
import os
import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

SESSION_FILE = Path.home() / ".1p-session"
DEFAULT_TTL = 1800  # op expires idle sessions after 30 minutes
OP_BINARY = os.environ.get("ONEP_OP_BINARY", "op")


class SigninError(Exception):
    """`op signin` failed or returned no token."""


@dataclass
class OpSession:
    """Session context passed into every `op` invocation."""

    token: Optional[str] = None
    account: Optional[str] = None
    expires: Optional[datetime] = None
    binary: str = field(default_factory=lambda: OP_BINARY)

    def is_expired(self) -> bool:
        if self.expires is None:
            return False
        return datetime.now(timezone.utc) > self.expires

    def args(self) -> list:
        """Extra `op` arguments that bind a call to this session."""
        result = []
        if self.account:
            result += ["--account", self.account]
        if self.token:
            result += ["--session", self.token]
        return result


def set_permissions(path, mode=0o600):
    """Set file permissions."""
    os.chmod(path, mode)


def save_session(session: OpSession) -> None:
    """Cache a session token on disk, readable only by the owner."""
    data = {
        "token": session.token,
        "account": session.account,
        "expires": session.expires.isoformat() if session.expires else None,
    }

    fd = os.open(str(SESSION_FILE), os.O_CREAT | os.O_WRONLY | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        json.dump(data, f)
    set_permissions(SESSION_FILE)


def load_session() -> Optional[OpSession]:
    """Load the cached session, discarding it if expired or malformed."""
    if not SESSION_FILE.exists():
        return None

    try:
        with open(SESSION_FILE) as f:
            data = json.load(f)

        expires = datetime.fromisoformat(data["expires"]) if data.get("expires") else None
        if expires is not None and expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)

        session = OpSession(token=data["token"], account=data.get("account"), expires=expires)
        expired = session.is_expired()
    except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError):
        SESSION_FILE.unlink()
        return None

    if expired:
        SESSION_FILE.unlink()
        return None

    return session


def clear_session() -> bool:
    """Remove the cached session. Returns True if one existed."""
    if SESSION_FILE.exists():
        SESSION_FILE.unlink()
        return True
    return False


def env_token(account: Optional[str] = None) -> Optional[str]:
    """Find a token exported by `eval $(op signin)`.

    op exports OP_SESSION_<shorthand>; without an explicit account the first
    such variable wins.
    """
    if account:
        return os.environ.get(f"OP_SESSION_{account}") or None

    for name in sorted(os.environ):
        if name.startswith("OP_SESSION_") and os.environ[name]:
            return os.environ[name]
    return None


def resolve_session(token: Optional[str] = None, account: Optional[str] = None) -> OpSession:
    """Pick the session to use: explicit token, environment, cache, then none."""
    if token:
        return OpSession(token=token, account=account)

    found = env_token(account)
    if found:
        return OpSession(token=found, account=account)

    cached = load_session()
    if cached and (account is None or cached.account in (None, account)):
        return cached

    # Let op fall back to whatever state it keeps itself
    return OpSession(account=account)


def signin(account: Optional[str] = None, ttl: int = DEFAULT_TTL) -> OpSession:
    """Run `op signin --raw` interactively and cache the returned token."""
    cmd = [OP_BINARY, "signin"]
    if account:
        cmd.append(account)
    cmd.append("--raw")

    try:
        # stdin/stderr stay attached so op can prompt for the master password
        proc = subprocess.run(cmd, stdout=subprocess.PIPE)
    except FileNotFoundError as e:
        raise SigninError(f"Command not found: {OP_BINARY}") from e

    try:
        token = proc.stdout.decode("utf-8").strip() if proc.stdout else ""
    except UnicodeDecodeError as e:
        raise SigninError("op signin returned a malformed token") from e

    if proc.returncode != 0 or not token:
        raise SigninError("op signin failed")

    session = OpSession(
        token=token,
        account=account,
        expires=datetime.now(timezone.utc) + timedelta(seconds=ttl),
    )
    save_session(session)
    return session
