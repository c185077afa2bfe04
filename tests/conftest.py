"""Pytest fixtures and utilities for onep-cli tests."""

import json
import subprocess
from pathlib import Path

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from onep_cli.api import (
    AccountMetadata,
    Item,
    ItemField,
    ItemFieldType,
    ItemMetadata,
    ItemSection,
    VaultMetadata,
    VaultSource,
    item_matches,
)


# Raw `op` output, shaped like the op 1.x JSON
ACCOUNT_JSON = {"name": "Jordan Doyle", "domain": "my"}

VAULTS_JSON = [
    {"uuid": "vlt-personal", "name": "Personal"},
    {"uuid": "vlt-guest", "name": "Guest House Network"},
]

ITEMS_JSON = [
    {
        "uuid": "itm-soundcloud",
        "vaultUuid": "vlt-personal",
        "createdAt": "2020-01-01T00:00:00Z",
        "updatedAt": "2020-01-02T00:00:00Z",
        "overview": {
            "title": "SoundCloud",
            "ainfo": "jordan@example.com",
            "URLs": [{"l": "website", "u": "https://soundcloud.com/signin"}],
            "tags": ["Music"],
        },
    },
    {
        "uuid": "itm-ladbrokes",
        "vaultUuid": "vlt-personal",
        "createdAt": "2020-01-01T00:00:00Z",
        "updatedAt": "2020-01-02T00:00:00Z",
        "overview": {"title": "Ladbrokes ", "ainfo": "jdoyle"},
    },
    {
        "uuid": "itm-switch",
        "vaultUuid": "vlt-guest",
        "createdAt": "2020-01-01T00:00:00Z",
        "updatedAt": "2020-01-02T00:00:00Z",
        "overview": {"title": "switch0-3-6", "ainfo": "admin", "tags": ["Network"]},
    },
    {
        "uuid": "itm-router",
        "vaultUuid": "vlt-guest",
        "createdAt": "2020-01-01T00:00:00Z",
        "updatedAt": "2020-01-02T00:00:00Z",
        "overview": {"title": "Wireless Router", "ainfo": " "},
    },
]

ITEM_JSON = {
    "uuid": "itm-soundcloud",
    "vaultUuid": "vlt-personal",
    "overview": {"title": "SoundCloud", "ainfo": "jordan@example.com"},
    "details": {
        "fields": [
            {"name": "username", "designation": "username", "value": "jordan@example.com"},
            {"name": "password", "designation": "password", "value": "hunter2"},
            {"name": "remember", "designation": "", "value": True},
            {"name": "notes", "designation": "", "value": None},
        ],
        "sections": [
            {
                "title": "",
                "fields": [
                    {"k": "concealed", "n": "TOTP_ABC123", "t": "one-time password",
                     "v": "otpauth://totp/SoundCloud?secret=GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"},
                ],
            },
            {
                "title": "Security",
                "fields": [
                    {"k": "string", "n": "pin", "t": "PIN", "v": 1234},
                    {"k": "string", "n": "hint", "t": "hint", "v": ""},
                ],
            },
            {"title": "Empty"},
        ],
    },
}


def completed(stdout=b"", stderr=b"", returncode=0):
    """Build a CompletedProcess like subprocess.run returns."""
    if isinstance(stdout, (dict, list)):
        stdout = json.dumps(stdout).encode("utf-8")
    return subprocess.CompletedProcess(args=["op"], returncode=returncode, stdout=stdout, stderr=stderr)


class FakeBackend(VaultSource):
    """In-memory VaultSource for CLI tests."""

    def __init__(self):
        self.account_data = AccountMetadata(name="Jordan Doyle", domain="my")
        self.vault_data = [
            VaultMetadata(uuid="vlt-personal", name="Personal"),
            VaultMetadata(uuid="vlt-guest", name="Guest House Network"),
        ]
        self.items = [
            ItemMetadata("itm-soundcloud", "vlt-personal", "SoundCloud", "jordan@example.com"),
            ItemMetadata("itm-ladbrokes", "vlt-personal", "Ladbrokes", "jdoyle"),
            ItemMetadata("itm-switch", "vlt-guest", "switch0-3-6", "admin"),
            ItemMetadata("itm-router", "vlt-guest", "Wireless Router", ""),
        ]
        self.item = Item(
            title="SoundCloud",
            fields=[
                ItemField("username", "jordan@example.com"),
                ItemField("password", "hunter2"),
            ],
            sections=[
                ItemSection("", [ItemField("one-time password", "GEZDGNBV", ItemFieldType.TOTP)]),
                ItemSection("Security", [ItemField("PIN", "1234")]),
            ],
        )
        self.generated = []

    def account(self):
        return self.account_data

    def vaults(self):
        return self.vault_data

    def search(self, terms=None):
        if terms is None:
            return list(self.items)
        return [i for i in self.items if item_matches(i, terms)]

    def get(self, uuid):
        return self.item if uuid == "itm-soundcloud" else None

    def totp(self, uuid):
        return "287082\n"

    def generate(self, name, username=None, url=None, tags=None):
        self.generated.append((name, username, url, tags))
        return Item(title=name, fields=[ItemField("password", "s3cr3t-generated")])


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def session_file(tmp_path, monkeypatch):
    """Point the session cache at a temp file."""
    from onep_cli import session
    path = tmp_path / ".1p-session"
    monkeypatch.setattr(session, "SESSION_FILE", path)
    return path


@pytest.fixture(autouse=True)
def audit_log_path(tmp_path, monkeypatch):
    """Keep every test's audit log out of the real home directory."""
    from onep_cli import audit
    log_dir = tmp_path / ".1p"
    monkeypatch.setattr(audit, "CONFIG_DIR", log_dir)
    monkeypatch.setattr(audit, "LOG_PATH", log_dir / "access.log")
    return log_dir / "access.log"


@pytest.fixture
def clean_op_env(monkeypatch):
    """Remove any OP_SESSION_* variables the developer has exported."""
    import os
    for name in list(os.environ):
        if name.startswith("OP_SESSION_"):
            monkeypatch.delenv(name)
