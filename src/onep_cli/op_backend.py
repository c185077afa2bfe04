#!/usr/bin/env python3
"""op Backend - VaultSource implementation over the 1Password `op` tool.

Every call shells out to `op`, bound to the OpSession given at construction,
and parses the JSON it prints.
"""

import json
import subprocess
from typing import Any, List, Optional

from .api import (
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
from .otp import InvalidSecretError, generate as generate_totp
from .session import OpSession


class OpError(Exception):
    """Base class for failures talking to `op`."""


class OpBackendError(OpError):
    """op exited non-zero."""

    def __init__(self, stderr: str):
        self.stderr = stderr
        super().__init__(f"op backend returned an error:\n{stderr}")


class OpExecError(OpError):
    """op could not be executed at all."""


class OpParseError(OpError):
    """op printed something other than the JSON we expected."""


class OpFieldError(OpError):
    """A field value has a type we cannot display."""


class ItemNotFoundError(OpError):
    """The requested item, or the data asked of it, does not exist."""


def field_value(name: str, value: Any) -> str:
    """Render a raw JSON field value as display text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, str)):
        return str(value)
    raise OpFieldError(f"Unknown item field type for {name}")


def parse_item_metadata(data: dict) -> ItemMetadata:
    overview = data.get("overview") or {}
    return ItemMetadata(
        uuid=data["uuid"],
        vault_uuid=data["vaultUuid"],
        title=overview.get("title") or "",
        account_info=overview.get("ainfo") or "",
        urls=[u.get("u") or "" for u in overview.get("URLs") or []],
        tags=list(overview.get("tags") or []),
    )


def parse_item(data: dict) -> Item:
    """Map `op get item` output onto an Item, dropping empty fields."""
    details = data.get("details") or {}
    overview = data.get("overview") or {}

    fields = []
    for raw in details.get("fields") or []:
        name = raw.get("designation") or raw.get("name", "")
        item_field = ItemField(name=name, value=field_value(raw.get("name", name), raw.get("value")))
        if item_field.value:
            fields.append(item_field)

    sections = []
    for raw_section in details.get("sections") or []:
        section = ItemSection(name=raw_section.get("title") or "")
        for raw in raw_section.get("fields") or []:
            identifier = raw.get("n", "")
            item_field = ItemField(
                name=raw.get("t", ""),
                value=field_value(identifier, raw.get("v")),
                field_type=ItemFieldType.TOTP if identifier.startswith("TOTP_") else ItemFieldType.UNKNOWN,
            )
            if item_field.value:
                section.fields.append(item_field)
        sections.append(section)

    return Item(title=overview.get("title") or "", fields=fields, sections=sections)


class OpBackend(VaultSource):
    """Runs `op` for every operation."""

    def __init__(self, session: Optional[OpSession] = None):
        self.session = session or OpSession()

    def exec(self, args: List[str]) -> bytes:
        """Run op with args and return its stdout."""
        cmd = [self.session.binary] + list(args) + self.session.args()

        try:
            proc = subprocess.run(cmd, capture_output=True)
        except OSError as e:
            raise OpExecError(f"failed to exec backend:\n{e}") from e

        if proc.returncode != 0:
            raise OpBackendError(proc.stderr.decode("utf-8", errors="replace").strip())

        return proc.stdout

    def exec_text(self, args: List[str]) -> str:
        output = self.exec(args)
        try:
            return output.decode("utf-8")
        except UnicodeDecodeError as e:
            raise OpParseError(f"failed to convert op response to utf-8:\n{e}") from e

    def exec_json(self, args: List[str]) -> Any:
        output = self.exec_text(args)
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise OpParseError(f"failed to parse json from op:\n{e}") from e

    def account(self) -> AccountMetadata:
        data = self.exec_json(["get", "account"])
        try:
            return AccountMetadata(name=data["name"], domain=data["domain"])
        except (KeyError, TypeError) as e:
            raise OpParseError(f"unexpected account response: {e}") from e

    def vaults(self) -> List[VaultMetadata]:
        data = self.exec_json(["list", "vaults"])
        try:
            return [VaultMetadata(uuid=v["uuid"], name=v["name"]) for v in data]
        except (KeyError, TypeError) as e:
            raise OpParseError(f"unexpected vault listing: {e}") from e

    def search(self, terms: Optional[str] = None) -> List[ItemMetadata]:
        data = self.exec_json(["list", "items"])
        try:
            items = [parse_item_metadata(raw) for raw in data]
        except (KeyError, TypeError, AttributeError) as e:
            raise OpParseError(f"unexpected item listing: {e}") from e

        if terms is None:
            return items
        return [item for item in items if item_matches(item, terms)]

    def get(self, uuid: str) -> Optional[Item]:
        data = self.exec_json(["get", "item", uuid])
        try:
            return parse_item(data)
        except (KeyError, TypeError, AttributeError) as e:
            raise OpParseError(f"unexpected item response for {uuid}: {e}") from e

    def totp(self, uuid: str) -> str:
        """Fetch the current code, computing it locally if op cannot."""
        try:
            return self.exec_text(["get", "totp", uuid]).strip()
        except OpBackendError as backend_error:
            item = self.get(uuid)
            totp_field = item.totp_field() if item else None
            if totp_field is None:
                raise ItemNotFoundError(f"No one-time password on item {uuid}") from backend_error

            try:
                return generate_totp(totp_field.value)
            except InvalidSecretError as e:
                raise OpFieldError(f"Invalid one-time password on item {uuid}: {e}") from e

    def generate(
        self,
        name: str,
        username: Optional[str] = None,
        url: Optional[str] = None,
        tags: Optional[str] = None,
    ) -> Item:
        args = ["create", "item", "Login", "--generate-password", "--title", name]

        if url:
            args += ["--url", url]
        if tags:
            args += ["--tags", tags]
        if username:
            args.append(f"username={username}")

        data = self.exec_json(args)
        try:
            uuid = data["uuid"]
        except (KeyError, TypeError) as e:
            raise OpParseError(f"unexpected create response: {e}") from e

        item = self.get(uuid)
        if item is None:
            raise ItemNotFoundError(f"Created item {uuid} could not be fetched")
        return item
