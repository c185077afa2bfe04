#!/usr/bin/env python3
"""Vault API - Records returned by a password backend and the interface it implements.

The CLI only ever talks to a VaultSource, so listings and searches can be
exercised against fixed in-memory data instead of a live `op` process.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .tree import Entry


@dataclass
class AccountMetadata:
    """The signed-in account."""

    name: str
    domain: str

    @property
    def label(self) -> str:
        return f"{self.name} ({self.domain})"


@dataclass
class VaultMetadata:
    uuid: str
    name: str


@dataclass
class ItemMetadata:
    """Overview of an item as returned by a listing."""

    uuid: str
    vault_uuid: str
    title: str
    account_info: str = ""
    urls: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)


class ItemFieldType(Enum):
    TOTP = "totp"
    UNKNOWN = "unknown"


@dataclass
class ItemField:
    name: str
    value: str
    field_type: ItemFieldType = ItemFieldType.UNKNOWN


@dataclass
class ItemSection:
    name: str
    fields: List[ItemField] = field(default_factory=list)


@dataclass
class Item:
    """A fully fetched item with its field values."""

    title: str
    fields: List[ItemField] = field(default_factory=list)
    sections: List[ItemSection] = field(default_factory=list)

    def all_fields(self) -> List[ItemField]:
        result = list(self.fields)
        for section in self.sections:
            result.extend(section.fields)
        return result

    def find_field(self, name: str) -> Optional[ItemField]:
        """Find a field by name, case-insensitively."""
        wanted = name.lower()
        for item_field in self.all_fields():
            if item_field.name.lower() == wanted:
                return item_field
        return None

    def totp_field(self) -> Optional[ItemField]:
        for item_field in self.all_fields():
            if item_field.field_type is ItemFieldType.TOTP:
                return item_field
        return None


class VaultSource(ABC):
    """Capability interface for anything that can list and fetch vault items."""

    @abstractmethod
    def account(self) -> AccountMetadata:
        ...

    @abstractmethod
    def vaults(self) -> List[VaultMetadata]:
        ...

    @abstractmethod
    def search(self, terms: Optional[str] = None) -> List[ItemMetadata]:
        """Return items matching terms, or every item when terms is None."""

    @abstractmethod
    def get(self, uuid: str) -> Optional[Item]:
        ...

    @abstractmethod
    def totp(self, uuid: str) -> str:
        ...

    @abstractmethod
    def generate(
        self,
        name: str,
        username: Optional[str] = None,
        url: Optional[str] = None,
        tags: Optional[str] = None,
    ) -> Item:
        """Create a login with a generated password and return it."""


def item_matches(item: ItemMetadata, terms: str) -> bool:
    """Check whether an item matches search terms.

    Uuids must match exactly; urls, title, account info and tags match on a
    case-insensitive substring.
    """
    terms = terms.lower()

    if item.uuid == terms or item.vault_uuid == terms:
        return True
    if any(terms in url.lower() for url in item.urls):
        return True
    if terms in item.title.lower() or terms in item.account_info.lower():
        return True
    return any(terms in tag.lower() for tag in item.tags)


def listing_entries(
    account: AccountMetadata,
    vaults: Iterable[VaultMetadata],
    items: Iterable[ItemMetadata],
    show_uuids: bool = False,
    show_account_names: bool = False,
) -> Tuple[str, List[Entry]]:
    """Map backend records onto a root label and tree entries.

    Each item becomes a vault -> title path. Items whose vault is not in
    vaults are filed under "Unknown Vault (<uuid>)".
    """
    names: Dict[str, str] = {v.uuid: v.name for v in vaults}
    entries = []

    for item in items:
        vault_name = names.get(item.vault_uuid, f"Unknown Vault ({item.vault_uuid})")

        details = []
        if show_account_names and item.account_info.strip():
            details.append(item.account_info.strip())
        if show_uuids:
            details.append(item.uuid)

        entries.append(Entry((vault_name, item.title.strip()), tuple(details)))

    return account.label, entries
