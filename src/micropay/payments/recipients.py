"""Alias table snapshots and recipient address resolution."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from micropay.intent.patterns import is_address

LOGGER = logging.getLogger(__name__)
DEFAULT_RECIPIENT_KEY = "default_recipient"


class AliasTable:
    """Immutable alias -> address mapping read once per executor.

    Build it with :meth:`from_config`; malformed configuration yields an empty
    table so that resolution can never fail because of it.
    """

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        cleaned = {
            str(key): str(value) for key, value in (entries or {}).items() if isinstance(value, str) and value
        }
        self._entries = MappingProxyType(cleaned)
        self._lowered = MappingProxyType({key.lower(): value for key, value in reversed(list(cleaned.items()))})

    @classmethod
    def from_config(cls, raw: str | Mapping[str, Any] | None) -> "AliasTable":
        if not raw:
            return cls()
        try:
            data = json.loads(raw) if isinstance(raw, str) else dict(raw)
        except Exception:
            LOGGER.warning("RECIPIENT_MAP parse failed; no aliases will resolve", exc_info=True)
            return cls()
        if not isinstance(data, Mapping):
            LOGGER.warning("RECIPIENT_MAP is not a JSON object; no aliases will resolve")
            return cls()
        return cls(data)

    def lookup(self, token: str) -> str | None:
        """Exact key first, then a case-insensitive match."""

        if token in self._entries:
            return self._entries[token]
        return self._lowered.get(token.lower())

    @property
    def default_recipient(self) -> str | None:
        return self._entries.get(DEFAULT_RECIPIENT_KEY)

    def __len__(self) -> int:
        return len(self._entries)


class RecipientResolver:
    """Map an alias or raw address to a canonical on-chain address."""

    def __init__(self, table: AliasTable | None = None) -> None:
        self.table = table or AliasTable()

    def resolve(self, token: str | None) -> str | None:
        """Return the address for ``token``, or ``None`` when unknown.

        Well-formed ``0x`` addresses pass through without touching the table.
        An empty token resolves to ``default_recipient`` when one is configured.
        """

        token = (token or "").strip()
        if is_address(token):
            return token
        if not token:
            return self.table.default_recipient
        return self.table.lookup(token)
