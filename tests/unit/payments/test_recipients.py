"""Tests for alias tables and recipient resolution."""

from __future__ import annotations

import json

from micropay.payments import AliasTable, RecipientResolver

ALICE = "0x" + "11" * 20
BOB = "0x" + "22" * 20
FALLBACK = "0x" + "33" * 20
RAW = "0x" + "Ab" * 20


class _SpyTable(AliasTable):
    def __init__(self, entries=None) -> None:
        super().__init__(entries)
        self.lookups: list[str] = []

    def lookup(self, token: str):
        self.lookups.append(token)
        return super().lookup(token)


def test_from_config_parses_json_string():
    table = AliasTable.from_config(json.dumps({"@alice": ALICE, "@Bob": BOB}))

    assert len(table) == 2
    assert table.lookup("@alice") == ALICE


def test_from_config_accepts_mapping():
    table = AliasTable.from_config({"@alice": ALICE})

    assert table.lookup("@alice") == ALICE


def test_from_config_tolerates_malformed_input(caplog):
    with caplog.at_level("WARNING"):
        broken = AliasTable.from_config("{not json")
    assert len(broken) == 0
    assert "RECIPIENT_MAP" in caplog.text

    assert len(AliasTable.from_config("[1, 2, 3]")) == 0
    assert len(AliasTable.from_config(None)) == 0
    assert len(AliasTable.from_config("")) == 0


def test_lookup_is_exact_then_case_insensitive():
    table = AliasTable({"@Alice": ALICE, "@alice": BOB})

    assert table.lookup("@alice") == BOB
    assert table.lookup("@Alice") == ALICE
    assert table.lookup("@ALICE") == ALICE
    assert table.lookup("@carol") is None


def test_non_string_values_are_dropped():
    table = AliasTable({"@alice": ALICE, "@bad": 12, "@empty": ""})

    assert len(table) == 1


def test_address_passes_through_without_lookup():
    table = _SpyTable({"@alice": ALICE})
    resolver = RecipientResolver(table)

    assert resolver.resolve(RAW) == RAW
    assert table.lookups == []


def test_alias_resolves_via_table():
    resolver = RecipientResolver(AliasTable({"@alice": ALICE}))

    assert resolver.resolve("@ALICE") == ALICE
    assert resolver.resolve("@nobody") is None


def test_malformed_address_is_treated_as_alias():
    resolver = RecipientResolver(AliasTable({"0x1234": ALICE}))

    assert resolver.resolve("0x1234") == ALICE
    assert resolver.resolve(RAW + "ff") is None


def test_empty_token_uses_default_recipient():
    assert RecipientResolver(AliasTable({"default_recipient": FALLBACK})).resolve("") == FALLBACK
    assert RecipientResolver(AliasTable({"default_recipient": FALLBACK})).resolve(None) == FALLBACK
    assert RecipientResolver().resolve("") is None
