"""Tests for the rolling manager allowlist and lexicon overrides."""

from datetime import timedelta

import pytest

from tickerwisdom.symbols.allowlist import AllowlistEntry, AllowlistStore, RollingAllowlist
from tickerwisdom.symbols.lexicon import Lexicon

from conftest import FIXED_NOW


class MutableClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class TestRollingAllowlist:

    def test_learns_dollar_symbols_in_order(self, allowlist):
        learned = allowlist.learn_from_admin_message(
            "Watching $NVDA and $F, also $NVDA again and plain TSLA", admin_id="mgr", message_id="1"
        )
        assert learned == ["NVDA", "F"]
        assert allowlist.allowed_symbols() == ["F", "NVDA"]
        assert "TSLA" not in allowlist

    def test_entries_expire_after_max_age(self):
        clock = MutableClock(FIXED_NOW)
        allowlist = RollingAllowlist(max_age=timedelta(days=7), clock=clock)
        allowlist.add_symbol("nvda", admin_id="mgr", message_id="1")

        clock.now = FIXED_NOW + timedelta(days=7)
        assert allowlist.is_allowed("NVDA")

        clock.now = FIXED_NOW + timedelta(days=7, seconds=1)
        assert not allowlist.is_allowed("NVDA")
        assert len(allowlist) == 0

    def test_prune_expired_counts_removed(self):
        clock = MutableClock(FIXED_NOW)
        allowlist = RollingAllowlist(clock=clock)
        allowlist.add_symbol("OLD", "mgr", "1", added_at=FIXED_NOW - timedelta(days=8))
        allowlist.add_symbol("NEW", "mgr", "2")

        assert allowlist.prune_expired() == 1
        assert allowlist.allowed_symbols() == ["NEW"]

    def test_initialize_skips_expired_entries(self, allowlist):
        entries = [
            AllowlistEntry("AMD", FIXED_NOW - timedelta(days=1), "mgr", "1"),
            AllowlistEntry("GME", FIXED_NOW - timedelta(days=30), "mgr", "2"),
        ]
        assert allowlist.initialize_from_entries(entries) == 1
        assert allowlist.get_entry("AMD").message_id == "1"
        assert allowlist.get_entry("GME") is None

    def test_remove_and_stats(self, allowlist):
        allowlist.add_symbol("AMD", "mgr", "1")
        assert allowlist.get_stats()["total_symbols"] == 1
        assert allowlist.remove_symbol("amd")
        assert not allowlist.remove_symbol("amd")
        assert allowlist.get_stats()["oldest_entry"] is None

    def test_satisfies_store_protocol(self, allowlist):
        assert isinstance(allowlist, AllowlistStore)


class TestLexicon:

    def test_default_gazetteer(self, lexicon):
        assert lexicon.is_valid_symbol("AAPL")
        assert lexicon.is_valid_symbol("A")
        assert not lexicon.is_valid_symbol("F")
        assert not lexicon.is_valid_symbol("THE")
        assert not lexicon.is_valid_symbol("aapl")
        assert lexicon.is_valid_symbol("EMA", extra_allowlist={"EMA"})

    def test_from_file_merges_overrides(self, tmp_path):
        path = tmp_path / "lexicon.yaml"
        path.write_text(
            "disallowed: [eod]\n"
            "allowlist: [arkk]\n"
            "remove_disallowed: [ceo]\n"
            "relevance_keywords:\n"
            "  medium: [consolidation]\n",
            encoding="utf-8",
        )
        lexicon = Lexicon.from_file(path)

        assert not lexicon.is_valid_symbol("EOD")
        assert lexicon.is_allowlisted("ARKK")
        assert lexicon.is_valid_symbol("CEO")
        assert "consolidation" in lexicon.relevance_keywords.medium

    def test_unknown_keys_are_rejected(self, lexicon):
        with pytest.raises(ValueError):
            lexicon.merged({"blocklist": ["AAPL"]})
