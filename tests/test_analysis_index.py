"""Tests for tickerwisdom.index -- latest pointer, history, freshness and pruning."""

import asyncio
from datetime import timedelta

import pytest

from tickerwisdom.index.analysis_index import AnalysisIndex
from tickerwisdom.index.state import AnalysisRecord, IndexConfig, time_decay
from tickerwisdom.index.sweeper import start_prune_sweep

from conftest import FIXED_NOW, make_message, make_record

T1 = FIXED_NOW - timedelta(hours=3)
T2 = FIXED_NOW - timedelta(hours=1)


class TestLatestPointer:

    def test_newer_record_wins_in_order(self, index):
        index.record("NVDA", make_record("1", T1))
        index.record("NVDA", make_record("2", T2))
        assert index.latest("NVDA").source_message_id == "2"

    def test_newer_record_wins_out_of_order(self, index):
        assert index.record("NVDA", make_record("2", T2))
        assert not index.record("NVDA", make_record("1", T1))
        assert index.latest("NVDA").source_message_id == "2"

    def test_equal_timestamps_keep_first(self, index):
        index.record("NVDA", make_record("1", T1))
        index.record("NVDA", make_record("2", T1))
        assert index.latest("NVDA").source_message_id == "1"

    def test_lower_relevance_newer_record_still_wins(self, index):
        index.record("NVDA", make_record("1", T1, score=0.95))
        index.record("NVDA", make_record("2", T2, score=0.7))
        assert index.latest("NVDA").source_message_id == "2"

    def test_tickers_are_case_insensitive(self, index):
        index.record("nvda", make_record("1", T1))
        assert "NVDA" in index
        assert index.latest("Nvda") is not None

    def test_unknown_ticker(self, index):
        assert index.latest("AMD") is None
        assert not index.is_fresh("AMD")
        assert index.recent("AMD") == []


class TestHistory:

    def test_history_is_capped_to_newest(self, clock):
        index = AnalysisIndex(IndexConfig(history_cap=3, default_recent=10), clock=clock)
        for minutes in range(5):
            index.record("NVDA", make_record(str(minutes), FIXED_NOW - timedelta(minutes=minutes)))

        kept = {r.source_message_id for r in index.recent("NVDA")}
        assert kept == {"0", "1", "2"}
        assert index.get_stats()["history_entries"] == 3

    def test_same_message_is_recorded_once(self, index):
        rec = make_record("1", T1)
        index.record("NVDA", rec)
        index.record("NVDA", rec)
        assert len(index.recent("NVDA", 10)) == 1
        assert index.get_stats()["duplicates_skipped"] == 1

    def test_recent_ranks_by_decay_plus_relevance(self, index):
        index.record("NVDA", make_record("old", FIXED_NOW - timedelta(days=2), score=0.9))
        index.record("NVDA", make_record("new", FIXED_NOW - timedelta(minutes=30), score=0.7))
        index.record("NVDA", make_record("mid", FIXED_NOW - timedelta(hours=12), score=1.0))

        assert [r.source_message_id for r in index.recent("NVDA", 3)] == ["new", "mid", "old"]
        assert [r.source_message_id for r in index.recent("NVDA", 2)] == ["new", "mid"]
        assert len(index.recent("NVDA")) == 3
        assert index.recent("NVDA", 0) == []

    def test_shared_record_across_tickers(self, index):
        rec = make_record("1", T1, tickers=("NVDA", "AMD"))
        for ticker in rec.tickers:
            index.record(ticker, rec)
        assert index.latest("NVDA") is index.latest("AMD")


class TestFreshness:

    def test_stale_record_is_kept_but_not_fresh(self, index):
        index.record("NVDA", make_record("1", FIXED_NOW - timedelta(days=8)))
        assert index.latest("NVDA") is not None
        assert not index.is_fresh("NVDA")
        assert index.latest_url("NVDA") is None
        assert index.all_fresh_tickers() == []

    def test_window_boundary_is_inclusive(self, index):
        index.record("NVDA", make_record("1", FIXED_NOW - timedelta(days=7)))
        assert index.is_fresh("NVDA")
        assert index.latest_url("NVDA").endswith("/1")
        assert index.prune_expired() == 0

    def test_prune_removes_strictly_older_entries(self, index):
        index.record("NVDA", make_record("old", FIXED_NOW - timedelta(days=9)))
        index.record("AMD", make_record("old2", FIXED_NOW - timedelta(days=8)))
        index.record("AMD", make_record("new", FIXED_NOW - timedelta(days=1)))

        assert index.prune_expired() == 2
        assert index.latest("NVDA") is None
        assert index.latest("AMD").source_message_id == "new"
        assert index.all_fresh_tickers() == ["AMD"]

    @pytest.mark.asyncio
    async def test_prune_sweep_runs_until_stopped(self, index):
        index.record("NVDA", make_record("old", FIXED_NOW - timedelta(days=9)))
        stop = asyncio.Event()
        task = start_prune_sweep(index, interval_seconds=0.01, stop_event=stop)

        await asyncio.sleep(0.05)
        stop.set()

        assert await task == 1
        assert len(index) == 0


class TestBulkLoad:

    def test_bulk_load_replaces_contents(self, index):
        index.record("TSLA", make_record("live", T1))
        loaded = index.load_from_bulk({
            "NVDA": make_record("1", T1),
            "AMD": [make_record("2", T1), make_record("3", T2)],
        })

        assert loaded == 3
        assert index.latest("TSLA") is None
        assert index.latest("AMD").source_message_id == "3"

    def test_bulk_load_after_live_writes_warns(self, index, caplog):
        index.record("TSLA", make_record("live", T1))
        with caplog.at_level("WARNING"):
            index.load_from_bulk({"NVDA": make_record("1", T1)})
        assert "Bulk load after" in caplog.text

    def test_clear(self, index):
        index.record("NVDA", make_record("1", T1))
        index.clear()
        assert len(index) == 0


class TestAnalysisRecord:

    def test_from_message_builds_canonical_url(self):
        message = make_message("$NVDA breakout", message_id="42", channel_id="7", guild_id="99",
                               attachment_urls=["https://cdn.example.com/chart.png"])
        rec = AnalysisRecord.from_message(message, ["NVDA"], 0.9)

        assert rec.canonical_url == "https://discord.com/channels/99/7/42"
        assert rec.tickers == ("NVDA",)
        assert rec.timestamp == message.created_at

    def test_direct_message_url_uses_me(self):
        message = make_message("$NVDA", message_id="42", channel_id="7", guild_id=None)
        rec = AnalysisRecord.from_message(message, ["NVDA"], 0.9)
        assert rec.canonical_url == "https://discord.com/channels/@me/7/42"

    def test_rejects_score_out_of_range(self):
        with pytest.raises(ValueError):
            make_record("1", T1, score=1.2)

    def test_naive_timestamp_is_utc(self):
        rec = make_record("1", T1.replace(tzinfo=None))
        assert rec.timestamp == T1

    def test_to_dict_is_serialisable(self):
        data = make_record("1", T1, tickers=("NVDA", "AMD")).to_dict()
        assert data["tickers"] == ["NVDA", "AMD"]
        assert data["timestamp"] == T1.isoformat()


class TestTimeDecay:

    @pytest.mark.parametrize("hours,expected", [(0.5, 1.0), (1, 1.0), (5, 0.8), (20, 0.6), (48, 0.4), (100, 0.2)])
    def test_decay_tiers(self, hours, expected):
        assert time_decay(timedelta(hours=hours)) == expected
