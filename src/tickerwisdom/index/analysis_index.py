import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Union

from .state import AnalysisRecord, IndexConfig, time_decay

logger = logging.getLogger(__name__)

BulkRecords = Mapping[str, Union[AnalysisRecord, Iterable[AnalysisRecord]]]


class AnalysisIndex:
    """
    Per-ticker latest-analysis pointer plus a bounded recent history.

    The live update rule is purely chronological: ``record`` replaces the
    latest pointer only for a strictly newer timestamp, so equal timestamps
    keep the first record seen. Relevance is not compared here; gating
    happens before records reach the index.

    Every write goes through ``_apply`` under one lock, so a concurrent prune
    sweep never sees a partially updated ticker. ``load_from_bulk`` must run
    before live traffic starts.
    """

    def __init__(self,
                 config: Optional[IndexConfig] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.config = config or IndexConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._latest: Dict[str, AnalysisRecord] = {}
        self._history: Dict[str, List[AnalysisRecord]] = {}
        self._lock = threading.RLock()
        self._live_writes = 0
        self.stats = {
            'records_applied': 0,
            'latest_updates': 0,
            'stale_or_tied_updates': 0,
            'duplicates_skipped': 0,
            'entries_pruned': 0,
            'bulk_loads': 0,
        }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record(self, ticker: str, rec: AnalysisRecord) -> bool:
        """
        Add ``rec`` to the ticker's history and move the latest pointer if
        ``rec`` is strictly newer. Returns True when the pointer moved.
        """
        with self._lock:
            self._live_writes += 1
            return self._apply(ticker.upper(), rec)

    def _apply(self, ticker: str, rec: AnalysisRecord) -> bool:
        history = self._history.setdefault(ticker, [])
        if any(existing.source_message_id == rec.source_message_id for existing in history):
            self.stats['duplicates_skipped'] += 1
            return False

        history.append(rec)
        history.sort(key=lambda r: r.timestamp, reverse=True)
        del history[self.config.history_cap:]
        self.stats['records_applied'] += 1

        current = self._latest.get(ticker)
        if current is None or rec.timestamp > current.timestamp:
            self._latest[ticker] = rec
            self.stats['latest_updates'] += 1
            logger.debug(f"Latest analysis for {ticker} is now message {rec.source_message_id}")
            return True

        self.stats['stale_or_tied_updates'] += 1
        return False

    def load_from_bulk(self, records: BulkRecords) -> int:
        """
        Replace the whole index with ``records`` (ticker -> record or records).

        Records are inserted in mapping iteration order through the live
        rule. Callers that need chronological semantics pre-sort each
        ticker's records. Calling this after live ``record`` calls is a
        contract violation: it is logged, not reconciled.
        """
        with self._lock:
            if self._live_writes:
                logger.warning(
                    f"Bulk load after {self._live_writes} live writes; "
                    f"live records not present in the bulk data are discarded"
                )
            self._latest.clear()
            self._history.clear()
            self._live_writes = 0

            loaded = 0
            for ticker, value in records.items():
                items = [value] if isinstance(value, AnalysisRecord) else list(value)
                for rec in items:
                    self._apply(ticker.upper(), rec)
                    loaded += 1

            self.stats['bulk_loads'] += 1
        logger.info(f"Bulk loaded {loaded} records for {len(self._latest)} tickers")
        return loaded

    def prune_expired(self) -> int:
        """Drop entries strictly older than the freshness window; returns how many"""
        window = self.config.freshness_window
        now = self._clock()
        removed = 0
        with self._lock:
            for ticker in list(self._history):
                history = self._history[ticker]
                kept = [r for r in history if r.age(now) <= window]
                removed += len(history) - len(kept)
                if kept:
                    self._history[ticker] = kept
                else:
                    del self._history[ticker]

                latest = self._latest.get(ticker)
                if latest is not None and latest.age(now) > window:
                    del self._latest[ticker]
            self.stats['entries_pruned'] += removed

        if removed:
            logger.info(f"Pruned {removed} expired analysis entries")
        return removed

    def clear(self):
        with self._lock:
            self._latest.clear()
            self._history.clear()
            self._live_writes = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def latest(self, ticker: str) -> Optional[AnalysisRecord]:
        return self._latest.get(ticker.upper())

    def is_fresh(self, ticker: str) -> bool:
        rec = self.latest(ticker)
        return rec is not None and rec.age(self._clock()) <= self.config.freshness_window

    def latest_url(self, ticker: str) -> Optional[str]:
        """Canonical link of the latest analysis, only while it is fresh"""
        return self.latest(ticker).canonical_url if self.is_fresh(ticker) else None

    def recent(self, ticker: str, n: Optional[int] = None) -> List[AnalysisRecord]:
        """Fresh history ranked by time decay plus relevance, best ``n`` first"""
        n = self.config.default_recent if n is None else n
        if n <= 0:
            return []
        now = self._clock()
        window = self.config.freshness_window
        with self._lock:
            fresh = [r for r in self._history.get(ticker.upper(), []) if r.age(now) <= window]

        def rank(rec: AnalysisRecord) -> float:
            return time_decay(rec.age(now), self.config.decay_tiers, self.config.stale_decay) \
                + rec.relevance_score

        return sorted(fresh, key=rank, reverse=True)[:n]

    def all_fresh_tickers(self) -> List[str]:
        with self._lock:
            tickers = list(self._latest)
        return sorted(t for t in tickers if self.is_fresh(t))

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            stats = self.stats.copy()
            stats['tickers'] = len(self._latest)
            stats['history_entries'] = sum(len(h) for h in self._history.values())
        stats['fresh_tickers'] = len(self.all_fresh_tickers())
        return stats

    def __contains__(self, ticker: str) -> bool:
        return ticker.upper() in self._latest

    def __len__(self) -> int:
        return len(self._latest)
