import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional

from tickerwisdom.chat.client import MessageHistoryClient
from tickerwisdom.chat.processor import MessageTextProcessor
from tickerwisdom.chat.state import ChatMessage, ExtractedUrls
from tickerwisdom.chat.urls import DEFAULT_PLATFORM_URL, AttachmentUrlExtractor, UrlExtractor
from tickerwisdom.index.analysis_index import AnalysisIndex
from tickerwisdom.index.state import AnalysisRecord
from tickerwisdom.relevance.scorer import RelevanceScorer
from tickerwisdom.symbols.extractor import SymbolExtractor

from .state import ChannelScanStats, ReconciliationConfig, ReconciliationResult

logger = logging.getLogger(__name__)


def select_retained(records: Iterable[AnalysisRecord], margin: float = 0.1) -> Optional[AnalysisRecord]:
    """
    Quality-first pick of the record kept for one ticker.

    For two records: one more than ``margin`` better wins, and within the
    margin the later timestamp wins. The margin band is not transitive, so
    pairwise folding over three or more records would depend on arrival order.
    Instead the whole pool is judged at once: only records within ``margin`` of
    the best score are eligible, and the latest of those wins (then the higher
    score, then the message id).
    """
    pool = list(records)
    if not pool:
        return None
    best = max(r.relevance_score for r in pool)
    eligible = [r for r in pool if best - r.relevance_score <= margin]
    return max(eligible, key=lambda r: (r.timestamp, r.relevance_score, r.source_message_id))


class BacklogQualityScorer:
    """Relevance score plus a chart/attachment bonus; ticker lists keep the list score"""

    def __init__(self, scorer: RelevanceScorer, chart_bonus: float = 0.1):
        self.scorer = scorer
        self.chart_bonus = chart_bonus

    def score(self, text: str, ticker_count: int, is_reply: bool = False,
              urls: Optional[ExtractedUrls] = None) -> float:
        breakdown = self.scorer.breakdown(text, ticker_count, is_reply)
        if breakdown.is_list:
            return breakdown.score
        bonus = self.chart_bonus if urls is not None and urls.has_charts else 0.0
        return round(min(1.0, breakdown.score + bonus), 4)


class HistoricalReconciler:
    """
    Backlog pass over channel history.

    Pages backward (newest first) to the lookback cutoff, scores every
    message, and keeps one record per ticker using ``select_retained``.
    Records of a channel are merged only after its scan completes, so an
    abort or a paging failure never leaves a half-processed channel behind.
    """

    def __init__(self,
                 client: MessageHistoryClient,
                 extractor: SymbolExtractor,
                 scorer: RelevanceScorer,
                 config: Optional[ReconciliationConfig] = None,
                 url_extractor: Optional[UrlExtractor] = None,
                 text_processor: Optional[MessageTextProcessor] = None,
                 platform_url: str = DEFAULT_PLATFORM_URL,
                 clock: Optional[Callable[[], datetime]] = None):
        self.client = client
        self.extractor = extractor
        self.config = config or ReconciliationConfig()
        self.quality = BacklogQualityScorer(scorer, self.config.chart_bonus)
        self.url_extractor = url_extractor or AttachmentUrlExtractor()
        self.text_processor = text_processor or MessageTextProcessor()
        self.platform_url = platform_url
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def reconcile(self, channel_ids: Iterable[str],
                        stop_event: Optional[asyncio.Event] = None) -> ReconciliationResult:
        result = ReconciliationResult()
        cutoff = self._clock() - timedelta(days=self.config.lookback_days)
        logger.info(f"Reconciling backlog since {cutoff.isoformat()}")
        pool: Dict[str, List[AnalysisRecord]] = {}

        for channel_id in channel_ids:
            if stop_event is not None and stop_event.is_set():
                logger.info(f"Reconciliation aborted before channel {channel_id}")
                result.aborted = True
                break

            stats = ChannelScanStats(channel_id=str(channel_id))
            result.channels.append(stats)
            try:
                messages = await self.fetch_channel_backlog(str(channel_id), cutoff, stats)
            except Exception as e:
                stats.failed = True
                stats.error = str(e)
                logger.error(f"Skipping channel {channel_id}: {e}")
                continue

            channel_records = self.build_channel_records(messages, stats)
            for ticker, records in channel_records.items():
                pool.setdefault(ticker, []).extend(records)
            logger.info(f"Channel {channel_id}: {stats.messages_scanned} messages, "
                        f"{stats.records_kept} tickers")

        result.records = self.select_records(pool)
        logger.info(f"Reconciliation finished: {len(result.records)} tickers from "
                    f"{result.messages_scanned} messages, {len(result.failed_channels)} failed channels")
        return result

    async def reconcile_into(self, index: AnalysisIndex, channel_ids: Iterable[str],
                             stop_event: Optional[asyncio.Event] = None) -> ReconciliationResult:
        """Reconcile and bulk-load the index; an aborted run leaves the index untouched"""
        result = await self.reconcile(channel_ids, stop_event)
        if result.aborted:
            logger.warning("Reconciliation aborted; index not reloaded")
            return result
        index.load_from_bulk(result.records)
        return result

    async def fetch_channel_backlog(self, channel_id: str, cutoff: datetime,
                                    stats: Optional[ChannelScanStats] = None) -> List[ChatMessage]:
        """Page backward until the cutoff, an empty page, or the page limit"""
        stats = stats or ChannelScanStats(channel_id=channel_id)
        collected: List[ChatMessage] = []
        before: Optional[str] = None

        for page_number in range(self.config.max_pages):
            if page_number:
                await asyncio.sleep(self.config.request_delay)
            page = await self.client.fetch_messages(channel_id, limit=self.config.page_size, before=before)
            stats.pages += 1
            if not page:
                break

            reached_cutoff = False
            for message in page:
                if message.created_at < cutoff:
                    reached_cutoff = True
                    break
                collected.append(message)

            if reached_cutoff or len(page) < self.config.page_size:
                break
            before = page[-1].id
        else:
            logger.warning(f"Channel {channel_id}: stopped after {self.config.max_pages} pages")

        return collected

    def build_channel_records(self, messages: Iterable[ChatMessage],
                              stats: Optional[ChannelScanStats] = None) -> Dict[str, List[AnalysisRecord]]:
        """Group the scored records of one channel by ticker"""
        records: Dict[str, List[AnalysisRecord]] = {}
        for message in messages:
            if stats is not None:
                stats.messages_scanned += 1
            if message.is_bot or not message.text or not message.text.strip():
                if stats is not None:
                    stats.messages_skipped += 1
                continue
            try:
                record = self.score_message(message)
            except Exception as e:
                if stats is not None:
                    stats.messages_failed += 1
                logger.warning(f"Failed to score message {message.id}: {e}")
                continue
            if record is None:
                continue
            for ticker in record.tickers:
                records.setdefault(ticker, []).append(record)

        if stats is not None:
            stats.records_kept = len(records)
        return records

    def score_message(self, message: ChatMessage) -> Optional[AnalysisRecord]:
        """Record for one backlog message, or None when it carries no usable analysis"""
        cleaned = self.text_processor.clean_text(message.text)
        symbol_text = self.text_processor.headline(cleaned) if self.extractor.config.headline_only else cleaned
        candidates = self.extractor.extract(symbol_text)
        if not candidates:
            return None

        urls = self.url_extractor.extract(message)
        score = self.quality.score(cleaned, len(candidates), message.is_reply, urls)
        if self.config.min_relevance is not None and score < self.config.min_relevance:
            logger.debug(f"Backlog message {message.id} below relevance gate ({score:.2f})")
            return None

        return AnalysisRecord.from_message(
            message,
            tickers=[c.ticker for c in candidates],
            relevance_score=score,
            urls=urls,
            platform_url=self.platform_url,
        )

    def select_records(self, pool: Dict[str, List[AnalysisRecord]]) -> Dict[str, AnalysisRecord]:
        return {ticker: select_retained(records, self.config.score_margin) for ticker, records in pool.items()}
