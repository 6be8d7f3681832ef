import logging
from typing import Dict, List, Optional, Tuple

from tickerwisdom.chat.processor import MessageTextProcessor
from tickerwisdom.chat.state import ChatMessage
from tickerwisdom.chat.urls import DEFAULT_PLATFORM_URL, AttachmentUrlExtractor, UrlExtractor
from tickerwisdom.index.analysis_index import AnalysisIndex
from tickerwisdom.index.state import AnalysisRecord
from tickerwisdom.relevance.prescoring import AnalysisPrescorer, RelevanceGate
from tickerwisdom.relevance.scorer import RelevanceScorer
from tickerwisdom.relevance.state import RelevanceBreakdown
from tickerwisdom.symbols.allowlist import RollingAllowlist
from tickerwisdom.symbols.daily_update import is_daily_update
from tickerwisdom.symbols.extractor import SymbolExtractor
from tickerwisdom.symbols.state import Candidate

from .state import IndexingResult, LinkerConfig

logger = logging.getLogger(__name__)


class AnalysisLinker:
    """
    Live path: extract -> score -> gate -> index, one message at a time.

    Each message runs to completion before the next one, so the index update
    rule needs no extra coordination. A message the prescorer accepts (by
    default a ``RelevanceGate`` at the relevance threshold) becomes one
    immutable ``AnalysisRecord`` recorded under every ticker it mentions; a
    rejected message contributes nothing.
    """

    def __init__(self,
                 extractor: SymbolExtractor,
                 scorer: RelevanceScorer,
                 index: AnalysisIndex,
                 config: Optional[LinkerConfig] = None,
                 url_extractor: Optional[UrlExtractor] = None,
                 text_processor: Optional[MessageTextProcessor] = None,
                 allowlist: Optional[RollingAllowlist] = None,
                 prescorer: Optional[AnalysisPrescorer] = None,
                 platform_url: str = DEFAULT_PLATFORM_URL):
        self.extractor = extractor
        self.scorer = scorer
        self.index = index
        self.config = config or LinkerConfig()
        self.url_extractor = url_extractor or AttachmentUrlExtractor()
        self.text_processor = text_processor or MessageTextProcessor()
        self.allowlist = allowlist
        self.prescorer = prescorer or RelevanceGate(scorer)
        self.platform_url = platform_url
        self.stats = {
            'messages_seen': 0,
            'messages_skipped': 0,
            'messages_without_tickers': 0,
            'messages_rejected': 0,
            'messages_indexed': 0,
            'ticker_updates': 0,
            'manager_symbols_learned': 0,
        }

    # ------------------------------------------------------------------
    # Live path
    # ------------------------------------------------------------------

    def index_message(self, message: ChatMessage) -> IndexingResult:
        """Process one message with the local extraction passes"""
        skip = self._precheck(message)
        if skip:
            return self._skipped(message, skip)

        cleaned = self.text_processor.clean_text(message.text)
        candidates = self.extractor.extract(self._symbol_text(cleaned))
        return self._score_and_record(message, cleaned, candidates)

    async def index_message_async(self, message: ChatMessage, stop_event=None) -> IndexingResult:
        """Like ``index_message`` but lets the extractor consult channel history"""
        skip = self._precheck(message)
        if skip:
            return self._skipped(message, skip)

        cleaned = self.text_processor.clean_text(message.text)
        candidates = await self.extractor.extract_with_history(self._symbol_text(cleaned), stop_event=stop_event)
        return self._score_and_record(message, cleaned, candidates)

    def classify(self, text: str, is_reply: bool = False) -> Tuple[List[Candidate], RelevanceBreakdown]:
        """Extraction and scoring without touching the index"""
        cleaned = self.text_processor.clean_text(text)
        candidates = self.extractor.extract(self._symbol_text(cleaned))
        return candidates, self.scorer.breakdown(cleaned, len(candidates), is_reply)

    def fresh_top_picks(self, text: str) -> List[Candidate]:
        """Top picks from ``text`` that currently have fresh analysis"""
        picks = self.extractor.extract_top_picks(text)
        fresh = [c for c in picks if self.index.is_fresh(c.ticker)]
        logger.debug(f"{len(fresh)}/{len(picks)} top picks have fresh analysis")
        return fresh

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _precheck(self, message: ChatMessage) -> Optional[str]:
        self.stats['messages_seen'] += 1
        if message.is_bot:
            return 'bot'
        if not message.text or not message.text.strip():
            return 'empty'

        self._learn_manager_symbols(message)

        channels = self.config.analysis_channel_ids
        if channels and message.channel_id not in channels:
            return 'channel'
        if self.config.skip_daily_updates and is_daily_update(message.text):
            return 'daily_update'
        return None

    def _learn_manager_symbols(self, message: ChatMessage):
        if self.allowlist is None or not self.config.learn_manager_symbols:
            return
        if message.author_id not in self.config.manager_ids:
            return
        learned = self.allowlist.learn_from_admin_message(
            message.text, message.author_id, message.id, added_at=message.created_at
        )
        self.stats['manager_symbols_learned'] += len(learned)

    def _symbol_text(self, cleaned: str) -> str:
        if self.extractor.config.headline_only:
            return self.text_processor.headline(cleaned)
        return cleaned

    def _skipped(self, message: ChatMessage, reason: str) -> IndexingResult:
        self.stats['messages_skipped'] += 1
        logger.debug(f"Skipping message {message.id}: {reason}")
        return IndexingResult(message_id=message.id, skipped_reason=reason)

    def _score_and_record(self, message: ChatMessage, cleaned: str,
                          candidates: List[Candidate]) -> IndexingResult:
        result = IndexingResult(message_id=message.id, candidates=candidates)
        if not candidates:
            self.stats['messages_without_tickers'] += 1
            result.skipped_reason = 'no_tickers'
            return result

        breakdown = self.scorer.breakdown(cleaned, len(candidates), message.is_reply)
        result.relevance = breakdown
        if not self.prescorer.predict(cleaned, len(candidates), message.is_reply):
            self.stats['messages_rejected'] += 1
            result.skipped_reason = 'list_pattern' if breakdown.is_list else 'low_relevance'
            logger.debug(f"Message {message.id} rejected with relevance {breakdown.score:.2f}")
            return result

        record = AnalysisRecord.from_message(
            message,
            tickers=[c.ticker for c in candidates],
            relevance_score=breakdown.score,
            urls=self.url_extractor.extract(message),
            platform_url=self.platform_url,
        )
        for ticker in record.tickers:
            self.index.record(ticker, record)
            self.stats['ticker_updates'] += 1

        self.stats['messages_indexed'] += 1
        result.indexed = True
        result.record = record
        logger.info(f"✅ Indexed message {message.id} for {', '.join(record.tickers)} "
                    f"(relevance {breakdown.score:.2f})")
        return result

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()
