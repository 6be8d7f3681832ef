from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from tickerwisdom.index.state import AnalysisRecord
from tickerwisdom.relevance.state import RelevanceBreakdown
from tickerwisdom.symbols.state import Candidate


@dataclass
class LinkerConfig:
    """Which messages the live pipeline looks at"""
    analysis_channel_ids: Tuple[str, ...] = field(default_factory=tuple)  # empty: every channel
    manager_ids: Tuple[str, ...] = field(default_factory=tuple)
    learn_manager_symbols: bool = True
    skip_daily_updates: bool = True

    def __post_init__(self):
        self.analysis_channel_ids = tuple(str(c) for c in self.analysis_channel_ids)
        self.manager_ids = tuple(str(m) for m in self.manager_ids)


@dataclass
class ReconciliationConfig:
    """Configuration for the backlog reconciliation pass"""
    lookback_days: float = 7.0
    page_size: int = 100
    max_pages: int = 50
    request_delay: float = 0.1
    score_margin: float = 0.1
    min_relevance: Optional[float] = 0.7   # None keeps every scored message
    chart_bonus: float = 0.1

    def __post_init__(self):
        """Validate field constraints after initialization"""
        if self.lookback_days <= 0:
            raise ValueError("lookback_days must be positive")
        if not 1 <= self.page_size <= 100:
            raise ValueError("page_size must be between 1 and 100")
        if self.max_pages < 1:
            raise ValueError("max_pages must be positive")
        if self.score_margin < 0:
            raise ValueError("score_margin cannot be negative")
        if self.min_relevance is not None and not 0.0 <= self.min_relevance <= 1.0:
            raise ValueError("min_relevance must be between 0.0 and 1.0")


@dataclass
class IndexingResult:
    """What the live pipeline did with one message"""
    message_id: str
    indexed: bool = False
    candidates: List[Candidate] = field(default_factory=list)
    relevance: Optional[RelevanceBreakdown] = None
    record: Optional[AnalysisRecord] = None
    skipped_reason: Optional[str] = None

    @property
    def tickers(self) -> List[str]:
        return list(self.record.tickers) if self.record else []


@dataclass
class ChannelScanStats:
    channel_id: str
    pages: int = 0
    messages_scanned: int = 0
    messages_skipped: int = 0
    messages_failed: int = 0
    records_kept: int = 0
    failed: bool = False
    error: Optional[str] = None


@dataclass
class ReconciliationResult:
    """Outcome of one backlog pass"""
    records: Dict[str, AnalysisRecord] = field(default_factory=dict)
    channels: List[ChannelScanStats] = field(default_factory=list)
    aborted: bool = False

    @property
    def failed_channels(self) -> List[str]:
        return [c.channel_id for c in self.channels if c.failed]

    @property
    def messages_scanned(self) -> int:
        return sum(c.messages_scanned for c in self.channels)
