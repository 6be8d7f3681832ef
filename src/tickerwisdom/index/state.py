from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from tickerwisdom.chat.state import ChatMessage, ExtractedUrls
from tickerwisdom.chat.urls import DEFAULT_PLATFORM_URL, build_message_url


@dataclass(frozen=True)
class AnalysisRecord:
    """One indexed analysis message; shared by every ticker it mentions"""
    source_message_id: str
    source_channel_id: str
    author_id: str
    raw_text: str
    tickers: Tuple[str, ...]
    timestamp: datetime
    relevance_score: float
    canonical_url: str
    chart_urls: Tuple[str, ...] = ()
    attachment_urls: Tuple[str, ...] = ()
    has_charts: bool = False

    def __post_init__(self):
        # Frozen: normalise through object.__setattr__
        object.__setattr__(self, 'tickers', tuple(self.tickers))
        object.__setattr__(self, 'chart_urls', tuple(self.chart_urls))
        object.__setattr__(self, 'attachment_urls', tuple(self.attachment_urls))
        if self.timestamp.tzinfo is None:
            object.__setattr__(self, 'timestamp', self.timestamp.replace(tzinfo=timezone.utc))
        if not 0.0 <= self.relevance_score <= 1.0:
            raise ValueError(f"relevance_score must be within [0, 1], got {self.relevance_score}")

    @classmethod
    def from_message(cls,
                     message: ChatMessage,
                     tickers: Iterable[str],
                     relevance_score: float,
                     urls: Optional[ExtractedUrls] = None,
                     platform_url: str = DEFAULT_PLATFORM_URL) -> 'AnalysisRecord':
        urls = urls or ExtractedUrls()
        return cls(
            source_message_id=message.id,
            source_channel_id=message.channel_id,
            author_id=message.author_id,
            raw_text=message.text,
            tickers=tuple(tickers),
            timestamp=message.created_at,
            relevance_score=relevance_score,
            canonical_url=build_message_url(message.guild_id, message.channel_id, message.id, platform_url),
            chart_urls=tuple(urls.chart_urls),
            attachment_urls=tuple(urls.attachment_urls),
            has_charts=urls.has_charts,
        )

    def age(self, now: datetime) -> timedelta:
        return now - self.timestamp

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        data['tickers'] = list(self.tickers)
        data['chart_urls'] = list(self.chart_urls)
        data['attachment_urls'] = list(self.attachment_urls)
        return data


@dataclass
class IndexConfig:
    """Configuration for the live analysis index"""
    history_cap: int = 20
    freshness_days: float = 7.0
    default_recent: int = 3
    # (max age in hours, decay weight), youngest first
    decay_tiers: Tuple[Tuple[float, float], ...] = ((1, 1.0), (6, 0.8), (24, 0.6), (72, 0.4))
    stale_decay: float = 0.2
    prune_interval_seconds: float = 3600.0

    def __post_init__(self):
        """Validate field constraints after initialization"""
        if self.history_cap < 1:
            raise ValueError("history_cap must be positive")
        if self.freshness_days <= 0:
            raise ValueError("freshness_days must be positive")
        if self.prune_interval_seconds <= 0:
            raise ValueError("prune_interval_seconds must be positive")
        self.decay_tiers = tuple(tuple(t) for t in self.decay_tiers)
        hours = [t[0] for t in self.decay_tiers]
        if hours != sorted(hours):
            raise ValueError("decay_tiers must be ordered by age")

    @property
    def freshness_window(self) -> timedelta:
        return timedelta(days=self.freshness_days)


def time_decay(age: timedelta,
               tiers: Sequence[Tuple[float, float]] = IndexConfig.decay_tiers,
               stale: float = IndexConfig.stale_decay) -> float:
    """1.0 within an hour, 0.8 within 6h, 0.6 within a day, 0.4 within 3 days, else 0.2"""
    hours = age.total_seconds() / 3600
    for max_hours, weight in tiers:
        if hours <= max_hours:
            return weight
    return stale
