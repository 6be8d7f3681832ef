from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional, Tuple


class Priority(Enum):
    """Where a ticker came from; lower rank wins ties"""
    TOP_LONG = "top_long"
    TOP_SHORT = "top_short"
    REGULAR = "regular"

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]


PRIORITY_RANK: Dict[Priority, int] = {
    Priority.TOP_LONG: 0,
    Priority.TOP_SHORT: 1,
    Priority.REGULAR: 2,
}


@dataclass(frozen=True)
class Candidate:
    """A ticker extraction with confidence and priority"""
    ticker: str
    confidence: float
    source_offset: int = 0
    priority: Priority = Priority.REGULAR

    def sort_key(self) -> Tuple[int, float, int]:
        return (self.priority.rank, -self.confidence, self.source_offset)

    def dedup_key(self) -> Tuple[float, int, int]:
        return (-self.confidence, self.priority.rank, self.source_offset)


@dataclass(frozen=True)
class CandidateDraft:
    """
    Candidate-in-progress flowing through the confidence rules.

    Each rule returns a new draft; nothing is mutated in place, so every
    pass can be tested on its own.
    """
    ticker: str
    offset: int
    prefix: str = ""
    confidence: float = 0.0
    adjustments: Tuple[Tuple[str, float], ...] = ()

    @property
    def end(self) -> int:
        return self.offset + len(self.ticker)

    @property
    def start(self) -> int:
        """Offset including the $/# prefix"""
        return self.offset - len(self.prefix)

    @property
    def is_single_letter(self) -> bool:
        return len(self.ticker) == 1

    def adjust(self, reason: str, amount: float) -> 'CandidateDraft':
        if not amount:
            return self
        return replace(
            self,
            confidence=self.confidence + amount,
            adjustments=self.adjustments + ((reason, amount),),
        )

    def clamped(self) -> 'CandidateDraft':
        bounded = min(1.0, max(0.0, self.confidence))
        if bounded == self.confidence:
            return self
        return replace(self, confidence=bounded)

    def to_candidate(self, priority: Priority = Priority.REGULAR) -> Candidate:
        return Candidate(
            ticker=self.ticker,
            confidence=round(min(1.0, max(0.0, self.confidence)), 4),
            source_offset=self.offset,
            priority=priority,
        )


@dataclass
class ExtractionConfig:
    """Configuration for the multi-pass symbol extractor"""
    base_confidence: float = 0.5
    min_confidence: float = 0.3
    min_allowlisted_confidence: float = 0.2
    max_freeform_candidates: int = 25

    # Pass 2
    context_trust_min_accepted: int = 2
    context_trust_bonus: float = 0.2
    prefix_recovery: bool = True     # admit $X/#X without history corroboration
    prefix_recovery_bonus: float = 0.1
    adjacency_bonus: float = 0.15

    # Pipeline behaviour
    headline_only: bool = True       # detect symbols on the first line only
    technical_penalty: bool = False

    def __post_init__(self):
        """Validate field constraints after initialization"""
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ValueError("min_confidence must be between 0.0 and 1.0")
        if not 0.0 <= self.min_allowlisted_confidence <= self.min_confidence:
            raise ValueError("min_allowlisted_confidence must be between 0.0 and min_confidence")
        if self.max_freeform_candidates < 1:
            raise ValueError("max_freeform_candidates must be positive")
        if self.context_trust_min_accepted < 1:
            raise ValueError("context_trust_min_accepted must be positive")


@dataclass
class CorroborationConfig:
    """Configuration for the history-backed Pass 3"""
    channel_ids: Tuple[str, ...] = field(default_factory=tuple)
    messages_per_channel: int = 50
    request_delay: float = 0.1
    bonus: float = 0.3

    def __post_init__(self):
        self.channel_ids = tuple(str(c) for c in self.channel_ids)
        if not 1 <= self.messages_per_channel <= 100:
            raise ValueError("messages_per_channel must be between 1 and 100")
        if self.request_delay < 0:
            raise ValueError("request_delay cannot be negative")


@dataclass(frozen=True)
class ScanContext:
    """Everything a confidence rule may look at besides the draft itself"""
    text: str
    lowered: str
    allowlisted: frozenset = frozenset()
    top_picks_context: bool = False

    def char_before(self, draft: CandidateDraft) -> Optional[str]:
        start = draft.start
        return self.text[start - 1] if start > 0 else None

    def char_after(self, draft: CandidateDraft) -> Optional[str]:
        return self.text[draft.end] if draft.end < len(self.text) else None
