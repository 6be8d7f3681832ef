from dataclasses import dataclass, field
from typing import Dict, List, Tuple


@dataclass
class RelevanceConfig:
    """Configuration for the analysis-quality score"""
    threshold: float = 0.7
    base_score: float = 0.3
    list_score: float = 0.1

    # List-pattern detection
    min_list_separators: int = 3
    min_list_coverage: float = 0.3
    min_bare_tickers: int = 6
    max_words_per_bare_ticker: float = 1.5

    # Density penalty applies above this many tickers
    density_min_tickers: int = 3
    # (minimum words per ticker, penalty) from most to least lenient
    density_tiers: Tuple[Tuple[float, float], ...] = ((5.0, 0.0), (3.0, 0.2), (2.0, 0.3), (0.0, 0.4))

    # Keyword weights per tier (strong, medium, weak)
    keyword_weights: Tuple[float, float, float] = (0.3, 0.2, 0.1)

    length_thresholds: Tuple[int, ...] = (200, 400)
    length_bonus: float = 0.1

    single_ticker_bonus: float = 0.2
    few_tickers_bonus: float = 0.1
    crowded_ticker_step: float = 0.05

    reply_bonus: float = 0.2

    def __post_init__(self):
        """Validate field constraints after initialization"""
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError("threshold must be between 0.0 and 1.0")
        if not 0.0 <= self.min_list_coverage <= 1.0:
            raise ValueError("min_list_coverage must be between 0.0 and 1.0")
        self.density_tiers = tuple(tuple(t) for t in self.density_tiers)
        minimums = [t[0] for t in self.density_tiers]
        if minimums != sorted(minimums, reverse=True):
            raise ValueError("density_tiers must be ordered from most to least lenient")
        self.keyword_weights = tuple(self.keyword_weights)
        self.length_thresholds = tuple(self.length_thresholds)


@dataclass
class ListPatternMatch:
    """Why a text was classified as a ticker list"""
    is_list: bool
    separator_count: int = 0
    coverage: float = 0.0
    bare_ticker_count: int = 0
    words_per_ticker: float = 0.0
    reason: str = ""


@dataclass
class RelevanceBreakdown:
    """Itemised relevance score; ``score`` is the clamped total"""
    score: float
    is_list: bool = False
    components: Dict[str, float] = field(default_factory=dict)
    keyword_hits: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def raw_total(self) -> float:
        return sum(self.components.values())
