import logging
from typing import Optional

from tickerwisdom.symbols.lexicon import Lexicon
from .list_patterns import ListPatternDetector
from .state import RelevanceBreakdown, RelevanceConfig

logger = logging.getLogger(__name__)


class RelevanceScorer:
    """
    Heuristic [0, 1] score of how much a message reads like real analysis.

    List-shaped text short-circuits to ``list_score``. Otherwise the score
    starts at ``base_score`` and collects a ticker-density penalty, keyword
    bonuses (English per keyword, Hebrew by best tier), length bonuses, a
    ticker-count shape bonus and an optional reply bonus, then is clamped.
    """

    def __init__(self,
                 lexicon: Optional[Lexicon] = None,
                 config: Optional[RelevanceConfig] = None,
                 list_detector: Optional[ListPatternDetector] = None):
        self.lexicon = lexicon or Lexicon.default()
        self.config = config or RelevanceConfig()
        self.list_detector = list_detector or ListPatternDetector(self.config)

    def score(self, text: str, ticker_count: int, is_reply: bool = False) -> float:
        return self.breakdown(text, ticker_count, is_reply).score

    def is_relevant(self, text: str, ticker_count: int, is_reply: bool = False) -> bool:
        return self.score(text, ticker_count, is_reply) >= self.config.threshold

    def breakdown(self, text: str, ticker_count: int, is_reply: bool = False) -> RelevanceBreakdown:
        cfg = self.config
        text = text or ""

        list_match = self.list_detector.detect(text)
        if list_match.is_list:
            return RelevanceBreakdown(
                score=cfg.list_score,
                is_list=True,
                components={'list_pattern': cfg.list_score},
            )

        components = {'base': cfg.base_score}
        components['density_penalty'] = -self.density_penalty(text, ticker_count)

        english_hits = self.lexicon.relevance_keywords.hits(text)
        strong_w, medium_w, weak_w = cfg.keyword_weights
        components['english_keywords'] = (
            len(english_hits['strong']) * strong_w
            + len(english_hits['medium']) * medium_w
            + len(english_hits['weak']) * weak_w
        )
        components['hebrew_keywords'] = self.lexicon.hebrew_keywords.best_tier_bonus(text, cfg.keyword_weights)
        components['length'] = cfg.length_bonus * sum(1 for limit in cfg.length_thresholds if len(text) > limit)
        components['ticker_shape'] = self.ticker_shape_bonus(ticker_count)
        components['reply'] = cfg.reply_bonus if is_reply else 0.0

        raw = sum(components.values())
        score = round(min(1.0, max(0.0, raw)), 4)
        logger.debug(f"Relevance {score:.2f} for {ticker_count} tickers ({len(text)} chars)")
        return RelevanceBreakdown(
            score=score,
            components=components,
            keyword_hits={tier: list(hits) for tier, hits in english_hits.items() if hits},
        )

    def density_penalty(self, text: str, ticker_count: int) -> float:
        if ticker_count <= self.config.density_min_tickers:
            return 0.0
        words_per_ticker = len(text.split()) / ticker_count
        for min_words, penalty in self.config.density_tiers:
            if words_per_ticker >= min_words:
                return penalty
        return self.config.density_tiers[-1][1]

    def ticker_shape_bonus(self, ticker_count: int) -> float:
        cfg = self.config
        if ticker_count == 1:
            return cfg.single_ticker_bonus
        if 2 <= ticker_count <= 3:
            return cfg.few_tickers_bonus
        if ticker_count > 5:
            return -cfg.crowded_ticker_step * (ticker_count - 5)
        return 0.0
