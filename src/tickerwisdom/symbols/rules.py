"""
Confidence rules for the symbol extractor.

Every rule is a pure function of ``(CandidateDraft, ScanContext)`` that
returns a new draft. The extractor runs them in order and clamps the result,
so each contribution can be checked in isolation.
"""
from abc import ABC, abstractmethod
from functools import reduce
from typing import List, Optional, Sequence

from .lexicon import Lexicon
from .state import CandidateDraft, ExtractionConfig, ScanContext
from .technical import TechnicalContextDetector


class ConfidenceRule(ABC):
    """Abstract base class for confidence contributions"""

    name: str = "rule"

    @abstractmethod
    def apply(self, draft: CandidateDraft, context: ScanContext) -> CandidateDraft:
        """Return the draft with this rule's contribution applied"""
        pass


class PrefixRule(ConfidenceRule):
    name = "prefix"

    def __init__(self, dollar_bonus: float = 0.4, hash_bonus: float = 0.3):
        self.bonuses = {'$': dollar_bonus, '#': hash_bonus}

    def apply(self, draft, context):
        return draft.adjust(self.name, self.bonuses.get(draft.prefix, 0.0))


class StockKeywordRule(ConfidenceRule):
    """Any English stock-vocabulary word anywhere in the text"""
    name = "stock_keyword"

    def __init__(self, lexicon: Lexicon, bonus: float = 0.2):
        self.lexicon = lexicon
        self.bonus = bonus

    def apply(self, draft, context):
        if self.lexicon.has_stock_keyword(context.lowered):
            return draft.adjust(self.name, self.bonus)
        return draft


class HebrewKeywordRule(ConfidenceRule):
    """Strongest Hebrew tier present; tiers do not stack"""
    name = "hebrew_keyword"

    def __init__(self, lexicon: Lexicon, weights=(0.3, 0.2, 0.1)):
        self.lexicon = lexicon
        self.weights = tuple(weights)

    def apply(self, draft, context):
        return draft.adjust(self.name, self.lexicon.hebrew_keywords.best_tier_bonus(context.text, self.weights))


class LengthRule(ConfidenceRule):
    name = "length"

    def __init__(self, bonus: float = 0.1, min_length: int = 2, max_length: int = 4):
        self.bonus = bonus
        self.min_length = min_length
        self.max_length = max_length

    def apply(self, draft, context):
        if self.min_length <= len(draft.ticker) <= self.max_length:
            return draft.adjust(self.name, self.bonus)
        return draft


class WhitespaceRule(ConfidenceRule):
    """Token (prefix included) has whitespace on both sides; text edges do not count"""
    name = "whitespace"

    def __init__(self, bonus: float = 0.1):
        self.bonus = bonus

    def apply(self, draft, context):
        before = context.char_before(draft)
        after = context.char_after(draft)
        if before is not None and after is not None and before.isspace() and after.isspace():
            return draft.adjust(self.name, self.bonus)
        return draft


class AllowlistRule(ConfidenceRule):
    name = "allowlist"

    def __init__(self, bonus: float = 0.4):
        self.bonus = bonus

    def apply(self, draft, context):
        if draft.ticker in context.allowlisted:
            return draft.adjust(self.name, self.bonus)
        return draft


class TechnicalContextRule(ConfidenceRule):
    """Subtracts the technical/geographic confusion penalty"""
    name = "technical_context"

    def __init__(self, detector: Optional[TechnicalContextDetector] = None):
        self.detector = detector or TechnicalContextDetector()

    def apply(self, draft, context):
        penalty = self.detector.penalty(draft.ticker, context.text, draft.offset)
        return draft.adjust(self.name, -penalty)


def default_rules(lexicon: Lexicon, config: Optional[ExtractionConfig] = None) -> List[ConfidenceRule]:
    config = config or ExtractionConfig()
    rules: List[ConfidenceRule] = [
        PrefixRule(),
        StockKeywordRule(lexicon),
        HebrewKeywordRule(lexicon),
        LengthRule(),
        WhitespaceRule(),
        AllowlistRule(),
    ]
    if config.technical_penalty:
        rules.append(TechnicalContextRule())
    return rules


def score_draft(draft: CandidateDraft,
                context: ScanContext,
                rules: Sequence[ConfidenceRule],
                base_confidence: float = 0.5) -> CandidateDraft:
    """Start from ``base_confidence``, run every rule, clamp to [0, 1]"""
    seeded = draft.adjust("base", base_confidence - draft.confidence)
    return reduce(lambda d, rule: rule.apply(d, context), rules, seeded).clamped()


def passes_threshold(draft: CandidateDraft, context: ScanContext, config: ExtractionConfig) -> bool:
    if draft.confidence >= config.min_confidence:
        return True
    return draft.ticker in context.allowlisted and draft.confidence >= config.min_allowlisted_confidence
