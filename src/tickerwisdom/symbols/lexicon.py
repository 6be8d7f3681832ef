import logging
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple, Union

import yaml

logger = logging.getLogger(__name__)

TICKER_SHAPE = re.compile(r'^[A-Z]{1,5}$')

# =============================================================================
# Curated defaults
# =============================================================================

COMMON_WORDS = frozenset({
    'THE', 'AND', 'FOR', 'ARE', 'BUT', 'NOT', 'YOU', 'ALL', 'CAN', 'HER', 'WAS',
    'ONE', 'OUR', 'HAD', 'HAS', 'HIS', 'HOW', 'MAN', 'NEW', 'NOW', 'OLD', 'SEE',
    'TWO', 'WHO', 'BOY', 'DID', 'ITS', 'LET', 'PUT', 'SAY', 'SHE', 'TOO', 'USE',
    'DAY', 'GET', 'MAY', 'WAY', 'GOT', 'OUT', 'TOP', 'RUN', 'TRY', 'WIN', 'YES',
    'YET', 'BAD', 'BIG', 'END', 'FAR', 'FEW', 'LOT', 'OFF', 'RED', 'SET', 'SIX',
    'TEN', 'THIS', 'THAT', 'WHAT', 'WHEN', 'WHERE', 'WHICH', 'WHILE', 'WITH',
    'WILL', 'WELL', 'VERY', 'THAN', 'THEY', 'THEM', 'THEN', 'THERE', 'THESE',
    'THOSE', 'WANT', 'WORK', 'YEAR', 'OVER', 'INTO', 'FROM', 'BEEN', 'HAVE',
    'ONLY', 'SOME', 'TIME', 'BACK', 'AFTER', 'FIRST', 'QUICK', 'BROWN', 'FOX',
    'JUMPS', 'DIAMOND', 'HANDS', 'LOL', 'OMG', 'IMO', 'FYI',
})

MARKET_JARGON = frozenset({
    'EMA', 'DMA', 'SMA', 'RSI', 'MACD', 'VWAP', 'AVWAP', 'ATH', 'ATL', 'HTF',
    'HOD', 'LOD', 'EPS', 'ETF', 'CPI', 'GDP', 'FOMC', 'FED', 'YTD', 'OTC',
    'USD', 'CEO', 'IPO', 'SEC', 'FDA', 'LONG', 'SHORT', 'PICKS',
})

SERVICE_NAMES = frozenset({
    'IBD', 'IBD50', 'API', 'URL', 'PDF', 'FAQ', 'NYSE',
})

# Index and macro tickers that collide with jargon but are real symbols
DEFAULT_ALLOWLIST = frozenset({
    'SPY', 'QQQ', 'IWM', 'TLT', 'VIX', 'GDX', 'DXY',
})

STOCK_KEYWORDS = (
    'stock', 'ticker', 'symbol', 'shares', 'equity', 'trade',
    'buy', 'sell', 'analysis', 'chart', 'price', 'target',
)


@dataclass(frozen=True)
class KeywordTiers:
    """Three-tier keyword table; hits are plain substring matches"""
    strong: Tuple[str, ...] = ()
    medium: Tuple[str, ...] = ()
    weak: Tuple[str, ...] = ()
    case_sensitive: bool = False

    def _prepare(self, text: str) -> str:
        return text if self.case_sensitive else text.lower()

    def _matches(self, keywords: Iterable[str], text: str) -> Tuple[str, ...]:
        if self.case_sensitive:
            return tuple(kw for kw in keywords if kw in text)
        return tuple(kw for kw in keywords if kw.lower() in text)

    def hits(self, text: str) -> Dict[str, Tuple[str, ...]]:
        prepared = self._prepare(text or "")
        return {
            'strong': self._matches(self.strong, prepared),
            'medium': self._matches(self.medium, prepared),
            'weak': self._matches(self.weak, prepared),
        }

    def best_tier_bonus(self, text: str, weights: Tuple[float, float, float] = (0.3, 0.2, 0.1)) -> float:
        """Bonus of the strongest tier with at least one hit (tiers do not stack)"""
        hits = self.hits(text)
        for tier, weight in zip(('strong', 'medium', 'weak'), weights):
            if hits[tier]:
                return weight
        return 0.0

    def extended(self, data: Dict[str, Iterable[str]]) -> 'KeywordTiers':
        return replace(
            self,
            strong=self.strong + tuple(data.get('strong', ())),
            medium=self.medium + tuple(data.get('medium', ())),
            weak=self.weak + tuple(data.get('weak', ())),
        )


ENGLISH_RELEVANCE_KEYWORDS = KeywordTiers(
    strong=('analysis', 'target', 'price target', 'bullish', 'bearish', 'recommendation'),
    medium=('chart', 'technical', 'support', 'resistance', 'breakout', 'trend'),
    weak=('buy', 'sell', 'hold', 'watch', 'trade'),
)

HEBREW_KEYWORDS = KeywordTiers(
    strong=(
        'ברייקאאוט', 'פריצה', 'relative strength', 'שיא', 'ווליום', 'ממוצע',
        'AVWAP', 'EMA20', '50DMA', 'HTF', 'קו פריצה', 'בלו סקייס', 'אלכסון',
        'קונסולדיציה', 'ריטטס', 'אינסייד קנדל', 'falling wedge', 'ליברמור', 'ATH',
    ),
    medium=(
        'עולה', 'נע', 'מעל', 'שמירה', 'המשכיות', 'טרנד', 'מומנטום', 'סטאפ',
        'באונס', 'כריטסט', 'רייד ווינרס', 'IBD50', 'Sector Leaders', 'פוקוס',
    ),
    weak=('מניה', 'מניית', 'watch', 'יום', 'שבוע', 'חדש', 'נהדר'),
    case_sensitive=True,
)


@dataclass(frozen=True)
class Lexicon:
    """
    Immutable gazetteer, allowlist and keyword tables.

    Build one with ``Lexicon.default()`` or ``Lexicon.from_file(path)`` and
    inject it into the extractor and scorer. Tests derive variants with
    ``dataclasses.replace``.
    """
    disallowed: FrozenSet[str] = field(default_factory=frozenset)
    allowlist: FrozenSet[str] = field(default_factory=frozenset)
    single_letter_symbols: FrozenSet[str] = frozenset({'A', 'I'})
    stock_keywords: Tuple[str, ...] = STOCK_KEYWORDS
    relevance_keywords: KeywordTiers = ENGLISH_RELEVANCE_KEYWORDS
    hebrew_keywords: KeywordTiers = HEBREW_KEYWORDS

    @classmethod
    def default(cls) -> 'Lexicon':
        return cls(
            disallowed=COMMON_WORDS | MARKET_JARGON | SERVICE_NAMES,
            allowlist=DEFAULT_ALLOWLIST,
        )

    @classmethod
    def from_file(cls, path: Union[str, Path], base: Optional['Lexicon'] = None) -> 'Lexicon':
        """
        Load overrides from a YAML file on top of ``base`` (defaults if omitted).

        Recognised keys: ``disallowed``, ``allowlist``, ``remove_disallowed``,
        ``stock_keywords``, ``relevance_keywords`` and ``hebrew_keywords``
        (the last two as ``{strong: [...], medium: [...], weak: [...]}``).
        """
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as file:
            data = yaml.safe_load(file) or {}
        lexicon = (base or cls.default()).merged(data)
        logger.info(
            f"Loaded lexicon overrides from {path}: "
            f"{len(lexicon.disallowed)} disallowed, {len(lexicon.allowlist)} allowlisted"
        )
        return lexicon

    def merged(self, data: Dict[str, Any]) -> 'Lexicon':
        unknown = set(data) - {
            'disallowed', 'allowlist', 'remove_disallowed', 'stock_keywords',
            'relevance_keywords', 'hebrew_keywords',
        }
        if unknown:
            raise ValueError(f"Unknown lexicon keys: {sorted(unknown)}")

        disallowed = (self.disallowed | _upper_set(data.get('disallowed', ()))) \
            - _upper_set(data.get('remove_disallowed', ()))
        return replace(
            self,
            disallowed=disallowed,
            allowlist=self.allowlist | _upper_set(data.get('allowlist', ())),
            stock_keywords=self.stock_keywords + tuple(data.get('stock_keywords', ())),
            relevance_keywords=self.relevance_keywords.extended(data.get('relevance_keywords') or {}),
            hebrew_keywords=self.hebrew_keywords.extended(data.get('hebrew_keywords') or {}),
        )

    def is_allowlisted(self, token: str) -> bool:
        return token in self.allowlist

    def is_valid_symbol(self, token: str, extra_allowlist: Iterable[str] = ()) -> bool:
        """Gazetteer check: shape, allowlist override, disallow list, single letters"""
        if not token or not TICKER_SHAPE.match(token):
            return False
        if token in self.allowlist or token in extra_allowlist:
            return True
        if token in self.disallowed:
            return False
        if len(token) == 1:
            return token in self.single_letter_symbols
        return True

    def has_stock_keyword(self, lowered_text: str) -> bool:
        return any(kw in lowered_text for kw in self.stock_keywords)


def _upper_set(values: Iterable[str]) -> FrozenSet[str]:
    return frozenset(str(v).strip().upper() for v in values if str(v).strip())
