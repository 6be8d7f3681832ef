import logging
import re
from dataclasses import dataclass
from typing import Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TechnicalPattern:
    pattern: re.Pattern
    description: str


TECHNICAL_PATTERNS: Tuple[TechnicalPattern, ...] = (
    TechnicalPattern(re.compile(r'\b\d+\s?W[HL]\b', re.IGNORECASE), 'week high/low (52WH, 52 WL)'),
    TechnicalPattern(re.compile(r'\b(?:52|week|new)\b[^\n]{0,20}?\bW[HL]\b', re.IGNORECASE), 'week high reference'),
    TechnicalPattern(re.compile(r'\b(?:EMA|SMA|DMA)\s?\d+\b|\b\d+\s?(?:EMA|SMA|DMA)\b', re.IGNORECASE), 'moving average'),
    TechnicalPattern(re.compile(r'\b(?:RSI|MACD|BB)\s?\d+\b', re.IGNORECASE), 'indicator with period'),
    TechnicalPattern(re.compile(r'\b(?:AVWAP|ATH|ATL)\b', re.IGNORECASE), 'price level'),
)

GEOGRAPHIC_PATTERN = re.compile(
    r'\b(US|UK|EU|CA|JP|CN|DE|FR|IT|ES|KR|AU)\s+'
    r'(?:market|markets|indices|index|economy|economic|conditions|performance|outlook|data)\b'
)

CONFUSABLE_TOKENS = frozenset({
    'WH', 'WL', 'EMA', 'SMA', 'DMA', 'RSI', 'MACD', 'BB', 'ATR', 'ADX', 'CCI', 'MFI',
    'ATH', 'ATL', 'SP', 'DOW', 'VIX', 'US', 'UK', 'EU', 'CA', 'JP', 'CN', 'AU',
})

SYMBOL_SPECIFIC_KEYWORDS = (
    'ticker', 'shares', 'equity', 'trade', 'buy', 'sell', 'target',
    'price target', 'analysis', 'bullish', 'bearish', 'chart',
)


class TechnicalContextDetector:
    """
    Penalises tokens that are part of technical notation or geographic phrases.

    ``52 WH`` (week high), ``EMA 20`` and ``US market`` all produce
    ticker-shaped tokens that are not tickers.
    """

    def __init__(self,
                 context_penalty: float = 1.5,
                 confusable_penalty: float = 0.2,
                 window: int = 30):
        self.context_penalty = context_penalty
        self.confusable_penalty = confusable_penalty
        self.window = window

    def _window(self, text: str, offset: int, length: int, window: int) -> Tuple[str, int]:
        start = max(0, offset - window)
        return text[start:offset + length + window], offset - start

    def is_in_technical_context(self, symbol: str, text: str, offset: int) -> bool:
        context, local = self._window(text, offset, len(symbol), self.window)
        for tech in TECHNICAL_PATTERNS:
            for match in tech.pattern.finditer(context):
                if match.start() <= local < match.end():
                    logger.debug(f"{symbol} is part of {tech.description}: '{match.group(0)}'")
                    return True
        for match in GEOGRAPHIC_PATTERN.finditer(context):
            if match.start(1) == local and match.group(1) == symbol:
                logger.debug(f"{symbol} is a geographic reference: '{match.group(0)}'")
                return True
        return False

    def has_strong_indicators(self, symbol: str, text: str, offset: int) -> bool:
        if offset > 0 and text[offset - 1] in '$#':
            return True
        context, _ = self._window(text, offset, len(symbol), 50)
        lowered = context.lower()
        sym = re.escape(symbol.lower())
        for keyword in SYMBOL_SPECIFIC_KEYWORDS:
            kw = re.escape(keyword)
            if re.search(rf'\b{kw}\b.*\b{sym}\b|\b{sym}\b.*\b{kw}\b', lowered):
                return True
        return False

    def penalty(self, symbol: str, text: str, offset: int) -> float:
        if self.has_strong_indicators(symbol, text, offset):
            return 0.0
        if self.is_in_technical_context(symbol, text, offset):
            return self.context_penalty
        if symbol in CONFUSABLE_TOKENS:
            return self.confusable_penalty
        return 0.0
