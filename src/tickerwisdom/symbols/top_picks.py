import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from .lexicon import Lexicon
from .state import Candidate, Priority

logger = logging.getLogger(__name__)

TOP_PICKS_MARKER = re.compile(r'(?:❕\s*)?(?:טופ פיקס|top\s*picks?)\s*[:：]?', re.IGNORECASE)
LONG_LINE = re.compile(r'(?:📈\s*)?(?<![A-Za-z])long\s*[:：]\s*(.*?)(?=📉|(?<![A-Za-z])short\s*[:：]|$)', re.IGNORECASE)
SHORT_LINE = re.compile(r'(?:📉\s*)?(?<![A-Za-z])short\s*[:：]\s*(.*?)(?=📈|(?<![A-Za-z])long\s*[:：]|$)', re.IGNORECASE)
SEPARATORS = re.compile(r'[,，、/／|;；\s]+')
TOKEN = re.compile(r'(?<![A-Za-z0-9])[A-Z]{1,5}(?![A-Za-z0-9])')


@dataclass
class TopPicksResult:
    long_picks: List[str] = field(default_factory=list)
    short_picks: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.long_picks) + len(self.short_picks)

    def to_candidates(self) -> List[Candidate]:
        candidates = [Candidate(t, 1.0, 0, Priority.TOP_LONG) for t in self.long_picks]
        candidates += [Candidate(t, 1.0, 0, Priority.TOP_SHORT) for t in self.short_picks]
        return candidates


class TopPicksParser:
    """
    Parses the curated "top picks" block of a daily update:

        ❕ טופ פיקס:
        📈 long: AAPL, MSFT / F
        📉 short: TSLA

    No limit is applied to the number of picks.
    """

    def __init__(self, lexicon: Optional[Lexicon] = None):
        self.lexicon = lexicon or Lexicon.default()

    def has_top_picks(self, text: str) -> bool:
        return bool(text) and TOP_PICKS_MARKER.search(text) is not None

    def parse(self, text: str) -> TopPicksResult:
        result = TopPicksResult()
        if not text:
            return result

        marker = TOP_PICKS_MARKER.search(text)
        if marker is None:
            logger.debug("No top picks section found in message")
            return result

        long_found = short_found = False
        for line in text[marker.start():].split('\n'):
            long_match = LONG_LINE.search(line)
            if long_match and not long_found:
                result.long_picks = self.extract_symbols(long_match.group(1))
                long_found = True
            # both sides may share one line
            short_match = SHORT_LINE.search(line)
            if short_match and not short_found:
                result.short_picks = self.extract_symbols(short_match.group(1))
                short_found = True
            if long_found and short_found:
                break

        if result.total:
            logger.info(f"Parsed top picks: {len(result.long_picks)} long, {len(result.short_picks)} short")
        return result

    def parse_candidates(self, text: str) -> List[Candidate]:
        return self.parse(text).to_candidates()

    def extract_symbols(self, list_text: str) -> List[str]:
        """
        Validate the tokens of one long/short line, keeping text order.

        A single letter is recovered when at least one other token in the
        same list is valid.
        """
        cleaned = SEPARATORS.sub(' ', list_text or '').strip()
        if not cleaned:
            return []

        tokens = [m.group(0) for m in TOKEN.finditer(cleaned)]
        valid = [t for t in tokens if self.lexicon.is_valid_symbol(t)]
        recoverable = bool(valid)

        picks = []
        for token in tokens:
            if token in valid:
                picks.append(token)
            elif len(token) == 1 and recoverable and token not in self.lexicon.disallowed:
                logger.debug(f"Recovered single letter {token} from top picks context")
                picks.append(token)
        return list(dict.fromkeys(picks))
