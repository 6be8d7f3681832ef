import html
import re
from dataclasses import dataclass
from typing import Optional


@dataclass
class TextCleaningConfig:
    """Configuration for text cleaning operations"""
    decode_html_entities: bool = True
    remove_urls: bool = True
    remove_mentions: bool = True
    remove_custom_emoji: bool = True
    normalize_whitespace: bool = True
    max_length: Optional[int] = None


class MessageTextProcessor:
    """
    Cleans chat message text before symbol extraction.

    Line structure is kept: the headline and the top-picks block both
    depend on it.
    """

    def __init__(self, config: TextCleaningConfig = None):
        self.config = config or TextCleaningConfig()
        self._compile_patterns()

    def _compile_patterns(self):
        self.patterns = {
            'urls': re.compile(r'https?://\S+|www\.\S+'),
            # <@123>, <@!123>, <@&role>, <#channel>
            'mentions': re.compile(r'<(?:@[!&]?|#)\d+>|@(?:everyone|here)\b'),
            'custom_emoji': re.compile(r'<a?:\w+:\d+>'),
            'inline_whitespace': re.compile(r'[ \t\f\v]+'),
            'blank_lines': re.compile(r'\n\s*\n+'),
        }

    def clean_text(self, text: str) -> str:
        """
        Main text cleaning method

        Args:
            text: Raw message text

        Returns:
            Cleaned text according to configuration
        """
        if not text or not isinstance(text, str):
            return ""

        cleaned = text.replace('\r\n', '\n')

        if self.config.decode_html_entities:
            cleaned = html.unescape(cleaned)

        if self.config.remove_urls:
            cleaned = self.patterns['urls'].sub(' ', cleaned)

        if self.config.remove_mentions:
            cleaned = self.patterns['mentions'].sub(' ', cleaned)

        if self.config.remove_custom_emoji:
            cleaned = self.patterns['custom_emoji'].sub(' ', cleaned)

        if self.config.normalize_whitespace:
            cleaned = self._normalize_whitespace(cleaned)

        if self.config.max_length and len(cleaned) > self.config.max_length:
            cleaned = cleaned[:self.config.max_length - 3] + "..."

        return cleaned.strip()

    def _normalize_whitespace(self, text: str) -> str:
        lines = [self.patterns['inline_whitespace'].sub(' ', line).strip() for line in text.split('\n')]
        return self.patterns['blank_lines'].sub('\n', '\n'.join(lines))

    def headline(self, text: str) -> str:
        """First non-empty line of the text"""
        for line in (text or '').split('\n'):
            if line.strip():
                return line.strip()
        return ""
