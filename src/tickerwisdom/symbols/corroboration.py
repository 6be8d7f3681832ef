import asyncio
import logging
import re
from typing import Iterable, Optional, Protocol, Sequence, Set, runtime_checkable

from .state import CorroborationConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class RecentMessageFetcher(Protocol):
    """Single capability needed for corroboration: newest-first recent messages"""

    async def fetch_messages(self, channel_id: str, limit: int = 50,
                             before: Optional[str] = None) -> Sequence:
        ...


class HistoryCorroborator:
    """
    Looks for earlier ``$X`` / ``#X`` mentions of single-letter tickers.

    Channels are scanned one at a time with a small pause in between. A
    channel that fails to load is logged and skipped; nothing is retried here.
    """

    def __init__(self, fetcher: RecentMessageFetcher, config: Optional[CorroborationConfig] = None):
        self.fetcher = fetcher
        self.config = config or CorroborationConfig()
        self.stats = {
            'lookups': 0,
            'channels_scanned': 0,
            'channel_failures': 0,
            'symbols_corroborated': 0,
        }

    @staticmethod
    def _mention_pattern(letters: Iterable[str]) -> re.Pattern:
        alternatives = '|'.join(sorted(re.escape(letter) for letter in letters))
        return re.compile(rf'[$#]({alternatives})(?![A-Za-z0-9])')

    async def corroborate(self, letters: Iterable[str],
                          stop_event: Optional[asyncio.Event] = None) -> Set[str]:
        """Return the subset of ``letters`` seen with a prefix in recent history"""
        pending = {letter.upper() for letter in letters}
        found: Set[str] = set()
        if not pending or not self.config.channel_ids:
            return found

        self.stats['lookups'] += 1
        for index, channel_id in enumerate(self.config.channel_ids):
            if stop_event is not None and stop_event.is_set():
                logger.info(f"Corroboration aborted before channel {channel_id}")
                break
            if index:
                await asyncio.sleep(self.config.request_delay)

            try:
                messages = await self.fetcher.fetch_messages(
                    channel_id, limit=self.config.messages_per_channel
                )
            except Exception as e:
                self.stats['channel_failures'] += 1
                logger.warning(f"Could not fetch history for channel {channel_id}: {e}")
                continue

            self.stats['channels_scanned'] += 1
            pattern = self._mention_pattern(pending - found)
            for message in messages:
                text = getattr(message, 'text', None) or ''
                found.update(m.group(1) for m in pattern.finditer(text))
            if found >= pending:
                break

        if found:
            self.stats['symbols_corroborated'] += len(found)
            logger.debug(f"Corroborated from history: {sorted(found)}")
        return found
