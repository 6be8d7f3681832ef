import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

ADMIN_SYMBOL_PATTERN = re.compile(r'\$([A-Z]{1,5})(?![A-Za-z])')


@runtime_checkable
class AllowlistStore(Protocol):
    """Slowly-changing store of symbols known to be valid"""

    def is_allowed(self, symbol: str) -> bool:
        ...


@dataclass(frozen=True)
class AllowlistEntry:
    symbol: str
    added_at: datetime
    admin_id: str
    message_id: str
    context: str = ""


class RollingAllowlist:
    """
    Time-windowed allowlist learned from manager messages.

    Symbols written as ``$SYMBOL`` by a trusted account are allowed for
    ``max_age`` (7 days by default), after which they silently expire.
    """

    def __init__(self,
                 max_age: timedelta = timedelta(days=7),
                 clock: Optional[Callable[[], datetime]] = None):
        self.max_age = max_age
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._entries: Dict[str, AllowlistEntry] = {}
        self._lock = threading.RLock()

    def _is_expired(self, entry: AllowlistEntry, now: datetime) -> bool:
        return now - entry.added_at > self.max_age

    def add_symbol(self, symbol: str, admin_id: str, message_id: str,
                   context: str = "", added_at: Optional[datetime] = None) -> None:
        symbol = symbol.upper()
        entry = AllowlistEntry(
            symbol=symbol,
            added_at=added_at or self._clock(),
            admin_id=str(admin_id),
            message_id=str(message_id),
            context=context[:200],
        )
        with self._lock:
            self._entries[symbol] = entry
        logger.info(f"Added {symbol} to allowlist from admin {admin_id} (message: {message_id})")

    def is_allowed(self, symbol: str) -> bool:
        symbol = symbol.upper()
        with self._lock:
            entry = self._entries.get(symbol)
            if entry is None:
                return False
            if self._is_expired(entry, self._clock()):
                del self._entries[symbol]
                logger.debug(f"{symbol} expired from allowlist")
                return False
            return True

    def get_entry(self, symbol: str) -> Optional[AllowlistEntry]:
        return self._entries.get(symbol.upper()) if self.is_allowed(symbol) else None

    def allowed_symbols(self) -> List[str]:
        self.prune_expired()
        with self._lock:
            return sorted(self._entries)

    def remove_symbol(self, symbol: str) -> bool:
        with self._lock:
            removed = self._entries.pop(symbol.upper(), None) is not None
        if removed:
            logger.info(f"Removed {symbol.upper()} from allowlist")
        return removed

    def clear(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Cleared {count} symbols from allowlist")

    def prune_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [s for s, e in self._entries.items() if self._is_expired(e, now)]
            for symbol in expired:
                del self._entries[symbol]
        return len(expired)

    def initialize_from_entries(self, entries: Iterable[AllowlistEntry]) -> int:
        """Replace contents with the still-valid subset of ``entries``"""
        now = self._clock()
        loaded = 0
        with self._lock:
            self._entries.clear()
            for entry in entries:
                if self._is_expired(entry, now):
                    logger.debug(f"Skipping expired allowlist entry {entry.symbol}")
                    continue
                self._entries[entry.symbol.upper()] = entry
                loaded += 1
        logger.info(f"Loaded {loaded} symbols into allowlist")
        return loaded

    def learn_from_admin_message(self, text: str, admin_id: str, message_id: str,
                                 added_at: Optional[datetime] = None) -> List[str]:
        """Add every ``$SYMBOL`` in ``text``; returns the symbols in first-seen order"""
        symbols = list(dict.fromkeys(m.group(1) for m in ADMIN_SYMBOL_PATTERN.finditer(text or "")))
        for symbol in symbols:
            self.add_symbol(symbol, admin_id, message_id, context=text, added_at=added_at)
        return symbols

    def get_stats(self) -> Dict[str, object]:
        with self._lock:
            stamps = [e.added_at for e in self._entries.values()]
        return {
            'total_symbols': len(stamps),
            'oldest_entry': min(stamps) if stamps else None,
            'newest_entry': max(stamps) if stamps else None,
        }

    def __contains__(self, symbol: str) -> bool:
        return self.is_allowed(symbol)

    def __len__(self) -> int:
        return len(self._entries)
