"""Shared pytest fixtures for the tickerwisdom test suite.

Everything runs against in-memory collaborators with a fixed clock; no
test touches the network.
"""

from datetime import datetime, timedelta, timezone
from itertools import count
from typing import Dict, Iterable, List, Optional

import pytest

from tickerwisdom.chat.client import ChatAPIError, MessageHistoryClient
from tickerwisdom.chat.state import ChatMessage
from tickerwisdom.index.analysis_index import AnalysisIndex
from tickerwisdom.index.state import AnalysisRecord, IndexConfig
from tickerwisdom.pipeline.linker import AnalysisLinker
from tickerwisdom.pipeline.state import LinkerConfig
from tickerwisdom.relevance.scorer import RelevanceScorer
from tickerwisdom.symbols.allowlist import RollingAllowlist
from tickerwisdom.symbols.extractor import SymbolExtractor
from tickerwisdom.symbols.lexicon import Lexicon

FIXED_NOW = datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc)

_message_ids = count(1000)

DAILY_UPDATE = """❗ סקירת שוק
השוק ממשיך חזק
❗ מניות במעקב
NVDA, AMD
❗ תזכורות
🔹 לנהל סיכונים
🔹 לא לרדוף אחרי מחיר
❕ טופ פיקס:
📈 long: AAPL, MSFT / F
📉 short: TSLA
🔻 שורט סייד
חולשה במניות הרכב"""


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def make_message(text: str,
                 message_id: Optional[str] = None,
                 channel_id: str = "analysis",
                 author_id: str = "member",
                 created_at: Optional[datetime] = None,
                 age: Optional[timedelta] = None,
                 guild_id: Optional[str] = "guild",
                 **kwargs) -> ChatMessage:
    """Chat message posted ``age`` before FIXED_NOW (or at ``created_at``)."""
    if created_at is None:
        created_at = FIXED_NOW - (age or timedelta(minutes=5))
    return ChatMessage(
        id=message_id or str(next(_message_ids)),
        channel_id=channel_id,
        author_id=author_id,
        text=text,
        created_at=created_at,
        guild_id=guild_id,
        **kwargs,
    )


def make_record(message_id: str,
                timestamp: datetime,
                score: float = 0.8,
                tickers: Iterable[str] = ("NVDA",),
                text: str = "analysis") -> AnalysisRecord:
    return AnalysisRecord(
        source_message_id=message_id,
        source_channel_id="analysis",
        author_id="member",
        raw_text=text,
        tickers=tuple(tickers),
        timestamp=timestamp,
        relevance_score=score,
        canonical_url=f"https://discord.com/channels/guild/analysis/{message_id}",
    )


class FakeHistoryClient(MessageHistoryClient):
    """In-memory channel history with ``before`` paging and failing channels."""

    def __init__(self, channels: Optional[Dict[str, List[ChatMessage]]] = None,
                 failing: Iterable[str] = ()):
        self.channels = {
            channel_id: sorted(messages, key=lambda m: m.created_at, reverse=True)
            for channel_id, messages in (channels or {}).items()
        }
        self.failing = set(failing)
        self.calls = []

    async def fetch_messages(self, channel_id, limit=100, before=None):
        self.calls.append((channel_id, limit, before))
        if channel_id in self.failing:
            raise ChatAPIError(f"channel {channel_id} unavailable")
        messages = self.channels.get(channel_id, [])
        if before is not None:
            position = next(i for i, m in enumerate(messages) if m.id == before)
            messages = messages[position + 1:]
        return list(messages[:limit])


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def lexicon():
    return Lexicon.default()


@pytest.fixture
def extractor(lexicon):
    return SymbolExtractor(lexicon)


@pytest.fixture
def scorer(lexicon):
    return RelevanceScorer(lexicon)


@pytest.fixture
def index(clock):
    return AnalysisIndex(IndexConfig(), clock=clock)


@pytest.fixture
def allowlist(clock):
    return RollingAllowlist(clock=clock)


@pytest.fixture
def linker_factory(lexicon, scorer, index, allowlist):
    """Build a linker sharing the fixture index and allowlist."""
    def build(config: Optional[LinkerConfig] = None, prescorer=None) -> AnalysisLinker:
        return AnalysisLinker(
            extractor=SymbolExtractor(lexicon, allowlist_store=allowlist),
            scorer=scorer,
            index=index,
            config=config or LinkerConfig(),
            allowlist=allowlist,
            prescorer=prescorer,
        )
    return build


@pytest.fixture
def linker(linker_factory):
    return linker_factory()
