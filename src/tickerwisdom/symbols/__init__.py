from .state import (
    Candidate,
    CandidateDraft,
    CorroborationConfig,
    ExtractionConfig,
    Priority,
    ScanContext,
)
from .lexicon import KeywordTiers, Lexicon
from .allowlist import AllowlistEntry, AllowlistStore, RollingAllowlist
from .technical import TechnicalContextDetector
from .rules import (
    AllowlistRule,
    ConfidenceRule,
    HebrewKeywordRule,
    LengthRule,
    PrefixRule,
    StockKeywordRule,
    TechnicalContextRule,
    WhitespaceRule,
    default_rules,
    score_draft,
)
from .corroboration import HistoryCorroborator, RecentMessageFetcher
from .top_picks import TopPicksParser, TopPicksResult
from .extractor import SymbolExtractor, finalize, scan_tokens
from .daily_update import is_daily_update

__all__ = [
    # State
    'Candidate',
    'CandidateDraft',
    'CorroborationConfig',
    'ExtractionConfig',
    'Priority',
    'ScanContext',

    # Lexicon
    'KeywordTiers',
    'Lexicon',
    'AllowlistEntry',
    'AllowlistStore',
    'RollingAllowlist',

    # Scoring
    'ConfidenceRule',
    'PrefixRule',
    'StockKeywordRule',
    'HebrewKeywordRule',
    'LengthRule',
    'WhitespaceRule',
    'AllowlistRule',
    'TechnicalContextRule',
    'TechnicalContextDetector',
    'default_rules',
    'score_draft',

    # Extraction
    'SymbolExtractor',
    'HistoryCorroborator',
    'RecentMessageFetcher',
    'TopPicksParser',
    'TopPicksResult',
    'finalize',
    'scan_tokens',
    'is_daily_update',
]
