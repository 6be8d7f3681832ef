import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

from tickerwisdom.chat.client import ChatConfigFactory, MessageHistoryClient
from tickerwisdom.chat.state import ChatConfig
from tickerwisdom.index.analysis_index import AnalysisIndex
from tickerwisdom.index.state import IndexConfig
from tickerwisdom.relevance.scorer import RelevanceScorer
from tickerwisdom.relevance.state import RelevanceConfig
from tickerwisdom.symbols.allowlist import RollingAllowlist
from tickerwisdom.symbols.corroboration import HistoryCorroborator
from tickerwisdom.symbols.extractor import SymbolExtractor
from tickerwisdom.symbols.lexicon import Lexicon
from tickerwisdom.symbols.state import CorroborationConfig, ExtractionConfig

from .linker import AnalysisLinker
from .reconciliation import HistoricalReconciler
from .state import LinkerConfig, ReconciliationConfig

logger = logging.getLogger(__name__)


@dataclass
class IndexerConfig:
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    relevance: RelevanceConfig = field(default_factory=RelevanceConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    corroboration: CorroborationConfig = field(default_factory=CorroborationConfig)
    reconciliation: ReconciliationConfig = field(default_factory=ReconciliationConfig)
    linker: LinkerConfig = field(default_factory=LinkerConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    lexicon_path: Optional[str] = None

    def build_lexicon(self) -> Lexicon:
        if self.lexicon_path:
            return Lexicon.from_file(self.lexicon_path)
        return Lexicon.default()


def dict_to_dataclass(cls, data: Optional[Dict[str, Any]]):
    """Build ``cls`` from a nested dict, ignoring unknown keys"""
    field_types = {f.name: f.type for f in fields(cls)}
    kwargs = {}
    for key, value in (data or {}).items():
        if key not in field_types:
            logger.warning(f"Ignoring unknown {cls.__name__} option: {key}")
            continue
        field_type = field_types[key]
        if hasattr(field_type, '__dataclass_fields__') and isinstance(value, dict):
            kwargs[key] = dict_to_dataclass(field_type, value)
        elif isinstance(value, list):
            kwargs[key] = tuple(value)
        else:
            kwargs[key] = value
    return cls(**kwargs)


def load_config_from_yaml(config_path: Union[str, Path]) -> IndexerConfig:
    """Load configuration from YAML file."""
    with open(config_path, 'r', encoding='utf-8') as file:
        config_dict = yaml.safe_load(file) or {}
    return dict_to_dataclass(IndexerConfig, config_dict)


def _split_ids(value: Optional[str]):
    return tuple(part.strip() for part in (value or '').split(',') if part.strip())


class IndexerConfigFactory:
    """Factory for building ``IndexerConfig`` from the environment"""

    @staticmethod
    def from_environment(env_path: Optional[Path] = None,
                         base: Optional[IndexerConfig] = None,
                         require_token: bool = False) -> IndexerConfig:
        """
        Overlay environment variables on ``base`` (defaults if omitted).

        Chat settings always come from the environment. Channel and account
        lists are comma separated:
        TICKERWISDOM_ANALYSIS_CHANNELS, TICKERWISDOM_DISCUSSION_CHANNELS,
        TICKERWISDOM_MANAGER_IDS.
        """
        if env_path:
            load_dotenv(dotenv_path=env_path)
        else:
            load_dotenv()

        config = replace(base) if base is not None else IndexerConfig()
        config.chat = ChatConfigFactory.from_environment(env_path, require_token=require_token)

        analysis_channels = _split_ids(os.getenv("TICKERWISDOM_ANALYSIS_CHANNELS"))
        discussion_channels = _split_ids(os.getenv("TICKERWISDOM_DISCUSSION_CHANNELS"))
        if analysis_channels:
            config.linker = replace(config.linker, analysis_channel_ids=analysis_channels)
        if analysis_channels or discussion_channels:
            config.corroboration = replace(config.corroboration,
                                           channel_ids=analysis_channels + discussion_channels)

        managers = _split_ids(os.getenv("TICKERWISDOM_MANAGER_IDS"))
        if managers:
            config.linker = replace(config.linker, manager_ids=managers)

        threshold = os.getenv("TICKERWISDOM_RELEVANCE_THRESHOLD")
        if threshold:
            config.relevance = replace(config.relevance, threshold=float(threshold))

        freshness = os.getenv("TICKERWISDOM_FRESHNESS_DAYS")
        if freshness:
            config.index = replace(config.index, freshness_days=float(freshness))

        lexicon_path = os.getenv("TICKERWISDOM_LEXICON_PATH")
        if lexicon_path:
            config.lexicon_path = lexicon_path
        return config


def create_linker(config: IndexerConfig,
                  history_client: Optional[MessageHistoryClient] = None,
                  index: Optional[AnalysisIndex] = None) -> AnalysisLinker:
    """Wire the live pipeline; Pass 3 is enabled only with a history client"""
    lexicon = config.build_lexicon()
    allowlist = RollingAllowlist()
    corroborator = None
    if history_client is not None and config.corroboration.channel_ids:
        corroborator = HistoryCorroborator(history_client, config.corroboration)

    extractor = SymbolExtractor(lexicon, config.extraction, allowlist_store=allowlist,
                                corroborator=corroborator)
    return AnalysisLinker(
        extractor=extractor,
        scorer=RelevanceScorer(lexicon, config.relevance),
        index=index if index is not None else AnalysisIndex(config.index),
        config=config.linker,
        allowlist=allowlist,
        platform_url=config.chat.platform_url,
    )


def create_reconciler(config: IndexerConfig, history_client: MessageHistoryClient) -> HistoricalReconciler:
    """Backlog pass; history corroboration is never used here"""
    lexicon = config.build_lexicon()
    return HistoricalReconciler(
        client=history_client,
        extractor=SymbolExtractor(lexicon, config.extraction),
        scorer=RelevanceScorer(lexicon, config.relevance),
        config=config.reconciliation,
        platform_url=config.chat.platform_url,
    )
