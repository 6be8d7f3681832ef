from .state import (
    ChannelScanStats,
    IndexingResult,
    LinkerConfig,
    ReconciliationConfig,
    ReconciliationResult,
)
from .linker import AnalysisLinker
from .reconciliation import BacklogQualityScorer, HistoricalReconciler, select_retained
from .config import (
    IndexerConfig,
    IndexerConfigFactory,
    create_linker,
    create_reconciler,
    dict_to_dataclass,
    load_config_from_yaml,
)

__all__ = [
    # State
    'LinkerConfig',
    'ReconciliationConfig',
    'IndexingResult',
    'ChannelScanStats',
    'ReconciliationResult',

    # Live path
    'AnalysisLinker',

    # Backlog path
    'HistoricalReconciler',
    'BacklogQualityScorer',
    'select_retained',

    # Configuration
    'IndexerConfig',
    'IndexerConfigFactory',
    'load_config_from_yaml',
    'dict_to_dataclass',
    'create_linker',
    'create_reconciler',
]
