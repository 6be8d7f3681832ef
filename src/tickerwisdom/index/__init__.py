from .state import AnalysisRecord, IndexConfig, time_decay
from .analysis_index import AnalysisIndex
from .sweeper import run_prune_sweep, start_prune_sweep

__all__ = [
    'AnalysisRecord',
    'IndexConfig',
    'time_decay',
    'AnalysisIndex',
    'run_prune_sweep',
    'start_prune_sweep',
]
