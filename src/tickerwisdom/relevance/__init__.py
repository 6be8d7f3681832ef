from .state import ListPatternMatch, RelevanceBreakdown, RelevanceConfig
from .list_patterns import ListPatternDetector
from .scorer import RelevanceScorer
from .prescoring import AlwaysYesPrescorer, AnalysisPrescorer, RelevanceGate

__all__ = [
    'RelevanceConfig',
    'RelevanceBreakdown',
    'ListPatternMatch',
    'ListPatternDetector',
    'RelevanceScorer',
    'AnalysisPrescorer',
    'AlwaysYesPrescorer',
    'RelevanceGate',
]
