from abc import ABC, abstractmethod
from typing import Optional

from .scorer import RelevanceScorer


class AnalysisPrescorer(ABC):
    """
    Abstract base class for deciding whether a message is indexed.
    """

    @abstractmethod
    def predict(self, text: str, ticker_count: int, is_reply: bool = False) -> bool:
        """
        Decide whether to index (True) or skip (False) a message.

        Args:
            text: Full message text.
            ticker_count: Number of extracted candidates.
            is_reply: Whether the message replies to another message.

        Returns:
            bool: True to index, False to skip.
        """
        pass


class AlwaysYesPrescorer(AnalysisPrescorer):
    """
    A prescorer that never filters anything out.
    """

    def predict(self, text: str, ticker_count: int, is_reply: bool = False) -> bool:
        return ticker_count > 0


class RelevanceGate(AnalysisPrescorer):
    """Indexes messages whose relevance score reaches the threshold"""

    def __init__(self, scorer: Optional[RelevanceScorer] = None, threshold: Optional[float] = None):
        self.scorer = scorer or RelevanceScorer()
        self.threshold = self.scorer.config.threshold if threshold is None else threshold

    def predict(self, text: str, ticker_count: int, is_reply: bool = False) -> bool:
        if ticker_count <= 0:
            return False
        return self.scorer.score(text, ticker_count, is_reply) >= self.threshold
