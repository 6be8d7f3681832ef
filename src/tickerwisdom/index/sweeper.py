import asyncio
import logging
from typing import Optional

from .analysis_index import AnalysisIndex

logger = logging.getLogger(__name__)


async def run_prune_sweep(index: AnalysisIndex,
                          interval_seconds: Optional[float] = None,
                          stop_event: Optional[asyncio.Event] = None) -> int:
    """
    Prune ``index`` every ``interval_seconds`` until ``stop_event`` is set.

    Returns the total number of entries removed.
    """
    interval = interval_seconds or index.config.prune_interval_seconds
    stop_event = stop_event or asyncio.Event()
    total = 0
    logger.info(f"Starting prune sweep every {interval:.0f}s")
    while not stop_event.is_set():
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            total += index.prune_expired()
    logger.info(f"Prune sweep stopped after removing {total} entries")
    return total


def start_prune_sweep(index: AnalysisIndex,
                      interval_seconds: Optional[float] = None,
                      stop_event: Optional[asyncio.Event] = None) -> asyncio.Task:
    """Schedule ``run_prune_sweep`` on the running loop"""
    return asyncio.create_task(run_prune_sweep(index, interval_seconds, stop_event))
