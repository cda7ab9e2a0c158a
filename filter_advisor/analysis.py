"""
Cancellable background analysis for filter recommendations.

Recommendations are produced on a worker thread so callers can show an
"analyzing" state while they wait. Each task records the session generation
it was issued for; a result whose generation is outdated must be discarded
by the caller.
"""
import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from typing import Optional

from filter_advisor.models import ImageMetrics, Recommendation
from filter_advisor.recommender import FilterAdvisor, RuleBasedAdvisor

logger = logging.getLogger(__name__)


class AnalysisCancelled(Exception):
    """Raised inside the worker when a task is cancelled during its delay."""


class AnalysisTask:
    """Handle for one pending recommendation."""

    def __init__(self, future: Future, generation: int, cancel_event: threading.Event):
        self._future = future
        self._cancel_event = cancel_event
        self.generation = generation

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def done(self) -> bool:
        return self._future.done()

    def cancel(self) -> None:
        """Stop the task; a worker that is still waiting wakes up immediately."""
        self._cancel_event.set()
        self._future.cancel()

    def result(self, timeout: Optional[float] = None) -> Optional[Recommendation]:
        """
        Wait for the recommendation.

        Args:
            timeout: Seconds to wait, None waits indefinitely

        Returns:
            The recommendation, or None if the task was cancelled
        """
        try:
            return self._future.result(timeout=timeout)
        except (CancelledError, AnalysisCancelled):
            return None


class RecommendationService:
    """Runs a FilterAdvisor on a single worker thread with a simulated latency."""

    def __init__(self, advisor: FilterAdvisor = None, delay: float = 1.5,
                 executor: ThreadPoolExecutor = None):
        self.advisor = advisor or RuleBasedAdvisor()
        self.delay = delay
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="analysis")
        self._owns_executor = executor is None

    def submit(self, metrics: ImageMetrics, generation: int) -> AnalysisTask:
        """
        Start analyzing ``metrics`` for the given session generation.

        Returns:
            AnalysisTask to wait on or cancel
        """
        cancel_event = threading.Event()
        future = self._executor.submit(self._run, metrics, cancel_event)
        logger.debug("Analysis submitted for generation %d", generation)
        return AnalysisTask(future, generation, cancel_event)

    def _run(self, metrics: ImageMetrics, cancel_event: threading.Event) -> Recommendation:
        # Event.wait returns True as soon as the task is cancelled
        if cancel_event.wait(self.delay):
            raise AnalysisCancelled()
        return self.advisor.advise(metrics)

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
