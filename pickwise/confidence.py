"""Ranking confidence from the stability of the current top-N set."""

import logging
import math
from collections import deque
from collections.abc import Sequence

from .rating import Candidate

logger = logging.getLogger(__name__)

# Number of top-N snapshots kept for stability measurement
SNAPSHOT_CAPACITY = 10

# Snapshots needed before stability is measured at all
WARMUP_SNAPSHOTS = 3


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


class ConfidenceEstimator:
    """
    Estimates how settled a ranking is.

    The score is driven by whether the same photos keep appearing in the
    top N (order within the set does not matter), with a smaller share
    from how many candidates have been compared at least once. One
    estimator belongs to one ranking session; call reset() when a new
    session starts.
    """

    def __init__(
        self,
        capacity: int = SNAPSHOT_CAPACITY,
        warmup: int = WARMUP_SNAPSHOTS,
    ):
        self.capacity = capacity
        self.warmup = warmup
        self._snapshots: deque[frozenset[str]] = deque(maxlen=capacity)

    @property
    def snapshots(self) -> tuple[frozenset[str], ...]:
        return tuple(self._snapshots)

    def reset(self) -> None:
        """Forget all snapshots."""
        self._snapshots.clear()

    def confidence(
        self,
        candidates: Sequence[Candidate],
        target_count: int,
        comparisons_completed: int,
    ) -> int:
        """
        Record a snapshot of the current top N and score stability.

        Args:
            candidates: Current candidate pool
            target_count: Size of the "best of" set being selected
            comparisons_completed: Comparisons resolved so far

        Returns:
            Confidence percentage in [0, 100]
        """
        n = min(target_count, len(candidates))
        if n < 2 or comparisons_completed < 2:
            return 0

        by_rating = sorted(candidates, key=lambda c: -c.rating)
        self._snapshots.append(frozenset(c.id for c in by_rating[:n]))

        if len(self._snapshots) < self.warmup:
            return min(20, comparisons_completed * 5)

        snapshots = list(self._snapshots)
        stable = sum(
            1 for prev, curr in zip(snapshots, snapshots[1:]) if prev == curr
        )
        stability_ratio = stable / (len(snapshots) - 1)

        compared = sum(1 for c in candidates if c.comparisons >= 1)
        coverage_ratio = compared / len(candidates)

        score = round_half_up(coverage_ratio * 30 + stability_ratio * 70)
        logger.debug(
            f"Confidence {score}% (stability={stability_ratio:.2f}, coverage={coverage_ratio:.2f})"
        )
        return max(0, min(100, score))
