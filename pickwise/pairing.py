"""Swiss-system pair scheduling for head-to-head comparisons."""

import logging
import random
from collections.abc import Sequence

from .rating import Candidate, ComparisonRecord

logger = logging.getLogger(__name__)

# How many recent comparisons to avoid repeating when evening out coverage
RECENT_WINDOW = 10

# How many recent comparisons to avoid repeating in the rating-adjacent fallback
FALLBACK_WINDOW = 15


def recently_compared(
    id_a: str,
    id_b: str,
    history: Sequence[ComparisonRecord],
    window: int,
) -> bool:
    """Return True if the pair appears among the last `window` history records."""
    if window <= 0:
        return False
    return any(record.involves(id_a, id_b) for record in history[-window:])


class PairingScheduler:
    """Chooses the next pair of candidates to compare."""

    def __init__(
        self,
        rng: random.Random | None = None,
        recent_window: int = RECENT_WINDOW,
        fallback_window: int = FALLBACK_WINDOW,
    ):
        """
        Initialize the scheduler.

        Args:
            rng: Random source (pass a seeded Random for reproducible pairing)
            recent_window: History lookback when pairing under-compared photos
            fallback_window: History lookback when pairing rating neighbours
        """
        self.rng = rng if rng is not None else random.Random()
        self.recent_window = recent_window
        self.fallback_window = fallback_window

    def next_pair(
        self,
        candidates: Sequence[Candidate],
        history: Sequence[ComparisonRecord],
    ) -> tuple[str, str] | None:
        """
        Pick the next pair to compare.

        Photos with the fewest comparisons are paired first so coverage
        stays even; after that, photos with adjacent ratings are paired.

        Args:
            candidates: Current candidate pool
            history: Resolved comparisons, oldest first

        Returns:
            Tuple of two distinct candidate ids, or None if fewer than two
            candidates remain
        """
        if len(candidates) < 2:
            return None

        pair = self._pair_under_compared(candidates, history)
        if pair is not None:
            logger.debug(f"Pairing under-compared photos {pair[0]} vs {pair[1]}")
            return pair

        pair = self._pair_adjacent(candidates, history)
        if pair is not None:
            logger.debug(f"Pairing rating neighbours {pair[0]} vs {pair[1]}")
            return pair

        # Every adjacent pair was compared recently
        a, b = self.rng.sample(list(candidates), 2)
        logger.debug(f"Pairing at random {a.id} vs {b.id}")
        return a.id, b.id

    def _pair_under_compared(
        self,
        candidates: Sequence[Candidate],
        history: Sequence[ComparisonRecord],
    ) -> tuple[str, str] | None:
        min_comparisons = min(c.comparisons for c in candidates)
        under_compared = [c for c in candidates if c.comparisons <= min_comparisons + 1]
        if len(under_compared) < 2:
            return None

        self.rng.shuffle(under_compared)

        for i in range(len(under_compared)):
            for j in range(i + 1, len(under_compared)):
                a = under_compared[i]
                b = under_compared[j]
                if not recently_compared(a.id, b.id, history, self.recent_window):
                    return a.id, b.id
        return None

    def _pair_adjacent(
        self,
        candidates: Sequence[Candidate],
        history: Sequence[ComparisonRecord],
    ) -> tuple[str, str] | None:
        by_rating = sorted(candidates, key=lambda c: -c.rating)
        span = len(by_rating) - 1

        # Random start so the scan doesn't always begin at the top
        offset = self.rng.randrange(span)

        for k in range(span):
            idx = (offset + k) % span
            a = by_rating[idx]
            b = by_rating[idx + 1]
            if not recently_compared(a.id, b.id, history, self.fallback_window):
                return a.id, b.id
        return None
