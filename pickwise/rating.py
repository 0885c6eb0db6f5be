"""Elo rating state for ranking candidates."""

import logging
import math
from dataclasses import dataclass, replace

logger = logging.getLogger(__name__)

# How much ratings move per comparison
ELO_K = 32

# Starting rating for a new candidate
ELO_DEFAULT = 1500.0


@dataclass(frozen=True)
class Candidate:
    """A photo under active ranking."""

    id: str
    rating: float = ELO_DEFAULT
    comparisons: int = 0


@dataclass(frozen=True)
class CandidateState:
    """Rating and comparison count captured before an update."""

    rating: float
    comparisons: int


@dataclass(frozen=True)
class ComparisonRecord:
    """A resolved comparison, kept for undo and recency checks."""

    id_a: str
    id_b: str
    winner_id: str | None  # None means tie
    pre_a: CandidateState
    pre_b: CandidateState

    def involves(self, id_a: str, id_b: str) -> bool:
        """Return True if this record is the pair (id_a, id_b) in either order."""
        return (self.id_a == id_a and self.id_b == id_b) or (
            self.id_a == id_b and self.id_b == id_a
        )


def expected_score(rating_a: float, rating_b: float) -> float:
    """Expected score of a player rated rating_a against rating_b."""
    return 1 / (1 + 10 ** ((rating_b - rating_a) / 400))


class RatingStore:
    """
    Owns the candidate pool and applies Elo updates.

    Candidates are immutable records; the store swaps in a new record on
    every update so nothing outside it can change a rating.
    """

    def __init__(self, k_factor: float = ELO_K):
        self.k_factor = k_factor
        self._candidates: dict[str, Candidate] = {}

    def __len__(self) -> int:
        return len(self._candidates)

    def __contains__(self, photo_id: object) -> bool:
        return photo_id in self._candidates

    @property
    def candidates(self) -> tuple[Candidate, ...]:
        """All candidates in the order they entered the pool."""
        return tuple(self._candidates.values())

    def get(self, photo_id: str) -> Candidate:
        return self._candidates[photo_id]

    def add_candidate(
        self,
        photo_id: str,
        rating: float = ELO_DEFAULT,
        comparisons: int = 0,
    ) -> Candidate:
        """
        Add a photo to the pool.

        Adding an id that is already present leaves it untouched.

        Returns:
            The candidate now stored under photo_id
        """
        existing = self._candidates.get(photo_id)
        if existing is not None:
            return existing

        _check_finite(rating, photo_id)
        if comparisons < 0:
            raise ValueError(f"Negative comparison count for {photo_id}: {comparisons}")

        candidate = Candidate(id=photo_id, rating=float(rating), comparisons=comparisons)
        self._candidates[photo_id] = candidate
        return candidate

    def add_candidates(self, photo_ids) -> list[str]:
        """Add several photos at default rating; return the ids actually added."""
        added = []
        for photo_id in photo_ids:
            if photo_id not in self._candidates:
                self.add_candidate(photo_id)
                added.append(photo_id)
        return added

    def ranked(self) -> list[Candidate]:
        """Candidates sorted by rating, highest first (ties keep pool order)."""
        return sorted(self._candidates.values(), key=lambda c: -c.rating)

    def top(self, n: int) -> list[Candidate]:
        return self.ranked()[:max(n, 0)]

    def apply_win(self, winner_id: str, loser_id: str) -> ComparisonRecord:
        """
        Record that winner beat loser.

        Returns:
            ComparisonRecord holding both candidates' pre-update state
        """
        return self._update(winner_id, loser_id, 1.0, 0.0, winner_id)

    def apply_tie(self, id_a: str, id_b: str) -> ComparisonRecord:
        """Record a tie (0.5 points each)."""
        return self._update(id_a, id_b, 0.5, 0.5, None)

    def resolve(self, id_a: str, id_b: str, winner_id: str | None) -> ComparisonRecord:
        """
        Apply the outcome of comparing id_a with id_b.

        The record keeps the pair order regardless of which side won.
        """
        if winner_id is None:
            return self.apply_tie(id_a, id_b)
        if winner_id == id_a:
            return self.apply_win(id_a, id_b)
        if winner_id == id_b:
            return self._update(id_b, id_a, 1.0, 0.0, winner_id, swapped=True)
        raise ValueError(f"Winner {winner_id} is not part of pair ({id_a}, {id_b})")

    def undo(self, record: ComparisonRecord) -> None:
        """Restore both candidates to the state captured in record."""
        for photo_id, pre in ((record.id_a, record.pre_a), (record.id_b, record.pre_b)):
            current = self._candidates[photo_id]
            self._candidates[photo_id] = replace(
                current,
                rating=pre.rating,
                comparisons=pre.comparisons,
            )
        logger.debug(f"Undid comparison {record.id_a} vs {record.id_b}")

    def _update(
        self,
        id_a: str,
        id_b: str,
        score_a: float,
        score_b: float,
        winner_id: str | None,
        swapped: bool = False,
    ) -> ComparisonRecord:
        if id_a == id_b:
            raise ValueError(f"Cannot compare {id_a} with itself")

        a = self._candidates[id_a]
        b = self._candidates[id_b]
        _check_finite(a.rating, id_a)
        _check_finite(b.rating, id_b)

        expected_a = expected_score(a.rating, b.rating)
        expected_b = expected_score(b.rating, a.rating)

        self._candidates[id_a] = replace(
            a,
            rating=a.rating + self.k_factor * (score_a - expected_a),
            comparisons=a.comparisons + 1,
        )
        self._candidates[id_b] = replace(
            b,
            rating=b.rating + self.k_factor * (score_b - expected_b),
            comparisons=b.comparisons + 1,
        )

        pre_a = CandidateState(rating=a.rating, comparisons=a.comparisons)
        pre_b = CandidateState(rating=b.rating, comparisons=b.comparisons)
        if swapped:
            return ComparisonRecord(id_b, id_a, winner_id, pre_b, pre_a)
        return ComparisonRecord(id_a, id_b, winner_id, pre_a, pre_b)


def _check_finite(rating: float, photo_id: str) -> None:
    if not math.isfinite(rating):
        raise ValueError(f"Non-finite rating for {photo_id}: {rating}")
