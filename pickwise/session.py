"""Ranking session driver and on-disk session cache."""

import logging
import pickle
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .clusterer import DEFAULT_THRESHOLD
from .confidence import ConfidenceEstimator
from .fingerprint import FingerprintCache
from .importer import ImportData, matches_import
from .pairing import PairingScheduler
from .rating import Candidate, ComparisonRecord, RatingStore

logger = logging.getLogger(__name__)

# Default size of the "best of" set
DEFAULT_TARGET = 25

# Session cache filename, stored inside the photo folder
SESSION_CACHE_FILE = ".pickwise.pkl"

SESSION_VERSION = 1


@dataclass
class SessionState:
    """Persistent state for a photo folder: ranking progress and fingerprints."""

    target_count: int = DEFAULT_TARGET
    candidates: list[Candidate] = field(default_factory=list)
    history: list[ComparisonRecord] = field(default_factory=list)
    comparisons_completed: int = 0
    selected: set[str] = field(default_factory=set)
    fingerprints: FingerprintCache = field(default_factory=FingerprintCache)
    threshold: float = DEFAULT_THRESHOLD
    version: int = SESSION_VERSION


class RankingSession:
    """
    Drives one ranking session.

    Holds the candidate pool, the comparison history used for undo and
    for avoiding repeats, and the confidence estimator. Only one pair is
    in flight at a time: next_pair() keeps returning the same pair until
    it is resolved with choose() or skip().
    """

    def __init__(
        self,
        target_count: int = DEFAULT_TARGET,
        scheduler: PairingScheduler | None = None,
        estimator: ConfidenceEstimator | None = None,
    ):
        self.target_count = target_count
        self.scheduler = scheduler if scheduler is not None else PairingScheduler()
        self.estimator = estimator if estimator is not None else ConfidenceEstimator()
        self.store = RatingStore()
        self.history: list[ComparisonRecord] = []
        self.comparisons_completed = 0
        self.current_pair: tuple[str, str] | None = None

    @property
    def candidates(self) -> tuple[Candidate, ...]:
        return self.store.candidates

    def start(self, photo_ids: Iterable[str]) -> None:
        """Begin a fresh session over photo_ids, discarding any previous progress."""
        self.store = RatingStore(self.store.k_factor)
        self.history = []
        self.comparisons_completed = 0
        self.current_pair = None
        self.estimator.reset()
        self.store.add_candidates(photo_ids)
        logger.debug(f"Started ranking session with {len(self.store)} candidates")

    def add_candidates(self, photo_ids: Iterable[str]) -> list[str]:
        """Grow the pool; returns the ids that were not already candidates."""
        added = self.store.add_candidates(photo_ids)
        if added:
            logger.debug(f"Added {len(added)} candidates (pool size {len(self.store)})")
        return added

    def import_candidates(self, photo_ids: Iterable[str], data: ImportData) -> list[str]:
        """
        Add the photos matched by imported data to the pool.

        A photo matches when its id or file name appears in the import, or
        a number in its file name does.

        Returns:
            Ids newly added to the pool
        """
        matched = [
            pid for pid in photo_ids
            if pid in data.filenames or matches_import(Path(pid).name, data)
        ]
        return self.add_candidates(matched)

    def next_pair(self) -> tuple[str, str] | None:
        """
        Return the pair awaiting a decision, choosing a new one if needed.

        Returns:
            Pair of candidate ids, or None when fewer than two candidates exist
        """
        if self.current_pair is None:
            self.current_pair = self.scheduler.next_pair(self.store.candidates, self.history)
        return self.current_pair

    def choose(self, winner_id: str) -> ComparisonRecord:
        """Resolve the current pair in favour of winner_id."""
        id_a, id_b = self._pending_pair()
        if winner_id not in (id_a, id_b):
            raise ValueError(f"{winner_id} is not part of the current pair ({id_a}, {id_b})")
        return self._resolve(id_a, id_b, winner_id)

    def skip(self) -> ComparisonRecord:
        """Resolve the current pair as a tie."""
        id_a, id_b = self._pending_pair()
        return self._resolve(id_a, id_b, None)

    def undo(self) -> ComparisonRecord | None:
        """
        Revert the most recent comparison.

        Returns:
            The reverted record, or None if there was nothing to undo
        """
        if not self.history:
            return None

        record = self.history.pop()
        self.store.undo(record)
        self.comparisons_completed -= 1
        self.current_pair = None
        return record

    def confidence(self) -> int:
        """Score the current ranking; records one stability snapshot per call."""
        return self.estimator.confidence(
            self.store.candidates,
            self.target_count,
            self.comparisons_completed,
        )

    def top_ranked(self) -> list[Candidate]:
        """The current best target_count candidates, highest rating first."""
        return self.store.top(self.target_count)

    def to_state(self, state: SessionState | None = None) -> SessionState:
        """Copy ranking progress into state (a new SessionState if omitted)."""
        if state is None:
            state = SessionState()
        state.target_count = self.target_count
        state.candidates = list(self.store.candidates)
        state.history = list(self.history)
        state.comparisons_completed = self.comparisons_completed
        return state

    @classmethod
    def from_state(
        cls,
        state: SessionState,
        scheduler: PairingScheduler | None = None,
    ) -> "RankingSession":
        """Rebuild a session from saved state."""
        session = cls(target_count=state.target_count, scheduler=scheduler)
        for candidate in state.candidates:
            session.store.add_candidate(candidate.id, candidate.rating, candidate.comparisons)
        session.history = list(state.history)
        session.comparisons_completed = state.comparisons_completed
        return session

    def _pending_pair(self) -> tuple[str, str]:
        if self.current_pair is None:
            raise RuntimeError("No comparison pending; call next_pair() first")
        return self.current_pair

    def _resolve(self, id_a: str, id_b: str, winner_id: str | None) -> ComparisonRecord:
        record = self.store.resolve(id_a, id_b, winner_id)
        self.history.append(record)
        self.comparisons_completed += 1
        self.current_pair = None
        return record


def save_session(state: SessionState, folder: Path) -> Path:
    """Save session state to pickle file in the photo folder."""
    cache_path = folder / SESSION_CACHE_FILE
    with open(cache_path, "wb") as f:
        pickle.dump(state, f, protocol=pickle.HIGHEST_PROTOCOL)
    return cache_path


def load_session(folder: Path) -> SessionState | None:
    """Load session state from pickle file, or return None if not found."""
    cache_path = folder / SESSION_CACHE_FILE
    if not cache_path.exists():
        return None

    try:
        with open(cache_path, "rb") as f:
            state = pickle.load(f)
    except (pickle.UnpicklingError, EOFError, AttributeError) as e:
        logger.warning(f"Ignoring unreadable session cache {cache_path}: {e}")
        return None

    if not isinstance(state, SessionState) or state.version != SESSION_VERSION:
        logger.warning(f"Ignoring incompatible session cache {cache_path}")
        return None
    return state


def delete_session(folder: Path) -> bool:
    """Delete the session cache file if it exists."""
    cache_path = folder / SESSION_CACHE_FILE
    if cache_path.exists():
        cache_path.unlink()
        return True
    return False
