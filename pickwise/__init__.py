"""
pickwise: Narrow a large photo set down to a "best of" subset.

Photos are ranked with Swiss-system pairing and Elo ratings, and
near-duplicate shots are grouped by perceptual fingerprints.
"""

__version__ = "0.1.0"

from .clusterer import PhotoClusterer, build_clusters, fingerprint_distance
from .confidence import ConfidenceEstimator
from .fingerprint import FingerprintCache, FingerprintExtractor, compute_fingerprints
from .pairing import PairingScheduler
from .rating import Candidate, ComparisonRecord, RatingStore
from .session import RankingSession, SessionState

__all__ = [
    "Candidate",
    "ComparisonRecord",
    "ConfidenceEstimator",
    "FingerprintCache",
    "FingerprintExtractor",
    "PairingScheduler",
    "PhotoClusterer",
    "RankingSession",
    "RatingStore",
    "SessionState",
    "build_clusters",
    "compute_fingerprints",
    "fingerprint_distance",
    "__version__",
]
