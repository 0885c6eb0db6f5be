"""Grouping of consecutive, visually similar photos by fingerprint distance."""

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np

from .fingerprint import FingerprintCache

logger = logging.getLogger(__name__)

# RMS luma difference (0-255) at or below which neighbours share a cluster
DEFAULT_THRESHOLD = 15.0


@dataclass
class ClusterResult:
    """Result of clustering operation."""

    clusters: list[list[str]]  # photo ids, in input order
    num_clusters: int
    num_singletons: int  # Clusters holding a single photo


def fingerprint_distance(fp1: bytes | None, fp2: bytes | None) -> float:
    """
    RMS difference between two fingerprints, on the 0-255 scale.

    A missing fingerprint, or two fingerprints of different length, are
    infinitely far apart.
    """
    if fp1 is None or fp2 is None or len(fp1) != len(fp2):
        return math.inf
    if len(fp1) == 0:
        return 0.0

    a = np.frombuffer(fp1, dtype=np.uint8).astype(np.float64)
    b = np.frombuffer(fp2, dtype=np.uint8).astype(np.float64)
    return float(np.sqrt(np.mean((a - b) ** 2)))


def build_clusters(
    photo_ids: Sequence[str],
    fingerprints: FingerprintCache | dict[str, bytes | None],
    threshold: float,
) -> list[list[str]]:
    """
    Split an ordered photo sequence into runs of similar photos.

    Each photo is compared with the photo right before it (not with the
    first photo of its cluster), so a slow drift can keep a long run
    together.

    Args:
        photo_ids: Photos in display order
        fingerprints: Anything with .get(photo_id) returning a fingerprint or None
        threshold: Maximum distance for a photo to join its predecessor's cluster

    Returns:
        List of clusters, each a non-empty list of photo ids
    """
    if not photo_ids:
        return []

    clusters: list[list[str]] = []
    current = [photo_ids[0]]
    prev_fp = fingerprints.get(photo_ids[0])

    for pid in photo_ids[1:]:
        curr_fp = fingerprints.get(pid)
        if fingerprint_distance(prev_fp, curr_fp) <= threshold:
            current.append(pid)
        else:
            clusters.append(current)
            current = [pid]
        prev_fp = curr_fp

    clusters.append(current)
    return clusters


class PhotoClusterer:
    """Clusters photo sequences from cached fingerprints."""

    def __init__(self, threshold: float = DEFAULT_THRESHOLD):
        """
        Initialize the clusterer.

        Args:
            threshold: RMS distance threshold (0 = identical only, 255 = everything)
        """
        self.threshold = threshold

    def cluster(
        self,
        photo_ids: Sequence[str],
        fingerprints: FingerprintCache | dict[str, bytes | None],
    ) -> ClusterResult:
        """
        Cluster photos in the given order.

        Calling this again with another threshold only re-runs the grouping;
        fingerprints are read from the lookup, never recomputed.
        """
        clusters = build_clusters(photo_ids, fingerprints, self.threshold)
        num_singletons = sum(1 for c in clusters if len(c) == 1)

        logger.debug(
            f"Created {len(clusters)} clusters from {len(photo_ids)} photos "
            f"(threshold={self.threshold})"
        )

        return ClusterResult(
            clusters=clusters,
            num_clusters=len(clusters),
            num_singletons=num_singletons,
        )


def cluster_index(clusters: Iterable[list[str]]) -> dict[str, int]:
    """Map each photo id to the position of its cluster."""
    return {pid: idx for idx, cluster in enumerate(clusters) for pid in cluster}


def selected_counts(clusters: Iterable[list[str]], selected: set[str]) -> list[int]:
    """Number of selected photos in each cluster."""
    return [sum(1 for pid in cluster if pid in selected) for cluster in clusters]


def toggle_cluster(cluster: list[str], selected: set[str]) -> bool:
    """
    Select or deselect a whole cluster in place.

    A fully selected cluster is deselected; otherwise every member is
    selected.

    Returns:
        True if the cluster ended up selected
    """
    if all(pid in selected for pid in cluster):
        selected.difference_update(cluster)
        return False
    selected.update(cluster)
    return True
