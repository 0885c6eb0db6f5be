"""Perceptual fingerprints: tiny grayscale thumbnails for similarity checks."""

import logging
import time
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

import cv2
import numpy as np

from .utils import load_image

logger = logging.getLogger(__name__)

# Fingerprint grid side; a fingerprint holds GRID_SIZE**2 bytes
GRID_SIZE = 8

# Photos fingerprinted between progress reports
BATCH_SIZE = 50

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = (0.299, 0.587, 0.114)


class FingerprintExtractor:
    """Reduces decoded images to grid_size x grid_size grayscale signatures."""

    def __init__(self, grid_size: int = GRID_SIZE):
        """
        Initialize the extractor.

        Args:
            grid_size: Side of the downsampled grid (fingerprint length is grid_size**2)
        """
        if grid_size < 1:
            raise ValueError(f"grid_size must be positive, got {grid_size}")
        self.grid_size = grid_size
        self._scratch: np.ndarray | None = None

    def new_scratch(self) -> np.ndarray:
        """Allocate a scratch buffer suitable for extract()."""
        return np.zeros((self.grid_size, self.grid_size, 3), dtype=np.float32)

    def extract(self, pixels: np.ndarray, scratch: np.ndarray | None = None) -> bytes | None:
        """
        Compute the fingerprint of a decoded image.

        Args:
            pixels: HxW (grayscale), HxWx3 (RGB) or HxWx4 (RGBA) array, 0-255
            scratch: Optional buffer from new_scratch(); the extractor's own
                buffer is used when omitted. It is cleared before use.

        Returns:
            Row-major luma bytes of length grid_size**2, or None if the
            buffer cannot be processed
        """
        if scratch is None:
            if self._scratch is None:
                self._scratch = self.new_scratch()
            scratch = self._scratch
        elif scratch.shape != (self.grid_size, self.grid_size, 3) or scratch.dtype != np.float32:
            raise ValueError(
                f"Scratch buffer must be float32 of shape {(self.grid_size, self.grid_size, 3)}, "
                f"got {scratch.dtype} {scratch.shape}"
            )

        scratch.fill(0)

        try:
            rgb = _to_rgb(pixels)
            small = cv2.resize(
                rgb,
                (self.grid_size, self.grid_size),
                dst=scratch,
                interpolation=cv2.INTER_AREA,
            )
        except (cv2.error, ValueError) as e:
            logger.warning(f"Failed to fingerprint pixel buffer: {e}")
            return None

        # Weight in float64 so half-way sums round as the scalar formula does
        small = small.astype(np.float64)
        r, g, b = LUMA_WEIGHTS
        luma = small[..., 0] * r + small[..., 1] * g + small[..., 2] * b
        luma = np.clip(np.floor(luma + 0.5), 0, 255)
        return luma.astype(np.uint8).tobytes()

    def extract_file(self, path: Path) -> bytes | None:
        """Decode an image file and fingerprint it; None if it can't be decoded."""
        try:
            image = load_image(path)
        except Exception as e:
            logger.warning(f"Failed to load image {path}: {e}")
            return None
        return self.extract(image)


def _to_rgb(pixels: np.ndarray) -> np.ndarray:
    """Normalize a pixel buffer to a float32 HxWx3 array."""
    image = np.asarray(pixels)
    if image.size == 0:
        raise ValueError("Empty pixel buffer")

    if image.ndim == 3 and image.shape[2] == 1:
        image = image[..., 0]

    image = image.astype(np.float32)

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2RGB)
    if image.ndim == 3 and image.shape[2] == 3:
        return image

    raise ValueError(f"Unsupported pixel buffer shape: {image.shape}")


@dataclass
class FingerprintCache:
    """
    Fingerprints keyed by photo id.

    A None value marks a photo whose fingerprint could not be computed;
    it counts as done so that re-clustering never retries it.
    """

    grid_size: int = GRID_SIZE
    fingerprints: dict[str, bytes | None] = field(default_factory=dict)

    def __contains__(self, photo_id: object) -> bool:
        return photo_id in self.fingerprints

    def __len__(self) -> int:
        return len(self.fingerprints)

    def get(self, photo_id: str) -> bytes | None:
        return self.fingerprints.get(photo_id)

    def set(self, photo_id: str, fingerprint: bytes | None) -> None:
        self.fingerprints[photo_id] = fingerprint

    def missing(self) -> list[str]:
        """Ids whose fingerprint failed."""
        return [pid for pid, fp in self.fingerprints.items() if fp is None]

    def pending(self, photo_ids: Iterable[str]) -> list[str]:
        """Ids from photo_ids that have not been fingerprinted yet."""
        return [pid for pid in photo_ids if pid not in self.fingerprints]

    def prune(self, photo_ids: Iterable[str]) -> list[str]:
        """Drop fingerprints for ids not in photo_ids; returns the dropped ids."""
        keep = set(photo_ids)
        removed = [pid for pid in self.fingerprints if pid not in keep]
        for pid in removed:
            del self.fingerprints[pid]
        return removed


@dataclass
class BatchProgress:
    """Progress report emitted between fingerprint batches."""

    done: int
    total: int
    elapsed: float  # seconds
    eta: float  # seconds

    @property
    def fraction(self) -> float:
        return self.done / self.total if self.total else 1.0


def compute_fingerprints(
    photo_ids: Iterable[str],
    load_pixels: Callable[[str], np.ndarray],
    cache: FingerprintCache,
    extractor: FingerprintExtractor | None = None,
    batch_size: int = BATCH_SIZE,
) -> Iterator[BatchProgress]:
    """
    Fingerprint every photo that is not cached yet, in batches.

    This is a generator: it hands control back to the caller after every
    batch_size photos (and after the last one). Results land in cache as
    they are computed, so dropping the generator and calling this again
    picks up where it stopped.

    Args:
        photo_ids: Photos to fingerprint, in processing order
        load_pixels: Callback decoding a photo id into a pixel array
        cache: Cache to fill
        extractor: Extractor to use (defaults to one matching cache.grid_size)
        batch_size: Photos per batch

    Yields:
        BatchProgress after each batch
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    if extractor is None:
        extractor = FingerprintExtractor(cache.grid_size)
    elif extractor.grid_size != cache.grid_size:
        raise ValueError(
            f"Extractor grid size {extractor.grid_size} does not match cache grid size {cache.grid_size}"
        )

    pending = cache.pending(photo_ids)
    total = len(pending)
    if total == 0:
        return

    scratch = extractor.new_scratch()
    start = time.monotonic()

    for idx, pid in enumerate(pending):
        try:
            pixels = load_pixels(pid)
        except Exception as e:
            logger.warning(f"Failed to load image {pid}: {e}")
            fingerprint = None
        else:
            fingerprint = extractor.extract(pixels, scratch)

        cache.set(pid, fingerprint)

        done = idx + 1
        if done % batch_size == 0 or done == total:
            elapsed = time.monotonic() - start
            eta = (total - done) * (elapsed / done)
            yield BatchProgress(done=done, total=total, elapsed=elapsed, eta=eta)
