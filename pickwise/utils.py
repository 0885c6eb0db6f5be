"""Utility functions for pickwise: folder scanning, image loading, helpers."""

from pathlib import Path

import numpy as np
from PIL import Image

# Supported image extensions
SUPPORTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tif", ".tiff"}


def is_image_file(path: Path) -> bool:
    """Check a file name against the supported image extensions."""
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


def get_image_files(folder: Path, recursive: bool = True) -> list[Path]:
    """
    Get all supported image files under a folder.

    Hidden files and directories (leading dot) are skipped. The result is
    sorted by path relative to the folder so the photo order is stable
    between runs.
    """
    if not folder.is_dir():
        raise ValueError(f"Not a valid directory: {folder}")

    pattern = "**/*" if recursive else "*"
    files = []
    for item in folder.glob(pattern):
        relative = item.relative_to(folder)
        if any(part.startswith(".") for part in relative.parts):
            continue
        if item.is_file() and is_image_file(item):
            files.append(item)

    return sorted(files, key=lambda p: p.relative_to(folder).as_posix())


def photo_id(path: Path, folder: Path) -> str:
    """Stable photo identifier: the POSIX path relative to the photo folder."""
    return path.relative_to(folder).as_posix()


def load_image(path: Path) -> np.ndarray:
    """Load an image file and return as RGB numpy array."""
    with Image.open(path) as img:
        # Convert to RGB if necessary (handles grayscale, RGBA, palette, etc.)
        if img.mode != "RGB":
            img = img.convert("RGB")
        return np.array(img)


def format_eta(seconds: float) -> str:
    """Format a duration as '42s', '3m 5s' or '1h 20m'."""
    if seconds < 60:
        return f"{round(seconds)}s"
    if seconds < 3600:
        mins = int(seconds // 60)
        secs = round(seconds % 60)
        return f"{mins}m {secs}s"
    hours = int(seconds // 3600)
    mins = int((seconds % 3600) // 60)
    return f"{hours}h {mins}m"
