"""Import of pasted selections and export of ranking lists."""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .confidence import round_half_up
from .rating import Candidate

# "1. IMG_1234.jpg (Rating: 1623, Comparisons: 8)"
EXPORT_LINE_RE = re.compile(r"^\d+\.\s+(.+?)\s+\(Rating:")

# A bare image filename on its own line
FILENAME_RE = re.compile(
    r"^([^(]+\.(jpg|jpeg|png|gif|webp|bmp|tiff|tif|heic|heif|raw|cr2|nef|arw))$",
    re.IGNORECASE,
)

NUMBER_RE = re.compile(r"\d+")


@dataclass
class ImportData:
    """Filenames and numbers recognised in pasted text."""

    filenames: list[str] = field(default_factory=list)
    numbers: list[int] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.filenames or self.numbers)


def parse_import_data(text: str) -> ImportData:
    """
    Parse a pasted selection.

    Understands three kinds of lines:
    1. Lines from an exported ranking: "1. DSC_1234.jpg (Rating: 1623, ...)"
    2. Bare filenames: "DSC_1234.jpg"
    3. Anything else: every number in the line, e.g. "1234, 1240 / 1301"

    Returns:
        ImportData with filenames deduplicated in order of appearance and
        numbers deduplicated and sorted
    """
    filenames: list[str] = []
    numbers: set[int] = set()

    for line in text.splitlines():
        trimmed = line.strip()
        if not trimmed:
            continue

        export_match = EXPORT_LINE_RE.match(trimmed)
        if export_match:
            filenames.append(export_match.group(1).strip())
            continue

        filename_match = FILENAME_RE.match(trimmed)
        if filename_match:
            filenames.append(filename_match.group(1).strip())
            continue

        numbers.update(int(n) for n in NUMBER_RE.findall(trimmed))

    return ImportData(
        filenames=list(dict.fromkeys(filenames)),
        numbers=sorted(numbers),
    )


def matches_import(name: str, data: ImportData) -> bool:
    """
    Check whether a photo file name matches imported data.

    Exact filename matches win; otherwise any number embedded in the name
    that equals an imported number counts (so "123" matches "IMG_0123.jpg").
    """
    if name in data.filenames:
        return True

    if data.numbers:
        name_numbers = {int(n) for n in NUMBER_RE.findall(name)}
        return any(n in name_numbers for n in data.numbers)

    return False


def format_ranking(
    candidates: Iterable[Candidate],
    names: Mapping[str, str] | None = None,
) -> str:
    """
    Render candidates as a numbered list, one per line.

    Args:
        candidates: Candidates in rank order
        names: Optional mapping of candidate id to display name

    Returns:
        Text such as "1. IMG_1234.jpg (Rating: 1623, Comparisons: 8)";
        parse_import_data() reads it back
    """
    if names is None:
        names = {}

    lines = []
    for rank, candidate in enumerate(candidates, start=1):
        name = names.get(candidate.id, candidate.id)
        lines.append(
            f"{rank}. {name} (Rating: {round_half_up(candidate.rating)}, "
            f"Comparisons: {candidate.comparisons})"
        )
    return "\n".join(lines)
