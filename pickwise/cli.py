"""CLI entry point for pickwise."""

import logging
import random
import sys
from pathlib import Path

import click
from tqdm import tqdm

from . import __version__
from .clusterer import PhotoClusterer, selected_counts, toggle_cluster
from .fingerprint import (
    BATCH_SIZE,
    GRID_SIZE,
    FingerprintCache,
    FingerprintExtractor,
    compute_fingerprints,
)
from .confidence import round_half_up
from .importer import format_ranking, matches_import, parse_import_data
from .pairing import PairingScheduler
from .session import (
    DEFAULT_TARGET,
    RankingSession,
    SessionState,
    delete_session,
    load_session,
    save_session,
)
from .utils import format_eta, get_image_files, load_image, photo_id


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def scan_folder(folder: Path) -> dict[str, Path]:
    """Map photo ids to paths for every image under folder, in stable order."""
    image_files = get_image_files(folder)
    if not image_files:
        click.echo("No supported image files found in the folder.")
        sys.exit(0)

    click.echo(f"Found {len(image_files)} image files.")
    return {photo_id(path, folder): path for path in image_files}


def load_or_create_state(folder: Path, reset: bool = False) -> SessionState:
    """Load the folder's session cache, optionally clearing it first."""
    if reset:
        if delete_session(folder):
            click.echo("Cleared existing session cache.")
        else:
            click.echo("No existing cache to clear.")

    state = load_session(folder)
    if state is None:
        click.echo("Starting fresh (no existing cache).")
        return SessionState()

    click.echo(
        f"Loaded cache with {len(state.candidates)} candidates, "
        f"{len(state.fingerprints)} fingerprints."
    )
    return state


@click.group()
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show detailed processing information.",
)
@click.version_option(version=__version__, prog_name="pickwise")
def main(verbose: bool) -> None:
    """
    Narrow a photo folder down to a "best of" set.

    Group near-duplicate shots with `cluster`, rank candidates head to head
    with `rank`, and list the winners with `results`.
    """
    setup_logging(verbose)


@main.command()
@click.argument(
    "folder",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
)
@click.option(
    "--threshold",
    type=click.FloatRange(0, 255),
    default=None,
    help="RMS distance (0-255) for neighbours to share a cluster. Default: last used, or 15.",
)
@click.option(
    "--grid-size",
    type=click.IntRange(min=1),
    default=GRID_SIZE,
    help=f"Fingerprint grid side (default: {GRID_SIZE}).",
)
@click.option(
    "--batch-size",
    type=click.IntRange(min=1),
    default=BATCH_SIZE,
    help=f"Photos fingerprinted between progress updates (default: {BATCH_SIZE}).",
)
@click.option(
    "--select-cluster",
    "select_clusters",
    type=click.IntRange(min=1),
    multiple=True,
    help="Toggle selection of every photo in cluster N (1-based). Repeatable.",
)
@click.option(
    "--reset",
    is_flag=True,
    help="Clear the session cache (fingerprints and ranking) first.",
)
def cluster(
    folder: Path,
    threshold: float | None,
    grid_size: int,
    batch_size: int,
    select_clusters: tuple[int, ...],
    reset: bool,
) -> None:
    """
    Group consecutive similar photos in FOLDER.

    Fingerprints are cached, so re-running with another --threshold only
    regroups.
    """
    folder = folder.resolve()
    click.echo(f"Processing folder: {folder}")

    paths = scan_folder(folder)
    state = load_or_create_state(folder, reset)

    if state.fingerprints.grid_size != grid_size:
        click.echo(f"Grid size changed to {grid_size}; discarding cached fingerprints.")
        state.fingerprints = FingerprintCache(grid_size=grid_size)

    removed = state.fingerprints.prune(paths)
    if removed:
        click.echo(f"Removed {len(removed)} fingerprints for deleted files.")

    if threshold is not None:
        state.threshold = threshold

    photo_ids = list(paths)
    pending = state.fingerprints.pending(photo_ids)

    if pending:
        click.echo(f"Fingerprinting {len(pending)} new images...")
        extractor = FingerprintExtractor(grid_size)

        with tqdm(total=len(pending), desc="Fingerprinting", unit="img") as pbar:
            for progress in compute_fingerprints(
                pending,
                lambda pid: load_image(paths[pid]),
                state.fingerprints,
                extractor,
                batch_size,
            ):
                pbar.update(progress.done - pbar.n)
                pbar.set_postfix_str(f"ETA {format_eta(progress.eta)}")
                # Checkpoint so an interrupted run resumes from here
                save_session(state, folder)
    else:
        click.echo("All images already fingerprinted.")

    failed = [pid for pid in state.fingerprints.missing() if pid in paths]
    if failed:
        click.echo(f"{len(failed)} images could not be read and stand alone.")

    clusterer = PhotoClusterer(threshold=state.threshold)
    result = clusterer.cluster(photo_ids, state.fingerprints)

    for number in select_clusters:
        if number > result.num_clusters:
            click.echo(f"No cluster {number} (only {result.num_clusters}).")
            continue
        now_selected = toggle_cluster(result.clusters[number - 1], state.selected)
        click.echo(f"Cluster {number} {'selected' if now_selected else 'deselected'}.")

    counts = selected_counts(result.clusters, state.selected)

    click.echo(f"\nClustering complete (threshold {state.threshold:g}):")
    click.echo(f"  - {result.num_clusters} clusters")
    click.echo(f"  - {result.num_singletons} single photos")
    click.echo(f"  - {len(state.selected)} photos selected")

    click.echo("\nCluster breakdown:")
    for number, (members, selected) in enumerate(zip(result.clusters, counts), start=1):
        size = f"{len(members)} photo{'s' if len(members) > 1 else ''}"
        marker = f", {selected} selected" if selected else ""
        click.echo(f"  {number:4d}. {members[0]} ({size}{marker})")

    save_session(state, folder)


@main.command()
@click.argument(
    "folder",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
)
@click.argument(
    "import_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--clear",
    is_flag=True,
    help="Drop the current selection before importing.",
)
def select(folder: Path, import_file: Path, clear: bool) -> None:
    """
    Select photos in FOLDER listed in IMPORT_FILE.

    IMPORT_FILE may hold an exported ranking, plain filenames, or numbers
    (matched against numbers in file names).
    """
    folder = folder.resolve()
    paths = scan_folder(folder)
    state = load_or_create_state(folder)

    data = parse_import_data(import_file.read_text(encoding="utf-8"))
    if not data:
        click.echo("Nothing recognised in the import file.")
        sys.exit(0)

    if clear:
        state.selected.clear()

    matched = [
        pid for pid, path in paths.items()
        if pid in data.filenames or matches_import(path.name, data)
    ]
    state.selected.update(matched)

    click.echo(
        f"Matched {len(matched)} photos from {len(data.filenames)} filenames "
        f"and {len(data.numbers)} numbers; {len(state.selected)} selected."
    )
    save_session(state, folder)


@main.command()
@click.argument(
    "folder",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
)
@click.option(
    "--target",
    type=click.IntRange(min=1),
    default=None,
    help=f"Number of photos to keep (default: last used, or {DEFAULT_TARGET}).",
)
@click.option(
    "--import",
    "import_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Add photos listed in this file to the candidate pool.",
)
@click.option(
    "--seed",
    type=int,
    default=None,
    help="Random seed for pairing (for reproducible sessions).",
)
@click.option(
    "--restart",
    is_flag=True,
    help="Discard ranking progress and start a new session.",
)
def rank(
    folder: Path,
    target: int | None,
    import_file: Path | None,
    seed: int | None,
    restart: bool,
) -> None:
    """
    Rank candidates in FOLDER by head-to-head comparisons.

    The pool is the current selection (see `select` and `cluster
    --select-cluster`), or every photo if nothing is selected. Progress is
    saved after each decision.
    """
    folder = folder.resolve()
    paths = scan_folder(folder)
    state = load_or_create_state(folder)

    if target is not None:
        state.target_count = target

    scheduler = PairingScheduler(rng=random.Random(seed))

    if state.candidates and not restart:
        session = RankingSession.from_state(state, scheduler=scheduler)
        click.echo(f"Resuming ranking after {session.comparisons_completed} comparisons.")
    else:
        session = RankingSession(target_count=state.target_count, scheduler=scheduler)
        pool = [pid for pid in paths if pid in state.selected] or list(paths)
        session.start(pool)
        click.echo(f"Starting ranking with {len(session.candidates)} candidates.")

    if import_file is not None:
        data = parse_import_data(import_file.read_text(encoding="utf-8"))
        added = session.import_candidates(paths, data)
        state.selected.update(added)
        click.echo(f"Imported {len(added)} new candidates.")

    missing = [c.id for c in session.candidates if c.id not in paths]
    if missing:
        click.echo(f"Warning: {len(missing)} candidates are no longer in the folder.")

    click.echo(f"Candidates: {len(session.candidates)}  Target: {session.target_count}")
    click.echo("Pick 1 or 2, s = tie/skip, u = undo, q = quit.\n")

    confidence = session.confidence()
    while True:
        pair = session.next_pair()
        if pair is None:
            click.echo("Need at least two candidates to compare.")
            break

        id_a, id_b = pair
        click.echo(
            f"Comparison {session.comparisons_completed + 1}  (confidence {confidence}%)"
        )
        for number, pid in enumerate(pair, start=1):
            candidate = session.store.get(pid)
            click.echo(f"  [{number}] {pid}  (rating {round_half_up(candidate.rating)})")

        choice = click.prompt(
            "Choice",
            type=click.Choice(["1", "2", "s", "u", "q"]),
            show_choices=False,
        )

        if choice == "q":
            break
        if choice == "u":
            if session.undo() is None:
                click.echo("Nothing to undo.\n")
                continue
            click.echo("Undid last comparison.\n")
        elif choice == "s":
            session.skip()
        else:
            session.choose(id_a if choice == "1" else id_b)

        confidence = session.confidence()
        save_session(session.to_state(state), folder)

    save_session(session.to_state(state), folder)

    click.echo(f"\nTop {session.target_count} after {session.comparisons_completed} comparisons:")
    click.echo(format_ranking(session.top_ranked()))


@main.command()
@click.argument(
    "folder",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
)
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    default=None,
    help="Write the list to this file instead of printing it.",
)
@click.option(
    "--all", "show_all",
    is_flag=True,
    help="List every candidate, not just the top target count.",
)
def results(folder: Path, output: Path | None, show_all: bool) -> None:
    """List the best photos ranked so far in FOLDER."""
    folder = folder.resolve()
    state = load_session(folder)
    if state is None or not state.candidates:
        click.echo("No ranking session found. Run `pickwise rank` first.")
        sys.exit(0)

    session = RankingSession.from_state(state)
    ranked = session.store.ranked() if show_all else session.top_ranked()
    text = format_ranking(ranked)

    if output is None:
        click.echo(text)
        return

    output.write_text(text + "\n", encoding="utf-8")
    click.echo(f"Wrote {len(ranked)} photos to {output}")


if __name__ == "__main__":
    main()
