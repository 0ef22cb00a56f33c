"""Folder scanner - discovers RAW and JPEG files under a root directory."""

import logging
import os
import uuid
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from hologram.config import settings
from hologram.schemas.photo import FileType, Photo

logger = logging.getLogger(__name__)

# Enough to cover the longest signature we check (Fuji RAF)
SNIFF_SIZE = 16


class ScanRootError(Exception):
    """The folder given to a scan is missing, not a directory, or unreadable."""


@dataclass(frozen=True)
class Candidate:
    """A discovered file, classified but not yet processed."""

    path: Path
    file_type: FileType


def photo_id(path: str | Path) -> str:
    """Stable id for a file: the same absolute path always maps to the same id."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, os.path.abspath(path)))


def sniff_file_type(filepath: Path) -> FileType | None:
    """Classify a file by its leading bytes."""
    try:
        with open(filepath, "rb") as f:
            head = f.read(SNIFF_SIZE)
    except OSError:
        logger.debug("Cannot read header of %s", filepath)
        return None

    if head.startswith(b"\xff\xd8\xff"):
        return FileType.JPEG
    # Canon CR2 is TIFF with a "CR" marker at offset 8
    if head.startswith(b"II*\x00") and head[8:10] == b"CR":
        return FileType.RAW
    # Canon CR3 is an ISO-BMFF container with brand "crx "
    if head[4:8] == b"ftyp" and head[8:12] == b"crx ":
        return FileType.RAW
    if head[:4] in (b"IIRO", b"IIRS", b"MMOR", b"IIU\x00", b"FOVb", b"\x00MRM"):
        return FileType.RAW
    if head.startswith(b"FUJIFILMCCD-RAW"):
        return FileType.RAW
    return None


def classify(filepath: Path) -> FileType | None:
    """Classify a file as RAW or JPEG. Returns None for anything else."""
    suffix = filepath.suffix.lower()
    if suffix in settings.raw_extensions:
        return FileType.RAW
    if suffix in settings.jpeg_extensions:
        return FileType.JPEG
    return sniff_file_type(filepath)


def validate_root(root: str | Path) -> Path:
    """Resolve the scan root, raising ScanRootError if it cannot be scanned."""
    root_path = Path(os.path.abspath(os.path.expanduser(str(root))))
    if not root_path.exists():
        raise ScanRootError(f"Folder does not exist: {root_path}")
    if not root_path.is_dir():
        raise ScanRootError(f"Not a directory: {root_path}")
    return root_path


def _list_directory(directory: Path) -> tuple[list[Candidate], list[Path]]:
    """List one directory. Returns (candidates, subdirectories) in listing order."""
    candidates: list[Candidate] = []
    subdirs: list[Path] = []
    follow = settings.follow_symlinks

    with os.scandir(directory) as entries:
        for entry in entries:
            if settings.skip_hidden and entry.name.startswith("."):
                continue
            try:
                if entry.is_dir(follow_symlinks=follow):
                    subdirs.append(Path(entry.path))
                elif entry.is_file(follow_symlinks=follow):
                    filepath = Path(entry.path)
                    file_type = classify(filepath)
                    if file_type is not None:
                        candidates.append(Candidate(path=filepath, file_type=file_type))
                # Broken symlinks, sockets, devices etc. fall through
            except OSError as e:
                logger.warning("Skipping unreadable entry %s: %s", entry.path, e)

    return candidates, subdirs


def iter_directories(root: str | Path) -> Iterator[tuple[Path, list[Candidate]]]:
    """Walk the tree under root, yielding (directory, candidates) per directory.

    A directory's own files come before anything in its subdirectories.
    Unreadable subdirectories are logged and skipped; an unreadable root
    raises ScanRootError.
    """
    root_path = validate_root(root)
    visited: set[tuple[int, int]] = set()
    stack: list[Path] = [root_path]

    while stack:
        directory = stack.pop()
        try:
            st = directory.stat()
            key = (st.st_dev, st.st_ino)
            if key in visited:
                logger.debug("Already visited %s, skipping symlink loop", directory)
                continue
            visited.add(key)
            candidates, subdirs = _list_directory(directory)
        except OSError as e:
            if directory == root_path:
                raise ScanRootError(f"Cannot read folder {root_path}: {e}") from e
            logger.warning("Skipping unreadable directory %s: %s", directory, e)
            continue

        yield directory, candidates
        # Reversed so subdirectories are visited in listing order
        stack.extend(reversed(subdirs))


def iter_candidates(root: str | Path) -> Iterator[Candidate]:
    """Yield every RAW/JPEG candidate under root."""
    for _directory, candidates in iter_directories(root):
        yield from candidates


def _timestamp(value: float) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


def describe(candidate: Candidate) -> Photo:
    """Build the base Photo record from filesystem metadata.

    Raises OSError if the file cannot be stat'ed.
    """
    filepath = candidate.path
    file_stat = filepath.stat()
    # st_birthtime where the platform records it, otherwise ctime
    created = getattr(file_stat, "st_birthtime", file_stat.st_ctime)

    return Photo(
        id=photo_id(filepath),
        file_path=str(filepath),
        file_name=filepath.name,
        file_size=file_stat.st_size,
        file_type=candidate.file_type,
        extension=filepath.suffix.lstrip(".").upper(),
        created_at=_timestamp(created),
        modified_at=_timestamp(file_stat.st_mtime),
    )
