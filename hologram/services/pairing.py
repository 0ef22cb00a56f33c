"""RAW+JPEG pairing - links files from the same shot."""

import logging
import os
from collections import defaultdict

from hologram.config import settings
from hologram.schemas.photo import FileType, Photo

logger = logging.getLogger(__name__)


def _pair_key(photo: Photo) -> tuple[str, str]:
    """Photos are siblings when directory and case-folded stem match."""
    directory, name = os.path.split(photo.file_path)
    stem, _ext = os.path.splitext(name)
    return directory, stem.lower()


def _ranked(photos: list[Photo], priority: list[str]) -> list[Photo]:
    order = {ext.lower().lstrip("."): rank for rank, ext in enumerate(priority)}

    def sort_key(photo: Photo) -> tuple[int, str, str]:
        ext = photo.extension.lower()
        return order.get(ext, len(order)), ext, photo.file_name

    return sorted(photos, key=sort_key)


def pair_photos(photos: list[Photo]) -> list[Photo]:
    """Return the photos, in the same order, with `paired_with` set.

    Each group of same-directory, same-stem files yields at most one pair:
    the best-ranked RAW with the best-ranked JPEG. Pairing is recomputed from
    scratch; any incoming `paired_with` values are dropped.
    """
    groups: dict[tuple[str, str], list[Photo]] = defaultdict(list)
    for photo in photos:
        groups[_pair_key(photo)].append(photo)

    partners: dict[str, str] = {}
    for group in groups.values():
        if len(group) < 2:
            continue
        raws = [p for p in group if p.file_type == FileType.RAW]
        jpegs = [p for p in group if p.file_type == FileType.JPEG]
        if not raws or not jpegs:
            continue

        raw = _ranked(raws, settings.raw_priority)[0]
        jpeg = _ranked(jpegs, settings.jpeg_priority)[0]
        partners[raw.id] = jpeg.id
        partners[jpeg.id] = raw.id
        if len(raws) > 1 or len(jpegs) > 1:
            logger.debug(
                "Ambiguous pair group %s: chose %s + %s",
                _pair_key(raw), raw.file_name, jpeg.file_name,
            )

    paired = [
        photo if photo.paired_with == partners.get(photo.id)
        else photo.model_copy(update={"paired_with": partners.get(photo.id)})
        for photo in photos
    ]
    logger.info("Paired %d RAW+JPEG sets among %d photos", len(partners) // 2, len(photos))
    return paired
