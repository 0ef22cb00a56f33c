"""Library statistics over a photo list."""

from collections import Counter

from hologram.schemas.photo import FileType, Photo, PhotoStats


def _count_values(values) -> dict[str, int]:
    counts = Counter(v for v in values if v and v.strip())
    return dict(sorted(counts.items()))


def compute_stats(photos: list[Photo]) -> PhotoStats:
    """Aggregate counts for a photo list. The result does not depend on input order."""
    by_id = {photo.id: photo for photo in photos}

    pairs = set()
    for photo in photos:
        partner = by_id.get(photo.paired_with) if photo.paired_with else None
        # Only symmetric links between photos that are both present count
        if partner is not None and partner.paired_with == photo.id and partner.id != photo.id:
            pairs.add(frozenset((photo.id, partner.id)))

    return PhotoStats(
        total_photos=len(photos),
        raw_count=sum(1 for p in photos if p.file_type == FileType.RAW),
        jpeg_count=sum(1 for p in photos if p.file_type == FileType.JPEG),
        paired_count=len(pairs),
        cameras=_count_values(p.exif.camera_model for p in photos),
        lenses=_count_values(p.exif.lens_model for p in photos),
    )
