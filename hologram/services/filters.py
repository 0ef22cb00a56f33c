"""Photo filtering - pure predicate evaluation over a photo list."""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from hologram.schemas.photo import Photo, PhotoFilter

Predicate = Callable[[Photo], bool]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _equals(getter: Callable[[Photo], Any], expected: Any) -> Predicate:
    return lambda photo: getter(photo) is not None and getter(photo) == expected


def _within(getter: Callable[[Photo], Any], bounds: tuple[Any, Any]) -> Predicate:
    low, high = bounds

    def check(photo: Photo) -> bool:
        value = getter(photo)
        # A photo without the value cannot satisfy a predicate about it
        return value is not None and low <= value <= high

    return check


def build_predicates(criteria: PhotoFilter) -> list[Predicate]:
    """One predicate per populated filter field."""
    predicates: list[Predicate] = []

    if criteria.camera_make is not None:
        predicates.append(_equals(lambda p: p.exif.camera_make, criteria.camera_make))
    if criteria.camera_model is not None:
        predicates.append(_equals(lambda p: p.exif.camera_model, criteria.camera_model))
    if criteria.lens_model is not None:
        predicates.append(_equals(lambda p: p.exif.lens_model, criteria.lens_model))
    if criteria.file_type is not None:
        predicates.append(_equals(lambda p: p.file_type, criteria.file_type))

    if criteria.focal_length_range is not None:
        predicates.append(_within(lambda p: p.exif.focal_length, criteria.focal_length_range))
    if criteria.aperture_range is not None:
        predicates.append(_within(lambda p: p.exif.aperture, criteria.aperture_range))
    if criteria.iso_range is not None:
        predicates.append(_within(lambda p: p.exif.iso, criteria.iso_range))
    if criteria.date_range is not None:
        start, end = criteria.date_range
        predicates.append(
            _within(
                lambda p: _as_utc(p.exif.date_taken) if p.exif.date_taken else None,
                (_as_utc(start), _as_utc(end)),
            )
        )

    return predicates


def filter_photos(photos: list[Photo], criteria: PhotoFilter) -> list[Photo]:
    """Return the photos matching every populated field of `criteria`, in input order."""
    predicates = build_predicates(criteria)
    if not predicates:
        return list(photos)
    return [photo for photo in photos if all(check(photo) for check in predicates)]
