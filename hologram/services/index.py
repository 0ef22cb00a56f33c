"""In-memory photo index - the collection a scan produces."""

import logging
import os

from hologram.schemas.photo import Photo

logger = logging.getLogger(__name__)


class IndexSealedError(Exception):
    """A write was attempted after the scan that built the index finished."""


class IndexNotReadyError(Exception):
    """A snapshot was requested while the index is still being built."""


class PhotoIndex:
    """Mapping of photo id -> Photo, written by one scan and then sealed.

    The scan pipeline is the only writer. Once sealed the index is read-only;
    a new scan builds a new index instead of merging into this one.
    """

    def __init__(self):
        self._photos: dict[str, Photo] = {}
        self._by_path: dict[str, str] = {}
        self._sealed = False

    @property
    def is_sealed(self) -> bool:
        return self._sealed

    def _check_writable(self) -> None:
        if self._sealed:
            raise IndexSealedError("Photo index is read-only after scan completion")

    def insert(self, photo: Photo) -> None:
        """Insert or replace a photo by id."""
        self._check_writable()
        self._photos[photo.id] = photo
        self._by_path[photo.file_path] = photo.id

    def apply(self, photos: list[Photo]) -> None:
        """Replace the given records in one step (used by pairing).

        When `photos` covers the whole index, its order becomes the index order.
        """
        self._check_writable()
        unknown = [p.id for p in photos if p.id not in self._photos]
        if unknown:
            raise KeyError(f"Photos not in index: {', '.join(unknown)}")
        if len(photos) == len(self._photos):
            self._photos = {p.id: p for p in photos}
        else:
            self._photos.update((p.id, p) for p in photos)

    def seal(self) -> None:
        self._sealed = True
        logger.debug("Photo index sealed with %d photos", len(self._photos))

    def get(self, photo_id: str) -> Photo | None:
        return self._photos.get(photo_id)

    def find_by_path(self, file_path: str) -> Photo | None:
        photo_id = self._by_path.get(os.path.abspath(file_path))
        return self._photos.get(photo_id) if photo_id else None

    def snapshot(self) -> list[Photo]:
        """All photos in insertion order. Only available once sealed."""
        if not self._sealed:
            raise IndexNotReadyError("Photo index is still being built")
        return list(self._photos.values())

    def __len__(self) -> int:
        return len(self._photos)

    def __contains__(self, photo_id: object) -> bool:
        return photo_id in self._photos
