"""Hologram engine - the request/response surface the presentation layer calls."""

import asyncio
import logging

from hologram.schemas.photo import Photo, PhotoFilter, PhotoStats, ScanResult
from hologram.services.filters import filter_photos
from hologram.services.index import IndexNotReadyError, PhotoIndex
from hologram.services.loader import FullResolutionLoadError, load_full_resolution
from hologram.services.stats import compute_stats
from hologram.workers.pipeline import ScanInProgressError, ScanPipeline
from hologram.workers.progress import ProgressChannel, Subscription

logger = logging.getLogger(__name__)


class PhotoEngine:
    """Owns the photo index of the last completed scan and the progress channel."""

    def __init__(self):
        self.channel = ProgressChannel()
        self._index: PhotoIndex | None = None
        self._active: ScanPipeline | None = None

    @property
    def is_scanning(self) -> bool:
        return self._active is not None

    def subscribe(self) -> Subscription:
        """Subscribe to progress events for the next scan_folder_with_progress call."""
        return self.channel.subscribe()

    async def _scan(self, folder_path: str, channel: ProgressChannel | None) -> ScanResult:
        if self._active is not None:
            raise ScanInProgressError("A scan is already running")

        pipeline = ScanPipeline(channel)
        self._active = pipeline
        self._index = None
        try:
            result, index = await pipeline.run(folder_path)
        finally:
            self._active = None

        self._index = index
        return result

    async def scan_folder(self, folder_path: str) -> list[Photo]:
        """Scan a folder and return its photos. No progress events are emitted."""
        result = await self._scan(folder_path, None)
        return result.photos

    async def scan_folder_with_progress_result(self, folder_path: str) -> ScanResult:
        return await self._scan(folder_path, self.channel)

    async def scan_folder_with_progress(self, folder_path: str) -> list[Photo]:
        """Scan a folder, publishing progress to current subscribers."""
        result = await self.scan_folder_with_progress_result(folder_path)
        return result.photos

    def cancel_scan(self) -> bool:
        """Request cancellation of the running scan. Returns False if none is running."""
        if self._active is None:
            return False
        self._active.cancel()
        logger.info("Scan cancellation requested")
        return True

    def photos(self) -> list[Photo]:
        """Snapshot of the last completed scan."""
        if self._active is not None:
            raise IndexNotReadyError("A scan is in progress")
        if self._index is None:
            return []
        return self._index.snapshot()

    def get_photo(self, photo_id: str) -> Photo | None:
        if self._index is None or not self._index.is_sealed:
            return None
        return self._index.get(photo_id)

    def find_photo_by_path(self, file_path: str) -> Photo | None:
        if self._index is None or not self._index.is_sealed:
            return None
        return self._index.find_by_path(file_path)

    def filter_photos(self, photos: list[Photo], criteria: PhotoFilter) -> list[Photo]:
        return filter_photos(photos, criteria)

    def get_photo_stats(self, photos: list[Photo]) -> PhotoStats:
        return compute_stats(photos)

    async def load_full_resolution_image(self, file_path: str) -> bytes:
        """Load one original file. Raises FullResolutionLoadError on failure."""
        return await asyncio.to_thread(load_full_resolution, file_path)

    async def load_full_resolution_by_id(self, photo_id: str) -> bytes:
        photo = self.get_photo(photo_id)
        if photo is None:
            raise FullResolutionLoadError(f"Photo not found: {photo_id}", reason="missing")
        return await self.load_full_resolution_image(photo.file_path)


# Global engine
engine = PhotoEngine()
