from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator


class FileType(str, Enum):
    RAW = "RAW"
    JPEG = "JPEG"


class ExifData(BaseModel):
    """Capture metadata. A missing field means it could not be recovered."""

    camera_make: str | None = None
    camera_model: str | None = None
    lens_model: str | None = None
    focal_length: float | None = None  # millimeters
    aperture: float | None = None  # f-number
    shutter_speed: str | None = None
    iso: int | None = None
    exposure_mode: str | None = None
    flash: str | None = None
    white_balance: str | None = None
    date_taken: datetime | None = None
    width: int | None = None
    height: int | None = None
    orientation: int | None = None

    model_config = ConfigDict(frozen=True)


class Photo(BaseModel):
    id: str
    file_path: str
    file_name: str
    file_size: int
    file_type: FileType
    extension: str
    thumbnail: str | None = None  # base64 encoded JPEG
    exif: ExifData = ExifData()
    created_at: datetime
    modified_at: datetime
    paired_with: str | None = None  # id of the RAW/JPEG sibling

    model_config = ConfigDict(frozen=True)


class PhotoFilter(BaseModel):
    """Predicate specification. Populated fields are ANDed together."""

    camera_make: str | None = None
    camera_model: str | None = None
    lens_model: str | None = None
    file_type: FileType | None = None
    focal_length_range: tuple[float, float] | None = None
    aperture_range: tuple[float, float] | None = None
    iso_range: tuple[int, int] | None = None
    date_range: tuple[datetime, datetime] | None = None

    @field_validator("focal_length_range", "aperture_range", "iso_range", "date_range")
    @classmethod
    def _check_bounds(cls, value):
        if value is not None and value[0] > value[1]:
            raise ValueError("range minimum is greater than its maximum")
        return value


class PhotoStats(BaseModel):
    total_photos: int = 0
    raw_count: int = 0
    jpeg_count: int = 0
    paired_count: int = 0
    cameras: dict[str, int] = {}
    lenses: dict[str, int] = {}


class ScanPhase(str, Enum):
    DISCOVERING = "discovering"
    EXTRACTING = "extracting"
    PAIRING = "pairing"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ScanProgress(BaseModel):
    scan_id: str
    current: int = 0
    total: int = 0
    percentage: float = 0.0
    current_file: str | None = None
    phase: ScanPhase = ScanPhase.DISCOVERING


class ScanEventType(str, Enum):
    PROGRESS = "scan-progress"
    COMPLETE = "scan-complete"
    CANCELLED = "scan-cancelled"
    FAILED = "scan-failed"


class ScanEvent(BaseModel):
    event: ScanEventType
    progress: ScanProgress
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.event != ScanEventType.PROGRESS


class ScanResult(BaseModel):
    """Outcome of one scan request."""

    scan_id: str
    photos: list[Photo] = []
    cancelled: bool = False
    skipped: int = 0


class ScanRequest(BaseModel):
    folder_path: str


class FilterRequest(BaseModel):
    photos: list[Photo]
    filter: PhotoFilter = PhotoFilter()


class StatsRequest(BaseModel):
    photos: list[Photo]
