"""Shared test fixtures."""

import os
from datetime import datetime, timezone
from pathlib import Path

import pytest
from PIL import Image

from hologram.config import settings
from hologram.schemas.photo import ExifData, FileType, Photo
from hologram.services.scanner import photo_id

EXIF_IFD = 0x8769


def make_jpeg(
    path: Path,
    size: tuple[int, int] = (640, 480),
    make: str | None = None,
    model: str | None = None,
    orientation: int | None = None,
    exif_ifd: dict | None = None,
) -> Path:
    """Write a real JPEG, optionally with IFD0 and Exif sub-IFD tags."""
    path.parent.mkdir(parents=True, exist_ok=True)
    exif = Image.Exif()
    if make:
        exif[0x010F] = make
    if model:
        exif[0x0110] = model
    if orientation:
        exif[0x0112] = orientation
    if exif_ifd:
        exif[EXIF_IFD] = exif_ifd
    Image.new("RGB", size, (200, 80, 40)).save(path, "JPEG", exif=exif)
    return path


def make_raw(path: Path, make: str = "Canon", model: str = "Canon EOS R5", size=(320, 240)) -> Path:
    """Write a TIFF-structured stand-in for a RAW file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, (10, 120, 200)).save(
        path, "TIFF", tiffinfo={0x010F: make, 0x0110: model}
    )
    return path


def make_photo(
    file_path: str,
    file_type: FileType | None = None,
    paired_with: str | None = None,
    **exif,
) -> Photo:
    """Build a Photo record without touching the filesystem."""
    path = os.path.abspath(file_path)
    extension = os.path.splitext(path)[1].lstrip(".").upper()
    if file_type is None:
        file_type = FileType.JPEG if extension in ("JPG", "JPEG") else FileType.RAW
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return Photo(
        id=photo_id(path),
        file_path=path,
        file_name=os.path.basename(path),
        file_size=1024,
        file_type=file_type,
        extension=extension,
        exif=ExifData(**exif),
        created_at=now,
        modified_at=now,
        paired_with=paired_with,
    )


@pytest.fixture
def library(tmp_path: Path) -> Path:
    """IMG_0001.CR2 + IMG_0001.JPG (a pair) and a lone IMG_0002.JPG."""
    make_raw(tmp_path / "IMG_0001.CR2")
    make_jpeg(tmp_path / "IMG_0001.JPG", make="Canon", model="Canon EOS R5")
    make_jpeg(tmp_path / "IMG_0002.JPG", make="Canon", model="Canon EOS R5")
    return tmp_path


@pytest.fixture(autouse=True)
def small_worker_pool(monkeypatch):
    monkeypatch.setattr(settings, "workers", 2)
