"""Full-resolution loader - on-demand access to one original file."""

import logging
from pathlib import Path

import rawpy
from PIL import Image

from hologram.schemas.photo import FileType
from hologram.services.scanner import classify

logger = logging.getLogger(__name__)


class FullResolutionLoadError(Exception):
    """The original file is missing, unsupported or cannot be decoded."""

    def __init__(self, message: str, reason: str = "undecodable"):
        super().__init__(message)
        self.reason = reason  # "missing", "unsupported" or "undecodable"


def _decode_fully(filepath: Path, file_type: FileType) -> None:
    """Decode every pixel of the file, raising on any error."""
    if file_type == FileType.RAW:
        with rawpy.imread(str(filepath)) as raw:
            # Touching raw_image forces LibRaw to unpack the sensor data
            raw.raw_image.shape
        return

    with Image.open(filepath) as img:
        img.load()


def load_full_resolution(file_path: str | Path) -> bytes:
    """Return the original file bytes once the image has been fully decoded.

    Raises FullResolutionLoadError with a caller-facing message on failure;
    never returns partial data.
    """
    filepath = Path(file_path)
    if not filepath.is_file():
        raise FullResolutionLoadError(f"File does not exist: {filepath}", reason="missing")

    file_type = classify(filepath)
    if file_type is None:
        raise FullResolutionLoadError(f"Unsupported file format: {filepath.name}", reason="unsupported")

    try:
        data = filepath.read_bytes()
        _decode_fully(filepath, file_type)
    except (rawpy.LibRawError, OSError, ValueError, Image.DecompressionBombError) as e:
        logger.warning("Failed to load %s: %s", filepath, e)
        raise FullResolutionLoadError(f"Failed to load image: {e}") from e

    logger.debug("Loaded %s (%d bytes)", filepath, len(data))
    return data
