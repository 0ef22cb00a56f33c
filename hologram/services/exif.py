"""EXIF extraction service - reads capture metadata from RAW and JPEG files."""

import logging
import math
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import exifread
import rawpy
from PIL import ExifTags, Image
from PIL.ExifTags import TAGS

from hologram.schemas.photo import ExifData, FileType

logger = logging.getLogger(__name__)

EXPOSURE_MODES = {0: "Auto", 1: "Manual", 2: "Auto bracket"}
WHITE_BALANCE_MODES = {0: "Auto", 1: "Manual"}

# ExifRead prefixes that hold primary-image tags; "Thumbnail" (IFD1) is skipped
_EXIFREAD_GROUPS = ("Image", "EXIF")


def _clean_string(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        try:
            value = value.decode("utf-8")
        except UnicodeDecodeError:
            value = value.decode("latin-1")
    text = str(value).replace("\x00", "").strip()
    return text or None


def _to_float(value: Any) -> float | None:
    """Convert any EXIF numeric encoding (rational, tuple, int, str) to a float."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        if len(value) == 2 and all(isinstance(v, int) for v in value):
            num, den = value
            return num / den if den else None
        if len(value) == 1:
            return _to_float(value[0])
        return None
    # Older ExifRead Ratio objects only expose num/den
    if hasattr(value, "num") and hasattr(value, "den") and not hasattr(value, "numerator"):
        return value.num / value.den if value.den else None
    try:
        result = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    return result if math.isfinite(result) else None


def _to_int(value: Any) -> int | None:
    number = _to_float(value[0] if isinstance(value, (list, tuple)) and value else value)
    if number is None:
        return None
    return int(round(number))


def _format_shutter(seconds: float) -> str:
    if seconds >= 1:
        return f"{seconds:g}"
    return f"1/{round(1 / seconds)}"


def _from_apex(apex: float | None, scale: float) -> float | None:
    """Convert an APEX value to its linear quantity, 2 ** (apex * scale)."""
    if apex is None:
        return None
    try:
        return 2 ** (apex * scale)
    except OverflowError:
        logger.debug("APEX value %r out of range", apex)
        return None


def _parse_exif_datetime(value: str, offset: str | None = None) -> datetime | None:
    """Parse an EXIF datetime string into an aware datetime (UTC if no offset)."""
    formats = [
        "%Y:%m:%d %H:%M:%S",
        "%Y-%m-%d %H:%M:%S",
        "%Y:%m:%d",
        "%Y-%m-%d",
    ]
    parsed = None
    for fmt in formats:
        try:
            parsed = datetime.strptime(value.strip(), fmt)
            break
        except (ValueError, AttributeError):
            continue
    if parsed is None:
        return None

    tz = timezone.utc
    if offset:
        try:
            sign = -1 if offset.strip().startswith("-") else 1
            hours, minutes = offset.strip().lstrip("+-").split(":")
            tz = timezone(sign * timedelta(hours=int(hours), minutes=int(minutes)))
        except (ValueError, OverflowError):
            logger.debug("Ignoring malformed EXIF offset %r", offset)
    try:
        return parsed.replace(tzinfo=tz).astimezone(timezone.utc)
    except OverflowError:
        # Shifting to UTC would leave the representable date range
        logger.debug("EXIF date %r with offset %r is out of range", value, offset)
        return None


def _describe_flash(value: Any) -> str | None:
    flags = _to_int(value)
    if flags is None:
        return None
    if flags & 0x20:
        return "No flash function"
    return "Fired" if flags & 0x01 else "Did not fire"


def build_exif(tags: dict[str, Any], size: tuple[int, int] | None = None) -> ExifData:
    """Normalize a name -> value tag mapping into ExifData.

    Each field is derived independently; a malformed value only loses that field.
    `size` is the decoded pixel size and wins over tag dimensions when given.
    """
    result: dict[str, Any] = {}

    result["camera_make"] = _clean_string(tags.get("Make"))
    result["camera_model"] = _clean_string(tags.get("Model"))
    result["lens_model"] = _clean_string(tags.get("LensModel"))

    focal_length = _to_float(tags.get("FocalLength"))
    if focal_length and focal_length > 0:
        result["focal_length"] = round(focal_length, 2)

    aperture = _to_float(tags.get("FNumber"))
    if not aperture or aperture <= 0:
        # APEX aperture value: N = 2^(Av/2)
        aperture = _from_apex(_to_float(tags.get("ApertureValue")), 0.5)
    if aperture and aperture > 0:
        result["aperture"] = round(aperture, 1)

    exposure = _to_float(tags.get("ExposureTime"))
    if not exposure or exposure <= 0:
        # APEX shutter speed value: t = 2^-Tv
        exposure = _from_apex(_to_float(tags.get("ShutterSpeedValue")), -1)
    if exposure and exposure > 0:
        try:
            result["shutter_speed"] = _format_shutter(exposure)
        except OverflowError:
            logger.debug("Exposure time %r out of range", exposure)

    for iso_tag in ("ISOSpeedRatings", "PhotographicSensitivity"):
        iso = _to_int(tags.get(iso_tag))
        if iso and iso > 0:
            result["iso"] = iso
            break

    mode = _to_int(tags.get("ExposureMode"))
    if mode in EXPOSURE_MODES:
        result["exposure_mode"] = EXPOSURE_MODES[mode]
    balance = _to_int(tags.get("WhiteBalance"))
    if balance in WHITE_BALANCE_MODES:
        result["white_balance"] = WHITE_BALANCE_MODES[balance]
    result["flash"] = _describe_flash(tags.get("Flash"))

    for date_tag, offset_tag in [
        ("DateTimeOriginal", "OffsetTimeOriginal"),
        ("DateTimeDigitized", "OffsetTimeDigitized"),
        ("DateTime", "OffsetTime"),
    ]:
        raw_date = _clean_string(tags.get(date_tag))
        if raw_date:
            dt = _parse_exif_datetime(raw_date, _clean_string(tags.get(offset_tag)))
            if dt:
                result["date_taken"] = dt
                break

    orientation = _to_int(tags.get("Orientation"))
    if orientation and 1 <= orientation <= 8:
        result["orientation"] = orientation

    if size:
        width, height = size
    else:
        width = _to_int(tags.get("ExifImageWidth"))
        height = _to_int(tags.get("ExifImageHeight") or tags.get("ExifImageLength"))
    if not (width and height):
        width = _to_int(tags.get("ImageWidth"))
        height = _to_int(tags.get("ImageLength"))
    if width and height and width > 0 and height > 0:
        result["width"] = width
        result["height"] = height

    return ExifData(**{k: v for k, v in result.items() if v is not None})


def _read_jpeg_tags(filepath: Path) -> tuple[dict[str, Any], tuple[int, int] | None]:
    """Read IFD0 and Exif sub-IFD tags with Pillow, plus the decoded header size."""
    with open(filepath, "rb") as f:
        try:
            with Image.open(f) as img:
                size = img.size
                exif = img.getexif()
                decoded: dict[str, Any] = {}
                for tag_id, value in exif.items():
                    decoded[TAGS.get(tag_id, str(tag_id))] = value
                for tag_id, value in exif.get_ifd(ExifTags.IFD.Exif).items():
                    decoded[TAGS.get(tag_id, str(tag_id))] = value
                return decoded, size
        except Exception:
            logger.warning("Could not parse JPEG metadata of %s", filepath, exc_info=True)
            return {}, None


def _exifread_value(tag: Any) -> Any:
    values = tag.values
    if isinstance(values, (str, bytes)):
        return values
    if isinstance(values, list) and len(values) == 1:
        return values[0]
    return tuple(values)


def _raw_sensor_size(filepath: Path) -> tuple[int, int] | None:
    try:
        with rawpy.imread(str(filepath)) as raw:
            return raw.sizes.width, raw.sizes.height
    except (rawpy.LibRawError, OSError, ValueError) as e:
        logger.debug("LibRaw could not read sizes of %s: %s", filepath, e)
        return None


def _read_raw_tags(filepath: Path) -> tuple[dict[str, Any], tuple[int, int] | None]:
    """Read TIFF-structured RAW metadata with ExifRead."""
    with open(filepath, "rb") as f:
        try:
            raw_tags = exifread.process_file(f, details=False)
        except Exception:
            logger.warning("Could not parse RAW metadata of %s", filepath, exc_info=True)
            raw_tags = {}

    decoded: dict[str, Any] = {}
    for key, tag in raw_tags.items():
        group, _, name = key.partition(" ")
        if group in _EXIFREAD_GROUPS and name:
            decoded[name] = _exifread_value(tag)

    size = None
    if not (decoded.get("ExifImageWidth") and decoded.get("ExifImageLength")):
        size = _raw_sensor_size(filepath)
    return decoded, size


def extract_exif(filepath: Path, file_type: FileType) -> ExifData:
    """Extract EXIF metadata from a photo file.

    Never fails on bad metadata; raises OSError only if the file itself
    cannot be opened or read.
    """
    if file_type == FileType.RAW:
        tags, size = _read_raw_tags(filepath)
    else:
        tags, size = _read_jpeg_tags(filepath)

    exif = build_exif(tags, size)
    logger.debug("Extracted EXIF for %s", filepath)
    return exif
