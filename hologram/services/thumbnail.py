"""Thumbnail generation service - inline base64 previews for the grid view."""

import base64
import io
import logging
from pathlib import Path

import exifread
import rawpy
from PIL import Image, ImageOps

from hologram.config import settings
from hologram.schemas.photo import FileType

logger = logging.getLogger(__name__)

# LibRaw flip codes -> Pillow transpose
_LIBRAW_FLIPS = {
    3: Image.Transpose.ROTATE_180,
    5: Image.Transpose.ROTATE_90,
    6: Image.Transpose.ROTATE_270,
}

_DECODE_ERRORS = (rawpy.LibRawError, OSError, ValueError)


def _is_large_enough(img: Image.Image) -> bool:
    return max(img.size) >= settings.thumbnail_min_embedded


def _encode(img: Image.Image, size: int) -> str:
    """Downsample to `size` on the long edge and encode as base64 JPEG."""
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    img.thumbnail((size, size), Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    img.save(buffer, "JPEG", quality=settings.thumbnail_quality)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def _raw_embedded_preview(filepath: Path) -> Image.Image | None:
    """The preview image a camera stores inside its RAW file, if any."""
    try:
        with rawpy.imread(str(filepath)) as raw:
            thumb = raw.extract_thumb()
            flip = raw.sizes.flip
    except (rawpy.LibRawNoThumbnailError, rawpy.LibRawUnsupportedThumbnailError):
        return None
    except _DECODE_ERRORS as e:
        logger.debug("No LibRaw preview for %s: %s", filepath, e)
        return None

    if thumb.format == rawpy.ThumbFormat.JPEG:
        img = Image.open(io.BytesIO(thumb.data))
        img.load()
        if img.getexif().get(0x0112):
            return ImageOps.exif_transpose(img)
    else:
        img = Image.fromarray(thumb.data)

    if flip in _LIBRAW_FLIPS:
        img = img.transpose(_LIBRAW_FLIPS[flip])
    return img


def _raw_decoded(filepath: Path) -> Image.Image | None:
    """Demosaic at half size; postprocess already applies the camera rotation."""
    try:
        with rawpy.imread(str(filepath)) as raw:
            rgb = raw.postprocess(half_size=True, use_camera_wb=True, output_bps=8)
    except _DECODE_ERRORS as e:
        logger.debug("LibRaw could not decode %s: %s", filepath, e)
        return None
    img = Image.fromarray(rgb)
    del rgb
    return img


def _jpeg_embedded_preview(filepath: Path) -> Image.Image | None:
    """The EXIF (IFD1) thumbnail of a JPEG, if present."""
    with open(filepath, "rb") as f:
        tags = exifread.process_file(f, details=True)
    data = tags.get("JPEGThumbnail")
    if not data:
        return None
    img = Image.open(io.BytesIO(data))
    img.load()
    orientation = tags.get("Image Orientation")
    if orientation is not None and orientation.values:
        img = apply_orientation(img, orientation.values[0])
    return img


def apply_orientation(img: Image.Image, orientation: int) -> Image.Image:
    """Rotate/flip an image according to an EXIF orientation value."""
    method = {
        2: Image.Transpose.FLIP_LEFT_RIGHT,
        3: Image.Transpose.ROTATE_180,
        4: Image.Transpose.FLIP_TOP_BOTTOM,
        5: Image.Transpose.TRANSPOSE,
        6: Image.Transpose.ROTATE_270,
        7: Image.Transpose.TRANSVERSE,
        8: Image.Transpose.ROTATE_90,
    }.get(orientation)
    return img.transpose(method) if method is not None else img


def _thumbnail_raw(filepath: Path, size: int) -> str | None:
    preview = _raw_embedded_preview(filepath)
    if preview is not None and _is_large_enough(preview):
        logger.debug("Using embedded preview for %s", filepath)
        return _encode(preview, size)

    decoded = _raw_decoded(filepath)
    if decoded is not None:
        return _encode(decoded, size)

    # TIFF-based RAW files (DNG and friends) often still open as plain TIFF
    try:
        with Image.open(filepath) as img:
            img = ImageOps.exif_transpose(img)
            return _encode(img, size)
    except _DECODE_ERRORS as e:
        logger.debug("Pillow could not decode %s: %s", filepath, e)

    if preview is not None:
        return _encode(preview, size)
    return None


def _thumbnail_jpeg(filepath: Path, size: int) -> str | None:
    try:
        preview = _jpeg_embedded_preview(filepath)
    except Exception:
        logger.debug("Unreadable EXIF thumbnail in %s", filepath, exc_info=True)
        preview = None
    if preview is not None and _is_large_enough(preview):
        logger.debug("Using embedded preview for %s", filepath)
        return _encode(preview, size)

    with Image.open(filepath) as img:
        # Let the JPEG decoder scale down while decoding
        img.draft("RGB", (size, size))
        img = ImageOps.exif_transpose(img)
        return _encode(img, size)


def generate_thumbnail(filepath: Path, file_type: FileType, size: int | None = None) -> str | None:
    """Generate a base64 JPEG thumbnail. Returns None if the image cannot be decoded."""
    if size is None:
        size = settings.thumbnail_size

    try:
        if file_type == FileType.RAW:
            thumbnail = _thumbnail_raw(filepath, size)
        else:
            thumbnail = _thumbnail_jpeg(filepath, size)
    except Exception:
        logger.exception("Error generating thumbnail for %s", filepath)
        return None

    if thumbnail is None:
        logger.warning("No thumbnail could be produced for %s", filepath)
    return thumbnail
