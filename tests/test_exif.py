"""Tests for EXIF extraction and normalization."""

from datetime import datetime, timezone

import pytest
from exifread.utils import Ratio
from PIL.TiffImagePlugin import IFDRational

from hologram.schemas.photo import FileType
from hologram.services.exif import build_exif, extract_exif
from tests.conftest import make_jpeg, make_raw


def test_rationals_are_normalized_to_units() -> None:
    exif = build_exif({
        "FNumber": IFDRational(28, 10),
        "FocalLength": (50, 1),
        "ExposureTime": IFDRational(1, 250),
        "ISOSpeedRatings": (400,),
    })

    assert exif.aperture == 2.8
    assert exif.focal_length == 50.0
    assert exif.shutter_speed == "1/250"
    assert exif.iso == 400


def test_exifread_ratios_are_supported() -> None:
    exif = build_exif({"FNumber": Ratio(35, 10), "FocalLength": Ratio(85, 1)})

    assert exif.aperture == 3.5
    assert exif.focal_length == 85.0


def test_apex_values_fill_missing_fnumber_and_exposure() -> None:
    exif = build_exif({"ApertureValue": 4.0, "ShutterSpeedValue": 8.0})

    assert exif.aperture == 4.0
    assert exif.shutter_speed == "1/256"


def test_long_exposures_are_whole_seconds() -> None:
    assert build_exif({"ExposureTime": IFDRational(2, 1)}).shutter_speed == "2"


def test_malformed_fields_are_dropped_individually() -> None:
    exif = build_exif({
        "FNumber": "f/abc",
        "FocalLength": (35, 0),
        "Make": b"Nikon\x00\x00",
        "Orientation": 42,
        "ISOSpeedRatings": 0,
    })

    assert exif.aperture is None
    assert exif.focal_length is None
    assert exif.orientation is None
    assert exif.iso is None
    assert exif.camera_make == "Nikon"


def test_enumerated_fields_are_readable() -> None:
    exif = build_exif({"Flash": 1, "ExposureMode": 1, "WhiteBalance": 0})

    assert exif.flash == "Fired"
    assert exif.exposure_mode == "Manual"
    assert exif.white_balance == "Auto"
    assert build_exif({"Flash": 16}).flash == "Did not fire"


def test_date_taken_honours_offset() -> None:
    exif = build_exif({
        "DateTimeOriginal": "2024:05:01 10:30:00",
        "OffsetTimeOriginal": "+02:00",
    })

    assert exif.date_taken == datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)


def test_date_taken_falls_back_to_datetime_tag_as_utc() -> None:
    exif = build_exif({"DateTimeOriginal": "0000:00:00 00:00:00", "DateTime": "2023:12:24 18:00:00"})

    assert exif.date_taken == datetime(2023, 12, 24, 18, 0, tzinfo=timezone.utc)


def test_out_of_range_apex_values_are_dropped() -> None:
    exif = build_exif({
        "ApertureValue": 5000.0,
        "ShutterSpeedValue": -2000.0,
        "ISOSpeedRatings": 200,
    })

    assert exif.aperture is None
    assert exif.shutter_speed is None
    assert exif.iso == 200


def test_vanishingly_short_apex_exposure_is_dropped() -> None:
    exif = build_exif({"ShutterSpeedValue": 1070.0})

    assert exif.shutter_speed is None


def test_date_pushed_out_of_range_by_offset_is_dropped() -> None:
    exif = build_exif({
        "DateTimeOriginal": "0001:01:01 00:00:00",
        "OffsetTimeOriginal": "+05:00",
        "Model": "X100V",
    })

    assert exif.date_taken is None
    assert exif.camera_model == "X100V"


def test_out_of_range_original_date_falls_back_to_next_tag() -> None:
    exif = build_exif({
        "DateTimeOriginal": "0001:01:01 00:00:00",
        "OffsetTimeOriginal": "+05:00",
        "DateTime": "2023:12:24 18:00:00",
    })

    assert exif.date_taken == datetime(2023, 12, 24, 18, 0, tzinfo=timezone.utc)


def test_unknown_tags_are_ignored() -> None:
    exif = build_exif({"Tag 0xBEEF": 7, "SomeVendorThing": object()})

    assert exif.model_dump(exclude_none=True) == {}


def test_extract_jpeg_metadata(tmp_path) -> None:
    path = make_jpeg(
        tmp_path / "a.jpg",
        size=(640, 480),
        make="Canon",
        model="Canon EOS R5",
        orientation=1,
        exif_ifd={
            0x8827: 200,
            0x829D: IFDRational(4, 1),
            0x920A: IFDRational(35, 1),
            0x9003: "2024:05:01 10:30:00",
        },
    )

    exif = extract_exif(path, FileType.JPEG)

    assert exif.camera_make == "Canon"
    assert exif.camera_model == "Canon EOS R5"
    assert exif.iso == 200
    assert exif.aperture == 4.0
    assert exif.focal_length == 35.0
    assert exif.date_taken == datetime(2024, 5, 1, 10, 30, tzinfo=timezone.utc)
    assert (exif.width, exif.height) == (640, 480)
    assert exif.orientation == 1


def test_extract_raw_metadata(tmp_path) -> None:
    path = make_raw(tmp_path / "IMG_0001.NEF", make="NIKON CORPORATION", model="NIKON Z 6", size=(320, 240))

    exif = extract_exif(path, FileType.RAW)

    assert exif.camera_make == "NIKON CORPORATION"
    assert exif.camera_model == "NIKON Z 6"
    assert (exif.width, exif.height) == (320, 240)


def test_corrupt_file_yields_empty_record(tmp_path) -> None:
    path = tmp_path / "broken.jpg"
    path.write_bytes(b"definitely not an image")

    exif = extract_exif(path, FileType.JPEG)

    assert exif.model_dump(exclude_none=True) == {}


def test_unreadable_file_raises_os_error(tmp_path) -> None:
    with pytest.raises(OSError):
        extract_exif(tmp_path / "gone.jpg", FileType.JPEG)
