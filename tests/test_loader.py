"""Tests for the full-resolution loader."""

import asyncio

import pytest

from hologram.engine import PhotoEngine
from hologram.services.loader import FullResolutionLoadError, load_full_resolution
from tests.conftest import make_jpeg


def test_returns_original_bytes(tmp_path) -> None:
    path = make_jpeg(tmp_path / "a.jpg", size=(1200, 800))

    assert load_full_resolution(str(path)) == path.read_bytes()


def test_missing_file(tmp_path) -> None:
    with pytest.raises(FullResolutionLoadError) as exc_info:
        load_full_resolution(tmp_path / "gone.jpg")

    assert exc_info.value.reason == "missing"


def test_unsupported_format(tmp_path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("hello")

    with pytest.raises(FullResolutionLoadError) as exc_info:
        load_full_resolution(path)

    assert exc_info.value.reason == "unsupported"


def test_truncated_file_is_undecodable(tmp_path) -> None:
    path = make_jpeg(tmp_path / "cut.jpg", size=(800, 600))
    path.write_bytes(path.read_bytes()[:400])

    with pytest.raises(FullResolutionLoadError) as exc_info:
        load_full_resolution(path)

    assert exc_info.value.reason == "undecodable"


def test_engine_loads_by_path_and_id(library) -> None:
    engine = PhotoEngine()

    async def run():
        photos = await engine.scan_folder(str(library))
        jpeg = next(p for p in photos if p.file_name == "IMG_0002.JPG")
        by_path = await engine.load_full_resolution_image(jpeg.file_path)
        by_id = await engine.load_full_resolution_by_id(jpeg.id)
        return by_path, by_id

    by_path, by_id = asyncio.run(run())

    assert by_path == by_id == (library / "IMG_0002.JPG").read_bytes()


def test_engine_unknown_id_is_missing() -> None:
    with pytest.raises(FullResolutionLoadError) as exc_info:
        asyncio.run(PhotoEngine().load_full_resolution_by_id("nope"))

    assert exc_info.value.reason == "missing"
