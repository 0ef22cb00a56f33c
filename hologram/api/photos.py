"""Photo API endpoints."""

import mimetypes

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response

from hologram.engine import engine
from hologram.schemas.photo import FilterRequest, Photo, PhotoStats, StatsRequest
from hologram.services.index import IndexNotReadyError
from hologram.services.loader import FullResolutionLoadError

router = APIRouter(prefix="/api/photos", tags=["photos"])

_LOAD_ERROR_STATUS = {"missing": 404, "unsupported": 422, "undecodable": 422}


def _image_response(data: bytes, file_path: str) -> Response:
    mime_type, _ = mimetypes.guess_type(file_path)
    return Response(content=data, media_type=mime_type or "application/octet-stream")


def _load_error(error: FullResolutionLoadError) -> HTTPException:
    return HTTPException(status_code=_LOAD_ERROR_STATUS.get(error.reason, 422), detail=str(error))


@router.get("", response_model=list[Photo])
async def list_photos():
    """Photos from the last completed scan."""
    try:
        return engine.photos()
    except IndexNotReadyError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/filter", response_model=list[Photo])
async def filter_photos(request: FilterRequest):
    return engine.filter_photos(request.photos, request.filter)


@router.post("/stats", response_model=PhotoStats)
async def get_photo_stats(request: StatsRequest):
    return engine.get_photo_stats(request.photos)


@router.get("/full")
async def get_full_resolution(file_path: str = Query(...)):
    """Serve the original file of an indexed photo, looked up by its path."""
    if not engine.find_photo_by_path(file_path):
        raise HTTPException(status_code=404, detail="Photo not found")
    try:
        data = await engine.load_full_resolution_image(file_path)
    except FullResolutionLoadError as e:
        raise _load_error(e)
    return _image_response(data, file_path)


@router.get("/{photo_id}", response_model=Photo)
async def get_photo(photo_id: str):
    photo = engine.get_photo(photo_id)
    if not photo:
        raise HTTPException(status_code=404, detail="Photo not found")
    return photo


@router.get("/{photo_id}/full")
async def get_photo_full_resolution(photo_id: str):
    """Serve the original file of an indexed photo."""
    photo = engine.get_photo(photo_id)
    if not photo:
        raise HTTPException(status_code=404, detail="Photo not found")
    try:
        data = await engine.load_full_resolution_by_id(photo_id)
    except FullResolutionLoadError as e:
        raise _load_error(e)
    return _image_response(data, photo.file_path)
