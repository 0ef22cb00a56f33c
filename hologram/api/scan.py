"""Scan control and progress API endpoints."""

import asyncio
import json

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect

from hologram.engine import engine
from hologram.schemas.photo import Photo, ScanRequest, ScanResult
from hologram.services.scanner import ScanRootError
from hologram.workers.pipeline import ScanInProgressError

router = APIRouter(prefix="/api/scan", tags=["scan"])


@router.post("", response_model=list[Photo])
async def scan_folder(request: ScanRequest):
    """Scan a folder and return every photo found."""
    try:
        return await engine.scan_folder(request.folder_path)
    except ScanRootError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ScanInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/progress", response_model=ScanResult)
async def scan_folder_with_progress(request: ScanRequest):
    """Scan a folder, streaming progress to /api/scan/ws subscribers."""
    try:
        return await engine.scan_folder_with_progress_result(request.folder_path)
    except ScanRootError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ScanInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/status")
async def get_scan_status():
    return {"is_scanning": engine.is_scanning}


@router.post("/cancel")
async def cancel_scan():
    """Cancel the currently running scan."""
    if not engine.cancel_scan():
        return {"status": "not_scanning"}
    return {"status": "cancel_requested"}


@router.websocket("/ws")
async def scan_websocket(websocket: WebSocket):
    """WebSocket endpoint for real-time scan progress updates.

    Streams events for the next scan and closes after its terminal event.
    """
    await websocket.accept()

    subscription = engine.subscribe()
    try:
        while True:
            try:
                event = await asyncio.wait_for(anext(subscription), timeout=30.0)
            except asyncio.TimeoutError:
                # Send heartbeat
                await websocket.send_text(json.dumps({"heartbeat": True}))
                continue
            except StopAsyncIteration:
                break

            await websocket.send_text(event.model_dump_json())
            if event.is_terminal:
                break
        await websocket.close()
    except WebSocketDisconnect:
        pass
    finally:
        subscription.close()
