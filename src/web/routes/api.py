from __future__ import annotations

import logging
from typing import Any, Dict

import cv2
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from capture.state_machine import CaptureController, CaptureMode
from domain.errors import (
    ConstraintUnsatisfiable,
    InvalidFrame,
    InvalidTransition,
    PermissionDenied,
    StreamError,
)
from ..api_models import (
    DevicesResponse,
    ExtractionResultModel,
    SelectDeviceRequest,
    StatusResponse,
    SubmitRequest,
)

router = APIRouter()


def _controller(request: Request) -> CaptureController:
    return request.app.state.controller


def _http_error(e: Exception) -> HTTPException:
    """
    Map core errors onto HTTP statuses the UI can act on.
    503: camera unavailable (permission, no matching device); 409: retryable conflict.
    """
    if isinstance(e, (PermissionDenied, ConstraintUnsatisfiable)):
        return HTTPException(status_code=503, detail=e.cause)
    if isinstance(e, StreamError):
        return HTTPException(status_code=409, detail=e.cause)
    if isinstance(e, InvalidFrame):
        return HTTPException(status_code=503, detail=f"Camera not ready: {e}")
    return HTTPException(status_code=409, detail=str(e))


@router.get("/status", response_model=StatusResponse)
async def status(request: Request) -> Dict[str, Any]:
    return _controller(request).status()


@router.get("/devices", response_model=DevicesResponse)
async def devices(request: Request) -> Dict[str, Any]:
    controller = _controller(request)
    listed = await controller.catalog.list_video_devices()
    return {
        "devices": [d.to_dict() for d in listed],
        "current_device_id": controller.streams.current_device_id,
    }


@router.post("/camera/select", response_model=StatusResponse)
async def select_camera(body: SelectDeviceRequest, request: Request) -> Dict[str, Any]:
    controller = _controller(request)
    try:
        await controller.change_device(body.device_id)
    except StreamError as e:
        raise _http_error(e)
    return controller.status()


@router.post("/camera/flip", response_model=StatusResponse)
async def flip_camera(request: Request) -> Dict[str, Any]:
    controller = _controller(request)
    try:
        await controller.flip()
    except StreamError as e:
        raise _http_error(e)
    return controller.status()


@router.post("/capture", response_model=StatusResponse)
async def press(request: Request) -> Dict[str, Any]:
    """Capture while live, resume while frozen."""
    controller = _controller(request)
    try:
        await controller.press()
    except (StreamError, InvalidFrame, InvalidTransition) as e:
        logging.warning(f"Capture command failed: {e}")
        raise _http_error(e)
    return controller.status()


@router.get("/frame.jpg")
async def frame(request: Request) -> Response:
    """Live preview frame, or the enhanced image while frozen."""
    controller = _controller(request)
    if controller.mode is CaptureMode.FROZEN and controller.frozen_image is not None:
        return Response(content=controller.frozen_image.encoded_bytes, media_type="image/jpeg")

    pixels = controller.streams.preview_pixels()
    if pixels is None:
        raise HTTPException(status_code=503, detail="No live frame available")
    ok, buf = cv2.imencode(".jpg", pixels)
    if not ok:
        raise HTTPException(status_code=500, detail="Failed to encode JPEG")
    return Response(content=buf.tobytes(), media_type="image/jpeg", headers={"Cache-Control": "no-store"})


@router.get("/result", response_model=ExtractionResultModel)
async def result(request: Request) -> Dict[str, Any]:
    controller = _controller(request)
    if controller.result is None:
        raise HTTPException(status_code=404, detail="No extraction result")
    return controller.result.to_dict()


@router.post("/submit", response_model=ExtractionResultModel)
async def submit(body: SubmitRequest, request: Request) -> Dict[str, Any]:
    record = _controller(request).submit(body.model_dump(exclude_none=True))
    return record.to_dict()
