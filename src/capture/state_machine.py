"""
Capture/preview state machine.

Two modes:
- LIVE: the active stream feeds the preview
- FROZEN: a captured, enhanced frame is shown while extraction runs

One user command is overloaded: press() captures in LIVE and resumes in
FROZEN. The controller, not the caller, decides which transition fires.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from camera.catalog import DeviceCatalog
from camera.selector import select_counterpart, select_default
from camera.stream import ActiveStream, StreamManager
from domain.errors import (
    ConstraintUnsatisfiable,
    DeviceBusy,
    InvalidTransition,
    StreamError,
    StreamSuperseded,
    VisionServiceError,
)
from models.config import EnhancementConfig
from models.device import CameraSelection, FacingMode
from models.extraction import ExtractionResult
from models.frame import CaptureFrame, EnhancedImage
from pipeline.enhance import enhance

Enhancer = Callable[[CaptureFrame, EnhancementConfig], EnhancedImage]


class CaptureMode(str, Enum):
    LIVE = "live"
    FROZEN = "frozen"


class CaptureController:
    """
    Coordinates the stream manager, enhancement pipeline and vision client.

    The ActiveStream is owned by the StreamManager; the CameraSelection is
    owned here and only changes through startup(), change_device() and flip().

    Example:
        controller = CaptureController(catalog, streams, enhancement_cfg, vision_client)
        await controller.startup()
        await controller.press()       # LIVE -> FROZEN, extraction starts
        await controller.wait_for_extraction()
        await controller.press()       # FROZEN -> LIVE
    """

    def __init__(
        self,
        catalog: DeviceCatalog,
        streams: StreamManager,
        enhancement: Optional[EnhancementConfig] = None,
        vision_client: Any = None,
        store: Any = None,
        preferred_facing: FacingMode = FacingMode.ENVIRONMENT,
        enhancer: Enhancer = enhance,
    ):
        self.catalog = catalog
        self.streams = streams
        self.enhancement = enhancement or EnhancementConfig()
        self.vision_client = vision_client
        self.store = store
        self._preferred_facing = preferred_facing
        self._enhancer = enhancer

        self.mode = CaptureMode.LIVE
        self.selection = CameraSelection.for_facing(preferred_facing)
        self.frozen_frame: Optional[CaptureFrame] = None
        self.frozen_image: Optional[EnhancedImage] = None
        self.result: Optional[ExtractionResult] = None
        self.last_error: Optional[str] = None
        self._extraction_task: Optional[asyncio.Task] = None

        self._press_handlers: Dict[CaptureMode, Callable[[], Awaitable[Any]]] = {
            CaptureMode.LIVE: self.capture,
            CaptureMode.FROZEN: self.resume,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def startup(self) -> Optional[ActiveStream]:
        """Enumerate devices, select the default camera and enter LIVE."""
        devices = await self.catalog.list_video_devices()
        default = select_default(devices)
        if default is not None:
            self.selection = CameraSelection.for_device(default.id, self._preferred_facing)
            logging.info(f"Default camera: {default.label or default.id}")
        else:
            logging.warning(f"No labelled camera found, using facing={self._preferred_facing.value}")
        self.mode = CaptureMode.LIVE
        try:
            return await self._restart_stream()
        except StreamError:
            # left in LIVE with last_error set; press() retries
            return None

    async def shutdown(self) -> None:
        self._cancel_extraction()
        await self.streams.stop()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def press(self) -> CaptureMode:
        """The single capture/resume command."""
        if self.mode is CaptureMode.LIVE and self.streams.active is None:
            await self._restart_stream()
            return self.mode
        await self._press_handlers[self.mode]()
        return self.mode

    async def capture(self) -> EnhancedImage:
        """LIVE -> FROZEN: snapshot, enhance and start extraction."""
        self._require(CaptureMode.LIVE, "capture")
        frame = self.streams.grab_frame()
        self._clear_result()

        image = self._enhancer(frame, self.enhancement)

        self.frozen_frame = frame
        self.frozen_image = image
        self.mode = CaptureMode.FROZEN
        logging.info(f"Captured {frame.width}x{frame.height} frame from {frame.device_id}")

        if self.vision_client is not None:
            self._extraction_task = asyncio.create_task(self._extract(image))
        return image

    async def resume(self) -> Optional[ActiveStream]:
        """FROZEN -> LIVE: drop the frozen frame and result, restart the stream."""
        self._require(CaptureMode.FROZEN, "resume")
        self._return_to_live()
        return await self._restart_stream()

    async def change_device(self, device_id: str) -> Optional[ActiveStream]:
        """Explicit reselection. Ends in LIVE on the new device."""
        self._return_to_live()
        if all(d.id != device_id for d in self.catalog.snapshot):
            await self.catalog.list_video_devices()
        self.selection = CameraSelection.for_device(device_id, self._preferred_facing)
        logging.info(f"Camera reselected: {device_id}")
        return await self._restart_stream()

    async def flip(self) -> Optional[ActiveStream]:
        """Switch to the counterpart lens of the current camera."""
        devices = self.catalog.snapshot or await self.catalog.list_video_devices()
        current_id = self.streams.current_device_id or self.selection.chosen_id
        target = select_counterpart(devices, current_id)
        if target is None:
            error = ConstraintUnsatisfiable("No other camera to switch to")
            self.last_error = error.cause
            raise error
        return await self.change_device(target.id)

    def submit(self, overrides: Optional[Dict[str, Any]] = None) -> ExtractionResult:
        """
        Persist the current result with user edits applied.

        The write is fire-and-forget; the merged record is returned at once.
        """
        base = self.result or ExtractionResult()
        edits = {k: v for k, v in (overrides or {}).items() if v is not None}
        record = dataclasses.replace(base, **edits)
        if self.store is not None:
            self.store.submit(record)
        else:
            logging.warning("No reading store configured; submit ignored")
        return record

    async def wait_for_extraction(self) -> Optional[ExtractionResult]:
        """Await the in-flight extraction, if any, and return the result."""
        task = self._extraction_task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                return None
        return self.result

    @property
    def extraction_pending(self) -> bool:
        return self._extraction_task is not None and not self._extraction_task.done()

    def status(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "device_id": self.streams.current_device_id,
            "streaming": self.streams.active is not None,
            "selection": self.selection.to_dict(),
            "extraction_pending": self.extraction_pending,
            "result": self.result.to_dict() if self.result else None,
            "error": self.last_error,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, mode: CaptureMode, command: str) -> None:
        if self.mode is not mode:
            raise InvalidTransition(f"Cannot {command} while {self.mode.value}")

    def _clear_result(self) -> None:
        self.result = None
        self.last_error = None

    def _return_to_live(self) -> None:
        self._cancel_extraction()
        self._clear_result()
        self.frozen_frame = None
        self.frozen_image = None
        self.mode = CaptureMode.LIVE

    def _cancel_extraction(self) -> None:
        task, self._extraction_task = self._extraction_task, None
        if task is not None and not task.done():
            task.cancel()

    async def _restart_stream(self) -> ActiveStream:
        """
        Start the stream for the current selection.

        A busy or missing concrete device falls back to the facing hint.
        Failures are recorded in last_error and re-raised.
        """
        try:
            stream = await self.streams.start(self.selection, self.catalog.snapshot)
        except (DeviceBusy, ConstraintUnsatisfiable) as e:
            if self.selection.chosen_id is None or self.selection.facing_hint is None:
                self.last_error = e.cause
                raise
            facing = self.selection.facing_hint
            logging.warning(
                f"Camera {self.selection.chosen_id} unavailable ({e.cause}), "
                f"falling back to facing={facing.value}"
            )
            try:
                stream = await self.streams.start(facing)
            except StreamSuperseded:
                raise
            except StreamError as fallback_error:
                self.last_error = fallback_error.cause
                raise
        except StreamSuperseded:
            raise
        except StreamError as e:
            self.last_error = e.cause
            raise

        self.last_error = None
        return stream

    async def _extract(self, image: EnhancedImage) -> Optional[ExtractionResult]:
        try:
            result = await self.vision_client.extract(image)
        except VisionServiceError as e:
            logging.error(f"Extraction failed: {e}")
            self.last_error = str(e)
            return None

        if self.mode is CaptureMode.FROZEN:
            self.result = result
            logging.info(
                f"Extraction result: reading={result.reading}, unit={result.unit}, "
                f"serial={result.serial_number}, confidence={result.confidence.value}"
            )
        return result
