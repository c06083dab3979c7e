"""
Tests for the LIVE/FROZEN capture controller.
"""

import asyncio

import httpx
import pytest

from camera.catalog import DeviceCatalog
from camera.stream import StreamManager
from capture.state_machine import CaptureController, CaptureMode
from domain.errors import (
    ConstraintUnsatisfiable,
    InvalidTransition,
    PermissionDenied,
    VisionServiceError,
)
from extraction.client import VisionClient
from models.config import VisionConfig
from models.extraction import Confidence, ExtractionResult

from conftest import FakeMediaDevices, LAPTOP_DEVICES, PHONE_DEVICES

READING = ExtractionResult(
    reading="00123",
    unit="kWh",
    serial_number="SN-42",
    confidence=Confidence.HIGH,
    notes="",
)


class FakeVisionClient:
    """Returns a fixed result, optionally after a gate opens."""

    def __init__(self, result=READING, error=None, gated=False):
        self.result = result
        self.error = error
        self.gate = asyncio.Event() if gated else None
        self.calls = 0

    async def extract(self, image):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


class RecordingStore:
    def __init__(self):
        self.submitted = []

    def submit(self, result):
        self.submitted.append(result)


def make_controller(media, vision_client=None, store=None):
    return CaptureController(
        DeviceCatalog(media),
        StreamManager(media),
        vision_client=vision_client,
        store=store,
    )


class TestStartup:
    def test_starts_live_on_primary_rear(self, media):
        async def scenario():
            controller = make_controller(media)
            await controller.startup()
            return controller

        controller = asyncio.run(scenario())

        assert controller.mode is CaptureMode.LIVE
        assert controller.selection.chosen_id == "wide-id"
        assert controller.streams.current_device_id == "wide-id"
        assert controller.status()["streaming"] is True

    def test_permission_denied_is_recoverable(self):
        media = FakeMediaDevices(PHONE_DEVICES, deny=True)

        async def scenario():
            controller = make_controller(media)
            started = await controller.startup()
            assert started is None
            assert controller.last_error

            with pytest.raises(PermissionDenied):
                await controller.press()

            media.deny = False
            mode = await controller.press()
            return controller, mode

        controller, mode = asyncio.run(scenario())

        assert mode is CaptureMode.LIVE
        assert controller.streams.active is not None
        assert controller.last_error is None


class TestPress:
    def test_press_freezes_then_resumes(self, media):
        async def scenario():
            controller = make_controller(media)
            await controller.startup()
            frozen = await controller.press()
            image = controller.frozen_image
            live = await controller.press()
            return controller, frozen, image, live

        controller, frozen, image, live = asyncio.run(scenario())

        assert frozen is CaptureMode.FROZEN
        assert image is not None and image.width == 720
        assert live is CaptureMode.LIVE
        assert controller.frozen_image is None
        assert controller.result is None
        assert media.live_tracks == 1

    def test_capture_clears_previous_result(self, media):
        client = FakeVisionClient(gated=True)

        async def scenario():
            controller = make_controller(media, vision_client=client)
            await controller.startup()
            controller.result = READING
            await controller.capture()
            cleared = controller.result
            pending = controller.extraction_pending
            client.gate.set()
            result = await controller.wait_for_extraction()
            return cleared, pending, result

        cleared, pending, result = asyncio.run(scenario())

        assert cleared is None
        assert pending is True
        assert result == READING

    def test_result_after_resume_is_discarded(self, media):
        client = FakeVisionClient(gated=True)

        async def scenario():
            controller = make_controller(media, vision_client=client)
            await controller.startup()
            await controller.capture()
            await controller.resume()
            client.gate.set()
            await asyncio.sleep(0)
            return controller

        controller = asyncio.run(scenario())

        assert controller.mode is CaptureMode.LIVE
        assert controller.result is None
        assert controller.extraction_pending is False

    def test_wrong_mode_commands(self, media):
        async def scenario():
            controller = make_controller(media)
            await controller.startup()
            with pytest.raises(InvalidTransition):
                await controller.resume()
            await controller.capture()
            with pytest.raises(InvalidTransition):
                await controller.capture()

        asyncio.run(scenario())

    def test_vision_failure_sets_error(self, media):
        client = FakeVisionClient(error=VisionServiceError("HTTP 502"))

        async def scenario():
            controller = make_controller(media, vision_client=client)
            await controller.startup()
            await controller.press()
            result = await controller.wait_for_extraction()
            return controller, result

        controller, result = asyncio.run(scenario())

        assert result is None
        assert controller.mode is CaptureMode.FROZEN
        assert "502" in controller.status()["error"]

    def test_unsendable_request_sets_error(self, media, monkeypatch):
        monkeypatch.delenv("METER_VISION_ENDPOINT", raising=False)

        def handler(request):
            raise RuntimeError("transport exploded")

        client = VisionClient(
            VisionConfig(endpoint="http://vision.test/api/ocr"),
            transport=httpx.MockTransport(handler),
        )

        async def scenario():
            controller = make_controller(media, vision_client=client)
            await controller.startup()
            await controller.press()
            result = await controller.wait_for_extraction()
            return controller, result

        controller, result = asyncio.run(scenario())

        assert result is None
        assert controller.mode is CaptureMode.FROZEN
        assert "exploded" in controller.status()["error"]


class TestDeviceChange:
    def test_change_device_from_frozen(self, media):
        async def scenario():
            controller = make_controller(media)
            await controller.startup()
            await controller.capture()
            await controller.change_device("front-id")
            return controller

        controller = asyncio.run(scenario())

        assert controller.mode is CaptureMode.LIVE
        assert controller.frozen_image is None
        assert controller.streams.current_device_id == "front-id"
        assert media.live_tracks == 1

    def test_flip_round_trip(self, media):
        async def scenario():
            controller = make_controller(media)
            await controller.startup()
            await controller.flip()
            after_first = controller.streams.current_device_id
            await controller.flip()
            return after_first, controller.streams.current_device_id

        after_first, after_second = asyncio.run(scenario())

        assert after_first == "front-id"
        assert after_second == "wide-id"
        assert media.live_tracks == 1

    def test_flip_cycles_unlabelled_cameras(self):
        media = FakeMediaDevices(LAPTOP_DEVICES)

        async def scenario():
            controller = make_controller(media)
            await controller.startup()
            await controller.flip()
            return controller

        controller = asyncio.run(scenario())
        assert controller.streams.current_device_id == "usb-b"

    def test_flip_without_devices(self):
        async def scenario():
            controller = make_controller(FakeMediaDevices([]))
            await controller.startup()
            with pytest.raises(ConstraintUnsatisfiable):
                await controller.flip()
            return controller

        controller = asyncio.run(scenario())
        assert controller.last_error

    def test_busy_device_falls_back_to_facing(self):
        media = FakeMediaDevices(PHONE_DEVICES, busy=["tele-id"])

        async def scenario():
            controller = make_controller(media)
            await controller.startup()
            await controller.change_device("tele-id")
            return controller

        controller = asyncio.run(scenario())

        assert controller.streams.current_device_id == "wide-id"
        assert controller.last_error is None
        assert media.live_tracks == 1


class TestSubmit:
    def test_submit_merges_user_edits(self, media):
        store = RecordingStore()

        async def scenario():
            controller = make_controller(media, vision_client=FakeVisionClient(), store=store)
            await controller.startup()
            await controller.press()
            await controller.wait_for_extraction()
            return controller.submit({"reading": "00124", "unit": None})

        record = asyncio.run(scenario())

        assert record.reading == "00124"
        assert record.unit == "kWh"
        assert store.submitted == [record]

    def test_submit_without_store(self, media):
        controller = make_controller(media)
        record = controller.submit({"notes": "dial obscured"})
        assert record.notes == "dial obscured"
        assert record.confidence is Confidence.LOW
