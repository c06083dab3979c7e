"""
HTTP client for the remote vision-extraction endpoint.

Request:  POST {"imageBase64": "<base64 JPEG, no data-URI prefix>"}
Response: {"ok": true, "result": {...}, "raw": "..."}  or  {"ok": false, "error": "..."}

The prompt and model behind the endpoint are configured there, not here.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import httpx

from domain.errors import VisionServiceError
from models.config import VisionConfig
from models.extraction import ExtractionResult
from models.frame import EnhancedImage
from .normalizer import normalize, normalize_record


class VisionClient:
    """Posts enhanced images to the vision endpoint and normalizes replies."""

    def __init__(
        self,
        config: Optional[VisionConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config or VisionConfig()
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return os.getenv("METER_VISION_ENDPOINT") or self._config.endpoint

    async def extract(self, image: EnhancedImage) -> ExtractionResult:
        """
        Send one image and return a fully populated result.

        Raises:
            VisionServiceError: any failure to send the request, non-2xx
                status, non-JSON envelope or ok=false.
        """
        payload = {"imageBase64": image.to_base64()}
        logging.info(f"Sending {len(image.encoded_bytes)} byte image to {self.endpoint}")

        try:
            async with httpx.AsyncClient(timeout=self._config.timeout_s, transport=self._transport) as client:
                response = await client.post(self.endpoint, json=payload)
        except httpx.HTTPError as e:
            raise VisionServiceError(f"Vision request failed: {e}") from e
        except Exception as e:
            # e.g. httpx.InvalidURL from a malformed METER_VISION_ENDPOINT
            logging.error(f"Vision request to {self.endpoint} could not be sent: {e}")
            raise VisionServiceError(f"Vision request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            detail = body.get("error") if isinstance(body, dict) else response.text[:200]
            raise VisionServiceError(f"Vision service returned HTTP {response.status_code}: {detail}")
        if not isinstance(body, dict):
            raise VisionServiceError("Vision service returned a non-JSON envelope")

        return self.parse_envelope(body)

    @staticmethod
    def parse_envelope(body: Dict[str, Any]) -> ExtractionResult:
        if not body.get("ok"):
            raise VisionServiceError(str(body.get("error") or "Vision service reported failure"))

        result = body.get("result")
        if isinstance(result, dict):
            return normalize_record(result)

        # older endpoints reply {"ok": true, "text": "..."}
        raw = body.get("raw", body.get("text"))
        if raw is None and isinstance(result, str):
            raw = result
        return normalize(raw if isinstance(raw, str) else "")
