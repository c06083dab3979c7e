from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class DeviceModel(BaseModel):
    id: str
    label: str = ""
    group_id: str = ""


class DevicesResponse(BaseModel):
    devices: List[DeviceModel]
    current_device_id: Optional[str] = None


class ExtractionResultModel(BaseModel):
    reading: Optional[str] = None
    unit: Optional[str] = None
    serial_number: Optional[str] = None
    confidence: str = Field("low", description="low|medium|high")
    notes: str = ""


class StatusResponse(BaseModel):
    mode: str = Field(..., description="live|frozen")
    device_id: Optional[str] = Field(None, description="Device actually streaming")
    streaming: bool
    selection: Dict[str, Optional[str]]
    extraction_pending: bool
    result: Optional[ExtractionResultModel] = None
    error: Optional[str] = None


class SelectDeviceRequest(BaseModel):
    device_id: str


class SubmitRequest(BaseModel):
    """User-edited fields; omitted fields keep the extracted values."""
    reading: Optional[str] = None
    unit: Optional[str] = None
    serial_number: Optional[str] = None
    notes: Optional[str] = None
