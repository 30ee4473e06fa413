"""Command protocol records.

Request (text JSON):
    {"method": "captureImage", "options": "{\\"limit\\": 2}", "callbackId": "Capture1"}
    - method: captureImage | captureAudio | captureVideo | getFormatData | play
              (debug console: log | warn | error)
    - options: JSON encoded string, or empty
    - callbackId: optional, echoed back in the response

Response (text JSON):
    {"status": "OK", "payload": [...], "callback": "navigator.device.capture._castMediaFile"}
    {"status": "ERROR", "payload": "Canceled."}
    {"status": "JSON_EXCEPTION", "payload": "..."}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import CommandError, DecodeError
from .models.media import MediaDescriptor, MediaFormatDescriptor

CAST_MEDIA_FILE_CALLBACK = "navigator.device.capture._castMediaFile"

DEFAULT_LIMIT = 1


class ResultStatus(str, Enum):
    OK = "OK"
    ERROR = "ERROR"
    JSON_EXCEPTION = "JSON_EXCEPTION"


class CaptureOptions(BaseModel):
    """Options shared by all capture kinds."""

    model_config = ConfigDict(frozen=True)

    limit: int = Field(default=DEFAULT_LIMIT, description="Maximum number of files per capture operation")

    @field_validator("limit", mode="before")
    @classmethod
    def _limit_or_default(cls, value: Any) -> int:
        # A bad limit is not worth failing the whole command over.
        if isinstance(value, bool):
            return DEFAULT_LIMIT
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if isinstance(value, str):
            try:
                value = int(value.strip())
            except ValueError:
                return DEFAULT_LIMIT
        if isinstance(value, int) and value >= 1:
            return value
        return DEFAULT_LIMIT


class CaptureImageOptions(CaptureOptions):
    pass


class CaptureAudioOptions(CaptureOptions):
    pass


class CaptureVideoOptions(CaptureOptions):
    pass


class MediaFormatOptions(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    full_path: str = Field(default="", alias="fullPath", description="File path (required)")
    type: Optional[str] = Field(default=None, description="Mime type; derived from the path when omitted")


_M = TypeVar("_M", bound=BaseModel)


def decode_options(options: Optional[str], model: type[_M], default: Optional[_M] = None) -> Optional[_M]:
    """Decode an options string into `model`.

    Empty options yield `default`. Malformed payloads raise DecodeError.
    """
    if options is None or not options.strip():
        return default
    try:
        return model.model_validate_json(options)
    except PydanticValidationError as e:
        raise DecodeError(_first_error_message(e), e) from e


def _first_error_message(error: PydanticValidationError) -> str:
    errors = error.errors()
    if not errors:
        return str(error)
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()))
    return f"{loc}: {first['msg']}" if loc else first["msg"]


@dataclass(frozen=True)
class ResultEnvelope:
    status: ResultStatus
    payload: Any = None
    callback: Optional[str] = None
    callback_id: Optional[str] = None

    @classmethod
    def ok(cls, payload: Any = None, callback: Optional[str] = None) -> "ResultEnvelope":
        return cls(ResultStatus.OK, payload=payload, callback=callback)

    @classmethod
    def error(cls, message: Optional[str] = None) -> "ResultEnvelope":
        return cls(ResultStatus.ERROR, payload=message)

    @classmethod
    def json_exception(cls, message: Optional[str] = None) -> "ResultEnvelope":
        return cls(ResultStatus.JSON_EXCEPTION, payload=message)

    @property
    def message(self) -> Optional[str]:
        return self.payload if isinstance(self.payload, str) else None

    def raise_for_status(self) -> Any:
        """Return the payload of an OK envelope, raise CommandError otherwise."""
        if self.status != ResultStatus.OK:
            raise CommandError(self.status.value, self.message)
        return self.payload

    def with_callback_id(self, callback_id: Optional[str]) -> "ResultEnvelope":
        return replace(self, callback_id=callback_id)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status.value}
        if self.payload is not None:
            data["payload"] = _encode_payload(self.payload)
        if self.callback:
            data["callback"] = self.callback
        if self.callback_id:
            data["callbackId"] = self.callback_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResultEnvelope":
        """Parse a response envelope. Payloads stay as plain JSON values."""
        try:
            status = ResultStatus(data["status"])
        except (KeyError, ValueError) as e:
            raise DecodeError(f"invalid envelope status: {data.get('status')!r}", e) from e
        return cls(
            status=status,
            payload=data.get("payload"),
            callback=data.get("callback"),
            callback_id=data.get("callbackId"),
        )


def _encode_payload(payload: Any) -> Any:
    if isinstance(payload, (MediaDescriptor, MediaFormatDescriptor)):
        return payload.to_dict()
    if isinstance(payload, (list, tuple)):
        return [_encode_payload(p) for p in payload]
    return payload


@dataclass(frozen=True)
class CommandRequest:
    method: str
    options: Optional[str] = None
    callback_id: Optional[str] = None


def parse_request(text: str) -> CommandRequest:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Invalid JSON: {e}", e) from e

    if not isinstance(data, dict):
        raise DecodeError("request must be a JSON object")

    method = data.get("method")
    if not isinstance(method, str) or not method:
        raise DecodeError("method is required")

    options = data.get("options")
    if isinstance(options, (dict, list)):
        options = json.dumps(options)
    elif options is not None and not isinstance(options, str):
        raise DecodeError("options must be a JSON string")

    callback_id = data.get("callbackId")
    return CommandRequest(
        method=method,
        options=options,
        callback_id=str(callback_id) if callback_id is not None else None,
    )
