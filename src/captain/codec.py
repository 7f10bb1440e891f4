"""Encoding and decoding of stored release records.

Each payload field of a ``Release`` resource is JSON, gzip-compressed at the
best compression level and base64 encoded. Records written before
compression was introduced hold base64 of the raw JSON; both forms are
accepted when decoding, only the compressed form is ever written.
"""

from __future__ import annotations

import base64
import binascii
import gzip
import json
import zlib
from dataclasses import dataclass
from typing import Any

from loguru import logger
from pydantic import BaseModel, TypeAdapter, ValidationError

from .errors import DecodeError, RecordField
from .models import (
    ChartDefinition,
    EncodedPackageRecord,
    Hook,
    PackageRecord,
)

GZIP_MAGIC = b"\x1f\x8b\x08"
COMPRESSION_LEVEL = 9


# =============================================================================
# Payload framing
# =============================================================================


@dataclass(frozen=True)
class CompressedPayload:
    """A gzip stream holding the JSON payload."""

    data: bytes

    def unwrap(self) -> bytes:
        return gzip.decompress(self.data)


@dataclass(frozen=True)
class LegacyPayload:
    """Raw JSON payload written before compression was introduced."""

    data: bytes

    def unwrap(self) -> bytes:
        return self.data


type Payload = CompressedPayload | LegacyPayload


def frame_payload(raw: bytes) -> Payload:
    """Classify base64-decoded bytes by their leading gzip signature."""
    if raw[:3] == GZIP_MAGIC:
        return CompressedPayload(raw)
    return LegacyPayload(raw)


# =============================================================================
# Encoding
# =============================================================================


def encode_data(value: Any) -> str:
    """Serialize a value to JSON, gzip it and base64 encode the result.

    Args:
        value: JSON-serializable value or pydantic model

    Returns:
        The base64 string stored in a release field
    """
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True)
    elif isinstance(value, list) and any(isinstance(v, BaseModel) for v in value):
        value = [
            v.model_dump(mode="json", by_alias=True) if isinstance(v, BaseModel) else v
            for v in value
        ]
    payload = json.dumps(value, separators=(",", ":")).encode("utf-8")
    compressed = gzip.compress(payload, compresslevel=COMPRESSION_LEVEL)
    return base64.b64encode(compressed).decode("ascii")


def encode_record(record: PackageRecord) -> EncodedPackageRecord:
    """Build the stored form of a decoded release."""
    return EncodedPackageRecord(
        name=record.name,
        namespace=record.namespace,
        version=record.version,
        info=record.info,
        chart_data=encode_data(record.chart),
        config_data=encode_data(record.config),
        hooks_data=encode_data(record.hooks),
        manifest_data=encode_data(record.manifest),
    )


# =============================================================================
# Decoding
# =============================================================================

_CHART = TypeAdapter(ChartDefinition | None)
_CONFIG = TypeAdapter(dict[str, Any] | None)
_HOOKS = TypeAdapter(list[Hook] | None)
_MANIFEST = TypeAdapter(str | None)


def _payload_bytes(field: RecordField, data: str) -> bytes:
    # base64 wrapped at a line width by other writers is still valid
    unwrapped = data.replace("\r", "").replace("\n", "")
    try:
        raw = base64.b64decode(unwrapped, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(field, f"invalid base64: {e}") from e

    payload = frame_payload(raw)
    try:
        return payload.unwrap()
    except (OSError, EOFError, zlib.error) as e:
        raise DecodeError(field, f"corrupt gzip stream: {e}") from e


def decode_field(field: RecordField, data: str) -> Any:
    """Decode one base64 field of a release record into a JSON value.

    Raises:
        DecodeError: If base64, gzip or JSON decoding fails
    """
    content = _payload_bytes(field, data)
    try:
        return json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(field, f"invalid JSON: {e}") from e


def _decode_into(field: RecordField, adapter: TypeAdapter[Any], data: str) -> Any:
    """Decode a field straight into its type, without coercing mismatched JSON."""
    content = _payload_bytes(field, data)
    try:
        return adapter.validate_json(content, strict=True)
    except UnicodeDecodeError as e:
        raise DecodeError(field, f"invalid JSON: {e}") from e
    except ValidationError as e:
        if any(error["type"] == "json_invalid" for error in e.errors()):
            raise DecodeError(field, f"invalid JSON: {e}") from e
        raise DecodeError(field, f"unexpected structure: {e}") from e


def decode_release(record: EncodedPackageRecord) -> PackageRecord:
    """Decode a stored release into a PackageRecord.

    Decoding is all-or-nothing: the first field that fails aborts the whole
    record.

    Args:
        record: The stored release

    Returns:
        The decoded release

    Raises:
        DecodeError: Identifying the field that could not be decoded
    """
    try:
        chart = _decode_into(RecordField.CHART, _CHART, record.chart_data)
        config = _decode_into(RecordField.CONFIG, _CONFIG, record.config_data)
        hooks = _decode_into(RecordField.HOOKS, _HOOKS, record.hooks_data)
        manifest = _decode_into(RecordField.MANIFEST, _MANIFEST, record.manifest_data)
    except DecodeError as e:
        logger.error(f"Decoding release {record.name}.v{record.version}: {e.message}")
        raise

    return PackageRecord(
        name=record.name,
        namespace=record.namespace,
        version=record.version,
        info=record.info,
        chart=chart or ChartDefinition(),
        config=config or {},
        hooks=hooks or [],
        manifest=manifest or "",
    )
