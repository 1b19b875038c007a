"""
Conversion between Python values and Firestore REST typed values.

Firestore's REST API wraps every field in a single-key object naming its type,
e.g. {"booleanValue": true} or {"stringValue": "abc"}.
"""

import base64
from datetime import datetime, timezone
from typing import Any, Dict


def encode_value(value: Any) -> Dict[str, Any]:
    """Encode a Python value as a Firestore typed value."""
    if value is None:
        return {"nullValue": None}
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return {
            "timestampValue": value.astimezone(timezone.utc)
            .isoformat()
            .replace("+00:00", "Z")
        }
    if isinstance(value, bytes):
        return {"bytesValue": base64.b64encode(value).decode("ascii")}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    raise TypeError(f"Cannot encode {type(value).__name__} as a Firestore value")


def encode_fields(data: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    return {key: encode_value(value) for key, value in data.items()}


def decode_value(typed: Dict[str, Any]) -> Any:
    """
    Decode a Firestore typed value.

    timestampValue is returned as its RFC 3339 string so that documents written
    by web clients (ISO strings) and native timestamps look the same to callers.
    """
    if "nullValue" in typed:
        return None
    if "booleanValue" in typed:
        return bool(typed["booleanValue"])
    if "integerValue" in typed:
        return int(typed["integerValue"])
    if "doubleValue" in typed:
        return float(typed["doubleValue"])
    if "stringValue" in typed:
        return typed["stringValue"]
    if "timestampValue" in typed:
        return typed["timestampValue"]
    if "referenceValue" in typed:
        return typed["referenceValue"]
    if "bytesValue" in typed:
        return base64.b64decode(typed["bytesValue"])
    if "geoPointValue" in typed:
        return dict(typed["geoPointValue"])
    if "mapValue" in typed:
        return decode_fields(typed["mapValue"].get("fields", {}))
    if "arrayValue" in typed:
        return [decode_value(v) for v in typed["arrayValue"].get("values", [])]
    raise ValueError(f"Unknown Firestore value type: {list(typed)}")


def decode_fields(fields: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    return {key: decode_value(value) for key, value in (fields or {}).items()}
