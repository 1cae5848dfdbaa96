"""Eventarc Firestore events (JSON encoding) -> ChangeEvent.

Eventarc delivers ``google.cloud.firestore.document.v1.written`` events whose
data holds the old and new document in Firestore REST form: every field is a
typed value such as ``{"stringValue": "..."}`` or ``{"mapValue": {...}}``.
"""

from __future__ import annotations

import base64
from typing import Any

from firestore_nlp.models import DocumentEventPayload, FirestoreDocument
from firestore_nlp.types import ChangeEvent, DocumentSnapshot


def document_path(resource_name: str) -> str:
    """``projects/p/databases/(default)/documents/trips/id1`` -> ``trips/id1``."""
    _, sep, path = resource_name.partition("/documents/")
    return path if sep else resource_name


def decode_value(value: dict[str, Any]) -> Any:
    if "nullValue" in value:
        return None
    if "stringValue" in value:
        return value["stringValue"]
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        # int64 travels as a JSON string
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "timestampValue" in value:
        return value["timestampValue"]
    if "bytesValue" in value:
        return base64.b64decode(value["bytesValue"])
    if "referenceValue" in value:
        return document_path(value["referenceValue"])
    if "geoPointValue" in value:
        gp = value["geoPointValue"]
        return {"latitude": gp.get("latitude", 0.0), "longitude": gp.get("longitude", 0.0)}
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    raise ValueError(f"Unsupported Firestore value: {sorted(value)}")


def decode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {name: decode_value(v) for name, v in fields.items()}


def _snapshot(doc: FirestoreDocument | None, fallback_path: str) -> DocumentSnapshot:
    if doc is None:
        return DocumentSnapshot(path=fallback_path, exists=False)
    return DocumentSnapshot(
        path=document_path(doc.name),
        exists=True,
        data=decode_fields(doc.fields),
    )


def to_change_event(payload: DocumentEventPayload) -> ChangeEvent:
    doc = payload.value or payload.old_value
    if doc is None:
        raise ValueError("Event carries neither an old nor a new document")
    path = document_path(doc.name)
    return ChangeEvent(
        before=_snapshot(payload.old_value, path),
        after=_snapshot(payload.value, path),
    )
