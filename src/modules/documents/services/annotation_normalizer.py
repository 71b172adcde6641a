"""
Reads both storage shapes of annotations into one canonical list.

Text annotations live as a JSON list per (document, recipient). Signature rows
hold ``signature_data`` in one of two shapes:

* legacy: ``{"dataUrl": ..., "position": {...}, "timestamp": ...}``
* current: ``{"signatures": [{"id", "dataUrl", "source", "position", "timestamp"}, ...]}``

``parse_signature_data`` is the only place that tells them apart; everything
else works on ``LegacySignature`` / ``SignatureArray``.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional, Union

logger = logging.getLogger(__name__)

SIGNATURE_TYPE = "signature"
TEXT_TYPE = "text"
DEFAULT_SIGNATURE_SOURCE = "canvas"

DEFAULT_PAGE = 1
DEFAULT_SIGNATURE_WIDTH = 200
DEFAULT_SIGNATURE_HEIGHT = 100


@dataclass
class SignatureEntry:
    id: str
    data_url: str
    source: Optional[str] = None
    position: dict = field(default_factory=dict)
    timestamp: Optional[str] = None
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "SignatureEntry":
        known = {"id", "dataUrl", "source", "position", "timestamp"}
        return cls(
            id=str(data.get("id")) if data.get("id") is not None else None,
            data_url=data.get("dataUrl") or "",
            source=data.get("source"),
            position=dict(data.get("position") or {}),
            timestamp=data.get("timestamp"),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data.update({
            "id": self.id,
            "dataUrl": self.data_url,
            "source": self.source,
            "position": dict(self.position),
            "timestamp": self.timestamp,
        })
        return data


@dataclass
class LegacySignature:
    data_url: str
    position: dict = field(default_factory=dict)
    timestamp: Optional[str] = None

    def as_entry(self, entry_id: str, source: Optional[str]) -> SignatureEntry:
        return SignatureEntry(
            id=entry_id,
            data_url=self.data_url,
            source=source,
            position=dict(self.position),
            timestamp=self.timestamp,
        )

    def to_dict(self) -> dict:
        return {"dataUrl": self.data_url, "position": dict(self.position), "timestamp": self.timestamp}


@dataclass
class SignatureArray:
    signatures: list = field(default_factory=list)

    def find(self, signature_id: str) -> Optional[int]:
        for index, entry in enumerate(self.signatures):
            if entry.id == signature_id:
                return index
        return None

    def to_dict(self) -> dict:
        return {"signatures": [entry.to_dict() for entry in self.signatures]}


SignatureShape = Union[LegacySignature, SignatureArray]


def parse_signature_data(data: Any) -> Optional[SignatureShape]:
    """Returns the shape held by a ``signature_data`` value, or None when it holds neither."""
    if not isinstance(data, dict):
        return None
    if isinstance(data.get("signatures"), list):
        return SignatureArray([
            SignatureEntry.from_dict(entry) for entry in data["signatures"] if isinstance(entry, dict)
        ])
    if data.get("dataUrl"):
        return LegacySignature(
            data_url=data["dataUrl"],
            position=dict(data.get("position") or {}),
            timestamp=data.get("timestamp"),
        )
    return None


@dataclass
class CompositedAnnotation:
    """Storage-agnostic annotation consumed by the PDF compositor."""
    id: Any
    type: str
    page: int = DEFAULT_PAGE
    image_data: Optional[str] = None
    text: Optional[str] = None
    relative_x: Optional[float] = None
    relative_y: Optional[float] = None
    relative_width: Optional[float] = None
    relative_height: Optional[float] = None
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    font_size: Optional[float] = None
    timestamp: Optional[str] = None
    signature_source: Optional[str] = None
    recipient_email: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "type": self.type,
            "page": self.page,
            "relativeX": self.relative_x,
            "relativeY": self.relative_y,
            "relativeWidth": self.relative_width,
            "relativeHeight": self.relative_height,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "timestamp": self.timestamp,
            "recipientEmail": self.recipient_email,
        }
        if self.type == SIGNATURE_TYPE:
            data["imageData"] = self.image_data
            data["signatureSource"] = self.signature_source
        else:
            data["text"] = self.text
            data["fontSize"] = self.font_size
        return data


def _isoformat(value) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def legacy_entry_id(row) -> str:
    """Id a legacy single-signature row is addressed by."""
    return str(row.id)


def strip_signatures(annotations: Iterable[dict]) -> list:
    """Drops signature-typed entries; text storage never holds signatures."""
    return [
        ann for ann in annotations
        if isinstance(ann, dict) and ann.get("type") != SIGNATURE_TYPE
    ]


def text_annotation(ann: dict, recipient_email: Optional[str] = None) -> CompositedAnnotation:
    return CompositedAnnotation(
        id=ann.get("id"),
        type=ann.get("type") or TEXT_TYPE,
        page=ann.get("page") or DEFAULT_PAGE,
        text=ann.get("text"),
        relative_x=ann.get("relativeX"),
        relative_y=ann.get("relativeY"),
        relative_width=ann.get("relativeWidth"),
        relative_height=ann.get("relativeHeight"),
        x=ann.get("x"),
        y=ann.get("y"),
        width=ann.get("width"),
        height=ann.get("height"),
        font_size=ann.get("fontSize"),
        timestamp=ann.get("timestamp"),
        recipient_email=recipient_email,
    )


def signature_annotation(entry: SignatureEntry, row) -> CompositedAnnotation:
    position = entry.position
    return CompositedAnnotation(
        id=entry.id,
        type=SIGNATURE_TYPE,
        page=position.get("page") or DEFAULT_PAGE,
        image_data=entry.data_url,
        relative_x=position.get("relativeX"),
        relative_y=position.get("relativeY"),
        relative_width=position.get("relativeWidth"),
        relative_height=position.get("relativeHeight"),
        x=position.get("x"),
        y=position.get("y"),
        width=position.get("width") or DEFAULT_SIGNATURE_WIDTH,
        height=position.get("height") or DEFAULT_SIGNATURE_HEIGHT,
        timestamp=entry.timestamp or _isoformat(row.signed_at),
        signature_source=entry.source or row.signature_source or DEFAULT_SIGNATURE_SOURCE,
        recipient_email=row.recipient_email,
    )


def text_annotations_from_rows(rows) -> list:
    annotations = []
    for row in rows:
        if not isinstance(row.annotations, list):
            logger.warning("Annotation row %s holds no list, skipped", row.id)
            continue
        annotations.extend(
            text_annotation(ann, row.recipient_email) for ann in strip_signatures(row.annotations)
        )
    return annotations


def signature_annotations_from_rows(rows) -> list:
    annotations = []
    for row in rows:
        shape = parse_signature_data(row.signature_data)
        if isinstance(shape, SignatureArray):
            annotations.extend(signature_annotation(entry, row) for entry in shape.signatures)
        elif isinstance(shape, LegacySignature):
            entry = shape.as_entry(legacy_entry_id(row), row.signature_source)
            annotations.append(signature_annotation(entry, row))
        else:
            logger.warning("Signature row %s has no recognizable signature data, skipped", row.id)
    return annotations


def composite_annotations(text_rows, signature_rows) -> list:
    """Text annotations first, then signatures; later items are drawn on top."""
    return text_annotations_from_rows(text_rows) + signature_annotations_from_rows(signature_rows)
