"""
models.py - Queue data model

QueueItem is a tagged union: the `type` field selects the payload class
through PAYLOAD_TYPES, and drivers are dispatched on the same tag.
"""

import json
import re
import time
import uuid
from dataclasses import dataclass, asdict, replace
from enum import Enum
from typing import Any, Dict, Optional, Union

from .errors import PayloadValidationError
from ..utils.data_uri import decode_data_uri, is_data_uri

RESOURCE_TYPES = ('Food', 'Shelter', 'Transport', 'Skills')
INCIDENT_TYPES = ('Flood', 'Fire', 'Storm', 'Earthquake', 'Landslide', 'Other')
INCIDENT_STATUS_UNVERIFIED = 'unverified'

_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
_PHONE_RE = re.compile(r'^\+?[\d\s\-()]+$')


class QueueItemType(Enum):
    """Kinds of submission that can be queued."""
    PLEDGE = "pledge"
    INCIDENT = "incident"


def now_ms() -> int:
    return int(time.time() * 1000)


# ==================== Field Validation ====================

def _require_text(data: Dict, key: str, min_len: int = 1) -> str:
    value = data.get(key)
    if not isinstance(value, str) or len(value.strip()) < min_len:
        raise PayloadValidationError(f"{key} must be a string of at least {min_len} characters")
    return value.strip()


def _optional_text(data: Dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise PayloadValidationError(f"{key} must be a string")
    return value.strip() or None


def _coordinate(data: Dict, key: str, limit: float, required: bool) -> Optional[float]:
    value = data.get(key)
    if value is None:
        if required:
            raise PayloadValidationError(f"{key} is required")
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PayloadValidationError(f"{key} must be a number")
    if not -limit <= value <= limit:
        raise PayloadValidationError(f"{key} out of range: {value}")
    return float(value)


def _positive_int(data: Dict, key: str) -> int:
    value = data.get(key)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise PayloadValidationError(f"{key} must be a positive integer")
    return value


def _media(data: Dict[str, Any], key: str, required: bool = False) -> Optional[str]:
    """A data: URI whose body decodes; the item could never upload otherwise."""
    value = data.get(key)
    if value is None and not required:
        return None
    if not is_data_uri(value):
        raise PayloadValidationError(f"{key} must be a data: URI")
    try:
        decode_data_uri(value)
    except ValueError as e:
        raise PayloadValidationError(f"{key} cannot be decoded: {e}")
    return value


def validate_phone(value: str) -> bool:
    if not _PHONE_RE.match(value):
        return False
    digits = sum(ch.isdigit() for ch in value)
    return 7 <= digits <= 15


# ==================== Payloads ====================

@dataclass(frozen=True)
class PledgePayload:
    """An aid pledge from a volunteer."""
    name: str
    contact: str
    contact_number: str
    resource_type: str
    resource_details: str
    quantity: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_accuracy: Optional[float] = None
    location_landmark: Optional[str] = None
    pledger_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PledgePayload":
        if not isinstance(data, dict):
            raise PayloadValidationError("pledge payload must be an object")

        contact = _require_text(data, 'contact')
        if not _EMAIL_RE.match(contact):
            raise PayloadValidationError(f"contact is not a valid email address: {contact}")

        contact_number = _require_text(data, 'contact_number')
        if not validate_phone(contact_number):
            raise PayloadValidationError(f"contact_number is not a valid phone number: {contact_number}")

        resource_type = data.get('resource_type')
        if resource_type not in RESOURCE_TYPES:
            raise PayloadValidationError(
                f"resource_type must be one of {', '.join(RESOURCE_TYPES)}, got {resource_type!r}"
            )

        accuracy = data.get('location_accuracy')
        if accuracy is not None:
            if isinstance(accuracy, bool) or not isinstance(accuracy, (int, float)) or accuracy < 0:
                raise PayloadValidationError("location_accuracy must be a non-negative number")
            accuracy = float(accuracy)

        return cls(
            name=_require_text(data, 'name', min_len=2),
            contact=contact,
            contact_number=contact_number,
            resource_type=resource_type,
            resource_details=_require_text(data, 'resource_details', min_len=5),
            quantity=_positive_int(data, 'quantity'),
            latitude=_coordinate(data, 'latitude', 90, required=False),
            longitude=_coordinate(data, 'longitude', 180, required=False),
            location_accuracy=accuracy,
            location_landmark=_optional_text(data, 'location_landmark'),
            pledger_id=_optional_text(data, 'pledger_id'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class IncidentPayload:
    """An incident report whose media has not been uploaded yet."""
    type: str
    photo_data_uri: str
    latitude: float
    longitude: float
    status: str = INCIDENT_STATUS_UNVERIFIED
    description: Optional[str] = None
    audio_data_uri: Optional[str] = None
    notify_department: Optional[str] = None  # JSON-encoded list
    notify_contact: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IncidentPayload":
        if not isinstance(data, dict):
            raise PayloadValidationError("incident payload must be an object")

        status = data.get('status') or INCIDENT_STATUS_UNVERIFIED
        if status != INCIDENT_STATUS_UNVERIFIED:
            raise PayloadValidationError(f"new incidents must be '{INCIDENT_STATUS_UNVERIFIED}', got {status!r}")

        incident_type = data.get('type')
        if incident_type not in INCIDENT_TYPES:
            raise PayloadValidationError(
                f"type must be one of {', '.join(INCIDENT_TYPES)}, got {incident_type!r}"
            )

        photo = _media(data, 'photo_data_uri', required=True)
        audio = _media(data, 'audio_data_uri')

        departments = data.get('notify_department')
        if isinstance(departments, (list, tuple)):
            departments = json.dumps(list(departments))
        elif departments is not None and not isinstance(departments, str):
            raise PayloadValidationError("notify_department must be a list or JSON string")

        return cls(
            type=incident_type,
            photo_data_uri=photo,
            latitude=_coordinate(data, 'latitude', 90, required=True),
            longitude=_coordinate(data, 'longitude', 180, required=True),
            status=status,
            description=_optional_text(data, 'description'),
            audio_data_uri=audio or None,
            notify_department=departments or None,
            notify_contact=_optional_text(data, 'notify_contact'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


Payload = Union[PledgePayload, IncidentPayload]

PAYLOAD_TYPES = {
    QueueItemType.PLEDGE: PledgePayload,
    QueueItemType.INCIDENT: IncidentPayload,
}


def build_payload(item_type: QueueItemType, payload) -> Payload:
    """Coerce a dict (or an already-built payload) into the class for item_type."""
    payload_cls = PAYLOAD_TYPES[item_type]
    if isinstance(payload, payload_cls):
        return payload
    if isinstance(payload, tuple(PAYLOAD_TYPES.values())):
        raise PayloadValidationError(
            f"{type(payload).__name__} cannot be queued as {item_type.value}"
        )
    return payload_cls.from_dict(payload)


def parse_item_type(value) -> QueueItemType:
    if isinstance(value, QueueItemType):
        return value
    try:
        return QueueItemType(value)
    except ValueError:
        raise PayloadValidationError(f"Unknown submission type: {value!r}")


# ==================== Queue Records ====================

@dataclass(frozen=True)
class QueueItem:
    """A locally persisted submission awaiting remote delivery."""
    id: str
    type: QueueItemType
    payload: Payload
    created_at: int
    attempts: int = 0

    @classmethod
    def create(cls, item_type, payload) -> "QueueItem":
        item_type = parse_item_type(item_type)
        return cls(
            id=str(uuid.uuid4()),
            type=item_type,
            payload=build_payload(item_type, payload),
            created_at=now_ms(),
            attempts=0,
        )

    def with_attempt(self) -> "QueueItem":
        return replace(self, attempts=self.attempts + 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "payload": self.payload.to_dict(),
            "createdAt": self.created_at,
            "attempts": self.attempts,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueueItem":
        # Stored payloads were validated at enqueue time; rebuild them as-is.
        item_type = parse_item_type(data["type"])
        payload = PAYLOAD_TYPES[item_type](**data["payload"])
        return cls(
            id=str(data["id"]),
            type=item_type,
            payload=payload,
            created_at=int(data["createdAt"]),
            attempts=int(data.get("attempts", 0)),
        )


@dataclass(frozen=True)
class LastSyncInfo:
    """Summary of the most recent completed drain cycle."""
    timestamp: int
    processed: int
    errors: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["LastSyncInfo"]:
        if not isinstance(data, dict) or not isinstance(data.get("timestamp"), int):
            return None
        return cls(
            timestamp=data["timestamp"],
            processed=int(data.get("processed", 0)),
            errors=int(data.get("errors", 0)),
        )
