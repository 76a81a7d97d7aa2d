import json

import pytest

from relief_sync.services.errors import PayloadValidationError
from relief_sync.services.models import (
    IncidentPayload,
    LastSyncInfo,
    PledgePayload,
    QueueItem,
    QueueItemType,
    build_payload,
    parse_item_type,
)
from relief_sync.utils.data_uri import decode_data_uri, extension_for

from conftest import PHOTO_BYTES, PHOTO_URI, make_incident, make_pledge


def test_pledge_from_dict_keeps_fields():
    payload = PledgePayload.from_dict(make_pledge())
    assert payload.name == "Maria Santos"
    assert payload.resource_type == "Food"
    assert payload.quantity == 5
    assert payload.location_landmark == "Barangay hall"
    assert payload.pledger_id is None


def test_pledge_quantity_is_coerced_from_numeric_string():
    assert PledgePayload.from_dict(make_pledge(quantity="12")).quantity == 12


@pytest.mark.parametrize("quantity", [0, -3, 1.5, True, "many", None])
def test_pledge_rejects_non_positive_quantity(quantity):
    with pytest.raises(PayloadValidationError):
        PledgePayload.from_dict(make_pledge(quantity=quantity))


@pytest.mark.parametrize("field,value", [
    ("contact", "not-an-email"),
    ("contact_number", "call me"),
    ("contact_number", "12345"),
    ("resource_type", "Money"),
    ("name", "M"),
    ("resource_details", "rice"),
    ("latitude", 123.0),
])
def test_pledge_rejects_invalid_fields(field, value):
    with pytest.raises(PayloadValidationError):
        PledgePayload.from_dict(make_pledge(**{field: value}))


def test_pledge_location_is_optional():
    data = make_pledge()
    for key in ("latitude", "longitude", "location_accuracy", "location_landmark"):
        data.pop(key)
    payload = PledgePayload.from_dict(data)
    assert payload.latitude is None
    assert payload.location_landmark is None


def test_incident_defaults_to_unverified_and_encodes_departments():
    payload = IncidentPayload.from_dict(make_incident())
    assert payload.status == "unverified"
    assert json.loads(payload.notify_department) == ["fire", "rescue"]
    assert payload.audio_data_uri is None


def test_incident_rejects_other_status():
    with pytest.raises(PayloadValidationError):
        IncidentPayload.from_dict(make_incident(status="verified"))


def test_incident_requires_coordinates_and_photo():
    data = make_incident()
    data.pop("latitude")
    with pytest.raises(PayloadValidationError):
        IncidentPayload.from_dict(data)
    with pytest.raises(PayloadValidationError):
        IncidentPayload.from_dict(make_incident(photo_data_uri="https://example.org/p.jpg"))
    with pytest.raises(PayloadValidationError):
        IncidentPayload.from_dict(make_incident(type="Volcano"))


@pytest.mark.parametrize("field,value", [
    ("photo_data_uri", "data:image/jpeg;base64,@@@"),
    ("audio_data_uri", "data:audio/webm;base64,not base64!"),
    ("audio_data_uri", ""),
])
def test_incident_rejects_undecodable_media(queue, field, value):
    with pytest.raises(PayloadValidationError, match=field):
        IncidentPayload.from_dict(make_incident(**{field: value}))
    with pytest.raises(PayloadValidationError):
        queue.enqueue("incident", make_incident(**{field: value}))
    assert queue.count() == 0


def test_build_payload_refuses_mismatched_class():
    pledge = PledgePayload.from_dict(make_pledge())
    with pytest.raises(PayloadValidationError):
        build_payload(QueueItemType.INCIDENT, pledge)
    assert build_payload(QueueItemType.PLEDGE, pledge) is pledge


def test_parse_item_type():
    assert parse_item_type("pledge") is QueueItemType.PLEDGE
    assert parse_item_type(QueueItemType.INCIDENT) is QueueItemType.INCIDENT
    with pytest.raises(PayloadValidationError):
        parse_item_type("task")


def test_queue_item_serialized_shape():
    item = QueueItem.create("incident", make_incident())
    data = item.to_dict()
    assert set(data) == {"id", "type", "payload", "createdAt", "attempts"}
    assert data["type"] == "incident"
    assert data["attempts"] == 0

    restored = QueueItem.from_dict(json.loads(json.dumps(data)))
    assert restored == item


def test_with_attempt_returns_new_item():
    item = QueueItem.create("pledge", make_pledge())
    bumped = item.with_attempt()
    assert bumped.attempts == 1
    assert item.attempts == 0
    assert bumped.id == item.id


def test_last_sync_info_rejects_garbage():
    assert LastSyncInfo.from_dict({"timestamp": "yesterday"}) is None
    assert LastSyncInfo.from_dict(None) is None
    info = LastSyncInfo.from_dict({"timestamp": 1700000000000, "processed": 2, "errors": 1})
    assert info == LastSyncInfo(1700000000000, 2, 1)


def test_decode_data_uri():
    data, mime = decode_data_uri(PHOTO_URI)
    assert data == PHOTO_BYTES
    assert mime == "image/jpeg"

    data, mime = decode_data_uri("data:,hello%20world")
    assert data == b"hello world"
    assert mime == "application/octet-stream"

    with pytest.raises(ValueError):
        decode_data_uri("hello")


def test_extension_for():
    assert extension_for("image/png") == "png"
    assert extension_for("audio/webm") == "webm"
    assert extension_for("application/x-unknown", "jpg") == "jpg"
