import asyncio
import base64

import pytest

from relief_sync.drivers import SubmissionResult
from relief_sync.services.errors import SubmissionError
from relief_sync.services.local_store import LocalStore
from relief_sync.services.queue_manager import QueueManager

PHOTO_BYTES = b'\xff\xd8\xff\xe0mock-jpeg-body'
AUDIO_BYTES = b'\x1aE\xdf\xa3mock-webm-body'

PHOTO_URI = "data:image/jpeg;base64," + base64.b64encode(PHOTO_BYTES).decode()
AUDIO_URI = "data:audio/webm;base64," + base64.b64encode(AUDIO_BYTES).decode()


def make_pledge(**overrides):
    data = {
        "name": "Maria Santos",
        "contact": "maria@example.org",
        "contact_number": "+63 917 555 0101",
        "resource_type": "Food",
        "resource_details": "Rice sacks and canned goods",
        "quantity": 5,
        "latitude": 14.5995,
        "longitude": 120.9842,
        "location_accuracy": 12.0,
        "location_landmark": "Barangay hall",
    }
    data.update(overrides)
    return data


def make_incident(**overrides):
    data = {
        "type": "Flood",
        "description": "Water rising near the river bank",
        "photo_data_uri": PHOTO_URI,
        "latitude": 14.6,
        "longitude": 121.0,
        "notify_department": ["fire", "rescue"],
        "notify_contact": "+63 917 555 0199",
    }
    data.update(overrides)
    return data


class FakeBackend:
    """In-memory stand-in for BackendClient."""

    def __init__(self):
        self.configured = True
        self.reachable = True
        self.user_id = None
        self.inserts = []
        self.uploads = []
        self.insert_error = None
        self.upload_errors = {}  # path marker -> exception

    def is_configured(self):
        return self.configured

    async def health_check(self):
        return self.reachable

    async def get_current_user_id(self):
        return self.user_id

    async def insert_record(self, table, record):
        if self.insert_error is not None:
            raise self.insert_error
        self.inserts.append((table, dict(record)))
        return f"{table}-{len(self.inserts)}"

    async def upload_object(self, bucket, path, data, content_type="application/octet-stream"):
        for marker, error in self.upload_errors.items():
            if marker in path:
                raise error
        self.uploads.append((bucket, path, data, content_type))
        return f"https://cdn.test/{bucket}/{path}"


class RecordingDriver:
    """Driver double that records submissions in call order."""

    def __init__(self, ok=True, delay=0.0, gate=None):
        self.ok = ok
        self.delay = delay
        self.gate = gate
        self.calls = []

    async def submit(self, payload):
        self.calls.append(payload)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.ok:
            return SubmissionResult.success(f"ref-{len(self.calls)}")
        return SubmissionResult.failure(SubmissionError("remote said no"))


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "queue.db"


@pytest.fixture
def store(db_path):
    return LocalStore(db_path)


@pytest.fixture
def queue(store):
    return QueueManager(store)


@pytest.fixture
def backend():
    return FakeBackend()
