import uuid
from typing import Callable, Optional

from .base_driver import BaseSubmissionDriver
from ..services.errors import SubmissionError, UploadError
from ..services.models import IncidentPayload
from ..utils.data_uri import decode_data_uri, extension_for


def default_path_factory(kind: str, ext: str) -> str:
    """Fresh object path per upload; the media store rejects reused paths."""
    suffix = "-offline" if kind == "photo" else f"-offline-{kind}"
    return f"reports/{uuid.uuid4()}{suffix}.{ext}"


class IncidentDriver(BaseSubmissionDriver):
    """
    Driver for incident reports.

    Two phases: upload the photo (required) and the audio clip (optional),
    then insert the incident row with the resulting public URLs. A failed
    photo upload aborts before any row is created; a failed audio upload
    only drops the audio reference.
    """
    table = "incidents"

    def __init__(self, backend, bucket: str = "incident-photos",
                 path_factory: Callable[[str, str], str] = default_path_factory):
        super().__init__("Incident", backend)
        self.bucket = bucket
        self.path_factory = path_factory

    async def _upload(self, kind: str, data_uri: str, default_ext: str) -> str:
        try:
            data, mime = decode_data_uri(data_uri)
        except ValueError as e:
            raise UploadError(f"Cannot decode {kind}: {e}")
        path = self.path_factory(kind, extension_for(mime, default_ext))
        return await self.backend.upload_object(self.bucket, path, data, content_type=mime)

    async def _submit(self, payload: IncidentPayload) -> Optional[str]:
        photo_url = await self._upload("photo", payload.photo_data_uri, "jpg")

        record = {
            "status": payload.status,
            "type": payload.type,
            "description": payload.description,
            "photo_url": photo_url,
            "latitude": payload.latitude,
            "longitude": payload.longitude,
            "notify_department": payload.notify_department,
            "notify_contact": payload.notify_contact,
        }

        if payload.audio_data_uri:
            try:
                record["audio_url"] = await self._upload("audio", payload.audio_data_uri, "webm")
            except SubmissionError as e:
                self.logger.warning(f"Audio upload failed, submitting without audio: {e}")

        return await self.backend.insert_record(self.table, record)
