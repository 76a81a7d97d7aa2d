import logging
from dataclasses import dataclass
from typing import Optional

from ..services.errors import SubmissionError


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of one driver submission: a record reference or an error."""
    ok: bool
    record_ref: Optional[str] = None
    error: Optional[SubmissionError] = None

    @classmethod
    def success(cls, record_ref: Optional[str] = None) -> "SubmissionResult":
        return cls(ok=True, record_ref=record_ref)

    @classmethod
    def failure(cls, error: SubmissionError) -> "SubmissionResult":
        return cls(ok=False, error=error)


class BaseSubmissionDriver:
    """
    Base class for submission drivers to ensure consistent logging and interface.

    Drivers turn a payload into remote calls. They never touch the queue;
    retry bookkeeping belongs to the sync manager.
    """
    table = None

    def __init__(self, name, backend):
        self.name = name
        self.backend = backend
        self.logger = logging.getLogger(f"Driver.{name}")

    async def submit(self, payload) -> SubmissionResult:
        """Submit one payload. Remote failures come back as a failed result."""
        try:
            record_ref = await self._submit(payload)
        except SubmissionError as e:
            self.logger.warning(f"Submission failed: {e}")
            return SubmissionResult.failure(e)
        self.logger.info(f"Submitted to {self.table} (ref: {record_ref})")
        return SubmissionResult.success(record_ref)

    async def _submit(self, payload) -> Optional[str]:
        raise NotImplementedError
