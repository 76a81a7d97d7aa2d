from typing import Optional

from .base_driver import BaseSubmissionDriver
from ..services.models import PledgePayload


class PledgeDriver(BaseSubmissionDriver):
    """
    Driver for volunteer pledges: a single insert into `pledges`.
    """
    table = "pledges"

    def __init__(self, backend):
        super().__init__("Pledge", backend)

    async def _submit(self, payload: PledgePayload) -> Optional[str]:
        record = payload.to_dict()

        # Attach the signed-in user when known; anonymous pledges are fine
        user_id = await self.backend.get_current_user_id()
        if user_id:
            record["pledger_id"] = user_id

        return await self.backend.insert_record(self.table, record)
