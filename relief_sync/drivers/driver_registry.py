from typing import Dict, Optional

from .base_driver import BaseSubmissionDriver
from .incident_driver import IncidentDriver
from .pledge_driver import PledgeDriver
from ..services.models import QueueItemType


class DriverRegistry:
    """
    Maps every submission type to its driver.

    Construction fails if any QueueItemType lacks a driver, so adding a new
    type without a driver is caught at start-up rather than mid-drain.
    """
    def __init__(self, drivers: Dict[QueueItemType, BaseSubmissionDriver]):
        missing = [t.value for t in QueueItemType if t not in drivers]
        if missing:
            raise ValueError(f"No submission driver registered for: {', '.join(missing)}")
        self.drivers = dict(drivers)

    @classmethod
    def default(cls, backend, bucket: str = "incident-photos") -> "DriverRegistry":
        return cls({
            QueueItemType.PLEDGE: PledgeDriver(backend),
            QueueItemType.INCIDENT: IncidentDriver(backend, bucket=bucket),
        })

    def get_driver(self, item_type: QueueItemType) -> Optional[BaseSubmissionDriver]:
        return self.drivers.get(item_type)
