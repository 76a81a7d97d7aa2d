"""
Submission drivers: one per queued item type.
"""

from .base_driver import BaseSubmissionDriver, SubmissionResult
from .driver_registry import DriverRegistry
from .incident_driver import IncidentDriver
from .pledge_driver import PledgeDriver

__all__ = [
    'BaseSubmissionDriver',
    'SubmissionResult',
    'DriverRegistry',
    'IncidentDriver',
    'PledgeDriver',
]
