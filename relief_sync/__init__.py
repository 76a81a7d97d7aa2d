"""
relief-sync: offline submission queue for community incident reports and aid pledges.
"""

__version__ = "1.0.0"
