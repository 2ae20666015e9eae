"""
Scheduled enforcement of deletion duties.

Usage:
    python -m dataspace_broker.worker
"""

from .removal import ScanResult, ScheduledDataRemoval, run_worker

__all__ = [
    "ScanResult",
    "ScheduledDataRemoval",
    "run_worker",
]
