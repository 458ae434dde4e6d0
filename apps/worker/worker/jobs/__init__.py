"""
Carnival Hub Worker Jobs
========================

Individual job modules:
- feed: External event feed import
- consistency: Registration counter and fee repair, unclaimed report
"""

from worker.jobs.consistency import run_fee_recalculation, run_recount, run_unclaimed_report
from worker.jobs.feed import run_feed_import

__all__ = [
    "run_feed_import",
    "run_recount",
    "run_fee_recalculation",
    "run_unclaimed_report",
]
