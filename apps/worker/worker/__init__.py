"""
Carnival Hub Worker Service
===========================

Background job runner for:
- Importing carnivals from the external event feed
- Recounting approved registrations per carnival
- Re-pricing registrations after fee or roster drift
- Reporting unclaimed imported carnivals
"""

__version__ = "1.0.0"
