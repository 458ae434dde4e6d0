"""
Carnival Hub API
================

Ownership and attendance lifecycle for community sporting carnivals:
- Claiming, releasing and admin-assigning imported carnivals
- Club attendance registrations, approvals and fee policy
- Player rosters driving per-player fees
"""

__version__ = "1.0.0"
