"""
Carnival Hub Services
=====================

- ownership: claim / release / admin claim, fee structure changes
- registrations: attendance registration workflow and counters
- roster: player assignments driving per-player fees
- fees: fee policy and hosting-club exemption
- notifications: best-effort SMTP notifications
"""

from carnivals.services.ownership import OwnershipManager
from carnivals.services.registrations import RegistrationManager, RegistrationMode
from carnivals.services.roster import RosterManager
from carnivals.services.notifications import NotificationDispatcher, get_dispatcher

__all__ = [
    "OwnershipManager",
    "RegistrationManager",
    "RegistrationMode",
    "RosterManager",
    "NotificationDispatcher",
    "get_dispatcher",
]
