from .attempt import AttemptSession, AttemptState, AttemptStateError, time_level
from .portal import PortalClient, PortalError
from .timers import AttemptTimers

__all__ = [
    "AttemptSession",
    "AttemptState",
    "AttemptStateError",
    "AttemptTimers",
    "PortalClient",
    "PortalError",
    "time_level",
]
