"""API routers for the approval engine."""

from . import approvals
from . import notifications
from . import settings

__all__ = [
    "approvals",
    "notifications",
    "settings",
]
