"""
ORM models. Importing this package registers every table on Base.metadata.
"""

from app.models.user_account import UserAccount
from app.models.pending_schedule import PendingSchedule, ScheduleStatus
from app.models.schedule_history import ScheduleHistory

__all__ = [
    "UserAccount",
    "PendingSchedule",
    "ScheduleStatus",
    "ScheduleHistory",
]
