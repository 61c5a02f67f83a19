"""
Schedule Service - the PENDING → REGISTERED | SKIPPED state machine.

Flow:
=====
1. A message is extracted into candidates → intake() stores them as PENDING
2. User taps "Add to calendar" → present_calendar_choices()
3. User picks a calendar → register() writes the Google event
4. Or user taps "Skip" → skip()

Gate:
=====
Every action looks the schedule up by id AND owning account AND
status=PENDING. A foreign id, an unknown id and an already processed
schedule all produce the same NotFound, so the reply never reveals which
one it was.

Terminal transitions use a conditional UPDATE (... WHERE status='PENDING')
and insert the ScheduleHistory row in the same transaction. When two taps
race, exactly one UPDATE matches a row; the other rolls back and reports
NotFound. For register, the loser's Google event has already been written
by then; this is logged and accepted.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Union
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.base import as_utc
from app.environments.google.calendar.client import GoogleCalendarClient
from app.environments.google.calendar.schemas import CalendarInfo, EventCreateRequest
from app.models.pending_schedule import PendingSchedule, ScheduleStatus
from app.models.schedule_history import ScheduleHistory
from app.models.user_account import UserAccount
from app.schemas.schedule import ScheduleCandidate
from app.services.credential_service import (
    AuthRequired,
    CredentialService,
    ReauthRequired,
    UsableCredential,
)


logger = logging.getLogger("linecal.services.schedules")

PRIMARY_CALENDAR_ID = "primary"
PRIMARY_CALENDAR_NAME = "Primary calendar"
DEFAULT_CALENDAR_NAME = "Calendar"
GROUP_CALENDAR_SUFFIX = "@group.calendar.google.com"


# ---------------------------------------------------------------------------
# RESULTS
# ---------------------------------------------------------------------------

@dataclass
class IntakeResult:
    schedules: List[PendingSchedule] = field(default_factory=list)
    nothing_found: bool = False


@dataclass
class CalendarChoice:
    """One calendar the user can send a schedule to."""
    id: str
    name: str
    color: Optional[str] = None


@dataclass
class CalendarChoices:
    schedule: PendingSchedule
    calendars: List[CalendarChoice]


@dataclass
class Registered:
    schedule_id: UUID
    title: str
    calendar_id: str
    calendar_name: str
    google_event_id: str


@dataclass
class Skipped:
    schedule_id: UUID
    title: str


@dataclass
class NotFound:
    """Unknown id, someone else's schedule, or already processed."""
    schedule_id: UUID


RegisterOutcome = Union[Registered, NotFound, AuthRequired, ReauthRequired]


# ---------------------------------------------------------------------------
# CALENDAR CACHE HELPERS
# ---------------------------------------------------------------------------

def parse_calendar_cache(raw: Optional[str]) -> List[CalendarInfo]:
    """
    Parse UserAccount.google_calendars.

    Missing or unparsable caches yield an empty list; individual invalid
    entries are skipped.
    """
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Calendar cache is not valid JSON")
        return []
    if not isinstance(data, list):
        return []

    calendars: List[CalendarInfo] = []
    for item in data:
        try:
            calendars.append(CalendarInfo.model_validate(item))
        except ValidationError:
            continue
    return calendars


def filter_calendars(calendars: Sequence[CalendarInfo]) -> List[CalendarInfo]:
    """
    Hide group calendars (holidays, shared team calendars) unless there is
    only one calendar. Falls back to the full list if nothing survives.
    """
    if len(calendars) <= 1:
        return list(calendars)
    kept = [
        c for c in calendars
        if c.id == PRIMARY_CALENDAR_ID or GROUP_CALENDAR_SUFFIX not in c.id
    ]
    return kept or list(calendars)


def resolve_calendar_name(calendar_id: str, calendars: Sequence[CalendarInfo]) -> str:
    if calendar_id == PRIMARY_CALENDAR_ID:
        return PRIMARY_CALENDAR_NAME
    for calendar in calendars:
        if calendar.id == calendar_id and calendar.summary:
            return calendar.summary
    return DEFAULT_CALENDAR_NAME


class ScheduleService:
    """
    Coordinates pending schedules for one database session.

    Args:
        db: Session used for every read and write
        credentials: Token lifecycle for register()
        calendar_client_factory: Builds a calendar client from a plaintext
            access token (tests inject a fake)
        timezone_name: Time zone sent with created events
    """

    def __init__(
        self,
        db: Session,
        credentials: CredentialService,
        calendar_client_factory: Callable[[str], GoogleCalendarClient] = GoogleCalendarClient,
        timezone_name: str = "Asia/Tokyo",
    ):
        self.db = db
        self.credentials = credentials
        self.calendar_client_factory = calendar_client_factory
        self.timezone_name = timezone_name

    # -------------------------------------------------------------------------
    # INTAKE
    # -------------------------------------------------------------------------

    def intake(
        self,
        account: UserAccount,
        message_id: str,
        candidates: Sequence[ScheduleCandidate],
    ) -> IntakeResult:
        """
        Persist one PENDING row per candidate, all in one commit.

        Raises:
            SQLAlchemyError: If the rows cannot be stored
        """
        if not candidates:
            return IntakeResult(schedules=[], nothing_found=True)

        schedules = [
            PendingSchedule(
                user_id=account.id,
                line_message_id=message_id,
                title=candidate.title,
                description=candidate.description,
                location=candidate.location,
                start_datetime=candidate.start_utc(),
                end_datetime=candidate.end_utc(),
                status=ScheduleStatus.PENDING.value,
            )
            for candidate in candidates
        ]

        self.db.add_all(schedules)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Failed to store {len(schedules)} pending schedule(s)")
            raise

        for schedule in schedules:
            self.db.refresh(schedule)

        logger.info(
            f"Stored {len(schedules)} pending schedule(s)",
            extra={"line_message_id": message_id},
        )
        return IntakeResult(schedules=schedules)

    # -------------------------------------------------------------------------
    # GATE
    # -------------------------------------------------------------------------

    def get_pending(self, account: UserAccount, schedule_id: UUID) -> Optional[PendingSchedule]:
        """The schedule if it exists, belongs to account and is still PENDING."""
        schedule = self.db.execute(
            select(PendingSchedule).where(
                PendingSchedule.id == schedule_id,
                PendingSchedule.user_id == account.id,
            )
        ).scalar_one_or_none()

        if schedule is None or not schedule.is_pending():
            return None
        return schedule

    # -------------------------------------------------------------------------
    # CALENDAR CHOICES
    # -------------------------------------------------------------------------

    def present_calendar_choices(
        self,
        account: UserAccount,
        schedule_id: UUID,
    ) -> Union[CalendarChoices, NotFound]:
        schedule = self.get_pending(account, schedule_id)
        if schedule is None:
            return NotFound(schedule_id=schedule_id)

        cached = parse_calendar_cache(account.google_calendars)
        if not cached:
            choices = [CalendarChoice(id=PRIMARY_CALENDAR_ID, name=PRIMARY_CALENDAR_NAME)]
        else:
            choices = [
                CalendarChoice(
                    id=c.id,
                    name=c.summary or c.id,
                    color=c.background_color,
                )
                for c in filter_calendars(cached)
            ]

        return CalendarChoices(schedule=schedule, calendars=choices)

    # -------------------------------------------------------------------------
    # REGISTER
    # -------------------------------------------------------------------------

    async def register(
        self,
        account: UserAccount,
        schedule_id: UUID,
        calendar_id: str,
    ) -> RegisterOutcome:
        """
        Write the schedule to Google Calendar and mark it REGISTERED.

        Raises:
            APIError: If the Calendar API rejects the event (nothing is committed)
            SQLAlchemyError: If the transition cannot be stored
        """
        schedule = self.get_pending(account, schedule_id)
        if schedule is None:
            return NotFound(schedule_id=schedule_id)

        outcome = await self.credentials.ensure_usable_credential(account)
        if not isinstance(outcome, UsableCredential):
            return outcome

        # Copy what we need before the await; the session may expire attributes
        title = schedule.title
        request = EventCreateRequest(
            summary=title,
            start_datetime=as_utc(schedule.start_datetime),
            end_datetime=as_utc(schedule.end_datetime),
            timezone=self.timezone_name,
            location=schedule.location,
            description=schedule.description,
        )

        calendar = self.calendar_client_factory(outcome.access_token)
        created = await calendar.create_event(request, calendar_id=calendar_id)

        if not self._transition(
            account,
            schedule_id,
            ScheduleStatus.REGISTERED,
            calendar_id=calendar_id,
            google_event_id=created.event_id,
        ):
            logger.warning(
                f"Schedule {schedule_id} was processed concurrently; "
                f"event {created.event_id} already written to {calendar_id}"
            )
            return NotFound(schedule_id=schedule_id)

        calendar_name = resolve_calendar_name(
            calendar_id, parse_calendar_cache(account.google_calendars)
        )
        logger.info(f"Registered schedule {schedule_id} to {calendar_id}")
        return Registered(
            schedule_id=schedule_id,
            title=title,
            calendar_id=calendar_id,
            calendar_name=calendar_name,
            google_event_id=created.event_id,
        )

    # -------------------------------------------------------------------------
    # SKIP
    # -------------------------------------------------------------------------

    def skip(self, account: UserAccount, schedule_id: UUID) -> Union[Skipped, NotFound]:
        """Mark the schedule SKIPPED. Needs no Google credential."""
        schedule = self.get_pending(account, schedule_id)
        if schedule is None:
            return NotFound(schedule_id=schedule_id)

        title = schedule.title
        if not self._transition(account, schedule_id, ScheduleStatus.SKIPPED):
            return NotFound(schedule_id=schedule_id)

        logger.info(f"Skipped schedule {schedule_id}")
        return Skipped(schedule_id=schedule_id, title=title)

    # -------------------------------------------------------------------------
    # TRANSITION
    # -------------------------------------------------------------------------

    def _transition(
        self,
        account: UserAccount,
        schedule_id: UUID,
        new_status: ScheduleStatus,
        calendar_id: Optional[str] = None,
        google_event_id: Optional[str] = None,
    ) -> bool:
        """
        Compare-and-swap PENDING → new_status plus the history row, atomically.

        Returns:
            False if the schedule was no longer PENDING (nothing written)
        """
        values = {"status": new_status.value}
        if calendar_id is not None:
            values["calendar_id"] = calendar_id

        try:
            result = self.db.execute(
                update(PendingSchedule)
                .where(
                    PendingSchedule.id == schedule_id,
                    PendingSchedule.user_id == account.id,
                    PendingSchedule.status == ScheduleStatus.PENDING.value,
                )
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            if result.rowcount != 1:
                self.db.rollback()
                return False

            self.db.add(ScheduleHistory(
                user_id=account.id,
                schedule_id=schedule_id,
                action=new_status.value,
                calendar_id=calendar_id,
                google_event_id=google_event_id,
            ))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return True
