"""Reminder scan engine.

One scan cycle looks at every entity kind (tasks, events, goals), finds the
unsent reminders whose time falls inside the window [now, now + buffer],
dispatches a notification for each and records the sent-state.

Outcome per reminder:
- dispatch succeeded: marked sent
- dispatch raised or returned False: left unsent, picked up again by the
  next cycle while it is still inside the window
- owner lacks the contact detail the method needs: logged as a permanent
  skip, and marked sent with a skip_reason when mark_unsendable is set

A reminder whose time slips behind `now` before it is marked is never
selected again.

Failures are contained: a reminder failure does not stop its siblings, and
a failing entity kind does not stop the other kinds.

Store reads and writes run in the threadpool, off the event loop that also
serves API requests.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Callable, List, Optional, Sequence, Tuple

from fastapi.concurrency import run_in_threadpool

import crud
from database import ReminderMethodEnum
from entity_kinds import ENTITY_KINDS, EntityKind
from logger_config import setup_logger
from message_formatter import (
    DEFAULT_PRODUCT_NAME,
    format_email_html,
    format_email_subject,
    format_message,
)
from notification_service import Channel, ContactInfo, NotificationDispatcher
from time_utils import as_utc, utcnow

logger = setup_logger(__name__, 'scheduler.log')

SKIP_MISSING_EMAIL = "missing_email"
SKIP_MISSING_PHONE = "missing_phone"


@dataclass(frozen=True)
class DueReminder:
    """A due reminder detached from its ORM row, ready to dispatch."""

    kind: EntityKind
    entity_id: str
    entity_title: str
    reminder_id: str
    time: datetime
    channel: Channel
    contact: ContactInfo
    text: str
    subject: Optional[str] = None
    email_html: Optional[str] = None


@dataclass
class ScanSummary:
    window_start: datetime
    window_end: datetime
    candidates: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    vanished: int = 0
    unresolved_owners: int = 0
    failed_kinds: List[str] = field(default_factory=list)


def is_due(reminder, window_start: datetime, window_end: datetime) -> bool:
    """Unsent and timed inside [window_start, window_end], both ends inclusive."""
    if reminder.is_sent:
        return False
    return window_start <= as_utc(reminder.time) <= window_end


class ReminderScanEngine:
    """Find due reminders across entity kinds and dispatch them."""

    def __init__(
        self,
        session_factory: Callable,
        dispatcher: NotificationDispatcher,
        buffer_minutes: int = 10,
        kinds: Sequence[EntityKind] = ENTITY_KINDS,
        clock: Callable[[], datetime] = utcnow,
        tz: Optional[tzinfo] = None,
        product_name: str = DEFAULT_PRODUCT_NAME,
        mark_unsendable: bool = True
    ):
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._buffer = timedelta(minutes=buffer_minutes)
        self._kinds = tuple(kinds)
        self._clock = clock
        self._tz = tz
        self._product_name = product_name
        self._mark_unsendable = mark_unsendable

    def window(self, now: datetime) -> Tuple[datetime, datetime]:
        now = as_utc(now)
        return now, now + self._buffer

    async def run_scan_cycle(self) -> ScanSummary:
        """Run one scan over every entity kind.

        Returns:
            ScanSummary: Counters describing what happened in this cycle
        """
        window_start, window_end = self.window(self._clock())
        summary = ScanSummary(window_start=window_start, window_end=window_end)
        logger.info(f"[Scheduler] Checking for reminders due between {window_start.isoformat()} and {window_end.isoformat()}")

        for kind in self._kinds:
            try:
                await self._scan_kind(kind, summary)
            except Exception as e:
                summary.failed_kinds.append(kind.name)
                logger.error(f"[Scheduler] Scan of {kind.slug} failed: {str(e)}", exc_info=True)

        if summary.candidates or summary.failed_kinds:
            logger.info(
                f"[Scheduler] Cycle done: {summary.candidates} due, {summary.sent} sent, "
                f"{summary.skipped} skipped, {summary.failed} failed, {summary.vanished} vanished"
            )
        return summary

    async def _scan_kind(self, kind: EntityKind, summary: ScanSummary) -> None:
        db = self._session_factory()
        try:
            due = await run_in_threadpool(self._load_due, db, kind, summary)
            summary.candidates += len(due)

            for item in due:
                try:
                    await self._process(db, item, summary)
                except Exception as e:
                    summary.failed += 1
                    logger.error(
                        f"[Scheduler] Error processing reminder {item.reminder_id} "
                        f"of {kind.name} '{item.entity_title}': {str(e)}",
                        exc_info=True
                    )
        finally:
            await run_in_threadpool(db.close)

    def _load_due(self, db, kind: EntityKind, summary: ScanSummary) -> List[DueReminder]:
        entities = crud.find_entities_with_due_reminders(
            db, kind, summary.window_start, summary.window_end
        )
        return self._collect_due(kind, entities, summary)

    def _collect_due(self, kind: EntityKind, entities, summary: ScanSummary) -> List[DueReminder]:
        """Snapshot the due reminders of the loaded entities.

        Everything needed for dispatch is copied out before any write, so a
        reminder removed by its owner mid-cycle cannot break the loop.
        """
        due = []
        for entity in entities:
            try:
                owner = entity.owner
                if owner is None:
                    summary.unresolved_owners += 1
                    logger.warning(
                        f"[Scheduler] Skipping {kind.name} {entity.id}: owner {entity.owner_id} not found"
                    )
                    continue

                contact = ContactInfo.from_user(owner)
                for reminder in entity.reminders:
                    if not is_due(reminder, summary.window_start, summary.window_end):
                        continue
                    due.append(self._build_due_reminder(kind, entity, reminder, contact))
            except Exception as e:
                logger.error(f"[Scheduler] Could not read {kind.name} {entity.id}: {str(e)}", exc_info=True)
        return due

    def _build_due_reminder(self, kind: EntityKind, entity, reminder, contact: ContactInfo) -> DueReminder:
        text = format_message(kind, entity, reminder, tz=self._tz, product_name=self._product_name)
        channel = Channel(ReminderMethodEnum(reminder.method).value)
        subject = email_html = None
        if channel is Channel.EMAIL:
            subject = format_email_subject(kind, entity, product_name=self._product_name)
            email_html = format_email_html(kind, text)
        return DueReminder(
            kind=kind,
            entity_id=entity.id,
            entity_title=kind.title_accessor(entity),
            reminder_id=reminder.id,
            time=as_utc(reminder.time),
            channel=channel,
            contact=contact,
            text=text,
            subject=subject,
            email_html=email_html,
        )

    async def _process(self, db, item: DueReminder, summary: ScanSummary) -> None:
        skip_reason = self._unsendable_reason(item)
        if skip_reason:
            summary.skipped += 1
            logger.warning(
                f"[Scheduler] Skipping reminder {item.reminder_id} for {item.kind.name} "
                f"'{item.entity_title}': {skip_reason} for user {item.contact.user_id}"
            )
            if self._mark_unsendable:
                await self._mark_sent(db, item, summary, skip_reason=skip_reason)
            return

        body = item.email_html if item.channel is Channel.EMAIL else item.text
        try:
            delivered = await self._dispatcher.send(item.channel, item.contact, body, subject=item.subject)
        except Exception as e:
            summary.failed += 1
            logger.error(
                f"[Scheduler] Error sending reminder {item.reminder_id} for {item.kind.name} "
                f"'{item.entity_title}' via {item.channel.value}: {str(e)}",
                exc_info=True
            )
            return

        if not delivered:
            summary.failed += 1
            logger.warning(
                f"[Scheduler] Reminder {item.reminder_id} for {item.kind.name} '{item.entity_title}' "
                f"was not delivered via {item.channel.value}; will retry while in window"
            )
            return

        if await self._mark_sent(db, item, summary):
            summary.sent += 1

    @staticmethod
    def _unsendable_reason(item: DueReminder) -> Optional[str]:
        if item.channel is Channel.EMAIL and not item.contact.email:
            return SKIP_MISSING_EMAIL
        if item.channel is Channel.SMS and not item.contact.phone_number:
            return SKIP_MISSING_PHONE
        return None

    async def _mark_sent(self, db, item: DueReminder, summary: ScanSummary, skip_reason: Optional[str] = None) -> bool:
        marked = await run_in_threadpool(
            crud.save_reminder_sent_state,
            db, item.reminder_id, skip_reason=skip_reason, sent_at=self._clock()
        )
        if marked:
            logger.info(
                f"[Scheduler] Marked reminder {item.reminder_id} for {item.kind.name} "
                f"'{item.entity_title}' as sent" + (f" (skipped: {skip_reason})" if skip_reason else "")
            )
        else:
            summary.vanished += 1
            logger.info(
                f"[Scheduler] Reminder {item.reminder_id} for {item.kind.name} "
                f"'{item.entity_title}' was removed or already sent; nothing to mark"
            )
        return marked
