"""Reminder message formatting.

Pure functions: the output depends only on the arguments. Dates are shown
in the timezone passed by the caller (UTC when omitted).
"""

import html
from datetime import datetime, timezone, tzinfo
from typing import Optional

from entity_kinds import EntityKind
from time_utils import as_utc

DEFAULT_PRODUCT_NAME = "KIMELIA Omnia"
DATE_FORMAT = "%b %d, %Y %I:%M %p %Z"


def localize(value: datetime, tz: Optional[tzinfo] = None) -> str:
    """Render a stored timestamp for humans in tz."""
    return as_utc(value).astimezone(tz or timezone.utc).strftime(DATE_FORMAT)


def format_message(
    kind: EntityKind,
    entity,
    reminder,
    tz: Optional[tzinfo] = None,
    product_name: str = DEFAULT_PRODUCT_NAME
) -> str:
    """Build the notification text for one reminder of one entity.

    Example:
        KIMELIA Omnia Reminder: Your Task "File report" is due on
        Oct 17, 2026 02:00 PM UTC. Note: "Bring the receipts"

    If the entity has no value for its temporal field the predicate clause is
    left out and the rest of the message is still produced.
    """
    message = f'{product_name} Reminder: Your {kind.name} "{kind.title_accessor(entity)}"'

    anchor = kind.temporal_accessor(entity)
    if anchor is not None:
        message += f" is {kind.predicate_label} {localize(anchor, tz)}."
    else:
        message += "."

    note = getattr(reminder, 'message', None)
    if note:
        message += f' Note: "{note}"'

    return message


def format_email_subject(kind: EntityKind, entity, product_name: str = DEFAULT_PRODUCT_NAME) -> str:
    return f"{product_name} Reminder: {kind.title_accessor(entity)}"


def format_email_html(kind: EntityKind, text: str) -> str:
    """Wrap an already formatted message into the HTML email body."""
    return (
        f"<p>{html.escape(text)}</p>"
        f"<p>You set this reminder for your {kind.name.lower()}.</p>"
    )
