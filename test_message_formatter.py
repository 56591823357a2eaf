from datetime import datetime, timezone
from types import SimpleNamespace
from zoneinfo import ZoneInfo

from entity_kinds import EVENT, GOAL, TASK
from message_formatter import format_email_html, format_email_subject, format_message

WHEN = datetime(2026, 10, 17, 14, 0, tzinfo=timezone.utc)


def test_task_message():
    task = SimpleNamespace(title="File report", due_date=WHEN)
    reminder = SimpleNamespace(message=None)

    assert format_message(TASK, task, reminder) == (
        'KIMELIA Omnia Reminder: Your Task "File report" is due on Oct 17, 2026 02:00 PM UTC.'
    )


def test_event_and_goal_predicates():
    event = SimpleNamespace(title="Team sync", start_time=WHEN)
    goal = SimpleNamespace(title="Read 12 books", target_date=WHEN)
    reminder = SimpleNamespace(message=None)

    assert 'Your Event "Team sync" is starting at Oct 17, 2026' in format_message(EVENT, event, reminder)
    assert 'Your Goal "Read 12 books" is targeting Oct 17, 2026' in format_message(GOAL, goal, reminder)


def test_note_is_appended():
    task = SimpleNamespace(title="File report", due_date=WHEN)

    message = format_message(TASK, task, SimpleNamespace(message="Bring the receipts"))
    assert message.endswith('UTC. Note: "Bring the receipts"')

    assert "Note:" not in format_message(TASK, task, SimpleNamespace(message=""))


def test_missing_temporal_field_drops_predicate():
    task = SimpleNamespace(title="Someday", due_date=None)

    message = format_message(TASK, task, SimpleNamespace(message="whenever"))
    assert message == 'KIMELIA Omnia Reminder: Your Task "Someday". Note: "whenever"'


def test_localized_to_timezone_and_product_name():
    event = SimpleNamespace(title="Dentist", start_time=WHEN)

    message = format_message(
        EVENT, event, SimpleNamespace(message=None),
        tz=ZoneInfo("America/New_York"), product_name="Acme",
    )
    assert message == 'Acme Reminder: Your Event "Dentist" is starting at Oct 17, 2026 10:00 AM EDT.'


def test_naive_timestamps_are_read_as_utc():
    task = SimpleNamespace(title="File report", due_date=WHEN.replace(tzinfo=None))

    assert "02:00 PM UTC" in format_message(TASK, task, SimpleNamespace(message=None))


def test_email_subject_and_body():
    task = SimpleNamespace(title="File <report>", due_date=WHEN)
    text = format_message(TASK, task, SimpleNamespace(message=None))

    assert format_email_subject(TASK, task) == "KIMELIA Omnia Reminder: File <report>"
    html = format_email_html(TASK, text)
    assert "&lt;report&gt;" in html
    assert html.endswith("<p>You set this reminder for your task.</p>")
