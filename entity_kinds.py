"""Entity kinds that carry reminders.

Each kind is described once by a small adapter instead of branching on
field names at runtime: which model holds it, how to read its title and its
temporal anchor, and the phrase used in reminder messages.
"""

from dataclasses import dataclass
from datetime import datetime
from operator import attrgetter
from typing import Any, Callable, Dict, Optional, Tuple, Type

from database import Event, Goal, Task


@dataclass(frozen=True)
class EntityKind:
    """Adapter describing one reminder-carrying entity kind."""

    name: str
    model: Type
    temporal_accessor: Callable[[Any], Optional[datetime]]
    title_accessor: Callable[[Any], str]
    predicate_label: str

    @property
    def slug(self) -> str:
        """Lower-case plural used in routes and logs (tasks, events, goals)."""
        return f"{self.name.lower()}s"


TASK = EntityKind(
    name="Task",
    model=Task,
    temporal_accessor=attrgetter("due_date"),
    title_accessor=attrgetter("title"),
    predicate_label="due on",
)

EVENT = EntityKind(
    name="Event",
    model=Event,
    temporal_accessor=attrgetter("start_time"),
    title_accessor=attrgetter("title"),
    predicate_label="starting at",
)

GOAL = EntityKind(
    name="Goal",
    model=Goal,
    temporal_accessor=attrgetter("target_date"),
    title_accessor=attrgetter("title"),
    predicate_label="targeting",
)

ENTITY_KINDS: Tuple[EntityKind, ...] = (TASK, EVENT, GOAL)

KINDS_BY_SLUG: Dict[str, EntityKind] = {kind.slug: kind for kind in ENTITY_KINDS}
