"""Challenge filtering and ranking engine.

Pure, synchronous functions over immutable snapshots of challenges and their
actions. Nothing here touches the database: the services layer loads rows,
converts them with :func:`board.services.challenge_snapshot` and hands the
snapshots in. Every call returns a new collection.

Pipeline
--------
- **KPIs** -- :func:`compute_kpis` reduces the unfiltered set to counts for
  the summary tiles.
- **Filter** -- :func:`filter_challenges` narrows by search text, entity,
  WENOV owner and a category chip, then always ranks the result.
- **Rank** -- :func:`sort_challenges` orders by alert score (desc) and then
  by earliest open due date (asc).

Every date comparison is calendar-date only. Functions that depend on "today"
take a keyword-only ``today`` so callers can pin the reference day.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from enum import Enum
from typing import Iterable, Sequence

# ---------------------------------------------------------------------------
# Owners
# ---------------------------------------------------------------------------


class Role(str, Enum):
    STARTUP = "STARTUP"
    WENOV = "WENOV"
    CEED = "CEED"


_ROLE_VALUES = {r.value: r for r in Role}


@dataclass(frozen=True)
class Owner:
    """Owner of an action: one of the fixed roles, or a named organization.

    ``raw`` keeps the stored value verbatim. Matching against the roles is
    exact, so ``"startup"`` is an organization named "startup", not a role.
    """
    raw: str

    @classmethod
    def parse(cls, raw: str | Owner) -> Owner:
        if isinstance(raw, Owner):
            return raw
        return cls(raw)

    @property
    def role(self) -> Role | None:
        return _ROLE_VALUES.get(self.raw)

    @property
    def organization(self) -> str | None:
        return None if self.role is not None else self.raw

    @property
    def is_entity(self) -> bool:
        return self.role is None

    def __str__(self) -> str:
        return self.raw


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

ACTIVITY_TYPES = ("call", "meeting", "email", "note")
CONTACT_GROUPS = ("WENOV", "Metier", "Startup", "OpenStart")
CHALLENGE_STATUSES = ("ongoing", "overdue", "standby", "done")
CATEGORIES = ("all", "overdue", "urgent", "entity", "startup", "alerts")
ACTION_STATUSES = ("all", "open", "done", "overdue")

NO_DUE_DATE = date.max


@dataclass(frozen=True)
class Action:
    id: int
    challenge_id: int
    title: str
    owner: Owner
    due_date: date
    is_done: bool = False
    is_urgent: bool = False
    assignee_id: int | None = None
    assignee_name: str | None = None


@dataclass(frozen=True)
class Activity:
    id: int
    challenge_id: int
    type: str
    note: str
    created_at: datetime
    link: str | None = None


@dataclass(frozen=True)
class Contact:
    id: int
    first_name: str
    last_name: str
    function: str = ""
    company: str = ""
    email: str = ""
    phone: str = ""
    group: str = "Metier"


@dataclass(frozen=True)
class Challenge:
    id: int
    name: str
    wenov_responsible: str = ""
    entity: str = ""
    startup_name: str = ""
    status: str = "ongoing"
    actions: tuple[Action, ...] = ()
    activities: tuple[Activity, ...] = ()
    contacts: tuple[Contact, ...] = ()


@dataclass(frozen=True)
class KPIs:
    challenges_count: int = 0
    actions_entity: int = 0
    actions_startup: int = 0
    alerts_count: int = 0


@dataclass(frozen=True)
class Filters:
    active_category: str = "all"
    search: str = ""
    entity: str = ""
    wenov_owner: str = ""


@dataclass(frozen=True)
class NextActions:
    actions: list[Action] = field(default_factory=list)
    remaining: int = 0


# ---------------------------------------------------------------------------
# Action predicates
# ---------------------------------------------------------------------------


def _today(today: date | None) -> date:
    return today if today is not None else date.today()


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def is_overdue(action: Action, *, today: date | None = None) -> bool:
    if action.is_done:
        return False
    return _as_date(action.due_date) < _today(today)


def is_alert(action: Action, *, today: date | None = None) -> bool:
    if action.is_done:
        return False
    return action.is_urgent or is_overdue(action, today=today)


def open_actions(actions: Iterable[Action]) -> list[Action]:
    return [a for a in actions if not a.is_done]


def next_actions(actions: Iterable[Action], limit: int = 2, *, today: date | None = None) -> NextActions:
    """Open actions with alerts first, then by ascending due date."""
    today = _today(today)
    ordered = sorted(
        open_actions(actions),
        key=lambda a: (not is_alert(a, today=today), _as_date(a.due_date)),
    )
    limit = max(0, limit)
    return NextActions(actions=ordered[:limit], remaining=max(0, len(ordered) - limit))


# ---------------------------------------------------------------------------
# Challenge scoring
# ---------------------------------------------------------------------------


def action_alert_weight(action: Action, *, today: date | None = None) -> int:
    if action.is_done:
        return 0
    overdue = is_overdue(action, today=today)
    if action.is_urgent and overdue:
        return 100
    if action.is_urgent:
        return 50
    if overdue:
        return 25
    return 0


def alert_score(challenge: Challenge, *, today: date | None = None) -> int:
    today = _today(today)
    return sum(action_alert_weight(a, today=today) for a in open_actions(challenge.actions))


def earliest_due_date(challenge: Challenge) -> date:
    return min((_as_date(a.due_date) for a in open_actions(challenge.actions)), default=NO_DUE_DATE)


def sort_challenges(challenges: Iterable[Challenge], *, today: date | None = None) -> list[Challenge]:
    today = _today(today)
    return sorted(challenges, key=lambda c: (-alert_score(c, today=today), earliest_due_date(c)))


# ---------------------------------------------------------------------------
# KPIs
# ---------------------------------------------------------------------------


def compute_kpis(challenges: Sequence[Challenge], *, today: date | None = None) -> KPIs:
    today = _today(today)
    actions_entity = actions_startup = alerts_count = 0
    for challenge in challenges:
        for action in open_actions(challenge.actions):
            if action.owner.is_entity:
                actions_entity += 1
            if action.owner.role is Role.STARTUP:
                actions_startup += 1
            if is_alert(action, today=today):
                alerts_count += 1
    return KPIs(
        challenges_count=len(challenges),
        actions_entity=actions_entity,
        actions_startup=actions_startup,
        alerts_count=alerts_count,
    )


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


def _has_open(challenge: Challenge, predicate) -> bool:
    return any(predicate(a) for a in open_actions(challenge.actions))


def matches_category(challenge: Challenge, category: str, *, today: date | None = None) -> bool:
    today = _today(today)
    if category == "overdue":
        return _has_open(challenge, lambda a: is_overdue(a, today=today))
    if category == "urgent":
        return _has_open(challenge, lambda a: a.is_urgent)
    if category == "entity":
        return _has_open(challenge, lambda a: a.owner.is_entity)
    if category == "startup":
        return _has_open(challenge, lambda a: a.owner.role is Role.STARTUP)
    if category == "alerts":
        return _has_open(challenge, lambda a: is_alert(a, today=today))
    return True


def filter_challenges(
    challenges: Iterable[Challenge], filters: Filters, *, today: date | None = None,
) -> list[Challenge]:
    today = _today(today)
    items = list(challenges)
    if filters.search:
        q = filters.search.lower()
        items = [c for c in items if q in c.name.lower() or q in c.startup_name.lower()]
    if filters.entity:
        items = [c for c in items if c.entity == filters.entity]
    if filters.wenov_owner:
        items = [c for c in items if c.wenov_responsible == filters.wenov_owner]
    if filters.active_category != "all":
        items = [c for c in items if matches_category(c, filters.active_category, today=today)]
    return sort_challenges(items, today=today)


# ---------------------------------------------------------------------------
# Cross-challenge actions view
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ActionRow:
    """An action joined with the challenge fields the actions view shows."""
    action: Action
    challenge_name: str
    challenge_entity: str = ""
    startup_name: str = ""


@dataclass(frozen=True)
class ActionFilters:
    status: str = "open"
    entity: str = ""
    startup: str = ""
    challenge: str = ""
    member: int | None = None
    search: str = ""


def _row_matches(row: ActionRow, filters: ActionFilters, today: date) -> bool:
    action = row.action
    if filters.status == "open" and action.is_done:
        return False
    if filters.status == "done" and not action.is_done:
        return False
    if filters.status == "overdue" and not is_overdue(action, today=today):
        return False
    if filters.entity and row.challenge_entity != filters.entity:
        return False
    if filters.startup and row.startup_name != filters.startup:
        return False
    if filters.challenge and row.challenge_name != filters.challenge:
        return False
    if filters.member is not None and action.assignee_id != filters.member:
        return False
    if filters.search:
        q = filters.search.lower()
        if not (q in action.title.lower() or q in row.challenge_name.lower() or q in row.startup_name.lower()):
            return False
    return True


def filter_action_rows(
    rows: Iterable[ActionRow], filters: ActionFilters, *, today: date | None = None,
) -> list[ActionRow]:
    today = _today(today)
    return [r for r in rows if _row_matches(r, filters, today)]


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LastComment:
    note: str
    time_ago: str


@dataclass(frozen=True)
class ContactGroupView:
    key: str
    label: str
    contacts: list[Contact]


@dataclass(frozen=True)
class ActivityTypeInfo:
    icon: str
    label: str


_GROUP_LABELS = {"WENOV": "WENOV", "Metier": "Métier", "Startup": "Startup", "OpenStart": "OpenStart"}

_ACTIVITY_TYPE_INFO = {
    "call": ActivityTypeInfo("📞", "Call"),
    "meeting": ActivityTypeInfo("👥", "Meeting"),
    "email": ActivityTypeInfo("📧", "Email"),
    "note": ActivityTypeInfo("📝", "Note"),
}


def time_ago(moment: datetime, *, now: datetime | None = None) -> str:
    if now is None:
        now = datetime.now(UTC)
        if moment.tzinfo is None:
            now = now.replace(tzinfo=None)
    days = (now - moment) // timedelta(days=1)
    if days <= 0:
        return "Today"
    if days == 1:
        return "1 day ago"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        return f"{days // 7} weeks ago"
    return f"{days // 30} months ago"


def last_comment(activities: Iterable[Activity], *, now: datetime | None = None) -> LastComment | None:
    latest = max(activities, key=lambda a: a.created_at, default=None)
    if latest is None:
        return None
    return LastComment(note=latest.note, time_ago=time_ago(latest.created_at, now=now))


def format_due_date(due: date, *, today: date | None = None) -> str:
    today = _today(today)
    due = _as_date(due)
    if due == today:
        return "Today"
    if due == today + timedelta(days=1):
        return "Tomorrow"
    return f"{due:%b} {due.day}"


def group_contacts(contacts: Iterable[Contact]) -> list[ContactGroupView]:
    contacts = list(contacts)
    return [
        ContactGroupView(key=key, label=_GROUP_LABELS[key], contacts=[c for c in contacts if c.group == key])
        for key in CONTACT_GROUPS
    ]


def activity_type_info(activity_type: str) -> ActivityTypeInfo:
    return _ACTIVITY_TYPE_INFO.get(activity_type, ActivityTypeInfo("📄", "Activity"))
