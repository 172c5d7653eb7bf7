"""Shared business logic for the Board API, MCP server and CLI."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from board import engine
from board.errors import NotFoundError, ValidationError
from board.models import Action, Activity, Challenge, Contact, User

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared field tuples
# ---------------------------------------------------------------------------

CHALLENGE_FIELDS = ("name", "wenov_responsible", "entity", "startup_name", "status")

ACTION_FIELDS = ("title", "owner", "due_date", "is_done", "is_urgent")

ACTIVITY_FIELDS = ("type", "note", "link")

CONTACT_FIELDS = ("first_name", "last_name", "function", "company", "email", "phone", "group")

# ---------------------------------------------------------------------------
# Lookup and mutation helpers
# ---------------------------------------------------------------------------


def get_entity(session: Session, model, entity_id: int):
    return session.execute(select(model).where(model.id == entity_id)).scalars().first()


def get_or_raise(session: Session, model, entity_id: int, label: str = "Entity"):
    obj = get_entity(session, model, entity_id)
    if obj is None:
        raise NotFoundError(label, entity_id)
    return obj


def apply_updates(obj, updates: dict[str, Any], fields: tuple[str, ...]) -> None:
    """Apply non-None values from updates dict to an ORM object."""
    for field in fields:
        val = updates.get(field)
        if val is not None:
            setattr(obj, field, val)


def _check_choice(value: str | None, choices: tuple[str, ...], label: str) -> None:
    if value is not None and value not in choices:
        raise ValidationError(f"Invalid {label} {value!r} (expected one of: {', '.join(choices)})")


def _required_text(value: str, label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{label} is required")
    return value


def _clean_required(updates: dict[str, Any], fields: dict[str, str]) -> dict[str, Any]:
    """Strip present text fields and reject blanks; absent or None fields stay untouched."""
    cleaned = dict(updates)
    for field, label in fields.items():
        if cleaned.get(field) is not None:
            cleaned[field] = _required_text(cleaned[field], label)
    return cleaned


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


def action_snapshot(action: Action) -> engine.Action:
    return engine.Action(
        id=action.id,
        challenge_id=action.challenge_id,
        title=action.title,
        owner=engine.Owner.parse(action.owner),
        due_date=action.due_date,
        is_done=bool(action.is_done),
        is_urgent=bool(action.is_urgent),
        assignee_id=action.assignee_id,
        assignee_name=action.assignee.name if action.assignee is not None else None,
    )


def activity_snapshot(activity: Activity) -> engine.Activity:
    return engine.Activity(
        id=activity.id, challenge_id=activity.challenge_id, type=activity.type,
        note=activity.note, created_at=activity.created_at, link=activity.link or None,
    )


def contact_snapshot(contact: Contact) -> engine.Contact:
    return engine.Contact(
        id=contact.id, first_name=contact.first_name, last_name=contact.last_name,
        function=contact.function, company=contact.company, email=contact.email,
        phone=contact.phone, group=contact.group,
    )


def challenge_snapshot(challenge: Challenge) -> engine.Challenge:
    return engine.Challenge(
        id=challenge.id,
        name=challenge.name,
        wenov_responsible=challenge.wenov_responsible,
        entity=challenge.entity,
        startup_name=challenge.startup_name,
        status=challenge.status,
        actions=tuple(action_snapshot(a) for a in challenge.actions),
        activities=tuple(activity_snapshot(a) for a in challenge.activities),
        contacts=tuple(contact_snapshot(c) for c in challenge.contacts),
    )


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def action_dict(action: engine.Action, *, today: date | None = None) -> dict:
    return {
        "id": action.id, "challenge_id": action.challenge_id, "title": action.title,
        "owner": action.owner.raw, "owner_is_entity": action.owner.is_entity,
        "owner_organization": action.owner.organization,
        "due_date": action.due_date.isoformat(),
        "due_label": engine.format_due_date(action.due_date, today=today),
        "is_done": action.is_done, "is_urgent": action.is_urgent,
        "is_overdue": engine.is_overdue(action, today=today),
        "is_alert": engine.is_alert(action, today=today),
        "assignee_id": action.assignee_id, "assignee_name": action.assignee_name,
    }


def activity_dict(activity: engine.Activity) -> dict:
    info = engine.activity_type_info(activity.type)
    return {
        "id": activity.id, "challenge_id": activity.challenge_id, "type": activity.type,
        "note": activity.note, "link": activity.link,
        "created_at": activity.created_at.isoformat() if activity.created_at else None,
        "icon": info.icon, "type_label": info.label,
    }


def contact_dict(contact: engine.Contact) -> dict:
    return {
        "id": contact.id, "first_name": contact.first_name, "last_name": contact.last_name,
        "function": contact.function, "company": contact.company, "email": contact.email,
        "phone": contact.phone, "group": contact.group,
    }


def kpis_dict(kpis: engine.KPIs) -> dict:
    return {
        "challenges_count": kpis.challenges_count, "actions_entity": kpis.actions_entity,
        "actions_startup": kpis.actions_startup, "alerts_count": kpis.alerts_count,
    }


def challenge_summary(challenge: engine.Challenge, *, today: date | None = None) -> dict:
    upcoming = engine.next_actions(challenge.actions, today=today)
    comment = engine.last_comment(challenge.activities)
    return {
        "id": challenge.id, "name": challenge.name,
        "wenov_responsible": challenge.wenov_responsible, "entity": challenge.entity,
        "startup_name": challenge.startup_name, "status": challenge.status,
        "alert_score": engine.alert_score(challenge, today=today),
        "open_actions": len(engine.open_actions(challenge.actions)),
        "next_actions": [action_dict(a, today=today) for a in upcoming.actions],
        "remaining_actions": upcoming.remaining,
        "last_comment": {"note": comment.note, "time_ago": comment.time_ago} if comment else None,
    }


def challenge_detail(challenge: engine.Challenge, *, today: date | None = None) -> dict:
    base = challenge_summary(challenge, today=today)
    base["actions"] = [action_dict(a, today=today) for a in challenge.actions]
    base["activities"] = [
        activity_dict(a) for a in sorted(challenge.activities, key=lambda a: a.created_at, reverse=True)
    ]
    base["contacts"] = [contact_dict(c) for c in challenge.contacts]
    base["contact_groups"] = [
        {"key": g.key, "label": g.label, "contacts": [contact_dict(c) for c in g.contacts]}
        for g in engine.group_contacts(challenge.contacts)
    ]
    return base


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


def _challenge_query():
    return select(Challenge).options(
        selectinload(Challenge.actions).selectinload(Action.assignee),
        selectinload(Challenge.activities),
        selectinload(Challenge.contacts),
    ).execution_options(populate_existing=True)


def list_challenges(session: Session) -> list[engine.Challenge]:
    rows = session.execute(
        _challenge_query().order_by(Challenge.sort_order.asc(), Challenge.created_at.desc(), Challenge.id.desc())
    ).scalars().all()
    return [challenge_snapshot(c) for c in rows]


def get_challenge(session: Session, challenge_id: int) -> engine.Challenge:
    row = session.execute(_challenge_query().where(Challenge.id == challenge_id)).scalars().first()
    if row is None:
        raise NotFoundError("Challenge", challenge_id)
    return challenge_snapshot(row)


def kpis(session: Session, *, today: date | None = None) -> dict:
    return kpis_dict(engine.compute_kpis(list_challenges(session), today=today))


def dashboard(session: Session, filters: engine.Filters, *, today: date | None = None) -> dict:
    """KPIs over every challenge plus the filtered, ranked list."""
    _check_choice(filters.active_category, engine.CATEGORIES, "category")
    challenges = list_challenges(session)
    ranked = engine.filter_challenges(challenges, filters, today=today)
    return {
        "kpis": kpis_dict(engine.compute_kpis(challenges, today=today)),
        "items": [challenge_summary(c, today=today) for c in ranked],
        "total": len(challenges),
        "shown": len(ranked),
    }


def create_challenge(
    session: Session, *, name: str, wenov_responsible: str = "", entity: str = "",
    startup_name: str = "", status: str = "ongoing",
) -> Challenge:
    name = _required_text(name, "Challenge name")
    _check_choice(status, engine.CHALLENGE_STATUSES, "status")
    challenge = Challenge(
        name=name, wenov_responsible=wenov_responsible or "", entity=entity or "",
        startup_name=startup_name or "", status=status or "ongoing",
    )
    session.add(challenge)
    session.commit()
    session.refresh(challenge)
    log.info("Created challenge %s (%s)", challenge.id, challenge.name)
    return challenge


def update_challenge(session: Session, challenge_id: int, updates: dict[str, Any]) -> Challenge:
    challenge = get_or_raise(session, Challenge, challenge_id, "Challenge")
    _check_choice(updates.get("status"), engine.CHALLENGE_STATUSES, "status")
    updates = _clean_required(updates, {"name": "Challenge name"})
    apply_updates(challenge, updates, CHALLENGE_FIELDS)
    session.commit()
    return challenge


def delete_challenge(session: Session, challenge_id: int) -> None:
    challenge = get_or_raise(session, Challenge, challenge_id, "Challenge")
    session.delete(challenge)
    session.commit()
    log.info("Deleted challenge %s with its actions, activities and contacts", challenge_id)


def reorder_challenges(session: Session, ordered_ids: list[int]) -> None:
    rows = {c.id: c for c in session.execute(
        select(Challenge).where(Challenge.id.in_(ordered_ids))
    ).scalars()}
    missing = [i for i in ordered_ids if i not in rows]
    if missing:
        raise NotFoundError("Challenge", missing[0])
    for index, challenge_id in enumerate(ordered_ids):
        rows[challenge_id].sort_order = index
    session.commit()


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


def _check_assignee(session: Session, assignee_id: int | None) -> None:
    if assignee_id is not None:
        get_or_raise(session, User, assignee_id, "User")


def create_action(
    session: Session, challenge_id: int, *, title: str, owner: str, due_date: date,
    is_urgent: bool = False, assignee_id: int | None = None,
) -> Action:
    get_or_raise(session, Challenge, challenge_id, "Challenge")
    title = _required_text(title, "Action title")
    owner = _required_text(owner, "Action owner")
    _check_assignee(session, assignee_id)
    action = Action(
        challenge_id=challenge_id, title=title, owner=owner, due_date=due_date,
        is_urgent=bool(is_urgent), is_done=False, assignee_id=assignee_id,
    )
    session.add(action)
    session.commit()
    session.refresh(action)
    return action


def update_action(session: Session, action_id: int, updates: dict[str, Any]) -> Action:
    """Partial update; a present ``assignee_id`` of ``None`` clears the assignee."""
    action = get_or_raise(session, Action, action_id, "Action")
    updates = _clean_required(updates, {"title": "Action title", "owner": "Action owner"})
    if "assignee_id" in updates:
        _check_assignee(session, updates["assignee_id"])
    apply_updates(action, updates, ACTION_FIELDS)
    if "assignee_id" in updates:
        action.assignee_id = updates["assignee_id"]
    session.commit()
    session.refresh(action)
    return action


def delete_action(session: Session, action_id: int) -> None:
    action = get_or_raise(session, Action, action_id, "Action")
    session.delete(action)
    session.commit()


def next_actions(session: Session, challenge_id: int, limit: int = 2, *, today: date | None = None) -> dict:
    challenge = get_challenge(session, challenge_id)
    upcoming = engine.next_actions(challenge.actions, limit, today=today)
    return {
        "actions": [action_dict(a, today=today) for a in upcoming.actions],
        "remaining": upcoming.remaining,
    }


def list_action_rows(session: Session) -> list[engine.ActionRow]:
    rows = session.execute(
        select(Action).options(selectinload(Action.challenge), selectinload(Action.assignee))
        .order_by(Action.due_date.asc(), Action.id.asc())
    ).scalars().all()
    return [
        engine.ActionRow(
            action=action_snapshot(a), challenge_name=a.challenge.name,
            challenge_entity=a.challenge.entity, startup_name=a.challenge.startup_name,
        )
        for a in rows
    ]


def actions_view(session: Session, filters: engine.ActionFilters, *, today: date | None = None) -> dict:
    """Every action across challenges, filtered for the actions page."""
    _check_choice(filters.status, engine.ACTION_STATUSES, "status")
    rows = list_action_rows(session)
    shown = engine.filter_action_rows(rows, filters, today=today)
    return {
        "items": [
            {**action_dict(r.action, today=today), "challenge_name": r.challenge_name,
             "challenge_entity": r.challenge_entity, "startup_name": r.startup_name}
            for r in shown
        ],
        "open_count": sum(1 for r in rows if not r.action.is_done),
        "overdue_count": sum(1 for r in rows if engine.is_overdue(r.action, today=today)),
        "startups": sorted({r.startup_name for r in rows if r.startup_name}),
        "challenges": sorted({r.challenge_name for r in rows}),
    }


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------


def create_activity(
    session: Session, challenge_id: int, *, type: str, note: str, link: str | None = None,
) -> Activity:
    get_or_raise(session, Challenge, challenge_id, "Challenge")
    _check_choice(type, engine.ACTIVITY_TYPES, "activity type")
    activity = Activity(challenge_id=challenge_id, type=type, note=note, link=link or None)
    session.add(activity)
    session.commit()
    session.refresh(activity)
    return activity


def update_activity(session: Session, activity_id: int, updates: dict[str, Any]) -> Activity:
    activity = get_or_raise(session, Activity, activity_id, "Activity")
    _check_choice(updates.get("type"), engine.ACTIVITY_TYPES, "activity type")
    apply_updates(activity, updates, ACTIVITY_FIELDS)
    session.commit()
    return activity


def delete_activity(session: Session, activity_id: int) -> None:
    activity = get_or_raise(session, Activity, activity_id, "Activity")
    session.delete(activity)
    session.commit()


# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------


def create_contact(session: Session, challenge_id: int, **fields: Any) -> Contact:
    get_or_raise(session, Challenge, challenge_id, "Challenge")
    _check_choice(fields.get("group"), engine.CONTACT_GROUPS, "contact group")
    contact = Contact(challenge_id=challenge_id)
    for field in CONTACT_FIELDS:
        setattr(contact, field, fields.get(field) or ("Metier" if field == "group" else ""))
    session.add(contact)
    session.commit()
    session.refresh(contact)
    return contact


def update_contact(session: Session, contact_id: int, updates: dict[str, Any]) -> Contact:
    contact = get_or_raise(session, Contact, contact_id, "Contact")
    _check_choice(updates.get("group"), engine.CONTACT_GROUPS, "contact group")
    apply_updates(contact, updates, CONTACT_FIELDS)
    session.commit()
    return contact


def delete_contact(session: Session, contact_id: int) -> None:
    contact = get_or_raise(session, Contact, contact_id, "Contact")
    session.delete(contact)
    session.commit()


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def _distinct_non_empty(values: Iterable[str | None]) -> list[str]:
    return sorted({v for v in values if v})


def list_entities(session: Session) -> list[str]:
    return _distinct_non_empty(session.execute(select(Challenge.entity).distinct()).scalars())


def list_wenov_owners(session: Session) -> list[str]:
    return _distinct_non_empty(session.execute(select(Challenge.wenov_responsible).distinct()).scalars())


def list_members(session: Session) -> list[dict]:
    users = session.execute(select(User).order_by(User.name)).scalars().all()
    return [{"id": u.id, "name": u.name, "entity": u.entity} for u in users]
