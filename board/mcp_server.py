from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, contextmanager

from mcp.server.fastmcp import FastMCP

from board import services
from board.db import get_session, init_db
from board.engine import ActionFilters, Filters
from board.errors import BoardError

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def board_lifespan(server: FastMCP) -> AsyncIterator[None]:
    init_db()
    yield


mcp = FastMCP(
    "Board",
    instructions=(
        "Board tracks startup challenges with their actions, activities and contacts. "
        "Start with get_kpis() for an overview, then list_challenges() to browse the "
        "ranked list, then get_challenge(id) for full details."
    ),
    lifespan=board_lifespan,
    json_response=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextmanager
def _session():
    session = get_session()
    try:
        yield session
    finally:
        session.close()


def _error(exc: BoardError) -> dict:
    return {"error": str(exc)}


# ---------------------------------------------------------------------------
# Resource
# ---------------------------------------------------------------------------


@mcp.resource("board://overview")
def board_overview() -> str:
    """Overview of Board: data model, ranking rules and filter categories."""
    return json.dumps({
        "system": "Board: challenge-tracking dashboard",
        "data_model": {
            "challenge": "A startup engagement with a WENOV responsible, an entity and a startup.",
            "action": "A task with an owner (STARTUP, WENOV, CEED or an entity name), due date, done and urgent flags.",
            "activity": "A call, meeting, email or note on a challenge's timeline.",
            "contact": "A person attached to a challenge, grouped as WENOV, Metier, Startup or OpenStart.",
        },
        "ranking": [
            "Alert score, highest first: per open action 100 if urgent and overdue, 50 if urgent, 25 if overdue.",
            "Then earliest open due date; challenges without open actions come last.",
        ],
        "categories": {
            "all": "No category filter.",
            "overdue": "At least one open action past its due date.",
            "urgent": "At least one open urgent action.",
            "entity": "At least one open action owned by an entity (not STARTUP, WENOV or CEED).",
            "startup": "At least one open action owned by STARTUP.",
            "alerts": "At least one open action that is urgent or overdue.",
        },
    }, indent=2)


# ---------------------------------------------------------------------------
# Tools: Dashboard
# ---------------------------------------------------------------------------


@mcp.tool()
def get_kpis() -> dict:
    """Counts over every challenge: challenges, open entity actions, open startup actions, alerts."""
    with _session() as session:
        return services.kpis(session)


@mcp.tool()
def list_challenges(
    category: str = "all", search: str = "", entity: str = "", wenov_owner: str = "", limit: int = 50,
) -> list[dict] | dict:
    """List challenges ranked by urgency.

    Args:
        category: One of all, overdue, urgent, entity, startup, alerts.
        search: Case-insensitive match on challenge name or startup name.
        entity: Exact entity name (see list_entities()).
        wenov_owner: Exact WENOV responsible.
        limit: Max results (default 50, max 500).
    """
    filters = Filters(active_category=category, search=search, entity=entity, wenov_owner=wenov_owner)
    with _session() as session:
        try:
            items = services.dashboard(session, filters)["items"]
        except BoardError as exc:
            return _error(exc)
        return items[:max(0, min(limit, 500))]


@mcp.tool()
def get_challenge(challenge_id: int) -> dict:
    """Get a challenge with all its actions, activities and grouped contacts."""
    with _session() as session:
        try:
            return services.challenge_detail(services.get_challenge(session, challenge_id))
        except BoardError as exc:
            return _error(exc)


@mcp.tool()
def list_entities() -> dict:
    """Distinct entity names and WENOV responsibles used by challenges."""
    with _session() as session:
        return {
            "entities": services.list_entities(session),
            "wenov_owners": services.list_wenov_owners(session),
        }


# ---------------------------------------------------------------------------
# Tools: Actions & Activities
# ---------------------------------------------------------------------------


@mcp.tool()
def list_actions(
    status: str = "open", entity: str = "", startup: str = "", challenge: str = "",
    member: int | None = None, search: str = "",
) -> dict:
    """List actions across all challenges.

    Args:
        status: One of all, open, done, overdue.
        entity: Exact challenge entity.
        startup: Exact startup name.
        challenge: Exact challenge name.
        member: Assignee user id.
        search: Matches action title, challenge name or startup name.
    """
    filters = ActionFilters(
        status=status, entity=entity, startup=startup, challenge=challenge, member=member, search=search,
    )
    with _session() as session:
        try:
            return services.actions_view(session, filters)
        except BoardError as exc:
            return _error(exc)


@mcp.tool()
def log_activity(challenge_id: int, type: str, note: str, link: str | None = None) -> dict:
    """Add a call, meeting, email or note to a challenge's timeline."""
    with _session() as session:
        try:
            activity = services.create_activity(session, challenge_id, type=type, note=note, link=link)
        except BoardError as exc:
            return _error(exc)
        return services.activity_dict(services.activity_snapshot(activity))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    mcp.run()


if __name__ == "__main__":
    main()
