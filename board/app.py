from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Generator

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from board import auth, services
from board.config import get_settings
from board.db import get_session, init_db
from board.engine import ActionFilters, Filters
from board.errors import BoardError
from board.models import User
from board.schemas import (
    ActionCreate,
    ActionOut,
    ActionsViewOut,
    ActionUpdate,
    ActivityCreate,
    ActivityOut,
    ActivityUpdate,
    ChallengeCreate,
    ChallengeDetail,
    ChallengeUpdate,
    ContactCreate,
    ContactOut,
    ContactUpdate,
    DashboardOut,
    KPIsOut,
    LoginRequest,
    MemberOut,
    NextActionsOut,
    ProfileUpdate,
    ReorderRequest,
    UserCreate,
    UserOut,
    UserUpdate,
)

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="Board",
    version="0.1.0",
    description=(
        "Challenge-tracking dashboard API. Challenges own actions, activities and contacts; "
        "the dashboard ranks challenges by alert score and nearest open due date. "
        "All endpoints except /api/auth/* require a session cookie."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Login, logout and current user."},
        {"name": "Dashboard", "description": "KPIs and the filtered, ranked challenge list."},
        {"name": "Challenges", "description": "Create, update, reorder and delete challenges."},
        {"name": "Actions", "description": "Tasks with owner, due date, done and urgent flags."},
        {"name": "Activities", "description": "Timeline of calls, meetings, emails and notes."},
        {"name": "Contacts", "description": "People attached to a challenge, grouped by organization."},
        {"name": "Users", "description": "Admin-only user management."},
        {"name": "Profile", "description": "The signed-in user's own account."},
    ],
)


@app.exception_handler(BoardError)
async def board_error_handler(request: Request, exc: BoardError):
    return JSONResponse({"detail": str(exc)}, status_code=exc.status_code)


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def db_session() -> Generator[Session, None, None]:
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def session_token(request: Request) -> str | None:
    return request.cookies.get(get_settings().session_cookie)


def current_user(token: str | None = Depends(session_token), session: Session = Depends(db_session)) -> User:
    user = auth.user_for_token(session, token)
    if user is None:
        raise HTTPException(401, "Not authenticated")
    return user


def admin_user(user: User = Depends(current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(403, "Admin access required")
    return user


def _challenge_detail(session: Session, challenge_id: int) -> dict:
    return services.challenge_detail(services.get_challenge(session, challenge_id))


def _action_out(action) -> dict:
    return services.action_dict(services.action_snapshot(action))


# ---------------------------------------------------------------------------
# Routes: Root
# ---------------------------------------------------------------------------


@app.get("/", include_in_schema=False)
async def root():
    return RedirectResponse("/docs")


# ---------------------------------------------------------------------------
# Routes: Auth
# ---------------------------------------------------------------------------


@app.post("/api/auth/login", response_model=UserOut, tags=["Auth"], summary="Sign in and set the session cookie")
async def login(body: LoginRequest, response: Response, session: Session = Depends(db_session)):
    user, token = auth.login(session, body.email, body.password)
    settings = get_settings()
    response.set_cookie(
        settings.session_cookie, token, max_age=settings.session_days * 24 * 3600,
        httponly=True, samesite="lax", secure=settings.cookie_secure,
    )
    return auth.user_dict(user)


@app.post("/api/auth/logout", tags=["Auth"], summary="End the current session")
async def logout(response: Response, token: str | None = Depends(session_token),
                 session: Session = Depends(db_session)):
    auth.logout(session, token)
    response.delete_cookie(get_settings().session_cookie)
    return {"ok": True}


@app.get("/api/auth/me", response_model=UserOut, tags=["Auth"], summary="Get the signed-in user")
async def me(user: User = Depends(current_user)):
    return auth.user_dict(user)


# ---------------------------------------------------------------------------
# Routes: Dashboard
# ---------------------------------------------------------------------------


@app.get("/api/dashboard", response_model=DashboardOut, tags=["Dashboard"],
         summary="KPIs plus challenges filtered and ranked by urgency")
async def get_dashboard(
    category: str = Query("all", description="all, overdue, urgent, entity, startup, alerts"),
    search: str = Query("", description="Case-insensitive match on challenge or startup name"),
    entity: str = Query("", description="Exact entity name"),
    wenov_owner: str = Query("", description="Exact WENOV responsible"),
    session: Session = Depends(db_session),
    user: User = Depends(current_user),
):
    filters = Filters(active_category=category, search=search, entity=entity, wenov_owner=wenov_owner)
    return services.dashboard(session, filters)


@app.get("/api/kpis", response_model=KPIsOut, tags=["Dashboard"], summary="KPI counts over all challenges")
async def get_kpis(session: Session = Depends(db_session), user: User = Depends(current_user)):
    return services.kpis(session)


@app.get("/api/entities", response_model=list[str], tags=["Dashboard"], summary="Distinct challenge entities")
async def get_entities(session: Session = Depends(db_session), user: User = Depends(current_user)):
    return services.list_entities(session)


@app.get("/api/wenov-owners", response_model=list[str], tags=["Dashboard"],
         summary="Distinct WENOV responsibles")
async def get_wenov_owners(session: Session = Depends(db_session), user: User = Depends(current_user)):
    return services.list_wenov_owners(session)


@app.get("/api/members", response_model=list[MemberOut], tags=["Dashboard"], summary="Users actions can be assigned to")
async def get_members(session: Session = Depends(db_session), user: User = Depends(current_user)):
    return services.list_members(session)


# ---------------------------------------------------------------------------
# Routes: Challenges (reorder before parameterized to avoid route shadowing)
# ---------------------------------------------------------------------------


@app.get("/api/challenges", response_model=list[ChallengeDetail], tags=["Challenges"],
         summary="List every challenge in board order")
async def list_challenges(session: Session = Depends(db_session), user: User = Depends(current_user)):
    return [services.challenge_detail(c) for c in services.list_challenges(session)]


@app.post("/api/challenges", response_model=ChallengeDetail, status_code=201, tags=["Challenges"],
          summary="Create a challenge")
async def create_challenge(body: ChallengeCreate, session: Session = Depends(db_session),
                           user: User = Depends(current_user)):
    challenge = services.create_challenge(session, **body.model_dump())
    return _challenge_detail(session, challenge.id)


@app.post("/api/challenges/reorder", tags=["Challenges"], summary="Persist a manual challenge order")
async def reorder_challenges(body: ReorderRequest, session: Session = Depends(db_session),
                             user: User = Depends(current_user)):
    services.reorder_challenges(session, body.ordered_ids)
    return {"ok": True}


@app.get("/api/challenges/{challenge_id}", response_model=ChallengeDetail, tags=["Challenges"],
         summary="Challenge with actions, activities and grouped contacts")
async def get_challenge(challenge_id: int, session: Session = Depends(db_session),
                        user: User = Depends(current_user)):
    return _challenge_detail(session, challenge_id)


@app.put("/api/challenges/{challenge_id}", response_model=ChallengeDetail, tags=["Challenges"],
         summary="Update challenge fields (partial update, null fields ignored)")
async def update_challenge(challenge_id: int, body: ChallengeUpdate, session: Session = Depends(db_session),
                           user: User = Depends(current_user)):
    services.update_challenge(session, challenge_id, body.model_dump())
    return _challenge_detail(session, challenge_id)


@app.delete("/api/challenges/{challenge_id}", tags=["Challenges"],
            summary="Delete a challenge with its actions, activities and contacts")
async def delete_challenge(challenge_id: int, session: Session = Depends(db_session),
                           user: User = Depends(current_user)):
    services.delete_challenge(session, challenge_id)
    return {"ok": True}


@app.get("/api/challenges/{challenge_id}/next-actions", response_model=NextActionsOut, tags=["Challenges"],
         summary="Upcoming open actions, alerts first")
async def get_next_actions(challenge_id: int, limit: int = Query(2, ge=0, le=100),
                           session: Session = Depends(db_session), user: User = Depends(current_user)):
    return services.next_actions(session, challenge_id, limit)


# ---------------------------------------------------------------------------
# Routes: Actions
# ---------------------------------------------------------------------------


@app.get("/api/actions", response_model=ActionsViewOut, tags=["Actions"],
         summary="All actions across challenges with filters")
async def list_actions(
    status: str = Query("open", description="all, open, done, overdue"),
    entity: str = Query(""),
    startup: str = Query(""),
    challenge: str = Query("", description="Exact challenge name"),
    member: int | None = Query(None, description="Assignee user id"),
    search: str = Query("", description="Matches action title, challenge or startup name"),
    session: Session = Depends(db_session),
    user: User = Depends(current_user),
):
    filters = ActionFilters(
        status=status, entity=entity, startup=startup, challenge=challenge, member=member, search=search,
    )
    return services.actions_view(session, filters)


@app.post("/api/challenges/{challenge_id}/actions", response_model=ActionOut, status_code=201,
          tags=["Actions"], summary="Add an action to a challenge")
async def create_action(challenge_id: int, body: ActionCreate, session: Session = Depends(db_session),
                        user: User = Depends(current_user)):
    return _action_out(services.create_action(session, challenge_id, **body.model_dump()))


@app.put("/api/actions/{action_id}", response_model=ActionOut, tags=["Actions"],
         summary="Update an action (toggle done/urgent, reschedule, assign)")
async def update_action(action_id: int, body: ActionUpdate, session: Session = Depends(db_session),
                        user: User = Depends(current_user)):
    return _action_out(services.update_action(session, action_id, body.model_dump(exclude_unset=True)))


@app.delete("/api/actions/{action_id}", tags=["Actions"], summary="Delete an action")
async def delete_action(action_id: int, session: Session = Depends(db_session),
                        user: User = Depends(current_user)):
    services.delete_action(session, action_id)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Routes: Activities
# ---------------------------------------------------------------------------


@app.post("/api/challenges/{challenge_id}/activities", response_model=ActivityOut, status_code=201,
          tags=["Activities"], summary="Log an activity on a challenge")
async def create_activity(challenge_id: int, body: ActivityCreate, session: Session = Depends(db_session),
                          user: User = Depends(current_user)):
    activity = services.create_activity(session, challenge_id, **body.model_dump())
    return services.activity_dict(services.activity_snapshot(activity))


@app.put("/api/activities/{activity_id}", response_model=ActivityOut, tags=["Activities"],
         summary="Edit an activity")
async def update_activity(activity_id: int, body: ActivityUpdate, session: Session = Depends(db_session),
                          user: User = Depends(current_user)):
    activity = services.update_activity(session, activity_id, body.model_dump())
    return services.activity_dict(services.activity_snapshot(activity))


@app.delete("/api/activities/{activity_id}", tags=["Activities"], summary="Delete an activity")
async def delete_activity(activity_id: int, session: Session = Depends(db_session),
                          user: User = Depends(current_user)):
    services.delete_activity(session, activity_id)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Routes: Contacts
# ---------------------------------------------------------------------------


@app.post("/api/challenges/{challenge_id}/contacts", response_model=ContactOut, status_code=201,
          tags=["Contacts"], summary="Add a contact to a challenge")
async def create_contact(challenge_id: int, body: ContactCreate, session: Session = Depends(db_session),
                         user: User = Depends(current_user)):
    contact = services.create_contact(session, challenge_id, **body.model_dump())
    return services.contact_dict(services.contact_snapshot(contact))


@app.put("/api/contacts/{contact_id}", response_model=ContactOut, tags=["Contacts"], summary="Edit a contact")
async def update_contact(contact_id: int, body: ContactUpdate, session: Session = Depends(db_session),
                         user: User = Depends(current_user)):
    contact = services.update_contact(session, contact_id, body.model_dump())
    return services.contact_dict(services.contact_snapshot(contact))


@app.delete("/api/contacts/{contact_id}", tags=["Contacts"], summary="Delete a contact")
async def delete_contact(contact_id: int, session: Session = Depends(db_session),
                         user: User = Depends(current_user)):
    services.delete_contact(session, contact_id)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Routes: Users (admin)
# ---------------------------------------------------------------------------


@app.get("/api/users", response_model=list[UserOut], tags=["Users"], summary="List users, newest first")
async def list_users(session: Session = Depends(db_session), admin: User = Depends(admin_user)):
    return [auth.user_dict(u) for u in auth.list_users(session, admin)]


@app.post("/api/users", response_model=UserOut, status_code=201, tags=["Users"], summary="Create a user")
async def create_user(body: UserCreate, session: Session = Depends(db_session), admin: User = Depends(admin_user)):
    return auth.user_dict(auth.create_user(session, admin, **body.model_dump()))


@app.put("/api/users/{user_id}", response_model=UserOut, tags=["Users"], summary="Update name, entity or admin flag")
async def update_user(user_id: int, body: UserUpdate, session: Session = Depends(db_session),
                      admin: User = Depends(admin_user)):
    return auth.user_dict(auth.update_user(session, admin, user_id, body.model_dump()))


@app.delete("/api/users/{user_id}", tags=["Users"], summary="Delete a user (not yourself)")
async def delete_user(user_id: int, session: Session = Depends(db_session), admin: User = Depends(admin_user)):
    auth.delete_user(session, admin, user_id)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Routes: Profile
# ---------------------------------------------------------------------------


@app.get("/api/profile", response_model=UserOut, tags=["Profile"], summary="Get your own account")
async def get_profile(user: User = Depends(current_user)):
    return auth.user_dict(user)


@app.put("/api/profile", response_model=UserOut, tags=["Profile"], summary="Change your name or password")
async def update_profile(body: ProfileUpdate, session: Session = Depends(db_session),
                         user: User = Depends(current_user)):
    return auth.user_dict(auth.update_profile(session, user, **body.model_dump()))


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    settings = get_settings()
    uvicorn.run("board.app:app", host=settings.host, port=settings.port, reload=True)


if __name__ == "__main__":
    main()
