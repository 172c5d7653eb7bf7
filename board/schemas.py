"""Pydantic request/response schemas for the Board API."""
from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, field_validator

ChallengeStatus = Literal["ongoing", "overdue", "standby", "done"]
ActivityType = Literal["call", "meeting", "email", "note"]
ContactGroup = Literal["WENOV", "Metier", "Startup", "OpenStart"]
UserEntity = Literal["WENOV", "CEED"]


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ActionOut(BaseModel):
    id: int
    challenge_id: int
    title: str
    owner: str
    owner_is_entity: bool
    owner_organization: str | None = None
    due_date: date
    due_label: str
    is_done: bool
    is_urgent: bool
    is_overdue: bool
    is_alert: bool
    assignee_id: int | None = None
    assignee_name: str | None = None


class ActionRowOut(ActionOut):
    challenge_name: str
    challenge_entity: str = ""
    startup_name: str = ""


class ActivityOut(BaseModel):
    id: int
    challenge_id: int
    type: str
    note: str
    link: str | None = None
    created_at: str | None = None
    icon: str = ""
    type_label: str = ""


class ContactOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    function: str
    company: str
    email: str
    phone: str
    group: str


class ContactGroupOut(BaseModel):
    key: str
    label: str
    contacts: list[ContactOut] = []


class LastCommentOut(BaseModel):
    note: str
    time_ago: str


class ChallengeOut(BaseModel):
    id: int
    name: str
    wenov_responsible: str
    entity: str
    startup_name: str
    status: str
    alert_score: int
    open_actions: int
    next_actions: list[ActionOut] = []
    remaining_actions: int = 0
    last_comment: LastCommentOut | None = None


class ChallengeDetail(ChallengeOut):
    actions: list[ActionOut] = []
    activities: list[ActivityOut] = []
    contacts: list[ContactOut] = []
    contact_groups: list[ContactGroupOut] = []


class KPIsOut(BaseModel):
    challenges_count: int
    actions_entity: int
    actions_startup: int
    alerts_count: int


class DashboardOut(BaseModel):
    kpis: KPIsOut
    items: list[ChallengeOut]
    total: int
    shown: int


class NextActionsOut(BaseModel):
    actions: list[ActionOut]
    remaining: int


class ActionsViewOut(BaseModel):
    items: list[ActionRowOut]
    open_count: int
    overdue_count: int
    startups: list[str]
    challenges: list[str]


class MemberOut(BaseModel):
    id: int
    name: str
    entity: str


class UserOut(BaseModel):
    id: int
    email: str
    name: str
    entity: str
    is_admin: bool
    created_at: str | None = None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    email: str
    password: str


class ChallengeCreate(BaseModel):
    name: str
    wenov_responsible: str = ""
    entity: str = ""
    startup_name: str = ""
    status: ChallengeStatus = "ongoing"

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be blank")
        return v


class ChallengeUpdate(BaseModel):
    name: str | None = None
    wenov_responsible: str | None = None
    entity: str | None = None
    startup_name: str | None = None
    status: ChallengeStatus | None = None


class ReorderRequest(BaseModel):
    ordered_ids: list[int]


class ActionCreate(BaseModel):
    title: str
    owner: str
    due_date: date
    is_urgent: bool = False
    assignee_id: int | None = None


class ActionUpdate(BaseModel):
    title: str | None = None
    owner: str | None = None
    due_date: date | None = None
    is_done: bool | None = None
    is_urgent: bool | None = None
    assignee_id: int | None = None


class ActivityCreate(BaseModel):
    type: ActivityType
    note: str
    link: str | None = None


class ActivityUpdate(BaseModel):
    type: ActivityType | None = None
    note: str | None = None
    link: str | None = None


class ContactCreate(BaseModel):
    first_name: str
    last_name: str
    function: str = ""
    company: str = ""
    email: str = ""
    phone: str = ""
    group: ContactGroup = "Metier"


class ContactUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    function: str | None = None
    company: str | None = None
    email: str | None = None
    phone: str | None = None
    group: ContactGroup | None = None


class UserCreate(BaseModel):
    email: str
    password: str
    name: str
    entity: UserEntity = "WENOV"
    is_admin: bool = False


class UserUpdate(BaseModel):
    name: str | None = None
    entity: UserEntity | None = None
    is_admin: bool | None = None


class ProfileUpdate(BaseModel):
    name: str | None = None
    current_password: str | None = None
    new_password: str | None = None
