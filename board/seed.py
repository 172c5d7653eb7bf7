"""Demo data for a fresh board. Due dates are relative to the seeding day."""
from __future__ import annotations

import logging
from datetime import date, timedelta

from sqlalchemy import delete
from sqlalchemy.orm import Session

from board.models import Action, Activity, Challenge, Contact

log = logging.getLogger(__name__)

WENOV_OTHMANE = "Othmane As Salih"
WENOV_ASMAA = "Asmaa Ouach"
WENOV_RIM = "Rim Hachidi"

# (name, wenov_responsible, entity, startup, contacts, actions, activities)
# contacts: (first, last, function, email, group)
# actions: (title, owner, days_from_today, is_urgent, is_done)
# activities: (type, note)
DEMO_CHALLENGES = [
    (
        "API Integration Payment Gateway", WENOV_OTHMANE, "WafaSalaf", "PayFlow",
        [
            ("Othmane", "As Salih", "Project Lead", "othmane@wenov.com", "WENOV"),
            ("Ahmed", "Bennani", "Tech Lead", "ahmed@wafasalaf.ma", "Metier"),
            ("Sarah", "Chen", "CEO", "sarah@payflow.io", "Startup"),
        ],
        [
            ("Review API documentation", "WafaSalaf", -2, True, False),
            ("Setup test environment", "STARTUP", 3, False, False),
            ("Security audit planning", "WafaSalaf", 7, False, False),
            ("Initial meeting completed", "WENOV", -10, False, True),
        ],
        [
            ("meeting", "Kickoff meeting with PayFlow team. Discussed integration timeline and milestones."),
            ("email", "Sent technical requirements document to startup."),
            ("call", "Quick sync call about API versioning concerns."),
        ],
    ),
    (
        "Mobile App Beta Launch", WENOV_ASMAA, "AWB IT", "AppNova",
        [
            ("Asmaa", "Ouach", "Innovation Manager", "asmaa@wenov.com", "WENOV"),
            ("Youssef", "Alami", "Product Owner", "youssef@awb.ma", "Metier"),
            ("Tom", "Wilson", "CTO", "tom@appnova.io", "Startup"),
        ],
        [
            ("Beta testing coordination", "STARTUP", 1, True, False),
            ("User feedback collection setup", "AWB IT", 5, False, False),
        ],
        [
            ("meeting", "Beta launch planning session. Set target date for next month."),
            ("note", "Internal review: App performance looks good."),
        ],
    ),
    (
        "Data Analytics Dashboard POC", WENOV_RIM, "AFM", "DataViz Pro",
        [
            ("Rim", "Hachidi", "Data Lead", "rim@wenov.com", "WENOV"),
            ("Karim", "Fassi", "Analytics Director", "karim@afm.ma", "Metier"),
            ("Lisa", "Park", "Founder", "lisa@dataviz.io", "Startup"),
        ],
        [
            ("Data source mapping", "AFM", -5, False, False),
            ("Dashboard mockups review", "STARTUP", -1, False, False),
            ("Performance benchmarks", "CEED", 10, False, False),
        ],
        [
            ("email", "Received updated mockups from DataViz Pro team."),
        ],
    ),
    (
        "Cloud Migration Assessment", WENOV_OTHMANE, "AWB IT", "CloudShift",
        [
            ("Hassan", "Berrada", "IT Director", "hassan@awb.ma", "Metier"),
            ("James", "Lee", "CEO", "james@cloudshift.io", "Startup"),
        ],
        [
            ("Infrastructure audit", "STARTUP", 2, False, False),
            ("Cost estimation review", "AWB IT", 8, False, False),
        ],
        [
            ("meeting", "Initial assessment meeting. Identified key migration priorities."),
            ("call", "Follow-up on security requirements."),
        ],
    ),
    (
        "Customer Support AI Bot", WENOV_ASMAA, "Wafa Cash", "BotGenius",
        [
            ("Fatima", "Zahra", "CS Manager", "fatima@wafacash.ma", "Metier"),
            ("Amy", "Zhang", "Co-founder", "amy@botgenius.io", "Startup"),
            ("Mehdi", "Alaoui", "Program Manager", "mehdi@openstart.ma", "OpenStart"),
        ],
        [
            ("Training data preparation", "Wafa Cash", -3, True, False),
            ("Bot personality definition", "STARTUP", 0, True, False),
            ("Integration with CRM", "STARTUP", 14, False, False),
            ("Pilot group selection", "Wafa Cash", 6, False, False),
        ],
        [
            ("note", "BotGenius shared demo of their latest NLP improvements."),
            ("meeting", "Workshop on conversation flows and edge cases."),
        ],
    ),
    (
        "HR Talent Platform Integration", WENOV_RIM, "AWB RH", "TalentMatch AI",
        [
            ("Nadia", "Tazi", "HR Director", "nadia@awb.ma", "Metier"),
            ("Julia", "Kim", "CTO", "julia@talentmatch.io", "Startup"),
        ],
        [
            ("Job description standardization", "AWB RH", 6, False, False),
            ("AI matching algorithm test", "STARTUP", 15, False, False),
        ],
        [],
    ),
]


def seed_demo_data(session: Session, *, today: date | None = None, reset: bool = True) -> dict[str, int]:
    """Insert the demo challenges. With *reset*, existing board data is removed first."""
    today = today or date.today()
    if reset:
        session.execute(delete(Activity))
        session.execute(delete(Action))
        session.execute(delete(Contact))
        session.execute(delete(Challenge))
    counts = {"challenges": 0, "actions": 0, "activities": 0, "contacts": 0}
    for name, wenov, entity, startup, contacts, actions, activities in DEMO_CHALLENGES:
        challenge = Challenge(name=name, wenov_responsible=wenov, entity=entity, startup_name=startup)
        challenge.contacts = [
            Contact(first_name=first, last_name=last, function=function, company=entity if group == "Metier" else "",
                    email=email, group=group)
            for first, last, function, email, group in contacts
        ]
        challenge.actions = [
            Action(title=title, owner=owner, due_date=today + timedelta(days=offset),
                   is_urgent=urgent, is_done=done)
            for title, owner, offset, urgent, done in actions
        ]
        challenge.activities = [Activity(type=kind, note=note) for kind, note in activities]
        session.add(challenge)
        counts["challenges"] += 1
        counts["actions"] += len(actions)
        counts["activities"] += len(activities)
        counts["contacts"] += len(contacts)
    session.commit()
    log.info("Seeded %d challenges", counts["challenges"])
    return counts
