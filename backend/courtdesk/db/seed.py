# backend/courtdesk/db/seed.py

"""
Database Seeding Script

Creates demo users and a few cases at different lifecycle stages for local
development. Cases are created through the workflow services so their
timeline, notifications and audit trail look like real ones.

    python -m courtdesk.db.seed
"""

from datetime import date, timedelta
from typing import Dict

from sqlalchemy.orm import Session

from courtdesk.core.security import create_access_token
from courtdesk.db.database import SessionLocal, init_db
from courtdesk.db.models import CaseType, Role, User
from courtdesk.services import (
    assignment_service,
    case_service,
    hearing_service,
    motion_service,
    order_service,
)

# ============================================================================
# Seed Data
# ============================================================================

DEMO_USERS = [
    ("Justice A. Menon", "judge@courtdesk.test", Role.judge, "High Court 1"),
    ("Justice R. Pillai", "judge2@courtdesk.test", Role.judge, "High Court 2"),
    ("Registrar S. Nair", "registrar@courtdesk.test", Role.registrar, "Registry"),
    ("Clerk T. Varma", "clerk@courtdesk.test", Role.clerk, "Registry"),
    ("Adv. P. Thomas", "lawyer@courtdesk.test", Role.lawyer, None),
    ("Adv. K. Iyer", "lawyer2@courtdesk.test", Role.lawyer, None),
    ("Admin", "admin@courtdesk.test", Role.admin, None),
]


def create_users(db: Session) -> Dict[str, User]:
    """Create demo users (idempotent on email)"""
    users = {}
    for name, email, role, department in DEMO_USERS:
        user = db.query(User).filter(User.email == email).first()
        if user is None:
            user = User(name=name, email=email, role=role, department=department, is_active=True)
            db.add(user)
            db.commit()
            db.refresh(user)
            print(f"✅ Created user: {email} ({role.value})")
        users[email.split("@")[0]] = user
    return users


def create_sample_cases(db: Session, users: Dict[str, User]) -> list:
    judge, registrar, clerk = users["judge"], users["registrar"], users["clerk"]
    lawyer, lawyer2 = users["lawyer"], users["lawyer2"]

    # 1. Lawyer files; still waiting for approval
    pending = case_service.create_case(
        db, lawyer, "Thomas v. State Transport Corporation", CaseType.civil,
        description="Compensation claim for a bus accident",
        parties=[
            {"role": "Plaintiff", "name": "Joseph Thomas", "lawyer_id": lawyer.id},
            {"role": "Defendant", "name": "State Transport Corporation"},
        ],
    )

    # 2. Full pipeline: approve, assign, lawyer joins, motion, hearing, order
    active = case_service.create_case(
        db, registrar, "State v. Kumar", CaseType.criminal, priority="High",
        parties=[{"role": "Accused", "name": "Ravi Kumar"}],
    )
    case_service.approve_case(db, registrar, active.id)
    case_service.assign_court(db, registrar, active.id, "High Court 1", judge.id)
    request = assignment_service.request_assignment(db, lawyer2, active.id, notes="Counsel for the accused")
    assignment_service.review_assignment_request(db, judge, request.id, "approve")
    motion = motion_service.file_motion(db, lawyer2, active.id, "Bail application")
    motion_service.review_motion(db, judge, motion.id, "Approved", notes="Bail granted on surety")
    hearing_service.set_next_hearing(db, clerk, active.id, date.today() + timedelta(days=7))
    order = order_service.draft_order(db, clerk, active.id, "Bail order", "Released on personal bond")
    order_service.sign_order(db, judge, order.id)

    # 3. Judge's own filing, open for lawyers to request
    open_case = case_service.create_case(db, judge, "In re Estate of Mathew", CaseType.family)

    return [pending, active, open_case]


def seed_database():
    """Main seeding function"""
    init_db()
    db = SessionLocal()
    try:
        users = create_users(db)
        cases = create_sample_cases(db, users)
        print(f"✅ Created {len(cases)} cases: {', '.join(c.case_number for c in cases)}")
        print("\nDev tokens:")
        for key, user in users.items():
            print(f"  {key:10s} {create_access_token(user.id, user.role.value)}")
    finally:
        db.close()


if __name__ == "__main__":
    seed_database()
