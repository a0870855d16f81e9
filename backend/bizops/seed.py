"""
Seed script for BizOps: populates a demo organisation on first deploy.

Run: python -m bizops.seed
"""
import logging
import uuid
import sys
from datetime import date, timedelta

from sqlalchemy.exc import SQLAlchemyError

from bizops.database import SessionLocal
from bizops.dependencies import DEMO_ORG_ID, DEMO_USER_ID
from bizops.models.employee import Employee
from bizops.models.project import Project
from bizops.models.user import Organization, Profile
from bizops.services import workflow
from bizops.services.auth import create_access_token
from bizops.schemas.project import TeamMember

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_ORG_NAME = "BizOps Group"
DEFAULT_ORG_CODE = "bizops"

# (name, email, role)
DEMO_PEOPLE = [
    ("Aigerim Sadykova", "ceo@bizops.local", "ceo"),
    ("Daniyar Omarov", "deputy@bizops.local", "deputy_director"),
    ("Madina Ospanova", "procurement@bizops.local", "procurement"),
    ("Arman Tulegenov", "partner@bizops.local", "partner"),
    ("Saule Nurlanova", "manager@bizops.local", "manager_2"),
    ("Yerlan Bekov", "assistant@bizops.local", "assistant_1"),
    ("Gulnara Iskakova", "hr@bizops.local", "hr"),
]


def seed_org(db) -> Organization:
    org = db.query(Organization).filter(Organization.org_code == DEFAULT_ORG_CODE).first()
    if org:
        logger.info("Default organization already exists, skipping.")
        return org
    org = Organization(org_id=uuid.UUID(DEMO_ORG_ID), name=DEFAULT_ORG_NAME, org_code=DEFAULT_ORG_CODE)
    db.add(org)
    db.flush()
    logger.info("Created default organization: %s (%s)", DEFAULT_ORG_NAME, DEFAULT_ORG_CODE)
    return org


def seed_people(db, org: Organization) -> dict[str, Profile]:
    """One employee + linked login per demo role. Returns profiles keyed by role."""
    profiles = {}
    for name, email, role in DEMO_PEOPLE:
        profile = db.query(Profile).filter(Profile.email == email).first()
        if profile:
            profiles[role] = profile
            continue
        emp = Employee(org_id=org.org_id, name=name, email=email, role=role, hire_date=date(2024, 1, 15))
        db.add(emp)
        db.flush()
        profile = Profile(
            id=uuid.UUID(DEMO_USER_ID) if role == "ceo" else uuid.uuid4(),
            org_id=org.org_id,
            email=email,
            full_name=name,
            role=role,
            employee_id=emp.id,
        )
        db.add(profile)
        db.flush()
        profiles[role] = profile
        logger.info("Created %s: %s (%s)", role, name, email)
    return profiles


def seed_projects(db, org: Organization, profiles: dict[str, Profile]) -> int:
    if db.query(Project).filter(Project.org_id == org.org_id).count():
        logger.info("Projects already exist, skipping.")
        return 0

    today = date.today()
    procurement = profiles["procurement"]
    deputy = profiles["deputy_director"]

    pending = Project(
        org_id=org.org_id,
        name="Financial audit 2025, Kazakh Grain",
        project_type="financial_audit",
        client_name="Kazakh Grain LLP",
        contract_number="FA-2025-014",
        contract_date=today - timedelta(days=10),
        service_start_date=today,
        service_end_date=today + timedelta(days=90),
        amount_without_vat=12_500_000,
        created_by=procurement.id,
    )
    workflow.submit_for_approval(pending, procurement.role, procurement.id)

    running = Project(
        org_id=org.org_id,
        name="Business valuation, Steppe Logistics",
        project_type="business_valuation",
        client_name="Steppe Logistics JSC",
        contract_number="BV-2025-003",
        contract_date=today - timedelta(days=40),
        service_start_date=today - timedelta(days=30),
        service_end_date=today + timedelta(days=5),
        amount_without_vat=4_000_000,
        contractors=[{"id": "c1", "name": "Appraisal Partners", "amount": 300_000}],
        created_by=procurement.id,
        completion_percent=60,
    )
    workflow.approve(running, deputy.role, deputy.id)
    team = [
        TeamMember(person_id=str(profiles["partner"].employee_id), name=profiles["partner"].full_name, role="partner"),
        TeamMember(person_id=str(profiles["manager_2"].employee_id), name=profiles["manager_2"].full_name,
                   role="manager_2"),
        TeamMember(person_id=str(profiles["assistant_1"].employee_id), name=profiles["assistant_1"].full_name,
                   role="assistant_1"),
    ]
    workflow.assign_team(running, team, deputy.role, deputy.id)
    partner = profiles["partner"]
    workflow.start(running, partner.role, str(partner.employee_id))

    db.add_all([pending, running])
    return 2


def run_seed():
    db = SessionLocal()
    try:
        org = seed_org(db)
        profiles = seed_people(db, org)
        created = seed_projects(db, org, profiles)
        db.commit()
        if created:
            logger.info("Seeded %d demo projects.", created)

        for role, profile in profiles.items():
            token = create_access_token({"sub": str(profile.id), "org": str(org.org_id), "role": role})
            logger.info("Demo token for %-16s %s", role, token)
        logger.info("Seed complete.")
    except (SQLAlchemyError, workflow.WorkflowError, workflow.PermissionDenied):
        db.rollback()
        logger.exception("Seed failed")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
