"""
Load an export of legacy project rows into the projects table.

Run: python -m bizops.migrate_notes rows.json [--org-id UUID] [--dry-run]

The file holds a JSON list of legacy rows (typed columns plus the `notes`
blob). Rows whose contract number already exists in the org are skipped.
"""
import argparse
import json
import logging
import sys
import uuid

from sqlalchemy.exc import SQLAlchemyError

from bizops.database import SessionLocal
from bizops.dependencies import DEMO_ORG_ID
from bizops.models.project import Project
from bizops.services.notes_adapter import adapt_legacy_row
from bizops.services.workflow import refresh_finances

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def load_rows(path: str) -> list[dict]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("rows") or data.get("projects") or []
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list of rows")
    return [r for r in data if isinstance(r, dict)]


def migrate(db, rows: list[dict], org_id: uuid.UUID) -> tuple[int, int]:
    """Insert adapted rows. Returns (created, skipped)."""
    existing = {
        n for (n,) in db.query(Project.contract_number).filter(
            Project.org_id == org_id,
            Project.contract_number.isnot(None),
        )
    }
    created = skipped = 0
    for row in rows:
        fields = adapt_legacy_row(row)
        number = fields.get("contract_number")
        if number and number in existing:
            logger.info("Skipping %s: contract %s already imported", row.get("id"), number)
            skipped += 1
            continue
        project = Project(org_id=org_id, **fields)
        refresh_finances(project)
        db.add(project)
        if number:
            existing.add(number)
        created += 1
    return created, skipped


def main(argv=None):
    parser = argparse.ArgumentParser(description="Migrate legacy project rows")
    parser.add_argument("path", help="JSON export of legacy project rows")
    parser.add_argument("--org-id", default=DEMO_ORG_ID)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args(argv)

    try:
        rows = load_rows(args.path)
    except (OSError, ValueError) as e:
        logger.error("Cannot read %s: %s", args.path, e)
        sys.exit(1)

    db = SessionLocal()
    try:
        created, skipped = migrate(db, rows, uuid.UUID(args.org_id))
        if args.dry_run:
            db.rollback()
            logger.info("Dry run: %d rows would be created, %d skipped", created, skipped)
        else:
            db.commit()
            logger.info("Migrated %d legacy projects (%d skipped)", created, skipped)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Migration failed")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
