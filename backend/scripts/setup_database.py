#!/usr/bin/env python3
"""
VetClinic Ops Database Setup Script
===================================

Creates the database tables and, optionally, a demo clinic with one staff
login, an owner, a pet and a few visits so the dashboard has something to
show.

Usage:
    python scripts/setup_database.py [--check-only] [--no-demo]
"""

import sys
import logging
import argparse
from datetime import timedelta
from sqlalchemy import inspect, text

from app.db.session import engine, SessionLocal
from app.db.base import Base
from app.crud import user as user_crud
from app.schemas.user import UserCreate
from app.utils.timezone import utc_now

# Registers every model with Base.metadata
from app import models  # noqa: F401
from app.models import Clinic, Owner, Pet, Visit

logger = logging.getLogger(__name__)

DEMO_CLINIC_NAME = "Demo Veterinary Clinic"
DEMO_STAFF_EMAIL = "staff@demo-clinic.vet"
DEMO_STAFF_PASSWORD = "demo-clinic-123"


def test_connection(bind=engine) -> bool:
    """Test database connection"""
    logger.info("Testing database connection...")
    try:
        with bind.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


def check_tables_exist(bind=engine) -> bool:
    """Check if all required tables exist"""
    existing_tables = inspect(bind).get_table_names()
    missing_tables = [t for t in Base.metadata.tables if t not in existing_tables]
    if missing_tables:
        logger.warning(f"Missing tables: {missing_tables}")
        return False
    logger.info("All required tables exist")
    return True


def create_tables(bind=engine) -> None:
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=bind)
    logger.info(f"Tables: {', '.join(sorted(inspect(bind).get_table_names()))}")


def create_demo_data(db) -> bool:
    """Create the demo clinic once. Returns False when it already exists."""
    if db.query(Clinic).filter(Clinic.name == DEMO_CLINIC_NAME).first():
        logger.info("Demo clinic already exists")
        return False

    now = utc_now()
    clinic = Clinic(
        name=DEMO_CLINIC_NAME,
        phone="+1 555 0100",
        timezone="America/New_York",
        is_active=True,
        can_send_reminders=True,
        subscription_end_date=now + timedelta(days=365),
        reminder_monthly_limit=100,
    )
    db.add(clinic)
    db.flush()

    user_crud.create(db, obj_in=UserCreate(
        email=DEMO_STAFF_EMAIL,
        password=DEMO_STAFF_PASSWORD,
        first_name="Demo",
        last_name="Staff",
        role="STAFF",
        clinic_id=clinic.id,
    ))

    owner = Owner(clinic_id=clinic.id, first_name="Alex", last_name="Morgan", phone="+1 555 0142")
    db.add(owner)
    db.flush()
    pet = Pet(owner_id=owner.id, name="Rex", species="dog", breed="Labrador")
    db.add(pet)
    db.flush()

    db.add_all([
        Visit(pet_id=pet.id, visit_date=now, visit_type="checkup"),
        Visit(
            pet_id=pet.id,
            visit_date=now - timedelta(days=365),
            visit_type="vaccination",
            next_reminder_date=now,
            is_reminder_enabled=True,
        ),
        Visit(pet_id=pet.id, visit_date=now + timedelta(days=14), visit_type="vaccination"),
    ])
    db.commit()
    logger.info(f"Created demo clinic {clinic.id} with login {DEMO_STAFF_EMAIL}")
    return True


def main():
    """Main setup function"""
    parser = argparse.ArgumentParser(description='VetClinic Ops Database Setup')
    parser.add_argument('--check-only', action='store_true',
                        help='Only check if tables exist, do not create')
    parser.add_argument('--no-demo', action='store_true',
                        help='Do not create the demo clinic')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    if not test_connection():
        logger.error("Cannot proceed without database connection")
        sys.exit(1)

    tables_exist = check_tables_exist()
    if args.check_only:
        sys.exit(0 if tables_exist else 1)

    if not tables_exist:
        create_tables()

    if not args.no_demo:
        with SessionLocal() as db:
            create_demo_data(db)
        logger.info(f"Demo login: {DEMO_STAFF_EMAIL} / {DEMO_STAFF_PASSWORD}")

    logger.info("You can now start the server with:")
    logger.info("  python -m uvicorn app.main:app --host 0.0.0.0 --port 8000")


if __name__ == "__main__":
    main()
