import os

# Must be in place before app settings are imported
os.environ.setdefault("SQLALCHEMY_DATABASE_URI", "sqlite://")
os.environ.setdefault("DEFAULT_TIMEZONE", "UTC")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models
from app.api import deps
from app.core import security
from app.db.base import Base

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

TEST_PASSWORD = "correct-horse-battery"


class Factory:
    """Builds persisted clinic records with sensible defaults."""

    password = TEST_PASSWORD

    def __init__(self, db):
        self.db = db
        self._password_hash = None

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def clinic(self, **kwargs):
        values = dict(
            name="Happy Paws",
            phone="+1 555 0100",
            timezone="America/New_York",
            is_active=True,
            can_send_reminders=True,
            subscription_end_date=None,
            reminder_monthly_limit=100,
            reminders_sent_this_period=0,
            reminder_usage_period=None,
        )
        values.update(kwargs)
        return self._save(models.Clinic(**values))

    def owner(self, clinic, **kwargs):
        values = dict(first_name="Dana", last_name="Reyes", phone="+1 555 0199", allow_automated_reminders=True)
        values.update(kwargs)
        return self._save(models.Owner(clinic_id=clinic.id, **values))

    def pet(self, owner, **kwargs):
        values = dict(name="Biscuit", species="dog")
        values.update(kwargs)
        return self._save(models.Pet(owner_id=owner.id, **values))

    def visit(self, pet, visit_date, **kwargs):
        values = dict(visit_type="checkup", is_reminder_enabled=False, reminder_sent=False)
        values.update(kwargs)
        return self._save(models.Visit(pet_id=pet.id, visit_date=visit_date, **values))

    def user(self, clinic=None, email="staff@happypaws.vet", **kwargs):
        if self._password_hash is None:
            self._password_hash = security.get_password_hash(TEST_PASSWORD)
        values = dict(first_name="Sam", last_name="Lee", role="STAFF", is_active=True)
        values.update(kwargs)
        return self._save(models.User(
            email=email,
            hashed_password=self._password_hash,
            clinic_id=clinic.id if clinic else None,
            **values
        ))


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def factory(db):
    return Factory(db)


@pytest.fixture()
def client(db):
    from app.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[deps.get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
