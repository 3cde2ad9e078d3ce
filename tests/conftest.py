from datetime import datetime, timedelta, timezone

import pytest

from internhub.config import Settings
from internhub.db import InternshipStore
from internhub.manager import InternshipManager
from internhub.notifications import NotificationHub

PASSWORD = "correct-horse-battery"


@pytest.fixture
def settings():
    # Cheap hash so account fixtures stay fast
    return Settings(database_path=":memory:", password_hash_method="pbkdf2:sha256:1000", log_json=False)


@pytest.fixture
def store():
    store = InternshipStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def hub():
    return NotificationHub(max_history=100)


@pytest.fixture
def manager(store, hub, settings):
    return InternshipManager(store=store, hub=hub, settings=settings)


# =================
# BUILDERS
# =================

class Builder:
    """Drives a manager through the lifecycle to reach a given starting point."""

    def __init__(self, manager: InternshipManager):
        self.m = manager
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def student(self, **overrides):
        n = self._next()
        payload = {
            "roll_number": f"FA21-BCS-{n:03d}",
            "name": f"Student {n}",
            "email": f"student{n}@example.edu",
            "degree": "BCS",
            "session": "FA21",
            "password": PASSWORD,
        }
        payload.update(overrides)
        return self.m.accounts.register_student(payload)

    def faculty(self, **overrides):
        n = self._next()
        payload = {"name": f"Faculty {n}", "email": f"faculty{n}@example.edu", "password": PASSWORD, "role": "admin"}
        payload.update(overrides)
        return self.m.accounts.create_admin(payload)

    def company_admin(self, company="Acme Corp", **overrides):
        n = self._next()
        payload = {
            "name": f"Company Admin {n}", "email": f"company{n}@example.com",
            "password": PASSWORD, "role": "company_admin", "company": company,
        }
        payload.update(overrides)
        return self.m.accounts.create_admin(payload)

    @staticmethod
    def application_payload(category="university_assigned", **overrides):
        payload = {
            "company_name": "Acme Corp",
            "position": "Backend Intern",
            "internship_type": "summer",
            "duration": "8 weeks",
            "internship_category": category,
        }
        if category == "self_found":
            payload["self_found_supervisor"] = {
                "name": "Sam Site", "email": "sam@acme.example.com", "phone": "+1-555-0100",
            }
        if category == "freelancer":
            payload["freelancer_accounts"] = [{"platform": "Upwork", "username": "dev123"}]
        payload.update(overrides)
        return payload

    @staticmethod
    def agreement_payload(sourcing_type="University Assigned", **overrides):
        payload = {
            "sourcing_type": sourcing_type,
            "phone_number": "+1-555-0199",
            "personal_email": "me@example.org",
            "home_address": "1 Main Street",
        }
        if sourcing_type == "Self":
            payload.update({
                "company_address": "2 Industry Road",
                "supervisor_name": "Sam Site",
                "supervisor_email": "sam@acme.example.com",
            })
        payload.update(overrides)
        return payload

    def approved(self, category="university_assigned", student=None):
        student = student or self.student()
        application = self.m.applications.submit(student.id, self.application_payload(category))
        self.m.applications.decide(application.id, "approved")
        return student, self.m.store.get_application(application.id)

    def verified(self, category="university_assigned"):
        student, application = self.approved(category)
        agreement = self.m.agreements.submit(student.id, application.id, self.agreement_payload())
        self.m.agreements.verify(agreement.id, "verified")
        return student, application

    def placed(self, category="university_assigned", company="Acme Corp", supervisor=None):
        student, _ = self.verified(category)
        supervisor = supervisor or self.faculty()
        student = self.m.placement.assign(student.id, supervisor.id, company, "Backend Intern")
        return student, supervisor

    def task(self, creator, **overrides):
        payload = {
            "title": "Build the ingestion job",
            "description": "Load the nightly export into the warehouse",
            "deadline": datetime.now(timezone.utc) + timedelta(days=7),
        }
        payload.update(overrides)
        return self.m.tasks.create_task(creator.id, payload)


@pytest.fixture
def build(manager):
    return Builder(manager)
