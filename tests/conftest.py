"""
Pytest configuration.

Adds the project root to the Python path so tests can import the domain,
repositories, services and api packages, and replaces the Supabase client
with an in-memory double for every test.
"""

import sys
from pathlib import Path
from uuid import UUID, uuid4

import pytest

# Add the project directory to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.actor import Actor  # noqa: E402
from fakes import FakeSupabase  # noqa: E402
from repositories.client import set_supabase_override  # noqa: E402
from services.audit_service import AUDIT_MODE_SYNC, AuditSink, set_audit_sink  # noqa: E402

ORG_ID = UUID("00000000-0000-0000-0000-0000000000a1")
OTHER_ORG_ID = UUID("00000000-0000-0000-0000-0000000000b2")
ACTOR_ID = UUID("00000000-0000-0000-0000-0000000000c3")


@pytest.fixture(autouse=True)
def store():
    """In-memory Supabase with the stage and payment method catalogues seeded."""

    fake = FakeSupabase()
    fake.seed_catalog()
    set_supabase_override(fake)
    set_audit_sink(AuditSink(AUDIT_MODE_SYNC))
    yield fake
    set_audit_sink(None)
    set_supabase_override(None)


@pytest.fixture
def actor() -> Actor:
    return Actor(actor_id=ACTOR_ID, org_id=ORG_ID)


@pytest.fixture
def other_org_actor() -> Actor:
    return Actor(actor_id=uuid4(), org_id=OTHER_ORG_ID)


@pytest.fixture
def vehicle_id(store) -> UUID:
    return UUID(store.add_vehicle(ORG_ID, stage_code="publicado"))


@pytest.fixture
def customer_id(store) -> UUID:
    return UUID(store.add_customer(ORG_ID, "Ana Gómez"))


@pytest.fixture
def other_customer_id(store) -> UUID:
    return UUID(store.add_customer(ORG_ID, "Carlos Pérez"))
