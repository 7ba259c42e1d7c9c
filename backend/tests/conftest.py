import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from jose import jwt

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RECORD_STORE_BACKEND", "memory")

AS_OF = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def as_of():
    return AS_OF


@pytest.fixture()
def network(as_of):
    from puzzle_tracker.services.seed import build_reference_network

    return build_reference_network(as_of)


@pytest.fixture()
def population(network, as_of):
    from puzzle_tracker.services.population import Population

    return Population(
        health_systems=network.health_systems,
        chains=network.chains,
        facilities=network.facilities,
        patients=network.patients,
        as_of=as_of,
    )


@pytest.fixture()
def resolver_for(population):
    from puzzle_tracker.services.access import TenantClaim, TenantRole
    from puzzle_tracker.services.alerts import AlertGenerator, AlertRules
    from puzzle_tracker.services.views import TenantViewResolver

    def _make(role: str = "central_team", **scope) -> TenantViewResolver:
        claim = TenantClaim(subject="tester", role=TenantRole(role), **scope)
        return TenantViewResolver(
            population,
            claim,
            alert_generator=AlertGenerator(AlertRules(), population.as_of),
        )

    return _make


@pytest.fixture()
def record_store():
    from puzzle_tracker.services.records import InMemoryRecordStore

    # Built against the wall clock: API reads evaluate alerts at request time.
    return InMemoryRecordStore.with_reference_data()


@pytest.fixture()
def client(record_store):
    from puzzle_tracker.api.deps import get_record_store
    from puzzle_tracker.main import app

    app.dependency_overrides[get_record_store] = lambda: record_store
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    from puzzle_tracker.config import settings

    def _make(role: str = "central_team", token_type: str = "access", **claims) -> dict:
        payload = {"sub": "tester", "role": role, "type": token_type, **claims}
        token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
        return {"Authorization": f"Bearer {token}"}

    return _make
