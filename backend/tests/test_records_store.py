from contextlib import asynccontextmanager
from datetime import date, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from puzzle_tracker.database import build_session_maker
from puzzle_tracker.models import Base, Facility, model_to_dict
from puzzle_tracker.services.alerts import AlertGenerator, AlertRules, pending_alerts
from puzzle_tracker.services.errors import (
    DuplicateInterventionError,
    NotFoundError,
    VersionConflictError,
)
from puzzle_tracker.services.records import (
    AlertType,
    InMemoryRecordStore,
    InterventionEntry,
    SQLRecordStore,
)

pytestmark = pytest.mark.anyio


def _entry(entry_id: str = "iv-new") -> InterventionEntry:
    return InterventionEntry(
        id=entry_id,
        performed_on=date(2025, 9, 1),
        intervention_type="Call",
        performed_by="Puzzle CM",
        note="Weekly check-in completed",
    )


@asynccontextmanager
async def _seeded_sql_store(network):
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_maker = build_session_maker(engine)
    async with session_maker() as session:
        store = SQLRecordStore(session)
        assert await store.is_empty()
        await store.seed(network)
        await session.commit()
        yield store
    await engine.dispose()


@pytest.fixture()
async def sql_store(network):
    async with _seeded_sql_store(network) as store:
        yield store


@pytest.fixture(params=["memory", "sql"])
async def store(request, network):
    if request.param == "memory":
        yield InMemoryRecordStore(network)
        return
    async with _seeded_sql_store(network) as sql_store:
        yield sql_store


async def test_load_population_preserves_store_order(store, as_of):
    population = await store.load_population(as_of)

    assert [p.id for p in population.patients] == [f"p{i}" for i in range(1, 27)]
    assert [f.id for f in population.facilities] == ["f1", "f2", "f3", "f4"]
    assert len(population.health_systems) == 3
    assert population.as_of == as_of


async def test_get_patient_returns_full_history(store, network):
    patient = await store.get_patient("p5")
    expected = next(p for p in network.patients if p.id == "p5")

    assert patient.name == expected.name
    assert patient.vitals == expected.vitals
    assert patient.encounters == expected.encounters
    assert patient.tasks == expected.tasks
    assert patient.interventions == expected.interventions
    assert patient.last_contact_at.tzinfo is not None
    assert await store.get_patient("nope") is None


async def test_save_alerts_bumps_version(store, as_of):
    patient = await store.get_patient("p5")
    generated = AlertGenerator(AlertRules(), as_of).generate(patient)
    new_alerts = pending_alerts(generated, [])

    version = await store.save_alerts("p5", new_alerts, patient.version)
    saved = await store.list_alerts("p5")

    assert version == patient.version + 1
    assert [a.id for a in saved] == [new_alerts[0].id]
    assert saved[0].persisted
    assert saved[0].created_at.astimezone(timezone.utc) == new_alerts[0].created_at
    assert (await store.get_patient("p5")).version == version


async def test_stale_version_is_rejected(store, as_of):
    patient = await store.get_patient("p5")
    await store.append_intervention("p5", _entry("iv-a"), patient.version)

    with pytest.raises(VersionConflictError) as exc_info:
        await store.append_intervention("p5", _entry("iv-b"), patient.version)

    assert exc_info.value.expected == patient.version
    assert exc_info.value.actual == patient.version + 1


async def test_append_intervention_is_idempotent(store):
    patient = await store.get_patient("p1")

    first = await store.append_intervention("p1", _entry(), patient.version)
    replay = await store.append_intervention("p1", _entry(), patient.version)
    updated = await store.get_patient("p1")

    assert first == replay == patient.version + 1
    assert [i.id for i in updated.interventions].count("iv-new") == 1


async def test_unknown_patient_write_raises_not_found(store):
    with pytest.raises(NotFoundError):
        await store.append_intervention("p99", _entry(), 0)


async def test_intervention_id_of_another_patient_is_rejected(store):
    patient = await store.get_patient("p2")

    with pytest.raises(DuplicateInterventionError) as exc_info:
        await store.append_intervention("p2", _entry("iv0-1"), patient.version)

    unchanged = await store.get_patient("p2")
    assert exc_info.value.intervention_id == "iv0-1"
    assert unchanged.version == patient.version
    assert unchanged.interventions == patient.interventions


async def test_reference_store_evaluates_at_its_build_time(as_of):
    store = InMemoryRecordStore.with_reference_data(as_of)

    pinned = await store.load_population()
    later = await store.load_population(as_of + timedelta(days=30))

    assert store.as_of == as_of
    assert pinned.as_of == as_of
    assert later.as_of == as_of + timedelta(days=30)

    generator = AlertGenerator(AlertRules(), pinned.as_of)
    missed_call = [
        p.id
        for p in pinned.patients
        if any(a.alert_type == AlertType.missed_weekly_call for a in generator.generate(p))
    ]
    assert missed_call == ["p1", "p6", "p11", "p16", "p21", "p26"]


async def test_sql_seed_stores_raw_facility_signals_only(sql_store):
    result = await sql_store.db.execute(select(Facility).where(Facility.id == "f1"))
    row = model_to_dict(result.scalar_one())

    assert row["engagement_base"] == 82
    assert row["last_ack_minutes"] == 21
    assert "census" not in row
    assert not await sql_store.is_empty()
