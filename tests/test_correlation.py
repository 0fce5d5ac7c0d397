"""Tests for the correlation engine."""

import pytest

from acres_collector.errors import AdmissionRejected, DuplicateEntityError, PersistenceError
from acres_collector.models import CropProfile, CropShare
from acres_collector.services.correlation import CorrelationEngine, IngestOutcome
from acres_collector.services.stores import CropProfileStore, PropertyStore

from factories import FailingGateway, make_comp


def almonds(acres, area=38.5):
    return CropProfile(acres=acres, crops=[CropShare(name="Almonds", acres=area)])


class TestAddProperty:

    async def test_new_property_is_added_and_persisted(self, engine, gateway):
        outcome = await engine.add_property(make_comp("A"))

        assert outcome is IngestOutcome.ADDED
        assert len(engine) == 1
        assert gateway.save_count == 1

        record = engine.records[0]
        assert record.document_number == "DOC-A"
        assert record.county_fips == "06019"
        assert record.acres == 40.0
        assert record.price_per_acre == 31250.0
        assert record.longitude == -119.7726
        assert record.latitude == 36.7468
        assert record.crops == []

    async def test_duplicate_does_not_grow_store(self, engine, gateway):
        await engine.add_property(make_comp("A"))
        outcome = await engine.add_property(make_comp("A", acres=12.0))

        assert outcome is IngestOutcome.DUPLICATE
        assert len(engine) == 1
        assert engine.records[0].acres == 40.0
        assert gateway.save_count == 1

    async def test_skip_outcomes_name_their_reason(self, engine):
        await engine.add_property(make_comp("A"))

        duplicate = await engine.add_property(make_comp("A"))
        rejected = await engine.add_property(make_comp("LA", fips="06037"))

        assert duplicate.reason is DuplicateEntityError
        assert rejected.reason is AdmissionRejected
        assert IngestOutcome.ADDED.reason is None
        assert IngestOutcome.INVALID.reason is None

    async def test_duplicate_skips_admission(self, engine, monkeypatch):
        await engine.add_property(make_comp("A"))

        calls = []
        monkeypatch.setattr(
            "acres_collector.services.correlation.admit",
            lambda comp: calls.append(comp) or True,
        )
        await engine.add_property(make_comp("A"))
        assert calls == []

    async def test_rejected_county_leaves_store_unchanged(self, engine, gateway):
        outcome = await engine.add_property(make_comp("LA", fips="06037"))

        assert outcome is IngestOutcome.REJECTED
        assert len(engine) == 0
        assert not engine.properties.has_seen("LA")
        assert gateway.save_count == 0

    async def test_rejected_then_allowed_with_same_id_is_added(self, engine):
        await engine.add_property(make_comp("X", fips="06037"))
        outcome = await engine.add_property(make_comp("X", fips="06029"))
        assert outcome is IngestOutcome.ADDED

    async def test_payload_without_id_is_invalid(self, engine):
        comp = make_comp("A")
        del comp['id']
        assert await engine.add_property(comp) is IngestOutcome.INVALID
        assert len(engine) == 0

    async def test_courthouse_acres_used_as_fallback(self, engine):
        await engine.add_property(make_comp("A", acres=None, courthouse_acres=80.5))
        assert engine.records[0].acres == 80.5

    async def test_existing_profile_enriches_at_insertion(self, engine):
        await engine.apply_profile(almonds(10.00, area=9.0))

        await engine.add_property(make_comp("B", acres=9.90))

        crops = engine.records[0].crops
        assert [(c.name, c.acres) for c in crops] == [("Almonds", 9.0)]


class TestApplyProfile:

    async def test_backfills_property_stored_earlier(self, engine):
        await engine.add_property(make_comp("A", acres=40.00))
        assert engine.records[0].crops == []

        updated = await engine.apply_profile(almonds(40.10))

        assert updated is True
        assert [(c.name, c.acres) for c in engine.records[0].crops] == [("Almonds", 38.5)]

    async def test_exact_tolerance_does_not_match(self, engine):
        await engine.add_property(make_comp("A", acres=40.00))

        assert await engine.apply_profile(almonds(40.15)) is False
        assert engine.records[0].crops == []

    async def test_updates_every_matching_property(self, engine):
        await engine.add_property(make_comp("A", acres=20.00))
        await engine.add_property(make_comp("B", acres=20.05))
        await engine.add_property(make_comp("C", acres=25.00))

        await engine.apply_profile(almonds(20.02))

        enriched = [r.id for r in engine.records if r.crops]
        assert enriched == ["A", "B"]

    async def test_is_idempotent(self, engine):
        await engine.add_property(make_comp("A", acres=40.00))
        profile = almonds(40.10)

        await engine.apply_profile(profile)
        first = [c.model_dump() for c in engine.records[0].crops]
        await engine.apply_profile(profile)
        second = [c.model_dump() for c in engine.records[0].crops]

        assert first == second
        assert len(engine.profiles) == 1

    async def test_later_profile_fully_replaces_crops(self, engine):
        await engine.add_property(make_comp("A", acres=40.00))
        await engine.apply_profile(CropProfile(acres=40.05, crops=[
            CropShare(name="Almonds", acres=30.0),
            CropShare(name="Grapes", acres=8.0),
        ]))

        await engine.apply_profile(CropProfile(acres=39.95, crops=[
            CropShare(name="Pistachios", acres=39.0),
        ]))

        assert [c.name for c in engine.records[0].crops] == ["Pistachios"]

    async def test_profile_without_match_is_kept_for_later(self, engine, gateway):
        assert await engine.apply_profile(almonds(77.0)) is False
        assert "77.00" in engine.profiles
        assert gateway.save_count == 1

    async def test_enrichment_copies_crops(self, engine):
        profile = almonds(40.0)
        await engine.apply_profile(profile)
        await engine.add_property(make_comp("A", acres=40.0))

        engine.records[0].crops[0].name = "Changed"
        assert engine.profiles.get("40.00").crops[0].name == "Almonds"


class TestLifecycle:

    async def test_load_restores_snapshot(self, engine, gateway):
        await engine.add_property(make_comp("A", acres=40.0))
        await engine.apply_profile(almonds(40.1))

        fresh = CorrelationEngine(PropertyStore(), CropProfileStore(), gateway)
        assert await fresh.load() is True

        assert len(fresh) == 1
        assert fresh.records[0].crops[0].name == "Almonds"
        assert "40.10" in fresh.profiles
        assert await fresh.add_property(make_comp("A")) is IngestOutcome.DUPLICATE

    async def test_load_without_snapshot(self, engine):
        assert await engine.load() is False
        assert len(engine) == 0

    async def test_clear_resets_and_persists_empty_state(self, engine, gateway):
        await engine.add_property(make_comp("A"))
        await engine.apply_profile(almonds(40.0))

        await engine.clear()

        assert len(engine) == 0
        assert len(engine.profiles) == 0
        assert not engine.properties.has_seen("A")
        snapshot = await gateway.load()
        assert snapshot.is_empty

    async def test_save_failure_surfaces_after_commit(self):
        engine = CorrelationEngine(PropertyStore(), CropProfileStore(), FailingGateway())

        with pytest.raises(PersistenceError):
            await engine.add_property(make_comp("A"))
        assert len(engine) == 1

    async def test_county_counts(self, engine):
        await engine.add_property(make_comp("A", fips="06019"))
        await engine.add_property(make_comp("B", fips="06019"))
        await engine.add_property(make_comp("C", fips="06031"))

        counts = engine.county_counts()
        assert counts["06019"] == {'name': "Fresno", 'count': 2}
        assert counts["06031"] == {'name': "Kings", 'count': 1}
        assert counts["06107"]['count'] == 0
        assert list(counts) == ["06019", "06029", "06107", "06031"]
