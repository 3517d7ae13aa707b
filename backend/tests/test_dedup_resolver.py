"""
Tests pour le score de richesse et la deduplication multi-sources.
"""
from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from app.domain.entities import ActivityType
from app.domain.services.dedup_resolver import (
    DedupAction,
    build_dedup_hash,
    dedup_resolver,
    generate_manual_external_id,
    likely_duplicate,
)
from app.domain.services.ingest_normalizer import normalize_activity
from app.domain.services.richness_scorer import richness_of, richness_score

START = datetime(2026, 3, 10, 7, 0)


def _normalized(user_id, source="strava", external_id="s1", start=START, duration=3600, **flags):
    values = {
        "user_id": user_id,
        "source": source,
        "external_id": external_id,
        "activity_type": ActivityType.RUN,
        "name": None,
        "notes": None,
        "start_ts": start,
        "duration_s": duration,
        "distance_m": 10000.0,
        "avg_hr": None,
        "max_hr": None,
        "has_hr": False,
        "has_gps": False,
        "has_power": False,
        "has_device": False,
        "device_name": None,
        "calories": None,
        "zone_minutes": None,
        "warnings": [],
    }
    values.update(flags)
    return values


def _insert(store, normalized):
    decision = dedup_resolver.resolve(store, normalized)
    activity = dedup_resolver.build_activity(normalized, decision.dedup_hash, decision.richness)
    return store.insert_activity(activity)


class TestRichnessScore:
    def test_weights(self):
        assert richness_score() == 0.0
        assert richness_score(has_hr=True) == 0.4
        assert richness_score(has_hr=True, has_gps=True) == 0.6
        assert richness_score(True, True, True, True) == 0.9

    def test_from_normalized_dict(self):
        normalized = normalize_activity(
            {"id": 1, "average_heartrate": 140, "start_latlng": [1, 2]}, uuid4()
        )
        assert richness_of(normalized) == 0.6


class TestDedupHash:
    def test_deterministic(self):
        user_id = uuid4()
        assert build_dedup_hash(user_id, "strava", "1") == build_dedup_hash(user_id, "strava", "1")
        assert len(build_dedup_hash(user_id, "strava", "1")) == 64

    def test_depends_on_source_and_user(self):
        user_id = uuid4()
        assert build_dedup_hash(user_id, "strava", "1") != build_dedup_hash(user_id, "garmin", "1")
        assert build_dedup_hash(user_id, "strava", "1") != build_dedup_hash(uuid4(), "strava", "1")

    def test_manual_ids_are_unique(self):
        first = generate_manual_external_id()
        assert first.startswith("manual_")
        assert first != generate_manual_external_id()


class TestLikelyDuplicate:
    def test_within_tolerances(self):
        a = {"start_ts": START, "duration_s": 3600}
        b = {"start_ts": START + timedelta(minutes=5), "duration_s": 3300}
        assert likely_duplicate(a, b) is True

    def test_time_too_far(self):
        a = {"start_ts": START, "duration_s": 3600}
        b = {"start_ts": START + timedelta(minutes=7), "duration_s": 3600}
        assert likely_duplicate(a, b) is False

    def test_duration_too_different(self):
        a = {"start_ts": START, "duration_s": 3600}
        b = {"start_ts": START, "duration_s": 3000}
        assert likely_duplicate(a, b) is False

    def test_unparseable_timestamp_never_raises(self):
        assert likely_duplicate({"start_ts": "n/a", "duration_s": 10}, {"start_ts": START, "duration_s": 10}) is False
        assert likely_duplicate({"start_ts": START, "duration_s": 0}, {"start_ts": START, "duration_s": 0}) is False


class TestResolve:
    def test_new_activity_is_inserted(self, store, user_id):
        decision = dedup_resolver.resolve(store, _normalized(user_id))
        assert decision.action == DedupAction.INSERT
        assert decision.existing is None

    def test_exact_match_is_skipped(self, store, user_id):
        _insert(store, _normalized(user_id, has_hr=True))
        decision = dedup_resolver.resolve(store, _normalized(user_id, has_hr=True, has_power=True))
        assert decision.action == DedupAction.SKIP
        assert decision.reason == "exact"

    def test_richer_fuzzy_match_is_merged(self, store, user_id):
        _insert(store, _normalized(user_id, source="manual", external_id="m1"))
        decision = dedup_resolver.resolve(
            store, _normalized(user_id, start=START + timedelta(minutes=3), has_hr=True)
        )
        assert decision.action == DedupAction.MERGE
        assert decision.existing.canonical_source == "manual"

    def test_equal_richness_is_skipped(self, store, user_id):
        _insert(store, _normalized(user_id, source="garmin", external_id="g1", has_hr=True))
        decision = dedup_resolver.resolve(
            store, _normalized(user_id, start=START + timedelta(minutes=2), has_hr=True)
        )
        assert decision.action == DedupAction.SKIP
        assert decision.reason == "fuzzy"

    def test_reimport_of_merged_source_is_exact(self, store, user_id):
        existing = _insert(store, _normalized(user_id, source="garmin", external_id="g1", has_hr=True))
        richer = _normalized(user_id, start=START + timedelta(minutes=3), has_hr=True, has_gps=True)
        decision = dedup_resolver.resolve(store, richer)
        store.save_activity(dedup_resolver.merge_into(decision.existing, richer, decision.richness))

        # Le hash indexe reste celui de la premiere source
        decision = dedup_resolver.resolve(store, richer)
        assert decision.action == DedupAction.SKIP
        assert decision.reason == "exact"
        assert decision.existing.id == existing.id

    def test_missing_start_ts_is_inserted(self, store, user_id):
        _insert(store, _normalized(user_id, source="garmin", external_id="g1"))
        decision = dedup_resolver.resolve(store, _normalized(user_id, start=None, has_hr=True))
        assert decision.action == DedupAction.INSERT


class TestMergeInto:
    def test_richer_version_supersedes_and_keeps_manual_notes(self, store, user_id):
        manual = _normalized(
            user_id, source="manual", external_id="m1",
            name="Footing", notes="Jambes lourdes", has_hr=True,
        )
        existing = _insert(store, manual)
        assert existing.richness == 0.4

        incoming = _normalized(
            user_id, start=START + timedelta(minutes=3), name="Morning Run", notes="",
            avg_hr=148.0, max_hr=172.0, has_hr=True, has_gps=True, has_power=True,
        )
        decision = dedup_resolver.resolve(store, incoming)
        assert decision.action == DedupAction.MERGE

        merged = dedup_resolver.merge_into(decision.existing, incoming, decision.richness)
        merged = store.save_activity(merged)

        assert merged.richness == 0.8
        assert merged.avg_hr == 148.0
        assert merged.has_gps is True
        assert merged.notes == "Jambes lourdes"
        assert merged.name == "Footing"
        assert merged.canonical_source == "strava"
        assert set(merged.source_set) == {"manual", "strava"}
        assert merged.merged_from[0]["source"] == "manual"
        assert merged.merged_from[0]["richness"] == 0.4

    @pytest.mark.parametrize("flag", ["has_hr", "has_gps"])
    def test_flags_are_never_cleared(self, store, user_id, flag):
        existing = _insert(store, _normalized(user_id, source="garmin", external_id="g1", **{flag: True}))
        incoming = _normalized(user_id, has_power=True, has_device=True, has_hr=True, has_gps=False)
        merged = dedup_resolver.merge_into(existing, incoming, 0.9)
        assert getattr(merged, flag) is True

    def test_richness_follows_merged_flags(self, store, user_id):
        existing = _insert(
            store, _normalized(user_id, source="garmin", external_id="g1", has_power=True, has_device=True)
        )
        incoming = _normalized(user_id, start=START + timedelta(minutes=1), has_hr=True, has_gps=True)
        decision = dedup_resolver.resolve(store, incoming)
        assert decision.action == DedupAction.MERGE
        assert decision.richness == 0.6

        merged = store.save_activity(dedup_resolver.merge_into(decision.existing, incoming, decision.richness))
        assert merged.richness == 0.9
        assert merged.source_set["strava"]["richness"] == 0.6

        # Une troisieme source a 0.8 n'est plus assez riche
        third = _normalized(
            user_id, source="polar", external_id="p1", start=START + timedelta(minutes=2),
            has_hr=True, has_gps=True, has_power=True,
        )
        assert dedup_resolver.resolve(store, third).action == DedupAction.SKIP
