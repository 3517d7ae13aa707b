"""
Tests pour l'orchestration des recalculs (agregats, metriques glissantes, obsolescence).
"""
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from unittest.mock import patch

import pytest

from app.core.locks import LockNotAcquired
from app.domain.entities import ActivityType
from app.domain.errors import RecomputeDeferredError, RecomputeFailureError
from app.domain.services.aggregation_service import AggregationService

DAY = date(2026, 3, 10)


class _BusyLocks:
    """Provider dont aucun verrou n'est jamais disponible."""

    @contextmanager
    def hold(self, key):
        raise LockNotAcquired(key)
        yield


class TestRecomputeDay:
    def test_aggregate_written(self, aggregation, store, user_id, make_activity):
        make_activity(datetime(2026, 3, 10, 7, 0))
        make_activity(datetime(2026, 3, 10, 18, 0), activity_type=ActivityType.STRENGTH, distance_m=0.0)

        aggregate = aggregation.recompute_day(store, user_id, DAY)

        assert aggregate.activity_count == 2
        assert aggregate.load_score == pytest.approx(30.0)
        assert aggregate.is_stale is False

    def test_recompute_is_idempotent(self, aggregation, store, user_id, make_activity):
        make_activity(datetime(2026, 3, 10, 7, 0), avg_hr=150.0, has_hr=True)
        first = aggregation.recompute_day(store, user_id, DAY)
        values = (first.trimp, first.tss, first.z3_min, first.activity_count)

        second = aggregation.recompute_day(store, user_id, DAY)
        assert (second.trimp, second.tss, second.z3_min, second.activity_count) == values
        assert len(store.list_aggregates(user_id, DAY, DAY)) == 1

    def test_excluded_activity_ignored(self, aggregation, store, user_id, make_activity):
        make_activity(datetime(2026, 3, 10, 7, 0), is_excluded=True)
        assert aggregation.recompute_day(store, user_id, DAY).activity_count == 0

    def test_busy_lock_defers_and_marks_stale(self, store, user_id):
        service = AggregationService(lock_provider=_BusyLocks(), tz_name="UTC")
        with pytest.raises(RecomputeDeferredError) as exc_info:
            service.recompute_day(store, user_id, DAY)

        assert exc_info.value.kind == "deferred"
        assert store.get_aggregate(user_id, DAY).is_stale is True

    def test_failure_marks_stale(self, aggregation, store, user_id):
        with patch(
            "app.domain.services.aggregation_service.summarize_day",
            side_effect=ValueError("donnees corrompues"),
        ):
            with pytest.raises(RecomputeFailureError) as exc_info:
                aggregation.recompute_day(store, user_id, DAY)

        assert not isinstance(exc_info.value, RecomputeDeferredError)
        assert "donnees corrompues" in exc_info.value.reason
        assert store.get_aggregate(user_id, DAY).is_stale is True

    def test_stale_flag_cleared_by_next_success(self, aggregation, store, user_id):
        with pytest.raises(RecomputeDeferredError):
            AggregationService(lock_provider=_BusyLocks(), tz_name="UTC").recompute_day(store, user_id, DAY)
        assert aggregation.recompute_day(store, user_id, DAY).is_stale is False


class TestRecomputeRolling:
    def test_missing_days_count_as_zero(self, aggregation, store, user_id, make_activity):
        make_activity(datetime(2026, 3, 10, 7, 0))
        aggregation.recompute_day(store, user_id, DAY)

        snapshot = aggregation.recompute_rolling(store, user_id, DAY)

        assert snapshot.weekly_load == pytest.approx(10.0)
        assert len(snapshot.affected_dates) == 35
        assert snapshot.affected_dates[-1] == "2026-03-10"
        assert 0 < snapshot.atl7 < 10

    def test_snapshot_upserted(self, aggregation, store, user_id):
        first = aggregation.recompute_rolling(store, user_id, DAY)
        second = aggregation.recompute_rolling(store, user_id, DAY)
        assert first.id == second.id
        assert second.monotony == 1.0
        assert second.strain == 0.0

    def test_busy_lock_defers(self, store, user_id):
        service = AggregationService(lock_provider=_BusyLocks(), tz_name="UTC")
        with pytest.raises(RecomputeDeferredError):
            service.recompute_rolling(store, user_id, DAY)


class TestRecomputeDates:
    def test_rolling_targets_include_today_in_window(self, aggregation, store, user_id):
        today = date(2026, 3, 20)
        old = DAY - timedelta(days=60)
        assert aggregation.rolling_targets(store, user_id, [DAY], today) == [DAY, today]
        assert aggregation.rolling_targets(store, user_id, [old], today) == [old]
        assert aggregation.rolling_targets(store, user_id, [], today) == []

    def test_rolling_targets_include_stored_snapshots_in_window(self, aggregation, store, user_id):
        for as_of in (date(2026, 3, 9), date(2026, 3, 11), date(2026, 4, 13), date(2026, 4, 14)):
            aggregation.recompute_rolling(store, user_id, as_of)

        targets = aggregation.rolling_targets(store, user_id, [DAY], today=date(2026, 3, 12))

        # 03-09 precede la date modifiee, 04-14 sort de sa fenetre de 35 jours
        assert targets == [DAY, date(2026, 3, 11), date(2026, 3, 12), date(2026, 4, 13)]

    def test_stored_snapshot_refreshed_when_window_changes(self, aggregation, store, user_id, make_activity):
        make_activity(datetime(2026, 3, 9, 7, 0))
        aggregation.recompute_dates(store, user_id, [date(2026, 3, 9)], today=date(2026, 3, 11))
        before = store.get_rolling(user_id, date(2026, 3, 11)).atl7

        make_activity(datetime(2026, 3, 10, 7, 0), duration_s=7200, distance_m=20000.0)
        aggregation.recompute_dates(store, user_id, [DAY], today=date(2026, 3, 12))

        stored_atl = store.get_rolling(user_id, date(2026, 3, 11)).atl7
        assert stored_atl > before
        fresh = aggregation.recompute_rolling(store, user_id, date(2026, 3, 11))
        assert stored_atl == pytest.approx(fresh.atl7)

    def test_batch_report(self, aggregation, store, user_id, make_activity):
        make_activity(datetime(2026, 3, 10, 7, 0))
        make_activity(datetime(2026, 3, 12, 7, 0))

        result = aggregation.recompute_dates(store, user_id, [DAY, date(2026, 3, 12)], today=date(2026, 3, 12))

        assert result["days"] == ["2026-03-10", "2026-03-12"]
        assert result["rolling"] == ["2026-03-10", "2026-03-12"]
        assert result["failures"] == []

    def test_failures_reported_not_raised(self, store, user_id):
        service = AggregationService(lock_provider=_BusyLocks(), tz_name="UTC")
        result = service.recompute_dates(store, user_id, [DAY], today=DAY)

        assert result["days"] == []
        assert result["failures"][0]["date"] == "2026-03-10"
        assert result["failures"][0]["kind"] == "deferred"
        assert "rolling" not in result["failures"][0]
        assert result["failures"][-1]["rolling"] is True


class TestGuardrailInputs:
    def test_empty_history(self, aggregation, store, user_id):
        assert aggregation.guardrail_inputs(store, user_id, DAY) == {
            "load": None, "yesterday": None, "data_confidence": None,
        }

    def test_inputs_from_stored_data(self, aggregation, store, user_id, make_activity):
        yesterday = DAY - timedelta(days=1)
        make_activity(datetime(2026, 3, 9, 7, 0), avg_hr=160.0, has_hr=True,
                      zone_minutes={"z4": 25, "z5": 4})
        make_activity(datetime(2026, 3, 8, 7, 0))
        aggregation.recompute_dates(store, user_id, [yesterday, date(2026, 3, 8)], today=yesterday)

        inputs = aggregation.guardrail_inputs(store, user_id, DAY)

        assert inputs["yesterday"] == {"z4_min": 25.0, "z5_min": 4.0}
        assert inputs["data_confidence"] == {"recent7days": 0.5}
        assert set(inputs["load"]) == {"atl7", "ctl28", "monotony", "strain"}
