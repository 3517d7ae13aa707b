"""
Tests pour la normalisation des payloads externes.
"""
from datetime import datetime
from uuid import uuid4

from app.domain.entities import ActivityType
from app.domain.services.ingest_normalizer import (
    map_activity_type,
    normalize_activity,
    parse_start_date,
)


def _strava_payload(**overrides):
    payload = {
        "id": 123456,
        "name": "Sortie du matin",
        "type": "Run",
        "start_date": "2026-03-10T07:00:00Z",
        "moving_time": 3000,
        "elapsed_time": 3200,
        "distance": 10000.0,
        "average_heartrate": 150.0,
        "max_heartrate": 175.0,
        "start_latlng": [48.85, 2.35],
        "device_name": "Garmin Forerunner 965",
    }
    payload.update(overrides)
    return payload


class TestParseStartDate:
    def test_utc_suffix(self):
        assert parse_start_date("2026-03-10T07:00:00Z") == datetime(2026, 3, 10, 7, 0)

    def test_offset_converted_to_utc(self):
        assert parse_start_date("2026-03-10T09:00:00+02:00") == datetime(2026, 3, 10, 7, 0)

    def test_invalid_values(self):
        assert parse_start_date("pas une date") is None
        assert parse_start_date("") is None
        assert parse_start_date(None) is None
        assert parse_start_date(1234) is None


class TestMapActivityType:
    def test_strava_types(self):
        assert map_activity_type("TrailRun") == ActivityType.RUN
        assert map_activity_type("VirtualRide") == ActivityType.RIDE
        assert map_activity_type("WeightTraining") == ActivityType.STRENGTH

    def test_canonical_value_case_insensitive(self):
        assert map_activity_type("swim") == ActivityType.SWIM

    def test_unknown_defaults_to_other(self):
        assert map_activity_type("Kitesurf") == ActivityType.OTHER
        assert map_activity_type(None) == ActivityType.OTHER


class TestNormalizeActivity:
    def test_full_payload(self):
        user_id = uuid4()
        result = normalize_activity(_strava_payload(), user_id, "strava")

        assert result["user_id"] == user_id
        assert result["source"] == "strava"
        assert result["external_id"] == "123456"
        assert result["activity_type"] == ActivityType.RUN
        assert result["start_ts"] == datetime(2026, 3, 10, 7, 0)
        assert result["duration_s"] == 3000
        assert result["distance_m"] == 10000.0
        assert result["has_hr"] is True
        assert result["has_gps"] is True
        assert result["has_power"] is False
        assert result["has_device"] is True
        assert result["warnings"] == []

    def test_elapsed_time_fallback(self):
        payload = _strava_payload()
        del payload["moving_time"]
        result = normalize_activity(payload, uuid4())
        assert result["duration_s"] == 3200

    def test_missing_fields_become_warnings(self):
        result = normalize_activity(
            {"id": "x1", "start_date": "bad", "distance": "loin", "average_heartrate": -3},
            uuid4(),
        )
        assert result["start_ts"] is None
        assert result["duration_s"] == 0
        assert result["distance_m"] == 0.0
        assert result["avg_hr"] is None
        assert result["has_hr"] is False
        assert "start_date" in result["warnings"]
        assert "duration" in result["warnings"]
        assert "distance" in result["warnings"]
        assert "average_heartrate" in result["warnings"]

    def test_nan_heart_rate_is_rejected(self):
        result = normalize_activity(_strava_payload(average_heartrate=float("nan")), uuid4())
        assert result["avg_hr"] is None
        assert result["has_hr"] is False

    def test_power_detection(self):
        result = normalize_activity(_strava_payload(type="Ride", average_watts=210), uuid4())
        assert result["has_power"] is True

    def test_not_a_dict(self):
        result = normalize_activity("oops", uuid4())
        assert result["external_id"] is None
        assert result["activity_type"] == ActivityType.OTHER

    def test_zone_minutes_cleaned(self):
        result = normalize_activity(
            _strava_payload(zone_minutes={"z2": 30, "z4": -1, "z5": "x"}), uuid4()
        )
        assert result["zone_minutes"] == {"z1": 0.0, "z2": 30.0, "z3": 0.0, "z4": 0.0, "z5": 0.0}
