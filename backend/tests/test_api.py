"""
Tests des routes API (client FastAPI, base SQLite en memoire).
"""
from datetime import datetime, timedelta

RUN = {
    "id": 9001,
    "name": "Footing",
    "type": "Run",
    "start_date": "2026-03-10T07:00:00Z",
    "moving_time": 3600,
    "distance": 10000.0,
    "average_heartrate": 150.0,
}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["services"]["locks"] == "local"


def test_requires_authentication(client):
    assert client.post("/api/v1/ingest/strava", json={"activities": []}).status_code == 401
    bad = {"Authorization": "Bearer not-a-jwt"}
    assert client.get("/api/v1/aggregates/daily/2026-03-10", headers=bad).status_code == 401


class TestIngestRoute:
    def test_ingest_then_read_aggregates(self, client, auth_headers):
        response = client.post("/api/v1/ingest/strava", json={"activities": [RUN]}, headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["counts"]["imported"] == 1
        assert body["affected_dates"] == ["2026-03-10"]
        assert body["recompute"]["days"] == ["2026-03-10"]

        daily = client.get("/api/v1/aggregates/daily/2026-03-10", headers=auth_headers)
        assert daily.status_code == 200
        assert daily.json()["run_count"] == 1
        assert daily.json()["load_score"] == 10.0

        rolling = client.get("/api/v1/aggregates/rolling/2026-03-10", headers=auth_headers)
        assert rolling.status_code == 200
        assert rolling.json()["weekly_load"] == 10.0

    def test_reimport_is_skipped(self, client, auth_headers):
        client.post("/api/v1/ingest/strava", json={"activities": [RUN]}, headers=auth_headers)
        response = client.post("/api/v1/ingest/strava", json={"activities": [RUN]}, headers=auth_headers)
        body = response.json()
        assert body["results"][0]["status"] == "skipped_dup"
        assert body["recompute"] is None

    def test_unknown_source(self, client, auth_headers):
        response = client.post("/api/v1/ingest/myspace", json={"activities": [RUN]}, headers=auth_headers)
        assert response.status_code == 422


class TestAggregateRoutes:
    def test_missing_daily_aggregate(self, client, auth_headers):
        response = client.get("/api/v1/aggregates/daily/2026-01-01", headers=auth_headers)
        assert response.status_code == 404

    def test_rolling_computed_on_the_fly(self, client, auth_headers):
        response = client.get("/api/v1/aggregates/rolling/2026-01-01", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["atl7"] == 0.0

    def test_recompute(self, client, auth_headers):
        response = client.post(
            "/api/v1/aggregates/recompute", json={"dates": ["2026-03-10", "2026-03-11"]}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["days"] == ["2026-03-10", "2026-03-11"]

    def test_recompute_requires_dates(self, client, auth_headers):
        response = client.post("/api/v1/aggregates/recompute", json={"dates": []}, headers=auth_headers)
        assert response.status_code == 422


class TestGuardrailRoutes:
    def test_evaluate_with_explicit_inputs(self, client, auth_headers):
        response = client.post(
            "/api/v1/guardrails/evaluate",
            json={
                "load": {"atl7": 60, "ctl28": 60, "monotony": 2.1, "strain": 180},
                "yesterday": {"z4_min": 25, "z5_min": 5},
                "data_confidence": {"recent7days": 0.9},
            },
            headers=auth_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["suppress_heavy_lower"] is True
        assert body["recommend_deload"] is True
        assert body["conservative_mode"] is False

    def test_evaluate_without_history_is_conservative(self, client, auth_headers):
        response = client.post("/api/v1/guardrails/evaluate", json={}, headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["conservative_mode"] is True
        assert "load.atl7" in body["defaulted_fields"]

    def test_validate_context(self, client, auth_headers):
        response = client.post(
            "/api/v1/context/validate", json={"readiness_score": "NaN", "atl7": 300}, headers=auth_headers
        )
        assert response.status_code == 200
        body = response.json()
        assert body["values"]["readiness_score"] == 6
        assert body["values"]["atl7"] == 200
        assert "readiness_score" in body["defaulted_fields"]


class TestActivityRoutes:
    def test_list_and_match(self, client, auth_headers):
        start = (datetime.utcnow() - timedelta(days=1)).replace(microsecond=0)
        activity = {**RUN, "id": 77, "start_date": start.isoformat() + "Z"}
        client.post("/api/v1/ingest/strava", json={"activities": [activity]}, headers=auth_headers)

        listed = client.get("/api/v1/activities", headers=auth_headers)
        assert listed.status_code == 200
        assert len(listed.json()) == 1
        assert listed.json()[0]["canonical_source"] == "strava"

        session_ts = (start + timedelta(minutes=10)).isoformat()
        matched = client.post(
            "/api/v1/activities/match",
            json={"sessions": [{"id": "plan-1", "start_ts": session_ts}]},
            headers=auth_headers,
        )
        assert matched.status_code == 200
        assert matched.json()["matches"][0]["session_id"] == "plan-1"
        assert matched.json()["matches"][0]["delta_ms"] == 10 * 60 * 1000

    def test_invalid_range(self, client, auth_headers):
        response = client.get(
            "/api/v1/activities", params={"date_from": "2026-03-10", "date_to": "2026-03-01"}, headers=auth_headers
        )
        assert response.status_code == 422
