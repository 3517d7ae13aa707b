"""
Orchestration des recalculs : agrégats quotidiens puis métriques glissantes.

Chaque recalcul d'un jour se fait sous verrou (user_id, date), chaque
recalcul glissant sous verrou par utilisateur. Un échec marque la date
obsolète (is_stale) puis remonte l'erreur : jamais de retry infini.
"""
import logging
from datetime import date as date_type, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from app.core.locks import LockNotAcquired, build_lock_provider, day_lock_key, rolling_lock_key
from app.core.settings import get_settings
from app.domain.entities.training_load import DailyAggregate, RollingMetrics
from app.domain.errors import RecomputeDeferredError, RecomputeFailureError
from app.domain.services.activity_store import ActivityStore
from app.domain.services.daily_aggregator import (
    HRProfile,
    local_day_bounds,
    resolve_timezone,
    summarize_day,
)
from app.domain.services.rolling_metrics_engine import compute_rolling_metrics, window_dates

logger = logging.getLogger(__name__)


class AggregationService:
    """Service de recalcul des agrégats et métriques glissantes"""

    def __init__(
        self,
        lock_provider=None,
        tz_name: Optional[str] = None,
        hr_profile: Optional[HRProfile] = None,
        window_days: Optional[int] = None,
    ):
        settings = get_settings()
        self._lock_provider = lock_provider
        self.tz = resolve_timezone(tz_name or settings.DEFAULT_TIMEZONE)
        self.hr_profile = hr_profile or HRProfile(
            max_hr=settings.DEFAULT_MAX_HR, rest_hr=settings.DEFAULT_REST_HR
        )
        self.window_days = window_days or settings.ROLLING_WINDOW_DAYS

    @property
    def lock_provider(self):
        if self._lock_provider is None:
            self._lock_provider = build_lock_provider()
        return self._lock_provider

    # ------------------------------------------------------------------
    # Agrégat quotidien
    # ------------------------------------------------------------------

    def recompute_day(self, store: ActivityStore, user_id: UUID, day: date_type) -> DailyAggregate:
        """Recalcul complet de l'agrégat (user_id, day)."""
        try:
            with self.lock_provider.hold(day_lock_key(user_id, day)):
                start_utc, end_utc = local_day_bounds(day, self.tz)
                activities = store.list_activities_between(user_id, start_utc, end_utc)
                summary = summarize_day(activities, day, self.tz, self.hr_profile)

                aggregate = store.get_aggregate(user_id, day) or DailyAggregate(user_id=user_id, date=day)
                for key, value in summary.aggregate_fields().items():
                    setattr(aggregate, key, value)
                aggregate.is_stale = False
                aggregate.last_recalc_ts = datetime.utcnow()
                return store.put_aggregate(aggregate)
        except LockNotAcquired as exc:
            self._mark_stale(store, user_id, day)
            raise RecomputeDeferredError(user_id, day, str(exc)) from exc
        except Exception as exc:
            logger.error(f"Echec recalcul agregat {user_id} {day}: {exc}")
            store.rollback()
            self._mark_stale(store, user_id, day)
            raise RecomputeFailureError(user_id, day, str(exc)) from exc

    def _mark_stale(self, store: ActivityStore, user_id: UUID, day: date_type) -> None:
        try:
            aggregate = store.get_aggregate(user_id, day) or DailyAggregate(user_id=user_id, date=day)
            aggregate.is_stale = True
            store.put_aggregate(aggregate)
        except Exception as exc:
            store.rollback()
            logger.error(f"Impossible de marquer {user_id} {day} obsolete: {exc}")

    # ------------------------------------------------------------------
    # Métriques glissantes
    # ------------------------------------------------------------------

    def recompute_rolling(self, store: ActivityStore, user_id: UUID, as_of: date_type) -> RollingMetrics:
        """Instantané des métriques sur la fenêtre se terminant à as_of."""
        try:
            with self.lock_provider.hold(rolling_lock_key(user_id)):
                dates = window_dates(as_of, self.window_days)
                by_date = {
                    aggregate.date: aggregate.load_score
                    for aggregate in store.list_aggregates(user_id, dates[0], dates[-1])
                }
                # Jour sans agrégat = charge nulle
                loads = [by_date.get(day, 0.0) for day in dates]
                metrics = compute_rolling_metrics(loads)

                snapshot = store.get_rolling(user_id, as_of) or RollingMetrics(
                    user_id=user_id, as_of_date=as_of
                )
                for key, value in metrics.to_dict().items():
                    setattr(snapshot, key, value)
                snapshot.affected_dates = [day.isoformat() for day in dates]
                snapshot.computed_at = datetime.utcnow()
                return store.put_rolling(snapshot)
        except LockNotAcquired as exc:
            raise RecomputeDeferredError(user_id, as_of, str(exc)) from exc
        except Exception as exc:
            logger.error(f"Echec recalcul metriques glissantes {user_id} {as_of}: {exc}")
            store.rollback()
            raise RecomputeFailureError(user_id, as_of, str(exc)) from exc

    # ------------------------------------------------------------------
    # Entrées du moteur de garde-fous
    # ------------------------------------------------------------------

    def guardrail_inputs(self, store: ActivityStore, user_id: UUID, today: date_type) -> Dict[str, Any]:
        """Charge (dernier instantané), zones d'hier et part des séances avec FC sur 7 jours.
        Une valeur absente est laissée à None : le validateur appliquera son défaut."""
        snapshot = store.latest_rolling(user_id, today)
        load = None
        if snapshot:
            load = {
                "atl7": snapshot.atl7,
                "ctl28": snapshot.ctl28,
                "monotony": snapshot.monotony,
                "strain": snapshot.strain,
            }

        yesterday_aggregate = store.get_aggregate(user_id, today - timedelta(days=1))
        yesterday = None
        if yesterday_aggregate:
            yesterday = {"z4_min": yesterday_aggregate.z4_min, "z5_min": yesterday_aggregate.z5_min}

        start_utc, _ = local_day_bounds(today - timedelta(days=6), self.tz)
        _, end_utc = local_day_bounds(today, self.tz)
        recent = [a for a in store.list_activities_between(user_id, start_utc, end_utc) if not a.is_excluded]
        data_confidence = None
        if recent:
            data_confidence = {"recent7days": round(sum(1 for a in recent if a.has_hr) / len(recent), 4)}

        return {"load": load, "yesterday": yesterday, "data_confidence": data_confidence}

    # ------------------------------------------------------------------
    # Lot de dates
    # ------------------------------------------------------------------

    def rolling_targets(
        self,
        store: ActivityStore,
        user_id: UUID,
        dates: Iterable[date_type],
        today: Optional[date_type] = None,
    ) -> List[date_type]:
        """Instantanés dont la fenêtre contient une date modifiée : chaque date
        modifiée, aujourd'hui, et tout instantané déjà stocké dans les
        window_days jours qui suivent."""
        changed = set(dates)
        targets = set(changed)
        today = today or datetime.utcnow().date()
        if changed and any(0 <= (today - day).days < self.window_days for day in changed):
            targets.add(today)
        for day in changed:
            horizon = day + timedelta(days=self.window_days - 1)
            targets.update(
                snapshot.as_of_date
                for snapshot in store.list_rolling(user_id, day + timedelta(days=1), horizon)
            )
        return sorted(targets)

    def recompute_dates(
        self,
        store: ActivityStore,
        user_id: UUID,
        dates: Iterable[date_type],
        today: Optional[date_type] = None,
    ) -> Dict[str, Any]:
        """Recalcule les jours puis les instantanés glissants. Continue après un échec
        et rapporte les dates en erreur."""
        days = sorted(set(dates))
        recomputed: List[str] = []
        failures: List[Dict[str, Any]] = []

        for day in days:
            try:
                self.recompute_day(store, user_id, day)
                recomputed.append(day.isoformat())
            except RecomputeFailureError as exc:
                failures.append({"date": day.isoformat(), "kind": exc.kind, "reason": exc.reason})

        rolling: List[str] = []
        for as_of in self.rolling_targets(store, user_id, days, today):
            try:
                self.recompute_rolling(store, user_id, as_of)
                rolling.append(as_of.isoformat())
            except RecomputeFailureError as exc:
                failures.append({
                    "date": as_of.isoformat(), "kind": exc.kind, "reason": exc.reason, "rolling": True,
                })

        if failures:
            logger.warning(f"User {user_id}: {len(failures)} recalcul(s) en echec: {failures}")
        logger.info(f"User {user_id}: {len(recomputed)} jour(s) et {len(rolling)} instantane(s) recalcules")
        return {"days": recomputed, "rolling": rolling, "failures": failures}


aggregation_service = AggregationService()
