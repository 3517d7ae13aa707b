"""
Agrégation quotidienne : TRIMP, TSS/charge, minutes par zone, volume, comptages.

summarize_day est un fold pur sur les activités d'une journée locale : mêmes
entrées, même résultat (idempotence du recalcul).
"""
import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import date as date_type, datetime, time, timedelta, timezone
from typing import Dict, Iterable, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.domain.entities.activity import ActivityType, CanonicalActivity

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constantes
# ---------------------------------------------------------------------------
TRIMP_BASE = 0.64
TRIMP_EXPONENT = 1.92

# Facteur TRIMP par minute quand la FC est absente
TRIMP_TYPE_FACTORS = {
    ActivityType.RUN: 1.0,
    ActivityType.RIDE: 0.8,
    ActivityType.SWIM: 1.2,
    ActivityType.STRENGTH: 0.6,
    ActivityType.OTHER: 0.5,
}

# Répartition estimée du temps par zone quand seule la FC moyenne est connue
ESTIMATED_ZONE_SPLIT = {"z1": 0.0, "z2": 0.3, "z3": 0.4, "z4": 0.2, "z5": 0.1}

COUNT_FIELDS = {
    ActivityType.RUN: "run_count",
    ActivityType.RIDE: "ride_count",
    ActivityType.SWIM: "swim_count",
    ActivityType.STRENGTH: "strength_count",
    ActivityType.OTHER: "other_count",
}


@dataclass(frozen=True)
class HRProfile:
    max_hr: float = 190.0
    rest_hr: float = 60.0


@dataclass
class DailySummary:
    trimp: float = 0.0
    tss: float = 0.0
    load_score: float = 0.0
    z1_min: float = 0.0
    z2_min: float = 0.0
    z3_min: float = 0.0
    z4_min: float = 0.0
    z5_min: float = 0.0
    distance_m: float = 0.0
    duration_s: int = 0
    run_count: int = 0
    ride_count: int = 0
    swim_count: int = 0
    strength_count: int = 0
    other_count: int = 0
    activity_count: int = 0
    per_activity_load: Dict[str, float] = field(default_factory=dict)

    def aggregate_fields(self) -> dict:
        values = asdict(self)
        values.pop("per_activity_load")
        return values


# ===================================================================
# Fuseau horaire
# ===================================================================

def resolve_timezone(tz_name: Optional[str]):
    if not tz_name:
        return timezone.utc
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Fuseau horaire inconnu '{tz_name}', UTC utilise")
        return timezone.utc


def local_date_of(start_ts: datetime, tz) -> date_type:
    """Date locale d'un timestamp UTC naïf."""
    return start_ts.replace(tzinfo=timezone.utc).astimezone(tz).date()


def local_day_bounds(day: date_type, tz) -> Tuple[datetime, datetime]:
    """Bornes UTC naïves [début, fin) de la journée locale."""
    start_local = datetime.combine(day, time.min).replace(tzinfo=tz)
    end_local = datetime.combine(day + timedelta(days=1), time.min).replace(tzinfo=tz)
    return (
        start_local.astimezone(timezone.utc).replace(tzinfo=None),
        end_local.astimezone(timezone.utc).replace(tzinfo=None),
    )


# ===================================================================
# Charge par activité
# ===================================================================

def _hours_and_km(activity: CanonicalActivity) -> Tuple[float, float]:
    return (activity.duration_s or 0) / 3600, (activity.distance_m or 0.0) / 1000


def heuristic_load(activity: CanonicalActivity) -> float:
    hours, km = _hours_and_km(activity)
    return hours * 12 + km * 2


def activity_load(activity: CanonicalActivity, hr_profile: HRProfile) -> float:
    """rTSS / hrTSS / heuristique selon le type d'activité."""
    hours, km = _hours_and_km(activity)
    if hours <= 0:
        return 0.0

    match activity.activity_type:
        case ActivityType.RUN:
            if km <= 0:
                return heuristic_load(activity)
            speed_kmh = km / hours
            return hours * 10 * (speed_kmh / 10) ** 1.5
        case ActivityType.RIDE:
            # hrTSS : IF = part de la réserve cardiaque, bornée à [0, 1]
            reserve = hr_profile.max_hr - hr_profile.rest_hr
            if not activity.avg_hr or reserve <= 0:
                return heuristic_load(activity)
            intensity = min(max((activity.avg_hr - hr_profile.rest_hr) / reserve, 0.0), 1.0)
            return hours * intensity ** 2 * 100
        case ActivityType.SWIM:
            return hours * 15 + km * 5
        case ActivityType.STRENGTH:
            return hours * 20
        case _:
            return heuristic_load(activity)


def activity_trimp(activity: CanonicalActivity, hr_profile: HRProfile) -> float:
    """TRIMP de Banister : minutes x 0.64 x e^(1.92 x HRR)."""
    minutes = (activity.duration_s or 0) / 60
    if minutes <= 0:
        return 0.0
    if not activity.avg_hr:
        return minutes * TRIMP_TYPE_FACTORS.get(activity.activity_type, 0.5)

    reserve = hr_profile.max_hr - hr_profile.rest_hr
    if reserve <= 0:
        return minutes * TRIMP_TYPE_FACTORS.get(activity.activity_type, 0.5)
    hrr = min(max((activity.avg_hr - hr_profile.rest_hr) / reserve, 0.0), 1.0)
    return minutes * TRIMP_BASE * math.exp(TRIMP_EXPONENT * hrr)


def activity_zone_minutes(activity: CanonicalActivity) -> Dict[str, float]:
    if activity.zone_minutes:
        return {key: float(activity.zone_minutes.get(key) or 0.0) for key in ESTIMATED_ZONE_SPLIT}
    if activity.has_hr and activity.avg_hr:
        minutes = (activity.duration_s or 0) / 60
        return {key: minutes * share for key, share in ESTIMATED_ZONE_SPLIT.items()}
    return {key: 0.0 for key in ESTIMATED_ZONE_SPLIT}


# ===================================================================
# Fold quotidien
# ===================================================================

def summarize_day(
    activities: Iterable[CanonicalActivity],
    day: date_type,
    tz=timezone.utc,
    hr_profile: HRProfile = HRProfile(),
) -> DailySummary:
    """Agrège les activités non exclues dont start_ts tombe sur `day` (heure locale)."""
    summary = DailySummary()
    zones = {key: 0.0 for key in ESTIMATED_ZONE_SPLIT}

    for activity in activities:
        if activity.is_excluded or activity.start_ts is None:
            continue
        if local_date_of(activity.start_ts, tz) != day:
            continue

        load = activity_load(activity, hr_profile)
        summary.tss += load
        summary.trimp += activity_trimp(activity, hr_profile)
        summary.per_activity_load[str(activity.id)] = round(load, 2)

        for key, minutes in activity_zone_minutes(activity).items():
            zones[key] += minutes

        summary.distance_m += activity.distance_m or 0.0
        summary.duration_s += activity.duration_s or 0
        count_field = COUNT_FIELDS.get(activity.activity_type, "other_count")
        setattr(summary, count_field, getattr(summary, count_field) + 1)
        summary.activity_count += 1

    summary.trimp = round(summary.trimp, 2)
    summary.tss = round(summary.tss, 2)
    summary.load_score = summary.tss
    summary.distance_m = round(summary.distance_m, 2)
    for key, minutes in zones.items():
        setattr(summary, f"{key}_min", round(minutes, 2))
    return summary
