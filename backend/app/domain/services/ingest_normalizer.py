"""
Normalisation des payloads d'activités externes vers le schéma canonique.

Le format d'entrée est celui de Strava (id, type, start_date, moving_time, ...),
utilisé aussi pour les autres sources et la saisie manuelle. Aucun champ absent
ou mal typé ne lève d'exception : il est remplacé par 0 / None et son nom est
ajouté à `warnings`.
"""
import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from app.domain.entities.activity import ActivitySource, ActivityType

logger = logging.getLogger(__name__)

# Types Strava -> type canonique
STRAVA_TYPE_MAP = {
    "Run": ActivityType.RUN,
    "TrailRun": ActivityType.RUN,
    "VirtualRun": ActivityType.RUN,
    "Ride": ActivityType.RIDE,
    "VirtualRide": ActivityType.RIDE,
    "MountainBikeRide": ActivityType.RIDE,
    "GravelRide": ActivityType.RIDE,
    "EBikeRide": ActivityType.RIDE,
    "Swim": ActivityType.SWIM,
    "WeightTraining": ActivityType.STRENGTH,
    "Workout": ActivityType.STRENGTH,
    "Crossfit": ActivityType.STRENGTH,
    "Strength": ActivityType.STRENGTH,
}

ZONE_KEYS = ("z1", "z2", "z3", "z4", "z5")


def _as_number(value: Any) -> Optional[float]:
    """Retourne un float fini, ou None (bool, NaN, inf, str... sont rejetés)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return float(value)


def parse_start_date(value: Any) -> Optional[datetime]:
    """Parse une date ISO-8601 et la convertit en UTC naïf. None si invalide."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def map_activity_type(raw_type: Any) -> ActivityType:
    if isinstance(raw_type, str):
        if raw_type in STRAVA_TYPE_MAP:
            return STRAVA_TYPE_MAP[raw_type]
        # Valeur canonique déjà normalisée (ex: saisie manuelle)
        for activity_type in ActivityType:
            if raw_type.lower() == activity_type.value.lower():
                return activity_type
    return ActivityType.OTHER


def _parse_zone_minutes(value: Any) -> Optional[Dict[str, float]]:
    if not isinstance(value, dict):
        return None
    zones = {}
    for key in ZONE_KEYS:
        minutes = _as_number(value.get(key))
        zones[key] = minutes if minutes is not None and minutes > 0 else 0.0
    return zones


def normalize_activity(
    raw: Dict[str, Any],
    user_id: UUID,
    source: str = ActivitySource.STRAVA.value,
) -> Dict[str, Any]:
    """Convertit un payload brut en dict compatible CanonicalActivity.

    Les clés `source`, `external_id` et `warnings` s'ajoutent aux champs
    de l'entité. Fonction pure.
    """
    if not isinstance(raw, dict):
        raw = {}
    warnings: List[str] = []

    raw_id = raw.get("id")
    external_id = str(raw_id) if raw_id not in (None, "") else None

    start_ts = parse_start_date(raw.get("start_date"))
    if start_ts is None:
        warnings.append("start_date")

    # Durée : moving_time, sinon elapsed_time, sinon 0
    moving_time = _as_number(raw.get("moving_time"))
    elapsed_time = _as_number(raw.get("elapsed_time"))
    duration = moving_time if moving_time is not None else elapsed_time
    if duration is None or duration < 0:
        warnings.append("duration")
        duration = 0.0

    distance = _as_number(raw.get("distance"))
    if distance is None or distance < 0:
        if raw.get("distance") is not None:
            warnings.append("distance")
        distance = 0.0

    avg_hr = _as_number(raw.get("average_heartrate"))
    if avg_hr is not None and avg_hr <= 0:
        warnings.append("average_heartrate")
        avg_hr = None
    max_hr = _as_number(raw.get("max_heartrate"))
    if max_hr is not None and max_hr <= 0:
        warnings.append("max_heartrate")
        max_hr = None

    calories = _as_number(raw.get("calories"))
    if calories is not None and calories < 0:
        warnings.append("calories")
        calories = None

    device_name = raw.get("device_name") if isinstance(raw.get("device_name"), str) else None
    name = raw.get("name") if isinstance(raw.get("name"), str) else None
    notes = raw.get("notes", raw.get("description"))
    if not isinstance(notes, str):
        notes = None

    return {
        "user_id": user_id,
        "source": source,
        "external_id": external_id,
        "activity_type": map_activity_type(raw.get("type")),
        "name": name,
        "notes": notes,
        "start_ts": start_ts,
        "duration_s": int(duration),
        "distance_m": distance,
        "avg_hr": avg_hr,
        "max_hr": max_hr,
        "has_hr": bool(avg_hr),
        "has_gps": bool(raw.get("start_latlng")),
        "has_power": bool(raw.get("device_watts") or _as_number(raw.get("average_watts"))),
        "has_device": bool(device_name),
        "device_name": device_name,
        "calories": calories,
        "zone_minutes": _parse_zone_minutes(raw.get("zone_minutes")),
        "warnings": warnings,
    }
