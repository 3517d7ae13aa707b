"""
Score de richesse d'une activité (complétude des données), dans [0, 1].
Sert d'arbitre entre deux versions d'une même séance : la plus riche gagne,
l'égalité ne fusionne pas.
"""
from typing import Any, Mapping

HR_WEIGHT = 0.4
GPS_WEIGHT = 0.2
POWER_WEIGHT = 0.2
DEVICE_WEIGHT = 0.1
MAX_RICHNESS = 1.0


def richness_score(
    has_hr: bool = False,
    has_gps: bool = False,
    has_power: bool = False,
    has_device: bool = False,
) -> float:
    score = (
        HR_WEIGHT * bool(has_hr)
        + GPS_WEIGHT * bool(has_gps)
        + POWER_WEIGHT * bool(has_power)
        + DEVICE_WEIGHT * bool(has_device)
    )
    # Arrondi : 0.4 + 0.2 + 0.2 + 0.1 doit valoir exactement 0.9
    return round(min(score, MAX_RICHNESS), 4)


def richness_of(activity: Any) -> float:
    """Score d'un dict normalisé ou d'une CanonicalActivity."""
    if isinstance(activity, Mapping):
        get = activity.get
    else:
        def get(key, default=None):
            return getattr(activity, key, default)
    return richness_score(
        has_hr=get("has_hr", False),
        has_gps=get("has_gps", False),
        has_power=get("has_power", False),
        has_device=get("has_device", False),
    )
