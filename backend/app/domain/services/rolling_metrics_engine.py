"""
Métriques glissantes sur une série de charges quotidiennes (ancienne -> récente).

  ATL (7j)  : EMA, tau = 7,  alpha = 1 - e^(-1/7),  sur les 7 dernières valeurs
  CTL (28j) : EMA, tau = 28, alpha = 1 - e^(-1/28), sur les 28 dernières valeurs
  Monotonie : moyenne / (écart-type + 1) sur 7 jours, 1.0 si vide ou sans charge
  Strain    : somme 7 jours x monotonie, 0 si vide
"""
import math
import statistics
from dataclasses import asdict, dataclass
from datetime import date as date_type, timedelta
from typing import List, Sequence

# ---------------------------------------------------------------------------
# Constantes
# ---------------------------------------------------------------------------
ATL_TIME_CONSTANT = 7
CTL_TIME_CONSTANT = 28
MONOTONY_WINDOW = 7
ROLLING_WINDOW_DAYS = 35
EMPTY_MONOTONY = 1.0


@dataclass
class RollingSnapshot:
    atl7: float
    ctl28: float
    monotony: float
    strain: float
    weekly_load: float

    def to_dict(self):
        return asdict(self)


def _ema(loads: Sequence[float], time_constant: int) -> float:
    alpha = 1 - math.exp(-1 / time_constant)
    value = 0.0
    for load in loads[-time_constant:]:
        value = alpha * load + (1 - alpha) * value
    return value


def compute_atl(loads: Sequence[float]) -> float:
    return _ema(loads, ATL_TIME_CONSTANT)


def compute_ctl(loads: Sequence[float]) -> float:
    return _ema(loads, CTL_TIME_CONSTANT)


def compute_monotony(loads: Sequence[float]) -> float:
    recent = list(loads[-MONOTONY_WINDOW:])
    # Fenêtre vide ou semaine sans charge : entrée dégénérée
    if not recent or sum(recent) <= 0:
        return EMPTY_MONOTONY
    return statistics.fmean(recent) / (statistics.pstdev(recent) + 1)


def compute_strain(loads: Sequence[float], monotony: float) -> float:
    recent = loads[-MONOTONY_WINDOW:]
    if not recent:
        return 0.0
    return sum(recent) * monotony


def compute_rolling_metrics(loads: Sequence[float]) -> RollingSnapshot:
    loads = [max(float(load), 0.0) for load in loads]
    monotony = compute_monotony(loads)
    return RollingSnapshot(
        atl7=round(compute_atl(loads), 4),
        ctl28=round(compute_ctl(loads), 4),
        monotony=round(monotony, 4),
        strain=round(compute_strain(loads, monotony), 4),
        weekly_load=round(sum(loads[-MONOTONY_WINDOW:]), 4),
    )


def window_dates(as_of: date_type, days: int = ROLLING_WINDOW_DAYS) -> List[date_type]:
    """Les `days` dates calendaires se terminant à as_of (inclus), dans l'ordre."""
    return [as_of - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
