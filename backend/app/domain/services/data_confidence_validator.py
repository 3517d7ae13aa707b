"""
Validation défensive des entrées du moteur de garde-fous.

Chaque valeur NaN, mal typée ou hors bornes basses est remplacée par un
défaut conservateur nommé ; les valeurs valides passent telles quelles et ne
sont ramenées qu'au plancher / plafond. Les champs remplacés sont listés dans
`defaulted_fields` pour que l'appelant distingue le réel du défaut.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from app.domain.entities.guardrail import (
    ContextValidationResult,
    DataConfidence,
    LoadMetrics,
    TrendDirection,
    YesterdayZones,
)
from app.domain.services.ingest_normalizer import _as_number

logger = logging.getLogger(__name__)

CONSERVATIVE_DEFAULTS: Dict[str, Any] = {
    "readiness_score": 6,
    "energy_level": 6,
    "stress_level": 5,
    "atl7": 50,
    "ctl28": 100,
    "monotony": 1.2,
    "strain": 60,
    "average_rpe": 6.5,
    "progression_rate": 0.05,
    "consistency_score": 0.7,
    "training_frequency": 3,
    "workout_streak": 0,
    "missed_workouts": 0,
    "primary_goal": "general_fitness",
    "sport": "general_fitness",
    "season_phase": "offseason",
    "energy_trend": "stable",
    "stress_trend": "stable",
    "max_intensity": 8,
    "max_volume_increase": 0.1,
}

VALID_GOALS = (
    "general_fitness", "strength", "endurance", "muscle_gain",
    "weight_loss", "sport_specific", "injury_prevention",
)
VALID_SPORTS = (
    "general_fitness", "soccer", "basketball", "running",
    "cycling", "swimming", "tennis", "martial_arts",
)
VALID_SEASON_PHASES = ("offseason", "preseason", "inseason", "playoffs")
VALID_TRENDS = tuple(trend.value for trend in TrendDirection)


@dataclass(frozen=True)
class NumericRule:
    """Valeur < reject_below (ou == si reject_equal) => défaut, sinon clamp [floor, ceiling]."""
    reject_below: float = 0.0
    reject_equal: bool = False
    floor: Optional[float] = None
    ceiling: Optional[float] = None


NUMERIC_RULES: Dict[str, NumericRule] = {
    "readiness_score": NumericRule(reject_equal=True, floor=1, ceiling=10),
    "energy_level": NumericRule(reject_equal=True, floor=1, ceiling=10),
    "stress_level": NumericRule(reject_equal=True, floor=1, ceiling=10),
    "atl7": NumericRule(ceiling=200),
    "ctl28": NumericRule(ceiling=400),
    "monotony": NumericRule(reject_below=1.0, ceiling=5.0),
    "strain": NumericRule(ceiling=1000),
    "average_rpe": NumericRule(reject_equal=True, floor=1, ceiling=CONSERVATIVE_DEFAULTS["max_intensity"]),
    "progression_rate": NumericRule(ceiling=CONSERVATIVE_DEFAULTS["max_volume_increase"]),
    "consistency_score": NumericRule(floor=0, ceiling=1),
    "training_frequency": NumericRule(reject_equal=True, floor=1, ceiling=7),
    "workout_streak": NumericRule(),
    "missed_workouts": NumericRule(),
}

ENUM_RULES: Dict[str, Tuple[str, ...]] = {
    "primary_goal": VALID_GOALS,
    "sport": VALID_SPORTS,
    "season_phase": VALID_SEASON_PHASES,
    "energy_trend": VALID_TRENDS,
    "stress_trend": VALID_TRENDS,
}

LOAD_FIELDS = ("atl7", "ctl28", "monotony", "strain")


class DataConfidenceValidator:
    """Porte d'entrée : le moteur en aval ne reçoit jamais NaN, négatif ou mal typé."""

    def __init__(self, defaults: Optional[Dict[str, Any]] = None):
        self.defaults = {**CONSERVATIVE_DEFAULTS, **(defaults or {})}

    # ------------------------------------------------------------------
    # Champs unitaires
    # ------------------------------------------------------------------

    def _fallback(self, name: str, value: Any, defaulted: List[str], label: Optional[str] = None):
        label = label or name
        default = self.defaults[name]
        defaulted.append(label)
        logger.info(f"Valeur par defaut conservatrice pour {label}: {value!r} -> {default}")
        return default

    def validate_number(
        self, name: str, value: Any, defaulted: List[str], label: Optional[str] = None
    ) -> float:
        rule = NUMERIC_RULES[name]
        number = _as_number(value)
        if number is None or number < rule.reject_below or (
            rule.reject_equal and number == rule.reject_below
        ):
            return self._fallback(name, value, defaulted, label)
        if rule.floor is not None:
            number = max(number, rule.floor)
        if rule.ceiling is not None:
            number = min(number, rule.ceiling)
        return number

    def validate_choice(self, name: str, value: Any, defaulted: List[str]) -> str:
        if not isinstance(value, str) or value not in ENUM_RULES[name]:
            return self._fallback(name, value, defaulted)
        return value

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    @staticmethod
    def validate_training_history(history: Any) -> List[Dict[str, Any]]:
        if not isinstance(history, list):
            return []
        return [
            entry for entry in history
            if isinstance(entry, dict) and entry.get("date") and entry.get("type")
        ]

    @staticmethod
    def validate_recent_workouts(workouts: Any) -> List[Dict[str, Any]]:
        if not isinstance(workouts, list):
            return []
        valid = []
        for workout in workouts:
            if not isinstance(workout, dict) or not workout.get("date"):
                continue
            duration = _as_number(workout.get("duration"))
            if duration is not None and duration > 0:
                valid.append(workout)
        return valid

    @staticmethod
    def validate_progression_data(data: Any) -> Dict[str, float]:
        if not isinstance(data, dict):
            return {}
        validated = {}
        for key, value in data.items():
            number = _as_number(value)
            if number is not None and number >= 0:
                validated[key] = number
        return validated

    # ------------------------------------------------------------------
    # Contexte complet
    # ------------------------------------------------------------------

    def validate_context(self, raw: Any) -> ContextValidationResult:
        if not isinstance(raw, dict):
            logger.warning("Contexte invalide, valeurs par defaut conservatrices utilisees")
            raw = {}

        defaulted: List[str] = []
        values: Dict[str, Any] = {
            key: value for key, value in raw.items()
            if key not in NUMERIC_RULES and key not in ENUM_RULES
        }
        for name in NUMERIC_RULES:
            values[name] = self.validate_number(name, raw.get(name), defaulted)
        for name in ENUM_RULES:
            values[name] = self.validate_choice(name, raw.get(name), defaulted)

        values["training_history"] = self.validate_training_history(raw.get("training_history"))
        values["recent_workouts"] = self.validate_recent_workouts(raw.get("recent_workouts"))
        values["progression_data"] = self.validate_progression_data(raw.get("progression_data"))

        return ContextValidationResult(values=values, defaulted_fields=defaulted)

    def validate_guardrail_inputs(
        self,
        load: Any,
        yesterday: Any,
        data_confidence: Any,
    ) -> Tuple[LoadMetrics, YesterdayZones, DataConfidence, List[str]]:
        defaulted: List[str] = []
        load = load if isinstance(load, dict) else {}
        yesterday = yesterday if isinstance(yesterday, dict) else {}
        data_confidence = data_confidence if isinstance(data_confidence, dict) else {}

        load_metrics = LoadMetrics(**{
            name: self.validate_number(name, load.get(name), defaulted, label=f"load.{name}")
            for name in LOAD_FIELDS
        })

        zones = {}
        for name in ("z4_min", "z5_min"):
            minutes = _as_number(yesterday.get(name))
            if minutes is None or minutes < 0:
                defaulted.append(f"yesterday.{name}")
                minutes = 0.0
            zones[name] = minutes

        confidence = _as_number(data_confidence.get("recent7days"))
        if confidence is None or not 0.0 <= confidence <= 1.0:
            # Confiance inconnue : 0 déclenche le mode conservateur
            defaulted.append("data_confidence.recent7days")
            logger.info(f"Confiance des donnees invalide ({data_confidence.get('recent7days')!r}) -> 0.0")
            confidence = 0.0

        session_detail = _as_number(data_confidence.get("session_detail"))
        if session_detail is not None and not 0.0 <= session_detail <= 1.0:
            session_detail = None

        trend = data_confidence.get("trend")
        if not isinstance(trend, str) or trend not in VALID_TRENDS:
            if trend is not None:
                defaulted.append("data_confidence.trend")
            trend = TrendDirection.STABLE.value

        return (
            load_metrics,
            YesterdayZones(**zones),
            DataConfidence(
                recent7days=confidence,
                session_detail=session_detail,
                trend=TrendDirection(trend),
            ),
            defaulted,
        )

    # ------------------------------------------------------------------
    # Recommandations conservatrices
    # ------------------------------------------------------------------

    def apply_conservative_scaling(self, base_intensity: Any, confidence: Any = 0.5) -> float:
        """Intensité (RPE) réduite jusqu'à 50% quand la confiance est faible."""
        intensity = self.validate_number("average_rpe", base_intensity, [])
        confidence = _as_number(confidence)
        confidence = min(max(confidence, 0.0), 1.0) if confidence is not None else 0.0
        scaled = intensity * (0.5 + confidence * 0.5)
        return min(scaled, self.defaults["max_intensity"])

    def conservative_recommendations(self, raw: Any) -> Dict[str, Any]:
        result = self.validate_context(raw)
        context = result.values

        intensity = "moderate"
        if context["readiness_score"] <= 4:
            intensity = "light"
        elif context["readiness_score"] >= 8:
            intensity = "moderate-high"

        volume = "moderate"
        if context["atl7"] > 150:
            volume = "low"
        elif context["atl7"] < 30:
            volume = "moderate-high"

        return {
            "intensity": intensity,
            "volume": volume,
            "duration_min": 45,
            "focus": "general",
            "notes": "Seance prudente basee sur la forme du jour et la charge recente.",
            "safety_flags": self.safety_flags(context),
            "defaulted_fields": result.defaulted_fields,
        }

    @staticmethod
    def safety_flags(context: Dict[str, Any]) -> List[str]:
        flags = []
        if context["readiness_score"] <= 4:
            flags.append("Forme basse : seance legere ou repos")
        if context["atl7"] > 150:
            flags.append("Charge aigue elevee : reduire le volume")
        if context["stress_level"] >= 8:
            flags.append("Stress eleve : prioriser la recuperation")
        if context["missed_workouts"] >= 3:
            flags.append("Plusieurs seances manquees : reprise progressive")
        return flags


data_confidence_validator = DataConfidenceValidator()
