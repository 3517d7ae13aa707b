"""
Schémas du moteur de garde-fous - Domain Layer
Contexte éphémère construit à chaque génération de plan, jamais persisté.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlmodel import SQLModel, Field


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    VOLATILE = "volatile"


class AdjustmentKind(str, Enum):
    """Types d'ajustements que le moteur peut produire"""
    HEAVY_LOWER_SUPPRESSION = "heavy_lower_suppression"
    DELOAD = "deload"
    INTENSITY_SCALING = "intensity_scaling"
    CONSERVATIVE_MODE = "conservative_mode"


class LoadMetrics(SQLModel):
    atl7: float
    ctl28: float
    monotony: float
    strain: float


class YesterdayZones(SQLModel):
    z4_min: float = 0.0
    z5_min: float = 0.0


class DataConfidence(SQLModel):
    recent7days: float = 0.0
    session_detail: Optional[float] = None
    trend: TrendDirection = TrendDirection.STABLE


class LoadAdjustment(SQLModel):
    kind: AdjustmentKind
    message: str


class GuardrailRequest(SQLModel):
    """Entrée brute : chaque champ peut être absent, mal typé ou hors bornes."""
    load: Optional[Dict[str, Any]] = None
    yesterday: Optional[Dict[str, Any]] = None
    data_confidence: Optional[Dict[str, Any]] = None
    intensity_scale: Optional[Any] = None


class GuardrailContext(SQLModel):
    """Contexte validé, augmenté des décisions et de leurs justifications."""
    load: LoadMetrics
    yesterday: YesterdayZones
    data_confidence: DataConfidence

    intensity_scale: float = 1.0
    suppress_heavy_lower: bool = False
    recommend_deload: bool = False
    conservative_mode: bool = False
    readiness_proxy: float = 1.0

    # Justifications lisibles, dans l'ordre des règles déclenchées
    load_adjustments: List[str] = Field(default_factory=list)
    adjustments: List[LoadAdjustment] = Field(default_factory=list)

    # Champs remplacés par une valeur par défaut conservatrice
    defaulted_fields: List[str] = Field(default_factory=list)


class ContextValidationResult(SQLModel):
    values: Dict[str, Any]
    defaulted_fields: List[str]
