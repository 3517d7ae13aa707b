"""
Initialisation des entités du domaine
Importe toutes les tables pour les enregistrer dans la metadata SQLModel
"""

from .activity import (
    CanonicalActivity, CanonicalActivityRead, ActivitySource, ActivityType, MatchRequest, SessionRef,
)
from .training_load import (
    DailyAggregate, DailyAggregateRead, RecomputeRequest, RollingMetrics, RollingMetricsRead,
)
from .ingest_log import IngestLog, IngestRequest, IngestStatus
from .guardrail import (
    AdjustmentKind, ContextValidationResult, DataConfidence, GuardrailContext,
    GuardrailRequest, LoadAdjustment, LoadMetrics, TrendDirection, YesterdayZones,
)

__all__ = [
    "CanonicalActivity", "CanonicalActivityRead", "ActivitySource", "ActivityType", "MatchRequest", "SessionRef",
    "DailyAggregate", "DailyAggregateRead", "RecomputeRequest", "RollingMetrics", "RollingMetricsRead",
    "IngestLog", "IngestRequest", "IngestStatus",
    "AdjustmentKind", "ContextValidationResult", "DataConfidence", "GuardrailContext",
    "GuardrailRequest", "LoadAdjustment", "LoadMetrics", "TrendDirection", "YesterdayZones",
]
