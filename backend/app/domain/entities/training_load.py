"""
Entités de charge d'entrainement - Domain Layer
Agrégats quotidiens (TRIMP, TSS, zones) et métriques glissantes (ATL, CTL, monotonie, strain).
"""
from sqlmodel import SQLModel, Field, JSON, Column, UniqueConstraint
from typing import List, Optional
from uuid import UUID, uuid4
from datetime import date as date_type, datetime


class DailyAggregate(SQLModel, table=True):
    """Agrégat quotidien par utilisateur, toujours recalculé en entier."""
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_daily_aggregate_user_date"),
    )

    id: Optional[UUID] = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(index=True)
    date: date_type = Field(index=True)

    # Charge
    trimp: float = 0.0
    tss: float = 0.0
    load_score: float = 0.0

    # Minutes par zone
    z1_min: float = 0.0
    z2_min: float = 0.0
    z3_min: float = 0.0
    z4_min: float = 0.0
    z5_min: float = 0.0

    # Volume
    distance_m: float = 0.0
    duration_s: int = 0

    # Comptages par type
    run_count: int = 0
    ride_count: int = 0
    swim_count: int = 0
    strength_count: int = 0
    other_count: int = 0
    activity_count: int = 0

    # Vrai si le dernier recalcul a échoué ou a été différé
    is_stale: bool = False
    last_recalc_ts: datetime = Field(default_factory=datetime.utcnow)


class DailyAggregateRead(SQLModel):
    """Schéma pour lire un agrégat quotidien (réponse API)."""
    user_id: UUID
    date: date_type
    trimp: float
    tss: float
    load_score: float
    z1_min: float
    z2_min: float
    z3_min: float
    z4_min: float
    z5_min: float
    distance_m: float
    duration_s: int
    run_count: int
    ride_count: int
    swim_count: int
    strength_count: int
    other_count: int
    activity_count: int
    is_stale: bool
    last_recalc_ts: datetime


class RollingMetrics(SQLModel, table=True):
    """Instantané des métriques glissantes pour (user_id, as_of_date). Dérivé, jamais édité."""
    __table_args__ = (
        UniqueConstraint("user_id", "as_of_date", name="uq_rolling_metrics_user_date"),
    )

    id: Optional[UUID] = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(index=True)
    as_of_date: date_type = Field(index=True)

    atl7: float = 0.0
    ctl28: float = 0.0
    monotony: float = 1.0
    strain: float = 0.0
    weekly_load: float = 0.0

    # Fenêtre de dates considérée (ISO), pour l'audit
    affected_dates: List[str] = Field(sa_column=Column(JSON), default_factory=list)

    computed_at: datetime = Field(default_factory=datetime.utcnow)


class RollingMetricsRead(SQLModel):
    """Schéma pour lire un instantané de métriques glissantes (réponse API)."""
    user_id: UUID
    as_of_date: date_type
    atl7: float
    ctl28: float
    monotony: float
    strain: float
    weekly_load: float
    affected_dates: List[str]
    computed_at: datetime


class RecomputeRequest(SQLModel):
    """Dates locales à recalculer"""
    dates: List[date_type] = Field(default_factory=list)
