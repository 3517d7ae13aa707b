"""
Entité CanonicalActivity - Domain Layer
Une séance physique unique, indépendante de la source qui l'a fournie.
"""
from sqlmodel import SQLModel, Field, JSON, Column, UniqueConstraint
import sqlalchemy as sa
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID, uuid4
from enum import Enum


class ActivitySource(str, Enum):
    """Source de l'activité"""
    MANUAL = "manual"
    STRAVA = "strava"
    GARMIN = "garmin"
    POLAR = "polar"
    FITBIT = "fitbit"
    APPLE_HEALTH = "apple_health"


class ActivityType(str, Enum):
    """Types d'activités canoniques"""
    RUN = "Run"
    RIDE = "Ride"
    SWIM = "Swim"
    STRENGTH = "Strength"
    OTHER = "Other"


class CanonicalActivityBase(SQLModel):
    """Modèle de base pour CanonicalActivity"""
    activity_type: ActivityType = ActivityType.OTHER
    name: Optional[str] = None
    start_ts: Optional[datetime] = Field(default=None, index=True)  # UTC naïf
    duration_s: int = 0
    distance_m: float = 0.0
    avg_hr: Optional[float] = None
    max_hr: Optional[float] = None
    has_hr: bool = False
    has_gps: bool = False
    has_power: bool = False
    has_device: bool = False
    device_name: Optional[str] = None
    calories: Optional[float] = None


class CanonicalActivity(CanonicalActivityBase, table=True):
    """Activité canonique persistée, une seule par (user_id, dedup_hash)"""
    __table_args__ = (
        UniqueConstraint("user_id", "dedup_hash", name="uq_canonical_activity_user_hash"),
    )

    id: Optional[UUID] = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(index=True)

    canonical_source: str = Field(default=ActivitySource.MANUAL.value)
    canonical_external_id: Optional[str] = None
    dedup_hash: str = Field(index=True)

    # Texte libre saisi manuellement, préservé lors des fusions
    notes: Optional[str] = Field(sa_column=Column(sa.Text), default=None)

    # Minutes par zone fournies par la source : {"z1": .., ..., "z5": ..}
    zone_minutes: Optional[Dict[str, float]] = Field(sa_column=Column(JSON), default=None)

    # Multi-source : {"manual": {"external_id": "m_1", "richness": 0.3}, "strava": {...}}
    richness: float = 0.0
    source_set: Dict[str, Dict[str, Any]] = Field(sa_column=Column(JSON), default_factory=dict)
    merged_from: List[Dict[str, Any]] = Field(sa_column=Column(JSON), default_factory=list)

    is_excluded: bool = False

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class CanonicalActivityRead(CanonicalActivityBase):
    """Schéma pour lire une activité canonique (réponse API)"""
    id: UUID
    user_id: UUID
    canonical_source: str
    canonical_external_id: Optional[str]
    notes: Optional[str]
    richness: float
    source_set: Dict[str, Dict[str, Any]]
    merged_from: List[Dict[str, Any]]
    is_excluded: bool
    created_at: datetime
    updated_at: datetime


class SessionRef(SQLModel):
    """Séance saisie ou planifiée dans l'app, candidate au rapprochement"""
    id: str
    start_ts: datetime


class MatchRequest(SQLModel):
    sessions: List[SessionRef] = Field(default_factory=list)
    days_back: int = Field(default=7, ge=1, le=365)
    match_window_ms: Optional[int] = Field(default=None, gt=0)
