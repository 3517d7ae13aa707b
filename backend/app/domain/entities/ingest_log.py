"""
Entité IngestLog - Domain Layer
Trace d'audit de chaque activité reçue lors d'un import.
"""
from enum import Enum
from sqlmodel import SQLModel, Field, JSON, Column
import sqlalchemy as sa
from typing import Optional, Dict, Any, List
from uuid import UUID, uuid4
from datetime import datetime


class IngestStatus(str, Enum):
    """Résultat du traitement d'une activité importée"""
    IMPORTED = "imported"
    MERGED = "merged"
    SKIPPED_DUP = "skipped_dup"
    ERROR = "error"


class IngestLog(SQLModel, table=True):
    """Une ligne par activité traitée."""
    id: Optional[UUID] = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(index=True)
    provider: str = Field(index=True)
    external_id: Optional[str] = None
    raw_sha256: Optional[str] = Field(default=None, index=True)
    status: IngestStatus
    error_message: Optional[str] = Field(sa_column=Column(sa.Text), default=None)
    details: Optional[Dict[str, Any]] = Field(sa_column=Column(JSON), default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class IngestRequest(SQLModel):
    """Lot d'activités brutes (format Strava) pour une source"""
    activities: List[Dict[str, Any]] = Field(default_factory=list)
