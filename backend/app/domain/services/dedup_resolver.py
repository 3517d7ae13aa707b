"""
Déduplication multi-sources des activités importées.

1) Match exact par dedup_hash (user_id, source, external_id) : même import, skip
2) Fuzzy match par start_ts (+/- 6 min) et durée (+/- 10%) : même séance vue
   par une autre source, la version la plus riche gagne
"""
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Mapping, Optional
from uuid import uuid4

from app.domain.entities.activity import CanonicalActivity
from app.domain.services.activity_store import ActivityStore
from app.domain.services.ingest_normalizer import parse_start_date
from app.domain.services.richness_scorer import richness_of

logger = logging.getLogger(__name__)

DEDUP_TIME_TOLERANCE_S = 360  # 6 minutes
DEDUP_DURATION_TOLERANCE = 0.10  # 10% de la plus longue durée

# Champs physiologiques écrasés par une version plus riche
PHYSIO_FIELDS = ("avg_hr", "max_hr", "calories", "zone_minutes", "device_name")
VOLUME_FIELDS = ("duration_s", "distance_m")
FLAG_FIELDS = ("has_hr", "has_gps", "has_power", "has_device")


class DedupAction(str, Enum):
    INSERT = "insert"
    MERGE = "merge"
    SKIP = "skip"


@dataclass
class DedupDecision:
    action: DedupAction
    dedup_hash: str
    richness: float
    existing: Optional[CanonicalActivity] = None
    reason: Optional[str] = None


def build_dedup_hash(user_id, source: str, external_id: Optional[str]) -> str:
    """SHA-256 hex de "{user_id}|{source}|{external_id}"."""
    raw = f"{user_id}|{source}|{external_id}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def generate_manual_external_id() -> str:
    return f"manual_{uuid4().hex}"


def _field(activity: Any, key: str):
    if isinstance(activity, Mapping):
        return activity.get(key)
    return getattr(activity, key, None)


def _as_datetime(value: Any) -> Optional[datetime]:
    """Datetime UTC naïf, ou None si la valeur est illisible."""
    return parse_start_date(value)


def likely_duplicate(a: Any, b: Any) -> bool:
    """Vrai si a et b semblent être la même séance. Ne lève jamais."""
    start_a = _as_datetime(_field(a, "start_ts"))
    start_b = _as_datetime(_field(b, "start_ts"))
    if start_a is None or start_b is None:
        return False

    dur_a = _field(a, "duration_s") or 0
    dur_b = _field(b, "duration_s") or 0
    if dur_a <= 0 or dur_b <= 0:
        return False

    if abs((start_a - start_b).total_seconds()) > DEDUP_TIME_TOLERANCE_S:
        return False
    return abs(dur_a - dur_b) <= max(dur_a, dur_b) * DEDUP_DURATION_TOLERANCE


def _has_source_record(activity: CanonicalActivity, source: str, external_id: Optional[str]) -> bool:
    record = (activity.source_set or {}).get(source)
    return bool(record) and str(record.get("external_id")) == str(external_id)


class DedupResolver:
    """Décide insert / merge / skip pour une activité normalisée."""

    def resolve(self, store: ActivityStore, normalized: Dict[str, Any]) -> DedupDecision:
        user_id = normalized["user_id"]
        dedup_hash = build_dedup_hash(user_id, normalized["source"], normalized["external_id"])
        richness = richness_of(normalized)

        # 1) Match exact : même (source, external_id) déjà importé
        existing = store.get_by_dedup_hash(user_id, dedup_hash)
        if existing:
            return DedupDecision(DedupAction.SKIP, dedup_hash, richness, existing, reason="exact")

        start_ts = normalized.get("start_ts")
        if start_ts is None:
            # Timestamp illisible : aucun fuzzy match possible
            return DedupDecision(DedupAction.INSERT, dedup_hash, richness)

        nearby = store.find_in_window(user_id, start_ts, timedelta(seconds=DEDUP_TIME_TOLERANCE_S))

        # Source déjà fusionnée dans une activité : seul le hash canonique est indexé
        for candidate in nearby:
            if _has_source_record(candidate, normalized["source"], normalized["external_id"]):
                return DedupDecision(DedupAction.SKIP, dedup_hash, richness, candidate, reason="exact")

        # 2) Fuzzy match : on garde le candidat le plus proche dans le temps
        candidates = [candidate for candidate in nearby if likely_duplicate(candidate, normalized)]
        if not candidates:
            return DedupDecision(DedupAction.INSERT, dedup_hash, richness)

        candidate = min(candidates, key=lambda c: abs((c.start_ts - start_ts).total_seconds()))
        if richness > candidate.richness:
            return DedupDecision(DedupAction.MERGE, dedup_hash, richness, candidate, reason="richer")

        logger.info(
            f"Doublon {normalized['source']}:{normalized['external_id']} ignore "
            f"(richesse {richness} <= {candidate.richness})"
        )
        return DedupDecision(DedupAction.SKIP, dedup_hash, richness, candidate, reason="fuzzy")

    def build_activity(
        self, normalized: Dict[str, Any], dedup_hash: str, richness: float
    ) -> CanonicalActivity:
        source = normalized["source"]
        return CanonicalActivity(
            user_id=normalized["user_id"],
            canonical_source=source,
            canonical_external_id=normalized["external_id"],
            dedup_hash=dedup_hash,
            activity_type=normalized["activity_type"],
            name=normalized.get("name"),
            notes=normalized.get("notes"),
            start_ts=normalized.get("start_ts"),
            duration_s=normalized.get("duration_s") or 0,
            distance_m=normalized.get("distance_m") or 0.0,
            avg_hr=normalized.get("avg_hr"),
            max_hr=normalized.get("max_hr"),
            has_hr=normalized.get("has_hr", False),
            has_gps=normalized.get("has_gps", False),
            has_power=normalized.get("has_power", False),
            has_device=normalized.get("has_device", False),
            device_name=normalized.get("device_name"),
            calories=normalized.get("calories"),
            zone_minutes=normalized.get("zone_minutes"),
            richness=richness,
            source_set={source: {"external_id": normalized["external_id"], "richness": richness}},
            merged_from=[],
        )

    def merge_into(
        self, existing: CanonicalActivity, normalized: Dict[str, Any], richness: float
    ) -> CanonicalActivity:
        """Fusionne une version plus riche dans l'activité canonique existante."""
        previous = {
            "source": existing.canonical_source,
            "external_id": existing.canonical_external_id,
            "richness": existing.richness,
            "merged_at": datetime.utcnow().isoformat(),
        }

        for key in PHYSIO_FIELDS:
            value = normalized.get(key)
            if value is not None:
                setattr(existing, key, value)
        for key in VOLUME_FIELDS:
            value = normalized.get(key)
            if value:
                setattr(existing, key, value)
        for key in FLAG_FIELDS:
            if normalized.get(key):
                setattr(existing, key, True)

        # Texte libre : conservé si saisi manuellement ou si l'entrant est vide
        is_manual = "manual" in (existing.source_set or {})
        for key in ("name", "notes"):
            value = normalized.get(key)
            if value and not (is_manual and getattr(existing, key)):
                setattr(existing, key, value)

        # Réassignation : les colonnes JSON ne suivent pas les mutations en place
        source = normalized["source"]
        existing.source_set = {
            **(existing.source_set or {}),
            source: {"external_id": normalized["external_id"], "richness": richness},
        }
        existing.merged_from = [*(existing.merged_from or []), previous]

        existing.canonical_source = source
        existing.canonical_external_id = normalized["external_id"]
        # Les flags sont cumulés : la richesse suit l'union, pas la seule version entrante
        existing.richness = richness_of(existing)
        return existing


dedup_resolver = DedupResolver()
