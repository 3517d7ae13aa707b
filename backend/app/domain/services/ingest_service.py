"""
Service d'import des activités externes.

normalisation -> dédup (exact / fuzzy + richesse) -> insert / merge / skip,
puis un seul appel au callback de recalcul pour tout le lot avec les dates
locales touchées. Un doublon ignoré ne déclenche aucun recalcul.
"""
import hashlib
import json
import logging
from datetime import date as date_type
from typing import Any, Callable, Dict, List, Optional, Set, Tuple
from uuid import UUID

from app.core.settings import get_settings
from app.domain.entities.activity import ActivitySource, CanonicalActivity
from app.domain.entities.ingest_log import IngestLog, IngestStatus
from app.domain.errors import ConflictRetryableError, DuplicateHashConflict, InvalidInputError
from app.domain.services.activity_store import ActivityStore
from app.domain.services.daily_aggregator import local_date_of, resolve_timezone
from app.domain.services.dedup_resolver import (
    DedupAction,
    DedupDecision,
    DedupResolver,
    dedup_resolver,
    generate_manual_external_id,
)
from app.domain.services.ingest_normalizer import normalize_activity

logger = logging.getLogger(__name__)

RecomputeCallback = Callable[[UUID, List[date_type]], Any]


def raw_sha256(raw: Any) -> str:
    payload = json.dumps(raw, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class IngestService:
    """Service d'import et de déduplication des activités"""

    def __init__(self, resolver: Optional[DedupResolver] = None, tz_name: Optional[str] = None):
        self.resolver = resolver or dedup_resolver
        self.tz = resolve_timezone(tz_name or get_settings().DEFAULT_TIMEZONE)

    def _local_dates(self, *activities: Optional[CanonicalActivity]) -> Set[date_type]:
        return {
            local_date_of(activity.start_ts, self.tz)
            for activity in activities
            if activity is not None and activity.start_ts is not None
        }

    def _apply(
        self, store: ActivityStore, normalized: Dict[str, Any], decision: DedupDecision
    ) -> Tuple[IngestStatus, CanonicalActivity, Set[date_type]]:
        match decision.action:
            case DedupAction.SKIP:
                return IngestStatus.SKIPPED_DUP, decision.existing, set()
            case DedupAction.MERGE:
                existing = decision.existing
                # Une fusion peut déplacer la séance : ancienne et nouvelle date
                dates = self._local_dates(existing)
                self.resolver.merge_into(existing, normalized, decision.richness)
                merged = store.save_activity(existing)
                return IngestStatus.MERGED, merged, dates | self._local_dates(merged)
            case DedupAction.INSERT:
                activity = self.resolver.build_activity(normalized, decision.dedup_hash, decision.richness)
                created = store.insert_activity(activity)
                return IngestStatus.IMPORTED, created, self._local_dates(created)

    def ingest_activity(
        self, store: ActivityStore, normalized: Dict[str, Any]
    ) -> Tuple[IngestStatus, CanonicalActivity, Set[date_type]]:
        """Applique la décision de dédup. Un conflit d'unicité relance la décision
        une fois (merge ou skip) ; un second conflit lève ConflictRetryableError."""
        decision = None
        for attempt in range(2):
            decision = self.resolver.resolve(store, normalized)
            try:
                return self._apply(store, normalized, decision)
            except DuplicateHashConflict:
                logger.info(
                    f"Import concurrent de {normalized['source']}:{normalized['external_id']} "
                    f"(essai {attempt + 1}), nouvelle decision"
                )
        raise ConflictRetryableError(normalized["external_id"], decision.dedup_hash)

    def ingest_batch(
        self,
        store: ActivityStore,
        user_id: UUID,
        source: str,
        raw_activities: List[Dict[str, Any]],
        recompute: Optional[RecomputeCallback] = None,
    ) -> Dict[str, Any]:
        try:
            source = ActivitySource(source.lower()).value
        except ValueError:
            raise InvalidInputError("source", source)

        results: List[Dict[str, Any]] = []
        affected: Set[date_type] = set()
        counts = {status.value: 0 for status in IngestStatus}

        for raw in raw_activities:
            normalized = normalize_activity(raw, user_id, source)
            if normalized["external_id"] is None:
                if source == ActivitySource.MANUAL.value:
                    normalized["external_id"] = generate_manual_external_id()
                else:
                    # Identifiant stable dérivé du contenu : un ré-import reste un doublon exact
                    normalized["external_id"] = f"sha256:{raw_sha256(raw)[:16]}"
                normalized["warnings"].append("id")

            result: Dict[str, Any] = {
                "external_id": normalized["external_id"],
                "warnings": normalized["warnings"],
            }
            try:
                status, activity, dates = self.ingest_activity(store, normalized)
                affected |= dates
                result.update(
                    status=status.value,
                    canonical_activity_id=str(activity.id),
                    richness=activity.richness,
                )
            except Exception as e:
                store.rollback()
                logger.warning(f"Erreur import activite {source}:{normalized['external_id']}: {e}")
                status = IngestStatus.ERROR
                result.update(status=status.value, error=str(e))

            counts[status.value] += 1
            results.append(result)
            self._log(store, user_id, source, raw, result)

        affected_dates = sorted(affected)
        recompute_result = None
        if affected_dates and recompute is not None:
            recompute_result = recompute(user_id, affected_dates)

        logger.info(f"User {user_id}: import {source} termine {counts}")
        return {
            "results": results,
            "counts": counts,
            "affected_dates": [day.isoformat() for day in affected_dates],
            "recompute": recompute_result,
        }

    def _log(self, store: ActivityStore, user_id: UUID, source: str, raw: Any, result: Dict[str, Any]) -> None:
        try:
            store.add_ingest_log(IngestLog(
                user_id=user_id,
                provider=source,
                external_id=result["external_id"],
                raw_sha256=raw_sha256(raw),
                status=IngestStatus(result["status"]),
                error_message=result.get("error"),
                details={
                    "canonical_activity_id": result.get("canonical_activity_id"),
                    "richness": result.get("richness"),
                    "warnings": result["warnings"],
                },
            ))
        except Exception as e:
            store.rollback()
            logger.warning(f"Ecriture ingest_log impossible pour {source}:{result['external_id']}: {e}")


ingest_service = IngestService()
