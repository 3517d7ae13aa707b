"""
Accès aux données du moteur de charge (activités canoniques, agrégats, métriques, logs).

Seul point de contact avec la base : les services de calcul ne dépendent que
de ces méthodes (get / put / requête par plage), pas de la forme du stockage.
"""
import logging
from datetime import date as date_type, datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.attributes import flag_modified
from sqlmodel import Session, select

from app.domain.entities.activity import CanonicalActivity
from app.domain.entities.ingest_log import IngestLog
from app.domain.entities.training_load import DailyAggregate, RollingMetrics
from app.domain.errors import DuplicateHashConflict

logger = logging.getLogger(__name__)


class ActivityStore:
    """Implémentation SQLModel du port de stockage."""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Activités canoniques
    # ------------------------------------------------------------------

    def get_by_dedup_hash(self, user_id: UUID, dedup_hash: str) -> Optional[CanonicalActivity]:
        return self.session.exec(
            select(CanonicalActivity).where(
                CanonicalActivity.user_id == user_id,
                CanonicalActivity.dedup_hash == dedup_hash,
            )
        ).first()

    def find_in_window(
        self, user_id: UUID, start_ts: datetime, tolerance: timedelta
    ) -> List[CanonicalActivity]:
        """Activités dont le début est à +/- tolerance de start_ts."""
        return list(self.session.exec(
            select(CanonicalActivity)
            .where(
                CanonicalActivity.user_id == user_id,
                CanonicalActivity.start_ts >= start_ts - tolerance,
                CanonicalActivity.start_ts <= start_ts + tolerance,
            )
            .order_by(CanonicalActivity.start_ts)
        ).all())

    def list_activities_between(
        self, user_id: UUID, start_utc: datetime, end_utc: datetime
    ) -> List[CanonicalActivity]:
        """Activités avec start_utc <= start_ts < end_utc, par ordre chronologique."""
        return list(self.session.exec(
            select(CanonicalActivity)
            .where(
                CanonicalActivity.user_id == user_id,
                CanonicalActivity.start_ts >= start_utc,
                CanonicalActivity.start_ts < end_utc,
            )
            .order_by(CanonicalActivity.start_ts, CanonicalActivity.created_at)
        ).all())

    def insert_activity(self, activity: CanonicalActivity) -> CanonicalActivity:
        """Insère et commit. Lève DuplicateHashConflict si le hash existe déjà."""
        self.session.add(activity)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            logger.info(f"Conflit d'unicite sur dedup_hash {activity.dedup_hash}: {exc.orig}")
            raise DuplicateHashConflict(activity.dedup_hash) from exc
        self.session.refresh(activity)
        return activity

    def save_activity(self, activity: CanonicalActivity) -> CanonicalActivity:
        activity.updated_at = datetime.utcnow()
        # Les colonnes JSON ne détectent pas les mutations en place
        flag_modified(activity, "source_set")
        flag_modified(activity, "merged_from")
        self.session.add(activity)
        self.session.commit()
        self.session.refresh(activity)
        return activity

    # ------------------------------------------------------------------
    # Agrégats quotidiens
    # ------------------------------------------------------------------

    def get_aggregate(self, user_id: UUID, day: date_type) -> Optional[DailyAggregate]:
        return self.session.exec(
            select(DailyAggregate).where(
                DailyAggregate.user_id == user_id,
                DailyAggregate.date == day,
            )
        ).first()

    def list_aggregates(
        self, user_id: UUID, date_from: date_type, date_to: date_type
    ) -> List[DailyAggregate]:
        return list(self.session.exec(
            select(DailyAggregate)
            .where(
                DailyAggregate.user_id == user_id,
                DailyAggregate.date >= date_from,
                DailyAggregate.date <= date_to,
            )
            .order_by(DailyAggregate.date)
        ).all())

    def put_aggregate(self, aggregate: DailyAggregate) -> DailyAggregate:
        self.session.add(aggregate)
        self.session.commit()
        self.session.refresh(aggregate)
        return aggregate

    # ------------------------------------------------------------------
    # Métriques glissantes
    # ------------------------------------------------------------------

    def get_rolling(self, user_id: UUID, as_of: date_type) -> Optional[RollingMetrics]:
        return self.session.exec(
            select(RollingMetrics).where(
                RollingMetrics.user_id == user_id,
                RollingMetrics.as_of_date == as_of,
            )
        ).first()

    def latest_rolling(self, user_id: UUID, on_or_before: date_type) -> Optional[RollingMetrics]:
        return self.session.exec(
            select(RollingMetrics)
            .where(
                RollingMetrics.user_id == user_id,
                RollingMetrics.as_of_date <= on_or_before,
            )
            .order_by(RollingMetrics.as_of_date.desc())
            .limit(1)
        ).first()

    def list_rolling(
        self, user_id: UUID, date_from: date_type, date_to: date_type
    ) -> List[RollingMetrics]:
        return list(self.session.exec(
            select(RollingMetrics)
            .where(
                RollingMetrics.user_id == user_id,
                RollingMetrics.as_of_date >= date_from,
                RollingMetrics.as_of_date <= date_to,
            )
            .order_by(RollingMetrics.as_of_date)
        ).all())

    def put_rolling(self, snapshot: RollingMetrics) -> RollingMetrics:
        flag_modified(snapshot, "affected_dates")
        self.session.add(snapshot)
        self.session.commit()
        self.session.refresh(snapshot)
        return snapshot

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def add_ingest_log(self, entry: IngestLog) -> None:
        self.session.add(entry)
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
