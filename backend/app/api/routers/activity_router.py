"""
Routes des activites canoniques : liste et rapprochement avec les seances de l'app.
Routes = validation + delegation au service. Pas de logique metier ici.
"""
import logging
from datetime import date, datetime, time, timedelta
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Optional

from app.core.settings import get_settings
from app.domain.entities import CanonicalActivityRead, MatchRequest
from app.domain.services.activity_matcher import match_activities
from app.domain.services.activity_store import ActivityStore
from app.api.routers._shared import get_store, security, user_uuid_from

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_RANGE_DAYS = 366


@router.get("/activities", response_model=List[CanonicalActivityRead])
async def get_activities(
    token: str = Depends(security),
    store: ActivityStore = Depends(get_store),
    date_from: Optional[date] = Query(None, description="Date minimale ISO (YYYY-MM-DD)"),
    date_to: Optional[date] = Query(None, description="Date maximale ISO (YYYY-MM-DD), incluse"),
    include_excluded: bool = False,
):
    """Activites canoniques de l'utilisateur sur une plage (defaut: 30 derniers jours, UTC)"""
    user_id = user_uuid_from(token)
    date_to = date_to or datetime.utcnow().date()
    date_from = date_from or date_to - timedelta(days=30)
    if date_from > date_to:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="date_from > date_to")
    if (date_to - date_from).days > MAX_RANGE_DAYS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Plage limitee a {MAX_RANGE_DAYS} jours",
        )

    activities = store.list_activities_between(
        user_id,
        datetime.combine(date_from, time.min),
        datetime.combine(date_to + timedelta(days=1), time.min),
    )
    if not include_excluded:
        activities = [a for a in activities if not a.is_excluded]
    return activities


@router.post("/activities/match")
async def match_sessions(
    body: MatchRequest,
    token: str = Depends(security),
    store: ActivityStore = Depends(get_store),
):
    """Propose un lien activite importee -> seance de l'app (plus petit ecart dans la fenetre)"""
    user_id = user_uuid_from(token)
    now = datetime.utcnow()
    activities = store.list_activities_between(
        user_id, now - timedelta(days=body.days_back), now + timedelta(days=1)
    )
    window_ms = body.match_window_ms or get_settings().MATCH_WINDOW_MS
    matches = match_activities(activities, body.sessions, window_ms)
    return {
        "matches": [match.to_dict() for match in matches],
        "activities_considered": len(activities),
        "match_window_ms": window_ms,
    }
