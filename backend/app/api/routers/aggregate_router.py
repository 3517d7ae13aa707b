"""
Routes des agregats quotidiens et metriques glissantes.
"""
import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from app.domain.entities import DailyAggregateRead, RecomputeRequest, RollingMetricsRead
from app.domain.services.activity_store import ActivityStore
from app.domain.services.aggregation_service import aggregation_service
from app.api.routers._shared import get_store, limiter, security, user_uuid_from

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_RECOMPUTE_DATES = 366


@router.get("/aggregates/daily/{day}", response_model=DailyAggregateRead)
async def get_daily_aggregate(
    day: date,
    token: str = Depends(security),
    store: ActivityStore = Depends(get_store),
):
    """Agregat quotidien (user, date)"""
    user_id = user_uuid_from(token)
    aggregate = store.get_aggregate(user_id, day)
    if not aggregate:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Aucun agregat pour {day}")
    return aggregate


@router.get("/aggregates/rolling/{day}", response_model=RollingMetricsRead)
async def get_rolling_metrics(
    day: date,
    token: str = Depends(security),
    store: ActivityStore = Depends(get_store),
):
    """Instantane des metriques glissantes au {day}, calcule a la volee si absent"""
    user_id = user_uuid_from(token)
    snapshot = store.get_rolling(user_id, day)
    if snapshot:
        return snapshot
    return aggregation_service.recompute_rolling(store, user_id, day)


@router.post("/aggregates/recompute")
@limiter.limit("10/minute")
async def recompute_aggregates(
    request: Request,
    response: Response,
    body: RecomputeRequest,
    token: str = Depends(security),
    store: ActivityStore = Depends(get_store),
):
    """Recalcule les agregats des dates demandees puis les metriques glissantes"""
    user_id = user_uuid_from(token)
    if not body.dates:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Aucune date fournie")
    if len(body.dates) > MAX_RECOMPUTE_DATES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Maximum {MAX_RECOMPUTE_DATES} dates par requete",
        )
    result = aggregation_service.recompute_dates(store, user_id, body.dates)
    if result["failures"] and not result["days"]:
        # Rien n'a pu etre recalcule : on remonte le premier echec
        failure = result["failures"][0]
        code = (
            status.HTTP_503_SERVICE_UNAVAILABLE if failure["kind"] == "deferred"
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        raise HTTPException(status_code=code, detail=result)
    return result
