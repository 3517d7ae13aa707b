"""
Route d'import des activites externes.
Routes = validation + delegation au service. Pas de logique metier ici.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from app.domain.entities import IngestRequest
from app.domain.errors import InvalidInputError
from app.domain.services.activity_store import ActivityStore
from app.domain.services.aggregation_service import aggregation_service
from app.domain.services.ingest_service import ingest_service
from app.api.routers._shared import get_store, limiter, security, user_uuid_from

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/ingest/{source}")
@limiter.limit("30/minute")
async def ingest_activities(
    request: Request,
    response: Response,
    source: str,
    body: IngestRequest,
    token: str = Depends(security),
    store: ActivityStore = Depends(get_store),
):
    """Importe un lot d'activites, deduplique puis recalcule les dates touchees"""
    user_id = user_uuid_from(token)

    def recompute(uid, dates):
        return aggregation_service.recompute_dates(store, uid, dates)

    try:
        return ingest_service.ingest_batch(store, user_id, source, body.activities, recompute=recompute)
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Source inconnue: {e.value}",
        )
