"""
Routes du moteur de garde-fous et de la validation de contexte.
"""
import logging
from datetime import date
from typing import Any, Dict, Optional
from fastapi import APIRouter, Body, Depends, Query

from app.domain.entities import ContextValidationResult, GuardrailContext, GuardrailRequest
from app.domain.services.activity_store import ActivityStore
from app.domain.services.aggregation_service import aggregation_service
from app.domain.services.data_confidence_validator import data_confidence_validator
from app.domain.services.guardrail_engine import guardrail_engine
from app.api.routers._shared import get_store, security, user_uuid_from

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/guardrails/evaluate", response_model=GuardrailContext)
async def evaluate_guardrails(
    body: GuardrailRequest,
    today: Optional[date] = Query(None, description="Date du plan (defaut: aujourd'hui UTC)"),
    token: str = Depends(security),
    store: ActivityStore = Depends(get_store),
):
    """Ajustements de plan ; charge, zones d'hier et confiance lues en base si omises"""
    user_id = user_uuid_from(token)
    request = body.model_dump()
    if request["load"] is None or request["yesterday"] is None or request["data_confidence"] is None:
        stored = aggregation_service.guardrail_inputs(store, user_id, today or date.today())
        for key, value in stored.items():
            if request[key] is None:
                request[key] = value
    return guardrail_engine.evaluate(request)


@router.post("/context/validate", response_model=ContextValidationResult)
async def validate_context(
    body: Dict[str, Any] = Body(default_factory=dict),
    token: str = Depends(security),
):
    """Valide un contexte utilisateur et liste les champs remplaces par un defaut"""
    user_uuid_from(token)
    return data_confidence_validator.validate_context(body)
