"""
Routers API du moteur de charge d'entrainement.

Ce module regroupe tous les sous-routers et expose un router principal
a inclure dans l'application FastAPI.
"""
from fastapi import APIRouter

from app.api.routers.ingest_router import router as ingest_router
from app.api.routers.aggregate_router import router as aggregate_router
from app.api.routers.guardrail_router import router as guardrail_router
from app.api.routers.activity_router import router as activity_router
from app.api.routers._shared import limiter

router = APIRouter()

router.include_router(ingest_router)
router.include_router(aggregate_router)
router.include_router(guardrail_router)
router.include_router(activity_router)

__all__ = ["router", "limiter"]
