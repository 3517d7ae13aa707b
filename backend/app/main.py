"""
Application FastAPI principale du moteur de charge d'entrainement
Point d'entrée de l'API backend
"""
import logging
from logging.handlers import RotatingFileHandler
import sys
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.requests import Request
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi.errors import RateLimitExceeded
import sentry_sdk

from app.core.settings import get_settings
from app.api.routers import router, limiter
from app.core.database import create_db_and_tables
from app.core.locks import check_redis_health
from app.domain.errors import ConflictRetryableError, RecomputeDeferredError, RecomputeFailureError

settings = get_settings()

APP_VERSION = "1.0.0"

# Initialiser Sentry (uniquement si SENTRY_DSN est configure)
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=0.2 if settings.ENVIRONMENT == "production" else 1.0,
        send_default_pii=False,
    )

# Configuration du logging conditionnée par ENVIRONMENT
_log_level = getattr(logging, settings.LOG_LEVEL, logging.INFO)

_handler = logging.StreamHandler(sys.stdout)

if settings.ENVIRONMENT == "production":
    from pythonjsonlogger import jsonlogger
    _handler.setFormatter(jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        rename_fields={"asctime": "timestamp", "levelname": "level"},
    ))
else:
    _handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))

_handlers: list[logging.Handler] = [_handler]
if settings.ENVIRONMENT != "production":
    _handlers.append(RotatingFileHandler(
        'trainload.log', maxBytes=5_000_000, backupCount=3,
    ))

logging.basicConfig(
    level=_log_level,
    handlers=_handlers,
)

# En production, réduire le bruit des modules tiers
if settings.ENVIRONMENT == "production":
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def _redis_required() -> bool:
    return settings.RECOMPUTE_LOCK_BACKEND == "redis"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Gestionnaire de cycle de vie de l'application"""
    # Startup
    logger.info(f"Démarrage du moteur de charge v{APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    # Initialiser la base de données
    create_db_and_tables()
    logger.info("Base de données initialisée")

    # Vérifier la connexion Redis (verrous de recalcul)
    if _redis_required():
        if check_redis_health():
            logger.info("Redis connecté")
        else:
            logger.warning("Redis non disponible : les recalculs seront différés (dates marquées obsolètes)")
    else:
        logger.info("Verrous de recalcul en mémoire (mono-process)")

    yield

    logger.info("Arrêt du moteur de charge")

app = FastAPI(
    title="Training Load API",
    description="Agrégation de charge d'entrainement et garde-fous adaptatifs",
    version=APP_VERSION,
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
    lifespan=lifespan
)

# Rate limiting
app.state.limiter = limiter


async def _custom_rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Retourne un 429 propre avec headers Retry-After et X-RateLimit-*."""
    response = JSONResponse(
        status_code=429,
        content={
            "detail": "Trop de requetes",
            "message": f"Rate limit exceeded: {exc.detail}",
        },
    )
    response = request.app.state.limiter._inject_headers(
        response, request.state.view_rate_limit
    )
    return response


app.add_exception_handler(RateLimitExceeded, _custom_rate_limit_handler)

# Middlewares de securite en production
if settings.ENVIRONMENT == "production":
    class HTTPSRedirectMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Request, call_next):
            if request.headers.get("x-forwarded-proto") == "http":
                url = request.url.replace(scheme="https")
                return RedirectResponse(url, status_code=301)
            return await call_next(request)

    class SecurityHeadersMiddleware(BaseHTTPMiddleware):
        """Ajoute les headers de securite sur toutes les reponses en production."""
        async def dispatch(self, request: Request, call_next):
            response = await call_next(request)
            response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"
            response.headers["X-Content-Type-Options"] = "nosniff"
            response.headers["X-Frame-Options"] = "DENY"
            return response

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(HTTPSRedirectMiddleware)

# Configuration CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Inclure les routes
app.include_router(router, prefix="/api/v1")

@app.get("/health")
@limiter.exempt
async def health_check():
    """Point de santé de l'API"""
    redis_ok = check_redis_health() if _redis_required() else None
    status = "degraded" if redis_ok is False else "healthy"
    return JSONResponse(
        content={
            "status": status,
            "version": APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "services": {
                "locks": settings.RECOMPUTE_LOCK_BACKEND,
                "redis": {True: "connected", False: "disconnected", None: "unused"}[redis_ok],
            },
        }
    )


@app.exception_handler(ConflictRetryableError)
async def conflict_handler(request: Request, exc: ConflictRetryableError):
    logger.warning(f"Conflit d'import persistant: {exc}")
    return JSONResponse(status_code=409, content={"detail": str(exc), "kind": "conflict_retryable"})


@app.exception_handler(RecomputeFailureError)
async def recompute_failure_handler(request: Request, exc: RecomputeFailureError):
    """Recalcul en echec (500) ou differe (503), la date est marquee obsolete"""
    code = 503 if isinstance(exc, RecomputeDeferredError) else 500
    logger.error(f"Recalcul {exc.kind}: {exc}")
    return JSONResponse(
        status_code=code,
        content={
            "detail": str(exc),
            "kind": exc.kind,
            "date": exc.target_date.isoformat() if exc.target_date else None,
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc):
    """Gestionnaire global des exceptions"""
    logger.error(f"Erreur non gérée: {type(exc).__name__}: {str(exc)}", exc_info=True)
    if settings.DEBUG:
        content = {
            "detail": "Erreur interne du serveur",
            "type": type(exc).__name__,
            "message": str(exc),
        }
    else:
        content = {
            "detail": "Erreur interne du serveur",
            "message": "Une erreur s'est produite",
        }
    return JSONResponse(status_code=500, content=content)

if __name__ == "__main__":
    import uvicorn
    logger.info(f"Lancement de l'application sur le port 8000")
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
