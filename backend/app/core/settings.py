"""
Configuration centralisee pour le moteur de charge d'entrainement
Utilise pydantic-settings pour la gestion des variables d'environnement
"""
from pydantic_settings import BaseSettings
from pydantic import Field, model_validator
from typing import List


class Settings(BaseSettings):
    """Configuration de l'application"""

    # Database
    DATABASE_URL: str = Field(
        description="URL de la base de données (PostgreSQL en production)"
    )

    # JWT (verification uniquement, l'emission est faite par le service d'auth)
    JWT_SECRET_KEY: str = Field(
        description="Clé secrète pour vérifier les JWT (obligatoire, pas de valeur par défaut)"
    )
    JWT_ALGORITHM: str = Field(default="HS256")
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=30)

    # Redis
    REDIS_URL: str = Field(
        default="redis://localhost:6379",
        description="URL de connexion Redis (verrous de recalcul en production)"
    )

    # Verrous de recalcul
    RECOMPUTE_LOCK_BACKEND: str = Field(
        default="redis",
        description="Backend des verrous de recalcul : 'redis' (multi-process) ou 'local' (mono-process)"
    )
    RECOMPUTE_LOCK_TIMEOUT_S: float = Field(
        default=30.0,
        description="Durée de vie max d'un verrou de recalcul (secondes)"
    )
    RECOMPUTE_LOCK_WAIT_S: float = Field(
        default=5.0,
        description="Attente max pour acquérir un verrou avant de différer le recalcul (secondes)"
    )

    # Moteur de charge
    MATCH_WINDOW_MS: int = Field(
        default=1_800_000,
        description="Fenêtre de rapprochement activité importée / séance loggée (ms)"
    )
    ROLLING_WINDOW_DAYS: int = Field(
        default=35,
        description="Nombre de jours considérés pour les métriques glissantes"
    )
    DEFAULT_TIMEZONE: str = Field(
        default="UTC",
        description="Fuseau utilisé quand le profil utilisateur n'en fournit pas"
    )
    DEFAULT_MAX_HR: float = Field(default=190.0)
    DEFAULT_REST_HR: float = Field(default=60.0)

    # URLs de l'application
    FRONTEND_URL: str = Field(
        default="http://localhost:3000",
        description="URL du frontend (utilisée pour CORS)"
    )

    # CORS
    ALLOWED_ORIGINS: List[str] = Field(
        default=[],
        description="Origines autorisées pour CORS (configuré automatiquement selon ENVIRONMENT si vide)"
    )

    # Monitoring (Sentry)
    SENTRY_DSN: str = Field(
        default="",
        description="DSN Sentry pour le error tracking (vide = Sentry desactive)"
    )

    # Application
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: str = Field(
        default="",
        description="Niveau de logging (auto-configuré selon ENVIRONMENT si vide)"
    )

    @model_validator(mode="after")
    def _configure_environment(self) -> "Settings":
        """Configure DEBUG, LOG_LEVEL et le backend de verrous selon ENVIRONMENT."""
        is_prod = self.ENVIRONMENT == "production"
        # En production, forcer DEBUG=False
        if is_prod:
            self.DEBUG = False
        # LOG_LEVEL par défaut selon ENVIRONMENT
        if not self.LOG_LEVEL:
            self.LOG_LEVEL = "WARNING" if is_prod else "INFO"
        self.RECOMPUTE_LOCK_BACKEND = self.RECOMPUTE_LOCK_BACKEND.lower()
        if self.RECOMPUTE_LOCK_BACKEND not in ("redis", "local"):
            raise ValueError(
                f"RECOMPUTE_LOCK_BACKEND invalide: {self.RECOMPUTE_LOCK_BACKEND} (attendu: redis|local)"
            )
        return self

    @model_validator(mode="after")
    def _set_default_origins(self) -> "Settings":
        """Définit les origines CORS par défaut selon ENVIRONMENT si non configurées."""
        if not self.ALLOWED_ORIGINS:
            if self.ENVIRONMENT != "production":
                self.ALLOWED_ORIGINS = [
                    "http://localhost:3000",
                    "http://127.0.0.1:3000",
                ]
        # Toujours inclure FRONTEND_URL dans les origines autorisees
        frontend = self.FRONTEND_URL.rstrip("/")
        if frontend and frontend not in self.ALLOWED_ORIGINS:
            self.ALLOWED_ORIGINS.append(frontend)
        return self

    class Config:
        env_file = ".env"  # Utiliser le fichier .env principal
        case_sensitive = True


def get_settings() -> Settings:
    """Récupère la configuration"""
    return Settings()
