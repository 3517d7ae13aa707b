import os
import sys
from logging.config import fileConfig

from alembic import context

# Ajouter le chemin de l'app pour les imports
sys.path.append(os.path.dirname(os.path.abspath(__file__)) + "/..")

# Import des modèles SQLModel
from app.domain.entities.activity import CanonicalActivity  # noqa: F401
from app.domain.entities.training_load import DailyAggregate, RollingMetrics  # noqa: F401
from app.domain.entities.ingest_log import IngestLog  # noqa: F401
from app.core.database import engine
from sqlmodel import SQLModel

# Objet de configuration Alembic (valeurs du fichier .ini)
config = context.config

# Configuration du logging Python depuis le .ini
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Utiliser les métadonnées SQLModel pour l'autogenerate
target_metadata = SQLModel.metadata


def run_migrations_offline() -> None:
    """Migrations en mode 'offline' : génère le SQL sans connexion."""
    from app.core.settings import get_settings
    settings = get_settings()
    context.configure(
        url=settings.DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Migrations en mode 'online' sur l'engine de l'application."""
    # Utiliser notre engine configuré au lieu de créer un nouveau
    with engine.connect() as connection:
        context.configure(
            connection=connection, target_metadata=target_metadata
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
