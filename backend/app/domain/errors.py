"""
Erreurs du moteur de charge d'entrainement.

Les doublons ignorés (skipped_dup) et le mode dégradé par faible confiance
ne sont pas des erreurs : ils sont rapportés comme statut / ajustement.
"""
from datetime import date
from typing import Optional


class TrainingLoadError(Exception):
    """Erreur de base du moteur de charge."""


class InvalidInputError(TrainingLoadError):
    """Entrée non récupérable (ex: source inconnue). Les champs d'activité
    invalides ne lèvent pas : ils deviennent des warnings."""

    def __init__(self, field: str, value=None):
        self.field = field
        self.value = value
        super().__init__(f"Champ invalide '{field}': {value!r}")


class DuplicateHashConflict(TrainingLoadError):
    """Violation de la contrainte d'unicité (user_id, dedup_hash) à l'insertion."""

    def __init__(self, dedup_hash: str):
        self.dedup_hash = dedup_hash
        super().__init__(f"dedup_hash deja present: {dedup_hash}")


class ConflictRetryableError(TrainingLoadError):
    """Conflit d'unicité persistant après un nouvel essai en fusion/skip."""

    def __init__(self, external_id: Optional[str], dedup_hash: str):
        self.external_id = external_id
        self.dedup_hash = dedup_hash
        super().__init__(
            f"Conflit persistant pour l'activite externe {external_id} (hash {dedup_hash})"
        )


class RecomputeFailureError(TrainingLoadError):
    """Le recalcul d'un agrégat ou des métriques glissantes n'a pas abouti."""

    kind = "failure"

    def __init__(self, user_id, target_date: Optional[date], reason: str):
        self.user_id = user_id
        self.target_date = target_date
        self.reason = reason
        super().__init__(f"Recalcul impossible pour {user_id} le {target_date}: {reason}")


class RecomputeDeferredError(RecomputeFailureError):
    """Verrou non obtenu ou délai dépassé : recalcul différé, date marquée obsolète."""

    kind = "deferred"
