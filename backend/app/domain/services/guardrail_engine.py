"""
Moteur de garde-fous : ajustements de plan explicables à partir de la charge
glissante, des zones d'hier et de la confiance dans les données.

Les règles sont indépendantes et cumulatives ; chacune ajoute un message qui
cite les valeurs qui l'ont déclenchée (affiché tel quel à l'utilisateur).
"""
import logging
from typing import Any, List, Optional

from app.domain.entities.guardrail import (
    AdjustmentKind,
    DataConfidence,
    GuardrailContext,
    GuardrailRequest,
    LoadAdjustment,
    LoadMetrics,
    YesterdayZones,
)
from app.domain.services.data_confidence_validator import (
    DataConfidenceValidator,
    data_confidence_validator,
)
from app.domain.services.ingest_normalizer import _as_number

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Seuils
# ---------------------------------------------------------------------------
Z4_HEAVY_MIN = 20
Z5_HEAVY_MIN = 10
STRAIN_DELOAD = 150
MONOTONY_HIGH = 2.0
ACUTE_CHRONIC_HIGH = 1.2
ACUTE_CHRONIC_LOW = 0.8
READINESS_SCALING_THRESHOLD = 0.8
LOW_CONFIDENCE = 0.5
READINESS_MIN = 0.5
READINESS_MAX = 1.2


def compute_readiness_proxy(
    load: LoadMetrics, yesterday: YesterdayZones, data_confidence: DataConfidence
) -> float:
    """Multiplicateur de forme dans [0.5, 1.2]."""
    proxy = 1.0

    if load.ctl28 > 0:
        ratio = load.atl7 / load.ctl28
        if ratio > ACUTE_CHRONIC_HIGH:
            proxy *= 0.8
        elif ratio < ACUTE_CHRONIC_LOW:
            proxy *= 1.1

    if yesterday.z4_min >= Z4_HEAVY_MIN:
        proxy *= 0.85
    elif yesterday.z5_min >= Z5_HEAVY_MIN:
        proxy *= 0.9

    if load.monotony > MONOTONY_HIGH:
        proxy *= 0.85

    proxy *= 0.5 + 0.5 * data_confidence.recent7days
    return min(max(proxy, READINESS_MIN), READINESS_MAX)


def _fmt(value: float) -> str:
    return f"{value:g}"


class GuardrailAdjustmentEngine:
    def __init__(self, validator: Optional[DataConfidenceValidator] = None):
        self.validator = validator or data_confidence_validator

    def _triggered(self, context: GuardrailContext, proxy: float) -> List[AdjustmentKind]:
        load, yesterday = context.load, context.yesterday
        kinds = []
        if yesterday.z4_min >= Z4_HEAVY_MIN or yesterday.z5_min >= Z5_HEAVY_MIN:
            kinds.append(AdjustmentKind.HEAVY_LOWER_SUPPRESSION)
        if load.strain > STRAIN_DELOAD or (
            load.monotony > MONOTONY_HIGH and load.atl7 > load.ctl28 * ACUTE_CHRONIC_HIGH
        ):
            kinds.append(AdjustmentKind.DELOAD)
        if proxy < READINESS_SCALING_THRESHOLD:
            kinds.append(AdjustmentKind.INTENSITY_SCALING)
        if context.data_confidence.recent7days < LOW_CONFIDENCE:
            kinds.append(AdjustmentKind.CONSERVATIVE_MODE)
        return kinds

    def _apply(self, kind: AdjustmentKind, context: GuardrailContext, proxy: float) -> str:
        load, yesterday = context.load, context.yesterday
        match kind:
            case AdjustmentKind.HEAVY_LOWER_SUPPRESSION:
                context.suppress_heavy_lower = True
                return (
                    f"FC d'hier : {_fmt(yesterday.z4_min)} min en Z4 et "
                    f"{_fmt(yesterday.z5_min)} min en Z5 -> volume bas du corps allege."
                )
            case AdjustmentKind.DELOAD:
                context.recommend_deload = True
                return (
                    f"Strain hebdomadaire {_fmt(round(load.strain, 1))} et monotonie "
                    f"{load.monotony:.2f} -> semaine allegee recommandee, accent mobilite."
                )
            case AdjustmentKind.INTENSITY_SCALING:
                context.intensity_scale *= proxy
                return (
                    f"Charge recente : forme estimee basse -> intensite ramenee a "
                    f"{proxy * 100:.0f}%."
                )
            case AdjustmentKind.CONSERVATIVE_MODE:
                context.conservative_mode = True
                logger.info(
                    f"Mode conservateur (confiance {context.data_confidence.recent7days:.2f})"
                )
                return (
                    f"Peu de donnees FC cette semaine (confiance "
                    f"{context.data_confidence.recent7days * 100:.0f}%) -> recommandation prudente."
                )

    def evaluate(self, request: Any) -> GuardrailContext:
        """Valide l'entrée puis applique les règles dans l'ordre."""
        if isinstance(request, GuardrailRequest):
            request = request.model_dump()
        if not isinstance(request, dict):
            request = {}

        load, yesterday, confidence, defaulted = self.validator.validate_guardrail_inputs(
            request.get("load"), request.get("yesterday"), request.get("data_confidence"),
        )

        intensity_scale = _as_number(request.get("intensity_scale"))
        if intensity_scale is None or intensity_scale <= 0:
            if request.get("intensity_scale") is not None:
                defaulted.append("intensity_scale")
            intensity_scale = 1.0

        context = GuardrailContext(
            load=load,
            yesterday=yesterday,
            data_confidence=confidence,
            intensity_scale=intensity_scale,
            defaulted_fields=defaulted,
        )

        proxy = compute_readiness_proxy(load, yesterday, confidence)
        context.readiness_proxy = round(proxy, 4)

        for kind in self._triggered(context, proxy):
            message = self._apply(kind, context, proxy)
            context.adjustments.append(LoadAdjustment(kind=kind, message=message))
            context.load_adjustments.append(message)

        if context.adjustments:
            logger.info(
                f"Garde-fous declenches: {[a.kind.value for a in context.adjustments]} "
                f"(proxy={context.readiness_proxy})"
            )
        return context


guardrail_engine = GuardrailAdjustmentEngine()
