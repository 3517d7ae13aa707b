"""
Rapprochement activités importées <-> séances planifiées/saisies dans l'app.
Indépendant de la déduplication : sert uniquement à proposer un lien.
"""
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional

from app.domain.services.ingest_normalizer import parse_start_date

logger = logging.getLogger(__name__)

DEFAULT_MATCH_WINDOW_MS = 30 * 60 * 1000


@dataclass
class ActivityMatch:
    activity_id: str
    session_id: str
    delta_ms: int

    def to_dict(self):
        return asdict(self)


def _get(item: Any, *keys: str):
    for key in keys:
        value = item.get(key) if isinstance(item, Mapping) else getattr(item, key, None)
        if value is not None:
            return value
    return None


def _timestamp(item: Any) -> Optional[datetime]:
    return parse_start_date(_get(item, "start_ts", "start_date", "date"))


def match_activities(
    activities: Iterable[Any],
    sessions: Iterable[Any],
    match_window_ms: int = DEFAULT_MATCH_WINDOW_MS,
) -> List[ActivityMatch]:
    """Pour chaque activité, la séance la plus proche dans la fenêtre.

    A delta égal, la première séance trouvée est conservée. Les éléments
    sans date exploitable sont ignorés.
    """
    timed_sessions = []
    for session in sessions:
        ts = _timestamp(session)
        if ts is None:
            continue
        timed_sessions.append((str(_get(session, "id")), ts))

    matches: List[ActivityMatch] = []
    for activity in activities:
        activity_ts = _timestamp(activity)
        if activity_ts is None:
            continue

        best: Optional[ActivityMatch] = None
        for session_id, session_ts in timed_sessions:
            delta_ms = int(abs((activity_ts - session_ts).total_seconds()) * 1000)
            if delta_ms > match_window_ms:
                continue
            if best is None or delta_ms < best.delta_ms:
                best = ActivityMatch(str(_get(activity, "id")), session_id, delta_ms)

        if best:
            matches.append(best)

    logger.debug(f"{len(matches)} rapprochement(s) activite/seance")
    return matches
