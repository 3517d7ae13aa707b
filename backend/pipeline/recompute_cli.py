#!/usr/bin/env python3
"""
Script CLI pour recalculer les agrégats quotidiens et métriques glissantes
d'un utilisateur sur une plage de dates (rattrapage, débogage).
Peut importer au préalable un fichier JSON d'activités (format Strava).
"""
import argparse
import json
import logging
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import UUID

# Ajouter le répertoire parent au path pour les imports
sys.path.append(str(Path(__file__).parent.parent))

from sqlmodel import Session

from app.core.database import create_db_and_tables, engine
from app.domain.services.activity_store import ActivityStore
from app.domain.services.aggregation_service import AggregationService
from app.domain.services.ingest_service import ingest_service

# Configuration du logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def date_range(date_from: date, date_to: date) -> List[date]:
    return [date_from + timedelta(days=offset) for offset in range((date_to - date_from).days + 1)]


def load_activities(input_file: str) -> List[Dict[str, Any]]:
    """Charge une liste d'activités brutes depuis un fichier JSON"""
    with open(input_file, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if isinstance(data, dict) and 'activities' in data:
        return data['activities']
    if isinstance(data, list):
        return data
    raise ValueError("Format de fichier non reconnu (liste ou {'activities': [...]})")


def run(
    user_id: UUID,
    date_from: date,
    date_to: date,
    input_file: Optional[str] = None,
    source: str = "strava",
    tz_name: Optional[str] = None,
) -> Dict[str, Any]:
    """Importe (optionnel) puis recalcule la plage"""
    aggregation = AggregationService(tz_name=tz_name)
    report: Dict[str, Any] = {"user_id": str(user_id)}

    with Session(engine) as session:
        store = ActivityStore(session)

        if input_file:
            activities = load_activities(input_file)
            logger.info(f"{len(activities)} activites chargees depuis {input_file}")
            ingest = ingest_service.ingest_batch(store, user_id, source, activities)
            report["ingest"] = {"counts": ingest["counts"], "affected_dates": ingest["affected_dates"]}

        dates = date_range(date_from, date_to)
        # Tous les agrégats d'abord, puis un instantané glissant par date
        report["recompute"] = aggregation.recompute_dates(store, user_id, dates, today=date_to)

    return report


def main():
    """Point d'entrée principal du script CLI"""
    parser = argparse.ArgumentParser(
        description="Recalcul des agregats de charge d'entrainement",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exemples d'utilisation:
  python recompute_cli.py 3f2a... --from 2026-09-01 --to 2026-09-30
  python recompute_cli.py 3f2a... --import strava_export.json --source strava -o rapport.json
        """
    )

    parser.add_argument('user_id', help='UUID de l\'utilisateur')
    parser.add_argument('--from', dest='date_from', type=date.fromisoformat,
                        help='Premiere date (defaut: 35 jours avant --to)')
    parser.add_argument('--to', dest='date_to', type=date.fromisoformat,
                        help='Derniere date incluse (defaut: aujourd\'hui)')
    parser.add_argument('--import', dest='input_file',
                        help='Fichier JSON d\'activites a importer avant le recalcul')
    parser.add_argument('--source', default='strava', help='Source des activites importees')
    parser.add_argument('--tz', help='Fuseau horaire de l\'utilisateur (defaut: DEFAULT_TIMEZONE)')
    parser.add_argument('-o', '--output', help='Fichier JSON de sortie pour le rapport')
    parser.add_argument('--verbose', '-v', action='store_true', help='Afficher les logs détaillés')

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        user_id = UUID(args.user_id)
    except ValueError:
        print(f"Erreur: {args.user_id} n'est pas un UUID valide")
        sys.exit(1)

    date_to = args.date_to or date.today()
    date_from = args.date_from or date_to - timedelta(days=34)
    if date_from > date_to:
        print("Erreur: --from doit preceder --to")
        sys.exit(1)

    if args.input_file and not Path(args.input_file).exists():
        print(f"Erreur: Le fichier {args.input_file} n'existe pas")
        sys.exit(1)

    try:
        create_db_and_tables()
        report = run(user_id, date_from, date_to, args.input_file, args.source, args.tz)
    except Exception as e:
        print(f"Erreur lors du recalcul: {e}")
        sys.exit(1)

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            json.dump(report, f, indent=2, ensure_ascii=False)
        logger.info(f"Rapport sauvegarde dans {args.output}")

    recompute = report["recompute"]
    print(f"Jours recalcules: {len(recompute['days'])}")
    print(f"Instantanes glissants: {len(recompute['rolling'])}")
    if recompute["failures"]:
        print(f"Echecs: {len(recompute['failures'])}")
        sys.exit(2)


if __name__ == "__main__":
    main()
