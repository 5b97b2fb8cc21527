"""
Script para ejecutar una corrida de matchmaking de una organización.

Carga clientes y propiedades activos, calcula la matriz de scores
(reglas + LLM opcional) y muestra las vistas agregadas.

Uso:
    python -m propmatch.scripts.run_matchmaking --org-id <uuid>
    python -m propmatch.scripts.run_matchmaking --org-id <uuid> --no-semantic --json
"""

import argparse
import asyncio
import logging
import sys

import structlog

from propmatch.config import get_settings
from propmatch.matching import MatchmakingEngine, summary_stats

# Configurar logging
settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(message)s",
    force=True,
)

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Matchmaking clientes-propiedades")
    parser.add_argument("--org-id", required=True, help="UUID de la organización")
    parser.add_argument(
        "--no-semantic",
        action="store_true",
        help="Solo score por reglas, sin llamadas al LLM",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Imprimir las vistas agregadas como JSON en stdout",
    )
    return parser.parse_args(argv)


async def run_matchmaking(organization_id: str, semantic: bool):
    """Ejecuta la corrida de matchmaking."""
    engine = MatchmakingEngine(settings=settings)
    return await engine.run(organization_id, semantic=semantic)


def main(argv=None):
    """Entry point del script."""
    args = parse_args(argv)
    logger.info("Iniciando matchmaking...", organization_id=args.org_id)

    try:
        report = asyncio.run(run_matchmaking(args.org_id, semantic=not args.no_semantic))
        stats = summary_stats(report.analytics)

        logger.info(
            "Matchmaking completado",
            clients=stats.total_clients,
            properties=stats.total_properties,
            above_50=stats.matches_above_50,
            above_70=stats.matches_above_70,
            average=stats.average_score,
            enriched=report.enriched_pairs,
        )

        if args.json:
            print(report.analytics.model_dump_json(indent=2))

        sys.exit(0)

    except KeyboardInterrupt:
        logger.info("Matchmaking interrumpido por usuario")
        sys.exit(130)
    except Exception as e:
        logger.error("Error fatal en matchmaking", error_type=type(e).__name__, error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
