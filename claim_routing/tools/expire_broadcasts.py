"""Run the broadcast expiry sweep once.

Usage:
    python -m claim_routing.tools.expire_broadcasts
    python -m claim_routing.tools.expire_broadcasts --limit 500
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from claim_routing.adapters.persistence.database import async_session_factory, engine
from claim_routing.domain.exceptions import PersistenceFailure
from claim_routing.infrastructure.api.dependencies import build_coordinator

logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(message)s")
logger = logging.getLogger(__name__)


async def sweep(limit: int) -> int:
    async with async_session_factory() as session:
        coordinator = build_coordinator(session)
        results = await coordinator.expire_due(limit=limit)
        await session.commit()

    for r in results:
        logger.info("  %s", r.to_dict())
    return len(results)


async def _main(limit: int) -> int:
    try:
        count = await sweep(limit)
    except PersistenceFailure as e:
        logger.error("Expiry sweep failed: %s", e)
        return 1
    finally:
        await engine.dispose()
    logger.info("Expired %d broadcast(s)", count)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Expire overdue broadcasts and apply fallbacks")
    parser.add_argument("--limit", type=int, default=100, help="max orders per run")
    args = parser.parse_args()
    sys.exit(asyncio.run(_main(args.limit)))


if __name__ == "__main__":
    main()
