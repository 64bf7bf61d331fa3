"""Scheduled bus factor analysis tasks."""

import asyncio
from contextlib import asynccontextmanager
from typing import Any

import structlog

from workers.celery_app import app

logger = structlog.get_logger()


def run_async(coro):
    """Helper to run async code in Celery tasks."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@asynccontextmanager
async def bus_factor_calculator():
    """Calculator wired to Postgres, Neo4j and the Redis graph cache."""
    from src.busfactor import BusFactorCalculator, KnowledgeDependencyBuilder, RedisGraphCache
    from src.sources.neo4j_directory import Neo4jDirectory
    from src.sources.postgres import PostgresEventStore

    event_store = PostgresEventStore()
    directory = Neo4jDirectory()
    cache = RedisGraphCache.from_url()

    await event_store.connect()
    await directory.connect()
    try:
        builder = KnowledgeDependencyBuilder(event_store, directory, cache)
        yield BusFactorCalculator(builder)
    finally:
        await cache.close()
        await directory.close()
        await event_store.close()


@app.task(bind=True, max_retries=2, default_retry_delay=300)
def calculate_bus_factor(self, organization_id: str, options: dict[str, Any] | None = None):
    """Calculate the bus factor report for one organization.

    Args:
        organization_id: Organization to analyze
        options: BusFactorOptions fields
    """
    return run_async(_calculate_bus_factor(organization_id, options or {}))


async def _calculate_bus_factor(organization_id: str, options: dict[str, Any]):
    """Async implementation of a single organization run."""
    logger.info("Starting bus factor calculation", organization_id=organization_id)

    try:
        async with bus_factor_calculator() as calculator:
            report = await calculator.calculate_organization_bus_factor(
                organization_id, **options
            )

        return {"status": "success", "report": report.to_dict()}

    except Exception as e:
        logger.error(
            "Bus factor calculation failed",
            organization_id=organization_id,
            error=str(e),
        )
        return {"status": "error", "organization_id": organization_id, "message": str(e)}


@app.task(bind=True, max_retries=1, default_retry_delay=900)
def calculate_all_bus_factors(self):
    """Calculate bus factor reports for every organization in the directory."""
    return run_async(_calculate_all_bus_factors())


async def _calculate_all_bus_factors():
    """Async implementation of the nightly batch."""
    logger.info("Starting nightly bus factor batch")

    try:
        async with bus_factor_calculator() as calculator:
            organizations = await calculator.builder.directory.list_organizations()

            completed = []
            failed = []
            for organization_id in organizations:
                try:
                    report = await calculator.calculate_organization_bus_factor(organization_id)
                    completed.append(
                        {
                            "organization_id": organization_id,
                            "overall_bus_factor": report.overall_bus_factor,
                            "overall_risk_level": report.overall_risk_level.value,
                            "single_points_of_failure": len(report.single_points_of_failure),
                        }
                    )
                except Exception as e:
                    logger.error(
                        "Organization bus factor failed",
                        organization_id=organization_id,
                        error=str(e),
                    )
                    failed.append({"organization_id": organization_id, "error": str(e)})

        logger.info(
            "Nightly bus factor batch complete",
            completed=len(completed),
            failed=len(failed),
        )

        return {"status": "success", "completed": completed, "failed": failed}

    except Exception as e:
        logger.error("Nightly bus factor batch failed", error=str(e))
        return {"status": "error", "message": str(e)}


@app.task
def invalidate_graph_cache(organization_id: str | None = None):
    """Drop cached knowledge graphs for one organization, or all."""
    return run_async(_invalidate_graph_cache(organization_id))


async def _invalidate_graph_cache(organization_id: str | None):
    from src.busfactor import RedisGraphCache

    cache = RedisGraphCache.from_url()
    try:
        removed = await cache.invalidate(organization_id)
        logger.info("Graph cache invalidated", organization_id=organization_id, removed=removed)
        return {"status": "success", "removed": removed}
    except Exception as e:
        logger.error("Graph cache invalidation failed", error=str(e))
        return {"status": "error", "message": str(e)}
    finally:
        await cache.close()
