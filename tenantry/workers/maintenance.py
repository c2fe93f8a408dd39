"""Periodic registry maintenance jobs."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


async def expire_trials(ctx: dict) -> dict:
    """Persist ``expired`` for every trial that has run out.

    Requests already expire trials lazily when they read the registry; this
    keeps tenants nobody visits accurate in admin stats.
    ``ctx["registry"]`` is an open RegistryStore.
    """
    expired = await ctx["registry"].expire_overdue_trials()
    if expired:
        logger.info("Expired %d trials: %s", len(expired), ", ".join(expired))
    else:
        logger.info("Trial sweep: no trials due")
    return {"expired": expired}


async def cleanup_orphans(ctx: dict) -> dict:
    """Drop registry entries whose tenant storage has been removed."""
    removed = await ctx["provisioner"].cleanup_orphans()
    return {"removed": removed}
