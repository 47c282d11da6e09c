"""Write-invalidate policy for cached tenant data.

Every mutating business operation calls the matching method after its write
commits, e.g. product create/update/delete calls ``products(org_id)``.

Example:
    invalidator = CacheInvalidator(cache)

    await product_repo.update(product)
    await invalidator.products(product.organization_id)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from awid.cache.keys import CacheKeys

if TYPE_CHECKING:
    from awid.cache.redis import RedisCache

logger = logging.getLogger(__name__)


class CacheInvalidator:
    """Flushes the cache namespaces touched by a write."""

    def __init__(self, cache: RedisCache):
        self.cache = cache

    async def products(self, organization_id: str) -> int:
        """Invalidate the product list and every per-category list."""
        return await self.cache.delete_pattern(CacheKeys.products_pattern(organization_id))

    async def categories(self, organization_id: str) -> bool:
        return await self.cache.delete(CacheKeys.categories(organization_id))

    async def dashboard(self, organization_id: str) -> bool:
        return await self.cache.delete(CacheKeys.dashboard_stats(organization_id))

    async def settings(self, organization_id: str) -> bool:
        return await self.cache.delete(CacheKeys.organization_settings(organization_id))

    async def organization(self, organization_id: str) -> int:
        """Invalidate all cached entries of an organization."""
        deleted = await self.cache.delete_pattern(
            CacheKeys.organization_pattern(organization_id)
        )
        logger.info(f"Invalidated {deleted} cache entries for organization {organization_id}")
        return deleted
