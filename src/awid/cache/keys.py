"""Cache key schema for AWID.

Scope format: {namespace}:{id}[:{entity_type}[:{sub_scope}...]]

Where:
- namespace: "org", "user", "deliverer", "customer"
- id: owning entity identifier (organization id for tenant data)
- entity_type: "products", "categories", "dashboard", "stats", ...
- sub_scope: optional narrowing (category id, date)

Every tenant key starts with ``org:{organization_id}:`` so all data of one
organization (or one entity type within it) can be flushed with a prefix
pattern, without a secondary index. RedisCache adds its own prefix in front.
"""

from __future__ import annotations


class CacheKeys:
    """Cache key generator following consistent naming convention."""

    # -------------------------------------------------------------------------
    # Organization
    # -------------------------------------------------------------------------

    @classmethod
    def organization(cls, organization_id: str) -> str:
        return f"org:{organization_id}"

    @classmethod
    def organization_settings(cls, organization_id: str) -> str:
        return f"org:{organization_id}:settings"

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    @classmethod
    def products(cls, organization_id: str) -> str:
        """Key for the full product list of an organization."""
        return f"org:{organization_id}:products"

    @classmethod
    def products_by_category(cls, organization_id: str, category_id: str) -> str:
        """Key for products filtered by category.

        Shares the products prefix so product invalidation also clears it.
        """
        return f"org:{organization_id}:products:cat:{category_id}"

    @classmethod
    def categories(cls, organization_id: str) -> str:
        return f"org:{organization_id}:categories"

    # -------------------------------------------------------------------------
    # Dashboard aggregates
    # -------------------------------------------------------------------------

    @classmethod
    def dashboard_stats(cls, organization_id: str) -> str:
        return f"org:{organization_id}:dashboard"

    @classmethod
    def daily_stats(cls, organization_id: str, date: str) -> str:
        """Key for one day of statistics (date as YYYY-MM-DD)."""
        return f"org:{organization_id}:stats:{date}"

    # -------------------------------------------------------------------------
    # Users, deliverers, customers
    # -------------------------------------------------------------------------

    @classmethod
    def user_session(cls, user_id: str) -> str:
        return f"user:{user_id}:session"

    @classmethod
    def deliverer_route(cls, deliverer_id: str, date: str) -> str:
        return f"deliverer:{deliverer_id}:route:{date}"

    @classmethod
    def deliverer_position(cls, deliverer_id: str) -> str:
        return f"deliverer:{deliverer_id}:position"

    @classmethod
    def customer_debt(cls, customer_id: str) -> str:
        return f"customer:{customer_id}:debt"

    # -------------------------------------------------------------------------
    # Invalidation patterns
    # -------------------------------------------------------------------------

    @classmethod
    def organization_pattern(cls, organization_id: str) -> str:
        """Pattern matching every cached entry of an organization."""
        return f"org:{organization_id}:*"

    @classmethod
    def products_pattern(cls, organization_id: str) -> str:
        """Pattern matching the product list and all per-category lists."""
        return f"org:{organization_id}:products*"

    @classmethod
    def parse_key(cls, key: str) -> dict[str, str] | None:
        """Parse a scope into its components.

        Returns None if the key doesn't match the expected format.
        """
        parts = key.split(":")
        if len(parts) < 2 or not parts[0] or not parts[1]:
            return None

        return {
            "namespace": parts[0],
            "id": parts[1],
            "entity_type": parts[2] if len(parts) > 2 else "",
            "sub_scope": ":".join(parts[3:]),
        }
