"""API routers for AWID."""

from awid.api.routers import health

__all__ = ["health"]
