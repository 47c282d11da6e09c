"""Observability module for AWID.

Provides structured logging with request, organization and user context.
"""

from awid.observability.logging import (
    LogContext,
    configure_logging,
    organization_id_var,
    request_id_var,
    user_id_var,
)

__all__ = [
    "configure_logging",
    "LogContext",
    "request_id_var",
    "organization_id_var",
    "user_id_var",
]
