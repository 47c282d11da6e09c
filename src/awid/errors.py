"""Error taxonomy for the AWID coordination layer.

Only conditions a caller has to react to are exceptions:

- BackingStoreUnavailable: Redis is down or was never reached. Propagates
  uncaught, nothing in this package retries it after startup.
- LockContention: the resource is already held. Expected and recoverable.

Undecodable cached/published values and exhausted rate limits are not errors;
they are reported through return values (see ``awid.cache.serialization`` and
``awid.distributed.rate_limit``).
"""

from __future__ import annotations


class CoordinationError(Exception):
    """Base class for coordination layer errors."""


class BackingStoreUnavailable(CoordinationError):
    """The shared key-value store cannot be reached."""

    def __init__(self, message: str = "Backing store unavailable"):
        super().__init__(message)


class LockContention(CoordinationError):
    """A distributed lock is already held by another owner."""

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"Could not acquire lock for resource: {resource}")
