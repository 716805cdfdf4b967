"""
application.context - Request-scoped caller context.

Every service call receives the authenticated customer explicitly. Two
concurrent requests get two different RequestContext instances; nothing
about the caller is held in module or service state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import uuid4


@dataclass(frozen=True)
class RequestContext:
    """Per-request context passed through the application layer.

    Attributes:
        customer_id:  Authenticated customer (from the bearer token).
        email:        Customer email, for gateway receipts.
        request_id:   Unique per request, for tracing/logging.
    """
    customer_id: int
    email: str = ""
    request_id: str = field(default_factory=lambda: uuid4().hex[:12])
