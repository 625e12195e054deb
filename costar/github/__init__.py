"""GitHub GraphQL access for the co-star crawler."""

from __future__ import annotations

from .client import GitHubClientConfig, RateLimitedClient
from .errors import (
    GitHubConfigError,
    GitHubResponseShapeError,
    PaginationIntegrityError,
)
from .pagination import PaginationResult, Paginator
from .ratelimit import PacingDecision, QuotaStatus, plan_delay

__all__ = [
    "GitHubClientConfig",
    "GitHubConfigError",
    "GitHubResponseShapeError",
    "PacingDecision",
    "PaginationIntegrityError",
    "PaginationResult",
    "Paginator",
    "QuotaStatus",
    "RateLimitedClient",
    "plan_delay",
]
