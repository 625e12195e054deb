"""GitHub client errors.

Transport and API failures are soft: the client logs them and returns
``None``. The exceptions below are reserved for conditions the caller must
handle explicitly, such as a missing credential or a response that violates
the pagination contract.
"""

from __future__ import annotations


class GitHubResponseShapeError(RuntimeError):
    """Raised when GitHub GraphQL responses are missing expected fields."""

    @classmethod
    def missing(cls, field: str) -> GitHubResponseShapeError:
        """Return an error for a missing GraphQL response field."""
        return cls(f"GitHub GraphQL response missing expected field: {field}")


class PaginationIntegrityError(GitHubResponseShapeError):
    """Raised when a paginated connection contradicts itself."""

    @classmethod
    def missing_cursor(cls, context: str) -> PaginationIntegrityError:
        """Return an error when more pages are claimed without a cursor."""
        return cls(f"{context}: hasNextPage is set but no endCursor was returned")

    @classmethod
    def mismatched_lengths(
        cls, context: str, *, edges: int, nodes: int
    ) -> PaginationIntegrityError:
        """Return an error when edges and nodes disagree in length."""
        return cls(f"{context}: expected as many nodes as edges ({nodes} != {edges})")


class GitHubConfigError(RuntimeError):
    """Raised when GitHub client configuration is invalid."""

    @classmethod
    def missing_token(cls) -> GitHubConfigError:
        """Return an error when no GitHub token is configured."""
        return cls("COSTAR_GITHUB_TOKEN is required for the GitHub API")

    @classmethod
    def empty_token(cls) -> GitHubConfigError:
        """Return an error when the provided token is empty."""
        return cls("GitHub token must be non-empty")
