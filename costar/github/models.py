"""Typed GraphQL response shapes for the crawler queries.

Responses are converted with :func:`msgspec.convert`, so a payload that does
not match these shapes is rejected at the client boundary instead of deep in
the pipeline. Lists of nodes admit ``None`` entries because GitHub returns
``null`` for deleted users and repositories inside otherwise valid pages.
"""

from __future__ import annotations

import msgspec


class PageInfo(msgspec.Struct, rename="camel", frozen=True):
    """Relay pagination cursor state."""

    has_next_page: bool
    end_cursor: str | None = None


class TotalCount(msgspec.Struct, rename="camel", frozen=True):
    """Connection that is only queried for its size."""

    total_count: int = 0


class RepoBasic(msgspec.Struct, rename="camel", frozen=True, kw_only=True):
    """Repository fields captured when a repository is first seen."""

    id: str
    name_with_owner: str
    is_archived: bool = False
    is_fork: bool = False
    created_at: str
    pushed_at: str | None = None
    stargazer_count: int = 0


class _Topic(msgspec.Struct, frozen=True):
    name: str


class _TopicNode(msgspec.Struct, frozen=True):
    topic: _Topic


class TopicConnection(msgspec.Struct, rename="camel", frozen=True):
    """Repository topics."""

    total_count: int = 0
    nodes: list[_TopicNode | None] = []

    def names(self) -> list[str]:
        """Return the topic names in GitHub order."""
        return [node.topic.name for node in self.nodes if node is not None]


class RepoAdvanced(RepoBasic, rename="camel", frozen=True, kw_only=True):
    """Extended repository metadata fetched during enrichment."""

    description: str | None = None
    watchers: TotalCount = msgspec.field(default_factory=TotalCount)
    fork_count: int = 0
    issues: TotalCount = msgspec.field(default_factory=TotalCount)
    pull_requests: TotalCount = msgspec.field(default_factory=TotalCount)
    releases: TotalCount = msgspec.field(default_factory=TotalCount)
    repository_topics: TopicConnection = msgspec.field(default_factory=TopicConnection)
    mentionable_users: TotalCount = msgspec.field(default_factory=TotalCount)
    assignable_users: TotalCount = msgspec.field(default_factory=TotalCount)


# Repository > stargazers


class _StarredAt(msgspec.Struct, rename="camel", frozen=True):
    starred_at: str


class StargazerNode(msgspec.Struct, frozen=True):
    """A user that starred the repository."""

    id: str
    login: str


class StargazerConnection(msgspec.Struct, rename="camel", frozen=True):
    """One page of stargazers; ``edges[i]`` belongs to ``nodes[i]``."""

    page_info: PageInfo
    edges: list[_StarredAt | None]
    nodes: list[StargazerNode | None]


class _StargazersRepository(msgspec.Struct, frozen=True):
    stargazers: StargazerConnection


class RepoStarrings(msgspec.Struct, frozen=True):
    """Response of the ``RepoStarrings`` operation."""

    repository: _StargazersRepository | None


class _StarCountRepository(msgspec.Struct, rename="camel", frozen=True):
    stargazer_count: int


class RepoStarsCount(msgspec.Struct, frozen=True):
    """Response of the ``RepoStarsCount`` operation."""

    repository: _StarCountRepository | None


# User > starred repositories


class StarredRepoEdge(msgspec.Struct, rename="camel", frozen=True):
    """A repository starred by a user."""

    starred_at: str
    node: RepoBasic | None


class StarredRepoConnection(msgspec.Struct, rename="camel", frozen=True):
    """One page of a user's starred repositories."""

    total_count: int
    page_info: PageInfo
    edges: list[StarredRepoEdge | None]


class _StarringUser(msgspec.Struct, rename="camel", frozen=True):
    starred_repositories: StarredRepoConnection


class UserStarredRepos(msgspec.Struct, frozen=True):
    """Response of the ``UserStarredRepos`` operation."""

    user: _StarringUser | None


class UserStarredNode(msgspec.Struct, rename="camel", frozen=True):
    """A user with the first page of their starred repositories."""

    login: str
    starred_repositories: StarredRepoConnection


class UserListStarredRepos(msgspec.Struct, frozen=True):
    """Response of the ``UserListStarredRepos`` operation."""

    nodes: list[UserStarredNode | None]


class RepoListDetails(msgspec.Struct, frozen=True):
    """Response of the ``RepoListDetails`` operation."""

    nodes: list[RepoAdvanced | None]
