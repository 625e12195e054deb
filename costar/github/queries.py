"""GraphQL documents used by the crawler.

Each document holds a single named operation; the operation name is sent
alongside the query so GitHub error reports and our own logs identify the
failing call.
"""

from __future__ import annotations

_REPO_BASIC_FIELDS = """
  id
  nameWithOwner
  isArchived
  isFork
  createdAt
  pushedAt
  stargazerCount
"""

REPO_STARS_COUNT = """
query RepoStarsCount($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) {
    stargazerCount
  }
}
"""

REPO_STARRINGS = """
query RepoStarrings($owner: String!, $name: String!, $after: String) {
  repository(owner: $owner, name: $name) {
    stargazers(
      first: 100
      after: $after
      orderBy: {field: STARRED_AT, direction: DESC}
    ) {
      pageInfo {
        hasNextPage
        endCursor
      }
      edges {
        starredAt
      }
      nodes {
        id
        login
      }
    }
  }
}
"""

USER_STARRED_REPOS = f"""
query UserStarredRepos($login: String!, $after: String) {{
  user(login: $login) {{
    starredRepositories(first: 100, after: $after) {{
      totalCount
      pageInfo {{
        hasNextPage
        endCursor
      }}
      edges {{
        starredAt
        node {{{_REPO_BASIC_FIELDS}}}
      }}
    }}
  }}
}}
"""

USER_LIST_STARRED_REPOS = f"""
query UserListStarredRepos($ids: [ID!]!) {{
  nodes(ids: $ids) {{
    ... on User {{
      login
      starredRepositories(first: 100) {{
        totalCount
        pageInfo {{
          hasNextPage
          endCursor
        }}
        edges {{
          starredAt
          node {{{_REPO_BASIC_FIELDS}}}
        }}
      }}
    }}
  }}
}}
"""

REPO_LIST_DETAILS = f"""
query RepoListDetails($ids: [ID!]!) {{
  nodes(ids: $ids) {{
    ... on Repository {{{_REPO_BASIC_FIELDS}
      description
      watchers {{ totalCount }}
      forkCount
      issues(states: OPEN) {{ totalCount }}
      pullRequests {{ totalCount }}
      releases {{ totalCount }}
      repositoryTopics(first: 20) {{
        totalCount
        nodes {{ topic {{ name }} }}
      }}
      mentionableUsers {{ totalCount }}
      assignableUsers {{ totalCount }}
    }}
  }}
}}
"""
