"""Remote metadata lookups used to narrow the update set."""

from ._github import (
    GITHUB_GRAPHQL_URL,
    build_query,
    extract_github_repo,
    fetch_pushed_since,
)

__all__ = [
    "GITHUB_GRAPHQL_URL",
    "build_query",
    "extract_github_repo",
    "fetch_pushed_since",
]
