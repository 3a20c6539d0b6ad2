"""Staleness pre-check against the GitHub GraphQL API."""

from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from ..errors import RemoteAPIError

if TYPE_CHECKING:
    from ..models.plugin import Plugin

logger = structlog.get_logger(__name__)

GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"

_PREFIXES = ("https://github.com/", "http://github.com/", "github.com/", "git@github.com:")
# Owner and repository names are interpolated into the query, so nothing else gets through
_NAME_RE = re.compile(r"^[\w.-]+$")


def extract_github_repo(repo: str) -> tuple[str, str] | None:
    """Split a GitHub repository reference into (owner, name), or None if it is not one."""
    rest = repo
    for prefix in _PREFIXES:
        if repo.startswith(prefix):
            rest = repo[len(prefix) :]
            break
    else:
        if "://" in repo or repo.startswith("git@"):
            return None

    parts = rest.rstrip("/").split("/")
    if len(parts) != 2:
        return None
    owner, name = parts[0], re.sub(r"\.git$", "", parts[1])
    if not _NAME_RE.match(owner) or not _NAME_RE.match(name):
        return None
    return owner, name


def build_query(plugins: list[Plugin]) -> tuple[str, dict[str, Plugin]]:
    """One aliased ``repository`` lookup per GitHub-hosted plugin.

    Returns the query and the alias → plugin map. The ``repository`` field is
    much faster than the search API.
    """
    aliases: dict[str, Plugin] = {}
    fields: list[str] = []
    for index, plugin in enumerate(plugins):
        parsed = extract_github_repo(plugin.repo or "")
        if parsed is None:
            continue
        owner, name = parsed
        alias = f"repo{index}"
        aliases[alias] = plugin
        fields.append(f'{alias}: repository(owner:"{owner}", name:"{name}"){{ pushedAt }}')
    return "query {\n" + "\n".join(fields) + "\n}", aliases


async def fetch_pushed_since(
    plugins: list[Plugin],
    cutoff: datetime,
    token: str,
    client: httpx.AsyncClient | None = None,
) -> list[tuple[Plugin, datetime]]:
    """Plugins whose GitHub repository was pushed to after ``cutoff``.

    Raises:
        RemoteAPIError: Missing token, transport or HTTP failure, invalid JSON,
            or a GraphQL error response.
    """
    if not token:
        raise RemoteAPIError('"githubAPIToken" must be set.', url=GITHUB_GRAPHQL_URL)

    query, aliases = build_query(plugins)
    if not aliases:
        return []

    logger.debug("querying_github", repositories=len(aliases))
    data = await _post(query, token, client)

    updated: list[tuple[Plugin, datetime]] = []
    for alias, plugin in aliases.items():
        entry = data.get(alias)
        pushed_at = entry.get("pushedAt") if isinstance(entry, dict) else None
        if not isinstance(pushed_at, str):
            continue
        pushed = _parse_timestamp(pushed_at)
        if pushed is not None and pushed > cutoff:
            updated.append((plugin, pushed))
    return updated


async def _post(query: str, token: str, client: httpx.AsyncClient | None) -> dict[str, Any]:
    headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=30) as own:
                response = await own.post(GITHUB_GRAPHQL_URL, json={"query": query}, headers=headers)
        else:
            response = await client.post(GITHUB_GRAPHQL_URL, json={"query": query}, headers=headers)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise RemoteAPIError(
            f"Failed to fetch from GitHub GraphQL API: HTTP {e.response.status_code}",
            url=GITHUB_GRAPHQL_URL,
        ) from e
    except httpx.HTTPError as e:
        raise RemoteAPIError(
            f"Failed to fetch from GitHub GraphQL API: {e}", url=GITHUB_GRAPHQL_URL
        ) from e

    try:
        result = response.json()
    except ValueError as e:
        raise RemoteAPIError(f"Invalid JSON from GitHub GraphQL API: {e}", url=GITHUB_GRAPHQL_URL) from e

    if not isinstance(result, dict):
        raise RemoteAPIError("Unexpected response from GitHub GraphQL API", url=GITHUB_GRAPHQL_URL)
    errors = result.get("errors")
    if errors:
        first = errors[0].get("message", errors[0]) if isinstance(errors[0], dict) else errors[0]
        raise RemoteAPIError(f"Failed to fetch from GitHub GraphQL API: {first}", url=GITHUB_GRAPHQL_URL)
    data = result.get("data")
    return data if isinstance(data, dict) else {}


def _parse_timestamp(value: str) -> datetime | None:
    # fromisoformat only understands a trailing "Z" from Python 3.11 on
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
