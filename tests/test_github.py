"""Tests for the GitHub staleness pre-check."""

import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest

from plugin_installer import RemoteAPIError
from plugin_installer.models import Plugin
from plugin_installer.remote import (
    GITHUB_GRAPHQL_URL,
    build_query,
    extract_github_repo,
    fetch_pushed_since,
)

CUTOFF = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "repo, expected",
    [
        ("owner/name", ("owner", "name")),
        ("https://github.com/owner/name.git", ("owner", "name")),
        ("github.com/owner/name/", ("owner", "name")),
        ("git@github.com:owner/name.git", ("owner", "name")),
        ("https://gitlab.com/owner/name", None),
        ("owner/name/extra", None),
        ('owner/na"me', None),
    ],
)
def test_extract_github_repo(repo, expected):
    assert extract_github_repo(repo) == expected


def test_build_query_skips_non_github():
    plugins = [Plugin(name="a", repo="o/a"), Plugin(name="b", repo="https://example.com/b"), Plugin(name="c")]
    query, aliases = build_query(plugins)
    assert list(aliases) == ["repo0"]
    assert 'repo0: repository(owner:"o", name:"a"){ pushedAt }' in query


def test_fetch_filters_by_cutoff(httpx_mock):
    httpx_mock.add_response(
        url=GITHUB_GRAPHQL_URL,
        json={
            "data": {
                "repo0": {"pushedAt": "2024-02-01T00:00:00Z"},
                "repo1": {"pushedAt": "2023-12-01T00:00:00Z"},
                "repo2": None,
            }
        },
    )
    plugins = [Plugin(name="new", repo="o/new"), Plugin(name="old", repo="o/old"), Plugin(name="gone", repo="o/gone")]

    found = asyncio.run(fetch_pushed_since(plugins, CUTOFF, "tok"))

    assert [(p.name, t) for p, t in found] == [("new", datetime(2024, 2, 1, tzinfo=timezone.utc))]
    request = httpx_mock.get_request()
    assert request.headers["Authorization"] == "Bearer tok"
    assert "repo2" in json.loads(request.content)["query"]


def test_fetch_without_token():
    with pytest.raises(RemoteAPIError, match="githubAPIToken"):
        asyncio.run(fetch_pushed_since([Plugin(name="a", repo="o/a")], CUTOFF, ""))


def test_fetch_no_github_plugins_makes_no_request():
    assert asyncio.run(fetch_pushed_since([Plugin(name="a")], CUTOFF, "tok")) == []


def test_fetch_http_error(httpx_mock):
    httpx_mock.add_response(url=GITHUB_GRAPHQL_URL, status_code=401)
    with pytest.raises(RemoteAPIError, match="HTTP 401"):
        asyncio.run(fetch_pushed_since([Plugin(name="a", repo="o/a")], CUTOFF, "tok"))


def test_fetch_graphql_error(httpx_mock):
    httpx_mock.add_response(url=GITHUB_GRAPHQL_URL, json={"errors": [{"message": "rate limited"}]})
    with pytest.raises(RemoteAPIError, match="rate limited"):
        asyncio.run(fetch_pushed_since([Plugin(name="a", repo="o/a")], CUTOFF, "tok"))


def test_fetch_invalid_json(httpx_mock):
    httpx_mock.add_response(url=GITHUB_GRAPHQL_URL, content=b"<html>")
    with pytest.raises(RemoteAPIError, match="Invalid JSON"):
        asyncio.run(fetch_pushed_since([Plugin(name="a", repo="o/a")], CUTOFF, "tok"))


def test_fetch_transport_error(httpx_mock):
    httpx_mock.add_exception(httpx.ConnectError("refused"))
    with pytest.raises(RemoteAPIError, match="refused"):
        asyncio.run(fetch_pushed_since([Plugin(name="a", repo="o/a")], CUTOFF, "tok"))
