# SPDX-FileCopyrightText: 2025 DB Systel GmbH
#
# SPDX-License-Identifier: Apache-2.0

"""
Functions for interacting with the GitHub API
"""

import logging
import os
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

import requests

from ._exceptions import DecodeError, RemoteProtocolError, TransportError

GRAPHQL_URL = "https://api.github.com/graphql"
# Number of nodes requested per page of a GraphQL connection
PAGE_SIZE = 100


def get_github_secrets_from_env(env_variable: str, secret: str | int) -> str:
    """Get GitHub secrets from config or environment, while environment overrides"""
    if env_variable in os.environ and os.environ[env_variable]:
        logging.debug("GitHub secret taken from environment variable %s", env_variable)
        secret = os.environ[env_variable]
    elif secret:
        logging.debug("GitHub secret taken from app configuration file")

    return str(secret)


# Function to execute GraphQL query
def run_graphql_query(query: str, variables: dict, token: str, timeout: int = 30) -> dict:
    """Run a query against the GitHub GraphQL API and return its `data` part.

    Raises TransportError, RemoteProtocolError or DecodeError, nothing is retried.
    """
    headers = {"Authorization": f"Bearer {token}"}
    try:
        request = requests.post(
            GRAPHQL_URL,
            json={"query": query, "variables": variables},
            headers=headers,
            timeout=timeout,
        )
    except requests.exceptions.RequestException as exc:
        raise TransportError(f"Request to the GitHub GraphQL API failed: {exc}") from exc

    if request.status_code != 200:
        # Debug information in case of errors
        logging.debug(
            "Query failed with HTTP error code '%s' when running this query: %s\n"
            "Return: %s\nHeaders: %s",
            request.status_code,
            query,
            request.text,
            request.headers,
        )
        raise TransportError(
            f"GitHub GraphQL API returned HTTP status {request.status_code}: {request.text[:200]}"
        )

    # Get JSON result
    try:
        json_return = request.json()
    except requests.exceptions.JSONDecodeError as exc:
        raise DecodeError(f"GitHub GraphQL API returned no valid JSON: {exc}") from exc

    if not isinstance(json_return, dict):
        raise DecodeError(f"Unexpected GraphQL response: {json_return!r}")

    if errors := json_return.get("errors"):
        logging.debug("GraphQL errors for query with variables %s: %s", variables, errors)
        raise RemoteProtocolError(errors if isinstance(errors, list) else [errors])

    data = json_return.get("data")
    if not isinstance(data, dict):
        raise DecodeError(f"GraphQL response contains no data: {json_return!r}")

    return data


@dataclass
class Page:
    """One page of a cursor-paginated connection"""

    nodes: list[Any] = field(default_factory=list)
    has_next_page: bool = False
    end_cursor: str | None = None


def paginate(fetch_page: Callable[[str | None], Page]) -> Iterator[Any]:
    """Walk through all pages of a cursor-paginated query.

    The first page is requested without cursor, every further page with the
    end cursor of the previous one, as long as the previous page announced a
    next page. Nodes are yielded in the order the server delivers them. Any
    error raised by `fetch_page` propagates immediately.
    """
    cursor: str | None = None
    while True:
        page = fetch_page(cursor)
        yield from page.nodes
        if not page.has_next_page:
            return
        cursor = page.end_cursor


def _dig(data: dict, path: Sequence[str]) -> Any:
    """Follow a sequence of keys into a nested GraphQL response"""
    current: Any = data
    for key in path:
        if not isinstance(current, dict) or current.get(key) is None:
            raise DecodeError(
                f"Key '{key}' of path '{'.'.join(path)}' not found in GraphQL response"
            )
        current = current[key]
    return current


def extract_page(data: dict, connection_path: Sequence[str]) -> Page:
    """Extract nodes (or edges) and pagination info of a connection in a
    GraphQL response"""
    connection = _dig(data, connection_path)
    try:
        page_info = connection["pageInfo"]
        nodes = connection["nodes"] if "nodes" in connection else connection["edges"]
        page = Page(
            nodes=list(nodes or []),
            has_next_page=bool(page_info["hasNextPage"]),
            end_cursor=page_info.get("endCursor"),
        )
    except (KeyError, TypeError) as exc:
        raise DecodeError(
            f"Connection '{'.'.join(connection_path)}' has an unexpected shape: {exc}"
        ) from exc

    # Without cursor, the next request would return the first page again
    if page.has_next_page and not page.end_cursor:
        raise DecodeError(
            f"Connection '{'.'.join(connection_path)}' announces a next page but has no end cursor"
        )

    return page


def paginate_graphql_query(
    query: str, variables: dict, token: str, connection_path: Sequence[str]
) -> Iterator[Any]:
    """Run a GraphQL query taking a `$cursor` variable for all pages of the
    connection found under `connection_path`, and yield its nodes"""

    def fetch_page(cursor: str | None) -> Page:
        logging.debug("Requesting %s with cursor %s", ".".join(connection_path), cursor)
        data = run_graphql_query(query, {**variables, "cursor": cursor}, token)
        return extract_page(data, connection_path)

    return paginate(fetch_page)
