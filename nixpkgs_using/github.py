"""
GitHub GraphQL API client for nixpkgs-using.

Fetches every open pull request of a repository, page by page.
Uses a bearer token (GITHUB_TOKEN) for authentication.

Supports:
- Cursor-based pagination until the listing is exhausted
- Explicit null-node handling in page responses
- Mapping of HTTP/GraphQL failures onto a small error taxonomy
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import __version__


logger = logging.getLogger(__name__)

GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"
PAGE_SIZE = 100

PULL_REQUESTS_QUERY = """
query PullRequests($owner: String!, $name: String!, $cursor: String) {
  repository(owner: $owner, name: $name) {
    pullRequests(
      first: %d
      after: $cursor
      states: [OPEN]
      orderBy: {field: CREATED_AT, direction: DESC}
    ) {
      nodes {
        title
        url
        createdAt
        isDraft
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
""" % PAGE_SIZE


class PullRequest(BaseModel):
    """A pull request as returned by the listing query."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str
    url: str
    created_at: int = Field(alias="createdAt")  # seconds since epoch
    is_draft: bool = Field(alias="isDraft")

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> Any:
        if isinstance(value, str):
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return int(dt.timestamp())
        return value


class PageInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_next_page: bool = Field(alias="hasNextPage")
    end_cursor: str | None = Field(default=None, alias="endCursor")


class PullRequestConnection(BaseModel):
    """One page of the pull request listing."""
    model_config = ConfigDict(populate_by_name=True)

    nodes: list[PullRequest | None]
    page_info: PageInfo = Field(alias="pageInfo")


class GitHubAPIError(Exception):
    """Error from GitHub API."""
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthError(GitHubAPIError):
    """Credentials were rejected."""


class NetworkError(GitHubAPIError):
    """Transport failure or unexpected HTTP status."""


class RateLimitError(NetworkError):
    """Rate limit exceeded."""
    def __init__(self, reset_time: int | None = None, status_code: int = 403):
        super().__init__("GitHub API rate limit exceeded", status_code)
        self.reset_time = reset_time


class ProtocolError(GitHubAPIError):
    """Malformed response, or the response carries GraphQL errors."""


class GitHubClient:
    """GitHub GraphQL client that walks the pull request listing of a repository."""

    def __init__(self, token: str, api_url: str = GITHUB_GRAPHQL_URL):
        self.api_url = api_url
        self.session = requests.Session()
        self.session.headers["Authorization"] = f"Bearer {token}"
        self.session.headers["User-Agent"] = f"nixpkgs-using/{__version__}"

    def _post(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Send one GraphQL request and return its `data` object."""
        try:
            response = self.session.post(
                self.api_url,
                json={"query": query, "variables": variables},
            )
        except requests.RequestException as e:
            raise NetworkError(f"Request failed: {e}") from e

        if response.status_code == 401:
            raise AuthError("GitHub rejected the token (401 Unauthorized)", 401)

        if response.status_code in (403, 429):
            if response.headers.get("X-RateLimit-Remaining") == "0":
                reset_time = int(response.headers.get("X-RateLimit-Reset", 0))
                raise RateLimitError(reset_time, response.status_code)
            if response.status_code == 403:
                raise AuthError(f"GitHub API error: 403 - {response.text}", 403)

        if response.status_code >= 400:
            raise NetworkError(
                f"GitHub API error: {response.status_code} - {response.text}",
                response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ProtocolError(f"Response is not valid JSON: {e}") from e

        if not isinstance(body, dict):
            raise ProtocolError("Response body is not a JSON object")

        errors = body.get("errors")
        if errors:
            messages = [
                err.get("message", str(err)) if isinstance(err, dict) else str(err)
                for err in errors
            ]
            raise ProtocolError("GraphQL errors: " + "; ".join(messages))

        data = body.get("data")
        if not isinstance(data, dict):
            raise ProtocolError("Response is missing data")

        return data

    def fetch_pull_requests(
        self,
        owner: str,
        name: str,
        cursor: str | None = None,
    ) -> PullRequestConnection:
        """
        Fetch one page of pull requests.

        Args:
            owner: Repository owner
            name: Repository name
            cursor: End cursor of the previous page, None for the first page

        Returns:
            The page's nodes and page info
        """
        data = self._post(
            PULL_REQUESTS_QUERY,
            {"owner": owner, "name": name, "cursor": cursor},
        )

        repository = data.get("repository")
        if not isinstance(repository, dict):
            raise ProtocolError(f"Repository {owner}/{name} missing from response")

        try:
            return PullRequestConnection.model_validate(repository.get("pullRequests"))
        except ValidationError as e:
            raise ProtocolError(f"Malformed pull request page: {e}") from e

    def paginate_pull_requests(self, owner: str, name: str) -> list[PullRequest]:
        """
        Fetch every pull request of a repository.

        Follows `endCursor` until `hasNextPage` is false. Null nodes are
        skipped. Any error aborts the walk and nothing is returned.
        """
        cursor: str | None = None
        prs: list[PullRequest] = []
        page = 1

        while True:
            connection = self.fetch_pull_requests(owner, name, cursor)
            prs.extend(node for node in connection.nodes if node is not None)
            logger.debug(
                "Page %d of %s/%s: %d nodes (cursor=%s)",
                page, owner, name, len(connection.nodes), cursor,
            )

            if not connection.page_info.has_next_page:
                break

            if connection.page_info.end_cursor is None:
                raise ProtocolError("hasNextPage is true but endCursor is null")

            cursor = connection.page_info.end_cursor
            page += 1

        return prs


def fetch_all(owner: str, name: str, token: str) -> list[PullRequest]:
    """Fetch every pull request of `owner/name` with a fresh client."""
    return GitHubClient(token).paginate_pull_requests(owner, name)
