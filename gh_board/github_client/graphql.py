"""Minimal GitHub GraphQL transport built on httpx."""

import logging
import os
from typing import Any

import httpx

from .errors import GitHubAPIError, GraphQLError, NotFoundError, RateLimitError, wrap_error

logger = logging.getLogger(__name__)

DEFAULT_GRAPHQL_URL = "https://api.github.com/graphql"
GRAPHQL_URL_ENV = "GH_BOARD_GRAPHQL_URL"
DEFAULT_TIMEOUT = 30.0


class GraphQLClient:
    """Posts GraphQL documents to the GitHub API."""

    def __init__(
        self,
        token: str,
        url: str | None = None,
        transport: httpx.BaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the transport.

        Args:
            token: GitHub token sent as a bearer credential
            url: Endpoint; defaults to GH_BOARD_GRAPHQL_URL or api.github.com
            transport: Optional httpx transport (tests pass httpx.MockTransport)
            timeout: Request timeout in seconds
        """
        self.url = url or os.getenv(GRAPHQL_URL_ENV) or DEFAULT_GRAPHQL_URL
        self._http = httpx.Client(
            transport=transport,
            timeout=timeout,
            headers={
                "Authorization": f"bearer {token}",
                "Content-Type": "application/json",
                "Accept": "application/vnd.github+json",
            },
        )

    def close(self) -> None:
        self._http.close()

    def request(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        features: list[str] | None = None,
        operation: str = "graphql request",
    ) -> dict[str, Any]:
        """Send a document and return the raw response payload.

        GraphQL-level ``errors`` are left in the payload for the caller to map;
        only HTTP and transport failures raise.

        Raises:
            GitHubAPIError: On HTTP errors, transport errors or a non-JSON body
        """
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        headers = {}
        if features:
            headers["GraphQL-Features"] = ",".join(features)

        logger.debug("GraphQL %s (%d bytes)", operation, len(query))
        try:
            response = self._http.post(self.url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise wrap_error(operation, self.url, e) from e
        except httpx.TransportError as e:
            raise wrap_error(operation, self.url, e) from e

        try:
            body = response.json()
        except ValueError as e:
            raise GitHubAPIError(
                "invalid JSON in response", operation=operation, resource=self.url
            ) from e

        if not isinstance(body, dict):
            raise GitHubAPIError(
                "unexpected response shape", operation=operation, resource=self.url
            )
        return body

    def execute(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        features: list[str] | None = None,
        operation: str = "graphql request",
    ) -> dict[str, Any]:
        """Send a document and return its ``data``.

        Raises:
            RateLimitError: If any error has type RATE_LIMITED
            NotFoundError: If every error has type NOT_FOUND
            GraphQLError: For any other GraphQL error payload
        """
        body = self.request(query, variables, features=features, operation=operation)
        errors = body.get("errors") or []
        if errors:
            raise graphql_error(errors, operation)
        return body.get("data") or {}


def graphql_error(errors: list[dict[str, Any]], operation: str) -> GitHubAPIError:
    """Build the exception matching a GraphQL ``errors`` payload."""
    messages = [err.get("message", "unknown error") for err in errors]
    message = "; ".join(messages)
    types = {err.get("type") for err in errors}
    logger.debug("GraphQL %s failed: %s", operation, message)

    if "RATE_LIMITED" in types:
        return RateLimitError(message, operation=operation)
    if types == {"NOT_FOUND"}:
        return NotFoundError(message, operation=operation)
    return GraphQLError(message, errors=errors, operation=operation)
