"""Structured exceptions for Railway GraphQL access."""

from __future__ import annotations

from typing import List, Optional


class ConfigError(Exception):
    """Required configuration (API token, auth secret) is missing."""
    pass


class RailwayError(Exception):
    """Base exception for a failed Railway GraphQL query."""

    def __init__(
        self,
        message: str,
        query_name: str = "Unknown",
        raw_body: Optional[str] = None,
    ) -> None:
        self.message = message
        self.query_name = query_name
        self.raw_body = raw_body
        super().__init__(f"{query_name} query failed - {message}")


class NetworkError(RailwayError):
    """Transport-level failure: DNS, connect, TLS, timeout."""
    pass


class ParseError(RailwayError):
    """The response body was not a JSON object."""
    pass


class UpstreamQueryError(RailwayError):
    """The response carried a non-empty GraphQL ``errors`` array."""

    def __init__(
        self,
        errors: List[str],
        query_name: str = "Unknown",
        raw_body: Optional[str] = None,
    ) -> None:
        self.errors = errors
        super().__init__(
            f"Railway API Error: {', '.join(errors)}. Response: {raw_body}",
            query_name=query_name,
            raw_body=raw_body,
        )
