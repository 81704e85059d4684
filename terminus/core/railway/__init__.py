"""Railway GraphQL API access: client, typed response models, query assets."""

from terminus.core.railway.client import RAILWAY_API_URL, AsyncRailwayClient
from terminus.core.railway.errors import (
    ConfigError,
    NetworkError,
    ParseError,
    RailwayError,
    UpstreamQueryError,
)

__all__ = [
    "RAILWAY_API_URL",
    "AsyncRailwayClient",
    "ConfigError",
    "NetworkError",
    "ParseError",
    "RailwayError",
    "UpstreamQueryError",
]
