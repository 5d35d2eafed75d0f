"""phoenixd HTTP API client and its configuration."""

from .client import PhoenixdClient
from .configs import PhoenixdConfig


__all__ = ["PhoenixdClient", "PhoenixdConfig"]
