"""Node API clients."""

from .info import InfoClient, BOOTSTRAP_CHAINS

__all__ = ["InfoClient", "BOOTSTRAP_CHAINS"]
