"""Configuration models for local networks."""

from .network import NetworkConfig, NodeConfig
from .settings import RunnerSettings, DEFAULT_SETTINGS
from .manifest import load_manifest

__all__ = [
    "NetworkConfig",
    "NodeConfig",
    "RunnerSettings",
    "DEFAULT_SETTINGS",
    "load_manifest",
]
