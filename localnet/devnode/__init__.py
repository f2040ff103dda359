"""Dev node for smoke-testing the runner."""

from .server import DevNode

__all__ = ["DevNode"]
