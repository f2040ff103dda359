"""Exception types raised by the network runner."""

from typing import List, Optional, Sequence, Tuple


class LocalNetError(Exception):
    """Base class for all runner errors."""


class ConfigurationError(LocalNetError):
    """Network or node configuration is malformed or incomplete."""

    def __init__(self, message: str, launched_pids: Sequence[int] = ()):
        super().__init__(message)
        self.launched_pids: List[int] = list(launched_pids)


class MaterializationError(LocalNetError):
    """A config artifact could not be written to disk."""

    def __init__(self, path: str, cause: OSError, launched_pids: Sequence[int] = ()):
        super().__init__(f"unable to write {path}: {cause}")
        self.path = path
        self.cause = cause
        self.launched_pids: List[int] = list(launched_pids)


class LaunchError(LocalNetError):
    """A node process could not be started."""

    def __init__(self, label: str, cause: Exception, launched_pids: Sequence[int] = ()):
        super().__init__(f"node {label} failed to start: {cause}")
        self.label = label
        self.cause = cause
        self.launched_pids: List[int] = list(launched_pids)


class ConstructionCancelled(LocalNetError):
    """Network construction was cancelled before every node was started."""

    def __init__(self, launched_pids: Sequence[int] = ()):
        super().__init__("network construction cancelled")
        self.launched_pids: List[int] = list(launched_pids)


class IdentityExhaustedError(LocalNetError):
    """No more network identities can be assigned."""


class NodeNotFoundError(LocalNetError, KeyError):
    """No node is registered under the requested identity."""

    def __init__(self, identity):
        super().__init__(f"node {identity} not found in network")
        self.identity = identity

    def __str__(self) -> str:
        return self.args[0]


class InfoAPIError(LocalNetError):
    """The node info API could not be queried."""


class ReadinessTimeoutError(LocalNetError):
    """A node did not report all chains bootstrapped before its deadline."""

    def __init__(self, identity, label: Optional[str] = None):
        suffix = f" ({label})" if label else ""
        super().__init__(f"timeout waiting for {identity}{suffix}")
        self.identity = identity
        self.label = label


class ReadinessCancelled(LocalNetError):
    """Readiness polling for a node was cancelled."""

    def __init__(self, identity):
        super().__init__(f"readiness check cancelled for {identity}")
        self.identity = identity


class TeardownError(LocalNetError):
    """One or more processes could not be terminated."""

    def __init__(self, message: str, failures: Sequence[Tuple[int, Exception]] = ()):
        self.failures: List[Tuple[int, Exception]] = list(failures)
        if self.failures:
            detail = ", ".join(f"{pid}: {err}" for pid, err in self.failures)
            message = f"{message} ({detail})"
        super().__init__(message)


class NetworkConstructionError(LocalNetError):
    """Network construction failed for a reason not covered by a more specific error."""

    def __init__(self, label: str, cause: Exception, launched_pids: Sequence[int] = ()):
        super().__init__(f"network construction failed at node {label}: {cause}")
        self.label = label
        self.cause = cause
        self.launched_pids: List[int] = list(launched_pids)
