"""Readiness checks for running networks."""

from .coordinator import (
    ReadinessState,
    ReadinessReport,
    ReadinessHandle,
    ReadinessCoordinator,
    poll_once,
    wait_for_node,
)

__all__ = [
    "ReadinessState",
    "ReadinessReport",
    "ReadinessHandle",
    "ReadinessCoordinator",
    "poll_once",
    "wait_for_node",
]
