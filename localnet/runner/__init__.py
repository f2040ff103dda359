"""Network construction and process management."""

from .files import write_file, merge_flags, materialize_node, NodeArtifacts
from .identity import NetworkIdentity, IdentityAllocator
from .launcher import launch_node, LaunchedProcess, LogRelay
from .network import Network, Node, new_network

__all__ = [
    "write_file",
    "merge_flags",
    "materialize_node",
    "NodeArtifacts",
    "NetworkIdentity",
    "IdentityAllocator",
    "launch_node",
    "LaunchedProcess",
    "LogRelay",
    "Network",
    "Node",
    "new_network",
]
