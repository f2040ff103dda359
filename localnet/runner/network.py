"""Local network construction, lookup and teardown."""

import logging
import subprocess
import threading
import time
from typing import Callable, Dict, List, Mapping, Optional

from ..client import InfoClient
from ..errors import (
    ConfigurationError,
    ConstructionCancelled,
    LaunchError,
    LocalNetError,
    MaterializationError,
    NetworkConstructionError,
    NodeNotFoundError,
    TeardownError,
)
from ..models.network import NetworkConfig
from ..models.settings import RunnerSettings, DEFAULT_SETTINGS
from ..readiness import ReadinessCoordinator, ReadinessHandle
from ..teardown import terminate_process_trees
from .files import materialize_node
from .identity import IdentityAllocator, NetworkIdentity
from .launcher import LaunchedProcess, launch_node

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, int], object]


class Node:
    """Addressable handle for one node's info API."""

    def __init__(self, label: str, ip: str, port: int, client):
        self.label = label
        self.ip = ip
        self.port = port
        self.client = client

    def get_api_client(self):
        """Return the client used to query this node."""
        return self.client

    def __repr__(self) -> str:
        return f"Node(label={self.label!r}, ip={self.ip!r}, port={self.port})"


class Network:
    """
    A set of running nodes and the identities they were registered under.

    Membership is fixed once construction finishes; nodes can only be
    stopped together.
    """

    def __init__(self, settings: RunnerSettings = DEFAULT_SETTINGS):
        self.settings = settings
        self._procs: Dict[NetworkIdentity, LaunchedProcess] = {}
        self._nodes: Dict[NetworkIdentity, Node] = {}
        self._labels: Dict[NetworkIdentity, str] = {}

    def _register(
        self,
        identity: NetworkIdentity,
        launched: LaunchedProcess,
        node: Node,
        label: str
    ):
        if identity in self._nodes:
            raise ValueError(f"identity {identity} already registered")
        self._procs[identity] = launched
        self._nodes[identity] = node
        self._labels[identity] = label

    def __len__(self) -> int:
        return len(self._nodes)

    def identities(self) -> List[NetworkIdentity]:
        """Registered identities in registration order."""
        return list(self._nodes)

    def get_node(self, identity: NetworkIdentity) -> Node:
        """
        Look up a node by identity.

        Raises:
            NodeNotFoundError: If no node has that identity
        """
        node = self._nodes.get(identity)
        if node is None:
            raise NodeNotFoundError(identity)
        return node

    def get_node_label(self, identity: NetworkIdentity) -> str:
        """Return the configured label of a node."""
        label = self._labels.get(identity)
        if label is None:
            raise NodeNotFoundError(identity)
        return label

    def pids(self) -> Dict[NetworkIdentity, int]:
        """OS process ids of the launched nodes."""
        return {identity: launched.pid for identity, launched in self._procs.items()}

    def ready(
        self,
        cancel: Optional[threading.Event] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], object]] = None
    ) -> ReadinessHandle:
        """
        Start checking that every node has bootstrapped.

        Returns immediately; see ReadinessHandle for collecting results.

        Args:
            cancel: Event that aborts the check when set
            clock: Monotonic clock override
            sleep: Sleep override

        Returns:
            ReadinessHandle for the running check
        """
        coordinator = ReadinessCoordinator(
            {identity: node.client for identity, node in self._nodes.items()},
            labels=self._labels,
            settings=self.settings,
            cancel=cancel,
            clock=clock or time.monotonic,
            sleep=sleep,
        )
        return coordinator.start()

    def stop(self):
        """
        Terminate every process this network started, descendants first.

        Raises:
            TeardownError: If some processes could not be signalled
        """
        # Exited roots are skipped so a reused pid is never signalled
        roots = [
            launched.pid for launched in self._procs.values()
            if launched.process.poll() is None
        ]
        logger.info(f"Stopping network of {len(roots)} running node(s)")
        try:
            terminate_process_trees(roots)
        except TeardownError as e:
            if e.failures:
                self._reap()
            raise
        self._reap()

    def _reap(self):
        for identity, launched in self._procs.items():
            try:
                launched.process.wait(timeout=self.settings.stop_grace_period)
            except subprocess.TimeoutExpired:
                logger.warning(f"Node {identity} ({launched.label}) still running after SIGTERM")
                continue
            if launched.relay is not None:
                launched.relay.join(timeout=self.settings.stop_grace_period)


def new_network(
    network_config: NetworkConfig,
    binary_paths: Mapping[str, str],
    settings: RunnerSettings = DEFAULT_SETTINGS,
    client_factory: Optional[ClientFactory] = None,
    cancel: Optional[threading.Event] = None,
    identity_limit: Optional[int] = None
) -> Network:
    """
    Write each node's config, start it and register it.

    Nodes are started one at a time in config order and get identities
    0, 1, 2, ... in that order. If any node fails, nothing started so far
    is stopped; the raised error, always a LocalNetError, lists their
    pids in ``launched_pids``.

    Args:
        network_config: Network to start
        binary_paths: Binary kind to executable path
        settings: Runner settings
        client_factory: Builds a status client from (ip, port)
        cancel: Event that aborts construction between nodes
        identity_limit: Maximum number of nodes

    Returns:
        Network with every node running

    Raises:
        ConfigurationError: Bad flags or unknown binary kind
        MaterializationError: A config artifact couldn't be written
        LaunchError: A node process couldn't be started
        ConstructionCancelled: cancel was set before every node started
        NetworkConstructionError: Any other failure, such as a client factory error
    """
    if client_factory is None:
        def client_factory(ip: str, port: int):
            return InfoClient(ip, port, timeout=settings.request_timeout)

    network = Network(settings)
    allocator = IdentityAllocator(identity_limit)
    launched_pids: List[int] = []

    for node_config in network_config.node_configs:
        label = node_config.node_id
        try:
            if cancel is not None and cancel.is_set():
                raise ConstructionCancelled()

            binary_path = binary_paths.get(node_config.bin_kind)
            if binary_path is None:
                raise ConfigurationError(
                    f"node {label}: no binary for kind {node_config.bin_kind!r}"
                )

            identity = allocator.allocate()
            artifacts = materialize_node(network_config, node_config, settings.dir_mode)
            launched = launch_node(
                binary_path,
                artifacts.config_file,
                label,
                settings.config_file_flag,
                log_file=artifacts.log_file if settings.log_to_files else None
            )
            launched_pids.append(launched.pid)
            node = Node(label, artifacts.ip, artifacts.port, client_factory(artifacts.ip, artifacts.port))
        except (ConfigurationError, MaterializationError, LaunchError, ConstructionCancelled) as e:
            e.launched_pids = list(launched_pids)
            logger.error(f"Network construction failed at node {label}: {e}")
            raise
        except LocalNetError as e:
            logger.error(f"Network construction failed at node {label}: {e}")
            raise ConfigurationError(str(e), launched_pids) from e
        except Exception as e:
            logger.error(f"Network construction failed at node {label}: {e}")
            raise NetworkConstructionError(label, e, launched_pids) from e

        network._register(identity, launched, node, label)
        logger.debug(f"Registered node {label} as {identity}")

    logger.info(f"Network started with {len(network)} node(s)")
    return network
