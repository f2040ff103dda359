"""Wait for every node of a network to finish bootstrapping."""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from ..client import BOOTSTRAP_CHAINS
from ..errors import LocalNetError, ReadinessCancelled, ReadinessTimeoutError
from ..models.settings import RunnerSettings, DEFAULT_SETTINGS

logger = logging.getLogger(__name__)


class ReadinessState(str, Enum):
    """Bootstrap state of a node during a readiness check."""
    UNKNOWN = "unknown"
    POLLING = "polling"
    READY = "ready"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


def poll_once(client, chains: Sequence[str] = BOOTSTRAP_CHAINS) -> bool:
    """
    Run one poll round against a node.

    Args:
        client: Object with an ``is_bootstrapped(chain)`` method
        chains: Chains that must all be bootstrapped

    Returns:
        True only if every chain reported bootstrapped in this round
    """
    for chain in chains:
        try:
            if not client.is_bootstrapped(chain):
                logger.debug(f"Chain {chain} not bootstrapped yet")
                return False
        except Exception as e:
            logger.debug(f"Bootstrap query for chain {chain} failed: {e}")
            return False
    return True


def wait_for_node(
    client,
    timeout: float = 60.0,
    interval: float = 10.0,
    cancel: Optional[threading.Event] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Optional[Callable[[float], object]] = None,
    chains: Sequence[str] = BOOTSTRAP_CHAINS
) -> ReadinessState:
    """
    Poll a node until all chains are bootstrapped or the deadline passes.

    The deadline starts at the first poll. A poll is only made while the
    deadline has not passed, so with the defaults a node gets at most six
    polls.

    Args:
        client: Object with an ``is_bootstrapped(chain)`` method
        timeout: Seconds from the first poll until the node times out
        interval: Seconds between polls
        cancel: Event that aborts polling when set
        clock: Monotonic clock
        sleep: Sleep function; defaults to waiting on the cancel event
        chains: Chains that must all be bootstrapped

    Returns:
        READY, TIMED_OUT or CANCELLED
    """
    if cancel is None:
        cancel = threading.Event()
    if sleep is None:
        sleep = cancel.wait

    start = clock()
    attempts = 0
    while True:
        if cancel.is_set():
            return ReadinessState.CANCELLED
        attempts += 1
        if poll_once(client, chains):
            logger.debug(f"Node bootstrapped after {attempts} poll(s)")
            return ReadinessState.READY
        sleep(interval)
        if clock() - start >= timeout:
            logger.debug(f"Node not bootstrapped after {attempts} poll(s)")
            return ReadinessState.TIMED_OUT


@dataclass
class ReadinessReport:
    """Outcome of a readiness check over a whole network."""
    ready: List = field(default_factory=list)
    timed_out: List = field(default_factory=list)
    cancelled: List = field(default_factory=list)
    errors: List[LocalNetError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self):
        """Raise the first error if any node was not ready."""
        if self.errors:
            raise self.errors[0]


class ReadinessHandle:
    """
    Caller's view of a running readiness check.

    ``done`` is set exactly once, after every node has been evaluated.
    ``errors`` holds one slot per node so the checker never blocks on
    a caller that reads few or none of them.
    """

    def __init__(self, identities: Sequence, labels: Optional[Mapping] = None):
        self.identities = list(identities)
        self.labels = dict(labels or {})
        self.done = threading.Event()
        self.errors: "queue.Queue[LocalNetError]" = queue.Queue(maxsize=max(len(self.identities), 1))
        self._lock = threading.Lock()
        self._states: Dict = {identity: ReadinessState.UNKNOWN for identity in self.identities}
        self._errors: List[LocalNetError] = []

    @property
    def states(self) -> Dict:
        with self._lock:
            return dict(self._states)

    def _set_state(self, identity, state: ReadinessState):
        with self._lock:
            self._states[identity] = state

    def _add_error(self, error: LocalNetError):
        with self._lock:
            self._errors.append(error)
        self.errors.put_nowait(error)

    def report(self) -> ReadinessReport:
        """Snapshot the current outcome; complete once ``done`` is set."""
        with self._lock:
            states = dict(self._states)
            errors = list(self._errors)
        return ReadinessReport(
            ready=[i for i in self.identities if states[i] == ReadinessState.READY],
            timed_out=[i for i in self.identities if states[i] == ReadinessState.TIMED_OUT],
            cancelled=[i for i in self.identities if states[i] == ReadinessState.CANCELLED],
            errors=errors,
        )

    def wait(self, timeout: Optional[float] = None) -> ReadinessReport:
        """
        Block until every node has been evaluated.

        Args:
            timeout: Maximum seconds to wait (None waits forever)

        Returns:
            ReadinessReport for the network

        Raises:
            TimeoutError: If the check is still running after timeout
        """
        if not self.done.wait(timeout):
            raise TimeoutError("readiness check still running")
        return self.report()


class ReadinessCoordinator:
    """
    Polls nodes one after the other until each is ready or times out.

    Runs on its own daemon thread so the caller is never blocked.
    """

    def __init__(
        self,
        clients: Mapping,
        labels: Optional[Mapping] = None,
        settings: RunnerSettings = DEFAULT_SETTINGS,
        cancel: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], object]] = None
    ):
        """
        Initialize readiness coordinator.

        Args:
            clients: Identity to status client, in polling order
            labels: Identity to node label, used in errors and logs
            settings: Poll interval and per-node timeout
            cancel: Event that aborts the check when set
            clock: Monotonic clock
            sleep: Sleep function; defaults to waiting on the cancel event
        """
        self.clients = dict(clients)
        self.labels = dict(labels or {})
        self.settings = settings
        self.cancel = cancel or threading.Event()
        self.clock = clock
        self.sleep = sleep

    def start(self) -> ReadinessHandle:
        """Start checking in the background and return the handle."""
        handle = ReadinessHandle(list(self.clients), self.labels)
        thread = threading.Thread(
            target=self.run,
            args=(handle,),
            name="readiness-coordinator",
            daemon=True
        )
        thread.start()
        return handle

    def run(self, handle: ReadinessHandle):
        """Evaluate every node, then set ``handle.done``."""
        try:
            for identity, client in self.clients.items():
                label = self.labels.get(identity)
                handle._set_state(identity, ReadinessState.POLLING)
                try:
                    state = wait_for_node(
                        client,
                        timeout=self.settings.node_timeout,
                        interval=self.settings.poll_interval,
                        cancel=self.cancel,
                        clock=self.clock,
                        sleep=self.sleep,
                    )
                except Exception as e:
                    logger.error(f"Readiness check for {identity} failed: {e}")
                    state = ReadinessState.TIMED_OUT
                handle._set_state(identity, state)

                if state == ReadinessState.READY:
                    logger.info(f"Node {identity} ({label}) is up")
                elif state == ReadinessState.TIMED_OUT:
                    logger.warning(f"Timeout waiting for node {identity} ({label})")
                    handle._add_error(ReadinessTimeoutError(identity, label))
                else:
                    handle._add_error(ReadinessCancelled(identity))
        finally:
            handle.done.set()
