"""Terminate process trees started by a network."""

import logging
import os
import signal
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import psutil

from ..errors import TeardownError

logger = logging.getLogger(__name__)


def snapshot_process_table() -> Dict[int, int]:
    """
    Take one snapshot of the OS process table.

    Returns:
        Mapping of pid to parent pid

    Raises:
        TeardownError: If the process table can't be read
    """
    table = {}
    try:
        for proc in psutil.process_iter(['pid', 'ppid']):
            ppid = proc.info.get('ppid')
            if ppid is None:
                continue
            table[proc.info['pid']] = ppid
    except psutil.Error as e:
        raise TeardownError(f"unable to list processes: {e}") from e
    return table


def build_children_index(table: Mapping[int, int]) -> Dict[int, List[int]]:
    """Invert a pid -> ppid table into ppid -> child pids."""
    children: Dict[int, List[int]] = defaultdict(list)
    for pid, ppid in table.items():
        if pid != ppid:
            children[ppid].append(pid)
    for pids in children.values():
        pids.sort()
    return dict(children)


def termination_order(root: int, children: Mapping[int, List[int]]) -> List[int]:
    """
    Order a process tree so every process comes after all its descendants.

    Iterative, so deep trees can't exhaust the stack.

    Args:
        root: Root pid
        children: ppid -> child pids

    Returns:
        Post-order list of pids ending with root
    """
    order = []
    seen = {root}
    stack: List[Tuple[int, bool]] = [(root, False)]
    while stack:
        pid, expanded = stack.pop()
        if expanded:
            order.append(pid)
            continue
        stack.append((pid, True))
        for child in reversed(children.get(pid, [])):
            if child not in seen:
                seen.add(child)
                stack.append((child, False))
    return order


def _send_sigterm(pid: int):
    os.kill(pid, signal.SIGTERM)


def terminate_process_trees(
    roots: Iterable[int],
    table: Optional[Mapping[int, int]] = None,
    send_signal: Callable[[int], None] = _send_sigterm
) -> List[int]:
    """
    Send SIGTERM to every descendant of each root, then to the root.

    All trees are resolved against a single process table snapshot taken
    before any signal is sent. Processes that have already exited count
    as terminated. A failure to signal one process does not stop the
    rest of the traversal.

    Args:
        roots: Root pids
        table: pid -> ppid snapshot (taken now if omitted)
        send_signal: Signals one pid

    Returns:
        Pids signalled, in the order they were signalled

    Raises:
        TeardownError: If the snapshot fails, or listing every pid
            that could not be signalled
    """
    if table is None:
        table = snapshot_process_table()
    children = build_children_index(table)

    signalled = []
    visited = set()
    failures: List[Tuple[int, Exception]] = []

    for root in roots:
        for pid in termination_order(root, children):
            if pid in visited:
                continue
            visited.add(pid)
            try:
                send_signal(pid)
            except ProcessLookupError:
                logger.debug(f"Process {pid} already exited")
                continue
            except OSError as e:
                logger.error(f"Unable to terminate process {pid}: {e}")
                failures.append((pid, e))
                continue
            logger.debug(f"Sent SIGTERM to process {pid}")
            signalled.append(pid)

    if failures:
        raise TeardownError("unable to terminate every process", failures)
    return signalled
