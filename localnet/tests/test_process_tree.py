"""Tests for process tree teardown."""

import subprocess
import sys
import time

import psutil
import pytest

from localnet.errors import TeardownError
from localnet.teardown import (
    build_children_index,
    snapshot_process_table,
    terminate_process_trees,
    termination_order,
)

# pid -> ppid: 100 has children 101, 102; 101 has child 103; 200 is unrelated
TABLE = {1: 0, 100: 1, 101: 100, 102: 100, 103: 101, 200: 1}


def test_build_children_index():
    """Test the parent to children index."""
    children = build_children_index(TABLE)

    assert children[100] == [101, 102]
    assert children[101] == [103]
    assert 200 not in children


def test_termination_order_descendants_first():
    """Test every process is ordered after all of its descendants."""
    order = termination_order(100, build_children_index(TABLE))

    assert sorted(order) == [100, 101, 102, 103]
    assert order[-1] == 100
    assert order.index(103) < order.index(101)


def test_termination_order_deep_tree():
    """Test a very deep chain doesn't hit the recursion limit."""
    depth = sys.getrecursionlimit() * 2
    table = {pid + 1: pid for pid in range(1, depth)}

    order = termination_order(1, build_children_index(table))

    assert order == list(range(depth, 0, -1))


def test_terminate_without_descendants():
    """Test a lone process gets only its own signal."""
    signalled = []

    result = terminate_process_trees([200], table=TABLE, send_signal=signalled.append)

    assert signalled == [200]
    assert result == [200]


def test_terminate_two_generations():
    """Test children and grandchildren are signalled before the root."""
    signalled = []

    terminate_process_trees([100], table=TABLE, send_signal=signalled.append)

    assert sorted(signalled) == [100, 101, 102, 103]
    assert signalled.index(103) < signalled.index(101) < signalled.index(100)
    assert signalled.index(102) < signalled.index(100)
    assert 200 not in signalled


def test_terminate_continues_past_failures():
    """Test a failed signal is reported but the rest of the tree is still signalled."""
    signalled = []

    def send_signal(pid):
        if pid == 101:
            raise PermissionError("operation not permitted")
        if pid == 102:
            raise ProcessLookupError("no such process")
        signalled.append(pid)

    with pytest.raises(TeardownError) as exc_info:
        terminate_process_trees([100, 200], table=TABLE, send_signal=send_signal)

    assert signalled == [103, 100, 200]
    assert [pid for pid, _ in exc_info.value.failures] == [101]


def test_snapshot_failure(monkeypatch):
    """Test a process table that can't be read raises TeardownError."""
    def broken_iter(*args, **kwargs):
        raise psutil.AccessDenied()

    monkeypatch.setattr(psutil, "process_iter", broken_iter)

    with pytest.raises(TeardownError, match="unable to list processes"):
        terminate_process_trees([100])


def test_snapshot_contains_current_process():
    """Test the snapshot sees this process and its parent."""
    table = snapshot_process_table()
    current = psutil.Process()

    assert table[current.pid] == current.ppid()


def _wait_gone(proc, timeout=10.0):
    """Wait for a process to exit; an unreaped zombie counts as exited."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            if proc.status() == psutil.STATUS_ZOMBIE:
                return True
        except psutil.NoSuchProcess:
            return True
        time.sleep(0.05)
    return False


@pytest.mark.skipif(sys.platform == "win32", reason="requires POSIX signals")
def test_terminate_real_process_tree():
    """Test a real parent and its child are both terminated."""
    parent = subprocess.Popen([
        sys.executable, "-c",
        "import subprocess, sys, time\n"
        "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(60)'])\n"
        "time.sleep(60)\n",
    ])
    try:
        deadline = time.monotonic() + 10
        children = []
        while not children and time.monotonic() < deadline:
            children = psutil.Process(parent.pid).children()
            time.sleep(0.05)
        assert len(children) == 1

        signalled = terminate_process_trees([parent.pid])

        assert signalled == [children[0].pid, parent.pid]
        assert parent.wait(timeout=10) is not None
        assert _wait_gone(children[0])
    finally:
        if parent.poll() is None:
            parent.kill()
            parent.wait()
