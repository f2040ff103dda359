"""Tests for network construction, lookup and teardown."""

import logging
import os
import sys
import threading
import time

import psutil
import pytest

from localnet.client import InfoClient
from localnet.errors import (
    ConfigurationError,
    ConstructionCancelled,
    LaunchError,
    LocalNetError,
    NetworkConstructionError,
    NodeNotFoundError,
)
from localnet.models import RunnerSettings
from localnet.runner import NetworkIdentity, new_network
from localnet.teardown import terminate_process_trees

pytestmark = pytest.mark.skipif(os.name != "posix", reason="requires POSIX processes")

ALL_READY = {"P": True, "C": True, "X": True}
SETTINGS = RunnerSettings(stop_grace_period=10)


def _start(config, node_script, make_client, **kwargs):
    clients = []

    def factory(ip, port):
        client = make_client(default=ALL_READY)
        client.address = (ip, port)
        clients.append(client)
        return client

    network = new_network(
        config,
        {"default": str(node_script)},
        settings=SETTINGS,
        client_factory=factory,
        **kwargs
    )
    return network, clients


def test_single_node_lifecycle(tmp_path, node_script, make_client, network_config_factory):
    """Test construct, ready and stop for a one-node network."""
    config = network_config_factory(count=1)
    network, clients = _start(config, node_script, make_client)
    launched = network._procs[NetworkIdentity(0)]

    try:
        assert len(network) == 1
        assert network.identities() == [NetworkIdentity(0)]
        assert network.get_node_label(NetworkIdentity(0)) == "node1"

        node_dir = tmp_path / "node1"
        assert (tmp_path / "genesis.json").read_bytes() == config.genesis
        assert (node_dir / "configs" / "config.json").exists()
        assert (node_dir / "configs" / "C" / "config.json").read_bytes() == config.c_chain_config
        assert (node_dir / "staking" / "staker.crt").read_bytes() == b"cert-node1"
        assert (node_dir / "staking" / "staker.key").read_bytes() == b"key-node1"
        assert launched.process.poll() is None

        node = network.get_node(NetworkIdentity(0))
        assert node.get_api_client() is clients[0]
        assert clients[0].address == ("127.0.0.1", 19650)

        report = network.ready().wait(timeout=10)
        assert report.ok
        assert report.ready == [NetworkIdentity(0)]
        assert clients[0].polls == 1
    finally:
        network.stop()

    assert launched.process.poll() is not None
    assert not launched.relay.is_alive()


def test_identities_follow_config_order(node_script, make_client, network_config_factory):
    """Test identities 0..N-1 are assigned in node config order."""
    config = network_config_factory(count=3)
    network, clients = _start(config, node_script, make_client)

    try:
        assert network.identities() == [NetworkIdentity(i) for i in range(3)]
        assert [network.get_node_label(i) for i in network.identities()] == ["node1", "node2", "node3"]
        assert [c.address[1] for c in clients] == [19650, 19652, 19654]
        assert len(set(network.pids().values())) == 3
    finally:
        network.stop()


def test_node_output_is_logged(node_script, make_client, network_config_factory, caplog):
    """Test node output lines are relayed tagged with the node label."""
    caplog.set_level(logging.DEBUG, logger="localnet.nodes")
    network, _ = _start(network_config_factory(count=1), node_script, make_client)
    launched = network._procs[NetworkIdentity(0)]

    try:
        deadline = time.monotonic() + 10
        while launched.relay.lines == 0 and time.monotonic() < deadline:
            time.sleep(0.05)
    finally:
        network.stop()

    messages = [r.getMessage() for r in caplog.records if r.name == "localnet.nodes"]
    assert any(m.startswith("[node1] - started with --config-file=") for m in messages)


def test_get_unknown_node(node_script, make_client, network_config_factory):
    """Test looking up an unregistered identity fails without side effects."""
    network, _ = _start(network_config_factory(count=1), node_script, make_client)

    try:
        with pytest.raises(NodeNotFoundError):
            network.get_node(NetworkIdentity(5))
        with pytest.raises(KeyError):
            network.get_node_label(NetworkIdentity(5))
        assert network.identities() == [NetworkIdentity(0)]
    finally:
        network.stop()


def test_default_client_factory(node_script, network_config_factory):
    """Test nodes get an info API client for their configured address."""
    network = new_network(network_config_factory(count=1), {"default": str(node_script)}, settings=SETTINGS)

    try:
        client = network.get_node(NetworkIdentity(0)).get_api_client()
        assert isinstance(client, InfoClient)
        assert client.endpoint == "http://127.0.0.1:19650/ext/info"
        assert client.timeout == SETTINGS.request_timeout
    finally:
        network.stop()


def test_unknown_binary_kind(tmp_path, network_config_factory):
    """Test a node with no binary for its kind aborts construction."""
    with pytest.raises(ConfigurationError, match="no binary"):
        new_network(network_config_factory(count=1), {"other": "/bin/true"})
    assert not (tmp_path / "genesis.json").exists()


def test_launch_failure_reports_started_nodes(tmp_path, node_script, make_client, network_config_factory):
    """Test a failed launch names the node and lists pids already started."""
    config = network_config_factory(count=2)
    second = config.node_configs[1].model_copy(update={"bin_kind": "missing"})
    config = config.model_copy(update={"node_configs": [config.node_configs[0], second]})
    binaries = {"default": str(node_script), "missing": str(tmp_path / "does-not-exist")}

    with pytest.raises(LaunchError) as exc_info:
        new_network(config, binaries, client_factory=lambda ip, port: make_client())

    error = exc_info.value
    try:
        assert error.label == "node2"
        assert "node2" in str(error)
        assert len(error.launched_pids) == 1
    finally:
        terminate_process_trees(error.launched_pids)


def test_construction_cancelled(network_config_factory):
    """Test a set cancel event stops construction before any node starts."""
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(ConstructionCancelled) as exc_info:
        new_network(network_config_factory(count=2), {"default": "/bin/true"}, cancel=cancel)

    assert exc_info.value.launched_pids == []


def test_identity_limit(node_script, make_client, network_config_factory):
    """Test construction fails cleanly when the identity limit is exceeded."""
    with pytest.raises(ConfigurationError, match="identities") as exc_info:
        _start(network_config_factory(count=2), node_script, make_client, identity_limit=1)

    error = exc_info.value
    assert len(error.launched_pids) == 1
    terminate_process_trees(error.launched_pids)


def test_stop_twice(node_script, make_client, network_config_factory):
    """Test stopping an already stopped network is harmless."""
    network, _ = _start(network_config_factory(count=1), node_script, make_client)
    network.stop()
    network.stop()


def test_non_finite_port_reports_started_nodes(node_script, make_client, network_config_factory):
    """Test a NaN port on a later node is a configuration error listing earlier pids."""
    config = network_config_factory(count=2)
    flags = dict(config.node_configs[1].config_flags, **{"http-port": float("nan")})
    second = config.node_configs[1].model_copy(update={"config_flags": flags})
    config = config.model_copy(update={"node_configs": [config.node_configs[0], second]})

    with pytest.raises(ConfigurationError, match="http-port") as exc_info:
        _start(config, node_script, make_client)

    error = exc_info.value
    try:
        assert len(error.launched_pids) == 1
        assert psutil.pid_exists(error.launched_pids[0])
    finally:
        terminate_process_trees(error.launched_pids)


def test_client_factory_failure_reports_started_nodes(node_script, network_config_factory):
    """Test an unexpected error while building a node still lists started pids."""
    def broken_factory(ip, port):
        raise RuntimeError("no client for you")

    with pytest.raises(NetworkConstructionError) as exc_info:
        new_network(
            network_config_factory(count=1),
            {"default": str(node_script)},
            settings=SETTINGS,
            client_factory=broken_factory,
        )

    error = exc_info.value
    try:
        assert isinstance(error, LocalNetError)
        assert error.label == "node1"
        assert isinstance(error.cause, RuntimeError)
        assert len(error.launched_pids) == 1
    finally:
        terminate_process_trees(error.launched_pids)


def test_node_output_to_log_file(tmp_path, make_client, network_config_factory):
    """Test nodes writing to log files keep running with no pipe to drain."""
    script = tmp_path / "bin" / "chatty-node"
    script.parent.mkdir(exist_ok=True)
    script.write_text(
        f"#!{sys.executable}\n"
        "import sys, time\n"
        "while True:\n"
        "    print('still here', sys.argv[1], flush=True)\n"
        "    time.sleep(0.05)\n"
    )
    script.chmod(0o755)

    settings = RunnerSettings(stop_grace_period=10, log_to_files=True)
    network = new_network(
        network_config_factory(count=1),
        {"default": str(script)},
        settings=settings,
        client_factory=lambda ip, port: make_client(),
    )
    launched = network._procs[NetworkIdentity(0)]
    log_file = tmp_path / "node1" / "configs" / "node.log"

    try:
        assert launched.relay is None
        assert launched.log_file == log_file
        assert launched.process.stdout is None

        deadline = time.monotonic() + 10
        lines = []
        while len(lines) < 5 and time.monotonic() < deadline:
            time.sleep(0.05)
            lines = log_file.read_text().splitlines()

        assert len(lines) >= 5
        assert lines[0].startswith("still here --config-file=")
        assert launched.process.poll() is None
    finally:
        network.stop()

    assert launched.process.poll() is not None
