"""Shared fixtures for localnet tests."""

import stat
import sys

import pytest

from localnet.models import NetworkConfig, NodeConfig


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeInfoClient:
    """Status client answering from a scripted list of poll rounds."""

    def __init__(self, rounds=None, default=False):
        self.rounds = list(rounds or [])
        self.default = default
        self.calls = []
        self._round = -1

    def is_bootstrapped(self, chain: str) -> bool:
        # A new round starts whenever P is queried
        if chain == "P":
            self._round += 1
        self.calls.append(chain)
        answers = self.rounds[self._round] if self._round < len(self.rounds) else self.default
        if isinstance(answers, Exception):
            raise answers
        if isinstance(answers, dict):
            value = answers.get(chain, False)
        else:
            value = answers
        if isinstance(value, Exception):
            raise value
        return value

    @property
    def polls(self) -> int:
        return self._round + 1


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def node_script(tmp_path):
    """Executable that prints a line then sleeps, standing in for a node binary."""
    script = tmp_path / "bin" / "fake-node"
    script.parent.mkdir()
    script.write_text(
        f"#!{sys.executable}\n"
        "import sys, time\n"
        "print('started with', ' '.join(sys.argv[1:]), flush=True)\n"
        "time.sleep(60)\n"
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP)
    return script


def make_node_config(tmp_path, name: str, port: int, **overrides) -> NodeConfig:
    node_dir = tmp_path / name
    flags = {
        "http-port": port,
        "chain-config-dir": str(node_dir / "configs"),
        "staking-tls-cert-file": str(node_dir / "staking" / "staker.crt"),
        "staking-tls-key-file": str(node_dir / "staking" / "staker.key"),
    }
    flags.update(overrides)
    return NodeConfig(
        node_id=name,
        config_flags=flags,
        cert=f"cert-{name}".encode(),
        private_key=f"key-{name}".encode(),
    )


def make_network_config(tmp_path, count: int = 1, base_port: int = 19650) -> NetworkConfig:
    return NetworkConfig(
        core_config_flags={
            "public-ip": "127.0.0.1",
            "genesis": str(tmp_path / "genesis.json"),
            "log-level": "info",
        },
        genesis=b'{"networkID": 12345}',
        c_chain_config=b'{"log-level": "debug"}',
        node_configs=[
            make_node_config(tmp_path, f"node{i + 1}", base_port + 2 * i)
            for i in range(count)
        ],
    )


@pytest.fixture
def make_client():
    """Factory for scripted status clients."""
    return FakeInfoClient


@pytest.fixture
def network_config_factory(tmp_path):
    """Factory for network configs rooted in tmp_path."""
    def factory(count: int = 1, base_port: int = 19650) -> NetworkConfig:
        return make_network_config(tmp_path, count, base_port)
    return factory
