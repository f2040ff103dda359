"""Write per-node config artifacts to disk."""

import json
import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping

from ..errors import ConfigurationError, MaterializationError
from ..models.network import (
    NetworkConfig,
    NodeConfig,
    GENESIS_KEY,
    CHAIN_CONFIG_DIR_KEY,
    TLS_CERT_KEY,
    TLS_KEY_KEY,
    PUBLIC_IP_KEY,
    HTTP_PORT_KEY,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodeArtifacts:
    """Paths written for one node, plus the address its info API listens on."""
    config_file: Path
    genesis_file: Path
    c_chain_config_file: Path
    cert_file: Path
    key_file: Path
    log_file: Path
    ip: str
    port: int


def _make_dirs(directory: Path, mode: int):
    # mkdir(parents=True) ignores mode for intermediate directories
    missing = []
    while not directory.exists() and directory != directory.parent:
        missing.append(directory)
        directory = directory.parent
    for path in reversed(missing):
        try:
            path.mkdir(mode=mode)
        except FileExistsError:
            if not path.is_dir():
                raise


def write_file(path, contents: bytes, dir_mode: int = 0o750) -> Path:
    """
    Create or truncate a file and write contents to it.

    Missing parent directories are created with dir_mode. A failed write
    may leave a truncated file behind.

    Args:
        path: Destination path
        contents: Bytes to write
        dir_mode: Mode for newly created parent directories

    Returns:
        The path written

    Raises:
        MaterializationError: If a directory or the file can't be written
    """
    path = Path(path)
    try:
        _make_dirs(path.parent, dir_mode)
        with open(path, 'wb') as f:
            f.write(contents)
    except OSError as e:
        raise MaterializationError(str(path), e) from e
    return path


def merge_flags(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of base with every key of override layered on top."""
    merged = dict(base)
    merged.update(override)
    return merged


def _require_str(flags: Mapping[str, Any], key: str, node_id: str) -> str:
    if key not in flags:
        raise ConfigurationError(f"node {node_id}: missing config flag {key!r}")
    value = flags[key]
    if not isinstance(value, str) or not value:
        raise ConfigurationError(f"node {node_id}: config flag {key!r} must be a non-empty string")
    return value


def _require_port(flags: Mapping[str, Any], node_id: str) -> int:
    if HTTP_PORT_KEY not in flags:
        raise ConfigurationError(f"node {node_id}: missing config flag {HTTP_PORT_KEY!r}")
    value = flags[HTTP_PORT_KEY]
    # JSON numbers may arrive as floats, including NaN and Infinity; bools are ints in Python but not ports
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or (isinstance(value, float) and (not math.isfinite(value) or not value.is_integer()))
    ):
        raise ConfigurationError(f"node {node_id}: config flag {HTTP_PORT_KEY!r} must be an integer")
    port = int(value)
    if not 0 < port < 65536:
        raise ConfigurationError(f"node {node_id}: config flag {HTTP_PORT_KEY!r} out of range: {port}")
    return port


def materialize_node(
    network_config: NetworkConfig,
    node_config: NodeConfig,
    dir_mode: int = 0o750
) -> NodeArtifacts:
    """
    Write every config artifact one node needs before it can start.

    Flags are validated before anything is written, so a node with bad
    flags leaves no files behind.

    Args:
        network_config: Network-wide configuration
        node_config: The node to materialize
        dir_mode: Mode for newly created directories

    Returns:
        NodeArtifacts describing what was written

    Raises:
        ConfigurationError: If a required flag is missing or has the wrong type
        MaterializationError: If a file can't be written
    """
    node_id = node_config.node_id
    flags = merge_flags(network_config.core_config_flags, node_config.config_flags)

    genesis_path = Path(_require_str(flags, GENESIS_KEY, node_id))
    config_dir = Path(_require_str(flags, CHAIN_CONFIG_DIR_KEY, node_id))
    cert_path = Path(_require_str(flags, TLS_CERT_KEY, node_id))
    key_path = Path(_require_str(flags, TLS_KEY_KEY, node_id))
    ip = _require_str(flags, PUBLIC_IP_KEY, node_id)
    port = _require_port(flags, node_id)

    try:
        config_bytes = json.dumps(flags, sort_keys=True).encode('utf-8')
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"node {node_id}: config flags are not serializable: {e}") from e

    config_path = config_dir / "config.json"
    c_config_path = config_dir / "C" / "config.json"

    write_file(genesis_path, network_config.genesis, dir_mode)
    write_file(c_config_path, network_config.c_chain_config, dir_mode)
    write_file(cert_path, node_config.cert, dir_mode)
    write_file(key_path, node_config.private_key, dir_mode)
    write_file(config_path, config_bytes, dir_mode)

    # Private key stays readable by the owner only
    try:
        os.chmod(key_path, 0o600)
    except OSError as e:
        raise MaterializationError(str(key_path), e) from e

    logger.debug(f"Wrote config artifacts for node {node_id} under {config_dir}")

    return NodeArtifacts(
        config_file=config_path,
        genesis_file=genesis_path,
        c_chain_config_file=c_config_path,
        cert_file=cert_path,
        key_file=key_path,
        log_file=config_dir / "node.log",
        ip=ip,
        port=port,
    )
