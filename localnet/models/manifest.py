"""Load a network configuration from a JSON manifest."""

import json
import logging
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from ..errors import ConfigurationError
from .network import NetworkConfig, NodeConfig

logger = logging.getLogger(__name__)


def _read_bytes(base: Path, value: str, field: str) -> bytes:
    path = Path(value)
    if not path.is_absolute():
        path = base / path
    try:
        return path.read_bytes()
    except OSError as e:
        raise ConfigurationError(f"unable to read {field} {path}: {e}") from e


def load_manifest(path: Union[str, Path]) -> NetworkConfig:
    """
    Load a network manifest.

    The manifest is a JSON object::

        {
          "core_config_flags": {...},
          "genesis_file": "genesis.json",
          "c_chain_config_file": "c-chain.json",
          "nodes": [
            {"node_id": "node1", "config_flags": {...},
             "cert_file": "staking/node1.crt", "key_file": "staking/node1.key",
             "bin_kind": "default"}
          ]
        }

    File references are resolved relative to the manifest's directory.

    Args:
        path: Path to the manifest file

    Returns:
        NetworkConfig with all referenced files loaded

    Raises:
        ConfigurationError: If the manifest is unreadable or malformed
    """
    manifest_path = Path(path)
    base = manifest_path.parent

    try:
        with open(manifest_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"unable to read manifest {manifest_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"malformed manifest {manifest_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"manifest {manifest_path} must be a JSON object")

    nodes = []
    for i, node in enumerate(data.get("nodes", [])):
        if not isinstance(node, dict):
            raise ConfigurationError(f"manifest node #{i} must be a JSON object")
        try:
            nodes.append(NodeConfig(
                node_id=node["node_id"],
                config_flags=node.get("config_flags", {}),
                cert=_read_bytes(base, node["cert_file"], "cert_file") if "cert_file" in node else b"",
                private_key=_read_bytes(base, node["key_file"], "key_file") if "key_file" in node else b"",
                bin_kind=node.get("bin_kind", "default"),
            ))
        except KeyError as e:
            raise ConfigurationError(f"manifest node #{i} is missing {e}") from e
        except ValidationError as e:
            raise ConfigurationError(f"manifest node #{i} is invalid: {e}") from e

    try:
        config = NetworkConfig(
            core_config_flags=data.get("core_config_flags", {}),
            genesis=_read_bytes(base, data["genesis_file"], "genesis_file") if "genesis_file" in data else b"",
            c_chain_config=(
                _read_bytes(base, data["c_chain_config_file"], "c_chain_config_file")
                if "c_chain_config_file" in data else b""
            ),
            node_configs=nodes,
        )
    except ValidationError as e:
        raise ConfigurationError(f"manifest {manifest_path} is invalid: {e}") from e

    logger.info(f"Loaded manifest {manifest_path} with {len(nodes)} node(s)")
    return config
