"""Network and node configuration models."""

from typing import Any, Dict, List
from pydantic import BaseModel, ConfigDict, Field


# Config flag keys the runner reads from the merged node flags
GENESIS_KEY = "genesis"
CHAIN_CONFIG_DIR_KEY = "chain-config-dir"
TLS_CERT_KEY = "staking-tls-cert-file"
TLS_KEY_KEY = "staking-tls-key-file"
PUBLIC_IP_KEY = "public-ip"
HTTP_PORT_KEY = "http-port"


class NodeConfig(BaseModel):
    """Configuration for a single node of the network."""
    model_config = ConfigDict(frozen=True)

    node_id: str = Field(..., description="Node identity label, used to tag its log output")
    config_flags: Dict[str, Any] = Field(
        default_factory=dict,
        description="Flags overriding the network's core config flags for this node"
    )
    cert: bytes = Field(b"", description="TLS certificate bytes")
    private_key: bytes = Field(b"", description="TLS private key bytes")
    bin_kind: str = Field("default", description="Selects the executable from the binary map")


class NetworkConfig(BaseModel):
    """
    Configuration for a whole local network.

    The core config flags are shared by every node; each node's own
    flags are layered on top of them when its config file is written.
    """
    model_config = ConfigDict(frozen=True)

    core_config_flags: Dict[str, Any] = Field(
        default_factory=dict,
        description="Config flags common to every node"
    )
    genesis: bytes = Field(b"", description="Genesis file contents, written verbatim")
    c_chain_config: bytes = Field(b"", description="C-chain config contents, written verbatim")
    node_configs: List[NodeConfig] = Field(default_factory=list, description="Nodes, in launch order")
