"""Client for a node's info API."""

import itertools
import logging
from typing import Any, Dict, Optional

import requests

from ..errors import InfoAPIError

logger = logging.getLogger(__name__)

# Chains a node must report bootstrapped before it is usable
BOOTSTRAP_CHAINS = ("P", "C", "X")


class InfoClient:
    """
    JSON-RPC client for the ``/ext/info`` endpoint of one node.

    Only the calls the runner needs are implemented.
    """

    def __init__(
        self,
        ip: str,
        port: int,
        timeout: float = 20.0,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize info client.

        Args:
            ip: Node IP address
            port: Node HTTP port
            timeout: Request timeout in seconds
            session: Optional requests session to reuse
        """
        self.ip = ip
        self.port = port
        self.timeout = timeout
        self.session = session or requests.Session()
        self._ids = itertools.count(1)

    @property
    def endpoint(self) -> str:
        return f"http://{self.ip}:{self.port}/ext/info"

    def _call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or {},
        }
        try:
            response = self.session.post(self.endpoint, json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise InfoAPIError(f"{method} on {self.endpoint} failed: {e}") from e
        except ValueError as e:
            raise InfoAPIError(f"{method} on {self.endpoint} returned invalid JSON: {e}") from e

        if not isinstance(body, dict):
            raise InfoAPIError(f"{method} on {self.endpoint} returned {body!r}")
        if "error" in body:
            error = body["error"]
            message = error.get('message', error) if isinstance(error, dict) else error
            raise InfoAPIError(f"{method} on {self.endpoint} failed: {message}")
        result = body.get("result")
        if not isinstance(result, dict):
            raise InfoAPIError(f"{method} on {self.endpoint} returned no result")
        return result

    def is_bootstrapped(self, chain: str) -> bool:
        """
        Check whether a chain has finished bootstrapping.

        Args:
            chain: Chain alias (P, C or X)

        Returns:
            True if the node reports the chain bootstrapped

        Raises:
            InfoAPIError: If the call fails
        """
        result = self._call("info.isBootstrapped", {"chain": chain})
        return bool(result.get("isBootstrapped", False))

    def get_node_id(self) -> str:
        """Return the node's own node ID."""
        result = self._call("info.getNodeID")
        return str(result.get("nodeID", ""))

    def close(self):
        self.session.close()
