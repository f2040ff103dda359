"""Stand-in node serving the info API, for trying the runner without a real node."""

import json
import logging
import time
from typing import Any, Dict, Optional, Sequence

from flask import Flask, request, jsonify

from ..client import BOOTSTRAP_CHAINS
from ..models.network import PUBLIC_IP_KEY, HTTP_PORT_KEY

logger = logging.getLogger(__name__)

BOOTSTRAP_DELAY_KEY = "devnode-bootstrap-delay"


class DevNode:
    """
    Minimal node answering ``info.isBootstrapped`` and ``info.getNodeID``.

    Every chain reports bootstrapped once bootstrap_delay seconds have
    passed since the node was created.
    """

    def __init__(
        self,
        node_id: str = "devnode",
        bootstrap_delay: float = 0.0,
        chains: Sequence[str] = BOOTSTRAP_CHAINS,
        clock=time.monotonic
    ):
        """
        Initialize dev node.

        Args:
            node_id: Node ID reported by info.getNodeID
            bootstrap_delay: Seconds until chains report bootstrapped
            chains: Chains this node knows about
            clock: Monotonic clock
        """
        self.node_id = node_id
        self.bootstrap_delay = bootstrap_delay
        self.chains = set(chains)
        self.clock = clock
        self.started_at = clock()
        self.app = Flask(__name__)
        self._setup_routes()

    def is_bootstrapped(self, chain: str) -> bool:
        return chain in self.chains and self.clock() - self.started_at >= self.bootstrap_delay

    def _setup_routes(self):
        """Set up Flask routes."""

        @self.app.route('/ext/info', methods=['POST'])
        def info():
            """JSON-RPC endpoint for the info API."""
            body = request.get_json(silent=True)
            if not isinstance(body, dict):
                return jsonify(_error(None, -32700, "parse error"))

            request_id = body.get("id")
            method = body.get("method")
            params = body.get("params") or {}

            if method == "info.isBootstrapped":
                chain = params.get("chain")
                if chain not in self.chains:
                    return jsonify(_error(request_id, -32000, f"there is no chain with alias/ID '{chain}'"))
                return jsonify(_result(request_id, {"isBootstrapped": self.is_bootstrapped(chain)}))

            if method == "info.getNodeID":
                return jsonify(_result(request_id, {"nodeID": self.node_id}))

            return jsonify(_error(request_id, -32601, f"method {method} not found"))

        @self.app.route('/ext/health', methods=['GET'])
        def health():
            """Health check endpoint."""
            healthy = all(self.is_bootstrapped(chain) for chain in self.chains)
            return jsonify({"healthy": healthy}), 200 if healthy else 503

    def run(self, host: str = '127.0.0.1', port: int = 9650, **kwargs):
        """
        Run the dev node.

        Args:
            host: Host to bind to
            port: Port to bind to
            **kwargs: Additional arguments for Flask app.run()
        """
        logger.info(f"Starting dev node {self.node_id} on {host}:{port}")
        self.app.run(host=host, port=port, **kwargs)


def _result(request_id, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def _error(request_id, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def main(argv: Optional[Sequence[str]] = None):
    """CLI entry point for the dev node."""
    import argparse

    parser = argparse.ArgumentParser(description='Local network dev node')
    parser.add_argument('--config-file', required=True, help='Path to the node config JSON')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')

    args = parser.parse_args(argv)

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    with open(args.config_file, 'r') as f:
        config = json.load(f)

    node = DevNode(
        node_id=config.get("node-id", "devnode"),
        bootstrap_delay=float(config.get(BOOTSTRAP_DELAY_KEY, 0.0)),
    )
    node.run(host=config.get(PUBLIC_IP_KEY, '127.0.0.1'), port=int(config.get(HTTP_PORT_KEY, 9650)))
    return 0


if __name__ == '__main__':
    import sys
    sys.exit(main())
