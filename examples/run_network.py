#!/usr/bin/env python3
"""
Start the example network with the bundled dev node, wait for it to
bootstrap, then stop it.

Usage:
    python examples/run_network.py
"""

import logging
import shutil
import sys
from pathlib import Path

from localnet.models import RunnerSettings, load_manifest
from localnet.runner import new_network


def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    devnode = shutil.which("localnet-devnode")
    if devnode is None:
        print("localnet-devnode not found; install the package first (pip install -e .)")
        return 1

    config = load_manifest(Path(__file__).parent / "manifest.json")
    settings = RunnerSettings(poll_interval=1.0, node_timeout=30.0)
    network = new_network(config, {"default": devnode}, settings=settings)

    try:
        report = network.ready().wait()
        for identity in report.ready:
            print(f"✓ {identity} ({network.get_node_label(identity)}) is up")
        for error in report.errors:
            print(f"✗ {error}")
        return 0 if report.ok else 1
    finally:
        network.stop()


if __name__ == '__main__':
    sys.exit(main())
