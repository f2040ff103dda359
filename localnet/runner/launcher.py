"""Start node processes and relay their output to the log."""

import logging
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Optional

from ..errors import LaunchError

logger = logging.getLogger(__name__)
node_logger = logging.getLogger("localnet.nodes")


class LogRelay:
    """Forwards each line a node prints to the log, tagged with its label."""

    def __init__(self, label: str, stream: IO[str]):
        self.label = label
        self.stream = stream
        self.lines = 0
        self._thread = threading.Thread(
            target=self._run,
            name=f"log-relay-{label}",
            daemon=True
        )

    def start(self):
        self._thread.start()

    def _run(self):
        try:
            for line in self.stream:
                self.lines += 1
                node_logger.debug(f"[{self.label}] - {line.rstrip()}")
        except ValueError:
            # Stream closed underneath us while stopping
            pass
        finally:
            self.stream.close()
        logger.debug(f"Output of node {self.label} closed after {self.lines} line(s)")

    def join(self, timeout: Optional[float] = None):
        self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()


@dataclass
class LaunchedProcess:
    """A running node process and where its output goes."""
    label: str
    process: subprocess.Popen
    relay: Optional[LogRelay] = None
    log_file: Optional[Path] = None

    @property
    def pid(self) -> int:
        return self.process.pid


def launch_node(
    binary_path: str,
    config_file: Path,
    label: str,
    config_file_flag: str = "config-file",
    log_file: Optional[Path] = None
) -> LaunchedProcess:
    """
    Start a node with its config file as the only argument.

    stdout and stderr share one pipe which a background thread drains
    line by line into the ``localnet.nodes`` logger. With log_file they
    are appended to that file instead, so the node keeps running after
    this process exits.

    Args:
        binary_path: Executable to run
        config_file: Config file passed as --<config_file_flag>=<path>
        label: Node label used to tag output and errors
        config_file_flag: Name of the config file flag
        log_file: File to append node output to instead of relaying it

    Returns:
        LaunchedProcess for the started node

    Raises:
        LaunchError: If the process can't be started
    """
    args = [str(binary_path), f"--{config_file_flag}={config_file}"]
    logger.info(f"Starting node {label}: {' '.join(args)}")

    if log_file is not None:
        try:
            output = open(log_file, 'ab')
        except OSError as e:
            raise LaunchError(label, e) from e
        try:
            process = subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=output,
                stderr=subprocess.STDOUT,
            )
        except (OSError, ValueError) as e:
            raise LaunchError(label, e) from e
        finally:
            output.close()

        logger.info(f"Node {label} started with pid {process.pid}, output in {log_file}")
        return LaunchedProcess(label=label, process=process, log_file=Path(log_file))

    try:
        process = subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors='replace',
            bufsize=1,
        )
    except (OSError, ValueError) as e:
        raise LaunchError(label, e) from e

    relay = LogRelay(label, process.stdout)
    relay.start()

    logger.info(f"Node {label} started with pid {process.pid}")
    return LaunchedProcess(label=label, process=process, relay=relay)
