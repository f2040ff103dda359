"""Main CLI application for localnet."""

import logging
import time

import click

from ..errors import LocalNetError, TeardownError
from ..models import RunnerSettings, load_manifest
from ..runner import new_network
from ..teardown import terminate_process_trees

logger = logging.getLogger(__name__)


def parse_binary_map(values) -> dict:
    """Parse KIND=PATH pairs into a binary map."""
    binary_paths = {}
    for value in values:
        kind, sep, path = value.partition('=')
        if not sep or not kind or not path:
            raise click.BadParameter(f"expected KIND=PATH, got {value!r}", param_hint="--bin")
        binary_paths[kind] = path
    return binary_paths


@click.group()
@click.option('--debug', is_flag=True, help='Enable debug logging (includes node output)')
def cli(debug):
    """localnet - run local multi-node test networks."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


@cli.command()
@click.option('--manifest', required=True, type=click.Path(exists=True, dir_okay=False),
              help='Network manifest JSON')
@click.option('--bin', 'binaries', multiple=True, required=True, help='Binary for a kind (KIND=PATH)')
@click.option('--wait/--no-wait', default=True, help='Wait for every node to bootstrap')
@click.option('--poll-interval', default=10.0, show_default=True, help='Seconds between bootstrap polls')
@click.option('--node-timeout', default=60.0, show_default=True, help='Seconds each node has to bootstrap')
@click.option('--detach', is_flag=True, help='Exit after startup instead of running until Ctrl+C')
def up(manifest, binaries, wait, poll_interval, node_timeout, detach):
    """Start a network and keep it running until interrupted."""
    binary_paths = parse_binary_map(binaries)
    # Detached nodes outlive this process, so nothing would be left to drain a pipe
    settings = RunnerSettings(poll_interval=poll_interval, node_timeout=node_timeout, log_to_files=detach)

    try:
        network_config = load_manifest(manifest)
        network = new_network(network_config, binary_paths, settings=settings)
    except LocalNetError as e:
        launched = getattr(e, 'launched_pids', [])
        if launched:
            click.echo(f"Stopping {len(launched)} node(s) started before the failure", err=True)
            try:
                terminate_process_trees(launched)
            except TeardownError as te:
                click.echo(f"✗ {te}", err=True)
        raise click.ClickException(str(e))

    click.echo(f"✓ Started {len(network)} node(s):")
    for identity, pid in network.pids().items():
        node = network.get_node(identity)
        click.echo(f"  {identity}: {node.label} pid={pid} http://{node.ip}:{node.port}")

    exit_code = 0
    detached = False
    try:
        if wait:
            click.echo("\nWaiting for nodes to bootstrap...")
            report = network.ready().wait()
            for identity in report.ready:
                click.echo(f"  ✓ {identity} ({network.get_node_label(identity)}) is up")
            for error in report.errors:
                click.echo(f"  ✗ {error}", err=True)
            if not report.ok:
                exit_code = 1

        if detach and exit_code == 0:
            click.echo(f"\nNode pids: {' '.join(str(pid) for pid in network.pids().values())}")
            click.echo("Node output is in node.log under each chain-config-dir")
            click.echo("Stop them with 'localnet kill-tree PID...'")
            detached = True
            raise SystemExit(0)

        if exit_code == 0:
            click.echo("\nNetwork running. Press Ctrl+C to stop.")
            while True:
                time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        if not detached:
            click.echo("\nStopping network...")
            try:
                network.stop()
            except TeardownError as e:
                raise click.ClickException(str(e))
            click.echo("✓ Network stopped")

    raise SystemExit(exit_code)


@cli.command('kill-tree')
@click.argument('pids', nargs=-1, type=int, required=True)
def kill_tree(pids):
    """Terminate processes and all their descendants."""
    try:
        signalled = terminate_process_trees(pids)
    except TeardownError as e:
        raise click.ClickException(str(e))
    click.echo(f"✓ Sent SIGTERM to {len(signalled)} process(es)")


def main():
    """Entry point for CLI."""
    cli()


if __name__ == '__main__':
    main()
