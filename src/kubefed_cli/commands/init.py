"""Init command for standing up a federation control plane.

This module provides the `kubefed init` command which provisions the
federation API server and controller manager inside a host cluster and
records admin credentials in the local kubeconfig.
"""

from __future__ import annotations

import signal
import sys
import threading

import click

from ..bootstrap import (
    BootstrapRequest,
    FederationBootstrap,
    FederationError,
    HostCluster,
    KubeconfigStore,
    PollSettings,
)
from ..config import load_config
from ..shared.logging import get_logger
from ..shared.paths import resolve_kubeconfig_path

logger = get_logger(__name__)


@click.command("init")
@click.argument("federation_name")
@click.option(
    "--host-cluster-context",
    required=True,
    help="Host cluster context in the kubeconfig",
)
@click.option("--kubeconfig", default=None, help="Path to the kubeconfig file")
@click.option(
    "--federation-system-namespace",
    default=None,
    help="Namespace in the host cluster where the federation system components are installed",
)
@click.option(
    "--dns-zone-name",
    default="",
    help="DNS suffix for this federation. "
    "Federated Service DNS names are published with this suffix.",
)
@click.option(
    "--image",
    default=None,
    help="Image to use for federation API server and controller manager binaries.",
)
@click.option("--dns-provider", default=None, help="DNS provider to be used for this deployment.")
@click.option(
    "--etcd-pv-capacity",
    default=None,
    help="Size of persistent volume claim to be used for etcd.",
)
@click.option(
    "--etcd-persistent-storage/--no-etcd-persistent-storage",
    default=True,
    help="Use persistent volume for etcd.",
)
@click.option("--dry-run", is_flag=True, help="Dry run without sending commands to server.")
@click.option(
    "--storage-backend",
    type=click.Choice(["etcd2", "etcd3"]),
    default=None,
    help="The storage backend for persistence.",
)
@click.option(
    "--poll-timeout",
    type=float,
    default=None,
    help="Give up waiting for the load balancer, pods or health after this many seconds "
    "(default: wait until interrupted).",
)
def init(
    federation_name,
    host_cluster_context,
    kubeconfig,
    federation_system_namespace,
    dns_zone_name,
    image,
    dns_provider,
    etcd_pv_capacity,
    etcd_persistent_storage,
    dry_run,
    storage_backend,
    poll_timeout,
):
    """Initialize a federation control plane.

    The federation control plane is hosted inside a Kubernetes cluster.
    The host cluster must be specified using --host-cluster-context.

    Examples:

        # Initialize federation control plane for a federation named foo
        # in the host cluster whose local kubeconfig context is bar.
        kubefed init foo --host-cluster-context=bar

        # Show what would be created without touching the cluster
        kubefed init foo --host-cluster-context=bar --dry-run
    """
    config = load_config()
    request = BootstrapRequest(
        name=federation_name,
        host_context=host_cluster_context,
        kubeconfig=kubeconfig,
        namespace=federation_system_namespace or config.federation_system_namespace,
        image=image or config.image,
        dns_zone_name=dns_zone_name,
        dns_provider=dns_provider or config.dns_provider,
        storage_backend=storage_backend or config.storage_backend,
        etcd_pv_capacity=etcd_pv_capacity or config.etcd_pv_capacity,
        etcd_persistent_storage=etcd_persistent_storage,
        dry_run=dry_run,
    )
    cancel_event = threading.Event()
    poll_settings = PollSettings(
        lb_interval=config.lb_poll_interval,
        pod_interval=config.pod_poll_interval,
        health_request_timeout=config.health_request_timeout,
        timeout=poll_timeout if poll_timeout is not None else config.poll_timeout,
        cancel_event=cancel_event,
    )

    previous_handler = signal.getsignal(signal.SIGINT) or signal.default_int_handler

    def _on_interrupt(signum, frame):
        # First Ctrl-C stops at the next wait or step boundary, a second one aborts
        cancel_event.set()
        signal.signal(signal.SIGINT, previous_handler)

    signal.signal(signal.SIGINT, _on_interrupt)
    try:
        _run_init(request, poll_settings)
    except KeyboardInterrupt:
        _interrupted()
    finally:
        signal.signal(signal.SIGINT, previous_handler)


def _interrupted() -> None:
    click.echo("\n✗ Interrupted. Resources created so far were left in place.", err=True)
    sys.exit(130)


def _run_init(request: BootstrapRequest, poll_settings: PollSettings) -> None:
    """Execute the full init flow."""
    kubeconfig_path = resolve_kubeconfig_path(request.kubeconfig)
    mode = "dry run" if request.dry_run else f"context {request.host_context}"
    click.echo(f"\nInitializing federation {request.name!r} ({mode})\n")

    try:
        request.validate()
        host = None
        if not request.dry_run:
            host = HostCluster.from_kubeconfig(kubeconfig_path, request.host_context)

        bootstrap = FederationBootstrap(
            request,
            host,
            KubeconfigStore(kubeconfig_path),
            poll_settings=poll_settings,
            echo=click.echo,
        )
        result = bootstrap.run()
    except FederationError as e:
        logger.debug("init_failed", error=str(e))
        if poll_settings.cancel_event.is_set():
            _interrupted()
        click.echo(f"\n✗ {e}", err=True)
        sys.exit(1)

    click.echo("")
    click.echo(result.summary)
