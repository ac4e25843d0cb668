"""Waits on host cluster state that becomes available asynchronously."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from kubernetes import client

from ..shared.logging import get_logger
from .poller import Observation, Poller

logger = get_logger(__name__)


@dataclass
class NetworkEndpoint:
    """Addresses assigned to the federation API server's load balancer."""

    ips: list[str] = field(default_factory=list)
    hostnames: list[str] = field(default_factory=list)

    @property
    def advertise_address(self) -> str:
        """Only one IP can be advertised; the first one is picked."""
        return self.ips[0] if self.ips else ""

    @property
    def endpoint(self) -> str:
        """Address clients should use: first IP, else first hostname."""
        if self.advertise_address:
            return self.advertise_address
        return self.hostnames[0] if self.hostnames else ""

    @property
    def addresses(self) -> list[str]:
        return [*self.ips, *self.hostnames]


def wait_for_load_balancer_address(
    core_v1: client.CoreV1Api,
    service: client.V1Service,
    poller: Poller,
    on_attempt: Callable[[int, Observation], None] | None = None,
) -> NetworkEndpoint:
    """Block until the service's load balancer has at least one address.

    Read errors while polling count as "not yet".
    """
    namespace = service.metadata.namespace
    name = service.metadata.name
    endpoint = NetworkEndpoint()

    def observe() -> Observation:
        svc = core_v1.read_namespaced_service(name, namespace)
        lb = svc.status.load_balancer if svc.status else None
        ingresses = (lb.ingress if lb else None) or []
        ips = [ing.ip for ing in ingresses if ing.ip]
        hostnames = [ing.hostname for ing in ingresses if ing.hostname]
        if ips or hostnames:
            endpoint.ips = ips
            endpoint.hostnames = hostnames
            return Observation.ready()
        return Observation.not_ready("load balancer address not assigned yet")

    poller.poll_until(observe, f"load balancer address of service {name}", on_attempt)
    logger.info(
        "load_balancer_ready", service=name, ips=endpoint.ips, hostnames=endpoint.hostnames
    )
    return endpoint


def wait_for_pods(
    core_v1: client.CoreV1Api,
    namespace: str,
    name_prefixes: list[str],
    poller: Poller,
    on_attempt: Callable[[int, Observation], None] | None = None,
) -> None:
    """Block until every prefix has a pod in the Running phase.

    Pods created by a deployment are named after it, so the deployment
    names are used as prefixes.
    """

    def observe() -> Observation:
        pods = core_v1.list_namespaced_pod(namespace).items or []
        waiting = [
            prefix
            for prefix in name_prefixes
            if not any(
                pod.metadata.name.startswith(prefix)
                and pod.status is not None
                and pod.status.phase == "Running"
                for pod in pods
            )
        ]
        if not waiting:
            return Observation.ready()
        return Observation.not_ready(f"waiting for pods: {', '.join(waiting)}")

    poller.poll_until(observe, f"federation pods in {namespace}", on_attempt)
    logger.info("pods_running", namespace=namespace, pods=name_prefixes)
