# cluster.py

"""Access to live node, pod and priority class state through the Kubernetes API."""

import logging
from typing import Dict, List, Optional

from kubernetes.client.exceptions import ApiException

from .exceptions import EvictionError, UpstreamDataError
from .models import NodeInfo, PodInfo, Taint, Toleration
from .utils import load_kube_client, parse_resource_list

logger = logging.getLogger(__name__)

def pod_requests(spec) -> Dict[str, int]:
    """
    Calculate the effective resource requests of a pod.

    Containers run together, so their requests add up; init containers run
    one at a time, so only the largest of them counts. Pod overhead is added
    on top.
    """
    requests: Dict[str, int] = {}
    for container in spec.containers or []:
        container_requests = parse_resource_list(
            container.resources.requests if container.resources else None
        )
        for name, amount in container_requests.items():
            requests[name] = requests.get(name, 0) + amount

    for container in spec.init_containers or []:
        init_requests = parse_resource_list(
            container.resources.requests if container.resources else None
        )
        for name, amount in init_requests.items():
            if amount > requests.get(name, 0):
                requests[name] = amount

    for name, amount in parse_resource_list(spec.overhead).items():
        requests[name] = requests.get(name, 0) + amount
    return requests

def node_from_api(node) -> NodeInfo:
    """Convert a V1Node to a NodeInfo snapshot."""
    status = node.status
    taints = tuple(
        Taint(key=taint.key, value=taint.value, effect=taint.effect)
        for taint in (node.spec.taints or [])
    ) if node.spec else ()
    return NodeInfo(
        name=node.metadata.name,
        capacity=parse_resource_list(status.capacity if status else None),
        allocatable=parse_resource_list(status.allocatable if status else None),
        unschedulable=bool(node.spec and node.spec.unschedulable),
        taints=taints,
        labels=dict(node.metadata.labels or {}),
    )

def pod_from_api(pod) -> PodInfo:
    """Convert a V1Pod to a PodInfo snapshot."""
    spec = pod.spec
    tolerations = tuple(
        Toleration(
            key=toleration.key,
            operator=toleration.operator or "Equal",
            value=toleration.value,
            effect=toleration.effect,
        )
        for toleration in (spec.tolerations or [])
    )
    has_local_storage = any(
        volume.empty_dir is not None or volume.host_path is not None
        for volume in (spec.volumes or [])
    )
    return PodInfo(
        name=pod.metadata.name,
        namespace=pod.metadata.namespace,
        node_name=spec.node_name,
        priority=spec.priority,
        priority_class_name=spec.priority_class_name,
        phase=pod.status.phase if pod.status else "Unknown",
        requests=pod_requests(spec),
        owner_kinds=tuple(owner.kind for owner in (pod.metadata.owner_references or [])),
        annotations=dict(pod.metadata.annotations or {}),
        tolerations=tolerations,
        node_selector=dict(spec.node_selector or {}),
        has_local_storage=has_local_storage,
    )


class KubernetesCluster:
    """Reads cluster state and requests evictions through the Kubernetes API."""

    def __init__(self, client_module, core_api=None, scheduling_api=None):
        self.client = client_module
        self.core_api = core_api or client_module.CoreV1Api()
        self.scheduling_api = scheduling_api or client_module.SchedulingV1Api()

    @classmethod
    def connect(cls, kubeconfig: Optional[str] = None, context: Optional[str] = None) -> "KubernetesCluster":
        return cls(load_kube_client(kubeconfig, context))

    def list_nodes(self, label_selector: Optional[str] = None) -> List[NodeInfo]:
        try:
            nodes = self.core_api.list_node(label_selector=label_selector).items
        except ApiException as e:
            raise UpstreamDataError(f"Failed to list nodes: {e}")
        return [node_from_api(node) for node in nodes]

    def list_pods_on_node(self, node: NodeInfo) -> List[PodInfo]:
        """List the pods on a node that still hold resources."""
        field_selector = (
            f"spec.nodeName={node.name},status.phase!=Succeeded,status.phase!=Failed"
        )
        try:
            pods = self.core_api.list_pod_for_all_namespaces(field_selector=field_selector).items
        except ApiException as e:
            raise UpstreamDataError(f"Failed to list pods on node {node.name}: {e}")
        return [pod_from_api(pod) for pod in pods]

    def get_priority_class_value(self, name: str) -> int:
        try:
            priority_class = self.scheduling_api.read_priority_class(name)
        except ApiException as e:
            raise UpstreamDataError(f"Failed to get priority class {name}: {e}")
        return priority_class.value

    def evict_pod(self, pod: PodInfo, grace_period: Optional[int] = None) -> None:
        body = self.client.V1Eviction(
            metadata=self.client.V1ObjectMeta(name=pod.name, namespace=pod.namespace),
            delete_options=self.client.V1DeleteOptions(grace_period_seconds=grace_period),
        )
        try:
            self.core_api.create_namespaced_pod_eviction(
                name=pod.name,
                namespace=pod.namespace,
                body=body,
            )
        except ApiException as e:
            raise EvictionError(f"Failed to evict {pod.key}: {e.status} {e.reason}")
