from k8s_balancer.exceptions import EvictionError, UpstreamDataError
from k8s_balancer.models import NodeInfo, NodeThresholds, NodeUsage, PodInfo
from k8s_balancer.usage import node_utilization

MiB = 1024 ** 2
GiB = 1024 ** 3
RESOURCES = ["cpu", "memory", "pods"]


def make_node(name, cpu=4000, memory=8 * GiB, pods=110, unschedulable=False,
              taints=(), labels=None, extended=None):
    allocatable = {"cpu": cpu, "memory": memory, "pods": pods}
    allocatable.update(extended or {})
    return NodeInfo(
        name=name,
        capacity=dict(allocatable),
        allocatable=allocatable,
        unschedulable=unschedulable,
        taints=tuple(taints),
        labels=labels or {},
    )


def make_pod(name, node_name, cpu=100, memory=100 * MiB, priority=0,
             owner_kinds=("ReplicaSet",), extended=None, **kwargs):
    requests = {"cpu": cpu, "memory": memory}
    requests.update(extended or {})
    return PodInfo(
        name=name,
        node_name=node_name,
        priority=priority,
        requests=requests,
        owner_kinds=owner_kinds,
        **kwargs
    )


def make_usage(node, pods, high=100, low=None):
    """NodeUsage with thresholds applied to every tracked resource."""
    usage = node_utilization(pods, RESOURCES)
    return NodeUsage(
        node=node,
        usage=usage,
        pods=list(pods),
        thresholds=NodeThresholds(
            low={name: low for name in RESOURCES} if low is not None else {},
            high={name: high for name in RESOURCES},
        ),
    )


class FakeCluster:
    def __init__(self, nodes=(), pods=(), priority_classes=None, failing=()):
        self.nodes = list(nodes)
        self.pods = list(pods)
        self.priority_classes = priority_classes or {}
        self.failing = set(failing)
        self.evicted = []

    def list_nodes(self, label_selector=None):
        return list(self.nodes)

    def list_pods_on_node(self, node):
        return [pod for pod in self.pods if pod.node_name == node.name]

    def get_priority_class_value(self, name):
        if name not in self.priority_classes:
            raise UpstreamDataError(f"Failed to get priority class {name}: not found")
        return self.priority_classes[name]

    def evict_pod(self, pod, grace_period=None):
        if pod.key in self.failing:
            raise EvictionError(f"Failed to evict {pod.key}: 429 Too Many Requests")
        self.evicted.append(pod.key)
