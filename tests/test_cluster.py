from types import SimpleNamespace

import pytest
from kubernetes import client
from kubernetes.client.exceptions import ApiException

from k8s_balancer.cluster import KubernetesCluster, node_from_api, pod_from_api, pod_requests
from k8s_balancer.exceptions import EvictionError, UpstreamDataError
from k8s_balancer.models import NodeInfo, PodInfo, Taint, Toleration

MiB = 1024 ** 2


def api_node(name="n1", unschedulable=None, taints=None, labels=None):
    return client.V1Node(
        metadata=client.V1ObjectMeta(name=name, labels=labels),
        spec=client.V1NodeSpec(unschedulable=unschedulable, taints=taints),
        status=client.V1NodeStatus(
            capacity={"cpu": "2", "memory": "3977868Ki", "pods": "29"},
            allocatable={"cpu": "1930m", "memory": "3287692Ki", "pods": "29"},
        ),
    )


def container(name, **requests):
    return client.V1Container(name=name, resources=client.V1ResourceRequirements(requests=requests or None))


def api_pod(name="web-1", namespace="prod", **spec_kwargs):
    spec_kwargs.setdefault("containers", [container("app", cpu="250m", memory="128Mi")])
    return client.V1Pod(
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            owner_references=[
                client.V1OwnerReference(api_version="apps/v1", kind="ReplicaSet", name="web", uid="1")
            ],
            annotations={"team": "web"},
        ),
        spec=client.V1PodSpec(node_name="n1", **spec_kwargs),
        status=client.V1PodStatus(phase="Running"),
    )


def test_pod_requests_sums_containers_and_takes_largest_init_container():
    spec = client.V1PodSpec(
        containers=[container("a", cpu="250m", memory="128Mi"), container("b", cpu="0.5"), container("c")],
        init_containers=[container("init", cpu="1", memory="64Mi")],
        overhead={"cpu": "10m"},
    )
    assert pod_requests(spec) == {"cpu": 1010, "memory": 128 * MiB}


def test_pod_requests_extended_resources():
    spec = client.V1PodSpec(containers=[container("a", **{"example.com/gpu": "2"})])
    assert pod_requests(spec) == {"example.com/gpu": 2}


def test_node_from_api():
    node = node_from_api(api_node(
        unschedulable=True,
        taints=[client.V1Taint(key="dedicated", value="gpu", effect="NoSchedule")],
        labels={"zone": "a"},
    ))

    assert node == NodeInfo(
        name="n1",
        capacity={"cpu": 2000, "memory": 3977868 * 1024, "pods": 29},
        allocatable={"cpu": 1930, "memory": 3287692 * 1024, "pods": 29},
        unschedulable=True,
        taints=(Taint("dedicated", "gpu", "NoSchedule"),),
        labels={"zone": "a"},
    )


def test_pod_from_api():
    pod = pod_from_api(api_pod(
        priority=100,
        priority_class_name="web",
        tolerations=[client.V1Toleration(key="dedicated", operator="Exists", effect="NoSchedule")],
        node_selector={"zone": "a"},
        volumes=[client.V1Volume(name="cache", empty_dir=client.V1EmptyDirVolumeSource())],
    ))

    assert pod == PodInfo(
        name="web-1",
        namespace="prod",
        node_name="n1",
        priority=100,
        priority_class_name="web",
        phase="Running",
        requests={"cpu": 250, "memory": 128 * MiB},
        owner_kinds=("ReplicaSet",),
        annotations={"team": "web"},
        tolerations=(Toleration(key="dedicated", operator="Exists", effect="NoSchedule"),),
        node_selector={"zone": "a"},
        has_local_storage=True,
    )


class FakeCoreApi:
    def __init__(self, nodes=(), pods=(), error=None):
        self.nodes = list(nodes)
        self.pods = list(pods)
        self.error = error
        self.field_selectors = []
        self.evictions = []

    def list_node(self, label_selector=None):
        if self.error:
            raise self.error
        return SimpleNamespace(items=self.nodes)

    def list_pod_for_all_namespaces(self, field_selector=None):
        if self.error:
            raise self.error
        self.field_selectors.append(field_selector)
        return SimpleNamespace(items=self.pods)

    def create_namespaced_pod_eviction(self, name, namespace, body):
        if self.error:
            raise self.error
        self.evictions.append((namespace, name, body))


class FakeSchedulingApi:
    def read_priority_class(self, name):
        if name != "batch":
            raise ApiException(status=404, reason="Not Found")
        return SimpleNamespace(value=1000)


def make_cluster(core_api):
    return KubernetesCluster(client, core_api=core_api, scheduling_api=FakeSchedulingApi())


def test_list_nodes_and_pods():
    core_api = FakeCoreApi(nodes=[api_node("n1"), api_node("n2")], pods=[api_pod()])
    cluster = make_cluster(core_api)

    nodes = cluster.list_nodes()
    pods = cluster.list_pods_on_node(nodes[0])

    assert [node.name for node in nodes] == ["n1", "n2"]
    assert [pod.key for pod in pods] == ["prod/web-1"]
    assert core_api.field_selectors == [
        "spec.nodeName=n1,status.phase!=Succeeded,status.phase!=Failed"
    ]


def test_api_errors_become_upstream_errors():
    cluster = make_cluster(FakeCoreApi(error=ApiException(status=500, reason="Internal Server Error")))

    with pytest.raises(UpstreamDataError):
        cluster.list_nodes()
    with pytest.raises(UpstreamDataError):
        cluster.list_pods_on_node(NodeInfo(name="n1"))


def test_get_priority_class_value():
    cluster = make_cluster(FakeCoreApi())
    assert cluster.get_priority_class_value("batch") == 1000
    with pytest.raises(UpstreamDataError):
        cluster.get_priority_class_value("missing")


def test_evict_pod_sends_eviction():
    core_api = FakeCoreApi()
    cluster = make_cluster(core_api)

    cluster.evict_pod(PodInfo(name="web-1", namespace="prod"), grace_period=30)

    namespace, name, body = core_api.evictions[0]
    assert (namespace, name) == ("prod", "web-1")
    assert body.metadata.name == "web-1"
    assert body.delete_options.grace_period_seconds == 30


def test_evict_pod_failure_raises_eviction_error():
    cluster = make_cluster(FakeCoreApi(error=ApiException(status=429, reason="Too Many Requests")))

    with pytest.raises(EvictionError, match="429"):
        cluster.evict_pod(PodInfo(name="web-1", namespace="prod"))
