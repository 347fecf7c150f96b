from k8s_balancer.classifier import (
    AboveTargetUtilizationFilter, LowUtilizationFilter, NodeFilter,
    NotFilter, SchedulableFilter, classify_nodes
)
from k8s_balancer.models import NodeThresholds, NodeUsage

from helpers import make_node


def usage(name, cpu_percent, unschedulable=False, low=20, high=50):
    return NodeUsage(
        node=make_node(name, cpu=1000, unschedulable=unschedulable),
        usage={"cpu": cpu_percent * 10},
        thresholds=NodeThresholds(low={"cpu": low}, high={"cpu": high}),
    )


def names(node_usages):
    return [node_usage.node.name for node_usage in node_usages]


def test_low_utilization_filter_is_strict():
    assert LowUtilizationFilter().matches(usage("n1", 19))
    assert not LowUtilizationFilter().matches(usage("n1", 20))


def test_low_utilization_filter_requires_every_resource():
    node_usage = NodeUsage(
        node=make_node("n1", cpu=1000, pods=10),
        usage={"cpu": 100, "pods": 5},
        thresholds=NodeThresholds(low={"cpu": 20, "pods": 20}),
    )
    assert not LowUtilizationFilter().matches(node_usage)


def test_above_target_filter_requires_any_resource():
    node_usage = NodeUsage(
        node=make_node("n1", cpu=1000, pods=10),
        usage={"cpu": 100, "pods": 6},
        thresholds=NodeThresholds(high={"cpu": 50, "pods": 50}),
    )
    assert AboveTargetUtilizationFilter().matches(node_usage)
    assert not AboveTargetUtilizationFilter().matches(usage("n2", 50))


def test_schedulable_filter_rejects_unschedulable_nodes():
    always = NotFilter(LowUtilizationFilter())
    assert SchedulableFilter(always).matches(usage("n1", 80))
    assert not SchedulableFilter(always).matches(usage("n1", 80, unschedulable=True))


def test_classify_nodes_high_utilization_direction():
    node_usages = [
        usage("low-1", 10),
        usage("busy-1", 70),
        usage("cordoned", 70, unschedulable=True),
        usage("low-2", 5),
        usage("busy-2", 40),
    ]
    low = LowUtilizationFilter()
    sources, destinations = classify_nodes(node_usages, low, SchedulableFilter(NotFilter(low)))

    assert names(sources) == ["low-1", "low-2"]
    assert names(destinations) == ["busy-1", "busy-2"]


def test_classify_nodes_low_utilization_direction():
    node_usages = [
        usage("over", 80),
        usage("just-right", 30),
        usage("under", 10),
        usage("under-cordoned", 10, unschedulable=True),
    ]
    sources, destinations = classify_nodes(
        node_usages, AboveTargetUtilizationFilter(), SchedulableFilter(LowUtilizationFilter())
    )

    assert names(sources) == ["over"]
    assert names(destinations) == ["under"]


class AcceptAll(NodeFilter):
    def matches(self, node_usage):
        return True


def test_classify_nodes_partitions_are_disjoint():
    node_usages = [usage(f"n{i}", i * 10) for i in range(10)]
    sources, destinations = classify_nodes(node_usages, LowUtilizationFilter(), AcceptAll())

    assert names(sources) == ["n0", "n1"]
    assert not set(names(sources)) & set(names(destinations))
    assert names(sources) + names(destinations) == names(node_usages)


def test_classify_nodes_drops_nodes_matching_neither():
    node_usages = [usage("n1", 30), usage("n2", 40)]
    sources, destinations = classify_nodes(
        node_usages, LowUtilizationFilter(), AboveTargetUtilizationFilter()
    )
    assert sources == [] and destinations == []
