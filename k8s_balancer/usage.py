# usage.py

"""Node usage accounting and utilization percentages."""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .config import (
    MIN_RESOURCE_PERCENTAGE, MAX_RESOURCE_PERCENTAGE, RESOURCE_PODS
)
from .models import (
    NodeInfo, NodeThresholds, NodeUsage, PodInfo,
    ResourceAmounts, ResourceThresholds
)

logger = logging.getLogger(__name__)

def pod_request_quantity(pod: PodInfo, name: str) -> int:
    """Amount of a resource a pod takes from its node. Every pod takes one pod slot."""
    if name == RESOURCE_PODS:
        return 1
    return pod.requests.get(name, 0)

def pod_sort_key(pod: PodInfo):
    # Lowest priority first; pods without requests go first within a priority
    priority = pod.priority if pod.priority is not None else -1
    return (priority, 1 if pod.requests else 0)

def sort_pods_by_priority_low_to_high(pods: Iterable[PodInfo]) -> List[PodInfo]:
    return sorted(pods, key=pod_sort_key)

def node_utilization(pods: Sequence[PodInfo], resource_names: Iterable[str]) -> ResourceAmounts:
    """Sum the requests of the given pods for each resource name."""
    totals = {}
    for name in resource_names:
        totals[name] = sum(pod_request_quantity(pod, name) for pod in pods)
    return totals

def get_node_usage(
    nodes: Sequence[NodeInfo],
    resource_names: Iterable[str],
    list_pods_on_node: Callable[[NodeInfo], List[PodInfo]],
) -> List[NodeUsage]:
    """
    Build usage records for all nodes.

    Args:
        nodes: Cluster snapshot, in processing order
        resource_names: Resources to account for
        list_pods_on_node: Returns the pods resident on a node

    Returns:
        One NodeUsage per node with its pods sorted from lowest to highest priority
    """
    resource_names = list(resource_names)
    node_usages = []
    for node in nodes:
        pods = sort_pods_by_priority_low_to_high(list_pods_on_node(node))
        usage = node_utilization(pods, resource_names)
        logger.debug(f"Node {node.name} usage: {usage} ({len(pods)} pods)")
        node_usages.append(NodeUsage(node=node, usage=usage, pods=pods))
    return node_usages

def resource_usage_percentages(
    node_usage: NodeUsage,
    resource_names: Optional[Iterable[str]] = None,
) -> Dict[str, float]:
    """
    Calculate utilization percentages of a node.

    Percentages are used / allocatable * 100 and are not capped at 100.
    A resource with no allocatable amount reports 0.
    """
    if resource_names is None:
        resource_names = node_usage.usage.keys()
    allocatable = node_usage.node.allocatable
    percentages = {}
    for name in resource_names:
        node_allocatable = allocatable.get(name, 0)
        if node_allocatable <= 0:
            percentages[name] = 0.0
            continue
        used = node_usage.usage.get(name, 0)
        percentages[name] = float(used) / float(node_allocatable) * 100
    return percentages

def resource_threshold_amount(node: NodeInfo, name: str, percentage: float) -> int:
    """Convert a percentage threshold into an amount of the node's allocatable resource."""
    return int(node.allocatable.get(name, 0) * percentage / 100)

def average_usage_percentages(
    node_usages: Sequence[NodeUsage],
    resource_names: Iterable[str],
) -> Dict[str, float]:
    resource_names = list(resource_names)
    totals = {name: 0.0 for name in resource_names}
    if not node_usages:
        return totals
    for node_usage in node_usages:
        for name, percentage in resource_usage_percentages(node_usage, resource_names).items():
            totals[name] += percentage
    return {name: total / len(node_usages) for name, total in totals.items()}

def _clamp_percentage(value: float) -> float:
    return max(float(MIN_RESOURCE_PERCENTAGE), min(float(MAX_RESOURCE_PERCENTAGE), value))

def get_node_thresholds(
    node_usages: Sequence[NodeUsage],
    low_thresholds: ResourceThresholds,
    high_thresholds: ResourceThresholds,
    resource_names: Iterable[str],
    use_deviation_thresholds: bool = False,
) -> None:
    """
    Assign every node its low and high thresholds.

    With deviation thresholds the configured values are offsets from the
    cluster average, clamped to the valid percentage range.
    """
    resource_names = list(resource_names)
    if not use_deviation_thresholds:
        for node_usage in node_usages:
            node_usage.thresholds = NodeThresholds(
                low={name: low_thresholds[name] for name in resource_names if name in low_thresholds},
                high={name: high_thresholds[name] for name in resource_names if name in high_thresholds},
            )
        return

    average = average_usage_percentages(node_usages, resource_names)
    low, high = {}, {}
    for name in resource_names:
        low_deviation = low_thresholds.get(name, MIN_RESOURCE_PERCENTAGE)
        high_deviation = high_thresholds.get(name, MIN_RESOURCE_PERCENTAGE)
        if low_deviation == MIN_RESOURCE_PERCENTAGE and high_deviation == MIN_RESOURCE_PERCENTAGE:
            low[name] = average[name]
            high[name] = average[name]
            continue
        low[name] = _clamp_percentage(average[name] - low_deviation)
        high[name] = _clamp_percentage(average[name] + high_deviation)
    logger.debug(f"Average utilization {average}, deviation thresholds low={low} high={high}")
    for node_usage in node_usages:
        node_usage.thresholds = NodeThresholds(low=dict(low), high=dict(high))

def total_usage_percentage(node_usage: NodeUsage) -> float:
    return sum(resource_usage_percentages(node_usage).values())

def sort_nodes_by_usage(node_usages: Sequence[NodeUsage], ascending: bool = False) -> List[NodeUsage]:
    """Order nodes by their summed utilization percentage."""
    return sorted(node_usages, key=total_usage_percentage, reverse=not ascending)
