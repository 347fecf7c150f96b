# classifier.py

"""Classification of nodes into eviction sources and destinations."""

import logging
from abc import ABC, abstractmethod
from typing import Sequence

from .models import ClassificationResult, NodeUsage
from .usage import resource_usage_percentages

logger = logging.getLogger(__name__)


class NodeFilter(ABC):
    """Per-node test used to pick source or destination nodes."""

    @abstractmethod
    def matches(self, node_usage: NodeUsage) -> bool:
        raise NotImplementedError


class LowUtilizationFilter(NodeFilter):
    """Matches nodes strictly below their low threshold for every resource."""

    def matches(self, node_usage: NodeUsage) -> bool:
        low = node_usage.thresholds.low
        percentages = resource_usage_percentages(node_usage, low.keys())
        return all(percentages[name] < threshold for name, threshold in low.items())


class AboveTargetUtilizationFilter(NodeFilter):
    """Matches nodes strictly above their high threshold for any resource."""

    def matches(self, node_usage: NodeUsage) -> bool:
        high = node_usage.thresholds.high
        percentages = resource_usage_percentages(node_usage, high.keys())
        return any(percentages[name] > threshold for name, threshold in high.items())


class NotFilter(NodeFilter):
    def __init__(self, inner: NodeFilter):
        self.inner = inner

    def matches(self, node_usage: NodeUsage) -> bool:
        return not self.inner.matches(node_usage)


class SchedulableFilter(NodeFilter):
    """Rejects unschedulable nodes, otherwise defers to the wrapped filter."""

    def __init__(self, inner: NodeFilter):
        self.inner = inner

    def matches(self, node_usage: NodeUsage) -> bool:
        if node_usage.node.unschedulable:
            logger.debug(f"Node {node_usage.node.name} is unschedulable")
            return False
        return self.inner.matches(node_usage)


def classify_nodes(
    node_usages: Sequence[NodeUsage],
    source_filter: NodeFilter,
    destination_filter: NodeFilter,
) -> ClassificationResult:
    """
    Split nodes into sources and destinations in a single pass.

    A node matching the source filter is never tested as a destination.
    Nodes matching neither filter are left out. Input order is preserved.
    """
    source_nodes = []
    destination_nodes = []
    for node_usage in node_usages:
        if source_filter.matches(node_usage):
            source_nodes.append(node_usage)
        elif destination_filter.matches(node_usage):
            destination_nodes.append(node_usage)
    return ClassificationResult(source_nodes, destination_nodes)
