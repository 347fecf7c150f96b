# eviction_driver.py

"""Greedy eviction of pods from source nodes."""

import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .evictions import pod_tolerates_taints
from .exceptions import EvictionError
from .models import NodeUsage, PodInfo
from .usage import pod_request_quantity, resource_threshold_amount

logger = logging.getLogger(__name__)


class AvailableUsageLedger:
    """
    Remaining headroom of the destination nodes.

    Headroom is pooled: an eviction is charged against the total and not
    against a specific destination, because the scheduler picks the node.
    Each destination's starting headroom is kept for the fit check.
    """

    def __init__(self, destination_nodes: Sequence[NodeUsage], resource_names: Iterable[str]):
        self.resource_names = list(resource_names)
        self.node_headroom: Dict[str, Dict[str, int]] = {}
        self.total: Dict[str, int] = {name: 0 for name in self.resource_names}

        for node_usage in destination_nodes:
            headroom = {}
            for name in self.resource_names:
                high = node_usage.thresholds.high.get(name, 0)
                threshold = resource_threshold_amount(node_usage.node, name, high)
                headroom[name] = max(0, threshold - node_usage.usage.get(name, 0))
                self.total[name] += headroom[name]
            self.node_headroom[node_usage.node.name] = headroom

    def exhausted(self) -> bool:
        return any(self.total[name] <= 0 for name in self.resource_names)

    def can_accommodate(self, pod: PodInfo) -> bool:
        """Check the pool and at least one destination have room for every request of the pod."""
        requests = {name: pod_request_quantity(pod, name) for name in self.resource_names}
        if any(self.total[name] < amount for name, amount in requests.items()):
            return False
        return any(
            all(headroom[name] >= amount for name, amount in requests.items())
            for headroom in self.node_headroom.values()
        )

    def consume(self, pod: PodInfo) -> None:
        for name in self.resource_names:
            self.total[name] = max(0, self.total[name] - pod_request_quantity(pod, name))


ContinueEvictionCondition = Callable[[NodeUsage, AvailableUsageLedger], bool]


class EvictionDriver:
    """
    Evicts pods from source nodes while the destinations have room left.

    Args:
        pod_evictor: Eviction action, called as evict_pod(pod, node, strategy)
        is_evictable: Evictability filter applied to every candidate pod
        resource_names: Resources tracked in the ledger
        strategy_name: Name reported with each eviction
        continue_eviction: Evaluated on the ledger after each eviction
        node_fit: Skip pods the ledger cannot accommodate
        stop_event: Cancels the remaining evictions when set
    """

    def __init__(self, pod_evictor, is_evictable: Callable[[PodInfo], bool],
                 resource_names: Iterable[str], strategy_name: str,
                 continue_eviction: ContinueEvictionCondition,
                 node_fit: bool = False,
                 stop_event: Optional[threading.Event] = None):
        self.pod_evictor = pod_evictor
        self.is_evictable = is_evictable
        self.resource_names = list(resource_names)
        self.strategy_name = strategy_name
        self.continue_eviction = continue_eviction
        self.node_fit = node_fit
        self.stop_event = stop_event
        self.ledger: Optional[AvailableUsageLedger] = None
        self.exhausted_at_start = False

    def _cancelled(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    def evict_pods_from_source_nodes(self, source_nodes: Sequence[NodeUsage],
                                     destination_nodes: Sequence[NodeUsage]) -> int:
        """
        Run the eviction loop over the source nodes in the given order.

        Returns:
            Number of pods evicted
        """
        self.ledger = AvailableUsageLedger(destination_nodes, self.resource_names)
        logger.info(f"Total capacity to be moved: {self.ledger.total}")
        self.exhausted_at_start = self.ledger.exhausted()
        if self.exhausted_at_start:
            logger.info("Destination nodes have no capacity left, nothing to do here")
            return 0

        taints = [list(node_usage.node.taints) for node_usage in destination_nodes]
        evicted = 0
        for node_usage in source_nodes:
            if self._cancelled():
                logger.info("Eviction cancelled, stopping")
                break
            if self.ledger.exhausted():
                logger.info(f"Capacity of destination nodes exhausted, stopping ({self.ledger.total})")
                break
            if not self.continue_eviction(node_usage, self.ledger):
                logger.debug(f"Node {node_usage.node.name} no longer needs evictions")
                continue

            logger.debug(
                f"Evicting pods from node {node_usage.node.name}, usage {node_usage.usage}, "
                f"{len(node_usage.pods)} pods"
            )
            evicted += self._evict_pods(node_usage, taints)
        logger.info(f"Total number of pods evicted: {evicted}")
        return evicted

    def _evict_pods(self, node_usage: NodeUsage, destination_taints: List[List]) -> int:
        evicted = 0
        for pod in node_usage.pods:
            if self._cancelled():
                break
            if not self.is_evictable(pod):
                continue
            if destination_taints and not any(
                pod_tolerates_taints(pod, taints) for taints in destination_taints
            ):
                logger.debug(f"Pod {pod.key} does not tolerate taints of any destination node")
                continue
            if self.node_fit and not self.ledger.can_accommodate(pod):
                logger.debug(f"Pod {pod.key} does not fit the remaining destination capacity")
                continue

            try:
                success = self.pod_evictor.evict_pod(pod, node_usage.node, self.strategy_name)
            except EvictionError as e:
                logger.error(f"Error evicting pod {pod.key}: {e}")
                continue
            if not success:
                continue

            evicted += 1
            self.ledger.consume(pod)
            for name in self.resource_names:
                node_usage.usage[name] = max(
                    0, node_usage.usage.get(name, 0) - pod_request_quantity(pod, name)
                )
            logger.debug(f"Updated usage of node {node_usage.node.name}: {node_usage.usage}")

            if not self.continue_eviction(node_usage, self.ledger):
                break
        return evicted
