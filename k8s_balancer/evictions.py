# evictions.py

"""Pod evictability rules and the eviction action."""

import logging
from collections import defaultdict
from typing import Dict, Iterable, Optional, Sequence

from .config import (
    ACTIVE_POD_PHASES, DAEMONSET_OWNER_KIND, EVICT_ANNOTATION,
    MIRROR_POD_ANNOTATION, SAFE_TO_EVICT_ANNOTATION,
    SCHEDULING_TAINT_EFFECTS, SYSTEM_CRITICAL_PRIORITY
)
from .exceptions import EvictionError
from .models import NodeInfo, PodInfo, Taint

logger = logging.getLogger(__name__)

def pod_tolerates_taints(pod: PodInfo, taints: Iterable[Taint]) -> bool:
    """Check that every scheduling taint is tolerated by the pod."""
    for taint in taints:
        if taint.effect not in SCHEDULING_TAINT_EFFECTS:
            continue
        if not any(toleration.tolerates(taint) for toleration in pod.tolerations):
            return False
    return True

def pod_matches_node_selector(pod: PodInfo, node: NodeInfo) -> bool:
    return all(node.labels.get(key) == value for key, value in pod.node_selector.items())

def pod_fits_node(pod: PodInfo, node: NodeInfo) -> bool:
    """Check whether a pod could be scheduled on a node, ignoring resources."""
    if node.unschedulable:
        return False
    return pod_matches_node_selector(pod, node) and pod_tolerates_taints(pod, node.taints)

def is_system_critical(pod: PodInfo) -> bool:
    return pod.priority is not None and pod.priority >= SYSTEM_CRITICAL_PRIORITY


class PodEvictableFilter:
    """
    Decides whether a pod may be evicted.

    Args:
        priority_threshold: Pods at or above this priority are kept
        node_fit: Require the pod to fit on another node by selector and taints
        nodes: Cluster nodes used for the node fit check
        evict_local_storage_pods: Allow evicting pods with local storage
        evict_system_critical_pods: Allow evicting system critical pods
    """

    def __init__(self, priority_threshold: int = SYSTEM_CRITICAL_PRIORITY,
                 node_fit: bool = False,
                 nodes: Optional[Sequence[NodeInfo]] = None,
                 evict_local_storage_pods: bool = False,
                 evict_system_critical_pods: bool = False):
        self.priority_threshold = priority_threshold
        self.node_fit = node_fit
        self.nodes = list(nodes or [])
        self.evict_local_storage_pods = evict_local_storage_pods
        self.evict_system_critical_pods = evict_system_critical_pods

    def __call__(self, pod: PodInfo) -> bool:
        return self.is_evictable(pod)

    def is_evictable(self, pod: PodInfo) -> bool:
        reason = self.non_evictable_reason(pod)
        if reason:
            logger.debug(f"Pod {pod.key} is not evictable: {reason}")
            return False
        return True

    def non_evictable_reason(self, pod: PodInfo) -> Optional[str]:
        """Return why a pod must stay, or None when it can be evicted."""
        if pod.annotations.get(EVICT_ANNOTATION) is not None:
            return None
        if pod.annotations.get(MIRROR_POD_ANNOTATION):
            return "mirror pod"
        if pod.annotations.get(SAFE_TO_EVICT_ANNOTATION) == "false":
            return "marked not safe to evict"
        if DAEMONSET_OWNER_KIND in pod.owner_kinds:
            return "owned by a DaemonSet"
        if not pod.owner_kinds:
            return "pod without owner"
        if pod.phase not in ACTIVE_POD_PHASES:
            return f"pod in phase {pod.phase}"
        if not self.evict_system_critical_pods:
            if is_system_critical(pod):
                return "system critical pod"
            if pod.priority is not None and pod.priority >= self.priority_threshold:
                return f"priority {pod.priority} at or above threshold {self.priority_threshold}"
        if pod.has_local_storage and not self.evict_local_storage_pods:
            return "pod with local storage"
        if self.node_fit and not self._fits_elsewhere(pod):
            return "pod does not fit on any other node"
        return None

    def _fits_elsewhere(self, pod: PodInfo) -> bool:
        return any(
            pod_fits_node(pod, node) for node in self.nodes
            if node.name != pod.node_name
        )


class PodEvictor:
    """
    Issues evictions against the cluster and keeps per-run counters.

    In dry-run mode evictions are only logged and counted.
    """

    def __init__(self, cluster, dry_run: bool = False,
                 max_pods_to_evict_per_node: Optional[int] = None,
                 max_pods_to_evict_per_namespace: Optional[int] = None,
                 grace_period: Optional[int] = None):
        self.cluster = cluster
        self.dry_run = dry_run
        self.max_pods_to_evict_per_node = max_pods_to_evict_per_node
        self.max_pods_to_evict_per_namespace = max_pods_to_evict_per_namespace
        self.grace_period = grace_period
        self.node_pod_count: Dict[str, int] = defaultdict(int)
        self.namespace_pod_count: Dict[str, int] = defaultdict(int)

    def total_evicted(self) -> int:
        return sum(self.node_pod_count.values())

    def node_evicted(self, node_name: str) -> int:
        return self.node_pod_count.get(node_name, 0)

    def evict_pod(self, pod: PodInfo, node: NodeInfo, strategy: str = "") -> bool:
        """
        Evict a pod from a node.

        Returns:
            True if the pod was evicted (or would be, in dry-run mode),
            False if a limit was reached or the eviction request failed
        """
        if (self.max_pods_to_evict_per_node is not None
                and self.node_pod_count[node.name] >= self.max_pods_to_evict_per_node):
            logger.warning(
                f"Maximum number of evicted pods per node reached ({self.max_pods_to_evict_per_node}), "
                f"not evicting {pod.key} from {node.name}"
            )
            return False
        if (self.max_pods_to_evict_per_namespace is not None
                and self.namespace_pod_count[pod.namespace] >= self.max_pods_to_evict_per_namespace):
            logger.warning(
                f"Maximum number of evicted pods per namespace reached ({self.max_pods_to_evict_per_namespace}), "
                f"not evicting {pod.key}"
            )
            return False

        if self.dry_run:
            logger.info(f"[dry-run] Would evict pod {pod.key} from {node.name} ({strategy})")
        else:
            try:
                self.cluster.evict_pod(pod, grace_period=self.grace_period)
            except EvictionError as e:
                logger.error(f"Error evicting pod {pod.key} from {node.name}: {e}")
                return False
            logger.info(f"Evicted pod {pod.key} from {node.name} ({strategy})")

        self.node_pod_count[node.name] += 1
        self.namespace_pod_count[pod.namespace] += 1
        return True
