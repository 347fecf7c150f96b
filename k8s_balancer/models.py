# models.py

"""Data models for the Kubernetes node balancer."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Tuple

from .config import RESOURCE_CPU, RESOURCE_MEMORY, RESOURCE_PODS

ResourceThresholds = Dict[str, float]
ResourceAmounts = Dict[str, int]


class BasicResource(str, Enum):
    """Resource kinds with first-class threshold support."""
    CPU = RESOURCE_CPU
    MEMORY = RESOURCE_MEMORY
    PODS = RESOURCE_PODS

    def __str__(self) -> str:
        return self.value


class Taint(NamedTuple):
    """Node taint."""
    key: str
    value: Optional[str] = None
    effect: str = "NoSchedule"


class Toleration(NamedTuple):
    """Pod toleration."""
    key: Optional[str] = None
    operator: str = "Equal"
    value: Optional[str] = None
    effect: Optional[str] = None

    def tolerates(self, taint: Taint) -> bool:
        if self.effect and self.effect != taint.effect:
            return False
        if self.operator == "Exists":
            return not self.key or self.key == taint.key
        return self.key == taint.key and (self.value or "") == (taint.value or "")


@dataclass
class NodeInfo:
    """Snapshot of a node as read from the cluster."""
    name: str
    capacity: ResourceAmounts = field(default_factory=dict)
    allocatable: ResourceAmounts = field(default_factory=dict)
    unschedulable: bool = False
    taints: Tuple[Taint, ...] = ()
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class PodInfo:
    """Snapshot of a pod as read from the cluster."""
    name: str
    namespace: str = "default"
    node_name: Optional[str] = None
    priority: Optional[int] = None
    priority_class_name: Optional[str] = None
    phase: str = "Running"
    requests: ResourceAmounts = field(default_factory=dict)
    owner_kinds: Tuple[str, ...] = ()
    annotations: Dict[str, str] = field(default_factory=dict)
    tolerations: Tuple[Toleration, ...] = ()
    node_selector: Dict[str, str] = field(default_factory=dict)
    has_local_storage: bool = False

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class NodeResourceUtilizationThresholds:
    """Threshold configuration shared by both utilization strategies."""
    thresholds: Optional[ResourceThresholds] = None
    target_thresholds: Optional[ResourceThresholds] = None
    number_of_nodes: int = 0
    use_deviation_thresholds: bool = False


@dataclass
class StrategyParams:
    """Parameters of a node utilization strategy."""
    node_resource_utilization_thresholds: NodeResourceUtilizationThresholds = field(
        default_factory=NodeResourceUtilizationThresholds
    )
    node_fit: bool = False
    threshold_priority: Optional[int] = None
    threshold_priority_class_name: Optional[str] = None


@dataclass
class NodeThresholds:
    """Low and high percentage thresholds resolved for one node."""
    low: ResourceThresholds = field(default_factory=dict)
    high: ResourceThresholds = field(default_factory=dict)


@dataclass
class NodeUsage:
    """Requested resources of a node and the pods behind them."""
    node: NodeInfo
    usage: ResourceAmounts
    pods: List[PodInfo] = field(default_factory=list)
    thresholds: NodeThresholds = field(default_factory=NodeThresholds)


class ClassificationResult(NamedTuple):
    """Donor and receiver nodes of one run."""
    source_nodes: List[NodeUsage]
    destination_nodes: List[NodeUsage]


class SkipReason(Enum):
    """Reasons a run finished without evicting anything."""
    NO_UNDERUTILIZED_NODES = "no_underutilized_nodes"
    BELOW_NUMBER_OF_NODES = "below_number_of_nodes"
    ALL_NODES_UNDERUTILIZED = "all_nodes_underutilized"
    NO_DESTINATION_NODES = "no_destination_nodes"
    NO_OVERUTILIZED_NODES = "no_overutilized_nodes"
    RESOURCES_EXHAUSTED = "resources_exhausted"


class BalancingResult(NamedTuple):
    """Outcome of a strategy run."""
    strategy: str
    evicted: int = 0
    skip_reason: Optional[SkipReason] = None
    source_count: int = 0
    destination_count: int = 0

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None
