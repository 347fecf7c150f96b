# strategies.py

"""HighNodeUtilization and LowNodeUtilization strategies."""

import copy
import logging
import threading
from typing import Callable, List, Optional, Sequence

from .classifier import (
    AboveTargetUtilizationFilter, LowUtilizationFilter,
    NotFilter, SchedulableFilter, classify_nodes
)
from .config import (
    HIGH_NODE_UTILIZATION, LOW_NODE_UTILIZATION,
    RESOURCE_CPU, RESOURCE_MEMORY, RESOURCE_PODS,
    SYSTEM_CRITICAL_PRIORITY
)
from .eviction_driver import AvailableUsageLedger, EvictionDriver
from .evictions import PodEvictableFilter
from .exceptions import ConfigurationError
from .models import (
    BalancingResult, NodeInfo, NodeUsage, PodInfo,
    ResourceThresholds, SkipReason, StrategyParams
)
from .thresholds import (
    get_resource_names,
    set_default_for_high_thresholds, set_default_for_low_thresholds,
    validate_high_utilization_strategy_config, validate_low_utilization_strategy_config
)
from .usage import get_node_thresholds, get_node_usage, sort_nodes_by_usage
from .utils import is_basic_resource

logger = logging.getLogger(__name__)

def get_priority_from_strategy_params(client, params: StrategyParams) -> int:
    """
    Resolve the priority floor of evictable pods.

    Args:
        client: Cluster adapter providing get_priority_class_value(name)
        params: Strategy parameters

    Returns:
        Pods with a priority at or above this value are not evicted
    """
    if params.threshold_priority is not None and params.threshold_priority_class_name:
        raise ConfigurationError("only one of priorityThreshold fields can be set")
    if params.threshold_priority is not None:
        return params.threshold_priority
    if params.threshold_priority_class_name:
        return client.get_priority_class_value(params.threshold_priority_class_name)
    return SYSTEM_CRITICAL_PRIORITY

def continue_high_utilization_eviction(node_usage: NodeUsage, ledger: AvailableUsageLedger) -> bool:
    # Stop once any resource is used up on the destinations, no more pods can be scheduled
    return not ledger.exhausted()

def continue_low_utilization_eviction(node_usage: NodeUsage, ledger: AvailableUsageLedger) -> bool:
    if not AboveTargetUtilizationFilter().matches(node_usage):
        return False
    return not ledger.exhausted()

def format_threshold_criteria(thresholds: ResourceThresholds) -> str:
    criteria = [
        f"CPU={thresholds.get(RESOURCE_CPU)}",
        f"Mem={thresholds.get(RESOURCE_MEMORY)}",
        f"Pods={thresholds.get(RESOURCE_PODS)}",
    ]
    for name, percentage in thresholds.items():
        if not is_basic_resource(name):
            criteria.append(f"{name}={int(percentage)}")
    return ", ".join(criteria)

def _check_underutilized_nodes(strategy: str, underutilized: List[NodeUsage],
                               node_count: int, number_of_nodes: int) -> Optional[SkipReason]:
    if not underutilized:
        logger.info(f"{strategy}: No node is underutilized, nothing to do here, you might tune your thresholds further")
        return SkipReason.NO_UNDERUTILIZED_NODES
    if len(underutilized) <= number_of_nodes:
        logger.info(
            f"{strategy}: Number of nodes underutilized ({len(underutilized)}) is less or equal "
            f"than NumberOfNodes ({number_of_nodes}), nothing to do here"
        )
        return SkipReason.BELOW_NUMBER_OF_NODES
    if len(underutilized) == node_count:
        logger.info(f"{strategy}: All nodes are underutilized, nothing to do here")
        return SkipReason.ALL_NODES_UNDERUTILIZED
    return None

def _build_evictable_filter(client, params: StrategyParams,
                            nodes: Sequence[NodeInfo]) -> PodEvictableFilter:
    return PodEvictableFilter(
        priority_threshold=get_priority_from_strategy_params(client, params),
        node_fit=params.node_fit,
        nodes=nodes,
    )

def _run_driver(strategy: str, params: StrategyParams,
                pod_evictor, is_evictable: Callable[[PodInfo], bool],
                resource_names: List[str], source_nodes: List[NodeUsage],
                destination_nodes: List[NodeUsage], continue_eviction,
                stop_event: Optional[threading.Event]) -> BalancingResult:
    driver = EvictionDriver(
        pod_evictor,
        is_evictable,
        resource_names,
        strategy,
        continue_eviction,
        node_fit=params.node_fit,
        stop_event=stop_event,
    )
    evicted = driver.evict_pods_from_source_nodes(source_nodes, destination_nodes)
    return BalancingResult(
        strategy=strategy,
        evicted=evicted,
        skip_reason=SkipReason.RESOURCES_EXHAUSTED if driver.exhausted_at_start else None,
        source_count=len(source_nodes),
        destination_count=len(destination_nodes),
    )

def high_node_utilization(client, params: StrategyParams, nodes: Sequence[NodeInfo], pod_evictor,
                          is_evictable: Optional[Callable[[PodInfo], bool]] = None,
                          stop_event: Optional[threading.Event] = None) -> BalancingResult:
    """
    Evict pods from underutilized nodes so the scheduler can pack them onto fewer nodes.

    Utilization is computed from pod requests, not from actual usage.

    Args:
        client: Cluster adapter providing list_pods_on_node and get_priority_class_value
        params: Strategy parameters; only the low thresholds may be configured
        nodes: Cluster snapshot
        pod_evictor: Eviction action
        is_evictable: Evictability filter, built from params when omitted
        stop_event: Cancels the remaining evictions when set

    Raises:
        ConfigurationError: If the thresholds or priority settings are invalid
    """
    config = copy.deepcopy(params.node_resource_utilization_thresholds)
    validate_high_utilization_strategy_config(config)
    if is_evictable is None:
        is_evictable = _build_evictable_filter(client, params, nodes)

    set_default_for_high_thresholds(config)
    resource_names = get_resource_names(config.target_thresholds)
    node_usages = get_node_usage(nodes, resource_names, client.list_pods_on_node)
    get_node_thresholds(node_usages, config.thresholds, config.target_thresholds, resource_names)

    low_utilization = LowUtilizationFilter()
    source_nodes, destination_nodes = classify_nodes(
        node_usages,
        low_utilization,
        SchedulableFilter(NotFilter(low_utilization)),
    )

    logger.info(f"Criteria for a node below target utilization: {format_threshold_criteria(config.thresholds)}")
    logger.info(f"Number of underutilized nodes: {len(source_nodes)}")

    skip_reason = _check_underutilized_nodes(
        HIGH_NODE_UTILIZATION, source_nodes, len(nodes), config.number_of_nodes
    )
    if skip_reason is None and not destination_nodes:
        logger.info(f"{HIGH_NODE_UTILIZATION}: No node is available to schedule the pods, nothing to do here")
        skip_reason = SkipReason.NO_DESTINATION_NODES
    if skip_reason is not None:
        return BalancingResult(HIGH_NODE_UTILIZATION, 0, skip_reason,
                               len(source_nodes), len(destination_nodes))

    return _run_driver(
        HIGH_NODE_UTILIZATION, params, pod_evictor, is_evictable,
        resource_names, sort_nodes_by_usage(source_nodes, ascending=True),
        destination_nodes, continue_high_utilization_eviction, stop_event,
    )

def low_node_utilization(client, params: StrategyParams, nodes: Sequence[NodeInfo], pod_evictor,
                         is_evictable: Optional[Callable[[PodInfo], bool]] = None,
                         stop_event: Optional[threading.Event] = None) -> BalancingResult:
    """
    Evict pods from overutilized nodes so the scheduler can move them to underutilized ones.

    Nodes above the target thresholds donate pods, schedulable nodes below the
    low thresholds receive them. With deviation thresholds both maps are
    offsets from the cluster average.
    """
    config = copy.deepcopy(params.node_resource_utilization_thresholds)
    validate_low_utilization_strategy_config(config)
    if is_evictable is None:
        is_evictable = _build_evictable_filter(client, params, nodes)

    set_default_for_low_thresholds(config)
    resource_names = get_resource_names(config.thresholds)
    node_usages = get_node_usage(nodes, resource_names, client.list_pods_on_node)
    get_node_thresholds(
        node_usages, config.thresholds, config.target_thresholds,
        resource_names, config.use_deviation_thresholds,
    )

    source_nodes, destination_nodes = classify_nodes(
        node_usages,
        AboveTargetUtilizationFilter(),
        SchedulableFilter(LowUtilizationFilter()),
    )

    logger.info(f"Criteria for a node under utilization: {format_threshold_criteria(config.thresholds)}")
    logger.info(f"Number of underutilized nodes: {len(destination_nodes)}")
    logger.info(f"Criteria for a node above target utilization: {format_threshold_criteria(config.target_thresholds)}")
    logger.info(f"Number of overutilized nodes: {len(source_nodes)}")

    skip_reason = _check_underutilized_nodes(
        LOW_NODE_UTILIZATION, destination_nodes, len(nodes), config.number_of_nodes
    )
    if skip_reason is None and not source_nodes:
        logger.info(f"{LOW_NODE_UTILIZATION}: All nodes are under target utilization, nothing to do here")
        skip_reason = SkipReason.NO_OVERUTILIZED_NODES
    if skip_reason is not None:
        return BalancingResult(LOW_NODE_UTILIZATION, 0, skip_reason,
                               len(source_nodes), len(destination_nodes))

    return _run_driver(
        LOW_NODE_UTILIZATION, params, pod_evictor, is_evictable,
        resource_names, sort_nodes_by_usage(source_nodes, ascending=False),
        destination_nodes, continue_low_utilization_eviction, stop_event,
    )
