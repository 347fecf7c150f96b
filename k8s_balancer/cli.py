# cli.py

"""Command-line interface for the Kubernetes node balancer."""

import argparse
import logging
import sys
from typing import Dict

from .cluster import KubernetesCluster
from .config import RESOURCE_CPU, RESOURCE_MEMORY, RESOURCE_PODS
from .evictions import PodEvictableFilter, PodEvictor
from .exceptions import BalancerError
from .models import NodeResourceUtilizationThresholds, StrategyParams
from .strategies import (
    get_priority_from_strategy_params, high_node_utilization, low_node_utilization
)
from .usage import get_node_usage, resource_usage_percentages
from .utils import setup_logging

logger = logging.getLogger(__name__)

STRATEGIES = {
    "high": high_node_utilization,
    "low": low_node_utilization,
}

def parse_thresholds(value: str) -> Dict[str, float]:
    """Parse thresholds given as name=percent pairs, e.g. cpu=20,memory=20,pods=20."""
    thresholds = {}
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, percentage = item.partition("=")
        if not sep or not name.strip():
            raise argparse.ArgumentTypeError(f"Invalid threshold '{item}', expected name=percent")
        try:
            thresholds[name.strip()] = float(percentage)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid percentage for {name.strip()}: '{percentage}'")
    return thresholds

def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Evict pods so that node utilization evens out across a Kubernetes cluster"
    )
    parser.add_argument(
        "--strategy",
        choices=sorted(STRATEGIES),
        default="high",
        help="high: empty underutilized nodes, low: relieve overutilized nodes (default: high)"
    )
    parser.add_argument(
        "--thresholds",
        type=parse_thresholds,
        default=None,
        help="Low utilization thresholds, e.g. cpu=20,memory=20,pods=20"
    )
    parser.add_argument(
        "--target-thresholds",
        type=parse_thresholds,
        default=None,
        help="Target utilization thresholds (low strategy only), e.g. cpu=50,memory=50,pods=50"
    )
    parser.add_argument(
        "--number-of-nodes",
        type=int,
        default=0,
        help="Only balance when more underutilized nodes than this exist (default: 0)"
    )
    parser.add_argument(
        "--use-deviation-thresholds",
        action="store_true",
        help="Interpret thresholds as deviations from the cluster average"
    )
    parser.add_argument(
        "--node-fit",
        action="store_true",
        help="Only evict pods that fit on another node"
    )
    parser.add_argument(
        "--threshold-priority",
        type=int,
        default=None,
        help="Pods at or above this priority are not evicted"
    )
    parser.add_argument(
        "--threshold-priority-class-name",
        default=None,
        help="Priority class whose value is used as the threshold priority"
    )
    parser.add_argument(
        "--node-selector",
        default=None,
        help="Label selector limiting which nodes take part in balancing"
    )
    parser.add_argument(
        "--kubeconfig",
        default=None,
        help="Path to kubeconfig; falls back to in-cluster configuration"
    )
    parser.add_argument(
        "--context",
        default=None,
        help="Named context inside kubeconfig"
    )
    parser.add_argument(
        "--max-pods-per-node",
        type=int,
        default=None,
        help="Maximum number of pods evicted from a single node"
    )
    parser.add_argument(
        "--max-pods-per-namespace",
        type=int,
        default=None,
        help="Maximum number of pods evicted from a single namespace"
    )
    parser.add_argument(
        "--evict-local-storage-pods",
        action="store_true",
        help="Allow evicting pods that use local storage"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log evictions without performing them"
    )
    parser.add_argument(
        "--show-resources",
        action="store_true",
        help="Show utilization for all nodes and exit"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    return parser.parse_args(argv)

def build_strategy_params(args) -> StrategyParams:
    return StrategyParams(
        node_resource_utilization_thresholds=NodeResourceUtilizationThresholds(
            thresholds=args.thresholds,
            target_thresholds=args.target_thresholds,
            number_of_nodes=args.number_of_nodes,
            use_deviation_thresholds=args.use_deviation_thresholds,
        ),
        node_fit=args.node_fit,
        threshold_priority=args.threshold_priority,
        threshold_priority_class_name=args.threshold_priority_class_name,
    )

def show_resources(cluster, nodes) -> None:
    node_usages = get_node_usage(
        nodes, [RESOURCE_CPU, RESOURCE_MEMORY, RESOURCE_PODS], cluster.list_pods_on_node
    )
    logger.info("Current node utilization:")
    for node_usage in node_usages:
        percentages = resource_usage_percentages(node_usage)
        flags = " (unschedulable)" if node_usage.node.unschedulable else ""
        logger.info(f"Node {node_usage.node.name}{flags}:")
        for name, percentage in percentages.items():
            logger.info(f"  {name}: {node_usage.usage[name]} / {node_usage.node.allocatable.get(name, 0)} ({percentage:.1f}%)")

def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        cluster = KubernetesCluster.connect(args.kubeconfig, args.context)
        nodes = cluster.list_nodes(args.node_selector)

        if args.show_resources:
            show_resources(cluster, nodes)
            return 0

        params = build_strategy_params(args)
        is_evictable = PodEvictableFilter(
            priority_threshold=get_priority_from_strategy_params(cluster, params),
            node_fit=params.node_fit,
            nodes=nodes,
            evict_local_storage_pods=args.evict_local_storage_pods,
        )
        pod_evictor = PodEvictor(
            cluster,
            dry_run=args.dry_run,
            max_pods_to_evict_per_node=args.max_pods_per_node,
            max_pods_to_evict_per_namespace=args.max_pods_per_namespace,
        )
        strategy = STRATEGIES[args.strategy]
        result = strategy(cluster, params, nodes, pod_evictor, is_evictable=is_evictable)

        if result.skipped:
            logger.info(f"{result.strategy} finished without evictions: {result.skip_reason.value}")
        else:
            logger.info(f"{result.strategy} evicted {result.evicted} pod(s)")
        return 0

    except BalancerError as e:
        logger.error(f"Balancer error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1

if __name__ == "__main__":
    sys.exit(main())
