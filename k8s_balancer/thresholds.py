# thresholds.py

"""Validation and defaulting of resource utilization thresholds."""

from typing import AbstractSet, List, Optional

from .config import (
    BASIC_RESOURCES, HIGH_NODE_UTILIZATION,
    MIN_RESOURCE_PERCENTAGE, MAX_RESOURCE_PERCENTAGE,
    RESOURCE_CPU, RESOURCE_MEMORY, RESOURCE_PODS
)
from .exceptions import ConfigurationError
from .models import NodeResourceUtilizationThresholds, ResourceThresholds
from .utils import is_basic_resource, is_extended_resource_name

def validate_resource_thresholds(
    thresholds: Optional[ResourceThresholds],
    allowed_resources: AbstractSet[str] = BASIC_RESOURCES,
    min_percentage: float = MIN_RESOURCE_PERCENTAGE,
    max_percentage: Optional[float] = MAX_RESOURCE_PERCENTAGE,
) -> None:
    """
    Validate a single threshold map.

    Args:
        thresholds: Percentages keyed by resource name
        allowed_resources: Standard resource names accepted besides extended resources
        min_percentage: Lowest accepted percentage
        max_percentage: Highest accepted percentage, None for no upper bound

    Raises:
        ConfigurationError: If the map is empty, names an unsupported resource
            or holds a percentage outside the accepted range
    """
    if not thresholds:
        raise ConfigurationError("no resource threshold is configured")

    for name, percentage in thresholds.items():
        if name not in allowed_resources and not is_extended_resource_name(name):
            raise ConfigurationError("only cpu, memory, or pods thresholds can be specified")
        if percentage < min_percentage or (max_percentage is not None and percentage > max_percentage):
            upper = MAX_RESOURCE_PERCENTAGE if max_percentage is None else max_percentage
            raise ConfigurationError(f"{name} threshold not in [{min_percentage}, {upper}] range")

def validate_thresholds(
    config: NodeResourceUtilizationThresholds,
    allowed_resources: AbstractSet[str] = BASIC_RESOURCES,
    min_percentage: float = MIN_RESOURCE_PERCENTAGE,
    max_percentage: float = MAX_RESOURCE_PERCENTAGE,
) -> None:
    """
    Validate the low and target threshold maps of a configuration.

    With deviation thresholds the target map has no upper bound, since its
    values are offsets above the cluster average.
    """
    if not config.thresholds or not config.target_thresholds:
        raise ConfigurationError("no resource threshold is configured")

    validate_resource_thresholds(
        config.thresholds, allowed_resources, min_percentage, max_percentage
    )
    validate_resource_thresholds(
        config.target_thresholds, allowed_resources, min_percentage,
        None if config.use_deviation_thresholds else max_percentage
    )

def validate_high_utilization_strategy_config(config: NodeResourceUtilizationThresholds) -> None:
    if config.target_thresholds:
        raise ConfigurationError(f"targetThresholds is not applicable for {HIGH_NODE_UTILIZATION}")
    try:
        validate_resource_thresholds(config.thresholds)
    except ConfigurationError as e:
        raise ConfigurationError(f"thresholds config is not valid: {e}") from e

def validate_low_utilization_strategy_config(config: NodeResourceUtilizationThresholds) -> None:
    """Validate both maps and the relationship between them."""
    validate_thresholds(config)
    if config.use_deviation_thresholds:
        return

    if set(config.thresholds) != set(config.target_thresholds):
        raise ConfigurationError("thresholds and targetThresholds configured different resources")
    for name, percentage in config.thresholds.items():
        if percentage > config.target_thresholds[name]:
            raise ConfigurationError(
                f"thresholds' {name} percentage is greater than targetThresholds'"
            )

def set_default_for_high_thresholds(config: NodeResourceUtilizationThresholds) -> None:
    """
    Fill in defaults for the high utilization direction.

    Missing basic resources in the low map default to the maximum, and the
    target map is forced wide open for every resource of the low map.
    """
    thresholds = config.thresholds
    for name in (RESOURCE_PODS, RESOURCE_CPU, RESOURCE_MEMORY):
        thresholds.setdefault(name, MAX_RESOURCE_PERCENTAGE)

    target_thresholds = {
        RESOURCE_PODS: MAX_RESOURCE_PERCENTAGE,
        RESOURCE_CPU: MAX_RESOURCE_PERCENTAGE,
        RESOURCE_MEMORY: MAX_RESOURCE_PERCENTAGE,
    }
    for name in thresholds:
        if not is_basic_resource(name):
            target_thresholds[name] = MAX_RESOURCE_PERCENTAGE
    config.target_thresholds = target_thresholds

def set_default_for_low_thresholds(config: NodeResourceUtilizationThresholds) -> None:
    # Deviation thresholds default to no deviation from the average
    default = MIN_RESOURCE_PERCENTAGE if config.use_deviation_thresholds else MAX_RESOURCE_PERCENTAGE
    for name in (RESOURCE_PODS, RESOURCE_CPU, RESOURCE_MEMORY):
        if name not in config.thresholds:
            config.thresholds[name] = default
            config.target_thresholds.setdefault(name, default)

def get_resource_names(thresholds: ResourceThresholds) -> List[str]:
    return list(thresholds)
