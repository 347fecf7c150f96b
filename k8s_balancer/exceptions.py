# exceptions.py

"""Custom exceptions for the Kubernetes node balancer."""

class BalancerError(Exception):
    """Base exception for balancer errors."""
    pass

class ConfigurationError(BalancerError):
    """Exception for invalid strategy or threshold configuration."""
    pass

class UpstreamDataError(BalancerError):
    """Exception for failures reading node, pod or priority state from the cluster."""
    pass

class EvictionError(BalancerError):
    """Exception for a single failed pod eviction."""
    pass
