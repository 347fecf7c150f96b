"""Kubernetes node balancer: evicts pods so node utilization evens out."""

__version__ = "0.1.0"
