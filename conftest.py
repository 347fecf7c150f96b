"""Test configuration for the Kubernetes node balancer."""
