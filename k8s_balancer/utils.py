# utils.py

"""Utility functions for the Kubernetes node balancer."""

import logging
import math
import re
from typing import Any, Dict, Optional, Union

from kubernetes import client, config
from kubernetes.utils import parse_quantity

from .config import (
    BASIC_RESOURCES, RESOURCE_CPU,
    LOG_FORMAT, LOG_DATE_FORMAT
)
from .exceptions import ConfigurationError
from .models import BasicResource

REQUESTS_PREFIX = "requests."
NATIVE_RESOURCE_DOMAIN = "kubernetes.io/"

_QUALIFIED_NAME_RE = re.compile(r"^[A-Za-z0-9]([-A-Za-z0-9_.]*[A-Za-z0-9])?$")
_DNS_SUBDOMAIN_RE = re.compile(
    r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$"
)

def setup_logging(verbose: bool = False) -> None:
    """Configure logging with appropriate level and format."""
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT
    )

def load_kube_client(kubeconfig: Optional[str] = None, context: Optional[str] = None):
    """
    Load cluster credentials and return the kubernetes client module.
    Falls back to in-cluster configuration when no kubeconfig is usable.
    Raises ConfigurationError if neither source is available.
    """
    try:
        config.load_kube_config(config_file=kubeconfig, context=context)
    except config.config_exception.ConfigException:
        if kubeconfig or context:
            raise ConfigurationError(
                f"Unable to load kubeconfig {kubeconfig or '(default)'} with context {context or '(current)'}"
            )
        try:
            config.load_incluster_config()
        except config.config_exception.ConfigException as e:
            raise ConfigurationError(f"No usable cluster configuration: {e}")
    return client

def resolve_resource_name(name: str) -> Union[BasicResource, str]:
    """Return the BasicResource member for a basic resource, otherwise the name itself."""
    if name in BASIC_RESOURCES:
        return BasicResource(name)
    return name

def is_basic_resource(name: str) -> bool:
    return isinstance(resolve_resource_name(name), BasicResource)

def _is_qualified_name(name: str) -> bool:
    prefix, sep, short_name = name.rpartition("/")
    if sep:
        if not prefix or len(prefix) > 253 or not _DNS_SUBDOMAIN_RE.match(prefix):
            return False
    return 0 < len(short_name) <= 63 and bool(_QUALIFIED_NAME_RE.match(short_name))

def is_extended_resource_name(name: str) -> bool:
    """
    Check whether a resource name denotes an extended resource.

    Extended resources are domain-prefixed names outside the kubernetes.io
    namespace, e.g. ``example.com/foo``.
    """
    if "/" not in name or NATIVE_RESOURCE_DOMAIN in name:
        return False
    if name.startswith(REQUESTS_PREFIX):
        return False
    return _is_qualified_name(REQUESTS_PREFIX + name)

def parse_resource_amount(name: str, quantity: Any) -> int:
    """
    Convert a Kubernetes quantity to an integer amount.

    CPU is carried in millicores, everything else in its base unit.
    Fractions are rounded up.
    """
    value = parse_quantity(quantity)
    if name == RESOURCE_CPU:
        value = value * 1000
    return int(math.ceil(value))

def parse_resource_list(resources: Optional[Dict[str, Any]]) -> Dict[str, int]:
    """Convert a Kubernetes resource list to integer amounts."""
    if not resources:
        return {}
    return {name: parse_resource_amount(name, quantity) for name, quantity in resources.items()}
