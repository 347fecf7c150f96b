# config.py

"""Configuration settings for the Kubernetes node balancer."""

# Resource names with first-class support
RESOURCE_CPU = "cpu"
RESOURCE_MEMORY = "memory"
RESOURCE_PODS = "pods"
BASIC_RESOURCES = frozenset([RESOURCE_CPU, RESOURCE_MEMORY, RESOURCE_PODS])

# Threshold percentage bounds
MIN_RESOURCE_PERCENTAGE = 0
MAX_RESOURCE_PERCENTAGE = 100

# Priority floor used when no threshold priority is configured
SYSTEM_CRITICAL_PRIORITY = 2000000000

# Annotations and owners consulted by the evictability filter
EVICT_ANNOTATION = "descheduler.alpha.kubernetes.io/evict"
MIRROR_POD_ANNOTATION = "kubernetes.io/config.mirror"
SAFE_TO_EVICT_ANNOTATION = "cluster-autoscaler.kubernetes.io/safe-to-evict"
DAEMONSET_OWNER_KIND = "DaemonSet"

# Pod phases that still occupy node resources
ACTIVE_POD_PHASES = frozenset(["Pending", "Running"])

# Taint effects that keep pods off a node
SCHEDULING_TAINT_EFFECTS = frozenset(["NoSchedule", "NoExecute"])

# Strategy names
HIGH_NODE_UTILIZATION = "HighNodeUtilization"
LOW_NODE_UTILIZATION = "LowNodeUtilization"

# Logging format
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
