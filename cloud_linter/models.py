"""
Data models for the cloud linter.

Each resource family is a Resource subclass that knows which CloudWatch
metrics describe it (``metric_target``). Metrics and the metric period are
attached exactly once, by the metrics enricher.
"""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

from .constants import (
    DYNAMODB_METRICS,
    ELASTICACHE_METRICS,
    NAMESPACE_DYNAMODB,
    NAMESPACE_ELASTICACHE,
    REDIS_REPORTING_NODE_ID,
    RESOURCE_ELASTICACHE_MEMCACHED_NODE,
    RESOURCE_ELASTICACHE_REDIS_NODE,
)
from .utils import LinterError


@dataclass
class Metric:
    """One CloudWatch metric series for a resource."""
    name: str
    statistic: str  # "Sum", "Average" or "Maximum"
    values: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class MetricTarget:
    """What to query for one resource: namespace, dimensions and metric catalogue."""
    namespace: str
    dimensions: Dict[str, str]
    targets: Mapping[str, Tuple[str, ...]]

    def cloudwatch_dimensions(self) -> List[Dict[str, str]]:
        """Dimensions in the [{'Name': ..., 'Value': ...}] form CloudWatch expects."""
        return [{'Name': name, 'Value': value} for name, value in self.dimensions.items()]


@dataclass
class DynamoDbMetadata:
    """DynamoDB table details captured at discovery time."""
    avg_item_size_bytes: int
    billing_mode: str
    gsi_count: int
    item_count: int
    ttl_enabled: bool
    is_global_table: bool
    lsi_count: int
    table_class: str
    table_size_bytes: int
    p_throughput_decreases_day: int = 0
    p_throughput_read_units: int = 0
    p_throughput_write_units: int = 0

    def to_dict(self) -> Dict:
        return {
            'avgItemSizeBytes': self.avg_item_size_bytes,
            'billingMode': self.billing_mode,
            'gsiCount': self.gsi_count,
            'itemCount': self.item_count,
            'ttlEnabled': self.ttl_enabled,
            'isGlobalTable': self.is_global_table,
            'lsiCount': self.lsi_count,
            'tableClass': self.table_class,
            'tableSizeBytes': self.table_size_bytes,
            'pThroughputDecreasesDay': self.p_throughput_decreases_day,
            'pThroughputReadUnits': self.p_throughput_read_units,
            'pThroughputWriteUnits': self.p_throughput_write_units,
        }


@dataclass
class ElastiCacheMetadata:
    """ElastiCache cluster details shared by the resources of one cluster."""
    cluster_id: str
    engine: str
    cache_node_type: str
    preferred_az: str
    cluster_mode_enabled: bool

    def to_dict(self) -> Dict:
        return {
            'clusterId': self.cluster_id,
            'engine': self.engine,
            'cacheNodeType': self.cache_node_type,
            'preferredAz': self.preferred_az,
            'clusterModeEnabled': self.cluster_mode_enabled,
        }


@dataclass
class Resource:
    """
    A discovered cloud resource eligible for metric enrichment.

    Subclasses provide ``metric_target``.
    """
    resource_type: str
    region: str
    id: str
    metadata: Any
    metrics: List[Metric] = field(default_factory=list)
    metric_period_seconds: int = 0

    # Set once metrics have been attached
    _metrics_set: bool = field(default=False, init=False, repr=False, compare=False)

    def metric_target(self) -> MetricTarget:
        raise LinterError("Invalid resource type")

    def set_metrics(self, metrics: List[Metric]) -> None:
        if self._metrics_set:
            raise LinterError(f"Metrics already set for {self.resource_type} {self.id}")
        self.metrics = list(metrics)
        self._metrics_set = True

    def set_metric_period_seconds(self, period: int) -> None:
        if self.metric_period_seconds:
            raise LinterError(f"Metric period already set for {self.resource_type} {self.id}")
        if period <= 0:
            raise LinterError(f"Invalid metric period: {period}")
        self.metric_period_seconds = period

    def to_dict(self) -> Dict:
        """Convert to the report's JSON shape."""
        return {
            'resourceType': self.resource_type,
            'region': self.region,
            'id': self.id,
            'metrics': [m.to_dict() for m in self.metrics],
            'metricPeriodSeconds': self.metric_period_seconds,
            'metadata': self.metadata.to_dict(),
        }


@dataclass
class DynamoDbTableResource(Resource):
    """A DynamoDB table."""

    def metric_target(self) -> MetricTarget:
        return MetricTarget(
            namespace=NAMESPACE_DYNAMODB,
            dimensions={'TableName': self.id},
            targets=DYNAMODB_METRICS,
        )


@dataclass
class ElastiCacheResource(Resource):
    """
    An ElastiCache resource.

    Redis resources are one per cache cluster and report through node 0001;
    Memcached resources are one per cache node.
    """

    def metric_target(self) -> MetricTarget:
        if self.resource_type == RESOURCE_ELASTICACHE_REDIS_NODE:
            dimensions = {
                'CacheClusterId': self.id,
                'CacheNodeId': REDIS_REPORTING_NODE_ID,
            }
        elif self.resource_type == RESOURCE_ELASTICACHE_MEMCACHED_NODE:
            dimensions = {
                'CacheClusterId': self.metadata.cluster_id,
                'CacheNodeId': self.id,
            }
        else:
            raise LinterError("Invalid resource type")

        return MetricTarget(
            namespace=NAMESPACE_ELASTICACHE,
            dimensions=dimensions,
            targets=ELASTICACHE_METRICS,
        )


def build_metric_target(resource: Any) -> MetricTarget:
    """Map a resource to the CloudWatch metrics that describe it."""
    if not isinstance(resource, Resource):
        raise LinterError("Invalid resource type")
    return resource.metric_target()


@dataclass
class Report:
    """The persisted linter output."""
    resources: List[Resource] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {'resources': [r.to_dict() for r in self.resources]}


def aggregate_resources(resources: List[Resource]) -> List[Dict]:
    """
    Aggregate resources into per-type summaries for display.
    """
    summaries: Dict[str, Dict] = {}

    for resource in resources:
        if resource.resource_type not in summaries:
            summaries[resource.resource_type] = {
                'resource_type': resource.resource_type,
                'resource_count': 0,
                'metric_count': 0,
            }
        summaries[resource.resource_type]['resource_count'] += 1
        summaries[resource.resource_type]['metric_count'] += len(resource.metrics)

    return list(summaries.values())
