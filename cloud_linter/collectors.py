"""
Resource collectors.

One collector per AWS service. Every page fetch and describe call waits on
the shared rate limiter first. Any AWS error or missing mandatory field
raises LinterError, which aborts the whole run; no partial discovery is kept.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .constants import (
    ENGINE_MEMCACHED,
    ENGINE_REDIS,
    RESOURCE_DYNAMODB_TABLE,
    RESOURCE_ELASTICACHE_MEMCACHED_NODE,
    RESOURCE_ELASTICACHE_REDIS_NODE,
)
from .models import (
    DynamoDbMetadata,
    DynamoDbTableResource,
    ElastiCacheMetadata,
    ElastiCacheResource,
    Resource,
)
from .rate_limiter import TokenBucketRateLimiter
from .utils import LinterError, aws_error

logger = logging.getLogger(__name__)

AWS_ERRORS = (ClientError, BotoCoreError)


def paginate_with_limit(
    limiter: TokenBucketRateLimiter,
    page_iterator: Iterable[Dict[str, Any]],
) -> Iterator[Dict[str, Any]]:
    """
    Yield pages from a boto3 page iterator, taking a limiter token before each fetch.

    boto3 fetches a page lazily when the iterator is advanced, so the token is
    taken before ``next()``; iteration stops when the paginator has no more pages.
    """
    pages = iter(page_iterator)
    while True:
        limiter.acquire()
        page = next(pages, None)
        if page is None:
            return
        yield page


def _require(data: Dict[str, Any], key: str, message: str) -> Any:
    """Return data[key], raising LinterError(message) when it is missing."""
    value = data.get(key)
    if value is None:
        raise LinterError(message)
    return value


class ResourceCollector(ABC):
    """Discovers every resource of one AWS service in a region."""

    name = ""

    def __init__(self, session: boto3.Session, region: str, limiter: TokenBucketRateLimiter):
        self.session = session
        self.region = region
        self.limiter = limiter

    @abstractmethod
    def discover(self) -> List[Resource]:
        """Return all resources, in the order the API listed them."""


# =============================================================================
# DynamoDB Collector
# =============================================================================

class DynamoDbCollector(ResourceCollector):
    """Collect DynamoDB tables."""

    name = "DynamoDB tables"

    def __init__(self, session: boto3.Session, region: str, limiter: TokenBucketRateLimiter):
        super().__init__(session, region, limiter)
        self.client = session.client('dynamodb', region_name=region)

    def list_table_names(self) -> List[str]:
        table_names: List[str] = []
        paginator = self.client.get_paginator('list_tables')
        try:
            for page in paginate_with_limit(self.limiter, paginator.paginate()):
                table_names.extend(page.get('TableNames', []))
        except AWS_ERRORS as e:
            raise aws_error("list DynamoDB tables", e) from e
        return table_names

    def describe_table(self, table_name: str) -> Dict[str, Any]:
        self.limiter.acquire()
        try:
            return self.client.describe_table(TableName=table_name)['Table']
        except AWS_ERRORS as e:
            raise aws_error(f"describe DynamoDB table {table_name}", e) from e

    def is_ttl_enabled(self, table_name: str) -> bool:
        self.limiter.acquire()
        try:
            response = self.client.describe_time_to_live(TableName=table_name)
        except AWS_ERRORS as e:
            raise aws_error(f"describe time to live for DynamoDB table {table_name}", e) from e
        status = response.get('TimeToLiveDescription', {}).get('TimeToLiveStatus', '')
        return status in ('ENABLED', 'ENABLING')

    def build_resource(self, table: Dict[str, Any], ttl_enabled: bool) -> DynamoDbTableResource:
        table_name = _require(table, 'TableName', "DynamoDB table has no name")
        table_size_bytes = _require(table, 'TableSizeBytes', f"DynamoDB table {table_name} has no size")
        item_count = _require(table, 'ItemCount', f"DynamoDB table {table_name} has no item count")

        # AWS omits BillingModeSummary/TableClassSummary for tables on the defaults
        billing_mode = table.get('BillingModeSummary', {}).get('BillingMode', 'PROVISIONED')
        table_class = table.get('TableClassSummary', {}).get('TableClass', 'STANDARD')
        throughput = table.get('ProvisionedThroughput', {})

        metadata = DynamoDbMetadata(
            avg_item_size_bytes=table_size_bytes // item_count if item_count else 0,
            billing_mode=billing_mode,
            gsi_count=len(table.get('GlobalSecondaryIndexes', [])),
            item_count=item_count,
            ttl_enabled=ttl_enabled,
            is_global_table=bool(table.get('GlobalTableVersion') or table.get('Replicas')),
            lsi_count=len(table.get('LocalSecondaryIndexes', [])),
            table_class=table_class,
            table_size_bytes=table_size_bytes,
            p_throughput_decreases_day=throughput.get('NumberOfDecreasesToday', 0),
            p_throughput_read_units=throughput.get('ReadCapacityUnits', 0),
            p_throughput_write_units=throughput.get('WriteCapacityUnits', 0),
        )
        return DynamoDbTableResource(
            resource_type=RESOURCE_DYNAMODB_TABLE,
            region=self.region,
            id=table_name,
            metadata=metadata,
        )

    def discover(self) -> List[Resource]:
        resources: List[Resource] = []
        for table_name in self.list_table_names():
            table = self.describe_table(table_name)
            ttl_enabled = self.is_ttl_enabled(table_name)
            resources.append(self.build_resource(table, ttl_enabled))

        logger.info(f"[{self.region}] Found {len(resources)} DynamoDB tables")
        return resources


# =============================================================================
# ElastiCache Collector
# =============================================================================

def derive_redis_cluster(cache_cluster_id: str, replication_group_id: Optional[str]) -> Tuple[str, bool]:
    """
    Work out the cluster id and cluster mode of a Redis cache cluster.

    Cache clusters in a replication group are named
    ``<group>-<shard>-<node>`` with cluster mode enabled and
    ``<group>-<node>`` without it.

    Returns:
        (cluster_id, cluster_mode_enabled)
    """
    if not replication_group_id:
        return cache_cluster_id, False

    prefix = f"{replication_group_id}-"
    remainder = cache_cluster_id[len(prefix):] if cache_cluster_id.startswith(prefix) else cache_cluster_id
    return replication_group_id, len(remainder.split('-')) == 2


class ElastiCacheCollector(ResourceCollector):
    """Collect ElastiCache Redis clusters and Memcached nodes."""

    name = "ElastiCache clusters"

    def __init__(
        self,
        session: boto3.Session,
        region: str,
        limiter: TokenBucketRateLimiter,
        skip_unsupported_engines: bool = False,
    ):
        super().__init__(session, region, limiter)
        self.client = session.client('elasticache', region_name=region)
        self.skip_unsupported_engines = skip_unsupported_engines

    def describe_clusters(self) -> List[Dict[str, Any]]:
        clusters: List[Dict[str, Any]] = []
        paginator = self.client.get_paginator('describe_cache_clusters')
        try:
            for page in paginate_with_limit(self.limiter, paginator.paginate(ShowCacheNodeInfo=True)):
                clusters.extend(page.get('CacheClusters', []))
        except AWS_ERRORS as e:
            raise aws_error("describe cache clusters", e) from e
        return clusters

    def build_resources(self, cluster: Dict[str, Any]) -> List[Resource]:
        """Turn one cache cluster description into linter resources."""
        cache_cluster_id = _require(cluster, 'CacheClusterId', "ElastiCache cluster has no ID")
        cache_node_type = _require(
            cluster, 'CacheNodeType', f"ElastiCache cluster {cache_cluster_id} has no node type")
        preferred_az = _require(
            cluster, 'PreferredAvailabilityZone',
            f"ElastiCache cluster {cache_cluster_id} has no preferred availability zone")
        engine = _require(cluster, 'Engine', f"ElastiCache cluster {cache_cluster_id} has no engine type")

        if engine == ENGINE_REDIS:
            cluster_id, cluster_mode_enabled = derive_redis_cluster(
                cache_cluster_id, cluster.get('ReplicationGroupId'))
            metadata = ElastiCacheMetadata(
                cluster_id=cluster_id,
                engine=engine,
                cache_node_type=cache_node_type,
                preferred_az=preferred_az,
                cluster_mode_enabled=cluster_mode_enabled,
            )
            return [ElastiCacheResource(
                resource_type=RESOURCE_ELASTICACHE_REDIS_NODE,
                region=self.region,
                id=cache_cluster_id,
                metadata=metadata,
            )]

        if engine == ENGINE_MEMCACHED:
            metadata = ElastiCacheMetadata(
                cluster_id=cache_cluster_id,
                engine=engine,
                cache_node_type=cache_node_type,
                preferred_az=preferred_az,
                cluster_mode_enabled=False,
            )
            resources: List[Resource] = []
            for node in cluster.get('CacheNodes', []):
                node_id = _require(node, 'CacheNodeId', f"Cache node in {cache_cluster_id} has no ID")
                resources.append(ElastiCacheResource(
                    resource_type=RESOURCE_ELASTICACHE_MEMCACHED_NODE,
                    region=self.region,
                    id=node_id,
                    metadata=replace(metadata),
                ))
            return resources

        if self.skip_unsupported_engines:
            logger.warning(
                f"[{self.region}] Skipping ElastiCache cluster {cache_cluster_id} "
                f"with unsupported engine {engine}"
            )
            return []
        raise LinterError(f"Unsupported engine: {engine}")

    def discover(self) -> List[Resource]:
        resources: List[Resource] = []
        for cluster in self.describe_clusters():
            resources.extend(self.build_resources(cluster))

        logger.info(f"[{self.region}] Found {len(resources)} ElastiCache resources")
        return resources
