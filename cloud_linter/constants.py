"""
Constants for the cloud linter.

This module defines all magic strings and numbers used across the codebase
to prevent typos, ensure consistency, and make maintenance easier.
"""
from types import MappingProxyType

# =============================================================================
# Output
# =============================================================================

OUTPUT_FILE_NAME = "linter_results.json.gz"

# =============================================================================
# Time Constants
# =============================================================================

SECONDS_PER_DAY = 86400

# =============================================================================
# Default Configuration Values
# =============================================================================

DEFAULT_RATE_LIMIT_PER_SECOND = 1.0
DEFAULT_RATE_LIMIT_BURST = 1
DEFAULT_CHANNEL_CAPACITY = 100
DEFAULT_ENRICHMENT_WORKERS = 1
DEFAULT_METRIC_PERIOD_SECONDS = SECONDS_PER_DAY
DEFAULT_METRIC_LOOKBACK_DAYS = 30

# =============================================================================
# Resource Types (serialized as-is into the report)
# =============================================================================

RESOURCE_DYNAMODB_TABLE = "AWS::DynamoDB::Table"
RESOURCE_ELASTICACHE_REDIS_NODE = "AWS::Elasticache::RedisNode"
RESOURCE_ELASTICACHE_MEMCACHED_NODE = "AWS::Elasticache::MemcachedNode"

# =============================================================================
# ElastiCache
# =============================================================================

ENGINE_REDIS = "redis"
ENGINE_MEMCACHED = "memcached"

# Redis reports node metrics against a single primary node id
REDIS_REPORTING_NODE_ID = "0001"

# =============================================================================
# CloudWatch
# =============================================================================

NAMESPACE_DYNAMODB = "AWS/DynamoDB"
NAMESPACE_ELASTICACHE = "AWS/ElastiCache"

STAT_SUM = "Sum"
STAT_AVERAGE = "Average"
STAT_MAXIMUM = "Maximum"

# GetMetricData accepts at most 500 queries per request
MAX_METRIC_DATA_QUERIES = 500

# Statistic -> metric names. Read-only; shared by every metric target.
ELASTICACHE_METRICS = MappingProxyType({
    STAT_SUM: (
        "NetworkBytesIn",
        "NetworkBytesOut",
        "GeoSpatialBasedCmds",
        "EvalBasedCmds",
        "GetTypeCmds",
        "HashBasedCmds",
        "JsonBasedCmds",
        "KeyBasedCmds",
        "ListBasedCmds",
        "SetBasedCmds",
        "SetTypeCmds",
        "StringBasedCmds",
        "PubSubBasedCmds",
        "SortedSetBasedCmds",
        "StreamBasedCmds",
    ),
    STAT_AVERAGE: (
        "DB0AverageTTL",
    ),
    STAT_MAXIMUM: (
        "CurrConnections",
        "NewConnections",
        "EngineCPUUtilization",
        "CPUUtilization",
        "FreeableMemory",
        "BytesUsedForCache",
        "DatabaseMemoryUsagePercentage",
        "CurrItems",
        "KeysTracked",
        "Evictions",
        "CacheHitRate",
    ),
})

DYNAMODB_METRICS = MappingProxyType({
    STAT_SUM: (
        "ConsumedReadCapacityUnits",
        "ConsumedWriteCapacityUnits",
        "ReadThrottleEvents",
        "WriteThrottleEvents",
        "TimeToLiveDeletedItemCount",
        "TransactionConflict",
    ),
    STAT_AVERAGE: (
        "ProvisionedReadCapacityUnits",
        "ProvisionedWriteCapacityUnits",
    ),
    STAT_MAXIMUM: (
        "ConsumedReadCapacityUnits",
        "ConsumedWriteCapacityUnits",
        "ProvisionedReadCapacityUnits",
        "ProvisionedWriteCapacityUnits",
    ),
})

# =============================================================================
# Configuration
# =============================================================================

ENV_PREFIX = "LINTER_"
