"""
Cloud linter: AWS resource inventory enriched with CloudWatch metrics.
"""
from . import constants
from .channel import ResourceChannel
from .collectors import (
    DynamoDbCollector,
    ElastiCacheCollector,
    ResourceCollector,
    derive_redis_cluster,
    paginate_with_limit,
)
from .config import LinterConfig, generate_sample_config, load_config
from .constants import OUTPUT_FILE_NAME
from .metrics import MetricsEnricher
from .models import (
    DynamoDbMetadata,
    DynamoDbTableResource,
    ElastiCacheMetadata,
    ElastiCacheResource,
    Metric,
    MetricTarget,
    Report,
    Resource,
    aggregate_resources,
    build_metric_target,
)
from .orchestrator import discover_resources, enrich_resources, run_cloud_linter
from .rate_limiter import RateLimiterConfig, TokenBucketRateLimiter
from .report import ReportWriter, check_output_is_writable, read_report
from .utils import LinterError, ProgressTracker, setup_logging

__all__ = [
    # Constants
    'constants',
    'OUTPUT_FILE_NAME',
    # Models
    'Metric',
    'MetricTarget',
    'Resource',
    'DynamoDbMetadata',
    'DynamoDbTableResource',
    'ElastiCacheMetadata',
    'ElastiCacheResource',
    'Report',
    'aggregate_resources',
    'build_metric_target',
    # Pipeline
    'RateLimiterConfig',
    'TokenBucketRateLimiter',
    'ResourceCollector',
    'DynamoDbCollector',
    'ElastiCacheCollector',
    'derive_redis_cluster',
    'paginate_with_limit',
    'MetricsEnricher',
    'ResourceChannel',
    'ReportWriter',
    'check_output_is_writable',
    'read_report',
    'discover_resources',
    'enrich_resources',
    'run_cloud_linter',
    # Config & utils
    'LinterConfig',
    'load_config',
    'generate_sample_config',
    'LinterError',
    'ProgressTracker',
    'setup_logging',
]
