"""
CloudWatch metrics enrichment.

For each resource, one GetMetricData request is issued per statistic group
of its metric target (plus one per NextToken continuation), each after a
rate limiter token. Results are attached to the resource in catalogue order.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from .constants import (
    DEFAULT_METRIC_LOOKBACK_DAYS,
    DEFAULT_METRIC_PERIOD_SECONDS,
    MAX_METRIC_DATA_QUERIES,
)
from .models import Metric, MetricTarget, Resource, build_metric_target
from .rate_limiter import TokenBucketRateLimiter
from .utils import LinterError, aws_error

logger = logging.getLogger(__name__)


def get_aws_cloudwatch_client(session, region: str):
    """Get CloudWatch client for a region."""
    return session.client('cloudwatch', region_name=region)


def build_metric_data_queries(
    target: MetricTarget,
    statistic: str,
    metric_names: Tuple[str, ...],
    period_seconds: int,
) -> List[Dict[str, Any]]:
    """
    Build GetMetricData queries for one statistic group.

    Query ids must start with a lowercase letter, so ids are positional
    (``m0``, ``m1``, ...) and map back to ``metric_names`` by index.
    """
    if len(metric_names) > MAX_METRIC_DATA_QUERIES:
        raise LinterError(
            f"Too many {statistic} metrics for one request: {len(metric_names)}"
        )

    dimensions = target.cloudwatch_dimensions()
    return [
        {
            'Id': f"m{index}",
            'MetricStat': {
                'Metric': {
                    'Namespace': target.namespace,
                    'MetricName': metric_name,
                    'Dimensions': dimensions,
                },
                'Period': period_seconds,
                'Stat': statistic,
            },
            'ReturnData': True,
        }
        for index, metric_name in enumerate(metric_names)
    ]


class MetricsEnricher:
    """Attach CloudWatch metrics to resources."""

    def __init__(
        self,
        cloudwatch_client,
        limiter: TokenBucketRateLimiter,
        period_seconds: int = DEFAULT_METRIC_PERIOD_SECONDS,
        lookback_days: int = DEFAULT_METRIC_LOOKBACK_DAYS,
    ):
        self.cloudwatch = cloudwatch_client
        self.limiter = limiter
        self.period_seconds = period_seconds
        self.lookback_days = lookback_days

    def _time_window(self) -> Tuple[datetime, datetime]:
        end_time = datetime.now(timezone.utc)
        start_time = end_time - timedelta(days=self.lookback_days)
        return start_time, end_time

    def query_statistic(
        self,
        resource: Resource,
        target: MetricTarget,
        statistic: str,
        metric_names: Tuple[str, ...],
    ) -> List[Metric]:
        """Fetch every metric of one statistic group, following NextToken."""
        queries = build_metric_data_queries(target, statistic, metric_names, self.period_seconds)
        start_time, end_time = self._time_window()
        values: Dict[str, List[float]] = {query['Id']: [] for query in queries}

        next_token: Optional[str] = None
        while True:
            request: Dict[str, Any] = {
                'MetricDataQueries': queries,
                'StartTime': start_time,
                'EndTime': end_time,
            }
            if next_token:
                request['NextToken'] = next_token

            self.limiter.acquire()
            try:
                response = self.cloudwatch.get_metric_data(**request)
            except (ClientError, BotoCoreError) as e:
                raise aws_error(
                    f"get {statistic} metrics for {resource.resource_type} {resource.id}", e
                ) from e

            for result in response.get('MetricDataResults', []):
                query_id = result.get('Id')
                if query_id in values:
                    values[query_id].extend(float(v) for v in result.get('Values', []))

            next_token = response.get('NextToken')
            if not next_token:
                break

        return [
            Metric(name=metric_name, statistic=statistic, values=values[f"m{index}"])
            for index, metric_name in enumerate(metric_names)
        ]

    def enrich(self, resource: Resource) -> Resource:
        """
        Query all metrics for a resource and attach them.

        Metrics are only attached once every query has succeeded; on error
        the resource is left untouched and LinterError propagates.
        """
        target = build_metric_target(resource)

        metrics: List[Metric] = []
        for statistic, metric_names in target.targets.items():
            metrics.extend(self.query_statistic(resource, target, statistic, metric_names))

        resource.set_metrics(metrics)
        resource.set_metric_period_seconds(self.period_seconds)
        logger.debug(
            f"[{resource.region}] Collected {len(metrics)} metrics for "
            f"{resource.resource_type} {resource.id}"
        )
        return resource
