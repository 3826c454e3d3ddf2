"""
Linter run orchestration.

Collectors run one after another on the calling thread. Enrichment runs on
a background thread (optionally fanning out to a worker pool) and feeds the
resource channel, which the calling thread drains into the report.
"""
import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import List, Optional, Sequence

import boto3

from .channel import ResourceChannel
from .collectors import DynamoDbCollector, ElastiCacheCollector, ResourceCollector
from .config import LinterConfig
from .constants import OUTPUT_FILE_NAME
from .metrics import MetricsEnricher, get_aws_cloudwatch_client
from .models import Report, Resource
from .rate_limiter import RateLimiterConfig, TokenBucketRateLimiter
from .report import ReportWriter, check_output_is_writable
from .utils import ProgressTracker, get_timestamp

logger = logging.getLogger(__name__)


def build_collectors(
    session: boto3.Session,
    region: str,
    limiter: TokenBucketRateLimiter,
    config: LinterConfig,
) -> List[ResourceCollector]:
    """Collectors in the order they run."""
    return [
        DynamoDbCollector(session, region, limiter),
        ElastiCacheCollector(
            session, region, limiter,
            skip_unsupported_engines=config.skip_unsupported_engines,
        ),
    ]


def discover_resources(
    collectors: Sequence[ResourceCollector],
    tracker: Optional[ProgressTracker] = None,
) -> List[Resource]:
    """Run each collector to completion, in order, and concatenate the results."""
    resources: List[Resource] = []
    for collector in collectors:
        if tracker:
            tracker.start_phase(f"Describing {collector.name}")
        resources.extend(collector.discover())
    return resources


def _enrich_and_send(enricher: MetricsEnricher, resource: Resource, channel: ResourceChannel) -> None:
    channel.send(enricher.enrich(resource))


def enrich_resources(
    resources: List[Resource],
    enricher: MetricsEnricher,
    channel: ResourceChannel,
    workers: int = 1,
) -> None:
    """
    Enrich every resource and send it into the channel.

    The channel is closed when all producers are finished, whether they
    succeeded or not, so the consumer always terminates.
    """
    try:
        if workers <= 1:
            for resource in resources:
                _enrich_and_send(enricher, resource, channel)
            return

        logger.info(f"Enriching resources with {workers} threads")
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(_enrich_and_send, enricher, resource, channel)
                for resource in resources
            ]
            done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
            for future in not_done:
                future.cancel()
            for future in done:
                # Re-raises the first failure
                future.result()
    finally:
        channel.close()


def run_cloud_linter(
    session: boto3.Session,
    region: str,
    output_path: str = OUTPUT_FILE_NAME,
    config: Optional[LinterConfig] = None,
    show_progress: bool = True,
) -> Report:
    """
    Inventory a region, enrich every resource with CloudWatch metrics and
    write the compressed report.

    Raises:
        LinterError: On any failure; nothing is written in that case
    """
    config = config or LinterConfig()

    check_output_is_writable(output_path)
    logger.info(f"[{region}] Cloud linter run started at {get_timestamp()}")

    limiter = TokenBucketRateLimiter(RateLimiterConfig(
        requests_per_second=config.rate_limit,
        burst_size=config.rate_limit_burst,
    ))

    with ProgressTracker(region, show_progress=show_progress) as tracker:
        collectors = build_collectors(session, region, limiter, config)
        resources = discover_resources(collectors, tracker)
        logger.info(f"[{region}] Discovered {len(resources)} resources")

        enricher = MetricsEnricher(
            get_aws_cloudwatch_client(session, region),
            limiter,
            period_seconds=config.metric_period_seconds,
            lookback_days=config.lookback_days,
        )
        channel = ResourceChannel(config.channel_capacity)
        writer = ReportWriter(output_path, tracker)

        tracker.start_phase("Collecting metrics", total=len(resources))
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="enrich") as executor:
            producer = executor.submit(
                enrich_resources, resources, enricher, channel, config.enrichment_workers,
            )
            received = writer.accumulate(channel)
            # Surface any enrichment failure before anything is written
            producer.result()

        report = Report(resources=received)
        writer.write(report)

    return report
