#!/usr/bin/env python3
"""
Cloud Linter - AWS Resource and Metrics Collector

Inventories DynamoDB tables and ElastiCache clusters in one region,
enriches each with CloudWatch usage metrics and writes
linter_results.json.gz to the current directory.

Usage:
    python3 linter_collect.py cloud-linter --region us-east-1
    python3 linter_collect.py cloud-linter --region us-east-1 --profile prod
    python3 linter_collect.py cloud-linter --region eu-west-1 --rate-limit 5 --enrichment-workers 4

    # Print a sample config file
    python3 linter_collect.py --generate-config > linter-config.yaml
"""
import argparse
import logging
import sys
from typing import List, Optional

import boto3

from cloud_linter.config import generate_sample_config, load_config
from cloud_linter.constants import OUTPUT_FILE_NAME
from cloud_linter.models import aggregate_resources
from cloud_linter.orchestrator import run_cloud_linter
from cloud_linter.utils import LinterError, print_summary_table, setup_logging

logger = logging.getLogger(__name__)


def get_session(profile: Optional[str] = None, region: Optional[str] = None) -> boto3.Session:
    """Create boto3 session. Credentials are resolved by boto3."""
    return boto3.Session(profile_name=profile, region_name=region)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Cloud Linter - AWS Resource and Metrics Collector',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  # Lint one region with default credentials
  python3 linter_collect.py cloud-linter --region us-east-1

  # Faster pacing and concurrent metric collection
  python3 linter_collect.py cloud-linter --region us-east-1 --rate-limit 5 --enrichment-workers 4

Output is always written to ./{OUTPUT_FILE_NAME}
"""
    )
    parser.add_argument('--generate-config', action='store_true',
                        help='Generate a sample config file and exit')

    subparsers = parser.add_subparsers(dest='command')
    linter = subparsers.add_parser(
        'cloud-linter',
        help='Inventory AWS resources and their CloudWatch metrics',
    )
    linter.add_argument('--region', required=True, help='AWS region to lint (e.g., us-east-1)')
    linter.add_argument('--profile', help='AWS profile name')
    linter.add_argument('--config', '-c', help='Path to YAML config file')
    linter.add_argument('--log-level', help='Logging level (default: INFO)')
    linter.add_argument('--log-dir', help='Also write logs to a file in this directory')
    linter.add_argument(
        '--rate-limit',
        type=float,
        metavar='N',
        help='AWS API calls per second across discovery and metrics (default: 1)'
    )
    linter.add_argument(
        '--enrichment-workers',
        type=int,
        metavar='N',
        help='Resources to enrich with metrics concurrently (default: 1)'
    )
    linter.add_argument(
        '--skip-unsupported-engines',
        action='store_true',
        help='Skip ElastiCache clusters with engines other than redis/memcached instead of failing'
    )
    linter.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable the progress display'
    )
    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.generate_config:
        print(generate_sample_config())
        sys.exit(0)

    if args.command != 'cloud-linter':
        parser.print_help()
        sys.exit(2)

    setup_logging(args.log_level or 'INFO')

    try:
        config = load_config(args)
        # Config file or environment may set a different level
        setup_logging(config.log_level, args.log_dir)

        session = get_session(config.profile, args.region)
        report = run_cloud_linter(
            session,
            args.region,
            output_path=OUTPUT_FILE_NAME,
            config=config,
            show_progress=not args.no_progress,
        )
    except FileNotFoundError as e:
        logger.error(str(e))
        sys.exit(1)
    except LinterError as e:
        logger.error(f"Cloud linter failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Cloud linter failed unexpectedly: {e}")
        sys.exit(1)

    print_summary_table(aggregate_resources(report.resources))
    print(f"Wrote {OUTPUT_FILE_NAME}")
    sys.exit(0)


if __name__ == '__main__':
    main()
