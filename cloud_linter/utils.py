"""
Utility functions for the cloud linter.

Logging Level Standards:
------------------------
- ERROR: Failures that abort the run
         "Failed to describe cache clusters: {e}"
- WARNING: Resources skipped on purpose
           "Skipping ElastiCache cluster my-cluster with unsupported engine valkey"
- INFO: Progress messages, resource counts
        "[us-east-1] Found 42 DynamoDB tables"
- DEBUG: Per-call detail (rate limiter waits, per-resource enrichment)
"""
import hashlib
import logging
import os
import re
import sys
from datetime import datetime, timezone
from typing import Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

logger = logging.getLogger(__name__)


class LinterError(Exception):
    """The single error raised by the linter.

    Carries a human-readable message. Every LinterError aborts the run;
    nothing is converted into partial output.
    """
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def aws_error(context: str, exc: Exception) -> LinterError:
    """Build a LinterError for a failed AWS call, keeping the AWS error code."""
    code = getattr(exc, 'response', {}).get('Error', {}).get('Code', '')
    if code:
        return LinterError(f"Failed to {context}: {code}: {exc}")
    return LinterError(f"Failed to {context}: {exc}")


# =============================================================================
# Progress Tracking
# =============================================================================

class ProgressTracker:
    """
    Progress display for a linter run with rich.

    Falls back to simple print statements if stdout is not a TTY
    (e.g., when piping output).

    Usage:
        with ProgressTracker("us-east-1") as tracker:
            tracker.start_phase("Describing DynamoDB tables")
            ...
            tracker.start_phase("Collecting metrics", total=len(resources))
            for resource in resources:
                ...
                tracker.advance()
    """

    def __init__(self, region: str, show_progress: bool = True):
        self.region = region
        self.show_progress = show_progress and sys.stdout.isatty()
        self.current_phase = ""
        self.resource_counts: Dict[str, int] = {}

        self._console: Optional[Console] = None
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None
        self._task_total: Optional[int] = None

    def __enter__(self):
        if self.show_progress:
            self._console = Console()
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[bold blue]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=self._console,
                transient=False,
            )
            self._progress.start()
        else:
            print(f"\n{'='*60}")
            print(f"Cloud Linter [{self.region}] Starting")
            print(f"{'='*60}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._progress is not None:
            self._finish_task()
            self._progress.stop()
        if exc_type is None:
            if self._console is not None:
                self._console.print()
                self._print_summary_rich()
            else:
                self._print_summary_plain()
        return False

    def _finish_task(self):
        # Spinner-only phases have no total; close them as 1/1
        if self._progress is not None and self._task is not None and self._task_total is None:
            self._progress.update(self._task, total=1, completed=1)

    def start_phase(self, description: str, total: Optional[int] = None):
        """Mark the start of a phase, e.g. 'Describing DynamoDB tables'."""
        self.current_phase = description
        if self._progress is not None:
            self._finish_task()
            self._task = self._progress.add_task(f"[{self.region}] {description}", total=total)
            self._task_total = total
        else:
            print(f"  [{self.region}] {description}...")

    def advance(self, count: int = 1):
        """Advance the current phase by count steps."""
        if self._progress is not None and self._task is not None:
            self._progress.update(self._task, advance=count)

    def add_resources(self, resource_type: str, count: int):
        """Add discovered resources of one type to the running totals."""
        self.resource_counts[resource_type] = self.resource_counts.get(resource_type, 0) + count

    @property
    def total_resources(self) -> int:
        return sum(self.resource_counts.values())

    def _print_summary_rich(self):
        """Print a formatted summary using rich."""
        table = Table(title=f"Cloud Linter Summary [{self.region}]", show_header=True)
        table.add_column("Resource Type", style="cyan")
        table.add_column("Count", style="green", justify="right")

        for resource_type, count in self.resource_counts.items():
            table.add_row(resource_type, f"{count:,}")
        table.add_row("Total", f"{self.total_resources:,}")

        assert self._console is not None
        self._console.print(Panel(table))

    def _print_summary_plain(self):
        """Print a plain text summary."""
        print(f"\n{'='*60}")
        print(f"Cloud Linter [{self.region}] Complete")
        print(f"{'='*60}")
        for resource_type, count in self.resource_counts.items():
            print(f"  {resource_type}: {count:,}")
        print(f"  Total Resources: {self.total_resources:,}")
        print()


def get_timestamp() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def hash_sensitive_id(value: str, prefix: str = "") -> str:
    """
    Hash a sensitive ID using consistent hashing.

    Example: 123456789012 -> acc-a3f8b2c1
    """
    if not value:
        return value
    hash_val = hashlib.sha256(value.encode()).hexdigest()[:8]
    return f"{prefix}{hash_val}" if prefix else hash_val


# ARNs must be matched before bare account IDs
_LOG_REDACT_PATTERNS = [
    (re.compile(r'(arn:aws[-a-z]*):([a-z0-9-]+):([a-z0-9-]*):(\d{12}):([^\s,\]}"\']+)'),
     lambda m: f"{m.group(1)}:{m.group(2)}:{m.group(3) or '*'}:{hash_sensitive_id(m.group(4))}:{hash_sensitive_id(m.group(5))}"),
    (re.compile(r'\b(\d{12})\b(?!\d)'), lambda m: hash_sensitive_id(m.group(1), 'acc-')),
]


def redact_log_message(message: str) -> str:
    """Redact account IDs and ARNs from a log message using consistent hashing."""
    if not message:
        return message

    for pattern, replacer in _LOG_REDACT_PATTERNS:
        message = pattern.sub(replacer, message)

    return message


class RedactingFilter(logging.Filter):
    """Logging filter that redacts account IDs and ARNs from log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = redact_log_message(str(record.msg))
        if record.args:
            record.args = tuple(
                redact_log_message(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


def setup_logging(level: str = "INFO", output_dir: Optional[str] = None) -> logging.Logger:
    """
    Setup logging configuration with console and optional file output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        output_dir: If provided, also write logs to a file in this directory

    Returns:
        Logger instance
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')
        log_file = os.path.join(output_dir, f"linter_log_{timestamp}.log")

        file_handler = logging.FileHandler(log_file, mode='w')
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        # Persisted logs never carry raw account IDs
        file_handler.addFilter(RedactingFilter())
        root_logger.addHandler(file_handler)

        root_logger.info(f"Logging to: {log_file}")

    return logging.getLogger(__name__)


def print_summary_table(summaries: List[Dict]) -> None:
    """Print a per-type resource summary table to console."""
    if not summaries:
        print("No resources found.")
        return

    headers = ["Resource Type", "Count", "Metrics"]
    rows = []

    for s in summaries:
        rows.append([
            s.get("resource_type", ""),
            str(s.get("resource_count", 0)),
            str(s.get("metric_count", 0)),
        ])

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-+-".join("-" * w for w in widths)

    print("\n" + header_line)
    print(separator)

    for row in rows:
        print(" | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)))

    total_count = sum(s.get("resource_count", 0) for s in summaries)
    total_metrics = sum(s.get("metric_count", 0) for s in summaries)
    print(separator)
    print(f"{'TOTAL'.ljust(widths[0])} | {str(total_count).ljust(widths[1])} | {str(total_metrics).ljust(widths[2])}")
    print()
