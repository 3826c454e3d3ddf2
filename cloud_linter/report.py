"""
Report assembly and output.

The report is serialized to JSON, gzip-compressed in one pass and written
with a single write call. There is no atomic rename: a crash mid-write can
leave a truncated file.
"""
import gzip
import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from .channel import ResourceChannel
from .models import Report, Resource
from .utils import LinterError, ProgressTracker

logger = logging.getLogger(__name__)


def check_output_is_writable(file_path: str) -> None:
    """
    Check that the output file's directory exists and is writable.

    Raises:
        LinterError: If the file cannot be written
    """
    directory = Path(file_path).parent
    if not directory.is_dir() or not os.access(directory, os.W_OK):
        raise LinterError("Output file cannot be written")


class ReportWriter:
    """Single consumer of the resource channel and single writer of the output file."""

    def __init__(self, output_path: str, tracker: Optional[ProgressTracker] = None):
        self.output_path = output_path
        self.tracker = tracker

    def accumulate(self, channel: ResourceChannel) -> List[Resource]:
        """Receive resources until the channel closes, keeping arrival order."""
        resources: List[Resource] = []
        try:
            for resource in channel:
                resources.append(resource)
                if self.tracker:
                    self.tracker.add_resources(resource.resource_type, 1)
                    self.tracker.advance()
        except BaseException:
            channel.drop_receiver()
            raise
        return resources

    def write(self, report: Report) -> None:
        """Serialize, compress and write the report."""
        if self.tracker:
            self.tracker.start_phase("Writing data to file")

        try:
            payload = json.dumps(report.to_dict()).encode('utf-8')
        except (TypeError, ValueError) as e:
            raise LinterError(f"Failed to serialize report: {e}") from e

        compressed = gzip.compress(payload)

        # Inventory data stays readable by the owner only
        try:
            fd = os.open(self.output_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, 'wb') as f:
                f.write(compressed)
        except OSError as e:
            raise LinterError(f"Failed to write {self.output_path}: {e}") from e

        logger.info(
            f"Wrote {len(report.resources)} resources to {self.output_path} "
            f"({len(compressed):,} bytes)"
        )


def read_report(file_path: str) -> dict:
    """Decompress and decode a report written by ReportWriter."""
    with gzip.open(file_path, 'rt', encoding='utf-8') as f:
        return json.load(f)
