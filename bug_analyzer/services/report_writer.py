"""
Report Writer
=============
Persists rendered reports and fetched bug lists to disk.

    - write_report: render a PatternReport and write it to a path,
      appending the format's extension when the path has none
    - cache_records: dump fetched bugs to the temp directory so a full
      run can be re-analysed without hitting the tracker again
    - load_records: read a bug file written by cache_records (or by the
      fetch endpoint) back into BugRecords
    - confine: map a caller-supplied relative path into output_dir; the API
      runs every request path through it before reading or writing
"""
import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from bug_analyzer.core.config import OUTPUT_DIR
from bug_analyzer.core.report_formatter import FORMAT_EXTENSIONS, format_bug_list_json, format_report
from bug_analyzer.models.bug_record import BugRecord
from bug_analyzer.models.pattern_report import PatternReport

logger = logging.getLogger(__name__)

CACHE_DIR_NAME = "jira-bug-analyzer"


class ReportWriter:
    """
    File output for reports and bug caches.

    Parameters
    ----------
    cache_dir : str, optional
        Where cache_records writes; defaults to <tmp>/jira-bug-analyzer.
    output_dir : str, optional
        Root that confine() keeps request paths under; defaults to OUTPUT_DIR.
    """

    def __init__(self, cache_dir: Optional[str] = None, output_dir: Optional[str] = None) -> None:
        self.cache_dir = cache_dir or os.path.join(tempfile.gettempdir(), CACHE_DIR_NAME)
        self.output_dir = output_dir or OUTPUT_DIR

    def confine(self, path: str) -> str:
        """
        Resolve a relative path under output_dir.

        Returns
        -------
        str
            Absolute path inside output_dir.

        Raises
        ------
        ValueError
            The path is empty, absolute, or resolves outside output_dir.
        """
        if not path or not path.strip():
            raise ValueError("File path must not be empty")
        candidate = Path(path)
        if candidate.is_absolute() or candidate.drive:
            raise ValueError(f"File path must be relative to the output directory: {path}")
        root = Path(self.output_dir).resolve()
        resolved = (root / candidate).resolve()
        if not resolved.is_relative_to(root):
            raise ValueError(f"File path escapes the output directory: {path}")
        return str(resolved)

    @staticmethod
    def resolve_path(output_path: str, fmt: str) -> str:
        """Append the format's extension when the path has none."""
        _, ext = os.path.splitext(output_path)
        if ext:
            return output_path
        return output_path + FORMAT_EXTENSIONS.get(fmt, "")

    @staticmethod
    def _write_text(path: str, text: str) -> str:
        abs_path = os.path.abspath(path)
        parent = os.path.dirname(abs_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(abs_path, "w", encoding="utf-8") as f:
            f.write(text)
        return abs_path

    def write_report(self, report: PatternReport, output_path: str, fmt: str = "markdown") -> str:
        """
        Render and write a report.

        Returns
        -------
        str
            Absolute path of the written file.

        Raises
        ------
        ValueError
            Unknown format.
        OSError
            The file could not be written.
        """
        text = format_report(report, fmt)
        path = self._write_text(self.resolve_path(output_path, fmt), text)
        logger.info("Report written to %s (%s)", path, fmt)
        return path

    def write_records(self, records: Sequence[BugRecord], output_path: str) -> str:
        path = self._write_text(self.resolve_path(output_path, "json"), format_bug_list_json(records))
        logger.info("Saved %d bugs to %s", len(records), path)
        return path

    def cache_records(self, records: Sequence[BugRecord], now: Optional[datetime] = None) -> str:
        """Write bugs to <cache_dir>/bugs-<timestamp>.json and return the path."""
        stamp = int((now or datetime.now()).timestamp() * 1000)
        return self.write_records(records, os.path.join(self.cache_dir, f"bugs-{stamp}.json"))

    @staticmethod
    def load_records(path: str) -> list[BugRecord]:
        """
        Read a bug list file.

        Raises
        ------
        ValueError
            File is not a JSON list of bug objects.
        """
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Bug file {path} is not valid JSON: {e}") from e
        if not isinstance(data, list):
            raise ValueError(f"Bug file {path} must contain a JSON array")
        try:
            return [BugRecord.model_validate(item) for item in data]
        except ValidationError as e:
            raise ValueError(f"Bug file {path} contains invalid bug entries: {e}") from e
