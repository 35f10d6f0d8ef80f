"""
Report Builder Module
=====================

Writes audit reports and builds the console summary.

Each report is a named, titled sequence of rows written as:
- CSV via pandas (column order preserved, multi-valued cells joined with ';')
- JSON with the title and generation time alongside the rows

Design Decisions:
-----------------
1. The row sequence is consumed exactly once; it is materialised a single
   time and shared by every output format
2. Rows of one report share one column set (the RowProjector guarantees
   it), so the first row's columns define the file layout
3. Dates are written as ISO-8601, missing values as empty cells / null
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional

import pandas as pd

from ..model.schemas import AuditResult


SUPPORTED_FORMATS = ("csv", "json")


def _cell(value):
    """Render one value for CSV output."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ";".join(str(_cell(v)) for v in value)
    return value


def _json_value(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class ReportSink:
    """Writes reports into an output directory.

    Usage:
        sink = ReportSink(output_dir="output", formats=["csv", "json"])
        paths = sink.emit("PrivilegedMembers", "Privileged group members", rows)
        sink.row_counts["PrivilegedMembers"]
    """

    def __init__(
        self,
        output_dir: str = "output",
        formats: Optional[Iterable[str]] = None,
        csv_delimiter: str = ",",
        verbose: bool = True,
        progress_callback: Optional[Callable[[str], None]] = None
    ):
        """Initialize the report sink.

        Args:
            output_dir: Directory for report files
            formats: Subset of SUPPORTED_FORMATS (default: all)
            csv_delimiter: Field delimiter for CSV files
            verbose: Whether to print progress messages
            progress_callback: Optional callback for progress updates
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.formats = [f.lower() for f in (formats or SUPPORTED_FORMATS)]
        unknown = set(self.formats) - set(SUPPORTED_FORMATS)
        if unknown:
            raise ValueError(f"Unsupported report format(s): {', '.join(sorted(unknown))}")
        self.csv_delimiter = csv_delimiter
        self.verbose = verbose
        self.progress_callback = progress_callback

        self.row_counts: dict[str, int] = {}

    def _log(self, message: str) -> None:
        """Log a message to console and/or callback."""
        if self.verbose:
            print(message)
        if self.progress_callback:
            self.progress_callback(message)

    def emit(self, report_name: str, title: str, rows: Iterable, columns: Optional[list] = None) -> list:
        """Write one report.

        Args:
            report_name: File stem (e.g. "PrivilegedMembers")
            title: Human-readable report title
            rows: Mappings with identical column sets; consumed once
            columns: Column order for an empty report (otherwise taken from
                the first row)

        Returns:
            Paths of the written files
        """
        records = [dict(row) for row in rows]
        if records:
            columns = list(records[0].keys())
        columns = list(columns or [])

        written = []
        if "csv" in self.formats:
            written.append(self._write_csv(report_name, records, columns))
        if "json" in self.formats:
            written.append(self._write_json(report_name, title, records, columns))

        self.row_counts[report_name] = len(records)
        self._log(f"[+] {title}: {len(records)} rows -> {', '.join(written)}")
        return written

    def _write_csv(self, report_name: str, records: list, columns: list) -> str:
        csv_path = self.output_dir / f"{report_name}.csv"
        frame = pd.DataFrame(
            [[_cell(record.get(c)) for c in columns] for record in records],
            columns=columns
        )
        frame.to_csv(csv_path, index=False, sep=self.csv_delimiter, encoding='utf-8')
        return str(csv_path)

    def _write_json(self, report_name: str, title: str, records: list, columns: list) -> str:
        json_path = self.output_dir / f"{report_name}.json"
        document = {
            "report": report_name,
            "title": title,
            "generated": datetime.now().isoformat(),
            "columns": columns,
            "rows": [{c: _json_value(record.get(c)) for c in columns} for record in records],
        }
        with open(json_path, 'w', encoding='utf-8') as f:
            json.dump(document, f, indent=2, default=str)
        return str(json_path)

    def write_summary(self, result: AuditResult) -> str:
        """Save the AuditResult as JSON next to the reports."""
        json_path = self.output_dir / "privad_summary.json"
        with open(json_path, 'w', encoding='utf-8') as f:
            json.dump(result.to_dict(), f, indent=2, default=str)
        return str(json_path)


def generate_text_report(result: AuditResult) -> str:
    """Generate a plain text summary of an audit.

    Args:
        result: AuditResult to summarise

    Returns:
        Plain text report string
    """
    lines = []
    lines.append("=" * 60)
    lines.append("privAD Privileged Access Audit")
    lines.append("=" * 60)
    lines.append("")

    metadata = result.metadata or {}
    if metadata.get('domain'):
        lines.append(f"Domain: {metadata['domain']}")
    if metadata.get('source'):
        lines.append(f"Source: {metadata['source']}")
    lines.append(f"Privileged groups audited: {len(result.groups_audited)}")
    lines.append(f"Member rows: {result.total_rows}")
    lines.append(f"Warnings: {len(result.warnings)}")
    lines.append("")

    groups = (result.graph_summary or {}).get('groups', {})
    if groups:
        lines.append("-" * 60)
        lines.append("GROUPS")
        lines.append("-" * 60)
        for name, stats in groups.items():
            lines.append(
                f"  {name}: {stats['effective_members']} effective members, "
                f"{stats['nested_groups']} nested groups, depth {stats['max_depth']}"
            )
        lines.append("")

    if result.warnings:
        lines.append("-" * 60)
        lines.append("WARNINGS")
        lines.append("-" * 60)
        for warning in result.warnings:
            lines.append(f"  [{warning.kind.value}] {warning.message}")
        lines.append("")

    if result.error:
        lines.append(f"[!] Audit stopped early: {result.error}")
        lines.append("")

    for name, paths in (result.report_paths or {}).items():
        for path in paths:
            lines.append(f"  {name}: {path}")

    return "\n".join(lines)
