"""
privAD Reporting Module
=======================

Components:
- projector.py: Flattens directory entries into uniform rows
- report_builder.py: Writes CSV/JSON reports and the text summary
"""

from .projector import RowProjector, project_row, filetime_to_datetime
from .report_builder import ReportSink, generate_text_report
