"""Summary tables and CSV output for model results."""

from .summary import SUMMARY_COLUMNS, SummaryVisitor, emissions_frame, summary_frame
from .writers import write_emissions_csv, write_region_directory, write_summary_csv

__all__ = [
    "SUMMARY_COLUMNS",
    "SummaryVisitor",
    "emissions_frame",
    "summary_frame",
    "write_emissions_csv",
    "write_region_directory",
    "write_summary_csv",
]
