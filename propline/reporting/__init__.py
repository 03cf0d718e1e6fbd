"""Report writers."""

from propline.reporting.csv_output import write_picks_csv

__all__ = ["write_picks_csv"]
