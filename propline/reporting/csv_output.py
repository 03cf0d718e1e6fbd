"""CSV export of picks."""

from typing import Dict, List, Sequence
from pathlib import Path
import csv

PICK_COLUMNS = [
    "player_name",
    "sport",
    "stat_type",
    "line_score",
    "recommendation",
    "confidence_score",
    "game_time",
    "reasoning",
]


def write_picks_csv(rows: List[Dict], output_path: str, columns: Sequence[str] = PICK_COLUMNS) -> Path:
    """Write picks to CSV; columns missing from `columns` are appended sorted."""
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fieldnames = list(columns)
    extra_keys = set()
    for row in rows:
        extra_keys.update(key for key in row.keys() if key not in fieldnames)
    if extra_keys:
        fieldnames.extend(sorted(extra_keys))
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=fieldnames, restval="")
        writer.writeheader()
        writer.writerows(rows)
    return path
