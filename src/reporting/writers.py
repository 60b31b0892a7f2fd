from __future__ import annotations

from pathlib import Path

import pandas as pd


def write_summary_csv(frame: pd.DataFrame, path: Path | str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False)
    return path


def write_region_directory(frame: pd.DataFrame, destination: Path | str) -> list[Path]:
    """Write one ``<region>/shares.csv`` per region, subsector and technology rows only."""
    dest_dir = Path(destination)
    written: list[Path] = []
    if frame.empty:
        return written
    rows = frame[frame["level"] != "sector"]
    for region, group in rows.groupby("region", sort=True):
        region_dir = dest_dir / str(region)
        region_dir.mkdir(parents=True, exist_ok=True)
        pivot = group.pivot_table(
            index="year",
            columns=["sector", "subsector", "technology"],
            values="share",
            aggfunc="first",
        )
        pivot.columns = [
            "/".join(part for part in key if part) for key in pivot.columns.to_flat_index()
        ]
        out = region_dir / "shares.csv"
        pivot.reset_index().to_csv(out, index=False)
        written.append(out)
    return written


def write_emissions_csv(frame: pd.DataFrame, path: Path | str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.sort_values("year").to_csv(path, index=False)
    return path
