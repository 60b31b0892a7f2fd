from __future__ import annotations

import argparse
import sys
from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402

DEFAULT_SUMMARY = Path("results/summary.csv")
DEFAULT_OUT = Path("plots/subsector_shares.png")


def load_subsector_shares(path: Path, region: str, sector: str) -> pd.DataFrame | None:
    if not path.exists():
        return None
    df = pd.read_csv(path)
    mask = (df["level"] == "subsector") & (df["region"] == region) & (df["sector"] == sector)
    subset = df.loc[mask, ["year", "subsector", "share"]]
    if subset.empty:
        return None
    return subset.pivot(index="year", columns="subsector", values="share").sort_index()


def main(summary_path: Path, region: str, sector: str, out_path: Path) -> int:
    shares = load_subsector_shares(summary_path, region, sector)
    if shares is None:
        print(f"[WARN] No subsector rows for {region}/{sector} in {summary_path}.", file=sys.stderr)
        return 1

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.stackplot(shares.index.values, shares.T.values, labels=list(shares.columns))
    ax.set_xlabel("Year")
    ax.set_ylabel("Share of sector output")
    ax.set_ylim(0, 1)
    ax.set_title(f"{region}: {sector} subsector shares")
    ax.legend(loc="upper left", frameon=False)
    ax.grid(True, alpha=0.3)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out_path, dpi=200)
    plt.close(fig)
    print(f"[OK] Saved {out_path}")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Plot subsector shares from summary.csv")
    parser.add_argument("--summary", type=Path, default=DEFAULT_SUMMARY)
    parser.add_argument("--region", required=True)
    parser.add_argument("--sector", required=True)
    parser.add_argument("--out", type=Path, default=DEFAULT_OUT)
    args = parser.parse_args()
    raise SystemExit(main(args.summary, args.region, args.sector, args.out))
