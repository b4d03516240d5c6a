#!/usr/bin/env python3
"""Sample CSV generation script for import testing.

Generates synthetic project CSVs in the layout the importer accepts:
- Row 1: Header row (mixed aliases, e.g. "Name" / "Manufacturer" / "Length")
- Row 2+: Data rows, with a configurable share of messy values (unknown
  statuses, "WxH" dimensions only, blank titles, thousands separators)

This script produces files suitable for ``python -m glitter_import.cli``.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

COMPANIES = ["Diamond Art Club", "Paint With Diamonds", "Oraloa", "Dreamer Designs"]
ARTISTS = ["Josephine Wall", "Amy Brown", "Thomas Kinkade", "Randal Spangler"]
STATUSES = ["Wishlist", "Purchased", "Stash", "In Progress", "Completed", "Archived", "Destashed"]
MESSY_STATUSES = ["banana", "", "on hold"]
TAGS = ["Cute", "Animals", "Floral", "Fantasy", "Landscape", "Holiday", "Abstract"]
SHAPES = ["Round", "Square", "R", "S"]
KITS = ["Full", "Mini", "full coverage", "small", "partial"]


def generate_projects(rows: int, messy_ratio: float = 0.1, seed: int = 42) -> pd.DataFrame:
    """Generate synthetic project rows.

    Args:
        rows: Number of data rows to generate
        messy_ratio: Share of rows (0-1) given deliberately bad values
        seed: Random seed for reproducible data

    Returns:
        DataFrame whose columns are CSV headers (all values are strings)
    """
    rng = np.random.default_rng(seed)
    messy = rng.random(rows) < messy_ratio

    widths = rng.integers(20, 90, rows)
    heights = rng.integers(20, 120, rows)
    purchased = pd.Timestamp("2021-01-01") + pd.to_timedelta(rng.integers(0, 1200, rows), unit="D")

    data: dict[str, list[Any]] = {
        "Name": [f"Project {i + 1}" for i in range(rows)],
        "Status": rng.choice(STATUSES, rows).tolist(),
        "Manufacturer": rng.choice(COMPANIES, rows).tolist(),
        "Artist": rng.choice(ARTISTS, rows).tolist(),
        "Width": [str(w) for w in widths],
        "Length": [str(h) for h in heights],
        "Dimensions": [""] * rows,
        "Drill Shape": rng.choice(SHAPES, rows).tolist(),
        "Type of Kit": rng.choice(KITS, rows).tolist(),
        "Total Diamonds": [f"{int(w * h * 10):,}" for w, h in zip(widths, heights)],
        "Date Purchased": [d.strftime("%Y-%m-%d") for d in purchased],
        "Notes": ["" for _ in range(rows)],
        "Tags": [
            "; ".join(rng.choice(TAGS, int(rng.integers(0, 4)), replace=False).tolist())
            for _ in range(rows)
        ],
    }
    df = pd.DataFrame(data)

    # 一部の行を意図的に崩す (フォールバック規則の確認用)
    for i in np.flatnonzero(messy):
        kind = int(rng.integers(0, 4))
        if kind == 0:
            df.at[i, "Status"] = str(rng.choice(MESSY_STATUSES))
        elif kind == 1:
            df.at[i, "Dimensions"] = f"{df.at[i, 'Width']}x{df.at[i, 'Length']}"
            df.at[i, "Width"] = ""
            df.at[i, "Length"] = ""
        elif kind == 2:
            df.at[i, "Name"] = ""
        else:
            df.at[i, "Total Diamonds"] = "lots"
            df.at[i, "Notes"] = "Bought at the fair, box slightly damaged, all bags present"
    return df


def main() -> int:
    """Main CLI interface for sample CSV generation."""
    parser = argparse.ArgumentParser(
        description="Generate synthetic project CSVs for import testing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate 200 rows with 10% messy values
  %(prog)s sample.csv

  # Large clean file
  %(prog)s large.csv --rows 20000 --messy 0
        """,
    )
    parser.add_argument("output", type=Path, help="Output CSV file path")
    parser.add_argument("--rows", type=int, default=200, help="Number of data rows (default: 200)")
    parser.add_argument("--messy", type=float, default=0.1, help="Share of messy rows 0-1 (default: 0.1)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    if not 0 <= args.messy <= 1:
        print("Error: --messy must be between 0 and 1", file=sys.stderr)
        return 1

    df = generate_projects(args.rows, args.messy, args.seed)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(args.output, index=False, encoding="utf-8")
    print(f"Created CSV file: {args.output}")
    print(f"  Rows: {len(df)} (+ 1 header row)")
    print(f"  Columns: {', '.join(df.columns)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
