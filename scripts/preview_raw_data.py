#!/usr/bin/env python
"""
Preview raw clickstream files before upload.

Prints the shape, columns, missing values and event type mix of the first rows
of each raw CSV file in the data directory.

Usage:
    python scripts/preview_raw_data.py [--data-dir DIR] [--rows N]
"""

import argparse
import sys
from pathlib import Path

import pandas as pd

# Add the project root to the Python path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from config import RAW_DATA_DIR

SAMPLE_DATA_HEADER = "\nSample data:"


def parse_arguments() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Preview raw clickstream CSV files")
    parser.add_argument(
        "--data-dir",
        type=str,
        default=RAW_DATA_DIR,
        help=f"Directory containing the raw CSV files (default: {RAW_DATA_DIR})",
    )
    parser.add_argument(
        "--rows",
        type=int,
        default=100000,
        help="Number of rows to read from each file (default: 100000)",
    )
    return parser.parse_args()


def preview_file(path: Path, rows: int) -> pd.DataFrame:
    """Read the head of one raw file and print its structure."""
    print(f"Reading {path.name}...")
    events_df = pd.read_csv(path, nrows=rows)

    print("\nEvents DataFrame Structure:")
    print(f"Shape: {events_df.shape}")
    print(f"Columns: {events_df.columns.tolist()}")
    print("\nMissing values:")
    print(events_df.isna().sum().to_string())
    if "event_type" in events_df.columns:
        print("\nEvent types:")
        print(events_df["event_type"].value_counts(dropna=False).to_string())
    print(SAMPLE_DATA_HEADER)
    print(events_df.head().to_string())

    return events_df


if __name__ == "__main__":
    args = parse_arguments()
    files = sorted(Path(args.data_dir).glob("*.csv"))
    if not files:
        print(f"No CSV files found in {args.data_dir}")
        sys.exit(1)

    for csv_file in files:
        preview_file(csv_file, args.rows)
        print("\n" + "=" * 80 + "\n")
