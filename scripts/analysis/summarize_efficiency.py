#!/usr/bin/env python3
"""Summarize a measurement CSV into per-system COP and a histogram.

Reads a measurement export (one row per system and month, or hourly counter
readings with ``--mode daily``), computes per-system efficiency, excludes
unrealistic systems, and writes ``systems.csv`` and ``histogram.csv`` to the
output directory. Use it to sanity-check an export before it reaches the
dashboard.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Sequence, Tuple

import pandas as pd

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from analytics.aggregation import calculate_daily_taz, calculate_system_az
from analytics.exceptions import AnalyticsError
from analytics.histogram import ENERGY_FIELDS, build_energy_histogram, create_histogram_bins
from analytics.quality import filter_systems_by_realistic_cop
from analytics.records import MeasurementRow
from ingestion.csv_loader import MeasurementParseError, load_measurement_csv

SYSTEM_COLUMNS = [
    'heating_id', 'az', 'az_heating',
    'thermal_total', 'electrical_total',
    'thermal_heating_total', 'electrical_heating_total',
]
BIN_COLUMNS = ['label', 'start', 'end', 'count', 'system_ids']


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Compute per-system COP and its distribution from a measurement CSV."
    )
    parser.add_argument('--input', required=True, help='Measurement CSV export')
    parser.add_argument(
        '--mode', choices=['period', 'daily'], default='period',
        help='period: sum period totals; daily: difference cumulative counters'
    )
    parser.add_argument(
        '--field', default='az',
        help="Histogram field: az, az_heating, energy or energy_heating (default: az)"
    )
    parser.add_argument(
        '--bin-size', type=float, default=None,
        help='Histogram bin width (default: 0.5 for COP, derived from the data for energy)'
    )
    parser.add_argument(
        '--output-dir', default='efficiency_summary',
        help='Directory for systems.csv and histogram.csv (default: efficiency_summary)'
    )
    args = parser.parse_args(argv)
    if args.bin_size is not None and args.bin_size <= 0:
        parser.error('--bin-size must be positive')
    return args


def summarize(
    rows: Sequence[MeasurementRow],
    mode: str = 'period',
    field: str = 'az',
    bin_size: float | None = None,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Return ``(systems, histogram)`` frames for the given rows."""
    systems = calculate_daily_taz(rows) if mode == 'daily' else calculate_system_az(rows)

    if field in ENERGY_FIELDS:
        result = build_energy_histogram(systems, field, bin_size)
        realistic = filter_systems_by_realistic_cop(systems, check_az_fields=False)
    else:
        realistic = filter_systems_by_realistic_cop(systems)
        result = create_histogram_bins(realistic, field, bin_size or 0.5)

    systems_df = pd.DataFrame([asdict(s) for s in realistic], columns=SYSTEM_COLUMNS)
    bins_df = pd.DataFrame(
        [
            {
                'label': b.label,
                'start': b.start,
                'end': b.end,
                'count': b.count,
                'system_ids': ';'.join(b.system_ids),
            }
            for b in result.bins
        ],
        columns=BIN_COLUMNS,
    )
    return systems_df, bins_df


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    input_path = Path(args.input)
    output_dir = Path(args.output_dir)

    try:
        rows = load_measurement_csv(input_path)
    except MeasurementParseError as exc:
        print(f"Could not parse {input_path}: {exc}", file=sys.stderr)
        return 1

    if not rows:
        print(f"No rows found in {input_path}.")
        return 0

    try:
        systems_df, bins_df = summarize(rows, args.mode, args.field, args.bin_size)
    except AnalyticsError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    output_dir.mkdir(parents=True, exist_ok=True)
    systems_df.to_csv(output_dir / 'systems.csv', index=False)
    bins_df.to_csv(output_dir / 'histogram.csv', index=False)

    print(f"Loaded {len(rows)} rows, {len(systems_df)} realistic systems.")
    if not systems_df.empty and args.field not in ENERGY_FIELDS:
        cop = systems_df[args.field].dropna()
        if not cop.empty:
            print(f"  {args.field}: mean={cop.mean():.2f} median={cop.median():.2f} "
                  f"min={cop.min():.2f} max={cop.max():.2f}")
    for _, row in bins_df.iterrows():
        print(f"  {row['label']:>12}  {'#' * int(row['count'])} ({row['count']})")
    print(f"Results saved to {output_dir}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
