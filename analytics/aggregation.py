"""Aggregation of raw energy readings into efficiency (COP) values.

Three strategies are offered, chosen by the caller from the granularity of
the source data:

* period sums (:func:`calculate_system_az`) for monthly and yearly totals,
* cumulative differences (:func:`calculate_daily_taz`) for counter streams,
* index-bucketed averages (:func:`process_dataset`) for time-series charts.

A missing reading is never the same as a zero reading. Every function below
branches on ``None`` explicitly instead of relying on truthiness.
"""

import math
from collections import defaultdict
from dataclasses import dataclass, field, replace
from statistics import fmean
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from . import logger
from .records import (
    ChartPoint,
    ComparisonDataGroup,
    ENERGY_FIELDS,
    MeasurementRow,
    SystemEfficiency,
)

IndexFormatter = Callable[[str], str]

THERMOMETER_OFFSET_ATTRIBUTE = "thermometer_offset_k"


def _cop(thermal: float, electrical: float) -> float | None:
    if electrical > 0:
        return thermal / electrical
    return None


def _efficiency(heating_id: str, totals: Sequence[float]) -> SystemEfficiency:
    thermal, electrical, thermal_heating, electrical_heating = totals
    return SystemEfficiency(
        heating_id=heating_id,
        az=_cop(thermal, electrical),
        az_heating=_cop(thermal_heating, electrical_heating),
        thermal_total=thermal,
        electrical_total=electrical,
        thermal_heating_total=thermal_heating,
        electrical_heating_total=electrical_heating,
    )


def _group_by_system(rows: Iterable[MeasurementRow]) -> Dict[str, List[MeasurementRow]]:
    grouped: Dict[str, List[MeasurementRow]] = {}
    for row in rows:
        grouped.setdefault(row.heating_id, []).append(row)
    return grouped


def _time_key(row: MeasurementRow):
    # Rows without a timestamp sort before timed rows.
    return (row.timestamp is not None, row.timestamp)


def calculate_system_az(rows: Iterable[MeasurementRow]) -> List[SystemEfficiency]:
    """Sum period totals per system and derive total and heating COP.

    Systems are returned in the order they first appear in ``rows``.
    """
    totals: Dict[str, List[float]] = {}
    for row in rows:
        bucket = totals.setdefault(row.heating_id, [0.0, 0.0, 0.0, 0.0])
        for position, name in enumerate(ENERGY_FIELDS):
            value = getattr(row, name)
            if value is None:
                continue
            bucket[position] += value

    return [_efficiency(heating_id, bucket) for heating_id, bucket in totals.items()]


def _counter_delta(readings: Sequence[MeasurementRow], name: str) -> float:
    present = [getattr(row, name) for row in readings if getattr(row, name) is not None]
    if not present:
        return 0.0
    return present[-1] - present[0]


def calculate_daily_taz(rows: Iterable[MeasurementRow]) -> List[SystemEfficiency]:
    """Net consumption per system from the first and last counter reading.

    Readings are sorted by timestamp before differencing, so the result does
    not depend on input order. A field's delta uses its earliest and latest
    non-null readings; a system with a single reading has zero deltas and no
    COP.
    """
    results: List[SystemEfficiency] = []
    for heating_id, readings in _group_by_system(rows).items():
        ordered = sorted(readings, key=_time_key)
        deltas = [_counter_delta(ordered, name) for name in ENERGY_FIELDS]
        results.append(_efficiency(heating_id, deltas))
    return results


def apply_thermometer_offset(value: float | None, offset: float | None) -> float | None:
    """Correct an outdoor temperature reading by a per-system sensor offset."""
    if value is None:
        return None
    if offset is None:
        return value
    return value + offset


def _interval_delta(current: float | None, previous: float | None) -> float | None:
    if current is None or previous is None:
        return None
    return current - previous


def _positive(value: float | None) -> float | None:
    if value is not None and value > 0:
        return value
    return None


def derive_interval_efficiency(rows: Iterable[MeasurementRow]) -> List[MeasurementRow]:
    """Turn cumulative counter rows into per-interval rows.

    Each reading is compared with the previous reading of the same system.
    The interval energy replaces the counter value (non-positive intervals
    become ``None``) and ``az``/``az_heating`` are computed from the interval
    energies. The first reading of a system has no predecessor and therefore
    no energy and no COP. The ``hour`` index comes from the timestamp and a
    ``thermometer_offset_k`` attribute corrects the outdoor temperature.

    Returns rows newest first.
    """
    enriched: List[MeasurementRow] = []
    for readings in _group_by_system(rows).values():
        ordered = sorted(readings, key=_time_key)
        previous: Optional[MeasurementRow] = None
        for current in ordered:
            deltas: Dict[str, float | None] = {
                name: (
                    _interval_delta(getattr(current, name), getattr(previous, name))
                    if previous is not None
                    else None
                )
                for name in ENERGY_FIELDS
            }
            thermal, electrical, thermal_heating, electrical_heating = (
                deltas[name] for name in ENERGY_FIELDS
            )
            az = None
            if thermal is not None and electrical is not None:
                az = _cop(thermal, electrical)
            az_heating = None
            if thermal_heating is not None and electrical_heating is not None:
                az_heating = _cop(thermal_heating, electrical_heating)

            enriched.append(
                replace(
                    current,
                    thermal_energy_kwh=_positive(thermal),
                    electrical_energy_kwh=_positive(electrical),
                    thermal_energy_heating_kwh=_positive(thermal_heating),
                    electrical_energy_heating_kwh=_positive(electrical_heating),
                    az=az,
                    az_heating=az_heating,
                    hour=current.timestamp.hour if current.timestamp is not None else current.hour,
                    outdoor_temperature_c=apply_thermometer_offset(
                        current.outdoor_temperature_c,
                        current.attributes.get(THERMOMETER_OFFSET_ATTRIBUTE),
                    ),
                )
            )
            previous = current

    return sorted(enriched, key=_time_key, reverse=True)


@dataclass
class AggregatedGroup:
    """Observations collected for one chart index value."""

    az_values: List[float] = field(default_factory=list)
    az_heating_values: List[float] = field(default_factory=list)
    outdoor_temp_values: List[float] = field(default_factory=list)
    flow_temp_values: List[float] = field(default_factory=list)

    @property
    def has_efficiency(self) -> bool:
        return bool(self.az_values or self.az_heating_values)


def group_data_by_index(
    rows: Iterable[MeasurementRow], index_field: str
) -> Dict[str, AggregatedGroup]:
    """Bucket observations by the string form of ``index_field``.

    Only positive COP values are collected: zero or negative values mark
    periods without heat demand, not efficiency data. Temperatures are
    collected whenever present.
    """
    grouped: Dict[str, AggregatedGroup] = defaultdict(AggregatedGroup)
    for row in rows:
        index_value = row.get(index_field)
        if index_value is None:
            continue
        group = grouped[str(index_value)]
        if row.az is not None and row.az > 0:
            group.az_values.append(row.az)
        if row.az_heating is not None and row.az_heating > 0:
            group.az_heating_values.append(row.az_heating)
        if row.outdoor_temperature_c is not None:
            group.outdoor_temp_values.append(row.outdoor_temperature_c)
        if row.flow_temperature_c is not None:
            group.flow_temp_values.append(row.flow_temperature_c)
    return dict(grouped)


def _mean(values: Sequence[float], digits: int) -> float | None:
    if not values:
        return None
    return round(fmean(values), digits)


def aggregate_group(group: AggregatedGroup) -> Tuple[float, float, float | None, float | None]:
    """Average a bucket: ``(az, az_heating, outdoor_temp, flow_temp)``.

    COP averages of empty buckets are 0 so that the chart keeps a bar slot;
    temperature averages of empty buckets are ``None``.
    """
    az_avg = _mean(group.az_values, 2)
    az_heating_avg = _mean(group.az_heating_values, 2)
    return (
        az_avg if az_avg is not None else 0.0,
        az_heating_avg if az_heating_avg is not None else 0.0,
        _mean(group.outdoor_temp_values, 2),
        _mean(group.flow_temp_values, 2),
    )


def _format_index(value: str, formatter: IndexFormatter | None) -> str:
    return formatter(value) if formatter is not None else value


def _rounded_cop(value: float | None) -> float:
    if value is None or value <= 0:
        return 0.0
    return round(value, 2)


def _format_point(
    row: MeasurementRow,
    index_field: str,
    total_key: str,
    heating_key: str,
    formatter: IndexFormatter | None,
) -> ChartPoint:
    index_value = row.get(index_field)
    index = _format_index(str(index_value), formatter) if index_value is not None else None
    return ChartPoint(
        index=index,
        values={
            total_key: _rounded_cop(row.az),
            heating_key: _rounded_cop(row.az_heating),
        },
        outdoor_temp=(
            round(row.outdoor_temperature_c, 1) if row.outdoor_temperature_c is not None else None
        ),
        flow_temp=round(row.flow_temperature_c, 1) if row.flow_temperature_c is not None else None,
    )


def process_dataset(
    rows: Sequence[MeasurementRow],
    index_field: str,
    az_total_key: str = "az",
    az_heating_key: str = "az_heating",
    index_values: Sequence[str] | None = None,
    index_formatter: IndexFormatter | None = None,
    group_suffix: str = "",
    aggregate: bool = True,
) -> List[ChartPoint]:
    """Build chart rows from measurement rows.

    Args:
        rows: Source rows, typically quality filtered already.
        index_field: Row field that defines the x axis (``month``, ``hour``,
            ``date`` or any attribute).
        az_total_key: Series key for total COP.
        az_heating_key: Series key for heating COP.
        index_values: Canonical x axis (e.g. all twelve months). Buckets
            without data still produce a zero row. Without it, observed
            index values are sorted as text ("1", "10", "2").
        index_formatter: Maps raw index strings to display strings.
        group_suffix: Appended to both series keys.
        aggregate: When False every row is passed through individually.
    """
    if not rows:
        return []

    total_key = f"{az_total_key}{group_suffix}"
    heating_key = f"{az_heating_key}{group_suffix}"

    if not aggregate:
        return [
            _format_point(row, index_field, total_key, heating_key, index_formatter)
            for row in rows
        ]

    grouped = group_data_by_index(rows, index_field)
    indices = list(index_values) if index_values is not None else sorted(grouped)

    points: List[ChartPoint] = []
    for index in indices:
        group = grouped.get(index)
        label = _format_index(index, index_formatter)
        if group is None or not group.has_efficiency:
            points.append(ChartPoint(index=label, values={total_key: 0.0, heating_key: 0.0}))
            continue

        az_avg, az_heating_avg, outdoor_avg, flow_avg = aggregate_group(group)
        points.append(
            ChartPoint(
                index=label,
                values={total_key: az_avg, heating_key: az_heating_avg},
                outdoor_temp=outdoor_avg,
                flow_temp=flow_avg,
            )
        )
    return points


@dataclass
class _MergedPoint:
    values: Dict[str, float] = field(default_factory=dict)
    outdoor_temp: float | None = None
    flow_temp: float | None = None


def merge_comparison_datasets(
    groups: Sequence[ComparisonDataGroup],
    index_field: str,
    az_total_key: str = "az",
    az_heating_key: str = "az_heating",
    index_values: Sequence[str] | None = None,
    index_formatter: IndexFormatter | None = None,
    aggregate: bool = True,
) -> List[ChartPoint]:
    """Aggregate each comparison group separately and join them on the index.

    Series keys are suffixed with ``" (group name)"``. Temperatures come from
    the first group that reports them for an index; later groups never
    overwrite them, so the first filter group is the reference series. Index
    values where no group has a positive COP are dropped. Without
    ``index_values`` rows are ordered by the formatted index as text.
    """
    merged: Dict[str, _MergedPoint] = {}
    for group in groups:
        points = process_dataset(
            group.rows,
            index_field,
            az_total_key=az_total_key,
            az_heating_key=az_heating_key,
            index_values=index_values,
            index_formatter=index_formatter,
            group_suffix=f" ({group.name})",
            aggregate=aggregate,
        )
        for point in points:
            if not point.index:
                continue
            target = merged.setdefault(point.index, _MergedPoint())
            target.values.update(point.values)
            if target.outdoor_temp is None:
                target.outdoor_temp = point.outdoor_temp
            if target.flow_temp is None:
                target.flow_temp = point.flow_temp

    if index_values is not None:
        ordered = [_format_index(value, index_formatter) for value in index_values]
    else:
        ordered = sorted(merged)

    series_keys = [
        key
        for group in groups
        for key in (f"{az_total_key} ({group.name})", f"{az_heating_key} ({group.name})")
    ]

    results: List[ChartPoint] = []
    for index in ordered:
        point = merged.get(index)
        if point is None:
            continue
        if not any(point.values.get(key, 0.0) > 0 for key in series_keys):
            continue
        results.append(
            ChartPoint(
                index=index,
                values=point.values,
                outdoor_temp=point.outdoor_temp,
                flow_temp=point.flow_temp,
            )
        )

    logger.debug(
        "Merged %s comparison groups into %s chart rows", len(groups), len(results)
    )
    return results


def calculate_temperature_scale(points: Iterable[ChartPoint]) -> Tuple[int, int]:
    """Axis range for the temperature overlay of a time-series chart."""
    temperatures = [
        value
        for point in points
        for value in (point.outdoor_temp, point.flow_temp)
        if value is not None
    ]
    if not temperatures:
        return 0, 40

    low = min(temperatures)
    high = max(temperatures)
    padding = (high - low) * 0.1 or 5
    return math.floor(low - padding), math.ceil(high + padding)
