"""Histogram binning of per-system efficiency or energy values."""

import math
from statistics import fmean
from typing import Dict, List, Sequence, Tuple

from . import logger
from .exceptions import UnknownFieldError
from .quality import filter_systems_by_realistic_cop
from .records import (
    HistogramBin,
    HistogramResult,
    HistogramStats,
    SystemEfficiency,
    SystemEnergy,
)

COP_FIELDS = ("az", "az_heating")
ENERGY_FIELDS = ("energy", "energy_heating")
HEATING_COUNTERPART = {"az": "az_heating", "energy": "energy_heating"}

AUTO_BIN_TARGET_COUNT = 15
AUTO_BIN_STEP = 50


def _allowed_fields(systems: Sequence[SystemEfficiency | SystemEnergy]) -> Tuple[str, ...]:
    if systems and isinstance(systems[0], SystemEnergy):
        return ENERGY_FIELDS
    if systems:
        return COP_FIELDS
    return COP_FIELDS + ENERGY_FIELDS


def _values(
    systems: Sequence[SystemEfficiency | SystemEnergy], field: str
) -> List[Tuple[str, float]]:
    values: List[Tuple[str, float]] = []
    for system in systems:
        value = getattr(system, field)
        if value is None:
            continue
        values.append((system.heating_id, value))
    return values


def calculate_stats(values: Sequence[float]) -> HistogramStats:
    """Mean, median, min, max and count of ``values``.

    The median of an even-sized set is the lower of the two middle elements.
    """
    if not values:
        return HistogramStats()
    ordered = sorted(values)
    return HistogramStats(
        mean=fmean(ordered),
        median=ordered[(len(ordered) - 1) // 2],
        min=ordered[0],
        max=ordered[-1],
        count=len(ordered),
    )


def _edge(index: int, bin_size: float) -> float:
    return round(index * bin_size, 10)


def _bin_index(value: float, bin_size: float) -> int:
    # 0.3 / 0.1 == 2.9999..., so check the quotient against the rounded edges.
    index = math.floor(value / bin_size)
    if _edge(index + 1, bin_size) <= value:
        return index + 1
    if _edge(index, bin_size) > value:
        return index - 1
    return index


def create_histogram_bins(
    systems: Sequence[SystemEfficiency | SystemEnergy],
    field: str,
    bin_size: float,
    combined: bool = False,
    label_decimals: int = 1,
) -> HistogramResult:
    """Bucket one field of the given systems into fixed-width bins.

    Each value lands in exactly one bin, ``floor(value / bin_size)``. Bins are
    contiguous multiples of ``bin_size`` covering the observed range; bins
    without members are left out of the result but the statistics are taken
    over every value.

    Args:
        systems: Per-system records, already quality filtered.
        field: ``az``/``az_heating`` for efficiency records,
            ``energy``/``energy_heating`` for energy records.
        bin_size: Width of each bin.
        combined: Build bins over the range of both the total and the heating
            field and fill ``count_heating``/``system_ids_heating`` as well, so
            that both series share the same bin edges.
        label_decimals: Decimals used in bin labels.

    Raises:
        UnknownFieldError: ``field`` does not exist on the record type. Only
            the caller's choice of field triggers it; missing or odd values
            in the data never raise.
    """
    allowed = _allowed_fields(systems)
    if field not in allowed:
        raise UnknownFieldError(field, allowed)

    values = _values(systems, field)
    stats = calculate_stats([value for _, value in values])
    if not values or bin_size <= 0:
        return HistogramResult(bins=(), stats=stats)

    heating_values: List[Tuple[str, float]] = []
    if combined:
        heating_values = _values(systems, HEATING_COUNTERPART.get(field, field))

    members: Dict[int, List[str]] = {}
    for heating_id, value in values:
        members.setdefault(_bin_index(value, bin_size), []).append(heating_id)

    heating_members: Dict[int, List[str]] = {}
    for heating_id, value in heating_values:
        heating_members.setdefault(_bin_index(value, bin_size), []).append(heating_id)

    occupied = set(members) | set(heating_members)
    bins: List[HistogramBin] = []
    for index in range(min(occupied), max(occupied) + 1):
        ids = members.get(index, [])
        ids_heating = heating_members.get(index, [])
        if not ids and not ids_heating:
            continue
        start = _edge(index, bin_size)
        end = _edge(index + 1, bin_size)
        bins.append(
            HistogramBin(
                label=f"{start:.{label_decimals}f}-{end:.{label_decimals}f}",
                start=start,
                end=end,
                count=len(ids),
                system_ids=tuple(ids),
                count_heating=len(ids_heating) if combined else None,
                system_ids_heating=tuple(ids_heating) if combined else None,
            )
        )

    logger.debug(
        "Built %s bins of width %s for %s values of %s", len(bins), bin_size, len(values), field
    )
    return HistogramResult(bins=tuple(bins), stats=stats)


def auto_bin_size(values: Sequence[float]) -> float:
    """Bin width for energy histograms: about 15 bins, multiples of 50 kWh."""
    if not values:
        return float(AUTO_BIN_STEP)
    value_range = max(values) - min(values)
    raw = value_range / AUTO_BIN_TARGET_COUNT
    return float(max(AUTO_BIN_STEP, math.ceil(raw / AUTO_BIN_STEP) * AUTO_BIN_STEP))


def build_energy_histogram(
    systems: Sequence[SystemEfficiency],
    field: str = "energy",
    bin_size: float | None = None,
) -> HistogramResult:
    """Energy-mode histogram of per-system electrical consumption.

    Systems whose COP, recomputed from their totals, is unrealistic are
    excluded first. Zero or negative energies mean "no data" and are dropped.
    Without an explicit ``bin_size`` the width is derived from the data.

    Raises:
        UnknownFieldError: ``field`` is not an energy field. Data problems
            never raise; such systems are dropped instead.
    """
    if field not in ENERGY_FIELDS:
        raise UnknownFieldError(field, ENERGY_FIELDS)

    realistic = filter_systems_by_realistic_cop(systems, check_az_fields=False)
    energies = [
        energy
        for energy in (SystemEnergy.from_efficiency(system) for system in realistic)
        if getattr(energy, field) > 0
    ]
    size = bin_size if bin_size is not None else auto_bin_size([getattr(e, field) for e in energies])
    return create_histogram_bins(energies, field, size, label_decimals=0)
