"""Scatter chart inputs: COP against temperature and energy intensity."""

from dataclasses import dataclass, field
from statistics import median
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from . import logger
from .records import DataPoint, MeasurementRow, YearlyEnergyPoint
from .regression import generate_curve_points, loess_smooth_weighted

TEMPERATURE_MODES = ("outdoor", "flow", "delta")

OUTDOOR_RANGE = (-30.0, 40.0)
FLOW_RANGE = (15.0, 80.0)

MONTHS = tuple(range(1, 13))
HEATED_AREA_ATTRIBUTE = "heated_area_m2"

# Complete years needed before the local month profile fully replaces the
# pooled one.
PROFILE_FULL_WEIGHT_YEARS = 8
MIN_CURVE_COVERAGE = 0.4
EXTRAPOLATION_COVERAGE = 0.999


def _temperature(row: MeasurementRow, mode: str) -> float | None:
    outdoor = row.outdoor_temperature_c
    flow = row.flow_temperature_c
    if mode == "outdoor":
        return outdoor
    if mode == "flow":
        return flow
    if outdoor is None or flow is None:
        return None
    return flow - outdoor


def extract_az_temperature_points(
    rows: Iterable[MeasurementRow],
    use_heating: bool = False,
    temperature_mode: str = "outdoor",
) -> List[DataPoint]:
    """COP (y) against outdoor, flow or flow-minus-outdoor temperature (x).

    Rows without a positive COP or without the requested temperature are
    skipped.

    Raises:
        ValueError: ``temperature_mode`` is not one of ``TEMPERATURE_MODES``.
            Row contents never raise.
    """
    if temperature_mode not in TEMPERATURE_MODES:
        raise ValueError(
            f"Unknown temperature mode {temperature_mode!r}; expected one of {TEMPERATURE_MODES}"
        )

    points: List[DataPoint] = []
    for row in rows:
        cop = row.az_heating if use_heating else row.az
        x = _temperature(row, temperature_mode)
        if cop is not None and cop > 0 and x is not None:
            points.append(DataPoint(x=x, y=cop))
    return points


def extract_heating_curve_points(rows: Iterable[MeasurementRow]) -> List[DataPoint]:
    """Flow temperature (y) against outdoor temperature (x) in the heating range."""
    points: List[DataPoint] = []
    for row in rows:
        outdoor = row.outdoor_temperature_c
        flow = row.flow_temperature_c
        if outdoor is None or flow is None:
            continue
        if OUTDOOR_RANGE[0] <= outdoor <= OUTDOOR_RANGE[1] and FLOW_RANGE[0] <= flow <= FLOW_RANGE[1]:
            points.append(DataPoint(x=outdoor, y=flow))
    return points


@dataclass
class _SystemYear:
    heating_id: str
    year: int
    area: float | None = None
    thermal_by_month: Dict[int, float] = field(default_factory=dict)
    electrical_by_month: Dict[int, float] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return len(self.thermal_by_month) == len(MONTHS)


def _normalize_profile(profile: Mapping[int, float]) -> Dict[int, float]:
    total = sum(max(0.0, profile.get(month, 0.0)) for month in MONTHS)
    if total <= 0:
        return {month: 1 / len(MONTHS) for month in MONTHS}
    return {month: max(0.0, profile.get(month, 0.0)) / total for month in MONTHS}


def _month_profile(groups: Sequence[_SystemYear], rows: Sequence[MeasurementRow]) -> Dict[int, float]:
    complete = [group for group in groups if group.is_complete]

    shares: Dict[int, List[float]] = {month: [] for month in MONTHS}
    for group in complete:
        annual = sum(group.thermal_by_month.values())
        if annual <= 0:
            continue
        for month in MONTHS:
            shares[month].append(group.thermal_by_month[month] / annual)
    local = _normalize_profile(
        {month: median(values) if values else 0.0 for month, values in shares.items()}
    )

    pooled_totals = {month: 0.0 for month in MONTHS}
    for row in rows:
        pooled_totals[row.month] += max(0.0, row.thermal_energy_heating_kwh or 0.0)
    pooled = _normalize_profile(pooled_totals)

    local_weight = min(1.0, len(complete) / PROFILE_FULL_WEIGHT_YEARS)
    return _normalize_profile(
        {month: local_weight * local[month] + (1 - local_weight) * pooled[month] for month in MONTHS}
    )


def build_yearly_energy_points(
    rows: Iterable[MeasurementRow],
    area_by_system: Mapping[str, float] | None = None,
    exclude: Tuple[int, int] | None = None,
) -> List[YearlyEnergyPoint]:
    """Aggregate monthly heating energies into one point per system and year.

    Partial years are extrapolated with a seasonal month profile: each month's
    median share of annual heat over complete years, blended with the pooled
    share of all rows while fewer than eight complete years are known.

    Args:
        rows: Monthly rows with ``year``, ``month`` and heating energies.
        area_by_system: Heated area in m² per ``heating_id``. Falls back to a
            ``heated_area_m2`` attribute on the rows.
        exclude: ``(year, month)`` to leave out, usually the running month.

    Returns:
        Points for system-years with a positive area and positive observed
        heating energies.
    """
    areas = dict(area_by_system or {})
    usable: List[MeasurementRow] = []
    for row in rows:
        if exclude is not None and (row.year, row.month) == exclude:
            continue
        if not row.heating_id or row.year is None or row.month not in MONTHS:
            continue
        usable.append(row)

    groups: Dict[Tuple[str, int], _SystemYear] = {}
    for row in usable:
        group = groups.setdefault((row.heating_id, row.year), _SystemYear(row.heating_id, row.year))
        if group.area is None or group.area <= 0:
            group.area = areas.get(row.heating_id, row.attributes.get(HEATED_AREA_ATTRIBUTE))
        group.thermal_by_month[row.month] = (
            group.thermal_by_month.get(row.month, 0.0) + (row.thermal_energy_heating_kwh or 0.0)
        )
        group.electrical_by_month[row.month] = (
            group.electrical_by_month.get(row.month, 0.0) + (row.electrical_energy_heating_kwh or 0.0)
        )

    profile = _month_profile(list(groups.values()), usable)

    points: List[YearlyEnergyPoint] = []
    for group in groups.values():
        if group.area is None or group.area <= 0:
            continue
        thermal = sum(group.thermal_by_month.values())
        electrical = sum(group.electrical_by_month.values())
        if thermal <= 0 or electrical <= 0:
            continue
        coverage = sum(profile[month] for month in group.thermal_by_month)
        if coverage <= 0:
            continue
        points.append(
            YearlyEnergyPoint(
                x=thermal / coverage / group.area,
                y=thermal / electrical,
                heating_id=group.heating_id,
                year=group.year,
                coverage=coverage,
                extrapolated=coverage < EXTRAPOLATION_COVERAGE,
                month_count=len(group.thermal_by_month),
            )
        )

    logger.debug("Built %s yearly energy points from %s system-years", len(points), len(groups))
    return points


def fit_yearly_energy_curve(
    points: Sequence[YearlyEnergyPoint], num_points: int = 120
) -> List[DataPoint]:
    """Coverage-weighted LOESS trend through yearly energy points.

    Well covered years (coverage >= 0.4) drive the fit unless fewer than
    three exist. Returns an empty curve when no smoother can be built.
    """
    well_covered = [p for p in points if p.coverage >= MIN_CURVE_COVERAGE]
    source = well_covered if len(well_covered) >= 3 else list(points)

    bandwidth = 1.0 if len(source) < 20 else 0.8
    smoother = loess_smooth_weighted(
        [DataPoint(x=p.x, y=p.y) for p in source],
        [p.coverage ** 2 for p in source],
        bandwidth,
    )
    if smoother is None:
        return []

    xs = [p.x for p in source]
    return generate_curve_points(smoother, min(xs), max(xs), num_points)
