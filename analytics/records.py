"""Immutable record types shared by the chart pipeline.

Every transformation in :mod:`analytics` returns new records; nothing here is
mutated after construction.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping

ENERGY_FIELDS = (
    "thermal_energy_kwh",
    "electrical_energy_kwh",
    "thermal_energy_heating_kwh",
    "electrical_energy_heating_kwh",
)


def _frozen_mapping(values: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True)
class MeasurementRow:
    """One observation of a heating system.

    Energy fields hold either period totals (monthly/yearly views) or
    cumulative counter readings (hourly measurement streams). ``az`` and
    ``az_heating`` are only set when the source already carries a COP.
    ``attributes`` holds system metadata that is not part of the numeric
    pipeline but can be filtered on.
    """

    heating_id: str
    thermal_energy_kwh: float | None = None
    electrical_energy_kwh: float | None = None
    thermal_energy_heating_kwh: float | None = None
    electrical_energy_heating_kwh: float | None = None
    outdoor_temperature_c: float | None = None
    flow_temperature_c: float | None = None
    timestamp: datetime | None = None
    az: float | None = None
    az_heating: float | None = None
    date: str | None = None
    year: int | None = None
    month: int | None = None
    hour: int | None = None
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", _frozen_mapping(self.attributes))

    def get(self, name: str, default: Any = None) -> Any:
        """Look up a stored field, falling back to ``attributes``."""
        if name in _MEASUREMENT_FIELDS and name != "attributes":
            return getattr(self, name)
        return self.attributes.get(name, default)


_MEASUREMENT_FIELDS = frozenset(f.name for f in fields(MeasurementRow))


@dataclass(frozen=True)
class SystemEfficiency:
    """Per-system efficiency over one period.

    ``az`` is ``thermal_total / electrical_total`` when the divisor is
    positive and ``None`` otherwise; ``az_heating`` follows the same rule on
    the heating-only totals.
    """

    heating_id: str
    az: float | None
    az_heating: float | None
    thermal_total: float
    electrical_total: float
    thermal_heating_total: float
    electrical_heating_total: float


@dataclass(frozen=True)
class SystemEnergy:
    """Per-system electrical energy over one period (energy mode)."""

    heating_id: str
    energy: float
    energy_heating: float
    thermal_total: float
    electrical_total: float
    thermal_heating_total: float
    electrical_heating_total: float

    @classmethod
    def from_efficiency(cls, system: SystemEfficiency) -> "SystemEnergy":
        return cls(
            heating_id=system.heating_id,
            energy=system.electrical_total,
            energy_heating=system.electrical_heating_total,
            thermal_total=system.thermal_total,
            electrical_total=system.electrical_total,
            thermal_heating_total=system.thermal_heating_total,
            electrical_heating_total=system.electrical_heating_total,
        )


@dataclass(frozen=True)
class HistogramBin:
    label: str
    start: float
    end: float
    count: int
    system_ids: tuple[str, ...] = ()
    count_heating: int | None = None
    system_ids_heating: tuple[str, ...] | None = None


@dataclass(frozen=True)
class HistogramStats:
    mean: float = 0.0
    median: float = 0.0
    min: float = 0.0
    max: float = 0.0
    count: int = 0


@dataclass(frozen=True)
class HistogramResult:
    bins: tuple[HistogramBin, ...]
    stats: HistogramStats


@dataclass(frozen=True)
class DataPoint:
    x: float
    y: float


@dataclass(frozen=True)
class RegressionResult:
    slope: float
    intercept: float
    r_squared: float
    sample_size: int
    mean_absolute_error: float

    def predict(self, x: float) -> float:
        return self.slope * x + self.intercept


@dataclass(frozen=True)
class ChartPoint:
    """One row of a time-series chart.

    ``values`` maps series keys (optionally suffixed with ``" (group)"`` in
    comparison mode) to averaged COP values.
    """

    index: str | None
    values: Mapping[str, float]
    outdoor_temp: float | None = None
    flow_temp: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", _frozen_mapping(self.values))

    def to_dict(self, index_field: str = "index") -> dict[str, Any]:
        return {
            index_field: self.index,
            **self.values,
            "outdoor_temp": self.outdoor_temp,
            "flow_temp": self.flow_temp,
        }


@dataclass(frozen=True)
class FilterPredicate:
    field: str | None
    operator: str | None
    value: Any = None


@dataclass(frozen=True)
class FilterGroup:
    id: int
    name: str
    color: str
    predicates: tuple[FilterPredicate, ...] = ()


@dataclass(frozen=True)
class ComparisonDataGroup:
    id: str
    name: str
    color: str
    rows: tuple[Any, ...]


@dataclass(frozen=True)
class DataQualityIssue:
    issue_type: str
    field: str
    value: float
    severity: str
    message: str


@dataclass(frozen=True)
class DataQualityResult:
    is_valid: bool
    issues: tuple[DataQualityIssue, ...] = ()


@dataclass(frozen=True)
class YearlyEnergyPoint:
    """Heating energy intensity against heating COP for one system-year.

    ``x`` is the estimated annual heat demand per square metre, ``coverage``
    the share of a typical heating year that was actually observed.
    """

    x: float
    y: float
    heating_id: str
    year: int
    coverage: float
    extrapolated: bool
    month_count: int
