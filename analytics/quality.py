"""Data quality classification for heat pump measurements.

Values outside the realistic COP range are almost certainly measurement
errors and would skew the charts, so they are excluded rather than clamped.
Missing values are never a quality problem: absence of data is not bad data.
"""

from typing import Iterable, List, Sequence, TypeVar

from . import logger
from .records import (
    DataQualityIssue,
    DataQualityResult,
    ENERGY_FIELDS,
    MeasurementRow,
    SystemEfficiency,
    SystemEnergy,
)

MIN_REALISTIC_COP = 0.0
MAX_REALISTIC_COP = 8.0

RowT = TypeVar("RowT", bound=MeasurementRow)
SystemT = TypeVar("SystemT", SystemEfficiency, SystemEnergy)


def is_realistic_cop(cop: float | None) -> bool:
    """Return True when ``cop`` lies within ``[0, 8]`` or is missing."""
    if cop is None:
        return True
    return MIN_REALISTIC_COP <= cop <= MAX_REALISTIC_COP


def _ratio(numerator: float, denominator: float) -> float | None:
    if denominator > 0:
        return numerator / denominator
    return None


def _cop_issue(field: str, label: str, value: float) -> DataQualityIssue:
    if value > MAX_REALISTIC_COP:
        message = f"{label} {value:.1f} is unrealistically high (>{MAX_REALISTIC_COP})"
    else:
        message = f"{label} {value:.1f} is unrealistically low (<{MIN_REALISTIC_COP})"
    return DataQualityIssue(
        issue_type="unrealistic_cop",
        field=field,
        value=value,
        severity="error",
        message=message,
    )


def validate_measurement(row: MeasurementRow) -> DataQualityResult:
    """Collect every data quality issue of a single measurement row.

    Works the same for hourly, daily and monthly rows.
    """
    issues: List[DataQualityIssue] = []

    if not is_realistic_cop(row.az):
        issues.append(_cop_issue("az", "COP", row.az))
    if not is_realistic_cop(row.az_heating):
        issues.append(_cop_issue("az_heating", "COP Heating", row.az_heating))

    if row.electrical_energy_kwh is not None and row.electrical_energy_kwh < 0:
        issues.append(
            DataQualityIssue(
                issue_type="negative_value",
                field="electrical_energy_kwh",
                value=row.electrical_energy_kwh,
                severity="error",
                message="Electrical energy cannot be negative",
            )
        )
    if row.thermal_energy_kwh is not None and row.thermal_energy_kwh < 0:
        # Defrost cycles legitimately produce negative thermal energy.
        issues.append(
            DataQualityIssue(
                issue_type="negative_value",
                field="thermal_energy_kwh",
                value=row.thermal_energy_kwh,
                severity="warning",
                message=(
                    "Thermal energy can be negative during defrosting "
                    "but it is excluded from the statistics"
                ),
            )
        )

    return DataQualityResult(is_valid=not issues, issues=tuple(issues))


def _has_negative_energy(row: MeasurementRow) -> bool:
    for name in ENERGY_FIELDS:
        value = getattr(row, name)
        if value is not None and value < 0:
            return True
    return False


def filter_realistic_rows(rows: Iterable[RowT]) -> List[RowT]:
    """Drop rows with an unrealistic COP or a negative energy reading."""
    kept: List[RowT] = []
    dropped = 0
    for row in rows:
        if (
            is_realistic_cop(row.az)
            and is_realistic_cop(row.az_heating)
            and not _has_negative_energy(row)
        ):
            kept.append(row)
        else:
            dropped += 1
    if dropped:
        logger.debug("Excluded %s unrealistic rows; kept %s", dropped, len(kept))
    return kept


def _system_is_realistic(system: SystemEfficiency | SystemEnergy, check_az_fields: bool) -> bool:
    recomputed = (
        _ratio(system.thermal_total, system.electrical_total),
        _ratio(system.thermal_heating_total, system.electrical_heating_total),
    )
    if not all(is_realistic_cop(cop) for cop in recomputed):
        return False

    if check_az_fields and isinstance(system, SystemEfficiency):
        return is_realistic_cop(system.az) and is_realistic_cop(system.az_heating)
    return True


def filter_systems_by_realistic_cop(
    systems: Sequence[SystemT], check_az_fields: bool = True
) -> List[SystemT]:
    """Exclude systems whose COP, recomputed from energy totals, is unrealistic.

    Args:
        systems: Aggregated per-system records.
        check_az_fields: Also validate the stored ``az``/``az_heating`` fields.
            Only meaningful for :class:`SystemEfficiency`; energy records carry
            no COP fields and are checked on their totals alone.
    """
    kept = [system for system in systems if _system_is_realistic(system, check_az_fields)]
    if len(kept) != len(systems):
        logger.debug(
            "Excluded %s of %s systems with unrealistic COP",
            len(systems) - len(kept),
            len(systems),
        )
    return kept
