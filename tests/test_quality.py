import pytest

from analytics.quality import (
    filter_realistic_rows,
    filter_systems_by_realistic_cop,
    is_realistic_cop,
    validate_measurement,
)
from analytics.records import MeasurementRow, SystemEnergy


@pytest.mark.parametrize(
    "cop, expected",
    [(3.5, True), (0.0, True), (8.0, True), (None, True), (9.0, False), (-0.1, False)],
)
def test_is_realistic_cop(cop, expected):
    assert is_realistic_cop(cop) is expected


def test_validate_measurement_accepts_missing_values():
    result = validate_measurement(MeasurementRow(heating_id="a"))
    assert result.is_valid
    assert result.issues == ()


def test_validate_measurement_flags_high_cop_as_error():
    result = validate_measurement(MeasurementRow(heating_id="a", az=9.0, az_heating=3.0))
    assert not result.is_valid
    [issue] = result.issues
    assert issue.issue_type == "unrealistic_cop"
    assert issue.field == "az"
    assert issue.severity == "error"
    assert "high" in issue.message


def test_validate_measurement_negative_thermal_is_warning():
    result = validate_measurement(
        MeasurementRow(heating_id="a", thermal_energy_kwh=-1.5, electrical_energy_kwh=-0.2)
    )
    severities = {issue.field: issue.severity for issue in result.issues}
    assert severities == {"electrical_energy_kwh": "error", "thermal_energy_kwh": "warning"}


def test_filter_realistic_rows_drops_outliers_and_negative_energy():
    rows = [
        MeasurementRow(heating_id="ok", az=3.5),
        MeasurementRow(heating_id="high", az=9.0),
        MeasurementRow(heating_id="heating-high", az_heating=12.0),
        MeasurementRow(heating_id="negative", electrical_energy_heating_kwh=-1.0),
        MeasurementRow(heating_id="missing"),
    ]
    kept = filter_realistic_rows(rows)
    assert [row.heating_id for row in kept] == ["ok", "missing"]


def test_filter_systems_recomputes_cop_from_totals(make_system):
    systems = [
        make_system("keep", az=3.5, thermal=350, electrical=100),
        # Stored COP looks fine but the totals say 9.0.
        make_system("totals-high", az=3.0, thermal=900, electrical=100),
        make_system("stored-high", az=9.0, thermal=300, electrical=100),
        make_system("no-data", az=None),
    ]
    kept = filter_systems_by_realistic_cop(systems)
    assert [s.heating_id for s in kept] == ["keep", "no-data"]


def test_filter_systems_without_az_check_uses_totals_only(make_system):
    systems = [make_system("stored-high", az=9.0, thermal=300, electrical=100)]
    assert filter_systems_by_realistic_cop(systems, check_az_fields=False) == systems


def test_filter_energy_systems_on_totals(make_system):
    energies = [
        SystemEnergy.from_efficiency(make_system("a", thermal=350, electrical=100)),
        SystemEnergy.from_efficiency(make_system("b", thermal=900, electrical=100)),
    ]
    kept = filter_systems_by_realistic_cop(energies)
    assert [e.heating_id for e in kept] == ["a"]
