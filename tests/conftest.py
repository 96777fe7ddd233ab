from datetime import datetime, timedelta

import pytest

from analytics.records import MeasurementRow, SystemEfficiency


@pytest.fixture
def make_system():
    """Factory for per-system results with energy totals defaulting to zero."""

    def factory(heating_id, az=None, az_heating=None, thermal=0.0, electrical=0.0,
                thermal_heating=0.0, electrical_heating=0.0):
        return SystemEfficiency(
            heating_id=heating_id,
            az=az,
            az_heating=az_heating,
            thermal_total=thermal,
            electrical_total=electrical,
            thermal_heating_total=thermal_heating,
            electrical_heating_total=electrical_heating,
        )

    return factory


@pytest.fixture
def monthly_rows():
    """Twelve months of totals for three systems; sys-c reports COP 9."""
    rows = []
    for month in range(1, 13):
        rows.append(MeasurementRow(
            heating_id="sys-a", year=2023, month=month,
            thermal_energy_kwh=350.0, electrical_energy_kwh=100.0,
            thermal_energy_heating_kwh=300.0, electrical_energy_heating_kwh=90.0,
        ))
        rows.append(MeasurementRow(
            heating_id="sys-b", year=2023, month=month,
            thermal_energy_kwh=280.0, electrical_energy_kwh=100.0,
            thermal_energy_heating_kwh=250.0, electrical_energy_heating_kwh=95.0,
        ))
        rows.append(MeasurementRow(
            heating_id="sys-c", year=2023, month=month,
            thermal_energy_kwh=900.0, electrical_energy_kwh=100.0,
            thermal_energy_heating_kwh=800.0, electrical_energy_heating_kwh=90.0,
        ))
    return rows


@pytest.fixture
def counter_rows():
    """Hourly cumulative counters of one system over four hours."""
    start = datetime(2024, 1, 15, 6, 0)
    counters = [
        (1000.0, 300.0),
        (1010.0, 303.0),
        (1022.0, 307.0),
        (1030.0, 310.0),
    ]
    return [
        MeasurementRow(
            heating_id="sys-a",
            timestamp=start + timedelta(hours=i),
            thermal_energy_kwh=thermal,
            electrical_energy_kwh=electrical,
            thermal_energy_heating_kwh=thermal,
            electrical_energy_heating_kwh=electrical,
            outdoor_temperature_c=-2.0 + i,
            flow_temperature_c=40.0,
            date="2024-01-15",
        )
        for i, (thermal, electrical) in enumerate(counters)
    ]
