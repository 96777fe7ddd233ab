import random
from dataclasses import replace
from datetime import datetime

import pytest

from analytics.aggregation import (
    calculate_daily_taz,
    calculate_system_az,
    calculate_temperature_scale,
    derive_interval_efficiency,
    merge_comparison_datasets,
    process_dataset,
)
from analytics.records import ChartPoint, ComparisonDataGroup, MeasurementRow


def test_calculate_system_az_sums_period_totals(monthly_rows):
    systems = {s.heating_id: s for s in calculate_system_az(monthly_rows)}

    assert list(systems) == ["sys-a", "sys-b", "sys-c"]
    assert systems["sys-a"].thermal_total == pytest.approx(4200.0)
    assert systems["sys-a"].electrical_total == pytest.approx(1200.0)
    assert systems["sys-a"].az == pytest.approx(3.5)
    assert systems["sys-a"].az_heating == pytest.approx(3600 / 1080)


def test_calculate_system_az_zero_electrical_gives_no_cop():
    rows = [
        MeasurementRow(heating_id="a", thermal_energy_kwh=50.0, electrical_energy_kwh=0.0),
        MeasurementRow(heating_id="a", thermal_energy_kwh=None, electrical_energy_kwh=None),
    ]
    [system] = calculate_system_az(rows)
    assert system.az is None
    assert system.az_heating is None
    assert system.thermal_total == 50.0


def test_calculate_system_az_skips_missing_values():
    rows = [
        MeasurementRow(heating_id="a", thermal_energy_kwh=30.0, electrical_energy_kwh=10.0),
        MeasurementRow(heating_id="a", thermal_energy_kwh=None, electrical_energy_kwh=5.0),
    ]
    [system] = calculate_system_az(rows)
    assert system.az == pytest.approx(2.0)


def test_calculate_daily_taz_uses_first_and_last_counter(counter_rows):
    [system] = calculate_daily_taz(counter_rows)
    assert system.thermal_total == pytest.approx(30.0)
    assert system.electrical_total == pytest.approx(10.0)
    assert system.az == pytest.approx(3.0)


def test_calculate_daily_taz_is_order_invariant(counter_rows):
    shuffled = list(counter_rows)
    random.Random(7).shuffle(shuffled)
    assert calculate_daily_taz(shuffled) == calculate_daily_taz(counter_rows)
    assert calculate_daily_taz(list(reversed(counter_rows))) == calculate_daily_taz(counter_rows)


def test_calculate_daily_taz_skips_missing_last_reading():
    readings = [(6, 100.0, 10.0), (7, 130.0, 20.0), (8, None, 25.0)]
    rows = [
        MeasurementRow(
            heating_id="a",
            timestamp=datetime(2024, 1, 15, hour),
            thermal_energy_kwh=thermal,
            electrical_energy_kwh=electrical,
        )
        for hour, thermal, electrical in readings
    ]

    [system] = calculate_daily_taz(rows)
    assert system.thermal_total == pytest.approx(30.0)
    assert system.electrical_total == pytest.approx(15.0)
    assert system.az == pytest.approx(2.0)


def test_calculate_daily_taz_single_reading_has_no_cop(counter_rows):
    [system] = calculate_daily_taz(counter_rows[:1])
    assert system.electrical_total == 0.0
    assert system.az is None


def test_derive_interval_efficiency(counter_rows):
    rows = derive_interval_efficiency(counter_rows)

    # newest first
    assert [row.hour for row in rows] == [9, 8, 7, 6]
    assert rows[-1].az is None
    assert rows[-1].electrical_energy_kwh is None
    assert rows[2].az == pytest.approx(10 / 3)
    assert rows[1].az == pytest.approx(3.0)
    assert rows[0].thermal_energy_kwh == pytest.approx(8.0)
    # input rows are untouched
    assert counter_rows[0].thermal_energy_kwh == 1000.0


def test_derive_interval_efficiency_applies_thermometer_offset(counter_rows):
    rows = [
        replace(row, attributes={"thermometer_offset_k": -1.5})
        for row in counter_rows
    ]
    derived = derive_interval_efficiency(rows)
    assert derived[-1].outdoor_temperature_c == pytest.approx(-3.5)


def test_process_dataset_averages_positive_cop_per_index():
    rows = [
        MeasurementRow(heating_id="a", month=1, az=3.0, az_heating=2.5, outdoor_temperature_c=1.0),
        MeasurementRow(heating_id="b", month=1, az=4.0, az_heating=0.0, outdoor_temperature_c=3.0),
        MeasurementRow(heating_id="a", month=2, az=None, az_heating=None),
        MeasurementRow(heating_id="a", month=10, az=2.0, flow_temperature_c=35.0),
    ]
    points = process_dataset(rows, "month")

    # without index_values the observed keys sort as text
    assert [p.index for p in points] == ["1", "10", "2"]
    january, october, february = points
    assert january.values == {"az": 3.5, "az_heating": 2.5}
    assert january.outdoor_temp == 2.0
    assert january.flow_temp is None
    assert february.values == {"az": 0.0, "az_heating": 0.0}
    assert february.outdoor_temp is None
    assert october.flow_temp == 35.0


def test_process_dataset_fills_canonical_index_and_formats_labels():
    rows = [MeasurementRow(heating_id="a", month=3, az=3.2)]
    names = {"1": "Jan", "2": "Feb", "3": "Mar"}
    points = process_dataset(
        rows, "month", index_values=["1", "2", "3"], index_formatter=names.get, group_suffix=" (mine)"
    )
    assert [p.index for p in points] == ["Jan", "Feb", "Mar"]
    assert points[0].values == {"az (mine)": 0.0, "az_heating (mine)": 0.0}
    assert points[2].values["az (mine)"] == 3.2


def test_process_dataset_passthrough_keeps_rows():
    rows = [
        MeasurementRow(heating_id="a", hour=5, az=3.456, outdoor_temperature_c=0.0),
        MeasurementRow(heating_id="a", hour=5, az=None),
    ]
    points = process_dataset(rows, "hour", aggregate=False)
    assert len(points) == 2
    assert points[0].values["az"] == 3.46
    assert points[0].outdoor_temp == 0.0
    assert points[1].values["az"] == 0.0


def test_process_dataset_empty():
    assert process_dataset([], "month") == []


def test_process_dataset_groups_on_attributes():
    rows = [
        MeasurementRow(heating_id="a", az=3.0, attributes={"building_type": "house"}),
        MeasurementRow(heating_id="b", az=5.0, attributes={"building_type": "house"}),
        MeasurementRow(heating_id="c", az=2.0),
    ]
    [point] = process_dataset(rows, "building_type")
    assert point.index == "house"
    assert point.values["az"] == 4.0


def test_merge_comparison_datasets_suffixes_and_drops_empty_indices():
    group_a = ComparisonDataGroup(
        id="1", name="Filter 1", color="#23a477ff",
        rows=(
            MeasurementRow(heating_id="a", month=1, az=3.0, outdoor_temperature_c=2.0),
            MeasurementRow(heating_id="a", month=2, az=0.0),
        ),
    )
    group_b = ComparisonDataGroup(
        id="2", name="Filter 2", color="#86efac",
        rows=(
            MeasurementRow(heating_id="b", month=1, az=4.0, outdoor_temperature_c=5.0),
            MeasurementRow(heating_id="b", month=3, az=2.5, az_heating=2.0),
        ),
    )
    points = merge_comparison_datasets([group_a, group_b], "month")

    assert [p.index for p in points] == ["1", "3"]
    january = points[0]
    assert january.values["az (Filter 1)"] == 3.0
    assert january.values["az (Filter 2)"] == 4.0
    # first group providing a temperature wins
    assert january.outdoor_temp == 2.0
    assert points[1].values["az_heating (Filter 2)"] == 2.0


def test_calculate_temperature_scale():
    assert calculate_temperature_scale([]) == (0, 40)
    points = [
        ChartPoint(index="1", values={}, outdoor_temp=0.0, flow_temp=10.0),
        ChartPoint(index="2", values={}, outdoor_temp=None, flow_temp=None),
    ]
    assert calculate_temperature_scale(points) == (-1, 11)
    flat = [ChartPoint(index="1", values={}, outdoor_temp=5.0)]
    assert calculate_temperature_scale(flat) == (0, 10)


def _group(group_id, name, *rows):
    return ComparisonDataGroup(id=group_id, name=name, color="#23a477ff", rows=tuple(rows))


def test_merge_comparison_datasets_sorts_indices_as_text():
    group_a = _group(
        "1", "Filter 1",
        MeasurementRow(heating_id="a", month=2, az=3.0),
        MeasurementRow(heating_id="a", month=10, az=2.8),
    )
    group_b = _group("2", "Filter 2", MeasurementRow(heating_id="b", month=1, az=4.0))

    points = merge_comparison_datasets([group_a, group_b], "month")
    assert [p.index for p in points] == ["1", "10", "2"]


def test_merge_comparison_datasets_follows_formatted_index_values():
    names = {"1": "Jan", "2": "Feb", "3": "Mar"}
    group_a = _group("1", "Filter 1", MeasurementRow(heating_id="a", month=3, az=3.0))
    group_b = _group("2", "Filter 2", MeasurementRow(heating_id="b", month=1, az=4.0))

    points = merge_comparison_datasets(
        [group_a, group_b], "month", index_values=["1", "2", "3"], index_formatter=names.get
    )

    # Feb has no positive COP in either group
    assert [p.index for p in points] == ["Jan", "Mar"]
    assert points[0].values["az (Filter 2)"] == 4.0
    assert points[0].values["az (Filter 1)"] == 0.0
    assert points[1].values["az (Filter 1)"] == 3.0


def test_merge_comparison_datasets_takes_temperature_from_first_group_reporting_it():
    group_a = _group(
        "1", "Filter 1",
        MeasurementRow(heating_id="a", month=1, az=3.0, outdoor_temperature_c=2.0),
        MeasurementRow(heating_id="a", month=2, az=3.1),
    )
    group_b = _group(
        "2", "Filter 2",
        MeasurementRow(heating_id="b", month=1, az=4.0, outdoor_temperature_c=8.0, flow_temperature_c=35.0),
        MeasurementRow(heating_id="b", month=2, az=3.9, outdoor_temperature_c=6.0),
    )

    january, february = merge_comparison_datasets([group_a, group_b], "month")
    assert january.outdoor_temp == 2.0
    assert january.flow_temp == 35.0
    assert february.outdoor_temp == 6.0
