"""Pydantic schemas representing measurement data."""

from dataclasses import fields
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from analytics.records import MeasurementRow


class Measurement(BaseModel):
    """A single reading or period total of one heating system.

    Energies are kWh, temperatures °C. Anything that is not part of the
    numeric pipeline (manufacturer, heated area, building type, ...) goes in
    ``attributes`` and can still be filtered on.
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
    month: int | None = Field(None, ge=1, le=12)
    hour: int | None = Field(None, ge=0, le=23)
    attributes: dict[str, Any] = Field(default_factory=dict)

    def to_record(self) -> MeasurementRow:
        return MeasurementRow(**self.model_dump())

    @classmethod
    def from_record(cls, row: MeasurementRow) -> "Measurement":
        values = {f.name: getattr(row, f.name) for f in fields(row)}
        values["attributes"] = dict(row.attributes)
        return cls.model_validate(values)


def to_records(measurements: list[Measurement]) -> list[MeasurementRow]:
    return [measurement.to_record() for measurement in measurements]
