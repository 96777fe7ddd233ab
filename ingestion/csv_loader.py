"""CSV ingestion utilities."""

import csv
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple

from analytics.quality import validate_measurement
from analytics.records import MeasurementRow

from . import IngestionMetrics, logger

HEADER_ALIASES = {
    "system_id": "heating_id",
    "outdoor_temp": "outdoor_temperature_c",
    "flow_temp": "flow_temperature_c",
    "cop": "az",
    "cop_heating": "az_heating",
}


class MeasurementParseError(ValueError):
    """A CSV cell could not be converted into a measurement field."""

    def __init__(self, line: int, column: str, value: str, reason: str):
        self.line = line
        self.column = column
        self.value = value
        super().__init__(f"Line {line}, column {column!r}: {reason} ({value!r})")


def normalize_header(header: str) -> str:
    """Normalize a CSV header by lower-casing and replacing whitespace with underscores."""

    normalized = "_".join(header.strip().lower().split())
    return HEADER_ALIASES.get(normalized, normalized)


def _to_int(value: str) -> int:
    number = float(value)
    if not number.is_integer():
        raise ValueError("expected a whole number")
    return int(number)


FIELD_PARSERS: Dict[str, Callable[[str], Any]] = {
    "thermal_energy_kwh": float,
    "electrical_energy_kwh": float,
    "thermal_energy_heating_kwh": float,
    "electrical_energy_heating_kwh": float,
    "outdoor_temperature_c": float,
    "flow_temperature_c": float,
    "az": float,
    "az_heating": float,
    "timestamp": datetime.fromisoformat,
    "date": str,
    "year": _to_int,
    "month": _to_int,
    "hour": _to_int,
}


def load_csv_records(csv_path: Path) -> Tuple[List[Dict[str, str]], Dict[str, str]]:
    """Load a CSV file and normalize its headers.

    Args:
        csv_path: Path to the CSV file.

    Returns:
        A tuple containing a list of normalized records and a canonical field map
        relating normalized headers back to their original names.
    """

    normalized_records: List[Dict[str, str]] = []
    field_map: Dict[str, str] = {}

    logger.info("Loading CSV file: %s", csv_path)
    with csv_path.open(newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        field_map = {normalize_header(h): h for h in reader.fieldnames or []}
        for row in reader:
            normalized_records.append(
                {
                    normalize_header(key): value.strip() if isinstance(value, str) else value
                    for key, value in row.items()
                    if key is not None
                }
            )
    return normalized_records, field_map


def parse_measurement(record: Dict[str, str], line: int) -> MeasurementRow:
    """Convert one normalized CSV record into a :class:`MeasurementRow`.

    Empty cells become ``None``. Columns that are not measurement fields are
    kept as strings in ``attributes``.

    Raises:
        MeasurementParseError: ``heating_id`` is missing or a typed column holds
            a value that cannot be parsed.
    """
    heating_id = record.get("heating_id")
    if not heating_id:
        raise MeasurementParseError(line, "heating_id", heating_id or "", "missing system id")

    values: Dict[str, Any] = {}
    attributes: Dict[str, Any] = {}
    for column, raw in record.items():
        if column == "heating_id":
            continue
        parser = FIELD_PARSERS.get(column)
        if parser is None:
            if raw not in (None, ""):
                attributes[column] = raw
            continue
        if raw in (None, ""):
            values[column] = None
            continue
        try:
            values[column] = parser(raw)
        except ValueError as exc:
            raise MeasurementParseError(line, column, raw, str(exc)) from exc

    return MeasurementRow(heating_id=heating_id, attributes=attributes, **values)


def load_measurement_csv(
    csv_path: Path,
    metrics: IngestionMetrics | None = None,
    validate: bool = True,
) -> List[MeasurementRow]:
    """Read a measurement export into :class:`MeasurementRow` objects.

    Quality issues are logged and counted but never drop rows; excluding
    unrealistic values is left to the chart pipeline.
    """
    records, _ = load_csv_records(csv_path)

    # Line 1 is the header.
    rows = [parse_measurement(record, line) for line, record in enumerate(records, start=2)]

    if validate:
        for line, row in enumerate(rows, start=2):
            for issue in validate_measurement(row).issues:
                logger.warning("%s line %s: %s", csv_path.name, line, issue.message)
                if metrics:
                    metrics.add_quality_issue(issue.severity)

    logger.info("Processed %s rows from %s", len(rows), csv_path)
    if metrics:
        metrics.add_rows(len(rows))
    return rows
