"""Request and response schemas of the chart endpoints."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from analytics.comparison import OPERATORS, default_filter_group
from analytics.records import FilterGroup, FilterPredicate
from backend.models.measurement import Measurement

Operator = Literal[OPERATORS]
AggregationMode = Literal["period", "daily"]
TemperatureMode = Literal["outdoor", "flow", "delta"]


class ChartModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class FilterPredicateIn(BaseModel):
    field: str | None = None
    operator: Operator | None = None
    value: Any = None


class FilterGroupIn(BaseModel):
    """A named, colored set of predicates that are ANDed together."""
    id: int = 1
    name: str | None = None
    color: str | None = None
    predicates: list[FilterPredicateIn] = Field(default_factory=list)

    def to_record(self) -> FilterGroup:
        defaults = default_filter_group(self.id)
        return FilterGroup(
            id=self.id,
            name=self.name or defaults.name,
            color=self.color or defaults.color,
            predicates=tuple(
                FilterPredicate(field=p.field, operator=p.operator, value=p.value)
                for p in self.predicates
            ),
        )


class RowsRequest(BaseModel):
    rows: list[Measurement] = Field(default_factory=list)


class SystemEfficiencyRequest(RowsRequest):
    mode: AggregationMode = "period"
    exclude_unrealistic: bool = True


class SystemEfficiencyOut(ChartModel):
    heating_id: str
    az: float | None
    az_heating: float | None
    thermal_total: float
    electrical_total: float
    thermal_heating_total: float
    electrical_heating_total: float


class HistogramRequest(RowsRequest):
    mode: AggregationMode = "period"
    metric: Literal["cop", "energy"] = "cop"
    field: str = "az"
    bin_size: float | None = Field(None, gt=0)
    combined: bool = False


class HistogramBinOut(ChartModel):
    label: str
    start: float
    end: float
    count: int
    system_ids: list[str]
    count_heating: int | None = None
    system_ids_heating: list[str] | None = None


class HistogramStatsOut(ChartModel):
    mean: float
    median: float
    min: float
    max: float
    count: int


class HistogramOut(ChartModel):
    bins: list[HistogramBinOut]
    stats: HistogramStatsOut


class TimeSeriesRequest(RowsRequest):
    index_field: str = "month"
    az_total_key: str = "az"
    az_heating_key: str = "az_heating"
    index_values: list[str] | None = None
    aggregate: bool = True
    derive_intervals: bool = Field(
        False, description="Treat energies as cumulative counters and difference them first"
    )
    exclude_unrealistic: bool = True
    filter_group1: FilterGroupIn | None = None
    filter_group2: FilterGroupIn | None = None


class TimeSeriesOut(BaseModel):
    comparison: bool
    points: list[dict[str, Any]]
    temperature_scale: tuple[int, int]


class DataPointOut(ChartModel):
    x: float
    y: float


class RegressionOut(ChartModel):
    slope: float
    intercept: float
    r_squared: float
    sample_size: int
    mean_absolute_error: float


class RegressionRequest(RowsRequest):
    source: Literal["az_temperature", "heating_curve"] = "az_temperature"
    use_heating: bool = False
    temperature_mode: TemperatureMode = "outdoor"
    num_points: int | None = Field(None, ge=1)


class RegressionResponse(BaseModel):
    regression: RegressionOut | None
    points: list[DataPointOut]
    curve: list[DataPointOut]


class LoessRequest(RowsRequest):
    source: Literal["az_temperature", "yearly_energy"] = "az_temperature"
    use_heating: bool = False
    temperature_mode: TemperatureMode = "outdoor"
    bandwidth: float | None = Field(None, gt=0)
    num_points: int | None = Field(None, ge=1)
    area_by_system: dict[str, float] = Field(default_factory=dict)
    exclude_year: int | None = None
    exclude_month: int | None = Field(None, ge=1, le=12)


class YearlyEnergyPointOut(ChartModel):
    x: float
    y: float
    heating_id: str
    year: int
    coverage: float
    extrapolated: bool
    month_count: int


class LoessResponse(BaseModel):
    points: list[DataPointOut] = Field(default_factory=list)
    yearly_points: list[YearlyEnergyPointOut] = Field(default_factory=list)
    curve: list[DataPointOut]


class FilterRequest(RowsRequest):
    filter_group1: FilterGroupIn = Field(default_factory=FilterGroupIn)
    filter_group2: FilterGroupIn | None = None
    flatten_system: bool = True


class ComparisonGroupOut(BaseModel):
    id: str
    name: str
    color: str
    rows: list[Measurement]


class FilterResponse(BaseModel):
    comparison: bool
    groups: list[ComparisonGroupOut]


class DataQualityIssueOut(ChartModel):
    issue_type: str
    field: str
    value: float
    severity: Literal["error", "warning"]
    message: str


class DataQualityOut(ChartModel):
    heating_id: str
    is_valid: bool
    issues: list[DataQualityIssueOut]
