"""API routes that turn measurement rows into chart data."""

from collections.abc import Sequence
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status

from analytics.aggregation import (
    calculate_daily_taz,
    calculate_system_az,
    calculate_temperature_scale,
    derive_interval_efficiency,
    merge_comparison_datasets,
    process_dataset,
)
from analytics.comparison import (
    apply_filters_to_data,
    default_filter_group,
    flatten_system_fields,
    partition_comparison_groups,
)
from analytics.exceptions import AnalyticsError
from analytics.histogram import build_energy_histogram, create_histogram_bins
from analytics.quality import (
    filter_realistic_rows,
    filter_systems_by_realistic_cop,
    validate_measurement,
)
from analytics.records import MeasurementRow, SystemEfficiency
from analytics.regression import (
    compute_az_temperature_loess,
    compute_az_temperature_regression,
    generate_curve_points,
    robust_linear_regression,
)
from analytics.scatter import (
    build_yearly_energy_points,
    extract_az_temperature_points,
    extract_heating_curve_points,
    fit_yearly_energy_curve,
)
from backend.models.chart import (
    ComparisonGroupOut,
    DataQualityOut,
    FilterRequest,
    FilterResponse,
    HistogramOut,
    HistogramRequest,
    LoessRequest,
    LoessResponse,
    RegressionRequest,
    RegressionResponse,
    RowsRequest,
    SystemEfficiencyOut,
    SystemEfficiencyRequest,
    TimeSeriesOut,
    TimeSeriesRequest,
)
from backend.models.measurement import Measurement, to_records
from backend.settings import ChartSettings, get_settings

router = APIRouter()


def _system_efficiencies(rows: Sequence[MeasurementRow], mode: str) -> list[SystemEfficiency]:
    if mode == "daily":
        return calculate_daily_taz(rows)
    return calculate_system_az(rows)


def _unprocessable(exc: AnalyticsError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


@router.post("/quality", response_model=list[DataQualityOut])
def validate_rows(payload: RowsRequest) -> list[DataQualityOut]:
    """Report data quality issues row by row."""
    results = []
    for row in to_records(payload.rows):
        result = validate_measurement(row)
        results.append(
            DataQualityOut(
                heating_id=row.heating_id,
                is_valid=result.is_valid,
                issues=[asdict(issue) for issue in result.issues],
            )
        )
    return results


@router.post("/system-efficiency", response_model=list[SystemEfficiencyOut])
def system_efficiency(payload: SystemEfficiencyRequest) -> list[SystemEfficiencyOut]:
    """Per-system COP from period totals or from cumulative counters."""
    systems = _system_efficiencies(to_records(payload.rows), payload.mode)
    if payload.exclude_unrealistic:
        systems = filter_systems_by_realistic_cop(systems)
    return [SystemEfficiencyOut.model_validate(system) for system in systems]


@router.post("/histogram", response_model=HistogramOut)
def histogram(
    payload: HistogramRequest,
    settings: ChartSettings = Depends(get_settings),
) -> HistogramOut:
    """Distribution of per-system COP or electrical energy."""
    systems = _system_efficiencies(to_records(payload.rows), payload.mode)

    try:
        if payload.metric == "energy":
            bin_size = payload.bin_size
            if bin_size is None and payload.mode == "daily":
                bin_size = settings.daily_energy_bin_size
            result = build_energy_histogram(systems, payload.field, bin_size)
        else:
            result = create_histogram_bins(
                filter_systems_by_realistic_cop(systems),
                payload.field,
                payload.bin_size or settings.cop_bin_size,
                combined=payload.combined,
            )
    except AnalyticsError as exc:
        raise _unprocessable(exc) from exc

    return HistogramOut.model_validate(asdict(result))


@router.post("/time-series", response_model=TimeSeriesOut)
def time_series(payload: TimeSeriesRequest) -> TimeSeriesOut:
    """Index-bucketed COP averages, optionally split into two filter groups."""
    rows = to_records(payload.rows)
    if payload.derive_intervals:
        rows = derive_interval_efficiency(rows)
    if payload.exclude_unrealistic:
        rows = filter_realistic_rows(rows)

    group1 = payload.filter_group1.to_record() if payload.filter_group1 else default_filter_group(1)
    group2 = payload.filter_group2.to_record() if payload.filter_group2 else None
    groups = partition_comparison_groups(rows, group1, group2)

    options = dict(
        az_total_key=payload.az_total_key,
        az_heating_key=payload.az_heating_key,
        index_values=payload.index_values,
        aggregate=payload.aggregate,
    )
    comparison = len(groups) > 1
    if comparison:
        points = merge_comparison_datasets(groups, payload.index_field, **options)
    else:
        points = process_dataset(list(groups[0].rows), payload.index_field, **options)

    return TimeSeriesOut(
        comparison=comparison,
        points=[point.to_dict(payload.index_field) for point in points],
        temperature_scale=calculate_temperature_scale(points),
    )


@router.post("/regression", response_model=RegressionResponse)
def regression(
    payload: RegressionRequest,
    settings: ChartSettings = Depends(get_settings),
) -> RegressionResponse:
    """Robust trend line through COP-vs-temperature or heating curve points."""
    rows = filter_realistic_rows(to_records(payload.rows))
    if payload.source == "heating_curve":
        points = extract_heating_curve_points(rows)
        result = robust_linear_regression(
            points,
            max_iterations=settings.irls_max_iterations,
            tolerance=settings.irls_tolerance,
        )
    else:
        points = extract_az_temperature_points(
            rows, use_heating=payload.use_heating, temperature_mode=payload.temperature_mode
        )
        result = compute_az_temperature_regression(
            points,
            max_iterations=settings.irls_max_iterations,
            tolerance=settings.irls_tolerance,
        )

    curve = []
    if result is not None:
        xs = [point.x for point in points]
        curve = generate_curve_points(
            result, min(xs), max(xs), payload.num_points or settings.curve_points
        )

    return RegressionResponse(
        regression=asdict(result) if result is not None else None,
        points=[asdict(point) for point in points],
        curve=[asdict(point) for point in curve],
    )


@router.post("/loess", response_model=LoessResponse)
def loess(
    payload: LoessRequest,
    settings: ChartSettings = Depends(get_settings),
) -> LoessResponse:
    """Smoothed COP-vs-temperature curve or the yearly energy intensity trend."""
    rows = filter_realistic_rows(to_records(payload.rows))

    if payload.source == "yearly_energy":
        exclude = None
        if payload.exclude_year is not None and payload.exclude_month is not None:
            exclude = (payload.exclude_year, payload.exclude_month)
        yearly = build_yearly_energy_points(rows, payload.area_by_system, exclude=exclude)
        curve = fit_yearly_energy_curve(yearly, num_points=payload.num_points or 120)
        return LoessResponse(
            yearly_points=[asdict(point) for point in yearly],
            curve=[asdict(point) for point in curve],
        )

    points = extract_az_temperature_points(
        rows, use_heating=payload.use_heating, temperature_mode=payload.temperature_mode
    )
    smoother = compute_az_temperature_loess(
        points, bandwidth=payload.bandwidth or settings.loess_bandwidth
    )
    curve = []
    if smoother is not None:
        xs = [point.x for point in points]
        curve = generate_curve_points(
            smoother, min(xs), max(xs), payload.num_points or settings.curve_points
        )
    return LoessResponse(
        points=[asdict(point) for point in points],
        curve=[asdict(point) for point in curve],
    )


@router.post("/filter", response_model=FilterResponse)
def filter_rows(payload: FilterRequest) -> FilterResponse:
    """Apply filter group 1, or split the rows into two comparison groups."""
    rows = to_records(payload.rows)
    if payload.flatten_system:
        rows = [flatten_system_fields(row) for row in rows]

    group1 = payload.filter_group1.to_record()
    if payload.filter_group2 is None:
        filtered = apply_filters_to_data(rows, group1)
        groups = [
            ComparisonGroupOut(
                id=str(group1.id),
                name=group1.name,
                color=group1.color,
                rows=[Measurement.from_record(row) for row in filtered],
            )
        ]
        return FilterResponse(comparison=False, groups=groups)

    partitions = partition_comparison_groups(rows, group1, payload.filter_group2.to_record())
    return FilterResponse(
        comparison=len(partitions) > 1,
        groups=[
            ComparisonGroupOut(
                id=group.id,
                name=group.name,
                color=group.color,
                rows=[Measurement.from_record(row) for row in group.rows],
            )
            for group in partitions
        ],
    )
