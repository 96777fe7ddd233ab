"""Filter groups and the two-group comparison partition.

A filter group is a set of predicates ANDed together. Incomplete predicates
(no field, no operator or no value) come from half-filled filter rows in the
dashboard and are ignored instead of matching nothing.
"""

from dataclasses import fields, is_dataclass, replace
from typing import Any, Callable, Iterable, List, Mapping, Sequence

from . import logger
from .records import ComparisonDataGroup, FilterGroup, FilterPredicate, MeasurementRow

ValueResolver = Callable[[Any, str], Any]
FieldGetter = Callable[[Any, Any], Any]

OPERATORS = (
    "contains",
    "equals",
    "is",
    "startsWith",
    "endsWith",
    ">",
    ">=",
    "<",
    "<=",
    "isEmpty",
    "isNotEmpty",
)
VALUELESS_OPERATORS = ("isEmpty", "isNotEmpty")

COMPARISON_COLORS = {1: "#23a477ff", 2: "#86efac"}
COMPARISON_NAMES = {1: "Filter 1", 2: "Filter 2"}

SYSTEM_ATTRIBUTE = "system"
PROTECTED_ATTRIBUTES = frozenset({"created_at", "user_id", "heating_id"})


def default_filter_group(group_id: int) -> FilterGroup:
    """Empty filter group with the dashboard's default name and color."""
    return FilterGroup(
        id=group_id,
        name=COMPARISON_NAMES.get(group_id, f"Filter {group_id}"),
        color=COMPARISON_COLORS.get(group_id, COMPARISON_COLORS[1]),
    )


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def is_active_predicate(predicate: FilterPredicate) -> bool:
    if not predicate.field or not predicate.operator:
        return False
    if predicate.operator in VALUELESS_OPERATORS:
        return True
    return not _is_blank(predicate.value)


def _as_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _compare(value: Any, target: Any, operator: str) -> bool:
    left = _as_number(value)
    right = _as_number(target)
    if left is None or right is None:
        return False
    if operator == ">":
        return left > right
    if operator == ">=":
        return left >= right
    if operator == "<":
        return left < right
    return left <= right


def _equals(value: Any, target: Any) -> bool:
    if isinstance(value, str) and isinstance(target, str):
        return value.lower() == target.lower()
    return value == target


def evaluate_predicate(value: Any, predicate: FilterPredicate) -> bool:
    """Evaluate one predicate against an already resolved field value."""
    operator = predicate.operator
    target = predicate.value

    if operator in ("contains", "startsWith", "endsWith"):
        if value is None:
            return False
        text = str(value).lower()
        needle = str(target).lower()
        if operator == "contains":
            return needle in text
        if operator == "startsWith":
            return text.startswith(needle)
        return text.endswith(needle)
    if operator in ("equals", "is"):
        return _equals(value, target)
    if operator in (">", ">=", "<", "<="):
        return _compare(value, target, operator)
    if operator == "isEmpty":
        return _is_blank(value)
    if operator == "isNotEmpty":
        return not _is_blank(value)
    return True


def resolve_field(row: Any, field_name: str) -> Any:
    """Default resolver: measurement fields, then attributes, then mapping keys."""
    if isinstance(row, MeasurementRow):
        return row.get(field_name)
    if isinstance(row, Mapping):
        return row.get(field_name)
    return getattr(row, field_name, None)


def create_filter_value_resolver(getters: Mapping[str, FieldGetter]) -> ValueResolver:
    """Resolver for derived fields.

    Each getter receives the stored value (``None`` when the row has no such
    field) and the row itself. Fields without a getter resolve normally.
    """

    def resolver(row: Any, field_name: str) -> Any:
        value = resolve_field(row, field_name)
        getter = getters.get(field_name)
        if getter is None:
            return value
        return getter(value, row)

    return resolver


def apply_filters_to_data(
    rows: Iterable[Any],
    filter_group: FilterGroup,
    resolver: ValueResolver | None = None,
) -> List[Any]:
    """Keep the rows that satisfy every active predicate of ``filter_group``."""
    resolve = resolver or resolve_field
    active = [p for p in filter_group.predicates if is_active_predicate(p)]
    rows = list(rows)
    if not active:
        return rows

    kept = [
        row
        for row in rows
        if all(evaluate_predicate(resolve(row, p.field), p) for p in active)
    ]
    logger.debug(
        "Filter group %r kept %s of %s rows", filter_group.name, len(kept), len(rows)
    )
    return kept


def _data_group(rows: Sequence[Any], group: FilterGroup, resolver: ValueResolver | None):
    return ComparisonDataGroup(
        id=str(group.id),
        name=group.name,
        color=group.color,
        rows=tuple(apply_filters_to_data(rows, group, resolver)),
    )


def partition_comparison_groups(
    rows: Iterable[Any],
    group1: FilterGroup,
    group2: FilterGroup | None = None,
    resolver: ValueResolver | None = None,
) -> List[ComparisonDataGroup]:
    """Split a dataset into the filtered subsets to chart.

    Comparison mode is on as soon as the second group has any predicate;
    otherwise only the first group's subset is returned.
    """
    rows = list(rows)
    groups = [_data_group(rows, group1, resolver)]
    if group2 is not None and group2.predicates:
        groups.append(_data_group(rows, group2, resolver))
    return groups


def flatten_system_fields(row: MeasurementRow) -> MeasurementRow:
    """Lift nested system metadata into the top level of ``attributes``.

    Keys already present on the row win, as do the row's own ``created_at``,
    ``user_id`` and ``heating_id``.
    """
    system = row.attributes.get(SYSTEM_ATTRIBUTE)
    if not isinstance(system, Mapping):
        return row

    own_fields = {f.name for f in fields(row)} if is_dataclass(row) else set()
    attributes = {key: value for key, value in row.attributes.items() if key != SYSTEM_ATTRIBUTE}
    for key, value in system.items():
        if key in PROTECTED_ATTRIBUTES or key in own_fields or key in attributes:
            continue
        attributes[key] = value
    return replace(row, attributes=attributes)
