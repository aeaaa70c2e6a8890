"""
Translate a conference query form into filters and a sort order.

The record store allows an inequality constraint on a single field only, and
requires the first sort key to be that field. Results are ordered by the
inequality field (if any) and then by name.
"""

from __future__ import annotations

import operator
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from conference_central.errors import BadRequest

OPERATORS = {
    "EQ": "=",
    "GT": ">",
    "GTEQ": ">=",
    "LT": "<",
    "LTEQ": "<=",
    "NE": "!=",
}

FIELDS = {
    "CITY": "city",
    "TOPIC": "topics",
    "MONTH": "month",
    "MAX_ATTENDEES": "max_attendees",
    "SEATS_AVAILABLE": "seats_available",
}

INTEGER_FIELDS = {"month", "max_attendees", "seats_available"}
LIST_FIELDS = {"topics"}

COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "=": operator.eq,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "!=": operator.ne,
}


@dataclass(frozen=True)
class Filter:
    field: str
    operator: str
    value: Any

    @property
    def is_inequality(self) -> bool:
        return self.operator != "="

    def matches(self, record: Any) -> bool:
        actual = getattr(record, self.field)
        if self.field in LIST_FIELDS:
            # Equality against a list property means membership.
            return self.value in (actual or [])
        if actual is None:
            return False
        return COMPARATORS[self.operator](actual, self.value)


@dataclass(frozen=True)
class ConferenceQuery:
    filters: tuple[Filter, ...] = ()
    inequality_field: Optional[str] = None
    order_by: tuple[str, ...] = field(default=("name",))

    def matches(self, record: Any) -> bool:
        return all(f.matches(record) for f in self.filters)

    def sort_key(self, record: Any) -> tuple:
        # Missing values sort first.
        key = []
        for name in self.order_by:
            value = getattr(record, name)
            key.append((value is not None, value if value is not None else 0))
        return tuple(key)

    def apply(self, records: Iterable[Any]) -> list:
        return sorted((r for r in records if self.matches(r)), key=self.sort_key)


def _coerce_value(field_name: str, value: Any) -> Any:
    if field_name not in INTEGER_FIELDS:
        return str(value)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise BadRequest(
            f"Filter value for {field_name} must be an integer."
        ) from exc


def format_filters(filters: Iterable[Any]) -> tuple[Optional[str], list[Filter]]:
    """Parse, check validity and normalize user supplied filters.

    Each item needs ``field``, ``operator`` and ``value`` attributes (or
    keys). Returns the inequality field (or ``None``) and the filters.
    """
    formatted: list[Filter] = []
    inequality_field: Optional[str] = None

    for raw in filters:
        if isinstance(raw, dict):
            raw_field, raw_op, raw_value = (
                raw.get("field"),
                raw.get("operator"),
                raw.get("value"),
            )
        else:
            raw_field, raw_op, raw_value = raw.field, raw.operator, raw.value

        try:
            field_name = FIELDS[raw_field]
            op = OPERATORS[raw_op]
        except KeyError as exc:
            raise BadRequest("Filter contains invalid field or operator.") from exc

        if field_name in LIST_FIELDS and op != "=":
            raise BadRequest(f"Only equality filters are allowed on {raw_field}.")

        if op != "=":
            if inequality_field and inequality_field != field_name:
                raise BadRequest("Inequality filter is allowed on only one field.")
            inequality_field = field_name

        formatted.append(
            Filter(field=field_name, operator=op, value=_coerce_value(field_name, raw_value))
        )
    return inequality_field, formatted


def build_query(filters: Iterable[Any] = ()) -> ConferenceQuery:
    """Return the conference query for a list of form filters."""
    inequality_field, formatted = format_filters(filters)
    if inequality_field:
        order_by: tuple[str, ...] = (inequality_field, "name")
    else:
        order_by = ("name",)
    return ConferenceQuery(
        filters=tuple(formatted),
        inequality_field=inequality_field,
        order_by=order_by,
    )
