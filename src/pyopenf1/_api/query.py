"""Query-string building for OpenF1 filters.

OpenF1 filters are plain query parameters.  Equality is ``field=value``;
comparisons put the operator inside the parameter name and append the
value with no ``=``: ``date>2023-09-16T13:03:35.200Z`` becomes
``date%3E2023-09-16T13%3A03%3A35.200Z`` once encoded.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from urllib.parse import quote


class Operator(enum.StrEnum):
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="


def _encode(value: object) -> str:
    return quote(str(value), safe="")


def equality(field: str, value: object) -> str:
    return f"{_encode(field)}={_encode(value)}"


def comparison(field: str, op: Operator, value: object) -> str:
    return f"{_encode(f'{field}{op.value}')}{_encode(value)}"


def build_query(
    filters: Mapping[str, object | None],
    ranges: Iterable[tuple[str, Operator, object]] = (),
) -> str:
    """Join equality and range filters into a query string.

    ``None`` values in *filters* are skipped, so optional filters can be
    passed straight through.
    """
    parts = [equality(field, value) for field, value in filters.items() if value is not None]
    parts.extend(comparison(field, op, value) for field, op, value in ranges)
    return "&".join(parts)
