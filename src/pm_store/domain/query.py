"""Sort-string parsing for list queries.

Convention: space-separated field names, a leading "-" means descending.
    "-createdAt fullname"  ->  [("created_at", True), ("fullname", False)]
"""

import re
from dataclasses import dataclass

_CAMEL_BOUNDARY = re.compile(r"(?<!^)([A-Z])")


@dataclass(frozen=True)
class SortField:
    field: str
    descending: bool = False


def to_snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", name).lower()


def parse_sort(sort: str | None, convert_to_snake_case: bool = True) -> list[SortField]:
    if not sort:
        return []

    fields: list[SortField] = []
    for token in sort.split():
        descending = token.startswith("-")
        name = token[1:] if descending else token
        if not name:
            continue
        if convert_to_snake_case:
            name = to_snake_case(name)
        fields.append(SortField(field=name, descending=descending))
    return fields
