# rightprops/domain/policies/query_planner.py
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

from rightprops.domain.dataclasses.probe import QueryPlan
from rightprops.domain.entities.property_spec import (
    DIAGNOSTIC_FIELDS,
    FORMAT,
    PROPERTY_TABLE,
    STREAM,
    PropertySpec,
)


class QueryPlanner:
    """
    Diffs a file's property map against the property table and builds the
    `-show_entries` value asking ffprobe for exactly the missing fields.

    Sections are emitted as `stream=...:format=...`, followed by `error` (so
    ffprobe reports failures in-band) and `format_tags` (artist lookup).
    Every section carries its diagnostic fields once anything is requested,
    since the merger needs them to classify streams and validate the container.
    """

    SECTIONS: Sequence[str] = (STREAM, FORMAT)
    TRAILING_SECTIONS: Sequence[str] = ("error", "format_tags")

    def __init__(
        self,
        table: Sequence[PropertySpec] = PROPERTY_TABLE,
        diagnostics: Mapping[str, Sequence[str]] = DIAGNOSTIC_FIELDS,
    ) -> None:
        self._table = tuple(table)
        self._diagnostics = diagnostics

    def plan(self, props: Mapping[str, Any]) -> QueryPlan:
        # dicts as insertion-ordered sets so the argument is deterministic
        entries: Dict[str, Dict[str, None]] = {s: {} for s in self.SECTIONS}
        pending: List[int] = []

        for index, row in enumerate(self._table):
            if row.canonical in props:
                continue
            entries[row.section][row.field] = None
            pending.append(index)

        # Found everything we want, skip ffprobe.
        if not pending:
            return QueryPlan()

        parts: List[str] = []
        for section in self.SECTIONS:
            fields = entries[section]
            for extra in self._diagnostics.get(section, ()):
                fields[extra] = None
            parts.append(f"{section}={','.join(fields)}")
        parts.extend(self.TRAILING_SECTIONS)

        return QueryPlan(
            entries_arg=":".join(parts),
            pending=tuple(pending),
            lookup={i: self._table[i] for i in pending},
        )
