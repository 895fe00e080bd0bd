# tests/domain/policies/test_query_planner.py
from __future__ import annotations

from rightprops.domain.entities.property_spec import PROPERTY_TABLE
from rightprops.domain.policies.query_planner import QueryPlanner

ALL_MISSING_ARG = (
    "stream=width,height,bit_rate,avg_frame_rate,channels,sample_rate,codec_type"
    ":format=duration,bit_rate,format_name,probe_score"
    ":error:format_tags"
)


def _props_with(indexes):
    return {PROPERTY_TABLE[i].canonical: f"v{i}" for i in indexes}


def test_everything_missing_requests_every_field():
    plan = QueryPlanner().plan({"System.ItemPathDisplay": "/x/a.mp4"})
    assert plan.pending == tuple(range(len(PROPERTY_TABLE)))
    assert plan.entries_arg == ALL_MISSING_ARG
    assert not plan.is_empty


def test_nothing_missing_is_empty_plan():
    plan = QueryPlanner().plan(_props_with(range(len(PROPERTY_TABLE))))
    assert plan.is_empty
    assert plan.entries_arg == ""
    assert plan.pending == ()
    assert plan.lookup == {}


def test_only_audio_missing_still_carries_diagnostics():
    plan = QueryPlanner().plan(_props_with(range(6)))
    assert plan.pending == (6, 7, 8)
    assert plan.entries_arg == (
        "stream=bit_rate,channels,sample_rate,codec_type"
        ":format=format_name,probe_score:error:format_tags"
    )


def test_only_format_missing():
    plan = QueryPlanner().plan(_props_with([1, 2, 3, 5, 6, 7, 8]))
    assert plan.pending == (0, 4)
    assert plan.entries_arg == "stream=codec_type:format=duration,bit_rate,format_name,probe_score:error:format_tags"


def test_lookup_maps_pending_indexes_to_rows():
    plan = QueryPlanner().plan(_props_with([0, 1]))
    assert set(plan.lookup) == set(plan.pending)
    for index in plan.pending:
        assert plan.lookup[index] is PROPERTY_TABLE[index]


def test_never_requests_a_present_row():
    planner = QueryPlanner()
    n = len(PROPERTY_TABLE)
    for mask in range(1 << n):
        present = [i for i in range(n) if mask & (1 << i)]
        plan = planner.plan(_props_with(present))
        assert not set(plan.pending) & set(present)
        assert sorted(set(plan.pending) | set(present)) == list(range(n))
        assert plan.is_empty == (len(present) == n)


def test_custom_table():
    table = PROPERTY_TABLE[:2]
    plan = QueryPlanner(table=table).plan({})
    assert plan.pending == (0, 1)
    assert plan.entries_arg == "stream=width,codec_type:format=duration,format_name,probe_score:error:format_tags"
