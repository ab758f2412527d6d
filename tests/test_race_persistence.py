"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later

Tests for race plan persistence.
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from services.pacer.models import AidStation, CourseProfile, EffortLevel, RacePlan
from services.pacer.race_persistence import RacePersistence, segments_from_frame, segments_to_frame
from services.terrain_service import compute_course_profile


@pytest.fixture
def races(storage):
    return RacePersistence(storage)


@pytest.fixture
def plan(three_segments, rolling_points):
    segments = list(three_segments)
    segments[1] = replace(
        segments[1],
        effort_level=EffortLevel.PUSHING,
        target_time_minutes=181.25,
        power_target_low=131,
        power_target_high=175,
    )
    return RacePlan(
        name="Unbound 200",
        total_distance=100.0,
        goal_time_minutes=451.25,
        segments=tuple(segments),
        profile=compute_course_profile(rolling_points),
        aid_stations=(
            AidStation("Aid 1", 30.0, cutoff_time="10:30"),
            AidStation("NA", 70.0),
        ),
        points=tuple(rolling_points),
        start_time="05:45",
    )


def test_save_and_load_round_trip(races, plan):
    plan_id = races.save_plan(plan)
    loaded = races.load_plan(plan_id)

    assert loaded is not None
    assert loaded.plan_id == plan_id
    assert loaded.name == "Unbound 200"
    assert loaded.total_distance == 100.0
    assert loaded.goal_time_minutes == 451.25
    assert loaded.start_time == "05:45"
    assert loaded.segments == plan.segments
    assert loaded.profile == plan.profile
    assert loaded.aid_stations == plan.aid_stations
    assert loaded.points == plan.points


def test_save_existing_plan_updates_in_place(races, plan):
    plan_id = races.save_plan(plan)
    created = races.list_plans().iloc[0]["createdAt"]

    renamed = replace(plan, plan_id=plan_id, name="Unbound XL", segments=plan.segments[:1])
    assert races.save_plan(renamed) == plan_id

    listing = races.list_plans()
    assert len(listing) == 1
    assert listing.iloc[0]["name"] == "Unbound XL"
    assert listing.iloc[0]["createdAt"] == created
    assert len(races.load_plan(plan_id).segments) == 1


def test_list_and_delete(races, plan):
    assert races.list_plans().empty
    first = races.save_plan(plan)
    second = races.save_plan(replace(plan, name="Second"))
    assert set(races.list_plans()["planId"]) == {first, second}

    assert races.delete_plan(first)
    assert races.load_plan(first) is None
    assert not races.storage.exists(f"race_pacing/{first}_segments.csv")
    assert races.list_plans()["planId"].tolist() == [second]
    assert not races.delete_plan(first)


def test_load_unknown_plan(races, plan):
    assert races.load_plan("missing") is None
    races.save_plan(plan)
    assert races.load_plan("missing") is None


def test_plan_without_course_data(races, three_segments):
    """Test blank names, missing power and an empty trace survive storage."""
    segments = (replace(three_segments[0], start_name="", end_name=""),) + tuple(three_segments[1:])
    bare = RacePlan(
        name="",
        total_distance=100.0,
        goal_time_minutes=450.0,
        segments=segments,
        profile=CourseProfile.empty(),
    )
    loaded = races.load_plan(races.save_plan(bare))
    assert loaded.name == ""
    assert loaded.segments == segments
    assert loaded.segments[0].power_target_low is None
    assert loaded.aid_stations == ()
    assert loaded.points == ()
    assert loaded.profile == CourseProfile.empty()


def test_segments_frame_sorted_by_order(three_segments):
    df = segments_to_frame(list(reversed(three_segments)))
    assert [s.id for s in segments_from_frame(df)] == ["s1", "s2", "s3"]
    assert segments_from_frame(df.iloc[0:0]) == []


def test_numeric_looking_names_survive_storage(races, three_segments):
    """Test names made of digits or exponent text come back verbatim."""
    segments = (
        replace(three_segments[0], end_name="007"),
        replace(three_segments[1], start_name="007", end_name="1e3"),
        replace(three_segments[2], start_name="1e3", end_name="0042"),
    )
    stations = (AidStation("007", 30.0, cutoff_time="09:00"), AidStation("1e3", 70.0))
    plan = RacePlan(
        name="2025",
        total_distance=100.0,
        goal_time_minutes=450.0,
        segments=segments,
        profile=CourseProfile.empty(),
        aid_stations=stations,
    )
    first = races.save_plan(plan)
    # Rewriting plans.csv for another plan must not reparse the first one
    second = races.save_plan(replace(plan, name="0100"))
    races.delete_plan(second)

    loaded = races.load_plan(first)
    assert loaded.name == "2025"
    assert loaded.segments == segments
    assert [s.end_name for s in loaded.segments] == ["007", "1e3", "0042"]
    assert loaded.aid_stations == stations
    assert races.list_plans()["name"].tolist() == ["2025"]
