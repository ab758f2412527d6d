"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later

Tests for pacer service.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from persistence.csv_storage import CsvStorage
from services.pacer.models import AidStation, EffortLevel
from services.pacer.planner import ApplyPreset, CommitDrag, StartDrag, UpdateDrag
from services.pacer_service import PacerService
from services.power_service import InvalidAthleteInputError
from utils.config import Config

DEG_PER_MILE = 1609.344 / 111_195.0


def _course_gpx(miles: float = 2.0, step: float = 0.05) -> bytes:
    """Straight equator track climbing 30 m per mile."""
    n = int(round(miles / step)) + 1
    trkpts = "".join(
        f'<trkpt lat="0.0" lon="{i * step * DEG_PER_MILE:.7f}"><ele>{100 + i * step * 30:.2f}</ele></trkpt>'
        for i in range(n)
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" xmlns="http://www.topografix.com/GPX/1/1">
  <trk><trkseg>{trkpts}</trkseg></trk>
</gpx>""".encode()


@pytest.fixture
def pacer_service(storage: CsvStorage) -> PacerService:
    """Create a pacer service instance."""
    return PacerService(storage)


@pytest.fixture
def configured_service(storage: CsvStorage, tmp_path: Path) -> PacerService:
    config = Config(
        data_dir=tmp_path,
        plans_dir=tmp_path / "race_pacing",
        race_start_time="07:00",
        gpx_sample_miles=0.25,
        default_altitude_adjustment=0.1,
    )
    return PacerService(storage, config)


def test_import_course(pacer_service: PacerService):
    """Test a GPX upload becomes an elevation profile."""
    points = pacer_service.import_course(_course_gpx())
    assert points
    assert pacer_service.course_distance(points) == pytest.approx(2.0, abs=0.02)
    profile = pacer_service.course_profile(points)
    # 30 m per mile is ~1.1%, flat terrain
    assert profile.flat_pct == 100
    assert profile.elevation_gain_ft > 0
    assert len(pacer_service.tagged_points(points)) == len(points)


def test_import_course_rejects_bad_gpx(pacer_service: PacerService):
    assert pacer_service.import_course(b"not a gpx") == []
    assert pacer_service.course_distance([]) == 0.0


def test_import_course_uses_configured_sampling(
    pacer_service: PacerService, configured_service: PacerService
):
    fine = pacer_service.import_course(_course_gpx())
    coarse = configured_service.import_course(_course_gpx())
    assert len(coarse) < len(fine)


def test_athlete_defaults_come_from_config(
    pacer_service: PacerService, configured_service: PacerService
):
    assert pacer_service.athlete_profile(250.0).altitude_adjustment_factor == 0.20
    profile = configured_service.athlete_profile(250.0, weight_kg=70.0)
    assert profile.altitude_adjustment_factor == 0.1
    assert configured_service.power_targets(profile).adjusted_ftp == pytest.approx(225.0)
    with pytest.raises(InvalidAthleteInputError):
        pacer_service.power_targets(pacer_service.athlete_profile(-1.0))


def test_plan_edit_and_export(pacer_service: PacerService):
    table = pacer_service.power_targets(pacer_service.athlete_profile(250.0))
    stations = [AidStation("Aid 1", 30.0, cutoff_time="09:00"), AidStation("Aid 2", 70.0)]
    state = pacer_service.init_plan(stations, 100.0, 600, power_table=table)
    assert [s.end_name for s in state.segments] == ["Aid 1", "Aid 2", "Finish"]

    context = pacer_service.context(power_table=table)
    first = state.segments[0]
    for command in (StartDrag(first.id, "end"), UpdateDrag(35.0), CommitDrag()):
        result = pacer_service.apply(state, command, context)
        assert result.accepted
        state = result.state
    assert state.segments[0].end_mile == 35.0
    assert state.segments[1].start_mile == 35.0

    state = pacer_service.apply(state, ApplyPreset("conservative"), context).state
    checkpoints = pacer_service.checkpoints(state)
    assert checkpoints[-1].target_minutes == 600
    assert all(cp.effort is EffortLevel.SAFE for cp in checkpoints)

    arrivals = pacer_service.arrivals(state, stations)
    # 06:00 start, 30 mi of 100 in 600 min -> 180 min to Aid 1 at 09:00
    assert arrivals[1].cutoff_margin == 0
    assert arrivals[1].cutoff_status == "danger"

    snapshot = pacer_service.device_snapshot(state, table, race_name="Test 100")
    assert snapshot["distanceMiles"] == 100.0
    assert len(snapshot["checkpoints"]) == 3


def test_arrivals_use_configured_start(configured_service: PacerService):
    state = configured_service.init_plan([], 10.0, 60)
    arrivals = configured_service.arrivals(state)
    assert [t.elapsed_minutes for t in arrivals] == [0.0, 60.0]
    assert "7:00" in arrivals[0].arrival_time


def test_save_and_reload_plan(pacer_service: PacerService):
    points = pacer_service.import_course(_course_gpx())
    distance = pacer_service.course_distance(points)
    state = pacer_service.init_plan([AidStation("Mid", 1.0)], distance, 20, points=points)
    profile = pacer_service.course_profile(points)

    plan_id = pacer_service.save_plan("Local loop", state, 20, profile, [AidStation("Mid", 1.0)], points)
    assert pacer_service.list_plans()["name"].tolist() == ["Local loop"]

    plan = pacer_service.load_plan(plan_id)
    assert plan.start_time == "06:00"
    reloaded = pacer_service.state_from_plan(plan)
    assert reloaded.segments == state.segments
    assert reloaded.total_distance == state.total_distance
    assert plan.points == tuple(points)

    assert pacer_service.delete_plan(plan_id)
    assert pacer_service.list_plans().empty


def test_refresh_power_after_athlete_change(pacer_service: PacerService):
    """Test segment ranges track the athlete table instead of keeping stale watts."""
    old_table = pacer_service.power_targets(pacer_service.athlete_profile(250.0))
    state = pacer_service.init_plan([AidStation("Aid 1", 50.0)], 100.0, 600, power_table=old_table)
    assert state.segments[0].power_target_low == 126

    new_table = pacer_service.power_targets(pacer_service.athlete_profile(300.0))
    refreshed = pacer_service.refresh_power(state, new_table)
    assert [(s.power_target_low, s.power_target_high) for s in refreshed.segments] == [(151, 202)] * 2

    assert pacer_service.refresh_power(refreshed, new_table) is refreshed
