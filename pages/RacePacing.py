"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later

Race Pacing page: GPX import, terrain profile, power targets and segment planning.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd
import streamlit as st
from streamlit.logger import get_logger

from graph.pacer_segments import render_pacer_segments
from persistence.csv_storage import CsvStorage
from services.pacer.checkpoints import required_speed_mph, snapshot_to_json
from services.pacer.models import AidStation, EffortLevel
from services.pacer.planner import (
    ApplyPreset,
    CancelDrag,
    CommitDrag,
    PlannerState,
    SetEffort,
    SetTargetTime,
    StartDrag,
    UpdateDrag,
    preview_is_valid,
    preview_segments,
)
from services.pacer_service import PacerService
from services.power_service import InvalidAthleteInputError
from utils.coercion import clean_text, safe_float
from utils.config import load_config
from utils.constants import EFFORT_LABELS, EFFORT_PRESETS
from utils.formatting import (
    fmt_ft,
    fmt_grade,
    fmt_mile,
    fmt_power_range,
    fmt_speed_mph,
    fmt_watts,
    format_clock,
    set_locale,
)

logger = get_logger(__name__)

st.set_page_config(page_title="Race Pacing", layout="wide")
st.title("Race Pacing")

cfg = load_config()
set_locale("en_US")
storage = CsvStorage(base_dir=Path(cfg.data_dir))
pacer_service = PacerService(storage, cfg)

# Initialize session state
st.session_state.setdefault("race_pacing_plan_id", None)
st.session_state.setdefault("race_pacing_name", "")
st.session_state.setdefault("race_pacing_points", [])
st.session_state.setdefault("race_pacing_aid_stations", [])
st.session_state.setdefault("race_pacing_state", None)
st.session_state.setdefault("race_pacing_goal_minutes", 600)
st.session_state.setdefault("race_pacing_start_time", cfg.race_start_time)
# Bumped on every planner change so per-segment widgets pick up the new values
st.session_state.setdefault("race_pacing_rev", 0)
# Reason for the last rejected edit, shown after the rerun that follows it
st.session_state.setdefault("race_pacing_notice", None)


def _apply(command) -> None:
    state: PlannerState = st.session_state["race_pacing_state"]
    result = pacer_service.apply(state, command, context)
    st.session_state["race_pacing_state"] = result.state
    st.session_state["race_pacing_rev"] += 1
    if not result.accepted:
        st.session_state["race_pacing_notice"] = f"Change not applied: {result.reason}"


# Athlete inputs
with st.sidebar:
    st.header("Athlete")
    ftp = st.number_input("FTP (W)", min_value=0.0, value=250.0, step=5.0)
    weight = st.number_input("Weight (kg)", min_value=0.0, value=70.0, step=0.5)
    altitude = st.slider(
        "Altitude adjustment", min_value=0.0, max_value=0.5, value=cfg.default_altitude_adjustment, step=0.01
    )
    intensity = {
        effort: st.number_input(
            f"IF {EFFORT_LABELS[effort]}",
            min_value=0.0,
            max_value=1.0,
            value=float(cfg.default_intensity_factors[effort]),
            step=0.01,
        )
        for effort in ("safe", "tempo", "pushing")
    }

athlete = pacer_service.athlete_profile(ftp, weight or None, altitude, intensity)
power_table = None
try:
    power_table = pacer_service.power_targets(athlete)
except InvalidAthleteInputError as e:
    st.sidebar.error(str(e))

if power_table is not None:
    with st.sidebar:
        st.caption(f"Adjusted FTP: {fmt_watts(power_table.adjusted_ftp)}")
        st.dataframe(
            pd.DataFrame(
                [
                    {
                        "Effort": EFFORT_LABELS[e.value],
                        "NP": fmt_watts(power_table.normalized_power[e]),
                        "Climb": fmt_watts(power_table.climbing_power[e]),
                        "Flat": fmt_watts(power_table.flat_power[e]),
                        "Descent": fmt_watts(power_table.descent_power[e]),
                    }
                    for e in EffortLevel
                ]
            ),
            hide_index=True,
        )

# Load existing plans dropdown
plans_df = pacer_service.list_plans()
if not plans_df.empty:
    plan_options = ["--- New plan ---"] + [
        f"{row['name']} ({row['planId']})" for _, row in plans_df.iterrows()
    ]
    selected_plan_idx = st.selectbox(
        "Load a saved plan", range(len(plan_options)), format_func=lambda x: plan_options[x]
    )
    if selected_plan_idx > 0:
        plan_id = plan_options[selected_plan_idx].split("(")[-1].rstrip(")")
        # Only load if this is a different plan than what's already loaded
        if plan_id != st.session_state.get("race_pacing_plan_id"):
            plan = pacer_service.load_plan(plan_id)
            if plan:
                st.session_state["race_pacing_plan_id"] = plan_id
                st.session_state["race_pacing_name"] = plan.name
                st.session_state["race_pacing_points"] = list(plan.points)
                st.session_state["race_pacing_aid_stations"] = list(plan.aid_stations)
                st.session_state["race_pacing_state"] = pacer_service.state_from_plan(plan)
                st.session_state["race_pacing_goal_minutes"] = int(plan.goal_time_minutes)
                st.session_state["race_pacing_start_time"] = plan.start_time
                st.rerun()
            else:
                st.error("Could not load this plan.")

race_name = st.text_input("Race name", value=st.session_state["race_pacing_name"])
st.session_state["race_pacing_name"] = race_name

col1, col2 = st.columns([2, 1])

with col1:
    uploaded_file = st.file_uploader("Course GPX", type=["gpx"], key="gpx_uploader")
    if uploaded_file is not None and st.button("Import course"):
        points = pacer_service.import_course(uploaded_file.read())
        if not points:
            st.error("The GPX file does not contain a usable track.")
        else:
            st.session_state["race_pacing_points"] = points
            st.session_state["race_pacing_state"] = None
            st.success(f"Course imported: {len(points)} points over {fmt_mile(points[-1].mile)}")

    goal_cols = st.columns(2)
    with goal_cols[0]:
        goal_minutes = st.number_input(
            "Goal time (min)",
            min_value=1,
            value=int(st.session_state["race_pacing_goal_minutes"]),
            step=5,
        )
        st.caption(f"Goal: {format_clock(goal_minutes)}")
        if st.session_state["race_pacing_points"]:
            goal_speed = required_speed_mph(
                pacer_service.course_distance(st.session_state["race_pacing_points"]), goal_minutes
            )
            if goal_speed > 0:
                st.caption(f"Requires {fmt_speed_mph(goal_speed)} average speed")
    with goal_cols[1]:
        start_time = st.text_input("Start time (HH:MM)", value=st.session_state["race_pacing_start_time"])
    st.session_state["race_pacing_goal_minutes"] = goal_minutes
    st.session_state["race_pacing_start_time"] = start_time

with col2:
    st.subheader("Aid stations")
    stations_df = pd.DataFrame(
        [
            {"name": s.name, "mile": s.mile, "cutoffTime": s.cutoff_time or ""}
            for s in st.session_state["race_pacing_aid_stations"]
        ],
        columns=["name", "mile", "cutoffTime"],
    )
    edited_stations = st.data_editor(
        stations_df,
        num_rows="dynamic",
        column_config={
            "name": st.column_config.TextColumn("Name"),
            "mile": st.column_config.NumberColumn("Mile", min_value=0.0, step=0.1, format="%.1f"),
            "cutoffTime": st.column_config.TextColumn("Cutoff (HH:MM)"),
        },
        key="aid_stations_editor",
    )
    aid_stations = [
        AidStation(
            name=clean_text(row["name"]) or f"Aid {idx + 1}",
            mile=safe_float(row["mile"]),
            cutoff_time=clean_text(row["cutoffTime"]).strip() or None,
        )
        for idx, row in edited_stations.iterrows()
        if safe_float(row["mile"]) > 0
    ]
    st.session_state["race_pacing_aid_stations"] = aid_stations

points = st.session_state["race_pacing_points"]
context = pacer_service.context(points, power_table)

if points:
    profile = pacer_service.course_profile(points)
    if profile.has_terrain_data:
        metric_cols = st.columns(5)
        metric_cols[0].metric("Climbing", f"{profile.climbing_pct}%", fmt_grade(profile.avg_climb_grade))
        metric_cols[1].metric("Flat", f"{profile.flat_pct}%")
        metric_cols[2].metric("Descent", f"{profile.descent_pct}%", fmt_grade(profile.avg_descent_grade))
        metric_cols[3].metric("Gain", fmt_ft(profile.elevation_gain_ft))
        metric_cols[4].metric("Loss", fmt_ft(profile.elevation_loss_ft))
    else:
        st.info("No terrain data for this course.")

    if st.button("Generate segments from aid stations"):
        st.session_state["race_pacing_state"] = pacer_service.init_plan(
            aid_stations,
            pacer_service.course_distance(points),
            goal_minutes,
            points=points,
            power_table=power_table,
        )
        st.rerun()

state = st.session_state["race_pacing_state"]
if state is not None:
    # Athlete inputs may have changed since the ranges were computed
    refreshed = pacer_service.refresh_power(state, power_table)
    if refreshed is not state:
        state = refreshed
        st.session_state["race_pacing_state"] = state
        st.session_state["race_pacing_rev"] += 1

    notice = st.session_state.pop("race_pacing_notice", None)
    if notice:
        st.warning(notice)

    shown_segments = preview_segments(state)
    render_pacer_segments(
        points, shown_segments, aid_stations, state.drag.current_mile if state.drag else None
    )

    st.subheader("Effort presets")
    preset_cols = st.columns(len(EFFORT_PRESETS))
    for col, (key, preset) in zip(preset_cols, EFFORT_PRESETS.items()):
        with col:
            if st.button(preset["label"], key=f"preset_{key}", help=preset["description"]):
                _apply(ApplyPreset(key))
                st.rerun()

    st.subheader("Move a boundary")
    segment_labels = {seg.id: f"{seg.start_name} → {seg.end_name}" for seg in state.segments}
    if state.drag is None:
        drag_cols = st.columns([3, 1, 1])
        with drag_cols[0]:
            seg_id = st.selectbox(
                "Segment", list(segment_labels), format_func=lambda x: segment_labels[x]
            )
        with drag_cols[1]:
            edge = st.radio("Edge", ["start", "end"], horizontal=True)
        with drag_cols[2]:
            if st.button("Start moving"):
                _apply(StartDrag(seg_id, edge))
                st.rerun()
    else:
        drag = state.drag
        st.caption(
            f"Moving the {drag.edge} of {segment_labels.get(drag.segment_id, drag.segment_id)} "
            f"(was mile {drag.initial_mile:.2f})"
        )
        new_mile = st.slider(
            "Boundary mile",
            min_value=0.0,
            max_value=float(state.total_distance),
            value=float(drag.current_mile),
            step=0.1,
        )
        if new_mile != drag.current_mile:
            _apply(UpdateDrag(new_mile))
            st.rerun()
        if not preview_is_valid(state):
            st.warning("This position would collapse a segment; committing will be refused.")
        commit_col, cancel_col = st.columns(2)
        with commit_col:
            if st.button("Commit", type="primary"):
                _apply(CommitDrag())
                st.rerun()
        with cancel_col:
            if st.button("Cancel"):
                _apply(CancelDrag())
                st.rerun()

    st.subheader("Segments")
    rev = st.session_state["race_pacing_rev"]
    efforts = [e.value for e in EffortLevel]
    for seg in state.segments:
        row = st.columns([3, 2, 2, 2, 1, 2])
        row[0].markdown(f"**{seg.start_name} → {seg.end_name}**")
        row[1].caption(f"{fmt_mile(seg.start_mile)} to {fmt_mile(seg.end_mile)}")
        effort = row[2].selectbox(
            "Effort",
            efforts,
            index=efforts.index(seg.effort_level.value),
            format_func=lambda e: EFFORT_LABELS[e],
            key=f"effort_{seg.id}_{rev}",
            label_visibility="collapsed",
        )
        minutes = row[3].number_input(
            "Minutes",
            min_value=0.0,
            value=float(seg.target_time_minutes),
            step=1.0,
            key=f"minutes_{seg.id}_{rev}",
            label_visibility="collapsed",
        )
        row[4].caption(fmt_speed_mph(required_speed_mph(seg.distance, seg.target_time_minutes)))
        row[5].caption(fmt_power_range(seg.power_target_low, seg.power_target_high))
        if effort != seg.effort_level.value:
            _apply(SetEffort(seg.id, EffortLevel(effort)))
            st.rerun()
        if minutes != seg.target_time_minutes:
            _apply(SetTargetTime(seg.id, minutes))
            st.rerun()

    st.subheader("Checkpoints")
    try:
        arrivals = pacer_service.arrivals(state, aid_stations, start_time)
    except ValueError:
        st.error(f"Invalid start time {start_time!r}; expected HH:MM.")
        arrivals = []
    if arrivals:
        # Start row has no leg speed
        leg_speeds = [None] + [cp.speed_mph for cp in pacer_service.checkpoints(state)]
        st.dataframe(
            pd.DataFrame(
                [
                    {
                        "Checkpoint": a.name,
                        "Mile": fmt_mile(a.mile),
                        "Elapsed": format_clock(a.elapsed_minutes),
                        "Leg speed": fmt_speed_mph(speed),
                        "Arrival": a.arrival_time,
                        "Cutoff": a.cutoff_time or "",
                        "Margin (min)": a.cutoff_margin if a.cutoff_margin is not None else "",
                        "Status": a.cutoff_status or "",
                    }
                    for a, speed in zip(arrivals, leg_speeds)
                ]
            ),
            hide_index=True,
        )

    snapshot = pacer_service.device_snapshot(
        state,
        power_table=power_table,
        race_name=race_name or "Race Plan",
        goal_time_minutes=goal_minutes,
    )
    st.download_button(
        "Download device plan (JSON)",
        data=snapshot_to_json(snapshot),
        file_name="race_plan.json",
        mime="application/json",
    )

    if st.button("Save plan"):
        if not race_name.strip():
            st.error("Give the race a name before saving.")
        else:
            plan_id = pacer_service.save_plan(
                race_name,
                state,
                goal_minutes,
                pacer_service.course_profile(points),
                aid_stations=aid_stations,
                points=points,
                plan_id=st.session_state["race_pacing_plan_id"],
                start_time=start_time,
            )
            st.session_state["race_pacing_plan_id"] = plan_id
            st.success("Plan saved.")
