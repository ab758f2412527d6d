"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later

Race plan visualization: elevation profile shaded by segment effort level.
"""

from __future__ import annotations

from typing import Optional, Sequence

import altair as alt
import pandas as pd
import streamlit as st
from streamlit.logger import get_logger

from services.pacer.models import AidStation, ElevationPoint, Segment
from services.terrain_service import tag_points
from utils.constants import EFFORT_COLORS, EFFORT_LABELS

logger = get_logger(__name__)

DRAG_MARKER_COLOR = "#f43f5e"


def _segment_bands(segments: Sequence[Segment]) -> pd.DataFrame:
    rows = [
        {
            "segmentId": seg.id,
            "startMile": seg.start_mile,
            "endMile": seg.end_mile,
            "name": f"{seg.start_name} → {seg.end_name}",
            "effort": EFFORT_LABELS.get(seg.effort_level.value, seg.effort_level.value),
            "minutes": seg.target_time_minutes,
        }
        for seg in segments
    ]
    return pd.DataFrame(
        rows, columns=["segmentId", "startMile", "endMile", "name", "effort", "minutes"]
    )


def build_segments_chart(
    points: Sequence[ElevationPoint],
    segments: Sequence[Segment],
    aid_stations: Sequence[AidStation] = (),
    drag_mile: Optional[float] = None,
) -> Optional[alt.LayerChart]:
    """Layered chart: effort bands behind the elevation line, aid stations as rules.

    Args:
        points: Resampled elevation trace
        segments: Segments to draw (committed or drag preview)
        aid_stations: Aid stations to mark
        drag_mile: Mile of the edge being dragged, drawn as a marker

    Returns:
        Altair layer chart, or None when there is nothing to draw
    """
    if not points or not segments:
        return None

    profile_df = tag_points(points)
    y_min_val = float(profile_df["elevation_ft"].min() - 50)
    y_max_val = float(profile_df["elevation_ft"].max() + 50)
    x_max_val = float(max(seg.end_mile for seg in segments))

    x_scale = alt.Scale(domain=[0.0, x_max_val], nice=False)
    y_scale = alt.Scale(domain=[y_min_val, y_max_val], nice=True)

    effort_scale = alt.Scale(
        domain=[EFFORT_LABELS[k] for k in EFFORT_COLORS],
        range=list(EFFORT_COLORS.values()),
    )

    bands = (
        alt.Chart(_segment_bands(segments))
        .mark_rect(opacity=0.35)
        .encode(
            x=alt.X("startMile:Q", title="Distance (mi)", scale=x_scale),
            x2="endMile:Q",
            color=alt.Color("effort:N", title="Effort", scale=effort_scale),
            tooltip=[
                alt.Tooltip("name:N", title="Segment"),
                alt.Tooltip("effort:N", title="Effort"),
                alt.Tooltip("startMile:Q", title="Start", format=".1f"),
                alt.Tooltip("endMile:Q", title="End", format=".1f"),
                alt.Tooltip("minutes:Q", title="Target (min)", format=".0f"),
            ],
        )
    )

    elevation_line = (
        alt.Chart(profile_df)
        .mark_line(color="#0f172a", strokeWidth=2)
        .encode(
            x=alt.X("mile:Q", title="Distance (mi)", scale=x_scale),
            y=alt.Y("elevation_ft:Q", title="Elevation (ft)", scale=y_scale),
            tooltip=[
                alt.Tooltip("mile:Q", title="Mile", format=".2f"),
                alt.Tooltip("elevation_ft:Q", title="Elevation", format=".0f"),
                alt.Tooltip("gradient_pct:Q", title="Grade (%)", format=".1f"),
                alt.Tooltip("terrain:N", title="Terrain"),
            ],
        )
    )

    charts = [bands, elevation_line]

    if aid_stations:
        aid_df = pd.DataFrame(
            [{"mile": s.mile, "label": s.name, "cutoff": s.cutoff_time or ""} for s in aid_stations]
        )
        aid_rules = (
            alt.Chart(aid_df)
            .mark_rule(strokeWidth=2, strokeDash=[5, 5], color="#3b82f6")
            .encode(
                x=alt.X("mile:Q", scale=x_scale),
                tooltip=[
                    alt.Tooltip("label:N", title="Aid station"),
                    alt.Tooltip("mile:Q", title="Mile", format=".1f"),
                    alt.Tooltip("cutoff:N", title="Cutoff"),
                ],
            )
        )
        aid_labels = (
            alt.Chart(aid_df)
            .mark_text(align="left", dx=5, dy=-5, fontSize=12, fontWeight="bold", color="#3b82f6")
            .encode(
                x=alt.X("mile:Q", scale=x_scale),
                y=alt.datum(y_max_val),
                text=alt.Text("label:N"),
            )
        )
        charts.extend([aid_rules, aid_labels])

    if drag_mile is not None:
        drag_rule = (
            alt.Chart(pd.DataFrame([{"mile": drag_mile}]))
            .mark_rule(strokeWidth=3, color=DRAG_MARKER_COLOR)
            .encode(x=alt.X("mile:Q", scale=x_scale))
        )
        charts.append(drag_rule)

    return alt.layer(*charts).properties(
        width=800,
        height=400,
        title="Elevation profile by segment effort",
    )


def render_pacer_segments(
    points: Sequence[ElevationPoint],
    segments: Sequence[Segment],
    aid_stations: Sequence[AidStation] = (),
    drag_mile: Optional[float] = None,
) -> None:
    """Render the effort-shaded elevation profile in the current Streamlit container."""
    chart = build_segments_chart(points, segments, aid_stations, drag_mile)
    if chart is None:
        st.warning("Not enough course data to draw the profile.")
        return
    logger.debug("Rendering %d segments over %d points", len(segments), len(points))
    st.altair_chart(chart, theme=None, use_container_width=True)
