import sys
from pathlib import Path

import pytest


# Ensure project root is importable for tests
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


from persistence.csv_storage import CsvStorage
from services.pacer.models import ElevationPoint, Segment
from services.pacer.planner import PlannerState


def make_segment(seg_id: str, order: int, start: float, end: float, minutes: float = 60.0) -> Segment:
    return Segment(
        id=seg_id,
        order=order,
        start_mile=start,
        end_mile=end,
        start_name="Start" if order == 0 else f"Aid {order}",
        end_name=f"Aid {order + 1}",
        target_time_minutes=minutes,
    )


@pytest.fixture
def storage(tmp_path):
    return CsvStorage(base_dir=tmp_path)


@pytest.fixture
def three_segments():
    """100-mile course split at miles 30 and 70."""
    return [
        make_segment("s1", 0, 0.0, 30.0, 120.0),
        make_segment("s2", 1, 30.0, 70.0, 180.0),
        make_segment("s3", 2, 70.0, 100.0, 150.0),
    ]


@pytest.fixture
def planner_state(three_segments):
    return PlannerState.from_segments(three_segments, 100.0)


@pytest.fixture
def rolling_points():
    """Synthetic 3-mile trace: climbing mile 0-1, flat 1-2, descending 2-3.

    Points every 0.25 mi along the equator (1 mile ~ 0.014457 deg of longitude).
    """
    deg_per_mile = 1609.344 / 111_195.0
    points = []
    elevation = 1000.0
    for i in range(13):
        mile = i * 0.25
        if i > 0:
            if mile <= 1.0:
                gradient = 5.0
            elif mile <= 2.0:
                gradient = 0.0
            else:
                gradient = -5.0
            elevation += gradient / 100 * 0.25 * 5280
        else:
            gradient = 0.0
        points.append(
            ElevationPoint(
                mile=mile,
                elevation_ft=elevation,
                lat=0.0,
                lon=mile * deg_per_mile,
                gradient_pct=gradient,
            )
        )
    return points
