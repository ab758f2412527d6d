"""
Configuration loading utilities.

Loads environment variables from `.env`, falls back to defaults for invalid
numeric values, and ensures data directories exist.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

from dotenv import load_dotenv, find_dotenv
from streamlit.logger import get_logger

from utils.constants import (
    DEFAULT_ALTITUDE_ADJUSTMENT,
    DEFAULT_GPX_SAMPLE_MILES,
    DEFAULT_INTENSITY_FACTORS,
    DEFAULT_RACE_START_TIME,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class Config:
    data_dir: Path
    plans_dir: Path
    default_altitude_adjustment: float = DEFAULT_ALTITUDE_ADJUSTMENT
    default_intensity_factors: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_INTENSITY_FACTORS)
    )
    race_start_time: str = DEFAULT_RACE_START_TIME
    gpx_sample_miles: float = DEFAULT_GPX_SAMPLE_MILES


def _ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid value for %s: %r, using default %s", name, raw, default)
        return default


def load_config() -> Config:
    """Load configuration from environment and provision directories."""
    load_dotenv(find_dotenv(), override=True)

    data_dir_str = os.getenv("DATA_DIR", "./data")
    data_dir = Path(data_dir_str).expanduser().resolve()
    plans_dir = data_dir / "race_pacing"

    default_altitude_adjustment = _env_float(
        "DEFAULT_ALTITUDE_ADJUSTMENT", DEFAULT_ALTITUDE_ADJUSTMENT
    )
    intensity_factors = {
        "safe": _env_float("IF_SAFE", DEFAULT_INTENSITY_FACTORS["safe"]),
        "tempo": _env_float("IF_TEMPO", DEFAULT_INTENSITY_FACTORS["tempo"]),
        "pushing": _env_float("IF_PUSHING", DEFAULT_INTENSITY_FACTORS["pushing"]),
    }
    race_start_time = os.getenv("RACE_START_TIME", DEFAULT_RACE_START_TIME)
    gpx_sample_miles = _env_float("GPX_SAMPLE_MILES", DEFAULT_GPX_SAMPLE_MILES)
    if gpx_sample_miles <= 0:
        gpx_sample_miles = DEFAULT_GPX_SAMPLE_MILES

    logger.debug("DATA_DIR: %s", data_dir)

    _ensure_dir(data_dir)
    _ensure_dir(plans_dir)

    return Config(
        data_dir=data_dir,
        plans_dir=plans_dir,
        default_altitude_adjustment=default_altitude_adjustment,
        default_intensity_factors=intensity_factors,
        race_start_time=race_start_time,
        gpx_sample_miles=gpx_sample_miles,
    )
