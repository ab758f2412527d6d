"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later

Power targets from FTP, altitude and effort intensity.
"""

from __future__ import annotations

from typing import Mapping

from streamlit.logger import get_logger

from services.pacer.models import AthleteProfile, EffortLevel, PowerTargetTable
from utils.constants import MAX_ALTITUDE_ADJUSTMENT, TERRAIN_POWER_MULTIPLIERS
from utils.helpers import round_int

logger = get_logger(__name__)


class InvalidAthleteInputError(ValueError):
    """Raised by callers before invoking the power calculator."""


def _factor(intensity_factors: Mapping, effort: EffortLevel) -> float:
    if effort in intensity_factors:
        return float(intensity_factors[effort])
    return float(intensity_factors[effort.value])


def validate_athlete_inputs(
    ftp_watts: float,
    altitude_adjustment_factor: float,
    intensity_factors: Mapping,
) -> None:
    """Reject inputs the power calculator does not accept.

    Raises:
        InvalidAthleteInputError: non-positive FTP, altitude factor outside
            [0, 0.5], missing effort level, or intensity factor outside (0, 1].
    """
    if ftp_watts is None or ftp_watts <= 0:
        raise InvalidAthleteInputError(f"FTP must be positive, got {ftp_watts!r}")
    if altitude_adjustment_factor is None or not (
        0 <= altitude_adjustment_factor <= MAX_ALTITUDE_ADJUSTMENT
    ):
        raise InvalidAthleteInputError(
            f"Altitude adjustment must be within [0, {MAX_ALTITUDE_ADJUSTMENT}], "
            f"got {altitude_adjustment_factor!r}"
        )
    for effort in EffortLevel:
        try:
            value = _factor(intensity_factors, effort)
        except KeyError as e:
            raise InvalidAthleteInputError(f"Missing intensity factor for {effort.value}") from e
        if not 0 < value <= 1:
            raise InvalidAthleteInputError(
                f"Intensity factor for {effort.value} must be within (0, 1], got {value!r}"
            )


def compute_power_targets(
    ftp_watts: float,
    altitude_adjustment_factor: float,
    intensity_factors: Mapping,
) -> PowerTargetTable:
    """Build the power target table for every effort level and terrain.

    Inputs are assumed validated (see validate_athlete_inputs).

        adjusted_ftp        = ftp * (1 - altitude_factor)
        normalized[effort]  = adjusted_ftp * intensity[effort]
        climbing / flat / descent = normalized * 1.20 / 0.90 / 0.40

    Args:
        ftp_watts: Functional threshold power at sea level
        altitude_adjustment_factor: Fraction of FTP lost at race altitude
        intensity_factors: Intensity factor per effort level (str or EffortLevel keys)

    Returns:
        PowerTargetTable with unrounded watts
    """
    adjusted_ftp = ftp_watts * (1 - altitude_adjustment_factor)
    normalized = {effort: adjusted_ftp * _factor(intensity_factors, effort) for effort in EffortLevel}

    return PowerTargetTable(
        base_ftp=ftp_watts,
        adjusted_ftp=adjusted_ftp,
        normalized_power=normalized,
        climbing_power={
            e: watts * TERRAIN_POWER_MULTIPLIERS["climbing"] for e, watts in normalized.items()
        },
        flat_power={e: watts * TERRAIN_POWER_MULTIPLIERS["flat"] for e, watts in normalized.items()},
        descent_power={
            e: watts * TERRAIN_POWER_MULTIPLIERS["descent"] for e, watts in normalized.items()
        },
    )


def power_targets_for_athlete(profile: AthleteProfile) -> PowerTargetTable:
    """Validate an athlete profile and compute its power targets."""
    validate_athlete_inputs(
        profile.ftp_watts, profile.altitude_adjustment_factor, profile.intensity_factors
    )
    table = compute_power_targets(
        profile.ftp_watts, profile.altitude_adjustment_factor, profile.intensity_factors
    )
    logger.debug(
        "Power targets for FTP %s W: adjusted %.1f W", profile.ftp_watts, table.adjusted_ftp
    )
    return table


def power_range(table: PowerTargetTable, effort: EffortLevel) -> tuple[int, int]:
    """(low, high) watts for an effort: flat power to climbing power, rounded."""
    effort = EffortLevel(effort)
    return round_int(table.flat_power[effort]), round_int(table.climbing_power[effort])
