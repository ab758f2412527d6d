"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later

GPX file parser for race course tracks.

Only positions and elevation are read; timestamps are irrelevant for course planning.
"""

from __future__ import annotations

from typing import Optional

import pandas as pd
from lxml import etree
from streamlit.logger import get_logger

logger = get_logger(__name__)

GPX_NAMESPACES = {
    "gpx11": "http://www.topografix.com/GPX/1/1",
    "gpx10": "http://www.topografix.com/GPX/1/0",
}


def _track_points(root: etree._Element) -> list:
    for prefix in GPX_NAMESPACES:
        trkpts = root.xpath(f".//{prefix}:trkpt", namespaces=GPX_NAMESPACES)
        if trkpts:
            return trkpts
    # Files exported without a namespace
    return root.xpath(".//trkpt")


def parse_gpx_to_timeseries(gpx_bytes: bytes, min_points: int = 2) -> pd.DataFrame:
    """Parse GPX file into a course trace DataFrame.

    Args:
        gpx_bytes: Raw GPX file content as bytes
        min_points: Minimum number of usable track points (default: 2)

    Returns:
        DataFrame with columns: lat, lon, elevationM (NaN where the point has no <ele>)
        Empty DataFrame if parsing fails or fewer than min_points points
    """
    try:
        root = etree.fromstring(gpx_bytes)
    except etree.XMLSyntaxError as e:
        logger.warning(f"Invalid GPX XML: {e}", exc_info=True)
        return pd.DataFrame()

    trkpts = _track_points(root)
    if not trkpts:
        logger.debug("No track points found in GPX")
        return pd.DataFrame()

    rows = []
    for trkpt in trkpts:
        lat = trkpt.get("lat")
        lon = trkpt.get("lon")
        if lat is None or lon is None:
            continue
        try:
            lat_val = float(lat)
            lon_val = float(lon)
        except (ValueError, TypeError) as e:
            logger.debug(f"Skipping invalid track point: {e}")
            continue

        elevation_val: Optional[float] = None
        ele_elem = next(
            (
                child
                for child in trkpt
                if isinstance(child.tag, str) and etree.QName(child).localname == "ele"
            ),
            None,
        )
        if ele_elem is not None and ele_elem.text:
            try:
                elevation_val = float(ele_elem.text)
            except (ValueError, TypeError):
                pass

        rows.append({"lat": lat_val, "lon": lon_val, "elevationM": elevation_val})

    if len(rows) < min_points:
        logger.warning(f"Insufficient track points: {len(rows)} < {min_points}")
        return pd.DataFrame()

    df = pd.DataFrame(rows, columns=["lat", "lon", "elevationM"])
    df["elevationM"] = pd.to_numeric(df["elevationM"], errors="coerce")

    # Drop consecutive repeats only; loop courses legitimately revisit positions
    repeated = (df["lat"] == df["lat"].shift()) & (df["lon"] == df["lon"].shift())
    df = df[~repeated].reset_index(drop=True)

    logger.debug(f"Parsed GPX: {len(df)} points")
    return df
