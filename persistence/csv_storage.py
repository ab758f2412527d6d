"""
CSV storage abstraction using pandas with basic file locking.

Notes:
- Always write CSV with '.' decimal; UI formatting uses the display locale separately.
- Floats are read back with round-trip precision so saved plans rehydrate exactly.
- Only empty cells are treated as missing; names like "NA" or "None" stay text.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd
from pandas.errors import EmptyDataError
import portalocker
from streamlit.logger import get_logger

logger = get_logger(__name__)


@dataclass
class CsvStorage:
    base_dir: Path

    def _path(self, relative: str | Path) -> Path:
        p = self.base_dir / Path(relative)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p

    def exists(self, relative: str | Path) -> bool:
        return (self.base_dir / Path(relative)).exists()

    def read_csv(
        self,
        relative: str | Path,
        dtypes: Optional[Dict[str, str]] = None,
        text_cols: Optional[Iterable[str]] = None,
    ) -> pd.DataFrame:
        """Read a CSV under a shared lock.

        Args:
            relative: Path relative to the storage base dir
            dtypes: Columns coerced after parsing (missing ones are added empty)
            text_cols: Columns parsed as text, so values like "007" or "1e3"
                are not turned into numbers. Empty cells stay missing.
        """
        path = self._path(relative)
        text_cols = list(text_cols or [])
        if not path.exists():
            # Return empty DataFrame with provided dtypes as columns if given
            return self._empty_frame(dtypes, text_cols)
        with portalocker.Lock(str(path), timeout=10, flags=portalocker.LOCK_SH):
            try:
                header = pd.read_csv(path, nrows=0).columns
                df = pd.read_csv(
                    path,
                    dtype={col: str for col in text_cols if col in header},
                    float_precision="round_trip",
                    keep_default_na=False,
                    na_values=[""],
                )
            except EmptyDataError:
                return self._empty_frame(dtypes, text_cols)
        for col in text_cols:
            if col not in df.columns:
                df[col] = pd.Series(dtype=object)
        if dtypes:
            for col, typ in dtypes.items():
                if col in df.columns:
                    try:
                        df[col] = df[col].astype(typ)
                    except (TypeError, ValueError):
                        # Leave as-is if coercion fails; upstream should validate
                        logger.debug("Could not coerce column %s to %s in %s", col, typ, path)
                else:
                    df[col] = pd.Series(dtype=typ)
        return df

    @staticmethod
    def _empty_frame(dtypes: Optional[Dict[str, str]], text_cols: List[str]) -> pd.DataFrame:
        columns = list(text_cols) + [col for col in (dtypes or {}) if col not in text_cols]
        df = pd.DataFrame(columns=columns)
        return df.astype(dtypes) if dtypes else df

    def write_csv(self, relative: str | Path, df: pd.DataFrame) -> None:
        path = self._path(relative)
        # Use a temp buffer then write under exclusive lock
        csv_buf = io.StringIO()
        df.to_csv(csv_buf, index=False)
        data = csv_buf.getvalue()
        with portalocker.Lock(str(path), timeout=10, flags=portalocker.LOCK_EX):
            path.write_text(data)

    def delete(self, relative: str | Path) -> bool:
        path = self.base_dir / Path(relative)
        if not path.exists():
            return False
        path.unlink()
        return True

    def upsert(
        self,
        relative: str | Path,
        key_cols: List[str],
        row: Dict[str, object],
        text_cols: Optional[Iterable[str]] = None,
    ) -> None:
        df = self.read_csv(relative, text_cols=text_cols)
        if df.empty:
            self.write_csv(relative, pd.DataFrame([row]))
            return
        # Build mask for match
        mask = pd.Series([True] * len(df))
        for key in key_cols:
            mask &= df[key].astype(str) == str(row[key])
        for k in row.keys():
            if k not in df.columns:
                df[k] = None
        if mask.any():
            # Update first match
            idx = df.index[mask][0]
            for k, v in row.items():
                df[k] = df[k].astype(object)
                df.at[idx, k] = v
        else:
            df = pd.concat([df, pd.DataFrame([row])], ignore_index=True)
        self.write_csv(relative, df)

    def delete_rows(
        self,
        relative: str | Path,
        key_col: str,
        value: str,
        text_cols: Optional[Iterable[str]] = None,
    ) -> int:
        df = self.read_csv(relative, text_cols=text_cols)
        if df.empty or key_col not in df.columns:
            return 0
        mask = df[key_col].astype(str) == str(value)
        removed = int(mask.sum())
        if removed:
            self.write_csv(relative, df[~mask])
        return removed
