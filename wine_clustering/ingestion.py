from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterator

import numpy as np
import pandas as pd

from wine_clustering.errors import LoadError
from wine_clustering.records import WINE_COLUMNS, WineRecord
from wine_clustering.utils import PipelinePaths


def load_wine_csv(path: str | Path, separator: str = ",", has_header: bool = True) -> pd.DataFrame:
    """Read the wine CSV, mapping columns to record fields by position."""
    local_path = Path(path)
    if not local_path.exists():
        raise LoadError(f"Dataset file not found at {local_path}.")

    header = 0 if has_header else None
    try:
        df = pd.read_csv(local_path, sep=separator, header=header)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise LoadError(f"Could not parse {local_path}: {exc}") from exc

    if df.shape[1] != len(WINE_COLUMNS):
        raise LoadError(
            f"Expected {len(WINE_COLUMNS)} columns in {local_path}, found {df.shape[1]}. "
            f"Check the separator ({separator!r})."
        )
    df.columns = WINE_COLUMNS
    if df.empty:
        raise LoadError(f"No data rows in {local_path}.")

    numeric = df.apply(pd.to_numeric, errors="coerce")
    bad_cells = numeric.isna() & df.notna()
    if bad_cells.any().any():
        row, col = next(zip(*np.nonzero(bad_cells.to_numpy())))
        raise LoadError(
            f"Non-numeric value {df.iat[row, col]!r} in column {WINE_COLUMNS[col]} "
            f"(row {row + 1}) of {local_path}."
        )
    if numeric.isna().any().any():
        missing = [c for c in WINE_COLUMNS if numeric[c].isna().any()]
        raise LoadError(f"Missing values in columns {missing} of {local_path}.")

    return numeric.astype(np.float32)


def iter_records(df: pd.DataFrame) -> Iterator[WineRecord]:
    for row in df[WINE_COLUMNS].itertuples(index=False, name=None):
        yield WineRecord(*(float(v) for v in row))


def run(config: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
    dataset_cfg = config.get("dataset", {})
    paths = PipelinePaths.from_config(config)

    df = load_wine_csv(
        paths.data_path,
        separator=dataset_cfg.get("separator", ","),
        has_header=dataset_cfg.get("has_header", True),
    )
    context["wine_df"] = df

    return {
        "step": "ingestion",
        "status": "ok",
        "dataset_name": dataset_cfg.get("name", "wine"),
        "local_path": str(paths.data_path),
        "rows": int(df.shape[0]),
        "columns": int(df.shape[1]),
        "message": "Dataset loaded into memory.",
    }
