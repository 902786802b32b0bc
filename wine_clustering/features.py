from __future__ import annotations

from typing import Iterable, List, Sequence

import numpy as np
import pandas as pd
from sklearn.compose import ColumnTransformer
from sklearn.preprocessing import FunctionTransformer

from wine_clustering.errors import FeatureConfigError
from wine_clustering.records import RECORD_FIELDS, WINE_COLUMNS, WineRecord

FEATURE_COLUMNS: List[str] = list(WINE_COLUMNS)


def validate_feature_columns(columns: Sequence[str]) -> List[str]:
    unknown = [c for c in columns if c not in RECORD_FIELDS]
    if unknown:
        raise FeatureConfigError(f"Unknown feature columns: {unknown}. Expected names from {list(RECORD_FIELDS)}.")
    duplicates = sorted({c for c in columns if list(columns).count(c) > 1})
    if duplicates:
        raise FeatureConfigError(f"Duplicate feature columns: {duplicates}.")
    if not columns:
        raise FeatureConfigError("No feature columns configured.")
    return list(columns)


def assemble_record(record: WineRecord, columns: Sequence[str] = FEATURE_COLUMNS) -> np.ndarray:
    columns = validate_feature_columns(columns)
    return np.array([getattr(record, c) for c in columns], dtype=np.float32)


def assemble_features(
    records: pd.DataFrame | Iterable[WineRecord],
    columns: Sequence[str] = FEATURE_COLUMNS,
) -> np.ndarray:
    """Stack records into an (n_rows, n_columns) float32 matrix in column order."""
    columns = validate_feature_columns(columns)
    if isinstance(records, pd.DataFrame):
        return records[columns].to_numpy(dtype=np.float32)
    rows = [[getattr(r, c) for c in columns] for r in records]
    return np.array(rows, dtype=np.float32).reshape(-1, len(columns))


def build_feature_stage(columns: Sequence[str] = FEATURE_COLUMNS) -> ColumnTransformer:
    # Identity transform over named columns keeps one ONNX input per column.
    columns = validate_feature_columns(columns)
    return ColumnTransformer(
        transformers=[("concat", FunctionTransformer(), list(columns))],
        remainder="drop",
    )
