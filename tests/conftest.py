from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import numpy as np
import pandas as pd
import pytest
from sklearn.datasets import load_wine

from wine_clustering.clustering import build_pipeline, fit_pipeline
from wine_clustering.persistence import export_onnx
from wine_clustering.records import WINE_COLUMNS


@pytest.fixture(scope="session")
def wine_df() -> pd.DataFrame:
    bunch = load_wine(as_frame=True)
    return pd.DataFrame(bunch.data.to_numpy(), columns=WINE_COLUMNS).astype(np.float32)


@pytest.fixture
def wine_csv(tmp_path: Path, wine_df: pd.DataFrame) -> Path:
    path = tmp_path / "wine-clustering.csv"
    wine_df.to_csv(path, index=False)
    return path


@pytest.fixture
def config(tmp_path: Path, wine_csv: Path) -> Dict[str, Any]:
    outputs = tmp_path / "outputs"
    return {
        "paths": {
            "data": str(wine_csv),
            "model": str(outputs / "models" / "wineClusteringModel.joblib"),
            "onnx_model": str(outputs / "models" / "wineClusteringModel.onnx"),
            "outputs_dir": str(outputs),
        },
        "clustering": {"n_clusters": 3, "random_state": 0, "n_init": 10},
    }


@pytest.fixture(scope="session")
def fitted_pipeline(wine_df: pd.DataFrame):
    return fit_pipeline(build_pipeline(n_clusters=3, random_state=0), wine_df)


@pytest.fixture(scope="session")
def onnx_path(tmp_path_factory: pytest.TempPathFactory, fitted_pipeline, wine_df: pd.DataFrame) -> Path:
    return export_onnx(fitted_pipeline, wine_df, tmp_path_factory.mktemp("models") / "wine.onnx")
