"""Tests for wine_clustering.persistence."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.cluster import KMeans
from sklearn.pipeline import Pipeline

from wine_clustering import persistence
from wine_clustering.errors import ArtifactWriteError, ConversionError, LoadError
from wine_clustering.features import FEATURE_COLUMNS, build_feature_stage
from wine_clustering.persistence import (
    describe_onnx_graph,
    export_onnx,
    frame_schema,
    load_native,
    save_native,
)


class Doubler(TransformerMixin, BaseEstimator):
    def fit(self, X, y=None):
        return self

    def transform(self, X):
        return np.asarray(X) * 2


class TestNativeArchive:
    def test_save_and_load(self, tmp_path: Path, fitted_pipeline, wine_df, capsys) -> None:
        path = save_native(fitted_pipeline, frame_schema(wine_df), tmp_path / "model.joblib")
        assert f"Model saved to: {path}" in capsys.readouterr().out

        bundle = load_native(path)
        assert bundle["schema"]["columns"] == FEATURE_COLUMNS
        np.testing.assert_array_equal(bundle["pipeline"].predict(wine_df), fitted_pipeline.predict(wine_df))

    def test_write_failure(self, tmp_path: Path, fitted_pipeline, wine_df) -> None:
        target = tmp_path / "taken"
        target.mkdir()
        with pytest.raises(ArtifactWriteError):
            save_native(fitted_pipeline, frame_schema(wine_df), target)

    def test_write_failure_is_an_os_error(self) -> None:
        assert issubclass(ArtifactWriteError, OSError)

    def test_load_missing(self, tmp_path: Path) -> None:
        with pytest.raises(LoadError):
            load_native(tmp_path / "missing.joblib")


class TestExportOnnx:
    def test_one_input_per_column(self, onnx_path: Path) -> None:
        graph = describe_onnx_graph(onnx_path)
        assert [v["name"] for v in graph["inputs"]] == FEATURE_COLUMNS
        for value in graph["inputs"]:
            assert value["elem_type"] == "FLOAT"
            assert value["shape"][1] == 1

    def test_declares_label_and_scores(self, onnx_path: Path) -> None:
        graph = describe_onnx_graph(onnx_path)
        outputs = {v["name"]: v for v in graph["outputs"]}
        assert outputs["label"]["elem_type"] == "INT64"
        assert outputs["scores"]["elem_type"] == "FLOAT"

    def test_prints_location(self, tmp_path: Path, fitted_pipeline, wine_df, capsys) -> None:
        path = export_onnx(fitted_pipeline, wine_df, tmp_path / "m.onnx")
        assert f"Model saved to ONNX format at {path}" in capsys.readouterr().out

    def test_unsupported_stage(self, tmp_path: Path, wine_df) -> None:
        pipeline = Pipeline(
            steps=[
                ("features", build_feature_stage()),
                ("double", Doubler()),
                ("kmeans", KMeans(n_clusters=3, n_init=1, random_state=0)),
            ]
        ).fit(wine_df)
        with pytest.raises(ConversionError):
            export_onnx(pipeline, wine_df, tmp_path / "bad.onnx")
        assert not (tmp_path / "bad.onnx").exists()

    def test_describe_missing_graph(self, tmp_path: Path) -> None:
        with pytest.raises(LoadError):
            describe_onnx_graph(tmp_path / "missing.onnx")


class TestRun:
    def test_skipped_without_pipeline(self, config) -> None:
        assert persistence.run(config=config, context={})["status"] == "skipped"

    def test_saves_both_forms(self, config, wine_df, fitted_pipeline) -> None:
        context = {"wine_df": wine_df, "pipeline": fitted_pipeline}
        result = persistence.run(config=config, context=context)

        assert result["status"] == "ok"
        assert Path(result["artifacts"]["native_model"]).exists()
        assert Path(result["artifacts"]["onnx_model"]).exists()
        assert result["onnx_inputs"] == FEATURE_COLUMNS
        assert context["onnx_graph"]["outputs"]

    def test_archive_records_configured_feature_columns(self, config, wine_df, fitted_pipeline) -> None:
        context = {"wine_df": wine_df, "pipeline": fitted_pipeline, "feature_columns": ["Proline", "Alcohol"]}
        result = persistence.run(config=config, context=context)

        schema = load_native(result["artifacts"]["native_model"])["schema"]
        assert schema["feature_columns"] == ["Proline", "Alcohol"]
        assert schema["columns"] == FEATURE_COLUMNS


class TestFrameSchema:
    def test_feature_columns_default_to_frame_columns(self, wine_df) -> None:
        assert frame_schema(wine_df)["feature_columns"] == FEATURE_COLUMNS
