from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Tuple

import numpy as np
import onnxruntime as ort
import pandas as pd
from onnxruntime.capi.onnxruntime_pybind11_state import (
    Fail,
    InvalidArgument,
    InvalidGraph,
    InvalidProtobuf,
    NoSuchFile,
)

from wine_clustering.errors import FeatureConfigError, LoadError, ShapeMismatchError
from wine_clustering.features import FEATURE_COLUMNS, validate_feature_columns
from wine_clustering.records import DEFAULT_SAMPLES, RECORD_FIELDS, ClusterAssignment, WineRecord
from wine_clustering.reporting import report_outputs
from wine_clustering.utils import PipelinePaths

ONNX_DTYPES: Dict[str, Any] = {
    "tensor(float)": np.float32,
    "tensor(double)": np.float64,
    "tensor(int64)": np.int64,
    "tensor(int32)": np.int32,
    "tensor(bool)": np.bool_,
}


class OnnxClusterSession:
    """onnxruntime session over an exported clustering graph.

    Feeds are built from the graph's declared inputs: a graph exported from a
    dataframe has one ``[None, 1]`` input per column, while a graph exported
    from a matrix has a single ``[None, n]`` input. Both are handled.
    """

    def __init__(
        self,
        path: str | Path,
        label_output: str = "label",
        score_output: str = "scores",
    ):
        self.path = Path(path)
        if not self.path.exists():
            raise LoadError(f"ONNX model not found at {self.path}.")
        try:
            self._session = ort.InferenceSession(str(self.path), providers=["CPUExecutionProvider"])
        except (Fail, InvalidArgument, InvalidGraph, InvalidProtobuf, NoSuchFile, RuntimeError) as exc:
            raise LoadError(f"Could not load ONNX model {self.path}: {exc}") from exc
        self.inputs = [(i.name, list(i.shape), i.type) for i in self._session.get_inputs()]
        self.outputs = [(o.name, list(o.shape), o.type) for o in self._session.get_outputs()]
        self.label_output = self._resolve_output(label_output, ("tensor(int64)", "tensor(int32)"))
        self.score_output = self._resolve_output(score_output, ("tensor(float)", "tensor(double)"))

    def _resolve_output(self, preferred: str, onnx_types: Tuple[str, ...]) -> str:
        names = [name for name, _, _ in self.outputs]
        if preferred in names:
            return preferred
        for name, _, onnx_type in self.outputs:
            if onnx_type in onnx_types:
                return name
        raise LoadError(f"{self.path} has no '{preferred}' output; declared outputs are {names}.")

    def __enter__(self) -> "OnnxClusterSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._session = None

    @property
    def closed(self) -> bool:
        return self._session is None

    @property
    def input_names(self) -> List[str]:
        return [name for name, _, _ in self.inputs]

    def build_feed(
        self,
        values: Mapping[str, float] | WineRecord,
        columns: Sequence[str] = FEATURE_COLUMNS,
    ) -> Dict[str, np.ndarray]:
        if isinstance(values, WineRecord):
            values = asdict(values)

        if len(self.inputs) == 1 and self.inputs[0][0] not in values:
            name, _, onnx_type = self.inputs[0]
            row = [values[c] for c in columns]
            return {name: np.array([row], dtype=ONNX_DTYPES.get(onnx_type, np.float32))}

        feed: Dict[str, np.ndarray] = {}
        for name, _, onnx_type in self.inputs:
            if name not in values:
                raise ShapeMismatchError(f"No value supplied for graph input '{name}'.")
            feed[name] = np.array([[values[name]]], dtype=ONNX_DTYPES.get(onnx_type, np.float32))
        return feed

    def build_batch_feed(self, df: pd.DataFrame, columns: Sequence[str] = FEATURE_COLUMNS) -> Dict[str, np.ndarray]:
        if len(self.inputs) == 1 and self.inputs[0][0] not in df.columns:
            name, _, onnx_type = self.inputs[0]
            return {name: df[list(columns)].to_numpy(dtype=ONNX_DTYPES.get(onnx_type, np.float32))}
        missing = [name for name in self.input_names if name not in df.columns]
        if missing:
            raise ShapeMismatchError(f"No column supplied for graph inputs {missing}.")
        return {
            name: df[[name]].to_numpy(dtype=ONNX_DTYPES.get(onnx_type, np.float32))
            for name, _, onnx_type in self.inputs
        }

    def _check_feed(self, feed: Mapping[str, Any]) -> None:
        declared = {name: (shape, onnx_type) for name, shape, onnx_type in self.inputs}
        missing = [n for n in declared if n not in feed]
        extra = [n for n in feed if n not in declared]
        if missing or extra:
            raise ShapeMismatchError(f"Input names do not match the graph: missing={missing}, unexpected={extra}.")

        for name, tensor in feed.items():
            shape, onnx_type = declared[name]
            if not isinstance(tensor, np.ndarray):
                raise ShapeMismatchError(f"Input '{name}' must be a numpy array, got {type(tensor).__name__}.")
            expected_dtype = ONNX_DTYPES.get(onnx_type)
            if expected_dtype is not None and tensor.dtype != expected_dtype:
                raise ShapeMismatchError(
                    f"Input '{name}' has dtype {tensor.dtype}, graph declares {onnx_type}."
                )
            if tensor.ndim != len(shape):
                raise ShapeMismatchError(
                    f"Input '{name}' has shape {list(tensor.shape)}, graph declares {shape}."
                )
            for actual, dim in zip(tensor.shape, shape):
                if isinstance(dim, int) and actual != dim:
                    raise ShapeMismatchError(
                        f"Input '{name}' has shape {list(tensor.shape)}, graph declares {shape}."
                    )

    def run(self, feed: Mapping[str, Any]) -> List[Tuple[str, Any]]:
        if self._session is None:
            raise ValueError(f"Inference session for {self.path} is closed.")
        self._check_feed(feed)
        results = self._session.run(None, dict(feed))
        return [(name, value) for (name, _, _), value in zip(self.outputs, results)]

    def predict(
        self,
        values: Mapping[str, float] | WineRecord,
        columns: Sequence[str] = FEATURE_COLUMNS,
    ) -> ClusterAssignment:
        return self.to_assignment(self.run(self.build_feed(values, columns)))

    def to_assignment(self, outputs: Sequence[Tuple[str, Any]]) -> ClusterAssignment:
        outputs = dict(outputs)
        label = np.asarray(outputs[self.label_output]).reshape(-1)
        scores = np.asarray(outputs[self.score_output]).reshape(-1)
        return ClusterAssignment(cluster_id=int(label[0]), scores=tuple(float(s) for s in scores))


def _configured_samples(config: Dict[str, Any]) -> List[WineRecord]:
    samples_cfg = config.get("inference", {}).get("samples")
    if not samples_cfg:
        return list(DEFAULT_SAMPLES)
    samples: List[WineRecord] = []
    for i, sample in enumerate(samples_cfg, start=1):
        validate_feature_columns(list(sample))
        missing = [f for f in RECORD_FIELDS if f not in sample]
        if missing:
            raise FeatureConfigError(f"Inference sample {i} is missing fields {missing}.")
        samples.append(WineRecord(**{k: float(v) for k, v in sample.items()}))
    return samples


def run(config: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
    paths = PipelinePaths.from_config(config)
    onnx_path = Path(context.get("onnx_path", paths.onnx_path))
    inf_cfg = config.get("inference", {})
    columns = context.get("feature_columns", config.get("features", {}).get("columns", FEATURE_COLUMNS))
    samples = _configured_samples(config)

    assignments: List[ClusterAssignment] = []
    printed: List[List[str]] = []
    with OnnxClusterSession(
        onnx_path,
        label_output=inf_cfg.get("label_output", "label"),
        score_output=inf_cfg.get("score_output", "scores"),
    ) as session:
        for i, sample in enumerate(samples, start=1):
            print(f"Sample {i}:")
            outputs = session.run(session.build_feed(sample, columns))
            printed.append(report_outputs(outputs))
            assignments.append(session.to_assignment(outputs))

    context["samples"] = samples
    context["onnx_assignments"] = assignments

    return {
        "step": "inference",
        "status": "ok",
        "message": f"ONNX inference ran on {len(samples)} samples.",
        "onnx_model": str(onnx_path),
        "predictions": [
            {"cluster_id": a.cluster_id, "scores": list(a.scores)} for a in assignments
        ],
        "printed": printed,
    }
