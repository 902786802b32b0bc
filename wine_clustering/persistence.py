from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Sequence

import joblib
import onnx
import pandas as pd
from google.protobuf.message import DecodeError
from skl2onnx import to_onnx
from skl2onnx.common.exceptions import MissingConverter, MissingShapeCalculator
from sklearn.pipeline import Pipeline

from wine_clustering.errors import ArtifactWriteError, ConversionError, LoadError
from wine_clustering.utils import PipelinePaths


def frame_schema(df: pd.DataFrame, feature_columns: Sequence[str] | None = None) -> Dict[str, Any]:
    return {
        "columns": list(df.columns),
        "feature_columns": list(feature_columns if feature_columns is not None else df.columns),
        "dtypes": {col: str(dtype) for col, dtype in df.dtypes.items()},
    }


def save_native(pipeline: Pipeline, schema: Dict[str, Any], path: str | Path) -> Path:
    """Write the fitted pipeline together with its input schema as one joblib archive."""
    out_path = Path(path)
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump({"pipeline": pipeline, "schema": schema}, out_path)
    except OSError as exc:
        raise ArtifactWriteError(f"Could not write model archive to {out_path}: {exc}") from exc
    print(f"Model saved to: {out_path}")
    return out_path


def load_native(path: str | Path) -> Dict[str, Any]:
    in_path = Path(path)
    if not in_path.exists():
        raise LoadError(f"Model archive not found at {in_path}.")
    try:
        bundle = joblib.load(in_path)
    except (OSError, EOFError, ValueError) as exc:
        raise LoadError(f"Could not read model archive {in_path}: {exc}") from exc
    if not isinstance(bundle, dict) or "pipeline" not in bundle:
        raise LoadError(f"{in_path} does not contain a fitted pipeline.")
    return bundle


def export_onnx(
    pipeline: Pipeline,
    sample_df: pd.DataFrame,
    path: str | Path,
    target_opset: int | None = None,
) -> Path:
    """Convert the fitted pipeline to ONNX.

    One row of the training frame fixes the graph inputs: skl2onnx declares a
    ``[None, 1]`` tensor per dataframe column, named after the column.
    """
    out_path = Path(path)
    try:
        onx = to_onnx(pipeline, X=sample_df.head(1), target_opset=target_opset)
    except (MissingConverter, MissingShapeCalculator, RuntimeError, NotImplementedError, TypeError) as exc:
        raise ConversionError(f"Pipeline could not be converted to ONNX: {exc}") from exc

    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with out_path.open("wb") as f:
            f.write(onx.SerializeToString())
    except OSError as exc:
        raise ArtifactWriteError(f"Could not write ONNX model to {out_path}: {exc}") from exc
    print(f"Model saved to ONNX format at {out_path}")
    return out_path


def _value_info(value: onnx.ValueInfoProto) -> Dict[str, Any]:
    tensor_type = value.type.tensor_type
    shape: List[Any] = []
    for dim in tensor_type.shape.dim:
        if dim.HasField("dim_value"):
            shape.append(int(dim.dim_value))
        else:
            shape.append(dim.dim_param or None)
    return {
        "name": value.name,
        "elem_type": onnx.TensorProto.DataType.Name(tensor_type.elem_type),
        "shape": shape,
    }


def describe_onnx_graph(path: str | Path) -> Dict[str, List[Dict[str, Any]]]:
    in_path = Path(path)
    try:
        model = onnx.load(str(in_path))
    except (OSError, DecodeError) as exc:
        raise LoadError(f"Could not read ONNX graph {in_path}: {exc}") from exc
    return {
        "inputs": [_value_info(v) for v in model.graph.input],
        "outputs": [_value_info(v) for v in model.graph.output],
    }


def run(config: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
    if "pipeline" not in context or "wine_df" not in context:
        return {
            "step": "persistence",
            "status": "skipped",
            "message": "No fitted pipeline found in context. Run clustering first.",
        }

    pipeline: Pipeline = context["pipeline"]
    df: pd.DataFrame = context["wine_df"]
    export_cfg = config.get("export", {})
    paths = PipelinePaths.from_config(config)

    model_path = save_native(pipeline, frame_schema(df, context.get("feature_columns")), paths.model_path)
    onnx_path = export_onnx(
        pipeline,
        df,
        paths.onnx_path,
        target_opset=export_cfg.get("target_opset"),
    )
    graph = describe_onnx_graph(onnx_path)

    context["model_path"] = model_path
    context["onnx_path"] = onnx_path
    context["onnx_graph"] = graph

    return {
        "step": "persistence",
        "status": "ok",
        "message": "Model saved natively and exported to ONNX.",
        "artifacts": {
            "native_model": str(model_path),
            "onnx_model": str(onnx_path),
        },
        "onnx_inputs": [v["name"] for v in graph["inputs"]],
        "onnx_outputs": [v["name"] for v in graph["outputs"]],
    }
