from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Sequence

import numpy as np
import pandas as pd
from sklearn.pipeline import Pipeline

from wine_clustering.errors import ParityError
from wine_clustering.features import FEATURE_COLUMNS
from wine_clustering.inference import OnnxClusterSession
from wine_clustering.persistence import load_native
from wine_clustering.utils import PipelinePaths


def compare_predictions(
    pipeline: Pipeline,
    session: OnnxClusterSession,
    df: pd.DataFrame,
    columns: Sequence[str] = FEATURE_COLUMNS,
    rtol: float = 1e-4,
    atol: float = 1e-4,
) -> Dict[str, Any]:
    """Score the same rows natively and through ONNX and measure the disagreement."""
    native_labels = pipeline.predict(df)
    native_scores = pipeline.transform(df)

    outputs = dict(session.run(session.build_batch_feed(df, columns)))
    onnx_labels = np.asarray(outputs[session.label_output]).reshape(-1)
    onnx_scores = np.asarray(outputs[session.score_output]).reshape(native_scores.shape)

    label_mismatches = int(np.sum(native_labels != onnx_labels))
    score_diff = np.abs(native_scores.astype(np.float64) - onnx_scores.astype(np.float64))
    return {
        "rows": int(len(df)),
        "label_mismatches": label_mismatches,
        "label_agreement": float(1.0 - label_mismatches / max(len(df), 1)),
        "max_abs_score_diff": float(score_diff.max()) if score_diff.size else 0.0,
        "scores_close": bool(np.allclose(native_scores, onnx_scores, rtol=rtol, atol=atol)),
    }


def run(config: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
    if "wine_df" not in context:
        return {
            "step": "evaluation",
            "status": "skipped",
            "message": "No wine dataframe found in context. Run ingestion first.",
        }

    eval_cfg = config.get("evaluation", {})
    strict = bool(eval_cfg.get("strict", True))
    rtol = float(eval_cfg.get("rtol", 1e-4))
    atol = float(eval_cfg.get("atol", 1e-4))

    paths = PipelinePaths.from_config(config)
    # Reload from disk so the archive itself is what gets compared.
    bundle = load_native(context.get("model_path", paths.model_path))
    pipeline: Pipeline = bundle["pipeline"]
    columns = bundle.get("schema", {}).get("feature_columns", FEATURE_COLUMNS)

    datasets = {"training": context["wine_df"]}
    if context.get("samples"):
        datasets["samples"] = pd.DataFrame([asdict(s) for s in context["samples"]]).astype(np.float32)

    rows = []
    with OnnxClusterSession(Path(context.get("onnx_path", paths.onnx_path))) as session:
        for name, df in datasets.items():
            rows.append({"dataset": name, **compare_predictions(pipeline, session, df, columns, rtol, atol)})

    parity_df = pd.DataFrame(rows)
    paths.tables_dir.mkdir(parents=True, exist_ok=True)
    parity_path = paths.tables_dir / "onnx_parity.csv"
    parity_df.to_csv(parity_path, index=False)

    total_mismatches = int(parity_df["label_mismatches"].sum())
    scores_close = bool(parity_df["scores_close"].all())
    if total_mismatches and strict:
        raise ParityError(
            f"ONNX labels disagree with the native model on {total_mismatches} rows. See {parity_path}."
        )

    context["parity"] = rows
    status = "ok" if total_mismatches == 0 else "error"
    message = (
        "Native and ONNX predictions agree."
        if total_mismatches == 0
        else f"ONNX labels disagree with the native model on {total_mismatches} rows."
    )
    if not scores_close:
        message += f" Scores differ beyond rtol={rtol}, atol={atol}."

    return {
        "step": "evaluation",
        "status": status,
        "message": message,
        "parity": rows,
        "parity_path": str(parity_path),
    }
