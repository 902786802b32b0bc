from __future__ import annotations

from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd
from sklearn.cluster import KMeans
from sklearn.metrics import davies_bouldin_score, silhouette_score
from sklearn.pipeline import Pipeline

from wine_clustering.errors import FitError
from wine_clustering.features import FEATURE_COLUMNS, assemble_features, build_feature_stage
from wine_clustering.records import ClusterAssignment
from wine_clustering.utils import PipelinePaths


def build_pipeline(
    columns: Sequence[str] = FEATURE_COLUMNS,
    n_clusters: int = 3,
    random_state: int = 42,
    n_init: int | str = 10,
    max_iter: int = 300,
) -> Pipeline:
    model = KMeans(
        n_clusters=n_clusters,
        n_init=n_init,
        max_iter=max_iter,
        random_state=random_state,
    )
    return Pipeline(steps=[("features", build_feature_stage(columns)), ("kmeans", model)])


def fit_pipeline(pipeline: Pipeline, df: pd.DataFrame) -> Pipeline:
    n_clusters = pipeline.named_steps["kmeans"].n_clusters
    if len(df) < n_clusters:
        raise FitError(f"Need at least {n_clusters} rows to fit {n_clusters} clusters, got {len(df)}.")
    return pipeline.fit(df)


def predict_assignments(pipeline: Pipeline, df: pd.DataFrame) -> List[ClusterAssignment]:
    labels = pipeline.predict(df)
    distances = pipeline.transform(df)
    return [
        ClusterAssignment(cluster_id=int(label), scores=tuple(float(d) for d in row))
        for label, row in zip(labels, distances)
    ]


def _cluster_summary(pipeline: Pipeline, columns: Sequence[str]) -> pd.DataFrame:
    kmeans: KMeans = pipeline.named_steps["kmeans"]
    sizes = np.bincount(kmeans.labels_, minlength=kmeans.n_clusters)
    summary = pd.DataFrame(kmeans.cluster_centers_, columns=list(columns))
    summary.insert(0, "size", sizes)
    summary.insert(0, "cluster", range(kmeans.n_clusters))
    return summary


def _quality_metrics(pipeline: Pipeline, df: pd.DataFrame, columns: Sequence[str]) -> Dict[str, float]:
    kmeans: KMeans = pipeline.named_steps["kmeans"]
    X = assemble_features(df, columns)
    metrics = {"inertia": float(kmeans.inertia_), "n_iter": int(kmeans.n_iter_)}
    # Both scores need at least two populated clusters and fewer clusters than rows.
    if 1 < len(np.unique(kmeans.labels_)) < len(X):
        metrics["silhouette"] = float(silhouette_score(X, kmeans.labels_))
        metrics["davies_bouldin"] = float(davies_bouldin_score(X, kmeans.labels_))
    return metrics


def run(config: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
    if "wine_df" not in context:
        return {
            "step": "clustering",
            "status": "skipped",
            "message": "No wine dataframe found in context. Run ingestion first.",
        }

    df: pd.DataFrame = context["wine_df"]
    clus_cfg = config.get("clustering", {})
    columns = config.get("features", {}).get("columns", FEATURE_COLUMNS)

    pipeline = build_pipeline(
        columns=columns,
        n_clusters=int(clus_cfg.get("n_clusters", 3)),
        random_state=int(clus_cfg.get("random_state", 42)),
        n_init=clus_cfg.get("n_init", 10),
        max_iter=int(clus_cfg.get("max_iter", 300)),
    )
    fit_pipeline(pipeline, df)

    summary_df = _cluster_summary(pipeline, columns)
    metrics = _quality_metrics(pipeline, df, columns)

    paths = PipelinePaths.from_config(config)
    paths.tables_dir.mkdir(parents=True, exist_ok=True)
    summary_path = paths.tables_dir / "cluster_summary.csv"
    summary_df.to_csv(summary_path, index=False)

    context["pipeline"] = pipeline
    context["feature_columns"] = list(columns)

    return {
        "step": "clustering",
        "status": "ok",
        "message": f"K-Means fitted with {pipeline.named_steps['kmeans'].n_clusters} clusters.",
        "cluster_sizes": summary_df["size"].astype(int).tolist(),
        "metrics": metrics,
        "summary_path": str(summary_path),
    }
