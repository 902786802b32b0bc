from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Sequence

import matplotlib
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns
from sklearn.pipeline import Pipeline

from wine_clustering.utils import PipelinePaths

matplotlib.use("Agg")
sns.set_theme(style="whitegrid")


def _standardized_centroids(pipeline: Pipeline, df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    centers = pd.DataFrame(pipeline.named_steps["kmeans"].cluster_centers_, columns=list(columns))
    std = df[list(columns)].std(ddof=0).replace(0, 1.0)
    return (centers - df[list(columns)].mean()) / std


def _plot_centroid_heatmap(z_centers: pd.DataFrame, out_path: Path) -> None:
    fig, ax = plt.subplots(figsize=(12, 1.2 * len(z_centers) + 2))
    sns.heatmap(z_centers, annot=True, cmap="coolwarm", center=0.0, fmt=".2f", ax=ax)
    ax.set_title("Cluster Centroids (z-score vs dataset mean)")
    ax.set_ylabel("cluster")
    fig.tight_layout()
    fig.savefig(out_path, dpi=140)
    plt.close(fig)


def _plot_cluster_scatter(df: pd.DataFrame, labels: Any, x_col: str, y_col: str, out_path: Path) -> None:
    temp = df[[x_col, y_col]].copy()
    temp["cluster"] = labels
    fig, ax = plt.subplots(figsize=(8, 6))
    sns.scatterplot(data=temp, x=x_col, y=y_col, hue="cluster", palette="deep", ax=ax)
    ax.set_title(f"{y_col} vs {x_col} by cluster")
    fig.tight_layout()
    fig.savefig(out_path, dpi=140)
    plt.close(fig)


def run(config: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
    if "pipeline" not in context or "wine_df" not in context:
        return {
            "step": "profiling",
            "status": "skipped",
            "message": "No fitted pipeline found in context. Run clustering first.",
        }

    pipeline: Pipeline = context["pipeline"]
    df: pd.DataFrame = context["wine_df"]
    columns = context.get("feature_columns", list(df.columns))
    prof_cfg = config.get("profiling", {})
    x_col = prof_cfg.get("scatter_x", "Alcohol")
    y_col = prof_cfg.get("scatter_y", "Proline")

    paths = PipelinePaths.from_config(config)
    paths.figures_dir.mkdir(parents=True, exist_ok=True)
    heatmap_path = paths.figures_dir / "cluster_centroids_heatmap.png"
    scatter_path = paths.figures_dir / "cluster_scatter.png"

    _plot_centroid_heatmap(_standardized_centroids(pipeline, df, columns), heatmap_path)
    _plot_cluster_scatter(df, pipeline.named_steps["kmeans"].labels_, x_col, y_col, scatter_path)

    return {
        "step": "profiling",
        "status": "ok",
        "message": "Cluster profile figures saved.",
        "artifacts": {
            "centroid_heatmap": str(heatmap_path),
            "cluster_scatter": str(scatter_path),
        },
    }
