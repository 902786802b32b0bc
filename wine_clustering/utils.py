from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml


@dataclass(frozen=True)
class PipelinePaths:
    data_path: Path
    model_path: Path
    onnx_path: Path
    outputs_dir: Path

    @property
    def tables_dir(self) -> Path:
        return self.outputs_dir / "tables"

    @property
    def figures_dir(self) -> Path:
        return self.outputs_dir / "figures"

    @property
    def reports_dir(self) -> Path:
        return self.outputs_dir / "reports"

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "PipelinePaths":
        paths_cfg = config.get("paths", {})
        outputs_dir = Path(paths_cfg.get("outputs_dir", "outputs"))
        return cls(
            data_path=Path(paths_cfg.get("data", "data/raw/wine-clustering.csv")),
            model_path=Path(paths_cfg.get("model", outputs_dir / "models" / "wineClusteringModel.joblib")),
            onnx_path=Path(paths_cfg.get("onnx_model", outputs_dir / "models" / "wineClusteringModel.onnx")),
            outputs_dir=outputs_dir,
        )


def load_yaml(path: str | Path) -> Dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def ensure_output_dirs(paths: PipelinePaths) -> None:
    for directory in (
        paths.tables_dir,
        paths.figures_dir,
        paths.reports_dir,
        paths.model_path.parent,
        paths.onnx_path.parent,
    ):
        directory.mkdir(parents=True, exist_ok=True)


def save_json(payload: Dict[str, Any], path: str | Path) -> None:
    with Path(path).open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=str)
